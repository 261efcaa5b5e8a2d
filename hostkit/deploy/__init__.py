"""Deploy a k3s cluster and its add-ons on the local host."""
