# pylint: disable=missing-docstring
try:
    from importlib.metadata import version, PackageNotFoundError
    __version__ = version('hostkit')
except PackageNotFoundError:
    __version__ = '0.3.0'

# Defining some constants
K3S_INSTALL_URL = "https://get.k3s.io"
K3S_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
DOCKER_REPO_URL = "https://download.docker.com/linux"
INGRESS_NGINX_VERSION = "v1.7.1"
METALLB_VERSION = "v0.13.12"
