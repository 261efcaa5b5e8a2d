"""
hostkit.provision
-----------------

docker
~~~~~~

Install Docker Engine and the Compose plugin from the upstream package
repositories on Debian/Ubuntu, or from the distribution on Alpine. The
invoking user can optionally be added to the ``docker`` group.

user
~~~~

Create a local account with a home directory, a random password and an
SSH key pair whose public half is installed in ``authorized_keys``.
"""
