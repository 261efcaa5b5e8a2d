"""
ssh.py holds the SSH key pair utilities used when ``ssh-keygen`` is not
available on the host, and helpers for ``authorized_keys`` files.
"""
import socket

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

from hostkit.util.logger import Logger

LOGGER = Logger(__name__)

RSA_KEY_SIZE = 4096


def create_key(key_type="ed25519", size=RSA_KEY_SIZE, public_exponent=65537):
    """Create a private key for SSH.

    Args:
        key_type (str) - "ed25519" or "rsa"
        size (int) - the RSA key size in bits
        public_exponent (int) - the RSA public exponent

    Return:
        private key object instance
    """
    if key_type == "ed25519":
        return ed25519.Ed25519PrivateKey.generate()
    if key_type == "rsa":
        return rsa.generate_private_key(
            public_exponent=public_exponent,
            key_size=size,
            backend=default_backend()
        )
    raise ValueError(f"unsupported key type {key_type}")


def private_openssh(key):
    """serialize a private key in the OpenSSH format, unencrypted"""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption())


def public_openssh(key, comment=None):
    """the ``authorized_keys`` line of a private key's public half"""
    line = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH).decode()
    if comment:
        line = f"{line} {comment}"
    return line


def key_comment(username):
    """the comment ssh-keygen would use, user@host"""
    return f"{username}@{socket.gethostname()}"


def parse_public_key(line):
    """Return the (type, base64 blob) of an OpenSSH public key line.

    Options before the key type, as allowed in ``authorized_keys``, are
    skipped.

    Returns:
        A tuple or None if the line holds no key.
    """
    fields = line.strip().split()
    for idx, field in enumerate(fields[:-1]):
        if field.startswith(("ssh-", "ecdsa-", "sk-")):
            return field, fields[idx + 1]
    return None


def has_key(authorized_keys, public_key):
    """Check if ``public_key`` is already listed in ``authorized_keys``.

    Only the key type and blob are compared, comments and options are
    ignored.
    """
    wanted = parse_public_key(public_key)
    if wanted is None:
        return False
    for line in authorized_keys.splitlines():
        if line.strip().startswith("#"):
            continue
        if parse_public_key(line) == wanted:
            return True
    return False


class KeyPair:
    """An SSH key pair generated in-process.

    Args:
        key: a private key instance
        comment (str): appended to the public key line
    """

    def __init__(self, key, comment=None):
        self.key = key
        self.comment = comment

    @classmethod
    def generate(cls, comment=None):
        """Create an ed25519 pair, RSA if ed25519 is not supported"""
        try:
            key = create_key("ed25519")
        except UnsupportedAlgorithm:
            LOGGER.debug("ed25519 unsupported, generating RSA %d",
                         RSA_KEY_SIZE)
            key = create_key("rsa")
        return cls(key, comment)

    @property
    def key_type(self):
        return "ed25519" if isinstance(
            self.key, ed25519.Ed25519PrivateKey) else "rsa"

    @property
    def private_bytes(self):
        return private_openssh(self.key)

    @property
    def public_line(self):
        return public_openssh(self.key, self.comment) + "\n"

    def save(self, shell, path, owner):
        """Write ``path`` and ``path.pub`` owned by ``owner``.

        The private key is written with mode 600, the public one with 644.
        """
        shell.write_file(path, self.private_bytes, mode="600", owner=owner)
        shell.write_file(path + ".pub", self.public_line, mode="644",
                         owner=owner)
