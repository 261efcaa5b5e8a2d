"""
Create a local user with a home directory, a random password and an SSH
key pair.

The key pair is created as the new user with ``ssh-keygen`` when it is
available (it is installed on demand). If it still is not, the pair is
generated in-process, see :class:`hostkit.ssh.KeyPair`.
"""
from hostkit.cli import Aborted, report
from hostkit.host.system import (CommandFailed, read_os_release, os_family,
                                 user_exists, ALPINE_RELEASE, OS_RELEASE)
from hostkit.ssh import KeyPair, has_key, key_comment
from hostkit.util.logger import Logger
from hostkit.util.util import generate_password, username_validation

LOGGER = Logger(__name__)

KEY_NAME = "id_ed25519"

SSH_CLIENT_PACKAGES = {
    'alpine': [["apk", "update"],
               ["apk", "add", "--no-cache", "openssh"]],
    'debian': [["apt-get", "update"],
               ["apt-get", "install", "-y", "openssh-client"]],
}


class UserProvisioner:  # pylint: disable=too-many-instance-attributes
    """Create or update a local account and its SSH credentials.

    Args:
        shell (:class:`hostkit.host.system.Shell`): runs the commands
        prompter (:class:`hostkit.cli.Prompter`): answers the questions,
            keys: ``name``, ``update-existing``
        username (str): skip the username prompt
        os_release (str): path of the os-release file
        home_root (str): the parent of the home directories
    """

    # pylint: disable=too-many-arguments
    def __init__(self, shell, prompter, username=None, os_release=OS_RELEASE,
                 home_root="/home"):
        self.shell = shell
        self.prompter = prompter
        self.os_release = os_release
        self.home_root = home_root
        self.username = username
        self.password = None
        self.has_key = False

    @property
    def home_dir(self):
        return f"{self.home_root}/{self.username}"

    @property
    def ssh_dir(self):
        return f"{self.home_dir}/.ssh"

    @property
    def private_key_path(self):
        return f"{self.ssh_dir}/{KEY_NAME}"

    @property
    def authorized_keys(self):
        return f"{self.ssh_dir}/authorized_keys"

    def ask_username(self):
        """Prompt for the username and validate it.

        Raises:
            ValueError if the name is empty or invalid.
        """
        name = self.username
        if name is None:
            name = self.prompter.ask('name', "Enter new username: ")
        name = (name or "").strip()
        if not name:
            raise ValueError("No username provided. Aborting.")
        self.username = username_validation(name)
        return self.username

    def run(self):
        """Create or update the user and print the credentials report.

        Raises:
            ValueError if no valid username was given
            Aborted if the user exists and updating was declined
            CommandFailed if a required step fails
        """
        self.ask_username()

        if user_exists(self.username):
            if not self.prompter.confirm(
                    'update-existing',
                    f"User '{self.username}' already exists. Update "
                    "credentials / ensure keys?"):
                raise Aborted("Aborting.")
        else:
            self.create_user()

        shell = self.shell
        owner = f"{self.username}:{self.username}"
        shell.run(["mkdir", "-p", self.home_dir], sudo=True)
        shell.run(["chown", owner, self.home_dir], sudo=True)

        keygen = self.ensure_ssh_keygen()

        self.password = generate_password()
        shell.run(["chpasswd"], sudo=True,
                  input=f"{self.username}:{self.password}\n")

        shell.run(["mkdir", "-p", self.ssh_dir], sudo=True)
        shell.run(["chown", owner, self.ssh_dir], sudo=True)
        shell.run(["chmod", "700", self.ssh_dir], sudo=True)

        self.create_key_pair(keygen)
        if self.has_key:
            self.install_authorized_key()

        shell.run(["chown", "-R", owner, self.home_dir], sudo=True)
        shell.best_effort(["chmod", "700", self.ssh_dir], sudo=True)

        self.report(keygen)

    def create_user(self):
        """Create the account with the tool the distribution ships.

        Alpine (or any system with BusyBox ``adduser`` but no ``useradd``)
        gets a ``/bin/sh`` login shell, everything else ``/bin/bash``.
        """
        shell = self.shell
        busybox = bool(shell.which("adduser")) and not shell.which("useradd")
        if shell.exists(ALPINE_RELEASE) or busybox:
            cmd = ["adduser", "-D", "-h", self.home_dir, "-s", "/bin/sh",
                   self.username]
        else:
            cmd = ["useradd", "-m", "-s", "/bin/bash", self.username]

        shell.run(cmd, sudo=True)
        LOGGER.success("Created user '%s'", self.username)

    def ensure_ssh_keygen(self):
        """Install the OpenSSH client if ``ssh-keygen`` is missing.

        Returns:
            True if ``ssh-keygen`` is available afterwards.
        """
        shell = self.shell
        if shell.which("ssh-keygen"):
            return True

        LOGGER.info("ssh-keygen not found; attempting to install...")
        release = read_os_release(self.os_release) or {}
        os_id = release.get("ID", "")
        family = os_family(os_id)

        if family in SSH_CLIENT_PACKAGES:
            LOGGER.info("Installing the OpenSSH client on %s...", os_id)
            env = {"DEBIAN_FRONTEND": "noninteractive"} \
                if family == 'debian' else None
            for cmd in SSH_CLIENT_PACKAGES[family]:
                shell.run(cmd, sudo=True, env=env)
        elif family == 'rhel':
            LOGGER.info("Installing openssh-clients on RHEL/CentOS/Fedora...")
            if not shell.best_effort(["yum", "install", "-y",
                                      "openssh-clients"], sudo=True):
                shell.run(["dnf", "install", "-y", "openssh-clients"],
                          sudo=True)
        else:
            LOGGER.warning("Automatic installation of ssh-keygen not "
                           "supported on OS: %s. Please install ssh-keygen "
                           "(openssh) manually.", os_id or "unknown")

        if shell.which("ssh-keygen"):
            LOGGER.success("ssh-keygen installed.")
            return True

        LOGGER.warning("ssh-keygen still not available after attempt to "
                       "install.")
        return False

    def create_key_pair(self, keygen):
        """Create the key pair unless the private key already exists.

        ``ssh-keygen`` runs as the new user, first for ed25519, then RSA.
        Without ``ssh-keygen`` the key is generated in-process.
        """
        shell = self.shell
        path = self.private_key_path
        if shell.exists(path, sudo=True):
            LOGGER.info("SSH key pair already exists. Skipping generation.")
        elif keygen:
            if not shell.best_effort(["ssh-keygen", "-t", "ed25519", "-f",
                                      path, "-N", "", "-q"],
                                     user=self.username, capture=True):
                LOGGER.debug("ed25519 key generation failed, trying RSA")
                shell.best_effort(["ssh-keygen", "-t", "rsa", "-b", "4096",
                                   "-f", path, "-N", "", "-q"],
                                  user=self.username)
        else:
            pair = KeyPair.generate(comment=key_comment(self.username))
            LOGGER.info("Generating %s key pair without ssh-keygen",
                        pair.key_type)
            try:
                pair.save(shell, path, self.username)
            except CommandFailed as exc:
                LOGGER.error("Unable to write the key pair: %s", exc)

        self.has_key = shell.exists(path + ".pub", sudo=True)
        return self.has_key

    def install_authorized_key(self):
        """Add the public key to ``authorized_keys`` if it is not there.

        Returns:
            True if the file was changed.
        """
        shell = self.shell
        public_key = shell.read_file(self.private_key_path + ".pub")

        if not shell.exists(self.authorized_keys, sudo=True):
            shell.write_file(self.authorized_keys, public_key, mode="600",
                             owner=self.username)
            return True

        current = shell.read_file(self.authorized_keys)
        if has_key(current, public_key):
            LOGGER.debug("Public key already in %s", self.authorized_keys)
            return False

        if current and not current.endswith("\n"):
            public_key = "\n" + public_key
        shell.write_file(self.authorized_keys, public_key, append=True)
        shell.run(["chmod", "600", self.authorized_keys], sudo=True)
        return True

    def report(self, keygen):
        """print the credentials and what to do with them"""
        lines = ["",
                 f"User created/updated: {self.username}",
                 f"Generated password: {self.password}"]
        if self.has_key:
            private_key = self.shell.read_file(self.private_key_path)
            lines += [f"Private key path: {self.private_key_path}",
                      "",
                      "----- BEGIN PRIVATE KEY (copy/save this securely) -----",
                      private_key.rstrip("\n"),
                      "----- END PRIVATE KEY -----",
                      "",
                      f"Public key installed in {self.authorized_keys}"]
        else:
            if keygen:
                lines.append("SSH keypair was not generated (generation "
                             "failed or public key missing).")
            else:
                lines.append("SSH keypair was not generated (ssh-keygen not "
                             "available).")
            lines.append("You can add an authorized key manually to "
                         f"{self.authorized_keys}")

        lines += ["",
                  "Notes:",
                  f" - Home directory: {self.home_dir}",
                  " - The user can authenticate via password (SSH) unless SSH "
                  "password auth is disabled on the server.",
                  " - Protect the printed private key; remove it from the "
                  "terminal history or save it to a secure location."]
        report(*lines)
