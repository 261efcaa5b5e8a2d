"""
Install Docker Engine and the Compose plugin.

Debian and Ubuntu get the packages from download.docker.com, Alpine from
its own repositories. Other distributions are rejected with
:class:`hostkit.host.system.UnsupportedOS`.
"""
from hostkit import DOCKER_REPO_URL
from hostkit.cli import report
from hostkit.host.system import (CommandFailed, UnsupportedOS, detect_os,
                                 os_family, group_exists, target_user,
                                 OS_RELEASE)
from hostkit.util.logger import Logger
from hostkit.util.net import download

LOGGER = Logger(__name__)

DOCKER_GROUP = "docker"
DOCKER_KEYRING = "/usr/share/keyrings/docker-archive-keyring.gpg"
DOCKER_APT_LIST = "/etc/apt/sources.list.d/docker.list"

APT_PREREQUISITES = ["ca-certificates", "curl", "gnupg", "lsb-release",
                     "apt-transport-https"]
APT_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io",
                "docker-compose-plugin"]
APK_PACKAGES = ["docker", "docker-cli-compose"]


def apt_source_line(os_id, arch, codename, keyring=DOCKER_KEYRING):
    """format the docker.list entry for the upstream apt repository"""
    return (f"deb [arch={arch} signed-by={keyring}] "
            f"{DOCKER_REPO_URL}/{os_id} {codename} stable\n")


class DockerInstaller:
    """Install and start Docker, optionally granting a user access to it.

    Args:
        shell (:class:`hostkit.host.system.Shell`): runs the commands
        prompter (:class:`hostkit.cli.Prompter`): answers the questions,
            keys: ``add-user-to-group``, ``user``
        os_release (str): path of the os-release file
        fetch (callable): downloads a URL and returns bytes
        environ (dict): the environment used to find the target user
    """

    # pylint: disable=too-many-arguments
    def __init__(self, shell, prompter, os_release=OS_RELEASE,
                 fetch=download, environ=None):
        self.shell = shell
        self.prompter = prompter
        self.os_release = os_release
        self.fetch = fetch
        self.user = prompter.answers.get('user') or target_user(environ)

    def run(self):
        """Run the whole installation.

        Raises:
            OSNotDetected if /etc/os-release is missing
            UnsupportedOS if the distribution is neither Debian, Ubuntu
                nor Alpine
            CommandFailed if a required step fails
        """
        add_user = self.prompter.confirm(
            'add-user-to-group',
            f"Add user '{self.user}' to the '{DOCKER_GROUP}' group?")

        os_id, release = detect_os(self.os_release)
        family = os_family(os_id)

        if family == 'debian':
            LOGGER.info("Detected: %s, proceeding with installation for "
                        "Debian/Ubuntu...", os_id)
            self.install_debian(os_id, release)
        elif family == 'alpine':
            LOGGER.info("Detected: alpine, proceeding with installation for "
                        "Alpine...")
            self.install_alpine()
        else:
            raise UnsupportedOS(os_id)

        if add_user:
            self.add_user_to_group(self.user)
        else:
            LOGGER.info("User not added to the '%s' group. To add later: "
                        "sudo usermod -aG %s %s", DOCKER_GROUP, DOCKER_GROUP,
                        self.user)

        self.check()

    def codename(self, release):
        """the distribution codename, from os-release or lsb_release"""
        codename = release.get("VERSION_CODENAME")
        if codename:
            return codename
        return self.shell.output(["lsb_release", "-cs"])

    def install_debian(self, os_id, release):
        """add the upstream apt repository and install the packages"""
        shell = self.shell
        shell.run(["apt-get", "update"], sudo=True)
        shell.run(["apt-get", "install", "-y"] + APT_PREREQUISITES, sudo=True)

        key = self.fetch(f"{DOCKER_REPO_URL}/{os_id}/gpg")
        shell.run(["gpg", "--batch", "--yes", "--dearmor",
                   "-o", DOCKER_KEYRING], sudo=True, input=key)

        arch = shell.output(["dpkg", "--print-architecture"])
        shell.write_file(DOCKER_APT_LIST,
                         apt_source_line(os_id, arch, self.codename(release)))

        shell.run(["apt-get", "update"], sudo=True)
        shell.run(["apt-get", "install", "-y"] + APT_PACKAGES, sudo=True)
        shell.best_effort(["systemctl", "enable", "--now", "docker"],
                          sudo=True)

    def install_alpine(self):
        """install from the Alpine repositories and start with OpenRC"""
        shell = self.shell
        shell.run(["apk", "update"], sudo=True)
        shell.run(["apk", "add", "--no-cache"] + APK_PACKAGES, sudo=True)
        if shell.which("rc-update"):
            shell.best_effort(["rc-update", "add", "docker", "boot"], sudo=True)
        shell.best_effort(["service", "docker", "start"], sudo=True)

    def add_user_to_group(self, user):
        """Add ``user`` to the docker group, creating the group if needed.

        ``usermod`` is missing on minimal images, ``addgroup`` is tried
        then.

        Returns:
            True if the user was added.
        """
        LOGGER.info("Adding user '%s' to '%s' group...", user, DOCKER_GROUP)
        shell = self.shell
        if not group_exists(DOCKER_GROUP):
            shell.best_effort(["groupadd", DOCKER_GROUP], sudo=True)

        try:
            shell.run(["usermod", "-aG", DOCKER_GROUP, user], sudo=True)
        except CommandFailed as exc:
            LOGGER.debug("usermod failed: %s", exc)
            if not shell.which("addgroup"):
                LOGGER.error("Unable to add user to the docker group "
                             "automatically.")
                return False
            shell.best_effort(["addgroup", user, DOCKER_GROUP], sudo=True)

        LOGGER.success("User added to '%s' group. Log out and log back in "
                       "for the changes to take effect.", DOCKER_GROUP)
        return True

    def check(self):
        """print the installed versions"""
        report("", "Checks:")
        shell = self.shell
        if not shell.best_effort(["docker", "--version"], sudo=True):
            report("docker not found or not running")
        try:
            report(shell.output(["docker", "compose", "version"]))
        except CommandFailed:
            report("docker compose (plugin) not available or not installed")
        LOGGER.success("Installation completed.")
