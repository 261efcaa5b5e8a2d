"""
system
======

The single seam between hostkit and the machine it runs on. Every
external command goes through :class:`Shell`, which adds ``sudo`` when
the process is not running as root, logs the command line and turns
failures into :class:`CommandFailed`.
"""
import getpass
import grp
import os
import pwd
import shlex
import shutil
import subprocess as sp

from hostkit.util.logger import Logger
from hostkit.util.util import format_command

LOGGER = Logger(__name__)

OS_RELEASE = "/etc/os-release"
ALPINE_RELEASE = "/etc/alpine-release"

OS_FAMILIES = {
    'ubuntu': 'debian',
    'debian': 'debian',
    'alpine': 'alpine',
    'centos': 'rhel',
    'rhel': 'rhel',
    'fedora': 'rhel',
    'amzn': 'rhel',
}


class CommandFailed(RuntimeError):
    """Raised when an external command exits with a non-zero code.

    Args:
        cmd (list): the argv that was executed
        returncode (int): the exit code, 127 if the program was not found
        stderr (str): captured standard error, if any
    """

    def __init__(self, cmd, returncode, stderr=None):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        msg = "'%s' failed with exit code %s" % (format_command(cmd),
                                                 returncode)
        if stderr:
            msg = "%s: %s" % (msg, stderr.strip())
        super().__init__(msg)


class OSNotDetected(Exception):
    """Raised when /etc/os-release can't be read"""


class UnsupportedOS(Exception):
    """Raised when a task has no recipe for the detected OS"""

    def __init__(self, os_id):
        self.os_id = os_id
        super().__init__(f"OS not supported by this script: {os_id}")


def read_os_release(path=OS_RELEASE):
    """Parse an os-release(5) file.

    The file is a list of shell-style ``KEY=value`` assignments, values may
    be quoted. Comments and blank lines are ignored.

    Args:
        path (str): the file to read

    Returns:
        A dict of the assignments, or None if the file can't be read.
    """
    try:
        with open(path) as fh:
            lines = fh.readlines()
    except OSError:
        return None

    release = {}
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        try:
            value = "".join(shlex.split(value))
        except ValueError:
            value = value.strip("\"'")
        release[key.strip()] = value

    return release


def detect_os(path=OS_RELEASE):
    """Return the ``ID`` and the full content of the os-release file.

    Raises:
        OSNotDetected if the file is not readable.
    """
    release = read_os_release(path)
    if release is None:
        raise OSNotDetected("Unable to detect operating system.")
    return release.get("ID", ""), release


def os_family(os_id):
    """map an os-release ID to 'debian', 'alpine', 'rhel' or None"""
    return OS_FAMILIES.get(os_id)


def target_user(environ=None):
    """The user a task acts on behalf of.

    When invoked through sudo this is the real, non-root user, otherwise
    the user running the process.
    """
    if environ is None:
        environ = os.environ
    sudo_user = environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    return getpass.getuser()


def user_exists(name):
    """Checks the local account database for ``name``"""
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def group_exists(name):
    """Checks the local group database for ``name``"""
    try:
        grp.getgrnam(name)
    except KeyError:
        return False
    return True


class Shell:
    """Run commands on the local host.

    Args:
        uid (int): the effective user id, defaults to the one of the process.
            Everything requested with ``sudo=True`` is prefixed with
            ``sudo`` unless this is 0.
    """

    def __init__(self, uid=None):
        self.uid = os.geteuid() if uid is None else uid

    @property
    def is_root(self):
        return self.uid == 0

    @property
    def sudo(self):
        """the privilege prefix, empty when running as root"""
        return [] if self.is_root else ["sudo"]

    def argv(self, cmd, sudo=False, env=None, user=None):
        """Build the final argv for ``cmd``.

        Environment variables are passed with ``env(1)`` when the command is
        run through sudo, since sudo resets the environment.
        """
        cmd = [str(part) for part in cmd]
        if env:
            cmd = ["env"] + ["%s=%s" % item for item in env.items()] + cmd

        if user:
            if self.which("sudo"):
                return ["sudo", "-u", user] + cmd
            return ["su", user, "-s", "/bin/sh", "-c", format_command(cmd)]

        if sudo:
            return self.sudo + cmd
        return cmd

    # pylint: disable=too-many-arguments,redefined-builtin
    def run(self, cmd, sudo=False, check=True, capture=False, input=None,
            env=None, user=None):
        """Execute a command.

        Args:
            cmd (list): the argv to execute
            sudo (bool): run with root privileges
            check (bool): raise :class:`CommandFailed` on a non-zero exit
            capture (bool): capture STDOUT and STDERR instead of passing
                them through to the terminal
            input (str or bytes): data written to the command's STDIN
            env (dict): extra environment variables
            user (str): run the command as this user

        Returns:
            A ``subprocess.CompletedProcess``.
        """
        argv = self.argv(cmd, sudo=sudo, env=env, user=user)
        LOGGER.debug("Running: %s", format_command(argv))

        pipe = sp.PIPE if capture else None
        try:
            proc = sp.run(argv,
                          input=input,
                          stdout=pipe,
                          stderr=pipe,
                          universal_newlines=not isinstance(input, bytes))
        except FileNotFoundError:
            if check:
                raise CommandFailed(argv, 127, f"{argv[0]}: command not found")
            return sp.CompletedProcess(argv, 127, "", "")

        if check and proc.returncode:
            raise CommandFailed(argv, proc.returncode, proc.stderr)

        return proc

    def best_effort(self, cmd, **kwargs):
        """Run a command whose failure is not fatal.

        Returns:
            True if the command succeeded.
        """
        try:
            self.run(cmd, **kwargs)
        except CommandFailed as exc:
            LOGGER.debug("Ignoring failure: %s", exc)
            return False
        return True

    def output(self, cmd, **kwargs):
        """Run a command and return its stripped STDOUT"""
        out = self.run(cmd, capture=True, **kwargs).stdout or ""
        if isinstance(out, bytes):
            out = out.decode()
        return out.strip()

    @staticmethod
    def which(name):
        """Return the path of ``name`` in PATH or None"""
        return shutil.which(name)

    def exists(self, path, sudo=False):
        """Check if ``path`` exists, with root privileges if ``sudo``."""
        if sudo and not self.is_root:
            return self.best_effort(["test", "-e", path], sudo=True)
        return os.path.exists(path)

    # pylint: disable=too-many-arguments
    def write_file(self, path, content, mode=None, owner=None, append=False):
        """Write ``content`` to ``path`` with root privileges.

        Args:
            path (str): the destination
            content (str or bytes): what to write
            mode (str): e.g. "600", applied with chmod
            owner (str): user name, the file is chowned to ``owner:owner``
            append (bool): append instead of truncating
        """
        if mode and not append:
            # the file has its final mode before any content is written
            self.run(["install", "-m", mode, "/dev/null", path], sudo=True)
        cmd = ["tee", "-a", path] if append else ["tee", path]
        self.run(cmd, sudo=True, capture=True, input=content)
        if owner:
            self.run(["chown", "%s:%s" % (owner, owner), path], sudo=True)
        if mode:
            self.run(["chmod", mode, path], sudo=True)

    def read_file(self, path):
        """Return the content of ``path``, read with root privileges"""
        return self.run(["cat", path], sudo=True, capture=True).stdout
