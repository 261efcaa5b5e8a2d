"""
hostkit
=======

The main entry point for bootstrapping a host.
Don't use it directly, instead install the package with setup.py.
It automatically creates an executable in your path.

"""
import argparse
import sys

import yaml

from mach import mach1

from . import __version__
from .cli import Aborted, Prompter
from .config import load_config
from .deploy.k3s import K3SInstaller, ClusterNotReady
from .host.system import Shell, OSNotDetected, UnsupportedOS
from .provision.docker import DockerInstaller
from .provision.user import UserProvisioner
from .util.logger import Logger, set_verbosity

LOGGER = Logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UNSUPPORTED = 2


def get_prompter(config, section, yes):
    """
    Read the answers file and return a Prompter for one of its sections.

    Exits with status 1 if the file is unreadable or invalid.
    """
    try:
        answers = load_config(config or None)[section]
    except (OSError, yaml.YAMLError, ValueError) as exc:
        LOGGER.error(f"Error: invalid configuration {config}: {exc}")
        sys.exit(EXIT_FAILURE)

    return Prompter(answers, assume_yes=yes)


def run_task(task):
    """Run a task and map its outcome to an exit code.

    Args:
        task: an object with a ``run()`` method

    Returns:
        The exit code.
    """
    try:
        task.run()
    except Aborted as exc:
        LOGGER.info(str(exc))
        return EXIT_OK
    except UnsupportedOS as exc:
        LOGGER.error(str(exc))
        return EXIT_UNSUPPORTED
    except (OSNotDetected, ClusterNotReady, ValueError) as exc:
        LOGGER.error(str(exc))
        return EXIT_FAILURE
    except RuntimeError as exc:
        LOGGER.error(f"Error: {exc}")
        return EXIT_FAILURE
    except (KeyboardInterrupt, EOFError):
        LOGGER.error("Interrupted.")
        return EXIT_FAILURE

    return EXIT_OK


@mach1()
class Hostkit:  # pylint: disable=no-self-use
    """
    The main entry point for the program. This class does the CLI parsing
    and decides which task should be run
    """
    def __init__(self):
        self.parser.add_argument(  # pylint: disable=no-member
            "--version", action="store_true",
            help="show version and exit",
            default=argparse.SUPPRESS)

        verbosity_help = "".join([
            "set the verbosity level (",
            "0 = quiet, ",
            "1 = error, ",
            "2 = warning, ",
            "3 = info, ",
            "4 = debug)"])
        self.parser.add_argument("--verbosity",  # pylint: disable=no-member
                                 "-v",
                                 help=verbosity_help,
                                 choices=['0', '1', '2', '3', '4', 'quiet',
                                          'error', 'warning', 'info', 'debug'],
                                 type=str,
                                 default='3')

    def _get_version(self, *_):
        print("%s version: %s" % (self.__class__.__name__, __version__))
        sys.exit(EXIT_OK)

    def docker(self, config: str = "", yes: bool = False):
        """
        Install Docker and Docker Compose

        config - YAML file answering the questions
        yes - answer all yes/no questions with yes
        ---
        Supports Debian, Ubuntu and Alpine. Optionally adds the invoking
        user (SUDO_USER when run through sudo) to the docker group.
        """
        prompter = get_prompter(config, 'docker', yes)
        sys.exit(run_task(DockerInstaller(Shell(), prompter)))

    def k3s(self, config: str = "", yes: bool = False):
        """
        Install k3s with an optional ingress controller and MetalLB

        config - YAML file answering the questions
        yes - answer all yes/no questions with yes
        ---
        The kubeconfig is written to /etc/rancher/k3s/k3s.yaml.
        """
        prompter = get_prompter(config, 'k3s', yes)
        sys.exit(run_task(K3SInstaller(Shell(), prompter)))

    def user(self, username: str = "", config: str = "", yes: bool = False):
        """
        Create a local user with a password and an SSH key pair

        username - the account to create or update
        config - YAML file answering the questions
        yes - answer all yes/no questions with yes
        ---
        The generated password and private key are printed once at the end.
        """
        prompter = get_prompter(config, 'user', yes)
        task = UserProvisioner(Shell(), prompter, username=username or None)
        sys.exit(run_task(task))


def main():
    """
    run and execute hostkit
    """
    k = Hostkit()

    # pylint: disable=no-member
    k.parser.description = 'Bootstrap a Linux host: install Docker, k3s '\
                           'or create a user with SSH credentials. '\
                           'Commands that need root privileges are run '\
                           'through sudo when not running as root.'

    level = k.parser.parse_args().verbosity
    try:
        set_verbosity(level)
    except ValueError as exc:
        LOGGER.error(str(exc))
        sys.exit(EXIT_FAILURE)

    # mach analyzes the methods of the decorated class, creates the CLI
    # parser from them and adds the method run to the class.
    k.run()  # pylint: disable=no-member
