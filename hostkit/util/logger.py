"""Logging for hostkit.

All modules log through :class:`Logger`, which prints colored, prefixed
messages to STDOUT. The verbosity is shared by every logger of the process
and is set once from the ``--verbosity`` CLI option.
"""

import logging
import sys
import time

from huepy import (bad, red, info as infomsg, yellow, run, grey,  # pylint: disable=no-name-in-module
                   que, good, green)

LOG_LEVELS = list(range(5))
DEFAULT_LOG_LEVEL = 3

# hostkit verbosity -> Python logging level, 0 disables the logger
PYTHON_LEVELS = {1: logging.ERROR,
                 2: logging.WARNING,
                 3: logging.INFO,
                 4: logging.DEBUG}

LEVEL_NAMES = {'quiet': 0,
               'error': 1,
               'warning': 2,
               'info': 3,
               'debug': 4}


def get_logger(name):
    """Returns a Python logger writing plain messages to STDOUT.

    Only one handler is ever attached per logger name, otherwise repeated
    calls would print every message several times.

    Args:
        name (str): The name of the Logger.

    Returns:
        A Python Logger.
    """
    log = logging.getLogger(name)
    set_level(log, Logger.LOG_LEVEL)

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(handler)
        log.propagate = False

    return log


def set_level(logger, level):
    """Sets the level of a Python logger from a hostkit verbosity.

    Args:
        logger: A Python logger object.
        level (int): The verbosity, one of ``LOG_LEVELS``.

    Raises:
        ValueError if log level is unsupported.
    """
    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")

    if level == 0:
        logger.disabled = True
        return

    logger.disabled = False
    logger.setLevel(PYTHON_LEVELS[level])


def parse_verbosity(level):
    """Turns a CLI verbosity (``'2'``, ``2`` or ``'warning'``) into an int.

    Raises:
        ValueError if the level is unknown.
    """
    try:
        return LEVEL_NAMES[level]
    except KeyError:
        pass

    try:
        level = int(level)
    except (TypeError, ValueError):
        raise ValueError(f"unknown verbosity {level!r}")

    if level not in LOG_LEVELS:
        raise ValueError(f"log level {level} is not supported")
    return level


class Singleton(type):
    """Metaclass returning the same instance for every call.

    Calling the class again re-runs ``__init__`` on the existing instance,
    so ``Logger("a")`` followed by ``Logger("b")`` yields one object whose
    underlying logger is ``b``.
    """
    _instances = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super(Singleton, cls).__call__(*args, **kwargs)
        else:
            cls._instances[cls].__init__(*args, **kwargs)

        return cls._instances[cls]


class Logger(metaclass=Singleton):
    """Proxy around ``logging.Logger`` with hostkit's verbosity levels.

    The levels are:

    .. code:: shell

        * 0 - quiet (no output)
        * 1 - error
        * 2 - warning
        * 3 - info
        * 4 - debug

    Set ``Logger.LOG_LEVEL`` before creating loggers, or use
    :func:`set_verbosity` to change it for the running process.

    Example:
        >>> log = Logger(__name__)
        >>> log.info("installing %s", "docker")
        [~] installing docker
        >>> log.success("done")
        [+] done

    Args:
        name (str): The name of the logger.
    """

    LOG_LEVEL = DEFAULT_LOG_LEVEL

    def __init__(self, name):
        self.logger = get_logger(name)

    @property
    def level(self):
        """Returns the Python log level, 0 if the logger is disabled."""
        if not self.logger:
            return None

        if self.logger.disabled:
            return 0

        return self.logger.level

    @level.setter
    def level(self, level):
        set_level(self.logger, parse_verbosity(level))

    def error(self, msg, *args, color=True, **kwargs):
        """Logs a message on error level, in red with ``[-]``."""
        if color:
            msg = bad(red(msg))

        self.logger.error(msg, *args, **kwargs)

    def warning(self, msg, *args, color=True, **kwargs):
        """Logs a message on warning level, in yellow with ``[!]``."""
        if color:
            msg = infomsg(yellow(msg))

        self.logger.warning(msg, *args, **kwargs)

    def info(self, msg, *args, color=True, **kwargs):
        """Logs a message on info level, in grey with ``[~]``."""
        if color:
            msg = run(grey(msg))

        self.logger.info(msg, *args, **kwargs)

    def debug(self, msg, *args, color=True, **kwargs):
        """Logs a message on debug level prefixed with a timestamp.

        Example:
            >>> log.debug("running apt-get update")
            [20261016-101500] running apt-get update
        """
        if color:
            now = time.strftime("%Y%m%d-%H%M%S")
            msg = grey(f"[{now}] {msg}")

        self.logger.debug(msg, *args, **kwargs)

    def success(self, msg, *args, color=True, **kwargs):
        """Logs a success on info level, in green with ``[+]``."""
        if color:
            msg = good(green(msg))

        self.logger.info(msg, *args, **kwargs)

    @staticmethod
    def question(msg, color=True):
        """Prints a question, regardless of the verbosity.

        No %-formatting is applied to ``msg``.
        """
        if color:
            msg = que(msg)

        print(msg)


def set_verbosity(level):
    """Sets the verbosity for loggers created from now on and the current one.

    Args:
        level (int or str): see :func:`parse_verbosity`.
    """
    level = parse_verbosity(level)
    Logger.LOG_LEVEL = level
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("hostkit"):
            set_level(logging.getLogger(name), level)
