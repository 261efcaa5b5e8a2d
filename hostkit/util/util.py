"""
General purpose utilities
"""
import base64
import re
import secrets
import shlex
import time

from functools import wraps


# useradd(8) accepts at most 32 characters and this character set
USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")
USERNAME_MAX_LEN = 32

PASSWORD_BYTES = 18


def username_validation(name):
    """
    Validates a name that will be used as a local account name.
    Each name should conform to the following convention:
    not too long (maximum 32 characters), starting with a lower case
    letter or an underscore, followed by lower case letters, digits,
    underscores or dashes.

    Args:
        name (str): The name to be checked

    Returns:
        The name if valid.

    Raises:
        ValueError if the name is invalid.
    """
    if not name:
        raise ValueError("username can't be empty")
    if len(name) > USERNAME_MAX_LEN:
        raise ValueError(f"username '{name}' is too long")
    if not USERNAME_RE.match(name):
        raise ValueError(f"username '{name}' is using illegal characters")
    return name


def generate_password(nbytes=PASSWORD_BYTES):
    """
    return a random password, ``nbytes`` random bytes encoded as base64
    (the same shape as ``openssl rand -base64 18``)
    """
    return base64.b64encode(secrets.token_bytes(nbytes)).decode()


def format_command(cmd):
    """render an argv list as a copy-pasteable shell line"""
    return " ".join(shlex.quote(str(part)) for part in cmd)


def retry(exceptions, tries=4, delay=3, backoff=2, logger=None):
    """
    Retry calling the decorated function using an exponential backoff.

    Args:
        exceptions: The exception to check. may be a tuple of exceptions to check.
        tries: Number of times to try (not retry) before giving up.
        delay: Initial delay between retries in seconds.
        backoff: Backoff multiplier (e.g. value of 2 will double the delay each retry).
        logger: Logger to use. If None, print.
    """
    def deco_retry(f):  # pylint: disable=invalid-name

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:  # pylint: disable=invalid-name
                    msg = '{}, Retrying in {} seconds...'.format(e,
                                                                 int(mdelay))
                    if logger:
                        logger(msg)
                    else:
                        print(msg)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)

        return f_retry  # true decorator

    return deco_retry
