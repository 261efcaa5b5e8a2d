"""
cli.py
======

Interactive prompts and the plain-text reports printed at the end of a
task, usually called from the tasks in ``hostkit.provision`` and
``hostkit.deploy``.

Don't use directly
"""
from huepy import que, bold  # pylint: disable=no-name-in-module

from .util.logger import Logger


LOGGER = Logger(__name__)

YES = ("y", "yes")


class Aborted(Exception):
    """Raised when the user declines to continue"""


def is_yes(answer, default=False):
    """Interpret a [y/N] answer, an empty answer selects ``default``"""
    answer = (answer or "").strip().lower()
    if not answer:
        return default
    return answer in YES


def confirm(question, default=False, force=False, input_func=input):
    """Asks the user for confirmation.

    Args:
        question (str): the question, without the [y/N] hint
        default (bool): the answer selected by just pressing enter
        force (bool): don't ask, answer yes
        input_func (callable): reads the answer

    Returns:
        bool
    """
    if force:
        return True

    hint = "[Y/n]" if default else "[y/N]"
    ans = input_func(que(bold(f"{question} {hint} ")))
    return is_yes(ans, default)


class Prompter:
    """Ask questions unless they were answered in advance.

    Each question has a key. If the answers mapping, usually a section of
    the YAML configuration, holds the key, its value is used silently.

    Args:
        answers (dict): pre-answered questions
        assume_yes (bool): answer every yes/no question with yes
        input_func (callable): reads a line from the user
    """

    def __init__(self, answers=None, assume_yes=False, input_func=input):
        self.answers = answers or {}
        self.assume_yes = assume_yes
        self.input = input_func

    def confirm(self, key, question, default=False):
        """yes/no question, returns bool"""
        if key in self.answers:
            LOGGER.debug("%s: %s (from configuration)", key, self.answers[key])
            return bool(self.answers[key])

        return confirm(question, default, force=self.assume_yes,
                       input_func=self.input)

    def ask(self, key, question, default=""):
        """free text question, returns the stripped answer or ``default``"""
        if key in self.answers:
            value = self.answers[key]
            LOGGER.debug("%s: %s (from configuration)", key, value)
            return "" if value is None else str(value).strip()

        ans = self.input(que(bold(question))).strip()
        return ans or default

    def choose(self, key, title, choices, default=1):
        """Pick one of ``choices`` by its 1-based number.

        Args:
            key (str): the answer key, a configured value is returned as
                is, the configuration validates it
            title (str): printed before the numbered list
            choices (list): (value, description) tuples
            default (int): the number selected by pressing enter

        Returns:
            The value of the selected choice. Unknown numbers select the
            default.
        """
        values = [value for value, _ in choices]
        if self.answers.get(key) is not None:
            LOGGER.debug("%s: %s (from configuration)", key, self.answers[key])
            return self.answers[key]

        if self.assume_yes:
            return values[default - 1]

        LOGGER.question(title)
        for idx, (_, description) in enumerate(choices, 1):
            print(f"  {idx}) {description}")

        ans = self.input(que(bold(f"Enter choice [{default}]: "))).strip()
        try:
            idx = int(ans or default)
        except ValueError:
            idx = default
        if not 1 <= idx <= len(choices):
            idx = default
        return values[idx - 1]


def report(*lines):
    """Print report lines, independent of the verbosity"""
    for line in lines:
        print(line)
