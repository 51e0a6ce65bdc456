"""Terminal prompts used by the menus.

All input goes through a Prompter so menus can be driven from a script
(tests pass a fake input function).
"""

from typing import Any, Callable, List, Optional, Sequence, Tuple

from errors import ValidationError

Choice = Tuple[str, Any]


class Prompter:
    """Reads answers from the user and prints messages."""

    def __init__(self, input_func: Callable[[str], str] = input, output_func: Callable[[str], None] = print):
        self.input = input_func
        self.output = output_func

    def say(self, text: str = ''):
        self.output(text)

    def ask(self, message: str, default: Optional[str] = None,
            validate: Optional[Callable[[str], Any]] = None, required: bool = False):
        """Ask for free text. Re-asks until validate (if given) accepts it.

        validate may convert the answer; whatever it returns is returned.
        """
        suffix = f" [{default}]" if default not in (None, '') else ''
        while True:
            answer = self.input(f"{message}{suffix}: ").strip()
            if not answer and default is not None:
                answer = str(default)
            if required and not answer:
                self.say("  This field cannot be empty.")
                continue
            if validate is None:
                return answer
            try:
                return validate(answer)
            except ValidationError as e:
                self.say(f"  {e.message}")

    def confirm(self, message: str, default: bool = True) -> bool:
        hint = 'Y/n' if default else 'y/N'
        while True:
            answer = self.input(f"{message} ({hint}): ").strip().lower()
            if not answer:
                return default
            if answer in ('y', 'yes'):
                return True
            if answer in ('n', 'no'):
                return False
            self.say("  Please answer y or n.")

    def choose(self, message: str, choices: Sequence[Choice]):
        """Show a numbered list and return the value of the picked entry."""
        choices = list(choices)
        self.say(f"\n{message}")
        for i, (label, _) in enumerate(choices, 1):
            self.say(f"  {i}. {label}")
        while True:
            answer = self.input("Choose a number: ").strip()
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][1]
            self.say(f"  Enter a number from 1 to {len(choices)}.")


def numbered(items: List[str]) -> str:
    """Indented, numbered lines for displaying a list."""
    if not items:
        return "  - None"
    return "\n".join(f"  {i}. {item}" for i, item in enumerate(items, 1))
