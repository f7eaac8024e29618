"""whiptail adapter for the interactive menu.

whiptail draws on the terminal and writes the user's answer to stderr, so
stdout is left attached to the terminal and only stderr is captured.
"""
import subprocess
from typing import List, Sequence, Tuple

from lxcdeploy.core.logger import get_logger

logger = get_logger(__name__)

DIALOG_COMMAND = "whiptail"

# Box geometry (height, width)
SMALL = ("10", "60")
LARGE = ("25", "78")


class DialogCancelled(Exception):
    """User pressed Cancel or ESC in an input dialog."""


class WhiptailDialog:
    """Thin wrapper over whiptail boxes."""

    def __init__(self, title: str = "lxcdeploy"):
        self.title = title

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = [DIALOG_COMMAND, '--title', self.title] + args
        logger.debug(f"Dialog: {args[0]}")
        return subprocess.run(cmd, stderr=subprocess.PIPE, text=True)

    def _answer(self, args: List[str]) -> str:
        result = self._run(args)
        if result.returncode != 0:
            raise DialogCancelled(f"{args[0]} cancelled")
        return (result.stderr or '').strip()

    def inputbox(self, text: str, default: str = "") -> str:
        """Free-text input pre-filled with ``default``.

        Raises:
            DialogCancelled: Cancel or ESC
        """
        return self._answer(['--inputbox', text, *SMALL, default])

    def passwordbox(self, text: str) -> str:
        return self._answer(['--passwordbox', text, *SMALL])

    def menu(self, text: str, choices: Sequence[Tuple[str, str]], height: str = "20",
             width: str = "78") -> str:
        """Pick one entry; returns its tag.

        Raises:
            DialogCancelled: Cancel or ESC
        """
        items: List[str] = []
        for tag, label in choices:
            items.extend([tag, label])
        list_height = str(min(len(choices), 10))
        return self._answer(['--menu', text, height, width, list_height, *items])

    def yesno(self, text: str, default_yes: bool = False) -> bool:
        """Yes/No question. ESC counts as No."""
        args = ['--yesno', text, *SMALL]
        if not default_yes:
            args.append('--defaultno')
        return self._run(args).returncode == 0

    def msgbox(self, text: str, large: bool = False) -> None:
        self._run(['--msgbox', text, *(LARGE if large else SMALL)])
