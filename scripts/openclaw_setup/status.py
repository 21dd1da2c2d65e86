"""Operator-facing status lines ([INFO], [ OK ], [WARN], [ERR])."""

from rich.console import Console
from rich.text import Text

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

LEVELS = {
    'info': ('[INFO]', 'cyan'),
    'ok': ('[ OK ]', 'green'),
    'warn': ('[WARN]', 'yellow'),
    'err': ('[ERR] ', 'red'),
}


def status_line(level: str, message: str) -> Text:
    label, style = LEVELS[level]
    return Text.assemble((label, style), '  ', str(message))


def info(message: str) -> None:
    console.print(status_line('info', message))


def ok(message: str) -> None:
    console.print(status_line('ok', message))


def warn(message: str) -> None:
    console.print(status_line('warn', message))


def err(message: str) -> None:
    """Print an error line. Exiting is left to the caller."""
    err_console.print(status_line('err', message))
