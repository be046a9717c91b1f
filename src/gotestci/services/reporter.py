"""Console and log reporting for gotestci."""

import logging

from rich.console import Console
from rich.markup import escape

from gotestci.errors import BuildError


class Reporter:
    """Informational, warning and fatal messages.

    Warnings go to standard error and never stop the build. ``die`` raises
    :class:`BuildError`, so callers' ``with`` blocks and ``finally`` clauses
    release what they own before the CLI turns the error into an exit code.
    """

    def __init__(self, logger: logging.Logger, console: Console, err_console: Console):
        self.logger = logger
        self.console = console
        self.err_console = err_console

    def info(self, message: str):
        self.console.print(f"[blue]INFO[/blue] {escape(message)}")
        self.logger.info(message)

    def output(self, line: str):
        self.console.print(escape(line), highlight=False)

    def warn(self, message: str):
        self.err_console.print(f"[yellow]WARNING:[/yellow] {escape(message)}")
        self.logger.warning(message)

    def error(self, message: str):
        self.err_console.print(f"[bold red]ERROR:[/bold red] {escape(message)}")
        self.logger.error(message)

    def die(self, message: str, code: int = 1):
        raise BuildError(message, exit_code=code)
