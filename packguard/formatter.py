"""Renders offenses and run summaries for the terminal."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type

from rich.console import Console
from rich.markup import escape

from .inflector import Inflector
from .models import Offense, ReferenceOffense

_inflector = Inflector()


class OffensesFormatter(ABC):
    identifier: str = ""
    #: whether the produced text contains rich markup
    markup: bool = False

    @abstractmethod
    def format_offense(self, offense: Offense) -> str:
        ...

    def show_offenses(self, offenses: Sequence[Offense]) -> str:
        if not offenses:
            return "No offenses detected"
        listing = "\n\n".join(self.format_offense(offense) for offense in offenses)
        count = len(offenses)
        return f"{listing}\n\n{count} {_inflector.pluralize('offense', count)} detected"

    def show_stale_violations(self, stale: bool) -> str:
        if stale:
            return "There were stale violations found, please run `packguard update-todo`"
        return "No stale violations detected"

    def show_strict_mode_violations(self, offenses: Sequence[ReferenceOffense]) -> str:
        return "\n".join(self._strict_mode_message(offense) for offense in offenses)

    def show_interrupted(self) -> str:
        return "Manually interrupted. Violations caught so far are listed below:"

    @staticmethod
    def _strict_mode_message(offense: ReferenceOffense) -> str:
        if offense.reference is None or offense.violation_type is None:
            return offense.message
        kind = offense.violation_type.value
        return (
            f"{offense.reference.package} cannot have {kind} violations on "
            f"{offense.reference.constant.package} because strict mode is enabled for {kind} "
            "violations in the enforcing package's package.yml"
        )


class PlainOffensesFormatter(OffensesFormatter):
    identifier = "plain"

    def format_offense(self, offense: Offense) -> str:
        return offense.to_text()


class DefaultOffensesFormatter(OffensesFormatter):
    """Coloured output: location in cyan, violation summary in red."""

    identifier = "default"
    markup = True

    def format_offense(self, offense: Offense) -> str:
        if offense.location is None:
            head = f"[cyan]{escape(offense.file)}[/cyan]"
        else:
            head = f"[cyan]{escape(offense.file)}[/cyan]:{offense.location.line}:{offense.location.column}"
        first, _, rest = offense.message.partition("\n")
        body = f"[red]{escape(first)}[/red]"
        if rest:
            body += "\n" + escape(rest)
        return f"{head}\n{body}"

    def show_offenses(self, offenses: Sequence[Offense]) -> str:
        if not offenses:
            return "[green]No offenses detected[/green]"
        return super().show_offenses(offenses)

    def show_stale_violations(self, stale: bool) -> str:
        text = escape(super().show_stale_violations(stale))
        return f"[yellow]{text}[/yellow]" if stale else text

    def show_strict_mode_violations(self, offenses: Sequence[ReferenceOffense]) -> str:
        return escape(super().show_strict_mode_violations(offenses))

    def show_interrupted(self) -> str:
        return f"[bold yellow]{escape(super().show_interrupted())}[/bold yellow]"


FORMATTERS: Dict[str, Type[OffensesFormatter]] = {
    PlainOffensesFormatter.identifier: PlainOffensesFormatter,
    DefaultOffensesFormatter.identifier: DefaultOffensesFormatter,
}


def formatter_for(identifier: str) -> OffensesFormatter:
    try:
        return FORMATTERS[identifier]()
    except KeyError:
        raise ValueError(
            f"Unknown offenses formatter '{identifier}', expected one of: {', '.join(sorted(FORMATTERS))}"
        ) from None


class ProgressFormatter:
    """One character per processed file: ``.`` when clean, ``E`` with offenses."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.count = 0

    def started(self, file_count: int, action: str = "Processing") -> None:
        noun = _inflector.pluralize("file", file_count)
        self.console.print(f"📦 {action} {file_count} {noun}...", highlight=False)

    def mark(self, offenses: List[Offense]) -> None:
        self.count += 1
        if offenses:
            self.console.print("[red]E[/red]", end="")
        else:
            self.console.print("[green].[/green]", end="")

    def finished(self, seconds: float) -> None:
        self.console.print()
        self.console.print(f"📦 Finished in {seconds:.2f} seconds", highlight=False)
