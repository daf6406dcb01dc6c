"""
ssmctl UI - Console implementation.

Rich-based console with panels and tables, prompt_toolkit for async prompts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ssmctl.persistence.models import EnablementRow, InstanceRecord

# Custom theme
SSMCTL_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red bold",
        "success": "green",
        "muted": "dim",
        "highlight": "magenta",
    }
)

STATE_STYLES = {
    "online": "green",
    "running": "green",
    "connectionlost": "yellow",
    "stopped": "dim",
    "offline": "red",
    "terminated": "dim",
}


def parse_selection(text: str, count: int) -> list[int]:
    """
    Parse "1,3, 5" into zero-based indexes within range(count).

    Invalid and out-of-range entries are ignored; order and duplicates are
    normalized.
    """
    indexes: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            number = int(part)
        except ValueError:
            continue
        if 1 <= number <= count and number - 1 not in indexes:
            indexes.append(number - 1)
    return indexes


class ConsoleUI:
    """
    Console user interface.

    Provides rich formatting for output.
    """

    def __init__(self, theme: Theme | None = None, console: Console | None = None) -> None:
        """Initialize console."""
        self.console = console or Console(theme=theme or SSMCTL_THEME)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console."""
        self.console.print(*args, **kwargs)

    def panel(self, content: str, title: str | None = None, style: str = "info") -> None:
        """Display a panel."""
        self.console.print(Panel(content, title=title, border_style=style))

    def success(self, message: str) -> None:
        self.console.print(f"[success]{escape(message)}[/success]")

    def error(self, message: str) -> None:
        self.console.print(f"[error]{escape(message)}[/error]")

    def warning(self, message: str) -> None:
        self.console.print(f"[warning]{escape(message)}[/warning]")

    def info(self, message: str) -> None:
        self.console.print(f"[info]{escape(message)}[/info]")

    def muted(self, message: str) -> None:
        self.console.print(f"[muted]{escape(message)}[/muted]")

    def newline(self) -> None:
        self.console.print()

    def table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: str | None = None,
    ) -> None:
        """Display a table."""
        table = Table(title=title, show_header=True, header_style="bold", box=None)

        for header in headers:
            table.add_column(header)

        for row in rows:
            table.add_row(*row)

        self.console.print(table)

    def instances(self, records: Sequence[InstanceRecord], show_all: bool = False) -> None:
        """Display cached instances (full columns when show_all)."""
        if show_all:
            headers = ["NAME", "INSTANCE ID", "REGION", "PROFILE", "ACCOUNT ID", "STATE", "PLATFORM"]
            rows = [
                [
                    r.display_name,
                    r.instance_id,
                    r.region,
                    r.profile,
                    r.account_id,
                    self._styled_state(r.state),
                    r.platform,
                ]
                for r in records
            ]
        else:
            headers = ["NAME", "REGION", "PROFILE"]
            rows = [[r.display_name, r.region, r.profile] for r in records]
        self.table(headers, rows)

    def enablement(self, rows: Sequence[EnablementRow], label: str) -> None:
        """Display region/profile enablement."""
        self.table(
            [label.upper(), "ENABLED"],
            [[row.name, "[success]yes[/success]" if row.enabled else "[muted]no[/muted]"] for row in rows],
        )

    @staticmethod
    def _styled_state(state: str) -> str:
        style = STATE_STYLES.get(state.lower())
        return f"[{style}]{state}[/{style}]" if style else state

    async def prompt(self, message: str, default: str = "") -> str:
        """Prompt for input (async-safe)."""
        session: PromptSession[str] = PromptSession()
        result = await session.prompt_async(f"{message}: ", default=default)
        return result.strip()

    async def prompt_confirm(self, message: str, default: bool = False) -> bool:
        """Prompt for yes/no confirmation (async-safe)."""
        suffix = " [Y/n]" if default else " [y/N]"
        session: PromptSession[str] = PromptSession()
        result = await session.prompt_async(f"{message}{suffix}: ")
        result = result.strip().lower()

        if not result:
            return default

        return result in ("y", "yes")

    async def prompt_choice(
        self,
        message: str,
        choices: list[str],
        default: str | None = None,
    ) -> str:
        """Prompt for choice from list (async-safe)."""
        session: PromptSession[str] = PromptSession()
        choices_str = "/".join(choices)
        default_str = f" [{default}]" if default else ""

        result = await session.prompt_async(f"{message} ({choices_str}){default_str}: ")
        result = result.strip()

        if not result and default:
            return default

        if result in choices:
            return result

        return default or choices[0]
