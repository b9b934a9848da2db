"""
Rich Output Utilities
=====================

Terminal output for the okrforge developer tooling using the Rich library.
Provides the coach colour theme, status messages, tables and panels used to
render turn analyses, plus the Rich logging handler setup.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from rich.theme import Theme


# =============================================================================
# Color Scheme & Theme
# =============================================================================

@dataclass(frozen=True)
class CoachColors:
    """Coach palette using hex for truecolor terminal support."""
    ink: str = "#E5E7EB"       # primary text
    dim: str = "#9CA3AF"       # muted text
    aim: str = "#6366F1"       # objective accent (indigo)
    lift: str = "#14B8A6"      # progress accent (teal)
    slate: str = "#94A3B8"     # secondary accent
    ok: str = "#22C55E"        # success green
    warn: str = "#F59E0B"      # warning amber
    err: str = "#EF4444"       # error red


def coach_theme(colors: CoachColors = CoachColors()) -> Theme:
    """
    Rich Theme for okrforge output.

    Style names are semantic so they can be used everywhere:
      console.print("...", style="okr.ok")
    """
    return Theme(
        {
            "okr.border": f"{colors.lift}",
            "okr.accent": f"bold {colors.aim}",
            "okr.muted": f"{colors.dim}",
            "okr.text": f"{colors.ink}",

            # Status
            "okr.ok": f"bold {colors.ok}",
            "okr.warn": f"bold {colors.warn}",
            "okr.err": f"bold {colors.err}",
            "okr.info": f"{colors.lift}",

            # Data display
            "okr.key": f"{colors.slate}",
            "okr.value": f"{colors.ink}",
            "okr.number": f"bold {colors.aim}",

            # Severity levels
            "okr.severity.low": f"{colors.dim}",
            "okr.severity.medium": f"{colors.warn}",
            "okr.severity.high": f"bold {colors.warn}",
            "okr.severity.critical": f"bold {colors.err}",

            # Table styling
            "okr.table.header": f"bold {colors.lift}",
        }
    )


# =============================================================================
# Unicode / ASCII Fallbacks
# =============================================================================

def _can_use_unicode() -> bool:
    """Check if the terminal can handle the Unicode glyphs we use."""
    if os.name == 'nt':
        try:
            encoding = sys.stdout.encoding or 'utf-8'
            "✓✗•▓▒".encode(encoding)
            return True
        except (UnicodeEncodeError, LookupError, AttributeError):
            return False
    return True


_UNICODE_ICONS = {
    "check": "✓",
    "cross": "✗",
    "warning": "⚠️",
    "info": "ℹ",
    "bullet": "•",
    "arrow_right": "→",
    "bar_filled": "▓",
    "bar_empty": "▒",
    "flame": "\U0001F525",
}

_ASCII_ICONS = {
    "check": "[OK]",
    "cross": "[X]",
    "warning": "[!]",
    "info": "[i]",
    "bullet": "-",
    "arrow_right": "->",
    "bar_filled": "#",
    "bar_empty": "-",
    "flame": "*",
}

_ICONS = _UNICODE_ICONS if _can_use_unicode() else _ASCII_ICONS


def icon(name: str) -> str:
    """Get an icon by name, using ASCII fallback if needed."""
    return _ICONS.get(name, "")


# =============================================================================
# Global Console Instance
# =============================================================================

console = Console(theme=coach_theme())


# =============================================================================
# Basic Message Functions
# =============================================================================

def print_success(message: str) -> None:
    """Print a success message with checkmark."""
    console.print(f"[okr.ok]{icon('check')} {message}[/]")


def print_error(message: str) -> None:
    """Print an error message with X."""
    console.print(f"[okr.err]{icon('cross')} {message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[okr.warn]{icon('warning')} {message}[/]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[okr.info]{icon('info')} {message}[/]")


def print_muted(message: str) -> None:
    """Print muted/secondary text."""
    console.print(f"[okr.muted]{message}[/]")


# =============================================================================
# Headers & Sections
# =============================================================================

def print_header(title: str, style: str = "okr.accent") -> None:
    """Print a prominent section header with rule lines."""
    console.print()
    console.print(Rule(f"[{style}]{title}[/]", style=style))
    console.print()


def print_subheader(title: str, style: str = "okr.info") -> None:
    """Print a smaller subsection header."""
    console.print(f"\n[{style}]{icon('arrow_right')} {title}[/]")


# =============================================================================
# Data Display Functions
# =============================================================================

def print_key_value_table(
    data: Dict[str, Any],
    *,
    title: Optional[str] = None,
    border_style: str = "okr.border",
) -> None:
    """Print multiple key-value pairs in a clean table format."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="okr.key")
    table.add_column("Value", style="okr.value")

    for key, value in data.items():
        table.add_row(key, str(value))

    if title:
        console.print(Panel(table, title=f"[bold]{title}[/]", border_style=border_style))
    else:
        console.print(table)


def print_list(
    items: Sequence[str],
    *,
    numbered: bool = False,
    style: str = "okr.text",
    bullet_style: str = "okr.accent",
) -> None:
    """Print a bulleted or numbered list."""
    for i, item in enumerate(items, 1):
        if numbered:
            console.print(f"  [{bullet_style}]{i}.[/] [{style}]{item}[/]")
        else:
            console.print(f"  [{bullet_style}]{icon('bullet')}[/] [{style}]{item}[/]")


def create_table(
    *,
    title: Optional[str] = None,
    columns: Optional[List[str]] = None,
    show_header: bool = True,
    border_style: str = "okr.border",
    header_style: str = "okr.table.header",
) -> Table:
    """Create a styled Rich Table with the coach theme."""
    table = Table(
        title=title,
        show_header=show_header,
        header_style=header_style,
        border_style=border_style,
        title_style="okr.accent",
    )

    if columns:
        for col in columns:
            table.add_column(col)

    return table


def print_table(table: Table) -> None:
    """Print a Rich Table to the console."""
    console.print(table)


def print_panel(
    content: Union[str, Text],
    *,
    title: Optional[str] = None,
    subtitle: Optional[str] = None,
    border_style: str = "okr.border",
    padding: tuple = (1, 2),
) -> None:
    """Print content in a styled panel."""
    console.print(Panel(
        content,
        title=f"[bold]{title}[/]" if title else None,
        subtitle=f"[okr.muted]{subtitle}[/]" if subtitle else None,
        border_style=border_style,
        padding=padding,
    ))


def print_progress_bar(completed: int, total: int, title: str = "Progress") -> None:
    """Print a simple inline checkpoint progress bar."""
    if total == 0:
        console.print(f"[okr.muted]{title}: No checkpoints in this phase[/]")
        return

    percentage = (completed / total) * 100

    if percentage >= 100:
        color = "okr.ok"
    elif percentage >= 50:
        color = "okr.warn"
    else:
        color = "okr.info"

    bar_width = 30
    filled = int(bar_width * completed / total)
    bar = (
        f"[{color}]{icon('bar_filled') * filled}[/]"
        f"[okr.muted]{icon('bar_empty') * (bar_width - filled)}[/]"
    )

    console.print(f"{title}: {bar} [okr.number]{completed}[/][okr.muted]/{total}[/] ({percentage:.1f}%)")


def severity_style(severity: str) -> str:
    """Map an anti-pattern severity name to its theme style."""
    return f"okr.severity.{severity}" if severity in ("low", "medium", "high", "critical") else "okr.muted"


# =============================================================================
# Logging Integration
# =============================================================================

def setup_rich_logging(level: int = logging.INFO) -> None:
    """
    Configure Python logging to use Rich for log output.

    Usage:
        setup_rich_logging()
        logging.getLogger("okrforge").info("Detector ready")
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(
            console=console,
            show_path=False,
            markup=True,
            rich_tracebacks=True,
        )],
    )
