"""
Terminal output for the skystack command line.

Coloured status lines (colorama), tqdm progress bars for frame loading and
block combination, and text renderings of stacking results: metric fields,
the offset table, the luminance histogram and the closing summary box.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

colorama_init(autoreset=True)


class Colors:
    """Colour roles used by the skystack CLI."""

    TITLE = Fore.CYAN + Style.BRIGHT
    STAGE = Fore.BLUE + Style.BRIGHT
    OK = Fore.GREEN + Style.BRIGHT
    FAIL = Fore.RED + Style.BRIGHT
    LABEL = Fore.MAGENTA
    VALUE = Fore.YELLOW + Style.BRIGHT
    TEXT = Fore.WHITE
    PATH = Fore.CYAN
    BAR = Fore.GREEN
    RESET = Style.RESET_ALL


class Symbols:
    """Status glyphs, switched to ASCII on terminals without Unicode."""

    CHECK = "✔"
    CROSS = "✘"
    BULLET = "•"
    TELESCOPE = "\U0001F52D"
    CHART = "\U0001F4CA"
    BLOCK = "█"
    RULE = "─"

    @classmethod
    def use_ascii(cls):
        cls.CHECK = "[OK]"
        cls.CROSS = "[X]"
        cls.BULLET = "*"
        cls.TELESCOPE = ">>"
        cls.CHART = "=="
        cls.BLOCK = "#"
        cls.RULE = "-"


def setup_terminal() -> None:
    """Use ASCII glyphs when SKYSTACK_ASCII is set or stdout is not UTF."""
    encoding = getattr(sys.stdout, "encoding", None) or ""
    if os.environ.get("SKYSTACK_ASCII") or "utf" not in encoding.lower():
        Symbols.use_ascii()


# =============================================================================
# STATUS LINES
# =============================================================================


def print_banner(version: str) -> None:
    print(f"\n{Colors.TITLE}{Symbols.TELESCOPE}  skystack {version} | frame stacking engine{Colors.RESET}")


def print_header(text: str, width: int = 60) -> None:
    """Section title underlined with a rule."""
    print(f"\n{Colors.TITLE}{text}")
    print(f"{Symbols.RULE * width}{Colors.RESET}")


def print_stage(stage_num: int, text: str) -> None:
    print(f"\n{Colors.STAGE}[{stage_num}] {text}{Colors.RESET}")


def print_success(text: str) -> None:
    print(f"{Colors.OK}{Symbols.CHECK} {text}{Colors.RESET}")


def print_error(text: str) -> None:
    """Error line on stderr."""
    print(f"{Colors.FAIL}{Symbols.CROSS} {text}{Colors.RESET}", file=sys.stderr)


def print_info(text: str) -> None:
    print(f"{Colors.TEXT}{Symbols.BULLET} {text}{Colors.RESET}")


def print_field(label: str, value: object, unit: str = "", width: int = 18) -> None:
    """
    Print one aligned ``label: value unit`` line.

    Path-like values (labels starting with "Report" or "Image") are shown in
    the path colour.
    """
    colour = Colors.PATH if label.startswith(("Report", "Image")) else Colors.VALUE
    suffix = f" {unit}" if unit else ""
    print(f"  {Colors.LABEL}{label + ':':<{width}}{colour}{value}{Colors.RESET}{suffix}")


# =============================================================================
# RESULT RENDERING
# =============================================================================


def print_offsets(offsets: Sequence[tuple[int, int]], limit: int = 12) -> None:
    """
    Print the per-frame offset table.

    Only the first ``limit`` frames are listed; the remaining count is
    summarized on one line.
    """
    print(f"  {Colors.LABEL}{'frame':>6} {'dx':>5} {'dy':>5}{Colors.RESET}")
    for i, (dx, dy) in enumerate(offsets[:limit]):
        print(f"  {i:>6} {dx:>5} {dy:>5}")
    if len(offsets) > limit:
        print(f"  {Colors.TEXT}... {len(offsets) - limit} more{Colors.RESET}")


def print_histogram(histogram: Sequence[float], width: int = 40) -> None:
    """
    Print a luminance histogram as horizontal bars.

    Bars are scaled so that the fullest bucket spans ``width`` characters.
    """
    n_bins = len(histogram)
    peak = max(histogram) if n_bins else 0.0
    for i, fraction in enumerate(histogram):
        n = int(round(fraction / peak * width)) if peak > 0 else 0
        low = 255 * i / n_bins
        print(f"  {low:6.1f} {Colors.BAR}{Symbols.BLOCK * n:<{width}}{Colors.RESET} {fraction:.3f}")


def print_summary_box(lines: Sequence[str], title: str = "Summary") -> None:
    """Print lines inside a box with a centred title."""
    width = max([len(line) for line in lines] + [len(title)]) + 4

    print(f"\n{Colors.OK}+{'=' * width}+")
    print(f"|{title:^{width}}|")
    print(f"+{'-' * width}+")
    for line in lines:
        print(f"|  {line:<{width - 2}}|")
    print(f"+{'=' * width}+{Colors.RESET}")


# =============================================================================
# PROGRESS BARS
# =============================================================================


@dataclass
class ProgressConfig:
    """tqdm settings shared by all skystack progress bars."""

    bar_format: str = "{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]"
    ncols: int = 80
    colour: str = "green"
    leave: bool = False


def create_progress_bar(
    total: int,
    desc: str,
    unit: str = "frame",
    config: ProgressConfig | None = None,
    disable: bool = False,
) -> tqdm:
    """
    Create a progress bar.

    Parameters
    ----------
    total : int
        Total number of items (frames or row blocks).
    desc : str
        Label shown left of the bar.
    unit : str, default "frame"
        Unit name for items.
    config : ProgressConfig, optional
        Bar appearance.
    disable : bool, default False
        Return a silent bar; ``update`` and the context manager still work.

    Returns
    -------
    tqdm
    """
    if config is None:
        config = ProgressConfig()

    return tqdm(
        total=total,
        desc=desc,
        unit=unit,
        bar_format=config.bar_format,
        ncols=config.ncols,
        colour=config.colour,
        leave=config.leave,
        disable=disable,
    )
