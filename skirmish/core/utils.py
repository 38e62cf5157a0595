"""
Utilities module for the combat engine.

Provides console printing with rich formatting and small helpers shared by the
catalog and the views.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.rule import Rule

# Initialize the rich console.
_console = Console(markup=True, width=120, force_jupyter=False)


def cprint(*args: Any, **kwargs: Any) -> None:
    """
    Custom print function to handle colored output.

    Args:
        *args: Arguments to pass to the console print function.
        **kwargs: Keyword arguments to pass to the console print function.

    """
    _console.print(*args, **kwargs)


def crule(*args: Any, **kwargs: Any) -> None:
    """
    Custom print function to handle colored output with a rule.

    Args:
        *args: Arguments to pass to the Rule constructor.
        **kwargs: Keyword arguments to pass to the Rule constructor.

    """
    _console.print(Rule(*args, **kwargs))


def ccapture(content: Any) -> str:
    """
    Captures console output as a string.

    Args:
        content (Any): The content to capture.

    Returns:
        str: The captured output as a string.

    """
    with _console.capture() as capture:
        _console.print(content, markup=True, end="")
    return capture.get()


def get_stat_modifier(score: int) -> int:
    """
    Calculates the D&D ability score modifier.

    Args:
        score (int): The ability score.

    Returns:
        int: The modifier for the given ability score.

    """
    return (score - 10) // 2


def make_bar(current: int, maximum: int, length: int = 10, color: str = "white") -> str:
    """
    Creates a visual progress bar representation.

    Args:
        current (int): The current value.
        maximum (int): The maximum value.
        length (int): The length of the bar in characters. Defaults to 10.
        color (str): The color for the filled portion. Defaults to "white".

    Returns:
        str: A formatted progress bar string.

    """
    filled = int((current / maximum) * length) if maximum > 0 else 0
    empty = length - filled
    bar = f"[{color}]" + "▮" * filled
    if empty > 0:
        bar += "[dim white]" + "▯" * empty + "[/]"
    bar += "[/]"
    return bar


def hp_color(current: int, maximum: int) -> str:
    """Picks a bar color from the remaining hit point ratio."""
    ratio = current / maximum if maximum > 0 else 0
    if ratio > 0.6:
        return "green"
    if ratio > 0.3:
        return "yellow"
    return "red"


def make_names_unique(names: list[str]) -> list[str]:
    """
    Disambiguates repeated names by appending (1), (2), ...

    Only names that occur more than once get a number.

    Example:
        ["Goblin", "Goblin", "Orc"] -> ["Goblin (1)", "Goblin (2)", "Orc"]

    """
    totals: dict[str, int] = {}
    for name in names:
        totals[name] = totals.get(name, 0) + 1
    seen: dict[str, int] = {}
    unique: list[str] = []
    for name in names:
        if totals[name] == 1:
            unique.append(name)
            continue
        seen[name] = seen.get(name, 0) + 1
        unique.append(f"{name} ({seen[name]})")
    return unique
