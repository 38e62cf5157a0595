"""
Dice module for the combat engine.

Provides a small, safe parser for dice expressions such as "1d20", "2d4+2" or
"1d6 + 2" and a roller that draws from an injectable random source, so that
tests can replay any combat with a seeded generator.
"""

import random
import re

from catchery import log_warning
from pydantic import BaseModel, Field

from skirmish.core.constants import D20

# Module-level source used when no generator is supplied.
_RNG = random.Random()

MAX_DICE = 100
MAX_SIDES = 1000


class RollBreakdown(BaseModel):
    """Class to hold roll breakdown information."""

    value: int = Field(
        description="Total roll result",
    )
    description: str = Field(
        description="Description of the roll",
    )
    rolls: list[int] = Field(
        description="List of individual dice rolls",
        default_factory=list,
    )

    def is_critical(self) -> bool:
        """
        Determines if the roll is a critical hit (natural 20).
        """
        return self.rolls[0] == D20 if self.rolls else False

    def is_fumble(self) -> bool:
        """
        Determines if the roll is a fumble (natural 1).
        """
        return self.rolls[0] == 1 if self.rolls else False


class DiceParser:
    """Safe parser for dice expressions without using eval()."""

    TERM_PATTERN = re.compile(r"([+-]?)(\d*[dD]\d+|\d+)")
    VALID_EXPRESSION = re.compile(r"^[+-]?(\d*[dD]\d+|\d+)([+-](\d*[dD]\d+|\d+))*$")

    @staticmethod
    def normalize(expression: str) -> str:
        """Removes whitespace and lowercases the dice marker."""
        return re.sub(r"\s+", "", expression or "").lower()

    @staticmethod
    def is_valid(expression: str) -> bool:
        """Checks whether an expression can be rolled."""
        expr = DiceParser.normalize(expression)
        return bool(expr) and bool(DiceParser.VALID_EXPRESSION.match(expr))

    @staticmethod
    def parse_dice(
        expression: str,
        rng: random.Random | None = None,
    ) -> RollBreakdown:
        """
        Safely parse and roll a dice expression.

        Args:
            expression (str):
                Dice expression like "1d20+5" or "2d6".
            rng (random.Random | None):
                Random source; the module generator is used when omitted.

        Returns:
            RollBreakdown: The total, a readable description and the raw rolls.

        Raises:
            ValueError: If the expression is invalid.

        """
        expr = DiceParser.normalize(expression)
        if not expr:
            raise ValueError("Invalid dice expression: empty")
        if not DiceParser.VALID_EXPRESSION.match(expr):
            log_warning(
                f"Unsafe or malformed dice expression: {expression}",
                {"expression": expression},
            )
            raise ValueError(f"Invalid dice expression: {expression}")

        rng = rng or _RNG
        total = 0
        details: list[str] = []
        all_rolls: list[int] = []

        for sign_str, term in DiceParser.TERM_PATTERN.findall(expr):
            sign = -1 if sign_str == "-" else 1
            if "d" not in term:
                total += sign * int(term)
                details.append(f"{'-' if sign < 0 else '+'}{term}")
                continue

            count_str, sides_str = term.split("d")
            count = int(count_str) if count_str else 1
            sides = int(sides_str)
            if count <= 0 or count > MAX_DICE:
                raise ValueError(f"Invalid dice count: {count}")
            if sides <= 0 or sides > MAX_SIDES:
                raise ValueError(f"Invalid dice sides: {sides}")

            rolls = [rng.randint(1, sides) for _ in range(count)]
            all_rolls.extend(rolls)
            total += sign * sum(rolls)
            if count == 1:
                detail = f"d{sides}({rolls[0]})"
            else:
                detail = f"{count}d{sides}({'+'.join(map(str, rolls))})"
            details.append(f"{'-' if sign < 0 else '+'}{detail}")

        description = "".join(details).lstrip("+")
        return RollBreakdown(value=total, description=description, rolls=all_rolls)


def roll(expression: str, rng: random.Random | None = None) -> RollBreakdown:
    """
    Rolls a dice expression.

    Args:
        expression (str): The expression to roll.
        rng (random.Random | None): Optional random source.

    Returns:
        RollBreakdown: The roll result.

    """
    return DiceParser.parse_dice(expression, rng)


def roll_d20(rng: random.Random | None = None) -> int:
    """Draws a single twenty-sided die."""
    return (rng or _RNG).randint(1, D20)
