"""
User interface module for the narrator.

Provides the console menus the narrator uses to drive a combat: choosing the
next action, a target or several targets, an item, or typing an amount. Menus
are rich tables captured to text and shown through prompt_toolkit, with
numeric shortcuts for entries and 'q' to go back.
"""

from typing import Any

from prompt_toolkit import ANSI, PromptSession
from rich.table import Table

from skirmish.catalog.item import Item
from skirmish.combat.participant import Participant
from skirmish.core.constants import NiceEnum
from skirmish.core.utils import ccapture


class NarratorAction(NiceEnum):
    """Everything the narrator can do on a turn."""

    ATTACK = "Attack"
    DEFEND = "Defend"
    FLEE = "Flee"
    SELF_HEAL = "Self heal"
    USE_ITEM = "Use item"
    DAMAGE = "Damage"
    AREA_DAMAGE = "Area damage"
    HEAL = "Heal"
    ADD_CONDITION = "Add condition"
    REMOVE_CONDITION = "Remove condition"
    REVIVE = "Revive"
    DESTROY = "Destroy"
    NEXT_TURN = "Next turn"
    END_COMBAT = "End combat"

    @property
    def is_actor_action(self) -> bool:
        """Actions performed by the acting participant itself."""
        return self in (
            NarratorAction.ATTACK,
            NarratorAction.DEFEND,
            NarratorAction.FLEE,
            NarratorAction.SELF_HEAL,
            NarratorAction.USE_ITEM,
        )


class NarratorInterface:
    """
    Command-line interface for the narrator.

    Every prompt returns None when the narrator backs out with 'q'.
    """

    def __init__(self, session: PromptSession | None = None) -> None:
        self._session = session

    @property
    def session(self) -> PromptSession:
        # Created on first use: building a session needs a terminal.
        if self._session is None:
            self._session = PromptSession(erase_when_done=True)
        return self._session

    async def _ask(self, table: Table | None, question: str) -> str:
        prompt = ("\n" + ccapture(table) if table is not None else "") + f"\n{question} > "
        answer = await self.session.prompt_async(ANSI(prompt))
        return answer.strip()

    async def _choose_index(self, table: Table, count: int, question: str) -> int | None:
        table.add_row()
        table.add_row("q", "Back")
        while True:
            answer = await self._ask(table, question)
            if not answer:
                continue
            if answer.lower() == "q":
                return None
            index = self.get_number_choice(answer) - 1
            if 0 <= index < count:
                return index

    async def choose_action(self, actions: list[NarratorAction], acting: Participant | None) -> NarratorAction | None:
        """
        Choose what happens next.

        Args:
            actions (list[NarratorAction]): The available actions.
            acting (Participant | None): The participant whose turn it is.

        Returns:
            NarratorAction | None: The chosen action.

        """
        title = f"{acting.colored_name}'s turn" if acting else "Actions"
        table = Table(title=title, pad_edge=False)
        table.add_column("#", style="cyan")
        table.add_column("Action", style="bold")
        for i, action in enumerate(actions, 1):
            style = "" if action.is_actor_action else "dim"
            table.add_row(str(i), f"[{style}]{action.value}[/]" if style else action.value)
        index = await self._choose_index(table, len(actions), "Action")
        return None if index is None else actions[index]

    async def choose_target(self, targets: list[Participant], title: str = "Targets") -> Participant | None:
        """Choose one participant."""
        if not targets:
            return None
        table = self._participants_table(targets, title)
        index = await self._choose_index(table, len(targets), "Target")
        return None if index is None else targets[index]

    async def choose_targets(self, targets: list[Participant]) -> list[Participant] | None:
        """
        Choose several participants, typed as numbers separated by spaces or commas.

        Args:
            targets (list[Participant]): The participants to choose from.

        Returns:
            list[Participant] | None: The chosen participants, in menu order.

        """
        if not targets:
            return None
        table = self._participants_table(targets, "Targets (e.g. 1 3 4)")
        table.add_row()
        table.add_row("q", "Back")
        while True:
            answer = await self._ask(table, "Targets")
            if not answer:
                continue
            if answer.lower() == "q":
                return None
            indices = {self.get_number_choice(part) - 1 for part in answer.replace(",", " ").split()}
            if indices and all(0 <= index < len(targets) for index in indices):
                return [target for i, target in enumerate(targets) if i in indices]

    async def choose_item(self, inventory: dict[str, int], items: dict[str, Item]) -> str | None:
        """Choose an item id from an inventory."""
        usable = [
            item_id
            for item_id, quantity in inventory.items()
            if quantity > 0 and item_id in items and items[item_id].is_usable_in_combat
        ]
        if not usable:
            return None
        table = Table(title="Items", pad_edge=False)
        table.add_column("#", style="cyan")
        table.add_column("Item", style="bold")
        table.add_column("Qty", justify="right")
        table.add_column("Effect")
        for i, item_id in enumerate(usable, 1):
            item = items[item_id]
            table.add_row(str(i), item.colored_name, str(inventory[item_id]), f"heals {item.healing}")
        index = await self._choose_index(table, len(usable), "Item")
        return None if index is None else usable[index]

    async def ask_amount(self, question: str) -> int | None:
        """Ask for a non-negative number."""
        while True:
            answer = await self._ask(None, question)
            if answer.lower() == "q":
                return None
            if answer.isdigit():
                return int(answer)

    async def ask_text(self, question: str) -> str | None:
        answer = await self._ask(None, question)
        if not answer or answer.lower() == "q":
            return None
        return answer

    @staticmethod
    def _participants_table(targets: list[Participant], title: str) -> Table:
        table = Table(title=title, pad_edge=False)
        table.add_column("#", style="cyan", no_wrap=True)
        table.add_column("Name", style="bold")
        table.add_column("HP", justify="right")
        table.add_column("AC", justify="right")
        for i, target in enumerate(targets, 1):
            table.add_row(
                str(i),
                target.colored_name,
                f"{target.hp:>3}/{target.max_hp:<3}",
                str(target.armor_class),
            )
        return table

    @staticmethod
    def get_number_choice(answer: Any) -> int:
        """
        Convert a numeric string input to its integer value.

        Args:
            answer (Any): User input to parse.

        Returns:
            int: The integer value, or -1 if invalid input.

        """
        if isinstance(answer, str) and answer.isdigit():
            return int(answer)
        return -1
