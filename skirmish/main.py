"""
Main entry point for the skirmish combat engine.

Loads the sample content, generates an encounter for the party, and runs an
interactive combat on the narrator's console. The narrator's device hosts the
combat on a loopback channel and a player's device follows it, so the whole
host/follower round trip runs in one process.
"""

import asyncio
import logging
import random
from pathlib import Path

from skirmish.catalog.content import ContentRepository
from skirmish.combat.participant import CharacterSource, Participant
from skirmish.combat.state_machine import ActionResult, CombatStateMachine
from skirmish.core.config import EngineSettings, load_settings
from skirmish.core.constants import CombatPhase, Difficulty
from skirmish.core.error_handling import NOTICE_BOARD
from skirmish.core.logging import setup_logging
from skirmish.core.utils import cprint, crule
from skirmish.encounter.allocator import EncounterBudgetAllocator
from skirmish.encounter.budget import EncounterBudget
from skirmish.encounter.rewards import RewardAllocator, defeated_creatures
from skirmish.sync.channel import LinkMode, SyncFollower, SyncHost
from skirmish.sync.transport import LoopbackAir, LoopbackTransport
from skirmish.ui.cli_interface import NarratorAction, NarratorInterface
from skirmish.ui.combat_view import (
    CombatView,
    NoticePrinter,
    render_encounter,
    render_rewards,
)

# Get the path to the data folder.
data_dir = Path(__file__).parent.parent / "data"


class NarratorSession:
    """One combat, from encounter generation to rewards."""

    def __init__(
        self,
        repository: ContentRepository,
        settings: EngineSettings,
        interface: NarratorInterface,
        rng: random.Random | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings
        self.interface = interface
        self.rng = rng or random.Random()
        self.machine = CombatStateMachine(
            settings.combat,
            items=repository.items,
            rng=self.rng,
        )
        air = LoopbackAir()
        self.host = SyncHost(LoopbackTransport(air, "narrator", "Narrator"), settings.sync)
        self.follower = SyncFollower(LoopbackTransport(air, "player-1", "Player"), settings.sync)
        self.host.attach(self.machine)
        CombatView("Narrator").attach(self.machine)
        CombatView("Player", read_only=True).attach(self.follower.machine)

    def build_roster(self, difficulty: Difficulty) -> list[Participant] | None:
        players = [Participant.from_character(sheet) for sheet in self.repository.characters.values()]
        if not players:
            cprint("No characters to fight with.", style="bold red")
            return None
        level = round(sum(sheet.level for sheet in self.repository.characters.values()) / len(players))
        budget = EncounterBudget(party_level=level, party_size=len(players), difficulty=difficulty)
        encounter = EncounterBudgetAllocator(self.settings.encounter).generate(
            budget,
            self.repository.creatures.values(),
            self.rng,
        )
        cprint(render_encounter(encounter))
        if encounter.is_empty:
            return None
        return players + encounter.to_roster()

    async def run(self, difficulty: Difficulty = Difficulty.MEDIUM) -> None:
        roster = self.build_roster(difficulty)
        if roster is None:
            return
        crule(":crossed_swords:  Combat Started", style="bold green")
        if not self.machine.start(roster).ok:
            return
        await self.host.flush()
        await self.join_follower()
        try:
            while self.machine.is_active:
                if not await self.play_turn():
                    break
                await self.host.flush()
        finally:
            await self.host.flush()
            if self.follower.mode == LinkMode.FOLLOWING:
                await self.follower.poll_once()
            self.show_rewards()
            await self.follower.disconnect()
            await self.host.close()
        crule(":crossed_swords:  Combat Finished", style="bold green")

    async def join_follower(self) -> None:
        hosts = await self.follower.scan()
        if not hosts:
            cprint("No player device could join, playing locally.", style="yellow")
            return
        if await self.follower.connect(hosts[0].id):
            self.follower.start_polling()

    def available_actions(self) -> list[NarratorAction]:
        snapshot = self.machine.snapshot
        actions = [NarratorAction.ATTACK, NarratorAction.DEFEND, NarratorAction.FLEE, NarratorAction.SELF_HEAL]
        acting = snapshot.acting if snapshot else None
        if acting is not None and isinstance(acting.source, CharacterSource) and acting.source.inventory:
            actions.append(NarratorAction.USE_ITEM)
        actions += [
            NarratorAction.DAMAGE,
            NarratorAction.AREA_DAMAGE,
            NarratorAction.HEAL,
            NarratorAction.ADD_CONDITION,
            NarratorAction.REMOVE_CONDITION,
        ]
        if snapshot is not None and snapshot.pending_fates:
            actions += [NarratorAction.REVIVE, NarratorAction.DESTROY]
        actions += [NarratorAction.NEXT_TURN, NarratorAction.END_COMBAT]
        return actions

    async def play_turn(self) -> bool:
        """
        Asks the narrator for one action and applies it.

        Returns:
            bool: False when the narrator ends the combat.

        """
        snapshot = self.machine.snapshot
        acting = snapshot.acting
        action = await self.interface.choose_action(self.available_actions(), acting)
        if action is None:
            return True
        if action == NarratorAction.END_COMBAT:
            return False

        others = [p for p in snapshot.participants if p.id != acting.id and not p.is_incapacitated]
        standing = [p for p in snapshot.participants if not p.is_incapacitated]
        result: ActionResult | None = None
        if action == NarratorAction.ATTACK:
            target = await self.interface.choose_target(others)
            if target:
                result = self.machine.resolve_attack(acting.id, target.id)
        elif action == NarratorAction.DEFEND:
            result = self.machine.resolve_defend(acting.id)
        elif action == NarratorAction.FLEE:
            result = self.machine.resolve_flee(acting.id)
        elif action == NarratorAction.SELF_HEAL:
            result = self.machine.resolve_self_heal(acting.id)
        elif action == NarratorAction.USE_ITEM:
            item_id = await self.interface.choose_item(acting.source.inventory, self.repository.items)
            if item_id:
                result = self.machine.resolve_use_item(acting.id, item_id)
        elif action == NarratorAction.DAMAGE:
            target = await self.interface.choose_target(standing)
            amount = await self.interface.ask_amount("Damage") if target else None
            if target and amount is not None:
                result = self.machine.apply_damage(target.id, amount)
        elif action == NarratorAction.AREA_DAMAGE:
            targets = await self.interface.choose_targets(standing)
            amount = await self.interface.ask_amount("Damage") if targets else None
            if targets and amount is not None:
                result = self.machine.apply_area_damage([t.id for t in targets], amount)
        elif action == NarratorAction.HEAL:
            target = await self.interface.choose_target(standing)
            amount = await self.interface.ask_amount("Healing") if target else None
            if target and amount is not None:
                result = self.machine.apply_healing(target.id, amount)
        elif action in (NarratorAction.ADD_CONDITION, NarratorAction.REMOVE_CONDITION):
            target = await self.interface.choose_target(snapshot.participants)
            condition = await self.interface.ask_text("Condition") if target else None
            if target and condition:
                if action == NarratorAction.ADD_CONDITION:
                    result = self.machine.add_condition(target.id, condition)
                else:
                    result = self.machine.remove_condition(target.id, condition)
        elif action in (NarratorAction.REVIVE, NarratorAction.DESTROY):
            target = await self.interface.choose_target(snapshot.pending_fates, "Down")
            if target:
                if action == NarratorAction.REVIVE:
                    result = self.machine.revive(target.id)
                else:
                    result = self.machine.destroy(target.id)
        elif action == NarratorAction.NEXT_TURN:
            result = self.machine.next_turn()

        if result is not None and result.ok:
            cprint(result.message, style="bold")
        return True

    def show_rewards(self) -> None:
        if self.machine.phase != CombatPhase.VICTORY:
            return
        creatures = defeated_creatures(self.machine.snapshot, self.repository)
        bundle = RewardAllocator(self.settings.rewards).allocate(
            creatures,
            party_size=len(self.machine.snapshot.players),
            items=self.repository.items,
            rng=self.rng,
        )
        cprint(render_rewards(bundle))


def main() -> None:
    setup_logging(logging.INFO)
    NOTICE_BOARD.subscribe(NoticePrinter())

    crule("Skirmish", style="bold green")
    settings = load_settings(data_dir / "settings.json")
    repository = ContentRepository(data_dir)
    cprint(
        f"Loaded {len(repository.characters)} characters, "
        f"{len(repository.creatures)} creatures and {len(repository.items)} items.",
        style="bold blue",
    )
    session = NarratorSession(repository, settings, NarratorInterface())
    try:
        asyncio.run(session.run())
    except (KeyboardInterrupt, EOFError):
        cprint("")
        crule(":crossed_swords:  Combat Interrupted", style="bold red")


if __name__ == "__main__":
    main()
