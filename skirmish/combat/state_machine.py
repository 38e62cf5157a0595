"""
State machine module for the combat engine.

The CombatStateMachine owns the canonical CombatSnapshot of one combat and is
the only place where it changes. Every operation works on a copy of the
current snapshot and commits the copy as a whole, then notifies subscribers
(views, the sync host). Rule violations never raise: they are rejected with
an ActionResult, reported on the notice board, and leave the state untouched.
"""

import random
import time
from collections.abc import Callable, Mapping
from typing import Any

from catchery import ensure_non_negative_int
from pydantic import BaseModel, Field

from skirmish.catalog.item import Item
from skirmish.combat.initiative import InitiativeScheduler
from skirmish.combat.participant import CharacterSource, Participant
from skirmish.combat.snapshot import ActionLogEntry, CombatSnapshot
from skirmish.core.config import CombatSettings
from skirmish.core.constants import CombatPhase, Condition, Side
from skirmish.core.dice import roll, roll_d20
from skirmish.core.error_handling import (
    NOTICE_BOARD,
    ErrorKind,
    ErrorSeverity,
    NoticeBoard,
)
from skirmish.core.logging import get_logger

logger = get_logger(__name__)

MachineListener = Callable[["CombatStateMachine"], None]


class ActionResult(BaseModel):
    """Outcome of a state machine operation."""

    ok: bool = Field(
        description="Whether the operation was applied.",
    )
    message: str = Field(
        default="",
        description="Human readable summary.",
    )
    error: ErrorKind | None = Field(
        default=None,
        description="Why the operation was rejected.",
    )

    @classmethod
    def accepted(cls, message: str = "") -> "ActionResult":
        return cls(ok=True, message=message)

    @classmethod
    def rejected(cls, error: ErrorKind, message: str) -> "ActionResult":
        return cls(ok=False, message=message, error=error)


class CombatStateMachine:
    """Manages the lifecycle and the turn-by-turn state of one combat.

    States: NOT_STARTED -> ACTIVE -> VICTORY | DEFEAT, and reset() returns to
    NOT_STARTED from anywhere. A machine created with read_only=True is a
    follower mirror: it only accepts whole snapshots through mirror().
    """

    def __init__(
        self,
        settings: CombatSettings | None = None,
        items: Mapping[str, Item] | None = None,
        rng: random.Random | None = None,
        notices: NoticeBoard | None = None,
        read_only: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the CombatStateMachine.

        Args:
            settings (CombatSettings | None):
                Combat rules; defaults are used when omitted.
            items (Mapping[str, Item] | None):
                Item catalog used by resolve_use_item.
            rng (random.Random | None):
                Random source for initiative, to-hit and damage rolls.
            notices (NoticeBoard | None):
                Where rejected actions are reported.
            read_only (bool):
                Whether this machine is a follower mirror.
            clock (Callable[[], float]):
                Timestamp source for the action log.

        """
        self.settings = settings or CombatSettings()
        self.items: Mapping[str, Item] = items or {}
        self.rng = rng
        self.notices = notices or NOTICE_BOARD
        self.read_only = read_only
        self.clock = clock
        self.scheduler = InitiativeScheduler(rng)
        self._snapshot: CombatSnapshot | None = None
        self._listeners: list[MachineListener] = []
        self._resolved_listeners: list[MachineListener] = []
        self._resolution_announced = False

    # ============================================================================
    # STATE ACCESS
    # ============================================================================

    @property
    def snapshot(self) -> CombatSnapshot | None:
        """The current snapshot; None before initiative is rolled."""
        return self._snapshot

    @property
    def phase(self) -> CombatPhase:
        if self._snapshot is None:
            return CombatPhase.NOT_STARTED
        return self._snapshot.phase

    @property
    def is_active(self) -> bool:
        return self.phase == CombatPhase.ACTIVE

    @property
    def is_resolved(self) -> bool:
        return self.phase.is_resolved

    def subscribe(self, listener: MachineListener) -> None:
        """Registers a callable invoked after every change of state."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: MachineListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_resolved(self, listener: MachineListener) -> None:
        """Registers a callable invoked once when a combat ends."""
        self._resolved_listeners.append(listener)

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    def start(self, roster: list[Participant]) -> ActionResult:
        """
        Rolls initiative for the roster and starts the combat.

        Args:
            roster (list[Participant]): Players and adversaries, in selection order.

        Returns:
            ActionResult: Whether combat started.

        """
        if self.read_only:
            return self._reject(ErrorKind.INVALID_ACTION, "This device only mirrors the combat.")
        if self.phase != CombatPhase.NOT_STARTED:
            return self._reject(
                ErrorKind.INVALID_ACTION,
                "A combat is already in progress, reset it first.",
                {"phase": str(self.phase)},
            )
        ids = [p.id for p in roster]
        if len(set(ids)) != len(ids):
            return self._reject(
                ErrorKind.INVALID_ACTION,
                "Participant ids must be unique.",
                {"ids": ids},
            )
        if not any(p.side == Side.PLAYER for p in roster):
            return self._reject(ErrorKind.INVALID_ACTION, "Select at least one character.")
        if not any(p.side == Side.ADVERSARY for p in roster):
            return self._reject(ErrorKind.INVALID_ACTION, "Select at least one creature.")

        ordered = self.scheduler.roll_initiative(roster)
        state = CombatSnapshot(
            round=1,
            participants=ordered,
            acting_index=0,
            phase=CombatPhase.ACTIVE,
        )
        # Skip over anyone who enters the fight already down.
        if not self.scheduler.is_eligible(ordered[0]):
            first = next(
                (i for i, p in enumerate(ordered) if self.scheduler.is_eligible(p)),
                0,
            )
            ordered[0].is_acting = False
            ordered[first].is_acting = True
            state.acting_index = first

        self._resolution_announced = False
        self._commit(state, end_turn=False)
        logger.debug("Combat started with %d participants", len(ordered))
        return ActionResult.accepted("Initiative rolled, the combat begins!")

    def reset(self) -> ActionResult:
        """Discards the combat and returns to NOT_STARTED."""
        if self.read_only:
            return self._reject(ErrorKind.INVALID_ACTION, "This device only mirrors the combat.")
        self._snapshot = None
        self._resolution_announced = False
        self._notify()
        return ActionResult.accepted("Combat reset.")

    def mirror(self, snapshot: CombatSnapshot) -> None:
        """
        Replaces the whole local snapshot with one received from the host.

        Args:
            snapshot (CombatSnapshot): The host's snapshot.

        """
        self._snapshot = snapshot.model_copy(deep=True)
        if not snapshot.phase.is_resolved:
            self._resolution_announced = False
        self._notify()
        self._announce_resolution()

    # ============================================================================
    # NARRATOR OPERATIONS
    # ============================================================================

    def apply_damage(self, target_id: str, amount: int, end_turn: bool = True) -> ActionResult:
        """
        Deals damage to a participant.

        Hit points never drop below 0. A player reaching 0 waits for the
        narrator to revive or destroy it; an adversary reaching 0 is defeated.

        Args:
            target_id (str): The participant to damage.
            amount (int): The damage dealt.
            end_turn (bool): Whether the acting participant's turn ends.

        Returns:
            ActionResult: The outcome.

        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        amount = ensure_non_negative_int(amount, "amount", 0, {"operation": "apply_damage"})
        state = self._working_copy()
        target = state.find(target_id)
        if target is None:
            return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {target_id}")
        if target.is_incapacitated:
            return self._reject(
                ErrorKind.INVALID_TARGET,
                f"{target.name} is already out of the fight.",
                {"target": target_id},
            )
        dealt = self._damage(target, amount)
        self._log(state, self._actor_id(state), f"{target.name} takes {dealt} damage", target.id, damage=dealt)
        self._commit(state, end_turn)
        return ActionResult.accepted(f"{target.name} takes {dealt} damage.")

    def apply_area_damage(self, target_ids: list[str], amount: int) -> ActionResult:
        """
        Deals the same damage to several participants as a single action.

        The whole batch is validated before anything changes, and the end of
        the combat is evaluated once, after every target has been hit.

        Args:
            target_ids (list[str]): The participants to damage.
            amount (int): The damage dealt to each of them.

        Returns:
            ActionResult: The outcome.

        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        amount = ensure_non_negative_int(amount, "amount", 0, {"operation": "apply_area_damage"})
        unique_ids = list(dict.fromkeys(target_ids))
        if not unique_ids:
            return self._reject(ErrorKind.INVALID_TARGET, "No targets selected.")
        state = self._working_copy()
        targets: list[Participant] = []
        for target_id in unique_ids:
            target = state.find(target_id)
            if target is None:
                return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {target_id}")
            if target.is_incapacitated:
                return self._reject(
                    ErrorKind.INVALID_TARGET,
                    f"{target.name} is already out of the fight.",
                    {"target": target_id},
                )
            targets.append(target)
        actor_id = self._actor_id(state)
        for target in targets:
            dealt = self._damage(target, amount)
            self._log(state, actor_id, f"{target.name} takes {dealt} area damage", target.id, damage=dealt)
        self._commit(state, end_turn=True)
        return ActionResult.accepted(f"{len(targets)} participants take {amount} damage.")

    def apply_healing(self, target_id: str, amount: int, end_turn: bool = True) -> ActionResult:
        """
        Restores hit points to a participant, up to its maximum.

        Healing the dead does nothing. A player waiting for its fate must be
        revived first.

        Args:
            target_id (str): The participant to heal.
            amount (int): The hit points restored.
            end_turn (bool): Whether the acting participant's turn ends.

        Returns:
            ActionResult: The outcome.

        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        amount = ensure_non_negative_int(amount, "amount", 0, {"operation": "apply_healing"})
        state = self._working_copy()
        target = state.find(target_id)
        if target is None:
            return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {target_id}")
        if target.pending_fate:
            return self._reject(
                ErrorKind.INVALID_TARGET,
                f"{target.name} is down: revive or destroy first.",
                {"target": target_id},
            )
        if target.is_dead:
            logger.debug("Healing ignored, %s is dead", target.name)
            return ActionResult.accepted(f"{target.name} is dead, healing has no effect.")
        healed = self._heal(target, amount)
        self._log(state, self._actor_id(state), f"{target.name} recovers {healed} HP", target.id, healing=healed)
        self._commit(state, end_turn)
        return ActionResult.accepted(f"{target.name} recovers {healed} HP.")

    def revive(self, participant_id: str) -> ActionResult:
        """
        Brings a downed player back with 1 hit point and the weakened condition.

        Does not consume a turn.
        """
        state, target, rejected = self._fate_target(participant_id)
        if rejected is not None:
            return rejected
        target.hp = 1
        target.pending_fate = False
        target.discard_condition(Condition.DEAD)
        target.discard_condition(Condition.DEFENDING)
        target.add_condition(Condition.WEAKENED)
        self._log(state, target.id, f"{target.name} is revived, weakened", target.id, healing=1)
        self._commit(state, end_turn=False)
        return ActionResult.accepted(f"{target.name} gets back up.")

    def destroy(self, participant_id: str) -> ActionResult:
        """
        Marks a downed player as permanently dead.

        Does not consume a turn.
        """
        state, target, rejected = self._fate_target(participant_id)
        if rejected is not None:
            return rejected
        target.hp = 0
        target.pending_fate = False
        target.conditions = [Condition.DEAD.value]
        self._log(state, target.id, f"{target.name} dies", target.id)
        self._commit(state, end_turn=False)
        return ActionResult.accepted(f"{target.name} has fallen for good.")

    def next_turn(self) -> ActionResult:
        """Ends the acting participant's turn without doing anything."""
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        actor_id = self._actor_id(state)
        actor = state.find(actor_id)
        self._log(state, actor_id, f"{actor.name if actor else actor_id} passes")
        self._commit(state, end_turn=True)
        return ActionResult.accepted("Next turn.")

    def add_condition(self, participant_id: str, condition: str) -> ActionResult:
        """Adds a free-form condition. Does not consume a turn."""
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        if not condition or not condition.strip():
            return self._reject(ErrorKind.INVALID_ACTION, "Condition name must not be empty.")
        state = self._working_copy()
        target = state.find(participant_id)
        if target is None:
            return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {participant_id}")
        target.add_condition(condition.strip())
        self._log(state, target.id, f"{target.name} is now {condition.strip()}", target.id)
        self._commit(state, end_turn=False)
        return ActionResult.accepted(f"{target.name} is now {condition.strip()}.")

    def remove_condition(self, participant_id: str, condition: str) -> ActionResult:
        """Removes one occurrence of a condition. Does not consume a turn."""
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        target = state.find(participant_id)
        if target is None:
            return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {participant_id}")
        if condition in (Condition.DEAD.value, Condition.FLED.value):
            return self._reject(
                ErrorKind.INVALID_ACTION,
                f"'{condition}' is permanent.",
                {"target": participant_id},
            )
        if not target.remove_condition(condition):
            return self._reject(
                ErrorKind.INVALID_ACTION,
                f"{target.name} is not {condition}.",
                {"target": participant_id},
            )
        self._log(state, target.id, f"{target.name} is no longer {condition}", target.id)
        self._commit(state, end_turn=False)
        return ActionResult.accepted(f"{target.name} is no longer {condition}.")

    # ============================================================================
    # ACTOR OPERATIONS
    # ============================================================================

    def resolve_attack(self, attacker_id: str, target_id: str) -> ActionResult:
        """
        Resolves an attack from the acting participant.

        A d20 is compared against the hit threshold, which rises if the target
        is defending. A hit rolls the attack damage dice. Hit or miss, the
        attacker's turn is over.

        Args:
            attacker_id (str): The acting participant.
            target_id (str): The participant attacked.

        Returns:
            ActionResult: The outcome.

        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        attacker, rejected = self._require_actor(state, attacker_id)
        if rejected is not None:
            return rejected
        if target_id == attacker_id:
            return self._reject(
                ErrorKind.INVALID_TARGET,
                f"{attacker.name} cannot attack itself.",
                {"attacker": attacker_id},
            )
        target = state.find(target_id)
        if target is None:
            return self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {target_id}")
        if target.is_incapacitated:
            return self._reject(
                ErrorKind.INVALID_TARGET,
                f"{target.name} is already out of the fight.",
                {"attacker": attacker_id, "target": target_id},
            )

        threshold = self.settings.hit_threshold
        if target.is_defending:
            threshold += self.settings.defend_bonus
        to_hit = roll_d20(self.rng)
        if to_hit >= threshold:
            damage = roll(self.settings.attack_damage, self.rng)
            dealt = self._damage(target, max(0, damage.value))
            message = (
                f"{attacker.name} hits {target.name} ({to_hit} vs {threshold}) "
                f"for {dealt} damage ({damage.description})"
            )
            self._log(state, attacker.id, message, target.id, damage=dealt)
        else:
            message = f"{attacker.name} misses {target.name} ({to_hit} vs {threshold})"
            self._log(state, attacker.id, message, target.id)
        self._commit(state, end_turn=True)
        return ActionResult.accepted(message)

    def resolve_defend(self, participant_id: str) -> ActionResult:
        """The acting participant raises its guard until its next turn."""
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        actor, rejected = self._require_actor(state, participant_id)
        if rejected is not None:
            return rejected
        actor.add_condition(Condition.DEFENDING)
        self._log(state, actor.id, f"{actor.name} takes a defensive stance", actor.id)
        self._commit(state, end_turn=True)
        return ActionResult.accepted(f"{actor.name} is defending.")

    def resolve_flee(self, participant_id: str) -> ActionResult:
        """
        The acting participant leaves the fight.

        It stays in the roster but never acts again and no longer counts for
        its side.
        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        actor, rejected = self._require_actor(state, participant_id)
        if rejected is not None:
            return rejected
        actor.discard_condition(Condition.DEFENDING)
        actor.add_condition(Condition.FLED)
        self._log(state, actor.id, f"{actor.name} flees the battle", actor.id)
        self._commit(state, end_turn=True)
        return ActionResult.accepted(f"{actor.name} fled.")

    def resolve_self_heal(self, participant_id: str) -> ActionResult:
        """The acting participant catches its breath for a fixed amount of hit points."""
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        actor, rejected = self._require_actor(state, participant_id)
        if rejected is not None:
            return rejected
        healed = self._heal(actor, self.settings.self_heal_amount)
        self._log(state, actor.id, f"{actor.name} recovers {healed} HP", actor.id, healing=healed)
        self._commit(state, end_turn=True)
        return ActionResult.accepted(f"{actor.name} recovers {healed} HP.")

    def resolve_use_item(self, participant_id: str, item_id: str) -> ActionResult:
        """
        The acting participant consumes an item from its inventory snapshot.

        Args:
            participant_id (str): The acting participant.
            item_id (str): The item to consume.

        Returns:
            ActionResult: The outcome.

        """
        rejected = self._guard_active()
        if rejected is not None:
            return rejected
        state = self._working_copy()
        actor, rejected = self._require_actor(state, participant_id)
        if rejected is not None:
            return rejected
        if not isinstance(actor.source, CharacterSource):
            return self._reject(
                ErrorKind.INVALID_ACTION,
                f"{actor.name} carries no inventory.",
                {"actor": participant_id},
            )
        inventory = actor.source.inventory
        if inventory.get(item_id, 0) <= 0:
            return self._reject(
                ErrorKind.INVALID_ACTION,
                f"{actor.name} has no {item_id} left.",
                {"actor": participant_id, "item": item_id},
            )
        item = self.items.get(item_id)
        if item is None or not item.is_usable_in_combat:
            return self._reject(
                ErrorKind.INVALID_ACTION,
                f"{item.name if item else item_id} cannot be used in combat.",
                {"actor": participant_id, "item": item_id},
            )

        inventory[item_id] -= 1
        if inventory[item_id] == 0:
            del inventory[item_id]
        healing = roll(item.healing, self.rng)
        healed = self._heal(actor, max(0, healing.value))
        self._log(
            state,
            actor.id,
            f"{actor.name} uses {item.name} and recovers {healed} HP ({healing.description})",
            actor.id,
            healing=healed,
        )
        self._commit(state, end_turn=True)
        return ActionResult.accepted(f"{actor.name} uses {item.name}.")

    # ============================================================================
    # INTERNALS
    # ============================================================================

    def _guard_active(self) -> ActionResult | None:
        if self.read_only:
            return self._reject(ErrorKind.INVALID_ACTION, "This device only mirrors the combat.")
        if self.phase != CombatPhase.ACTIVE or self._snapshot is None:
            return self._reject(
                ErrorKind.INVALID_ACTION,
                "There is no combat in progress.",
                {"phase": str(self.phase)},
            )
        return None

    def _working_copy(self) -> CombatSnapshot:
        # Only reached once _guard_active or _fate_target found a snapshot.
        return self._snapshot.model_copy(deep=True)

    def _reject(
        self,
        kind: ErrorKind,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> ActionResult:
        self.notices.handle(message, kind, ErrorSeverity.LOW, context)
        return ActionResult.rejected(kind, message)

    def _require_actor(
        self,
        state: CombatSnapshot,
        actor_id: str,
    ) -> tuple[Participant, None] | tuple[None, ActionResult]:
        actor = state.find(actor_id)
        if actor is None:
            return None, self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {actor_id}")
        if not actor.is_acting:
            acting = state.acting
            return None, self._reject(
                ErrorKind.INVALID_ACTION,
                f"It is not {actor.name}'s turn.",
                {"actor": actor_id, "acting": acting.id if acting else None},
            )
        if not self.scheduler.is_eligible(actor):
            return None, self._reject(
                ErrorKind.INVALID_ACTION,
                f"{actor.name} cannot act.",
                {"actor": actor_id},
            )
        return actor, None

    def _fate_target(
        self,
        participant_id: str,
    ) -> tuple[CombatSnapshot, Participant, None] | tuple[None, None, ActionResult]:
        if self.read_only:
            return None, None, self._reject(ErrorKind.INVALID_ACTION, "This device only mirrors the combat.")
        if self._snapshot is None:
            return None, None, self._reject(ErrorKind.INVALID_ACTION, "There is no combat in progress.")
        state = self._working_copy()
        target = state.find(participant_id)
        if target is None:
            return None, None, self._reject(ErrorKind.INVALID_TARGET, f"Unknown participant: {participant_id}")
        if not target.pending_fate:
            return None, None, self._reject(
                ErrorKind.INVALID_TARGET,
                f"{target.name} is not waiting for its fate.",
                {"target": participant_id},
            )
        return state, target, None

    @staticmethod
    def _actor_id(state: CombatSnapshot) -> str:
        acting = state.acting
        return acting.id if acting else "narrator"

    @staticmethod
    def _damage(target: Participant, amount: int) -> int:
        """Applies damage to a participant of the working copy, returns the damage taken."""
        before = target.hp
        target.hp = max(0, target.hp - amount)
        if target.hp == 0 and before > 0:
            target.discard_condition(Condition.DEFENDING)
            if target.side == Side.PLAYER:
                target.pending_fate = True
                logger.debug("%s is down and waits for its fate", target.name)
            else:
                logger.debug("%s is defeated", target.name)
        return before - target.hp

    @staticmethod
    def _heal(target: Participant, amount: int) -> int:
        """Heals a participant of the working copy, returns the hit points restored."""
        before = target.hp
        target.hp = min(target.max_hp, target.hp + amount)
        return target.hp - before

    def _log(
        self,
        state: CombatSnapshot,
        actor_id: str,
        description: str,
        target_id: str | None = None,
        damage: int | None = None,
        healing: int | None = None,
    ) -> None:
        state.log.append(
            ActionLogEntry(
                actor_id=actor_id,
                description=description,
                target_id=target_id,
                damage=damage,
                healing=healing,
                round=state.round,
                timestamp=self.clock(),
            )
        )

    @staticmethod
    def _evaluate(state: CombatSnapshot) -> CombatPhase:
        if not state.side_is_standing(Side.PLAYER):
            return CombatPhase.DEFEAT
        if not state.side_is_standing(Side.ADVERSARY):
            return CombatPhase.VICTORY
        return CombatPhase.ACTIVE

    def _commit(self, state: CombatSnapshot, end_turn: bool) -> None:
        """Checks for the end of the combat, advances the turn and publishes the state."""
        if state.phase == CombatPhase.ACTIVE:
            outcome = self._evaluate(state)
            if outcome.is_resolved:
                state.phase = outcome
                for participant in state.participants:
                    participant.is_acting = False
                self._log(state, "narrator", f"Combat over: {outcome.display_name.lower()}")
            elif end_turn:
                state = self.scheduler.advance(state)
        self._snapshot = state
        self._notify()
        self._announce_resolution()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _announce_resolution(self) -> None:
        if self.is_resolved and not self._resolution_announced:
            self._resolution_announced = True
            logger.debug("Combat resolved: %s", self.phase)
            for listener in list(self._resolved_listeners):
                listener(self)
