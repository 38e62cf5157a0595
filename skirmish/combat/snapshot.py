"""
Snapshot module for the combat engine.

Defines the canonical combat state (CombatSnapshot) and the append-only action
log entries. A snapshot is a plain value: the state machine copies it, applies
a transition to the copy and commits the copy as a whole.
"""

from pydantic import BaseModel, ConfigDict, Field

from skirmish.combat.participant import Participant
from skirmish.core.constants import CombatPhase, Side


class ActionLogEntry(BaseModel):
    """An immutable record of something that happened during combat."""

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(
        description="Identifier of the participant that acted.",
    )
    description: str = Field(
        description="Free-text description of the effect.",
    )
    target_id: str | None = Field(
        default=None,
        description="Identifier of the participant affected, if any.",
    )
    damage: int | None = Field(
        default=None,
        ge=0,
        description="Damage dealt, if any.",
    )
    healing: int | None = Field(
        default=None,
        ge=0,
        description="Hit points restored, if any.",
    )
    round: int = Field(
        ge=1,
        description="Round in which the action happened.",
    )
    timestamp: float = Field(
        description="Epoch seconds at which the action was recorded.",
    )


class CombatSnapshot(BaseModel):
    """The complete state of one combat."""

    round: int = Field(
        default=1,
        ge=1,
        description="Round counter.",
    )
    participants: list[Participant] = Field(
        default_factory=list,
        description="Participants in initiative order.",
    )
    log: list[ActionLogEntry] = Field(
        default_factory=list,
        description="Action log, ordered by occurrence.",
    )
    acting_index: int = Field(
        default=0,
        ge=0,
        description="Index of the participant whose turn it is.",
    )
    phase: CombatPhase = Field(
        default=CombatPhase.ACTIVE,
        description="Lifecycle phase of the combat.",
    )

    def find(self, participant_id: str) -> Participant | None:
        """Returns the participant with the given id, or None."""
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    @property
    def acting(self) -> Participant | None:
        """The participant whose turn it is, if any."""
        if 0 <= self.acting_index < len(self.participants):
            return self.participants[self.acting_index]
        return None

    def on_side(self, side: Side) -> list[Participant]:
        return [p for p in self.participants if p.side == side]

    @property
    def players(self) -> list[Participant]:
        return self.on_side(Side.PLAYER)

    @property
    def adversaries(self) -> list[Participant]:
        return self.on_side(Side.ADVERSARY)

    def side_is_standing(self, side: Side) -> bool:
        """True while at least one participant of the side still counts."""
        return any(p.is_standing for p in self.on_side(side))

    @property
    def pending_fates(self) -> list[Participant]:
        return [p for p in self.participants if p.pending_fate]
