"""
Rich views of the combat engine.

Renders the combat tracker, the action log, generated encounters and rewards
as rich tables, and provides the subscribers that keep a console view in step
with a state machine and with the notice board.
"""

from rich.markup import escape
from rich.table import Table

from skirmish.combat.participant import Participant
from skirmish.combat.snapshot import CombatSnapshot
from skirmish.combat.state_machine import CombatStateMachine
from skirmish.core.constants import Condition
from skirmish.core.error_handling import ErrorSeverity, Notice
from skirmish.core.utils import cprint, crule, hp_color, make_bar
from skirmish.encounter.allocator import EncounterOutcome, GeneratedEncounter
from skirmish.encounter.rewards import RewardBundle

_CONDITION_EMOJI = {condition.value: condition.emoji for condition in Condition}


def format_conditions(participant: Participant) -> str:
    """Conditions with their emoji, the pending fate marker first."""
    labels = []
    if participant.pending_fate:
        labels.append("[bold red]⚠ down[/]")
    for condition in participant.conditions:
        emoji = _CONDITION_EMOJI.get(condition)
        labels.append(f"{emoji} {condition}" if emoji else condition)
    return ", ".join(labels)


def render_combat(snapshot: CombatSnapshot) -> Table:
    """
    Renders the turn order with hit points and conditions.

    Args:
        snapshot (CombatSnapshot): The combat to render.

    Returns:
        Table: The combat tracker.

    """
    table = Table(
        title=f"Round {snapshot.round} | {snapshot.phase.colored_name}",
        pad_edge=False,
    )
    table.add_column("", no_wrap=True)
    table.add_column("Init", justify="right", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("HP", justify="right")
    table.add_column("", no_wrap=True)
    table.add_column("AC", justify="right")
    table.add_column("Conditions")
    for participant in snapshot.participants:
        marker = "▶" if participant.is_acting else ""
        name = f"{participant.side.emoji} {participant.colored_name}"
        if participant.is_incapacitated and not participant.pending_fate:
            name = f"[dim]{participant.side.emoji} {participant.name}[/]"
        table.add_row(
            marker,
            str(participant.initiative),
            name,
            f"{participant.hp:>3}/{participant.max_hp:<3}",
            make_bar(
                participant.hp,
                participant.max_hp,
                color=hp_color(participant.hp, participant.max_hp),
            ),
            str(participant.armor_class),
            format_conditions(participant),
        )
    return table


def render_log(snapshot: CombatSnapshot, limit: int = 5) -> Table:
    """Renders the last entries of the action log."""
    table = Table(title="Log", pad_edge=False, show_header=False)
    table.add_column("Round", style="dim", justify="right")
    table.add_column("Entry")
    for entry in snapshot.log[-limit:]:
        text = escape(entry.description)
        if entry.damage:
            text += f" [red](-{entry.damage})[/]"
        if entry.healing:
            text += f" [green](+{entry.healing})[/]"
        table.add_row(str(entry.round), text)
    return table


def render_encounter(encounter: GeneratedEncounter) -> Table:
    """Renders a generated encounter, or the reason why none was generated."""
    table = Table(title=str(encounter.budget), pad_edge=False)
    table.add_column("Creature", style="bold")
    table.add_column("CR", justify="right")
    table.add_column("Count", justify="right", style="cyan")
    table.add_column("XP", justify="right")
    if encounter.outcome == EncounterOutcome.NO_SUITABLE_CREATURES:
        table.add_row(f"[bold red]{encounter.explanation}[/]", "", "", "")
        return table
    for group in encounter.groups:
        table.add_row(
            group.creature.name,
            group.creature.challenge_rating,
            str(group.count),
            str(group.raw_xp),
        )
    table.add_row()
    table.add_row("Raw XP", "", "", str(encounter.raw_xp))
    table.add_row("Adjusted XP", "", "", f"[bold]{encounter.adjusted_xp}[/]")
    return table


def render_rewards(bundle: RewardBundle) -> Table:
    """Renders the rewards of a combat."""
    title = f"Rewards ({bundle.tier.name})" if bundle.tier else "Rewards"
    table = Table(title=title, pad_edge=False)
    table.add_column("Reward", style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Per player", justify="right")
    table.add_row("XP", str(bundle.total_xp), str(bundle.xp_per_player))
    table.add_row("Gold", f"[yellow]{bundle.gold}[/]", f"[yellow]{bundle.gold_per_player}[/]")
    for drop in bundle.creature_drops:
        table.add_row(drop.item.colored_name, f"from {drop.creature_id}", "")
    for item in bundle.hoard_items:
        table.add_row(item.colored_name, "hoard", "")
    return table


class CombatView:
    """
    Console view that redraws after every change of a state machine.

    A read-only view (on a follower device) only prints a one-line status,
    since players cannot act from it.
    """

    def __init__(self, label: str = "Narrator", read_only: bool = False, log_lines: int = 5) -> None:
        self.label = label
        self.read_only = read_only
        self.log_lines = log_lines
        self.redraws = 0

    def attach(self, machine: CombatStateMachine) -> None:
        machine.subscribe(self.refresh)
        machine.on_resolved(self.announce)

    def refresh(self, machine: CombatStateMachine) -> None:
        self.redraws += 1
        snapshot = machine.snapshot
        if snapshot is None:
            crule(f"[dim]{self.label}: no combat[/]")
            return
        if self.read_only:
            acting = snapshot.acting
            who = acting.name if acting and acting.is_acting else "-"
            cprint(f"[dim]{self.label}[/] round {snapshot.round}, {who} acting, {snapshot.phase.colored_name}")
            return
        cprint(render_combat(snapshot))
        if self.log_lines:
            cprint(render_log(snapshot, self.log_lines))

    def announce(self, machine: CombatStateMachine) -> None:
        crule(f"{self.label}: {machine.phase.colored_name}")


class NoticePrinter:
    """Prints notices from the notice board to the console."""

    COLORS = {
        ErrorSeverity.LOW: "yellow",
        ErrorSeverity.MEDIUM: "bold yellow",
        ErrorSeverity.HIGH: "bold red",
    }

    def __call__(self, notice: Notice) -> None:
        color = self.COLORS.get(notice.severity, "white")
        cprint(f"[{color}]⚠ {notice.message}[/]")
