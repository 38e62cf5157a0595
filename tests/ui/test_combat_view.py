"""
Tests for the rich views.
"""

import random

from skirmish.core.error_handling import ErrorKind, ErrorSeverity, Notice
from skirmish.core.utils import ccapture
from skirmish.encounter.allocator import EncounterBudgetAllocator
from skirmish.encounter.budget import EncounterBudget
from skirmish.encounter.rewards import RewardAllocator
from skirmish.ui.combat_view import (
    CombatView,
    NoticePrinter,
    format_conditions,
    render_combat,
    render_encounter,
    render_log,
    render_rewards,
)


def test_combat_tracker_lists_every_participant(machine, roster):
    machine.start(roster)
    text = ccapture(render_combat(machine.snapshot))

    assert "Round 1" in text
    for name in ("Hero", "Goblin", "Orc"):
        assert name in text
    assert "▶" in text


def test_log_keeps_dice_descriptions(machine, roster):
    machine.start(roster)
    machine.resolve_attack("hero", "goblin")
    text = ccapture(render_log(machine.snapshot))

    assert "Hero hits Goblin" in text
    assert "d6(6)" in text


def test_pending_fate_is_shown_first(make_player):
    hero = make_player("hero", hp=0)
    hero.pending_fate = True
    hero.add_condition("poisoned")

    assert format_conditions(hero).startswith("[bold red]⚠ down[/]")
    assert format_conditions(hero).endswith("poisoned")


def test_encounter_table(repository, notices):
    allocator = EncounterBudgetAllocator(notices=notices)
    generated = allocator.generate(
        EncounterBudget(party_level=3, party_size=4),
        [repository.creatures["goblin"]],
        random.Random(0),
    )
    text = ccapture(render_encounter(generated))

    assert "Goblin" in text
    assert "Adjusted XP" in text

    empty = allocator.generate(
        EncounterBudget(party_level=1, party_size=1),
        [repository.creatures["dragon"]],
        random.Random(0),
    )
    assert "No creature" in ccapture(render_encounter(empty))


def test_rewards_table(goblin_creature, item_catalog):
    bundle = RewardAllocator().allocate([goblin_creature], party_size=2, items=item_catalog, rng=random.Random(0))
    text = ccapture(render_rewards(bundle))

    assert "Tier 1" in text
    assert "Dagger" in text
    assert "from goblin" in text


def test_view_redraws_after_every_change(machine, roster, capsys):
    view = CombatView("Narrator", log_lines=0)
    follower_view = CombatView("Player", read_only=True)
    view.attach(machine)
    machine.subscribe(follower_view.refresh)

    machine.start(roster)
    machine.next_turn()

    assert view.redraws == 2
    assert follower_view.redraws == 2
    assert "Goblin acting" in capsys.readouterr().out


def test_notice_printer(capsys):
    NoticePrinter()(Notice("Lost the link", ErrorKind.TRANSPORT_FAILURE, ErrorSeverity.HIGH))

    assert "Lost the link" in capsys.readouterr().out
