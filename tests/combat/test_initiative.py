"""
Tests for rolling initiative and walking the turn order.
"""

import random

import pytest

from skirmish.combat.initiative import InitiativeScheduler
from skirmish.combat.snapshot import CombatSnapshot
from skirmish.core.constants import Condition


@pytest.fixture
def snapshot(make_player, make_adversary) -> CombatSnapshot:
    first = make_player("first")
    first.is_acting = True
    downed = make_adversary("downed", hp=0)
    downed.max_hp = 10
    runner = make_adversary("runner")
    runner.add_condition(Condition.FLED)
    last = make_adversary("last")
    return CombatSnapshot(participants=[first, downed, runner, last], acting_index=0)


def test_roll_initiative_returns_a_permutation_with_one_acting(roster):
    """
    Test that rolling initiative keeps every participant and marks exactly one as acting.
    """
    scheduler = InitiativeScheduler(random.Random(7))
    ordered = scheduler.roll_initiative(roster)

    assert sorted(p.id for p in ordered) == sorted(p.id for p in roster)
    assert sum(p.is_acting for p in ordered) == 1
    assert ordered[0].is_acting
    assert [p.initiative for p in ordered] == sorted((p.initiative for p in ordered), reverse=True)


def test_roll_initiative_leaves_the_roster_untouched(roster, dice):
    scheduler = InitiativeScheduler(dice(15))
    scheduler.roll_initiative(roster)

    assert all(p.initiative == 0 for p in roster)
    assert not any(p.is_acting for p in roster)


def test_initiative_adds_the_dexterity_modifier(roster, dice):
    ordered = InitiativeScheduler(dice(15)).roll_initiative(roster)

    by_id = {p.id: p for p in ordered}
    assert by_id["hero"].initiative == 17
    assert by_id["goblin"].initiative == 17
    assert by_id["orc"].initiative == 16


def test_roll_initiative_accepts_a_random_source(roster, dice):
    ordered = InitiativeScheduler(dice(1)).roll_initiative(roster, dice(15))

    assert {p.id: p.initiative for p in ordered}["hero"] == 17


def test_tie_goes_to_the_higher_dexterity_modifier(make_player, dice):
    """
    Test that equal initiative scores are ordered by dexterity modifier.
    """
    clumsy = make_player("clumsy", dex_modifier=0)
    nimble = make_player("nimble", dex_modifier=3)
    # clumsy rolls 13, nimble rolls 10: both score 13.
    ordered = InitiativeScheduler(dice(13, 10)).roll_initiative([clumsy, nimble])

    assert [p.id for p in ordered] == ["nimble", "clumsy"]
    assert ordered[0].initiative == ordered[1].initiative == 13


def test_full_tie_keeps_roster_order(make_player, make_adversary, dice):
    roster = [make_adversary("b"), make_player("a"), make_adversary("c")]
    ordered = InitiativeScheduler(dice(10)).roll_initiative(roster)

    assert [p.id for p in ordered] == ["b", "a", "c"]


def test_advance_skips_downed_and_fled_participants(snapshot):
    scheduler = InitiativeScheduler()
    advanced = scheduler.advance(snapshot)

    assert advanced.acting_index == 3
    assert advanced.acting.id == "last"
    assert advanced.round == 1
    assert sum(p.is_acting for p in advanced.participants) == 1
    # The input snapshot is not modified.
    assert snapshot.acting_index == 0
    assert snapshot.participants[0].is_acting


def test_advance_wraps_and_increments_the_round(snapshot):
    scheduler = InitiativeScheduler()
    advanced = scheduler.advance(scheduler.advance(snapshot))

    assert advanced.acting.id == "first"
    assert advanced.round == 2


def test_round_increments_only_when_the_index_goes_back(snapshot):
    """
    Test that repeated advances never pick an ineligible participant and that
    the round grows exactly when the acting index decreases.
    """
    scheduler = InitiativeScheduler()
    current = snapshot
    for _ in range(10):
        following = scheduler.advance(current)
        assert scheduler.is_eligible(following.acting)
        expected_round = current.round + (1 if following.acting_index < current.acting_index else 0)
        assert following.round == expected_round
        current = following


def test_incoming_participant_stops_defending(make_player, make_adversary):
    guard = make_player("guard")
    guard.is_acting = True
    guard.add_condition(Condition.DEFENDING)
    brute = make_adversary("brute")
    brute.add_condition(Condition.DEFENDING)
    snapshot = CombatSnapshot(participants=[guard, brute])

    advanced = InitiativeScheduler().advance(snapshot)

    assert not advanced.find("brute").is_defending
    # The outgoing participant keeps its guard until its own next turn.
    assert advanced.find("guard").is_defending


def test_single_eligible_participant_keeps_the_round(make_player, make_adversary):
    alone = make_player("alone")
    alone.is_acting = True
    snapshot = CombatSnapshot(participants=[alone, make_adversary("gone", hp=0)])
    snapshot.participants[1].max_hp = 10

    advanced = InitiativeScheduler().advance(snapshot)

    assert advanced.acting.id == "alone"
    assert advanced.round == 1


def test_advance_is_a_no_op_when_nobody_can_act(make_player, make_adversary):
    fallen = make_player("fallen", hp=0)
    fallen.is_acting = True
    snapshot = CombatSnapshot(participants=[fallen, make_adversary("slain", hp=0)])

    scheduler = InitiativeScheduler()
    assert scheduler.next_index(snapshot) is None
    assert scheduler.advance(snapshot) is snapshot
