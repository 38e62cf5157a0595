"""
Tests for the encounter budget and the greedy encounter generator.
"""

import random
from pathlib import Path

import pytest
from pydantic import ValidationError

from skirmish.catalog.content import ContentRepository
from skirmish.core.config import EncounterSettings
from skirmish.core.constants import Difficulty, Side
from skirmish.core.error_handling import ErrorKind
from skirmish.encounter.allocator import (
    EncounterBudgetAllocator,
    EncounterGroup,
    EncounterOutcome,
    GeneratedEncounter,
)
from skirmish.encounter.budget import EncounterBudget, group_multiplier

DATA_DIR = Path(__file__).resolve().parents[2] / "data"


@pytest.mark.parametrize(
    "count, multiplier",
    [(0, 1.0), (1, 1.0), (2, 1.5), (3, 2.0), (6, 2.0), (7, 2.5), (10, 2.5), (11, 3.0), (14, 3.0), (15, 4.0), (40, 4.0)],
)
def test_group_multiplier(count, multiplier):
    assert group_multiplier(count) == multiplier


def test_budget_is_per_character_threshold_times_party():
    budget = EncounterBudget(party_level=3, party_size=4, difficulty=Difficulty.MEDIUM)

    assert budget.threshold == 150
    assert budget.xp_ceiling == 600


@pytest.mark.parametrize("level, size", [(0, 4), (21, 4), (5, 0)])
def test_budget_rejects_out_of_range_parties(level, size):
    with pytest.raises(ValidationError):
        EncounterBudget(party_level=level, party_size=size)


def test_medium_encounter_for_a_level_three_party(repository, notices):
    budget = EncounterBudget(party_level=3, party_size=4)
    allocator = EncounterBudgetAllocator(notices=notices)

    for seed in range(20):
        encounter = allocator.generate(budget, repository.creatures.values(), random.Random(seed))
        assert encounter.outcome == EncounterOutcome.GENERATED
        assert encounter.creature_count >= 1
        assert encounter.adjusted_xp <= 600 * 1.3
        # The dragon never fits such a budget.
        assert all(group.creature.id != "dragon" for group in encounter.groups)
    assert notices.history == []


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_adjusted_xp_never_exceeds_the_tolerance(difficulty, notices):
    """
    Test that every generated encounter, at every party level, stays within
    the overshoot tolerance and reports consistent totals.
    """
    creatures = list(ContentRepository(DATA_DIR).creatures.values())
    allocator = EncounterBudgetAllocator(notices=notices)
    rng = random.Random(1234)

    for level in range(1, 21):
        budget = EncounterBudget(party_level=level, party_size=4, difficulty=difficulty)
        encounter = allocator.generate(budget, creatures, rng)
        if encounter.outcome == EncounterOutcome.NO_SUITABLE_CREATURES:
            continue
        chosen = encounter.creatures
        assert encounter.raw_xp == sum(c.xp for c in chosen)
        assert encounter.adjusted_xp == int(encounter.raw_xp * group_multiplier(len(chosen)))
        assert encounter.adjusted_xp <= budget.xp_ceiling * 1.3


def test_groups_follow_the_order_of_first_pick(goblin_creature, notices):
    budget = EncounterBudget(party_level=3, party_size=4)
    encounter = EncounterBudgetAllocator(notices=notices).generate(budget, [goblin_creature], random.Random(0))

    assert len(encounter.groups) == 1
    assert encounter.groups[0].creature.id == "goblin"
    assert encounter.groups[0].count == encounter.creature_count


def test_no_suitable_creatures(dragon_creature, notices):
    budget = EncounterBudget(party_level=1, party_size=4)
    encounter = EncounterBudgetAllocator(notices=notices).generate(budget, [dragon_creature], random.Random(0))

    assert encounter.outcome == EncounterOutcome.NO_SUITABLE_CREATURES
    assert encounter.is_empty
    assert encounter.adjusted_xp == 0
    assert "200 XP" in encounter.explanation
    assert encounter.to_roster() == []
    assert len(notices.of_kind(ErrorKind.UNSATISFIABLE_BUDGET)) == 1


def test_empty_catalog_is_unsatisfiable(notices):
    budget = EncounterBudget(party_level=5, party_size=4)
    encounter = EncounterBudgetAllocator(notices=notices).generate(budget, [], random.Random(0))

    assert encounter.outcome == EncounterOutcome.NO_SUITABLE_CREATURES


def test_attempt_cap_bounds_the_number_of_creatures(goblin_creature, notices):
    allocator = EncounterBudgetAllocator(EncounterSettings(attempt_cap=2), notices)
    budget = EncounterBudget(party_level=20, party_size=8, difficulty=Difficulty.DEADLY)
    encounter = allocator.generate(budget, [goblin_creature], random.Random(0))

    assert encounter.creature_count == 2


def test_roster_gets_unique_ids_and_names(goblin_creature, ogre_creature):
    encounter = GeneratedEncounter(
        budget=EncounterBudget(party_level=3, party_size=4),
        groups=[
            EncounterGroup(creature=goblin_creature, count=2),
            EncounterGroup(creature=ogre_creature, count=1),
        ],
        raw_xp=550,
        adjusted_xp=1100,
    )

    roster = encounter.to_roster()

    assert [p.id for p in roster] == ["goblin-1", "goblin-2", "ogre-1"]
    assert [p.name for p in roster] == ["Goblin (1)", "Goblin (2)", "Ogre"]
    assert all(p.side == Side.ADVERSARY for p in roster)
    assert roster[0].hp == roster[0].max_hp == 7
    assert roster[2].source.challenge_rating == "2"
