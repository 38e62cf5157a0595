"""
Tests for loading the reference data.
"""

import json
from pathlib import Path

import pytest

from skirmish.catalog.content import ContentRepository
from skirmish.catalog.creature import Creature, parse_challenge_rating

DATA_DIR = Path(__file__).resolve().parents[2] / "data"


def _write(path: Path, records) -> None:
    path.write_text(json.dumps(records), encoding="utf-8")


def test_shipped_data_loads():
    repository = ContentRepository(DATA_DIR)

    assert repository.creatures
    assert repository.items
    assert repository.characters
    # Loot tables and inventories only reference known items.
    for creature in repository.creatures.values():
        for entry in creature.loot_table:
            assert entry.item_id in repository.items, entry.item_id
    for sheet in repository.characters.values():
        for item_id in sheet.inventory:
            assert item_id in repository.items, item_id


def test_reload_reads_every_collection(tmp_path):
    _write(tmp_path / "creatures.json", [{"id": "rat", "name": "Rat", "armor_class": 10, "hit_points": 1, "challenge_rating": "0"}])
    _write(tmp_path / "items.json", [{"id": "torch", "name": "Torch", "category": "consumables"}])
    _write(tmp_path / "characters.json", [{"id": "aria", "name": "Aria", "current_hp": 10, "max_hp": 10, "armor_class": 12}])

    repository = ContentRepository(tmp_path)

    assert repository.get_creature("rat").xp == 10
    assert repository.get_item("torch").name == "Torch"
    assert repository.get_character("aria").max_hp == 10
    assert repository.get_creature("dragon") is None


def test_missing_file_leaves_the_collection_empty(tmp_path):
    _write(tmp_path / "items.json", [{"id": "torch", "name": "Torch", "category": "consumables"}])

    repository = ContentRepository(tmp_path)

    assert repository.creatures == {}
    assert repository.characters == {}
    assert list(repository.items) == ["torch"]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"id": "rat"}),
        json.dumps([{"id": "rat", "name": "Rat", "armor_class": 10, "hit_points": 1, "challenge_rating": "99"}]),
        json.dumps([{"id": "rat", "name": "Rat", "armor_class": 10}]),
    ],
)
def test_invalid_content_raises(tmp_path, content):
    (tmp_path / "creatures.json").write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        ContentRepository(tmp_path)


def test_duplicate_ids_raise(tmp_path):
    torch = {"id": "torch", "name": "Torch", "category": "consumables"}
    _write(tmp_path / "items.json", [torch, torch])

    with pytest.raises(ValueError, match="Duplicate"):
        ContentRepository(tmp_path)


def test_from_records_indexes_by_id(goblin_creature, item_catalog):
    repository = ContentRepository.from_records(creatures=[goblin_creature], items=list(item_catalog.values()))

    assert repository.creatures == {"goblin": goblin_creature}
    assert set(repository.items) == set(item_catalog)
    assert repository.characters == {}


@pytest.mark.parametrize(
    "rating, value",
    [("0", 0.0), ("1/8", 0.125), ("1/4", 0.25), ("1/2", 0.5), ("17", 17.0)],
)
def test_challenge_ratings(rating, value):
    assert parse_challenge_rating(rating) == value


def test_creature_xp_and_modifier(ogre_creature: Creature):
    assert ogre_creature.xp == 450
    assert ogre_creature.dex_modifier == -1
