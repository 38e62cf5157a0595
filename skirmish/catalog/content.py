import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from catchery import log_debug, log_warning
from pydantic import BaseModel, ValidationError

from skirmish.catalog.character_sheet import CharacterSheet
from skirmish.catalog.creature import Creature
from skirmish.catalog.item import Item

_M = TypeVar("_M", bound=BaseModel)


class ContentRepository:
    """
    One-stop registry for the reference data the combat engine reads.
    """

    creatures: dict[str, Creature]
    items: dict[str, Item]
    characters: dict[str, CharacterSheet]

    def __init__(self, data_dir: Path | None = None) -> None:
        """
        Initialize the ContentRepository.

        Args:
            data_dir (Path | None):
                The directory containing data files to load. An empty
                repository is created when omitted.

        """
        self.creatures = {}
        self.items = {}
        self.characters = {}
        if data_dir:
            self.reload(data_dir)

    @classmethod
    def from_records(
        cls,
        creatures: list[Creature] | None = None,
        items: list[Item] | None = None,
        characters: list[CharacterSheet] | None = None,
    ) -> "ContentRepository":
        """Builds a repository from records already in memory."""
        repository = cls()
        repository.creatures = {c.id: c for c in creatures or []}
        repository.items = {i.id: i for i in items or []}
        repository.characters = {c.id: c for c in characters or []}
        return repository

    def reload(self, root: Path) -> None:
        """
        (Re)load all JSON assets from disk.

        A missing file leaves its collection empty; a file with invalid
        content raises.

        Args:
            root (Path):
                The directory containing data files to load.
        """
        self.creatures = _load_json_file(
            root / "creatures.json",
            _records_loader(Creature),
            "creatures",
        )
        self.items = _load_json_file(
            root / "items.json",
            _records_loader(Item),
            "items",
        )
        self.characters = _load_json_file(
            root / "characters.json",
            _records_loader(CharacterSheet),
            "characters",
        )

    def get_creature(self, creature_id: str) -> Creature | None:
        """Get a creature by id, or None if not found."""
        return self._get_from_collection("creatures", creature_id)

    def get_item(self, item_id: str) -> Item | None:
        """Get an item by id, or None if not found."""
        return self._get_from_collection("items", item_id)

    def get_character(self, character_id: str) -> CharacterSheet | None:
        """Get a character sheet by id, or None if not found."""
        return self._get_from_collection("characters", character_id)

    def _get_from_collection(self, collection_name: str, entry_id: str) -> Any | None:
        collection: dict[str, Any] = getattr(self, collection_name)
        entry = collection.get(entry_id)
        if entry is None:
            log_warning(
                f"Entry '{entry_id}' not found in {collection_name}.",
                {"collection_name": collection_name, "entry_id": entry_id},
            )
        return entry


def _records_loader(model: type[_M]) -> Callable[[list[dict]], dict[str, _M]]:
    """
    Creates a loader that validates records and indexes them by id.

    Args:
        model (type[BaseModel]): The record model; it must have an `id` field.

    Returns:
        Callable: The loader function.

    """

    def load(data: list[dict]) -> dict[str, _M]:
        records: dict[str, _M] = {}
        for entry in data:
            record = model.model_validate(entry)
            record_id = getattr(record, "id")
            if record_id in records:
                raise ValueError(f"Duplicate {model.__name__} id: {record_id}")
            records[record_id] = record
        return records

    load.__name__ = f"load_{model.__name__.lower()}s"
    return load


def _load_json_file(
    filepath: Path,
    loader_func: Callable[[list[dict]], dict[str, Any]],
    description: str,
) -> dict[str, Any]:
    """Helper to load and validate JSON files"""
    if not filepath.exists():
        log_warning(
            f"No {description} file found, the collection stays empty.",
            {"filepath": str(filepath)},
        )
        return {}
    log_debug(f"Loading {description} using {loader_func.__name__}...")
    try:
        if not filepath.is_file():
            raise ValueError(f"Not a file: {filepath}")
        with open(filepath, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Expected list in {filepath}, got {type(data).__name__}")
        return loader_func(data)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        raise ValueError(f"File {filepath} raised an error: {e}")
