"""Data models shared by the search index and the trigger matcher."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import InvalidItemError


class ItemType(IntEnum):
    """Kinds of indexed items. Values are the boundary type tags."""
    APPLICATION = 0
    FILE = 1
    SNIPPET = 2
    CLIPBOARD_ENTRY = 3

    @classmethod
    def parse(cls, value: Union["ItemType", int, str]) -> "ItemType":
        """Resolve a type tag, member or member name to an ItemType."""
        if isinstance(value, cls):
            return value
        # bool is an int subclass; True must not silently mean FILE
        if isinstance(value, bool):
            raise InvalidItemError(f"Invalid item type: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidItemError(f"Item type out of range: {value}") from None
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_").replace(" ", "_")
            key = _TYPE_ALIASES.get(key, key)
            if key in cls.__members__:
                return cls.__members__[key]
        raise InvalidItemError(f"Invalid item type: {value!r}")


_TYPE_ALIASES = {
    "APP": "APPLICATION",
    "CLIPBOARD": "CLIPBOARD_ENTRY",
    "CLIPBOARDENTRY": "CLIPBOARD_ENTRY",
}


@dataclass(frozen=True)
class IndexedItem:
    """A unit the search index can return."""
    id: str
    name: str
    path: str
    item_type: ItemType

    @classmethod
    def create(cls, id: str, name: str, path: str, item_type) -> "IndexedItem":
        """Validate raw fields and build an item.

        Raises:
            InvalidItemError: empty id, non-string field or unknown type.
        """
        for field_name, value in (("id", id), ("name", name), ("path", path)):
            if not isinstance(value, str):
                raise InvalidItemError(
                    f"Item {field_name} must be a string, got {type(value).__name__}"
                )
        if not id:
            raise InvalidItemError("Item id must not be empty")
        return cls(id=id, name=name, path=path, item_type=ItemType.parse(item_type))


@dataclass(frozen=True)
class ScoredResult:
    """Read-only projection of an item plus its relevance for one query."""
    id: str
    name: str
    path: str
    score: int
    item_type: ItemType
    matched_field: str = "name"  # name|path
    match_indices: Tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "score": self.score,
            "item_type": self.item_type.name.lower(),
            "matched_field": self.matched_field,
            "match_indices": list(self.match_indices),
        }


class TriggerRule(BaseModel):
    """A configured trigger string and the content it expands to."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    trigger: str
    content: str
    enabled: bool = True
    category: Optional[str] = None
    id: Optional[str] = None

    @field_validator("trigger")
    @classmethod
    def validate_trigger(cls, v: str) -> str:
        if not v:
            raise ValueError("trigger must not be empty")
        return v


@dataclass(frozen=True)
class MatchResult:
    """Best trigger found at the end of a text.

    ``match_end`` is a character offset into the searched text, immediately
    after the trigger. It always equals the text length.
    """
    trigger: str
    content: str
    match_end: int

    @property
    def match_start(self) -> int:
        return self.match_end - len(self.trigger)


@dataclass(frozen=True)
class IndexStats:
    """Item counts per type."""
    total: int = 0
    applications: int = 0
    files: int = 0
    snippets: int = 0
    clipboard_entries: int = 0

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """The (total, apps, files, snippets) shape reported at the boundary."""
        return (self.total, self.applications, self.files, self.snippets)
