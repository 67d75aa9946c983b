"""Item domain model: one row of the ``test`` table, plus typed count results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass
class Item:
    """A named item; ``group_id`` ties it to the batch write that created it."""

    group_id: str
    name: str
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "groupId": self.group_id,
            "name": self.name,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Item":
        return cls(
            id=row.get("id"),
            group_id=row["groupId"],
            name=row["name"],
        )


@dataclass(frozen=True)
class CountResult:
    """Single-column aggregate row (``SELECT COUNT(...) AS count``)."""

    count: int = 0

    @classmethod
    def from_rows(cls, rows: Sequence[dict[str, Any]]) -> "CountResult":
        """Coalesce a missing row or a NULL aggregate to zero."""
        if not rows:
            return cls(0)
        value = rows[0].get("count")
        return cls(int(value) if value is not None else 0)
