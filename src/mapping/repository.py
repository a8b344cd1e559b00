"""Storage for (group_id, user_id) -> talk_id mappings."""

from __future__ import annotations

from typing import Protocol

from src.models import IdentityMapping
from src.store.db import RelayDB

MappingKey = tuple[str, str]


class MappingRepository(Protocol):
    """Keyed access to identity mappings."""

    def get(self, group_id: str, user_id: str) -> IdentityMapping | None: ...

    def insert(self, mapping: IdentityMapping) -> IdentityMapping:
        """Store a mapping unless one exists for its key; return the stored one."""
        ...

    def touch(self, group_id: str, user_id: str, last_used: str) -> None: ...

    def list_by_group(self, group_id: str) -> list[IdentityMapping]: ...

    def list_by_user(self, user_id: str) -> list[IdentityMapping]: ...

    def delete(self, group_id: str, user_id: str) -> bool: ...


class SQLiteMappingRepository:
    """Mapping repository on the relay database."""

    def __init__(self, db: RelayDB) -> None:
        self._db = db

    def get(self, group_id: str, user_id: str) -> IdentityMapping | None:
        row = self._db.fetch_one(
            "SELECT * FROM mappings WHERE group_id = ? AND user_id = ?",
            (group_id, user_id),
        )
        return IdentityMapping.model_validate(row) if row else None

    def insert(self, mapping: IdentityMapping) -> IdentityMapping:
        # The primary key makes a concurrent first contact collapse onto one row
        self._db.execute(
            """INSERT INTO mappings (group_id, user_id, talk_id, created_at, last_used)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(group_id, user_id) DO NOTHING""",
            (
                mapping.group_id,
                mapping.user_id,
                mapping.talk_id,
                mapping.created_at,
                mapping.last_used,
            ),
        )
        row = self._db.fetch_one(
            "SELECT * FROM mappings WHERE group_id = ? AND user_id = ?",
            (mapping.group_id, mapping.user_id),
        )
        return IdentityMapping.model_validate(row) if row else mapping

    def touch(self, group_id: str, user_id: str, last_used: str) -> None:
        self._db.execute(
            "UPDATE mappings SET last_used = ? WHERE group_id = ? AND user_id = ?",
            (last_used, group_id, user_id),
        )

    def list_by_group(self, group_id: str) -> list[IdentityMapping]:
        rows = self._db.fetch_all(
            "SELECT * FROM mappings WHERE group_id = ? ORDER BY created_at",
            (group_id,),
        )
        return [IdentityMapping.model_validate(r) for r in rows]

    def list_by_user(self, user_id: str) -> list[IdentityMapping]:
        rows = self._db.fetch_all(
            "SELECT * FROM mappings WHERE user_id = ? ORDER BY created_at",
            (user_id,),
        )
        return [IdentityMapping.model_validate(r) for r in rows]

    def delete(self, group_id: str, user_id: str) -> bool:
        cursor = self._db.execute(
            "DELETE FROM mappings WHERE group_id = ? AND user_id = ?",
            (group_id, user_id),
        )
        return cursor.rowcount > 0


class InMemoryMappingRepository:
    """Dict-backed mapping repository for tests and dry runs."""

    def __init__(self) -> None:
        self._mappings: dict[MappingKey, IdentityMapping] = {}

    def get(self, group_id: str, user_id: str) -> IdentityMapping | None:
        mapping = self._mappings.get((group_id, user_id))
        return mapping.model_copy() if mapping else None

    def insert(self, mapping: IdentityMapping) -> IdentityMapping:
        stored = self._mappings.setdefault((mapping.group_id, mapping.user_id), mapping)
        return stored.model_copy()

    def touch(self, group_id: str, user_id: str, last_used: str) -> None:
        mapping = self._mappings.get((group_id, user_id))
        if mapping is not None:
            mapping.last_used = last_used

    def list_by_group(self, group_id: str) -> list[IdentityMapping]:
        return [m.model_copy() for (g, _), m in self._mappings.items() if g == group_id]

    def list_by_user(self, user_id: str) -> list[IdentityMapping]:
        return [m.model_copy() for (_, u), m in self._mappings.items() if u == user_id]

    def delete(self, group_id: str, user_id: str) -> bool:
        return self._mappings.pop((group_id, user_id), None) is not None

    def __len__(self) -> int:
        return len(self._mappings)
