"""Talk ID management: maps LINE identities to Makkaizou conversations."""

from __future__ import annotations

import logging
import random
from datetime import UTC, datetime

from src.mapping.repository import MappingRepository
from src.models import IdentityMapping

logger = logging.getLogger(__name__)

TALK_ID_PREFIX = "wiz-user-id-"


def generate_talk_id() -> str:
    """Return the prefix followed by a random 6-digit number."""
    return f"{TALK_ID_PREFIX}{random.randint(100000, 999999)}"


class TalkIdManager:
    """Resolves and administers talk_id mappings.

    Generated IDs are not checked against existing ones; with 900,000
    possible values per prefix a collision is accepted as negligible.
    """

    def __init__(self, repository: MappingRepository) -> None:
        self._repo = repository

    def resolve(self, group_id: str, user_id: str) -> str:
        """Return the talk_id for a pair, creating one on first contact."""
        now = datetime.now(UTC).isoformat()
        existing = self._repo.get(group_id, user_id)
        if existing is not None:
            self._repo.touch(group_id, user_id, now)
            return existing.talk_id

        mapping = self._repo.insert(IdentityMapping(
            group_id=group_id,
            user_id=user_id,
            talk_id=generate_talk_id(),
            created_at=now,
            last_used=now,
        ))
        logger.info(
            "Created new talk_id %s (group=%s user=%s)",
            mapping.talk_id, group_id, user_id,
        )
        return mapping.talk_id

    def list_for_group(self, group_id: str) -> list[IdentityMapping]:
        return self._repo.list_by_group(group_id)

    def list_for_user(self, user_id: str) -> list[IdentityMapping]:
        return self._repo.list_by_user(user_id)

    def delete(self, group_id: str, user_id: str) -> bool:
        deleted = self._repo.delete(group_id, user_id)
        if deleted:
            logger.info("Deleted talk_id mapping (group=%s user=%s)", group_id, user_id)
        return deleted
