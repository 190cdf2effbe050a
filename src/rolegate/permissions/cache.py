"""Per-actor decision cache.

Decisions are memoized per actor and permission id, tagged with the role
they were computed from so a role change can drop exactly the affected
actors through a reverse index.

A caller that resolves and then stores a decision takes a token with
``begin()`` first. Any invalidation in between makes the token stale and
the late ``put`` is discarded, so a decision computed from a role before
its change can never land after the invalidation for that change.

The cache is pure memory: it performs no I/O and takes no locks.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from rolegate.core.constants import DEFAULT_CACHE_MAX_ENTRIES
from rolegate.permissions.models import utcnow


logger = structlog.get_logger()


@dataclass(frozen=True)
class CacheToken:
    """Snapshot of the invalidation counters taken before resolving."""

    generation: int
    epoch: int


@dataclass
class _Entry:
    role_id: str
    level: int
    valid_until: datetime | None
    stored_at: float
    decisions: dict[str, bool] = field(default_factory=dict)


class DecisionCache:
    """Bounded LRU cache of allow/deny decisions keyed by actor.

    Args:
        max_entries: Maximum number of actors kept
        ttl_seconds: Optional lifetime of an actor's entry
        clock: Monotonic clock, replaceable in tests
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._actors_by_role: dict[str, set[str]] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._entries)

    def begin(self, actor_id: str) -> CacheToken:
        """Take a token before resolving ``actor_id``."""
        return CacheToken(self._generations.get(actor_id, 0), self._epoch)

    def is_current(self, actor_id: str, token: CacheToken) -> bool:
        return token == self.begin(actor_id)

    def _drop(self, actor_id: str) -> None:
        entry = self._entries.pop(actor_id, None)
        if entry is None:
            return
        actors = self._actors_by_role.get(entry.role_id)
        if actors is not None:
            actors.discard(actor_id)
            if not actors:
                del self._actors_by_role[entry.role_id]

    def _live_entry(self, actor_id: str) -> _Entry | None:
        entry = self._entries.get(actor_id)
        if entry is None:
            return None
        if self.ttl_seconds is not None and self._clock() - entry.stored_at >= self.ttl_seconds:
            self._drop(actor_id)
            return None
        if entry.valid_until is not None and entry.valid_until <= utcnow():
            self._drop(actor_id)
            return None
        return entry

    def get(self, actor_id: str, permission_id: str) -> tuple[bool, bool]:
        """Look up a memoized decision.

        Returns:
            (allowed, found); ``allowed`` is meaningless when not found
        """
        entry = self._live_entry(actor_id)
        if entry is None or permission_id not in entry.decisions:
            return False, False
        self._entries.move_to_end(actor_id)
        return entry.decisions[permission_id], True

    def level(self, actor_id: str) -> int | None:
        """Rank of the role the actor's cached decisions were computed from."""
        entry = self._live_entry(actor_id)
        return entry.level if entry is not None else None

    def role_of(self, actor_id: str) -> tuple[str, int] | None:
        """Id and rank of the role the actor's cached decisions came from."""
        entry = self._live_entry(actor_id)
        return (entry.role_id, entry.level) if entry is not None else None

    def remember(
        self,
        actor_id: str,
        *,
        role_id: str,
        level: int,
        token: CacheToken,
        valid_until: datetime | None = None,
    ) -> bool:
        """Record which role an actor resolved to, without any decision.

        Returns:
            False if the token is stale and nothing was stored
        """
        if not self.is_current(actor_id, token):
            logger.debug("cache_put_discarded", actor_id=actor_id)
            return False
        self._entry_for(actor_id, role_id, level, valid_until)
        return True

    def put(
        self,
        actor_id: str,
        permission_id: str,
        allowed: bool,
        *,
        role_id: str,
        level: int,
        token: CacheToken,
        valid_until: datetime | None = None,
    ) -> bool:
        """Memoize a decision computed after ``begin()`` returned ``token``.

        Returns:
            False if the token is stale and nothing was stored
        """
        if not self.is_current(actor_id, token):
            logger.debug("cache_put_discarded", actor_id=actor_id, permission_id=permission_id)
            return False
        entry = self._entry_for(actor_id, role_id, level, valid_until)
        entry.decisions[permission_id] = allowed
        return True

    def _entry_for(
        self,
        actor_id: str,
        role_id: str,
        level: int,
        valid_until: datetime | None,
    ) -> _Entry:
        entry = self._live_entry(actor_id)
        if entry is None or entry.role_id != role_id or entry.level != level:
            self._drop(actor_id)
            entry = _Entry(
                role_id=role_id,
                level=level,
                valid_until=valid_until,
                stored_at=self._clock(),
            )
            self._entries[actor_id] = entry
            self._actors_by_role.setdefault(role_id, set()).add(actor_id)

        self._entries.move_to_end(actor_id)

        while len(self._entries) > self.max_entries:
            self._drop(next(iter(self._entries)))
        return entry

    def invalidate_actor(self, actor_id: str) -> None:
        """Forget everything about one actor and fence off in-flight puts."""
        self._generations[actor_id] = self._generations.get(actor_id, 0) + 1
        self._drop(actor_id)
        if len(self._generations) > self.max_entries:
            # Resetting generations is safe once the epoch moves on
            self._generations.clear()
            self._epoch += 1

    def invalidate_role(self, role_id: str) -> int:
        """Forget every actor whose decisions came from ``role_id``.

        Returns:
            Number of actors dropped
        """
        self._epoch += 1
        actor_ids = self._actors_by_role.pop(role_id, set())
        for actor_id in actor_ids:
            self._entries.pop(actor_id, None)
        logger.debug("cache_role_invalidated", role_id=role_id, actors=len(actor_ids))
        return len(actor_ids)

    def clear(self) -> None:
        self._epoch += 1
        self._entries.clear()
        self._actors_by_role.clear()
