"""Snapshot reconciliation.

A snapshot is a cached copy of what the resolver returns for an actor.
Reconciling compares the two and overwrites the snapshot with the
canonical set when they differ. Running it twice, or for the same actor
concurrently, is harmless: the last writer wins and writes a whole set.
"""

import asyncio

import structlog

from rolegate.permissions.assignments import AssignmentStore
from rolegate.permissions.resolver import Resolver
from rolegate.permissions.roles import RoleStore


logger = structlog.get_logger()


class Reconciler:
    """Heals drift between stored snapshots and canonical role definitions."""

    def __init__(
        self,
        resolver: Resolver,
        roles: RoleStore,
        assignments: AssignmentStore,
        *,
        concurrency: int = 10,
    ) -> None:
        self._resolver = resolver
        self._roles = roles
        self._assignments = assignments
        self._concurrency = concurrency

    async def reconcile(self, actor_id: str) -> bool:
        """Bring one actor's snapshot in line with its resolved permissions.

        Args:
            actor_id: The actor to reconcile

        Returns:
            True if the snapshot was rewritten
        """
        resolved = await self._resolver.resolve(actor_id)
        assignment = resolved.assignment
        if assignment is None:
            # No stored record to hold a snapshot
            return False
        if assignment.permission_snapshot == resolved.permissions:
            return False

        changed = await self._assignments.write_snapshot(
            actor_id,
            expected_role_id=assignment.role_id,
            snapshot=resolved.permissions,
        )
        if changed:
            previous = assignment.permission_snapshot or frozenset()
            logger.info(
                "snapshot_reconciled",
                actor_id=actor_id,
                role_id=resolved.role.id,
                added=sorted(resolved.permissions - previous),
                removed=sorted(previous - resolved.permissions),
            )
        return changed

    async def reconcile_actors(self, actor_ids: list[str]) -> int:
        """Reconcile many actors with bounded concurrency.

        Returns:
            Number of snapshots rewritten

        Raises:
            Exception: The first failure, after every actor has been tried
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(actor_id: str) -> bool:
            async with semaphore:
                return await self.reconcile(actor_id)

        results = await asyncio.gather(
            *(_one(actor_id) for actor_id in actor_ids),
            return_exceptions=True,
        )

        failures = []
        changed = 0
        for actor_id, result in zip(actor_ids, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("reconcile_failed", actor_id=actor_id, error=str(result))
                failures.append(result)
            elif result:
                changed += 1

        if failures:
            raise failures[0]
        return changed

    async def reconcile_role(self, role_id: str) -> int:
        """Reconcile every actor assigned ``role_id``.

        Returns:
            Number of snapshots rewritten
        """
        actor_ids = await self._assignments.actor_ids_for_role(role_id)
        changed = await self.reconcile_actors(actor_ids)
        logger.info(
            "role_reconciled",
            role_id=role_id,
            actors=len(actor_ids),
            changed=changed,
        )
        return changed

    async def reconcile_all(self) -> int:
        """Reconcile the actors of every role.

        Returns:
            Number of snapshots rewritten
        """
        total = 0
        for role in self._roles.list():
            total += await self.reconcile_role(role.id)
        return total
