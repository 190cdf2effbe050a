"""Composition root of the permission engine.

One ``PermissionEngine`` is built per process and handed to whoever needs
to ask "may I do X". It wires the components together and owns the
event subscriptions that keep the cache and snapshots consistent with
role changes:

    persist role -> RoleChanged -> invalidate cache -> reconcile (background)
"""

import asyncio
from collections.abc import Coroutine, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from rolegate.config import Settings, get_settings
from rolegate.core.cache import close_redis_pool, configure_redis
from rolegate.core.constants import SYSTEM_ACTOR
from rolegate.core.jobs.registry import close_arq_pool, enqueue, init_arq_pool
from rolegate.permissions.assignments import AssignmentStore
from rolegate.permissions.bootstrap import bootstrap
from rolegate.permissions.cache import DecisionCache
from rolegate.permissions.catalog import PermissionCatalog
from rolegate.permissions.events import (
    AssignmentChanged,
    EventBus,
    RedisRoleEventBridge,
    RoleChanged,
)
from rolegate.permissions.guard import Decision, Guard, Requirement
from rolegate.permissions.models import (
    ActorRoleAssignment,
    Permission,
    PermissionId,
    Role,
)
from rolegate.permissions.reconciler import Reconciler
from rolegate.permissions.resolver import ResolvedPermissions, Resolver
from rolegate.permissions.roles import RoleStore


if TYPE_CHECKING:
    from rolegate.storage.base import PermissionStorage


logger = structlog.get_logger()

# Origin tag of events produced by refresh_roles(); never forwarded to Redis
POLL_ORIGIN = "poll"


class PermissionEngine:
    """Owns every engine component for one process.

    Usage:
        engine = PermissionEngine(SqlAlchemyStorage(session_factory), settings)
        await engine.start()
        await engine.start_session(actor_id)
        if await engine.allow(actor_id, Requirement.permission("project:write")):
            ...
        await engine.close()
    """

    def __init__(self, storage: "PermissionStorage", settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.storage = storage

        self.bus = EventBus()
        self.catalog = PermissionCatalog(storage)
        self.roles = RoleStore(storage, self.catalog, self.bus)
        self.assignments = AssignmentStore(
            storage,
            self.roles,
            self.bus,
            default_role_id=self.settings.default_role_id,
            owner_actor_ids=self.settings.owner_actor_ids,
        )
        self.resolver = Resolver(
            self.catalog,
            self.roles,
            self.assignments,
            default_role_id=self.settings.default_role_id,
        )
        self.reconciler = Reconciler(
            self.resolver,
            self.roles,
            self.assignments,
            concurrency=self.settings.reconcile_concurrency,
        )
        self.cache = DecisionCache(
            max_entries=self.settings.decision_cache_max_entries,
            ttl_seconds=self.settings.decision_cache_ttl_seconds,
        )
        self.guard = Guard(self.catalog, self.resolver, self.cache, self.assignments)

        self.bridge: RedisRoleEventBridge | None = None
        self._poller: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = False

    async def __aenter__(self) -> "PermissionEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ============================================================
    # Lifecycle
    # ============================================================

    async def start(self, *, bridge: bool = False) -> None:
        """Load state and wire event handling.

        Args:
            bridge: Also relay role changes between processes through Redis
        """
        if self._started:
            return

        if self.settings.bootstrap_on_start:
            await bootstrap(self.storage)
        await self.reload()

        if self.settings.reconcile_backend == "arq":
            await init_arq_pool(self.settings)

        # Invalidation is subscribed first so it finishes before anything else runs
        self.bus.subscribe(RoleChanged, self._on_role_changed)
        self.bus.subscribe(AssignmentChanged, self._on_assignment_changed)

        if bridge:
            configure_redis(str(self.settings.redis_url))
            self.bridge = RedisRoleEventBridge(
                self.bus,
                self.settings.role_events_channel,
                on_remote=self._on_remote_role_changed,
                on_resync=self.refresh_roles,
            )
            await self.bridge.start()

        interval = self.settings.role_poll_interval_seconds
        if interval is not None:
            self._poller = asyncio.create_task(self._poll_roles(interval), name="role-poller")

        self._started = True
        logger.info(
            "permission_engine_started",
            permissions=len(self.catalog),
            roles=len(self.roles),
            reconcile_backend=self.settings.reconcile_backend,
            bridge=bridge,
            role_poll_interval_seconds=interval,
        )

    async def reload(self) -> None:
        """Reload the catalog and roles from storage without emitting events."""
        await self.catalog.load()
        await self.roles.load()

    async def drain(self) -> None:
        """Wait for every outstanding background reconciliation."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop the bridge and the poller, then cancel background work."""
        try:
            if self.bridge is not None:
                bridge, self.bridge = self.bridge, None
                try:
                    await bridge.stop()
                finally:
                    await close_redis_pool()
        finally:
            poller, self._poller = self._poller, None
            tasks = list(self._tasks)
            if poller is not None:
                tasks.append(poller)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

            if self._started:
                self.bus.unsubscribe(RoleChanged, self._on_role_changed)
                self.bus.unsubscribe(AssignmentChanged, self._on_assignment_changed)
                self._started = False
                if self.settings.reconcile_backend == "arq":
                    await close_arq_pool()
        logger.info("permission_engine_closed")

    # ============================================================
    # Event handling
    # ============================================================

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def _on_role_changed(self, event: RoleChanged) -> None:
        dropped = self.cache.invalidate_role(event.role_id)
        logger.info(
            "role_changed",
            role_id=event.role_id,
            deleted=event.deleted,
            origin=event.origin,
            cached_actors_dropped=dropped,
        )
        if event.deleted:
            # Reassigned actors arrive as AssignmentChanged events
            return
        if self.settings.reconcile_backend == "arq":
            self._spawn(
                enqueue("reconcile_role_snapshots", event.role_id),
                name=f"enqueue-reconcile-role:{event.role_id}",
            )
        else:
            self._spawn(
                self.reconciler.reconcile_role(event.role_id),
                name=f"reconcile-role:{event.role_id}",
            )

    async def _on_assignment_changed(self, event: AssignmentChanged) -> None:
        self.cache.invalidate_actor(event.actor_id)
        if event.role_id is None:
            return
        if self.settings.reconcile_backend == "arq":
            self._spawn(
                enqueue("reconcile_actor_snapshot", event.actor_id),
                name=f"enqueue-reconcile-actor:{event.actor_id}",
            )
        else:
            self._spawn(
                self.reconciler.reconcile(event.actor_id),
                name=f"reconcile-actor:{event.actor_id}",
            )

    async def _on_remote_role_changed(self, event: RoleChanged) -> None:
        await self.roles.reload(event.role_id)
        await self.bus.publish(event)

    async def _poll_roles(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                changed = await self.refresh_roles()
            except Exception as e:
                # Storage may be briefly unreachable; try again next round
                logger.error(
                    "role_poll_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if changed:
                logger.info("role_poll_changes", role_ids=changed)

    async def refresh_roles(self) -> list[str]:
        """Poll storage for role changes made by other processes.

        Returns:
            Ids of the roles that changed; a ``RoleChanged`` was emitted
            for each
        """
        await self.catalog.load()
        changed = await self.roles.reload_all()
        for role_id in changed:
            await self.bus.publish(
                RoleChanged(
                    role_id=role_id,
                    deleted=self.roles.get(role_id) is None,
                    origin=POLL_ORIGIN,
                )
            )
        return changed

    # ============================================================
    # Queries
    # ============================================================

    async def start_session(self, actor_id: str) -> ResolvedPermissions:
        """Prepare an authenticated actor for permission checks.

        Creates the actor's assignment on first sight and reconciles its
        snapshot.
        """
        await self.assignments.ensure(actor_id)
        await self.reconciler.reconcile(actor_id)
        return await self.resolver.resolve(actor_id)

    async def allow(
        self,
        actor_id: str,
        requirement: Requirement | str,
        resource_owner_id: str | None = None,
    ) -> Decision:
        """Decide a requirement; a bare string is a single-permission requirement."""
        if isinstance(requirement, str):
            requirement = Requirement.permission(requirement)
        return await self.guard.allow(actor_id, requirement, resource_owner_id)

    def permission_id(self, raw: str) -> PermissionId:
        return self.catalog.permission_id(raw)

    async def resolve(self, actor_id: str) -> ResolvedPermissions:
        return await self.resolver.resolve(actor_id)

    async def snapshot(self, actor_id: str, *, reconcile: bool = True) -> ResolvedPermissions:
        """Read an actor's permissions the cheap way, from its stored snapshot.

        Args:
            actor_id: The actor to read
            reconcile: Heal the snapshot first so the answer is current

        Returns:
            The snapshot-backed resolution, or a full one when the
            snapshot cannot be trusted
        """
        if reconcile:
            await self.reconciler.reconcile(actor_id)
        return await self.resolver.resolve_from_snapshot(actor_id)

    # ============================================================
    # Administration
    # ============================================================

    async def assign(
        self,
        actor_id: str,
        role_id: str,
        *,
        assigned_by: str | None = None,
        expires_at: datetime | None = None,
    ) -> ActorRoleAssignment:
        return await self.assignments.assign(
            actor_id, role_id, assigned_by=assigned_by, expires_at=expires_at
        )

    async def apply_catalog_batch(
        self,
        *,
        register: Iterable[Permission] = (),
        retire: Iterable[str] = (),
        roles: Iterable[Role] = (),
        updated_by: str = SYSTEM_ACTOR,
    ) -> None:
        await self.catalog.apply_batch(
            self.roles,
            register=register,
            retire=retire,
            roles=roles,
            updated_by=updated_by,
        )
