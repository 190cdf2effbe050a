"""Change notification.

``EventBus`` is the in-process channel the stores publish to. Handlers
are awaited in subscription order, so by the time ``publish`` returns
every subscriber (cache invalidation first) has run.

``RedisRoleEventBridge`` connects the buses of several processes through
a Redis pub/sub channel.
"""

import asyncio
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError
from redis.exceptions import RedisError

from rolegate.core.cache import redis_client
from rolegate.core.constants import ROLE_EVENT_MAX_RETRY_SECONDS, ROLE_EVENT_RETRY_SECONDS


logger = structlog.get_logger()


class RoleChanged(BaseModel):
    """A role's permissions or level changed, or the role was deleted.

    Attributes:
        role_id: The affected role
        deleted: Whether the role no longer exists
        origin: Id of the process that made the change (None = this process)
    """

    model_config = ConfigDict(frozen=True)

    role_id: str
    deleted: bool = False
    origin: str | None = None


class AssignmentChanged(BaseModel):
    """An actor's role assignment was created, replaced or revoked."""

    model_config = ConfigDict(frozen=True)

    actor_id: str
    role_id: str | None = None
    previous_role_id: str | None = None


Event = RoleChanged | AssignmentChanged
E = TypeVar("E", RoleChanged, AssignmentChanged)
Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Async publish/subscribe for engine events."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None]]) -> None:
        """Register ``handler`` for events of ``event_type``."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None]]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: Event) -> None:
        """Deliver ``event`` to every subscriber, one after another."""
        for handler in list(self._handlers.get(type(event), [])):
            await handler(event)


class RedisRoleEventBridge:
    """Forward ``RoleChanged`` events between processes over Redis pub/sub.

    Local events (``origin`` is None) are published to the channel tagged
    with this bridge's instance id. Messages read from the channel are
    replayed into the local bus through ``on_remote``, except the ones
    this bridge published itself.

    The listener survives Redis outages: it reconnects with exponential
    backoff and, once subscribed again, calls ``on_resync`` so the process
    can catch up on changes published while it was away.
    """

    def __init__(
        self,
        bus: EventBus,
        channel: str,
        on_remote: Callable[[RoleChanged], Awaitable[None]],
        on_resync: Callable[[], Awaitable[Any]] | None = None,
        *,
        retry_delay: float = ROLE_EVENT_RETRY_SECONDS,
        max_retry_delay: float = ROLE_EVENT_MAX_RETRY_SECONDS,
    ) -> None:
        self.bus = bus
        self.channel = channel
        self.instance_id = uuid.uuid4().hex
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self._on_remote = on_remote
        self._on_resync = on_resync
        self._listener: asyncio.Task[None] | None = None
        self._subscribed = False

    async def start(self) -> None:
        """Start forwarding local events and listening for remote ones."""
        self.bus.subscribe(RoleChanged, self.forward)
        self._listener = asyncio.create_task(self.listen(), name=f"role-events:{self.channel}")
        self._listener.add_done_callback(self._listener_done)
        logger.info("role_event_bridge_started", channel=self.channel)

    def _listener_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "role_event_listener_stopped",
                channel=self.channel,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def stop(self) -> None:
        """Stop forwarding and listening; never raises the listener's failure."""
        self.bus.unsubscribe(RoleChanged, self.forward)
        listener, self._listener = self._listener, None
        if listener is None:
            return
        listener.cancel()
        try:
            await listener
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # Already reported by _listener_done
            logger.debug("role_event_listener_reaped", error=str(e))

    async def forward(self, event: RoleChanged) -> None:
        """Publish a locally originated event to the channel."""
        if event.origin is not None:
            return
        payload = event.model_copy(update={"origin": self.instance_id}).model_dump_json()
        try:
            async with redis_client() as client:
                await client.publish(self.channel, payload)
        except RedisError as e:
            # Other processes converge through refresh_roles()
            logger.warning("role_event_publish_failed", role_id=event.role_id, error=str(e))

    async def handle_message(self, data: str | bytes) -> None:
        """Replay one channel message into the local process.

        A malformed message or a failing handler is logged and dropped so
        the listener keeps running.
        """
        try:
            event = RoleChanged.model_validate_json(data)
        except ValidationError as e:
            logger.warning("role_event_malformed", channel=self.channel, error=str(e))
            return
        if event.origin == self.instance_id:
            return
        logger.debug("role_event_received", role_id=event.role_id, origin=event.origin)
        try:
            await self._on_remote(event)
        except Exception as e:
            logger.error(
                "role_event_handling_failed",
                role_id=event.role_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _resync(self) -> None:
        if self._on_resync is None:
            return
        try:
            await self._on_resync()
        except Exception as e:
            logger.error("role_event_resync_failed", channel=self.channel, error=str(e))

    async def _listen_once(self, *, resync: bool) -> None:
        async with redis_client() as client:
            pubsub = client.pubsub()
            await pubsub.subscribe(self.channel)
            self._subscribed = True
            try:
                if resync:
                    await self._resync()
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    await self.handle_message(message["data"])
            finally:
                with suppress(RedisError):
                    await pubsub.unsubscribe(self.channel)
                with suppress(RedisError):
                    await pubsub.aclose()

    async def listen(self) -> None:
        """Read the channel until cancelled, reconnecting after Redis errors."""
        delay = self.retry_delay
        resync = False
        while True:
            self._subscribed = False
            failure: RedisError | None = None
            try:
                await self._listen_once(resync=resync)
            except RedisError as e:
                failure = e
            if self._subscribed:
                delay = self.retry_delay
            if failure is not None:
                logger.warning(
                    "role_event_listener_failed",
                    channel=self.channel,
                    error=str(failure),
                    retry_in=delay,
                )
            else:
                logger.info("role_event_subscription_closed", channel=self.channel, retry_in=delay)
            resync = True
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_retry_delay)
