"""Snapshot reconciliation tasks.

Workers hold their own in-memory view of the roles, so every task reloads
it from storage before resolving anything.
"""

from typing import TYPE_CHECKING, Any

import structlog


if TYPE_CHECKING:
    from rolegate.permissions.engine import PermissionEngine


log = structlog.get_logger()


def _engine(ctx: dict[str, Any]) -> "PermissionEngine":
    return ctx["permission_engine"]


async def reconcile_role_snapshots(ctx: dict[str, Any], role_id: str) -> dict[str, Any]:
    """Reconcile every actor assigned ``role_id``.

    Args:
        ctx: Worker context containing the permission engine
        role_id: The role whose definition changed

    Returns:
        Dict with the role id and number of rewritten snapshots
    """
    engine = _engine(ctx)
    await engine.reload()
    changed = await engine.reconciler.reconcile_role(role_id)

    log.info("reconcile_role_snapshots_complete", role_id=role_id, changed=changed)
    return {"role_id": role_id, "changed": changed}


async def reconcile_actor_snapshot(ctx: dict[str, Any], actor_id: str) -> dict[str, Any]:
    """Reconcile a single actor after an assignment change."""
    engine = _engine(ctx)
    await engine.reload()
    changed = await engine.reconciler.reconcile(actor_id)

    log.info("reconcile_actor_snapshot_complete", actor_id=actor_id, changed=changed)
    return {"actor_id": actor_id, "changed": changed}


async def reconcile_all_snapshots(ctx: dict[str, Any]) -> dict[str, int]:
    """Reconcile every assigned actor.

    Scheduled nightly as a safety net for missed change events.
    """
    engine = _engine(ctx)
    await engine.reload()
    changed = await engine.reconciler.reconcile_all()

    log.info("reconcile_all_snapshots_complete", changed=changed)
    return {"changed": changed}
