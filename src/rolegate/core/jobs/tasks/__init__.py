"""Background job tasks.

Each task module defines async functions registered in the worker.
"""

from rolegate.core.jobs.tasks.reconcile import (
    reconcile_actor_snapshot,
    reconcile_all_snapshots,
    reconcile_role_snapshots,
)


__all__ = [
    "reconcile_actor_snapshot",
    "reconcile_all_snapshots",
    "reconcile_role_snapshots",
]
