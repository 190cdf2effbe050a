"""Background job processing with ARQ.

Snapshot reconciliation can be moved out of the request process onto
arq workers. Run the worker with:

    arq rolegate.core.jobs.worker.WorkerSettings
"""

from rolegate.core.jobs.registry import (
    close_arq_pool,
    enqueue,
    get_arq_pool,
    init_arq_pool,
)


__all__ = [
    "close_arq_pool",
    "enqueue",
    "get_arq_pool",
    "init_arq_pool",
]
