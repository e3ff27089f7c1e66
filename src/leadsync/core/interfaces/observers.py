"""Observer protocol for reconciliation state transitions.

Observers decouple side effects (logging, cache refreshes, notifications)
from the polling loop itself.
"""

from typing import Optional, Protocol
from leadsync.core.models.job import JobSnapshot, ReconcileStatus


class ReconcileObserver(Protocol):
    """Observer protocol for reconciliation sessions.

    Implementations can react to:
    - on_status_changed: after the observable status took a new value
    - on_job_finished: after the tracked job reached completed/failed

    Both are awaited on the reconciler's loop task, one observer at a time.
    """

    async def on_status_changed(
        self,
        old_status: ReconcileStatus,
        new_status: ReconcileStatus,
    ) -> None:
        """Called once per distinct status value.

        Args:
            old_status: Status before the update
            new_status: Status after the update
        """
        ...

    async def on_job_finished(
        self,
        final_status: ReconcileStatus,
        snapshot: Optional[JobSnapshot],
    ) -> None:
        """Called once when the tracked job reaches a terminal state.

        Args:
            final_status: The terminal observable status
            snapshot: Terminal job snapshot (None when the client gave up)
        """
        ...
