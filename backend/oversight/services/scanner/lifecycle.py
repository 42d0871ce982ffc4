from __future__ import annotations

"""backend/oversight/services/scanner/lifecycle.py

Scan status state machine.

    pending -> cloning -> scanning -> completed
       |          |           |
       +----------+-----------+---> failed

Moves are forward only. ``pending -> failed`` is allowed so an internal
fault before the clone starts still ends in a terminal state. Terminal
states never change again.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet

from oversight.errors import InvalidTransition
from oversight.models import ScanStatus
from oversight.schemas import ScanJob

ACTIVE_STATUSES: FrozenSet[ScanStatus] = frozenset(
    {ScanStatus.PENDING, ScanStatus.CLONING, ScanStatus.SCANNING}
)
TERMINAL_STATUSES: FrozenSet[ScanStatus] = frozenset(
    {ScanStatus.COMPLETED, ScanStatus.FAILED}
)

ALLOWED_TRANSITIONS: Dict[ScanStatus, FrozenSet[ScanStatus]] = {
    ScanStatus.PENDING: frozenset({ScanStatus.CLONING, ScanStatus.FAILED}),
    ScanStatus.CLONING: frozenset({ScanStatus.SCANNING, ScanStatus.FAILED}),
    ScanStatus.SCANNING: frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED}),
    ScanStatus.COMPLETED: frozenset(),
    ScanStatus.FAILED: frozenset(),
}


def can_transition(current: ScanStatus, new_status: ScanStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS[current]


def transition(
    job: ScanJob,
    new_status: ScanStatus,
    *,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> ScanJob:
    """Move ``job`` to ``new_status`` in place and return it.

    Entering a terminal state stamps ``completed_at`` (once).

    Raises:
        InvalidTransition: the move is backwards or leaves a terminal state.
    """
    if not can_transition(job.status, new_status):
        raise InvalidTransition(job.id, job.status.value, new_status.value)

    job.status = new_status
    if new_status in TERMINAL_STATUSES and job.completed_at is None:
        job.completed_at = now()
    return job
