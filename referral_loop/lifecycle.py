"""State machine for referral tracking tasks.

requested/awaiting-scheduling
  -> (planned encounter)                  in-progress/appointment-scheduled
  -> (arrived|triaged|in-progress)        in-progress/encounter-in-progress
  -> (finished encounter)                 completed/loop-closed
Any open task past its due date           failed/overdue

completed, failed and cancelled are terminal.
"""

import logging
from datetime import datetime

from referral_loop.dates import parse_instant, utcnow
from referral_loop.fhir import Encounter
from referral_loop.locks import patient_locks
from referral_loop.database.referral_repository import (
    TERMINAL_STATUSES,
    BusinessStatus,
    ReferralRepository,
    ReferralTask,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Encounter status -> (task status, business status)
ENCOUNTER_TRANSITIONS = {
    "planned": (TaskStatus.IN_PROGRESS, BusinessStatus.APPOINTMENT_SCHEDULED),
    "arrived": (TaskStatus.IN_PROGRESS, BusinessStatus.ENCOUNTER_IN_PROGRESS),
    "triaged": (TaskStatus.IN_PROGRESS, BusinessStatus.ENCOUNTER_IN_PROGRESS),
    "in-progress": (TaskStatus.IN_PROGRESS, BusinessStatus.ENCOUNTER_IN_PROGRESS),
    "finished": (TaskStatus.COMPLETED, BusinessStatus.LOOP_CLOSED),
}


def get_next_status(
    task: ReferralTask, encounter_status: str
) -> tuple[TaskStatus, BusinessStatus] | None:
    """Target state for a matched encounter, or None when nothing changes."""
    if task.status in TERMINAL_STATUSES:
        return None
    return ENCOUNTER_TRANSITIONS.get(encounter_status)


def advance(task: ReferralTask, encounter: Encounter, now: datetime | None = None) -> bool:
    """Apply a matched encounter to a task in place. Returns True if it changed."""
    target = get_next_status(task, encounter.status)
    if target is None:
        return False

    task.status, task.business_status = target
    task.last_modified = (now or utcnow()).isoformat()
    if task.status == TaskStatus.COMPLETED:
        task.output.append(f"Encounter/{encounter.id}")
    return True


def is_overdue(task: ReferralTask, now: datetime) -> bool:
    if not task.is_open:
        return False
    due = parse_instant(task.due_date, end_of_day=True)
    return due is not None and now > due


def sweep_overdue(tasks: list[ReferralTask], now: datetime | None = None) -> list[str]:
    """Mark open tasks past their due date as failed/overdue. Returns their IDs."""
    now = now or utcnow()
    overdue = []
    for task in tasks:
        if not is_overdue(task, now):
            continue
        task.status = TaskStatus.FAILED
        task.business_status = BusinessStatus.OVERDUE
        task.last_modified = now.isoformat()
        overdue.append(task.id)
    return overdue


class LifecycleManager:
    """Loads, transitions and saves tracking tasks under the patient lock."""

    def __init__(self, referrals: ReferralRepository | None = None):
        self.referrals = referrals or ReferralRepository()

    def advance_task(self, task_id: str, encounter: Encounter) -> ReferralTask | None:
        """
        Advance a stored task for a matched encounter.

        Callers processing an encounter already hold the patient lock; the lock
        is re-entrant so taking it again here is safe.
        """
        task = self.referrals.get_task(task_id)
        if task is None:
            return None
        with patient_locks.hold(task.patient_id):
            task = self.referrals.get_task(task_id)
            previous = (task.status, task.business_status)
            if advance(task, encounter):
                self.referrals.save_task(task)
                logger.info(
                    "Task %s: %s/%s -> %s/%s (encounter %s is %s)",
                    task.id, previous[0].value, previous[1].value,
                    task.status.value, task.business_status.value,
                    encounter.id, encounter.status,
                )
        return task

    def cancel_task(self, task_id: str) -> ReferralTask | None:
        """Cancel an open task from outside the matching flow."""
        task = self.referrals.get_task(task_id)
        if task is None:
            return None
        with patient_locks.hold(task.patient_id):
            task = self.referrals.get_task(task_id)
            if task.is_open:
                task.status = TaskStatus.CANCELLED
                task.business_status = BusinessStatus.CANCELLED
                task.last_modified = utcnow().isoformat()
                self.referrals.save_task(task)
                logger.info("Task %s cancelled", task.id)
        return task

    def sweep_overdue(self, now: datetime | None = None) -> list[str]:
        """Sweep every stored task, one patient lock at a time."""
        now = now or utcnow()
        overdue = []
        for task in self.referrals.list_tasks():
            if not is_overdue(task, now):
                continue
            with patient_locks.hold(task.patient_id):
                current = self.referrals.get_task(task.id)
                for task_id in sweep_overdue([current], now):
                    self.referrals.save_task(current)
                    overdue.append(task_id)
        if overdue:
            logger.info("Marked %d task(s) overdue: %s", len(overdue), ", ".join(overdue))
        return overdue
