# backend/commerce/services/scheduling/state_transitions.py
"""
Replenishment state machine.

Pure functions over ReplenishmentStatus so the guards can be checked
without a database or a queue.
"""

from typing import Optional

from ...enums import RejectionReason, ReplenishmentStatus

REJECTION_MESSAGES = {
    RejectionReason.FINISHED_IMMUTABLE: "Finished replenishments cannot be updated",
    RejectionReason.SCHEDULED_REQUIRES_START_DATE: (
        "A scheduled replenishment requires a new start date"
    ),
    RejectionReason.ACTIVE_FORBIDS_START_DATE: (
        "An active replenishment cannot be given a new start date"
    ),
    RejectionReason.CANCELED_IMMUTABLE: (
        "Canceled replenishments cannot be updated; remove it and create a new one"
    ),
    RejectionReason.CANNOT_CANCEL_FINISHED: (
        "Finished or failed replenishments cannot be canceled or resumed"
    ),
}


def allowed_update(
    status: ReplenishmentStatus, has_new_start_date: bool
) -> Optional[RejectionReason]:
    """
    Check whether a replenishment in ``status`` may be updated.

    Returns:
        None when the update may proceed, otherwise the rejection reason
    """
    if status in (ReplenishmentStatus.FINISHED, ReplenishmentStatus.FAILED):
        return RejectionReason.FINISHED_IMMUTABLE
    if status == ReplenishmentStatus.SCHEDULED and not has_new_start_date:
        return RejectionReason.SCHEDULED_REQUIRES_START_DATE
    if status == ReplenishmentStatus.ACTIVE and has_new_start_date:
        return RejectionReason.ACTIVE_FORBIDS_START_DATE
    if status == ReplenishmentStatus.CANCELED:
        return RejectionReason.CANCELED_IMMUTABLE
    return None


def allowed_cancel_toggle(status: ReplenishmentStatus) -> Optional[RejectionReason]:
    """Cancel and resume are only possible before a replenishment ends."""
    if status in (ReplenishmentStatus.FINISHED, ReplenishmentStatus.FAILED):
        return RejectionReason.CANNOT_CANCEL_FINISHED
    return None


def rejection_message(reason: RejectionReason) -> str:
    return REJECTION_MESSAGES[reason]
