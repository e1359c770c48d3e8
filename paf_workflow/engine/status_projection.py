"""Status projection - derive submission status and step pointer from the ledger"""
from typing import List, Sequence

from ..domain.enums import StepStatus, SubmissionStatus
from ..domain.models import ApprovalStep


def _ordered(steps: Sequence[ApprovalStep]) -> List[ApprovalStep]:
    return sorted(steps, key=lambda s: s.step)


def derive_status(steps: Sequence[ApprovalStep], submitted: bool) -> SubmissionStatus:
    """
    Recompute the submission status from its ledger entries

    Args:
        steps: All ledger entries of one submission
        submitted: Whether the submission has left draft
    """
    statuses = [s.status for s in steps]
    if StepStatus.REJECTED in statuses:
        return SubmissionStatus.DENIED
    if statuses and all(s == StepStatus.APPROVED for s in statuses):
        return SubmissionStatus.APPROVED
    if any(s != StepStatus.PENDING for s in statuses):
        return SubmissionStatus.UNDER_REVIEW
    return SubmissionStatus.SUBMITTED if submitted else SubmissionStatus.DRAFT


def derive_current_step(steps: Sequence[ApprovalStep], submitted: bool) -> int:
    """Recompute the step pointer from the ledger; 0 means not yet submitted"""
    if not submitted or not steps:
        return 0

    ordered = _ordered(steps)
    for entry in ordered:
        if entry.status == StepStatus.REJECTED:
            return entry.step

    for entry in ordered:
        if entry.status != StepStatus.APPROVED:
            return entry.step
    return ordered[-1].step
