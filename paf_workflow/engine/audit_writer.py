"""Audit Writer - Append-only audit events"""
from typing import Any, Dict, Optional

from ..domain.models import ActorContext, AuditEvent, PafSubmission
from ..domain.enums import ACTION_EVENT_TYPES, AuditEventType, StepAction, SubmissionStatus
from ..repositories.store import PafStore, StoreSession
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now
from ..utils.logger import get_correlation_id, get_logger

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit events (append-only)

    Transition events are written through the transition's store session so
    they commit or roll back with it. Refusals and conflicts are written
    directly to the store since their transaction never commits.
    """

    def __init__(self, store: PafStore):
        self.store = store

    def write_event(
        self,
        submission_id: str,
        event_type: AuditEventType,
        actor: ActorContext,
        step: Optional[int] = None,
        action: Optional[StepAction] = None,
        from_status: Optional[SubmissionStatus] = None,
        to_status: Optional[SubmissionStatus] = None,
        from_step: Optional[int] = None,
        to_step: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        session: Optional[StoreSession] = None
    ) -> AuditEvent:
        """Write a single audit event"""
        event = AuditEvent(
            audit_event_id=generate_audit_event_id(),
            submission_id=submission_id,
            step=step,
            event_type=event_type,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            action=action,
            from_status=from_status,
            to_status=to_status,
            from_step=from_step,
            to_step=to_step,
            details=details or {},
            timestamp=utc_now(),
            correlation_id=get_correlation_id()
        )

        (session or self.store).append_audit(event)
        return event

    def write_create(
        self,
        submission: PafSubmission,
        actor: ActorContext,
        session: StoreSession
    ) -> AuditEvent:
        """Write submission creation event"""
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.CREATE_SUBMISSION,
            actor=actor,
            to_status=submission.status,
            to_step=submission.current_step,
            details={"template_id": submission.template_id, "template_name": submission.template_name},
            session=session
        )

    def write_submit(
        self,
        submission: PafSubmission,
        actor: ActorContext,
        to_step: int,
        session: StoreSession
    ) -> AuditEvent:
        """Write draft -> submitted event"""
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.SUBMIT,
            actor=actor,
            from_status=submission.status,
            to_status=SubmissionStatus.SUBMITTED,
            from_step=submission.current_step,
            to_step=to_step,
            session=session
        )

    def write_form_updated(
        self,
        submission: PafSubmission,
        actor: ActorContext,
        changed_fields: list,
        session: StoreSession
    ) -> AuditEvent:
        """Write form data change event"""
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.FORM_UPDATED,
            actor=actor,
            from_status=submission.status,
            to_status=submission.status,
            details={"changed_fields": changed_fields},
            session=session
        )

    def write_step_action(
        self,
        submission: PafSubmission,
        step: int,
        action: StepAction,
        actor: ActorContext,
        to_status: SubmissionStatus,
        to_step: int,
        comments: Optional[str] = None,
        correction_reason: Optional[str] = None,
        reset_steps: Optional[list] = None,
        session: Optional[StoreSession] = None
    ) -> AuditEvent:
        """Write approve / reject / request_correction event"""
        details: Dict[str, Any] = {"comments": comments}
        if correction_reason is not None:
            details["correction_reason"] = correction_reason
        if reset_steps:
            details["reset_steps"] = reset_steps

        return self.write_event(
            submission_id=submission.submission_id,
            event_type=ACTION_EVENT_TYPES[action],
            actor=actor,
            step=step,
            action=action,
            from_status=submission.status,
            to_status=to_status,
            from_step=submission.current_step,
            to_step=to_step,
            details=details,
            session=session
        )

    def write_forbidden(
        self,
        submission: PafSubmission,
        step: int,
        action: StepAction,
        actor: ActorContext,
        required_role: str
    ) -> AuditEvent:
        """Write refused action event"""
        logger.warning(
            f"Role {actor.role.value} may not {action.value} step {step}",
            extra={"submission_id": submission.submission_id, "step": step, "actor_id": actor.actor_id}
        )
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.FORBIDDEN_ATTEMPT,
            actor=actor,
            step=step,
            action=action,
            from_status=submission.status,
            to_status=submission.status,
            from_step=submission.current_step,
            to_step=submission.current_step,
            details={"required_role": required_role}
        )

    def write_conflict(
        self,
        submission: PafSubmission,
        step: int,
        action: StepAction,
        actor: ActorContext,
        reason: str
    ) -> AuditEvent:
        """Write lost-race event"""
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.CONCURRENT_MODIFICATION,
            actor=actor,
            step=step,
            action=action,
            from_status=submission.status,
            from_step=submission.current_step,
            details={"reason": reason}
        )

    def write_status_rebuilt(
        self,
        submission: PafSubmission,
        actor: ActorContext,
        to_status: SubmissionStatus,
        to_step: int,
        session: StoreSession
    ) -> AuditEvent:
        """Write status repair event"""
        return self.write_event(
            submission_id=submission.submission_id,
            event_type=AuditEventType.STATUS_REBUILT,
            actor=actor,
            from_status=submission.status,
            to_status=to_status,
            from_step=submission.current_step,
            to_step=to_step,
            session=session
        )
