"""
PAF Workflow Engine - The Brain of the System

This module contains the PafWorkflowEngine class, the only component that
creates or mutates submissions and their approval ledger.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. TEMPLATES
   - create_template / update_template (through TemplateRegistry)

2. SUBMISSION LIFECYCLE
   - create_submission: draft + one pending ledger entry per template step
   - submit: draft -> submitted, pointer to the first step
   - update_form_data: edits while in draft or under correction

3. STEP ACTIONS
   - act: approve / reject / request_correction on the current step

4. READS & REPAIR
   - get_submission, get_steps, rebuild_status

Every transition writes its ledger updates, the submission update and its
audit event through one store transaction. Ledger updates are
compare-and-set on the entry's status and version, the submission update on
its version; a lost race surfaces as ConcurrentModificationError.
=============================================================================
"""

import hashlib
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..domain.models import (
    ActorContext, ApprovalStep, PafSubmission, StepDefinition, WorkflowTemplate
)
from ..domain.enums import (
    ACTIONABLE_STATUSES, ACTIONABLE_STEP_STATUSES, TERMINAL_STATUSES,
    StepAction, StepStatus, SubmissionStatus
)
from ..domain.errors import (
    ConcurrentModificationError, ForbiddenError, InvalidTransitionError,
    StepNotFoundError, StepOutOfOrderError, SubmissionNotFoundError
)
from ..repositories.store import PafStore
from .audit_writer import AuditWriter
from .role_gate import RoleGate, build_role_gate
from .status_projection import derive_current_step, derive_status
from .template_registry import TemplateRegistry, validate_steps
from ..utils.idgen import generate_submission_id, generate_template_id
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Fields cleared when a correction sends an approved step back to pending
RESET_STEP_FIELDS: Dict[str, Any] = {
    "status": StepStatus.PENDING,
    "approver_user_id": None,
    "signed_at": None,
    "signature": None,
    "comments": None,
}


class PafWorkflowEngine:
    """
    The PAF Workflow Engine - orchestrator for all submission operations

    Responsibilities:
    - Materialize the approval ledger from a template
    - Enforce the status machine and the step ordering
    - Authorize step actions via the injected RoleGate
    - Keep the cached submission status consistent with the ledger
    - Write audit events atomically with each transition
    """

    def __init__(
        self,
        store: PafStore,
        role_gate: Optional[RoleGate] = None,
        audit_writer: Optional[AuditWriter] = None
    ):
        self.store = store
        self.templates = TemplateRegistry(store)
        self.role_gate = role_gate or build_role_gate(settings)
        self.audit_writer = audit_writer or AuditWriter(store)

    # =========================================================================
    # Templates
    # =========================================================================

    def create_template(
        self,
        name: str,
        steps: List[StepDefinition],
        actor: ActorContext,
        description: Optional[str] = None,
        tenant_id: Optional[str] = None,
        is_default: bool = False
    ) -> WorkflowTemplate:
        """Create a new workflow template"""
        now = utc_now()
        template = WorkflowTemplate(
            template_id=generate_template_id(),
            name=name,
            description=description,
            steps=list(steps),
            tenant_id=tenant_id,
            is_default=is_default,
            created_by=actor.actor_id,
            created_at=now,
            updated_at=now
        )
        return self.templates.create(template)

    def update_template(
        self,
        template_id: str,
        actor: ActorContext,
        name: Optional[str] = None,
        description: Optional[str] = None,
        steps: Optional[List[StepDefinition]] = None,
        is_default: Optional[bool] = None,
        expected_version: Optional[int] = None
    ) -> WorkflowTemplate:
        """
        Edit a template

        Templates referenced by any non-draft submission are frozen; existing
        drafts keep the ledger they were created with either way.
        """
        template = self.templates.get(template_id)

        if self.store.template_in_use(template_id):
            raise InvalidTransitionError(
                f"Template {template_id} is referenced by submitted PAFs and cannot be changed",
                details={"template_id": template_id},
                error_code="TEMPLATE_IN_USE"
            )

        updates: Dict[str, Any] = {"updated_at": utc_now()}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if steps is not None:
            updates["steps"] = list(steps)
        if is_default is not None:
            updates["is_default"] = is_default

        version = template.version if expected_version is None else expected_version
        updated = self.templates.replace(template.model_copy(update=updates), expected_version=version)

        logger.info(
            f"Template updated by {actor.actor_id}",
            extra={"template_id": template_id, "actor_id": actor.actor_id}
        )
        return updated

    # =========================================================================
    # Submission Lifecycle
    # =========================================================================

    def create_submission(
        self,
        template_id: str,
        form_data: Optional[Dict[str, Any]],
        actor: ActorContext,
        tenant_id: Optional[str] = None
    ) -> PafSubmission:
        """
        Create a draft submission and its approval ledger

        One pending ledger entry per template step is written in the same
        transaction as the submission and its audit event; step numbers are
        the template's orders.
        """
        template = self.templates.get(template_id)
        step_definitions = validate_steps(template.steps)

        now = utc_now()
        submission = PafSubmission(
            submission_id=generate_submission_id(),
            tenant_id=tenant_id or actor.tenant_id or settings.default_tenant_id,
            template_id=template.template_id,
            template_name=template.name,
            form_data=dict(form_data or {}),
            status=SubmissionStatus.DRAFT,
            current_step=0,
            submitted_by=actor.actor_id,
            created_at=now,
            updated_at=now
        )
        ledger = [
            ApprovalStep(
                submission_id=submission.submission_id,
                step=definition.order,
                title=definition.title,
                approver_role=definition.role,
                updated_at=now
            )
            for definition in step_definitions
        ]

        with self.store.transaction() as session:
            session.insert_submission(submission)
            session.insert_steps(ledger)
            self.audit_writer.write_create(submission, actor, session=session)

        logger.info(
            f"Created submission from template {template.name}",
            extra={
                "submission_id": submission.submission_id,
                "template_id": template.template_id,
                "tenant_id": submission.tenant_id,
                "actor_id": actor.actor_id,
            }
        )
        return submission

    def submit(self, submission_id: str, actor: ActorContext) -> PafSubmission:
        """Move a draft into the approval chain"""
        submission = self.get_submission(submission_id)

        if submission.status != SubmissionStatus.DRAFT:
            raise InvalidTransitionError(
                f"Cannot submit a submission in {submission.status.value} status",
                details={"status": submission.status.value}
            )

        ledger = self.store.get_steps(submission_id)
        first_step = ledger[0].step if ledger else 1

        now = utc_now()
        updates = {
            "status": SubmissionStatus.SUBMITTED,
            "current_step": first_step,
            "submitted_at": now,
            "updated_at": now,
        }

        with self.store.transaction() as session:
            session.update_submission(submission_id, updates, expected_version=submission.version)
            self.audit_writer.write_submit(submission, actor, to_step=first_step, session=session)

        logger.info(
            "Submission submitted",
            extra={"submission_id": submission_id, "actor_id": actor.actor_id, "status": "submitted"}
        )
        return submission.model_copy(update={**updates, "version": submission.version + 1})

    def update_form_data(
        self,
        submission_id: str,
        form_data: Dict[str, Any],
        actor: ActorContext
    ) -> PafSubmission:
        """
        Replace the form data of a submission

        Allowed while in draft, or under review while a step awaits
        corrections. The ledger is not touched.
        """
        submission = self.get_submission(submission_id)

        correcting = submission.status == SubmissionStatus.UNDER_REVIEW and any(
            s.status == StepStatus.NEEDS_CORRECTION for s in self.store.get_steps(submission_id)
        )
        if submission.status != SubmissionStatus.DRAFT and not correcting:
            raise InvalidTransitionError(
                f"Form data cannot be changed in {submission.status.value} status",
                details={"status": submission.status.value}
            )

        new_data = dict(form_data)
        changed = sorted(
            key for key in set(submission.form_data) | set(new_data)
            if submission.form_data.get(key) != new_data.get(key)
        )
        updates = {"form_data": new_data, "updated_at": utc_now()}

        with self.store.transaction() as session:
            session.update_submission(submission_id, updates, expected_version=submission.version)
            self.audit_writer.write_form_updated(submission, actor, changed, session=session)

        logger.info(
            f"Form data updated ({len(changed)} fields)",
            extra={"submission_id": submission_id, "actor_id": actor.actor_id}
        )
        return submission.model_copy(update={**updates, "version": submission.version + 1})

    # =========================================================================
    # Step Actions
    # =========================================================================

    def act(
        self,
        submission_id: str,
        step: int,
        action: StepAction,
        actor: ActorContext,
        comments: Optional[str] = None,
        signature: Optional[str] = None,
        correction_reason: Optional[str] = None
    ) -> Tuple[PafSubmission, ApprovalStep]:
        """
        Apply an approver's decision to the current step

        Returns:
            The updated submission and ledger entry

        Raises:
            SubmissionNotFoundError: Unknown submission
            InvalidTransitionError: Submission is terminal or still in draft
            StepOutOfOrderError: ``step`` is not the current step
            ForbiddenError: Actor's role may not act on the step
            ConcurrentModificationError: Entry already decided or lost a race
        """
        action = StepAction(action)
        submission = self.get_submission(submission_id)

        if submission.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Submission is {submission.status.value}; no further actions are allowed",
                details={"status": submission.status.value}
            )

        if step != submission.current_step:
            raise StepOutOfOrderError(
                f"Step {step} is not the current step",
                details={"requested_step": step, "current_step": submission.current_step}
            )

        if submission.status not in ACTIONABLE_STATUSES:
            raise InvalidTransitionError(
                f"Submission in {submission.status.value} status cannot be acted on",
                details={"status": submission.status.value}
            )

        ledger = self.store.get_steps(submission_id)
        entry = next((s for s in ledger if s.step == step), None)
        if entry is None:
            raise StepNotFoundError(f"Step {step} of submission {submission_id} not found")

        if not self.role_gate.authorize(actor.role, entry.approver_role):
            self.audit_writer.write_forbidden(
                submission, step, action, actor, required_role=entry.approver_role.value
            )
            raise ForbiddenError(
                f"Role {actor.role.value} cannot act on step {step}",
                details={"required_role": entry.approver_role.value, "actor_role": actor.role.value}
            )

        if entry.status not in ACTIONABLE_STEP_STATUSES:
            self.audit_writer.write_conflict(
                submission, step, action, actor, reason=f"step already {entry.status.value}"
            )
            raise ConcurrentModificationError(
                f"Step {step} is already {entry.status.value}",
                details={"step": step, "status": entry.status.value}
            )

        now = utc_now()
        entry_updates = self._entry_updates(
            submission_id, step, action, actor, now, comments, signature, correction_reason
        )

        resets: List[ApprovalStep] = []
        if action == StepAction.REQUEST_CORRECTION:
            resets = [s for s in ledger if s.step != step and s.status == StepStatus.APPROVED]

        reset_steps = {r.step for r in resets}
        new_ledger = []
        for s in ledger:
            if s.step == step:
                new_ledger.append(s.model_copy(update=entry_updates))
            elif s.step in reset_steps:
                new_ledger.append(s.model_copy(update=RESET_STEP_FIELDS))
            else:
                new_ledger.append(s)

        to_status = derive_status(new_ledger, submitted=True)
        to_step = derive_current_step(new_ledger, submitted=True)

        submission_updates: Dict[str, Any] = {
            "status": to_status,
            "current_step": to_step,
            "updated_at": now,
        }
        if submission.first_reviewed_at is None:
            submission_updates["first_reviewed_at"] = now
        if to_status in TERMINAL_STATUSES:
            submission_updates["completed_at"] = now

        try:
            with self.store.transaction() as session:
                session.update_step(
                    submission_id, step, entry_updates,
                    expected_status=entry.status, expected_version=entry.version
                )
                for reset in resets:
                    session.update_step(
                        submission_id, reset.step, {**RESET_STEP_FIELDS, "updated_at": now},
                        expected_status=StepStatus.APPROVED, expected_version=reset.version
                    )
                session.update_submission(
                    submission_id, submission_updates, expected_version=submission.version
                )
                self.audit_writer.write_step_action(
                    submission, step, action, actor,
                    to_status=to_status,
                    to_step=to_step,
                    comments=comments,
                    correction_reason=entry_updates.get("correction_reason"),
                    reset_steps=sorted(reset_steps),
                    session=session
                )
        except ConcurrentModificationError as e:
            self.audit_writer.write_conflict(submission, step, action, actor, reason=e.message)
            raise

        logger.info(
            f"Step {step} {action.value} -> submission {to_status.value}",
            extra={
                "submission_id": submission_id,
                "step": step,
                "action": action.value,
                "actor_id": actor.actor_id,
                "status": to_status.value,
            }
        )

        updated_submission = submission.model_copy(
            update={**submission_updates, "version": submission.version + 1}
        )
        updated_entry = entry.model_copy(update={**entry_updates, "version": entry.version + 1})
        return updated_submission, updated_entry

    def _entry_updates(
        self,
        submission_id: str,
        step: int,
        action: StepAction,
        actor: ActorContext,
        now,
        comments: Optional[str],
        signature: Optional[str],
        correction_reason: Optional[str]
    ) -> Dict[str, Any]:
        """Ledger fields written by each action"""
        if action == StepAction.APPROVE:
            return {
                "status": StepStatus.APPROVED,
                "approver_user_id": actor.actor_id,
                "signed_at": now,
                "signature": signature or self._signature_digest(submission_id, step, actor.actor_id, now),
                "comments": comments,
                "updated_at": now,
            }
        if action == StepAction.REJECT:
            return {
                "status": StepStatus.REJECTED,
                "approver_user_id": actor.actor_id,
                "signed_at": now,
                "comments": comments,
                "updated_at": now,
            }
        return {
            "status": StepStatus.NEEDS_CORRECTION,
            "correction_reason": correction_reason or comments,
            "comments": comments,
            "updated_at": now,
        }

    @staticmethod
    def _signature_digest(submission_id: str, step: int, actor_id: str, signed_at) -> str:
        payload = f"{submission_id}|{step}|{actor_id}|{format_iso(signed_at)}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    # =========================================================================
    # Reads & Repair
    # =========================================================================

    def get_submission(self, submission_id: str) -> PafSubmission:
        """Get submission by ID or raise error"""
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")
        return submission

    def get_steps(self, submission_id: str) -> List[ApprovalStep]:
        """Ledger entries of a submission ordered by step"""
        self.get_submission(submission_id)
        return self.store.get_steps(submission_id)

    def rebuild_status(self, submission_id: str, actor: ActorContext) -> Tuple[PafSubmission, bool]:
        """
        Recompute the cached status and step pointer from the ledger

        Returns:
            The (possibly repaired) submission and whether a repair happened
        """
        submission = self.get_submission(submission_id)
        ledger = self.store.get_steps(submission_id)

        submitted = submission.submitted_at is not None or submission.status != SubmissionStatus.DRAFT
        to_status = derive_status(ledger, submitted=submitted)
        to_step = derive_current_step(ledger, submitted=submitted)

        if to_status == submission.status and to_step == submission.current_step:
            return submission, False

        now = utc_now()
        updates: Dict[str, Any] = {"status": to_status, "current_step": to_step, "updated_at": now}
        if to_status in TERMINAL_STATUSES and submission.completed_at is None:
            updates["completed_at"] = now

        with self.store.transaction() as session:
            session.update_submission(submission_id, updates, expected_version=submission.version)
            self.audit_writer.write_status_rebuilt(
                submission, actor, to_status=to_status, to_step=to_step, session=session
            )

        logger.warning(
            f"Repaired status {submission.status.value}/{submission.current_step} -> "
            f"{to_status.value}/{to_step}",
            extra={"submission_id": submission_id, "actor_id": actor.actor_id, "status": to_status.value}
        )
        return submission.model_copy(update={**updates, "version": submission.version + 1}), True
