"""PAF Service - Submission and template business logic for the API"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..domain.models import (
    ActorContext, ApprovalStep, PafSubmission, StepDefinition, SubmissionTimeline,
    TenantOverview, TimelineMilestone, TimelineSummary, WorkflowTemplate
)
from ..domain.enums import (
    TERMINAL_STATUSES, ApproverRole, StepAction, StepStatus, SubmissionStatus
)
from ..engine.engine import PafWorkflowEngine
from ..repositories import get_store
from ..repositories.store import PafStore
from ..utils.time import format_duration, minutes_between, minutes_since, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Templates every district starts with
DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Standard Approval",
        "description": "Standard PAF approval workflow",
        "is_default": True,
        "steps": [
            (ApproverRole.HR, "HR Review"),
            (ApproverRole.FINANCE, "Finance Approval"),
            (ApproverRole.ADMIN, "Final Approval"),
        ],
    },
    {
        "name": "Fast Track",
        "description": "Expedited approval for urgent requests",
        "is_default": False,
        "steps": [
            (ApproverRole.HR, "HR Review"),
            (ApproverRole.ADMIN, "Final Approval"),
        ],
    },
    {
        "name": "Full Review",
        "description": "Comprehensive review for complex requests",
        "is_default": False,
        "steps": [
            (ApproverRole.HR, "HR Review"),
            (ApproverRole.SUPERVISOR, "Supervisor Review"),
            (ApproverRole.FINANCE, "Finance Approval"),
            (ApproverRole.ADMIN, "Final Approval"),
        ],
    },
]

PENDING_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.UNDER_REVIEW)

MINUTES_PER_DAY = 24 * 60


class PafService:
    """Service for PAF submissions, templates and reporting"""

    def __init__(self, store: Optional[PafStore] = None, engine: Optional[PafWorkflowEngine] = None):
        self.store = store if store is not None else get_store()
        self.engine = engine or PafWorkflowEngine(self.store)

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self, tenant_id: Optional[str] = None) -> List[WorkflowTemplate]:
        return self.engine.templates.list(tenant_id)

    def get_template(self, template_id: str) -> WorkflowTemplate:
        return self.engine.templates.get(template_id)

    def create_template(
        self,
        name: str,
        steps: List[StepDefinition],
        actor: ActorContext,
        description: Optional[str] = None,
        tenant_id: Optional[str] = None,
        is_default: bool = False
    ) -> WorkflowTemplate:
        return self.engine.create_template(
            name=name,
            steps=steps,
            actor=actor,
            description=description,
            tenant_id=tenant_id,
            is_default=is_default
        )

    def update_template(self, template_id: str, actor: ActorContext, **changes: Any) -> WorkflowTemplate:
        return self.engine.update_template(template_id, actor, **changes)

    def seed_default_templates(
        self,
        actor: ActorContext,
        tenant_id: Optional[str] = None
    ) -> List[WorkflowTemplate]:
        """
        Create the default templates for a district

        Idempotent: templates whose name already exists for the district are
        skipped.

        Returns:
            The templates created by this call
        """
        tenant_id = tenant_id or actor.tenant_id or settings.default_tenant_id
        existing = {t.name for t in self.store.list_templates(tenant_id) if t.tenant_id == tenant_id}

        created: List[WorkflowTemplate] = []
        for definition in DEFAULT_TEMPLATES:
            if definition["name"] in existing:
                continue
            steps = [
                StepDefinition(order=i, role=role, title=title)
                for i, (role, title) in enumerate(definition["steps"], start=1)
            ]
            created.append(self.engine.create_template(
                name=definition["name"],
                steps=steps,
                actor=actor,
                description=definition["description"],
                tenant_id=tenant_id,
                is_default=definition["is_default"]
            ))

        logger.info(
            f"Seeded {len(created)} default templates",
            extra={"tenant_id": tenant_id, "actor_id": actor.actor_id}
        )
        return created

    # =========================================================================
    # Submissions
    # =========================================================================

    def create_submission(
        self,
        template_id: str,
        form_data: Optional[Dict[str, Any]],
        actor: ActorContext,
        tenant_id: Optional[str] = None
    ) -> Tuple[PafSubmission, List[ApprovalStep]]:
        """Create a draft submission; returns it with its ledger"""
        submission = self.engine.create_submission(template_id, form_data, actor, tenant_id=tenant_id)
        return submission, self.store.get_steps(submission.submission_id)

    def list_submissions(
        self,
        tenant_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[PafSubmission]:
        return self.store.list_submissions(
            tenant_id=tenant_id,
            submitted_by=submitted_by,
            status=status,
            skip=skip,
            limit=limit
        )

    def get_submission(self, submission_id: str) -> PafSubmission:
        return self.engine.get_submission(submission_id)

    def get_steps(self, submission_id: str) -> List[ApprovalStep]:
        return self.engine.get_steps(submission_id)

    def update_form_data(
        self,
        submission_id: str,
        form_data: Dict[str, Any],
        actor: ActorContext
    ) -> PafSubmission:
        return self.engine.update_form_data(submission_id, form_data, actor)

    def submit(self, submission_id: str, actor: ActorContext) -> PafSubmission:
        return self.engine.submit(submission_id, actor)

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
        return self.engine.act(
            submission_id=submission_id,
            step=step,
            action=action,
            actor=actor,
            comments=comments,
            signature=signature,
            correction_reason=correction_reason
        )

    def rebuild_status(self, submission_id: str, actor: ActorContext) -> Tuple[PafSubmission, bool]:
        return self.engine.rebuild_status(submission_id, actor)

    def rebuild_statuses(
        self,
        actor: ActorContext,
        tenant_id: Optional[str] = None,
        since: Optional[datetime] = None,
        batch_size: int = 200
    ) -> Dict[str, int]:
        """
        Recompute cached statuses for every submission of a tenant (or all)

        Args:
            since: Only submissions created at or after this time
        """
        checked = 0
        repaired = 0
        skip = 0
        while True:
            batch = self.store.list_submissions(tenant_id=tenant_id, skip=skip, limit=batch_size)
            if not batch:
                break
            for submission in batch:
                if since is not None and submission.created_at < since:
                    continue
                checked += 1
                _, changed = self.engine.rebuild_status(submission.submission_id, actor)
                if changed:
                    repaired += 1
            skip += batch_size

        logger.info(
            f"Status rebuild checked {checked} submissions, repaired {repaired}",
            extra={"tenant_id": tenant_id, "actor_id": actor.actor_id}
        )
        return {"checked": checked, "repaired": repaired}

    # =========================================================================
    # Reporting
    # =========================================================================

    def timeline(self, submission_id: str, now: Optional[datetime] = None) -> SubmissionTimeline:
        """Audit trail of a submission plus a progress summary"""
        submission = self.engine.get_submission(submission_id)
        events = self.store.list_audit_events(submission_id)
        steps = self.store.get_steps(submission_id)
        return SubmissionTimeline(
            submission=submission,
            events=events,
            summary=self._summarize(submission, steps, now or utc_now())
        )

    def _summarize(
        self,
        submission: PafSubmission,
        steps: List[ApprovalStep],
        now: datetime
    ) -> TimelineSummary:
        milestones: List[TimelineMilestone] = []
        for event, date in (
            ("Created", submission.created_at),
            ("Submitted", submission.submitted_at),
            ("First Review", submission.first_reviewed_at),
            ("Completed", submission.completed_at),
        ):
            if date is None:
                continue
            duration = None
            if milestones:
                duration = format_duration(minutes_between(milestones[-1].date, date))
            milestones.append(TimelineMilestone(event=event, date=date, duration=duration))

        total_duration = None
        if submission.completed_at is not None:
            total_duration = format_duration(minutes_between(submission.created_at, submission.completed_at))

        terminal = submission.status in TERMINAL_STATUSES
        is_overdue = (
            not terminal
            and minutes_since(submission.updated_at, now) > settings.overdue_after_days * MINUTES_PER_DAY
        )

        if submission.status == SubmissionStatus.DRAFT:
            next_action = "Waiting for submission"
        elif any(s.status == StepStatus.NEEDS_CORRECTION for s in steps) and not terminal:
            next_action = "Waiting for corrections"
        elif submission.status in PENDING_STATUSES:
            next_action = "Waiting for approval"
        else:
            next_action = None

        return TimelineSummary(
            current_status=submission.status,
            current_step=submission.current_step,
            total_duration=total_duration,
            key_milestones=milestones,
            is_overdue=is_overdue,
            next_expected_action=next_action
        )

    def tenant_overview(self, tenant_id: str) -> TenantOverview:
        """Submission statistics for one district"""
        by_status = self.store.count_submissions_by_status(tenant_id)
        templates = [t for t in self.store.list_templates(tenant_id) if t.tenant_id == tenant_id]
        return TenantOverview(
            tenant_id=tenant_id,
            templates_count=len(templates),
            submissions_count=sum(by_status.values()),
            by_status=by_status,
            pending_submissions=sum(by_status.get(s.value, 0) for s in PENDING_STATUSES),
            approved_submissions=by_status.get(SubmissionStatus.APPROVED.value, 0),
            denied_submissions=by_status.get(SubmissionStatus.DENIED.value, 0)
        )
