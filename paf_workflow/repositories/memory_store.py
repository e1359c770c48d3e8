"""In-memory implementation of the PAF store."""
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..domain.enums import StepStatus, SubmissionStatus
from ..domain.errors import (
    ConflictError, ConcurrentModificationError, StepNotFoundError,
    SubmissionNotFoundError, TemplateNotFoundError
)
from ..domain.models import ApprovalStep, AuditEvent, PafSubmission, WorkflowTemplate
from ..utils.logger import get_logger

logger = get_logger(__name__)

StepKey = Tuple[str, int]


class InMemorySession:
    """Collects staged writes; applied by ``InMemoryPafStore`` on commit."""

    def __init__(self) -> None:
        self.operations: List[Tuple[str, tuple]] = []

    def insert_template(self, template: WorkflowTemplate) -> None:
        self.operations.append(("insert_template", (template.model_copy(deep=True),)))

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> None:
        self.operations.append(("replace_template", (template.model_copy(deep=True), expected_version)))

    def insert_submission(self, submission: PafSubmission) -> None:
        self.operations.append(("insert_submission", (submission.model_copy(deep=True),)))

    def update_submission(
        self,
        submission_id: str,
        updates: Dict[str, Any],
        expected_version: int,
    ) -> None:
        self.operations.append(("update_submission", (submission_id, dict(updates), expected_version)))

    def insert_steps(self, steps: List[ApprovalStep]) -> None:
        self.operations.append(("insert_steps", ([s.model_copy(deep=True) for s in steps],)))

    def update_step(
        self,
        submission_id: str,
        step: int,
        updates: Dict[str, Any],
        expected_status: StepStatus,
        expected_version: int,
    ) -> None:
        self.operations.append(
            ("update_step", (submission_id, step, dict(updates), expected_status, expected_version))
        )

    def append_audit(self, event: AuditEvent) -> None:
        self.operations.append(("append_audit", (event.model_copy(deep=True),)))


class _Snapshot:
    """Copy-on-commit working set; swapped in only if every operation applies."""

    def __init__(self, store: "InMemoryPafStore") -> None:
        self.templates = dict(store._templates)
        self.submissions = dict(store._submissions)
        self.steps = dict(store._steps)
        self.audit = list(store._audit)

    def insert_template(self, template: WorkflowTemplate) -> None:
        if template.template_id in self.templates:
            raise ConflictError(f"Template {template.template_id} already exists")
        self.templates[template.template_id] = template

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> None:
        current = self.templates.get(template.template_id)
        if current is None:
            raise TemplateNotFoundError(f"Template {template.template_id} not found")
        if current.version != expected_version:
            raise ConcurrentModificationError(
                f"Template {template.template_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version}
            )
        self.templates[template.template_id] = template.model_copy(update={"version": expected_version + 1})

    def insert_submission(self, submission: PafSubmission) -> None:
        if submission.submission_id in self.submissions:
            raise ConflictError(f"Submission {submission.submission_id} already exists")
        self.submissions[submission.submission_id] = submission

    def update_submission(self, submission_id: str, updates: Dict[str, Any], expected_version: int) -> None:
        current = self.submissions.get(submission_id)
        if current is None:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")
        if current.version != expected_version:
            raise ConcurrentModificationError(
                f"Submission {submission_id} was modified. Please refresh and try again.",
                details={"expected_version": expected_version}
            )
        self.submissions[submission_id] = current.model_copy(
            update={**updates, "version": expected_version + 1}
        )

    def insert_steps(self, steps: List[ApprovalStep]) -> None:
        for step in steps:
            key = (step.submission_id, step.step)
            if key in self.steps:
                raise ConflictError(f"Step {step.step} of {step.submission_id} already exists")
            self.steps[key] = step

    def update_step(
        self,
        submission_id: str,
        step: int,
        updates: Dict[str, Any],
        expected_status: StepStatus,
        expected_version: int,
    ) -> None:
        current = self.steps.get((submission_id, step))
        if current is None:
            raise StepNotFoundError(f"Step {step} of submission {submission_id} not found")
        if current.status != expected_status or current.version != expected_version:
            raise ConcurrentModificationError(
                f"Step {step} of submission {submission_id} was modified. Please refresh and try again.",
                details={
                    "expected_status": expected_status.value,
                    "actual_status": current.status.value,
                    "expected_version": expected_version,
                }
            )
        self.steps[(submission_id, step)] = current.model_copy(
            update={**updates, "version": expected_version + 1}
        )

    def append_audit(self, event: AuditEvent) -> None:
        self.audit.append(event)


class InMemoryPafStore:
    """Store PAF state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Commits are serialized by a single
    lock; conditional updates are checked against committed state at
    commit time.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._templates: Dict[str, WorkflowTemplate] = {}
        self._submissions: Dict[str, PafSubmission] = {}
        self._steps: Dict[StepKey, ApprovalStep] = {}
        self._audit: List[AuditEvent] = []

    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[InMemorySession]:
        session = InMemorySession()
        yield session
        self._commit(session)

    def _commit(self, session: InMemorySession) -> None:
        with self._lock:
            snapshot = _Snapshot(self)
            for name, args in session.operations:
                getattr(snapshot, name)(*args)
            self._templates = snapshot.templates
            self._submissions = snapshot.submissions
            self._steps = snapshot.steps
            self._audit = snapshot.audit
        logger.debug(f"Committed {len(session.operations)} operations")

    # ------------------------------------------------------------------
    def get_template(self, template_id: str) -> Optional[WorkflowTemplate]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    def list_templates(self, tenant_id: Optional[str] = None) -> List[WorkflowTemplate]:
        templates = [
            t for t in self._templates.values()
            if tenant_id is None or t.tenant_id in (None, tenant_id)
        ]
        templates.sort(key=lambda t: t.created_at)
        return [t.model_copy(deep=True) for t in templates]

    def template_in_use(self, template_id: str) -> bool:
        return any(
            s.template_id == template_id and s.status != SubmissionStatus.DRAFT
            for s in self._submissions.values()
        )

    def get_submission(self, submission_id: str) -> Optional[PafSubmission]:
        submission = self._submissions.get(submission_id)
        return submission.model_copy(deep=True) if submission else None

    def list_submissions(
        self,
        tenant_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[PafSubmission]:
        submissions = [
            s for s in self._submissions.values()
            if (tenant_id is None or s.tenant_id == tenant_id)
            and (submitted_by is None or s.submitted_by == submitted_by)
            and (status is None or s.status == status)
        ]
        submissions.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in submissions[skip:skip + limit]]

    def count_submissions_by_status(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for s in self._submissions.values():
            if tenant_id is None or s.tenant_id == tenant_id:
                counts[s.status.value] = counts.get(s.status.value, 0) + 1
        return counts

    def get_steps(self, submission_id: str) -> List[ApprovalStep]:
        steps = [s for (sid, _), s in self._steps.items() if sid == submission_id]
        steps.sort(key=lambda s: s.step)
        return [s.model_copy(deep=True) for s in steps]

    def append_audit(self, event: AuditEvent) -> None:
        with self._lock:
            self._audit = self._audit + [event.model_copy(deep=True)]

    def list_audit_events(self, submission_id: str) -> List[AuditEvent]:
        events = [e for e in self._audit if e.submission_id == submission_id]
        events.sort(key=lambda e: e.timestamp)
        return [e.model_copy(deep=True) for e in events]

    def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": "memory"}
