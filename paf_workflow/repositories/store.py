"""Store abstraction for templates, submissions, the approval ledger and audit events."""
from typing import Any, ContextManager, Dict, List, Optional, Protocol

from ..domain.enums import StepStatus, SubmissionStatus
from ..domain.models import ApprovalStep, AuditEvent, PafSubmission, WorkflowTemplate


class StoreSession(Protocol):
    """
    Unit of work opened by ``PafStore.transaction()``.

    Writes made through a session become visible together when the
    ``transaction()`` block exits normally, and not at all when it raises.
    Conditional updates raise ``ConcurrentModificationError`` when the
    expected state no longer matches.
    """

    def insert_template(self, template: WorkflowTemplate) -> None:
        """Stage a new template."""

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> None:
        """Stage a full template replacement guarded by its version."""

    def insert_submission(self, submission: PafSubmission) -> None:
        """Stage a new submission."""

    def update_submission(
        self,
        submission_id: str,
        updates: Dict[str, Any],
        expected_version: int,
    ) -> None:
        """Stage a submission update; bumps ``version`` on success."""

    def insert_steps(self, steps: List[ApprovalStep]) -> None:
        """Stage the ledger entries of a new submission."""

    def update_step(
        self,
        submission_id: str,
        step: int,
        updates: Dict[str, Any],
        expected_status: StepStatus,
        expected_version: int,
    ) -> None:
        """Stage a compare-and-set ledger update; bumps ``version`` on success."""

    def append_audit(self, event: AuditEvent) -> None:
        """Stage an audit record that commits with the rest of the unit."""


class PafStore(Protocol):
    """Protocol for PAF persistence backends."""

    def transaction(self) -> ContextManager[StoreSession]:
        """Open an all-or-nothing unit of work."""

    def get_template(self, template_id: str) -> Optional[WorkflowTemplate]:
        """Retrieve a template by id."""

    def list_templates(self, tenant_id: Optional[str] = None) -> List[WorkflowTemplate]:
        """Templates shared across districts plus those owned by ``tenant_id``."""

    def template_in_use(self, template_id: str) -> bool:
        """True if any non-draft submission references the template."""

    def get_submission(self, submission_id: str) -> Optional[PafSubmission]:
        """Retrieve a submission by id."""

    def list_submissions(
        self,
        tenant_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[PafSubmission]:
        """Submissions, newest first."""

    def count_submissions_by_status(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Submission counts keyed by status value."""

    def get_steps(self, submission_id: str) -> List[ApprovalStep]:
        """Ledger entries ordered by step."""

    def append_audit(self, event: AuditEvent) -> None:
        """Write an audit record outside any transition."""

    def list_audit_events(self, submission_id: str) -> List[AuditEvent]:
        """Audit records for a submission, oldest first."""

    def health_check(self) -> Dict[str, Any]:
        """Report backend health."""
