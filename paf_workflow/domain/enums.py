"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class SubmissionStatus(str, Enum):
    """Global PAF submission status"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    DENIED = "denied"


TERMINAL_STATUSES = (SubmissionStatus.APPROVED, SubmissionStatus.DENIED)
ACTIONABLE_STATUSES = (SubmissionStatus.SUBMITTED, SubmissionStatus.UNDER_REVIEW)


class StepStatus(str, Enum):
    """Runtime status per approval step"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CORRECTION = "needs_correction"


# A step can be acted on from these statuses (needs_correction after a rewind)
ACTIONABLE_STEP_STATUSES = (StepStatus.PENDING, StepStatus.NEEDS_CORRECTION)


class StepAction(str, Enum):
    """Actions an approver can take on the current step"""
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CORRECTION = "request_correction"


class ApproverRole(str, Enum):
    """Closed set of district roles"""
    REQUESTING_ADMIN = "requesting_admin"
    BUSINESS_OFFICIAL = "business_official"
    SUPERINTENDENT = "superintendent"
    HR = "hr"
    FINANCE = "finance"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    PAYROLL = "payroll"
    EMPLOYEE = "employee"
    SYSTEM_OWNER = "system_owner"


class AuditEventType(str, Enum):
    """Types of audit events"""
    CREATE_SUBMISSION = "CREATE_SUBMISSION"
    FORM_UPDATED = "FORM_UPDATED"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CORRECTION = "REQUEST_CORRECTION"
    FORBIDDEN_ATTEMPT = "FORBIDDEN_ATTEMPT"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    STATUS_REBUILT = "STATUS_REBUILT"


ACTION_EVENT_TYPES = {
    StepAction.APPROVE: AuditEventType.APPROVE,
    StepAction.REJECT: AuditEventType.REJECT,
    StepAction.REQUEST_CORRECTION: AuditEventType.REQUEST_CORRECTION,
}
