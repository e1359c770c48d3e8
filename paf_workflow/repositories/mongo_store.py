"""MongoDB implementation of the PAF store.

Transitions run inside multi-document transactions, so the deployment must
be a replica set (a single-node replica set is enough for development).
"""
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure, PyMongoError

from .mongo_client import get_database
from ..domain.enums import StepStatus, SubmissionStatus
from ..domain.errors import (
    ConflictError, ConcurrentModificationError, StepNotFoundError,
    SubmissionNotFoundError, TemplateNotFoundError, UnavailableError
)
from ..domain.models import ApprovalStep, AuditEvent, PafSubmission, WorkflowTemplate
from ..utils.logger import get_logger

logger = get_logger(__name__)

# MongoDB server error code for a write conflict inside a transaction
WRITE_CONFLICT_CODE = 112


def _encode(value: Any) -> Any:
    """Convert enum members (including nested ones) to their stored values"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _to_doc(model: Any, doc_id: str) -> Dict[str, Any]:
    # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
    doc = _encode(model.model_dump())
    doc["_id"] = doc_id
    return doc


def _from_doc(model_cls: Any, doc: Optional[Dict[str, Any]]) -> Any:
    if doc is None:
        return None
    doc.pop("_id", None)
    return model_cls.model_validate(doc)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map driver failures onto domain errors"""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError("Record already exists", details={"driver_error": str(e)})
    except OperationFailure as e:
        if e.code == WRITE_CONFLICT_CODE or e.has_error_label("TransientTransactionError"):
            logger.warning(f"Write conflict: {e}")
            raise ConcurrentModificationError(
                "The record was modified by another request. Please refresh and try again.",
                details={"driver_code": e.code}
            )
        logger.error(f"MongoDB operation failed: {e}")
        raise UnavailableError("Database operation failed", details={"driver_code": e.code})
    except ConnectionFailure as e:
        logger.error(f"MongoDB connection failure: {e}")
        raise UnavailableError("Database is unavailable")
    except PyMongoError as e:
        logger.error(f"MongoDB error: {e}")
        raise UnavailableError("Database error")


class MongoSession:
    """Writes bound to one MongoDB client session and transaction"""

    def __init__(self, store: "MongoPafStore", session: ClientSession):
        self._store = store
        self._session = session

    def insert_template(self, template: WorkflowTemplate) -> None:
        self._store._templates.insert_one(
            _to_doc(template, template.template_id), session=self._session
        )

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> None:
        doc = _to_doc(template.model_copy(update={"version": expected_version + 1}), template.template_id)
        result = self._store._templates.replace_one(
            {"template_id": template.template_id, "version": expected_version},
            doc,
            session=self._session
        )
        if result.matched_count == 0:
            if self._store._templates.find_one({"template_id": template.template_id}, session=self._session):
                raise ConcurrentModificationError(
                    f"Template {template.template_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise TemplateNotFoundError(f"Template {template.template_id} not found")

    def insert_submission(self, submission: PafSubmission) -> None:
        self._store._submissions.insert_one(
            _to_doc(submission, submission.submission_id), session=self._session
        )

    def update_submission(
        self,
        submission_id: str,
        updates: Dict[str, Any],
        expected_version: int,
    ) -> None:
        set_doc = _encode(dict(updates))
        set_doc["version"] = expected_version + 1
        result = self._store._submissions.update_one(
            {"submission_id": submission_id, "version": expected_version},
            {"$set": set_doc},
            session=self._session
        )
        if result.matched_count == 0:
            if self._store._submissions.find_one({"submission_id": submission_id}, session=self._session):
                raise ConcurrentModificationError(
                    f"Submission {submission_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")

    def insert_steps(self, steps: List[ApprovalStep]) -> None:
        if not steps:
            return
        self._store._steps.insert_many(
            [_to_doc(s, f"{s.submission_id}:{s.step}") for s in steps],
            session=self._session
        )

    def update_step(
        self,
        submission_id: str,
        step: int,
        updates: Dict[str, Any],
        expected_status: StepStatus,
        expected_version: int,
    ) -> None:
        set_doc = _encode(dict(updates))
        set_doc["version"] = expected_version + 1
        result = self._store._steps.update_one(
            {
                "submission_id": submission_id,
                "step": step,
                "status": expected_status.value,
                "version": expected_version,
            },
            {"$set": set_doc},
            session=self._session
        )
        if result.matched_count == 0:
            if self._store._steps.find_one({"submission_id": submission_id, "step": step}, session=self._session):
                raise ConcurrentModificationError(
                    f"Step {step} of submission {submission_id} was modified. Please refresh and try again.",
                    details={"expected_status": expected_status.value, "expected_version": expected_version}
                )
            raise StepNotFoundError(f"Step {step} of submission {submission_id} not found")

    def append_audit(self, event: AuditEvent) -> None:
        self._store._audit.insert_one(_to_doc(event, event.audit_event_id), session=self._session)


class MongoPafStore:
    """Persist PAF state in MongoDB"""

    def __init__(self, database: Optional[Database] = None):
        self._db = database if database is not None else get_database()
        self._templates: Collection = self._db["workflow_templates"]
        self._submissions: Collection = self._db["paf_submissions"]
        self._steps: Collection = self._db["approval_steps"]
        self._audit: Collection = self._db["audit_events"]

    @contextmanager
    def transaction(self) -> Iterator[MongoSession]:
        with translate_errors():
            with self._db.client.start_session() as session:
                with session.start_transaction():
                    yield MongoSession(self, session)

    # =========================================================================
    # Templates
    # =========================================================================

    def get_template(self, template_id: str) -> Optional[WorkflowTemplate]:
        with translate_errors():
            return _from_doc(WorkflowTemplate, self._templates.find_one({"template_id": template_id}))

    def list_templates(self, tenant_id: Optional[str] = None) -> List[WorkflowTemplate]:
        query: Dict[str, Any] = {}
        if tenant_id is not None:
            query["$or"] = [{"tenant_id": None}, {"tenant_id": tenant_id}]
        with translate_errors():
            cursor = self._templates.find(query).sort("created_at", ASCENDING)
            return [_from_doc(WorkflowTemplate, doc) for doc in cursor]

    def template_in_use(self, template_id: str) -> bool:
        with translate_errors():
            count = self._submissions.count_documents(
                {"template_id": template_id, "status": {"$ne": SubmissionStatus.DRAFT.value}},
                limit=1
            )
        return count > 0

    # =========================================================================
    # Submissions
    # =========================================================================

    def get_submission(self, submission_id: str) -> Optional[PafSubmission]:
        with translate_errors():
            return _from_doc(PafSubmission, self._submissions.find_one({"submission_id": submission_id}))

    def list_submissions(
        self,
        tenant_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[PafSubmission]:
        query: Dict[str, Any] = {}
        if tenant_id is not None:
            query["tenant_id"] = tenant_id
        if submitted_by is not None:
            query["submitted_by"] = submitted_by
        if status is not None:
            query["status"] = status.value
        with translate_errors():
            cursor = (
                self._submissions.find(query)
                .sort("created_at", DESCENDING)
                .skip(skip)
                .limit(limit)
            )
            return [_from_doc(PafSubmission, doc) for doc in cursor]

    def count_submissions_by_status(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        pipeline: List[Dict[str, Any]] = []
        if tenant_id is not None:
            pipeline.append({"$match": {"tenant_id": tenant_id}})
        pipeline.append({"$group": {"_id": "$status", "count": {"$sum": 1}}})
        with translate_errors():
            return {row["_id"]: row["count"] for row in self._submissions.aggregate(pipeline)}

    # =========================================================================
    # Approval ledger
    # =========================================================================

    def get_steps(self, submission_id: str) -> List[ApprovalStep]:
        with translate_errors():
            cursor = self._steps.find({"submission_id": submission_id}).sort("step", ASCENDING)
            return [_from_doc(ApprovalStep, doc) for doc in cursor]

    # =========================================================================
    # Audit
    # =========================================================================

    def append_audit(self, event: AuditEvent) -> None:
        with translate_errors():
            self._audit.insert_one(_to_doc(event, event.audit_event_id))

    def list_audit_events(self, submission_id: str) -> List[AuditEvent]:
        with translate_errors():
            cursor = self._audit.find({"submission_id": submission_id}).sort("timestamp", ASCENDING)
            return [_from_doc(AuditEvent, doc) for doc in cursor]

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB health"""
        try:
            self._db.command("ping")
            return {"status": "healthy", "backend": "mongo", "database": self._db.name, "connection": "ok"}
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {"status": "unhealthy", "backend": "mongo", "database": self._db.name, "error": str(e)}
