"""Tests for the in-memory store's transaction semantics"""

import pytest

from paf_workflow.domain.enums import ApproverRole, StepStatus, SubmissionStatus
from paf_workflow.domain.errors import (
    ConflictError, ConcurrentModificationError, StepNotFoundError, SubmissionNotFoundError
)
from paf_workflow.domain.models import ApprovalStep, PafSubmission
from paf_workflow.utils.time import utc_now


def _submission(submission_id="PAF-1", tenant_id="district-7", submitted_by="emp-1", status=SubmissionStatus.DRAFT):
    now = utc_now()
    return PafSubmission(
        submission_id=submission_id,
        tenant_id=tenant_id,
        template_id="WFT-1",
        submitted_by=submitted_by,
        status=status,
        created_at=now,
        updated_at=now
    )


def _step(submission_id="PAF-1", step=1):
    return ApprovalStep(submission_id=submission_id, step=step, approver_role=ApproverRole.HR)


@pytest.fixture
def seeded(store):
    with store.transaction() as session:
        session.insert_submission(_submission())
        session.insert_steps([_step(step=1), _step(step=2)])
    return store


class TestTransactions:

    def test_commit_applies_all_writes(self, seeded):
        assert seeded.get_submission("PAF-1").version == 0
        assert [s.step for s in seeded.get_steps("PAF-1")] == [1, 2]

    def test_exception_discards_writes(self, seeded):
        with pytest.raises(RuntimeError):
            with seeded.transaction() as session:
                session.update_submission("PAF-1", {"current_step": 1}, expected_version=0)
                raise RuntimeError("boom")

        assert seeded.get_submission("PAF-1").current_step == 0
        assert seeded.get_submission("PAF-1").version == 0

    def test_failed_precondition_discards_earlier_writes(self, seeded):
        with pytest.raises(ConcurrentModificationError):
            with seeded.transaction() as session:
                session.update_step("PAF-1", 1, {"status": StepStatus.APPROVED},
                                    expected_status=StepStatus.PENDING, expected_version=0)
                session.update_submission("PAF-1", {"current_step": 2}, expected_version=7)

        assert seeded.get_steps("PAF-1")[0].status == StepStatus.PENDING
        assert seeded.get_submission("PAF-1").current_step == 0

    def test_writes_are_invisible_until_commit(self, seeded):
        with seeded.transaction() as session:
            session.update_submission("PAF-1", {"current_step": 1}, expected_version=0)
            assert seeded.get_submission("PAF-1").current_step == 0
        assert seeded.get_submission("PAF-1").current_step == 1


class TestConditionalUpdates:

    def test_version_bumps(self, seeded):
        with seeded.transaction() as session:
            session.update_step("PAF-1", 1, {"status": StepStatus.APPROVED},
                                expected_status=StepStatus.PENDING, expected_version=0)
        step = seeded.get_steps("PAF-1")[0]
        assert step.status == StepStatus.APPROVED
        assert step.version == 1

    def test_stale_step_status(self, seeded):
        with seeded.transaction() as session:
            session.update_step("PAF-1", 1, {"status": StepStatus.APPROVED},
                                expected_status=StepStatus.PENDING, expected_version=0)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            with seeded.transaction() as session:
                session.update_step("PAF-1", 1, {"status": StepStatus.REJECTED},
                                    expected_status=StepStatus.PENDING, expected_version=1)
        assert exc_info.value.details["actual_status"] == "approved"

    def test_unknown_records(self, seeded):
        with pytest.raises(SubmissionNotFoundError):
            with seeded.transaction() as session:
                session.update_submission("PAF-404", {}, expected_version=0)
        with pytest.raises(StepNotFoundError):
            with seeded.transaction() as session:
                session.update_step("PAF-1", 9, {}, expected_status=StepStatus.PENDING, expected_version=0)

    def test_duplicate_insert(self, seeded):
        with pytest.raises(ConflictError):
            with seeded.transaction() as session:
                session.insert_steps([_step(step=1)])


class TestReads:

    def test_reads_return_copies(self, seeded):
        submission = seeded.get_submission("PAF-1")
        submission.form_data["injected"] = True
        assert seeded.get_submission("PAF-1").form_data == {}

    def test_list_and_count(self, store):
        with store.transaction() as session:
            session.insert_submission(_submission("PAF-1", submitted_by="emp-1"))
            session.insert_submission(_submission("PAF-2", submitted_by="emp-2", status=SubmissionStatus.APPROVED))
            session.insert_submission(_submission("PAF-3", tenant_id="district-9"))

        assert {s.submission_id for s in store.list_submissions(tenant_id="district-7")} == {"PAF-1", "PAF-2"}
        assert [s.submission_id for s in store.list_submissions(submitted_by="emp-2")] == ["PAF-2"]
        assert [s.submission_id for s in store.list_submissions(status=SubmissionStatus.APPROVED)] == ["PAF-2"]
        assert store.count_submissions_by_status("district-7") == {"draft": 1, "approved": 1}

    def test_template_in_use_ignores_drafts(self, store):
        with store.transaction() as session:
            session.insert_submission(_submission("PAF-1"))
        assert store.template_in_use("WFT-1") is False

        with store.transaction() as session:
            session.insert_submission(_submission("PAF-2", status=SubmissionStatus.SUBMITTED))
        assert store.template_in_use("WFT-1") is True

    def test_health(self, store):
        assert store.health_check()["status"] == "healthy"
