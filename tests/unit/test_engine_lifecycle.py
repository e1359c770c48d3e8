"""
Tests for the PAF submission lifecycle

Covers creation, submission, the three step actions, ordering and
authorization rules, and the audit trail written with each transition.
"""

import hashlib

import pytest

from paf_workflow.domain.enums import (
    ApproverRole, AuditEventType, StepAction, StepStatus, SubmissionStatus
)
from paf_workflow.domain.errors import (
    ConcurrentModificationError, ForbiddenError, InvalidTemplateError, InvalidTransitionError,
    StepOutOfOrderError, SubmissionNotFoundError, TemplateNotFoundError
)
from paf_workflow.domain.models import StepDefinition, WorkflowTemplate
from paf_workflow.engine.status_projection import derive_current_step, derive_status
from paf_workflow.utils.time import format_iso, utc_now


def _event_types(store, submission_id):
    return [e.event_type for e in store.list_audit_events(submission_id)]


class TestCreateSubmission:

    def test_draft_with_pending_ledger(self, engine, draft, three_step_template):
        assert draft.status == SubmissionStatus.DRAFT
        assert draft.current_step == 0
        assert draft.template_name == "Standard Approval"
        assert draft.tenant_id == "district-7"

        steps = engine.get_steps(draft.submission_id)
        assert [s.step for s in steps] == three_step_template.step_orders
        assert all(s.status == StepStatus.PENDING for s in steps)
        assert [s.title for s in steps] == ["HR Review", "Finance Approval", "Final Approval"]

    def test_creation_is_audited(self, store, draft, actors):
        events = store.list_audit_events(draft.submission_id)
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.CREATE_SUBMISSION
        assert events[0].actor_id == actors["employee"].actor_id
        assert events[0].to_status == SubmissionStatus.DRAFT

    def test_unknown_template(self, engine, actors):
        with pytest.raises(TemplateNotFoundError):
            engine.create_submission("WFT-missing", {}, actors["employee"])

    def test_malformed_stored_template_is_rejected(self, engine, store, actors):
        """Templates written around the registry are re-checked before use"""
        now = utc_now()
        broken = WorkflowTemplate(
            template_id="WFT-broken",
            name="Broken",
            steps=[StepDefinition(order=2, role=ApproverRole.HR, title="HR")],
            created_at=now,
            updated_at=now
        )
        with store.transaction() as session:
            session.insert_template(broken)

        with pytest.raises(InvalidTemplateError):
            engine.create_submission("WFT-broken", {}, actors["employee"])
        assert store.list_submissions() == []

    def test_explicit_tenant_wins(self, engine, three_step_template, actors):
        submission = engine.create_submission(
            three_step_template.template_id, {}, actors["employee"], tenant_id="district-9"
        )
        assert submission.tenant_id == "district-9"


class TestSubmit:

    def test_submit_moves_to_first_step(self, submitted):
        assert submitted.status == SubmissionStatus.SUBMITTED
        assert submitted.current_step == 1
        assert submitted.submitted_at is not None

    def test_submit_twice_fails(self, engine, submitted, actors):
        with pytest.raises(InvalidTransitionError):
            engine.submit(submitted.submission_id, actors["employee"])

    def test_submit_unknown(self, engine, actors):
        with pytest.raises(SubmissionNotFoundError):
            engine.submit("PAF-missing", actors["employee"])

    def test_cannot_act_on_draft(self, engine, draft, actors):
        with pytest.raises(StepOutOfOrderError):
            engine.act(draft.submission_id, 1, StepAction.APPROVE, actors["hr"])
        assert engine.get_submission(draft.submission_id).status == SubmissionStatus.DRAFT


class TestScenarios:
    """End-to-end approval scenarios on a three step chain (hr, finance, admin)"""

    def test_approve_first_step(self, engine, submitted, actors):
        submission, step = engine.act(submitted.submission_id, 1, StepAction.APPROVE, actors["hr"])

        assert submission.status == SubmissionStatus.UNDER_REVIEW
        assert submission.current_step == 2
        assert submission.first_reviewed_at is not None
        assert step.status == StepStatus.APPROVED
        assert step.approver_user_id == "hr-1"
        assert step.signed_at is not None

    def test_correction_rewinds_to_first_step(self, engine, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])

        submission, step = engine.act(
            sid, 2, StepAction.REQUEST_CORRECTION, actors["finance"],
            correction_reason="Salary amount missing"
        )

        assert submission.status == SubmissionStatus.UNDER_REVIEW
        assert submission.current_step == 1
        assert step.status == StepStatus.NEEDS_CORRECTION
        assert step.correction_reason == "Salary amount missing"
        assert step.approver_user_id is None

        steps = {s.step: s for s in engine.get_steps(sid)}
        assert steps[1].status == StepStatus.PENDING
        assert steps[1].approver_user_id is None
        assert steps[1].signature is None
        assert steps[3].status == StepStatus.PENDING

    def test_full_approval(self, engine, store, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        engine.act(sid, 2, StepAction.APPROVE, actors["finance"])
        submission, step = engine.act(sid, 3, StepAction.APPROVE, actors["admin"])

        assert submission.status == SubmissionStatus.APPROVED
        assert submission.current_step == 3
        assert submission.completed_at is not None
        assert all(s.status == StepStatus.APPROVED for s in engine.get_steps(sid))
        assert _event_types(store, sid) == [
            AuditEventType.CREATE_SUBMISSION,
            AuditEventType.SUBMIT,
            AuditEventType.APPROVE,
            AuditEventType.APPROVE,
            AuditEventType.APPROVE,
        ]

    def test_reject_is_terminal(self, engine, submitted, actors):
        sid = submitted.submission_id
        submission, step = engine.act(sid, 1, StepAction.REJECT, actors["hr"], comments="Not eligible")

        assert submission.status == SubmissionStatus.DENIED
        assert submission.completed_at is not None
        assert step.status == StepStatus.REJECTED
        assert step.comments == "Not eligible"

        steps = {s.step: s for s in engine.get_steps(sid)}
        assert steps[2].status == StepStatus.PENDING
        assert steps[3].status == StepStatus.PENDING

        for step_number, actor in ((1, actors["hr"]), (2, actors["finance"])):
            with pytest.raises(InvalidTransitionError):
                engine.act(sid, step_number, StepAction.APPROVE, actor)

    def test_wrong_role_is_forbidden_and_audited(self, engine, store, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        before = engine.get_submission(sid)
        steps_before = engine.get_steps(sid)

        with pytest.raises(ForbiddenError):
            engine.act(sid, 2, StepAction.APPROVE, actors["supervisor"])

        assert engine.get_submission(sid) == before
        assert engine.get_steps(sid) == steps_before

        forbidden = [
            e for e in store.list_audit_events(sid)
            if e.event_type == AuditEventType.FORBIDDEN_ATTEMPT
        ]
        assert len(forbidden) == 1
        assert forbidden[0].actor_id == "sup-1"
        assert forbidden[0].step == 2
        assert forbidden[0].details["required_role"] == "finance"


class TestOrderingRules:

    def test_future_step_is_out_of_order(self, engine, submitted, actors):
        with pytest.raises(StepOutOfOrderError) as exc_info:
            engine.act(submitted.submission_id, 2, StepAction.APPROVE, actors["finance"])
        assert exc_info.value.details == {"requested_step": 2, "current_step": 1}

    def test_past_step_is_out_of_order(self, engine, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        with pytest.raises(StepOutOfOrderError):
            engine.act(sid, 1, StepAction.APPROVE, actors["hr"])

    def test_terminal_check_precedes_order_check(self, engine, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.REJECT, actors["hr"])
        with pytest.raises(InvalidTransitionError):
            engine.act(sid, 3, StepAction.APPROVE, actors["admin"])

    def test_unknown_submission(self, engine, actors):
        with pytest.raises(SubmissionNotFoundError):
            engine.act("PAF-missing", 1, StepAction.APPROVE, actors["hr"])

    def test_action_accepts_plain_string(self, engine, submitted, actors):
        submission, _ = engine.act(submitted.submission_id, 1, "approve", actors["hr"])
        assert submission.current_step == 2


class TestCorrectionLoop:

    def test_correction_on_first_step(self, engine, submitted, actors):
        submission, step = engine.act(
            submitted.submission_id, 1, StepAction.REQUEST_CORRECTION, actors["hr"],
            comments="Please attach the offer letter"
        )
        assert submission.status == SubmissionStatus.UNDER_REVIEW
        assert submission.current_step == 1
        assert step.correction_reason == "Please attach the offer letter"

    def test_corrected_step_can_be_approved_again(self, engine, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        engine.act(sid, 2, StepAction.APPROVE, actors["finance"])
        engine.act(sid, 3, StepAction.REQUEST_CORRECTION, actors["admin"], correction_reason="Wrong FTE")

        steps = {s.step: s.status for s in engine.get_steps(sid)}
        assert steps == {1: StepStatus.PENDING, 2: StepStatus.PENDING, 3: StepStatus.NEEDS_CORRECTION}

        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        submission, _ = engine.act(sid, 2, StepAction.APPROVE, actors["finance"])
        assert submission.current_step == 3

        submission, step = engine.act(sid, 3, StepAction.APPROVE, actors["admin"])
        assert submission.status == SubmissionStatus.APPROVED
        assert step.status == StepStatus.APPROVED

    def test_correction_audit_lists_reset_steps(self, engine, store, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        engine.act(sid, 2, StepAction.REQUEST_CORRECTION, actors["finance"], comments="fix")

        event = store.list_audit_events(sid)[-1]
        assert event.event_type == AuditEventType.REQUEST_CORRECTION
        assert event.from_step == 2
        assert event.to_step == 1
        assert event.details["reset_steps"] == [1]
        assert event.details["correction_reason"] == "fix"


class TestSignature:

    def test_caller_signature_is_kept(self, engine, submitted, actors):
        _, step = engine.act(
            submitted.submission_id, 1, StepAction.APPROVE, actors["hr"], signature="data:image/png;base64,AAA"
        )
        assert step.signature == "data:image/png;base64,AAA"

    def test_default_signature_is_digest(self, engine, submitted, actors):
        sid = submitted.submission_id
        _, step = engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        expected = hashlib.sha256(
            f"{sid}|1|hr-1|{format_iso(step.signed_at)}".encode("utf-8")
        ).hexdigest()
        assert step.signature == expected


class TestFormData:

    def test_update_in_draft(self, engine, store, draft, actors):
        updated = engine.update_form_data(
            draft.submission_id, {"employee_name": "Pat Doe", "amount": 1500}, actors["employee"]
        )
        assert updated.form_data == {"employee_name": "Pat Doe", "amount": 1500}

        event = store.list_audit_events(draft.submission_id)[-1]
        assert event.event_type == AuditEventType.FORM_UPDATED
        assert event.details["changed_fields"] == ["action_type", "amount"]

    def test_update_blocked_while_waiting_for_approval(self, engine, submitted, actors):
        with pytest.raises(InvalidTransitionError):
            engine.update_form_data(submitted.submission_id, {"amount": 1}, actors["employee"])

    def test_update_allowed_during_correction(self, engine, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.REQUEST_CORRECTION, actors["hr"], comments="amount")
        updated = engine.update_form_data(sid, {"amount": 999}, actors["employee"])

        assert updated.form_data == {"amount": 999}
        assert [s.status for s in engine.get_steps(sid)][0] == StepStatus.NEEDS_CORRECTION


class TestLedgerProperties:

    def test_status_is_projection_of_ledger(self, engine, submitted, actors):
        sid = submitted.submission_id
        for step_number, actor in ((1, actors["hr"]), (2, actors["finance"])):
            engine.act(sid, step_number, StepAction.APPROVE, actor)
            submission = engine.get_submission(sid)
            steps = engine.get_steps(sid)
            assert submission.status == derive_status(steps, submitted=True)
            assert submission.current_step == derive_current_step(steps, submitted=True)

    def test_decided_step_is_not_actionable(self, engine, store, submitted, actors):
        """A stale pointer on a decided step is treated as a lost race"""
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        submission = engine.get_submission(sid)
        with store.transaction() as session:
            session.update_submission(sid, {"current_step": 1}, expected_version=submission.version)

        with pytest.raises(ConcurrentModificationError):
            engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        assert _event_types(store, sid)[-1] == AuditEventType.CONCURRENT_MODIFICATION


class TestRebuildStatus:

    def test_consistent_submission_is_untouched(self, engine, store, submitted, actors):
        submission, repaired = engine.rebuild_status(submitted.submission_id, actors["admin"])
        assert repaired is False
        assert submission.version == submitted.version
        assert AuditEventType.STATUS_REBUILT not in _event_types(store, submitted.submission_id)

    def test_drifted_status_is_repaired(self, engine, store, submitted, actors):
        sid = submitted.submission_id
        engine.act(sid, 1, StepAction.APPROVE, actors["hr"])
        current = engine.get_submission(sid)
        with store.transaction() as session:
            session.update_submission(
                sid, {"status": SubmissionStatus.SUBMITTED, "current_step": 1},
                expected_version=current.version
            )

        submission, repaired = engine.rebuild_status(sid, actors["admin"])
        assert repaired is True
        assert submission.status == SubmissionStatus.UNDER_REVIEW
        assert submission.current_step == 2
        assert engine.get_submission(sid).status == SubmissionStatus.UNDER_REVIEW

        event = store.list_audit_events(sid)[-1]
        assert event.event_type == AuditEventType.STATUS_REBUILT
        assert event.from_status == SubmissionStatus.SUBMITTED

        _, repaired_again = engine.rebuild_status(sid, actors["admin"])
        assert repaired_again is False
