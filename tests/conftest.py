"""
Pytest Configuration and Fixtures

Shared fixtures for engine, service and API tests. Everything runs against
the in-memory store; the environment is set before the application modules
are imported because settings are read at import time.
"""

import os
import tempfile

os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ROLE_POLICY", "equality")
os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="paf-test-logs-"))

import jwt
import pytest
from typing import Callable, Dict
from fastapi.testclient import TestClient

from paf_workflow.api.deps import get_paf_service
from paf_workflow.domain.enums import ApproverRole
from paf_workflow.domain.models import ActorContext, PafSubmission, StepDefinition, WorkflowTemplate
from paf_workflow.engine import EqualityRoleGate, PafWorkflowEngine
from paf_workflow.main import app
from paf_workflow.repositories import InMemoryPafStore
from paf_workflow.services import PafService

TENANT_ID = "district-7"


def make_actor(role: ApproverRole, actor_id: str, tenant_id: str = TENANT_ID) -> ActorContext:
    return ActorContext(actor_id=actor_id, role=role, tenant_id=tenant_id, display_name=actor_id)


def make_token(actor_id: str, role: str, tenant_id: str = TENANT_ID) -> str:
    """Bearer token as issued by the identity provider (unsigned check in test env)"""
    return jwt.encode(
        {"sub": actor_id, "role": role, "tenant_id": tenant_id, "name": actor_id},
        "test-secret",
        algorithm="HS256"
    )


@pytest.fixture
def store() -> InMemoryPafStore:
    return InMemoryPafStore()


@pytest.fixture
def engine(store: InMemoryPafStore) -> PafWorkflowEngine:
    return PafWorkflowEngine(store, role_gate=EqualityRoleGate())


@pytest.fixture
def service(store: InMemoryPafStore, engine: PafWorkflowEngine) -> PafService:
    return PafService(store=store, engine=engine)


@pytest.fixture
def actors() -> Dict[str, ActorContext]:
    """One actor per role used by the default chains"""
    return {
        "employee": make_actor(ApproverRole.EMPLOYEE, "emp-1"),
        "other_employee": make_actor(ApproverRole.EMPLOYEE, "emp-2"),
        "hr": make_actor(ApproverRole.HR, "hr-1"),
        "finance": make_actor(ApproverRole.FINANCE, "fin-1"),
        "admin": make_actor(ApproverRole.ADMIN, "admin-1"),
        "supervisor": make_actor(ApproverRole.SUPERVISOR, "sup-1"),
    }


@pytest.fixture
def three_step_template(engine: PafWorkflowEngine, actors) -> WorkflowTemplate:
    """hr -> finance -> admin"""
    return engine.create_template(
        name="Standard Approval",
        steps=[
            StepDefinition(order=1, role=ApproverRole.HR, title="HR Review"),
            StepDefinition(order=2, role=ApproverRole.FINANCE, title="Finance Approval"),
            StepDefinition(order=3, role=ApproverRole.ADMIN, title="Final Approval"),
        ],
        actor=actors["admin"],
        tenant_id=TENANT_ID,
        is_default=True
    )


@pytest.fixture
def draft(engine: PafWorkflowEngine, three_step_template, actors) -> PafSubmission:
    return engine.create_submission(
        three_step_template.template_id,
        {"employee_name": "Pat Doe", "action_type": "salary_change", "amount": 1200},
        actors["employee"]
    )


@pytest.fixture
def submitted(engine: PafWorkflowEngine, draft: PafSubmission, actors) -> PafSubmission:
    return engine.submit(draft.submission_id, actors["employee"])


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def client(service: PafService) -> TestClient:
    """Test client bound to the per-test service"""
    app.dependency_overrides[get_paf_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[..., Dict[str, str]]:
    """Build an Authorization header for a role"""
    def _headers(role: str, actor_id: str = None, tenant_id: str = TENANT_ID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {make_token(actor_id or f'{role}-1', role, tenant_id)}"}
    return _headers
