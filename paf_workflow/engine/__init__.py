"""PAF Workflow Engine - The brain of the system"""
from .engine import PafWorkflowEngine
from .role_gate import RoleGate, EqualityRoleGate, DelegatingRoleGate, build_role_gate
from .template_registry import TemplateRegistry, validate_steps
from .audit_writer import AuditWriter
from .status_projection import derive_status, derive_current_step

__all__ = [
    "PafWorkflowEngine",
    "RoleGate",
    "EqualityRoleGate",
    "DelegatingRoleGate",
    "build_role_gate",
    "TemplateRegistry",
    "validate_steps",
    "AuditWriter",
    "derive_status",
    "derive_current_step",
]
