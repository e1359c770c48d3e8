"""Role Gate - decides whether an actor's role may act on a step"""
from typing import Dict, Iterable, Protocol

from ..config.settings import Settings
from ..domain.enums import ApproverRole
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RoleGate(Protocol):
    """Authorization policy for step actions"""

    def authorize(self, actor_role: ApproverRole, required_role: ApproverRole) -> bool:
        ...


class EqualityRoleGate:
    """Only the exact role named on the step may act"""

    def authorize(self, actor_role: ApproverRole, required_role: ApproverRole) -> bool:
        return actor_role == required_role


class DelegatingRoleGate:
    """
    Exact role match, plus configured delegations

    A delegation ``superintendent -> [business_official]`` lets a
    superintendent sign business-official steps. Delegation is not
    transitive.
    """

    def __init__(self, delegations: Dict[str, Iterable[str]]):
        self._delegations = {
            ApproverRole(role): frozenset(ApproverRole(r) for r in targets)
            for role, targets in delegations.items()
        }

    def authorize(self, actor_role: ApproverRole, required_role: ApproverRole) -> bool:
        if actor_role == required_role:
            return True
        return required_role in self._delegations.get(actor_role, frozenset())


def build_role_gate(settings: Settings) -> RoleGate:
    """Build the role gate named by ``role_policy``"""
    policy = settings.role_policy.lower()
    if policy == "equality":
        return EqualityRoleGate()
    if policy == "delegating":
        logger.info(f"Role delegations enabled: {settings.role_delegations_map}")
        return DelegatingRoleGate(settings.role_delegations_map)
    raise ValueError(f"Unknown role policy: {settings.role_policy}")
