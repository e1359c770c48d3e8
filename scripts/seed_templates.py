"""
Seed Templates Script - Creates the default PAF workflow templates
Run: python -m scripts.seed_templates [--tenant district-1]
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from paf_workflow.config.settings import settings
from paf_workflow.domain.enums import ApproverRole
from paf_workflow.domain.models import ActorContext
from paf_workflow.repositories import get_store
from paf_workflow.repositories.mongo_client import create_indexes
from paf_workflow.services.paf_service import PafService
from paf_workflow.utils.logger import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Seed default PAF workflow templates")
    parser.add_argument(
        "--tenant",
        type=str,
        default=settings.default_tenant_id,
        help=f"District to seed (default: {settings.default_tenant_id})"
    )
    args = parser.parse_args()

    setup_logging()
    if settings.persistence_backend.lower() == "mongo":
        create_indexes()

    service = PafService(store=get_store())
    actor = ActorContext(actor_id="seed-script", role=ApproverRole.SYSTEM_OWNER, tenant_id=args.tenant)
    created = service.seed_default_templates(actor, tenant_id=args.tenant)

    if not created:
        print(f"Default templates already present for {args.tenant}. Skipping seed.")
        return

    for template in created:
        roles = " -> ".join(step.role.value for step in template.steps)
        print(f"Created: {template.name} ({template.template_id}) [{roles}]")
    print(f"\nTotal created: {len(created)}")


if __name__ == "__main__":
    main()
