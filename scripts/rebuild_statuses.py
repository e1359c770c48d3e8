"""
Rebuild Statuses Script - Recomputes cached submission status from the ledger
Run: python -m scripts.rebuild_statuses [--tenant district-1] [--since 2024-01-01T00:00:00Z]
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from paf_workflow.domain.enums import ApproverRole
from paf_workflow.domain.models import ActorContext
from paf_workflow.repositories import get_store
from paf_workflow.services.paf_service import PafService
from paf_workflow.utils.logger import setup_logging
from paf_workflow.utils.time import parse_iso


def main():
    parser = argparse.ArgumentParser(description="Recompute cached PAF statuses from approval steps")
    parser.add_argument("--tenant", type=str, default=None, help="Only this district (default: all)")
    parser.add_argument("--since", type=str, default=None, help="Only submissions created at or after this ISO time")
    args = parser.parse_args()

    setup_logging()
    since = parse_iso(args.since) if args.since else None

    service = PafService(store=get_store())
    actor = ActorContext(actor_id="rebuild-script", role=ApproverRole.SYSTEM_OWNER, tenant_id=args.tenant)
    result = service.rebuild_statuses(actor, tenant_id=args.tenant, since=since)

    print(f"Checked: {result['checked']}")
    print(f"Repaired: {result['repaired']}")


if __name__ == "__main__":
    main()
