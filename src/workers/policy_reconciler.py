# src/workers/policy_reconciler.py
"""
Re-runs visibility policy propagation for organizations whose latest policy version has not
reached their member profiles yet.

    python -m src.workers.policy_reconciler [--once]
"""
import argparse
import logging
import time
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..core.org_directory import HttpOrganizationDirectory, OrganizationDirectory
from ..core.policy_store import PolicyStore
from ..database import SessionLocal
from ..services.policy_service import PolicyService

logger = logging.getLogger(__name__)


def run_once(session_factory=SessionLocal, directory: Optional[OrganizationDirectory] = None) -> Dict[str, bool]:
    settings = get_settings()
    directory = directory or HttpOrganizationDirectory()
    with session_factory() as db:
        policy_store = PolicyStore(db, default_org_id=settings.DEFAULT_ORG_ID)
        outcome = PolicyService(db, policy_store, directory).reconcile_pending()

    if outcome:
        failed = sorted(org_id for org_id, ok in outcome.items() if not ok)
        logger.info(f"Reconciled {len(outcome) - len(failed)} of {len(outcome)} organizations")
        if failed:
            logger.warning(f"Still pending: {', '.join(failed)}")
    return outcome


def main(argv=None):
    parser = argparse.ArgumentParser(description="Propagate pending organization visibility policies")
    parser.add_argument("--once", action="store_true", help="run a single reconciliation pass and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    settings = get_settings()
    directory = HttpOrganizationDirectory()

    try:
        while True:
            try:
                run_once(directory=directory)
            except SQLAlchemyError as e:
                logger.error(f"Reconciliation pass failed: {e}")
            if args.once:
                break
            time.sleep(settings.POLICY_RECONCILE_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        logger.info("Policy reconciler stopped")
    finally:
        directory.close()


if __name__ == "__main__":
    main()
