"""Reservation expiry sweeper for storeflow.

Periodically flips overdue ACTIVE reservations to EXPIRED so their units
become available again. Several sweepers may run side by side; each expiry is
a compare-and-set, so a reservation is never expired twice.

Usage:
    python src/sweeper.py                        # Sweep all stores every 60 seconds
    python src/sweeper.py --store store-001      # Sweep a single store
    python src/sweeper.py --once --batch-limit 500
"""

import argparse
import asyncio

import structlog

from storeflow.domain import storeflow
from storeflow.inventory.expiry import DEFAULT_BATCH_LIMIT, expire_sweep
from storeflow.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def sweep_once(store_id=None, batch_limit=DEFAULT_BATCH_LIMIT) -> int:
    with storeflow.domain_context():
        return expire_sweep(batch_limit=batch_limit, store_id=store_id)


async def run(store_id, interval, batch_limit, once=False):
    while True:
        expired = await asyncio.to_thread(sweep_once, store_id, batch_limit)
        logger.info("Sweep finished", store_id=store_id, expired=expired)
        if once:
            return
        await asyncio.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="storeflow reservation expiry sweeper")
    parser.add_argument("--store", help="Sweep a single store (default: all stores)")
    parser.add_argument("--interval", type=float, default=60.0, help="Seconds between sweeps")
    parser.add_argument("--batch-limit", type=int, default=DEFAULT_BATCH_LIMIT, help="Max reservations per sweep")
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    args = parser.parse_args()

    configure_logging()
    storeflow.init()

    asyncio.run(run(args.store, args.interval, args.batch_limit, once=args.once))


if __name__ == "__main__":
    main()
