import time
import uuid
import logging
import signal
import argparse

from core.app_context import AppContext
from core.config_loader import load_config
from database.database import configure_database
from database.init_db import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True


def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False


def run_sweep_loop(ctx: AppContext, interval: int):
    """
    Run the expiry/retry sweeper every `interval` seconds until shutdown.

    Every instance may run this loop; the leader lock makes sure only one
    of them sweeps per cycle.
    """
    cycle_count = 0
    while running:
        cycle_count += 1
        cycle_start = time.time()
        logger.info(f"=== Starting Sweep Cycle #{cycle_count} ===")
        try:
            report = ctx.sweeper.run_once()
            logger.info(f"Sweep result: {report.to_dict()}")
        except Exception as e:
            logger.error(f"Error in sweep loop: {e}", exc_info=True)

        cycle_elapsed = time.time() - cycle_start
        if running:
            logger.info(f"=== Cycle #{cycle_count} completed in {cycle_elapsed:.2f}s. Sleeping for {interval} seconds... ===")
            # Sleep in chunks to allow responsive shutdown
            for _ in range(max(1, interval // 5)):
                if not running:
                    break
                time.sleep(min(5, interval))


def run_rescan(ctx: AppContext, tenant_id: str = None, listing_id: str = None):
    if tenant_id:
        report = ctx.match_index.rescan_for_tenant(uuid.UUID(tenant_id))
    else:
        report = ctx.match_index.rescan_for_listing(uuid.UUID(listing_id))
    logger.info(f"Rescan result: {report.to_dict()}")


def main():
    parser = argparse.ArgumentParser(description="Housing Matching Driver")
    parser.add_argument('--mode', type=str, choices=['sweep', 'sweep-once', 'serve', 'init-db', 'rescan'], default='sweep',
                        help='sweep (default, periodic), sweep-once, serve (HTTP API), init-db, or rescan')
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    parser.add_argument('--tenant-id', type=str, help='Tenant profile to rescan (rescan mode)')
    parser.add_argument('--listing-id', type=str, help='Listing to rescan (rescan mode)')
    args = parser.parse_args()

    if args.mode == 'rescan' and bool(args.tenant_id) == bool(args.listing_id):
        parser.error("rescan mode needs exactly one of --tenant-id or --listing-id")

    config = load_config(args.config)
    engine = configure_database(config.database.url)

    # Initialize DB (with retry logic)
    init_db(engine)
    if args.mode == 'init-db':
        return

    if args.mode == 'serve':
        from web.backend.app import main as serve
        serve()
        return

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    ctx = AppContext.build(config)
    try:
        if args.mode == 'rescan':
            run_rescan(ctx, args.tenant_id, args.listing_id)
        elif args.mode == 'sweep-once':
            report = ctx.sweeper.run_once()
            logger.info(f"Sweep result: {report.to_dict()}")
        else:
            logger.info(f"Main driver starting sweep loop (interval {config.sweep.interval_seconds}s)")
            run_sweep_loop(ctx, config.sweep.interval_seconds)
    finally:
        ctx.shutdown()


if __name__ == "__main__":
    main()
