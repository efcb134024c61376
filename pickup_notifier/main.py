import argparse
import asyncio
import logging

from .app_factory import create_facade, initialize_app

logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Pickup notifier application runner.")
    parser.add_argument(
        "command",
        choices=["bot", "dashboard", "sync"],
        help="The command to execute.",
    )
    args = parser.parse_args(argv)

    initialize_app()
    facade = create_facade()

    if args.command == "bot":
        from telegram_bot.bot import main as run_bot
        logger.info("Starting bot...")
        asyncio.run(run_bot(facade))
    elif args.command == "dashboard":
        from dashboard.app import run_dashboard
        logger.info("Starting dashboard...")
        run_dashboard(facade)
    elif args.command == "sync":
        logger.info("Running a one-off iCal update...")
        summary = facade.sync_service.update_all_locations()
        return 1 if summary.failed else 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
