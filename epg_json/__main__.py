"""
Command line entry point

    python -m epg_json convert        one conversion run
    python -m epg_json update-images  one image database update
    python -m epg_json schedule       run both on their cron schedules
"""
import argparse
import asyncio
import json
import logging
import sys

from epg_json import __version__
from epg_json.config import settings, setup_logging
from epg_json.services.epg_convert_service import convert_epg
from epg_json.services.image_db_service import update_image_database
from epg_json.services.scheduler_service import EPGScheduler


logger = logging.getLogger("epg_json.main")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epg-json",
        description="Convert XMLTV EPG feeds into per-channel JSON files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        type=str.upper,
        help="Override the configured log level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("convert", help="Fetch EPG sources and write JSON output")
    subparsers.add_parser("update-images", help="Update the image database from the schedule API")
    subparsers.add_parser("schedule", help="Run conversion and image updates on their cron schedules")
    return parser


async def _run_scheduler() -> None:
    scheduler = EPGScheduler(settings)
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def main(argv: list[str] | None = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "convert":
        result = asyncio.run(convert_epg(settings))
        logger.info("Result: %s", json.dumps(
            {key: value for key, value in result.items() if key != "source_details"}
        ))
        if result.get("status") == "failed":
            logger.error("EPG update failed")
            return 1
        return 0

    if args.command == "update-images":
        result = asyncio.run(update_image_database(settings))
        logger.info(
            "Image database: %s updated, %s failed of %s requested",
            result["channels_updated"],
            result["channels_failed"],
            result["channels_requested"],
        )
        return 0

    try:
        asyncio.run(_run_scheduler())
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
