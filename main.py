import argparse
import datetime as dt
import logging

from slotfinder.availability import MonthCache, group_by_start
from slotfinder.calendar_view import render_day, render_month
from slotfinder.config import load_settings
from slotfinder.loader import load_dataset, load_dataset_from_dir
from slotfinder.state_file import save_month_index


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _parse_month(raw: str) -> tuple[int, int]:
    try:
        parsed = dt.datetime.strptime(raw, "%Y-%m")
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {raw!r}") from e
    return parsed.year, parsed.month


def _parse_day(raw: str) -> dt.date:
    try:
        return dt.date.fromisoformat(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from e


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="slotfinder: monthly availability from scheduling links")
    parser.add_argument("--month", type=_parse_month, help="Month to show, YYYY-MM (default: current)")
    parser.add_argument("--day", type=_parse_day, help="Also list the slots of this day, YYYY-MM-DD")
    parser.add_argument("--data-dir", help="Read <ResourceType>.ndjson files from this directory")
    parser.add_argument("--output", help="Write the month index as JSON to this file")
    args = parser.parse_args(argv)

    settings = load_settings()
    _setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    data_dir = args.data_dir or settings.data_dir
    try:
        dataset = load_dataset_from_dir(data_dir) if data_dir else load_dataset(settings)
    except Exception as e:
        logger.error("Failed to load scheduling data (%s: %s)", type(e).__name__, e)
        return 1

    # One cache per loaded dataset.
    cache = MonthCache(dataset, tz=settings.timezone)

    if args.month:
        year, month = args.month
    elif args.day:
        year, month = args.day.year, args.day.month
    else:
        today = dt.datetime.now(settings.timezone).date()
        year, month = today.year, today.month

    index = cache.get(year, month)
    print(render_month(index))

    if args.day:
        day_index = cache.get(args.day.year, args.day.month)
        day_key = args.day.isoformat()
        groups = group_by_start(day_index.get(day_key) or ())
        print(render_day(day_key, groups, tz=settings.timezone))

    if args.output:
        save_month_index(args.output, index)
        logger.info("Month index saved to %s", args.output)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
