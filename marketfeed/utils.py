import sys
from datetime import date, datetime, timedelta

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """
    Install a single stderr sink at the given level.

    catch=True keeps a broken sink from raising into the data path.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        catch=True,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
        ),
    )


def previous_trading_day(now: datetime | None = None) -> date:
    """
    Previous trading day (T-1) for a reference time.

    Monday, Sunday and Saturday all map back to Friday.
    """
    today = (now or datetime.now()).date()
    weekday = today.weekday()  # Monday == 0

    if weekday == 0:
        days_back = 3
    elif weekday == 6:
        days_back = 2
    else:
        days_back = 1

    return today - timedelta(days=days_back)


def preview(items: list[str], limit: int = 10) -> str:
    """Comma-joined prefix of a list for log lines."""
    text = ",".join(items[:limit])
    return text + ("..." if len(items) > limit else "")
