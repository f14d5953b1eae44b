from datetime import datetime, timedelta


def next_daily_run(now: datetime, hour: int) -> datetime:
    """Next occurrence of `hour`:00 strictly after now (same timezone as now)."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= next_run:
        next_run += timedelta(days=1)
    return next_run
