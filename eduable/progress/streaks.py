from datetime import datetime, date, timedelta
from typing import Iterable, Optional


def calculate_streak(dates: Iterable[datetime], today: Optional[date] = None) -> int:
    """
    Consecutive calendar days (UTC) with a completed lesson.

    The streak only counts as active if the latest day is today or yesterday.
    """
    days = sorted({d.date() for d in dates}, reverse=True)
    if not days:
        return 0

    today = today or datetime.utcnow().date()
    if days[0] < today - timedelta(days=1):
        return 0

    streak = 1
    for i in range(1, len(days)):
        if (days[i - 1] - days[i]).days == 1:
            streak += 1
        else:
            break
    return streak
