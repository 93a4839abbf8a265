"""Weekly mood chart: bucket the last 7 calendar days and average intensity per day."""

from datetime import date, timedelta

from mindwell.db.base import as_utc
from mindwell.models.mood_entry import MoodEntry
from mindwell.schemas.mood import WeeklyChartDay

CHART_DAYS = 7
MAX_BAR_HEIGHT = 64.0
MIN_BAR_HEIGHT = 8.0  # days without entries render this flat bar
MAX_INTENSITY = 5


def bar_height(intensity: float, has_data: bool) -> float:
    if not has_data:
        return MIN_BAR_HEIGHT
    return max(MIN_BAR_HEIGHT, intensity / MAX_INTENSITY * MAX_BAR_HEIGHT)


def weekly_chart(entries: list[MoodEntry], today: date) -> list[WeeklyChartDay]:
    """One item per day, oldest first, ending today (UTC dates)."""
    by_day: dict[date, list[int]] = {}
    for entry in entries:
        if entry.created_at is None:
            continue
        by_day.setdefault(as_utc(entry.created_at).date(), []).append(entry.intensity)

    days = []
    for offset in range(CHART_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        values = by_day.get(day, [])
        mean = sum(values) / len(values) if values else 0.0
        days.append(
            WeeklyChartDay(
                date=day,
                day=day.strftime("%a"),
                intensity=round(mean, 2),
                has_data=bool(values),
                bar_height=round(bar_height(mean, bool(values)), 2),
            )
        )
    return days
