"""Optional conditions per session date, read from weather_cache. Never blocks a send."""
import logging
from datetime import date
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from waveping.models.weather_cache import WeatherCache

logger = logging.getLogger(__name__)


def _row_to_dict(row: WeatherCache) -> dict[str, Any]:
    return {
        "air_temp": float(row.air_temp) if row.air_temp is not None else None,
        "water_temp": float(row.water_temp) if row.water_temp is not None else None,
        "wind_speed": row.wind_speed,
        "wind_direction": row.wind_direction,
        "conditions": row.conditions,
    }


def weather_by_date(db: Session, days: Iterable[date]) -> dict[date, dict[str, Any]]:
    """Conditions for the given dates; dates without a cache row are absent. Lookup errors -> {}."""
    wanted = list(set(days))
    if not wanted:
        return {}
    try:
        rows = db.query(WeatherCache).filter(WeatherCache.date.in_(wanted)).all()
    except SQLAlchemyError as e:
        logger.warning("Weather lookup failed (sending without conditions): %s", e)
        db.rollback()
        return {}
    return {r.date: _row_to_dict(r) for r in rows}
