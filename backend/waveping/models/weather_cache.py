"""Per-day conditions written by the weather collaborator; read opportunistically when rendering."""
from sqlalchemy import Column, Date, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from waveping.db.base import Base


class WeatherCache(Base):
    __tablename__ = "weather_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True)
    air_temp = Column(Numeric(4, 1), nullable=True)
    water_temp = Column(Numeric(4, 1), nullable=True)
    wind_speed = Column(Integer, nullable=True)
    wind_direction = Column(String(8), nullable=True)
    conditions = Column(String(128), nullable=True)
    cached_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
