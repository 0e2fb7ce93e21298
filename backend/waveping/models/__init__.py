from waveping.models.availability_event import AvailabilityEvent
from waveping.models.change_record import ChangeRecord
from waveping.models.digest_record import DigestRecord
from waveping.models.send_record import SendRecord
from waveping.models.subscriber import Subscriber
from waveping.models.weather_cache import WeatherCache

__all__ = [
    "AvailabilityEvent",
    "ChangeRecord",
    "DigestRecord",
    "SendRecord",
    "Subscriber",
    "WeatherCache",
]
