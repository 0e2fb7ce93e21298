"""
Engine tuning snapshot. Settings (.env) is the source of truth; services take an
EngineConfig argument instead of reading settings directly, so nothing tunable is
ambient module state and tests can build their own.
"""
import logging
from dataclasses import dataclass

from waveping.config import Settings, settings as default_settings

_log = logging.getLogger(__name__)


def _clamp(value: int, min_val: int, max_val: int | None = None) -> int:
    if value < min_val:
        return min_val
    if max_val is not None and value > max_val:
        return max_val
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Snapshot of engine config for passing around (e.g. tests)."""
    business_timezone: str = "Europe/London"
    window_minutes: int = 45
    max_concurrency: int = 10
    channel_timeout_seconds: float = 10.0
    invocation_budget_seconds: float = 50.0
    filling_fast_threshold: int = 3
    became_available_threshold: int = 0
    evening_lookahead_days: int = 1
    default_book_url: str = "https://ticketing.thewave.com/"
    message_max_chars: int = 4096


def get_engine_config(s: Settings | None = None) -> EngineConfig:
    s = s or default_settings
    config = EngineConfig(
        business_timezone=s.business_timezone.strip() or "Europe/London",
        window_minutes=_clamp(s.notification_window_minutes, 1, 24 * 60),
        max_concurrency=_clamp(s.dispatch_max_concurrency, 1, 50),
        channel_timeout_seconds=max(1.0, s.channel_timeout_seconds),
        invocation_budget_seconds=max(1.0, s.invocation_budget_seconds),
        filling_fast_threshold=_clamp(s.filling_fast_threshold, 0),
        became_available_threshold=_clamp(s.became_available_threshold, 0),
        evening_lookahead_days=_clamp(s.evening_lookahead_days, 0, 7),
        default_book_url=s.default_book_url,
        message_max_chars=_clamp(s.message_max_chars, 256, 4096),
    )
    _log.debug(
        "Engine config: tz=%s window_min=%s max_concurrency=%s budget_sec=%s filling_fast=%s",
        config.business_timezone,
        config.window_minutes,
        config.max_concurrency,
        config.invocation_budget_seconds,
        config.filling_fast_threshold,
    )
    return config
