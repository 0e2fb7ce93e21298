"""
Centralized constants for lead times, digests and change tracking.

Change tags or offsets here instead of scattering literals across services and routes.
Tunable thresholds (window tolerance, concurrency, filling-fast mark) live in engine_config.
"""
from datetime import timedelta

# Lead-time tags a subscriber can enable, with the offset before session start.
# Order matters for display: longest notice first.
LEAD_TIME_OFFSETS: dict[str, timedelta] = {
    "1w": timedelta(weeks=1),
    "48h": timedelta(hours=48),
    "24h": timedelta(hours=24),
    "12h": timedelta(hours=12),
    "2h": timedelta(hours=2),
}
LEAD_TIME_TAGS = tuple(LEAD_TIME_OFFSETS)

LEAD_TIME_LABELS = {
    "1w": "1 week",
    "48h": "48 hours",
    "24h": "24 hours",
    "12h": "12 hours",
    "2h": "2 hours",
}

# Synthetic lead-time tags for change-triggered alerts. Stored in send_records.lead_time
# next to the real tags so the same (subscriber, event, tag) uniqueness applies.
BECAME_AVAILABLE = "became_available"
FILLING_FAST = "filling_fast"
CHANGE_ALERT_TAGS = (BECAME_AVAILABLE, FILLING_FAST)

# Sides: L = left, R = right, A = any (wildcard on the subscriber side only)
SIDE_LEFT = "L"
SIDE_RIGHT = "R"
SIDE_ANY = "A"
SIDE_LABELS = {SIDE_LEFT: "Left", SIDE_RIGHT: "Right", SIDE_ANY: "Any"}

# Digest preference values on subscribers; digest types are the two concrete runs.
DIGEST_NONE = "none"
DIGEST_MORNING = "morning"
DIGEST_EVENING = "evening"
DIGEST_BOTH = "both"
DIGEST_TYPES = (DIGEST_MORNING, DIGEST_EVENING)
DIGEST_PREFERENCES = (DIGEST_NONE, DIGEST_MORNING, DIGEST_EVENING, DIGEST_BOTH)

# Change record kinds (change_records.change_type)
CHANGE_NEW = "new"
CHANGE_CAPACITY_INCREASED = "capacity_increased"
CHANGE_CAPACITY_DECREASED = "capacity_decreased"
CHANGE_CANCELLED = "cancelled"

# Session levels seen on the upstream calendar (level tags are free-form; these are the known ones)
KNOWN_LEVELS = (
    "beginner",
    "improver",
    "intermediate",
    "advanced",
    "advanced_plus",
    "expert",
    "expert_turns",
    "expert_barrels",
    "women_only",
    "improver_lesson",
    "intermediate_lesson",
    "advanced_coaching",
    "high_performance_coaching",
)

# Telegram hard limit for one sendMessage text
TELEGRAM_MAX_MESSAGE_CHARS = 4096
