from waveping.services.changes import Acquisition, apply_acquisition, notify_changes
from waveping.services.digest import run_digest
from waveping.services.dispatcher import Candidate, dispatch
from waveping.services.matching import matches, matching_lead_times
from waveping.services.reminders import run_reminders

__all__ = [
    "Acquisition",
    "Candidate",
    "apply_acquisition",
    "dispatch",
    "matches",
    "matching_lead_times",
    "notify_changes",
    "run_digest",
    "run_reminders",
]
