"""Jury contest timeline (read-only view over the contest times).

One row per milestone, in a fixed order:
- icon: 'check' once passed; 'ellipsis-h' on the first upcoming milestone
  directly after a passed one (and on a delayed start); None otherwise
- show_button: whether the jury can trigger this milestone "now"
- extra_button: delay/resume toggle on the start row, only while the start
  is more than STARTTIME_UPDATE_MIN_SECONDS_BEFORE away
"""
from __future__ import annotations

from typing import Callable, Dict

from .contest import Contest
from .timespec import format_absolute
from .types import TimelineEntry
from .validation import TimelineConfig

# Fixed table: milestone → accessor for its timestamp, in display order
MILESTONE_ACCESSORS: Dict[str, Callable[[Contest], float | None]] = {
    "activate": lambda contest: contest.activatetime,
    "start": lambda contest: contest.get_starttime(),
    "freeze": lambda contest: contest.freezetime,
    "end": lambda contest: contest.endtime,
    "unfreeze": lambda contest: contest.unfreezetime,
    "finalize": lambda contest: contest.finalizetime,
    "deactivate": lambda contest: contest.deactivatetime,
}


def _passed(time: float | None, now: float) -> bool:
    return time is not None and time - now <= 0


def jury_timeline(contest: Contest, now: float, tz_name: str | None = None) -> Dict[str, TimelineEntry]:
    """Build the jury timeline rows at `now`.

    Args:
        contest: Resolved contest
        now: Current wall-clock time (epoch seconds)
        tz_name: Display timezone; defaults to the contest's timezone

    Returns:
        Dict milestone → TimelineEntry, in MILESTONE_ACCESSORS order
    """
    tz_name = tz_name or contest.timezone
    start_enabled = contest.starttime_enabled

    # No activate time means activated from the beginning
    is_activated = contest.activatetime is None or _passed(contest.activatetime, now)
    has_started = _passed(contest.get_starttime(), now)
    has_ended = _passed(contest.endtime, now)
    has_frozen = _passed(contest.freezetime, now)
    has_unfrozen = _passed(contest.unfreezetime, now)
    is_final = contest.finalizetime is not None

    if not start_enabled:
        has_started = has_ended = has_frozen = has_unfrozen = False

    show_buttons = {
        "activate": not is_activated,
        "start": not has_started,
        "freeze": has_started and not has_ended and not has_frozen,
        "end": has_started and not has_ended and (contest.freezetime is None or has_frozen),
        "unfreeze": has_frozen and not has_unfrozen and has_ended,
        "finalize": has_ended and not is_final,
        "deactivate": has_ended and (contest.unfreezetime is None or has_unfrozen),
    }

    nominal_start = contest.get_starttime(null_when_disabled=False)
    close_to_start = (
        nominal_start is None
        or nominal_start - now <= TimelineConfig.STARTTIME_UPDATE_MIN_SECONDS_BEFORE
    )

    result: Dict[str, TimelineEntry] = {}
    prev_checked = False
    for milestone, accessor in MILESTONE_ACCESSORS.items():
        item: TimelineEntry = {}
        time_value = accessor(contest)
        if milestone == "start" and not start_enabled:
            item["icon"] = "ellipsis-h"
            time_value = nominal_start
            prev_checked = False
        elif time_value is None:
            item["icon"] = None
        elif _passed(time_value, now):
            item["icon"] = "check"
            prev_checked = True
        elif prev_checked:
            item["icon"] = "ellipsis-h"
            prev_checked = False
        else:
            item["icon"] = None

        item["label"] = f"{milestone.capitalize()} time"
        item["time"] = format_absolute(time_value, tz_name)
        item["time_value"] = time_value
        if milestone == "start" and not start_enabled:
            item["class"] = "ignore"

        item["show_button"] = show_buttons[milestone]

        if milestone == "start" and not close_to_start:
            kind = "delay" if start_enabled else "resume"
            item["extra_button"] = {"type": f"{kind}_start", "label": f"{kind} start"}

        result[milestone] = item

    return result
