"""Contest time model and state transitions (pure, no web framework/DB).

This module implements the timing core of a programming contest: the six
authoritative time fields, removed intervals, the contest clock, the phase
snapshot and the jury commands that edit them.
All computations are deterministic and take the current time as an argument.

Architecture:
- Contest is a dataclass holding each time field twice: the authoritative
  string (e.g. freezetime_string = "+4:00") and the derived timestamp
  (freezetime = epoch seconds). Timestamps are a cache of the strings.
- resolve_all() is the single cascade entry point: start is resolved first
  (absolute only), then every other field is resolved against it.
- apply_command() takes (contest, cmd) and returns CommandOutcome with an
  updated deepcopy, the validation result and whether it may be persisted
- Parent (web/API layer) receives CommandOutcome and persists/renders as needed

Key concepts:
- Relative time: "+H:MM[:SS[.ffffff]]" anchored to start, shifted by every
  removed interval that begins at or before the tentative result
- Removed interval: wall-clock span during which contest time does not advance
- starttime_enabled: when False the contest is held in "start delayed"; the
  start timestamp is kept but every phase that depends on it is suppressed

Validation:
- validate_contest() (validation.py) re-resolves, then checks ordering of the
  six times plus medal/problem configuration and returns all violations
- validate_contest_version() rejects commands built on a stale contest version
"""
from __future__ import annotations

import logging
import math
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from .timespec import (
    AbsoluteInstant,
    RelativeOffset,
    TimeSpec,
    format_countdown,
    format_relative,
    parse_time_spec,
    resolve_timezone,
)
from .types import ContestStateDict
from .validation import InputSanitizer, TimelineConfig, Violation, validate_contest

logger = logging.getLogger(__name__)


class MissingRemovedIntervalData(RuntimeError):
    """Removed intervals exist for a contest but could not be loaded."""


@dataclass(frozen=True)
class RemovedInterval:
    """Wall-clock span [starttime, endtime) during which contest time is paused."""

    starttime: float
    endtime: float

    def __post_init__(self) -> None:
        if not self.starttime < self.endtime:
            raise ValueError(
                f"Removed interval must start before it ends ({self.starttime} >= {self.endtime})"
            )

    @property
    def duration(self) -> float:
        return self.endtime - self.starttime


@dataclass
class ContestProblem:
    problem_id: int
    shortname: str


@dataclass
class Contest:
    """Aggregate root for one contest's timing and scoring configuration.

    Construct with the time strings; timestamps are resolved in
    __post_init__ and after every mutation that goes through the methods
    below. Assigning a *_string attribute directly leaves the timestamps
    stale until resolve_all() (or validate_contest()) runs.
    """

    shortname: str
    name: str = ""
    cid: int | None = None
    externalid: str | None = None

    # Authoritative strings
    activatetime_string: str | None = None
    starttime_string: str = ""
    freezetime_string: str | None = None
    endtime_string: str = ""
    unfreezetime_string: str | None = None
    deactivatetime_string: str | None = None
    starttime_enabled: bool = True

    # Derived timestamps (epoch seconds)
    activatetime: float | None = None
    starttime: float | None = None
    freezetime: float | None = None
    endtime: float | None = None
    unfreezetime: float | None = None
    deactivatetime: float | None = None

    # Set by an explicit jury action, never derived from a string
    finalizetime: float | None = None
    finalize_comment: str | None = None

    enabled: bool = True
    public: bool = True

    medals_enabled: bool = False
    gold_medals: int | None = 4
    silver_medals: int | None = 4
    bronze_medals: int | None = 4
    extra_bronze_medals: int | None = 0
    medal_categories: List[str] = field(default_factory=list)

    problems: List[ContestProblem] = field(default_factory=list)
    removed_intervals: List[RemovedInterval] = field(default_factory=list)

    timezone: str = TimelineConfig.DEFAULT_TIMEZONE
    # Incremented on every persisted change; used to detect stale edits
    version: int = 0

    def __post_init__(self) -> None:
        self.resolve_all()

    # ----- time strings ---------------------------------------------------

    def get_time_string(self, name: str) -> str | None:
        getter, _ = _TIME_STRING_ACCESSORS[name]
        return getter(self)

    def set_time_string(self, name: str, spec: str | None) -> None:
        """Set one authoritative time string and re-resolve every timestamp."""
        if name not in _TIME_STRING_ACCESSORS:
            raise ValueError(f"Unknown time field: {name}")
        if name in {"start", "end"}:
            spec = spec or ""
        _, setter = _TIME_STRING_ACCESSORS[name]
        setter(self, spec)
        self.resolve_all()

    def get_starttime(self, null_when_disabled: bool = True) -> float | None:
        """Start timestamp, or None while the start is delayed (disabled)."""
        if null_when_disabled and not self.starttime_enabled:
            return None
        return self.starttime

    # ----- resolver -------------------------------------------------------

    def _sorted_intervals(self) -> List[RemovedInterval]:
        # sorted() is stable: equal starts keep insertion order
        return sorted(self.removed_intervals, key=lambda interval: interval.starttime)

    def absolute_time(self, spec: str | None) -> float | None:
        """Resolve a time string to a timestamp against the current start.

        Args:
            spec: Absolute or relative time string (None allowed)

        Returns:
            Epoch seconds, or None for unset/unparseable strings and for
            relative strings while no start is resolved.

        Relative strings get start + offset, then a single forward pass over
        the removed intervals (sorted by start): every interval starting at
        or before the running result adds its duration. The pass does not
        re-scan intervals it already passed.
        """
        parsed = parse_time_spec(spec, self.timezone)
        if isinstance(parsed, AbsoluteInstant):
            return parsed.timestamp
        if not isinstance(parsed, RelativeOffset):
            return None
        if self.starttime is None:
            return None

        absolute = self.starttime + parsed.seconds
        for interval in self._sorted_intervals():
            if interval.starttime - absolute <= 0:
                absolute += interval.duration
        return absolute

    def resolve_all(self) -> None:
        """Recompute all six timestamps from their strings.

        Start is resolved first and only from an absolute string; the other
        fields may be relative to it, so they always follow.
        """
        start: TimeSpec = parse_time_spec(self.starttime_string, self.timezone)
        self.starttime = start.timestamp if isinstance(start, AbsoluteInstant) else None
        if self.starttime is None and self.starttime_string:
            logger.debug(f"Contest {self.shortname!r}: start {self.starttime_string!r} not absolute")

        self.activatetime = self.absolute_time(self.activatetime_string)
        self.freezetime = self.absolute_time(self.freezetime_string)
        self.endtime = self.absolute_time(self.endtime_string)
        self.unfreezetime = self.absolute_time(self.unfreezetime_string)
        self.deactivatetime = self.absolute_time(self.deactivatetime_string)

    # ----- removed intervals ---------------------------------------------

    def add_removed_interval(self, interval: RemovedInterval) -> None:
        self.removed_intervals.append(interval)
        self.resolve_all()

    def remove_removed_interval(self, interval: RemovedInterval) -> None:
        """Remove an interval (matched by value) and re-resolve.

        Raises:
            ValueError: If the contest has no such interval
        """
        self.removed_intervals.remove(interval)
        self.resolve_all()

    # ----- contest clock --------------------------------------------------

    def contest_time(self, wall_time: float) -> float:
        """Elapsed contest time at a wall-clock instant.

        Removed intervals that began before wall_time are subtracted; one
        still in progress only counts up to wall_time. Negative before start.
        Uses the nominal start, also while the start is delayed.
        """
        start = self.get_starttime(null_when_disabled=False)
        if start is None:
            raise ValueError(f"Contest {self.shortname!r} has no resolved start time")
        contest_time = wall_time - start
        for interval in self.removed_intervals:
            if interval.starttime - wall_time < 0:
                contest_time -= min(wall_time - interval.starttime, interval.duration)
        return contest_time

    def is_time_in_contest(self, wall_time: float) -> bool:
        """Whether a wall-clock time falls within [start, end)."""
        start = self.get_starttime()
        if start is None or self.endtime is None:
            return False
        return start - wall_time <= 0 and self.endtime - wall_time > 0

    def duration(self) -> str:
        """Contest length as H:MM:SS (removed intervals included)."""
        start = self.get_starttime(null_when_disabled=False)
        if start is None or self.endtime is None:
            return ""
        return format_relative(self.endtime - start)

    def scoreboard_freeze_duration(self) -> str | None:
        if self.freezetime is None or self.endtime is None:
            return None
        return format_relative(self.endtime - self.freezetime)

    def minutes_remaining(self) -> int:
        """Whole minutes between freeze and end (0 without a freeze)."""
        if self.freezetime is None or self.endtime is None:
            return 0
        return int(math.floor((self.endtime - self.freezetime) / 60))

    def is_active(self, now: float) -> bool:
        """Enabled, public, activated and not yet deactivated at `now`."""
        return (
            self.enabled
            and self.public
            and (self.activatetime is None or self.activatetime <= now)
            and (self.deactivatetime is None or self.deactivatetime > now)
        )

    def countdown_string(self, now: float) -> str:
        """Header countdown shown to teams.

        Examples:
            - before activation → ""
            - start delayed → "start delayed"
            - during the contest → "1:59:30" (until end)
            - before start → "time to start: 0:10:00"
        """
        if self.activatetime is not None and self.activatetime - now > 0:
            return ""
        if not self.starttime_enabled:
            return "start delayed"
        if self.is_time_in_contest(now):
            return format_countdown(self.endtime - now)
        start = self.get_starttime()
        if start is not None and start - now >= 0:
            return "time to start: " + format_countdown(start - now)
        return ""

    # ----- phase state ----------------------------------------------------

    def get_state(self, now: float) -> ContestStateDict:
        """Derive the contest phases at `now`.

        Each phase holds the instant it was reached, or None. Recomputed on
        every call; there are no explicit transitions.

        Dependencies:
        - ended and frozen require started
        - thawed requires frozen
        - finalized requires ended
        - end_of_updates requires finalized and (thawed or never frozen);
          it is the thaw time if the thaw happened and the freeze lies after
          the finalize time, otherwise the finalize time
        A delayed (disabled) start suppresses started and everything after it.
        """

        def time_or_null(time: float | None, extra_cond: bool = True) -> float | None:
            if not extra_cond or time is None or now < time:
                return None
            return time

        started = time_or_null(self.get_starttime())
        ended = time_or_null(self.endtime, started is not None)
        frozen = time_or_null(self.freezetime, started is not None)
        thawed = time_or_null(self.unfreezetime, frozen is not None)
        finalized = time_or_null(self.finalizetime, ended is not None)

        end_of_updates = None
        if finalized is not None and (thawed is not None or frozen is None):
            if (
                thawed is not None
                and self.freezetime is not None
                and self.finalizetime is not None
                and self.freezetime > self.finalizetime
            ):
                end_of_updates = thawed
            else:
                end_of_updates = finalized

        return {
            "started": started,
            "ended": ended,
            "frozen": frozen,
            "thawed": thawed,
            "finalized": finalized,
            "end_of_updates": end_of_updates,
        }

    # ----- jury actions ---------------------------------------------------

    def finalize(self, finalizetime: float, comment: str | None = None, *, override: bool = False) -> None:
        """Mark the results final. Only once, unless the jury overrides."""
        if self.finalizetime is not None and not override:
            raise ValueError(f"Contest {self.shortname!r} is already finalized")
        self.finalizetime = finalizetime
        self.finalize_comment = comment

    def set_problems(self, problems: List[ContestProblem]) -> None:
        # Kept ordered by short name, like the problem list on the scoreboard
        self.problems = sorted(problems, key=lambda problem: problem.shortname)


def _string_accessor(attr: str) -> tuple[Callable[[Contest], str | None], Callable[[Contest, str | None], None]]:
    def getter(contest: Contest) -> str | None:
        return getattr(contest, attr)

    def setter(contest: Contest, value: str | None) -> None:
        setattr(contest, attr, value)

    return getter, setter


# Fixed table: time field name → (getter, setter) of its authoritative string
_TIME_STRING_ACCESSORS = {
    "activate": _string_accessor("activatetime_string"),
    "start": _string_accessor("starttime_string"),
    "freeze": _string_accessor("freezetime_string"),
    "end": _string_accessor("endtime_string"),
    "unfreeze": _string_accessor("unfreezetime_string"),
    "deactivate": _string_accessor("deactivatetime_string"),
}


@dataclass
class CommandOutcome:
    """Result of applying a contest command."""

    contest: Contest
    cmd_payload: Dict[str, Any]
    violations: List[Violation]
    persist_required: bool


@dataclass
class ValidationError:
    """Represents a non-transport validation failure (pure core)."""

    kind: str
    message: str | None = None
    status_code: int | None = None


def now_time_string(now: float, tz_name: str | None = None) -> str:
    """Absolute time string for a "now" button, e.g. '2024-05-01 10:00:00 UTC'.

    Whole seconds only, rounded down, so the stored string is never later
    than the click.
    """
    tz_name = tz_name or TimelineConfig.DEFAULT_TIMEZONE
    tz = resolve_timezone(tz_name) or timezone.utc
    moment = datetime.fromtimestamp(math.floor(now), tz)
    return f"{moment:%Y-%m-%d %H:%M:%S} {tz_name}"


def _apply_transition(contest: Contest, cmd: Dict[str, Any]) -> CommandOutcome:
    """Apply a command to a copy of the contest, then re-resolve and validate.

    Args:
        contest: Current contest (not mutated)
        cmd: Command dict with 'type' field and command-specific params

    Returns:
        CommandOutcome with:
        - contest: Updated copy (resolved; version bumped only if valid)
        - cmd_payload: Command enriched with resolved values
        - violations: Every invariant failure of the updated copy
        - persist_required: True if the change is valid and should be stored

    Command types:
        - SET_TIME_SPEC: Set one time string (field + spec)
        - ADD_REMOVED_INTERVAL / REMOVE_REMOVED_INTERVAL: Edit paused spans
        - DELAY_START / RESUME_START: Toggle starttime_enabled
        - FINALIZE: Set finalize time + comment (once, unless override)
        - SET_MEDALS: Medal counts and eligible categories
        - SET_PROBLEMS: Replace the contest problem set
        - TIMELINE_ACTION: Jury "now" button for a timeline milestone
    """
    new_contest = deepcopy(contest)
    ctype = cmd.get("type")
    payload = dict(cmd)

    if ctype == "SET_TIME_SPEC":
        name = cmd.get("field")
        if name not in TimelineConfig.TIME_FIELDS:
            raise ValueError(f"SET_TIME_SPEC field must be one of {TimelineConfig.TIME_FIELDS}")
        spec = InputSanitizer.sanitize_time_string(cmd.get("spec"))
        new_contest.set_time_string(name, spec)
        payload["spec"] = spec

    elif ctype in {"ADD_REMOVED_INTERVAL", "REMOVE_REMOVED_INTERVAL"}:
        if cmd.get("starttime") is None or cmd.get("endtime") is None:
            raise ValueError(f"{ctype} requires starttime and endtime")
        interval = RemovedInterval(float(cmd["starttime"]), float(cmd["endtime"]))
        if ctype == "ADD_REMOVED_INTERVAL":
            new_contest.add_removed_interval(interval)
        else:
            if interval not in new_contest.removed_intervals:
                raise ValueError("REMOVE_REMOVED_INTERVAL refers to an unknown interval")
            new_contest.remove_removed_interval(interval)

    elif ctype == "DELAY_START":
        new_contest.starttime_enabled = False

    elif ctype == "RESUME_START":
        new_contest.starttime_enabled = True

    elif ctype == "FINALIZE":
        finalizetime = cmd.get("finalizetime")
        if finalizetime is None:
            finalizetime = cmd.get("now")
        if finalizetime is None:
            raise ValueError("FINALIZE requires finalizetime or now")
        comment = cmd.get("finalize_comment")
        if comment is not None:
            comment = InputSanitizer.sanitize_string(
                comment, TimelineConfig.FINALIZE_COMMENT_MAX_LENGTH
            )
        new_contest.finalize(float(finalizetime), comment, override=bool(cmd.get("override")))
        payload["finalizetime"] = new_contest.finalizetime

    elif ctype == "SET_MEDALS":
        new_contest.medals_enabled = bool(cmd.get("medals_enabled"))
        for key in ("gold_medals", "silver_medals", "bronze_medals", "extra_bronze_medals"):
            if key in cmd:
                setattr(new_contest, key, cmd[key])
        if cmd.get("medal_categories") is not None:
            new_contest.medal_categories = list(cmd["medal_categories"])

    elif ctype == "SET_PROBLEMS":
        problems = []
        for entry in cmd.get("problems") or []:
            problems.append(
                ContestProblem(
                    problem_id=int(entry["problem_id"]),
                    shortname=InputSanitizer.sanitize_string(entry["shortname"]),
                )
            )
        new_contest.set_problems(problems)

    elif ctype == "TIMELINE_ACTION":
        from .timeline import jury_timeline

        milestone = cmd.get("milestone")
        now = cmd.get("now")
        if milestone not in TimelineConfig.MILESTONES:
            raise ValueError(f"TIMELINE_ACTION milestone must be one of {TimelineConfig.MILESTONES}")
        if now is None:
            raise ValueError("TIMELINE_ACTION requires now")
        entry = jury_timeline(contest, now)[milestone]
        if not entry["show_button"]:
            raise ValueError(f"TIMELINE_ACTION {milestone} is not possible at this time")
        if milestone == "finalize":
            comment = cmd.get("finalize_comment")
            if comment is not None:
                comment = InputSanitizer.sanitize_string(
                    comment, TimelineConfig.FINALIZE_COMMENT_MAX_LENGTH
                )
            new_contest.finalize(float(now), comment)
            payload["finalizetime"] = new_contest.finalizetime
        else:
            spec = now_time_string(now, new_contest.timezone)
            new_contest.set_time_string(milestone, spec)
            payload["spec"] = spec

    else:
        raise ValueError(f"Unknown command type: {ctype}")

    violations = validate_contest(new_contest)
    persist_required = not violations
    if persist_required:
        new_contest.version = contest.version + 1
        payload["version"] = new_contest.version
    else:
        logger.warning(
            f"Contest {contest.shortname!r}: {ctype} rejected with {len(violations)} violation(s)"
        )

    return CommandOutcome(
        contest=new_contest,
        cmd_payload=payload,
        violations=violations,
        persist_required=persist_required,
    )


def apply_command(contest: Contest, cmd: Dict[str, Any]) -> CommandOutcome:
    """Apply a jury command to a contest.

    Args:
        contest: Current contest (not mutated)
        cmd: Command dict with 'type' field and command-specific params

    Returns:
        CommandOutcome; persist outcome.contest only if persist_required

    Raises:
        ValueError: For malformed commands (unknown type, missing fields,
            finalizing twice without override, unavailable timeline action)
    """
    return _apply_transition(contest, cmd)


def validate_contest_version(contest: Contest, cmd: Dict[str, Any]) -> ValidationError | None:
    """Reject commands built against an outdated contest.

    Returns ValidationError(kind='stale_version') when the command carries
    a version lower than the stored one, otherwise None. Commands without a
    version are accepted (last write wins, still validated).
    """
    incoming_version = cmd.get("version")
    if incoming_version is not None and incoming_version < contest.version:
        return ValidationError(
            kind="stale_version",
            message=f"Contest changed since version {incoming_version} (now {contest.version})",
            status_code=409,
        )
    return None


def toggle_start_delay(contest: Contest, now: float) -> tuple[bool, Dict[str, Any]]:
    """Pure helper to compute the delay/resume start command.

    Returns the new starttime_enabled value and the command payload.

    Raises:
        ValueError: If the start is too close (or already past) to be changed
    """
    start = contest.get_starttime(null_when_disabled=False)
    if start is None or start - now <= TimelineConfig.STARTTIME_UPDATE_MIN_SECONDS_BEFORE:
        raise ValueError("Start time is too close to delay or resume")
    new_value = not contest.starttime_enabled
    payload = {"type": "RESUME_START" if new_value else "DELAY_START"}
    if contest.cid is not None:
        payload["contestId"] = contest.cid
    return new_value, payload
