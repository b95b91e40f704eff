from .contest import (
    CommandOutcome,
    Contest,
    ContestProblem,
    MissingRemovedIntervalData,
    RemovedInterval,
    ValidationError,
    apply_command,
    now_time_string,
    toggle_start_delay,
    validate_contest_version,
)
from .storage import (
    ContestNotFound,
    ContestRepository,
    InMemoryContestRepository,
    system_now,
    update_contest,
)
from .timeline import MILESTONE_ACCESSORS, jury_timeline
from .timespec import (
    AbsoluteInstant,
    InvalidTimeSpec,
    RelativeOffset,
    TimeSpec,
    UnsetTime,
    format_absolute,
    format_relative,
    is_displayable,
    parse_time_spec,
)
from .types import CommandPayload, ContestStateDict, TimelineEntry
from .validation import (
    InputSanitizer,
    TimelineConfig,
    ValidatedContestCmd,
    Violation,
    validate_contest,
)

__all__ = [
    "CommandOutcome",
    "CommandPayload",
    "Contest",
    "ContestNotFound",
    "ContestProblem",
    "ContestRepository",
    "ContestStateDict",
    "InMemoryContestRepository",
    "MissingRemovedIntervalData",
    "RemovedInterval",
    "ValidationError",
    "apply_command",
    "now_time_string",
    "toggle_start_delay",
    "system_now",
    "update_contest",
    "validate_contest_version",
    "MILESTONE_ACCESSORS",
    "TimelineEntry",
    "jury_timeline",
    "AbsoluteInstant",
    "InvalidTimeSpec",
    "RelativeOffset",
    "TimeSpec",
    "UnsetTime",
    "format_absolute",
    "format_relative",
    "is_displayable",
    "parse_time_spec",
    "InputSanitizer",
    "TimelineConfig",
    "ValidatedContestCmd",
    "Violation",
    "validate_contest",
]
