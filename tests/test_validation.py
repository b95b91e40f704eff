import pytest

from contest_core import (
    Contest,
    ContestProblem,
    InputSanitizer,
    ValidatedContestCmd,
    Violation,
    validate_contest,
)

START = "2024-05-01 10:00:00 UTC"
S = 1714557600.0


def _contest(**kwargs) -> Contest:
    defaults = {
        "shortname": "demo",
        "starttime_string": START,
        "endtime_string": "+5:00",
    }
    defaults.update(kwargs)
    return Contest(**defaults)


def _paths(violations):
    return [violation.path for violation in violations]


def test_valid_contest_has_no_violations():
    contest = _contest(
        activatetime_string="-1:00",
        freezetime_string="+4:00",
        unfreezetime_string="+5:30",
        deactivatetime_string="+6:00",
        medals_enabled=True,
        medal_categories=["participants"],
        problems=[ContestProblem(1, "A"), ContestProblem(2, "B")],
    )
    assert validate_contest(contest) == []


def test_end_before_start_is_rejected():
    contest = _contest(
        starttime_string="1970-01-01 00:33:20 UTC",
        endtime_string="1970-01-01 00:16:40 UTC",
    )
    assert contest.starttime == 2000
    assert contest.endtime == 1000
    assert validate_contest(contest) == [
        Violation("endtime_string", "Contest ends before it even starts")
    ]


def test_end_equal_to_start_is_rejected():
    contest = _contest(endtime_string=START)
    assert _paths(validate_contest(contest)) == ["endtime_string"]


def test_freeze_must_lie_between_start_and_end():
    base = {"starttime_string": "1970-01-01 00:00:00 UTC", "endtime_string": "+0:01:40"}
    outside = _contest(freezetime_string="+0:02:30", **base)
    assert validate_contest(outside) == [
        Violation("freezetime_string", "Freezetime is out of start/endtime range")
    ]
    inside = _contest(freezetime_string="+0:00:50", **base)
    assert validate_contest(inside) == []
    before = _contest(freezetime_string="-0:00:01", **base)
    assert _paths(validate_contest(before)) == ["freezetime_string"]


def test_activate_after_start_is_rejected():
    contest = _contest(activatetime_string="2024-05-01 11:00:00 UTC")
    assert validate_contest(contest) == [
        Violation("activatetime_string", "Activate time is later than starttime")
    ]


def test_activate_checked_against_nominal_start_when_delayed():
    contest = _contest(activatetime_string="2024-05-01 11:00:00 UTC", starttime_enabled=False)
    assert _paths(validate_contest(contest)) == ["activatetime_string"]


def test_positive_relative_activate_is_rejected():
    contest = _contest(activatetime_string="+0:10")
    violations = validate_contest(contest)
    assert Violation("activatetime_string", "Relative activate time must be negative") in violations
    assert Violation("activatetime_string", "Activate time is later than starttime") in violations


def test_unfreeze_rules():
    no_freeze = _contest(unfreezetime_string="+6:00")
    assert validate_contest(no_freeze) == [
        Violation(
            "unfreezetime_string", "Unfreezetime set but no freeze time. That makes no sense."
        )
    ]

    before_end = _contest(freezetime_string="+4:00", unfreezetime_string="+4:30")
    assert validate_contest(before_end) == [
        Violation("unfreezetime_string", "Unfreezetime must be larger than endtime.")
    ]

    deactivate_early = _contest(
        freezetime_string="+4:00",
        unfreezetime_string="+6:00",
        deactivatetime_string="+5:30",
    )
    assert validate_contest(deactivate_early) == [
        Violation("deactivatetime_string", "Deactivatetime must be larger than unfreezetime.")
    ]


def test_deactivate_before_end_without_unfreeze():
    contest = _contest(deactivatetime_string="+4:00")
    assert validate_contest(contest) == [
        Violation("deactivatetime_string", "Deactivatetime must be larger than endtime.")
    ]


def test_medals_require_categories():
    contest = _contest(medals_enabled=True)
    violations = validate_contest(contest)
    assert violations == [
        Violation("medal_categories", "This field is required when 'Process medals' is set.")
    ]


def test_medals_require_counts():
    contest = _contest(medals_enabled=True, medal_categories=["students"], gold_medals=None)
    assert _paths(validate_contest(contest)) == ["gold_medals"]


def test_disabled_medals_are_not_checked():
    contest = _contest(medals_enabled=False, gold_medals=None)
    assert validate_contest(contest) == []


def test_duplicate_problems_are_reported_on_every_entry():
    contest = _contest(
        problems=[ContestProblem(7, "A"), ContestProblem(7, "B"), ContestProblem(8, "a")]
    )
    paths = _paths(validate_contest(contest))
    assert paths == [
        "problems[0].problem",
        "problems[0].shortname",
        "problems[1].problem",
        "problems[2].shortname",
    ]


def test_time_string_format_checks():
    relative_start = _contest(starttime_string="+1:00")
    assert Violation(
        "starttime_string", "Start time must be an absolute date/time"
    ) in validate_contest(relative_start)

    no_end = _contest(endtime_string="")
    assert validate_contest(no_end) == [Violation("endtime_string", "End time is required")]

    bad_freeze = _contest(freezetime_string="soon")
    assert validate_contest(bad_freeze) == [
        Violation("freezetime_string", "Invalid time string")
    ]

    too_long = _contest(freezetime_string="2024-05-01 14:00:00 " + "x" * 60)
    assert validate_contest(too_long) == [
        Violation("freezetime_string", "Time string must be at most 64 characters")
    ]


def test_all_violations_are_collected():
    contest = _contest(
        activatetime_string="+1:00",
        freezetime_string="+9:00",
        deactivatetime_string="+1:00",
        medals_enabled=True,
    )
    paths = _paths(validate_contest(contest))
    assert paths.count("activatetime_string") == 2
    assert "freezetime_string" in paths
    assert "deactivatetime_string" in paths
    assert "medal_categories" in paths


def test_validate_re_resolves_stale_timestamps():
    contest = _contest(freezetime_string="+4:00")
    # Direct assignment bypasses the setter; validation must not trust stale values
    contest.starttime_string = "2024-05-01 20:00:00 UTC"
    assert validate_contest(contest) == []
    assert contest.starttime == S + 10 * 3600
    assert contest.freezetime == S + 14 * 3600


def test_validated_cmd_accepts_known_commands():
    cmd = ValidatedContestCmd(type="SET_TIME_SPEC", field="freeze", spec="+4:00")
    assert cmd.field == "freeze"
    cmd = ValidatedContestCmd(type="ADD_REMOVED_INTERVAL", starttime=10, endtime=20)
    assert cmd.endtime == 20


def test_validated_cmd_rejects_bad_input():
    with pytest.raises(ValueError):
        InputSanitizer.validate_and_sanitize_cmd({"type": "DROP_CONTEST"})
    with pytest.raises(ValueError):
        InputSanitizer.validate_and_sanitize_cmd({"type": "SET_TIME_SPEC", "field": "lunch"})
    with pytest.raises(ValueError):
        InputSanitizer.validate_and_sanitize_cmd(
            {"type": "SET_TIME_SPEC", "field": "end", "spec": "+" + "1" * 70 + ":00"}
        )
    with pytest.raises(ValueError):
        InputSanitizer.validate_and_sanitize_cmd(
            {"type": "ADD_REMOVED_INTERVAL", "starttime": 20, "endtime": 10}
        )
    with pytest.raises(ValueError):
        InputSanitizer.validate_and_sanitize_cmd({"type": "TIMELINE_ACTION", "milestone": "end"})


def test_sanitize_time_string():
    assert InputSanitizer.sanitize_time_string("  +1:00 ") == "+1:00"
    assert InputSanitizer.sanitize_time_string("   ") is None
    assert InputSanitizer.sanitize_time_string(None) is None


def test_zone_name_of_tzdata_directory_is_reported_not_raised():
    contest = _contest(freezetime_string="2024-05-01 14:00:00 Europe")
    assert validate_contest(contest) == [Violation("freezetime_string", "Invalid time string")]


def test_time_beyond_calendar_range_is_rejected():
    contest = _contest(deactivatetime_string="+99999999:00")
    assert validate_contest(contest) == [
        Violation("deactivatetime_string", "Time is out of range")
    ]
