from core.models import Config, Match, MatchFile
from core.parser import parse_match_file
from core.validation import Severity, has_errors, has_warnings, validate


def _errors(issues):
    return [issue for issue in issues if issue.severity == Severity.ERROR]


def _warnings(issues):
    return [issue for issue in issues if issue.severity == Severity.WARNING]


def test_duplicate_trigger_is_one_error_naming_both_entries():
    match_file = parse_match_file(
        b"matches:\n"
        b"  - trigger: ':date'\n    replace: a\n"
        b"  - trigger: ':other'\n    replace: b\n"
        b"  - trigger: ':date'\n    replace: c\n"
    )
    errors = _errors(validate(match_file))
    assert len(errors) == 1
    assert errors[0].entries == (0, 2)
    assert "matches[0]" in errors[0].message
    assert "matches[2]" in errors[0].message


def test_duplicate_across_trigger_and_triggers():
    match_file = MatchFile(
        matches=[
            Match.create(trigger=":a", replace="1"),
            Match.create(triggers=[":b", ":a"], replace="2"),
        ]
    )
    errors = _errors(validate(match_file))
    assert [issue.entries for issue in errors] == [(0, 1)]


def test_same_trigger_twice_in_one_match_is_not_a_duplicate():
    match_file = MatchFile(matches=[Match.create(triggers=[":x", ":x"], replace="y")])
    assert not has_errors(validate(match_file))


def test_match_without_trigger_is_an_error():
    issues = validate(MatchFile(matches=[Match.create(replace="orphan")]))
    assert [issue.field for issue in _errors(issues)] == ["matches[0].trigger"]


def test_regex_match_needs_no_trigger():
    issues = validate(MatchFile(matches=[Match.create(regex=r":n(\d+)", replace="x")]))
    assert not has_errors(issues)


def test_invalid_regex_is_an_error():
    issues = validate(MatchFile(matches=[Match.create(regex="(", replace="x")]))
    assert [issue.field for issue in _errors(issues)] == ["matches[0].regex"]


def test_blank_trigger_is_an_error():
    issues = validate(MatchFile(matches=[Match.create(trigger="  ", replace="x")]))
    assert has_errors(issues)


def test_empty_replacement_is_a_warning():
    issues = validate(MatchFile(matches=[Match.create(trigger=":x", replace="")]))
    assert not has_errors(issues)
    warnings = _warnings(issues)
    assert len(warnings) == 1
    assert warnings[0].message == "replacement is empty"
    assert warnings[0].entries == (0,)


def test_form_match_needs_no_replacement():
    match = Match.create(trigger=":f", form="Hi [[name]]", form_fields={"name": {"type": "text"}})
    assert validate(MatchFile(matches=[match])) == []


def test_form_fields_without_form_warns():
    match = Match.create(trigger=":f", replace="x", form_fields={"name": {"type": "text"}})
    warnings = _warnings(validate(MatchFile(matches=[match])))
    assert [issue.field for issue in warnings] == ["matches[0].form_fields"]


def test_image_replacement_counts_as_content():
    match = Match.create(trigger=":logo", image_path="$CONFIG/images/logo.png")
    assert validate(MatchFile(matches=[match])) == []


def test_config_choices_and_minimums():
    config = Config()
    config.set("backend", "Turbo")
    config.set("clipboard_threshold", -1)
    config.set("filter_title", "[unclosed")
    issues = validate(config)
    assert [issue.field for issue in _warnings(issues)] == ["backend"]
    assert sorted(issue.field for issue in _errors(issues)) == ["clipboard_threshold", "filter_title"]


def test_valid_config_has_no_issues():
    config = Config()
    config.set("backend", "Clipboard")
    config.set("toggle_key", "LEFT_CTRL")
    assert validate(config) == []
    assert not has_warnings(validate(config))


def test_validation_does_not_mutate():
    match_file = MatchFile(matches=[Match.create(trigger=":x")])
    before = parse_match_file(b"matches:\n  - trigger: ':x'\n")
    validate(match_file)
    assert match_file == before


def test_issue_to_dict():
    issue = validate(MatchFile(matches=[Match.create(replace="x")]))[0]
    assert issue.to_dict() == {
        "severity": "error",
        "field": "matches[0].trigger",
        "message": "match has no trigger",
        "entries": [0],
    }
