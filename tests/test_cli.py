"""Tests for the command-line front end."""

import json

import pytest

from surveydef.cli import main
from surveydef.examples import build_example_survey
from surveydef.model import Question, TransitionRule
from surveydef.serialization import survey_from_json, survey_from_yaml, survey_to_json, survey_to_yaml
from surveydef.settings import QuestionType


@pytest.fixture
def survey_file(tmp_path):
    path = tmp_path / "survey.json"
    path.write_text(survey_to_json(build_example_survey()), encoding="utf-8")
    return path


@pytest.fixture
def broken_file(tmp_path):
    survey = build_example_survey()
    survey.get_version(1).questions.append(Question(
        id="BAD",
        type=QuestionType.TEXT,
        title="",
        page_id="P1",
        transition_rules=[TransitionRule("r", "x", "NOWHERE")],
    ))
    path = tmp_path / "broken.yaml"
    path.write_text(survey_to_yaml(survey), encoding="utf-8")
    return path


def test_validate_ok(survey_file, capsys):
    assert main(["validate", str(survey_file)]) == 0
    assert "Version 1: OK" in capsys.readouterr().out


def test_validate_reports_violations(broken_file, capsys):
    assert main(["validate", str(broken_file)]) == 1
    out = capsys.readouterr().out
    assert "1 violation(s)" in out
    assert "[dangling_reference] BAD" in out


def test_validate_unknown_version(survey_file, capsys):
    assert main(["validate", str(survey_file), "--version", "4"]) == 1
    assert "Version 4 not found" in capsys.readouterr().err


def test_publish_to_file(survey_file, tmp_path):
    out = tmp_path / "published.json"
    assert main(["publish", str(survey_file), "1", "-o", str(out)]) == 0
    survey = survey_from_json(out.read_text(encoding="utf-8"))
    assert survey.published_version == 1


def test_publish_to_stdout_keeps_input_format(tmp_path, capsys):
    good = tmp_path / "good.yaml"
    good.write_text(survey_to_yaml(build_example_survey()), encoding="utf-8")
    assert main(["publish", str(good), "1"]) == 0
    assert survey_from_yaml(capsys.readouterr().out).published_version == 1


def test_publish_blocked(broken_file, capsys):
    assert main(["publish", str(broken_file), "1"]) == 1
    err = capsys.readouterr().err
    assert "structural violation" in err
    assert "NOWHERE" in err


def test_duplicate(survey_file, capsys):
    assert main(["duplicate", str(survey_file)]) == 0
    copy = survey_from_json(capsys.readouterr().out)
    assert copy.id != "example-survey"
    assert copy.title.endswith("(Копия)")


def test_render(survey_file, tmp_path, capsys):
    answers = tmp_path / "answers.json"
    answers.write_text(json.dumps({"Q1": "o1"}), encoding="utf-8")
    assert main(["render", str(survey_file), "Answer: {{Q1}}, {{QN}}", "--answers", str(answers)]) == 0
    assert capsys.readouterr().out.strip() == "Answer: Yes, undefined"


def test_render_rejects_non_object_answers(survey_file, tmp_path, capsys):
    answers = tmp_path / "answers.json"
    answers.write_text("[1, 2]", encoding="utf-8")
    assert main(["render", str(survey_file), "{{Q1}}", "--answers", str(answers)]) == 1
    assert "JSON object" in capsys.readouterr().err


def test_dot(survey_file, capsys):
    assert main(["dot", str(survey_file), "--mode", "detailed"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("digraph survey {")
    assert "(radio, required)" in out


def test_missing_file(tmp_path, capsys):
    assert main(["validate", str(tmp_path / "nope.json")]) == 1
    assert "error: Cannot read" in capsys.readouterr().err


def test_malformed_snapshot(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text("{}", encoding="utf-8")
    assert main(["validate", str(path)]) == 1
    assert "missing required key 'id'" in capsys.readouterr().err
