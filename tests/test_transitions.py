"""
Tests for the transition rule engine.

Covers rule matching (first match wins, array answers, blank rules),
the sequential fallback and page navigation.
"""

from surveydef.graph import QuestionGraph
from surveydef.model import Page, Question, QuestionOption, SurveyVersion, TransitionRule
from surveydef.settings import QuestionType
from surveydef.transitions import (
    evaluate,
    match_rule,
    next_page_id,
    next_question_id,
    rule_label,
    sequential_next,
    valid_rules,
)
from surveydef.versions import create_survey, update_draft


def build_scenario_version() -> SurveyVersion:
    """Draft version 1: P1 holds radio Q1 (o1 -> Q2), then Q3, then Q2 on P2."""
    q1 = Question(
        id="Q1",
        type=QuestionType.RADIO,
        title="Continue?",
        page_id="P1",
        options=[QuestionOption("o1", "Yes"), QuestionOption("o2", "No")],
        transition_rules=[TransitionRule(id="r1", answer="o1", next_question_id="Q2")],
    )
    q3 = Question(id="Q3", type=QuestionType.TEXT, title="Why not?", page_id="P1")
    q2 = Question(id="Q2", type=QuestionType.TEXT, title="Details", page_id="P2")
    survey = create_survey("Scenario", survey_id="s1")
    survey = update_draft(
        survey,
        1,
        pages=[Page(id="P1", title="One"), Page(id="P2", title="Two")],
        questions=[q1, q3, q2],
    )
    return survey.get_version(1)


class TestScenario:
    def test_version_is_draft_one(self):
        version = build_scenario_version()
        assert version.version == 1
        assert version.status.value == "draft"

    def test_matching_answer_jumps_to_target(self):
        graph = QuestionGraph.from_version(build_scenario_version())
        assert next_question_id(graph, "Q1", "o1") == "Q2"

    def test_other_answer_continues_sequentially(self):
        graph = QuestionGraph.from_version(build_scenario_version())
        q1 = graph.get("Q1")
        assert evaluate(q1, "o2") is None
        assert next_question_id(graph, "Q1", "o2") == sequential_next(graph, "Q1") == "Q3"


class TestMatching:
    def build_question(self, rules) -> Question:
        return Question(id="Q", type=QuestionType.CHECKBOX, title="", transition_rules=rules)

    def test_first_matching_rule_wins(self):
        q = self.build_question([
            TransitionRule("r1", "a", "X"),
            TransitionRule("r2", "a", "Y"),
        ])
        assert evaluate(q, "a") == "X"

    def test_array_answer_matches_any_element(self):
        q = self.build_question([TransitionRule("r1", "b", "X")])
        assert evaluate(q, ["a", "b"]) == "X"
        assert evaluate(q, ["a", "c"]) is None

    def test_rule_order_beats_answer_order(self):
        q = self.build_question([
            TransitionRule("r1", "b", "X"),
            TransitionRule("r2", "a", "Y"),
        ])
        assert match_rule(q, ["a", "b"]).id == "r1"

    def test_blank_rules_are_ignored(self):
        q = self.build_question([
            TransitionRule("r1", "", "X"),
            TransitionRule("r2", "a", "  "),
            TransitionRule("r3", "a", "Z"),
        ])
        assert [r.id for r in valid_rules(q)] == ["r3"]
        assert evaluate(q, "a") == "Z"

    def test_no_answer_never_matches(self):
        q = self.build_question([TransitionRule("r1", "a", "X")])
        assert evaluate(q, None) is None
        assert evaluate(q, []) is None

    def test_numeric_answer_compares_as_string(self):
        q = self.build_question([TransitionRule("r1", "3", "X")])
        assert evaluate(q, 3) == "X"

    def test_integral_float_matches_integer_rule(self):
        q = self.build_question([TransitionRule("r1", "2", "X")])
        assert evaluate(q, 2.0) == "X"
        assert evaluate(q, 2.5) is None

    def test_boolean_answer_uses_json_spelling(self):
        q = self.build_question([
            TransitionRule("r1", "false", "N"),
            TransitionRule("r2", "true", "Y"),
        ])
        assert evaluate(q, True) == "Y"
        assert evaluate(q, [False]) == "N"


class TestSequential:
    def build_graph(self) -> QuestionGraph:
        questions = [
            Question(id="A", type=QuestionType.TEXT, title="", page_id="P1"),
            Question(id="G", type=QuestionType.PARALLEL_GROUP, title="", page_id="P1", parallel_questions=["M"]),
            Question(id="M", type=QuestionType.TEXT, title="", page_id="P1"),
            Question(id="B", type=QuestionType.TEXT, title="", page_id="P2"),
        ]
        return QuestionGraph(questions, [Page(id="P1", title=""), Page(id="P2", title="")])

    def test_next_in_page_order(self):
        graph = self.build_graph()
        assert sequential_next(graph, "A") == "G"
        assert sequential_next(graph, "G") == "B"

    def test_nested_question_continues_after_its_group(self):
        assert sequential_next(self.build_graph(), "M") == "B"

    def test_last_question_has_no_successor(self):
        graph = self.build_graph()
        assert sequential_next(graph, "B") is None
        assert next_question_id(graph, "B", "anything") is None

    def test_unknown_question(self):
        assert next_question_id(self.build_graph(), "NOPE", "x") is None

    def test_next_page(self):
        graph = self.build_graph()
        assert next_page_id(graph, "G", None) == "P2"
        assert next_page_id(graph, "A", None) == "P1"
        assert next_page_id(graph, "B", None) is None


def test_rule_label_uses_option_text():
    q = Question(
        id="Q1",
        type=QuestionType.RADIO,
        title="",
        options=[QuestionOption("o1", "Yes")],
    )
    assert rule_label(q, TransitionRule("r1", "o1", "Q2")) == "Yes"
    assert rule_label(q, TransitionRule("r2", "o9", "Q2")) == "o9"
    text = Question(id="T", type=QuestionType.TEXT, title="")
    assert rule_label(text, TransitionRule("r3", "hello", "Q2")) == "hello"
