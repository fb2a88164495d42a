"""
Tests for DOT diagram generator.

These tests verify that survey versions are correctly converted to Graphviz
DOT format: page clusters, nested group clusters, sequential and rule edges,
escaping and the two label modes.
"""

from surveydef.backends.dot_generator import DotMode, generate_dot, save_dot_file
from surveydef.config import EngineConfig
from surveydef.examples import build_example_survey
from surveydef.model import Page, Question, SurveyVersion
from surveydef.settings import QuestionType


def build_example_version() -> SurveyVersion:
    return build_example_survey().get_version(1)


class TestDotBasicStructure:
    """Test basic DOT graph structure."""

    def test_empty_version_generates_valid_dot(self):
        dot = generate_dot(SurveyVersion(id="v", version=1))
        assert dot.startswith("digraph survey {")
        assert dot.rstrip().endswith("}")

    def test_pages_become_clusters(self):
        dot = generate_dot(build_example_version())
        assert 'subgraph "cluster_page_0"' in dot
        assert 'subgraph "cluster_page_2"' in dot
        assert 'label="Семья"' in dot

    def test_group_is_a_nested_cluster_with_members(self):
        dot = generate_dot(build_example_version())
        start = dot.index('subgraph "cluster_group_Q2"')
        end = dot.index("\n    }", start)
        cluster = dot[start:end]
        assert '"CH_NAME"' in cluster
        assert '"CH_AGE"' in cluster

    def test_sequential_edges(self):
        dot = generate_dot(build_example_version())
        assert '"Q1" -> "QN" [color=grey];' in dot
        assert '"Q2" -> "Q3" [color=grey];' in dot

    def test_rule_edge_is_labelled_with_option_text(self):
        dot = generate_dot(build_example_version())
        assert '"Q1" -> "Q2" [label="Yes"];' in dot


class TestDotModes:
    def test_simple_labels_are_titles(self):
        dot = generate_dot(build_example_version(), mode=DotMode.SIMPLE)
        assert 'label="У вас есть дети?"' in dot
        assert "radio" not in dot

    def test_detailed_labels_add_type_and_settings(self):
        dot = generate_dot(build_example_version(), mode=DotMode.DETAILED)
        assert "(radio, required)" in dot
        assert "Ребенок x 1..5" in dot


class TestDotEscaping:
    def test_quotes_and_newlines_are_escaped(self):
        version = SurveyVersion(
            id="v",
            version=1,
            pages=[Page(id="P1", title="Page")],
            questions=[Question(id="Q1", type=QuestionType.TEXT, title='Say "hi"\nnow', page_id="P1")],
        )
        dot = generate_dot(version)
        assert 'label="Say \\"hi\\"\\nnow"' in dot

    def test_untitled_question_uses_its_id(self):
        version = SurveyVersion(
            id="v",
            version=1,
            pages=[Page(id="P1", title="")],
            questions=[Question(id="q-1", type=QuestionType.TEXT, title="", page_id="P1")],
        )
        dot = generate_dot(version)
        assert '"q-1" [label="q-1"];' in dot


class TestGroupDefaults:
    def build_version(self) -> SurveyVersion:
        return SurveyVersion(
            id="v",
            version=1,
            pages=[Page(id="P1", title="Page")],
            questions=[
                Question(id="G", type=QuestionType.PARALLEL_GROUP, title="Group", page_id="P1", parallel_questions=["A"]),
                Question(id="A", type=QuestionType.TEXT, title="A"),
            ],
        )

    def test_builtin_defaults(self):
        dot = generate_dot(self.build_version(), mode=DotMode.DETAILED)
        assert "Элемент x 1..5" in dot

    def test_configured_defaults(self):
        defaults = EngineConfig(default_item_label="Item", default_max_items=8).group_defaults()
        dot = generate_dot(self.build_version(), mode=DotMode.DETAILED, defaults=defaults)
        assert "Item x 1..8" in dot


def test_save_dot_file(tmp_path):
    path = tmp_path / "survey.dot"
    save_dot_file(build_example_version(), str(path), mode=DotMode.DETAILED)
    content = path.read_text(encoding="utf-8")
    assert content == generate_dot(build_example_version(), mode=DotMode.DETAILED)
