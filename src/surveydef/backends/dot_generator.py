"""
Graphviz DOT diagram generator for survey versions.

Converts a SurveyVersion into Graphviz DOT format for visualization:
    - Pages become clusters
    - Parallel groups become nested clusters holding their members
    - Solid edges follow linear question order
    - Labelled edges are transition rules

Modes:
    - SIMPLE: ids and titles
    - DETAILED: adds type, required flag and repeat settings
"""

from enum import Enum
from typing import Any, List, Mapping, Optional

from surveydef.graph import QuestionGraph
from surveydef.model import Question, SurveyVersion
from surveydef.parallel import effective_settings
from surveydef.transitions import rule_label


class DotMode(Enum):
    """Visualization modes for DOT output."""
    SIMPLE = "simple"
    DETAILED = "detailed"


def _escape_dot_string(s: str) -> str:
    """Escape special characters for DOT labels."""
    if not s:
        return '""'
    s = s.replace('\\', '\\\\')
    s = s.replace('"', '\\"')
    s = s.replace('\n', '\\n')
    return f'"{s}"'


def _dot_id(identifier: str) -> str:
    return _escape_dot_string(identifier)


def _question_label(question: Question, mode: DotMode, defaults: Mapping[str, Any]) -> str:
    label = question.title or question.id
    if mode != DotMode.DETAILED:
        return label
    info = [question.type.value]
    if question.required:
        info.append("required")
    if question.is_parallel_group:
        s = effective_settings(question, **defaults)
        info.append(f"{s.item_label} x {s.min_items}..{s.max_items}")
    return f"{label}\n({', '.join(info)})"


def _node_line(question: Question, mode: DotMode, indent: str, defaults: Mapping[str, Any]) -> str:
    attrs = f"label={_escape_dot_string(_question_label(question, mode, defaults))}"
    if question.is_parallel_group:
        attrs += ", shape=box3d, fillcolor=khaki"
    return f"{indent}{_dot_id(question.id)} [{attrs}];"


def generate_dot(
    version: SurveyVersion,
    mode: DotMode = DotMode.SIMPLE,
    defaults: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Generate Graphviz DOT format for one survey version.

    Args:
        version: SurveyVersion to visualize
        mode: Visualization mode (SIMPLE, DETAILED)
        defaults: Parallel group defaults for DETAILED labels (EngineConfig.group_defaults())

    Returns:
        String containing DOT graph definition
    """
    graph = QuestionGraph.from_version(version)
    defaults = defaults or {}
    lines: List[str] = []

    lines.append("digraph survey {")
    lines.append("  rankdir=TB;")
    lines.append("  node [shape=box, style=filled, fillcolor=lightblue];")

    # =========================================================================
    # NODES, clustered by page and parallel group
    # =========================================================================

    for index, page in enumerate(version.pages):
        lines.append(f'  subgraph "cluster_page_{index}" {{')
        lines.append(f"    label={_escape_dot_string(page.title or page.id)};")
        lines.append("    color=lightgrey;")
        for question in graph.visible_questions(page.id):
            if question.is_parallel_group:
                lines.append(f'    subgraph "cluster_group_{question.id}" {{')
                lines.append(f"      label={_escape_dot_string(question.title or question.id)};")
                lines.append("      style=dashed;")
                lines.append(_node_line(question, mode, "      ", defaults))
                for member in graph.nested_questions(question.id):
                    lines.append(_node_line(member, mode, "      ", defaults))
                lines.append("    }")
            else:
                lines.append(_node_line(question, mode, "    ", defaults))
        lines.append("  }")

    # =========================================================================
    # EDGES
    # =========================================================================

    ordered = graph.ordered_questions()
    for current, following in zip(ordered, ordered[1:]):
        lines.append(f"  {_dot_id(current.id)} -> {_dot_id(following.id)} [color=grey];")

    for question in version.questions:
        for member_id in graph.member_ids(question.id):
            if member_id in graph:
                lines.append(f"  {_dot_id(question.id)} -> {_dot_id(member_id)} [style=dotted, arrowhead=none];")
        for rule in question.transition_rules:
            label = _escape_dot_string(rule_label(question, rule))
            lines.append(f"  {_dot_id(question.id)} -> {_dot_id(rule.next_question_id)} [label={label}];")

    lines.append("}")

    return "\n".join(lines)


def save_dot_file(
    version: SurveyVersion,
    filename: str,
    mode: DotMode = DotMode.SIMPLE,
    defaults: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Generate DOT and save to file.

    Args:
        version: SurveyVersion to visualize
        filename: Output file path (.dot extension recommended)
        mode: Visualization mode
        defaults: Parallel group defaults for DETAILED labels
    """
    dot = generate_dot(version, mode=mode, defaults=defaults)
    with open(filename, 'w', encoding='utf-8') as f:
        f.write(dot)


__all__ = ["DotMode", "generate_dot", "save_dot_file"]
