"""
Tests for survey duplication.

The copy must share no identity with the original while keeping every
internal reference shape intact.
"""

import itertools
from collections import Counter

from surveydef.cloner import duplicate
from surveydef.examples import build_example_survey
from surveydef.model import Page, Question, SurveyStatus
from surveydef.serialization import survey_to_dict
from surveydef.settings import QuestionType
from surveydef.versions import create_new_version, publish, update_draft


def all_ids(survey):
    ids = {survey.id}
    for v in survey.versions:
        ids.add(v.id)
        ids.update(p.id for p in v.pages)
        for q in v.questions:
            ids.add(q.id)
            ids.update(r.id for r in q.transition_rules)
            ids.update(r.id for r in q.visibility_rules)
            ids.update(r.id for r in q.resolution_rules)
    return ids


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


def page_membership(version):
    titles = {p.id: p.title for p in version.pages}
    return Counter(titles.get(q.page_id) for q in version.questions)


def group_membership(version):
    titles = {q.id: q.title for q in version.questions}
    return {
        q.title: [titles[m] for m in q.parallel_questions]
        for q in version.questions
        if q.type == QuestionType.PARALLEL_GROUP
    }


class TestIdentity:
    def test_no_id_is_reused(self):
        original = build_example_survey()
        copy = duplicate(original)
        assert all_ids(original).isdisjoint(all_ids(copy))

    def test_new_ids_are_unique(self):
        copy = duplicate(build_example_survey(), id_factory=sequential_ids())
        version = copy.versions[0]
        question_ids = [q.id for q in version.questions]
        assert len(set(question_ids)) == len(question_ids)

    def test_input_is_not_mutated(self):
        original = build_example_survey()
        before = survey_to_dict(original)
        duplicate(original)
        assert survey_to_dict(original) == before


class TestShape:
    def test_counts_are_preserved(self):
        original = build_example_survey()
        copy = duplicate(original)
        assert len(copy.versions) == len(original.versions)
        src, dst = original.versions[0], copy.versions[0]
        assert len(dst.questions) == len(src.questions)
        assert len(dst.pages) == len(src.pages)
        assert page_membership(dst) == page_membership(src)
        assert group_membership(dst) == group_membership(src)

    def test_references_are_remapped(self):
        copy = duplicate(build_example_survey())
        version = copy.versions[0]
        by_title = {q.title: q for q in version.questions}
        q1 = by_title["У вас есть дети?"]
        group = by_title["Дети"]
        assert q1.transition_rules[0].next_question_id == group.id
        assert q1.transition_rules[0].answer == "o1"
        assert version.get_page(group.page_id).title == "Дети"

        reason = by_title["Почему нет?"]
        condition = reason.visibility_rules[0].groups[0].conditions[0]
        assert condition.question_id == q1.id

        outcome = by_title["Категория"]
        assert outcome.resolution_rules[0].conditions[0].question_id == q1.id

    def test_member_listed_before_its_question(self):
        # The group precedes its members, so member ids are minted on first encounter.
        copy = duplicate(build_example_survey(), id_factory=sequential_ids())
        version = copy.versions[0]
        group = next(q for q in version.questions if q.type == QuestionType.PARALLEL_GROUP)
        members = [version.get_question(m) for m in group.parallel_questions]
        assert [m.title for m in members] == ["Имя", "Возраст {{CH_NAME}}"]

    def test_unknown_page_id_is_kept(self):
        survey = build_example_survey()
        stray = Question(id="S", type=QuestionType.TEXT, title="stray", page_id="P404")
        survey = update_draft(survey, 1, questions=survey.versions[0].questions + [stray])
        copy = duplicate(survey)
        cloned = next(q for q in copy.versions[0].questions if q.title == "stray")
        assert cloned.page_id == "P404"


class TestLifecycleReset:
    def test_publish_state_is_cleared(self):
        survey = publish(build_example_survey(), 1)
        survey = create_new_version(survey)
        copy = duplicate(survey, now="t9")
        assert copy.status == SurveyStatus.DRAFT
        assert copy.published_version is None
        assert copy.current_version == 1
        assert copy.created_at == "t9"
        for v in copy.versions:
            assert v.version == 1
            assert v.status == SurveyStatus.DRAFT
            assert v.published_at is None
            assert v.archived_at is None

    def test_titles_get_suffix(self):
        copy = duplicate(build_example_survey())
        assert copy.title == "Household (Копия)"
        assert copy.versions[0].title == "Household (Копия)"

    def test_custom_suffix(self):
        copy = duplicate(build_example_survey(), suffix=" copy")
        assert copy.title == "Household copy"

    def test_page_objects_are_new(self):
        original = build_example_survey()
        copy = duplicate(original)
        assert all(isinstance(p, Page) for p in copy.versions[0].pages)
        assert copy.versions[0].pages[0] is not original.versions[0].pages[0]
