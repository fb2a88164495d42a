#!/usr/bin/env python3
"""
Demo: Survey lifecycle end to end.

Builds the example survey, validates and publishes it, takes a response
with a repeat group, renders placeholders, duplicates the survey and
writes a DOT diagram.
"""

from surveydef.backends import DotMode, generate_dot, save_dot_file
from surveydef.cloner import duplicate
from surveydef.examples import build_example_survey
from surveydef.graph import validate
from surveydef.logging_setup import configure_logging
from surveydef.progress import InMemoryProgressStore, ResponseSession
from surveydef.serialization import survey_to_yaml
from surveydef.versions import create_new_version, publish


def main():
    configure_logging("INFO")

    print("=" * 80)
    print("SURVEY LIFECYCLE DEMO")
    print("=" * 80)

    # 1. Build and validate
    survey = build_example_survey()
    version = survey.get_version(1)
    violations = validate(version)
    print(f"\n1. Built '{survey.title}' with {len(version.questions)} questions, "
          f"{len(violations)} violation(s)")

    # 2. Publish, then publish a second version
    survey = publish(survey, 1)
    survey = publish(create_new_version(survey), 2)
    for v in survey.versions:
        print(f"2. Version {v.version}: {v.status.value}")

    # 3. Take a response
    session = ResponseSession(survey, InMemoryProgressStore())
    session.answer("Q1", "o1")
    print(f"\n3. Q1 answered 'o1' -> next question {session.next_question_id('Q1')}")
    session.set_instance_count("Q2", 2)
    session.answer("Q2:CH_NAME:0", "Аня")
    session.answer("Q2:CH_NAME:1", "Борис")
    for instance in session.instances("Q2"):
        names = [session.answers.get(k) for k in instance.answer_keys.values()]
        print(f"   {instance.label}: {names}")
    shrunk = session.set_instance_count("Q2", 1)
    print(f"   Shrink to 1 without confirmation committed: {shrunk}")

    # 4. Placeholders
    answered = session.render("Вы ответили {{Q1}}")
    unknown = session.render("Неизвестно: {{Q9}}")
    print(f"\n4. {answered}")
    print(f"   {unknown}")

    # 5. Duplicate
    copy = duplicate(survey)
    print(f"\n5. Duplicated as '{copy.title}' ({copy.id})")
    print(survey_to_yaml(copy)[:300] + "...")

    # 6. DOT
    print("\n6. DOT (simple):")
    print(generate_dot(copy.versions[0], mode=DotMode.SIMPLE))
    save_dot_file(survey.get_version(2), "survey_detailed.dot", mode=DotMode.DETAILED)
    print("\nSaved to: survey_detailed.dot")
    print("  dot -Tpng survey_detailed.dot -o survey_detailed.png")
    print("=" * 80)


if __name__ == "__main__":
    main()
