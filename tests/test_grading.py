"""
Tests for submission-time grading and performance summaries
"""
import pytest

from casestudy.services.grading import (
    calculate_grade,
    calculate_student_progress,
    can_submit_section,
    grade_answer,
    is_answer_provided,
    parse_option_index,
    performance_level,
    summarize_performance,
)
from conftest import make_case_study, make_question, make_response, make_section


def test_multiple_choice_correct_earns_full_points():
    question = make_question("q1", "multiple-choice", points=5, correct=1)
    
    points, text = grade_answer(question, "1")
    
    assert points == 5
    assert text == "B"


def test_multiple_choice_incorrect_earns_zero():
    question = make_question("q1", "multiple-choice", points=5, correct=1)
    
    points, text = grade_answer(question, "2")
    
    assert points == 0
    assert text == "C"


def test_multiple_choice_without_key_is_pending():
    question = make_question("q1", "multiple-choice", points=5)
    
    points, _ = grade_answer(question, "0")
    
    assert points is None


def test_feedback_question_always_full_points():
    question = make_question("q1", "multiple-choice-feedback", points=3)
    
    assert grade_answer(question, "0") == (3, "A")
    assert grade_answer(question, "2") == (3, "C")


@pytest.mark.parametrize("qtype", ["text", "essay"])
def test_free_text_is_left_for_grading(qtype):
    question = make_question("q1", qtype, points=10)
    
    points, text = grade_answer(question, "  My answer  ")
    
    assert points is None
    assert text == "My answer"


def test_parse_option_index():
    assert parse_option_index("2") == 2
    assert parse_option_index(" 0 ") == 0
    assert parse_option_index("B") is None
    assert parse_option_index(None) is None


def test_answer_provided_rules():
    choice = make_question("c", "multiple-choice", correct=0)
    text = make_question("t", "text")
    
    assert is_answer_provided(choice, "0") is True
    assert is_answer_provided(choice, "") is False
    assert is_answer_provided(text, "   ") is False
    assert is_answer_provided(text, "words") is True
    assert is_answer_provided(text, None) is False


def test_can_submit_section_counts_earlier_answers():
    section = make_section("s0", [make_question("a"), make_question("b")])
    
    assert can_submit_section(section, set(), {"a": "x"}) is False
    assert can_submit_section(section, {"b"}, {"a": "x"}) is True
    assert can_submit_section(section, {"a", "b"}, {}) is True
    assert can_submit_section(make_section("empty"), set(), {}) is True


def test_grade_percentages_and_levels():
    assert calculate_grade(9, 10) == 90
    assert calculate_grade(0, 0) == 0
    assert performance_level(95) == "Excellent"
    assert performance_level(80) == "Proficient"
    assert performance_level(70) == "Developing"
    assert performance_level(69) == "Beginning"


def test_student_progress_counts_responses():
    responses = [make_response("q0"), make_response("q1")]
    
    assert calculate_student_progress(responses, 4) == {"completed": 2, "total": 4, "percentage": 50.0}
    assert calculate_student_progress([], 0)["percentage"] == 0


def test_summary_separates_pending_from_graded():
    case_study = make_case_study([
        make_section("s0", [make_question("q0", "multiple-choice", points=5, correct=0)]),
        make_section("s1", [make_question("q1", "text", points=5)]),
    ])
    responses = [
        make_response("q0", "s0", points=5),
        make_response("q1", "s1", points=None),
        make_response("removed", "s1", points=5),
    ]
    
    summary = summarize_performance(case_study, responses)
    
    assert summary.earnedPoints == 5
    assert summary.possiblePoints == 10
    assert summary.percentage == 50
    assert summary.answeredQuestions == 2
    assert summary.completionRate == 100
    assert summary.pendingGrading == 1
    assert summary.pointsBySection == {"s0": 5, "s1": 0}
    assert summary.performanceLevel == "Beginning"
