"""
Grading Rules
Synchronous grading at submission time and per-student summaries
"""
import logging
from typing import Iterable, Mapping, Optional, Sequence, Set, Tuple

from casestudy.models.case_study import CaseStudy, Question, Section
from casestudy.models.progress import PerformanceSummary
from casestudy.models.response import ResponseRecord

logger = logging.getLogger(__name__)

# Lower bounds (percent) for each performance level, best first
PERFORMANCE_LEVELS = [
    (90, "Excellent"),
    (80, "Proficient"),
    (70, "Developing"),
]
DEFAULT_PERFORMANCE_LEVEL = "Beginning"


def parse_option_index(raw_answer: Optional[str]) -> Optional[int]:
    """Parse a submitted option index; None when the answer is not an integer"""
    if raw_answer is None:
        return None
    try:
        return int(str(raw_answer).strip())
    except ValueError:
        return None


def _option_text(question: Question, selected: Optional[int], raw_answer: str) -> str:
    if selected is not None and question.options and 0 <= selected < len(question.options):
        return question.options[selected]
    return raw_answer


def grade_answer(question: Question, raw_answer: Optional[str]) -> Tuple[Optional[int], str]:
    """
    Grade one answer at submission time.
    
    Rules:
    - multiple-choice: full points when the selected index equals
      correctAnswer, otherwise 0
    - multiple-choice-feedback: always full points (opinion, not correctness)
    - text / essay: no points; the response waits for external grading
    
    Args:
        question: Question being answered
        raw_answer: Option index (as text) for choice questions, free text otherwise
    
    Returns:
        Tuple of (points or None when pending, text to store)
    
    Example:
        >>> q = Question(text="2+2?", type="multiple-choice", options=["3", "4"], correctAnswer=1, points=5)
        >>> grade_answer(q, "1")
        (5, '4')
    """
    answer = (raw_answer or "").strip()
    
    if question.type == "multiple-choice":
        selected = parse_option_index(answer)
        text = _option_text(question, selected, answer)
        if question.correctAnswer is None:
            # No answer key; leave it for manual grading
            return None, text
        points = question.points if selected == question.correctAnswer else 0
        return points, text
    
    if question.type == "multiple-choice-feedback":
        selected = parse_option_index(answer)
        return question.points, _option_text(question, selected, answer)
    
    return None, answer


def is_answer_provided(question: Question, raw_answer: Optional[str]) -> bool:
    if raw_answer is None:
        return False
    if question.is_choice:
        return raw_answer != ""
    return bool(raw_answer.strip())


def can_submit_section(
    section: Section,
    answered_question_ids: Set[str],
    answers: Mapping[str, str]
) -> bool:
    """Every question is either already answered or has an answer in this submission"""
    return all(
        question.id in answered_question_ids
        or is_answer_provided(question, answers.get(question.id))
        for question in section.questions
    )


def calculate_grade(points: int, max_points: int) -> int:
    if max_points == 0:
        return 0
    return round((points / max_points) * 100)


def calculate_student_progress(responses: Sequence[ResponseRecord], total_questions: int) -> dict:
    """Answered-question progress as used on the instructor dashboard"""
    completed = len(responses)
    return {
        "completed": completed,
        "total": total_questions,
        "percentage": (completed / total_questions) * 100 if total_questions > 0 else 0
    }


def performance_level(percentage: int) -> str:
    for threshold, level in PERFORMANCE_LEVELS:
        if percentage >= threshold:
            return level
    return DEFAULT_PERFORMANCE_LEVEL


def summarize_performance(
    case_study: CaseStudy,
    responses: Iterable[ResponseRecord]
) -> PerformanceSummary:
    """
    Points and completion summary for one student.
    
    Only responses to questions that still exist in the case study are
    counted. Pending (ungraded) responses count as answered but earn 0.
    
    Args:
        case_study: Case study the session runs
        responses: The student's responses in the session
    
    Returns:
        PerformanceSummary
    """
    question_sections = {
        question.id: section.id
        for section in case_study.sections
        for question in section.questions
    }
    possible_points = sum(
        question.points
        for section in case_study.sections
        for question in section.questions
    )
    total_questions = len(question_sections)
    
    earned_points = 0
    answered = set()
    pending = 0
    points_by_section = {section.id: 0 for section in case_study.sections}
    
    for response in responses:
        section_id = question_sections.get(response.questionId)
        if section_id is None:
            continue
        answered.add(response.questionId)
        if response.is_pending_grading:
            pending += 1
            continue
        earned_points += response.points
        points_by_section[section_id] += response.points
    
    percentage = calculate_grade(earned_points, possible_points)
    completion_rate = (
        round((len(answered) / total_questions) * 100) if total_questions > 0 else 100
    )
    
    summary = PerformanceSummary(
        earnedPoints=earned_points,
        possiblePoints=possible_points,
        percentage=percentage,
        answeredQuestions=len(answered),
        totalQuestions=total_questions,
        completionRate=completion_rate,
        pendingGrading=pending,
        performanceLevel=performance_level(percentage),
        pointsBySection=points_by_section
    )
    logger.debug(
        f"📊 Performance for case study {case_study.id}: "
        f"{earned_points}/{possible_points} ({percentage}%), {pending} pending"
    )
    return summary
