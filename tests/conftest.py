"""
Shared builders and MongoDB stand-ins for the test suite
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from casestudy.models.case_study import CaseStudy, Question, Section
from casestudy.models.response import ResponseRecord
from casestudy.models.session import Session


class AsyncCursor:
    """Minimal async cursor over a list of documents"""
    
    def __init__(self, docs):
        self._docs = [dict(doc) for doc in docs]
    
    def sort(self, *args, **kwargs):
        return self
    
    def limit(self, *args, **kwargs):
        return self
    
    def __aiter__(self):
        self._iter = iter(self._docs)
        return self
    
    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


def update_result(matched=1, modified=1):
    return MagicMock(matched_count=matched, modified_count=modified)


def make_collection(find_docs=(), find_one=None):
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=find_one)
    collection.update_one = AsyncMock(return_value=update_result())
    collection.update_many = AsyncMock(return_value=update_result())
    collection.replace_one = AsyncMock(return_value=update_result())
    collection.find = MagicMock(side_effect=lambda *args, **kwargs: AsyncCursor(find_docs))
    return collection


def make_db(collections):
    """Database mock whose item lookup returns the given collections by name"""
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, make_collection())
    return db


def make_question(question_id, qtype="text", points=5, options=None, correct=None):
    if qtype in ("multiple-choice", "multiple-choice-feedback") and options is None:
        options = ["A", "B", "C"]
    return Question(
        id=question_id,
        text=f"Question {question_id}",
        type=qtype,
        options=options,
        correctAnswer=correct,
        points=points
    )


def make_section(section_id, questions=()):
    return Section(id=section_id, title=f"Section {section_id}", content="...", questions=list(questions))


def make_case_study(sections, case_study_id="cs_1"):
    return CaseStudy(id=case_study_id, title="Case", teacherId="teacher_1", sections=list(sections))


def make_response(question_id, section_id="s0", points=None, minutes=0, student_id="stu_1"):
    return ResponseRecord(
        studentId=student_id,
        sessionId="session_1",
        caseStudyId="cs_1",
        sectionId=section_id,
        questionId=question_id,
        response="answer",
        points=points,
        maxPoints=5,
        submittedAt=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    )


def make_session(released=(0,), active=True, joined=(), session_id="session_1"):
    return Session(
        id=session_id,
        sessionCode="ABC123",
        caseStudyId="cs_1",
        teacherId="teacher_1",
        active=active,
        studentsJoined=list(joined),
        releasedSections=list(released),
        currentReleasedSection=max(released)
    )


@pytest.fixture
def three_section_case_study():
    """Three sections with one text question each"""
    return make_case_study([
        make_section("s0", [make_question("q0")]),
        make_section("s1", [make_question("q1")]),
        make_section("s2", [make_question("q2")]),
    ])
