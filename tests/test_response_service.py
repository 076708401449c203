"""
Tests for ResponseService submissions and external grading
"""
import asyncio

import pytest

from casestudy.services.response_service import (
    ResponseNotFoundError,
    ResponseService,
    SubmissionValidationError,
)
from conftest import (
    make_case_study,
    make_collection,
    make_db,
    make_question,
    make_response,
    make_section,
    make_session,
    update_result,
)


@pytest.fixture
def case_study():
    return make_case_study([
        make_section("s0", [
            make_question("mc", "multiple-choice", points=5, correct=2),
            make_question("essay", "essay", points=10),
        ]),
        make_section("s1", [make_question("fb", "multiple-choice-feedback", points=2)]),
    ])


def _service(responses=None, sessions=None):
    collections = {
        "responses": responses or make_collection(),
        "sessions": sessions or make_collection(),
    }
    return ResponseService(make_db(collections)), collections


def test_submit_section_grades_each_answer(case_study):
    service, collections = _service()
    
    created = asyncio.run(service.submit_section(
        make_session(), case_study, "stu_1", 0, {"mc": "2", "essay": "Long text"}, existing=[]
    ))
    
    by_question = {record.questionId: record for record in created}
    assert by_question["mc"].points == 5
    assert by_question["mc"].response == "C"
    assert by_question["essay"].points is None
    assert by_question["essay"].is_pending_grading
    assert collections["responses"].insert_one.call_count == 2
    collections["sessions"].update_one.assert_called_once()


def test_submit_section_skips_already_answered(case_study):
    service, collections = _service()
    existing = [make_response("mc", "s0", points=0)]
    
    created = asyncio.run(service.submit_section(
        make_session(), case_study, "stu_1", 0, {"mc": "2", "essay": "text"}, existing=existing
    ))
    
    assert [record.questionId for record in created] == ["essay"]


def test_submit_section_requires_every_answer(case_study):
    service, collections = _service()
    
    with pytest.raises(SubmissionValidationError):
        asyncio.run(service.submit_section(
            make_session(), case_study, "stu_1", 0, {"mc": "1"}, existing=[]
        ))
    collections["responses"].insert_one.assert_not_called()


def test_submit_unreleased_section_rejected(case_study):
    service, _ = _service()
    
    with pytest.raises(SubmissionValidationError):
        asyncio.run(service.submit_section(
            make_session(released=[0]), case_study, "stu_1", 1, {"fb": "0"}, existing=[]
        ))


def test_submit_unknown_section_rejected(case_study):
    service, _ = _service()
    
    with pytest.raises(SubmissionValidationError):
        asyncio.run(service.submit_section(
            make_session(released=[0, 1, 2]), case_study, "stu_1", 5, {}, existing=[]
        ))


def test_activity_update_failure_does_not_fail_submission(case_study):
    sessions = make_collection()
    sessions.update_one.return_value = update_result(matched=0, modified=0)
    service, _ = _service(sessions=sessions)
    
    created = asyncio.run(service.submit_section(
        make_session(released=[0, 1]), case_study, "stu_1", 1, {"fb": "1"}, existing=[]
    ))
    
    assert created[0].points == 2


def test_fetch_responses_oldest_first():
    docs = [
        make_response("b", minutes=5).model_dump(),
        make_response("a", minutes=1).model_dump(),
    ]
    docs[1]["submittedAt"] = None
    service, _ = _service(responses=make_collection(find_docs=docs))
    
    responses = asyncio.run(service.fetch_responses("stu_1", "session_1"))
    
    assert [response.questionId for response in responses] == ["a", "b"]


def test_grade_response_sets_points():
    doc = make_response("essay", points=None).model_dump()
    responses = make_collection(find_one=doc)
    service, _ = _service(responses=responses)
    
    graded = asyncio.run(service.grade_response(doc["id"], 4, "ta_1"))
    
    assert graded.points == 4
    assert graded.gradedBy == "ta_1"
    assert not graded.is_pending_grading
    update = responses.update_one.call_args[0][1]
    assert update["$set"]["points"] == 4


def test_grade_response_rejects_out_of_range_points():
    doc = make_response("essay", points=None).model_dump()
    service, _ = _service(responses=make_collection(find_one=doc))
    
    with pytest.raises(ValueError):
        asyncio.run(service.grade_response(doc["id"], 6, "ta_1"))


def test_grade_unknown_response():
    service, _ = _service()
    
    with pytest.raises(ResponseNotFoundError):
        asyncio.run(service.grade_response("resp_missing", 1, "ta_1"))
