"""
Tests for case study and student storage
"""
import asyncio

import pytest

from casestudy.models.case_study import CreateCaseStudyRequest
from casestudy.services.case_study_service import CaseStudyNotFoundError, CaseStudyService
from casestudy.services.student_service import StudentService
from conftest import make_collection, make_db, make_question, make_section, update_result


def test_create_case_study_orders_sections_and_totals_points():
    collection = make_collection()
    service = CaseStudyService(make_db({"case_studies": collection}))
    request = CreateCaseStudyRequest(
        title="Supply chain",
        teacherId="teacher_1",
        sections=[
            make_section("a", [make_question("q1", points=5)]),
            make_section("b", [make_question("q2", points=3), make_question("q3", points=2)]),
        ]
    )
    
    case_study = asyncio.run(service.create_case_study(request))
    
    assert [section.order for section in case_study.sections] == [0, 1]
    assert case_study.totalPoints == 10
    assert collection.insert_one.call_args[0][0]["totalPoints"] == 10


def test_require_case_study_without_reference():
    service = CaseStudyService(make_db({}))
    
    with pytest.raises(CaseStudyNotFoundError):
        asyncio.run(service.require_case_study(None))


def test_update_unknown_case_study(three_section_case_study):
    collection = make_collection()
    collection.replace_one.return_value = update_result(matched=0, modified=0)
    service = CaseStudyService(make_db({"case_studies": collection}))
    
    with pytest.raises(CaseStudyNotFoundError):
        asyncio.run(service.update_case_study(three_section_case_study))


def test_get_or_create_reuses_normalized_identity():
    existing = {"id": "stu_1", "studentId": "janedoe42", "name": "Jane", "_id": "mongo"}
    collection = make_collection(find_one=existing)
    service = StudentService(make_db({"students": collection}))
    
    student = asyncio.run(service.get_or_create("  JANE_doe 42", "Jane D."))
    
    assert student.id == "stu_1"
    collection.find_one.assert_awaited_with({"studentId": "janedoe42"})
    collection.insert_one.assert_not_called()


def test_create_student_keeps_display_id():
    collection = make_collection()
    service = StudentService(make_db({"students": collection}))
    
    student = asyncio.run(service.get_or_create("jd_42", " Jane "))
    
    assert student.studentId == "jd42"
    assert student.displayId == "JD_42"
    assert student.name == "Jane"


def test_create_student_rejects_empty_identity():
    service = StudentService(make_db({}))
    
    with pytest.raises(ValueError):
        asyncio.run(service.create_student("  __  ", "Jane"))
