"""
Tests for the per-student session controller: join, submit/review,
waiting for releases, notifications and live pushes
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from casestudy.models.progress import LiveStatus
from casestudy.models.student import Student
from casestudy.services.live_status import LiveStatusChannel
from casestudy.services.session_service import SessionInactiveError
from casestudy.services.student_session import StudentSessionController, StudentSessionError
from conftest import (
    make_case_study,
    make_collection,
    make_db,
    make_question,
    make_response,
    make_section,
    make_session,
)


def _student():
    return Student(id="stu_1", studentId="janedoe42", name="Jane")


def _controller(session, case_study, responses=(), known_student=None, live_collection=None):
    session_service = MagicMock()
    session_service.fetch_session_for_join = AsyncMock(return_value=session)
    
    case_study_service = MagicMock()
    case_study_service.require_case_study = AsyncMock(return_value=case_study)
    
    student_service = MagicMock()
    student_service.get_by_student_id = AsyncMock(return_value=known_student)
    student_service.get_or_create = AsyncMock(return_value=_student())
    
    response_service = MagicMock()
    response_service.fetch_responses = AsyncMock(return_value=list(responses))
    response_service.submit_section = AsyncMock(return_value=[])
    
    hybrid_service = MagicMock()
    hybrid_service.student_join = AsyncMock()
    
    channel = LiveStatusChannel(make_db({"live_sessions": live_collection or make_collection()}))
    controller = StudentSessionController(
        session_service,
        case_study_service,
        student_service,
        response_service,
        hybrid_service,
        channel
    )
    return controller, channel


def _joined(session, case_study, responses=()):
    controller, channel = _controller(session, case_study, responses)
    asyncio.run(controller.load("ABC123"))
    asyncio.run(controller.join("Jane_Doe 42", "Jane"))
    return controller, channel


def test_join_places_student_at_first_section(three_section_case_study):
    controller, _ = _joined(make_session(released=[0]), three_section_case_study)
    
    snapshot = controller.snapshot()
    assert snapshot.step == "reading"
    assert snapshot.currentSection == 0
    assert snapshot.studentId == "stu_1"
    assert "stu_1" in controller.session.studentsJoined
    controller.hybrid_service.student_join.assert_awaited_once()


def test_load_restores_returning_student(three_section_case_study):
    session = make_session(released=[0, 1], joined=["stu_1"])
    controller, _ = _controller(
        session, three_section_case_study,
        responses=[make_response("q0")], known_student=_student()
    )
    
    snapshot = asyncio.run(controller.load("ABC123", "JANE_DOE 42"))
    
    assert snapshot.step == "reading"
    assert snapshot.currentSection == 1
    assert snapshot.progress.completed == [0]


def test_load_ignores_student_not_in_session(three_section_case_study):
    controller, _ = _controller(
        make_session(released=[0, 1]), three_section_case_study, known_student=_student()
    )
    
    snapshot = asyncio.run(controller.load("ABC123", "janedoe42"))
    
    assert snapshot.step == "join"
    assert snapshot.studentId is None


def test_submit_then_wait_then_auto_advance(three_section_case_study):
    controller, channel = _joined(make_session(released=[0]), three_section_case_study)
    controller.response_service.fetch_responses.return_value = [make_response("q0")]
    pushed = []
    controller.attach(pushed.append)
    
    asyncio.run(controller.submit({"q0": "answer"}))
    assert controller.step == "review"
    
    controller.continue_after_review()
    assert controller.step == "waiting"
    
    channel.publish("session_1", LiveStatus(active=True, currentSection=1, releasedSections=[0, 1]))
    
    assert controller.step == "reading"
    assert controller.current_section == 1
    assert controller.reconciler.pending_notification is None
    assert pushed[-1].currentSection == 1


def test_continue_moves_on_when_next_already_released(three_section_case_study):
    controller, _ = _joined(make_session(released=[0, 1]), three_section_case_study)
    asyncio.run(controller.submit({"q0": "answer"}))
    
    snapshot = controller.continue_after_review()
    
    assert snapshot.step == "reading"
    assert snapshot.currentSection == 1


def test_reading_student_gets_notification_and_accepts(three_section_case_study):
    controller, channel = _joined(make_session(released=[0]), three_section_case_study)
    controller.attach()
    
    channel.publish("session_1", LiveStatus(active=True, releasedSections=[0, 1]))
    
    assert controller.current_section == 0
    assert controller.snapshot().pendingNotification == 1
    
    channel.publish("session_1", LiveStatus(active=True, releasedSections=[0, 1]))
    assert controller.snapshot().pendingNotification == 1
    
    assert controller.accept_notification() == 1
    assert controller.current_section == 1
    assert controller.snapshot().pendingNotification is None


def test_dismissed_notification_stays_dismissed(three_section_case_study):
    controller, _ = _joined(make_session(released=[0]), three_section_case_study)
    
    controller.on_live_status(LiveStatus(active=True, releasedSections=[0, 1]))
    controller.dismiss_notification()
    result = controller.on_live_status(LiveStatus(active=True, releasedSections=[0, 1]))
    
    assert result.notify is None
    assert controller.reconciler.pending_notification is None


def test_stale_push_keeps_released_sections(three_section_case_study):
    controller, _ = _joined(make_session(released=[0, 1]), three_section_case_study)
    
    controller.on_live_status(LiveStatus(active=True, releasedSections=[0]))
    
    assert controller.session.releasedSections == [0, 1]
    assert controller.navigate_to(1) is True


def test_navigation_limited_to_released(three_section_case_study):
    controller, _ = _joined(make_session(released=[0, 1]), three_section_case_study)
    
    assert controller.navigate_to(2) is False
    assert controller.navigate_to(1) is True
    assert controller.current_section == 1
    assert controller.navigate_to(0) is True


def test_last_section_leads_to_conclusion(three_section_case_study):
    responses = [make_response("q0"), make_response("q1")]
    controller, _ = _joined(make_session(released=[0, 1, 2]), three_section_case_study, responses)
    assert controller.current_section == 2
    
    asyncio.run(controller.submit({"q2": "answer"}))
    assert controller.continue_after_review().step == "conclusion"
    assert controller.finish().step == "completed"
    
    result = controller.on_live_status(LiveStatus(active=True, releasedSections=[0, 1, 2, 3]))
    assert result.newlyReleased == []


def test_actions_out_of_step_raise(three_section_case_study):
    controller, _ = _joined(make_session(released=[0]), three_section_case_study)
    
    with pytest.raises(StudentSessionError):
        controller.continue_after_review()
    with pytest.raises(StudentSessionError):
        controller.finish()
    with pytest.raises(StudentSessionError):
        asyncio.run(controller.join("other", "Other"))


def test_actions_before_load_raise(three_section_case_study):
    controller, _ = _controller(make_session(), three_section_case_study)
    
    with pytest.raises(StudentSessionError):
        controller.snapshot()


def test_question_free_section_completes_once_visited():
    case_study = make_case_study([
        make_section("intro"),
        make_section("s1", [make_question("q1")]),
    ])
    controller, _ = _joined(make_session(released=[0, 1]), case_study)
    
    assert controller.current_section == 0
    assert controller.snapshot().progress.completed == [0]
    assert controller.snapshot().progress.canAdvance is True


def test_session_end_is_pushed(three_section_case_study):
    controller, channel = _joined(make_session(released=[0]), three_section_case_study)
    pushed = []
    controller.attach(pushed.append)
    
    channel.publish("session_1", LiveStatus(active=False, releasedSections=[0]))
    
    assert controller.session.active is False
    assert len(pushed) == 1


def test_detach_stops_pushes(three_section_case_study):
    controller, channel = _joined(make_session(released=[0]), three_section_case_study)
    controller.attach()
    controller.detach()
    
    channel.publish("session_1", LiveStatus(active=True, releasedSections=[0, 1]))
    
    assert channel.subscriber_count("session_1") == 0
    assert controller.reconciler.pending_notification is None


def test_presence_failure_is_not_fatal(three_section_case_study):
    live = make_collection()
    live.update_one.side_effect = RuntimeError("down")
    controller, _ = _controller(make_session(released=[0]), three_section_case_study, live_collection=live)
    asyncio.run(controller.load("ABC123"))
    asyncio.run(controller.join("janedoe42", "Jane"))
    
    asyncio.run(controller.set_presence(False))


def test_continuing_onto_announced_section_clears_notification(three_section_case_study):
    controller, _ = _joined(make_session(released=[0]), three_section_case_study)
    asyncio.run(controller.submit({"q0": "answer"}))
    
    first = controller.on_live_status(LiveStatus(active=True, releasedSections=[0, 1]))
    assert first.notify == 1
    
    controller.continue_after_review()
    assert controller.current_section == 1
    assert controller.snapshot().pendingNotification is None
    
    second = controller.on_live_status(LiveStatus(active=True, releasedSections=[0, 1, 2]))
    assert second.notify == 2
    assert controller.snapshot().pendingNotification == 2


def test_ended_session_rejects_submission(three_section_case_study):
    controller, _ = _joined(make_session(released=[0]), three_section_case_study)
    
    controller.on_live_status(LiveStatus(active=False, releasedSections=[0]))
    
    with pytest.raises(SessionInactiveError):
        asyncio.run(controller.submit({"q0": "answer"}))
    controller.response_service.submit_section.assert_not_awaited()


def test_ended_session_rejects_join(three_section_case_study):
    controller, _ = _controller(make_session(released=[0]), three_section_case_study)
    asyncio.run(controller.load("ABC123"))
    
    controller.on_live_status(LiveStatus(active=False, releasedSections=[0]))
    
    with pytest.raises(SessionInactiveError):
        asyncio.run(controller.join("janedoe42", "Jane"))
    controller.hybrid_service.student_join.assert_not_awaited()
