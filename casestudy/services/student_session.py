"""
Student Session Controller
Per-student, per-connection workflow for a live case-study session:
join, read, submit, review, wait for releases, conclude.

The live-status channel is handed in by the caller; the controller owns
the subscription and feeds pushed statuses through the release reconciler.
"""
import logging
from typing import Callable, List, Mapping, Optional, Set

from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.models.case_study import CaseStudy
from casestudy.models.progress import (
    LiveStatus,
    ReconcileResult,
    StudentSessionSnapshot,
)
from casestudy.models.response import ResponseRecord
from casestudy.models.session import Session
from casestudy.models.student import Student
from casestudy.services.case_study_service import CaseStudyService
from casestudy.services.hybrid_session_service import HybridSessionService
from casestudy.services.live_status import LiveStatusChannel, LiveStatusError
from casestudy.services.progress_deriver import ProgressDeriver, valid_section_indices
from casestudy.services.release_reconciler import ReleaseReconciler
from casestudy.services.response_service import ResponseService
from casestudy.services.session_service import SessionInactiveError, SessionService
from casestudy.services.student_service import StudentService

logger = logging.getLogger(__name__)

# Steps during which live releases are watched
LIVE_STEPS = ("reading", "review", "waiting")


class StudentSessionError(Exception):
    """Raised when an action does not fit the student's current step"""
    pass


class StudentSessionController:
    """
    Workflow state for one student in one session
    
    Steps: join -> reading -> review -> (reading | waiting | conclusion)
    -> completed. Sections are marked visited as the student is placed on
    them; that visit record is what lets a question-free section count as
    completed, and it lives only as long as this controller.
    """
    
    def __init__(
        self,
        session_service: SessionService,
        case_study_service: CaseStudyService,
        student_service: StudentService,
        response_service: ResponseService,
        hybrid_service: HybridSessionService,
        live_channel: LiveStatusChannel
    ):
        self.session_service = session_service
        self.case_study_service = case_study_service
        self.student_service = student_service
        self.response_service = response_service
        self.hybrid_service = hybrid_service
        self.live_channel = live_channel
        
        self.session: Optional[Session] = None
        self.case_study: Optional[CaseStudy] = None
        self.student: Optional[Student] = None
        self.responses: List[ResponseRecord] = []
        self.step = "join"
        self.current_section = 0
        self.visited_sections: Set[int] = set()
        self.reconciler: Optional[ReleaseReconciler] = None
        
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._on_change: Optional[Callable[[StudentSessionSnapshot], None]] = None
    
    @classmethod
    def from_db(cls, db: AsyncIOMotorDatabase, live_channel: LiveStatusChannel) -> "StudentSessionController":
        return cls(
            session_service=SessionService(db),
            case_study_service=CaseStudyService(db),
            student_service=StudentService(db),
            response_service=ResponseService(db),
            hybrid_service=HybridSessionService(db, live_channel),
            live_channel=live_channel
        )
    
    # ==================== DERIVED STATE ====================
    
    @property
    def section_count(self) -> int:
        return len(self.case_study.sections) if self.case_study else 0
    
    def deriver(self) -> ProgressDeriver:
        self._require_loaded()
        return ProgressDeriver(
            self.session.releasedSections,
            self.case_study.sections,
            self.responses,
            visited_sections=self.visited_sections
        )
    
    def snapshot(self) -> StudentSessionSnapshot:
        self._require_loaded()
        return StudentSessionSnapshot(
            sessionId=self.session.id,
            studentId=self.student.id if self.student else None,
            step=self.step,
            currentSection=self.current_section,
            sectionCount=self.section_count,
            progress=self.deriver().snapshot(self.current_section),
            pendingNotification=self.reconciler.pending_notification,
            answeredQuestionIds=[response.questionId for response in self.responses]
        )
    
    def _require_loaded(self) -> None:
        if self.session is None or self.case_study is None or self.reconciler is None:
            raise StudentSessionError("Session has not been loaded")
    
    def _require_step(self, *steps: str) -> None:
        self._require_loaded()
        if self.step not in steps:
            raise StudentSessionError(
                f"Action not allowed in step '{self.step}' (expected one of {list(steps)})"
            )
    
    def _require_active(self) -> None:
        if not self.session.active:
            raise SessionInactiveError("This session is no longer active")
    
    def _place(self, index: int) -> None:
        # Never beyond the last section, even if the release list says so
        index = max(0, min(index, self.section_count - 1))
        self.current_section = index
        self.visited_sections.add(index)
        self.step = "reading"
        self.reconciler.on_navigate(index)
    
    def _place_at_resume(self) -> None:
        self._place(self.deriver().resume_section_index())
    
    # ==================== LOADING AND JOINING ====================
    
    async def load(self, code: str, raw_student_id: Optional[str] = None) -> StudentSessionSnapshot:
        """
        Load a session by join code and establish the release baseline
        
        When a student id is given and that student already joined this
        session, their progress is restored at the resume section.
        
        Raises:
            SessionNotFoundError / SessionInactiveError: Bad or closed code
            CaseStudyNotFoundError: Session has no usable case study
        """
        self.session = await self.session_service.fetch_session_for_join(code)
        self.case_study = await self.case_study_service.require_case_study(self.session.caseStudyId)
        self.reconciler = ReleaseReconciler(self.session.releasedSections)
        
        if raw_student_id:
            student = await self.student_service.get_by_student_id(raw_student_id)
            if student and student.id in self.session.studentsJoined:
                self.student = student
                self.responses = await self.response_service.fetch_responses(student.id, self.session.id)
                self._place_at_resume()
                logger.info(
                    f"✅ Restored student {student.id} in session {self.session.id} "
                    f"at section {self.current_section}"
                )
        
        return self.snapshot()
    
    async def join(self, raw_student_id: str, name: str) -> StudentSessionSnapshot:
        self._require_step("join")
        self._require_active()
        
        student = await self.student_service.get_or_create(raw_student_id, name)
        await self.hybrid_service.student_join(self.session, student)
        if student.id not in self.session.studentsJoined:
            self.session.studentsJoined.append(student.id)
        
        self.student = student
        self.responses = await self.response_service.fetch_responses(student.id, self.session.id)
        self._place_at_resume()
        
        logger.info(
            f"✅ Student {student.id} joined session {self.session.id} "
            f"at section {self.current_section}"
        )
        return self.snapshot()
    
    # ==================== WORKFLOW ====================
    
    async def submit(self, answers: Mapping[str, str]) -> List[ResponseRecord]:
        """Submit the current section and move to review"""
        self._require_step("reading")
        self._require_active()
        
        created = await self.response_service.submit_section(
            self.session,
            self.case_study,
            self.student.id,
            self.current_section,
            answers,
            existing=self.responses
        )
        self.responses = await self.response_service.fetch_responses(self.student.id, self.session.id)
        self.step = "review"
        return created
    
    def continue_after_review(self) -> StudentSessionSnapshot:
        self._require_step("review")
        
        if self.current_section >= self.section_count - 1:
            self.step = "conclusion"
        elif self.deriver().can_navigate_to(self.current_section + 1):
            self._place(self.current_section + 1)
        else:
            self.step = "waiting"
        
        return self.snapshot()
    
    def navigate_to(self, index: int) -> bool:
        """Move to a released section; returns False when not allowed"""
        self._require_step("reading", "review", "waiting")
        
        if index >= self.section_count or not self.deriver().can_navigate_to(index):
            logger.debug(f"Navigation to section {index} refused")
            return False
        
        self._place(index)
        return True
    
    def finish(self) -> StudentSessionSnapshot:
        self._require_step("conclusion")
        self.step = "completed"
        return self.snapshot()
    
    # ==================== NOTIFICATIONS ====================
    
    def dismiss_notification(self) -> None:
        self._require_loaded()
        self.reconciler.dismiss()
    
    def accept_notification(self) -> Optional[int]:
        """Go to the announced section; returns it, or None if nothing moved"""
        self._require_loaded()
        
        target = self.reconciler.accept_and_go_to_pending()
        if target is None or target <= self.current_section or target >= self.section_count:
            return None
        
        self._place(target)
        return target
    
    # ==================== LIVE UPDATES ====================
    
    def on_live_status(self, status: LiveStatus) -> ReconcileResult:
        """
        Apply one pushed status
        
        Released sections only ever grow locally; a stale push cannot
        take a section away.
        """
        self._require_loaded()
        
        if not status.active and self.session.active:
            self.session.active = False
            logger.info(f"Session {self.session.id} was ended by the instructor")
        
        if self.step not in LIVE_STEPS:
            return ReconcileResult()
        
        incoming = valid_section_indices(status.releasedSections)
        self.session.releasedSections = sorted(set(self.session.releasedSections) | incoming)
        
        result = self.reconciler.on_live_status_update(incoming, self.step, self.current_section)
        if result.autoAdvanceTo is not None and result.autoAdvanceTo < self.section_count:
            self._place(result.autoAdvanceTo)
        
        return result
    
    def attach(self, on_change: Optional[Callable[[StudentSessionSnapshot], None]] = None) -> None:
        """Subscribe to the live-status channel for this session"""
        self._require_loaded()
        self.detach()
        self._on_change = on_change
        self._unsubscribe = self.live_channel.subscribe(self.session.id, self._handle_push)
    
    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
    
    def _handle_push(self, status: LiveStatus) -> None:
        result = self.on_live_status(status)
        if self._on_change is not None and (
            result.newlyReleased or result.autoAdvanceTo is not None or not status.active
        ):
            self._on_change(self.snapshot())
    
    async def set_presence(self, present: bool) -> None:
        """Presence is informational; failures are logged and ignored"""
        if self.session is None or self.student is None:
            return
        try:
            await self.live_channel.update_presence(self.session.id, self.student.id, present)
        except LiveStatusError as e:
            logger.warning(f"⚠️ Failed to update presence for {self.student.id}: {e}")
