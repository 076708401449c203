"""
Release-Change Reconciler
Decides whether a section release arriving on the live-status channel is
news to the student (notify or auto-advance) or was already known.
"""
import logging
from typing import FrozenSet, Iterable, Optional

from casestudy.models.progress import ReconcileResult
from casestudy.services.progress_deriver import (
    normalize_released_sections,
    valid_section_indices
)

logger = logging.getLogger(__name__)

# Steps in which a student is working inside a section
ACTIVE_STEPS = ("reading", "review")
WAITING_STEP = "waiting"


class ReleaseReconciler:
    """
    Tracks the release set a client has already accounted for.
    
    The baseline only ever grows, so repeated, stale or out-of-order
    updates from the live channel can never re-announce a section or
    roll anything back.
    """
    
    def __init__(self, baseline: Optional[Iterable[int]]):
        """
        Args:
            baseline: Released sections at the time the session was loaded
        """
        self._known_released = set(normalize_released_sections(baseline))
        self._pending: Optional[int] = None
    
    @property
    def known_released(self) -> FrozenSet[int]:
        return frozenset(self._known_released)
    
    @property
    def pending_notification(self) -> Optional[int]:
        return self._pending
    
    def on_live_status_update(
        self,
        new_released_sections: Optional[Iterable[int]],
        step: str,
        current_section: int
    ) -> ReconcileResult:
        """
        Feed one live-status update.
        
        Args:
            new_released_sections: Released indices carried by the update
            step: The student's current workflow step
            current_section: Section index the student is on
        
        Returns:
            ReconcileResult; autoAdvanceTo is set when a waiting student's
            next section arrived, notify when a new pending notification
            was raised by this update
        """
        incoming = valid_section_indices(new_released_sections)
        newly_released = incoming - self._known_released
        
        if not newly_released:
            return ReconcileResult()
        
        result = ReconcileResult(newlyReleased=sorted(newly_released))
        max_new = max(newly_released)
        next_section = current_section + 1
        
        if step == WAITING_STEP and next_section <= max_new:
            result.autoAdvanceTo = next_section
            logger.info(f"✅ Next section {next_section} released while waiting, advancing")
        
        elif step in ACTIVE_STEPS and max_new > current_section:
            if self._pending is None:
                self._pending = min(max_new, next_section)
                result.notify = self._pending
                logger.info(f"🔔 New section available: {self._pending}")
            else:
                logger.debug(f"Notification for section {self._pending} already pending")
        
        self._known_released |= newly_released
        return result
    
    def dismiss(self) -> None:
        """Clear the pending notification without moving the student"""
        self._pending = None
    
    def accept_and_go_to_pending(self) -> Optional[int]:
        """
        Consume the pending notification.
        
        Returns:
            The section to open, or None when nothing was pending
        """
        target = self._pending
        self._pending = None
        return target
    
    def on_navigate(self, index: int) -> None:
        """Navigating to or past the announced section makes the notice moot"""
        if self._pending is not None and index >= self._pending:
            self._pending = None
