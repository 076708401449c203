"""
Progress Deriver
Works out where a student should be in a case study from the released
section indices and the student's stored responses
"""
import logging
from typing import FrozenSet, Iterable, Optional, Sequence, Set

from casestudy.models.case_study import Section
from casestudy.models.progress import ProgressSnapshot
from casestudy.models.response import ResponseRecord

logger = logging.getLogger(__name__)

# Released set used when a session has none recorded
DEFAULT_RELEASED_SECTIONS = frozenset({0})


def valid_section_indices(released: Optional[Iterable[int]]) -> FrozenSet[int]:
    """Non-negative integer indices from a raw list; bools and junk are dropped"""
    return frozenset(
        index for index in (released or ())
        if isinstance(index, int) and not isinstance(index, bool) and index >= 0
    )


def normalize_released_sections(released: Optional[Iterable[int]]) -> FrozenSet[int]:
    """
    Clean up a released-sections list coming from storage or the live channel.
    
    Negative and non-integer entries are dropped. An empty or missing list
    falls back to releasing only the first section.
    
    Args:
        released: Raw released section indices (may be None)
    
    Returns:
        Non-empty frozenset of section indices
    
    Example:
        >>> sorted(normalize_released_sections([2, 0, 2]))
        [0, 2]
        >>> sorted(normalize_released_sections(None))
        [0]
    """
    cleaned = valid_section_indices(released)
    return cleaned or DEFAULT_RELEASED_SECTIONS


class ProgressDeriver:
    """
    Pure, side-effect-free progress computation for one student in one session
    
    Sections are available up to the maximum released index, even when the
    released list itself has gaps. A section counts as completed when every
    question in it has a stored response, or, for a section without
    questions, when the caller reports that the student has visited it.
    """
    
    def __init__(
        self,
        released_sections: Optional[Iterable[int]],
        sections: Sequence[Section],
        responses: Iterable[ResponseRecord],
        visited_sections: Iterable[int] = ()
    ):
        self.released_sections = normalize_released_sections(released_sections)
        self.max_released = max(self.released_sections)
        self.sections = list(sections)
        self.answered_question_ids = {response.questionId for response in responses}
        self.visited_sections = frozenset(visited_sections)
    
    def is_section_completed(self, index: int) -> bool:
        if index < 0 or index > self.max_released or index >= len(self.sections):
            return False
        
        questions = self.sections[index].questions
        if not questions:
            return index in self.visited_sections
        
        return all(q.id in self.answered_question_ids for q in questions)
    
    def completed_section_indices(self) -> Set[int]:
        """Indices of released sections the student has finished"""
        return {
            index for index in range(len(self.sections))
            if self.is_section_completed(index)
        }
    
    def resume_section_index(self) -> int:
        """
        First incomplete section among 0..max_released, or max_released
        when all of them are complete.
        """
        completed = self.completed_section_indices()
        for index in range(self.max_released + 1):
            if index not in completed:
                return index
        return self.max_released
    
    def can_navigate_to(self, index: int) -> bool:
        return 0 <= index <= self.max_released
    
    def can_advance_from(self, current_index: int) -> bool:
        next_index = current_index + 1
        return (
            next_index <= self.max_released
            and next_index < len(self.sections)
            and self.is_section_completed(current_index)
        )
    
    def can_retreat_from(self, current_index: int) -> bool:
        return current_index > 0 and (current_index - 1) <= self.max_released
    
    def snapshot(self, current_index: Optional[int] = None) -> ProgressSnapshot:
        """
        Bundle the derived values for a client.
        
        Args:
            current_index: Section the student is on; defaults to the resume index
        
        Returns:
            ProgressSnapshot with navigation flags evaluated at current_index
        """
        resume_index = self.resume_section_index()
        position = resume_index if current_index is None else current_index
        
        return ProgressSnapshot(
            completed=sorted(self.completed_section_indices()),
            resumeIndex=resume_index,
            maxReleased=self.max_released,
            canAdvance=self.can_advance_from(position),
            canRetreat=self.can_retreat_from(position)
        )


def derive_progress(
    released_sections: Optional[Iterable[int]],
    sections: Sequence[Section],
    responses: Iterable[ResponseRecord],
    current_index: Optional[int] = None,
    visited_sections: Iterable[int] = ()
) -> ProgressSnapshot:
    """Convenience wrapper used by the API layer"""
    deriver = ProgressDeriver(
        released_sections,
        sections,
        responses,
        visited_sections=visited_sections
    )
    snapshot = deriver.snapshot(current_index)
    logger.debug(
        f"📊 Derived progress: completed={snapshot.completed}, "
        f"resume={snapshot.resumeIndex}, maxReleased={snapshot.maxReleased}"
    )
    return snapshot
