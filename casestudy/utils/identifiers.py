"""
Identifier helpers for students and join codes
"""
import re
import secrets
from typing import Optional

from casestudy.core.config import settings

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9\-.@]")


def normalize_student_id(student_id: Optional[str]) -> str:
    """
    Normalize a student id so formatting differences do not create duplicates
    
    Lowercases, removes all whitespace and underscores, and keeps only
    letters, digits, hyphens, dots and @ (so e-mail addresses survive).
    
    Example:
        >>> normalize_student_id("  Jane_Doe 42 ")
        'janedoe42'
    """
    if not student_id:
        return ""
    
    normalized = student_id.lower().strip()
    normalized = _WHITESPACE.sub("", normalized)
    normalized = normalized.replace("_", "")
    return _DISALLOWED.sub("", normalized)


def format_student_id_for_display(student_id: Optional[str]) -> str:
    if not student_id:
        return ""
    return student_id.strip().upper()


def generate_session_code(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Random join code, e.g. 'K7Q2ZP'"""
    length = length or settings.session_code_length
    alphabet = alphabet or settings.session_code_alphabet
    return "".join(secrets.choice(alphabet) for _ in range(length))
