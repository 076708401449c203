from casestudy.utils.identifiers import (
    format_student_id_for_display,
    generate_session_code,
    normalize_student_id,
)


def test_normalize_student_id():
    assert normalize_student_id("  Jane_Doe 42 ") == "janedoe42"
    assert normalize_student_id("JANE.DOE@School.edu") == "jane.doe@school.edu"
    assert normalize_student_id("a#b$c") == "abc"
    assert normalize_student_id(None) == ""
    assert normalize_student_id("") == ""


def test_format_for_display():
    assert format_student_id_for_display(" jd42 ") == "JD42"
    assert format_student_id_for_display(None) == ""


def test_generate_session_code_uses_alphabet():
    code = generate_session_code(length=8, alphabet="XY")
    
    assert len(code) == 8
    assert set(code) <= {"X", "Y"}


def test_generate_session_code_defaults():
    code = generate_session_code()
    
    assert len(code) == 6
    assert code.isalnum()
    assert code == code.upper()
