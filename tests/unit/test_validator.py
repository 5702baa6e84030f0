from __future__ import annotations

from conftest import SCOPE, rows_from

from edu_import.models.validation_error import ValidationError
from edu_import.schema.registry import get_schema
from edu_import.services.snapshot import load_existing
from edu_import.services.validator import check_headers, validate_rows
from edu_import.tabular.reader import parse_text

STUDENTS = get_schema("students")
STAFF = get_schema("staff")


def _validate(schema, text, index, existing=None):
    parsed = parse_text(text)
    assert parsed.ok, parsed.errors
    return validate_rows(schema, parsed.rows, index, existing, headers=parsed.headers)


def test_invalid_email_reported_on_its_row(index):
    report = _validate(
        STAFF,
        "employee_number,first_name,last_name,email\n"
        "EMP100,Jane,Doe,not-an-email\n"
        "EMP101,Paul,Mwangi,paul@school.edu\n",
        index,
    )
    assert report.errors == [ValidationError(row=2, field="email", message="Invalid email format")]
    assert [r.row_number for r in report.valid_rows] == [3]


def test_required_fields(index):
    report = _validate(STUDENTS, "admission_number,first_name,last_name\nSTU100, ,Doe\n", index)
    assert report.errors == [ValidationError(2, "first_name", "First Name is required")]


def test_all_errors_of_a_row_are_collected(index):
    report = _validate(
        STUDENTS,
        "admission_number,first_name,last_name,gender,date_of_birth\nSTU100,,Doe,femal,15/05/2010\n",
        index,
    )
    assert [e.field for e in report.errors] == ["first_name", "gender", "date_of_birth"]
    assert report.errors[1].message == 'Invalid Gender "femal". Valid options: female, male, other'
    assert report.errors[2].message == 'Invalid Date of Birth "15/05/2010". Expected format: YYYY-MM-DD'
    assert report.total_errors == 3


def test_enumerated_values_are_case_insensitive(index):
    report = _validate(
        STUDENTS,
        "admission_number,first_name,last_name,gender,boarding_status\nSTU100,A,B,FEMALE,Day\n",
        index,
    )
    assert report.errors == []


def test_duplicate_key_reported_once_on_repeating_row(index):
    report = _validate(
        STUDENTS,
        "admission_number,first_name,last_name\n"
        "STU100,A,One\n"
        "STU101,B,Two\n"
        " stu100 ,C,Three\n",
        index,
    )
    assert report.errors == [ValidationError(4, "admission_number", "Duplicate admission number in file")]
    assert [r.row_number for r in report.valid_rows] == [2, 3]


def test_duplicate_secondary_dimension(index):
    report = _validate(
        STAFF,
        "employee_number,first_name,last_name,email\n"
        "EMP100,A,One,same@school.edu\n"
        "EMP101,B,Two,SAME@school.edu\n",
        index,
    )
    assert report.errors == [ValidationError(3, "email", "Duplicate email in file")]


def test_unresolved_lookup_only_blocks_its_row(index):
    report = _validate(
        STUDENTS,
        "admission_number,first_name,last_name,class_name\n"
        "STU100,A,One,Grade 1 A\n"
        "STU101,B,Two,Grade 9 Z\n"
        "STU102,C,Three,2a\n",
        index,
    )
    assert report.errors == [ValidationError(3, "class_name", "Class Name not found: Grade 9 Z")]
    assert [r.row_number for r in report.valid_rows] == [2, 4]


def test_update_mode_not_found_supersedes_other_checks(store, index):
    schema = get_schema("student_update")
    existing = load_existing(store, schema, SCOPE)
    report = _validate(
        schema,
        "admission_number,gender\nSTU999,robot\nstu001,male\n",
        index,
        existing,
    )
    assert report.errors == [ValidationError(2, "admission_number", "Student not found: STU999")]
    assert [r.row_number for r in report.valid_rows] == [3]


def test_update_mode_blank_key_is_required_error(store, index):
    schema = get_schema("student_update")
    report = _validate(schema, "admission_number,gender\n,male\n", index, load_existing(store, schema, SCOPE))
    assert report.errors == [ValidationError(2, "admission_number", "Admission Number is required")]


def test_update_mode_accepts_unedited_persisted_value(store, index):
    schema = get_schema("staff_update")
    store.update("staff", 1, {"department": "Mathematics"})
    existing = load_existing(store, schema, SCOPE)
    report = _validate(schema, "employee_number,department\nEMP001,Mathematics\n", index, existing)
    assert report.errors == []

    report = _validate(schema, "employee_number,department\nEMP001,Physics\n", index, existing)
    assert report.errors[0].field == "department"
    assert report.errors[0].message.startswith('Invalid Department "Physics"')


def test_phone_and_number_checks(index):
    parents = get_schema("parents")
    report = _validate(
        parents,
        "phone,first_name,last_name\n12ab,Jane,Doe\n+254 712-345-678,John,Doe\n",
        index,
    )
    assert report.errors == [ValidationError(2, "phone", "Invalid phone number")]

    questions = get_schema("questions")
    header = "subject_code,topic,question_type,question_text,correct_answer,marks,difficulty\n"
    report = _validate(
        questions,
        header + "MATH,Fractions,short_answer,Q1,1/2,0,easy\nMATH,Fractions,short_answer,Q2,1/2,x,easy\n",
        index,
    )
    assert report.errors == [
        ValidationError(2, "marks", "Marks must be a positive number"),
        ValidationError(3, "marks", "Marks must be a number"),
    ]


def test_multiple_choice_rule(index):
    questions = get_schema("questions")
    text = (
        "subject_code,topic,question_type,question_text,option_a,option_b,correct_answer,marks,difficulty\n"
        "MATH,Fractions,multiple_choice,Q1,3/4,,A,1,easy\n"
        "MATH,Fractions,multiple_choice,Q2,3/4,1/2,E,1,easy\n"
        "MATH,Fractions,multiple_choice,Q3,3/4,1/2,b,1,easy\n"
    )
    report = _validate(questions, text, index)
    assert report.errors == [
        ValidationError(2, "option_a", "MCQ requires at least options A and B"),
        ValidationError(3, "correct_answer", "MCQ correct answer must be A, B, C, or D"),
    ]


def test_unknown_link_reference_is_a_warning(index):
    report = _validate(
        STAFF,
        "employee_number,first_name,last_name,email,subjects\nEMP100,A,B,a@school.edu,MATH;BIO\n",
        index,
    )
    assert report.errors == []
    assert len(report.warnings) == 1
    assert report.warnings[0].row == 2
    assert '"BIO" not found' in report.warnings[0].message


def test_unresolved_class_teacher_lookup_is_an_error(index):
    report = _validate(
        STAFF,
        "employee_number,first_name,last_name,email,class_teacher_of\nEMP100,A,B,a@school.edu,Grade 7 C\n",
        index,
    )
    assert report.errors == [ValidationError(2, "class_teacher_of", "Class Teacher Of not found: Grade 7 C")]


def test_missing_required_column_is_reported_once(index):
    report = _validate(STUDENTS, "admission_number,first_name,nickname\nSTU100,A,Al\nSTU101,B,Bo\n", index)
    assert report.errors == [ValidationError(0, "last_name", "Missing required column: last_name")]
    assert [w.field for w in report.warnings] == ["nickname"]


def test_check_headers_direct():
    errors, warnings = check_headers(STAFF, ["employee_number", "first_name", "last_name", "email"])
    assert errors == [] and warnings == []


def test_rows_without_headers_argument(index):
    rows = rows_from("admission_number,first_name,last_name\nSTU100,A,B\n")
    report = validate_rows(STUDENTS, rows, index)
    assert report.errors == []
    assert report.valid_rows == rows
