from __future__ import annotations

from ..models.column_spec import ColumnKind, ColumnSpec, ImportMode, ImportSchema, LinkSpec

"""Schema registry: declarative definitions of every importable entity type.

Each definition lists its columns in template order. Create schemas
("students", "staff", ...) insert new records; update schemas
("student_update", ...) match existing records by business key and only
write the fields that changed.

TODAY is a default placeholder resolved to the current date at execution.
"""

__all__ = [
    "TODAY",
    "UnknownEntityError",
    "REFERENCE_ENTITIES",
    "get_schema",
    "list_entity_types",
    "lookup_kinds_for",
]

TODAY = "@today"


class UnknownEntityError(KeyError):
    """Raised for an entity type with no registered schema."""


GENDERS = frozenset({"male", "female", "other"})
BOARDING = frozenset({"day", "boarding", "day_boarding"})
STUDENT_STATUSES = frozenset({"active", "graduated", "transferred", "suspended", "withdrawn"})
RELATIONSHIPS = frozenset({"father", "mother", "guardian", "parent", "uncle", "aunt", "grandparent", "other"})
DEPARTMENTS = frozenset(
    {"Teaching", "Administration", "Finance", "IT", "Support", "Library", "Laboratory", "Sports", "Other"}
)
EMPLOYMENT_TYPES = frozenset({"permanent", "contract", "temporary", "intern"})
BOOLEANS = frozenset({"true", "false"})
QUESTION_TYPES = frozenset(
    {"multiple_choice", "short_answer", "long_answer", "fill_blank", "true_false", "matching"}
)
DIFFICULTIES = frozenset({"easy", "medium", "hard"})
COGNITIVE_LEVELS = frozenset(
    {"knowledge", "comprehension", "application", "analysis", "synthesis", "evaluation"}
)

# lookup kind -> persisted reference entity
REFERENCE_ENTITIES: dict[str, str] = {
    "classes": "classes",
    "subjects": "subjects",
    "students": "students",
}


def _text(name: str, label: str, required: bool = False, example: str = "", description: str = "", **kw) -> ColumnSpec:
    return ColumnSpec(name=name, label=label, required=required, example=example, description=description, **kw)


def _enum(name: str, label: str, values: frozenset[str], required: bool = False, example: str = "",
          description: str = "", **kw) -> ColumnSpec:
    return ColumnSpec(
        name=name,
        label=label,
        required=required,
        kind=ColumnKind.ENUMERATED,
        allowed_values=values,
        example=example,
        description=description,
        **kw,
    )


def _date(name: str, label: str, required: bool = False, example: str = "", description: str = "",
          formats: tuple[str, ...] = ("%Y-%m-%d",)) -> ColumnSpec:
    return ColumnSpec(
        name=name,
        label=label,
        required=required,
        kind=ColumnKind.DATE,
        date_formats=formats,
        example=example,
        description=description,
    )


def _class_lookup(name: str, label: str, description: str, example: str, persist: bool = True) -> ColumnSpec:
    return ColumnSpec(
        name=name,
        label=label,
        kind=ColumnKind.LOOKUP,
        lookup_kind="classes",
        target="class_id",
        change_field="class",
        example=example,
        description=description,
        persist=persist,
    )


_STUDENTS = ImportSchema(
    entity_type="students",
    title="Student Import",
    entity="students",
    entity_label="Student",
    mode=ImportMode.CREATE,
    business_key="admission_number",
    description="Import students with automatic class assignment",
    columns=(
        _text("admission_number", "Admission Number", True, "STU001", "Unique student ID"),
        _text("first_name", "First Name", True, "John", "Student's first name"),
        _text("middle_name", "Middle Name", False, "William", "Student's middle name (optional)"),
        _text("last_name", "Last Name", True, "Doe", "Student's last name/surname"),
        _enum("gender", "Gender", GENDERS, example="male", description="Student's gender"),
        _date("date_of_birth", "Date of Birth", example="2010-05-15", description="Student's date of birth"),
        _text("nationality", "Nationality", example="Kenyan", description="Student's nationality"),
        _date("admission_date", "Admission Date", example="2024-01-10",
              description="Date student was admitted. Defaults to today if blank."),
        _class_lookup("class_name", "Class Name", "Class to assign student to (must match existing class)",
                      "Grade 1 A"),
        _enum("boarding_status", "Boarding Status", BOARDING, example="day",
              description="Whether student is a boarder or day scholar"),
    ),
    defaults=(("admission_date", TODAY), ("status", "active")),
)

_STUDENT_UPDATE = ImportSchema(
    entity_type="student_update",
    title="Student Update",
    entity="students",
    entity_label="Student",
    mode=ImportMode.UPDATE,
    business_key="admission_number",
    description="Update existing student records using admission number as identifier",
    columns=(
        _text("admission_number", "Admission Number", True, "STU001",
              "Unique identifier - DO NOT MODIFY (used to match existing records)"),
        _text("first_name", "First Name", example="John", description="Update student's first name"),
        _text("middle_name", "Middle Name", example="William", description="Update student's middle name"),
        _text("last_name", "Last Name", example="Doe", description="Update student's last name"),
        _enum("gender", "Gender", GENDERS, example="male", description="Update student's gender"),
        _date("date_of_birth", "Date of Birth", example="2010-05-15", description="Update student's date of birth"),
        _text("nationality", "Nationality", example="Kenyan", description="Update student's nationality"),
        _class_lookup("class_name", "Class Name", "Move student to a different class (must match existing class)",
                      "Grade 2 A"),
        _enum("boarding_status", "Boarding Status", BOARDING, example="day",
              description="Update student's boarding status"),
        _enum("status", "Status", STUDENT_STATUSES, example="active", description="Update student's enrollment status"),
    ),
)

_STAFF = ImportSchema(
    entity_type="staff",
    title="Staff Import",
    entity="staff",
    entity_label="Staff",
    mode=ImportMode.CREATE,
    business_key="employee_number",
    description="Import staff with automatic subject and class teacher assignments",
    columns=(
        _text("employee_number", "Employee Number", True, "EMP001", "Unique staff employee ID"),
        _text("first_name", "First Name", True, "John", "Staff member's first name"),
        _text("last_name", "Last Name", True, "Smith", "Staff member's last name"),
        ColumnSpec("email", "Email", True, ColumnKind.EMAIL, example="john.smith@school.edu",
                   description="Staff member's email address (used for login)"),
        ColumnSpec("phone", "Phone", False, ColumnKind.PHONE, example="+254712345678",
                   description="Staff member's phone number"),
        _enum("gender", "Gender", GENDERS, example="male", description="Staff member's gender"),
        _text("id_number", "ID Number", example="12345678", description="National ID or passport number"),
        _text("department", "Department", example="Mathematics", description="Department or faculty"),
        _text("designation", "Designation", example="Senior Teacher",
              description='Job title or designation. Defaults to "Teacher".'),
        _date("date_joined", "Date Joined", example="2024-01-15", description="Date staff joined the institution"),
        _text("subjects", "Subject Codes", example="MATH;ENG;SCI", lookup_kind="subjects", list_separator=";",
              persist=False, description="Semicolon-separated subject codes to assign (must exist in system)"),
        _class_lookup("class_teacher_of", "Class Teacher Of", "Class name if this staff is a class teacher",
                      "Grade 1 A", persist=False),
    ),
    unique_columns=("email",),
    defaults=(("designation", "Teacher"), ("date_joined", TODAY), ("is_active", True)),
    links=(
        LinkSpec(column="subjects", lookup_kind="subjects", entity="staff_subjects", owner_field="staff_id",
                 target_field="subject_id", counter="subject_assignments"),
        LinkSpec(column="class_teacher_of", lookup_kind="classes", entity="classes", owner_field="class_teacher_id",
                 counter="class_teacher_assignments", action="assign"),
        LinkSpec(column="class_teacher_of", lookup_kind="classes", entity="class_teachers", owner_field="staff_id",
                 target_field="class_id", counter=None, static_fields=(("is_class_teacher", True),)),
    ),
)

_STAFF_UPDATE = ImportSchema(
    entity_type="staff_update",
    title="Staff Update",
    entity="staff",
    entity_label="Staff",
    mode=ImportMode.UPDATE,
    business_key="employee_number",
    description="Update existing staff records using employee number as identifier",
    columns=(
        _text("employee_number", "Employee Number", True, "EMP001",
              "Unique identifier - DO NOT MODIFY (used to match existing records)"),
        _text("first_name", "First Name", example="John", description="Update staff member's first name"),
        _text("middle_name", "Middle Name", example="William", description="Update staff member's middle name"),
        _text("last_name", "Last Name", example="Smith", description="Update staff member's last name"),
        ColumnSpec("email", "Email", False, ColumnKind.EMAIL, example="john.smith@school.edu",
                   description="Update staff member's email address"),
        ColumnSpec("phone", "Phone", False, ColumnKind.PHONE, example="+254712345678",
                   description="Update staff member's phone number"),
        _enum("department", "Department", DEPARTMENTS, example="Teaching",
              description="Update staff member's department"),
        _text("designation", "Designation", example="Senior Teacher", description="Job title or designation"),
        _enum("employment_type", "Employment Type", EMPLOYMENT_TYPES, example="permanent",
              description="Type of employment"),
        _date("date_joined", "Date Joined", example="2024-01-15", description="Date staff joined the institution"),
        _enum("is_active", "Is Active", BOOLEANS, example="true", description="Whether staff is currently active"),
    ),
    unique_columns=("email",),
)

_PARENTS = ImportSchema(
    entity_type="parents",
    title="Parent Import",
    entity="parents",
    entity_label="Parent",
    mode=ImportMode.CREATE,
    business_key="phone",
    description="Import parents with automatic student linking by admission number",
    columns=(
        ColumnSpec("phone", "Phone Number", True, ColumnKind.PHONE, example="+254712345678",
                   description="Parent's phone number (used as unique identifier)"),
        _text("first_name", "First Name", True, "Jane", "Parent's first name"),
        _text("last_name", "Last Name", True, "Doe", "Parent's last name/surname"),
        ColumnSpec("email", "Email", False, ColumnKind.EMAIL, example="jane@email.com",
                   description="Parent's email address"),
        _enum("relationship", "Relationship", RELATIONSHIPS, example="mother", target="relationship_type",
              description="Default relationship to linked students"),
        _text("student_admission_numbers", "Student Admission Numbers", example="STU001;STU002",
              lookup_kind="students", list_separator=";", persist=False,
              description="Semicolon-separated list of student admission numbers to link"),
        _text("id_number", "ID Number", example="12345678", description="National ID or passport number"),
        _text("occupation", "Occupation", example="Teacher", description="Parent's occupation/profession"),
        _text("address", "Address", example="123 Main St, Nairobi", description="Parent's physical address"),
    ),
    unique_columns=("email",),
    reuse_existing=True,
    links=(
        LinkSpec(column="student_admission_numbers", lookup_kind="students", entity="student_parents",
                 owner_field="parent_id", target_field="student_id", counter="student_links",
                 copy_fields=(("relationship", "relationship"),)),
    ),
)

_PARENT_UPDATE = ImportSchema(
    entity_type="parent_update",
    title="Parent Update",
    entity="parents",
    entity_label="Parent",
    mode=ImportMode.UPDATE,
    business_key="phone",
    description="Update existing parent records using phone number as identifier",
    columns=(
        ColumnSpec("phone", "Phone Number", True, ColumnKind.PHONE, example="+254712345678",
                   description="Unique identifier - DO NOT MODIFY (used to match existing records)"),
        _text("first_name", "First Name", example="Jane", description="Update parent's first name"),
        _text("last_name", "Last Name", example="Doe", description="Update parent's last name"),
        ColumnSpec("email", "Email", False, ColumnKind.EMAIL, example="jane@email.com",
                   description="Update parent's email address"),
        _enum("relationship_type", "Relationship", RELATIONSHIPS, example="mother",
              description="Default relationship type to students"),
        _text("occupation", "Occupation", example="Teacher", description="Update parent's occupation/profession"),
        _text("address", "Address", example="123 Main St, Nairobi", description="Update parent's physical address"),
    ),
    unique_columns=("email",),
)

_QUESTIONS = ImportSchema(
    entity_type="questions",
    title="Question Bank Import",
    entity="question_bank",
    entity_label="Question",
    mode=ImportMode.CREATE,
    business_key="question_text",
    description="Import questions for exams with support for MCQ, short answer, and essay types",
    columns=(
        ColumnSpec("subject_code", "Subject Code", True, ColumnKind.LOOKUP, lookup_kind="subjects",
                   target="subject_id", change_field="subject", example="MATH",
                   description="Subject code (e.g., MATH, ENG). Must exist in system."),
        _text("topic", "Topic", True, "Fractions", "Topic or chapter the question belongs to"),
        _enum("question_type", "Question Type", QUESTION_TYPES, True, "multiple_choice", "Type of question"),
        _text("question_text", "Question Text", True, "What is 1/2 + 1/4?", "The question to be asked"),
        _text("option_a", "Option A", example="3/4", description="First option (for MCQ)"),
        _text("option_b", "Option B", example="1/2", description="Second option (for MCQ)"),
        _text("option_c", "Option C", example="1/4", description="Third option (for MCQ)"),
        _text("option_d", "Option D", example="2/3", description="Fourth option (for MCQ)"),
        _text("correct_answer", "Correct Answer", True, "A",
              "For MCQ: A, B, C, or D. For others: the answer text."),
        ColumnSpec("marks", "Marks", True, ColumnKind.NUMBER, min_value=1, example="1",
                   description="Points awarded for correct answer"),
        _enum("difficulty", "Difficulty", DIFFICULTIES, True, "easy", "Difficulty level of the question"),
        _enum("cognitive_level", "Cognitive Level", COGNITIVE_LEVELS, example="knowledge",
              description="Bloom's taxonomy level"),
        _text("explanation", "Explanation", example="Add by finding common denominator: 2/4 + 1/4 = 3/4",
              description="Explanation of the correct answer"),
        _text("tags", "Tags", example="arithmetic;fractions;addition", list_separator=";",
              description="Semicolon-separated tags for categorization"),
    ),
    defaults=(("cognitive_level", "knowledge"), ("is_active", True)),
    row_rules=("multiple_choice_options",),
)

_QUESTION_UPDATE = ImportSchema(
    entity_type="question_update",
    title="Question Bank Update",
    entity="question_bank",
    entity_label="Question",
    mode=ImportMode.UPDATE,
    business_key="id",
    description="Update existing questions by ID. Only include columns you want to change.",
    columns=(
        _text("id", "Question ID", True, "uuid-here", "Unique question ID (from export). DO NOT CHANGE."),
        _text("topic", "Topic", example="Fractions", description="Topic or chapter"),
        _text("question_text", "Question Text", example="What is 1/2 + 1/4?", description="The question text"),
        ColumnSpec("marks", "Marks", False, ColumnKind.NUMBER, min_value=1, example="1",
                   description="Points awarded"),
        _enum("difficulty", "Difficulty", DIFFICULTIES, example="easy", description="Difficulty level"),
        _enum("cognitive_level", "Cognitive Level", COGNITIVE_LEVELS, example="knowledge",
              description="Bloom's taxonomy level"),
        _text("explanation", "Explanation", example="Add by finding common denominator",
              description="Explanation of answer"),
        _enum("is_active", "Is Active", BOOLEANS, example="true", description="Whether question is active"),
    ),
)

_REGISTRY: dict[str, ImportSchema] = {
    s.entity_type: s
    for s in (
        _STUDENTS,
        _STUDENT_UPDATE,
        _PARENTS,
        _PARENT_UPDATE,
        _STAFF,
        _STAFF_UPDATE,
        _QUESTIONS,
        _QUESTION_UPDATE,
    )
}


def get_schema(entity_type: str) -> ImportSchema:
    """Return the ImportSchema registered for ``entity_type``.

    Raises:
        UnknownEntityError: if no schema is registered under that name
    """
    try:
        return _REGISTRY[entity_type]
    except KeyError:
        raise UnknownEntityError(
            f"unknown entity type '{entity_type}' (known: {', '.join(sorted(_REGISTRY))})"
        ) from None


def list_entity_types() -> list[str]:
    return list(_REGISTRY)


def lookup_kinds_for(schema: ImportSchema) -> set[str]:
    """Reference kinds a session for ``schema`` needs indexed."""
    kinds = {c.lookup_kind for c in schema.columns if c.lookup_kind}
    kinds.update(link.lookup_kind for link in schema.links)
    return kinds
