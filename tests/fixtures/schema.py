"""Assessment schema: one parent table, two subtype tables and related tables."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    insert,
    text,
)

LOOKUP_ROWS = [
    {"id": 1, "label": "quiz"},
    {"id": 2, "label": "survey"},
    # registered nowhere: rows of this type hydrate as the base class
    {"id": 3, "label": "poll"},
]

metadata = MetaData()

Table(
    "assessment_type",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("label", String(50), nullable=False, unique=True),
)

Table(
    "assessment",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # no FK to assessment_type: tests insert unknown discriminator values
    Column("type_id", Integer, nullable=True),
    Column("title", String(255), nullable=True),
    Column("description", Text, nullable=True),
    Column("enabled", Boolean, nullable=False, server_default=text("1")),
    Column("created_at", DateTime, nullable=True),
    Column("updated_at", DateTime, nullable=True),
)

Table(
    "quiz_category",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
)

Table(
    "assessment_quiz",
    metadata,
    Column(
        "assessment_id",
        Integer,
        ForeignKey("assessment.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    ),
    Column("passing_score", Integer, nullable=True),
    Column("time_limit", Integer, nullable=True),
    Column("show_correct_answers", Boolean, nullable=False, server_default=text("0")),
    Column("category_id", Integer, ForeignKey("quiz_category.id"), nullable=True),
    CheckConstraint(
        "passing_score IS NULL OR passing_score <= 100", name="ck_passing_score_max"
    ),
)

Table(
    "assessment_survey",
    metadata,
    Column(
        "assessment_id",
        Integer,
        ForeignKey("assessment.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
    ),
    Column("anonymous", Boolean, nullable=False, server_default=text("0")),
    Column("allow_multiple_responses", Boolean, nullable=False, server_default=text("0")),
)

Table(
    "quiz_questions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("assessment_id", Integer, ForeignKey("assessment.id", ondelete="CASCADE")),
    Column("question", Text, nullable=False),
)

Table(
    "quiz_attempts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("assessment_id", Integer, ForeignKey("assessment.id", ondelete="CASCADE")),
    Column("score", Integer, nullable=True),
)

Table(
    "quiz_settings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("assessment_id", Integer, ForeignKey("assessment.id", ondelete="CASCADE")),
    Column("shuffle_questions", Boolean, nullable=False, server_default=text("0")),
    Column("options", Text, nullable=True),
)

Table(
    "students",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
)

Table(
    "quiz_student",
    metadata,
    Column("assessment_id", Integer, ForeignKey("assessment.id", ondelete="CASCADE")),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE")),
)

Table(
    "assessment_tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
)

Table(
    "assessment_assessment_tag",
    metadata,
    Column("assessment_id", Integer, ForeignKey("assessment.id", ondelete="CASCADE")),
    Column("assessment_tag_id", Integer, ForeignKey("assessment_tags.id", ondelete="CASCADE")),
)


def create_schema(engine: Engine) -> None:
    """Create every table and seed the assessment_type lookup table."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(insert(metadata.tables["assessment_type"]), LOOKUP_ROWS)
