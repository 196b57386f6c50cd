#!/usr/bin/env python3
"""Seed a demo exam (two sections, four question types) and a demo student."""

import click

from examprep.core.logging import get_logger, setup_logging
from examprep.core.security import create_access_token
from examprep.db.base import Base
from examprep.db.engine import engine
from examprep.db.session import SessionLocal
from examprep.models import (
    Exam,
    InputType,
    Question,
    QuestionOption,
    QuestionType,
    ResponseType,
    Section,
    User,
    UserRole,
)

logger = get_logger(__name__)

DEMO_EXAM = "demo-academic"

# (section, [(type name, display name, input type, response type, ui_component, time limit)])
SECTIONS = [
    (
        ("reading", "Reading"),
        [
            ("mcq-single", "Multiple Choice (Single)", InputType.SINGLE_CHOICE,
             ResponseType.SELECTION, "pte-reading-mcq-single", None),
            ("reorder", "Re-order Paragraphs", InputType.STRUCTURED,
             ResponseType.SEQUENCE, "pte-reading-reorder-paragraphs", 150),
        ],
    ),
    (
        ("writing", "Writing"),
        [
            ("essay", "Write Essay", InputType.FREE_TEXT,
             ResponseType.TEXT, "pte-writing-write-essay", 1200),
            ("summary", "Summarize Written Text", InputType.FREE_TEXT,
             ResponseType.TEXT, None, 600),
        ],
    ),
]


def seed_demo_exam(questions_per_type: int) -> None:
    db = SessionLocal()
    try:
        if db.query(Exam).filter(Exam.name == DEMO_EXAM).first():
            click.echo("Demo exam already present, skipping")
            return

        exam = Exam(name=DEMO_EXAM, display_name="Demo Academic", duration_minutes=120)
        db.add(exam)
        for section_index, ((section_name, section_display), types) in enumerate(SECTIONS):
            section = Section(
                name=section_name, display_name=section_display, order_index=section_index
            )
            exam.sections.append(section)
            for type_index, (name, display, input_type, response_type, ui, limit) in enumerate(types):
                qt = QuestionType(
                    name=name,
                    display_name=display,
                    input_type=input_type.value,
                    response_type=response_type.value,
                    ui_component=ui,
                    time_limit_seconds=limit,
                    order_index=type_index,
                )
                section.question_types.append(qt)
                for n in range(questions_per_type):
                    question = Question(
                        title=f"{display} #{n + 1}",
                        content=f"Demo content for {display.lower()} question {n + 1}.",
                        difficulty_level=(n % 5) + 1,
                        expected_duration_seconds=None if n % 2 else 90,
                    )
                    if response_type in (ResponseType.SELECTION, ResponseType.SEQUENCE):
                        question.options = [
                            QuestionOption(option_text=f"Option {label}", is_correct=i == 0, display_order=i)
                            for i, label in enumerate("ABCD")
                        ]
                    qt.questions.append(question)

        student = db.query(User).filter(User.email == "student@example.com").first()
        if not student:
            student = User(full_name="Demo Student", email="student@example.com", role=UserRole.STUDENT.value)
            db.add(student)

        db.commit()
        logger.info("demo_exam_seeded", extra={"exam_id": str(exam.id)})
        click.echo(f"Seeded exam {exam.id}")
        click.echo(f"Student token: {create_access_token(student.id, student.role)}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@click.command()
@click.option("--questions-per-type", default=12, show_default=True, type=int)
@click.option("--create-tables", is_flag=True, help="Create tables before seeding (dev only)")
def main(questions_per_type: int, create_tables: bool):
    """Seed demo content for local development."""
    setup_logging()
    if create_tables:
        Base.metadata.create_all(bind=engine)
    seed_demo_exam(questions_per_type)


if __name__ == "__main__":
    main()
