"""
SQLAlchemy models for the question store

List-typed and nested fields are JSON columns (order preserved).
Timestamps are ISO-8601 text so the UTC offset survives SQLite round trips.
"""

from sqlalchemy import Column, String, Text, JSON, CheckConstraint, Index

from database.database import Base


class QuestionRecord(Base):
    """
    One generated coding question.
    title is UNIQUE: saving a different id with an existing title replaces that row.
    """
    __tablename__ = "questions"

    id = Column(String(64), primary_key=True, index=True)
    title = Column(String(200), unique=True, nullable=False, index=True)
    difficulty = Column(String(10), nullable=False, index=True)
    topics = Column(JSON, nullable=False)                       # ["arrays", "math"]
    description = Column(Text, nullable=False)
    example = Column(JSON, nullable=False)                      # {input, output, explanation}
    solution_python = Column(Text, nullable=False)
    step_by_step_explanation = Column(JSON, nullable=False)     # ["step 1", ...]
    pseudocode = Column(JSON, nullable=True)                    # ["line 1", ...] or NULL
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=True)

    __table_args__ = (
        CheckConstraint("difficulty IN ('Easy', 'Medium', 'Hard')", name="ck_questions_difficulty"),
        Index("idx_questions_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<QuestionRecord(id='{self.id}', title='{self.title}', difficulty='{self.difficulty}')>"
