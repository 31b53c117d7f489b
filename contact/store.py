"""
contact/store.py -- SQLAlchemy Core persistence for contact-form submissions.

Pattern: Repository + Data Mapper, like auth/store.py. insert_many() takes a
Connection rather than opening its own transaction so the bootstrap seeder
can write submissions inside its seeding transaction.

Layer rule: imports from core/ and contact/ only.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Table, Text
from sqlalchemy.engine import Connection, Engine

from contact.models import ContactSubmission
from core.database import metadata, now_iso

_submissions = Table(
    "contact_form_submissions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


def insert_many(conn: Connection, submissions: list[ContactSubmission]) -> list[str]:
    """Insert submissions on conn (caller owns the transaction). Returns the new ids."""
    ids: list[str] = []
    for submission in submissions:
        submission_id = str(uuid.uuid4())
        conn.execute(
            _submissions.insert().values(
                id=submission_id,
                name=submission.name,
                email=submission.email,
                message=submission.message,
                created_at=now_iso(),
            )
        )
        ids.append(submission_id)
    return ids


class ContactStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine, tables=[_submissions])

    def create(self, submission: ContactSubmission) -> ContactSubmission:
        with self.engine.begin() as conn:
            (submission_id,) = insert_many(conn, [submission])
        return self.get(submission_id)

    def get(self, submission_id: str) -> ContactSubmission | None:
        with self.engine.connect() as conn:
            row = conn.execute(_submissions.select().where(_submissions.c.id == submission_id)).fetchone()
        return _row_to_submission(row) if row is not None else None

    def list_all(self) -> list[ContactSubmission]:
        """Return every submission, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_submissions.select().order_by(_submissions.c.created_at, _submissions.c.id)).fetchall()
        return [_row_to_submission(r) for r in rows]


def _row_to_submission(row) -> ContactSubmission:
    return ContactSubmission(
        id=row.id,
        name=row.name,
        email=row.email,
        message=row.message,
        created_at=row.created_at,
    )
