"""
notes/store.py -- SQLAlchemy Core persistence layer for personal notes.

Pattern: Repository + Data Mapper, same shape as tasks/store.py.

Ownership is part of every WHERE clause: a note that belongs to someone else
is indistinguishable from one that does not exist. Callers get None / False
in both cases and report NotFound. Admins get no special access here.

notes.owner_id -> identities.id ON DELETE CASCADE
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table, select
from sqlalchemy.engine import Engine

from auth.store import identities  # noqa: F401 -- registers the FK target on metadata
from core.db import metadata
from notes.models import Note

notes = Table(
    "notes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("description", String(1000)),
    Column("date_created", String(32), nullable=False),
    Column("owner_id", String(36), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False),
    Index("ix_notes_owner_id", "owner_id"),
)


class NoteStore:
    """Repository for Note entities, scoped per owner."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def create_note(self, note: Note) -> int:
        """Insert a note and return its ID. date_created is set here."""
        with self.engine.begin() as conn:
            result = conn.execute(
                notes.insert().values(
                    title=note.title,
                    description=note.description,
                    date_created=datetime.now(timezone.utc).isoformat(),
                    owner_id=note.owner_id,
                )
            )
            return result.inserted_primary_key[0]

    def list_notes(self, owner_id: str) -> list[Note]:
        """Return the owner's notes, newest first."""
        query = (
            select(notes)
            .where(notes.c.owner_id == owner_id)
            .order_by(notes.c.date_created.desc(), notes.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_note(r) for r in rows]

    def get_note(self, note_id: int, owner_id: str) -> Optional[Note]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(notes).where((notes.c.id == note_id) & (notes.c.owner_id == owner_id))
            ).fetchone()
        return _row_to_note(row) if row is not None else None

    def update_note(self, note_id: int, owner_id: str, title: str, description: Optional[str]) -> bool:
        """Replace title and description. Returns False if not found for this owner."""
        with self.engine.begin() as conn:
            result = conn.execute(
                notes.update()
                .where((notes.c.id == note_id) & (notes.c.owner_id == owner_id))
                .values(title=title, description=description)
            )
            return result.rowcount > 0

    def delete_note(self, note_id: int, owner_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                notes.delete().where((notes.c.id == note_id) & (notes.c.owner_id == owner_id))
            )
            return result.rowcount > 0


def _row_to_note(row) -> Note:
    return Note(
        id=row.id,
        title=row.title,
        description=row.description,
        date_created=row.date_created,
        owner_id=row.owner_id,
    )
