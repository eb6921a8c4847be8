"""SQLAlchemy-backed store for a networked (or SQLite) database.

WHY: A shared database lets several server processes serve the same
library and survives host changes. SQLAlchemy keeps the store portable
across PostgreSQL in production and SQLite in development and tests.

HOW: Three ORM tables mirror the three collections. Word annotations are
stored as one JSON column per document. Every public method runs inside
a short transaction opened by ``_transaction()``, which converts any
SQLAlchemyError into PersistenceError.

RULES:
- Tables are created on construction if they do not exist
- In-memory SQLite URLs share one connection (StaticPool) so every
  session sees the same database
- delete_document() removes sessions, words and the document in one
  transaction
- Naive datetimes read back from SQLite are interpreted as UTC
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    case,
    create_engine,
    delete,
    func,
    select,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from flowread.core.models import (
    Document,
    ReadingSession,
    SessionTotals,
    WordAnnotation,
    parse_timestamp,
)
from flowread.errors import PersistenceError
from flowread.storage.base import Store, mutable_fields, next_timestamp

logger = logging.getLogger(__name__)

Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String(64), primary_key=True)
    title = Column(String, nullable=False)
    file_type = Column(String(16), nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class DocumentWordsRow(Base):
    __tablename__ = "document_words"

    document_id = Column(
        String(64), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    words = Column(JSON, nullable=False)


class SessionRow(Base):
    __tablename__ = "reading_sessions"

    id = Column(String(64), primary_key=True)
    document_id = Column(
        String(64), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    current_word_index = Column(Integer, nullable=False, default=0)
    total_words = Column(Integer, nullable=False, default=0)
    words_read = Column(Integer, nullable=False, default=0)
    time_spent = Column(Float, nullable=False, default=0.0)
    speed_wpm = Column(Integer, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_updated = Column(DateTime(timezone=True), nullable=False, index=True)


def _document_from_row(row: DocumentRow) -> Document:
    return Document(
        id=row.id,
        title=row.title,
        file_type=row.file_type,
        word_count=row.word_count,
        created_at=parse_timestamp(row.created_at),
    )


def _session_from_row(row: SessionRow) -> ReadingSession:
    return ReadingSession(
        id=row.id,
        document_id=row.document_id,
        total_words=row.total_words,
        speed_wpm=row.speed_wpm,
        current_word_index=row.current_word_index,
        words_read=row.words_read,
        time_spent=row.time_spent,
        completed=row.completed,
        created_at=parse_timestamp(row.created_at),
        last_updated=parse_timestamp(row.last_updated),
    )


def create_store_engine(url: str):
    """Create an engine with pool settings suited to the database URL."""
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    connect_args: Dict[str, Any] = {}
    if url.startswith("postgresql"):
        # Fail fast so the provider can fall back to the file store.
        connect_args["connect_timeout"] = 2
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True, pool_recycle=300)


class SqlStore(Store):
    """Store implementation on top of a SQLAlchemy engine."""

    name = "sql"

    def __init__(self, url: str) -> None:
        self.url = url
        try:
            self.engine = create_store_engine(url)
            Base.metadata.create_all(self.engine)
        except (SQLAlchemyError, ImportError) as exc:
            # ImportError: the URL names a DBAPI driver that is not installed.
            raise PersistenceError("Cannot open database: {}".format(exc)) from exc
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._sessionmaker.begin() as db:
                yield db
        except SQLAlchemyError as exc:
            raise PersistenceError("Database error: {}".format(exc)) from exc

    def ping(self) -> None:
        """Run a trivial query; raises PersistenceError if unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise PersistenceError("Database unreachable: {}".format(exc)) from exc

    def close(self) -> None:
        self.engine.dispose()

    # -- documents ---------------------------------------------------------

    def add_document(self, document: Document, words: List[WordAnnotation]) -> None:
        with self._transaction() as db:
            db.add(DocumentRow(
                id=document.id,
                title=document.title,
                file_type=document.file_type,
                word_count=document.word_count,
                created_at=document.created_at,
            ))
            # Flush the parent first so the words row satisfies its foreign key.
            db.flush()
            db.add(DocumentWordsRow(
                document_id=document.id,
                words=[w.to_dict() for w in words],
            ))

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._transaction() as db:
            row = db.get(DocumentRow, document_id)
            return _document_from_row(row) if row is not None else None

    def list_documents(self) -> List[Document]:
        with self._transaction() as db:
            rows = db.scalars(
                select(DocumentRow).order_by(DocumentRow.created_at.desc())
            ).all()
            return [_document_from_row(r) for r in rows]

    def get_words(self, document_id: str) -> Optional[List[WordAnnotation]]:
        with self._transaction() as db:
            row = db.get(DocumentWordsRow, document_id)
            if row is None:
                return None
            return [WordAnnotation.from_dict(w) for w in row.words]

    def delete_document(self, document_id: str) -> bool:
        with self._transaction() as db:
            if db.get(DocumentRow, document_id) is None:
                return False
            removed = db.execute(
                delete(SessionRow).where(SessionRow.document_id == document_id)
            ).rowcount
            db.execute(
                delete(DocumentWordsRow).where(DocumentWordsRow.document_id == document_id)
            )
            db.execute(delete(DocumentRow).where(DocumentRow.id == document_id))
        logger.info("Deleted document %s and %d session(s)", document_id, removed)
        return True

    def count_documents(self) -> int:
        with self._transaction() as db:
            return db.scalar(select(func.count()).select_from(DocumentRow)) or 0

    # -- sessions ----------------------------------------------------------

    def add_session(self, session: ReadingSession) -> None:
        with self._transaction() as db:
            db.add(SessionRow(
                id=session.id,
                document_id=session.document_id,
                current_word_index=session.current_word_index,
                total_words=session.total_words,
                words_read=session.words_read,
                time_spent=session.time_spent,
                speed_wpm=session.speed_wpm,
                completed=session.completed,
                created_at=session.created_at,
                last_updated=session.last_updated,
            ))

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        with self._transaction() as db:
            row = db.get(SessionRow, session_id)
            return _session_from_row(row) if row is not None else None

    def find_latest_session(self, document_id: str) -> Optional[ReadingSession]:
        with self._transaction() as db:
            row = db.scalars(
                select(SessionRow)
                .where(SessionRow.document_id == document_id)
                .order_by(SessionRow.last_updated.desc(), SessionRow.created_at.desc())
                .limit(1)
            ).first()
            return _session_from_row(row) if row is not None else None

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> bool:
        changes = mutable_fields(fields)
        with self._transaction() as db:
            row = db.get(SessionRow, session_id)
            if row is None:
                return False
            for key, value in changes.items():
                setattr(row, key, value)
            row.last_updated = next_timestamp(parse_timestamp(row.last_updated))
        return True

    def session_totals(self) -> SessionTotals:
        with self._transaction() as db:
            words, seconds, completed, average = db.execute(
                select(
                    func.coalesce(func.sum(SessionRow.words_read), 0),
                    func.coalesce(func.sum(SessionRow.time_spent), 0.0),
                    func.coalesce(func.sum(case((SessionRow.completed.is_(True), 1), else_=0)), 0),
                    func.avg(SessionRow.speed_wpm),
                )
            ).one()
        return SessionTotals(
            words_read=int(words),
            time_spent=float(seconds),
            completed=int(completed),
            average_speed=float(average) if average is not None else None,
        )
