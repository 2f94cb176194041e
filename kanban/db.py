from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, sessionmaker

from .config import settings
from .errors import StorageFault

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


class Priority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Base(DeclarativeBase):
    pass


class Board(Base):
    __tablename__ = "boards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL owner marks the singleton main board.
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    board_name: Mapped[str] = mapped_column(String(140))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    columns: Mapped[list[ColumnModel]] = relationship(
        back_populates="board",
        cascade="all, delete-orphan",
        order_by="ColumnModel.position",
        passive_deletes=True,
    )


class ColumnModel(Base):
    __tablename__ = "columns"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    board_id: Mapped[int] = mapped_column(Integer, ForeignKey("boards.id", ondelete="CASCADE"))
    column_name: Mapped[str] = mapped_column(String(80))
    position: Mapped[int] = mapped_column(Integer)

    board: Mapped[Board] = relationship(back_populates="columns")
    cards: Mapped[list[Card]] = relationship(
        back_populates="column",
        cascade="all, delete-orphan",
        order_by="Card.position",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_columns_board_position", "board_id", "position"),)


class Card(Base):
    __tablename__ = "cards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    column_id: Mapped[int] = mapped_column(Integer, ForeignKey("columns.id", ondelete="CASCADE"))
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    card_title: Mapped[str] = mapped_column(String(200))
    name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    priority: Mapped[Priority] = mapped_column(
        Enum(Priority, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=Priority.MEDIUM,
    )
    job: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    column: Mapped[ColumnModel] = relationship(back_populates="cards")

    __table_args__ = (Index("ix_cards_column_position", "column_id", "position"),)


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, echo=settings.DATABASE_ECHO, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def transaction(session_factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Check out a session, commit on success, roll back on any failure.

    Storage errors are re-raised as :class:`StorageFault`; anything else is
    re-raised unchanged. The session is closed on every path.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        logger.exception("storage failure, rolling back")
        session.rollback()
        raise StorageFault(str(exc)) from exc
    except Exception:
        logger.exception("transaction aborted, rolling back")
        session.rollback()
        raise
    finally:
        session.close()
