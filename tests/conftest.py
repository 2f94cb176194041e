import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kanban.boards import BoardStore
from kanban.cards import CardStore
from kanban.columns import ColumnStore
from kanban.db import Base, Card, ColumnModel, build_engine
from kanban.main import app, get_session_factory
from kanban.storage import BoardScope


@pytest.fixture()
def sessions():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def boards(sessions) -> BoardStore:
    return BoardStore(BoardScope.owner("tester"), sessions, check_invariants=True)


@pytest.fixture()
def columns(sessions) -> ColumnStore:
    return ColumnStore(BoardScope.unrestricted(), sessions, check_invariants=True)


@pytest.fixture()
def cards(sessions) -> CardStore:
    return CardStore(BoardScope.unrestricted(), sessions, check_invariants=True)


@pytest.fixture()
def board_id(boards) -> int:
    return boards.create_board("Sprint")["board_id"]


@pytest.fixture()
def client(sessions):
    BoardStore(BoardScope.main(), sessions).ensure_main_board()
    app.dependency_overrides[get_session_factory] = lambda: sessions
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def column_positions(sessions, board_id):
    """``[(column_id, position), ...]`` ordered by position."""
    with sessions() as session:
        rows = session.execute(
            select(ColumnModel.id, ColumnModel.position)
            .where(ColumnModel.board_id == board_id)
            .order_by(ColumnModel.position)
        )
        return [tuple(r) for r in rows]


def card_positions(sessions, column_id):
    """``[(card_id, position), ...]`` ordered by position."""
    with sessions() as session:
        rows = session.execute(
            select(Card.id, Card.position).where(Card.column_id == column_id).order_by(Card.position)
        )
        return [tuple(r) for r in rows]


def auth(user: str = "alice") -> dict:
    return {"Authorization": f"Bearer {user}"}
