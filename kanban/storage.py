from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import ColumnElement, func, select, true, update
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .db import Board, Card, ColumnModel, SessionLocal
from .errors import InvariantViolation
from .reindex import Shift, is_dense

logger = logging.getLogger(__name__)


# === Results ===


@dataclass
class Result:
    """Outcome of a store operation.

    Expected failures (not found, outside the caller's scope) come back as
    ``success=False`` with a message instead of being raised.
    """

    success: bool
    message: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> Result:
        return cls(success=True, data=data)

    @classmethod
    def not_found(cls, message: str) -> Result:
        logger.info("not found: %s", message)
        return cls(success=False, message=message)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, **self.data}
        return {"success": False, "message": self.message}


# === Scopes ===


@dataclass(frozen=True)
class BoardScope:
    """Which boards a store may see and touch.

    ``kind`` is one of ``owner`` (boards owned by ``user_id``), ``main`` (the
    ownerless main board) or ``any`` (no check).
    """

    kind: str = "any"
    user_id: Optional[str] = None

    @classmethod
    def owner(cls, user_id: str) -> BoardScope:
        return cls(kind="owner", user_id=user_id)

    @classmethod
    def main(cls) -> BoardScope:
        return cls(kind="main")

    @classmethod
    def unrestricted(cls) -> BoardScope:
        return cls()

    def allows(self, board: Optional[Board]) -> bool:
        if board is None:
            return False
        if self.kind == "owner":
            return board.user_id == self.user_id
        if self.kind == "main":
            return board.user_id is None
        return True

    def clause(self) -> ColumnElement[bool]:
        if self.kind == "owner":
            return Board.user_id == self.user_id
        if self.kind == "main":
            return Board.user_id.is_(None)
        return true()


# === Shared store plumbing ===


class Store:
    """Base for the board, column and card stores.

    Every public operation opens its own transaction through
    :func:`kanban.db.transaction` using ``session_factory``.
    """

    def __init__(
        self,
        scope: Optional[BoardScope] = None,
        session_factory: sessionmaker = SessionLocal,
        check_invariants: Optional[bool] = None,
    ) -> None:
        self.scope = scope or BoardScope.unrestricted()
        self.session_factory = session_factory
        self.check_invariants = (
            settings.CHECK_INVARIANTS if check_invariants is None else check_invariants
        )

    # --- lookups ---

    def _board(self, session: Session, board_id: int, lock: bool = False) -> Optional[Board]:
        stmt = select(Board).where(Board.id == board_id)
        if lock:
            stmt = stmt.with_for_update()
        board = session.scalars(stmt).first()
        return board if self.scope.allows(board) else None

    def _column(
        self, session: Session, column_id: int, board_id: Optional[int] = None, lock: bool = False
    ) -> Optional[ColumnModel]:
        """Column by id, if its board is in scope and, when given, is ``board_id``."""
        stmt = select(ColumnModel).where(ColumnModel.id == column_id)
        if lock:
            stmt = stmt.with_for_update()
        column = session.scalars(stmt).first()
        if column is None or not self.scope.allows(column.board):
            return None
        if board_id is not None and column.board_id != board_id:
            return None
        return column

    def _card(
        self, session: Session, card_id: int, board_id: Optional[int] = None, lock: bool = False
    ) -> Optional[Card]:
        stmt = select(Card).where(Card.id == card_id)
        if lock:
            stmt = stmt.with_for_update()
        card = session.scalars(stmt).first()
        if card is None or not self.scope.allows(card.column.board):
            return None
        if board_id is not None and card.column.board_id != board_id:
            return None
        return card

    # --- reindexing ---

    @staticmethod
    def _max_position(session: Session, container_attr, container_id: int) -> Optional[int]:
        model = container_attr.class_
        return session.scalar(select(func.max(model.position)).where(container_attr == container_id))

    @staticmethod
    def _count(session: Session, container_attr, container_id: int) -> int:
        model = container_attr.class_
        return session.scalar(
            select(func.count()).select_from(model).where(container_attr == container_id)
        ) or 0

    @staticmethod
    def _apply_shifts(session: Session, container_attr, shifts: Iterable[Shift]) -> None:
        """Run one bulk position update per shift."""
        model = container_attr.class_
        for shift in shifts:
            stmt = (
                update(model)
                .where(container_attr == shift.container, model.position >= shift.low)
                .values(position=model.position + shift.delta)
                .execution_options(synchronize_session=False)
            )
            if shift.high is not None:
                stmt = stmt.where(model.position <= shift.high)
            logger.debug("shift %s %s", model.__tablename__, shift)
            session.execute(stmt)

    def _verify_dense(self, session: Session, container_attr, container_ids: Iterable[int]) -> None:
        """Post-condition check; only runs when invariant checking is enabled."""
        if not self.check_invariants:
            return
        model = container_attr.class_
        session.flush()
        for container_id in set(container_ids):
            positions = list(
                session.scalars(select(model.position).where(container_attr == container_id))
            )
            if not is_dense(positions):
                raise InvariantViolation(model.__tablename__, container_id, sorted(positions))
