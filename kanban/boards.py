from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import Select, delete, select
from sqlalchemy.orm import Session

from .assembler import assemble_board, assemble_boards
from .config import settings
from .db import Board, Card, ColumnModel, transaction
from .storage import BoardScope, Result, Store

logger = logging.getLogger(__name__)


def board_rows_query() -> Select:
    """Boards left-joined with their columns and cards, one row per card."""
    return (
        select(
            Board.id,
            Board.user_id,
            Board.board_name,
            Board.created_at,
            ColumnModel.id.label("column_id"),
            ColumnModel.column_name,
            ColumnModel.position.label("column_position"),
            Card.id.label("card_id"),
            Card.card_title,
            Card.name,
            Card.priority,
            Card.job,
            Card.description,
            Card.position.label("card_position"),
            Card.user_id.label("card_user_id"),
        )
        .outerjoin(ColumnModel, ColumnModel.board_id == Board.id)
        .outerjoin(Card, Card.column_id == ColumnModel.id)
    )


class BoardStore(Store):
    """Boards and their nested columns and cards."""

    def create_board(self, name: str) -> Result:
        # Only the main board is ownerless, and ensure_main_board creates it.
        if self.scope.user_id is None:
            logger.info("refused to create board without an owner")
            return Result(success=False, message="Board owner required")
        with transaction(self.session_factory) as session:
            board = Board(user_id=self.scope.user_id, board_name=name.strip())
            session.add(board)
            session.flush()
            logger.info("created board %s for user %s", board.id, board.user_id)
            return Result.ok(board_id=board.id)

    def list_boards(self) -> Result:
        with transaction(self.session_factory) as session:
            rows = session.execute(
                board_rows_query()
                .where(self.scope.clause())
                .order_by(
                    Board.created_at.desc(),
                    Board.id.desc(),
                    ColumnModel.position.asc(),
                    Card.position.asc(),
                )
            ).mappings()
            return Result.ok(boards=assemble_boards(rows))

    def get_board(self, board_id: int) -> Result:
        with transaction(self.session_factory) as session:
            rows = session.execute(
                board_rows_query().where(Board.id == board_id, self.scope.clause())
            ).mappings()
            board = assemble_board(rows)
            if board is None:
                return Result.not_found("Board not found")
            return Result.ok(board=board)

    def rename_board(self, board_id: int, name: str) -> Result:
        with transaction(self.session_factory) as session:
            board = self._board(session, board_id)
            if board is None:
                return Result.not_found("Board not found or unauthorized")
            board.board_name = name.strip()
            logger.info("renamed board %s", board_id)
            return Result.ok(board_id=board_id, board_name=board.board_name)

    def delete_board(self, board_id: int) -> Result:
        with transaction(self.session_factory) as session:
            board = self._board(session, board_id, lock=True)
            if board is None:
                return Result.not_found("Board not found or unauthorized")

            column_ids = select(ColumnModel.id).where(ColumnModel.board_id == board_id)
            session.execute(
                delete(Card)
                .where(Card.column_id.in_(column_ids))
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(ColumnModel)
                .where(ColumnModel.board_id == board_id)
                .execution_options(synchronize_session=False)
            )
            session.delete(board)
            logger.info("deleted board %s with its columns and cards", board_id)
            return Result.ok()

    # === Main board ===

    @staticmethod
    def _main_board_id(session: Session, lock: bool = False) -> Optional[int]:
        stmt = select(Board.id).where(Board.user_id.is_(None)).order_by(Board.id.asc()).limit(1)
        if lock:
            stmt = stmt.with_for_update()
        return session.scalar(stmt)

    def main_board_id(self) -> Optional[int]:
        with transaction(self.session_factory) as session:
            return self._main_board_id(session)

    def ensure_main_board(self) -> int:
        """Return the main board id, creating the board on first use."""
        with transaction(self.session_factory) as session:
            board_id = self._main_board_id(session, lock=True)
            if board_id is not None:
                return board_id
            board = Board(user_id=None, board_name=settings.MAIN_BOARD_NAME)
            session.add(board)
            session.flush()
            logger.info("created main board %s", board.id)
            return board.id

    def get_main_board(self) -> Result:
        board_id = self.main_board_id()
        if board_id is None:
            return Result.not_found("Main board not found")
        return self._as_main().get_board(board_id)

    def rename_main_board(self, name: str) -> Result:
        board_id = self.main_board_id()
        if board_id is None:
            return Result.not_found("Main board not found")
        return self._as_main().rename_board(board_id, name)

    def _as_main(self) -> BoardStore:
        return BoardStore(BoardScope.main(), self.session_factory, self.check_invariants)
