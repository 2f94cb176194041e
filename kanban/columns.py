from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete, select

from .db import Card, ColumnModel, transaction
from .reindex import append_position, clamp_position, plan_move_within, plan_remove
from .storage import Result, Store

logger = logging.getLogger(__name__)


def column_dict(column: ColumnModel) -> Dict[str, Any]:
    return {
        "id": column.id,
        "board_id": column.board_id,
        "column_name": column.column_name,
        "position": column.position,
    }


class ColumnStore(Store):
    """Columns of a board, kept in dense position order."""

    def create_column(self, board_id: int, name: str) -> Result:
        with transaction(self.session_factory) as session:
            # Locking the board row serializes appends to the same board.
            board = self._board(session, board_id, lock=True)
            if board is None:
                return Result.not_found("Board not found")

            position = append_position(self._max_position(session, ColumnModel.board_id, board_id))
            column = ColumnModel(board_id=board_id, column_name=name.strip(), position=position)
            session.add(column)
            session.flush()
            self._verify_dense(session, ColumnModel.board_id, [board_id])
            logger.info("created column %s on board %s at position %s", column.id, board_id, position)
            return Result.ok(column_id=column.id, position=position)

    def list_columns(self, board_id: int) -> Result:
        with transaction(self.session_factory) as session:
            if self._board(session, board_id) is None:
                return Result.not_found("Board not found")
            columns = session.scalars(
                select(ColumnModel)
                .where(ColumnModel.board_id == board_id)
                .order_by(ColumnModel.position.asc())
            )
            return Result.ok(columns=[column_dict(c) for c in columns])

    def rename_column(self, column_id: int, name: str, board_id: Optional[int] = None) -> Result:
        with transaction(self.session_factory) as session:
            column = self._column(session, column_id, board_id)
            if column is None:
                return Result.not_found("Column not found")
            column.column_name = name.strip()
            logger.info("renamed column %s", column_id)
            return Result.ok(column=column_dict(column))

    def delete_column(self, column_id: int, board_id: Optional[int] = None) -> Result:
        with transaction(self.session_factory) as session:
            column = self._column(session, column_id, board_id, lock=True)
            if column is None:
                return Result.not_found("Column not found")

            owner_board, position = column.board_id, column.position
            session.execute(
                delete(Card).where(Card.column_id == column_id).execution_options(synchronize_session=False)
            )
            session.delete(column)
            session.flush()
            self._apply_shifts(session, ColumnModel.board_id, plan_remove(owner_board, position))
            self._verify_dense(session, ColumnModel.board_id, [owner_board])
            logger.info("deleted column %s from board %s at position %s", column_id, owner_board, position)
            return Result.ok()

    def reorder_column(self, column_id: int, new_position: int, board_id: Optional[int] = None) -> Result:
        with transaction(self.session_factory) as session:
            column = self._column(session, column_id, board_id, lock=True)
            if column is None:
                return Result.not_found("Column not found")

            owner_board, old = column.board_id, column.position
            new = clamp_position(new_position, self._count(session, ColumnModel.board_id, owner_board))
            if new != new_position:
                logger.info("clamped column target %s to %s", new_position, new)

            self._apply_shifts(session, ColumnModel.board_id, plan_move_within(owner_board, old, new))
            column.position = new
            session.flush()
            self._verify_dense(session, ColumnModel.board_id, [owner_board])
            logger.info("moved column %s on board %s from %s to %s", column_id, owner_board, old, new)
            return Result.ok(column_id=column_id, position=new)

