from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select

from .db import Board, Card, ColumnModel, Priority, transaction
from .reindex import append_position, clamp_position, plan_move_across, plan_remove
from .storage import Result, Store

logger = logging.getLogger(__name__)

# Card attributes a partial update may touch.
EDITABLE_FIELDS = ("card_title", "name", "priority", "job", "description")


@dataclass(frozen=True)
class CardFilters:
    """Optional predicates for :meth:`CardStore.list_cards`, combined with AND."""

    name: Optional[str] = None
    priority: Optional[str] = None
    job: Optional[str] = None
    column_id: Optional[int] = None


def card_dict(card: Card) -> Dict[str, Any]:
    return {
        "id": card.id,
        "column_id": card.column_id,
        "title": card.card_title,
        "name": card.name,
        "priority": Priority(card.priority).value,
        "job": card.job,
        "description": card.description,
        "position": card.position,
        "created_by": card.user_id,
    }


class CardStore(Store):
    """Cards of a column, kept in dense position order."""

    def create_card(
        self,
        column_id: int,
        fields: Mapping[str, Any],
        creator_id: Optional[str] = None,
        board_id: Optional[int] = None,
    ) -> Result:
        with transaction(self.session_factory) as session:
            # Locking the column row serializes appends to the same column.
            column = self._column(session, column_id, board_id, lock=True)
            if column is None:
                return Result.not_found("Column not found")

            position = append_position(self._max_position(session, Card.column_id, column_id))
            card = Card(
                column_id=column_id,
                user_id=creator_id,
                card_title=fields["card_title"].strip(),
                name=fields.get("name"),
                priority=Priority(fields.get("priority") or Priority.MEDIUM),
                job=fields.get("job"),
                description=fields.get("description"),
                position=position,
            )
            session.add(card)
            session.flush()
            self._verify_dense(session, Card.column_id, [column_id])
            logger.info("created card %s in column %s at position %s", card.id, column_id, position)
            return Result.ok(card_id=card.id, position=position)

    def list_cards(
        self,
        column_id: Optional[int] = None,
        filters: Optional[CardFilters] = None,
        board_id: Optional[int] = None,
    ) -> Result:
        filters = filters or CardFilters()
        with transaction(self.session_factory) as session:
            if column_id is not None and self._column(session, column_id, board_id) is None:
                return Result.not_found("Column not found")

            stmt = (
                select(Card)
                .join(ColumnModel, Card.column_id == ColumnModel.id)
                .join(Board, ColumnModel.board_id == Board.id)
                .where(self.scope.clause())
            )
            if board_id is not None:
                stmt = stmt.where(ColumnModel.board_id == board_id)
            if column_id is not None:
                stmt = stmt.where(Card.column_id == column_id)
            if filters.name:
                stmt = stmt.where(Card.name.contains(filters.name, autoescape=True))
            if filters.priority:
                stmt = stmt.where(Card.priority == Priority(filters.priority))
            if filters.job:
                stmt = stmt.where(Card.job.contains(filters.job, autoescape=True))
            if filters.column_id is not None:
                stmt = stmt.where(Card.column_id == filters.column_id)
            stmt = stmt.order_by(Card.column_id.asc(), Card.position.asc())

            return Result.ok(cards=[card_dict(c) for c in session.scalars(stmt)])

    def get_card(self, card_id: int, board_id: Optional[int] = None) -> Result:
        with transaction(self.session_factory) as session:
            card = self._card(session, card_id, board_id)
            if card is None:
                return Result.not_found("Card not found")
            return Result.ok(card=card_dict(card))

    def update_card(
        self, card_id: int, changes: Mapping[str, Any], board_id: Optional[int] = None
    ) -> Result:
        """Apply only the fields present in ``changes``; the rest keep their values."""
        with transaction(self.session_factory) as session:
            card = self._card(session, card_id, board_id, lock=True)
            if card is None:
                return Result.not_found("Card not found")

            for field_name in EDITABLE_FIELDS:
                if field_name not in changes:
                    continue
                value = changes[field_name]
                if field_name == "priority":
                    value = Priority(value or Priority.MEDIUM)
                elif field_name == "card_title":
                    value = value.strip()
                setattr(card, field_name, value)
            session.flush()
            logger.info("updated card %s fields %s", card_id, sorted(set(changes) & set(EDITABLE_FIELDS)))
            return Result.ok(card=card_dict(card))

    def delete_card(self, card_id: int, board_id: Optional[int] = None) -> Result:
        with transaction(self.session_factory) as session:
            card = self._card(session, card_id, board_id, lock=True)
            if card is None:
                return Result.not_found("Card not found")

            column_id, position = card.column_id, card.position
            session.delete(card)
            session.flush()
            self._apply_shifts(session, Card.column_id, plan_remove(column_id, position))
            self._verify_dense(session, Card.column_id, [column_id])
            logger.info("deleted card %s from column %s at position %s", card_id, column_id, position)
            return Result.ok()

    def move_card(
        self,
        card_id: int,
        new_column_id: int,
        new_position: int,
        board_id: Optional[int] = None,
    ) -> Result:
        """Move a card within its column or into another column of the same board.

        Sibling shifts in both columns and the card's own row update commit
        together; on any failure none of them is applied.
        """
        with transaction(self.session_factory) as session:
            card = self._card(session, card_id, board_id, lock=True)
            if card is None:
                return Result.not_found("Card not found")

            source = card.column
            target = self._column(session, new_column_id, board_id, lock=True)
            if target is None or target.board_id != source.board_id:
                return Result.not_found("Target column not found")

            old = card.position
            if target.id == source.id:
                slots = self._count(session, Card.column_id, source.id)
            else:
                slots = self._count(session, Card.column_id, target.id) + 1
            new = clamp_position(new_position, slots)
            if new != new_position:
                logger.info("clamped card target %s to %s", new_position, new)

            self._apply_shifts(session, Card.column_id, plan_move_across(source.id, old, target.id, new))
            card.column_id = target.id
            card.position = new
            session.flush()
            self._verify_dense(session, Card.column_id, [source.id, target.id])
            logger.info(
                "moved card %s from column %s@%s to column %s@%s", card_id, source.id, old, target.id, new
            )
            return Result.ok(card_id=card_id, column_id=target.id, position=new)

