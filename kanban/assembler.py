"""Rebuild the board -> columns -> cards tree from flat join rows.

A board query left-joins columns and cards, so one board with three columns of
four cards each comes back as twelve rows, a board without columns as a single
row with null column fields, and a column without cards as a single row with
null card fields.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

Row = Mapping[str, Any]


def _board_from(row: Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row.get("user_id"),
        "board_name": row["board_name"],
        "created_at": row.get("created_at"),
        "columns": {},
    }


def _column_from(row: Row) -> Dict[str, Any]:
    return {
        "id": row["column_id"],
        "column_name": row["column_name"],
        "position": row["column_position"],
        "cards": {},
    }


def _card_from(row: Row) -> Dict[str, Any]:
    return {
        "id": row["card_id"],
        "title": row["card_title"],
        "name": row.get("name"),
        "priority": row.get("priority"),
        "job": row.get("job"),
        "description": row.get("description"),
        "position": row["card_position"],
        "created_by": row.get("card_user_id"),
    }


def assemble_boards(rows: Iterable[Row]) -> List[Dict[str, Any]]:
    """Group joined rows into boards, keeping the order boards first appear in.

    Columns and cards are keyed by id, so rows repeated by the join fan-out
    collapse; the first row seen for an id wins. Columns and cards come out
    sorted by position.
    """
    boards: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        board = boards.setdefault(row["id"], _board_from(row))

        column_id = row.get("column_id")
        if column_id is None:
            continue
        column = board["columns"].setdefault(column_id, _column_from(row))

        card_id = row.get("card_id")
        if card_id is not None:
            column["cards"].setdefault(card_id, _card_from(row))

    return [
        {
            **board,
            "columns": [
                {**column, "cards": sorted(column["cards"].values(), key=lambda c: c["position"])}
                for column in sorted(board["columns"].values(), key=lambda c: c["position"])
            ],
        }
        for board in boards.values()
    ]


def assemble_board(rows: Iterable[Row]) -> Optional[Dict[str, Any]]:
    """Assemble a single board, or ``None`` when there are no rows."""
    boards = assemble_boards(rows)
    return boards[0] if boards else None
