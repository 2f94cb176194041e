import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from .auth import get_current_user
from .boards import BoardStore
from .cards import CardFilters, CardStore
from .columns import ColumnStore
from .config import configure_logging, settings
from .db import Priority, SessionLocal, engine, init_db
from .errors import StorageFault
from .schemas import (
    BoardCreated,
    BoardIn,
    BoardsPage,
    BoardTree,
    CardIn,
    CardMove,
    CardMoved,
    CardOut,
    CardPatch,
    CardsPage,
    ColumnIn,
    ColumnMove,
    ColumnOut,
    ColumnsPage,
    ColumnTree,
    ErrorEnvelope,
    Health,
    Placed,
    PriorityName,
    SuccessOut,
    Version,
)
from .storage import BoardScope, Result

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    init_db()
    BoardStore(BoardScope.main()).ensure_main_board()
    yield
    engine.dispose()


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Error handling ===


def error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    body = ErrorEnvelope(code=code, message=message, details=details, requestId=str(uuid.uuid4()))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def on_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, "validation_error", "invalid request", {"errors": jsonable_errors(exc)})


@app.exception_handler(StorageFault)
async def on_storage_fault(request: Request, exc: StorageFault) -> JSONResponse:
    logger.debug("storage fault on %s %s", request.method, request.url.path)
    return error_response(500, "storage_error", "internal server error")


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


# === Dependencies ===


def get_session_factory() -> sessionmaker:
    return SessionLocal


def user_scope(user: str = Depends(get_current_user)) -> BoardScope:
    return BoardScope.owner(user)


def user_boards(
    scope: BoardScope = Depends(user_scope), sessions: sessionmaker = Depends(get_session_factory)
) -> BoardStore:
    return BoardStore(scope, sessions)


def user_columns(
    scope: BoardScope = Depends(user_scope), sessions: sessionmaker = Depends(get_session_factory)
) -> ColumnStore:
    return ColumnStore(scope, sessions)


def user_cards(
    scope: BoardScope = Depends(user_scope), sessions: sessionmaker = Depends(get_session_factory)
) -> CardStore:
    return CardStore(scope, sessions)


def main_boards(sessions: sessionmaker = Depends(get_session_factory)) -> BoardStore:
    return BoardStore(BoardScope.main(), sessions)


def main_columns(sessions: sessionmaker = Depends(get_session_factory)) -> ColumnStore:
    return ColumnStore(BoardScope.main(), sessions)


def main_cards(sessions: sessionmaker = Depends(get_session_factory)) -> CardStore:
    return CardStore(BoardScope.main(), sessions)


def main_board_id(boards: BoardStore = Depends(main_boards)) -> int:
    board_id = boards.main_board_id()
    if board_id is None:
        raise HTTPException(status_code=404, detail="Main board not found")
    return board_id


# === Helpers ===


def unwrap(result: Result) -> Result:
    if not result.success:
        raise HTTPException(status_code=404, detail=result.message)
    return result


def card_out(card: dict, column_id: Optional[int] = None) -> CardOut:
    return CardOut(
        id=card["id"],
        columnId=card.get("column_id", column_id),
        title=card["title"],
        name=card["name"],
        priority=Priority(card["priority"]).value,
        job=card["job"],
        description=card["description"],
        position=card["position"],
        createdBy=card["created_by"],
    )


def column_out(column: dict) -> ColumnOut:
    return ColumnOut(
        id=column["id"],
        boardId=column["board_id"],
        columnName=column["column_name"],
        position=column["position"],
    )


def board_tree(board: dict) -> BoardTree:
    return BoardTree(
        id=board["id"],
        boardName=board["board_name"],
        owner=board["user_id"],
        createdAt=board["created_at"],
        columns=[
            ColumnTree(
                id=column["id"],
                columnName=column["column_name"],
                position=column["position"],
                cards=[card_out(card, column["id"]) for card in column["cards"]],
            )
            for column in board["columns"]
        ],
    )


PATCH_FIELDS = {
    "cardTitle": "card_title",
    "name": "name",
    "priority": "priority",
    "job": "job",
    "description": "description",
}


def card_changes(payload: CardPatch) -> dict[str, Any]:
    """Translate only the fields the client sent into store field names."""
    sent = payload.model_dump(exclude_unset=True)
    if "cardTitle" in sent and sent["cardTitle"] is None:
        raise HTTPException(status_code=400, detail="cardTitle cannot be null")
    return {PATCH_FIELDS[key]: value for key, value in sent.items()}


def card_fields(payload: CardIn) -> dict[str, Any]:
    return {
        "card_title": payload.cardTitle,
        "name": payload.name,
        "priority": payload.priority,
        "job": payload.job,
        "description": payload.description,
    }


# === Health & metadata ===


@app.get("/v1/health", response_model=Health)
def health():
    return Health()


@app.get("/v1/version", response_model=Version)
def version():
    return Version(version=settings.APP_VERSION)


# === Board endpoints ===


@app.get("/v1/boards", response_model=BoardsPage)
def list_boards(boards: BoardStore = Depends(user_boards)):
    result = unwrap(boards.list_boards())
    return BoardsPage(boards=[board_tree(b) for b in result["boards"]])


@app.post("/v1/boards", response_model=BoardCreated, status_code=201)
def create_board(payload: BoardIn, boards: BoardStore = Depends(user_boards)):
    result = unwrap(boards.create_board(payload.boardName))
    return BoardCreated(boardId=result["board_id"])


@app.get("/v1/boards/{board_id}", response_model=BoardTree)
def get_board(board_id: int, boards: BoardStore = Depends(user_boards)):
    return board_tree(unwrap(boards.get_board(board_id))["board"])


@app.patch("/v1/boards/{board_id}", response_model=SuccessOut)
def rename_board(board_id: int, payload: BoardIn, boards: BoardStore = Depends(user_boards)):
    unwrap(boards.rename_board(board_id, payload.boardName))
    return SuccessOut()


@app.delete("/v1/boards/{board_id}", response_model=SuccessOut)
def delete_board(board_id: int, boards: BoardStore = Depends(user_boards)):
    unwrap(boards.delete_board(board_id))
    return SuccessOut()


# === Column endpoints ===


@app.get("/v1/boards/{board_id}/columns", response_model=ColumnsPage)
def list_columns(board_id: int, columns: ColumnStore = Depends(user_columns)):
    result = unwrap(columns.list_columns(board_id))
    return ColumnsPage(columns=[column_out(c) for c in result["columns"]])


@app.post("/v1/boards/{board_id}/columns", response_model=Placed, status_code=201)
def create_column(board_id: int, payload: ColumnIn, columns: ColumnStore = Depends(user_columns)):
    result = unwrap(columns.create_column(board_id, payload.columnName))
    return Placed(id=result["column_id"], position=result["position"])


@app.patch("/v1/boards/{board_id}/columns/{column_id}", response_model=ColumnOut)
def rename_column(
    board_id: int, column_id: int, payload: ColumnIn, columns: ColumnStore = Depends(user_columns)
):
    result = unwrap(columns.rename_column(column_id, payload.columnName, board_id=board_id))
    return column_out(result["column"])


@app.post("/v1/boards/{board_id}/columns/{column_id}/move", response_model=Placed)
def move_column(
    board_id: int, column_id: int, payload: ColumnMove, columns: ColumnStore = Depends(user_columns)
):
    result = unwrap(columns.reorder_column(column_id, payload.newPosition, board_id=board_id))
    return Placed(id=column_id, position=result["position"])


@app.delete("/v1/boards/{board_id}/columns/{column_id}", response_model=SuccessOut)
def delete_column(board_id: int, column_id: int, columns: ColumnStore = Depends(user_columns)):
    unwrap(columns.delete_column(column_id, board_id=board_id))
    return SuccessOut()


# === Card endpoints ===


@app.post("/v1/boards/{board_id}/columns/{column_id}/cards", response_model=Placed, status_code=201)
def create_card(
    board_id: int,
    column_id: int,
    payload: CardIn,
    user: str = Depends(get_current_user),
    cards: CardStore = Depends(user_cards),
):
    result = unwrap(cards.create_card(column_id, card_fields(payload), creator_id=user, board_id=board_id))
    return Placed(id=result["card_id"], position=result["position"])


@app.get("/v1/boards/{board_id}/columns/{column_id}/cards", response_model=CardsPage)
def list_column_cards(board_id: int, column_id: int, cards: CardStore = Depends(user_cards)):
    result = unwrap(cards.list_cards(column_id=column_id, board_id=board_id))
    return CardsPage(cards=[card_out(c) for c in result["cards"]])


@app.get("/v1/boards/{board_id}/cards", response_model=CardsPage)
def filter_cards(
    board_id: int,
    name: Optional[str] = None,
    priority: Optional[PriorityName] = None,
    job: Optional[str] = None,
    column_id: Optional[int] = None,
    cards: CardStore = Depends(user_cards),
):
    filters = CardFilters(name=name, priority=priority, job=job, column_id=column_id)
    result = unwrap(cards.list_cards(filters=filters, board_id=board_id))
    return CardsPage(cards=[card_out(c) for c in result["cards"]])


@app.get("/v1/boards/{board_id}/cards/{card_id}", response_model=CardOut)
def get_card(board_id: int, card_id: int, cards: CardStore = Depends(user_cards)):
    return card_out(unwrap(cards.get_card(card_id, board_id=board_id))["card"])


@app.patch("/v1/boards/{board_id}/cards/{card_id}", response_model=CardOut)
def update_card(board_id: int, card_id: int, payload: CardPatch, cards: CardStore = Depends(user_cards)):
    result = unwrap(cards.update_card(card_id, card_changes(payload), board_id=board_id))
    return card_out(result["card"])


@app.post("/v1/boards/{board_id}/cards/{card_id}/move", response_model=CardMoved)
def move_card(board_id: int, card_id: int, payload: CardMove, cards: CardStore = Depends(user_cards)):
    result = unwrap(cards.move_card(card_id, payload.newColumnId, payload.newPosition, board_id=board_id))
    return CardMoved(id=card_id, columnId=result["column_id"], position=result["position"])


@app.delete("/v1/boards/{board_id}/cards/{card_id}", response_model=SuccessOut)
def delete_card(board_id: int, card_id: int, cards: CardStore = Depends(user_cards)):
    unwrap(cards.delete_card(card_id, board_id=board_id))
    return SuccessOut()


# === Main board endpoints ===


@app.get("/v1/main-board", response_model=BoardTree)
def get_main_board(boards: BoardStore = Depends(main_boards)):
    return board_tree(unwrap(boards.get_main_board())["board"])


@app.patch("/v1/main-board", response_model=SuccessOut)
def rename_main_board(payload: BoardIn, boards: BoardStore = Depends(main_boards)):
    unwrap(boards.rename_main_board(payload.boardName))
    return SuccessOut()


@app.post("/v1/main-board/columns", response_model=Placed, status_code=201)
def add_main_column(
    payload: ColumnIn,
    board_id: int = Depends(main_board_id),
    columns: ColumnStore = Depends(main_columns),
):
    result = unwrap(columns.create_column(board_id, payload.columnName))
    return Placed(id=result["column_id"], position=result["position"])


@app.patch("/v1/main-board/columns/{column_id}", response_model=ColumnOut)
def rename_main_column(
    column_id: int,
    payload: ColumnIn,
    board_id: int = Depends(main_board_id),
    columns: ColumnStore = Depends(main_columns),
):
    return column_out(unwrap(columns.rename_column(column_id, payload.columnName, board_id=board_id))["column"])


@app.post("/v1/main-board/columns/{column_id}/move", response_model=Placed)
def move_main_column(
    column_id: int,
    payload: ColumnMove,
    board_id: int = Depends(main_board_id),
    columns: ColumnStore = Depends(main_columns),
):
    result = unwrap(columns.reorder_column(column_id, payload.newPosition, board_id=board_id))
    return Placed(id=column_id, position=result["position"])


@app.delete("/v1/main-board/columns/{column_id}", response_model=SuccessOut)
def delete_main_column(
    column_id: int, board_id: int = Depends(main_board_id), columns: ColumnStore = Depends(main_columns)
):
    unwrap(columns.delete_column(column_id, board_id=board_id))
    return SuccessOut()


@app.post("/v1/main-board/columns/{column_id}/cards", response_model=Placed, status_code=201)
def add_main_card(
    column_id: int,
    payload: CardIn,
    board_id: int = Depends(main_board_id),
    cards: CardStore = Depends(main_cards),
):
    result = unwrap(cards.create_card(column_id, card_fields(payload), board_id=board_id))
    return Placed(id=result["card_id"], position=result["position"])


@app.patch("/v1/main-board/cards/{card_id}", response_model=CardOut)
def update_main_card(
    card_id: int,
    payload: CardPatch,
    board_id: int = Depends(main_board_id),
    cards: CardStore = Depends(main_cards),
):
    return card_out(unwrap(cards.update_card(card_id, card_changes(payload), board_id=board_id))["card"])


@app.post("/v1/main-board/cards/{card_id}/move", response_model=CardMoved)
def move_main_card(
    card_id: int,
    payload: CardMove,
    board_id: int = Depends(main_board_id),
    cards: CardStore = Depends(main_cards),
):
    result = unwrap(cards.move_card(card_id, payload.newColumnId, payload.newPosition, board_id=board_id))
    return CardMoved(id=card_id, columnId=result["column_id"], position=result["position"])


@app.delete("/v1/main-board/cards/{card_id}", response_model=SuccessOut)
def delete_main_card(
    card_id: int, board_id: int = Depends(main_board_id), cards: CardStore = Depends(main_cards)
):
    unwrap(cards.delete_card(card_id, board_id=board_id))
    return SuccessOut()
