from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PriorityName = Literal["Low", "Medium", "High"]


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    requestId: Optional[str] = None


class Health(BaseModel):
    status: str = "ok"


class Version(BaseModel):
    version: str


class SuccessOut(BaseModel):
    success: bool = True


# === Boards ===


class BoardIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    boardName: str = Field(min_length=1, max_length=140)


class BoardCreated(BaseModel):
    success: bool = True
    boardId: int


class CardOut(BaseModel):
    id: int
    columnId: int
    title: str
    name: Optional[str] = None
    priority: PriorityName
    job: Optional[str] = None
    description: Optional[str] = None
    position: int
    createdBy: Optional[str] = None


class ColumnOut(BaseModel):
    id: int
    boardId: int
    columnName: str
    position: int


class ColumnTree(BaseModel):
    id: int
    columnName: str
    position: int
    cards: list[CardOut]


class BoardTree(BaseModel):
    id: int
    boardName: str
    owner: Optional[str] = None
    createdAt: Optional[datetime] = None
    columns: list[ColumnTree]


class BoardsPage(BaseModel):
    boards: list[BoardTree]


# === Columns ===


class ColumnIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    columnName: str = Field(min_length=1, max_length=80)


class ColumnMove(BaseModel):
    newPosition: int


class Placed(BaseModel):
    success: bool = True
    id: int
    position: int


class ColumnsPage(BaseModel):
    columns: list[ColumnOut]


# === Cards ===


class CardIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cardTitle: str = Field(min_length=1, max_length=200)
    name: Optional[str] = Field(default=None, max_length=128)
    priority: PriorityName = "Medium"
    job: Optional[str] = Field(default=None, max_length=128)
    description: Optional[str] = Field(default=None, max_length=8000)


class CardPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cardTitle: Optional[str] = Field(default=None, min_length=1, max_length=200)
    name: Optional[str] = Field(default=None, max_length=128)
    priority: Optional[PriorityName] = None
    job: Optional[str] = Field(default=None, max_length=128)
    description: Optional[str] = Field(default=None, max_length=8000)


class CardMove(BaseModel):
    newColumnId: int
    newPosition: int


class CardMoved(BaseModel):
    success: bool = True
    id: int
    columnId: int
    position: int


class CardsPage(BaseModel):
    cards: list[CardOut]
