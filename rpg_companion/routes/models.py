"""Pydantic request models for API endpoints."""

from pydantic import BaseModel


class SentBody(BaseModel):
    mes: str
    name: str = "User"


class ReceivedBody(BaseModel):
    mes: str
    name: str = "Assistant"


class SwipeBody(BaseModel):
    swipe_id: int
    message_index: int | None = None


class StatEdit(BaseModel):
    field: str
    value: str


class TextEdit(BaseModel):
    value: str


class InventoryEdit(BaseModel):
    bucket: str
    value: str
    location: str | None = None


class LocationBody(BaseModel):
    name: str


class ClassicStatEdit(BaseModel):
    stat: str
    delta: int


class FieldEdit(BaseModel):
    field: str
    value: str


class DiceBody(BaseModel):
    formula: str
