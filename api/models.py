import uuid
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from api.config import MESSAGE_MAX_CHARS


class HistoryItem(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_CHARS)
    history: List[HistoryItem] = []
    excludeIds: List[str] = []

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value

    @field_validator("excludeIds")
    @classmethod
    def _exclude_ids_are_uuids(cls, value: List[str]) -> List[str]:
        normalized = []
        for item in value:
            try:
                normalized.append(str(uuid.UUID(item)))
            except (TypeError, ValueError):
                raise ValueError(f"invalid id: {item}")
        return normalized


class Quotation(BaseModel):
    id: str
    text: str
    addressee: str
    part: str
    number: int
    section_title: Optional[str] = None


class ChatResponse(BaseModel):
    response: str
    hiddenWord: Optional[Quotation] = None


class RandomQuotationResponse(BaseModel):
    hiddenWord: Optional[Quotation] = None


class HealthResponse(BaseModel):
    ok: bool
