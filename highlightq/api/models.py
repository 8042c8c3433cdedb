"""Request/response models for the HighlightQ API"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from highlightq.config import API_MAX_SENTENCES


class ClassifyRequest(BaseModel):
    """Batch contract shared with RemoteSentimentProvider."""

    sentences: list[str] = Field(..., max_length=API_MAX_SENTENCES)

    @field_validator("sentences")
    @classmethod
    def validate_sentences(cls, v: list[str]) -> list[str]:
        if any(len(sentence) > 10_000 for sentence in v):
            raise ValueError("Sentence too long")
        return v


class SentimentPayload(BaseModel):
    label: str
    score: float
    error: bool = False


class ClassifyResponse(BaseModel):
    results: list[SentimentPayload]
    provider: str


class MessageEnvelope(BaseModel):
    """
    One protocol message plus the sender details a browser would attach.

    The message itself is validated by the router, not here, so malformed
    messages get the protocol's {"success": false} reply instead of a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: dict[str, Any]
    tab_id: int | None = Field(default=None, alias="tabId")
    origin_context: str | None = Field(default=None, alias="originContext")
