from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ROLE = "customer"


class ChatTurn(BaseModel):
    """Single conversation turn supplied by the chat widget."""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Request payload for the chat API."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    role: Optional[str] = Field(default=DEFAULT_ROLE)
    messages: Optional[List[ChatTurn]] = Field(default=None)

    def caller_role(self) -> str:
        """Return the caller role; a null or empty role means a customer."""
        return self.role or DEFAULT_ROLE

    def last_user_message(self) -> Optional[ChatTurn]:
        """Return the most recent user turn, or None when there is none."""
        for turn in reversed(self.messages or []):
            if turn.role == "user":
                return turn
        return None


class ImeiMeta(BaseModel):
    """Device-status outcome surfaced to the widget."""
    checked: bool = True
    status: str
    summary: Optional[Any] = None
    analysis: Optional[Dict[str, Any]] = None


class ChatMeta(BaseModel):
    """Suggested follow-ups plus the optional device-status block."""
    model_config = ConfigDict(populate_by_name=True)

    suggested_actions: List[str] = Field(default_factory=list, alias="suggestedActions")
    imei: Optional[ImeiMeta] = None


class ChatResponse(BaseModel):
    """Response payload returned by the chat API."""
    success: bool = True
    intent: str
    reply: str
    meta: ChatMeta

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with wire aliases, dropping `meta.imei` when no lookup ran."""
        payload = self.model_dump(by_alias=True)
        if payload["meta"].get("imei") is None:
            payload["meta"].pop("imei", None)
        return payload


class ErrorResponse(BaseModel):
    """Error envelope shared by validation and server failures."""
    success: bool = False
    error: str
    debug: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
