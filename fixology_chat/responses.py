from __future__ import annotations

from typing import List, Optional

from .device_status import DeviceStatusResult
from .intents import Intent
from .models import ChatMeta, ChatResponse, ImeiMeta


def build_imei_meta(device_status: DeviceStatusResult) -> ImeiMeta:
    """Summarize a lookup for the widget; status is "error" when the lookup failed."""
    if not device_status.success:
        return ImeiMeta(status="error", summary=None, analysis=None)
    return ImeiMeta(
        status=device_status.overall_status or "unknown",
        summary=device_status.summary,
        analysis=device_status.analysis,
    )


def compose_response(
    intent: Intent,
    reply: str,
    suggested_actions: List[str],
    device_status: Optional[DeviceStatusResult],
) -> ChatResponse:
    """Purpose: Assemble the final reply envelope.
    Inputs/Outputs: Inputs are intent, reply text, actions, and the optional lookup
        result; output is a ChatResponse.
    Side Effects / State: None.
    Dependencies: Uses build_imei_meta and the response models.
    Failure Modes: None.
    If Removed: The HTTP layer has nothing to serialize.
    Testing Notes: meta.imei is only present when a lookup was attempted.
    """
    # The imei block exists only when a lookup ran, successful or not.
    meta = ChatMeta(
        suggested_actions=suggested_actions,
        imei=build_imei_meta(device_status) if device_status is not None else None,
    )
    return ChatResponse(success=True, intent=intent.value, reply=reply, meta=meta)
