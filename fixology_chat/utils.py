import json
from typing import Any


def to_pretty_json(value: Any) -> str:
    """Purpose: Render a JSON-compatible value as indented text for prompts.
    Inputs/Outputs: Input is any JSON-serializable value; output is a JSON string.
    Side Effects / State: None; pure function.
    Dependencies: Uses json.dumps; called by the prompt builder and model gateway.
    Failure Modes: Non-serializable values fall back to their str() form.
    If Removed: Context blocks appended to prompts lose their stable layout.
    Testing Notes: Verify nested dicts are indented by two spaces.
    """
    # Two-space indentation keeps the block readable for the model.
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def mask_identifier(value: object) -> str:
    """Purpose: Mask a device identifier before it reaches the logs.
    Inputs/Outputs: Input is any value; output keeps only the last 4 characters.
    Side Effects / State: None; pure function.
    Dependencies: Used by the device-status adapter and pipeline logging.
    Failure Modes: Short values are fully masked.
    If Removed: Full IMEI numbers are written to application logs.
    Testing Notes: "356938035643809" becomes "***********3809".
    """
    # Keep a short suffix so operators can still correlate lookups.
    text = str(value or "")
    if len(text) <= 4:
        return "*" * len(text)
    return "*" * (len(text) - 4) + text[-4:]


def clip_text(text: str, limit: int = 200) -> str:
    """Collapse whitespace and cut text to `limit` characters for log lines."""
    collapsed = " ".join(str(text or "").split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 3] + "..."
