from __future__ import annotations

import re
from enum import Enum
from typing import List, Pattern, Tuple


class Intent(str, Enum):
    """Closed set of request categories the assistant can route on."""
    IMEI_CHECK = "imei_check"
    PRICING = "pricing"
    DIAGNOSIS = "diagnosis"
    GENERIC_SUPPORT = "generic_support"


IDENTIFIER_RE = re.compile(r"\b\d{14,17}\b", re.ASCII)

DEVICE_STATUS_PATTERNS = [
    re.compile(r"imei", re.IGNORECASE),
    IDENTIFIER_RE,
    re.compile(r"blacklist", re.IGNORECASE),
    re.compile(r"is.*(phone|device).*(stolen|lost|clean)", re.IGNORECASE),
    re.compile(r"find my (iphone|device)", re.IGNORECASE),
    re.compile(r"carrier.*(lock|unlock)", re.IGNORECASE),
    re.compile(r"sim.*(lock|unlock)", re.IGNORECASE),
    re.compile(r"check.*(serial|status)", re.IGNORECASE),
    re.compile(r"icloud.*(lock|status)", re.IGNORECASE),
    re.compile(r"mdm.*(lock|status)", re.IGNORECASE),
    re.compile(r"activation lock", re.IGNORECASE),
]

PRICING_PATTERNS = [
    re.compile(r"subscription", re.IGNORECASE),
    re.compile(r"\b(plan|plans)\b", re.IGNORECASE),
    re.compile(r"\b(basic|pro|enterprise)\b.*plan", re.IGNORECASE),
    re.compile(r"per month", re.IGNORECASE),
    re.compile(r"monthly", re.IGNORECASE),
    re.compile(r"free trial", re.IGNORECASE),
    re.compile(r"\b(price|prices|pricing)\b", re.IGNORECASE),
    re.compile(r"\bcosts?\b", re.IGNORECASE),
    re.compile(r"how much", re.IGNORECASE),
]

DIAGNOSIS_PATTERNS = [
    re.compile(r"diagnos", re.IGNORECASE),
    re.compile(r"problem", re.IGNORECASE),
    re.compile(r"issue", re.IGNORECASE),
    re.compile(r"broken", re.IGNORECASE),
    re.compile(r"not working", re.IGNORECASE),
    re.compile(r"won'?t (turn on|charge|boot|connect)", re.IGNORECASE),
    re.compile(r"screen.*(crack|black|lines|flicker)", re.IGNORECASE),
    re.compile(r"battery.*(drain|dead|swollen|hot)", re.IGNORECASE),
    re.compile(r"water damage", re.IGNORECASE),
    re.compile(r"overheating", re.IGNORECASE),
    re.compile(r"slow", re.IGNORECASE),
    re.compile(r"crash", re.IGNORECASE),
    re.compile(r"freez", re.IGNORECASE),
    re.compile(r"restart", re.IGNORECASE),
    re.compile(r"speaker", re.IGNORECASE),
    re.compile(r"microphone", re.IGNORECASE),
    re.compile(r"camera", re.IGNORECASE),
    re.compile(r"wifi", re.IGNORECASE),
    re.compile(r"bluetooth", re.IGNORECASE),
    re.compile(r"charging", re.IGNORECASE),
    re.compile(r"fix", re.IGNORECASE),
    re.compile(r"symptom", re.IGNORECASE),
]

# Evaluated top to bottom; the first group with a matching pattern wins.
INTENT_RULES: List[Tuple[Intent, List[Pattern[str]]]] = [
    (Intent.IMEI_CHECK, DEVICE_STATUS_PATTERNS),
    (Intent.PRICING, PRICING_PATTERNS),
    (Intent.DIAGNOSIS, DIAGNOSIS_PATTERNS),
]


def classify(message: str) -> Intent:
    """Purpose: Map a free-text user message to one Intent.
    Inputs/Outputs: Input is the message text; output is an Intent member.
    Side Effects / State: None; pure and deterministic.
    Dependencies: Uses the ordered INTENT_RULES table.
    Failure Modes: Empty or unmatched text yields GENERIC_SUPPORT.
    If Removed: The pipeline cannot pick context, guidelines, or actions.
    Testing Notes: A message mentioning both a plan price and an IMEI must classify
        as IMEI_CHECK; pricing plus a symptom must classify as PRICING.
    """
    # Walk the groups in priority order and stop at the first hit.
    text = message or ""
    for intent, patterns in INTENT_RULES:
        if any(pattern.search(text) for pattern in patterns):
            return intent
    return Intent.GENERIC_SUPPORT
