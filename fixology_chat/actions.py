from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .device_status import DeviceStatusResult
from .intents import Intent

CLEAN_STATUS = "clean"

DEFAULT_ACTIONS = [
    "Diagnose a device",
    "Check an IMEI",
    "Find repair shops near me",
]

# Keyed by (intent, overallStatus); status is None for intents that do not look it up.
# high_risk and caution are service aliases for flagged and warning.
ACTION_TABLE: Dict[Tuple[Intent, Optional[str]], List[str]] = {
    (Intent.IMEI_CHECK, "flagged"): ["Contact seller about device status", "Request proof of purchase"],
    (Intent.IMEI_CHECK, "high_risk"): ["Contact seller about device status", "Request proof of purchase"],
    (Intent.IMEI_CHECK, "warning"): ["Ask seller about Find My status", "Verify device ownership"],
    (Intent.IMEI_CHECK, "caution"): ["Ask seller about Find My status", "Verify device ownership"],
    (Intent.IMEI_CHECK, "clean"): ["Proceed with purchase", "Run diagnostic check"],
    (Intent.IMEI_CHECK, None): ["Enter IMEI to check device", "Dial *#06# to find IMEI"],
    (Intent.DIAGNOSIS, None): [
        "Describe your device issue",
        "Check device warranty status",
        "Find a Fixology partner shop",
    ],
    (Intent.PRICING, None): [
        "Start free trial",
        "Compare all plans",
        "Contact sales for Enterprise",
    ],
}


def suggest_actions(intent: Intent, device_status: Optional[DeviceStatusResult]) -> List[str]:
    """Purpose: Pick the suggested next actions for a reply.
    Inputs/Outputs: Inputs are the Intent and the optional lookup result; output is
        a fresh list of 2-3 action strings.
    Side Effects / State: None; pure table lookup.
    Dependencies: Uses ACTION_TABLE and DEFAULT_ACTIONS.
    Failure Modes: A successful lookup with an unrecognized status uses the clean
        row; only a missing or failed lookup asks for the IMEI again.
    If Removed: The widget shows no follow-up buttons.
    Testing Notes: imei_check + flagged returns exactly the two seller actions.
    """
    # Only imei_check consults the lookup status.
    if intent is Intent.IMEI_CHECK and device_status is not None and device_status.success:
        actions = ACTION_TABLE.get((intent, device_status.overall_status)) or ACTION_TABLE[(intent, CLEAN_STATUS)]
        return list(actions)
    actions = ACTION_TABLE.get((intent, None)) or DEFAULT_ACTIONS
    return list(actions)
