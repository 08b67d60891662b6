from __future__ import annotations

from typing import Any, Dict, List, Optional

from .device_status import DeviceStatusResult
from .intents import Intent
from .reference_data import Dataset, ReferenceData

MAX_EXAMPLE_SYMPTOMS = 5

ContextPayload = Dict[str, Any]


def assemble_context(
    intent: Intent,
    datasets: ReferenceData,
    device_status: Optional[DeviceStatusResult],
) -> ContextPayload:
    """Purpose: Combine intent, reference data, and lookup output into context fragments.
    Inputs/Outputs: Inputs are the Intent, loaded datasets, and an optional lookup
        result; output is a dict holding only the fragments that apply.
    Side Effects / State: None; pure function.
    Dependencies: Uses the summarize_* helpers below.
    Failure Modes: Missing datasets simply drop their fragments.
    If Removed: Prompts lose all reference data and device-status results.
    Testing Notes: Verify symptoms only appear for diagnosis, pricing only for
        pricing, and deviceStatus only for a successful imei_check lookup.
    """
    # Absent fragments are left out entirely to keep the prompt small.
    context: ContextPayload = {}
    if datasets.devices is not None:
        context["deviceCatalog"] = summarize_devices(datasets.devices)
    if intent is Intent.DIAGNOSIS and datasets.symptoms is not None:
        context["symptomCategories"] = summarize_symptoms(datasets.symptoms)
    if intent is Intent.PRICING and datasets.pricing is not None:
        context["pricing"] = summarize_pricing(datasets.pricing)
    if datasets.rewards is not None:
        context["rewardsTiers"] = summarize_rewards(datasets.rewards)
    if intent is Intent.IMEI_CHECK and device_status is not None and device_status.success:
        context["deviceStatus"] = device_status.to_dict()
    return context


def summarize_devices(devices: Dataset) -> Dict[str, Any]:
    categories = _names(devices.get("categories"))
    total = devices.get("total_models")
    if total is None:
        total = sum(len(category.get("models") or []) for category in _dicts(devices.get("categories")))
    return {"totalModels": total, "categories": categories}


def summarize_symptoms(symptoms: Dataset) -> List[Dict[str, Any]]:
    """Category names with at most MAX_EXAMPLE_SYMPTOMS example symptoms each."""
    summary: List[Dict[str, Any]] = []
    for category in _dicts(symptoms.get("categories")):
        examples = _names(category.get("symptoms"))[:MAX_EXAMPLE_SYMPTOMS]
        summary.append({"name": category.get("name", ""), "symptoms": examples})
    return summary


def summarize_pricing(pricing: Dataset) -> Dict[str, Any]:
    return {
        "plans": [dict(plan) for plan in _dicts(pricing.get("plans"))],
        "creditPacks": [dict(pack) for pack in _dicts(pricing.get("credit_packs"))],
        "freeTrialDays": pricing.get("free_trial_days"),
    }


def summarize_rewards(rewards: Dataset) -> Dict[str, Any]:
    return {
        "pointsPerDollar": rewards.get("points_per_dollar"),
        "tiers": [
            {
                "name": tier.get("name", ""),
                "multiplier": tier.get("multiplier"),
                "minPoints": tier.get("min_points", 0),
            }
            for tier in _dicts(rewards.get("tiers"))
        ],
    }


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _names(value: Any) -> List[str]:
    # Accept both [{"name": ...}] and plain string lists.
    names: List[str] = []
    if not isinstance(value, list):
        return names
    for item in value:
        if isinstance(item, dict) and item.get("name"):
            names.append(str(item["name"]))
        elif isinstance(item, str) and item:
            names.append(item)
    return names
