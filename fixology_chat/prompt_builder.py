from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .context_builder import ContextPayload
from .intents import Intent
from .prompt_loader import load_prompt, render_prompt
from .utils import to_pretty_json

logger = logging.getLogger("fixology.prompt")

PREAMBLE_TEMPLATE = "system_preamble.txt"

# Exactly one guideline block per intent; generic_support uses the default block.
GUIDELINE_TEMPLATES: Dict[Intent, str] = {
    Intent.IMEI_CHECK: "guidelines_imei_check.txt",
    Intent.DIAGNOSIS: "guidelines_diagnosis.txt",
    Intent.PRICING: "guidelines_pricing.txt",
    Intent.GENERIC_SUPPORT: "guidelines_default.txt",
}

SHOP_ROLE_SENTENCE = "User is a repair shop technician/owner using the Fixology dashboard."
CUSTOMER_ROLE_SENTENCE = "User is a customer seeking help with their device."
NO_CONTEXT_LINE = "- No reference data is available for this request."


def build_system_prompt(intent: Intent, context: ContextPayload, role: str, prompts_dir: Path) -> str:
    """Purpose: Render the system prompt for one request.
    Inputs/Outputs: Inputs are the Intent, assembled context, caller role, and the
        template directory; output is the full system prompt text.
    Side Effects / State: Reads (memoized) template files.
    Dependencies: Uses load_prompt/render_prompt and GUIDELINE_TEMPLATES.
    Failure Modes: Missing template files raise OSError to the caller.
    If Removed: The model receives no identity, context, or guidelines.
    Testing Notes: Verify the shop sentence for role="shop", and that only the
        guideline block for the given intent is present.
    """
    # Preamble, role sentence, context section, then one guideline block.
    template = load_prompt(prompts_dir / PREAMBLE_TEMPLATE)
    guidelines = load_prompt(prompts_dir / GUIDELINE_TEMPLATES[intent])
    prompt = render_prompt(
        template,
        {
            "ROLE_SENTENCE": role_sentence(role),
            "CONTEXT_SECTION": render_context_section(context),
            "GUIDELINES": guidelines,
        },
    )
    logger.debug("intent=%s role=%s prompt_chars=%s", intent.value, role, len(prompt))
    return prompt


def role_sentence(role: str) -> str:
    if (role or "").strip().lower() == "shop":
        return SHOP_ROLE_SENTENCE
    return CUSTOMER_ROLE_SENTENCE


def render_context_section(context: Mapping[str, Any]) -> str:
    """Purpose: Enumerate the context fragments present for this request.
    Inputs/Outputs: Input is the ContextPayload; output is a block of bullet lines.
    Side Effects / State: None.
    Dependencies: Uses to_pretty_json for the device-status block.
    Failure Modes: Unknown fragment names are ignored.
    If Removed: Reference data never reaches the system prompt.
    Testing Notes: An empty context renders NO_CONTEXT_LINE.
    """
    # Fixed fragment order keeps prompts stable across requests.
    lines: List[str] = []
    catalog = context.get("deviceCatalog")
    if catalog:
        categories = ", ".join(catalog.get("categories") or []) or "multiple device categories"
        lines.append(f"- Supported devices: {catalog.get('totalModels')}+ models across {categories}")
    symptom_categories = context.get("symptomCategories")
    if symptom_categories:
        lines.append("- Diagnostic symptom categories:")
        for category in symptom_categories:
            examples = ", ".join(category.get("symptoms") or [])
            lines.append(f"  - {category.get('name')}: {examples}" if examples else f"  - {category.get('name')}")
    pricing = context.get("pricing")
    if pricing:
        lines.extend(_pricing_lines(pricing))
    rewards = context.get("rewardsTiers")
    if rewards:
        lines.append(_rewards_line(rewards))
    device_status = context.get("deviceStatus")
    if device_status:
        lines.append("")
        lines.append("[DEVICE STATUS RESULTS]")
        lines.append(to_pretty_json(device_status))
    if not lines:
        return NO_CONTEXT_LINE
    return "\n".join(lines)


def _pricing_lines(pricing: Mapping[str, Any]) -> List[str]:
    lines: List[str] = []
    plans = []
    for plan in pricing.get("plans") or []:
        price = plan.get("price_monthly")
        credits = plan.get("credits")
        price_text = f"${price}/mo" if price is not None else "custom pricing"
        credits_text = f", {credits} credits" if credits is not None else ""
        plans.append(f"{plan.get('name')} ({price_text}{credits_text})")
    if plans:
        lines.append("- Plans: " + ", ".join(plans))
    packs = [f"{pack.get('credits')} for ${pack.get('price')}" for pack in pricing.get("creditPacks") or []]
    if packs:
        lines.append("- Credit packs: " + ", ".join(packs))
    if pricing.get("freeTrialDays"):
        lines.append(f"- Free trial: {pricing['freeTrialDays']} days")
    return lines


def _rewards_line(rewards: Mapping[str, Any]) -> str:
    tiers = []
    for tier in rewards.get("tiers") or []:
        text = f"{tier.get('name')} ({tier.get('multiplier')}x"
        min_points = tier.get("minPoints")
        if isinstance(min_points, int) and min_points > 0:
            text += f" at {min_points:,} FP"
        tiers.append(text + ")")
    line = "- Rewards tiers: " + ", ".join(tiers)
    if rewards.get("pointsPerDollar"):
        line += f"; earn {rewards['pointsPerDollar']} FP per $1"
    return line
