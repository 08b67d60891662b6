from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Mapping


@lru_cache(maxsize=32)
def load_prompt(prompt_path: Path) -> str:
    """Purpose: Read a prompt template shipped with the package.
    Inputs/Outputs: Input is a Path to a .txt template; output is its text without BOM
        and trailing whitespace.
    Side Effects / State: Memoizes templates per path for the process lifetime.
    Dependencies: Used by the prompt builder for the preamble and guideline blocks.
    Failure Modes: Missing files raise OSError; undecodable bytes are dropped.
    If Removed: System prompts cannot be rendered and every request fails.
    Testing Notes: Check BOM stripping and that a second call does not re-read.
    """
    # Decode strictly first, then fall back to a tolerant decode.
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = prompt_path.read_bytes().decode("utf-8", errors="ignore")
    return text.lstrip("\ufeff").rstrip()


def render_prompt(template: str, values: Mapping[str, str]) -> str:
    """Fill `<<KEY>>` placeholders in a template; unknown placeholders stay as-is."""
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace(f"<<{key}>>", value)
    return rendered
