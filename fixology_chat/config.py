from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

DEFAULT_PROVIDER = "anthropic"
DEFAULT_IMEI_SERVICE_URL = "https://final-bice-phi.vercel.app/api/imei-check"
PRODUCTION_ENV = "production"


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model provider, datasets, and runtime mode."""
    llm_provider: str
    llm_api_key: str
    llm_model: str
    app_env: str
    data_dir: Path
    prompts_dir: Path
    imei_service_url: str

    @property
    def is_production(self) -> bool:
        """Purpose: Tell whether error details must be hidden from callers.
        Inputs/Outputs: No inputs; returns True when APP_ENV is production.
        Side Effects / State: None.
        Dependencies: Used by the HTTP layer to decide on the `debug` field.
        Failure Modes: None.
        If Removed: Debug messages leak or are never shown in development.
        Testing Notes: Set APP_ENV=development and verify debug is returned.
        """
        # Anything other than an explicit production flag counts as non-production.
        return self.app_env.strip().lower() == PRODUCTION_ENV


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: None here; a missing LLM_API_KEY is reported when the gateway is built.
    If Removed: App cannot configure the provider or datasets.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve dataset and prompt paths, then build Settings.
    data_dir = os.getenv("DATA_DIR")
    if data_dir:
        data_path = Path(data_dir)
    else:
        data_path = (BASE_DIR / "data").resolve()

    prompts_dir = (BASE_DIR / "prompts").resolve()

    return Settings(
        llm_provider=(os.getenv("LLM_PROVIDER") or DEFAULT_PROVIDER).strip().lower(),
        llm_api_key=os.getenv("LLM_API_KEY", "").strip(),
        llm_model=os.getenv("LLM_MODEL", "").strip(),
        app_env=os.getenv("APP_ENV", PRODUCTION_ENV),
        data_dir=data_path,
        prompts_dir=prompts_dir,
        imei_service_url=os.getenv("IMEI_SERVICE_URL") or DEFAULT_IMEI_SERVICE_URL,
    )
