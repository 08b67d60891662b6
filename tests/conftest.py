from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from fixology_chat.config import Settings
from fixology_chat.device_status import DeviceStatusClient
from fixology_chat.llm_gateway import build_gateway
from fixology_chat.pipeline import ChatPipeline
from fixology_chat.reference_data import ReferenceDataCache, file_reader

PACKAGE_DIR = Path(__file__).resolve().parents[1] / "fixology_chat"
DATA_DIR = PACKAGE_DIR / "data"
PROMPTS_DIR = PACKAGE_DIR / "prompts"
IMEI_URL = "https://imei.test/api/imei-check"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "llm_provider": "anthropic",
        "llm_api_key": "test-key",
        "llm_model": "",
        "app_env": "development",
        "data_dir": DATA_DIR,
        "prompts_dir": PROMPTS_DIR,
        "imei_service_url": IMEI_URL,
    }
    values.update(overrides)
    return Settings(**values)


class RecordingTransport:
    """MockTransport handler that records requests and replays a canned response."""

    def __init__(self, status_code: int = 200, payload: Optional[Any] = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self.payload = payload
        self.text = text
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def json_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


def anthropic_reply(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def build_pipeline(
    provider: RecordingTransport,
    device_status: Optional[RecordingTransport] = None,
    settings: Optional[Settings] = None,
    cache: Optional[ReferenceDataCache] = None,
) -> ChatPipeline:
    current = settings or make_settings()
    status_transport = device_status or RecordingTransport(payload={"success": False, "error": "unused"})
    return ChatPipeline(
        cache=cache or ReferenceDataCache(file_reader(DATA_DIR)),
        settings_loader=lambda: current,
        provider_factory=lambda s: build_gateway(s, http_client=provider.client()),
        device_status_factory=lambda s: DeviceStatusClient(s.imei_service_url, http_client=status_transport.client()),
    )


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    return make_settings
