"""Fixology chat pipeline orchestration.

Role:
    Runs one chat request end to end: provider configuration, intent classification,
    optional device-status lookup, reference data loading, context assembly, prompt
    building, model generation, and action selection. It owns the PipelineContext
    contract passed between steps.

Pipeline data contract (fields filled in order):
    - settings, provider: resolved configuration and model gateway.
    - intent, identifier: classifier output and the extracted device identifier.
    - device_status: lookup result, only for imei_check with an identifier.
    - datasets, context: reference data bundle and assembled context fragments.
    - system_prompt, reply, suggested_actions: generation inputs and outputs.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .actions import suggest_actions
from .config import Settings, load_settings
from .context_builder import ContextPayload, assemble_context
from .device_status import DeviceStatusClient, DeviceStatusResult, extract_identifier
from .errors import RequestValidationError
from .intents import Intent, classify
from .llm_gateway import ChatProvider, build_gateway
from .models import ChatRequest, ChatResponse, ChatTurn
from .prompt_builder import build_system_prompt
from .reference_data import ReferenceData, ReferenceDataCache
from .responses import compose_response
from .step_runner import PipelineStep, StepRunner
from .utils import clip_text, mask_identifier

logger = logging.getLogger("fixology.pipeline")

MISSING_MESSAGES_ERROR = "Missing or invalid messages array"
MISSING_MESSAGES_DEBUG = "Request body must include messages: [{ role, content }, ...]"
NO_USER_MESSAGE_ERROR = "No user message found"
NO_USER_MESSAGE_DEBUG = 'At least one message must have role: "user"'


def validate_chat_request(request: ChatRequest) -> ChatTurn:
    """Purpose: Enforce the request-level rules before any pipeline work.
    Inputs/Outputs: Input is a parsed ChatRequest; output is the last user turn.
    Side Effects / State: None.
    Dependencies: Uses ChatRequest.last_user_message.
    Failure Modes: Raises RequestValidationError for an empty messages array or a
        conversation without a user turn.
    If Removed: Malformed requests reach the model provider.
    Testing Notes: messages=[] and assistant-only conversations must both fail.
    """
    # Empty or missing arrays are rejected before looking for a user turn.
    if not request.messages:
        raise RequestValidationError(MISSING_MESSAGES_ERROR, MISSING_MESSAGES_DEBUG)
    last_user = request.last_user_message()
    if last_user is None:
        raise RequestValidationError(NO_USER_MESSAGE_ERROR, NO_USER_MESSAGE_DEBUG)
    return last_user


@dataclass
class PipelineContext:
    """Mutable context passed through each pipeline step."""
    session_id: str
    role: str
    user_message: str
    conversation: List[Dict[str, str]]
    settings: Optional[Settings] = None
    provider: Optional[ChatProvider] = None
    intent: Intent = Intent.GENERIC_SUPPORT
    identifier: Optional[str] = None
    device_status: Optional[DeviceStatusResult] = None
    datasets: ReferenceData = field(default_factory=ReferenceData)
    context: ContextPayload = field(default_factory=dict)
    system_prompt: str = ""
    reply: str = ""
    suggested_actions: List[str] = field(default_factory=list)


class ChatPipeline:
    def __init__(
        self,
        cache: ReferenceDataCache,
        settings_loader: Callable[[], Settings] = load_settings,
        provider_factory: Callable[[Settings], ChatProvider] = build_gateway,
        device_status_factory: Optional[Callable[[Settings], DeviceStatusClient]] = None,
    ) -> None:
        """Purpose: Wire the pipeline dependencies and register its steps.
        Inputs/Outputs: Inputs are the dataset cache plus factories for settings,
            the model gateway, and the device-status client; no return value.
        Side Effects / State: Builds a StepRunner with the ordered steps.
        Dependencies: Uses StepRunner/PipelineStep and the step methods below.
        Failure Modes: None at init; step errors surface from handle().
        If Removed: The chat endpoint cannot process requests.
        Testing Notes: Inject fakes for every factory and assert on the response.
        """
        # Settings are read per request so provider selection follows configuration.
        self._cache = cache
        self._settings_loader = settings_loader
        self._provider_factory = provider_factory
        self._device_status_factory = device_status_factory or _default_device_status_client
        self._runner: StepRunner[PipelineContext] = StepRunner(
            steps=[
                PipelineStep("configure_provider", self._step_configure_provider),
                PipelineStep("classify_intent", self._step_classify_intent),
                PipelineStep("device_status", self._step_device_status, skip_if=_skip_device_status),
                PipelineStep("load_reference_data", self._step_load_reference_data),
                PipelineStep("assemble_context", self._step_assemble_context),
                PipelineStep("build_prompt", self._step_build_prompt),
                PipelineStep("generate_reply", self._step_generate_reply),
                PipelineStep("suggest_actions", self._step_suggest_actions),
            ]
        )

    async def handle(self, request: ChatRequest) -> ChatResponse:
        """Purpose: Run the full pipeline for one chat request.
        Inputs/Outputs: Input is a ChatRequest; output is the ChatResponse envelope.
        Side Effects / State: At most one device-status call and one provider call.
        Dependencies: Uses validate_chat_request, StepRunner, compose_response.
        Failure Modes: RequestValidationError, ConfigurationError and ProviderError
            propagate to the HTTP layer.
        If Removed: No replies can be produced.
        Testing Notes: Stub the provider and device-status service, then verify the
            intent, reply, and meta fields.
        """
        # Validate, build the context, and let the steps fill it in.
        last_user = validate_chat_request(request)
        context = PipelineContext(
            session_id=request.session_id or uuid.uuid4().hex,
            role=request.caller_role(),
            user_message=last_user.content,
            conversation=[turn.model_dump() for turn in request.messages or []],
        )
        logger.info(
            "session=%s role=%s turns=%s question=%s",
            context.session_id,
            context.role,
            len(context.conversation),
            clip_text(context.user_message),
        )
        await self._runner.run(context)
        return compose_response(context.intent, context.reply, context.suggested_actions, context.device_status)

    async def _step_configure_provider(self, context: PipelineContext) -> None:
        # Configuration errors must surface before any outbound call.
        context.settings = self._settings_loader()
        context.provider = self._provider_factory(context.settings)

    async def _step_classify_intent(self, context: PipelineContext) -> None:
        context.intent = classify(context.user_message)
        if context.intent is Intent.IMEI_CHECK:
            context.identifier = extract_identifier(context.user_message)
        logger.info(
            "session=%s intent=%s identifier=%s",
            context.session_id,
            context.intent.value,
            mask_identifier(context.identifier) if context.identifier else "-",
        )

    async def _step_device_status(self, context: PipelineContext) -> None:
        """Purpose: Look up the extracted identifier with the verification service.
        Inputs/Outputs: Input is PipelineContext; sets context.device_status.
        Side Effects / State: One outbound POST through DeviceStatusClient.
        Dependencies: Uses the injected device-status factory and current settings.
        Failure Modes: Lookup failures come back as success=False and never raise.
        If Removed: IMEI requests get no status data and no imei meta block.
        Testing Notes: Skipped unless intent is imei_check and an identifier exists.
        """
        # The lookup is sequential because prompt construction depends on it.
        client = self._device_status_factory(context.settings)
        context.device_status = await client.verify(context.identifier)

    async def _step_load_reference_data(self, context: PipelineContext) -> None:
        context.datasets = await self._cache.load_all()
        logger.info("session=%s datasets=%s", context.session_id, ",".join(context.datasets.present()) or "-")

    async def _step_assemble_context(self, context: PipelineContext) -> None:
        context.context = assemble_context(context.intent, context.datasets, context.device_status)

    async def _step_build_prompt(self, context: PipelineContext) -> None:
        context.system_prompt = build_system_prompt(
            context.intent,
            context.context,
            context.role,
            context.settings.prompts_dir,
        )

    async def _step_generate_reply(self, context: PipelineContext) -> None:
        """Purpose: Send the conversation to the configured provider.
        Inputs/Outputs: Input is PipelineContext; sets context.reply.
        Side Effects / State: One outbound provider call, awaited to completion.
        Dependencies: Uses ChatProvider.generate.
        Failure Modes: ProviderError propagates and fails the request.
        If Removed: Responses carry no reply text.
        Testing Notes: A provider 500 must turn into an HTTP 500 envelope.
        """
        # Context is appended to the final user turn only when fragments exist.
        context.reply = await context.provider.generate(
            context.system_prompt,
            context.conversation,
            context.context or None,
        )

    async def _step_suggest_actions(self, context: PipelineContext) -> None:
        context.suggested_actions = suggest_actions(context.intent, context.device_status)
        logger.info(
            "session=%s intent=%s actions=%s reply_chars=%s",
            context.session_id,
            context.intent.value,
            len(context.suggested_actions),
            len(context.reply),
        )


def _skip_device_status(context: PipelineContext) -> bool:
    return context.intent is not Intent.IMEI_CHECK or not context.identifier


def _default_device_status_client(settings: Settings) -> DeviceStatusClient:
    return DeviceStatusClient(settings.imei_service_url)
