"""
Gateway to the external generative model (Gemini REST API).

Builds generateContent payloads, bounds each call with a timeout and maps
every failure to a `ModelFailure` cause at this boundary. Callers never see
provider error text; they get a `GatewayResult` with either text or a cause.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

import chatrelay.config as config
from chatrelay.errors import ModelFailure
from chatrelay.prompts import DEFAULT_SYSTEM_INSTRUCTION, ToolTemplate, build_tool_prompt

logger = config.logger


@dataclass(frozen=True)
class GatewayResult:
    text: str
    failure: Optional[ModelFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @staticmethod
    def failed(cause: ModelFailure) -> "GatewayResult":
        return GatewayResult(text=cause.user_message, failure=cause)


class _ModelCallError(Exception):
    def __init__(self, cause: ModelFailure, detail: str):
        super().__init__(detail)
        self.cause = cause


class CredentialLatch:
    """Stays tripped after a credential rejection until explicitly reset."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tripped = False
        self._tripped_at: Optional[float] = None
        self._reason: Optional[str] = None

    def is_tripped(self) -> bool:
        with self._lock:
            return self._tripped

    def trip(self, reason: str) -> None:
        with self._lock:
            if not self._tripped:
                self._tripped_at = time.time()
            self._tripped = True
            self._reason = reason

    def reset(self) -> None:
        with self._lock:
            self._tripped = False
            self._tripped_at = None
            self._reason = None

    def status(self) -> dict:
        with self._lock:
            return {
                "tripped": self._tripped,
                "tripped_at_epoch": int(self._tripped_at) if self._tripped_at else None,
                "reason": self._reason,
            }


_CREDENTIAL_REASONS = {"API_KEY_INVALID", "API_KEY_EXPIRED", "API_KEY_SERVICE_BLOCKED"}


def _error_fields(payload: Any) -> tuple[Optional[str], set[str]]:
    if not isinstance(payload, dict):
        return None, set()
    error = payload.get("error")
    if not isinstance(error, dict):
        return None, set()
    reasons = set()
    for detail in error.get("details") or []:
        if isinstance(detail, dict) and isinstance(detail.get("reason"), str):
            reasons.add(detail["reason"])
    status = error.get("status")
    return (status if isinstance(status, str) else None), reasons


def classify_http_error(status_code: int, payload: Any = None) -> ModelFailure:
    """Map a non-2xx provider response to a failure cause."""
    status, reasons = _error_fields(payload)
    if status_code in {401, 403} or reasons & _CREDENTIAL_REASONS or status in {"UNAUTHENTICATED", "PERMISSION_DENIED"}:
        return ModelFailure.bad_credentials
    if status_code == 429 or status == "RESOURCE_EXHAUSTED":
        return ModelFailure.quota_exceeded
    if status_code in {404, 503} or status in {"NOT_FOUND", "UNAVAILABLE"}:
        return ModelFailure.model_unavailable
    if status_code in {502, 504}:
        return ModelFailure.connectivity
    return ModelFailure.unknown


def to_gemini_role(role: str) -> str:
    return "user" if (role or "").strip().lower() in {"user", "human"} else "model"


def _extract_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise _ModelCallError(ModelFailure.unknown, "response is not an object")
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise _ModelCallError(ModelFailure.unknown, "candidates is not a list")
    if not candidates:
        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        raise _ModelCallError(ModelFailure.unknown, f"no candidates (blockReason={block_reason})")

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise _ModelCallError(ModelFailure.unknown, "candidate is not an object")
    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        parts = []
    chunks = [
        part["text"].strip()
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip()
    ]
    joined = "\n".join(chunks).strip()
    if not joined:
        raise _ModelCallError(ModelFailure.unknown, f"empty response (finishReason={candidate.get('finishReason')})")
    return joined


class ModelGateway:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        system_instruction: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.MODEL_TIMEOUT_SECONDS
        self.system_instruction = system_instruction
        self.generation_config = {
            "temperature": config.MODEL_TEMPERATURE,
            "maxOutputTokens": config.MODEL_MAX_OUTPUT_TOKENS,
            "topP": config.MODEL_TOP_P,
            "topK": config.MODEL_TOP_K,
        }
        self.latch = CredentialLatch()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def available(self) -> bool:
        return self.configured and not self.latch.is_tripped()

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=100),
                transport=self._transport,
            )
            logger.info("Model HTTP client initialized")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Model HTTP client closed")

    def reconfigure(self, api_key: Optional[str]) -> None:
        """Install a corrected API key and clear the credential latch."""
        self.api_key = api_key
        self.latch.reset()

    def status(self) -> dict:
        return {
            "available": self.available,
            "configured": self.configured,
            "model": self.model,
            "credential_latch": self.latch.status(),
        }

    def _endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(
        self,
        prompt: str,
        prior_turns: Optional[list[dict]] = None,
        system_instruction: Optional[str] = None,
    ) -> dict:
        contents = []
        for turn in prior_turns or []:
            text = str(turn.get("text") or "").strip()
            if not text:
                continue
            contents.append({"role": to_gemini_role(turn.get("role", "")), "parts": [{"text": text}]})
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": dict(self.generation_config),
        }
        instruction = system_instruction or self.system_instruction
        if instruction:
            payload["systemInstruction"] = {"parts": [{"text": instruction}]}
        return payload

    async def _post(self, payload: dict) -> Any:
        if self._client is None:
            await self.start()
        assert self._client is not None
        try:
            response = await self._client.post(
                self._endpoint(),
                json=payload,
                headers={"x-goog-api-key": self.api_key or ""},
            )
        except httpx.TransportError as exc:
            raise _ModelCallError(ModelFailure.connectivity, type(exc).__name__) from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise _ModelCallError(
                classify_http_error(response.status_code, body),
                f"status {response.status_code}",
            )
        try:
            return response.json()
        except ValueError as exc:
            raise _ModelCallError(ModelFailure.unknown, "invalid JSON body") from exc

    async def answer(
        self,
        prompt: str,
        prior_turns: Optional[list[dict]] = None,
        system_instruction: Optional[str] = None,
    ) -> GatewayResult:
        """Ask the model; never raises for provider failures."""
        if not self.configured:
            return GatewayResult.failed(ModelFailure.model_unavailable)
        if self.latch.is_tripped():
            return GatewayResult.failed(ModelFailure.bad_credentials)

        payload = self.build_payload(prompt, prior_turns, system_instruction)
        start = time.time()
        try:
            text = _extract_text(await self._post(payload))
        except _ModelCallError as exc:
            if exc.cause is ModelFailure.bad_credentials:
                self.latch.trip(str(exc))
                logger.error("Model credentials rejected; AI disabled until reconfigured")
            logger.warning(
                "model_call_failed",
                extra={"cause": exc.cause.value, "detail": str(exc), "model": self.model},
            )
            return GatewayResult.failed(exc.cause)

        logger.info(
            "model_call_ok",
            extra={"latency_ms": int((time.time() - start) * 1000), "context_turns": len(payload["contents"]) - 1},
        )
        return GatewayResult(text=text)

    async def analyze(self, template: ToolTemplate, turns: list[dict]) -> GatewayResult:
        """Run a transcript tool; the text is prefixed with the tool's lead-in."""
        result = await self.answer(build_tool_prompt(template, turns))
        if not result.ok:
            return result
        return GatewayResult(text=f"{template.lead_in}\n\n{result.text}")


def build_model_gateway(transport: Optional[httpx.AsyncBaseTransport] = None) -> ModelGateway:
    return ModelGateway(
        api_key=config.GEMINI_API_KEY,
        system_instruction=config.MODEL_SYSTEM_INSTRUCTION or DEFAULT_SYSTEM_INSTRUCTION,
        transport=transport,
    )
