# betterask/analysis_service.py
import traceback
from typing import Optional

from betterask.backend_prompts import ANALYZE_RESPONSE_SCHEMA, ANALYZE_SYSTEM_PROMPT, ANALYZE_USER_PROMPT
from betterask.base_utils import BaseUtils
from betterask.entities import ImprovedPrompt, PromptAnalysis
from betterask.google_helpers import logger
from betterask.llm_client import GatewayError, GatewayNotConfiguredError

IMPROVED_PROMPT_FIELDS = ("role", "context", "task", "exemplars", "persona", "format", "tone")


class AnalysisError(Exception):
    def __init__(self, status_code: int, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


def _is_auth_error(msg: str, code: Optional[int]) -> bool:
    return (
        code == 401
        or "API_KEY_INVALID" in msg
        or "API key not valid" in msg
        or "UNAUTHENTICATED" in msg
        or "401" in msg
    )


def _is_resource_exhausted_error(msg: str, code: Optional[int]) -> bool:
    lowered = msg.lower()
    return (
        code == 429
        or "429" in msg
        or "RESOURCE_EXHAUSTED" in msg
        or "Too Many Requests" in msg
        or "quota" in lowered
        or "rate limit" in lowered
    )


def _is_permission_error(msg: str, code: Optional[int]) -> bool:
    return (
        code == 403
        or "403" in msg
        or "PERMISSION_DENIED" in msg
        or "permission" in msg.lower()
    )


def _is_connectivity_error(msg: str, code: Optional[int]) -> bool:
    lowered = msg.lower()
    return (
        code == 503
        or "ECONNREFUSED" in msg
        or "ENOTFOUND" in msg
        or "UNAVAILABLE" in msg
        or "TimeoutError" in msg
        or "timed out" in lowered
        or "connection" in lowered
        or "network" in lowered
        or "name resolution" in lowered
    )


def classify_gateway_error(e: Exception) -> AnalysisError:
    """
    Best-effort mapping of a provider failure to an HTTP status.
    Matches on status code when the SDK exposes one, otherwise on message substrings.
    """
    if isinstance(e, GatewayNotConfiguredError):
        return AnalysisError(500, "Gemini API is not configured on the server.", str(e))

    msg = str(e)
    code = getattr(e, "status_code", None)
    if _is_auth_error(msg, code):
        return AnalysisError(401, "The Gemini API key was rejected. Check the server credential.", msg)
    if _is_resource_exhausted_error(msg, code):
        return AnalysisError(429, "Gemini API rate limit or quota exceeded. Please try again later.", msg)
    if _is_permission_error(msg, code):
        return AnalysisError(403, "The Gemini API denied access to the requested model.", msg)
    if _is_connectivity_error(msg, code):
        return AnalysisError(503, "Could not reach the Gemini API. Please try again.", msg)
    return AnalysisError(500, "Failed to get analysis from Gemini API.", msg)


class PromptAnalysisService(BaseUtils):

    def __init__(self, gateway):
        self.gateway = gateway

    def _coerce_score(self, value):
        try:
            score = float(value)
        except (TypeError, ValueError):
            raise AnalysisError(500, "Failed to get analysis from Gemini API.", f"Invalid score: {value!r}")
        score = min(100.0, max(0.0, score))
        return int(score) if score.is_integer() else score

    def _coerce_exemplars(self, value):
        if not value:
            return None
        if isinstance(value, str):
            return [value.strip()]
        if isinstance(value, list):
            items = [self._coerce_field_to_str(v) for v in value]
            return [v for v in items if v] or None
        return None

    def build_improved_prompt(self, raw, student_prompt: str) -> ImprovedPrompt:
        """
        Every missing field becomes None except task, which falls back to the original prompt.
        """
        raw = raw if isinstance(raw, dict) else {}
        fields = {}
        for name in IMPROVED_PROMPT_FIELDS:
            if name == "exemplars":
                fields[name] = self._coerce_exemplars(raw.get(name))
            else:
                fields[name] = self._coerce_field_to_str(raw.get(name)) or None
        fields["task"] = fields["task"] or student_prompt
        return ImprovedPrompt(**fields)

    async def analyze(self, student_prompt: Optional[str]) -> PromptAnalysis:
        prompt = (student_prompt or "").strip()
        if not prompt:
            raise AnalysisError(400, "studentPrompt is required")

        try:
            raw = await self.gateway.generate(
                ANALYZE_SYSTEM_PROMPT,
                self.unsafe_string_format(ANALYZE_USER_PROMPT, student_prompt=prompt),
                ANALYZE_RESPONSE_SCHEMA,
                temperature=0.3,
            )
        except (GatewayNotConfiguredError, GatewayError) as e:
            err = classify_gateway_error(e)
            logger.warning(f"[analyze] {err.status_code}: {err.details}")
            raise err from e

        try:
            parsed = self.load_fault_tolerant_json(raw)
        except ValueError as e:
            logger.error(f"[analyze] unparseable model output: {e}\n{traceback.format_exc()}")
            raise AnalysisError(500, "Failed to get analysis from Gemini API.", "Model returned malformed JSON") from e
        if not isinstance(parsed, dict):
            raise AnalysisError(500, "Failed to get analysis from Gemini API.", "Model returned an unexpected shape")

        return PromptAnalysis(
            score=self._coerce_score(parsed.get("score")),
            feedback=self._coerce_field_to_str(parsed.get("feedback")),
            improvedPrompt=self.build_improved_prompt(parsed.get("improvedPrompt"), prompt),
        )
