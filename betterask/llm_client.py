# betterask/llm_client.py
import traceback
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from betterask.google_helpers import (
    GEMINI_API_KEY,
    GEMINI_MODEL,
    LLM_PROVIDER,
    LLM_TIMEOUT_SECONDS,
    PROJECT_ID,
    REGION,
    is_gemini_configured,
    logger,
)


class GatewayNotConfiguredError(Exception):
    """Raised when no credential is available for the selected provider."""


class GatewayError(Exception):
    """
    Any failure of the outbound model call.
    The provider's message is kept verbatim so callers can classify it.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _status_code_of(e: Exception) -> Optional[int]:
    for attr in ("status_code", "code"):
        value = getattr(e, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(e, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


class BaseLlmClient:
    """
    Token usage accounting shared by gateway implementations.
    """

    last_usage: Optional[Dict[str, int]]

    def _merge_usage(self, resp: Any) -> None:
        if resp is None:
            return
        usage = getattr(resp, "usage_metadata", None)
        if not usage:
            rm = getattr(resp, "response_metadata", None)
            if isinstance(rm, dict):
                usage = rm.get("usage_metadata")
        if not usage:
            return

        def get(*keys: str) -> int:
            for k in keys:
                if isinstance(usage, dict):
                    v = usage.get(k)
                else:
                    v = getattr(usage, k, None)
                if v:
                    return int(v)
            return 0

        inc = {
            "prompt_token_count": get("input_tokens", "prompt_token_count"),
            "candidates_token_count": get("output_tokens", "candidates_token_count"),
            "total_token_count": get("total_tokens", "total_token_count"),
        }
        if self.last_usage is None:
            self.last_usage = inc
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)

    def get_accrued_usage(self) -> Dict[str, int]:
        return dict(self.last_usage or {})


class GeminiGateway(BaseLlmClient):
    """
    Sole integration point with the generative-text provider.

        text = await gateway.generate(system_instruction, user_instruction, schema)

    Under the hood:
    - genai: ChatGoogleGenerativeAI with an API key
    - vertex: ChatVertexAI with project/region and application-default credentials

    One outbound call per generate(); no retries, the caller owns fallback policy.
    """

    def __init__(
        self,
        model_name: str = GEMINI_MODEL,
        *,
        provider: str = LLM_PROVIDER,
        api_key: str = GEMINI_API_KEY,
        vertex_project: str = PROJECT_ID,
        vertex_region: str = REGION,
        timeout: float | None = LLM_TIMEOUT_SECONDS,
    ):
        self.provider = (provider or "genai").lower()
        if self.provider not in ("genai", "vertex"):
            raise ValueError(f"Unknown LLM provider: {self.provider}")
        self.model_name = model_name
        self._api_key = api_key
        self._vertex_project = vertex_project
        self._vertex_region = vertex_region
        self._timeout = timeout
        self.last_usage: Optional[Dict[str, int]] = None

    @property
    def is_configured(self) -> bool:
        return is_gemini_configured(self.provider, self._api_key, self._vertex_project)

    def _build_chat_model(self, response_schema: Dict[str, Any], temperature: float):
        common: Dict[str, Any] = {
            "temperature": temperature,
            "max_retries": 0,
            "response_mime_type": "application/json",
            "response_schema": response_schema,
        }
        if self._timeout is not None:
            common["timeout"] = self._timeout

        if self.provider == "vertex":
            from langchain_google_vertexai import ChatVertexAI

            return ChatVertexAI(
                project=self._vertex_project,
                location=self._vertex_region,
                model=self.model_name,
                **common,
            )

        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=self.model_name,
            google_api_key=self._api_key,
            **common,
        )

    @staticmethod
    def _content_to_text(resp: Any) -> str:
        if isinstance(resp, str):
            return resp
        content = getattr(resp, "content", resp)
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, str):
                    parts.append(part)
                elif isinstance(part, dict) and part.get("type", "text") == "text":
                    parts.append(str(part.get("text", "")))
            return "".join(parts)
        return str(content)

    async def generate(
        self,
        system_instruction: str,
        user_instruction: str,
        response_schema: Dict[str, Any],
        *,
        temperature: float = 0.7,
    ) -> str:
        if not self.is_configured:
            raise GatewayNotConfiguredError(
                f"Gemini API not configured (provider={self.provider})"
            )

        messages = [
            SystemMessage(content=system_instruction),
            HumanMessage(content=user_instruction),
        ]
        try:
            chat_model = self._build_chat_model(response_schema, temperature)
            resp = await chat_model.ainvoke(messages)
        except Exception as e:
            logger.debug(f"[LLM] {self.provider}:{self.model_name} call failed: {e}\n{traceback.format_exc()}")
            raise GatewayError(str(e) or e.__class__.__name__, status_code=_status_code_of(e)) from e

        self._merge_usage(resp)
        text = self._content_to_text(resp).strip()
        logger.debug(f"[LLM] {self.provider}:{self.model_name} usage={self.last_usage}")
        return text
