# betterask/tag_client.py
from typing import Any, Dict, Optional

import httpx

DEFAULT_TIMEOUT_SECONDS = 20.0


class HttpTagClient:
    """
    Async HTTP client for the backend routes.
    Transport errors and non-2xx statuses propagate as httpx exceptions.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def generate_tags(self, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._client.post("/api/tags/generate", json=body)
        resp.raise_for_status()
        return resp.json()

    async def analyze_prompt(self, student_prompt: str) -> Dict[str, Any]:
        resp = await self._client.post("/api/gemini/analyze", json={"studentPrompt": student_prompt})
        resp.raise_for_status()
        return resp.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
