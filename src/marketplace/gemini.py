"""
Thin async client for the Gemini generateContent REST endpoint
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

logger = structlog.get_logger()

DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiError(Exception):
    """Raised when the upstream call fails or returns no candidates"""


class GeminiClient:
    """Calls ``models/{model}:generateContent`` with an API key"""

    def __init__(self, api_key: str, base_url: str, timeout: float = 30.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @staticmethod
    def build_request(payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Map the client payload onto a generateContent body

        ``contents`` is passed through; a bare ``prompt`` becomes a single
        user turn. ``config`` maps onto ``generationConfig``.
        """
        contents = payload.get("contents")
        if contents is None:
            prompt = payload.get("prompt") or ""
            contents = [{"role": "user", "parts": [{"text": prompt}]}]
        elif isinstance(contents, str):
            contents = [{"role": "user", "parts": [{"text": contents}]}]

        body: Dict[str, Any] = {"contents": contents}
        config = dict(payload.get("config") or {})
        system_instruction = config.pop("systemInstruction", None)
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if config:
            body["generationConfig"] = config
        return body

    @staticmethod
    def extract_text(data: Dict[str, Any]) -> str:
        candidates: List[Dict[str, Any]] = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def generate(self, payload: Dict[str, Any], model: Optional[str] = None) -> Dict[str, Any]:
        """
        Run one generateContent call

        Returns:
            The raw response JSON

        Raises:
            GeminiError: on transport errors or non-2xx responses
        """
        model = model or payload.get("model") or DEFAULT_MODEL
        url = f"{self.base_url}/models/{model}:generateContent"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    url,
                    params={"key": self.api_key},
                    json=self.build_request(payload),
                    headers={"Content-Type": "application/json"}
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error("gemini_request_failed", status_code=e.response.status_code, model=model)
                raise GeminiError(e.response.text) from e
            except httpx.HTTPError as e:
                logger.error("gemini_request_error", error=str(e), model=model)
                raise GeminiError(str(e)) from e

        logger.info("gemini_request_completed", model=model)
        return response.json()
