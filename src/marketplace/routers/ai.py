from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Request, status

from src.config import get_api_config
from src.errors import ApiError
from src.listings.dates import now_iso
from src.marketplace.dependencies import limiter, logger
from src.marketplace.gemini import GeminiClient, GeminiError

router = APIRouter(prefix="/api/ai", tags=["AI"])


def get_gemini_client() -> GeminiClient:
    config = get_api_config()
    if not config.gemini_api_key:
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Gemini API key is not configured. Set GEMINI_API_KEY."
        )
    return GeminiClient(config.gemini_api_key, config.gemini_api_url)


@router.post("/gemini")
@limiter.limit("30/minute")
async def gemini(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    """Proxy a generateContent call so the API key stays server-side"""
    payload = (body or {}).get("payload")
    if not isinstance(payload, dict):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Payload is required.")

    client = get_gemini_client()
    try:
        result = await client.generate(payload)
    except GeminiError as e:
        logger.error("gemini_proxy_failed", error=str(e)[:200])
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Gemini API call failed", error=str(e)[:500])

    return {
        "success": True,
        "response": GeminiClient.extract_text(result),
        "result": result,
        "timestamp": now_iso(),
    }
