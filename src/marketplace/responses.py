from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse

from src.listings.dates import epoch_ms

FALLBACK_HEADER = "X-Data-Fallback"


def created(content: Any) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=content)


def fallback(content: Any) -> JSONResponse:
    """200 response carrying default data after a backend failure"""
    return JSONResponse(status_code=status.HTTP_200_OK, content=content, headers={FALLBACK_HEADER: "true"})


def timestamped_id(prefix: str) -> str:
    """Ids such as ``faq_1717171717171``"""
    return f"{prefix}_{epoch_ms()}"
