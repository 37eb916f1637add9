"""Destination search endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api/v1")


@router.get("/geocode")
async def geocode(q: str = Query(min_length=1, max_length=200)) -> JSONResponse:
    """Immediate lookup, deduplicated across providers."""
    from radarnav.main import get_suggestions

    results = await get_suggestions().lookup(q)
    return JSONResponse(content={"results": [r.to_dict() for r in results]})


@router.post("/search/input")
async def search_input(request: Request) -> JSONResponse:
    """One keystroke of search-as-you-type. Body: {"text": "..."}"""
    from radarnav.main import get_suggestions

    try:
        body = json.loads(await request.body())
        text = str(body.get("text", ""))
    except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
        return JSONResponse(content={"error": "invalid JSON"}, status_code=400)

    box = get_suggestions()
    box.on_input(text)
    return JSONResponse(content={"query": box.query, "pending": box.pending})


@router.get("/search/suggestions")
async def search_suggestions() -> JSONResponse:
    from radarnav.main import get_suggestions

    box = get_suggestions()
    return JSONResponse(content={
        "query": box.query,
        "pending": box.pending,
        "suggestions": [s.to_dict() for s in box.suggestions],
    })
