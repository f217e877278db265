from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ...session import PromptSession
from ..deps import require_session
from ..schemas import PromptTextRequest, WrapRequest

router = APIRouter(tags=["editor"])


def _editor_payload(session: PromptSession) -> dict[str, Any]:
    return {"text": session.prompt_text, "tokens": session.tokens, "lang": session.selected_lang}


@router.get("/editor")
async def get_editor(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return _editor_payload(session)


@router.put("/editor/text")
async def put_text(payload: PromptTextRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    session.set_prompt_text(payload.text, raw=payload.raw)
    return _editor_payload(session)


@router.post("/editor/format")
async def format_text(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    session.format_prompt()
    return _editor_payload(session)


@router.post("/editor/toggle-separators")
async def toggle_separators(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    session.toggle_separators()
    return _editor_payload(session)


@router.post("/editor/tokens/{index}/wrap")
async def wrap_token(index: int, payload: WrapRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    if not 0 <= index < len(session.tokens):
        raise HTTPException(status_code=404, detail=f"No token at index {index}.")
    try:
        session.add_wrapper(index, payload.kind)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _editor_payload(session)


@router.post("/editor/tokens/{index}/unwrap")
async def unwrap_token(index: int, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    if not 0 <= index < len(session.tokens):
        raise HTTPException(status_code=404, detail=f"No token at index {index}.")
    session.remove_wrapper(index)
    return _editor_payload(session)


@router.get("/editor/translate")
async def translate(
    lang: str | None = Query(default=None),
    session: PromptSession = Depends(require_session),
) -> dict[str, Any]:
    return {"lang": lang or session.selected_lang, "items": session.translate_tokens(lang)}


@router.get("/editor/suggestions")
async def suggestions(
    prefix: str = Query(default=""),
    limit: int = Query(default=8, ge=1, le=50),
    session: PromptSession = Depends(require_session),
) -> dict[str, Any]:
    return {"items": session.get_suggestions(prefix, limit)}
