from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ...session import PromptSession
from ..deps import group_payload, not_found, require_session, selection_payload
from ..schemas import (
    BundleImportRequest,
    CategoryCreateRequest,
    GroupCreateRequest,
    MappingRequest,
    SelectionRequest,
    TagCreateRequest,
    TagDeleteRequest,
    TagReorderRequest,
    TagUpdateRequest,
)

router = APIRouter(tags=["dictionary"])


def _dictionary_payload(session: PromptSession) -> dict[str, Any]:
    return {
        "languages": session.languages,
        "categories": [
            {
                "id": category.id,
                "name": category.name,
                "groups": [group_payload(group, include_tags=False) for group in category.groups],
            }
            for category in session.categories
        ],
        "selection": selection_payload(session),
    }


@router.get("/dictionary")
async def get_dictionary(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return _dictionary_payload(session)


@router.get("/dictionary/tags")
async def get_filtered_tags(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    group = session.current_group
    return {
        "group": group_payload(group, include_tags=False) if group else None,
        "items": [tag.to_dict() for tag in session.filtered_tags()],
        "selection": selection_payload(session),
    }


@router.post("/dictionary/select")
async def select(payload: SelectionRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        if payload.category_index is not None:
            session.select_category(payload.category_index)
        if payload.group_index is not None:
            session.select_group(payload.group_index)
        if payload.lang is not None:
            session.set_language(payload.lang)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if payload.search is not None:
        session.set_search(payload.search)
    return selection_payload(session)


@router.post("/dictionary/categories", status_code=201)
async def create_category(payload: CategoryCreateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        return session.create_category(payload.name).to_dict()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/dictionary/groups", status_code=201)
async def create_group(payload: GroupCreateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        return group_payload(session.create_group(payload.category_id, payload.name, payload.color))
    except KeyError:
        raise not_found("category", payload.category_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/dictionary/tags", status_code=201)
async def add_tag(payload: TagCreateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        return session.add_tag(payload.group_id, payload.key).to_dict()
    except KeyError:
        raise not_found("group", payload.group_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.patch("/dictionary/tags")
async def update_tag(payload: TagUpdateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        tag = session.edit_tag(
            payload.group_id,
            payload.key,
            new_key=payload.new_key,
            lang=payload.lang,
            translation=payload.translation,
            toggle_hidden=payload.toggle_hidden,
        )
    except KeyError as exc:
        raise not_found("tag or group", exc.args[0] if exc.args else payload.key)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return tag.to_dict()


@router.delete("/dictionary/tags")
async def delete_tag(payload: TagDeleteRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.remove_tag(payload.group_id, payload.key)
    except KeyError:
        raise not_found("tag", payload.key)
    return {"ok": True}


@router.post("/dictionary/tags/reorder")
async def reorder_tags(payload: TagReorderRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        order = session.reorder_tags(payload.group_id, payload.from_index, payload.to_index)
    except KeyError:
        raise not_found("group", payload.group_id)
    return {"order": order}


@router.post("/dictionary/mappings")
async def add_mapping(payload: MappingRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        return session.add_mapping(payload.key, payload.lang, payload.value).to_dict()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.get("/dictionary/diff")
async def get_diff(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    diff = session.current_diff()
    return {"summary": diff.summary(), "diff": diff.to_dict()}


@router.get("/dictionary/export")
async def export_dictionary(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return session.export_dictionary()


@router.post("/dictionary/import")
async def import_dictionary(payload: BundleImportRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.import_dictionary(payload.bundle)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _dictionary_payload(session)


@router.post("/dictionary/reset")
async def reset_dictionary(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    session.reset_to_default()
    return _dictionary_payload(session)
