from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from ...session import PromptSession
from ..deps import not_found, require_session
from ..schemas import (
    BundleImportRequest,
    DefaultFolderRequest,
    FolderCreateRequest,
    FolderUpdateRequest,
    LegacyPresetRenameRequest,
    LegacyPresetSaveRequest,
    PresetCreateRequest,
    PresetSortRequest,
    PresetUpdateRequest,
)

router = APIRouter(tags=["presets"])


def _folders_payload(session: PromptSession) -> dict[str, Any]:
    return {
        "items": [
            {**folder.to_dict(), "path": session.folder_path(folder.id)}
            for folder in session.library.folders
        ],
        "management": session.library.management.to_dict(),
    }


# Legacy name/text presets are registered first so "/presets/legacy" never
# reaches the "/presets/{preset_id}" routes.


@router.get("/presets/legacy")
async def list_legacy_presets(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return {"items": [preset.to_dict() for preset in session.library.presets]}


@router.post("/presets/legacy", status_code=201)
async def save_legacy_preset(
    payload: LegacyPresetSaveRequest, session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    try:
        return session.save_preset(payload.name).to_dict()
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.post("/presets/legacy/load")
async def load_legacy_preset(
    payload: LegacyPresetSaveRequest, session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    try:
        return {"text": session.load_preset(payload.name)}
    except KeyError:
        raise not_found("preset", payload.name)


@router.post("/presets/legacy/rename")
async def rename_legacy_preset(
    payload: LegacyPresetRenameRequest, session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    try:
        return session.rename_preset(payload.name, payload.new_name).to_dict()
    except KeyError:
        raise not_found("preset", payload.name)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.delete("/presets/legacy")
async def delete_legacy_preset(
    name: str = Query(min_length=1), session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    if not session.delete_preset(name):
        raise not_found("preset", name)
    return {"ok": True}


@router.get("/presets/export")
async def export_presets(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return session.export_presets()


@router.post("/presets/import")
async def import_presets(payload: BundleImportRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        report = session.import_presets(payload.bundle)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return report.to_dict()


@router.put("/presets/sort")
async def set_sort(payload: PresetSortRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.set_preset_sort(payload.sort_by, payload.sort_desc)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return session.library.management.to_dict()


@router.get("/presets")
async def list_presets(
    folder_id: str | None = Query(default=None),
    type: str | None = Query(default=None),
    q: str | None = Query(default=None),
    session: PromptSession = Depends(require_session),
) -> dict[str, Any]:
    items = session.list_presets(folder_id=folder_id, preset_type=type, query=q)
    return {"items": [preset.to_dict() for preset in items], "management": session.library.management.to_dict()}


@router.post("/presets", status_code=201)
async def create_preset(payload: PresetCreateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        preset = session.create_preset(
            payload.name,
            payload.type,
            payload.content,
            description=payload.description,
            tags=payload.tags,
            folder_id=payload.folder_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return preset.to_dict()


@router.patch("/presets/{preset_id}")
async def update_preset(
    preset_id: str, payload: PresetUpdateRequest, session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    try:
        return session.update_preset(preset_id, payload.model_dump(exclude_unset=True)).to_dict()
    except KeyError:
        raise not_found("preset", preset_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.delete("/presets/{preset_id}")
async def delete_preset(preset_id: str, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.delete_preset_by_id(preset_id)
    except KeyError:
        raise not_found("preset", preset_id)
    return {"ok": True}


@router.post("/presets/{preset_id}/apply")
async def apply_preset(preset_id: str, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        text = session.apply_preset(preset_id)
    except KeyError:
        raise not_found("preset", preset_id)
    return {"text": text, "tokens": session.tokens}


@router.get("/folders")
async def list_folders(session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    return _folders_payload(session)


@router.post("/folders", status_code=201)
async def create_folder(payload: FolderCreateRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        folder = session.create_folder(
            payload.name,
            description=payload.description,
            color=payload.color,
            parent_id=payload.parent_id,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return folder.to_dict()


@router.put("/folders/default")
async def set_default_folder(payload: DefaultFolderRequest, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.set_default_folder(payload.folder_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return session.library.management.to_dict()


@router.patch("/folders/{folder_id}")
async def update_folder(
    folder_id: str, payload: FolderUpdateRequest, session: PromptSession = Depends(require_session)
) -> dict[str, Any]:
    try:
        return session.update_folder(folder_id, payload.model_dump(exclude_unset=True)).to_dict()
    except KeyError:
        raise not_found("folder", folder_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.delete("/folders/{folder_id}")
async def delete_folder(folder_id: str, session: PromptSession = Depends(require_session)) -> dict[str, Any]:
    try:
        session.delete_folder(folder_id)
    except KeyError:
        raise not_found("folder", folder_id)
    return _folders_payload(session)
