from __future__ import annotations

from .models import PresetFolder, PresetLibrary


def _parent_index(folders: list[PresetFolder]) -> dict[str, str | None]:
    return {folder.id: folder.parent_id for folder in folders}


def would_create_cycle(folders: list[PresetFolder], folder_id: str, parent_id: str | None) -> bool:
    """True when making ``parent_id`` the parent of ``folder_id`` closes a loop."""
    if not parent_id:
        return False
    if parent_id == folder_id:
        return True
    parents = _parent_index(folders)
    seen: set[str] = set()
    cursor: str | None = parent_id
    while cursor and cursor not in seen:
        if cursor == folder_id:
            return True
        seen.add(cursor)
        cursor = parents.get(cursor)
    return False


def folder_path(folders: list[PresetFolder], folder_id: str) -> list[str]:
    """Folder names from the root down to ``folder_id``."""
    by_id = {folder.id: folder for folder in folders}
    names: list[str] = []
    seen: set[str] = set()
    cursor = by_id.get(folder_id)
    while cursor is not None and cursor.id not in seen:
        seen.add(cursor.id)
        names.append(cursor.name)
        cursor = by_id.get(cursor.parent_id or "")
    return list(reversed(names))


def drop_dangling_references(library: PresetLibrary) -> list[str]:
    """Clear parent/folder references that point at no existing folder or form a loop."""
    dropped: list[str] = []
    ids = library.folder_ids()
    for folder in library.folders:
        if folder.parent_id and folder.parent_id not in ids:
            dropped.append(f"folder:{folder.id}.parentId={folder.parent_id}")
            folder.parent_id = None
    for folder in library.folders:
        if folder.parent_id and would_create_cycle(library.folders, folder.id, folder.parent_id):
            dropped.append(f"folder:{folder.id}.parentId={folder.parent_id}")
            folder.parent_id = None
    for preset in library.extended_presets:
        if preset.folder_id and preset.folder_id not in ids:
            dropped.append(f"preset:{preset.id}.folderId={preset.folder_id}")
            preset.folder_id = None
    management = library.management
    if management.default_folder_id and management.default_folder_id not in ids:
        management.default_folder_id = None
    if management.selected_folder_id and management.selected_folder_id not in ids:
        management.selected_folder_id = None
    return dropped


def move_folder(library: PresetLibrary, folder_id: str, parent_id: str | None) -> PresetFolder:
    folder = library.get_folder(folder_id)
    if folder is None:
        raise KeyError(folder_id)
    if parent_id and library.get_folder(parent_id) is None:
        raise ValueError(f"Unknown parent folder '{parent_id}'.")
    if would_create_cycle(library.folders, folder_id, parent_id):
        raise ValueError("A folder cannot be moved inside itself or one of its descendants.")
    folder.parent_id = parent_id or None
    return folder


def delete_folder(library: PresetLibrary, folder_id: str) -> PresetFolder:
    """Remove one folder; children move up a level and presets become unfiled."""
    folder = library.get_folder(folder_id)
    if folder is None:
        raise KeyError(folder_id)
    library.folders = [item for item in library.folders if item.id != folder_id]
    for child in library.folders:
        if child.parent_id == folder_id:
            child.parent_id = folder.parent_id
    for preset in library.extended_presets:
        if preset.folder_id == folder_id:
            preset.folder_id = None
    if library.management.default_folder_id == folder_id:
        library.management.default_folder_id = None
    if library.management.selected_folder_id == folder_id:
        library.management.selected_folder_id = None
    return folder
