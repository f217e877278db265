from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..models import PRESET_SORT_FIELDS, PRESET_TYPES
from ..wrappers import WRAPPER_KINDS


class SelectionRequest(BaseModel):
    category_index: int | None = Field(default=None, ge=0)
    group_index: int | None = Field(default=None, ge=0)
    search: str | None = None
    lang: str | None = None


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1)


class GroupCreateRequest(BaseModel):
    category_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    color: str | None = None


class TagCreateRequest(BaseModel):
    group_id: str = Field(min_length=1)
    key: str = Field(default="new_tag", min_length=1)


class TagUpdateRequest(BaseModel):
    group_id: str = Field(min_length=1)
    key: str = Field(min_length=1)
    new_key: str | None = None
    lang: str | None = None
    translation: str | None = None
    toggle_hidden: bool = False


class TagDeleteRequest(BaseModel):
    group_id: str = Field(min_length=1)
    key: str = Field(min_length=1)


class TagReorderRequest(BaseModel):
    group_id: str = Field(min_length=1)
    from_index: int
    to_index: int


class MappingRequest(BaseModel):
    key: str = Field(min_length=1)
    lang: str = Field(min_length=1)
    value: str


class BundleImportRequest(BaseModel):
    bundle: dict[str, Any]


class PromptTextRequest(BaseModel):
    text: str = ""
    raw: bool = False


class WrapRequest(BaseModel):
    kind: str = "{}"

    @field_validator("kind")
    @classmethod
    def check_kind(cls, value: str) -> str:
        if value not in WRAPPER_KINDS:
            raise ValueError(f"kind must be one of {', '.join(WRAPPER_KINDS)}")
        return value


def _check_preset_type(value: str | None) -> str | None:
    if value is not None and value not in PRESET_TYPES:
        raise ValueError(f"type must be one of {', '.join(PRESET_TYPES)}")
    return value


class PresetCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    type: str = "positive"
    content: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    folder_id: str | None = None

    @field_validator("type")
    @classmethod
    def check_type(cls, value: str) -> str:
        return _check_preset_type(value) or "positive"


class PresetUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    type: str | None = None
    content: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    folder_id: str | None = None

    @field_validator("type")
    @classmethod
    def check_type(cls, value: str | None) -> str | None:
        return _check_preset_type(value)


class PresetSortRequest(BaseModel):
    sort_by: str = "updatedAt"
    sort_desc: bool = True

    @field_validator("sort_by")
    @classmethod
    def check_sort_by(cls, value: str) -> str:
        if value not in PRESET_SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(PRESET_SORT_FIELDS)}")
        return value


class FolderCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    color: str | None = None
    parent_id: str | None = None


class FolderUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color: str | None = None
    parent_id: str | None = None


class DefaultFolderRequest(BaseModel):
    folder_id: str | None = None


class LegacyPresetSaveRequest(BaseModel):
    name: str = Field(min_length=1)


class LegacyPresetRenameRequest(BaseModel):
    name: str = Field(min_length=1)
    new_name: str = Field(min_length=1)
