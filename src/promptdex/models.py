from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .config import to_bool
from .ids import IdFactory, fresh_id

KNOWN_LANGUAGES: tuple[str, ...] = ("en", "zh_CN", "es_ES")
DEFAULT_LANGUAGE = "en"
PRESET_TYPES: tuple[str, ...] = ("positive", "negative", "setting", "style", "character", "scene", "custom")
PRESET_SORT_FIELDS: tuple[str, ...] = ("updatedAt", "createdAt", "name")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> str | None:
    text = _text(value)
    return text or None


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    try:
        return to_bool(value)
    except ValueError:
        return default


def _translation_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    out: dict[str, str] = {}
    for lang, text in value.items():
        if not isinstance(lang, str) or not lang.strip():
            continue
        if text is None:
            continue
        out[lang.strip()] = str(text)
    return out


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def normalize_key_for_match(value: str) -> str:
    return str(value or "").strip().lower().replace("_", " ")


@dataclass
class Tag:
    key: str
    translation: dict[str, str] = field(default_factory=dict)
    hidden: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> Tag | None:
        if not isinstance(raw, dict):
            return None
        key = _text(raw.get("key"))
        if not key:
            return None
        return cls(key=key, translation=_translation_map(raw.get("translation")), hidden=_flag(raw.get("hidden"), False))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key}
        if self.translation:
            payload["translation"] = dict(self.translation)
        if self.hidden:
            payload["hidden"] = True
        return payload

    def clone(self) -> Tag:
        return Tag(key=self.key, translation=dict(self.translation), hidden=self.hidden)


@dataclass
class Group:
    id: str
    name: str
    color: str | None = None
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> Group | None:
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get("name"))
        if not name:
            return None
        raw_tags = raw.get("tags") if isinstance(raw.get("tags"), list) else []
        tags = [tag for tag in (Tag.from_dict(item) for item in raw_tags) if tag is not None]
        return cls(
            id=_text(raw.get("id")) or id_factory("grp"),
            name=name,
            color=_optional_text(raw.get("color")),
            tags=tags,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.color:
            payload["color"] = self.color
        payload["tags"] = [tag.to_dict() for tag in self.tags]
        return payload

    def clone(self) -> Group:
        return Group(id=self.id, name=self.name, color=self.color, tags=[tag.clone() for tag in self.tags])


@dataclass
class Category:
    id: str
    name: str
    groups: list[Group] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> Category | None:
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get("name"))
        if not name:
            return None
        raw_groups = raw.get("groups") if isinstance(raw.get("groups"), list) else []
        groups = [g for g in (Group.from_dict(item, id_factory=id_factory) for item in raw_groups) if g is not None]
        return cls(id=_text(raw.get("id")) or id_factory("cat"), name=name, groups=groups)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "groups": [group.to_dict() for group in self.groups]}

    def clone(self) -> Category:
        return Category(id=self.id, name=self.name, groups=[group.clone() for group in self.groups])


@dataclass
class Dataset:
    categories: list[Category] = field(default_factory=list)
    languages: list[str] = field(default_factory=lambda: [DEFAULT_LANGUAGE])
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> Dataset:
        if not isinstance(raw, dict):
            raise ValueError("Dataset payload must be an object.")
        raw_categories = raw.get("categories")
        if not isinstance(raw_categories, list):
            raise ValueError("Dataset payload requires a 'categories' array.")
        categories = [
            c for c in (Category.from_dict(item, id_factory=id_factory) for item in raw_categories) if c is not None
        ]
        dataset = cls(
            categories=categories,
            languages=[],
            updated_at=_optional_text(raw.get("updatedAt")),
        )
        for lang in _string_list(raw.get("languages")):
            dataset.add_language(lang)
        if not dataset.languages:
            dataset.languages.append(DEFAULT_LANGUAGE)
        dataset.register_translation_languages()
        return dataset

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "categories": [category.to_dict() for category in self.categories],
            "languages": list(self.languages),
        }
        if self.updated_at:
            payload["updatedAt"] = self.updated_at
        return payload

    def clone(self) -> Dataset:
        return Dataset(
            categories=[category.clone() for category in self.categories],
            languages=list(self.languages),
            updated_at=self.updated_at,
        )

    def add_language(self, lang: str) -> None:
        lang = _text(lang)
        if lang and lang not in self.languages:
            self.languages.append(lang)

    def register_translation_languages(self) -> None:
        """Extend ``languages`` with every code used by a tag translation."""
        for tag in self.iter_tags():
            for lang in tag.translation:
                if lang != DEFAULT_LANGUAGE:
                    self.add_language(lang)

    def iter_tags(self):
        for category in self.categories:
            for group in category.groups:
                yield from group.tags

    def tag_count(self) -> int:
        return sum(1 for _ in self.iter_tags())


@dataclass
class Preset:
    name: str
    text: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> Preset | None:
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get("name"))
        if not name:
            return None
        text = raw.get("text")
        return cls(
            name=name,
            text="" if text is None else str(text),
            updated_at=_text(raw.get("updatedAt")) or utc_now_iso(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "text": self.text, "updatedAt": self.updated_at}

    def clone(self) -> Preset:
        return Preset(name=self.name, text=self.text, updated_at=self.updated_at)


def normalize_preset_type(value: Any) -> str:
    text = _text(value).lower()
    return text if text in PRESET_TYPES else "custom"


@dataclass
class ExtendedPreset:
    id: str
    name: str
    type: str = "positive"
    content: str = ""
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    folder_id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> ExtendedPreset | None:
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get("name"))
        if not name:
            return None
        now = utc_now_iso()
        content = raw.get("content")
        created_at = _text(raw.get("createdAt")) or now
        return cls(
            id=_text(raw.get("id")) or id_factory("preset"),
            name=name,
            type=normalize_preset_type(raw.get("type")),
            content="" if content is None else str(content),
            description=_optional_text(raw.get("description")),
            tags=_string_list(raw.get("tags")),
            folder_id=_optional_text(raw.get("folderId")),
            created_at=created_at,
            updated_at=_text(raw.get("updatedAt")) or created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "content": self.content,
        }
        if self.description:
            payload["description"] = self.description
        if self.tags:
            payload["tags"] = list(self.tags)
        if self.folder_id:
            payload["folderId"] = self.folder_id
        payload["createdAt"] = self.created_at
        payload["updatedAt"] = self.updated_at
        return payload

    def clone(self) -> ExtendedPreset:
        return copy.deepcopy(self)


@dataclass
class PresetFolder:
    id: str
    name: str
    description: str | None = None
    color: str | None = None
    parent_id: str | None = None

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> PresetFolder | None:
        if not isinstance(raw, dict):
            return None
        name = _text(raw.get("name"))
        if not name:
            return None
        return cls(
            id=_text(raw.get("id")) or id_factory("folder"),
            name=name,
            description=_optional_text(raw.get("description")),
            color=_optional_text(raw.get("color")),
            parent_id=_optional_text(raw.get("parentId")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description:
            payload["description"] = self.description
        if self.color:
            payload["color"] = self.color
        if self.parent_id:
            payload["parentId"] = self.parent_id
        return payload

    def clone(self) -> PresetFolder:
        return copy.deepcopy(self)


@dataclass
class PresetManagement:
    default_folder_id: str | None = None
    selected_folder_id: str | None = None
    sort_by: str = "updatedAt"
    sort_desc: bool = True

    @classmethod
    def from_dict(cls, raw: Any) -> PresetManagement:
        if not isinstance(raw, dict):
            return cls()
        sort_by = _text(raw.get("sortBy"))
        return cls(
            default_folder_id=_optional_text(raw.get("defaultFolderId")),
            selected_folder_id=_optional_text(raw.get("selectedFolderId")),
            sort_by=sort_by if sort_by in PRESET_SORT_FIELDS else "updatedAt",
            sort_desc=_flag(raw.get("sortDesc"), True),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"sortBy": self.sort_by, "sortDesc": self.sort_desc}
        if self.default_folder_id:
            payload["defaultFolderId"] = self.default_folder_id
        if self.selected_folder_id:
            payload["selectedFolderId"] = self.selected_folder_id
        return payload

    def clone(self) -> PresetManagement:
        return copy.deepcopy(self)


def find_category(dataset: Dataset, name: str) -> Category | None:
    for category in dataset.categories:
        if category.name == name:
            return category
    return None


def find_group(category: Category, name: str) -> Group | None:
    for group in category.groups:
        if group.name == name:
            return group
    return None


def find_group_by_id(dataset: Dataset, group_id: str) -> Group | None:
    for category in dataset.categories:
        for group in category.groups:
            if group.id == group_id:
                return group
    return None


def find_tag(group: Group, key: str) -> Tag | None:
    for tag in group.tags:
        if tag.key == key:
            return tag
    return None


@dataclass
class PresetLibrary:
    """Local preset collections; they outlive every dictionary reset."""

    presets: list[Preset] = field(default_factory=list)
    extended_presets: list[ExtendedPreset] = field(default_factory=list)
    folders: list[PresetFolder] = field(default_factory=list)
    management: PresetManagement = field(default_factory=PresetManagement)

    @classmethod
    def from_bundle(cls, raw: dict[str, Any], *, id_factory: IdFactory = fresh_id) -> PresetLibrary:
        def _items(key: str) -> list[Any]:
            value = raw.get(key)
            return value if isinstance(value, list) else []

        return cls(
            presets=[p for p in (Preset.from_dict(item) for item in _items("presets")) if p is not None],
            extended_presets=[
                p
                for p in (ExtendedPreset.from_dict(item, id_factory=id_factory) for item in _items("extendedPresets"))
                if p is not None
            ],
            folders=[
                f for f in (PresetFolder.from_dict(item, id_factory=id_factory) for item in _items("presetFolders")) if f is not None
            ],
            management=PresetManagement.from_dict(raw.get("presetManagement")),
        )

    def to_bundle(self) -> dict[str, Any]:
        return {
            "presets": [preset.to_dict() for preset in self.presets],
            "extendedPresets": [preset.to_dict() for preset in self.extended_presets],
            "presetFolders": [folder.to_dict() for folder in self.folders],
            "presetManagement": self.management.to_dict(),
        }

    def clone(self) -> PresetLibrary:
        return copy.deepcopy(self)

    def folder_ids(self) -> set[str]:
        return {folder.id for folder in self.folders}

    def get_folder(self, folder_id: str | None) -> PresetFolder | None:
        if not folder_id:
            return None
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def get_preset(self, preset_id: str) -> ExtendedPreset | None:
        for preset in self.extended_presets:
            if preset.id == preset_id:
                return preset
        return None
