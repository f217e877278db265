"""In-memory editing session over one baseline dictionary and the local presets.

The session owns every piece of mutable state (baseline, working dataset,
presets, editor text, selection) and serializes mutations with one lock. The
engine modules it calls (``diff_engine``, ``import_merge``, ``migration``)
hold no state of their own.
"""
from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable

from . import folders as folder_ops
from . import wrappers
from .diff_engine import Diff, apply_diff, build_diff
from .errors import MalformedInputError
from .ids import IdFactory, fresh_id
from .import_merge import MergeReport, merge_preset_bundle, parse_payload
from .migration import migrate_legacy_presets
from .models import (
    DEFAULT_LANGUAGE,
    PRESET_SORT_FIELDS,
    PRESET_TYPES,
    Category,
    Dataset,
    ExtendedPreset,
    Group,
    Preset,
    PresetFolder,
    PresetLibrary,
    Tag,
    find_category,
    find_group,
    find_group_by_id,
    find_tag,
    normalize_key_for_match,
    utc_now_iso,
)
from .snapshot import (
    DebouncedSaver,
    SnapshotStore,
    build_dictionary_export,
    build_preset_export,
    build_snapshot_bundle,
)

logger = logging.getLogger(__name__)

CUSTOM_CATEGORY_NAME = "Custom"
CUSTOM_GROUP_NAME = "User Mapping"
CUSTOM_GROUP_COLOR = "#6366f1"
DEFAULT_SUGGESTION_LIMIT = 8
DEFAULT_SAVE_DELAY_SECONDS = 0.4


def _mutation(method: Callable[..., Any]) -> Callable[..., Any]:
    """Run ``method`` under the session lock, then schedule a save."""

    @functools.wraps(method)
    def _wrapped(self: PromptSession, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            result = method(self, *args, **kwargs)
            self.mark_dirty()
            return result

    return _wrapped


def _matches_query(tag: Tag, query: str, lang: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    q_norm = q.replace("_", " ")
    key = tag.key.lower()
    translation = (tag.translation.get(lang) or "").lower()
    return (
        q in key
        or q_norm in key.replace("_", " ")
        or q in translation
        or q_norm in translation.replace("_", " ")
    )


class PromptSession:
    def __init__(
        self,
        baseline_loader: Callable[[], Dataset],
        store: SnapshotStore | None = None,
        *,
        id_factory: IdFactory = fresh_id,
        save_delay_seconds: float = DEFAULT_SAVE_DELAY_SECONDS,
    ) -> None:
        self._baseline_loader = baseline_loader
        self.store = store
        self.id_factory = id_factory
        self.baseline: Dataset | None = None
        self.dataset: Dataset | None = None
        self.library = PresetLibrary()
        self.prompt_text = ""
        self.selected_lang: str | None = None
        self.selected_category_index = 0
        self.selected_group_index = 0
        self.search_query = ""
        self.restore_warning: str | None = None
        self.saver = DebouncedSaver(self.save, save_delay_seconds)
        self._lock = threading.RLock()

    # -- lifecycle -----------------------------------------------------------

    def initialize(self) -> PromptSession:
        """Load the baseline once and restore the last snapshot on top of it.

        ``BaselineUnavailableError`` from the loader propagates; a broken
        snapshot is logged and the session starts from the baseline.
        """
        with self._lock:
            self.baseline = self._baseline_loader()
            self.dataset = self.baseline.clone()

            snapshot: dict[str, Any] | None = None
            if self.store is not None:
                try:
                    snapshot = self.store.read()
                except MalformedInputError as exc:
                    logger.warning("snapshot ignored, starting from baseline: %s", exc)
                    self.restore_warning = str(exc)
            if snapshot is not None:
                self._restore(snapshot)

            migrated = migrate_legacy_presets(self.library, id_factory=self.id_factory)
            if not self.selected_lang:
                self.selected_lang = "zh_CN" if "zh_CN" in self.dataset.languages else DEFAULT_LANGUAGE
            if migrated:
                self.save()
        return self

    def _restore(self, bundle: dict[str, Any]) -> None:
        try:
            restored = self._dictionary_from_bundle(bundle)
        except ValueError as exc:
            logger.warning("snapshot dictionary ignored, using baseline: %s", exc)
            self.restore_warning = str(exc)
            restored = None
        if restored is not None:
            self.dataset = restored

        self.library = PresetLibrary.from_bundle(bundle, id_factory=self.id_factory)
        dropped = folder_ops.drop_dangling_references(self.library)
        if dropped:
            logger.info("snapshot restore dropped %s dangling reference(s)", len(dropped))
        if isinstance(bundle.get("promptText"), str):
            self.prompt_text = bundle["promptText"]
        selected = bundle.get("selectedLang")
        if isinstance(selected, str) and selected.strip():
            self.selected_lang = selected.strip()

    def _dictionary_from_bundle(self, bundle: dict[str, Any]) -> Dataset | None:
        """``dataset`` wins over ``customDiff``; neither present means no dictionary data."""
        if bundle.get("dataset") is not None:
            return Dataset.from_dict(bundle["dataset"], id_factory=self.id_factory)
        if bundle.get("customDiff") is not None:
            diff = Diff.from_dict(bundle["customDiff"], id_factory=self.id_factory)
            return apply_diff(self._require_baseline().clone(), diff, id_factory=self.id_factory)
        return None

    def _require_baseline(self) -> Dataset:
        if self.baseline is None:
            raise RuntimeError("Session is not initialized.")
        return self.baseline

    def _require_dataset(self) -> Dataset:
        if self.dataset is None:
            raise RuntimeError("Session is not initialized.")
        return self.dataset

    # -- persistence ---------------------------------------------------------

    def snapshot_bundle(self) -> dict[str, Any]:
        with self._lock:
            return build_snapshot_bundle(
                dataset=self._require_dataset(),
                library=self.library,
                prompt_text=self.prompt_text,
                selected_lang=self.selected_lang,
            )

    def save(self) -> None:
        if self.store is None or self.dataset is None:
            return
        with self._lock:
            bundle = self.snapshot_bundle()
            self.store.write(bundle)
        logger.debug("snapshot written to %s", self.store.path)

    def mark_dirty(self) -> None:
        self.saver.trigger()

    @_mutation
    def reset_to_default(self) -> Dataset:
        """Replace the dictionary with a fresh baseline copy; presets are kept."""
        self.dataset = self._require_baseline().clone()
        self.selected_category_index = 0
        self.selected_group_index = 0
        return self.dataset

    def current_diff(self) -> Diff:
        with self._lock:
            return build_diff(self._require_baseline(), self._require_dataset())

    def export_dictionary(self) -> dict[str, Any]:
        return build_dictionary_export(self.current_diff())

    @_mutation
    def import_dictionary(self, raw: str | bytes | dict[str, Any]) -> Dataset:
        bundle = parse_payload(raw)
        restored = self._dictionary_from_bundle(bundle)
        if restored is None:
            raise MalformedInputError("Dictionary import requires 'dataset' or 'customDiff'.")
        self.dataset = restored
        self.selected_category_index = 0
        self.selected_group_index = 0
        return restored

    def export_presets(self) -> dict[str, Any]:
        with self._lock:
            return build_preset_export(self.library)

    @_mutation
    def import_presets(self, raw: str | bytes | dict[str, Any]) -> MergeReport:
        return merge_preset_bundle(self.library, parse_payload(raw), id_factory=self.id_factory)

    # -- dictionary browsing -------------------------------------------------

    @property
    def categories(self) -> list[Category]:
        return self.dataset.categories if self.dataset is not None else []

    @property
    def languages(self) -> list[str]:
        return list(self.dataset.languages) if self.dataset is not None else [DEFAULT_LANGUAGE]

    @property
    def current_category(self) -> Category | None:
        categories = self.categories
        if 0 <= self.selected_category_index < len(categories):
            return categories[self.selected_category_index]
        return None

    @property
    def current_group(self) -> Group | None:
        category = self.current_category
        if category is None:
            return None
        if 0 <= self.selected_group_index < len(category.groups):
            return category.groups[self.selected_group_index]
        return None

    def select_category(self, index: int) -> Category:
        with self._lock:
            if not 0 <= index < len(self.categories):
                raise ValueError(f"Category index {index} is out of range.")
            self.selected_category_index = index
            self.selected_group_index = 0
            return self.categories[index]

    def select_group(self, index: int) -> Group:
        with self._lock:
            category = self.current_category
            if category is None or not 0 <= index < len(category.groups):
                raise ValueError(f"Group index {index} is out of range.")
            self.selected_group_index = index
            return category.groups[index]

    def set_search(self, query: str) -> None:
        self.search_query = query or ""

    @_mutation
    def set_language(self, lang: str) -> str:
        lang = (lang or "").strip()
        if not lang:
            raise ValueError("Language code is required.")
        self.selected_lang = lang
        return lang

    def filtered_tags(self) -> list[Tag]:
        group = self.current_group
        if group is None:
            return []
        lang = self.selected_lang or DEFAULT_LANGUAGE
        return [tag for tag in group.tags if _matches_query(tag, self.search_query, lang)]

    def _group(self, group_id: str) -> Group:
        group = find_group_by_id(self._require_dataset(), group_id)
        if group is None:
            raise KeyError(group_id)
        return group

    def _tag(self, group_id: str, key: str) -> Tag:
        tag = find_tag(self._group(group_id), key)
        if tag is None:
            raise KeyError(key)
        return tag

    # -- dictionary editing --------------------------------------------------

    @_mutation
    def create_category(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValueError("Category name is required.")
        dataset = self._require_dataset()
        if find_category(dataset, name) is not None:
            raise ValueError(f"Category '{name}' already exists.")
        category = Category(id=self.id_factory("cat"), name=name)
        dataset.categories.append(category)
        return category

    @_mutation
    def create_group(self, category_id: str, name: str, color: str | None = None) -> Group:
        name = (name or "").strip()
        if not name:
            raise ValueError("Group name is required.")
        category = next((item for item in self.categories if item.id == category_id), None)
        if category is None:
            raise KeyError(category_id)
        if find_group(category, name) is not None:
            raise ValueError(f"Group '{name}' already exists in '{category.name}'.")
        group = Group(id=self.id_factory("grp"), name=name, color=(color or "").strip() or None)
        category.groups.append(group)
        return group

    @_mutation
    def add_tag(self, group_id: str, key: str = "new_tag") -> Tag:
        key = (key or "").strip()
        if not key:
            raise ValueError("Tag key is required.")
        group = self._group(group_id)
        if find_tag(group, key) is not None:
            raise ValueError(f"Tag '{key}' already exists in '{group.name}'.")
        lang = self.selected_lang or DEFAULT_LANGUAGE
        tag = Tag(key=key, translation={DEFAULT_LANGUAGE: key, lang: key})
        group.tags.append(tag)
        self._require_dataset().add_language(lang)
        return tag

    @_mutation
    def remove_tag(self, group_id: str, key: str) -> Tag:
        group = self._group(group_id)
        tag = find_tag(group, key)
        if tag is None:
            raise KeyError(key)
        group.tags = [item for item in group.tags if item.key != key]
        return tag

    @_mutation
    def update_tag_key(self, group_id: str, old_key: str, new_key: str) -> Tag:
        new_key = (new_key or "").strip()
        if not new_key:
            raise ValueError("Tag key is required.")
        group = self._group(group_id)
        tag = find_tag(group, old_key)
        if tag is None:
            raise KeyError(old_key)
        if new_key != old_key and find_tag(group, new_key) is not None:
            raise ValueError(f"Tag '{new_key}' already exists in '{group.name}'.")
        tag.key = new_key
        tag.translation[DEFAULT_LANGUAGE] = new_key
        return tag

    @_mutation
    def set_translation(self, group_id: str, key: str, lang: str, value: str) -> Tag:
        tag = self._tag(group_id, key)
        tag.translation[lang] = value
        self._require_dataset().add_language(lang)
        return tag

    @_mutation
    def toggle_hidden(self, group_id: str, key: str) -> bool:
        tag = self._tag(group_id, key)
        tag.hidden = not tag.hidden
        return tag.hidden

    @_mutation
    def edit_tag(
        self,
        group_id: str,
        key: str,
        *,
        new_key: str | None = None,
        lang: str | None = None,
        translation: str | None = None,
        toggle_hidden: bool = False,
    ) -> Tag:
        """Rename, translate and toggle one tag as a single edit.

        Nothing changes unless every part of the edit is valid.
        """
        group = self._group(group_id)
        tag = find_tag(group, key)
        if tag is None:
            raise KeyError(key)
        if new_key is not None:
            new_key = new_key.strip()
            if not new_key:
                raise ValueError("Tag key is required.")
            if new_key != key and find_tag(group, new_key) is not None:
                raise ValueError(f"Tag '{new_key}' already exists in '{group.name}'.")

        if new_key is not None and new_key != key:
            tag.key = new_key
            tag.translation[DEFAULT_LANGUAGE] = new_key
        if translation is not None:
            target = lang or self.selected_lang or DEFAULT_LANGUAGE
            tag.translation[target] = translation
            self._require_dataset().add_language(target)
        if toggle_hidden:
            tag.hidden = not tag.hidden
        return tag

    @_mutation
    def reorder_tags(self, group_id: str, from_index: int, to_index: int) -> list[str]:
        group = self._group(group_id)
        size = len(group.tags)
        if 0 <= from_index < size and 0 <= to_index < size:
            item = group.tags.pop(from_index)
            group.tags.insert(to_index, item)
        return [tag.key for tag in group.tags]

    # -- lookups -------------------------------------------------------------

    def get_tag_by_key(self, key: str) -> Tag | None:
        """Exact key first, then the case/underscore-insensitive form."""
        target = normalize_key_for_match(key)
        fallback: Tag | None = None
        for tag in self._require_dataset().iter_tags():
            if tag.key == key:
                return tag
            if fallback is None and normalize_key_for_match(tag.key) == target:
                fallback = tag
        return fallback

    def get_translation(self, key: str, lang: str | None = None) -> str | None:
        tag = self.get_tag_by_key(key)
        if tag is None:
            return None
        return tag.translation.get(lang or self.selected_lang or DEFAULT_LANGUAGE, tag.key)

    def get_suggestions(self, prefix: str, limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[str]:
        needle = (prefix or "").strip().lower()
        if not needle or limit <= 0:
            return []
        needle_norm = needle.replace("_", " ")
        found: list[str] = []
        seen: set[str] = set()
        for tag in self._require_dataset().iter_tags():
            if tag.key in seen:
                continue
            lowered = tag.key.lower()
            if needle in lowered or needle_norm in lowered.replace("_", " "):
                found.append(tag.key)
                seen.add(tag.key)
                if len(found) >= limit:
                    break
        return found

    def _ensure_custom_group(self) -> Group:
        dataset = self._require_dataset()
        category = find_category(dataset, CUSTOM_CATEGORY_NAME)
        if category is None:
            category = Category(id=self.id_factory("cat"), name=CUSTOM_CATEGORY_NAME)
            dataset.categories.append(category)
        group = find_group(category, CUSTOM_GROUP_NAME)
        if group is None:
            group = Group(id=self.id_factory("grp"), name=CUSTOM_GROUP_NAME, color=CUSTOM_GROUP_COLOR)
            category.groups.append(group)
        return group

    @_mutation
    def add_mapping(self, key: str, lang: str, value: str) -> Tag:
        key = (key or "").strip()
        if not key:
            raise ValueError("Tag key is required.")
        self._require_dataset().add_language(lang)
        existing = self.get_tag_by_key(key)
        if existing is not None:
            existing.translation[lang] = value
            return existing
        tag = Tag(key=key, translation={DEFAULT_LANGUAGE: key, lang: value})
        self._ensure_custom_group().tags.append(tag)
        return tag

    # -- prompt editor -------------------------------------------------------

    @property
    def tokens(self) -> list[str]:
        return wrappers.split_tokens(self.prompt_text)

    def _edit_prompt(self, transform: Callable[[str], str]) -> str:
        with self._lock:
            self.prompt_text = transform(self.prompt_text)
            self.mark_dirty()
            return self.prompt_text

    def set_prompt_text(self, text: str, *, raw: bool = False) -> str:
        return self._edit_prompt(lambda _current: (text or "") if raw else wrappers.normalize_prompt(text))

    def format_prompt(self) -> str:
        return self._edit_prompt(wrappers.normalize_prompt)

    def replace_fullwidth_commas(self) -> str:
        return self._edit_prompt(wrappers.replace_fullwidth_commas)

    def toggle_separators(self) -> str:
        return self._edit_prompt(wrappers.toggle_prompt_separators)

    def add_wrapper(self, index: int, kind: str = "{}") -> str:
        return self._edit_prompt(lambda text: wrappers.add_wrapper(text, index, kind))

    def remove_wrapper(self, index: int) -> str:
        return self._edit_prompt(lambda text: wrappers.remove_wrapper(text, index))

    def update_token(self, index: int, token: str) -> str:
        return self._edit_prompt(lambda text: wrappers.update_token(text, index, token))

    def remove_token(self, index: int) -> str:
        return self._edit_prompt(lambda text: wrappers.remove_token(text, index))

    def move_token(self, from_index: int, to_index: int) -> str:
        return self._edit_prompt(lambda text: wrappers.move_token(text, from_index, to_index))

    def insert_token_after(self, index: int, token: str) -> str:
        return self._edit_prompt(lambda text: wrappers.insert_token_after(text, index, token))

    def translate_tokens(self, lang: str | None = None) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for token in self.tokens:
            info = wrappers.token_wrapper_info(token)
            info["token"] = token
            info["translation"] = self.get_translation(info["core"], lang)
            rows.append(info)
        return rows

    # -- legacy presets ------------------------------------------------------

    def _legacy(self, name: str) -> Preset | None:
        return next((preset for preset in self.library.presets if preset.name == name), None)

    @_mutation
    def save_preset(self, name: str) -> Preset:
        name = (name or "").strip()
        if not name:
            raise ValueError("Preset name is required.")
        now = utc_now_iso()
        existing = self._legacy(name)
        if existing is not None:
            existing.text = self.prompt_text
            existing.updated_at = now
            return existing
        preset = Preset(name=name, text=self.prompt_text, updated_at=now)
        self.library.presets.append(preset)
        return preset

    @_mutation
    def load_preset(self, name: str) -> str:
        preset = self._legacy(name)
        if preset is None:
            raise KeyError(name)
        self.prompt_text = preset.text
        return self.prompt_text

    @_mutation
    def delete_preset(self, name: str) -> bool:
        before = len(self.library.presets)
        self.library.presets = [preset for preset in self.library.presets if preset.name != name]
        return len(self.library.presets) != before

    @_mutation
    def rename_preset(self, old_name: str, new_name: str) -> Preset:
        """Rename; renaming onto an existing name merges into that preset."""
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Preset name is required.")
        target = self._legacy(old_name)
        if target is None:
            raise KeyError(old_name)
        now = utc_now_iso()
        conflict = self._legacy(new_name)
        if conflict is not None and conflict is not target:
            conflict.text = target.text
            conflict.updated_at = now
            self.library.presets = [preset for preset in self.library.presets if preset is not target]
            return conflict
        target.name = new_name
        target.updated_at = now
        return target

    # -- extended presets ----------------------------------------------------

    def _preset(self, preset_id: str) -> ExtendedPreset:
        preset = self.library.get_preset(preset_id)
        if preset is None:
            raise KeyError(preset_id)
        return preset

    def _check_folder(self, folder_id: str | None) -> str | None:
        if folder_id and self.library.get_folder(folder_id) is None:
            raise ValueError(f"Unknown folder '{folder_id}'.")
        return folder_id or None

    def _check_unique_preset(self, name: str, preset_type: str, exclude: ExtendedPreset | None = None) -> None:
        for preset in self.library.extended_presets:
            if preset is not exclude and preset.name == name and preset.type == preset_type:
                raise ValueError(f"A {preset_type} preset named '{name}' already exists.")

    @staticmethod
    def _check_type(preset_type: str) -> str:
        if preset_type not in PRESET_TYPES:
            raise ValueError(f"Unsupported preset type '{preset_type}'.")
        return preset_type

    @_mutation
    def create_preset(
        self,
        name: str,
        preset_type: str = "positive",
        content: str | None = None,
        *,
        description: str | None = None,
        tags: list[str] | None = None,
        folder_id: str | None = None,
    ) -> ExtendedPreset:
        name = (name or "").strip()
        if not name:
            raise ValueError("Preset name is required.")
        self._check_type(preset_type)
        self._check_unique_preset(name, preset_type)
        if folder_id is None:
            default = self.library.get_folder(self.library.management.default_folder_id)
            folder_id = default.id if default else None
        now = utc_now_iso()
        preset = ExtendedPreset(
            id=self.id_factory("preset"),
            name=name,
            type=preset_type,
            content=self.prompt_text if content is None else content,
            description=(description or "").strip() or None,
            tags=list(tags or []),
            folder_id=self._check_folder(folder_id),
            created_at=now,
            updated_at=now,
        )
        self.library.extended_presets.append(preset)
        return preset

    @_mutation
    def update_preset(self, preset_id: str, changes: dict[str, Any]) -> ExtendedPreset:
        preset = self._preset(preset_id)
        name = str(changes.get("name", preset.name) or "").strip()
        if not name:
            raise ValueError("Preset name is required.")
        preset_type = self._check_type(str(changes.get("type", preset.type)))
        self._check_unique_preset(name, preset_type, exclude=preset)
        if "folder_id" in changes:
            preset.folder_id = self._check_folder(changes["folder_id"])
        preset.name = name
        preset.type = preset_type
        if "content" in changes:
            preset.content = str(changes["content"] or "")
        if "description" in changes:
            preset.description = str(changes["description"] or "").strip() or None
        if "tags" in changes:
            preset.tags = [str(tag) for tag in changes["tags"] or []]
        preset.updated_at = utc_now_iso()
        return preset

    @_mutation
    def delete_preset_by_id(self, preset_id: str) -> ExtendedPreset:
        preset = self._preset(preset_id)
        self.library.extended_presets = [item for item in self.library.extended_presets if item.id != preset_id]
        return preset

    @_mutation
    def apply_preset(self, preset_id: str) -> str:
        self.prompt_text = self._preset(preset_id).content
        return self.prompt_text

    def list_presets(
        self,
        *,
        folder_id: str | None = None,
        preset_type: str | None = None,
        query: str | None = None,
    ) -> list[ExtendedPreset]:
        management = self.library.management
        items = list(self.library.extended_presets)
        if folder_id:
            items = [preset for preset in items if preset.folder_id == folder_id]
        if preset_type:
            items = [preset for preset in items if preset.type == preset_type]
        if query and query.strip():
            needle = query.strip().lower()
            items = [
                preset
                for preset in items
                if needle in preset.name.lower()
                or needle in preset.content.lower()
                or any(needle in tag.lower() for tag in preset.tags)
            ]
        if management.sort_by == "name":
            items.sort(key=lambda preset: preset.name.lower(), reverse=management.sort_desc)
        elif management.sort_by == "createdAt":
            items.sort(key=lambda preset: preset.created_at, reverse=management.sort_desc)
        else:
            items.sort(key=lambda preset: preset.updated_at, reverse=management.sort_desc)
        return items

    @_mutation
    def set_preset_sort(self, sort_by: str, sort_desc: bool) -> None:
        if sort_by not in PRESET_SORT_FIELDS:
            raise ValueError(f"Unsupported sort field '{sort_by}'.")
        self.library.management.sort_by = sort_by
        self.library.management.sort_desc = bool(sort_desc)

    # -- folders -------------------------------------------------------------

    def _check_unique_folder(self, name: str, exclude: PresetFolder | None = None) -> None:
        for folder in self.library.folders:
            if folder is not exclude and folder.name == name:
                raise ValueError(f"Folder '{name}' already exists.")

    @_mutation
    def create_folder(
        self,
        name: str,
        *,
        description: str | None = None,
        color: str | None = None,
        parent_id: str | None = None,
    ) -> PresetFolder:
        name = (name or "").strip()
        if not name:
            raise ValueError("Folder name is required.")
        self._check_unique_folder(name)
        folder = PresetFolder(
            id=self.id_factory("folder"),
            name=name,
            description=(description or "").strip() or None,
            color=(color or "").strip() or None,
            parent_id=self._check_folder(parent_id),
        )
        self.library.folders.append(folder)
        return folder

    @_mutation
    def update_folder(self, folder_id: str, changes: dict[str, Any]) -> PresetFolder:
        folder = self.library.get_folder(folder_id)
        if folder is None:
            raise KeyError(folder_id)
        # validate everything before touching the folder
        name = folder.name
        if "name" in changes:
            name = str(changes["name"] or "").strip()
            if not name:
                raise ValueError("Folder name is required.")
            self._check_unique_folder(name, exclude=folder)
        parent_id = folder.parent_id
        if "parent_id" in changes:
            parent_id = self._check_folder(changes["parent_id"])
            if folder_ops.would_create_cycle(self.library.folders, folder_id, parent_id):
                raise ValueError("A folder cannot be moved inside itself or one of its descendants.")
        folder.name = name
        folder.parent_id = parent_id
        if "description" in changes:
            folder.description = str(changes["description"] or "").strip() or None
        if "color" in changes:
            folder.color = str(changes["color"] or "").strip() or None
        return folder

    @_mutation
    def move_folder(self, folder_id: str, parent_id: str | None) -> PresetFolder:
        return folder_ops.move_folder(self.library, folder_id, parent_id)

    @_mutation
    def delete_folder(self, folder_id: str) -> PresetFolder:
        return folder_ops.delete_folder(self.library, folder_id)

    @_mutation
    def set_default_folder(self, folder_id: str | None) -> str | None:
        self.library.management.default_folder_id = self._check_folder(folder_id)
        return self.library.management.default_folder_id

    @_mutation
    def select_folder(self, folder_id: str | None) -> str | None:
        self.library.management.selected_folder_id = self._check_folder(folder_id)
        return self.library.management.selected_folder_id

    def folder_path(self, folder_id: str) -> list[str]:
        return folder_ops.folder_path(self.library.folders, folder_id)
