"""Name-keyed structural diff between a customized dictionary and its baseline.

Categories, groups and tags are matched by ``name`` / ``key``, never by id:
ids are regenerated on every creation path (including inside
``apply_diff``) and are therefore not stable anchors.

A diff is sparse.  Entries exist only for categories and groups carrying at
least one change, and ``updated`` entries carry only the changed fields.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import to_bool
from .errors import MalformedInputError
from .ids import IdFactory, fresh_id
from .models import KNOWN_LANGUAGES, Category, Dataset, Group, Tag

logger = logging.getLogger(__name__)


def _name(value: Any) -> str:
    return str(value or "").strip()


def _name_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_name(item) for item in value if _name(item)]


@dataclass
class TagUpdate:
    key: str
    translation: dict[str, str] | None = None
    hidden: bool | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> TagUpdate | None:
        if not isinstance(raw, dict) or not _name(raw.get("key")):
            return None
        translation = raw.get("translation")
        if isinstance(translation, dict):
            translation = {str(lang): "" if text is None else str(text) for lang, text in translation.items()}
        else:
            translation = None
        hidden = raw.get("hidden")
        if hidden is not None:
            try:
                hidden = to_bool(hidden)
            except ValueError as exc:
                raise MalformedInputError(f"Tag '{raw.get('key')}' has an invalid hidden flag.") from exc
        return cls(key=_name(raw.get("key")), translation=translation or None, hidden=hidden)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key}
        if self.translation:
            payload["translation"] = dict(self.translation)
        if self.hidden is not None:
            payload["hidden"] = self.hidden
        return payload

    def is_empty(self) -> bool:
        return not self.translation and self.hidden is None


@dataclass
class GroupDiff:
    name: str
    color: str | None = None
    added: list[Tag] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    updated: list[TagUpdate] = field(default_factory=list)
    order: list[str] | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> GroupDiff | None:
        if not isinstance(raw, dict) or not _name(raw.get("name")):
            return None
        color = raw.get("color")
        added_raw = raw.get("added") if isinstance(raw.get("added"), list) else []
        updated_raw = raw.get("updated") if isinstance(raw.get("updated"), list) else []
        order = raw.get("order")
        return cls(
            name=_name(raw.get("name")),
            color=None if color is None else str(color),
            added=[tag for tag in (Tag.from_dict(item) for item in added_raw) if tag is not None],
            removed=_name_list(raw.get("removed")),
            updated=[upd for upd in (TagUpdate.from_dict(item) for item in updated_raw) if upd is not None],
            order=_name_list(order) if isinstance(order, list) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.color is not None:
            payload["color"] = self.color
        if self.added:
            payload["added"] = [tag.to_dict() for tag in self.added]
        if self.removed:
            payload["removed"] = list(self.removed)
        if self.updated:
            payload["updated"] = [update.to_dict() for update in self.updated]
        if self.order is not None:
            payload["order"] = list(self.order)
        return payload

    def is_empty(self) -> bool:
        return self.color is None and not self.added and not self.removed and not self.updated and self.order is None


@dataclass
class CategoryDiff:
    name: str
    added_groups: list[Group] = field(default_factory=list)
    removed_groups: list[str] = field(default_factory=list)
    groups: list[GroupDiff] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> CategoryDiff | None:
        if not isinstance(raw, dict) or not _name(raw.get("name")):
            return None
        added_raw = raw.get("addedGroups") if isinstance(raw.get("addedGroups"), list) else []
        groups_raw = raw.get("groups") if isinstance(raw.get("groups"), list) else []
        return cls(
            name=_name(raw.get("name")),
            added_groups=[g for g in (Group.from_dict(item, id_factory=id_factory) for item in added_raw) if g is not None],
            removed_groups=_name_list(raw.get("removedGroups")),
            groups=[g for g in (GroupDiff.from_dict(item) for item in groups_raw) if g is not None],
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.added_groups:
            payload["addedGroups"] = [group.to_dict() for group in self.added_groups]
        if self.removed_groups:
            payload["removedGroups"] = list(self.removed_groups)
        if self.groups:
            payload["groups"] = [group.to_dict() for group in self.groups]
        return payload

    def is_empty(self) -> bool:
        return not self.added_groups and not self.removed_groups and not self.groups


@dataclass
class Diff:
    categories: list[CategoryDiff] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any, *, id_factory: IdFactory = fresh_id) -> Diff:
        if not isinstance(raw, dict):
            raise MalformedInputError("customDiff must be an object.")
        categories = raw.get("categories", [])
        if not isinstance(categories, list):
            raise MalformedInputError("customDiff.categories must be an array.")
        entries = [CategoryDiff.from_dict(item, id_factory=id_factory) for item in categories]
        return cls(categories=[entry for entry in entries if entry is not None])

    def to_dict(self) -> dict[str, Any]:
        return {"categories": [entry.to_dict() for entry in self.categories]}

    def is_empty(self) -> bool:
        return not self.categories

    def summary(self) -> dict[str, int]:
        groups = [group for entry in self.categories for group in entry.groups]
        return {
            "categories": len(self.categories),
            "added_groups": sum(len(entry.added_groups) for entry in self.categories),
            "removed_groups": sum(len(entry.removed_groups) for entry in self.categories),
            "changed_groups": len(groups),
            "added_tags": sum(len(group.added) for group in groups),
            "removed_tags": sum(len(group.removed) for group in groups),
            "updated_tags": sum(len(group.updated) for group in groups),
            "reordered_groups": sum(1 for group in groups if group.order is not None),
        }


def _compared_languages(base: Dataset, current: Dataset) -> list[str]:
    out: list[str] = []
    for lang in (*KNOWN_LANGUAGES, *base.languages, *current.languages):
        if lang not in out:
            out.append(lang)
    return out


def _diff_tag(base_tag: Tag, current_tag: Tag, languages: list[str]) -> TagUpdate | None:
    update = TagUpdate(key=current_tag.key)
    for lang in languages:
        before = base_tag.translation.get(lang, "")
        after = current_tag.translation.get(lang, "")
        if before != after:
            if update.translation is None:
                update.translation = {}
            update.translation[lang] = after
    if bool(base_tag.hidden) != bool(current_tag.hidden):
        update.hidden = bool(current_tag.hidden)
    return None if update.is_empty() else update


def _diff_group(base_group: Group, current_group: Group, languages: list[str]) -> GroupDiff:
    entry = GroupDiff(name=current_group.name)
    if (current_group.color or "") != (base_group.color or ""):
        # "" marks a cleared color so apply can restore "no color".
        entry.color = current_group.color or ""

    base_tags = {tag.key: tag for tag in base_group.tags}
    current_tags = {tag.key: tag for tag in current_group.tags}
    for key, tag in current_tags.items():
        base_tag = base_tags.get(key)
        if base_tag is None:
            entry.added.append(tag.clone())
            continue
        update = _diff_tag(base_tag, tag, languages)
        if update is not None:
            entry.updated.append(update)
    entry.removed = [key for key in base_tags if key not in current_tags]

    base_order = [tag.key for tag in base_group.tags]
    current_order = [tag.key for tag in current_group.tags]
    if base_order != current_order:
        entry.order = current_order
    return entry


def _diff_category(base_category: Category, current_category: Category, languages: list[str]) -> CategoryDiff:
    entry = CategoryDiff(name=current_category.name)
    base_groups = {group.name: group for group in base_category.groups}
    current_groups = {group.name: group for group in current_category.groups}
    for name, group in current_groups.items():
        base_group = base_groups.get(name)
        if base_group is None:
            entry.added_groups.append(group.clone())
            continue
        group_diff = _diff_group(base_group, group, languages)
        if not group_diff.is_empty():
            entry.groups.append(group_diff)
    entry.removed_groups = [name for name in base_groups if name not in current_groups]
    return entry


def build_diff(base: Dataset, current: Dataset) -> Diff:
    """Describe ``current`` as a sparse change-set against ``base``."""
    languages = _compared_languages(base, current)
    base_categories = {category.name: category for category in base.categories}
    current_categories = {category.name: category for category in current.categories}

    entries: list[CategoryDiff] = []
    for name, category in current_categories.items():
        base_category = base_categories.get(name)
        if base_category is None:
            entry = CategoryDiff(name=name, added_groups=[group.clone() for group in category.groups])
        else:
            entry = _diff_category(base_category, category, languages)
        if not entry.is_empty():
            entries.append(entry)

    for name, base_category in base_categories.items():
        if name in current_categories:
            continue
        entry = CategoryDiff(name=name, removed_groups=[group.name for group in base_category.groups])
        if not entry.is_empty():
            entries.append(entry)
    return Diff(categories=entries)


def _merge_translation(tag: Tag, changes: dict[str, str]) -> None:
    for lang, text in changes.items():
        if text:
            tag.translation[lang] = text
        else:
            tag.translation.pop(lang, None)


def _upsert_tag(group: Group, tag: Tag) -> None:
    for index, existing in enumerate(group.tags):
        if existing.key == tag.key:
            group.tags[index] = tag
            return
    group.tags.append(tag)


def _reorder_tags(group: Group, order: list[str]) -> None:
    by_key: dict[str, Tag] = {}
    for tag in group.tags:
        by_key.setdefault(tag.key, tag)
    placed: set[str] = set()
    reordered: list[Tag] = []
    for key in order:
        tag = by_key.get(key)
        if tag is None or key in placed:
            continue
        placed.add(key)
        reordered.append(tag)
    reordered.extend(tag for tag in group.tags if tag.key not in placed)
    group.tags = reordered


def _apply_group_diff(group: Group, entry: GroupDiff, dataset: Dataset) -> None:
    if entry.color is not None:
        group.color = entry.color or None

    for tag in entry.added:
        copy = tag.clone()
        _upsert_tag(group, copy)
        for lang in copy.translation:
            dataset.add_language(lang)

    for key in entry.removed:
        group.tags = [tag for tag in group.tags if tag.key != key]

    tags_by_key = {tag.key: tag for tag in group.tags}
    for update in entry.updated:
        tag = tags_by_key.get(update.key)
        if tag is None:
            logger.debug("diff update skipped: tag %r no longer in group %r", update.key, group.name)
            continue
        if update.translation:
            _merge_translation(tag, update.translation)
            for lang in update.translation:
                dataset.add_language(lang)
        if update.hidden is not None:
            tag.hidden = update.hidden

    if entry.order:
        _reorder_tags(group, entry.order)


def _apply_category_diff(category: Category, entry: CategoryDiff, dataset: Dataset, id_factory: IdFactory) -> None:
    for snapshot in entry.added_groups:
        group = snapshot.clone()
        group.id = id_factory("grp")
        for tag in group.tags:
            for lang in tag.translation:
                dataset.add_language(lang)
        for index, existing in enumerate(category.groups):
            if existing.name == group.name:
                category.groups[index] = group
                break
        else:
            category.groups.append(group)

    for name in entry.removed_groups:
        category.groups = [group for group in category.groups if group.name != name]

    groups_by_name = {group.name: group for group in category.groups}
    for group_entry in entry.groups:
        group = groups_by_name.get(group_entry.name)
        if group is None:
            group = Group(id=id_factory("grp"), name=group_entry.name, color=group_entry.color or None)
            category.groups.append(group)
            groups_by_name[group.name] = group
        _apply_group_diff(group, group_entry, dataset)


def apply_diff(target: Dataset, diff: Diff, *, id_factory: IdFactory = fresh_id) -> Dataset:
    """Replay ``diff`` onto ``target`` in place and return it.

    The work happens on a private copy that replaces ``target``'s contents
    only once every entry has been applied.
    """
    working = target.clone()
    categories_by_name = {category.name: category for category in working.categories}
    for entry in diff.categories:
        category = categories_by_name.get(entry.name)
        if category is None:
            category = Category(id=id_factory("cat"), name=entry.name)
            working.categories.append(category)
            categories_by_name[entry.name] = category
        _apply_category_diff(category, entry, working, id_factory)
        if entry.removed_groups and not entry.added_groups and not entry.groups and not category.groups:
            working.categories = [item for item in working.categories if item is not category]
            del categories_by_name[entry.name]

    target.categories = working.categories
    target.languages = working.languages
    return target


def _canonical(dataset: Dataset) -> dict[str, dict[str, tuple[str, list[tuple[str, dict[str, str], bool]]]]]:
    out: dict[str, dict[str, tuple[str, list[tuple[str, dict[str, str], bool]]]]] = {}
    for category in dataset.categories:
        if not category.groups:
            continue
        groups = out.setdefault(category.name, {})
        for group in category.groups:
            tags = [
                (tag.key, {lang: text for lang, text in tag.translation.items() if text}, bool(tag.hidden))
                for tag in group.tags
            ]
            groups[group.name] = (group.color or "", tags)
    return out


def datasets_equivalent(left: Dataset, right: Dataset) -> bool:
    """Compare two dictionaries ignoring ids, empty categories and group positions."""
    return _canonical(left) == _canonical(right)
