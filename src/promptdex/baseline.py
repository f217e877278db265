"""Baseline dictionary loading from YAML documents.

The baseline lives in up to three documents under one location (a directory or
an HTTP base URL):

* ``default.yaml``: required, defines categories, groups and tag keys,
* ``zh_CN.yaml`` / ``es_ES.yaml``: optional, same shape, tag values are the
  translations for that language.

Each document is a list of ``{name, groups: [{name, color?, tags: {key: value}}]}``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
import yaml

from .errors import BaselineUnavailableError
from .ids import IdFactory, fresh_id
from .models import DEFAULT_LANGUAGE, Category, Dataset, Group, Tag, utc_now_iso

logger = logging.getLogger(__name__)

STRUCTURE_DOCUMENT = "default.yaml"
TRANSLATION_DOCUMENTS: tuple[tuple[str, str], ...] = (
    ("zh_CN", "zh_CN.yaml"),
    ("es_ES", "es_ES.yaml"),
)
FETCH_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class BaselineSource:
    location: str

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(("http://", "https://"))

    def describe(self, document: str) -> str:
        if self.is_remote:
            return f"{self.location.rstrip('/')}/{document}"
        return str(Path(self.location) / document)

    def read_text(self, document: str) -> str:
        if self.is_remote:
            response = requests.get(self.describe(document), timeout=FETCH_TIMEOUT_SECONDS)
            response.raise_for_status()
            return response.text
        return Path(self.describe(document)).read_text(encoding="utf-8")


def _parse_document(text: str, document: str) -> list[dict[str, Any]]:
    parsed = yaml.safe_load(text)
    if not isinstance(parsed, list):
        raise ValueError(f"{document} must contain a list of categories.")
    return [item for item in parsed if isinstance(item, dict)]


def _tag_entries(group: dict[str, Any]) -> dict[Any, Any]:
    tags = group.get("tags")
    return tags if isinstance(tags, dict) else {}


def _groups(category: dict[str, Any]) -> list[dict[str, Any]]:
    groups = category.get("groups")
    if not isinstance(groups, list):
        return []
    return [group for group in groups if isinstance(group, dict)]


def build_structure(document: list[dict[str, Any]], *, id_factory: IdFactory = fresh_id) -> list[Category]:
    categories: list[Category] = []
    for raw_category in document:
        groups: list[Group] = []
        for raw_group in _groups(raw_category):
            tags = [
                Tag(key=str(key), translation={DEFAULT_LANGUAGE: str(key)})
                for key in _tag_entries(raw_group)
                if str(key or "").strip()
            ]
            color = raw_group.get("color")
            groups.append(
                Group(
                    id=id_factory("grp"),
                    name=str(raw_group.get("name") or ""),
                    color=str(color) if color else None,
                    tags=tags,
                )
            )
        categories.append(Category(id=id_factory("cat"), name=str(raw_category.get("name") or ""), groups=groups))
    return categories


def collect_translations(document: list[dict[str, Any]]) -> dict[str, str]:
    translations: dict[str, str] = {}
    for raw_category in document:
        for raw_group in _groups(raw_category):
            for key, value in _tag_entries(raw_group).items():
                if key is None or not str(key):
                    continue
                translations[str(key)] = "" if value is None else str(value)
    return translations


def merge_language(dataset: Dataset, translations: dict[str, str], lang: str) -> None:
    for tag in dataset.iter_tags():
        if tag.key in translations:
            tag.translation[lang] = translations[tag.key] or tag.key
    dataset.add_language(lang)


def load_baseline(source: BaselineSource, *, id_factory: IdFactory = fresh_id) -> Dataset:
    """Build the baseline dataset; only the structure document is mandatory."""
    location = source.describe(STRUCTURE_DOCUMENT)
    try:
        structure = _parse_document(source.read_text(STRUCTURE_DOCUMENT), STRUCTURE_DOCUMENT)
    except (OSError, requests.RequestException, yaml.YAMLError, ValueError) as exc:
        raise BaselineUnavailableError(location, str(exc)) from exc

    dataset = Dataset(
        categories=build_structure(structure, id_factory=id_factory),
        languages=[DEFAULT_LANGUAGE],
        updated_at=utc_now_iso(),
    )

    for lang, document in TRANSLATION_DOCUMENTS:
        try:
            translations = collect_translations(_parse_document(source.read_text(document), document))
        except (OSError, requests.RequestException, yaml.YAMLError, ValueError) as exc:
            logger.warning("%s not found or invalid, %s omitted: %s", source.describe(document), lang, exc)
            continue
        merge_language(dataset, translations, lang)

    logger.info(
        "baseline loaded from %s: categories=%s tags=%s languages=%s",
        source.location,
        len(dataset.categories),
        dataset.tag_count(),
        ",".join(dataset.languages),
    )
    return dataset
