from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, Request

from ..models import Group
from ..session import PromptSession
from .settings import WebUISettings


@dataclass(frozen=True)
class Services:
    settings: WebUISettings
    session: PromptSession


def require_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Web UI services are not initialized.")
    return services


def require_session(services: Services = Depends(require_services)) -> PromptSession:
    return services.session


def group_payload(group: Group, *, include_tags: bool = True) -> dict[str, Any]:
    payload = group.to_dict()
    payload["tag_count"] = len(group.tags)
    if not include_tags:
        payload.pop("tags", None)
    return payload


def selection_payload(session: PromptSession) -> dict[str, Any]:
    category = session.current_category
    group = session.current_group
    return {
        "category_index": session.selected_category_index,
        "group_index": session.selected_group_index,
        "category_id": category.id if category else None,
        "group_id": group.id if group else None,
        "search": session.search_query,
        "lang": session.selected_lang,
    }


def not_found(kind: str, identifier: Any) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Unknown {kind} '{identifier}'.")
