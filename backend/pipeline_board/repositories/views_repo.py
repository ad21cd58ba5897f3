from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..domain.view import Column, CustomViewSpec, View
from ..errors import StoreConflict, StoreNotFound, StoreValidation
from .base_repository import ViewStore


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class InMemoryViewStore(ViewStore):
    """
    Thread-safe in-process custom view store.

    Every method that changes active flags does so under one lock, so readers
    never observe two (or zero, mid-switch) active views.
    """

    def __init__(
        self,
        views: Iterable[View] | None = None,
        *,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._lock = threading.Lock()
        self._views: dict[str, View] = {}
        for v in views or []:
            if v.isBuiltIn or v.kind != "custom":
                raise StoreValidation(
                    message="Only custom views can be stored", operation="init", store="views", key=v.id
                )
            self._views[v.id] = v
        self._clock = clock

    def list(self) -> list[View]:
        with self._lock:
            return list(self._views.values())

    def count(self) -> int:
        with self._lock:
            return len(self._views)

    def activate_custom(self, id: str) -> View:
        vid = str(id or "").strip()
        with self._lock:
            target = self._views.get(vid)
            if target is None:
                raise StoreNotFound(message="View not found", operation="activate_custom", store="views", key=vid)
            now = self._clock()
            for k, v in list(self._views.items()):
                if k == vid:
                    self._views[k] = v.model_copy(update={"isActive": True, "lastAccessedAt": now})
                elif v.isActive:
                    self._views[k] = v.model_copy(update={"isActive": False})
            return self._views[vid]

    def deactivate_all_custom(self) -> None:
        with self._lock:
            for k, v in list(self._views.items()):
                if v.isActive:
                    self._views[k] = v.model_copy(update={"isActive": False})

    def create_custom(self, spec: CustomViewSpec) -> View:
        name = str(spec.name or "").strip()
        if not name:
            raise StoreValidation(message="View name is required", operation="create_custom", store="views")

        with self._lock:
            if any(v.name == name for v in self._views.values()):
                raise StoreConflict(
                    message="View name already exists", operation="create_custom", store="views", key=name
                )

            vid = new_id("view")
            columns = []
            for i, title in enumerate(spec.columnTitles):
                color = spec.columnColors[i] if i < len(spec.columnColors) else None
                columns.append(
                    Column(
                        id=new_id("col"),
                        title=str(title).strip() or f"Column {i + 1}",
                        order=i,
                        color=color,
                        viewId=vid,
                    )
                )

            # First view becomes the default; a new default replaces the old one.
            is_default = bool(spec.isDefault) or not self._views
            for k, v in list(self._views.items()):
                update: dict[str, object] = {}
                if v.isActive:
                    update["isActive"] = False
                if is_default and v.isDefault:
                    update["isDefault"] = False
                if update:
                    self._views[k] = v.model_copy(update=update)

            view = View(
                id=vid,
                name=name,
                kind="custom",
                isBuiltIn=False,
                isDefault=is_default,
                isActive=True,
                columns=columns,
                userId=spec.userId,
                organizationId=spec.organizationId,
                lastAccessedAt=self._clock(),
            )
            self._views[vid] = view
            return view
