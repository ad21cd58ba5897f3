from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from ..domain.opportunity import Opportunity
from ..errors import StoreNotFound, StoreValidation
from .base_repository import OpportunityStore


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


# Fields the board is allowed to patch.
_WRITABLE_FIELDS = frozenset(
    {"closeDate", "quarter", "columnId", "forecastCategory", "stage", "confidenceLevel", "amountArr", "name"}
)


class InMemoryOpportunityStore(OpportunityStore):
    """
    Thread-safe in-process opportunity store.

    `update` stamps `updatedAt` and, when a record first moves into
    closedLost, `lostAt`.
    """

    def __init__(
        self,
        opportunities: Iterable[Opportunity] | None = None,
        *,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, Opportunity] = {o.id: o for o in (opportunities or [])}
        self._clock = clock

    def list(self) -> list[Opportunity]:
        with self._lock:
            return list(self._items.values())

    def get(self, id: str) -> Opportunity | None:
        with self._lock:
            return self._items.get(str(id or "").strip())

    def put(self, opportunity: Opportunity) -> Opportunity:
        with self._lock:
            self._items[opportunity.id] = opportunity
            return opportunity

    def update(self, id: str, fields: dict[str, Any]) -> Opportunity:
        oid = str(id or "").strip()
        patch = dict(fields or {})
        unknown = sorted(set(patch) - _WRITABLE_FIELDS)
        if unknown:
            raise StoreValidation(
                message=f"Fields not writable: {', '.join(unknown)}",
                operation="update",
                store="opportunities",
                key=oid,
            )

        with self._lock:
            current = self._items.get(oid)
            if current is None:
                raise StoreNotFound(
                    message="Opportunity not found", operation="update", store="opportunities", key=oid
                )
            now = self._clock()
            data = {**current.model_dump(), **patch, "updatedAt": now}
            if patch.get("stage") == "closedLost" and current.stage != "closedLost":
                data["lostAt"] = now
            try:
                updated = Opportunity.model_validate(data)
            except ValidationError as e:
                raise StoreValidation(
                    message="Invalid opportunity update",
                    operation="update",
                    store="opportunities",
                    key=oid,
                    cause=e,
                ) from e
            self._items[oid] = updated
            return updated
