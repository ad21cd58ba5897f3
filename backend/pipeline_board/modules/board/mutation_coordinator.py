"""
Optimistic mutation coordinator.

Owns the session's local opportunity list; nothing else writes to it. A
mutation is applied locally first, then written to the Opportunity Store in a
worker thread. Success schedules a background reconciliation, failure rolls
the mutated record back and reports a retryable `WriteFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Literal

import anyio

from ...domain.opportunity import Opportunity
from ...errors import WriteFailure
from ...observability.logging import get_logger
from ...repositories.base_repository import OpportunityStore
from .reassignment import Mutation, NoOp, Translation, apply_mutation

log = get_logger("mutation_coordinator")

OutcomeStatus = Literal["applied", "rolled_back", "noop"]
Scheduler = Callable[[Callable[[], Awaitable[Any]]], Any]


@dataclass(frozen=True, slots=True)
class MutationOutcome:
    status: OutcomeStatus
    mutation: Translation
    opportunity: Opportunity | None = None
    error: WriteFailure | None = None

    @property
    def ok(self) -> bool:
        return self.status != "rolled_back"


class OptimisticMutationCoordinator:
    def __init__(
        self,
        store: OpportunityStore,
        opportunities: Iterable[Opportunity] = (),
        *,
        on_error: Callable[[WriteFailure], Any] | None = None,
    ) -> None:
        self._store = store
        self._opportunities: list[Opportunity] = list(opportunities or [])
        self._on_error = on_error
        # Bumped whenever a reconciliation replaces local state.
        self._generation = 0

    @property
    def opportunities(self) -> list[Opportunity]:
        return list(self._opportunities)

    @property
    def generation(self) -> int:
        return self._generation

    def find(self, opportunity_id: str) -> Opportunity | None:
        oid = str(opportunity_id or "").strip()
        for o in self._opportunities:
            if o.id == oid:
                return o
        return None

    def replace_all(self, opportunities: Iterable[Opportunity]) -> None:
        self._opportunities = list(opportunities or [])
        self._generation += 1

    def apply_local(self, mutation: Mutation) -> Opportunity | None:
        """Apply synchronously to local state; returns the new record (None if unknown)."""
        updated: Opportunity | None = None
        out: list[Opportunity] = []
        for o in self._opportunities:
            if o.id == mutation.opportunity_id:
                updated = apply_mutation(o, mutation)
                out.append(updated)
            else:
                out.append(o)
        self._opportunities = out
        return updated

    def _restore(self, before: Opportunity, applied: Opportunity) -> bool:
        # Only undo our own write; a later mutation on the same record stays.
        for i, o in enumerate(self._opportunities):
            if o.id == before.id:
                if o != applied:
                    return False
                self._opportunities[i] = before
                return True
        return False

    async def submit(self, mutation: Translation, *, schedule: Scheduler | None = None) -> MutationOutcome:
        if isinstance(mutation, NoOp):
            return MutationOutcome(status="noop", mutation=mutation)

        before = self.find(mutation.opportunity_id)
        if before is None:
            log.info("mutation_unknown_opportunity", opportunity_id=mutation.opportunity_id)
            return MutationOutcome(
                status="noop",
                mutation=NoOp(reason="unknown_opportunity", opportunity_id=mutation.opportunity_id),
            )

        generation = self._generation
        applied = self.apply_local(mutation)
        patch = mutation.as_patch()
        log.info(
            "mutation_applied_locally",
            opportunity_id=mutation.opportunity_id,
            mutation=type(mutation).__name__,
            fields=sorted(patch),
        )

        try:
            stored = await anyio.to_thread.run_sync(self._store.update, mutation.opportunity_id, patch)
        except Exception as e:
            return self._rollback(mutation, before, applied, generation, e)

        log.info(
            "mutation_committed",
            opportunity_id=mutation.opportunity_id,
            mutation=type(mutation).__name__,
        )
        if schedule is not None:
            schedule(self.reconcile)
        return MutationOutcome(status="applied", mutation=mutation, opportunity=stored)

    def _rollback(
        self,
        mutation: Mutation,
        before: Opportunity,
        applied: Opportunity | None,
        generation: int,
        cause: Exception,
    ) -> MutationOutcome:
        if generation != self._generation:
            # A reconciliation already replaced local state; the store's view stands.
            restored = False
        else:
            restored = applied is not None and self._restore(before, applied)

        failure = WriteFailure(
            message="Could not save the change. It has been undone; please try again.",
            opportunity_id=mutation.opportunity_id,
            mutation=mutation,
            retryable=True,
            cause=cause,
        )
        log.warning(
            "mutation_write_failed",
            opportunity_id=mutation.opportunity_id,
            mutation=type(mutation).__name__,
            restored=restored,
            error=str(cause) or type(cause).__name__,
        )
        if self._on_error is not None:
            try:
                self._on_error(failure)
            except Exception:
                log.exception("mutation_error_callback_failed", opportunity_id=mutation.opportunity_id)
        return MutationOutcome(status="rolled_back", mutation=mutation, opportunity=before, error=failure)

    async def reconcile(self) -> bool:
        """
        Replace local state with a fresh store listing. Failures are logged and
        leave local state as-is.
        """
        try:
            fresh = await anyio.to_thread.run_sync(self._store.list)
        except Exception as e:
            log.warning("reconcile_failed", error=str(e) or type(e).__name__)
            return False
        self.replace_all(fresh)
        log.debug("reconciled", count=len(self._opportunities), generation=self._generation)
        return True
