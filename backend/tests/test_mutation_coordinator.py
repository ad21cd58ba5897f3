from __future__ import annotations

import threading
from datetime import date

import anyio

from pipeline_board.domain.opportunity import Opportunity
from pipeline_board.errors import StoreUnavailable, WriteFailure
from pipeline_board.modules.board.mutation_coordinator import OptimisticMutationCoordinator
from pipeline_board.modules.board.reassignment import NoOp, SetCloseDate, SetColumnId
from pipeline_board.repositories.base_repository import OpportunityStore


class _FakeStore(OpportunityStore):
    def __init__(self, items, *, fail_ids=(), fail_list=False):
        self.items = {o.id: o for o in items}
        self.fail_ids = set(fail_ids)
        self.fail_list = fail_list
        self.updates: list[tuple[str, dict]] = []
        self.entered = threading.Event()
        self.gate: threading.Event | None = None

    def list(self):
        if self.fail_list:
            raise StoreUnavailable(message="list down", operation="list", store="opportunities")
        return list(self.items.values())

    def update(self, id, fields):
        self.updates.append((id, dict(fields)))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if id in self.fail_ids:
            raise StoreUnavailable(message="write down", operation="update", store="opportunities", key=id)
        self.items[id] = self.items[id].with_fields(fields)
        return self.items[id]


def _opps():
    return [
        Opportunity(id="A", closeDate=date(2025, 1, 15), quarter="Q1 2025"),
        Opportunity(id="B", closeDate=date(2025, 2, 10), quarter="Q1 2025"),
    ]


def _move_b():
    return SetCloseDate(opportunity_id="B", close_date=date(2025, 4, 1), quarter="Q2 2025")


def test_successful_write_keeps_local_change_and_schedules_reconcile():
    store = _FakeStore(_opps())
    coord = OptimisticMutationCoordinator(store, _opps())
    scheduled = []

    outcome = anyio.run(lambda: coord.submit(_move_b(), schedule=scheduled.append))

    assert outcome.status == "applied"
    assert outcome.ok
    assert coord.find("B").closeDate == date(2025, 4, 1)
    assert store.updates == [("B", {"closeDate": date(2025, 4, 1), "quarter": "Q2 2025"})]
    assert scheduled == [coord.reconcile]


def test_failed_write_restores_snapshot_and_reports_retryable_failure():
    store = _FakeStore(_opps(), fail_ids={"B"})
    errors: list[WriteFailure] = []
    coord = OptimisticMutationCoordinator(store, _opps(), on_error=errors.append)
    snapshot = coord.opportunities
    scheduled = []

    outcome = anyio.run(lambda: coord.submit(_move_b(), schedule=scheduled.append))

    assert outcome.status == "rolled_back"
    assert not outcome.ok
    assert coord.opportunities == snapshot
    assert isinstance(outcome.error, WriteFailure)
    assert outcome.error.retryable is True
    assert outcome.error.opportunity_id == "B"
    assert isinstance(outcome.error.cause, StoreUnavailable)
    assert errors == [outcome.error]
    assert scheduled == []


def test_session_survives_failure_and_other_records_are_independent():
    store = _FakeStore(_opps(), fail_ids={"B"})
    coord = OptimisticMutationCoordinator(store, _opps())

    async def main():
        first = await coord.submit(SetColumnId(opportunity_id="A", column_id="c1"))
        second = await coord.submit(_move_b())
        return first, second

    first, second = anyio.run(main)
    assert first.status == "applied"
    assert second.status == "rolled_back"
    assert coord.find("A").columnId == "c1"
    assert coord.find("B").closeDate == date(2025, 2, 10)


def test_noop_never_reaches_the_store():
    store = _FakeStore(_opps())
    coord = OptimisticMutationCoordinator(store, _opps())
    outcome = anyio.run(lambda: coord.submit(NoOp(reason="unchanged", opportunity_id="B")))
    assert outcome.status == "noop"
    assert store.updates == []


def test_mutation_for_unknown_opportunity_is_noop():
    store = _FakeStore(_opps())
    coord = OptimisticMutationCoordinator(store, _opps())
    outcome = anyio.run(lambda: coord.submit(SetColumnId(opportunity_id="nope", column_id="c1")))
    assert outcome.status == "noop"
    assert outcome.mutation.reason == "unknown_opportunity"
    assert store.updates == []


def test_reconcile_replaces_local_state_and_tolerates_failure():
    server = [Opportunity(id="A", name="renamed on server")]
    store = _FakeStore(server)
    coord = OptimisticMutationCoordinator(store, _opps())

    assert anyio.run(coord.reconcile) is True
    assert coord.opportunities == server
    assert coord.generation == 1

    store.fail_list = True
    assert anyio.run(coord.reconcile) is False
    assert coord.opportunities == server
    assert coord.generation == 1


def test_reconciliation_during_failed_write_wins_over_rollback():
    server_b = Opportunity(id="B", name="server copy", closeDate=date(2025, 3, 3))
    store = _FakeStore([server_b], fail_ids={"B"})
    store.gate = threading.Event()
    coord = OptimisticMutationCoordinator(store, _opps())
    results = []

    async def main():
        async def write():
            results.append(await coord.submit(_move_b()))

        async with anyio.create_task_group() as tg:
            tg.start_soon(write)
            await anyio.to_thread.run_sync(store.entered.wait, 5)
            await coord.reconcile()
            store.gate.set()

    anyio.run(main)
    assert results[0].status == "rolled_back"
    assert coord.opportunities == [server_b]


def test_opportunities_property_returns_a_copy():
    coord = OptimisticMutationCoordinator(_FakeStore([]), _opps())
    view = coord.opportunities
    view.clear()
    assert len(coord.opportunities) == 2
