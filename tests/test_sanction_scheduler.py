import asyncio
from types import SimpleNamespace
from typing import Dict, List, Optional, Set, Tuple

import pytest

from warden.datatypes.sanction_datatypes import JoinReconciliation, SanctionKey, SanctionKind
from warden.errors import GuildDirectoryError
from warden.repositories.sanction_repo import SanctionStore
from warden.scheduler.sanction_scheduler import RevokeOutcome, SanctionExpiryScheduler


class FakeClock:
    def __init__(self, now: int = 10_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeDirectory:
    """In-memory GuildDirectory recording every enforcement call."""

    def __init__(self) -> None:
        self.members: Dict[Tuple[int, int], SimpleNamespace] = {}
        self.muted: Set[Tuple[int, int]] = set()
        self.banned: Set[Tuple[int, int]] = set()
        self.failing_subjects: Set[int] = set()
        self.calls: List[Tuple[str, int, int]] = []
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.unban_hook = None

    def add_member(self, scope_id: int, subject_id: int, muted: bool = False) -> None:
        self.members[(scope_id, subject_id)] = SimpleNamespace(id=subject_id, guild=SimpleNamespace(id=scope_id))
        if muted:
            self.muted.add((scope_id, subject_id))

    async def _act(self, action: str, scope_id: int, subject_id: int) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append((action, scope_id, subject_id))
            if subject_id in self.failing_subjects:
                raise GuildDirectoryError(f"{action} failed for {subject_id}")
        finally:
            self.in_flight -= 1

    async def resolve_member(self, scope_id: int, subject_id: int) -> Optional[SimpleNamespace]:
        return self.members.get((scope_id, subject_id))

    async def apply_mute(self, member) -> None:
        await self._act("mute", member.guild.id, member.id)
        self.muted.add((member.guild.id, member.id))

    async def apply_unmute(self, member) -> None:
        await self._act("unmute", member.guild.id, member.id)
        self.muted.discard((member.guild.id, member.id))

    async def apply_ban(self, scope_id: int, subject_id: int) -> None:
        await self._act("ban", scope_id, subject_id)
        self.banned.add((scope_id, subject_id))

    async def apply_unban(self, scope_id: int, subject_id: int) -> None:
        if self.unban_hook is not None:
            await self.unban_hook(scope_id, subject_id)
        await self._act("unban", scope_id, subject_id)
        self.banned.discard((scope_id, subject_id))


@pytest.fixture()
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scheduler_factory(db_connection, directory, clock):
    def build(**kwargs) -> SanctionExpiryScheduler:
        stores = {kind: SanctionStore(db_connection, kind) for kind in SanctionKind}
        return SanctionExpiryScheduler(directory, stores, clock=clock, **kwargs)

    return build


@pytest.mark.asyncio
async def test_expired_mute_is_revoked_and_removed(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    directory.add_member(1, 100, muted=True)
    await scheduler.sanction(SanctionKind.MUTE, 100, 1, 60)

    clock.now += 60
    report = await scheduler.sweep_once(SanctionKind.MUTE)

    assert (report.checked, report.expired, report.revoked, report.failed) == (1, 1, 1, 0)
    assert (1, 100) not in directory.muted
    assert await scheduler.store(SanctionKind.MUTE).get(SanctionKey(100, 1)) is None


@pytest.mark.asyncio
async def test_unexpired_sanctions_are_not_touched(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    directory.add_member(1, 100, muted=True)
    await scheduler.sanction(SanctionKind.MUTE, 100, 1, 60)
    await scheduler.sanction(SanctionKind.BAN, 200, 1, 60)

    clock.now += 59
    mute_report = await scheduler.sweep_once(SanctionKind.MUTE)
    ban_report = await scheduler.sweep_once(SanctionKind.BAN)

    assert mute_report.expired == 0 and ban_report.expired == 0
    assert directory.calls == []
    assert len(await scheduler.store(SanctionKind.MUTE).snapshot()) == 1
    assert len(await scheduler.store(SanctionKind.BAN).snapshot()) == 1


@pytest.mark.asyncio
async def test_failed_revoke_keeps_entry_for_next_sweep(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    directory.failing_subjects.add(300)
    await scheduler.sanction(SanctionKind.BAN, 300, 1, 10)
    await scheduler.sanction(SanctionKind.BAN, 301, 1, 10)

    clock.now += 10
    first = await scheduler.sweep_once(SanctionKind.BAN)

    assert (first.revoked, first.failed) == (1, 1)
    remaining = await scheduler.store(SanctionKind.BAN).snapshot()
    assert [record.key for record in remaining] == [SanctionKey(300, 1)]

    directory.failing_subjects.clear()
    second = await scheduler.sweep_once(SanctionKind.BAN)

    assert (second.revoked, second.failed) == (1, 0)
    assert len(await scheduler.store(SanctionKind.BAN).snapshot()) == 0


@pytest.mark.asyncio
async def test_mute_of_absent_member_is_retried_not_dropped(scheduler_factory, clock) -> None:
    scheduler = scheduler_factory()
    await scheduler.sanction(SanctionKind.MUTE, 404, 1, 5)

    clock.now += 5
    report = await scheduler.sweep_once(SanctionKind.MUTE)

    assert report.failed == 1
    assert await scheduler.store(SanctionKind.MUTE).get(SanctionKey(404, 1)) is not None


@pytest.mark.asyncio
async def test_revocations_never_exceed_worker_pool(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory(max_concurrent_revocations=3)
    directory.delay = 0.01
    for subject_id in range(10):
        await scheduler.sanction(SanctionKind.BAN, subject_id + 1, 1, 1)

    clock.now += 1
    report = await scheduler.sweep_once(SanctionKind.BAN)

    assert report.revoked == 10
    assert 1 < directory.max_in_flight <= 3
    assert len(await scheduler.store(SanctionKind.BAN).snapshot()) == 0


@pytest.mark.asyncio
async def test_resanction_during_revoke_survives(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    store = scheduler.store(SanctionKind.BAN)
    await scheduler.sanction(SanctionKind.BAN, 7, 1, 1)

    async def resanction(scope_id: int, subject_id: int) -> None:
        await store.upsert(SanctionKey(subject_id, scope_id), clock.now + 3600)

    directory.unban_hook = resanction
    clock.now += 1
    await scheduler.sweep_once(SanctionKind.BAN)

    current = await store.get(SanctionKey(7, 1))
    assert current is not None
    assert current.expires_at == clock.now + 3600


@pytest.mark.asyncio
async def test_replaced_entry_is_reported_superseded(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    store = scheduler.store(SanctionKind.BAN)
    stale = await scheduler.sanction(SanctionKind.BAN, 8, 1, 1)
    await scheduler.sanction(SanctionKind.BAN, 8, 1, 100)

    outcome = await scheduler._revoke(stale)

    assert outcome is RevokeOutcome.SUPERSEDED
    assert directory.calls == []
    assert len(await store.snapshot()) == 1


@pytest.mark.asyncio
async def test_lift_forgets_sanction(scheduler_factory) -> None:
    scheduler = scheduler_factory()
    await scheduler.sanction(SanctionKind.MUTE, 1, 2, 60)

    assert await scheduler.lift(SanctionKind.MUTE, 1, 2) is True
    assert await scheduler.lift(SanctionKind.MUTE, 1, 2) is False


@pytest.mark.asyncio
async def test_join_with_active_mute_reapplies_it(scheduler_factory, directory) -> None:
    scheduler = scheduler_factory()
    directory.add_member(5, 50)
    await scheduler.sanction(SanctionKind.MUTE, 50, 5, 600)

    outcome = await scheduler.reconcile_on_join(50, 5)

    assert outcome is JoinReconciliation.REAPPLIED
    assert (5, 50) in directory.muted
    assert len(await scheduler.store(SanctionKind.MUTE).snapshot()) == 1


@pytest.mark.asyncio
async def test_join_with_expired_mute_lifts_and_drops_it(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    directory.add_member(5, 51, muted=True)
    await scheduler.sanction(SanctionKind.MUTE, 51, 5, 10)

    clock.now += 10
    outcome = await scheduler.reconcile_on_join(51, 5)

    assert outcome is JoinReconciliation.LIFTED
    assert (5, 51) not in directory.muted
    assert len(await scheduler.store(SanctionKind.MUTE).snapshot()) == 0


@pytest.mark.asyncio
async def test_join_without_sanction_clears_stray_role(scheduler_factory, directory) -> None:
    scheduler = scheduler_factory()
    directory.add_member(5, 52, muted=True)

    outcome = await scheduler.reconcile_on_join(52, 5)

    assert outcome is JoinReconciliation.LIFTED
    assert ("unmute", 5, 52) in directory.calls


@pytest.mark.asyncio
async def test_join_directory_failure_is_unresolved(scheduler_factory, directory) -> None:
    scheduler = scheduler_factory()
    await scheduler.sanction(SanctionKind.MUTE, 53, 5, 600)

    outcome = await scheduler.reconcile_on_join(53, 5)

    assert outcome is JoinReconciliation.UNRESOLVED
    assert len(await scheduler.store(SanctionKind.MUTE).snapshot()) == 1


@pytest.mark.asyncio
async def test_start_sweeps_immediately_and_shutdown_stops(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory()
    await scheduler.sanction(SanctionKind.BAN, 9, 1, 1)
    clock.now += 1

    task = scheduler.start(SanctionKind.BAN, 3600)
    assert scheduler.start(SanctionKind.BAN, 3600) is task
    assert scheduler.running_kinds() == [SanctionKind.BAN]

    for _ in range(100):
        if len(await scheduler.store(SanctionKind.BAN).snapshot()) == 0:
            break
        await asyncio.sleep(0.01)

    await scheduler.shutdown()

    assert ("unban", 1, 9) in directory.calls
    assert task.done()
    assert scheduler.is_running(SanctionKind.BAN) is False


@pytest.mark.asyncio
async def test_shutdown_cancels_a_stuck_sweep_and_keeps_entry(scheduler_factory, directory, clock) -> None:
    scheduler = scheduler_factory(shutdown_grace_seconds=0.05)
    never = asyncio.Event()
    reached = asyncio.Event()

    async def block(scope_id: int, subject_id: int) -> None:
        reached.set()
        await never.wait()

    directory.unban_hook = block
    await scheduler.sanction(SanctionKind.BAN, 11, 1, 1)
    clock.now += 1

    scheduler.start(SanctionKind.BAN, 3600)
    await asyncio.wait_for(reached.wait(), timeout=1)
    await scheduler.shutdown()

    assert scheduler.running_kinds() == []
    assert len(await scheduler.store(SanctionKind.BAN).snapshot()) == 1


def test_invalid_configuration_is_rejected(directory) -> None:
    with pytest.raises(ValueError):
        SanctionExpiryScheduler(directory, {}, max_concurrent_revocations=0)


@pytest.mark.asyncio
async def test_start_rejects_non_positive_interval(scheduler_factory) -> None:
    scheduler = scheduler_factory()

    with pytest.raises(ValueError):
        scheduler.start(SanctionKind.MUTE, 0)
