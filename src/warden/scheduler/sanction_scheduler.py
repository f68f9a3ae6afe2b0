"""
Periodic expiry sweeps for temporary sanctions.

One long-lived task per sanction kind wakes every ``interval`` seconds,
snapshots that kind's store and revokes every expired entry through the
Guild Directory. Revocation happens on a fixed-size pool of worker
coroutines so a large backlog cannot flood the Discord API. An entry is
removed from the store only after the directory call succeeded and only if
it was not replaced by a newer sanction in the meantime; anything that fails
stays put and is retried on the next sweep.

Join reconciliation closes the "leave and rejoin to lose the role" loophole:
when a subject joins, an unexpired sanction is reapplied and otherwise the
enforcement is explicitly lifted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Mapping

from warden.datatypes.sanction_datatypes import (
    JoinReconciliation,
    SanctionKey,
    SanctionKind,
    SanctionRecord,
    unix_now,
)
from warden.directory.guild_directory import GuildDirectory
from warden.errors import GuildDirectoryError
from warden.repositories.sanction_repo import SanctionStore
from warden.util.logger import get_logger

logger = get_logger("sanction_scheduler")

DEFAULT_MAX_CONCURRENT_REVOCATIONS = 4
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30.0


class RevokeOutcome(Enum):
    REVOKED = "revoked"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass
class SweepReport:
    """Counters describing one completed sweep of a sanction kind."""

    kind: SanctionKind
    checked: int = 0
    expired: int = 0
    revoked: int = 0
    failed: int = 0
    superseded: int = 0

    def record(self, outcome: RevokeOutcome) -> None:
        if outcome is RevokeOutcome.REVOKED:
            self.revoked += 1
        elif outcome is RevokeOutcome.SUPERSEDED:
            self.superseded += 1
        else:
            self.failed += 1


class SanctionExpiryScheduler:
    """
    Sweeps sanction stores for expired entries and reconciles joining members.

    Args:
        directory: Guild Directory used to resolve members and (un)mute/(un)ban.
        stores: One SanctionStore per sanction kind handled by this scheduler.
        max_concurrent_revocations: Size of the per-sweep worker pool.
        clock: Returns the current time as unix seconds.
        shutdown_grace_seconds: How long shutdown() waits for an in-flight
            sweep to drain before cancelling it.
    """

    def __init__(
        self,
        directory: GuildDirectory,
        stores: Mapping[SanctionKind, SanctionStore],
        *,
        max_concurrent_revocations: int = DEFAULT_MAX_CONCURRENT_REVOCATIONS,
        clock: Callable[[], int] = unix_now,
        shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS,
    ) -> None:
        if max_concurrent_revocations < 1:
            raise ValueError("max_concurrent_revocations must be at least 1")

        self.directory = directory
        self._stores: Dict[SanctionKind, SanctionStore] = dict(stores)
        self._max_workers = max_concurrent_revocations
        self._clock = clock
        self._shutdown_grace_seconds = shutdown_grace_seconds

        self._tasks: Dict[SanctionKind, asyncio.Task[None]] = {}
        self._sweep_locks: Dict[SanctionKind, asyncio.Lock] = {kind: asyncio.Lock() for kind in self._stores}
        self._stop_event = asyncio.Event()

        self._revokers: Dict[SanctionKind, Callable[[SanctionKey], Awaitable[None]]] = {
            SanctionKind.MUTE: self._unmute,
            SanctionKind.BAN: self._unban,
        }
        self._enforcers: Dict[SanctionKind, Callable[[SanctionKey], Awaitable[None]]] = {
            SanctionKind.MUTE: self._mute,
            SanctionKind.BAN: self._ban,
        }
        unsupported = set(self._stores) - set(self._revokers)
        if unsupported:
            raise ValueError(f"No revoke action for sanction kinds: {sorted(str(k) for k in unsupported)}")

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def store(self, kind: SanctionKind) -> SanctionStore:
        """Return the store for ``kind``."""
        try:
            return self._stores[kind]
        except KeyError:
            raise ValueError(f"No sanction store registered for '{kind}'") from None

    async def sanction(
        self,
        kind: SanctionKind,
        subject_id: int,
        scope_id: int,
        duration_seconds: float,
    ) -> SanctionRecord:
        """Record (or replace) a sanction expiring ``duration_seconds`` from now."""
        expires_at = self._clock() + int(duration_seconds)
        return await self.store(kind).upsert(SanctionKey(subject_id, scope_id), expires_at)

    async def lift(self, kind: SanctionKind, subject_id: int, scope_id: int) -> bool:
        """Forget an outstanding sanction early. Returns True if one existed."""
        return await self.store(kind).remove(SanctionKey(subject_id, scope_id))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, kind: SanctionKind, interval: float) -> asyncio.Task[None]:
        """
        Start the periodic sweep for ``kind``, sleeping ``interval`` seconds between cycles.

        Returns the existing task when the sweep is already running.
        """
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self.store(kind)

        task = self._tasks.get(kind)
        if task is not None and not task.done():
            logger.warning("[SANCTION SCHEDULER] %s sweep already running", kind)
            return task

        if self._stop_event.is_set() and not self.running_kinds():
            self._stop_event = asyncio.Event()

        logger.info("[SANCTION SCHEDULER] Starting %s sweep (interval=%.1fs)", kind, interval)
        task = asyncio.create_task(self._run_loop(kind, interval), name=f"warden-{kind}-sweep")
        self._tasks[kind] = task
        return task

    def is_running(self, kind: SanctionKind) -> bool:
        task = self._tasks.get(kind)
        return task is not None and not task.done()

    def running_kinds(self) -> List[SanctionKind]:
        return [kind for kind in self._tasks if self.is_running(kind)]

    async def shutdown(self) -> None:
        """
        Stop all sweeps.

        No new cycle starts once this is called. A cycle already in progress
        is allowed to drain for up to ``shutdown_grace_seconds`` and is
        cancelled after that. Safe to call multiple times.
        """
        self._stop_event.set()
        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._shutdown_grace_seconds)
            for task in pending:
                logger.warning("[SANCTION SCHEDULER] %s did not drain in time; cancelling", task.get_name())
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("[SANCTION SCHEDULER] Scheduler shutdown complete")

    async def _run_loop(self, kind: SanctionKind, interval: float) -> None:
        """Sweep, wait for ``interval`` or a stop request, repeat."""
        try:
            while not self._stop_event.is_set():
                try:
                    report = await self.sweep_once(kind)
                    logger.info(
                        "[SANCTION SCHEDULER] Checked %ss: %d outstanding, %d expired, %d revoked, %d failed",
                        kind, report.checked, report.expired, report.revoked, report.failed,
                    )
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[SANCTION SCHEDULER] Unexpected error during %s sweep: %s", kind, exc)

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("[SANCTION SCHEDULER] %s sweep cancelled", kind)
            raise
        logger.info("[SANCTION SCHEDULER] %s sweep stopped", kind)

    # ------------------------------------------------------------------
    # Sweeping
    # ------------------------------------------------------------------

    async def sweep_once(self, kind: SanctionKind) -> SweepReport:
        """
        Run one sweep over ``kind`` and return what happened.

        Sweeps of the same kind never overlap, so a key never has two revoke
        attempts in flight at once.
        """
        store = self.store(kind)
        async with self._sweep_locks[kind]:
            now = self._clock()
            entries = await store.snapshot()
            expired = [record for record in entries if record.is_expired(now)]
            report = SweepReport(kind=kind, checked=len(entries), expired=len(expired))
            if not expired:
                return report

            queue: asyncio.Queue[SanctionRecord] = asyncio.Queue()
            for record in expired:
                queue.put_nowait(record)

            worker_count = min(self._max_workers, len(expired))
            workers = [
                asyncio.create_task(self._revoke_worker(queue, report), name=f"warden-{kind}-revoke-{index}")
                for index in range(worker_count)
            ]
            await asyncio.gather(*workers)
            return report

    async def _revoke_worker(self, queue: asyncio.Queue[SanctionRecord], report: SweepReport) -> None:
        while True:
            try:
                record = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            report.record(await self._revoke(record))

    async def _revoke(self, record: SanctionRecord) -> RevokeOutcome:
        """Revoke one expired sanction; never raises except on cancellation."""
        store = self.store(record.kind)
        key = record.key
        try:
            current = await store.get(key)
            if current != record:
                logger.debug("[SANCTION SCHEDULER] %s for %s was replaced or lifted; skipping", record.kind, key)
                return RevokeOutcome.SUPERSEDED

            await self._revokers[record.kind](key)
        except asyncio.CancelledError:
            raise
        except GuildDirectoryError as exc:
            logger.warning(
                "[SANCTION SCHEDULER] Could not revoke %s for %s, retrying next sweep: %s",
                record.kind, key, exc,
            )
            return RevokeOutcome.FAILED
        except Exception:
            logger.exception("[SANCTION SCHEDULER] Unexpected error revoking %s for %s", record.kind, key)
            return RevokeOutcome.FAILED

        try:
            await store.remove_if_unchanged(record)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "[SANCTION SCHEDULER] Revoked %s for %s but could not remove it; it will be revoked again",
                record.kind, key,
            )
            return RevokeOutcome.FAILED

        logger.info("[SANCTION SCHEDULER] Revoked expired %s for %s", record.kind, key)
        return RevokeOutcome.REVOKED

    # ------------------------------------------------------------------
    # Join reconciliation
    # ------------------------------------------------------------------

    async def reconcile_on_join(
        self,
        subject_id: int,
        scope_id: int,
        kind: SanctionKind = SanctionKind.MUTE,
    ) -> JoinReconciliation:
        """
        Bring a joining subject's enforcement state in line with the store.

        An outstanding, unexpired sanction is reapplied (idempotent). Otherwise
        the enforcement is explicitly lifted, which also clears role state that
        drifted out of band, and an expired record is dropped.
        """
        key = SanctionKey(subject_id, scope_id)
        store = self.store(kind)
        try:
            record = await store.get(key)
            if record is not None and not record.is_expired(self._clock()):
                await self._enforcers[kind](key)
                logger.info("[SANCTION SCHEDULER] Reapplied %s for %s on join", kind, key)
                return JoinReconciliation.REAPPLIED

            await self._revokers[kind](key)
            if record is not None:
                await store.remove_if_unchanged(record)
            return JoinReconciliation.LIFTED
        except asyncio.CancelledError:
            raise
        except GuildDirectoryError as exc:
            logger.warning("[SANCTION SCHEDULER] Could not reconcile %s for %s on join: %s", kind, key, exc)
            return JoinReconciliation.UNRESOLVED

    # ------------------------------------------------------------------
    # Directory actions per kind
    # ------------------------------------------------------------------

    async def _resolve(self, key: SanctionKey):
        member = await self.directory.resolve_member(key.scope_id, key.subject_id)
        if member is None:
            raise GuildDirectoryError(f"Member {key.subject_id} is not in guild {key.scope_id}")
        return member

    async def _mute(self, key: SanctionKey) -> None:
        await self.directory.apply_mute(await self._resolve(key))

    async def _unmute(self, key: SanctionKey) -> None:
        await self.directory.apply_unmute(await self._resolve(key))

    async def _ban(self, key: SanctionKey) -> None:
        await self.directory.apply_ban(key.scope_id, key.subject_id)

    async def _unban(self, key: SanctionKey) -> None:
        await self.directory.apply_unban(key.scope_id, key.subject_id)
