"""
Sync scheduler - one-shot sync and the watch loop
"""
import select
import socket
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import ConfigError, SyncConfig
from ..operations.snapshot import SnapshotError, TreeFingerprint, compute_fingerprint
from ..operations.transfer import RsyncTransfer, TransferOptions, TransferOutcome
from ..utils.ignore_patterns import compile_patterns
from ..utils.logging import log, vlog, warn, error


class StopSignal:
    """
    Stop flag for the watch loop that a signal handler may set.

    threading.Event.set() takes a lock that the interrupted main thread may
    already hold inside wait(). set() here only flips a bool and writes one
    byte to a socketpair; wait() sleeps in select() on the other end.
    """

    def __init__(self):
        self._flag = False
        self._pair = None

    def _sockets(self):
        if self._pair is None:
            self._pair = socket.socketpair()
            for s in self._pair:
                s.setblocking(False)
        return self._pair

    def set(self):
        self._flag = True
        if self._pair is not None:
            try:
                self._pair[1].send(b"\0")
            except OSError:
                pass  # buffer full or closed; the flag is already set

    def is_set(self) -> bool:
        return self._flag

    def wait(self, timeout: Optional[float] = None) -> bool:
        if self._flag:
            return True
        reader = self._sockets()[0]
        if not self._flag:
            select.select([reader], [], [], timeout)
        return self._flag

    def close(self):
        if self._pair is not None:
            for s in self._pair:
                s.close()
        self._pair = None


class InitialSyncError(RuntimeError):
    """The first sync of a watch session failed; the loop is never entered."""

    def __init__(self, outcome: TransferOutcome):
        super().__init__(f"Initial sync failed ({outcome.describe()})")
        self.outcome = outcome


@dataclass
class SyncSession:
    config: SyncConfig
    last_fingerprint: Optional[TreeFingerprint] = None
    sync_count: int = 0


class SyncScheduler:
    """
    Drives rsync for one SyncConfig.

    run_once()  → a single transfer, outcome passed through.
    run_watch() → initial transfer, then poll the local tree every
                  `interval` seconds and transfer again when it changed.
                  Returns after stop() is called.

    Transfers never overlap: each tick fingerprints, compares and (maybe)
    transfers to completion before the next wait starts.
    """

    def __init__(self, config: SyncConfig, executor=None,
                 fingerprint: Callable = compute_fingerprint,
                 stop_event=None):
        self.config = config
        self.executor = executor or RsyncTransfer()
        self.fingerprint = fingerprint
        self.session = SyncSession(config)
        self._stop = stop_event if stop_event is not None else StopSignal()
        self._rules = compile_patterns(config.excludes)

    # ── control ────────────────────────────────────────────────────────────

    def stop(self):
        """Request termination; safe to call from a signal handler."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ── helpers ────────────────────────────────────────────────────────────

    def transfer_options(self, watch: bool = False) -> TransferOptions:
        cfg = self.config
        return TransferOptions(
            compress=cfg.compress,
            delete=cfg.delete,
            excludes=cfg.excludes,
            verbose=cfg.verbose,
            dry_run=False if watch else cfg.dry_run,
            quiet=watch,
        )

    def _transfer(self, watch: bool) -> TransferOutcome:
        return self.executor.execute(self.config.local_path, self.config.endpoint,
                                     self.transfer_options(watch))

    def _snapshot(self) -> TreeFingerprint:
        return self.fingerprint(self.config.local_path, self._rules)

    # ── one-shot ───────────────────────────────────────────────────────────

    def run_once(self) -> TransferOutcome:
        return self._transfer(watch=False)

    # ── watch ──────────────────────────────────────────────────────────────

    def run_watch(self, interval: Optional[int] = None) -> SyncSession:
        interval = self.config.interval if interval is None else interval
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            raise ConfigError(f"Invalid interval: {interval} (must be a positive integer)")

        log(f"Starting file watcher mode (interval: {interval}s)")
        log("Press Ctrl+C to stop watching")

        log("Performing initial sync...")
        outcome = self._transfer(watch=True)
        if not outcome.ok and self.stopped:
            # interrupted mid-transfer; rsync got the same signal
            log("Stopping file watcher...")
            return self.session
        if not outcome.ok:
            error(f"Initial sync failed ({outcome.describe()})")
            raise InitialSyncError(outcome)

        self.session.sync_count = 1
        self.session.last_fingerprint = self._snapshot()
        log("Initial sync completed")
        vlog(f"[watch] baseline {self.session.last_fingerprint} "
             f"({self.session.last_fingerprint.file_count} file(s))")

        try:
            while not self._stop.wait(interval):
                self.tick()
        finally:
            close = getattr(self._stop, "close", None)
            if close:
                close()

        log("Stopping file watcher...")
        return self.session

    def tick(self) -> bool:
        """
        One poll. Returns True if a transfer ran and succeeded.
        On failure the previous fingerprint is kept so the change is retried.
        """
        if self.stopped:
            return False
        try:
            current = self._snapshot()
        except SnapshotError as exc:
            warn(f"Cannot scan local tree: {exc}")
            return False

        if current == self.session.last_fingerprint:
            return False
        if self.stopped:
            return False

        log("Changes detected, syncing...")
        vlog(f"[watch] {self.session.last_fingerprint} → {current}")
        outcome = self._transfer(watch=True)
        if not outcome.ok:
            warn(f"Sync failed ({outcome.describe()}), will retry on next change check")
            return False

        self.session.sync_count += 1
        self.session.last_fingerprint = current
        log(f"Sync completed (total syncs: {self.session.sync_count})")
        return True
