"""
Sync Dispatcher - Pushes confirmed changes to the external content system.

One external call per record, executed on a bounded thread pool. Each
call has a deadline counted from when its worker picks it up; a call that
misses it is reported as timed out and its eventual result is discarded.
Per-record failures (timeouts, exceptions, Failure results, unknown ids)
are collected into the SyncResult and never abort the batch.

There is no automatic retry: operators resubmit the failed records.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Protocol

from contentsync.domain.errors import ExternalCallFailed
from contentsync.domain.models import ChangeSet, SyncResult
from contentsync.domain.results import Failure, Result

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 5
MAX_WORKERS_LIMIT = 10
DEFAULT_CALL_TIMEOUT = 30.0

# Returned by a worker that saw the cancel flag before sending
_NOT_STARTED = object()


class ContentClient(Protocol):
    """Protocol for the external content system."""

    def update_record(
        self,
        content_type: str,
        record_id: str,
        fields: dict[str, Any],
        timeout: float,
    ) -> Result[None, str]:
        """Apply a partial update to one record."""
        ...


class SyncDispatcher:
    """
    Dispatches a change set, one call per record, in parallel.

    Usage:
        dispatcher = SyncDispatcher(client, max_workers=5, call_timeout=30)
        result = dispatcher.dispatch(user_id, "landing_pages", change_set)
        for record_id, error in result.per_record_errors.items():
            print(record_id, error)
    """

    def __init__(
        self,
        client: ContentClient,
        max_workers: int = DEFAULT_MAX_WORKERS,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        if not 1 <= max_workers <= MAX_WORKERS_LIMIT:
            raise ValueError(
                f"max_workers must be between 1 and {MAX_WORKERS_LIMIT}, got {max_workers}"
            )
        if call_timeout <= 0:
            raise ValueError("call_timeout must be positive")
        self.client = client
        self.max_workers = max_workers
        self.call_timeout = call_timeout

    @staticmethod
    def build_payloads(change_set: ChangeSet) -> dict[str, dict[str, Any]]:
        """Group changes into {record_id: {field: new_value}} in detection order."""
        return {
            record_id: {change.field: change.new_value for change in changes}
            for record_id, changes in change_set.grouped().items()
        }

    def dispatch(
        self,
        user_id: str,
        content_type: str,
        change_set: ChangeSet,
        cancel_event: threading.Event | None = None,
    ) -> SyncResult:
        """
        Send every record's changes and wait for all calls to settle.

        Args:
            user_id: Operator on whose behalf changes are sent
            content_type: Normalized content type
            change_set: Confirmed changes
            cancel_event: When set, records not yet started are skipped

        Returns:
            SyncResult with counts and per-record errors
        """
        payloads = self.build_payloads(change_set)
        if not payloads:
            return SyncResult()

        logger.info(
            "Dispatching %d records (%d field changes) for %s as %s",
            len(payloads),
            len(change_set),
            content_type,
            user_id,
        )

        outcomes: dict[str, Any] = {}
        started: dict[str, float] = {}
        abandoned = False
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            future_to_record = {
                executor.submit(
                    self._send, content_type, record_id, fields, cancel_event, started
                ): record_id
                for record_id, fields in payloads.items()
            }

            pending = set(future_to_record)
            while pending:
                try:
                    done, pending = wait(
                        pending,
                        timeout=self._next_deadline(pending, future_to_record, started),
                        return_when=FIRST_COMPLETED,
                    )
                except KeyboardInterrupt:
                    if cancel_event is None:
                        raise
                    logger.warning("Interrupted; records not yet started will not be sent")
                    cancel_event.set()
                    continue

                for future in done:
                    record_id = future_to_record[future]
                    outcomes[record_id] = self._collect(future, record_id)

                # A call past its deadline is a failure; its late result is ignored
                for future in self._expired(pending, future_to_record, started):
                    record_id = future_to_record[future]
                    logger.warning(
                        "Update of %s exceeded %gs", record_id, self.call_timeout
                    )
                    outcomes[record_id] = Failure(
                        f"Timed out after {self.call_timeout:g}s", recoverable=True
                    )
                    pending.discard(future)
                    abandoned = True
        finally:
            executor.shutdown(wait=not abandoned)

        return self._summarize(payloads, outcomes, cancel_event)

    def _next_deadline(
        self,
        pending: set[Future],
        future_to_record: dict[Future, str],
        started: dict[str, float],
    ) -> float:
        """Seconds until the earliest running call expires."""
        now = time.monotonic()
        remaining = [
            started[future_to_record[future]] + self.call_timeout - now
            for future in pending
            if future_to_record[future] in started
        ]
        return max(min(remaining, default=self.call_timeout), 0.0)

    def _expired(
        self,
        pending: set[Future],
        future_to_record: dict[Future, str],
        started: dict[str, float],
    ) -> list[Future]:
        now = time.monotonic()
        return [
            future
            for future in pending
            if future_to_record[future] in started
            and now - started[future_to_record[future]] >= self.call_timeout
        ]

    def _collect(self, future, record_id: str) -> Any:
        """Settle one future into a Result (or the not-started marker)."""
        try:
            return future.result()
        except TimeoutError:
            return Failure(f"Timed out after {self.call_timeout:g}s", recoverable=True)
        except ExternalCallFailed as e:
            return Failure(e.message, recoverable=True)
        except Exception as e:
            logger.warning("Update of %s raised: %s", record_id, e)
            return Failure(f"{type(e).__name__}: {e}", recoverable=True)

    def _send(
        self,
        content_type: str,
        record_id: str,
        fields: dict[str, Any],
        cancel_event: threading.Event | None,
        started: dict[str, float],
    ) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            return _NOT_STARTED
        started[record_id] = time.monotonic()
        return self.client.update_record(content_type, record_id, fields, self.call_timeout)

    def _summarize(
        self,
        payloads: dict[str, dict[str, Any]],
        outcomes: dict[str, Any],
        cancel_event: threading.Event | None,
    ) -> SyncResult:
        succeeded: list[str] = []
        skipped: list[str] = []
        errors: dict[str, str] = {}

        for record_id in payloads:
            outcome = outcomes[record_id]
            if outcome is _NOT_STARTED:
                skipped.append(record_id)
            elif getattr(outcome, "ok", False):
                succeeded.append(record_id)
            elif isinstance(outcome, Failure):
                errors[record_id] = str(outcome.error)
            else:
                errors[record_id] = f"Unexpected client response: {outcome!r}"

        cancelled = bool(skipped) or (cancel_event is not None and cancel_event.is_set())
        result = SyncResult(
            success_count=len(succeeded),
            failure_count=len(errors),
            per_record_errors=errors,
            succeeded_record_ids=tuple(succeeded),
            skipped_record_ids=tuple(skipped),
            cancelled=cancelled,
        )
        if errors:
            logger.warning(
                "Dispatch finished with %d failures: %s",
                len(errors),
                ", ".join(sorted(errors)),
            )
        logger.info(
            "Dispatch complete: %d succeeded, %d failed, %d not started",
            result.success_count,
            result.failure_count,
            len(skipped),
        )
        return result
