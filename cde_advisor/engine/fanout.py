"""
Bounded per-entity fan-out with deterministic fan-in.

Each engine operation evaluates one entity (channel, stakeholder group,
objective, asset) per task on a ``ThreadPoolExecutor``. Completion order is
arbitrary, so results are collected by entity key and re-assembled in the
caller's entity order before any sort is applied.

Failure model
-------------
  - A task raising ``DecisionSupportError`` (typically ``StoreQueryError``)
    becomes a ``ComputationFailure``; sibling entities still return.
  - Tasks not finished when the deadline passes are cancelled and reported
    as ``ComputationFailure`` carrying a ``ComputationTimeoutError`` message.
    An operation with several stages shares one ``Deadline`` across all of
    its fan-outs; ``timeout_seconds=None`` waits indefinitely.
  - Any other exception is a programming error and propagates.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Optional, TypeVar

from cde_advisor.engine.errors import ComputationTimeoutError, DecisionSupportError
from cde_advisor.models.results import ComputationFailure

logger = logging.getLogger(__name__)

E = TypeVar("E")
R = TypeVar("R")


class Deadline:
    """A monotonic-clock deadline started when an engine operation begins.

    Args:
        timeout_seconds: Budget for the whole operation; ``None`` never expires.
    """

    def __init__(self, timeout_seconds: Optional[float]) -> None:
        self.timeout_seconds = timeout_seconds
        self._expires_at = (
            None if timeout_seconds is None else time.monotonic() + timeout_seconds
        )

    def remaining(self) -> Optional[float]:
        """Seconds left (never negative), or ``None`` without a deadline."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0


@dataclass
class FanOutResult(Generic[E, R]):
    """Per-entity outcomes, both lists in the original entity order."""

    results:  list[tuple[E, R]] = field(default_factory=list)
    failures: list[ComputationFailure] = field(default_factory=list)


def fan_out(
    operation: str,
    entity_type: str,
    entities: Iterable[E],
    key_fn: Callable[[E], str],
    fn: Callable[[E], R],
    max_workers: int = 8,
    timeout_seconds: Optional[float] = 30.0,
    deadline: Optional[Deadline] = None,
) -> FanOutResult[E, R]:
    """Run ``fn`` for every entity concurrently and collect the outcomes.

    Args:
        operation: Engine operation name (recorded on failures).
        entity_type: Kind of entity being evaluated.
        entities: Entities in store order.
        key_fn: Extracts the entity id.
        fn: Per-entity computation.
        max_workers: Upper bound on worker threads.
        timeout_seconds: Deadline for this fan-out alone, or ``None``.
            Ignored when ``deadline`` is given.
        deadline: Operation-wide deadline; the fan-out waits only for the
            time it has left, and submits nothing once it has expired.

    Returns:
        ``FanOutResult`` with successes and failures in entity order.
    """
    if deadline is None:
        deadline = Deadline(timeout_seconds)

    ordered = list(entities)
    if not ordered:
        return FanOutResult()

    outcomes: dict[str, R] = {}
    failed: dict[str, ComputationFailure] = {}

    def _collect(future: Future, key: str) -> None:
        try:
            outcomes[key] = future.result()
        except DecisionSupportError as exc:
            logger.warning("%s failed for %s '%s': %s", operation, entity_type, key, exc)
            failed[key] = ComputationFailure(
                operation=operation, entity_type=entity_type, entity_id=key, error=str(exc)
            )

    def _timed_out(key: str) -> None:
        exc = ComputationTimeoutError(operation, key, deadline.timeout_seconds or 0.0)
        logger.warning("%s timed out for %s '%s'", operation, entity_type, key)
        failed[key] = ComputationFailure(
            operation=operation, entity_type=entity_type, entity_id=key, error=str(exc)
        )

    if deadline.expired:
        for entity in ordered:
            _timed_out(key_fn(entity))
        return _assemble(ordered, key_fn, outcomes, failed)

    workers = max(1, min(max_workers, len(ordered)))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"cde-{operation}")
    futures: dict[Future, str] = {executor.submit(fn, entity): key_fn(entity) for entity in ordered}
    try:
        for future in as_completed(futures, timeout=deadline.remaining()):
            _collect(future, futures[future])
    except FuturesTimeoutError:
        for future, key in futures.items():
            if key in outcomes or key in failed:
                continue
            if future.done():
                _collect(future, key)
                continue
            future.cancel()
            _timed_out(key)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return _assemble(ordered, key_fn, outcomes, failed)


def _assemble(
    ordered: list[E],
    key_fn: Callable[[E], str],
    outcomes: dict[str, R],
    failed: dict[str, ComputationFailure],
) -> FanOutResult[E, R]:
    result: FanOutResult[E, R] = FanOutResult()
    for entity in ordered:
        key = key_fn(entity)
        if key in outcomes:
            result.results.append((entity, outcomes[key]))
        elif key in failed:
            result.failures.append(failed[key])
    return result
