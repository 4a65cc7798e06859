# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Transaction runner with retry on transient store contention.

Runs a unit of work inside one store transaction, commits on success, rolls
back on failure and re-runs the whole unit in a fresh transaction when the
failure is classified as transient (deadlock, lock wait timeout,
serialization failure, write conflict). Every other error propagates
unchanged after the rollback.
"""

import os
import re
import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol, Tuple, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar('T')


class IsolationLevel(str, Enum):
    """Transaction isolation levels understood by the transactional stores."""
    READ_UNCOMMITTED = "read_uncommitted"
    READ_COMMITTED = "read_committed"
    REPEATABLE_READ = "repeatable_read"
    SERIALIZABLE = "serializable"


class ErrorClass(str, Enum):
    """Outcome of classifying a failed unit of work."""
    TRANSIENT = "transient"
    TERMINAL = "terminal"


# Relational phrasings first, then the MongoDB phrasings of the same conditions
DEFAULT_RETRYABLE_ERROR_PATTERNS: Tuple[str, ...] = (
    r"deadlock",
    r"lock wait timeout",
    r"could not serialize access",
    r"serialization failure",
    r"write ?conflict",
    r"unable to acquire .*lock",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential-backoff retry configuration."""
    max_attempts: int = 3
    retryable_error_patterns: Tuple[str, ...] = DEFAULT_RETRYABLE_ERROR_PATTERNS
    backoff_base_ms: float = 1000.0
    backoff_exponent: float = 1.5

    def delay_ms(self, attempt_index: int) -> float:
        """Backoff before retrying after the given 0-based attempt."""
        return self.backoff_base_ms * (self.backoff_exponent ** attempt_index)


@dataclass(frozen=True)
class TransactionOptions:
    """Per-run transaction settings."""
    isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


class Transaction(Protocol):
    """Handle on an open store transaction."""

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


class TransactionalStore(Protocol):
    """Store able to open isolated transactions."""

    def begin(self, isolation_level: IsolationLevel) -> Transaction:
        ...


def classify_error(
    error: BaseException,
    patterns: Iterable[str] = DEFAULT_RETRYABLE_ERROR_PATTERNS
) -> ErrorClass:
    """
    Classify an error by matching its message against retryable patterns.

    Matching is a case-insensitive regular-expression search, so a pattern
    may match anywhere in the message.

    Args:
        error: Exception raised by the unit of work or the store
        patterns: Regular expressions identifying transient errors

    Returns:
        ErrorClass.TRANSIENT if any pattern matches, ErrorClass.TERMINAL otherwise
    """
    message = str(error)
    for pattern in patterns:
        if re.search(pattern, message, re.IGNORECASE):
            return ErrorClass.TRANSIENT
    return ErrorClass.TERMINAL


class PatternErrorClassifier:
    """
    Callable classifier bound to a fixed set of patterns.

    Swap this for another callable with the same signature to support a store
    with different error phrasing; the retry loop does not change.
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_RETRYABLE_ERROR_PATTERNS):
        self.patterns = tuple(patterns)

    def __call__(self, error: BaseException) -> ErrorClass:
        return classify_error(error, self.patterns)

    def is_transient(self, error: BaseException) -> bool:
        return self(error) == ErrorClass.TRANSIENT


class TransactionRunner:
    """
    Executes units of work atomically with bounded retry.

    The unit of work must not have effects outside the transaction, because a
    retried attempt starts over from a brand-new transaction and everything
    written by the failed attempt has been rolled back.
    """

    def __init__(
        self,
        store: TransactionalStore,
        options: Optional[TransactionOptions] = None,
        sleep: Callable[[float], None] = time.sleep,
        classifier_factory: Callable[[Iterable[str]], Callable[[BaseException], ErrorClass]] = PatternErrorClassifier
    ):
        """
        Initialize the transaction runner.

        Args:
            store: Transactional store used to open transactions
            options: Default isolation level and retry policy
            sleep: Delay primitive taking seconds, used between attempts
            classifier_factory: Builds an error classifier from retry patterns
        """
        self.store = store
        self.options = options or TransactionOptions()
        self.sleep = sleep
        self.classifier_factory = classifier_factory

    def run(self, work: Callable[[Transaction], T], options: Optional[TransactionOptions] = None) -> T:
        """
        Run ``work`` in a transaction, retrying on transient errors.

        Args:
            work: Function taking the open transaction and returning a result
            options: Overrides for this run only

        Returns:
            The value returned by ``work`` on the committed attempt

        Raises:
            The original exception when it is not transient or when
            ``max_attempts`` attempts have failed.
        """
        run_options = options or self.options
        policy = run_options.retry_policy
        classify = self.classifier_factory(policy.retryable_error_patterns)
        isolation_level = IsolationLevel(run_options.isolation_level)
        attempt = 0

        with tracer.start_as_current_span(
            "transaction.run",
            attributes={
                "db.transaction.isolation_level": isolation_level.value,
                "db.transaction.max_attempts": policy.max_attempts
            }
        ) as span:
            while True:
                # Opening the transaction can itself time out waiting on the store
                transaction = None
                try:
                    transaction = self.store.begin(isolation_level)
                    result = work(transaction)
                    transaction.commit()
                except Exception as error:
                    if transaction is not None:
                        self._rollback(transaction, error)

                    error_class = classify(error)
                    span.add_event("transaction.attempt_failed", {
                        "attempt": attempt + 1,
                        "error.class": error_class.value,
                        "error.type": error.__class__.__name__
                    })

                    if error_class != ErrorClass.TRANSIENT:
                        span.set_status(Status(StatusCode.ERROR, str(error)))
                        raise

                    if attempt + 1 >= policy.max_attempts:
                        logger.error(
                            "Transaction failed after all retries",
                            extra={
                                "extra_fields": {
                                    "total_attempts": attempt + 1,
                                    "error": str(error)
                                }
                            }
                        )
                        span.set_status(Status(StatusCode.ERROR, str(error)))
                        raise

                    delay_ms = policy.delay_ms(attempt)
                    logger.warning(
                        "Transaction failed with transient error, retrying",
                        extra={
                            "extra_fields": {
                                "attempt": attempt + 1,
                                "max_attempts": policy.max_attempts,
                                "retry_delay_ms": delay_ms,
                                "error": str(error)
                            }
                        }
                    )
                    self.sleep(delay_ms / 1000.0)
                    attempt += 1
                    continue

                span.set_attribute("db.transaction.attempts", attempt + 1)
                span.set_status(Status(StatusCode.OK))
                return result

    def _rollback(self, transaction: Transaction, cause: BaseException) -> None:
        """Roll back after a failure without masking the original error."""
        try:
            transaction.rollback()
        except Exception as rollback_error:
            logger.error(
                "Transaction rollback failed",
                extra={
                    "extra_fields": {
                        "error": str(rollback_error),
                        "cause": str(cause)
                    }
                },
                exc_info=True
            )


def create_transaction_runner(store: TransactionalStore) -> TransactionRunner:
    """
    Factory function to create a transaction runner with configuration from environment.

    Returns:
        TransactionRunner: Configured transaction runner
    """
    policy = RetryPolicy(
        max_attempts=int(os.getenv('TX_MAX_ATTEMPTS', '3')),
        backoff_base_ms=float(os.getenv('TX_BACKOFF_BASE_MS', '1000')),
        backoff_exponent=float(os.getenv('TX_BACKOFF_EXPONENT', '1.5'))
    )
    options = TransactionOptions(
        isolation_level=IsolationLevel(os.getenv('TX_ISOLATION_LEVEL', IsolationLevel.READ_COMMITTED.value)),
        retry_policy=policy
    )
    return TransactionRunner(store, options)
