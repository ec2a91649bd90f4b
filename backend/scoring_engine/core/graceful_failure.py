"""
Handling for non-critical steps.

Some steps of a scoring run or a psychometric recalculation must not fail the
surrounding work when they break: event publication, percentile rank,
confidence intervals, one item of a batch. They run inside
``graceful_failure``. The error is logged with the step name and any
identifiers, and execution continues after the block.

Usage:
    with graceful_failure(
        "calculate percentile rank", logger, context={"session_id": session_id}
    ):
        percentile = calculate_percentile_rank(below, total)

    @graceful_failure_decorator("publish item status event")
    def publish(...):
        ...

Identifiers passed as ``context`` appear in the message and are attached to
the record as ``extra`` fields, so the JSON formatter emits them as keys.
"""

import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Mapping, Optional, TypeVar

T = TypeVar("T")


def format_failure(
    operation_name: str,
    error: BaseException,
    context: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Log message for a failed step.

    Example:
        >>> format_failure("calculate percentile rank", ValueError("boom"), {"session_id": 7})
        'Failed to calculate percentile rank (session_id=7): boom'
    """
    details = ""
    if context:
        details = " (" + ", ".join(f"{key}={value}" for key, value in context.items()) + ")"
    return f"Failed to {operation_name}{details}: {error}"


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[Mapping[str, Any]] = None,
) -> Iterator[None]:
    """Run a block whose exceptions are logged and swallowed.

    Args:
        operation_name: What the block does, phrased to follow "Failed to"
        logger: Logger of the calling module
        log_level: Level of the failure record (WARNING by default)
        exc_info: Attach the traceback to the record
        context: Identifiers of the affected session, question or competency
    """
    try:
        yield
    except Exception as e:
        logger.log(
            log_level,
            format_failure(operation_name, e, context),
            exc_info=exc_info,
            extra=dict(context) if context else None,
        )


class GracefulFailureDecorator:
    """
    Function form of ``graceful_failure``.

    The wrapped function returns ``default`` instead of raising. Without an
    explicit logger, failures go to the logger of the wrapped function's
    module, looked up at call time.
    """

    def __init__(
        self,
        operation_name: str,
        *,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.WARNING,
        exc_info: bool = False,
        default: Any = None,
    ):
        self.operation_name = operation_name
        self.logger = logger
        self.log_level = log_level
        self.exc_info = exc_info
        self.default = default

    def __call__(self, func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger = self.logger or logging.getLogger(func.__module__)
                logger.log(
                    self.log_level,
                    format_failure(self.operation_name, e),
                    exc_info=self.exc_info,
                )
                return self.default

        return wrapper


graceful_failure_decorator = GracefulFailureDecorator
