"""Cross-cutting wrappers around the assessment evaluation.

Rate limiting and failure auditing are applied as decorators so the
classifier and planner stay free of I/O. Wrapped callables take
``(assessment, context)`` where context exposes ``user_id`` and
``rate_limit_key``.
"""
import functools
import logging

from .collaborators import AuditAction, AuditEntity, Auditor, RateLimiter
from .errors import CrisisEngineError, RateLimitedError

logger = logging.getLogger(__name__)


def rate_limited(limiter: RateLimiter):
    """Reject calls over quota with RateLimitedError.

    A limiter that itself fails lets the call through: blocking a crisis
    assessment because the quota store is down is the worse outcome.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(assessment, context):
            try:
                result = limiter.check(context.rate_limit_key)
            except Exception as e:
                logger.error(
                    "RATE_LIMITER_UNAVAILABLE",
                    extra={"error": str(e), "action": "ALLOWING_REQUEST"}
                )
                return func(assessment, context)

            if not result.allowed:
                raise RateLimitedError(
                    "Too many requests",
                    retry_after=result.retry_after,
                )
            return func(assessment, context)
        return wrapper
    return decorator


def audited(auditor: Auditor):
    """Send unexpected failures of the wrapped call to the audit sink.

    Expected outcomes (validation, rate limiting) are not audit events.
    The exception is re-raised for the caller to convert.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(assessment, context):
            try:
                return func(assessment, context)
            except CrisisEngineError:
                raise
            except Exception as e:
                try:
                    auditor.log_error(
                        AuditAction.CRISIS_ASSESSMENT.value,
                        AuditEntity.CRISIS_INTERVENTION.value,
                        e,
                        None,
                        None,
                        context.user_id,
                    )
                except Exception as audit_error:
                    logger.error(
                        "AUDIT_SINK_FAILED",
                        extra={"error": str(audit_error)}
                    )
                raise
        return wrapper
    return decorator
