"""Context management for structured logging.

Provides automatic context injection into log records using contextvars, so
every line logged while a cluster is being checked carries that cluster's
identity without threading it through each call.

asyncio tasks copy the current context when they are created, so the
per-cluster tasks spawned by the scheduler each see only their own fields.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Set logging context for the current async task.

    Args:
        **kwargs: Key-value pairs to add to logging context,
            e.g. etcd_cluster, namespace, cluster_uid.

    Example:
        ```python
        set_log_context(etcd_cluster="etcd-a", namespace="default")
        logger.info("Probing members")  # Includes etcd_cluster and namespace
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def clear_log_context() -> None:
    """Clear all logging context for the current async task.

    The scheduler calls this at the start of each cluster check so a task
    never carries fields from the cluster checked before it.
    """
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars log context into LogRecords.

    Attached to the queue handler by configure_logging(), so formatters (the
    JSONFormatter in particular) see context fields as record attributes.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject context into log record.

        Args:
            record: The log record to enhance with context.

        Returns:
            True (always allow the record to be logged).
        """
        for key, value in _log_context.get().items():
            # Don't overwrite explicit extra= fields
            if not hasattr(record, key):
                setattr(record, key, value)

        return True
