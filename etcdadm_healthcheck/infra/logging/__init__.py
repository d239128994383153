"""Logging infrastructure.

Structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (etcd_cluster, namespace, cluster_uid)
- QueueHandler + QueueListener for non-blocking I/O
- OpenTelemetry trace correlation

Basic usage:
    import logging

    from etcdadm_healthcheck.infra.logging import set_log_context, setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)

    set_log_context(etcd_cluster="etcd-a", namespace="default")
    logger.info("Probing members")  # Includes etcd_cluster and namespace
"""

from etcdadm_healthcheck.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from etcdadm_healthcheck.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    set_log_context,
)
from etcdadm_healthcheck.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
