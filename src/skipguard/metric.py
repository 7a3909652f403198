import logging
import re

from prometheus_client import CollectorRegistry, Counter, Histogram, push_to_gateway

logger = logging.getLogger("skipguard")

push_registry = CollectorRegistry()

api_call_count = Counter(
    "skipguard_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
    registry=push_registry,
)

decision_counter = Counter(
    "skipguard_num_decisions",
    "Number of decisions taken",
    labelnames=["reason", "should_skip"],
    registry=push_registry,
)

hard_failure_counter = Counter(
    "skipguard_num_hard_failures",
    "Number of runs failed because identical content failed before",
    registry=push_registry,
)

cancel_counter = Counter(
    "skipguard_num_cancellations",
    "Number of attempted cancellations of outdated runs",
    labelnames=["result"],
    registry=push_registry,
)

backtrack_depth = Histogram(
    "skipguard_backtrack_depth",
    "Number of commits visited while backtracking",
    buckets=(0, 1, 2, 3, 5, 10, 20, 50),
    registry=push_registry,
)

_ENDPOINT_PATTERNS = [
    (re.compile(r"/actions/runs/\d+/cancel$"), "runs/cancel"),
    (re.compile(r"/actions/runs/\d+$"), "runs/xxx"),
    (re.compile(r"/actions/workflows/\d+/runs"), "workflows/runs"),
    (re.compile(r"/actions/artifacts/\d+/zip$"), "artifacts/zip"),
    (re.compile(r"/actions/artifacts/\d+$"), "artifacts/xxx"),
    (re.compile(r"/actions/artifacts"), "artifacts"),
    (re.compile(r"/commits/[^/]+$"), "commits/xxx"),
]


def _normalize_api_endpoint(endpoint: str) -> str:
    path = endpoint.split("?", 1)[0]
    for pattern, label in _ENDPOINT_PATTERNS:
        if pattern.search(path):
            return label
    return "other"


def record_api_call(endpoint: str) -> None:
    api_call_count.labels(endpoint=_normalize_api_endpoint(endpoint)).inc()


def push_metrics(gateway: str, grouping_key: dict) -> None:
    try:
        push_to_gateway(
            gateway, job="skipguard", registry=push_registry, grouping_key=grouping_key
        )
    except OSError:
        logger.warning("Failed to push metrics to %s", gateway, exc_info=True)
