"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_membership_mutations_total: Dict[Tuple[str, str], int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_membership_mutation(*, operation: str, outcome: str) -> None:
    """Count a role change or member removal by its outcome (``allowed`` or an error kind)."""

    with _lock:
        key = (_normalize_label(operation), _normalize_label(outcome))
        _membership_mutations_total[key] += 1


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        membership_total = dict(_membership_mutations_total)

    lines = [
        "# HELP workhub_build_info Build metadata.",
        "# TYPE workhub_build_info gauge",
        (
            f'workhub_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP workhub_process_uptime_seconds Process uptime in seconds.",
        "# TYPE workhub_process_uptime_seconds gauge",
        f"workhub_process_uptime_seconds {uptime:.6f}",
        "# HELP workhub_http_requests_total Total HTTP requests.",
        "# TYPE workhub_http_requests_total counter",
    ]

    for (method, path, status), value in sorted(http_total.items()):
        lines.append(
            (
                f'workhub_http_requests_total{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}",status="{_escape_label(status)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP workhub_http_request_duration_seconds Request duration summary.",
            "# TYPE workhub_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'workhub_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'workhub_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    lines.extend(
        [
            "# HELP workhub_membership_mutations_total Membership role changes and removals by outcome.",
            "# TYPE workhub_membership_mutations_total counter",
        ]
    )
    for (operation, outcome), value in sorted(membership_total.items()):
        lines.append(
            (
                f'workhub_membership_mutations_total{{operation="{_escape_label(operation)}",'
                f'outcome="{_escape_label(outcome)}"}} {value}'
            )
        )

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _membership_mutations_total.clear()
    _started_at = time.time()
