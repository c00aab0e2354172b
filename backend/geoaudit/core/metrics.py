from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_audit_completed() -> None:
    _inc("audits_completed")


def record_audit_failed() -> None:
    _inc("audits_failed")


def record_rate_limited() -> None:
    _inc("audits_rate_limited")


def record_audit_shed() -> None:
    _inc("audits_shed")


def record_probe_fallback(probe: str) -> None:
    _inc(f"probe_fallbacks.{probe}")


def record_report_sent() -> None:
    _inc("reports_sent")


def record_report_failed() -> None:
    _inc("report_failures")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
