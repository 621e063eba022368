"""In-memory operational metrics for classification calls."""

from __future__ import annotations

import statistics
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional

# Latency window for avg/p95; older samples are dropped.
MAX_LATENCY_SAMPLES = 1000


@dataclass
class Metrics:
    """Counts and latencies of calls to the classifier service.

    Failures are counted per error kind and successes per result bucket, so
    the page can show e.g. how often the free tier answered 429.
    """
    total_requests: int = 0
    success_requests: int = 0
    failed_requests: int = 0
    latencies_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_LATENCY_SAMPLES))
    last_latency_ms: Optional[float] = None
    failures_by_kind: Counter = field(default_factory=Counter)
    results_by_bucket: Counter = field(default_factory=Counter)

    def record(
        self,
        ok: bool,
        latency_ms: float,
        bucket: Optional[str] = None,
        error_kind: Optional[str] = None,
    ) -> None:
        self.total_requests += 1
        if ok:
            self.success_requests += 1
            if bucket:
                self.results_by_bucket[bucket] += 1
        else:
            self.failed_requests += 1
            if error_kind:
                self.failures_by_kind[error_kind] += 1
        self.last_latency_ms = latency_ms
        self.latencies_ms.append(latency_ms)

    def snapshot(self) -> Dict[str, Any]:
        avg = statistics.mean(self.latencies_ms) if self.latencies_ms else None
        p95 = None
        if len(self.latencies_ms) >= 20:
            xs = sorted(self.latencies_ms)
            p95 = xs[int(0.95 * (len(xs) - 1))]
        return {
            "total_requests": self.total_requests,
            "success_requests": self.success_requests,
            "failed_requests": self.failed_requests,
            "last_latency_ms": self.last_latency_ms,
            "avg_latency_ms": avg,
            "p95_latency_ms": p95,
            "failures_by_kind": dict(self.failures_by_kind),
            "results_by_bucket": dict(self.results_by_bucket),
        }
