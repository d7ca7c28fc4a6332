from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic


@dataclass
class RequestSample:
  ts: datetime
  status_code: int
  latency_ms: float


class RuntimeMetrics:
  """Rolling one-hour request window reported by /health/status."""

  window = timedelta(hours=1)

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._samples: deque[RequestSample] = deque()
    self._lock = Lock()

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, status_code=status_code, latency_ms=latency_ms))
      cutoff = now - self.window
      while self._samples and self._samples[0].ts < cutoff:
        self._samples.popleft()

  def snapshot(self) -> dict:
    with self._lock:
      samples = list(self._samples)
    by_class = Counter(f"{s.status_code // 100}xx" for s in samples)
    latencies = sorted(s.latency_ms for s in samples)
    p95 = latencies[max(0, int(len(latencies) * 0.95) - 1)] if latencies else 0.0
    avg = (sum(latencies) / len(latencies)) if latencies else 0.0
    return {
      "uptimeSeconds": self.uptime_seconds(),
      "requestCount1h": len(samples),
      "statusClasses1h": dict(by_class),
      "avgLatencyMs1h": round(avg, 2),
      "p95LatencyMs1h": round(p95, 2),
    }


runtime_metrics = RuntimeMetrics()
