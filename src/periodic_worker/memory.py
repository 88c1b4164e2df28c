"""Memory sampling for steady-state observation."""

from __future__ import annotations

import os
import resource
import sys
import tracemalloc
from dataclasses import dataclass
from pathlib import Path

_STATM = Path("/proc/self/statm")


@dataclass(frozen=True, slots=True)
class MemorySample:
    rss_bytes: int
    rss_is_peak: bool = False
    traced_current_bytes: int | None = None
    traced_peak_bytes: int | None = None

    def to_log_extra(self) -> dict[str, object]:
        out: dict[str, object] = {"rss_bytes": self.rss_bytes}
        if self.rss_is_peak:
            out["rss_is_peak"] = True
        if self.traced_current_bytes is not None:
            out["traced_current_bytes"] = self.traced_current_bytes
            out["traced_peak_bytes"] = self.traced_peak_bytes
        return out


def _current_rss_bytes() -> int | None:
    try:
        fields = _STATM.read_text(encoding="ascii").split()
    except OSError:
        return None
    return int(fields[1]) * os.sysconf("SC_PAGE_SIZE")


def _peak_rss_bytes() -> int:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes elsewhere.
    return peak if sys.platform == "darwin" else peak * 1024


def sample_memory() -> MemorySample:
    """Sample this process's resident memory and, if active, tracemalloc totals."""

    rss = _current_rss_bytes()
    rss_is_peak = rss is None
    if rss is None:
        rss = _peak_rss_bytes()

    if tracemalloc.is_tracing():
        current, peak = tracemalloc.get_traced_memory()
        return MemorySample(
            rss_bytes=rss,
            rss_is_peak=rss_is_peak,
            traced_current_bytes=current,
            traced_peak_bytes=peak,
        )
    return MemorySample(rss_bytes=rss, rss_is_peak=rss_is_peak)
