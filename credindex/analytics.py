"""Sparse service-by-hour access counters."""

from __future__ import annotations

from typing import Dict, List, Optional

from .ranking import RankingEntry

HOURS_PER_DAY = 24


class AccessTracker:
    """Count reads per ``(service, hour_of_day)`` cell.

    Only non-zero cells are stored, so an unknown service or an hour that was
    never hit simply has no entry. Out-of-range hours and ``None`` services
    are ignored rather than reported.
    """

    def __init__(self) -> None:
        self._matrix: Dict[str, Dict[int, int]] = {}

    def record_access(self, service: Optional[str], hour: int) -> None:
        if service is None or not 0 <= hour < HOURS_PER_DAY:
            return
        pattern = self._matrix.setdefault(service, {})
        pattern[hour] = pattern.get(hour, 0) + 1

    def get_pattern(self, service: Optional[str]) -> Dict[int, int]:
        return dict(self._matrix.get(service, {})) if service is not None else {}

    def get_total_access_count(self, service: Optional[str]) -> int:
        if service is None:
            return 0
        return sum(self._matrix.get(service, {}).values())

    def snapshot(self) -> List[RankingEntry]:
        return [RankingEntry(service, sum(pattern.values())) for service, pattern in self._matrix.items()]

    def get_most_accessed(self, top_n: int) -> List[str]:
        """Return up to *top_n* services ordered by total accesses, highest first.

        Services with equal totals come back in no particular order.
        """

        if top_n <= 0:
            return []
        totals = sorted(self.snapshot(), key=lambda entry: entry.count, reverse=True)
        return [entry.key for entry in totals[:top_n]]

    def get_all_services(self) -> List[str]:
        return list(self._matrix)

    def clear(self) -> None:
        self._matrix.clear()

    def __len__(self) -> int:
        return len(self._matrix)


__all__ = ["AccessTracker", "HOURS_PER_DAY"]
