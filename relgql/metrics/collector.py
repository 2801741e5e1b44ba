"""Metrics collection for catalog round trips."""

import statistics
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class CatalogCallMetrics:
    """Metrics for a single catalog statement."""

    call_id: str
    operation: str  # list_tables, describe_table, foreign_keys, ...
    table_name: Optional[str]
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    row_count: Optional[int] = None
    error: Optional[str] = None

    def complete(self, row_count: Optional[int] = None, error: Optional[str] = None):
        """Mark the call as complete and calculate duration."""
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.row_count = row_count
        self.error = error


class MetricsCollector:
    """Collects and aggregates metrics for catalog statements."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._calls: List[CatalogCallMetrics] = []
        self._lock = threading.Lock()

        self._total_calls = 0
        self._total_errors = 0
        self._operation_counts: Dict[str, int] = {}
        self._table_calls: Dict[str, int] = {}
        self._table_errors: Dict[str, int] = {}

    def start_call(self,
                   call_id: str,
                   operation: str,
                   table_name: Optional[str] = None) -> CatalogCallMetrics:
        """Start tracking a catalog statement."""
        metrics = CatalogCallMetrics(
            call_id=call_id,
            operation=operation,
            table_name=table_name,
            start_time=time.time()
        )

        with self._lock:
            self._calls.append(metrics)
            self._total_calls += 1
            self._operation_counts[operation] = self._operation_counts.get(operation, 0) + 1
            if table_name:
                self._table_calls[table_name] = self._table_calls.get(table_name, 0) + 1

            if len(self._calls) > self.max_history:
                self._calls = self._calls[-self.max_history:]

        return metrics

    def complete_call(self,
                      metrics: CatalogCallMetrics,
                      row_count: Optional[int] = None,
                      error: Optional[str] = None):
        metrics.complete(row_count=row_count, error=error)

        if error:
            with self._lock:
                self._total_errors += 1
                if metrics.table_name:
                    self._table_errors[metrics.table_name] = \
                        self._table_errors.get(metrics.table_name, 0) + 1

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics."""
        with self._lock:
            completed = [c for c in self._calls if c.duration_ms is not None]
            failed = [c for c in completed if c.error is not None]
            durations = [c.duration_ms for c in completed if c.error is None]

            duration_stats = {}
            if durations:
                duration_stats = {
                    'min': min(durations),
                    'max': max(durations),
                    'mean': statistics.mean(durations),
                    'median': statistics.median(durations),
                    'total': sum(durations)
                }

            return {
                'summary': {
                    'total_calls': self._total_calls,
                    'total_errors': self._total_errors,
                    'error_rate': self._total_errors / self._total_calls if self._total_calls > 0 else 0
                },
                'operations': dict(self._operation_counts),
                'tables': {
                    'calls': dict(self._table_calls),
                    'errors': dict(self._table_errors)
                },
                'durations_ms': duration_stats,
                'recent_errors': [
                    {
                        'call_id': c.call_id,
                        'operation': c.operation,
                        'table': c.table_name,
                        'error': c.error,
                        'timestamp': datetime.fromtimestamp(c.start_time).isoformat()
                    }
                    for c in failed[-10:]
                ]
            }

    def reset_stats(self):
        """Reset all statistics."""
        with self._lock:
            self._calls.clear()
            self._total_calls = 0
            self._total_errors = 0
            self._operation_counts.clear()
            self._table_calls.clear()
            self._table_errors.clear()
