from contextlib import contextmanager
from typing import List

import pandas as pd

from utils import print_event


class Metrics:
    """Wall-clock timers accumulated per name, reported by `ProgressBar` in debug mode."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.metrics = {}
        self.metrics_timer = {}

    def get_metric(self, metric_name: str) -> pd.Timedelta:
        return self.metrics[metric_name]

    def total_seconds(self, metric_name: str) -> float:
        return self.metrics[metric_name].total_seconds()

    def get_all_metric_names(self) -> List[str]:
        return list(self.metrics.keys())

    def start(self, metric_name: str):
        self.metrics.setdefault(metric_name, pd.Timedelta(0))
        self.metrics_timer[metric_name] = pd.Timestamp.now()

    def end(self, metric_name: str):
        started = self.metrics_timer.pop(metric_name, None)
        if started is None:
            print_event("metrics", f"ERROR: measure_metric_end: {metric_name} not started!")
            return
        self.metrics[metric_name] += pd.Timestamp.now() - started

    @contextmanager
    def measure(self, metric_name: str):
        self.start(metric_name)
        try:
            yield
        finally:
            self.end(metric_name)


metrics = Metrics()
