import math
import datetime
import os

import humanize

from utils import print_event
from metrics import metrics

PROGRESS_STEPS = 1000


class ProgressBar:
    def __init__(self, tag, episode_num, total_steps, progress_steps=PROGRESS_STEPS, unit="steps"):
        self.tag = tag
        self.episode_num = episode_num
        self.total_steps = total_steps
        self.progress_steps = progress_steps
        self.unit = unit
        self.step = 0
        self.timer = datetime.datetime.now()
        self.show_metrics = os.getenv("ML_EXAMPLES_DEBUG") == "1"

    def next(self):
        self.step += 1
        if self.step % self.progress_steps != 0:
            return False

        remaining_steps = math.floor((self.total_steps - self.step) / self.progress_steps)
        delta = datetime.datetime.now() - self.timer
        est_remaining_time = humanize.naturaldelta(delta * remaining_steps)
        print_event(
            self.tag,
            f"\tIteration {self.episode_num}: Processed {self.step}/{self.total_steps} {self.unit}...",
        )
        print_event(self.tag, f"\t\tEstimated time remaining: {est_remaining_time}")

        if self.show_metrics:
            print_event(self.tag, "")
            print_event(self.tag, "\tDebug Metrics")
            for metric_name in metrics.get_all_metric_names():
                total_seconds = metrics.total_seconds(metric_name)
                metric_value = humanize.precisedelta(
                    datetime.timedelta(seconds=total_seconds)
                )
                print_event(self.tag, f"\t\t{metric_name}:\t{metric_value}")
        self.timer = datetime.datetime.now()
        return True
