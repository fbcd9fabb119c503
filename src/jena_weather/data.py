"""
Data object for the Jena weather dataset.

The dataset holds one row every ten minutes from 2009 to 2016, with 14 weather
measurements per row (temperature, pressure, humidity, wind, ...). Features are
windows of past rows and the target is the temperature `delay` rows in the future.
"""
from pathlib import Path
from typing import Iterator, List, Tuple

import numpy as np
import pandas as pd

from data import resolve_source
from exception import InvalidDataShapeException, InvalidHyperparameterException
from utils import print_event

JENA_WEATHER_CSV_URL = (
    "https://storage.googleapis.com/learnjs-data/jena_climate/jena_climate_2009_2016.csv"
)
DATE_TIME_COLUMN = "Date Time"
DATE_TIME_FORMAT = "%d.%m.%Y %H:%M:%S"
TEMPERATURE_COLUMN = "T (degC)"


def _normalize(values: np.ndarray):
    means = values.mean(axis=0)
    stddevs = values.std(axis=0)
    stddevs = np.where(stddevs == 0, 1, stddevs)
    return means, stddevs, (values - means) / stddevs


class JenaWeatherData:
    def __init__(self):
        self.date_time: pd.Series = None
        self.data_column_names: List[str] = []
        self.temperature_column_index = None
        self.data: np.ndarray = None
        self.means: np.ndarray = None
        self.stddevs: np.ndarray = None
        self.normalized_data: np.ndarray = None
        self.normalized_day_of_year: np.ndarray = None
        self.normalized_time_of_day: np.ndarray = None

    def load(self, source: str = JENA_WEATHER_CSV_URL, cache_dir: Path = None):
        csv_path = resolve_source(str(source), cache_dir)
        print_event("jena-weather", f"Loading Jena weather data from {csv_path}...")
        frame = pd.read_csv(csv_path)
        self.load_frame(frame)
        return self

    def load_frame(self, frame: pd.DataFrame):
        if DATE_TIME_COLUMN not in frame.columns:
            raise InvalidDataShapeException(f"Missing column '{DATE_TIME_COLUMN}'")
        frame = frame.copy()
        self.date_time = pd.to_datetime(frame.pop(DATE_TIME_COLUMN), format=DATE_TIME_FORMAT)
        self.data_column_names = list(frame.columns)
        if TEMPERATURE_COLUMN not in self.data_column_names:
            raise InvalidDataShapeException(f"Missing column '{TEMPERATURE_COLUMN}'")
        self.temperature_column_index = self.data_column_names.index(TEMPERATURE_COLUMN)

        self.data = frame.to_numpy(dtype=np.float32)
        self.means, self.stddevs, self.normalized_data = _normalize(self.data)
        self.normalized_data = self.normalized_data.astype(np.float32)

        day_of_year = self.date_time.dt.dayofyear.to_numpy(dtype=np.float32)
        time_of_day = (
            self.date_time.dt.hour * 3600 + self.date_time.dt.minute * 60 + self.date_time.dt.second
        ).to_numpy(dtype=np.float32)
        _, _, self.normalized_day_of_year = _normalize(day_of_year)
        _, _, self.normalized_time_of_day = _normalize(time_of_day)
        self.normalized_day_of_year = self.normalized_day_of_year.astype(np.float32)
        self.normalized_time_of_day = self.normalized_time_of_day.astype(np.float32)
        return self

    @property
    def num_rows(self) -> int:
        return 0 if self.data is None else len(self.data)

    def get_data_column_names(self) -> List[str]:
        return list(self.data_column_names)

    def get_time(self) -> pd.Series:
        return self.date_time

    def get_mean_and_stddev(self, column_name: str) -> Tuple[float, float]:
        index = self.data_column_names.index(column_name)
        return float(self.means[index]), float(self.stddevs[index])

    def get_column_data(self, column_name: str, normalize: bool = False) -> np.ndarray:
        if column_name not in self.data_column_names:
            raise InvalidDataShapeException(f"Unknown column '{column_name}'")
        index = self.data_column_names.index(column_name)
        values = self.normalized_data if normalize else self.data
        return values[:, index]

    def get_next_batch_function(
        self,
        shuffle: bool,
        look_back: int,
        delay: int,
        batch_size: int,
        step: int,
        min_index: int,
        max_index: int,
        normalize: bool,
        include_date_time: bool,
        rng: np.random.Generator = None,
    ) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """Returns a generator of (features, targets) batches.

        Args:
            shuffle: Whether to draw random rows forever, instead of walking the
                row range once in order.
            look_back: Number of past rows each example looks at.
            delay: How many rows in the future the target temperature is.
            batch_size: Number of examples per batch.
            step: Sampling stride within the look-back window.
            min_index: First row of the range to draw examples from.
            max_index: End (exclusive) of the range to draw examples from.
            normalize: Whether to use the normalized values for features and targets.
            include_date_time: Whether to append the day-of-year and time-of-day features.

        Yields:
            features of shape [batch, look_back // step, num_features (+ 2)] and
            targets of shape [batch, 1].
        """
        look_back_slices = look_back // step
        if look_back_slices <= 0:
            raise InvalidHyperparameterException(
                f"lookBack ({look_back}) must be at least step ({step})"
            )
        max_index = min(max_index, self.num_rows - delay)
        first_row = min_index + look_back
        if first_row >= max_index:
            raise InvalidHyperparameterException(
                f"Row range [{min_index}, {max_index}) is too short for lookBack {look_back} "
                f"and delay {delay}"
            )

        rng = rng if rng is not None else np.random.default_rng()
        values = self.normalized_data if normalize else self.data
        offsets = -look_back + step * np.arange(look_back_slices)

        def make_batch(row_indices: np.ndarray):
            window_indices = row_indices[:, None] + offsets[None, :]
            features = values[window_indices]
            if include_date_time:
                features = np.concatenate(
                    [
                        features,
                        self.normalized_day_of_year[window_indices][..., None],
                        self.normalized_time_of_day[window_indices][..., None],
                    ],
                    axis=-1,
                )
            targets = values[row_indices + delay, self.temperature_column_index][:, None]
            return features.astype(np.float32), targets.astype(np.float32)

        if shuffle:
            while True:
                yield make_batch(rng.integers(first_row, max_index, size=batch_size))
        else:
            start_index = first_row
            while start_index < max_index:
                yield make_batch(np.arange(start_index, min(start_index + batch_size, max_index)))
                start_index += batch_size
