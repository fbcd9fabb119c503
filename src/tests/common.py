import io
from pathlib import Path
import zipfile

import numpy as np
import pandas as pd

from cleanup import make_temp_dir


class FakeResponse:
    """Stands in for the `requests.Response` of a streamed download."""

    def __init__(self, content: bytes, status_error: Exception = None):
        self.content = content
        self.status_error = status_error

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]


def make_zip_bytes(files: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def make_cache_dir() -> Path:
    return make_temp_dir(prefix="ml_examples_test_")


def make_jena_weather_frame(num_rows: int, seed: int = 0) -> pd.DataFrame:
    """A small frame shaped like the Jena climate CSV: one row every 10 minutes."""
    rng = np.random.default_rng(seed)
    date_time = pd.date_range("2009-01-01 00:10:00", periods=num_rows, freq="10min")
    temperature = 10 + 5 * np.sin(np.arange(num_rows) / 50) + rng.normal(0, 0.1, num_rows)
    return pd.DataFrame(
        {
            "Date Time": date_time.strftime("%d.%m.%Y %H:%M:%S"),
            "p (mbar)": 1000 + rng.normal(0, 5, num_rows),
            "T (degC)": temperature,
            "rh (%)": rng.uniform(40, 100, num_rows),
        }
    )
