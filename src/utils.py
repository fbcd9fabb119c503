import datetime
import os
from pathlib import Path
import tempfile


def print_event(tag: str, message: str):
    timestamp = datetime.datetime.now().strftime("%Y/%m/%d %H:%M:%S")
    print(f"{timestamp} {tag} {message}", flush=True)


def get_cache_dir() -> Path:
    cache_dir = os.getenv("ML_EXAMPLES_CACHE_DIR")
    if cache_dir:
        path = Path(cache_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path
    return Path(tempfile.gettempdir())


def mean(values) -> float:
    return sum(values) / len(values) if len(values) > 0 else 0.0
