from pathlib import Path
import zipfile

import requests

from exception import DataDownloadException
from utils import get_cache_dir, print_event

DOWNLOAD_CHUNK_SIZE = 1 << 20
DOWNLOAD_TIMEOUT_SECS = 60


def maybe_download(source_url: str, dest_path: Path) -> Path:
    """Downloads `source_url` to `dest_path` unless a non-empty file is already there."""
    dest_path = Path(dest_path)
    if dest_path.exists() and dest_path.stat().st_size > 0:
        return dest_path

    dest_path.parent.mkdir(parents=True, exist_ok=True)
    print_event("data", f"Downloading file from {source_url} ...")
    try:
        response = requests.get(source_url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECS)
        response.raise_for_status()
        with open(dest_path, "wb") as dest_file:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                dest_file.write(chunk)
    except requests.RequestException as ex:
        if dest_path.exists():
            dest_path.unlink()
        raise DataDownloadException(f"Failed to download {source_url}: {ex}") from ex
    return dest_path


def maybe_extract(source_path: Path, dest_dir: Path) -> Path:
    """Extracts the zip archive at `source_path` into `dest_dir` unless that directory exists."""
    dest_dir = Path(dest_dir)
    if dest_dir.exists():
        return dest_dir
    print_event("data", f"Extracting: {source_path} --> {dest_dir}")
    try:
        with zipfile.ZipFile(source_path) as archive:
            archive.extractall(dest_dir)
    except zipfile.BadZipFile as ex:
        raise DataDownloadException(f"Failed to extract {source_path}: {ex}") from ex
    return dest_dir


def maybe_download_and_extract(source_url: str, cache_dir: Path = None) -> Path:
    cache_dir = Path(cache_dir) if cache_dir is not None else get_cache_dir()
    file_name = source_url.rsplit("/", 1)[-1]
    zip_download_dest = maybe_download(source_url, cache_dir / file_name)
    zip_extract_dir = zip_download_dest.with_suffix("")
    return maybe_extract(zip_download_dest, zip_extract_dir)


def resolve_source(source: str, cache_dir: Path = None) -> Path:
    """Returns a local path for `source`, downloading it first if it is a URL."""
    if source.startswith("http://") or source.startswith("https://"):
        cache_dir = Path(cache_dir) if cache_dir is not None else get_cache_dir()
        return maybe_download(source, cache_dir / source.rsplit("/", 1)[-1])
    return Path(source)
