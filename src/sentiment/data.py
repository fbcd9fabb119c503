"""
Loading of the IMDB movie review dataset.

The reviews come pre-tokenized as binary files: a stream of little-endian int32 word
indices in which the value 1 marks the beginning of a new review, and one uint8
label (0: negative, 1: positive) per review.
"""
import json
from pathlib import Path

import numpy as np

from data import maybe_download_and_extract
from exception import InvalidDataShapeException
from sentiment.sequence_utils import pad_sequences

DATA_ZIP_URL = "https://storage.googleapis.com/learnjs-data/imdb/imdb_tfjs_data.zip"
METADATA_TEMPLATE_URL = "https://storage.googleapis.com/learnjs-data/imdb/metadata.json.zip"

PAD_CHAR = 0
START_CHAR = 1
OOV_CHAR = 2
INDEX_FROM = 3


def split_sequences(values: np.ndarray) -> list:
    """Splits a stream of word indices into sequences at each START_CHAR marker."""
    starts = np.flatnonzero(values == START_CHAR)
    pieces = np.split(values, starts)

    sequences = []
    if len(pieces[0]) > 0:
        sequences.append(pieces[0])
    for i, piece in enumerate(pieces[1:], start=1):
        seq = piece[1:]
        # A trailing marker doesn't start a sequence.
        if i == len(pieces) - 1 and len(seq) == 0:
            continue
        sequences.append(seq)
    return sequences


def load_features(file_path: Path, num_words: int, max_len: int) -> np.ndarray:
    values = np.fromfile(file_path, dtype="<i4")
    sequences = [
        np.where(seq >= num_words, OOV_CHAR, seq) for seq in split_sequences(values)
    ]
    return pad_sequences(sequences, max_len, "pre", "pre", PAD_CHAR)


def load_targets(file_path: Path) -> np.ndarray:
    return np.fromfile(file_path, dtype=np.uint8).astype(np.float32).reshape(-1, 1)


def load_data(num_words: int, max_len: int, cache_dir: Path = None) -> dict:
    data_dir = maybe_download_and_extract(DATA_ZIP_URL, cache_dir)

    x_train = load_features(data_dir / "imdb_train_data.bin", num_words, max_len)
    x_test = load_features(data_dir / "imdb_test_data.bin", num_words, max_len)
    y_train = load_targets(data_dir / "imdb_train_targets.bin")
    y_test = load_targets(data_dir / "imdb_test_targets.bin")

    if x_train.shape[0] != y_train.shape[0]:
        raise InvalidDataShapeException(
            "Mismatch in number of examples between x_train and y_train"
        )
    if x_test.shape[0] != y_test.shape[0]:
        raise InvalidDataShapeException(
            "Mismatch in number of examples between x_test and y_test"
        )
    return {"x_train": x_train, "y_train": y_train, "x_test": x_test, "y_test": y_test}


def load_metadata_template(cache_dir: Path = None) -> dict:
    extract_dir = maybe_download_and_extract(METADATA_TEMPLATE_URL, cache_dir)
    base_name = METADATA_TEMPLATE_URL.rsplit("/", 1)[-1]
    with open(extract_dir / base_name[: -len(".zip")], "r", encoding="utf-8") as metadata_file:
        return json.loads(metadata_file.read())
