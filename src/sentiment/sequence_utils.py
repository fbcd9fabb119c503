from typing import List, Sequence

import numpy as np
from tensorflow import keras

from exception import InvalidHyperparameterException

PADDING_MODES = ("pre", "post")


def pad_sequences(
    sequences: List[Sequence[int]],
    max_len: int,
    padding: str = "pre",
    truncating: str = "pre",
    value: int = 0,
) -> np.ndarray:
    """Pads and truncates all sequences to the same length.

    Args:
        sequences: The sequences of word indices.
        max_len: The length every sequence ends up with.
        padding: Whether to pad at the beginning ('pre') or end ('post') of short sequences.
        truncating: Whether to drop the beginning ('pre') or end ('post') of long sequences.
        value: The padding value.

    Returns:
        (np.ndarray) int32 array of shape [len(sequences), max_len].
    """
    if padding not in PADDING_MODES:
        raise InvalidHyperparameterException(f"Unsupported padding mode: {padding}")
    if truncating not in PADDING_MODES:
        raise InvalidHyperparameterException(f"Unsupported truncating mode: {truncating}")

    return keras.utils.pad_sequences(
        [list(seq) for seq in sequences],
        maxlen=max_len,
        dtype="int32",
        padding=padding,
        truncating=truncating,
        value=value,
    )
