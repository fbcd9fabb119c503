import numpy as np

from exception import InvalidHyperparameterException


class ReplayMemory:
    """A fixed-size circular buffer of experiences."""

    def __init__(self, max_len: int, rng: np.random.Generator = None):
        if isinstance(max_len, bool) or not isinstance(max_len, int) or max_len <= 0:
            raise InvalidHyperparameterException(
                f"Expected maxLen to be a positive integer, but got {max_len}"
            )
        self.max_len = max_len
        self.buffer = [None] * max_len
        self.index = 0
        self.length = 0
        self.rng = rng if rng is not None else np.random.default_rng()

    def append(self, item):
        self.buffer[self.index] = item
        self.length = min(self.length + 1, self.max_len)
        self.index = (self.index + 1) % self.max_len

    def sample(self, batch_size: int) -> list:
        """Randomly samples a batch of items without replacement."""
        if batch_size > self.max_len:
            raise InvalidHyperparameterException(
                f"batchSize ({batch_size}) exceeds buffer length ({self.max_len})"
            )
        if batch_size > self.length:
            raise InvalidHyperparameterException(
                f"batchSize ({batch_size}) exceeds the number of stored items ({self.length})"
            )
        indices = self.rng.choice(self.length, size=batch_size, replace=False)
        return [self.buffer[i] for i in indices]

    def __len__(self):
        return self.length
