import unittest

import numpy as np

from algorithms.dql.memory import ReplayMemory
from exception import InvalidHyperparameterException


class ReplayMemoryTestCase(unittest.TestCase):
    def test_invalid_max_len(self):
        for max_len in [0, -1, 2.5, "10", True]:
            with self.assertRaises(InvalidHyperparameterException):
                ReplayMemory(max_len)

    def test_append_wraps_around(self):
        memory = ReplayMemory(3)
        for i in range(5):
            memory.append(i)
        self.assertEqual(len(memory), 3)
        self.assertEqual(sorted(memory.buffer), [2, 3, 4])

    def test_sample_without_replacement(self):
        memory = ReplayMemory(10, rng=np.random.default_rng(0))
        for i in range(10):
            memory.append(i)
        batch = memory.sample(10)
        self.assertEqual(sorted(batch), list(range(10)))

    def test_sample_only_stored_items(self):
        memory = ReplayMemory(10, rng=np.random.default_rng(0))
        for i in range(4):
            memory.append(i)
        for _ in range(20):
            self.assertTrue(set(memory.sample(2)) <= {0, 1, 2, 3})

    def test_sample_too_large(self):
        memory = ReplayMemory(4)
        memory.append(0)
        with self.assertRaisesRegex(InvalidHyperparameterException, "buffer length"):
            memory.sample(5)
        with self.assertRaisesRegex(InvalidHyperparameterException, "stored items"):
            memory.sample(2)


if __name__ == "__main__":
    unittest.main()
