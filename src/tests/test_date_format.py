import unittest

import numpy as np

from date_conversion import date_format
from date_conversion.date_format import (
    INPUT_FNS,
    INPUT_LENGTH,
    INPUT_VOCAB,
    OUTPUT_LENGTH,
    OUTPUT_VOCAB,
    START_CODE,
    encode_input_date_strings,
    encode_output_date_strings,
    generate_random_date_tuple,
)
from exception import InvalidDateStringException


class DateFormatTestCase(unittest.TestCase):
    def test_vocabularies(self):
        self.assertEqual(INPUT_VOCAB[0], "\n")
        self.assertEqual(len(set(INPUT_VOCAB)), len(INPUT_VOCAB))
        for char in "JANFEBDECSPOV0123456789/-., ":
            self.assertIn(char, INPUT_VOCAB)
        self.assertEqual(OUTPUT_VOCAB[START_CODE], "\t")

    def test_generate_random_date_tuple(self):
        rng = np.random.default_rng(0)
        for _ in range(1000):
            year, month, day = generate_random_date_tuple(rng)
            self.assertTrue(1950 <= year < 2050)
            self.assertTrue(1 <= month <= 12)
            self.assertTrue(1 <= day <= 31)

    def test_formats(self):
        date_tuple = (2019, 1, 20)
        self.assertEqual(date_format.date_tuple_to_dd_mmm_yyyy(date_tuple), "20JAN2019")
        self.assertEqual(date_format.date_tuple_to_mm_slash_dd_slash_yyyy(date_tuple), "01/20/2019")
        self.assertEqual(date_format.date_tuple_to_m_slash_d_slash_yyyy(date_tuple), "1/20/2019")
        self.assertEqual(date_format.date_tuple_to_mm_slash_dd_slash_yy(date_tuple), "01/20/19")
        self.assertEqual(date_format.date_tuple_to_m_slash_d_slash_yy(date_tuple), "1/20/19")
        self.assertEqual(date_format.date_tuple_to_mmddyy(date_tuple), "012019")
        self.assertEqual(date_format.date_tuple_to_mmm_space_dd_space_yy(date_tuple), "JAN 20 19")
        self.assertEqual(
            date_format.date_tuple_to_mmm_space_dd_comma_space_yyyy(date_tuple), "JAN 20, 2019"
        )
        self.assertEqual(date_format.date_tuple_to_dd_dash_mm_dash_yyyy(date_tuple), "20-01-2019")
        self.assertEqual(date_format.date_tuple_to_yyyy_dot_mm_dot_dd(date_tuple), "2019.01.20")
        self.assertEqual(date_format.date_tuple_to_yyyymmdd(date_tuple), "20190120")
        self.assertEqual(date_format.date_tuple_to_d_space_mmm_space_yyyy(date_tuple), "20 JAN 2019")
        self.assertEqual(date_format.date_tuple_to_yyyy_dash_mm_dash_dd((2019, 3, 5)), "2019-03-05")

    def test_every_format_fits_the_input_length(self):
        rng = np.random.default_rng(1)
        for _ in range(50):
            date_tuple = generate_random_date_tuple(rng)
            strings = [input_fn(date_tuple) for input_fn in INPUT_FNS]
            self.assertTrue(all(len(s) <= INPUT_LENGTH for s in strings))
            encoded = encode_input_date_strings(strings)
            self.assertEqual(encoded.shape, (len(INPUT_FNS), INPUT_LENGTH))

    def test_encode_input_date_strings(self):
        encoded = encode_input_date_strings(["1/2/19"])
        self.assertEqual(encoded.dtype, np.float32)
        expected = [INPUT_VOCAB.index(char) for char in "1/2/19"] + [0] * (INPUT_LENGTH - 6)
        np.testing.assert_array_equal(encoded[0], expected)

    def test_encode_output_date_strings(self):
        indices = encode_output_date_strings(["2019-01-20"])
        self.assertEqual(indices.shape, (1, OUTPUT_LENGTH))
        self.assertEqual(indices[0, 4], OUTPUT_VOCAB.index("-"))

        one_hot = encode_output_date_strings(["2019-01-20", "1950-12-31"], one_hot=True)
        self.assertEqual(one_hot.shape, (2, OUTPUT_LENGTH, len(OUTPUT_VOCAB)))
        np.testing.assert_array_equal(one_hot.sum(axis=-1), np.ones((2, OUTPUT_LENGTH)))
        self.assertEqual(one_hot[0, 0, OUTPUT_VOCAB.index("2")], 1)

    def test_encode_errors(self):
        with self.assertRaises(InvalidDateStringException):
            encode_input_date_strings(["JANUARY 20, 2019"])
        with self.assertRaises(InvalidDateStringException):
            encode_input_date_strings(["01#20#2019"])
        with self.assertRaises(InvalidDateStringException):
            encode_output_date_strings(["2019/01/20"])


if __name__ == "__main__":
    unittest.main()
