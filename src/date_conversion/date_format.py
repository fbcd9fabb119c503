"""
Date formats and string encoding for the date-conversion model.

Every input format renders a (year, month, day) tuple as a string, and the model
learns to translate all of them into the ISO format YYYY-MM-DD.
"""
import datetime
from typing import List, Tuple

import numpy as np

from exception import InvalidDateStringException

MONTH_NAMES_FULL = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]
MONTH_NAMES_3LETTER = [name[:3].upper() for name in MONTH_NAMES_FULL]

MIN_DATE = datetime.date(1950, 1, 1)
MAX_DATE = datetime.date(2050, 1, 1)

DateTuple = Tuple[int, int, int]


def _unique_chars(text: str) -> str:
    return "".join(dict.fromkeys(text))


INPUT_VOCAB = _unique_chars("\n0123456789/-., " + "".join(MONTH_NAMES_3LETTER))

# OUTPUT_VOCAB includes an start-of-sequence (SOS) token, represented as '\t'.
OUTPUT_VOCAB = "\n\t0123456789-"

START_CODE = 1

INPUT_LENGTH = 12
OUTPUT_LENGTH = 10


def generate_random_date_tuple(rng: np.random.Generator = None) -> DateTuple:
    """Generates a random date between 1950-01-01 (inclusive) and 2050-01-01 (exclusive)."""
    rng = rng if rng is not None else np.random.default_rng()
    num_days = (MAX_DATE - MIN_DATE).days
    date = MIN_DATE + datetime.timedelta(days=int(rng.integers(0, num_days)))
    return date.year, date.month, date.day


def to_two_digit_string(num: int) -> str:
    return f"{num:02d}"


def date_tuple_to_dd_mmm_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 01JAN2019."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    day_str = to_two_digit_string(date_tuple[2])
    return f"{day_str}{month_str}{date_tuple[0]}"


def date_tuple_to_mm_slash_dd_slash_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 01/20/2019."""
    return (
        f"{to_two_digit_string(date_tuple[1])}/"
        f"{to_two_digit_string(date_tuple[2])}/{date_tuple[0]}"
    )


def date_tuple_to_m_slash_d_slash_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 1/20/2019."""
    return f"{date_tuple[1]}/{date_tuple[2]}/{date_tuple[0]}"


def date_tuple_to_mm_slash_dd_slash_yy(date_tuple: DateTuple) -> str:
    """Date format such as 01/20/19."""
    return (
        f"{to_two_digit_string(date_tuple[1])}/"
        f"{to_two_digit_string(date_tuple[2])}/{str(date_tuple[0])[2:]}"
    )


def date_tuple_to_m_slash_d_slash_yy(date_tuple: DateTuple) -> str:
    """Date format such as 1/20/19."""
    return f"{date_tuple[1]}/{date_tuple[2]}/{str(date_tuple[0])[2:]}"


def date_tuple_to_mmddyy(date_tuple: DateTuple) -> str:
    """Date format such as 012019."""
    return (
        f"{to_two_digit_string(date_tuple[1])}"
        f"{to_two_digit_string(date_tuple[2])}{str(date_tuple[0])[2:]}"
    )


def date_tuple_to_mmm_space_dd_space_yy(date_tuple: DateTuple) -> str:
    """Date format such as JAN 20 19."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    return f"{month_str} {to_two_digit_string(date_tuple[2])} {str(date_tuple[0])[2:]}"


def date_tuple_to_mmm_space_dd_space_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as JAN 20 2019."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    return f"{month_str} {to_two_digit_string(date_tuple[2])} {date_tuple[0]}"


def date_tuple_to_mmm_space_dd_comma_space_yy(date_tuple: DateTuple) -> str:
    """Date format such as JAN 20, 19."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    return f"{month_str} {to_two_digit_string(date_tuple[2])}, {str(date_tuple[0])[2:]}"


def date_tuple_to_mmm_space_dd_comma_space_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as JAN 20, 2019."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    return f"{month_str} {to_two_digit_string(date_tuple[2])}, {date_tuple[0]}"


def date_tuple_to_dd_dash_mm_dash_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 20-01-2019."""
    return (
        f"{to_two_digit_string(date_tuple[2])}-"
        f"{to_two_digit_string(date_tuple[1])}-{date_tuple[0]}"
    )


def date_tuple_to_d_dash_m_dash_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 20-1-2019."""
    return f"{date_tuple[2]}-{date_tuple[1]}-{date_tuple[0]}"


def date_tuple_to_mm_dot_dd_dot_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 01.20.2019."""
    return (
        f"{to_two_digit_string(date_tuple[1])}."
        f"{to_two_digit_string(date_tuple[2])}.{date_tuple[0]}"
    )


def date_tuple_to_m_dot_d_dot_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 1.20.2019."""
    return f"{date_tuple[1]}.{date_tuple[2]}.{date_tuple[0]}"


def date_tuple_to_yyyy_dot_mm_dot_dd(date_tuple: DateTuple) -> str:
    """Date format such as 2019.01.20."""
    return (
        f"{date_tuple[0]}.{to_two_digit_string(date_tuple[1])}."
        f"{to_two_digit_string(date_tuple[2])}"
    )


def date_tuple_to_yyyymmdd(date_tuple: DateTuple) -> str:
    """Date format such as 20190120."""
    return (
        f"{date_tuple[0]}{to_two_digit_string(date_tuple[1])}"
        f"{to_two_digit_string(date_tuple[2])}"
    )


def date_tuple_to_yyyy_dash_m_dash_d(date_tuple: DateTuple) -> str:
    """Date format such as 2019-1-20."""
    return f"{date_tuple[0]}-{date_tuple[1]}-{date_tuple[2]}"


def date_tuple_to_d_space_mmm_space_yyyy(date_tuple: DateTuple) -> str:
    """Date format such as 20 JAN 2019."""
    month_str = MONTH_NAMES_3LETTER[date_tuple[1] - 1]
    return f"{date_tuple[2]} {month_str} {date_tuple[0]}"


def date_tuple_to_yyyy_dash_mm_dash_dd(date_tuple: DateTuple) -> str:
    """Date format such as 2019-01-20. This is the output format."""
    return (
        f"{date_tuple[0]}-{to_two_digit_string(date_tuple[1])}-"
        f"{to_two_digit_string(date_tuple[2])}"
    )


INPUT_FNS = [
    date_tuple_to_dd_mmm_yyyy,
    date_tuple_to_mm_slash_dd_slash_yyyy,
    date_tuple_to_m_slash_d_slash_yyyy,
    date_tuple_to_mm_slash_dd_slash_yy,
    date_tuple_to_m_slash_d_slash_yy,
    date_tuple_to_mmddyy,
    date_tuple_to_mmm_space_dd_space_yy,
    date_tuple_to_mmm_space_dd_space_yyyy,
    date_tuple_to_mmm_space_dd_comma_space_yy,
    date_tuple_to_mmm_space_dd_comma_space_yyyy,
    date_tuple_to_dd_dash_mm_dash_yyyy,
    date_tuple_to_d_dash_m_dash_yyyy,
    date_tuple_to_mm_dot_dd_dot_yyyy,
    date_tuple_to_m_dot_d_dot_yyyy,
    date_tuple_to_yyyy_dot_mm_dot_dd,
    date_tuple_to_yyyymmdd,
    date_tuple_to_yyyy_dash_m_dash_d,
    date_tuple_to_d_space_mmm_space_yyyy,
]


def _encode(date_strings: List[str], vocab: str, length: int) -> np.ndarray:
    buffer = np.zeros((len(date_strings), length), dtype=np.float32)
    for i, date_string in enumerate(date_strings):
        if len(date_string) > length:
            raise InvalidDateStringException(
                f"Date string '{date_string}' exceeds the maximum length of {length}"
            )
        for j, char in enumerate(date_string):
            index = vocab.find(char)
            if index == -1:
                raise InvalidDateStringException(
                    f"Unknown character '{char}' in date string '{date_string}'"
                )
            buffer[i, j] = index
    return buffer


def encode_input_date_strings(date_strings: List[str]) -> np.ndarray:
    """Encodes a number of input date strings as a [n, INPUT_LENGTH] array of vocab indices."""
    return _encode(date_strings, INPUT_VOCAB, INPUT_LENGTH)


def encode_output_date_strings(date_strings: List[str], one_hot: bool = False) -> np.ndarray:
    """Encodes a number of output date strings as vocab indices.

    Returns:
        (np.ndarray) [n, OUTPUT_LENGTH] indices, or [n, OUTPUT_LENGTH, len(OUTPUT_VOCAB)]
        one-hot vectors when `one_hot` is set.
    """
    indices = _encode(date_strings, OUTPUT_VOCAB, OUTPUT_LENGTH)
    if not one_hot:
        return indices
    return np.eye(len(OUTPUT_VOCAB), dtype=np.float32)[indices.astype(np.int64)]
