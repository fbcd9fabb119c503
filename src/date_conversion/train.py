import datetime
from pathlib import Path

import numpy as np

from date_conversion.date_format import (
    INPUT_FNS,
    INPUT_LENGTH,
    INPUT_VOCAB,
    OUTPUT_LENGTH,
    OUTPUT_VOCAB,
    START_CODE,
    date_tuple_to_yyyy_dash_mm_dash_dd,
    encode_input_date_strings,
    encode_output_date_strings,
)
from date_conversion.model import create_model, run_seq2seq_inference
from exception import InvalidHyperparameterException
from utils import print_event

TAG = "date-conversion"
MIN_YEAR = 1950
MAX_YEAR = 2050
MODEL_SAVE_PATH = Path("models", "date-conversion", "original")


def date_tuples_to_arrays(date_tuples):
    """Renders every date through every input format and encodes the training arrays.

    Returns:
        (tuple) encoder input [n, INPUT_LENGTH], shifted decoder input
        [n, OUTPUT_LENGTH] and one-hot decoder output [n, OUTPUT_LENGTH, len(OUTPUT_VOCAB)].
    """
    input_strings = []
    target_strings = []
    for input_fn in INPUT_FNS:
        for date_tuple in date_tuples:
            input_strings.append(input_fn(date_tuple))
            target_strings.append(date_tuple_to_yyyy_dash_mm_dash_dd(date_tuple))

    encoder_input = encode_input_date_strings(input_strings)
    target_codes = encode_output_date_strings(target_strings)
    decoder_input = np.concatenate(
        [
            np.full((len(target_strings), 1), START_CODE, dtype=np.float32),
            target_codes[:, : OUTPUT_LENGTH - 1],
        ],
        axis=1,
    )
    decoder_output = encode_output_date_strings(target_strings, one_hot=True)
    return encoder_input, decoder_input, decoder_output


def generate_data_for_training(
    min_year=MIN_YEAR, max_year=MAX_YEAR, train_split=0.25, val_split=0.15, rng=None
):
    """Generates the train, validation and test splits from every day in [min_year, max_year).

    The split is done on dates, so a date never shows up in two splits under
    different formats.
    """
    if not 0 < train_split + val_split < 1:
        raise InvalidHyperparameterException(
            f"Invalid data splits: train={train_split}, val={val_split}"
        )
    rng = rng if rng is not None else np.random.default_rng()

    date_tuples = []
    date = datetime.date(min_year, 1, 1)
    while date.year < max_year:
        date_tuples.append((date.year, date.month, date.day))
        date += datetime.timedelta(days=1)
    rng.shuffle(date_tuples)

    num_train = int(len(date_tuples) * train_split)
    num_val = int(len(date_tuples) * val_split)
    splits = {
        "train": date_tuples[:num_train],
        "val": date_tuples[num_train:num_train + num_val],
        "test": date_tuples[num_train + num_val:],
    }
    data = {name: date_tuples_to_arrays(tuples) for name, tuples in splits.items()}
    data["test_date_tuples"] = splits["test"]
    return data


def compute_exact_match_accuracy(model, encoder_input, decoder_input, decoder_output) -> float:
    """Fraction of examples whose every output character is predicted correctly
    (decoder fed the ground-truth previous character)."""
    predictions = model.predict([encoder_input, decoder_input], verbose=0)
    matches = np.all(
        np.argmax(predictions, axis=-1) == np.argmax(decoder_output, axis=-1), axis=-1
    )
    return float(np.mean(matches))


def train_model(
    epochs: int = 2,
    batch_size: int = 128,
    save_path: Path = MODEL_SAVE_PATH,
    min_year: int = MIN_YEAR,
    max_year: int = MAX_YEAR,
    history_plot: Path = None,
    num_samples: int = 5,
):
    data = generate_data_for_training(min_year, max_year)
    train_encoder_input, train_decoder_input, train_decoder_output = data["train"]
    val_encoder_input, val_decoder_input, val_decoder_output = data["val"]
    test_encoder_input, test_decoder_input, test_decoder_output = data["test"]

    model = create_model(len(INPUT_VOCAB), len(OUTPUT_VOCAB), INPUT_LENGTH, OUTPUT_LENGTH)
    model.summary()

    print_event(TAG, f"Training on {len(train_encoder_input)} examples...")
    history = model.fit(
        [train_encoder_input, train_decoder_input],
        train_decoder_output,
        epochs=epochs,
        batch_size=batch_size,
        shuffle=True,
        validation_data=([val_encoder_input, val_decoder_input], val_decoder_output),
    )

    test_loss = model.evaluate(
        [test_encoder_input, test_decoder_input], test_decoder_output, verbose=0
    )
    print_event(TAG, f"Test loss: {float(test_loss):.4f}")

    if save_path is not None:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        model.save(save_path / "model.keras")
        print_event(TAG, f"Model saved to {save_path}")

    if history_plot is not None:
        from plotting import plot_history  # pylint: disable=import-outside-toplevel

        plot_history(history.history, history_plot, title="date conversion")

    rng = np.random.default_rng()
    test_date_tuples = data["test_date_tuples"]
    for _ in range(min(num_samples, len(test_date_tuples))):
        date_tuple = test_date_tuples[int(rng.integers(0, len(test_date_tuples)))]
        input_fn = INPUT_FNS[int(rng.integers(0, len(INPUT_FNS)))]
        input_str = input_fn(date_tuple)
        output_str = run_seq2seq_inference(model, input_str)["output_str"]
        print_event(TAG, f'"{input_str}" --> "{output_str}"')

    return model, history
