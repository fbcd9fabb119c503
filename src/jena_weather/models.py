import json
from pathlib import Path

import numpy as np
import tensorflow as tf
from tensorflow import keras
from tensorflow.keras import layers, regularizers

from exception import UnknownModelTypeException
from jena_weather.data import JenaWeatherData
from utils import print_event

TAG = "jena-weather"

TRAIN_MIN_ROW = 0
TRAIN_MAX_ROW = 200000
VAL_MIN_ROW = 200001
VAL_MAX_ROW = 300000
BATCHES_PER_EPOCH = 500

MODEL_TYPES = [
    "linear-regression",
    "mlp",
    "mlp-l2",
    "mlp-dropout",
    "simple-rnn",
    "gru",
    "gru-dropout",
]


def build_model(model_type: str, num_time_steps: int, num_features: int):
    """Builds a model for predicting the temperature from a window of past rows.

    Args:
        model_type: One of MODEL_TYPES.
        num_time_steps: Number of time steps in each input window.
        num_features: Number of features per time step.
    """
    model = keras.Sequential(name=model_type.replace("-", "_"))
    model.add(layers.Input((num_time_steps, num_features)))
    if model_type == "linear-regression":
        model.add(layers.Flatten())
    elif model_type == "mlp":
        model.add(layers.Flatten())
        model.add(layers.Dense(32, activation="relu"))
    elif model_type == "mlp-l2":
        model.add(layers.Flatten())
        model.add(
            layers.Dense(32, activation="relu", kernel_regularizer=regularizers.l2(1e-3))
        )
    elif model_type == "mlp-dropout":
        model.add(layers.Flatten())
        model.add(layers.Dense(32, activation="relu"))
        model.add(layers.Dropout(0.25))
    elif model_type == "simple-rnn":
        model.add(layers.SimpleRNN(32))
    elif model_type == "gru":
        model.add(layers.GRU(32))
    elif model_type == "gru-dropout":
        model.add(layers.GRU(32, dropout=0.2, recurrent_dropout=0.2))
    else:
        raise UnknownModelTypeException(f"Unsupported model type: {model_type}")
    model.add(layers.Dense(1))

    model.compile(loss="mean_absolute_error", optimizer=keras.optimizers.RMSprop())
    return model


def make_dataset(
    jena_weather_data: JenaWeatherData,
    shuffle: bool,
    look_back: int,
    delay: int,
    batch_size: int,
    step: int,
    min_index: int,
    max_index: int,
    normalize: bool,
    include_date_time: bool,
):
    num_features = len(jena_weather_data.get_data_column_names()) + (2 if include_date_time else 0)
    output_signature = (
        tf.TensorSpec(shape=(None, look_back // step, num_features), dtype=tf.float32),
        tf.TensorSpec(shape=(None, 1), dtype=tf.float32),
    )
    return tf.data.Dataset.from_generator(
        lambda: jena_weather_data.get_next_batch_function(
            shuffle,
            look_back,
            delay,
            batch_size,
            step,
            min_index,
            max_index,
            normalize,
            include_date_time,
        ),
        output_signature=output_signature,
    ).prefetch(8)


class DisplayEveryCallback(keras.callbacks.Callback):
    def __init__(self, display_every: int):
        super().__init__()
        self.display_every = display_every
        self.epoch = 0

    def on_epoch_begin(self, epoch, logs=None):
        self.epoch = epoch

    def on_train_batch_end(self, batch, logs=None):
        if self.display_every > 0 and (batch + 1) % self.display_every == 0:
            loss = (logs or {}).get("loss", float("nan"))
            print_event(TAG, f"epoch {self.epoch + 1} batch {batch + 1}: loss={loss:.4f}")

    def on_epoch_end(self, epoch, logs=None):
        logs = logs or {}
        print_event(
            TAG,
            f"epoch {epoch + 1}: loss={logs.get('loss', float('nan')):.4f} "
            f"val_loss={logs.get('val_loss', float('nan')):.4f}",
        )


def train_model(
    model,
    jena_weather_data: JenaWeatherData,
    normalize: bool,
    include_date_time: bool,
    look_back: int,
    step: int,
    delay: int,
    batch_size: int,
    epochs: int,
    display_every: int,
    batches_per_epoch: int = BATCHES_PER_EPOCH,
    train_rows=(TRAIN_MIN_ROW, TRAIN_MAX_ROW),
    val_rows=(VAL_MIN_ROW, VAL_MAX_ROW),
    save_path: Path = None,
    meta: dict = None,
):
    train_dataset = make_dataset(
        jena_weather_data, True, look_back, delay, batch_size, step,
        train_rows[0], train_rows[1], normalize, include_date_time,
    )
    val_dataset = make_dataset(
        jena_weather_data, False, look_back, delay, batch_size, step,
        val_rows[0], val_rows[1], normalize, include_date_time,
    )

    history = model.fit(
        train_dataset,
        steps_per_epoch=batches_per_epoch,
        epochs=epochs,
        validation_data=val_dataset,
        callbacks=[DisplayEveryCallback(display_every)],
        verbose=0,
    )

    if save_path is not None:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        model.save(save_path / "model.keras")
        with open(save_path / "meta.json", "w", encoding="utf-8") as meta_file:
            meta_file.write(json.dumps({**(meta or {}), "val_rows": list(val_rows)}))
        print_event(TAG, f"Model saved to {save_path}")
    return history


def evaluate_mean_absolute_error(
    model,
    jena_weather_data: JenaWeatherData,
    normalize: bool,
    include_date_time: bool,
    look_back: int,
    step: int,
    delay: int,
    batch_size: int = 128,
    min_index: int = VAL_MIN_ROW,
    max_index: int = VAL_MAX_ROW,
) -> float:
    total_error = 0.0
    num_examples = 0
    for features, targets in jena_weather_data.get_next_batch_function(
        False, look_back, delay, batch_size, step, min_index, max_index, normalize,
        include_date_time,
    ):
        predictions = model.predict(features, verbose=0)
        total_error += float(np.sum(np.abs(predictions - targets)))
        num_examples += len(targets)
    return total_error / num_examples


def get_baseline_mean_absolute_error(
    jena_weather_data: JenaWeatherData,
    normalize: bool,
    include_date_time: bool,
    look_back: int,
    step: int,
    delay: int,
    batch_size: int = 128,
    min_index: int = VAL_MIN_ROW,
    max_index: int = VAL_MAX_ROW,
) -> float:
    """Commonsense baseline: the temperature `delay` rows from now equals the latest
    temperature in the look-back window."""
    temperature_index = jena_weather_data.temperature_column_index
    total_error = 0.0
    num_examples = 0
    for features, targets in jena_weather_data.get_next_batch_function(
        False, look_back, delay, batch_size, step, min_index, max_index, normalize,
        include_date_time,
    ):
        predictions = features[:, -1, temperature_index]
        total_error += float(np.sum(np.abs(predictions - targets[:, 0])))
        num_examples += len(targets)
    return total_error / num_examples
