import json
from pathlib import Path
import shutil

import humanize
import numpy as np

from date_conversion.date_format import generate_random_date_tuple
from date_conversion.train import compute_exact_match_accuracy, date_tuples_to_arrays
from exception import ModelNotFoundException, UnknownModelTypeException
from jena_weather.data import JenaWeatherData
from jena_weather.models import VAL_MAX_ROW, VAL_MIN_ROW, evaluate_mean_absolute_error
from quantization.quantize import KERAS_MODEL_NAME, get_model_size, load_any_model, quantize_model
from sentiment.data import load_data
from sentiment.models import evaluate_accuracy
from utils import print_event

TAG = "quantize"

QUANTIZATION_LEVELS = [("quantized-16bit", 2), ("quantized-8bit", 1)]

NUM_DATE_CONVERSION_EVAL_DATES = 1000
EVAL_SEED = 0


def _read_json(path: Path) -> dict:
    if not path.is_file():
        raise ModelNotFoundException(f"Cannot find {path}")
    with open(path, "r", encoding="utf-8") as json_file:
        return json.loads(json_file.read())


def evaluate_sentiment(model, original_dir: Path):
    metadata = _read_json(Path(original_dir) / "metadata.json")
    data = load_data(metadata["vocabulary_size"], metadata["max_len"])
    return "accuracy", evaluate_accuracy(model, data["x_test"], data["y_test"])


def evaluate_jena_weather(model, original_dir: Path):
    meta = _read_json(Path(original_dir) / "meta.json")
    if meta.get("data_source"):
        jena_weather_data = JenaWeatherData().load(meta["data_source"])
    else:
        jena_weather_data = JenaWeatherData().load()
    min_index, max_index = meta.get("val_rows", (VAL_MIN_ROW, VAL_MAX_ROW))
    mae = evaluate_mean_absolute_error(
        model,
        jena_weather_data,
        meta["normalize"],
        meta["include_date_time"],
        meta["look_back"],
        meta["step"],
        meta["delay"],
        min_index=min_index,
        max_index=max_index,
    )
    return "mean absolute error", mae


def evaluate_date_conversion(model, original_dir: Path):
    rng = np.random.default_rng(EVAL_SEED)
    date_tuples = [
        generate_random_date_tuple(rng) for _ in range(NUM_DATE_CONVERSION_EVAL_DATES)
    ]
    encoder_input, decoder_input, decoder_output = date_tuples_to_arrays(date_tuples)
    return "exact match accuracy", compute_exact_match_accuracy(
        model, encoder_input, decoder_input, decoder_output
    )


EVALUATORS = {
    "sentiment": evaluate_sentiment,
    "jena-weather": evaluate_jena_weather,
    "date-conversion": evaluate_date_conversion,
}


def quantize_evaluate(model_name: str, models_root: Path = Path("models")) -> dict:
    """Quantizes a trained model to 16 and 8 bits and compares the three versions.

    Returns:
        (dict) Maps "original", "quantized-16bit" and "quantized-8bit" to the
        (metric_name, value) each version scores.
    """
    if model_name not in EVALUATORS:
        raise UnknownModelTypeException(
            f"Unsupported model name: {model_name}. Supported: {', '.join(EVALUATORS)}"
        )
    evaluator = EVALUATORS[model_name]

    model_root = Path(models_root) / model_name
    original_dir = model_root / "original"
    if not (original_dir / KERAS_MODEL_NAME).is_file():
        raise ModelNotFoundException(
            f"Cannot find model file at {original_dir / KERAS_MODEL_NAME}. "
            f"Make sure you train and save a model with the following command first: "
            f"ml-examples {model_name} train"
        )

    model_dirs = {"original": original_dir}
    for level_name, quantization_bytes in QUANTIZATION_LEVELS:
        output_dir = model_root / level_name
        if output_dir.exists():
            shutil.rmtree(output_dir)
        model_dirs[level_name] = quantize_model(original_dir, output_dir, quantization_bytes)

    results = {}
    for level_name, model_dir in model_dirs.items():
        model = load_any_model(model_dir)
        metric_name, value = evaluator(model, original_dir)
        results[level_name] = (metric_name, value)
        print_event(
            TAG,
            f"{model_name} {level_name} "
            f"({humanize.naturalsize(get_model_size(model_dir))}): {metric_name} = {value:.4f}",
        )
    return results
