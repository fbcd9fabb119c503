"""
Post-training affine quantization of model weights.

Each float32 weight tensor is mapped onto the integer range of uint8 or uint16
with a per-tensor scale and minimum. The range always contains 0 and is nudged so
that 0 maps exactly onto an integer, which keeps zero-valued weights (e.g. biases
at init, padding embeddings) exact after dequantization.
"""
import json
from pathlib import Path
from typing import Tuple

import numpy as np
from tensorflow import keras

from exception import InvalidHyperparameterException, ModelNotFoundException
from utils import print_event

TAG = "quantize"

QUANTIZATION_DTYPES = {1: np.uint8, 2: np.uint16}

KERAS_MODEL_NAME = "model.keras"
MODEL_JSON_NAME = "model.json"
WEIGHTS_NAME = "weights.npz"
META_NAME = "meta.json"


def get_quantization_dtype(quantization_bytes: int):
    if quantization_bytes not in QUANTIZATION_DTYPES:
        raise InvalidHyperparameterException(
            f"Unsupported quantization bytes: {quantization_bytes}. "
            f"Supported values: {sorted(QUANTIZATION_DTYPES)}"
        )
    return QUANTIZATION_DTYPES[quantization_bytes]


def _get_affine_quantization_range(min_val: float, max_val: float, quantization_dtype):
    quant_max = np.iinfo(quantization_dtype).max

    min_val = min(min_val, 0.0)
    max_val = max(max_val, 0.0)
    if min_val == max_val:
        return 1.0, 0.0

    scale = (max_val - min_val) / quant_max
    zero_point = round(-min_val / scale)
    nudged_min = -zero_point * scale
    return scale, nudged_min


def quantize_weights(data: np.ndarray, quantization_bytes: int) -> Tuple[np.ndarray, dict]:
    """Quantizes a float32 array.

    Returns:
        (tuple) The quantized array and a dict with the `scale`, `min` and `dtype`
        needed to dequantize it.
    """
    quantization_dtype = get_quantization_dtype(quantization_bytes)
    data = np.asarray(data, dtype=np.float32)
    if data.size == 0:
        return data.astype(quantization_dtype), {
            "scale": 1.0,
            "min": 0.0,
            "dtype": np.dtype(quantization_dtype).name,
        }

    scale, min_val = _get_affine_quantization_range(
        float(np.min(data)), float(np.max(data)), quantization_dtype
    )
    quant_max = np.iinfo(quantization_dtype).max
    quantized = np.clip(np.round((data.astype(np.float64) - min_val) / scale), 0, quant_max).astype(
        quantization_dtype
    )
    return quantized, {
        "scale": float(scale),
        "min": float(min_val),
        "dtype": np.dtype(quantization_dtype).name,
    }


def dequantize_weights(quantized: np.ndarray, params: dict) -> np.ndarray:
    return (quantized.astype(np.float64) * params["scale"] + params["min"]).astype(np.float32)


def quantize_model(model_dir: Path, output_dir: Path, quantization_bytes: int) -> Path:
    """Quantizes every float32 weight of the Keras model saved in `model_dir`.

    Writes the model architecture (model.json), the quantized weights (weights.npz)
    and the per-weight dequantization params (meta.json) to `output_dir`.
    """
    get_quantization_dtype(quantization_bytes)
    model_path = Path(model_dir) / KERAS_MODEL_NAME
    if not model_path.is_file():
        raise ModelNotFoundException(f"Cannot find model file at {model_path}")

    model = keras.models.load_model(model_path, compile=False)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    arrays = {}
    weight_specs = []
    for i, weight in enumerate(model.get_weights()):
        key = f"weight_{i}"
        if weight.dtype == np.float32:
            quantized, params = quantize_weights(weight, quantization_bytes)
            arrays[key] = quantized
            weight_specs.append({"key": key, "quantized": True, **params})
        else:
            arrays[key] = weight
            weight_specs.append({"key": key, "quantized": False})

    with open(output_dir / MODEL_JSON_NAME, "w", encoding="utf-8") as model_json_file:
        model_json_file.write(model.to_json())
    np.savez(output_dir / WEIGHTS_NAME, **arrays)
    with open(output_dir / META_NAME, "w", encoding="utf-8") as meta_file:
        meta_file.write(
            json.dumps(
                {
                    "quantization_bytes": quantization_bytes,
                    "source": str(model_path),
                    "weights": weight_specs,
                }
            )
        )

    print_event(
        TAG, f"{model_path} --> {output_dir} ({8 * quantization_bytes}-bit weights)"
    )
    return output_dir


def load_quantized_model(model_dir: Path):
    """Rebuilds a model saved by `quantize_model`, with its weights dequantized to float32."""
    model_dir = Path(model_dir)
    if not (model_dir / MODEL_JSON_NAME).is_file():
        raise ModelNotFoundException(f"Cannot find model JSON file at {model_dir / MODEL_JSON_NAME}")

    with open(model_dir / MODEL_JSON_NAME, "r", encoding="utf-8") as model_json_file:
        model = keras.models.model_from_json(model_json_file.read())
    with open(model_dir / META_NAME, "r", encoding="utf-8") as meta_file:
        meta = json.loads(meta_file.read())

    weights = []
    with np.load(model_dir / WEIGHTS_NAME) as arrays:
        for spec in meta["weights"]:
            value = arrays[spec["key"]]
            weights.append(dequantize_weights(value, spec) if spec["quantized"] else value)
    model.set_weights(weights)
    return model


def load_any_model(model_dir: Path):
    """Loads either a Keras model directory or a quantized model directory."""
    model_dir = Path(model_dir)
    if (model_dir / KERAS_MODEL_NAME).is_file():
        return keras.models.load_model(model_dir / KERAS_MODEL_NAME, compile=False)
    return load_quantized_model(model_dir)


def get_model_size(model_dir: Path) -> int:
    """Total size in bytes of the weight-bearing files in `model_dir`."""
    model_dir = Path(model_dir)
    return sum(
        (model_dir / name).stat().st_size
        for name in (KERAS_MODEL_NAME, WEIGHTS_NAME)
        if (model_dir / name).is_file()
    )
