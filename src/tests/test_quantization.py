import contextlib
import io
import json
import unittest
from unittest import mock

import numpy as np
from tensorflow import keras
from tensorflow.keras import layers

from cleanup import cleanup_on_shutdown, make_temp_dir
from date_conversion.date_format import INPUT_LENGTH, INPUT_VOCAB, OUTPUT_LENGTH, OUTPUT_VOCAB
from date_conversion.model import create_model
from exception import InvalidHyperparameterException, ModelNotFoundException, UnknownModelTypeException
from jena_weather.data import JenaWeatherData
from jena_weather.models import build_model, train_model
from quantization import evaluate
from quantization.quantize import (
    dequantize_weights,
    load_any_model,
    load_quantized_model,
    quantize_model,
    quantize_weights,
)
from tests.common import make_jena_weather_frame

NUM_JENA_WEATHER_ROWS = 600


class QuantizeWeightsTestCase(unittest.TestCase):
    def test_quantize_8bit(self):
        data = np.array([-1.0, -0.5, 0.0, 0.5, 2.0], dtype=np.float32)
        quantized, params = quantize_weights(data, 1)
        self.assertEqual(quantized.dtype, np.uint8)
        self.assertEqual(params["dtype"], "uint8")
        self.assertEqual(int(quantized.min()), 0)
        self.assertEqual(int(quantized.max()), 255)

        dequantized = dequantize_weights(quantized, params)
        self.assertEqual(dequantized.dtype, np.float32)
        np.testing.assert_allclose(dequantized, data, atol=params["scale"])
        # Zero is exactly representable.
        self.assertEqual(dequantized[2], 0.0)

    def test_quantize_16bit_is_more_precise(self):
        data = np.random.default_rng(0).normal(0, 1, 1000).astype(np.float32)
        quantized8, params8 = quantize_weights(data, 1)
        quantized16, params16 = quantize_weights(data, 2)
        self.assertEqual(quantized16.dtype, np.uint16)

        error8 = np.abs(dequantize_weights(quantized8, params8) - data).max()
        error16 = np.abs(dequantize_weights(quantized16, params16) - data).max()
        self.assertLessEqual(error8, params8["scale"] / 2 + 1e-6)
        self.assertLess(error16, error8)

    def test_range_includes_zero(self):
        positive = np.array([1.0, 2.0, 3.0], dtype=np.float32)
        quantized, params = quantize_weights(positive, 1)
        self.assertEqual(params["min"], 0.0)
        np.testing.assert_allclose(dequantize_weights(quantized, params), positive, atol=params["scale"])

        negative = np.array([-3.0, -1.0], dtype=np.float32)
        quantized, params = quantize_weights(negative, 1)
        self.assertEqual(int(quantized.min()), 0)
        np.testing.assert_allclose(dequantize_weights(quantized, params), negative, atol=params["scale"])

    def test_all_zeros(self):
        quantized, params = quantize_weights(np.zeros(4, dtype=np.float32), 1)
        np.testing.assert_array_equal(quantized, np.zeros(4))
        np.testing.assert_array_equal(dequantize_weights(quantized, params), np.zeros(4))

    def test_unsupported_bytes(self):
        with self.assertRaises(InvalidHyperparameterException):
            quantize_weights(np.ones(3, dtype=np.float32), 4)


class QuantizeModelTestCase(unittest.TestCase):
    def setUp(self):
        self.model_dir = make_temp_dir() / "original"
        self.model_dir.mkdir()
        self.model = keras.Sequential(
            [layers.Input((4,)), layers.Dense(8, activation="relu"), layers.Dense(1)]
        )
        self.model.save(self.model_dir / "model.keras")

    def tearDown(self):
        cleanup_on_shutdown()

    def test_quantize_and_load(self):
        output_dir = self.model_dir.parent / "quantized-8bit"
        quantize_model(self.model_dir, output_dir, 1)
        for name in ["model.json", "weights.npz", "meta.json"]:
            self.assertTrue((output_dir / name).is_file())
        with open(output_dir / "meta.json", "r", encoding="utf-8") as meta_file:
            meta = json.loads(meta_file.read())
        self.assertEqual(meta["quantization_bytes"], 1)
        self.assertTrue(all(spec["quantized"] for spec in meta["weights"]))

        quantized_model = load_quantized_model(output_dir)
        inputs = np.random.default_rng(0).random((5, 4)).astype(np.float32)
        np.testing.assert_allclose(
            quantized_model.predict(inputs, verbose=0),
            self.model.predict(inputs, verbose=0),
            atol=0.1,
        )
        self.assertIsInstance(load_any_model(output_dir), keras.Model)
        self.assertIsInstance(load_any_model(self.model_dir), keras.Model)

    def test_missing_model(self):
        with self.assertRaises(ModelNotFoundException):
            quantize_model(self.model_dir.parent / "missing", self.model_dir.parent / "out", 2)
        with self.assertRaises(ModelNotFoundException):
            load_any_model(self.model_dir.parent / "missing")


class QuantizeEvaluateTestCase(unittest.TestCase):
    def setUp(self):
        self.models_root = make_temp_dir()

    def tearDown(self):
        cleanup_on_shutdown()

    def test_unknown_model_name(self):
        with self.assertRaises(UnknownModelTypeException):
            evaluate.quantize_evaluate("mnist", self.models_root)

    def test_model_not_trained(self):
        with self.assertRaisesRegex(ModelNotFoundException, "ml-examples sentiment train"):
            evaluate.quantize_evaluate("sentiment", self.models_root)

    def test_quantize_evaluate_date_conversion(self):
        original_dir = self.models_root / "date-conversion" / "original"
        original_dir.mkdir(parents=True)
        model = create_model(len(INPUT_VOCAB), len(OUTPUT_VOCAB), INPUT_LENGTH, OUTPUT_LENGTH)
        model.save(original_dir / "model.keras")

        with mock.patch.object(evaluate, "NUM_DATE_CONVERSION_EVAL_DATES", 5):
            results = evaluate.quantize_evaluate("date-conversion", self.models_root)

        self.assertEqual(list(results), ["original", "quantized-16bit", "quantized-8bit"])
        for metric_name, value in results.values():
            self.assertEqual(metric_name, "exact match accuracy")
            self.assertTrue(0.0 <= value <= 1.0)
        self.assertTrue((self.models_root / "date-conversion" / "quantized-8bit" / "weights.npz").is_file())

    def test_quantize_evaluate_jena_weather_data_source(self):
        csv_path = self.models_root / "jena_climate.csv"
        frame = make_jena_weather_frame(NUM_JENA_WEATHER_ROWS)
        frame.to_csv(csv_path, index=False)
        meta = {
            "normalize": True,
            "include_date_time": False,
            "look_back": 60,
            "step": 6,
            "delay": 12,
            "data_source": str(csv_path),
        }
        with contextlib.redirect_stdout(io.StringIO()):
            train_model(
                build_model("mlp", 10, 3),
                JenaWeatherData().load_frame(frame),
                True,
                False,
                60,
                6,
                12,
                32,
                1,
                0,
                batches_per_epoch=2,
                train_rows=(0, 400),
                val_rows=(401, NUM_JENA_WEATHER_ROWS),
                save_path=self.models_root / "jena-weather" / "original",
                meta=meta,
            )

        # The evaluator reads the CSV the model was trained on, never the default download.
        with mock.patch("data.requests.get") as requests_get:
            results = evaluate.quantize_evaluate("jena-weather", self.models_root)
        requests_get.assert_not_called()

        self.assertEqual(list(results), ["original", "quantized-16bit", "quantized-8bit"])
        for metric_name, value in results.values():
            self.assertEqual(metric_name, "mean absolute error")
            self.assertTrue(np.isfinite(value))


if __name__ == "__main__":
    unittest.main()
