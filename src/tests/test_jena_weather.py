import json
import unittest
from unittest import mock

import numpy as np

from cleanup import cleanup_on_shutdown, make_temp_dir
from exception import InvalidDataShapeException, InvalidHyperparameterException, UnknownModelTypeException
from jena_weather.data import JenaWeatherData
from jena_weather.models import (
    MODEL_TYPES,
    build_model,
    evaluate_mean_absolute_error,
    get_baseline_mean_absolute_error,
    train_model,
)
from tests.common import FakeResponse, make_cache_dir, make_jena_weather_frame

NUM_ROWS = 600


class JenaWeatherDataTestCase(unittest.TestCase):
    def setUp(self):
        self.frame = make_jena_weather_frame(NUM_ROWS)
        self.jena_weather_data = JenaWeatherData().load_frame(self.frame)

    def tearDown(self):
        cleanup_on_shutdown()

    def test_load_frame(self):
        self.assertEqual(self.jena_weather_data.num_rows, NUM_ROWS)
        self.assertEqual(
            self.jena_weather_data.get_data_column_names(), ["p (mbar)", "T (degC)", "rh (%)"]
        )
        self.assertEqual(self.jena_weather_data.temperature_column_index, 1)
        self.assertEqual(self.jena_weather_data.get_time().iloc[0].minute, 10)

        normalized = self.jena_weather_data.get_column_data("T (degC)", normalize=True)
        self.assertAlmostEqual(float(np.mean(normalized)), 0.0, places=4)
        self.assertAlmostEqual(float(np.std(normalized)), 1.0, places=4)

        mean, stddev = self.jena_weather_data.get_mean_and_stddev("T (degC)")
        raw = self.jena_weather_data.get_column_data("T (degC)")
        self.assertAlmostEqual(mean, float(np.mean(raw)), places=3)
        self.assertAlmostEqual(stddev, float(np.std(raw)), places=3)

        self.assertEqual(self.jena_weather_data.normalized_day_of_year.shape, (NUM_ROWS,))
        self.assertEqual(self.jena_weather_data.normalized_time_of_day.shape, (NUM_ROWS,))

    def test_missing_columns(self):
        with self.assertRaises(InvalidDataShapeException):
            JenaWeatherData().load_frame(self.frame.drop(columns=["Date Time"]))
        with self.assertRaises(InvalidDataShapeException):
            JenaWeatherData().load_frame(self.frame.drop(columns=["T (degC)"]))
        with self.assertRaises(InvalidDataShapeException):
            self.jena_weather_data.get_column_data("wv (m/s)")

    def test_load_downloads_and_caches_csv(self):
        cache_dir = make_cache_dir()
        csv_bytes = self.frame.to_csv(index=False).encode()
        with mock.patch("data.requests.get", return_value=FakeResponse(csv_bytes)) as get:
            loaded = JenaWeatherData().load("https://example.com/jena.csv", cache_dir=cache_dir)
            JenaWeatherData().load("https://example.com/jena.csv", cache_dir=cache_dir)
        self.assertEqual(get.call_count, 1)
        self.assertEqual(loaded.num_rows, NUM_ROWS)
        self.assertTrue((cache_dir / "jena.csv").is_file())

    def test_load_local_csv(self):
        csv_path = make_temp_dir() / "jena.csv"
        self.frame.to_csv(csv_path, index=False)
        self.assertEqual(JenaWeatherData().load(csv_path).num_rows, NUM_ROWS)

    def test_sequential_batches(self):
        look_back, step, delay, batch_size = 60, 6, 12, 32
        batches = list(
            self.jena_weather_data.get_next_batch_function(
                False, look_back, delay, batch_size, step, 0, NUM_ROWS, False, False
            )
        )
        num_examples = sum(len(targets) for _, targets in batches)
        self.assertEqual(num_examples, NUM_ROWS - delay - look_back)

        features, targets = batches[0]
        self.assertEqual(features.shape, (batch_size, look_back // step, 3))
        self.assertEqual(targets.shape, (batch_size, 1))

        raw = self.jena_weather_data.data
        # The first example ends right before row `look_back` and targets row `look_back + delay`.
        np.testing.assert_allclose(features[0, 0], raw[0])
        np.testing.assert_allclose(features[0, -1], raw[look_back - step])
        self.assertAlmostEqual(float(targets[0, 0]), float(raw[look_back + delay, 1]), places=4)

    def test_shuffled_batches_with_date_time(self):
        batches = self.jena_weather_data.get_next_batch_function(
            True, 60, 12, 16, 6, 0, NUM_ROWS, True, True, rng=np.random.default_rng(0)
        )
        for _ in range(3):
            features, targets = next(batches)
            self.assertEqual(features.shape, (16, 10, 5))
            self.assertEqual(targets.shape, (16, 1))
            self.assertEqual(features.dtype, np.float32)

    def test_invalid_batch_params(self):
        with self.assertRaises(InvalidHyperparameterException):
            next(
                self.jena_weather_data.get_next_batch_function(
                    False, 4, 12, 16, 6, 0, NUM_ROWS, False, False
                )
            )
        with self.assertRaises(InvalidHyperparameterException):
            next(
                self.jena_weather_data.get_next_batch_function(
                    False, 500, 120, 16, 6, 0, NUM_ROWS, False, False
                )
            )


class JenaWeatherModelsTestCase(unittest.TestCase):
    def setUp(self):
        self.jena_weather_data = JenaWeatherData().load_frame(make_jena_weather_frame(NUM_ROWS))

    def tearDown(self):
        cleanup_on_shutdown()

    def test_build_models(self):
        for model_type in MODEL_TYPES:
            model = build_model(model_type, 10, 3)
            self.assertEqual(tuple(model.outputs[0].shape), (None, 1))

    def test_unknown_model_type(self):
        with self.assertRaises(UnknownModelTypeException):
            build_model("transformer", 10, 3)

    def test_baseline(self):
        mae = get_baseline_mean_absolute_error(
            self.jena_weather_data, False, False, 60, 6, 1, min_index=0, max_index=NUM_ROWS
        )
        # The synthetic temperature changes slowly, so the last observation is a good predictor.
        self.assertLess(mae, 1.0)

    def test_train_and_evaluate(self):
        save_path = make_temp_dir() / "jena-weather"
        model = build_model("mlp", 10, 3)
        meta = {"normalize": True, "include_date_time": False, "look_back": 60, "step": 6, "delay": 12}
        history = train_model(
            model,
            self.jena_weather_data,
            True,
            False,
            60,
            6,
            12,
            32,
            2,
            0,
            batches_per_epoch=5,
            train_rows=(0, 400),
            val_rows=(401, NUM_ROWS),
            save_path=save_path,
            meta=meta,
        )
        self.assertEqual(len(history.history["loss"]), 2)
        self.assertIn("val_loss", history.history)
        self.assertTrue((save_path / "model.keras").is_file())
        with open(save_path / "meta.json", "r", encoding="utf-8") as meta_file:
            self.assertEqual(json.loads(meta_file.read()), {**meta, "val_rows": [401, NUM_ROWS]})

        mae = evaluate_mean_absolute_error(
            model, self.jena_weather_data, True, False, 60, 6, 12, min_index=401, max_index=NUM_ROWS
        )
        self.assertTrue(np.isfinite(mae))


if __name__ == "__main__":
    unittest.main()
