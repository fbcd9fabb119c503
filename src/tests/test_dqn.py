import unittest

import numpy as np

from algorithms.dql.agent import DeepQNetworkAgent, copy_weights, create_deep_q_network
from algorithms.factory import get_agent, load_agent
from cleanup import cleanup_on_shutdown, make_temp_dir
from environments.snake_game import NUM_ACTIONS, SnakeGame
from exception import InvalidHyperparameterException, ModelNotFoundException, UnknownModelTypeException


class CreateDeepQNetworkTestCase(unittest.TestCase):
    def test_create_deep_q_network(self):
        model = create_deep_q_network(9, 9, 1, NUM_ACTIONS)
        self.assertEqual(len(model.inputs), 1)
        self.assertEqual(tuple(model.inputs[0].shape), (None, 9, 9, 2))
        self.assertEqual(len(model.outputs), 1)
        self.assertEqual(tuple(model.outputs[0].shape), (None, NUM_ACTIONS))

    def test_invalid_height_or_width(self):
        for h in [0, "10", None, 10.8]:
            with self.assertRaisesRegex(InvalidHyperparameterException, "height"):
                create_deep_q_network(h, 10, 1, 4)
        for w in [0, "10", None, 10.8]:
            with self.assertRaisesRegex(InvalidHyperparameterException, "width"):
                create_deep_q_network(10, w, 1, 4)

    def test_invalid_num_actions(self):
        for num_actions in [0, 1, "4", None]:
            with self.assertRaisesRegex(InvalidHyperparameterException, "numActions"):
                create_deep_q_network(10, 10, 1, num_actions)


class CopyWeightsTestCase(unittest.TestCase):
    def test_copy_weights(self):
        online_network = create_deep_q_network(9, 9, 1, NUM_ACTIONS)
        target_network = create_deep_q_network(9, 9, 1, NUM_ACTIONS)
        online_network.compile(loss="mean_squared_error", optimizer="sgd")

        online_weights0 = online_network.get_weights()
        target_weights0 = target_network.get_weights()
        self.assertEqual(len(online_weights0), len(target_weights0))
        # Kernels start out different. Biases are zero-initialized.
        self.assertGreater(np.abs(online_weights0[0] - target_weights0[0]).mean(), 0)
        self.assertGreater(np.abs(online_weights0[2] - target_weights0[2]).mean(), 0)

        copy_weights(target_network, online_network)

        online_weights1 = online_network.get_weights()
        target_weights1 = target_network.get_weights()
        for online_weight, target_weight in zip(online_weights1, target_weights1):
            np.testing.assert_array_equal(online_weight, target_weight)

        # Training the source network leaves the copy untouched.
        rng = np.random.default_rng(0)
        xs = rng.random((4, 9, 9, 2)).astype(np.float32)
        ys = rng.random((4, NUM_ACTIONS)).astype(np.float32)
        online_network.fit(xs, ys, epochs=1, verbose=0)

        online_weights2 = online_network.get_weights()
        target_weights2 = target_network.get_weights()
        self.assertGreater(np.abs(online_weights2[0] - target_weights2[0]).mean(), 0)
        for target_weight1, target_weight2 in zip(target_weights1, target_weights2):
            np.testing.assert_array_equal(target_weight1, target_weight2)


class DeepQNetworkAgentTestCase(unittest.TestCase):
    def setUp(self):
        self.game = SnakeGame(height=6, width=6, num_fruits=1, init_len=2, rng=np.random.default_rng(0))
        self.agent = DeepQNetworkAgent(
            self.game,
            replay_buffer_size=100,
            epsilon_init=0.5,
            epsilon_final=0.01,
            epsilon_decay_frames=10,
            batch_size=8,
            rng=np.random.default_rng(0),
        )

    def tearDown(self):
        cleanup_on_shutdown()

    def test_epsilon_decays_linearly(self):
        self.assertAlmostEqual(self.agent.get_epsilon(), 0.5)
        self.agent.frame_count = 5
        self.assertAlmostEqual(self.agent.get_epsilon(), 0.5 + (0.01 - 0.5) / 10 * 5)
        self.agent.frame_count = 10
        self.assertAlmostEqual(self.agent.get_epsilon(), 0.01)
        self.agent.frame_count = 1000
        self.assertAlmostEqual(self.agent.get_epsilon(), 0.01)

    def test_no_decay_frames(self):
        agent = DeepQNetworkAgent(
            self.game,
            replay_buffer_size=10,
            epsilon_init=0.5,
            epsilon_final=0.05,
            epsilon_decay_frames=0,
            batch_size=4,
        )
        self.assertEqual(agent.get_epsilon(), 0.05)
        self.assertEqual(agent.epsilon, 0.05)
        agent.play_step()
        self.assertEqual(agent.epsilon, 0.05)

    def test_invalid_params(self):
        for kwargs in [
            {"replay_buffer_size": 0},
            {"batch_size": 0},
            {"batch_size": 2.5},
            {"epsilon_decay_frames": -1},
        ]:
            with self.assertRaises(InvalidHyperparameterException):
                DeepQNetworkAgent(self.game, **kwargs)

    def test_board_too_small(self):
        for height, width in [(4, 4), (4, 6), (6, 3)]:
            game = SnakeGame(height=height, width=width, init_len=2)
            with self.assertRaisesRegex(InvalidHyperparameterException, "at least 5x5"):
                DeepQNetworkAgent(game, replay_buffer_size=10, batch_size=4)

    def test_act_greedy(self):
        state = self.game.get_state()
        action, q_values = self.agent.act(state, epsilon=0.0)
        self.assertEqual(q_values.shape, (NUM_ACTIONS,))
        self.assertEqual(action, int(np.argmax(q_values)))

    def test_act_random(self):
        action, q_values = self.agent.act(self.game.get_state(), epsilon=1.0)
        self.assertIn(action, range(NUM_ACTIONS))
        np.testing.assert_array_equal(q_values, np.zeros(NUM_ACTIONS))

    def test_play_step_fills_replay_memory(self):
        for i in range(20):
            result = self.agent.play_step()
            self.assertEqual(set(result.keys()), {"action", "cumulative_reward", "done", "fruits_eaten"})
        self.assertEqual(self.agent.frame_count, 20)
        self.assertEqual(len(self.agent.replay_memory), 20)
        state, action, reward, done, next_state = self.agent.replay_memory.buffer[0]
        self.assertIn("s", state)
        self.assertIn(action, range(NUM_ACTIONS))
        self.assertIsInstance(done, bool)
        self.assertIn("f", next_state)

    def test_train_on_replay_batch(self):
        self.assertIsNone(self.agent.learn())
        for _ in range(16):
            self.agent.play_step()
        weights_before = [w.copy() for w in self.agent.online_network.get_weights()]
        target_weights_before = [w.copy() for w in self.agent.target_network.get_weights()]

        loss = self.agent.train_on_replay_batch()
        self.assertTrue(np.isfinite(loss))
        self.assertIsNotNone(self.agent.learn())

        weights_after = self.agent.online_network.get_weights()
        self.assertTrue(
            any(not np.allclose(b, a) for b, a in zip(weights_before, weights_after))
        )
        for before, after in zip(target_weights_before, self.agent.target_network.get_weights()):
            np.testing.assert_array_equal(before, after)

        self.agent.sync_target()
        for online, target in zip(
            self.agent.online_network.get_weights(), self.agent.target_network.get_weights()
        ):
            np.testing.assert_array_equal(online, target)

    def test_batch_larger_than_memory(self):
        self.agent.play_step()
        with self.assertRaises(InvalidHyperparameterException):
            self.agent.train_on_replay_batch(batch_size=8)

    def test_save_and_load(self):
        path = make_temp_dir() / "dqn"
        self.agent.save(path)

        loaded = load_agent(path)
        self.assertIsInstance(loaded, DeepQNetworkAgent)
        self.assertEqual((loaded.game.height, loaded.game.width), (6, 6))
        self.assertEqual(loaded.game.init_len, 2)
        self.assertEqual(loaded.epsilon, 0.0)

        state = self.game.get_state()
        np.testing.assert_allclose(
            loaded.predict_q_values(state), self.agent.predict_q_values(state), rtol=1e-5
        )


class FactoryTestCase(unittest.TestCase):
    def tearDown(self):
        cleanup_on_shutdown()

    def test_get_agent(self):
        agent = get_agent("dqn", (5, 7, 2), NUM_ACTIONS, num_fruits=2, init_len=3, replay_buffer_size=10)
        self.assertIsInstance(agent, DeepQNetworkAgent)
        self.assertEqual((agent.game.height, agent.game.width), (5, 7))
        self.assertEqual(agent.game.num_fruits, 2)
        self.assertEqual(agent.replay_memory.max_len, 10)

    def test_get_agent_unknown(self):
        with self.assertRaises(UnknownModelTypeException):
            get_agent("sacd", (4,), 2)

    def test_load_agent_missing(self):
        with self.assertRaises(ModelNotFoundException):
            load_agent(make_temp_dir() / "missing")


if __name__ == "__main__":
    unittest.main()
