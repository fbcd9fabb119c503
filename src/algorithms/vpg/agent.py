# Policy gradient (REINFORCE) agent for the cart-pole balancing game
#
# Explanation from: https://spinningup.openai.com/en/latest/algorithms/vpg.html
#
# The key idea underlying policy gradients is to push up the probabilities of
# actions that lead to higher return, and push down the probabilities of actions
# that lead to lower return, until you arrive at the optimal policy.
#
# The policy network outputs a single logit: the (pre-sigmoid) probability of
# pushing the cart to the left. Actions are sampled from that probability, and
# after a batch of games every step's gradient is scaled by the normalized,
# discounted reward that followed it.
import datetime
import json
from pathlib import Path
import shutil
from typing import Callable, List

import numpy as np
import tensorflow as tf
from tensorflow import keras
from tensorflow.keras import layers, models

from algorithms.agent_interface import Agent
from algorithms.vpg.memory import Memory
from environments.cart_pole import CartPole, STATE_SIZE
from exception import InvalidDataShapeException, InvalidHyperparameterException

MODEL_SAVE_PATH = Path("models", "cart-pole-v1")
MODEL_NAME = "model.keras"
LEARNING_RATE = 0.05


def build_policy_network(hidden_layer_sizes: List[int], state_size: int = STATE_SIZE):
    """Creates the policy network.

    Args:
        hidden_layer_sizes (list of int): the number of units of each hidden layer.
        state_size (int): the length of the observation vector.
    """
    if not isinstance(hidden_layer_sizes, (list, tuple)) or len(hidden_layer_sizes) == 0:
        raise InvalidHyperparameterException(
            f"Expected hidden layer sizes to be a non-empty list, but got {hidden_layer_sizes}"
        )
    for size in hidden_layer_sizes:
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise InvalidHyperparameterException(
                f"Invalid hidden layer size {size} in {hidden_layer_sizes}"
            )

    policy = keras.Sequential(name="cart_pole_policy")
    policy.add(layers.Input((state_size,), name="state"))
    for size in hidden_layer_sizes:
        policy.add(layers.Dense(size, activation="elu"))
    # The output is the logit of pushing left.
    policy.add(layers.Dense(1))
    return policy


class PolicyGradientAgent(Agent):
    def __init__(
        self,
        hidden_layer_sizes: List[int] = None,
        learning_rate: float = LEARNING_RATE,
        state_shape=(STATE_SIZE,),
        action_size: int = 2,
    ):
        super().__init__(state_shape, action_size)

        if hidden_layer_sizes is None:
            hidden_layer_sizes = [128]
        self.policy = build_policy_network(list(hidden_layer_sizes), state_shape[0])
        self.optimizer = keras.optimizers.Adam(learning_rate=learning_rate)
        self.memory = Memory()

    def set_learning_rate(self, learning_rate: float):
        self.optimizer = keras.optimizers.Adam(learning_rate=learning_rate)

    def hidden_layer_sizes(self) -> List[int]:
        return [layer.units for layer in self.policy.layers[:-1]]

    def get_logits_and_actions(self, states):
        """Runs the policy network and samples an action per state.

        Args:
            states: a [n, 4] batch of cart-pole states.

        Returns:
            (np.ndarray, np.ndarray): the [n, 1] logits and the [n] sampled actions.
        """
        states = np.asarray(states, dtype=np.float32)
        if states.ndim != 2 or states.shape[1] != self.state_shape[0]:
            raise InvalidDataShapeException(
                f"Wrong state shape: {states.shape}, expected (n, {self.state_shape[0]})"
            )
        logits = self.policy(states, training=False)
        left_prob = tf.sigmoid(logits)
        left_right_probs = tf.concat([left_prob, 1 - left_prob], axis=1)
        actions = tf.random.categorical(tf.math.log(left_right_probs), 1)
        return logits.numpy(), actions.numpy()[:, 0].astype(np.int64)

    def act(self, state):
        logits, actions = self.get_logits_and_actions(np.expand_dims(state, axis=0))
        left_prob = float(tf.sigmoid(logits[0, 0]))
        return int(actions[0]), np.array([left_prob, 1 - left_prob])

    def add_experience(self, state, action, reward, next_state, done):
        self.memory.add((state, action, reward))
        if done:
            self.memory.end_game()

    @staticmethod
    def discount_rewards(rewards, discount_rate):
        discounted_rewards = np.zeros(len(rewards), dtype=np.float32)
        total_rewards = 0
        for step in reversed(range(len(rewards))):
            total_rewards = rewards[step] + total_rewards * discount_rate
            discounted_rewards[step] = total_rewards
        return discounted_rewards

    @staticmethod
    def discount_and_normalize_rewards(reward_sets, discount_rate):
        all_discounted = [
            PolicyGradientAgent.discount_rewards(rewards, discount_rate)
            for rewards in reward_sets
        ]
        concatenated = np.concatenate(all_discounted)
        reward_mean = np.mean(concatenated)
        std_dev = np.std(concatenated)
        std_dev = 1 if std_dev == 0 else std_dev
        return [(discounted - reward_mean) / std_dev for discounted in all_discounted]

    def learn(self, discount_rate: float = 0.95):
        """Applies one policy update from every game stored in memory."""
        games = self.memory.sample()
        if len(games) == 0:
            return None

        normalized_rewards = self.discount_and_normalize_rewards(
            [rewards for _, _, rewards in games], discount_rate
        )
        states = np.concatenate([states for states, _, _ in games])
        actions = np.concatenate([actions for _, actions, _ in games]).astype(np.float32)
        scales = np.concatenate(normalized_rewards).astype(np.float32)

        # Action 0 means left, and the network's logit is that of pushing left.
        labels = 1.0 - actions
        with tf.GradientTape() as tape:
            logits = self.policy(states, training=True)[:, 0]
            cross_entropy = tf.nn.sigmoid_cross_entropy_with_logits(labels=labels, logits=logits)
            loss = tf.reduce_mean(cross_entropy * scales)
        gradients = tape.gradient(loss, self.policy.trainable_variables)
        self.optimizer.apply_gradients(zip(gradients, self.policy.trainable_variables))
        return float(loss)

    def train(
        self,
        cart_pole: CartPole,
        discount_rate: float,
        num_games: int,
        max_steps_per_game: int,
        on_game_end: Callable[[int, int], None] = None,
        on_step: Callable[[CartPole], None] = None,
    ) -> List[int]:
        """Plays a number of games and updates the policy once.

        Returns:
            (list of int): the number of steps survived in each game.
        """
        game_steps = []
        for game in range(num_games):
            cart_pole.set_random_state()
            steps = 0
            for step in range(max_steps_per_game):
                state = cart_pole.get_state()
                action, _ = self.act(state)
                is_done = cart_pole.update(action)
                if on_step is not None:
                    on_step(cart_pole)
                steps += 1
                reward = 0 if is_done else 1
                self.add_experience(
                    state, action, reward, None, is_done or step == max_steps_per_game - 1
                )
                if is_done:
                    break
            game_steps.append(steps)
            if on_game_end is not None:
                on_game_end(game + 1, num_games)

        self.learn(discount_rate)
        return game_steps

    def save(self, path: Path = MODEL_SAVE_PATH):
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        self.policy.save(path / MODEL_NAME)
        with open(path / "meta.json", "w", encoding="utf-8") as meta_file:
            meta_file.write(
                json.dumps(
                    {
                        "algorithm": "vpg",
                        "model_name": MODEL_NAME,
                        "hidden_layer_sizes": self.hidden_layer_sizes(),
                        "date_saved": datetime.datetime.now().isoformat(),
                    }
                )
            )

    def load(self, path: Path = MODEL_SAVE_PATH) -> bool:
        path = Path(path)
        if (path / "meta.json").exists():
            with open(path / "meta.json", "r", encoding="utf-8") as meta_file:
                meta_info = json.loads(meta_file.read())
            self.policy = models.load_model(str(path / meta_info["model_name"]))
            return True
        return False


def check_stored_model_status(path: Path = MODEL_SAVE_PATH):
    """Returns the metadata of the stored model, or None if there isn't one."""
    meta_path = Path(path) / "meta.json"
    if not meta_path.exists():
        return None
    with open(meta_path, "r", encoding="utf-8") as meta_file:
        meta_info = json.loads(meta_file.read())
    meta_info["date_saved"] = datetime.datetime.fromisoformat(meta_info["date_saved"])
    return meta_info


def remove_model(path: Path = MODEL_SAVE_PATH):
    path = Path(path)
    if path.exists():
        shutil.rmtree(path)
