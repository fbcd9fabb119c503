# Deep Q-Network (DQN) agent for the snake game
#
# Explanation from: https://www.tensorflow.org/agents/tutorials/0_intro_rl
#
# The agent keeps two copies of the same convolutional Q-network. The online network
# picks actions (epsilon-greedy) and is trained on batches drawn from a replay memory;
# the target network provides the bootstrapped value of the next state and is only
# updated by periodically copying the online network's weights.
import json
from pathlib import Path

import numpy as np
import tensorflow as tf
from tensorflow import keras
from tensorflow.keras import layers, models

from algorithms.agent_interface import Agent
from algorithms.dql.memory import ReplayMemory
from environments.snake_game import (
    NUM_ACTIONS,
    SnakeGame,
    get_random_action,
    get_state_tensor,
)
from exception import InvalidHyperparameterException
from validation import validate_positive_int

MODEL_NAME = "model.keras"

REPLAY_BUFFER_SIZE = 10000
EPSILON_INIT = 0.5
EPSILON_FINAL = 0.01
EPSILON_DECAY_FRAMES = 100000
LEARNING_RATE = 1e-3
BATCH_SIZE = 64
GAMMA = 0.99

# Two valid 3x3 convolutions shrink each side of the board by 4.
MIN_BOARD_SIZE = 5


def _is_positive_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool) and value > 0


def create_deep_q_network(h, w, state_frames, num_actions):
    """Creates a Deep Q-Network (DQN) for the snake game.

    Args:
        h (int): Height of the snake game board.
        w (int): Width of the snake game board.
        state_frames (int): Number of the most recent frames included in the
            game's state observation.
        num_actions (int): Number of unique actions in the snake game.

    Returns:
        (keras.Model) The created DQN.
    """
    if not _is_positive_int(h):
        raise InvalidHyperparameterException(
            f"Expected height to be a positive integer, but got {h}"
        )
    if not _is_positive_int(w):
        raise InvalidHyperparameterException(
            f"Expected width to be a positive integer, but got {w}"
        )
    if not _is_positive_int(state_frames):
        raise InvalidHyperparameterException(
            f"Expected stateFrames to be a positive integer, but got {state_frames}"
        )
    if not (_is_positive_int(num_actions) and num_actions > 1):
        raise InvalidHyperparameterException(
            f"Expected numActions to be an integer greater than 1, but got {num_actions}"
        )

    return keras.Sequential(
        [
            layers.Input((h, w, 2 * state_frames)),
            layers.Conv2D(16, kernel_size=3, strides=1, activation="relu"),
            layers.Conv2D(32, kernel_size=3, strides=1, activation="relu"),
            layers.Flatten(),
            layers.Dense(256, activation="relu"),
            layers.Dense(num_actions),
        ]
    )


def copy_weights(dest_network, src_network):
    """Copies the weights from a source deep-Q network to another, by value."""
    dest_network.set_weights(src_network.get_weights())


class DeepQNetworkAgent(Agent):
    def __init__(
        self,
        game: SnakeGame,
        replay_buffer_size: int = REPLAY_BUFFER_SIZE,
        epsilon_init: float = EPSILON_INIT,
        epsilon_final: float = EPSILON_FINAL,
        epsilon_decay_frames: int = EPSILON_DECAY_FRAMES,
        learning_rate: float = LEARNING_RATE,
        batch_size: int = BATCH_SIZE,
        gamma: float = GAMMA,
        rng: np.random.Generator = None,
    ):
        if game.height < MIN_BOARD_SIZE or game.width < MIN_BOARD_SIZE:
            raise InvalidHyperparameterException(
                f"Expected the board to be at least {MIN_BOARD_SIZE}x{MIN_BOARD_SIZE}, "
                f"but got {game.height}x{game.width}"
            )
        validate_positive_int(replay_buffer_size, "replayBufferSize")
        validate_positive_int(batch_size, "batchSize")
        validate_positive_int(epsilon_decay_frames, "epsilonDecayFrames", minimum=0)
        super().__init__((game.height, game.width, 2), NUM_ACTIONS)

        self.game = game
        self.epsilon_init = epsilon_init
        self.epsilon_final = epsilon_final
        self.epsilon_decay_frames = epsilon_decay_frames
        # With no decay frames epsilon starts at its final value.
        self.epsilon_increment = (
            (epsilon_final - epsilon_init) / epsilon_decay_frames if epsilon_decay_frames > 0 else 0.0
        )
        self.batch_size = batch_size
        self.gamma = gamma
        self.rng = rng if rng is not None else np.random.default_rng()

        self.online_network = create_deep_q_network(game.height, game.width, 1, NUM_ACTIONS)
        self.target_network = create_deep_q_network(game.height, game.width, 1, NUM_ACTIONS)
        # The target network is never trained directly, only synced from the online one.
        self.target_network.trainable = False
        self.sync_target()

        self.optimizer = keras.optimizers.Adam(learning_rate=learning_rate)
        self.replay_memory = ReplayMemory(replay_buffer_size, rng=self.rng)
        self.frame_count = 0
        self.epsilon = self.get_epsilon()
        self.cumulative_reward = 0.0
        self.fruits_eaten = 0
        self.reset()

    def reset(self):
        self.cumulative_reward = 0.0
        self.fruits_eaten = 0
        self.game.reset()

    def get_epsilon(self) -> float:
        if self.frame_count >= self.epsilon_decay_frames:
            return self.epsilon_final
        return self.epsilon_init + self.epsilon_increment * self.frame_count

    def predict_q_values(self, state) -> np.ndarray:
        state_tensor = get_state_tensor(state, self.game.height, self.game.width)
        return self.online_network(state_tensor, training=False).numpy()[0]

    def act(self, state, epsilon: float = None):
        epsilon = self.epsilon if epsilon is None else epsilon
        if self.rng.random() < epsilon:
            return get_random_action(self.rng), np.zeros(NUM_ACTIONS)
        q_values = self.predict_q_values(state)
        return int(np.argmax(q_values)), q_values

    def add_experience(self, state, action, reward, next_state, done):
        self.replay_memory.append([state, action, reward, done, next_state])

    def play_step(self) -> dict:
        """Plays one step of the game and stores the experience in the replay memory."""
        self.epsilon = self.get_epsilon()
        self.frame_count += 1

        state = self.game.get_state()
        action, _ = self.act(state)
        result = self.game.step(action)

        self.add_experience(state, action, result["reward"], result["state"], result["done"])
        self.cumulative_reward += result["reward"]
        if result["fruit_eaten"]:
            self.fruits_eaten += 1

        output = {
            "action": action,
            "cumulative_reward": self.cumulative_reward,
            "done": result["done"],
            "fruits_eaten": self.fruits_eaten,
        }
        if result["done"]:
            self.reset()
        return output

    def train_on_replay_batch(self, batch_size: int = None, gamma: float = None) -> float:
        batch_size = self.batch_size if batch_size is None else batch_size
        gamma = self.gamma if gamma is None else gamma

        batch = self.replay_memory.sample(batch_size)
        height, width = self.game.height, self.game.width
        states = get_state_tensor([example[0] for example in batch], height, width)
        actions = np.array([example[1] for example in batch], dtype=np.int32)
        rewards = np.array([example[2] for example in batch], dtype=np.float32)
        done_mask = 1 - np.array([example[3] for example in batch], dtype=np.float32)
        next_states = get_state_tensor([example[4] for example in batch], height, width)

        next_max_q = tf.reduce_max(self.target_network(next_states, training=False), axis=-1)
        target_qs = rewards + next_max_q * done_mask * gamma

        with tf.GradientTape() as tape:
            q_values = self.online_network(states, training=True)
            qs = tf.reduce_sum(q_values * tf.one_hot(actions, NUM_ACTIONS), axis=-1)
            loss = tf.reduce_mean(tf.square(target_qs - qs))
        gradients = tape.gradient(loss, self.online_network.trainable_variables)
        self.optimizer.apply_gradients(zip(gradients, self.online_network.trainable_variables))
        return float(loss)

    def learn(self):
        if len(self.replay_memory) >= self.batch_size:
            return self.train_on_replay_batch()
        return None

    def sync_target(self):
        copy_weights(self.target_network, self.online_network)

    def save(self, path: Path):
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        self.online_network.save(path / MODEL_NAME)
        with open(path / "meta.json", "w", encoding="utf-8") as meta_file:
            meta_file.write(
                json.dumps(
                    {
                        "algorithm": "dqn",
                        "model_name": MODEL_NAME,
                        "height": self.game.height,
                        "width": self.game.width,
                        "num_fruits": self.game.num_fruits,
                        "init_len": self.game.init_len,
                    }
                )
            )

    def load(self, path: Path) -> bool:
        path = Path(path)
        if (path / "meta.json").exists():
            with open(path / "meta.json", "r", encoding="utf-8") as meta_file:
                meta_info = json.loads(meta_file.read())
            self.online_network = models.load_model(str(path / meta_info["model_name"]))
            self.sync_target()

            # A loaded model is used for playing, so the agent will not explore.
            self.epsilon_init = 0.0
            self.epsilon_final = 0.0
            self.epsilon_increment = 0.0
            self.epsilon = 0.0
            return True
        return False
