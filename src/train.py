from collections import deque
import math
from pathlib import Path
import time
from typing import Dict, List

import tensorflow as tf

from algorithms.dql.agent import DeepQNetworkAgent
from algorithms.vpg.agent import MODEL_SAVE_PATH, PolicyGradientAgent
from environments.cart_pole import CartPole
from exception import InvalidHyperparameterException
from exec import somewhat_safe_eval
from metrics import metrics
from progress import ProgressBar
from utils import mean, print_event
from validation import validate_positive_int, validate_training_params


class CartPoleTrainer:
    TAG = "cart-pole"

    def __init__(
        self,
        agent: PolicyGradientAgent,
        num_iterations: int,
        games_per_iteration: int,
        max_steps_per_game: int,
        discount_rate: float,
        training_goal: str = "",
        model_path: Path = MODEL_SAVE_PATH,
        plot_path: Path = None,
        renderer=None,
    ):
        validate_training_params(
            num_iterations, games_per_iteration, max_steps_per_game, discount_rate
        )
        self.agent = agent
        self.num_iterations = num_iterations
        self.games_per_iteration = games_per_iteration
        self.max_steps_per_game = max_steps_per_game
        self.discount_rate = discount_rate
        self.training_goal = training_goal
        self.model_path = model_path
        self.plot_path = plot_path
        self.renderer = renderer

        self.mean_step_values: List[Dict] = []
        self.training_goal_met = False
        self.progress_bar = None

    def on_game_end(self, game_count: int, total_games: int):
        self.progress_bar.next()
        if game_count == total_games:
            metrics.end("games")

    def is_training_goal_met(self, mean_steps: float, iteration: int) -> bool:
        if self.training_goal == "":
            return False
        try:
            return bool(
                somewhat_safe_eval(
                    self.training_goal, {"mean_steps": mean_steps, "iteration": iteration}
                )
            )
        except Exception as ex:
            raise InvalidHyperparameterException(
                f"Invalid training goal '{self.training_goal}': {repr(ex)}"
            ) from ex

    def train(self) -> List[Dict]:
        from plotting import plot_mean_steps  # pylint: disable=import-outside-toplevel

        cart_pole = CartPole()
        print_event(
            self.TAG,
            "Training policy network... Please wait. "
            "Network will be saved to disk when training is complete.",
        )

        self.mean_step_values = []
        t0 = time.time()
        for iteration in range(1, self.num_iterations + 1):
            metrics.reset()
            metrics.start("games")
            self.progress_bar = ProgressBar(
                self.TAG,
                iteration,
                self.games_per_iteration,
                progress_steps=max(1, self.games_per_iteration // 4),
                unit="games",
            )
            game_steps = self.agent.train(
                cart_pole,
                self.discount_rate,
                self.games_per_iteration,
                self.max_steps_per_game,
                on_game_end=self.on_game_end,
                on_step=self.renderer,
            )
            t1 = time.time()
            steps_per_second = sum(game_steps) / max(t1 - t0, 1e-6)
            t0 = t1

            mean_steps = mean(game_steps)
            self.mean_step_values.append({"iteration": iteration, "mean_steps": mean_steps})
            print_event(
                self.TAG,
                f"Iteration {iteration} of {self.num_iterations}: "
                f"mean steps {mean_steps:.1f} ({steps_per_second:.1f} steps/s)",
            )
            if self.plot_path is not None:
                plot_mean_steps(self.mean_step_values, self.plot_path)

            if self.is_training_goal_met(mean_steps, iteration):
                self.training_goal_met = True
                print_event(self.TAG, f"Training goal '{self.training_goal}' reached!")
                break

        self.agent.save(self.model_path)
        print_event(self.TAG, "Training completed.")
        return self.mean_step_values


class MovingAverager:
    def __init__(self, buffer_length: int):
        self.buffer = deque(maxlen=buffer_length)

    def append(self, value: float):
        self.buffer.append(value)

    def average(self) -> float:
        return mean(self.buffer)


class SnakeTrainer:
    TAG = "snake-dqn"

    def __init__(
        self,
        agent: DeepQNetworkAgent,
        batch_size: int,
        gamma: float,
        cumulative_reward_threshold: float,
        max_num_frames: int,
        sync_every_frames: int,
        save_path: Path = None,
        log_dir: Path = None,
    ):
        validate_positive_int(batch_size, "batchSize")
        validate_positive_int(max_num_frames, "maxNumFrames")
        validate_positive_int(sync_every_frames, "syncEveryFrames")
        if batch_size > agent.replay_memory.max_len:
            raise InvalidHyperparameterException(
                f"batchSize ({batch_size}) exceeds the replay buffer size "
                f"({agent.replay_memory.max_len})"
            )
        self.agent = agent
        self.batch_size = batch_size
        self.gamma = gamma
        self.cumulative_reward_threshold = cumulative_reward_threshold
        self.max_num_frames = max_num_frames
        self.sync_every_frames = sync_every_frames
        self.save_path = save_path
        self.log_dir = log_dir

    def fill_replay_memory(self):
        replay_buffer_size = self.agent.replay_memory.max_len
        progress_bar = ProgressBar(
            self.TAG, 0, replay_buffer_size, progress_steps=max(1, replay_buffer_size // 10),
            unit="frames",
        )
        for _ in range(replay_buffer_size):
            self.agent.play_step()
            progress_bar.next()

    def train(self) -> float:
        summary_writer = None
        if self.log_dir is not None:
            summary_writer = tf.summary.create_file_writer(str(self.log_dir))

        print_event(self.TAG, "Filling the replay memory...")
        self.fill_replay_memory()

        reward_averager100 = MovingAverager(100)
        eaten_averager100 = MovingAverager(100)

        average_reward100_best = -math.inf
        t_prev = time.time()
        frame_count_prev = self.agent.frame_count
        while True:
            with metrics.measure("train_batch"):
                self.agent.train_on_replay_batch(self.batch_size, self.gamma)
            with metrics.measure("play_step"):
                result = self.agent.play_step()
            if result["done"]:
                t = time.time()
                frames_per_second = (self.agent.frame_count - frame_count_prev) / max(
                    t - t_prev, 1e-6
                )
                t_prev = t
                frame_count_prev = self.agent.frame_count

                reward_averager100.append(result["cumulative_reward"])
                eaten_averager100.append(result["fruits_eaten"])
                average_reward100 = reward_averager100.average()
                average_eaten100 = eaten_averager100.average()

                print_event(
                    self.TAG,
                    f"Frame #{self.agent.frame_count}: "
                    f"cumulativeReward100={average_reward100:.1f}; "
                    f"eaten100={average_eaten100:.2f} "
                    f"(epsilon={self.agent.epsilon:.3f}) "
                    f"({frames_per_second:.1f} frames/s)",
                )
                if summary_writer is not None:
                    with summary_writer.as_default():
                        tf.summary.scalar(
                            "cumulativeReward100", average_reward100, step=self.agent.frame_count
                        )
                        tf.summary.scalar("eaten100", average_eaten100, step=self.agent.frame_count)
                        tf.summary.scalar("epsilon", self.agent.epsilon, step=self.agent.frame_count)
                        tf.summary.scalar(
                            "framesPerSecond", frames_per_second, step=self.agent.frame_count
                        )

                if average_reward100 > average_reward100_best:
                    average_reward100_best = average_reward100
                    if self.save_path is not None:
                        self.agent.save(self.save_path)
                        print_event(self.TAG, f"Saved DQN to {self.save_path}")
                if average_reward100 >= self.cumulative_reward_threshold:
                    print_event(self.TAG, "Reached the cumulative reward threshold.")
                    break

            if self.agent.frame_count % self.sync_every_frames == 0:
                self.agent.sync_target()
                print_event(self.TAG, "Sync'ed weights from online network to target network")
            if self.agent.frame_count >= self.max_num_frames:
                print_event(self.TAG, f"Reached the frame limit ({self.max_num_frames}).")
                break

        if summary_writer is not None:
            summary_writer.flush()
        return average_reward100_best
