"""
Common interface of the reinforcement-learning agents (cart-pole policy gradient, snake DQN).

An agent owns its networks and the experiences it collected since the last update;
the training loops in `train.py` only talk to it through these methods.
"""

import abc
from pathlib import Path
from typing import Tuple


class Agent(metaclass=abc.ABCMeta):
    def __init__(self, state_shape, action_size: int):
        self.state_shape = tuple(state_shape)
        self.action_size = action_size

    @abc.abstractmethod
    def act(self, state) -> Tuple[int, list]:
        """Picks an action for a single game state.

        Returns:
            (int) the chosen action index and (list) the per-action probabilities
            (policy agents) or Q-values (value agents) it was chosen from.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def add_experience(self, state, action, reward, next_state, done):
        """Records one transition. `done` marks the last step of a game."""
        raise NotImplementedError()

    @abc.abstractmethod
    def learn(self):
        """Updates the networks from the recorded experiences."""
        raise NotImplementedError()

    @abc.abstractmethod
    def save(self, path: Path):
        """Writes the model and its meta.json into the `path` directory."""
        raise NotImplementedError()

    @abc.abstractmethod
    def load(self, path: Path) -> bool:
        """Restores a model written by `save`. Returns False when `path` holds no model."""
        raise NotImplementedError()
