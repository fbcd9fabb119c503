import numpy as np


class Memory:
    """Sets up a per-game memory buffer for Policy Gradient methods."""

    def __init__(self):
        self.games = []
        self.current_game = []

    def add(self, experience):
        """Adds an experience into the current game's buffer.

        Args:
            experience: a (state, action, reward) tuple.
        """
        self.current_game.append(experience)

    def end_game(self):
        if len(self.current_game) > 0:
            self.games.append(self.current_game)
        self.current_game = []

    def clear(self):
        self.games = []
        self.current_game = []

    def num_games(self) -> int:
        return len(self.games) + (1 if len(self.current_game) > 0 else 0)

    def sample(self):
        """Returns the experiences of every recorded game and clears the buffer.

        Returns:
            (list): One ([states], [actions], [rewards]) tuple of arrays per game.
        """
        self.end_game()
        games = []
        for game in self.games:
            states, actions, rewards = zip(*game)
            games.append(
                (
                    np.array(states, dtype=np.float32),
                    np.array(actions, dtype=np.int8),
                    np.array(rewards, dtype=np.float32),
                )
            )
        self.clear()
        return games
