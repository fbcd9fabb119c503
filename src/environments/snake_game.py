"""
The snake game played by the deep Q-network agent.

The snake moves one square per step on a rectangular board. Actions are relative
to the current heading (go straight, turn left, turn right). Eating a fruit grows
the snake by one square; hitting a wall or the snake's own body ends the game.
"""
import numpy as np

from exception import InvalidGameConfigException

DEFAULT_HEIGHT = 16
DEFAULT_WIDTH = 16
DEFAULT_NUM_FRUITS = 1
DEFAULT_INIT_LEN = 4

NO_FRUIT_REWARD = -0.2
FRUIT_REWARD = 10
DEATH_REWARD = -10

ACTION_GO_STRAIGHT = 0
ACTION_TURN_LEFT = 1
ACTION_TURN_RIGHT = 2

ALL_ACTIONS = [ACTION_GO_STRAIGHT, ACTION_TURN_LEFT, ACTION_TURN_RIGHT]
NUM_ACTIONS = len(ALL_ACTIONS)

TURN_LEFT = {"l": "d", "u": "l", "r": "u", "d": "r"}
TURN_RIGHT = {"l": "u", "u": "r", "r": "d", "d": "l"}
MOVES = {"l": (0, -1), "u": (-1, 0), "r": (0, 1), "d": (1, 0)}


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def get_random_action(rng: np.random.Generator = None) -> int:
    rng = rng if rng is not None else np.random.default_rng()
    return int(rng.integers(0, NUM_ACTIONS))


class SnakeGame:
    def __init__(
        self,
        height=DEFAULT_HEIGHT,
        width=DEFAULT_WIDTH,
        num_fruits=DEFAULT_NUM_FRUITS,
        init_len=DEFAULT_INIT_LEN,
        rng: np.random.Generator = None,
    ):
        if not (_is_int(height) and height >= 2):
            raise InvalidGameConfigException(
                f"Expected height to be an integer >= 2, but got {height}"
            )
        if not (_is_int(width) and width >= 2):
            raise InvalidGameConfigException(
                f"Expected width to be an integer >= 2, but got {width}"
            )
        if not (_is_int(num_fruits) and num_fruits >= 1):
            raise InvalidGameConfigException(
                f"Expected numFruits to be a positive integer, but got {num_fruits}"
            )
        if not (_is_int(init_len) and 1 <= init_len < width):
            raise InvalidGameConfigException(
                f"Expected initLen to be an integer in [1, {width}), but got {init_len}"
            )
        if num_fruits + init_len > height * width:
            raise InvalidGameConfigException(
                f"Cannot fit {num_fruits} fruit(s) and a snake of length {init_len} "
                f"on a {height}x{width} board"
            )

        self.height = height
        self.width = width
        self.num_fruits = num_fruits
        self.init_len = init_len
        self.rng = rng if rng is not None else np.random.default_rng()

        self.snake_direction = "l"
        self.snake_squares = []
        self.fruit_squares = []
        self.reset()

    def reset(self):
        self._initialize_snake()
        self.fruit_squares = []
        self._make_fruits()
        return self.get_state()

    def step(self, action: int):
        """Moves the snake one square.

        Returns:
            (dict) with keys `state`, `reward`, `done` and `fruit_eaten`.
        """
        self._update_direction(action)

        delta_y, delta_x = MOVES[self.snake_direction]
        head_y, head_x = self.snake_squares[0]
        new_head = [head_y + delta_y, head_x + delta_x]

        if self._is_out_of_bounds(new_head) or self._is_on_snake_body(new_head):
            return {
                "state": self.get_state(),
                "reward": DEATH_REWARD,
                "done": True,
                "fruit_eaten": False,
            }

        self.snake_squares.insert(0, new_head)

        fruit_eaten = False
        if new_head in self.fruit_squares:
            fruit_eaten = True
            self.fruit_squares.remove(new_head)
            self._make_fruits()
            reward = FRUIT_REWARD
        else:
            self.snake_squares.pop()
            reward = NO_FRUIT_REWARD

        return {
            "state": self.get_state(),
            "reward": reward,
            "done": False,
            "fruit_eaten": fruit_eaten,
        }

    def get_state(self) -> dict:
        return {
            "s": [list(square) for square in self.snake_squares],
            "f": [list(square) for square in self.fruit_squares],
        }

    def render_text(self) -> str:
        board = [["." for _ in range(self.width)] for _ in range(self.height)]
        for y, x in self.fruit_squares:
            board[y][x] = "F"
        for i, (y, x) in enumerate(self.snake_squares):
            board[y][x] = "H" if i == 0 else "o"
        return "\n".join(" ".join(row) for row in board)

    def _initialize_snake(self):
        self.snake_direction = "l"
        y = int(self.rng.integers(0, self.height))
        x = int(self.rng.integers(0, self.width - self.init_len + 1))
        self.snake_squares = [[y, x + i] for i in range(self.init_len)]

    def _update_direction(self, action: int):
        if action == ACTION_TURN_LEFT:
            self.snake_direction = TURN_LEFT[self.snake_direction]
        elif action == ACTION_TURN_RIGHT:
            self.snake_direction = TURN_RIGHT[self.snake_direction]

    def _is_out_of_bounds(self, square) -> bool:
        y, x = square
        return y < 0 or y >= self.height or x < 0 or x >= self.width

    def _is_on_snake_body(self, square) -> bool:
        # The tail square is vacated during the same step.
        return square in self.snake_squares[:-1]

    def _make_fruits(self):
        occupied = {tuple(square) for square in self.snake_squares + self.fruit_squares}
        empty = [
            [y, x]
            for y in range(self.height)
            for x in range(self.width)
            if (y, x) not in occupied
        ]
        num_new = min(self.num_fruits - len(self.fruit_squares), len(empty))
        if num_new <= 0:
            return
        for index in self.rng.choice(len(empty), size=num_new, replace=False):
            self.fruit_squares.append(empty[index])


def get_state_tensor(states, h: int, w: int) -> np.ndarray:
    """Converts one or more game states into the network's input format.

    Args:
        states: A state dict (as returned by `SnakeGame.get_state`) or a list of them.
        h: Height of the board.
        w: Width of the board.

    Returns:
        (np.ndarray) float32 array of shape [n, h, w, 2]. Channel 0 marks the snake
        (2 for the head, 1 for the body) and channel 1 marks the fruits.
    """
    if isinstance(states, dict):
        states = [states]
    buffer = np.zeros((len(states), h, w, 2), dtype=np.float32)
    for n, state in enumerate(states):
        for i, (y, x) in enumerate(state["s"]):
            buffer[n, y, x, 0] = 2 if i == 0 else 1
        for y, x in state["f"]:
            buffer[n, y, x, 1] = 1
    return buffer
