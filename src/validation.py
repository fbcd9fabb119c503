from typing import List

from exception import InvalidHyperparameterException


def parse_hidden_layer_sizes(sizes_str: str) -> List[int]:
    sizes = []
    for value in sizes_str.strip().split(","):
        try:
            num = int(value.strip())
        except ValueError:
            num = 0
        if num <= 0:
            raise InvalidHyperparameterException(
                f"Invalid hidden layer sizes string: {sizes_str}"
            )
        sizes.append(num)
    return sizes


def validate_positive_int(value, name: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidHyperparameterException(
            f"Expected {name} to be an integer >= {minimum}, but got {value}"
        )
    return value


def validate_training_params(
    num_iterations: int,
    games_per_iteration: int,
    max_steps_per_game: int,
    discount_rate: float,
):
    if not num_iterations > 0:
        raise InvalidHyperparameterException(
            f"Invalid number of iterations: {num_iterations}"
        )
    if not games_per_iteration > 0:
        raise InvalidHyperparameterException(
            f"Invalid # of games per iterations: {games_per_iteration}"
        )
    if not max_steps_per_game > 1:
        raise InvalidHyperparameterException(
            f"Invalid max. steps per game: {max_steps_per_game}"
        )
    if not 0 < discount_rate < 1:
        raise InvalidHyperparameterException(f"Invalid discount rate: {discount_rate}")
