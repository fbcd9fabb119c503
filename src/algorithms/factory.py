import json
from pathlib import Path

from algorithms.agent_interface import Agent
from algorithms.dql.agent import DeepQNetworkAgent
from algorithms.vpg.agent import PolicyGradientAgent
from environments.snake_game import SnakeGame
from exception import ModelNotFoundException, UnknownModelTypeException


def get_agent(name: str, state_shape, action_size: int, **kwargs) -> Agent:
    if name == "vpg":
        return PolicyGradientAgent(
            state_shape=state_shape, action_size=action_size, **kwargs
        )

    if name == "dqn":
        game = kwargs.pop("game", None)
        if game is None:
            game = SnakeGame(
                height=state_shape[0],
                width=state_shape[1],
                num_fruits=kwargs.pop("num_fruits", 1),
                init_len=kwargs.pop("init_len", 2),
            )
        return DeepQNetworkAgent(game, **kwargs)

    raise UnknownModelTypeException(
        f"Unable to find agent for the learning algorithm '{name}'"
    )


def load_agent(path: Path) -> Agent:
    path = Path(path)
    if not (path / "meta.json").exists():
        raise ModelNotFoundException(f"Unable to find a model at {path}")
    with open(path / "meta.json", "r", encoding="utf-8") as meta_file:
        meta_info = json.loads(meta_file.read())

    algorithm = meta_info["algorithm"]
    if algorithm == "vpg":
        agent = get_agent(
            algorithm, (4,), 2, hidden_layer_sizes=meta_info["hidden_layer_sizes"]
        )
    elif algorithm == "dqn":
        agent = get_agent(
            algorithm,
            (meta_info["height"], meta_info["width"], 2),
            3,
            num_fruits=meta_info["num_fruits"],
            init_len=meta_info["init_len"],
        )
    else:
        raise UnknownModelTypeException(
            f"Unable to find agent for the learning algorithm '{algorithm}'"
        )

    if not agent.load(path):
        raise ModelNotFoundException(f"Unable to load the model at {path}")
    return agent
