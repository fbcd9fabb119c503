import argparse
import datetime
import os
from pathlib import Path
import sys
import time

import humanize

from cleanup import cleanup_on_shutdown
from exception import ExamplesException, InvalidHyperparameterException, ModelNotFoundException
from utils import print_event
from validation import parse_hidden_layer_sizes, validate_positive_int, validate_training_params

CART_POLE_MODEL_PATH = Path("models", "cart-pole-v1")
SNAKE_DQN_MODEL_PATH = Path("models", "dqn")
DATE_CONVERSION_MODEL_PATH = Path("models", "date-conversion", "original")
JENA_WEATHER_MODEL_PATH = Path("models", "jena-weather", "original")
SENTIMENT_MODEL_PATH = Path("models", "sentiment", "original")

MIN_DATE_INPUT_LENGTH = 6


def int_from_float(value: str) -> int:
    """argparse type accepting integers written as floats, e.g. `1e6`."""
    try:
        number = float(value)
    except ValueError as ex:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}'") from ex
    if not number.is_integer():
        raise argparse.ArgumentTypeError(f"expected an integer, got '{value}'")
    return int(number)


# cart-pole


def cart_pole_create(args):
    from algorithms.factory import get_agent  # pylint: disable=import-outside-toplevel
    from environments.cart_pole import STATE_SIZE  # pylint: disable=import-outside-toplevel

    hidden_layer_sizes = parse_hidden_layer_sizes(args.hidden_layer_sizes)
    agent = get_agent("vpg", (STATE_SIZE,), 2, hidden_layer_sizes=hidden_layer_sizes)
    agent.save(args.model_path)
    print_event("cart-pole", f"Created a new policy network {hidden_layer_sizes} at {args.model_path}")


def cart_pole_train(args):
    # pylint: disable=import-outside-toplevel
    from algorithms.factory import get_agent, load_agent
    from algorithms.vpg.agent import check_stored_model_status
    from environments.cart_pole import STATE_SIZE
    from train import CartPoleTrainer

    validate_training_params(
        args.num_iterations, args.games_per_iteration, args.max_steps_per_game, args.discount_rate
    )

    if check_stored_model_status(args.model_path) is not None:
        agent = load_agent(args.model_path)
        agent.set_learning_rate(args.learning_rate)
        print_event("cart-pole", f"Loaded policy network {agent.hidden_layer_sizes()}")
    else:
        hidden_layer_sizes = parse_hidden_layer_sizes(args.hidden_layer_sizes)
        agent = get_agent(
            "vpg",
            (STATE_SIZE,),
            2,
            hidden_layer_sizes=hidden_layer_sizes,
            learning_rate=args.learning_rate,
        )
        print_event("cart-pole", f"Created policy network {hidden_layer_sizes}")

    renderer = None
    if args.render:
        from plotting import CartPoleRenderer  # pylint: disable=import-outside-toplevel

        renderer = CartPoleRenderer()
    try:
        CartPoleTrainer(
            agent,
            args.num_iterations,
            args.games_per_iteration,
            args.max_steps_per_game,
            args.discount_rate,
            training_goal=args.training_goal,
            model_path=args.model_path,
            plot_path=args.plot,
            renderer=renderer,
        ).train()
    finally:
        if renderer is not None:
            renderer.close()


def cart_pole_test(args):
    # pylint: disable=import-outside-toplevel
    from algorithms.factory import load_agent
    from environments.cart_pole import CartPole

    validate_positive_int(args.max_steps, "maxSteps")
    agent = load_agent(args.model_path)

    renderer = None
    if args.render:
        from plotting import CartPoleRenderer  # pylint: disable=import-outside-toplevel

        renderer = CartPoleRenderer()
    try:
        cart_pole = CartPole()
        cart_pole.set_random_state()
        steps = 0
        while steps < args.max_steps:
            action, _ = agent.act(cart_pole.get_state())
            is_done = cart_pole.update(action)
            steps += 1
            if renderer is not None:
                renderer(cart_pole)
            if is_done:
                break
    finally:
        if renderer is not None:
            renderer.close()
    print_event("cart-pole", f"Test game survived {steps} steps")
    return steps


def cart_pole_status(args):
    from algorithms.vpg.agent import check_stored_model_status  # pylint: disable=import-outside-toplevel

    meta_info = check_stored_model_status(args.model_path)
    if meta_info is None:
        print_event("cart-pole", "No stored model.")
        return
    age = humanize.naturaltime(datetime.datetime.now() - meta_info["date_saved"])
    print_event(
        "cart-pole",
        f"Stored model {meta_info['hidden_layer_sizes']} at {args.model_path}, saved {age}",
    )


def cart_pole_delete(args):
    # pylint: disable=import-outside-toplevel
    from algorithms.vpg.agent import check_stored_model_status, remove_model

    if check_stored_model_status(args.model_path) is None:
        raise ModelNotFoundException(f"No stored model at {args.model_path}")
    remove_model(args.model_path)
    print_event("cart-pole", f"Deleted the stored model at {args.model_path}")


# snake-dqn


def snake_dqn_train(args):
    # pylint: disable=import-outside-toplevel
    from algorithms.dql.agent import DeepQNetworkAgent
    from environments.snake_game import SnakeGame
    from train import SnakeTrainer

    game = SnakeGame(
        height=args.height, width=args.width, num_fruits=args.num_fruits, init_len=args.init_len
    )
    agent = DeepQNetworkAgent(
        game,
        replay_buffer_size=args.replay_buffer_size,
        epsilon_init=args.epsilon_init,
        epsilon_final=args.epsilon_final,
        epsilon_decay_frames=args.epsilon_decay_frames,
        learning_rate=args.learning_rate,
        batch_size=args.batch_size,
        gamma=args.gamma,
    )
    best_reward = SnakeTrainer(
        agent,
        args.batch_size,
        args.gamma,
        args.cumulative_reward_threshold,
        args.max_num_frames,
        args.sync_every_frames,
        save_path=args.save_path,
        log_dir=args.log_dir,
    ).train()
    print_event("snake-dqn", f"Training done. Best cumulativeReward100: {best_reward:.1f}")


def snake_dqn_play(args):
    # pylint: disable=import-outside-toplevel
    from algorithms.dql.agent import DeepQNetworkAgent
    from algorithms.factory import load_agent

    validate_positive_int(args.max_steps, "maxSteps")
    agent = load_agent(args.model_path)
    if not isinstance(agent, DeepQNetworkAgent):
        raise ModelNotFoundException(f"The model at {args.model_path} is not a snake DQN")

    game = agent.game
    game.reset()
    cumulative_reward = 0.0
    fruits_eaten = 0
    steps = 0
    while steps < args.max_steps:
        action, q_values = agent.act(game.get_state(), epsilon=0.0)
        result = game.step(action)
        steps += 1
        cumulative_reward += result["reward"]
        if result["fruit_eaten"]:
            fruits_eaten += 1
        print(game.render_text())
        print(f"Q-values: {', '.join(f'{q:.2f}' for q in q_values)}; action: {action}\n")
        if result["done"]:
            break
    print_event(
        "snake-dqn",
        f"Game over after {steps} steps: cumulative reward {cumulative_reward:.1f}, "
        f"fruits eaten {fruits_eaten}",
    )


# date-conversion


def date_conversion_train(args):
    from date_conversion.train import train_model  # pylint: disable=import-outside-toplevel

    validate_positive_int(args.epochs, "epochs")
    validate_positive_int(args.batch_size, "batchSize")
    if args.min_year >= args.max_year:
        raise InvalidHyperparameterException(
            f"Expected minYear < maxYear, but got {args.min_year} and {args.max_year}"
        )
    train_model(
        epochs=args.epochs,
        batch_size=args.batch_size,
        save_path=args.save_path,
        min_year=args.min_year,
        max_year=args.max_year,
        history_plot=args.history_plot,
    )


def normalize_date_input(input_str: str, max_len: int):
    """Upper-cases and trims a raw date string. Returns None when it is too short to convert."""
    input_str = input_str.strip().upper()
    if len(input_str) < MIN_DATE_INPUT_LENGTH:
        return None
    return input_str[:max_len]


def date_conversion_convert(args):
    # pylint: disable=import-outside-toplevel
    import numpy as np
    from tensorflow import keras

    from date_conversion.date_format import INPUT_FNS, INPUT_LENGTH, generate_random_date_tuple
    from date_conversion.model import run_seq2seq_inference

    model_path = Path(args.model_path) / "model.keras"
    if not model_path.is_file():
        raise ModelNotFoundException(
            f"Cannot find model file at {model_path}. Make sure you train and save a model "
            f"with the following command first: ml-examples date-conversion train"
        )

    if args.random:
        rng = np.random.default_rng()
        input_fn = INPUT_FNS[int(rng.integers(0, len(INPUT_FNS)))]
        raw_input = input_fn(generate_random_date_tuple(rng))
    elif args.input is not None:
        raw_input = args.input
    else:
        raise InvalidHyperparameterException("Provide a date string or --random")

    input_str = normalize_date_input(raw_input, INPUT_LENGTH)
    if input_str is None:
        return None

    model = keras.models.load_model(model_path)
    t0 = time.time()
    result = run_seq2seq_inference(model, input_str, get_attention=args.attention_plot is not None)
    elapsed_ms = (time.time() - t0) * 1000
    print_event(
        "date-conversion", f'"{input_str}" --> "{result["output_str"]}" ({elapsed_ms:.1f} ms)'
    )

    if args.attention_plot is not None:
        from plotting import plot_attention_heatmap  # pylint: disable=import-outside-toplevel

        y_labels = list(input_str) + [""] * (INPUT_LENGTH - len(input_str))
        plot_attention_heatmap(
            result["attention"][0], list(result["output_str"]), y_labels, args.attention_plot
        )
        print_event("date-conversion", f"Attention heatmap written to {args.attention_plot}")
    return result["output_str"]


# jena-weather


def _jena_weather_settings(args) -> dict:
    validate_positive_int(args.step, "step")
    validate_positive_int(args.look_back, "lookBack", minimum=args.step)
    validate_positive_int(args.delay, "delay")
    validate_positive_int(args.batch_size, "batchSize")
    return {
        "normalize": args.normalize,
        "include_date_time": args.include_date_time,
        "look_back": args.look_back,
        "step": args.step,
        "delay": args.delay,
    }


def _load_jena_weather_data(args):
    from jena_weather.data import JenaWeatherData  # pylint: disable=import-outside-toplevel

    if args.data_source:
        return JenaWeatherData().load(args.data_source)
    return JenaWeatherData().load()


def jena_weather_train(args):
    # pylint: disable=import-outside-toplevel
    import tensorflow as tf

    from jena_weather.models import build_model, train_model

    settings = _jena_weather_settings(args)
    validate_positive_int(args.epochs, "epochs")
    if args.gpu:
        gpus = tf.config.list_physical_devices("GPU")
        print_event("jena-weather", f"Visible GPUs: {len(gpus)}")

    jena_weather_data = _load_jena_weather_data(args)
    num_features = len(jena_weather_data.get_data_column_names()) + (
        2 if args.include_date_time else 0
    )
    model = build_model(args.model_type, args.look_back // args.step, num_features)
    model.summary()

    history = train_model(
        model,
        jena_weather_data,
        args.normalize,
        args.include_date_time,
        args.look_back,
        args.step,
        args.delay,
        args.batch_size,
        args.epochs,
        args.display_every,
        save_path=args.save_path,
        meta={"model_type": args.model_type, "data_source": args.data_source, **settings},
    )
    final_val_loss = history.history.get("val_loss", [float("nan")])[-1]
    print_event("jena-weather", f"Final validation loss: {final_val_loss:.4f}")


def jena_weather_baseline(args):
    # pylint: disable=import-outside-toplevel
    from jena_weather.models import get_baseline_mean_absolute_error

    settings = _jena_weather_settings(args)
    jena_weather_data = _load_jena_weather_data(args)
    mae = get_baseline_mean_absolute_error(
        jena_weather_data,
        settings["normalize"],
        settings["include_date_time"],
        settings["look_back"],
        settings["step"],
        settings["delay"],
        batch_size=args.batch_size,
    )
    print_event("jena-weather", f"Commonsense baseline mean absolute error: {mae:.4f}")
    return mae


# sentiment


def sentiment_train(args):
    from sentiment.models import train_model  # pylint: disable=import-outside-toplevel

    validate_positive_int(args.num_words, "numWords")
    validate_positive_int(args.max_len, "maxLen")
    validate_positive_int(args.embedding_size, "embeddingSize")
    validate_positive_int(args.epochs, "epochs")
    validate_positive_int(args.batch_size, "batchSize")
    if not 0 <= args.validation_split < 1:
        raise InvalidHyperparameterException(
            f"Invalid validation split: {args.validation_split}"
        )
    train_model(
        model_type=args.model_type,
        num_words=args.num_words,
        max_len=args.max_len,
        embedding_size=args.embedding_size,
        epochs=args.epochs,
        batch_size=args.batch_size,
        validation_split=args.validation_split,
        save_path=args.save_path,
        embedding_files_prefix=args.embedding_files_prefix,
    )


# quantize


def quantize(args):
    from quantization.evaluate import quantize_evaluate  # pylint: disable=import-outside-toplevel

    return quantize_evaluate(args.model_name, args.models_root)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ml-examples", description="Machine learning examples built on TensorFlow"
    )
    examples = parser.add_subparsers(dest="example", required=True)

    # cart-pole
    cart_pole = examples.add_parser("cart-pole", help="Policy-gradient cart-pole balancing")
    cart_pole_commands = cart_pole.add_subparsers(dest="command", required=True)

    create = cart_pole_commands.add_parser("create", help="Create and save a new policy network")
    create.add_argument("--hidden-layer-sizes", default="128")
    create.set_defaults(func=cart_pole_create)

    train = cart_pole_commands.add_parser("train", help="Train the policy network")
    train.add_argument("--hidden-layer-sizes", default="128")
    train.add_argument("--num-iterations", type=int, default=20)
    train.add_argument("--games-per-iteration", type=int, default=20)
    train.add_argument("--max-steps-per-game", type=int, default=500)
    train.add_argument("--discount-rate", type=float, default=0.95)
    train.add_argument("--learning-rate", type=float, default=0.05)
    train.add_argument(
        "--training-goal",
        default="",
        help="Expression over mean_steps and iteration, e.g. 'mean_steps >= 400'",
    )
    train.add_argument("--plot", type=Path, default=None, help="PNG file for the mean-steps plot")
    train.add_argument("--render", action="store_true")
    train.set_defaults(func=cart_pole_train)

    test = cart_pole_commands.add_parser("test", help="Play one game with the stored model")
    test.add_argument("--render", action="store_true")
    test.add_argument("--max-steps", type=int, default=1000)
    test.set_defaults(func=cart_pole_test)

    status = cart_pole_commands.add_parser("status", help="Show the stored model status")
    status.set_defaults(func=cart_pole_status)

    delete = cart_pole_commands.add_parser("delete", help="Delete the stored model")
    delete.set_defaults(func=cart_pole_delete)

    for command in (create, train, test, status, delete):
        command.add_argument("--model-path", type=Path, default=CART_POLE_MODEL_PATH)

    # snake-dqn
    snake_dqn = examples.add_parser("snake-dqn", help="Deep Q-learning for the snake game")
    snake_dqn_commands = snake_dqn.add_subparsers(dest="command", required=True)

    train = snake_dqn_commands.add_parser("train", help="Train the DQN")
    train.add_argument("--height", type=int, default=9)
    train.add_argument("--width", type=int, default=9)
    train.add_argument("--num-fruits", type=int, default=1)
    train.add_argument("--init-len", type=int, default=2)
    train.add_argument("--cumulative-reward-threshold", type=float, default=100)
    train.add_argument("--max-num-frames", type=int_from_float, default=1000000)
    train.add_argument("--replay-buffer-size", type=int_from_float, default=10000)
    train.add_argument("--epsilon-init", type=float, default=0.5)
    train.add_argument("--epsilon-final", type=float, default=0.01)
    train.add_argument("--epsilon-decay-frames", type=int_from_float, default=100000)
    train.add_argument("--batch-size", type=int, default=64)
    train.add_argument("--gamma", type=float, default=0.99)
    train.add_argument("--learning-rate", type=float, default=1e-3)
    train.add_argument("--sync-every-frames", type=int_from_float, default=1000)
    train.add_argument("--save-path", type=Path, default=SNAKE_DQN_MODEL_PATH)
    train.add_argument("--log-dir", type=Path, default=None)
    train.set_defaults(func=snake_dqn_train)

    play = snake_dqn_commands.add_parser("play", help="Play greedily with a saved DQN")
    play.add_argument("--model-path", type=Path, default=SNAKE_DQN_MODEL_PATH)
    play.add_argument("--max-steps", type=int, default=200)
    play.set_defaults(func=snake_dqn_play)

    # date-conversion
    date_conversion = examples.add_parser(
        "date-conversion", help="Seq2seq date format conversion with attention"
    )
    date_conversion_commands = date_conversion.add_subparsers(dest="command", required=True)

    train = date_conversion_commands.add_parser("train", help="Train the seq2seq model")
    train.add_argument("--epochs", type=int, default=2)
    train.add_argument("--batch-size", type=int, default=128)
    train.add_argument("--min-year", type=int, default=1950)
    train.add_argument("--max-year", type=int, default=2050)
    train.add_argument("--history-plot", type=Path, default=None)
    train.add_argument("--save-path", type=Path, default=DATE_CONVERSION_MODEL_PATH)
    train.set_defaults(func=date_conversion_train)

    convert = date_conversion_commands.add_parser(
        "convert", help="Convert a date string to YYYY-MM-DD"
    )
    convert.add_argument("input", nargs="?", default=None)
    convert.add_argument("--random", action="store_true", help="Convert a random date")
    convert.add_argument("--attention-plot", type=Path, default=None)
    convert.add_argument("--model-path", type=Path, default=DATE_CONVERSION_MODEL_PATH)
    convert.set_defaults(func=date_conversion_convert)

    # jena-weather
    jena_weather = examples.add_parser("jena-weather", help="Jena temperature forecasting")
    jena_weather_commands = jena_weather.add_subparsers(dest="command", required=True)

    train = jena_weather_commands.add_parser("train", help="Train a temperature prediction model")
    train.add_argument("--model-type", default="gru")
    train.add_argument("--gpu", action="store_true")
    train.add_argument("--epochs", type=int, default=20)
    train.add_argument("--display-every", type=int, default=10)
    train.add_argument("--save-path", type=Path, default=JENA_WEATHER_MODEL_PATH)
    train.set_defaults(func=jena_weather_train)

    baseline = jena_weather_commands.add_parser(
        "baseline", help="Compute the commonsense baseline error"
    )
    baseline.set_defaults(func=jena_weather_baseline)

    for command in (train, baseline):
        command.add_argument("--look-back", type=int, default=10 * 24 * 6)
        command.add_argument("--step", type=int, default=6)
        command.add_argument("--delay", type=int, default=24 * 6)
        command.add_argument("--normalize", action=argparse.BooleanOptionalAction, default=True)
        command.add_argument("--include-date-time", action="store_true")
        command.add_argument("--batch-size", type=int, default=128)
        command.add_argument("--data-source", default=None, help="Path or URL of the CSV file")

    # sentiment
    sentiment = examples.add_parser("sentiment", help="IMDB movie review sentiment")
    sentiment_commands = sentiment.add_subparsers(dest="command", required=True)

    train = sentiment_commands.add_parser("train", help="Train a sentiment model")
    train.add_argument("--model-type", default="lstm")
    train.add_argument("--num-words", type=int, default=10000)
    train.add_argument("--max-len", type=int, default=100)
    train.add_argument("--embedding-size", type=int, default=128)
    train.add_argument("--epochs", type=int, default=10)
    train.add_argument("--batch-size", type=int, default=128)
    train.add_argument("--validation-split", type=float, default=0.2)
    train.add_argument("--save-path", type=Path, default=SENTIMENT_MODEL_PATH)
    train.add_argument("--embedding-files-prefix", default=None)
    train.set_defaults(func=sentiment_train)

    # quantize
    quantize_parser = examples.add_parser(
        "quantize", help="Quantize a trained model and evaluate the accuracy change"
    )
    quantize_parser.add_argument("model_name", metavar="MODEL_NAME")
    quantize_parser.add_argument("--models-root", type=Path, default=Path("models"))
    quantize_parser.set_defaults(func=quantize)

    return parser


def main(argv=None) -> int:
    # Preventing tensorflow verbose initialization
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except ExamplesException as ex:
        print(f"ERROR: {ex.message}", flush=True)
        return 1
    except KeyboardInterrupt:
        print("\r  ")
        return 130
    finally:
        cleanup_on_shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
