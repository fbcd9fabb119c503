from pathlib import Path
from typing import Dict, List, Sequence

import numpy as np
from matplotlib.figure import Figure


def _save(fig: Figure, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    return path


def plot_mean_steps(mean_step_values: List[Dict], path) -> Path:
    """Line plot of the mean number of steps per game for each training iteration."""
    fig = Figure(figsize=(5, 3), tight_layout=True)
    ax = fig.add_subplot()
    iterations = [value["iteration"] for value in mean_step_values]
    mean_steps = [value["mean_steps"] for value in mean_step_values]
    ax.plot(iterations, mean_steps, marker="o")
    ax.set_xlabel("iteration")
    ax.set_ylabel("mean steps")
    return _save(fig, path)


def plot_attention_heatmap(
    attention: np.ndarray, x_labels: Sequence[str], y_labels: Sequence[str], path
) -> Path:
    """Heatmap of the attention weights: input characters vs. output characters.

    Args:
        attention: [output_length, input_length] array of attention weights.
    """
    fig = Figure(figsize=(6, 3.6), tight_layout=True)
    ax = fig.add_subplot()
    image = ax.imshow(np.transpose(attention), cmap="Blues", aspect="auto")
    ax.set_xticks(range(len(x_labels)))
    ax.set_xticklabels(x_labels, rotation=90)
    ax.set_yticks(range(len(y_labels)))
    ax.set_yticklabels(y_labels)
    ax.set_xlabel("Output characters")
    ax.set_ylabel("Input characters")
    fig.colorbar(image, ax=ax)
    return _save(fig, path)


def plot_history(history: Dict[str, List[float]], path, title: str = "") -> Path:
    """Plots the per-epoch metrics of a keras History.history dict."""
    fig = Figure(figsize=(5, 3), tight_layout=True)
    ax = fig.add_subplot()
    for metric_name, values in history.items():
        ax.plot(range(1, len(values) + 1), values, label=metric_name)
    ax.set_xlabel("epoch")
    if title:
        ax.set_title(title)
    ax.legend()
    return _save(fig, path)


class CartPoleRenderer:
    """Renders the cart-pole system in an interactive matplotlib window."""

    def __init__(self, pause_secs: float = 0.001):
        import matplotlib.pyplot as plt  # pylint: disable=import-outside-toplevel

        self.plt = plt
        self.pause_secs = pause_secs
        self.plt.ion()
        self.fig, self.ax = self.plt.subplots(figsize=(6, 2.5))

    def __call__(self, cart_pole):
        cart_pole.render(self.ax)
        self.plt.pause(self.pause_secs)

    def close(self):
        self.plt.close(self.fig)
