"""
Cart-pole balancing simulator.

A pole is hinged on a cart that moves along a frictionless track. The agent pushes
the cart left or right with a fixed force; the game ends as soon as the cart leaves
the track or the pole tilts too far from upright.
"""
import math

import numpy as np

GRAVITY = 9.8
MASS_CART = 1.0
MASS_POLE = 0.1
TOTAL_MASS = MASS_CART + MASS_POLE
CART_WIDTH = 0.2
CART_HEIGHT = 0.1
POLE_LENGTH = 0.5
POLE_MOMENT = MASS_POLE * POLE_LENGTH
FORCE_MAG = 10.0
TAU = 0.02

X_THRESHOLD = 2.4
THETA_THRESHOLD = 12 / 360 * 2 * math.pi

STATE_SIZE = 4


class CartPole:
    def __init__(self, rng: np.random.Generator = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.x = 0.0
        self.x_dot = 0.0
        self.theta = 0.0
        self.theta_dot = 0.0
        self.set_random_state()

    def set_random_state(self):
        # The control-theory state variables of the cart-pole system.
        self.x = self.rng.random() - 0.5
        self.x_dot = (self.rng.random() - 0.5) * 1
        self.theta = (self.rng.random() - 0.5) * 2 * (6 / 360 * 2 * math.pi)
        self.theta_dot = (self.rng.random() - 0.5) * 0.5

    def get_state(self) -> np.ndarray:
        return np.array([self.x, self.x_dot, self.theta, self.theta_dot], dtype=np.float32)

    def update(self, action: int) -> bool:
        """Advance the simulation by one time step.

        Args:
            action: Positive values push the cart to the right, anything else to the left.

        Returns:
            (bool) Whether the game is over after this step.
        """
        force = FORCE_MAG if action > 0 else -FORCE_MAG

        cos_theta = math.cos(self.theta)
        sin_theta = math.sin(self.theta)

        temp = (force + POLE_MOMENT * self.theta_dot * self.theta_dot * sin_theta) / TOTAL_MASS
        theta_acc = (GRAVITY * sin_theta - cos_theta * temp) / (
            POLE_LENGTH * (4 / 3 - MASS_POLE * cos_theta * cos_theta / TOTAL_MASS)
        )
        x_acc = temp - POLE_MOMENT * theta_acc * cos_theta / TOTAL_MASS

        # Euler integration.
        self.x += TAU * self.x_dot
        self.x_dot += TAU * x_acc
        self.theta += TAU * self.theta_dot
        self.theta_dot += TAU * theta_acc

        return self.is_done()

    def is_done(self) -> bool:
        return (
            self.x < -X_THRESHOLD
            or self.x > X_THRESHOLD
            or self.theta < -THETA_THRESHOLD
            or self.theta > THETA_THRESHOLD
        )

    def render(self, ax):
        """Draws the current state of the system on a matplotlib Axes."""
        from matplotlib import patches  # pylint: disable=import-outside-toplevel

        ax.clear()
        ax.set_xlim(-X_THRESHOLD - 0.5, X_THRESHOLD + 0.5)
        ax.set_ylim(-0.5, 2 * POLE_LENGTH + 0.5)
        ax.set_aspect("equal")
        ax.axis("off")

        ax.plot([-X_THRESHOLD, X_THRESHOLD], [0, 0], color="black", linewidth=1)
        ax.add_patch(
            patches.Rectangle(
                (self.x - CART_WIDTH, 0),
                CART_WIDTH * 2,
                CART_HEIGHT,
                facecolor="tab:blue",
            )
        )

        pole_base_y = CART_HEIGHT
        pole_tip_x = self.x + 2 * POLE_LENGTH * math.sin(self.theta)
        pole_tip_y = pole_base_y + 2 * POLE_LENGTH * math.cos(self.theta)
        ax.plot([self.x, pole_tip_x], [pole_base_y, pole_tip_y], color="tab:red", linewidth=3)
        return ax
