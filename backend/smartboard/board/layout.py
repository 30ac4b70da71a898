import math
import random
from typing import Optional

# Logical canvas shared with the client. All element positions are in this
# space regardless of how the client zooms or pans.
CANVAS_WIDTH = 1600
CANVAS_HEIGHT = 900
CENTER_X = CANVAS_WIDTH / 2
CENTER_Y = CANVAS_HEIGHT / 2

# Half-widths of the jitter box used when the model leaves out coordinates.
JITTER_X = 100.0
JITTER_Y = 50.0

MIND_MAP_MIN_RADIUS = 250.0
MIND_MAP_RADIUS_PER_NODE = 45.0


def default_position(
    x: Optional[float], y: Optional[float], rng: random.Random
) -> tuple[float, float]:
    """Fill in whichever axis is missing with a point jittered around the center."""
    if x is None:
        x = CENTER_X + rng.uniform(-JITTER_X, JITTER_X)
    if y is None:
        y = CENTER_Y + rng.uniform(-JITTER_Y, JITTER_Y)
    return x, y


def mind_map_radius(count: int) -> float:
    return max(MIND_MAP_MIN_RADIUS, count * MIND_MAP_RADIUS_PER_NODE)


def satellite_positions(
    center_x: float, center_y: float, count: int
) -> list[tuple[float, float]]:
    """
    Evenly space `count` points on a circle around the center, first point at
    the top. Canvas y grows downward, so "top" is center_y - radius.
    """
    if count <= 0:
        return []
    radius = mind_map_radius(count)
    step = 2 * math.pi / count
    positions = []
    for index in range(count):
        angle = index * step - math.pi / 2
        positions.append(
            (center_x + radius * math.cos(angle), center_y + radius * math.sin(angle))
        )
    return positions
