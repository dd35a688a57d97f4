"""Constants and agent settings."""

from __future__ import annotations

from dataclasses import dataclass

# Arena
AREA_DIAMETER = 20.0
GROUND_HEIGHT = 0.0
WALL_HEIGHT = 6.0
CLUSTER_COUNT = 8
FLOWERS_PER_CLUSTER = 3
CLUSTER_RING_MIN = 2.5
CLUSTER_RING_MAX = 7.5

# Cluster randomization on reset (degrees)
CLUSTER_TILT_RANGE = 5.0
CLUSTER_YAW_RANGE = 180.0

# Tags
NECTAR_TAG = "nectar"
BOUNDARY_TAG = "boundary"
FLOWER_PLANT_TAG = "flower_plant"

# Flower
FULL_FLOWER_COLOR = (1.0, 0.0, 0.3)
EMPTY_FLOWER_COLOR = (0.5, 0.0, 0.1)
NECTAR_PROBE_OFFSET = 0.02
NECTAR_PROBE_RADIUS = 0.03
PETAL_RADIUS = 0.04

# Agent
FIXED_DELTA_TIME = 0.02
DECISION_PERIOD = 5
MAX_PITCH_ANGLE = 80.0
BEAK_TIP_RADIUS = 0.008
BEAK_LENGTH = 0.09
BODY_RADIUS = 0.05
BODY_MASS = 1.0
BODY_DRAG = 2.0
FEED_AMOUNT = 0.01
FEED_REWARD = 0.01
FEED_ALIGNMENT_BONUS = 0.02
BOUNDARY_PENALTY = -0.5
SMOOTHING_RATE = 2.0

# Safe placement
PLACEMENT_ATTEMPTS = 100
PLACEMENT_CLEARANCE = 0.05
FRONT_DISTANCE_MIN = 0.1
FRONT_DISTANCE_MAX = 0.2
SPAWN_HEIGHT_MIN = 1.2
SPAWN_HEIGHT_MAX = 2.5
SPAWN_RADIUS_MIN = 2.0
SPAWN_RADIUS_MAX = 7.0
SPAWN_PITCH_RANGE = 60.0
SPAWN_YAW_RANGE = 180.0
FRONT_OF_FLOWER_PROB = 0.5

# Observation / action sizes
OBSERVATION_SIZE = 10
ACTION_SIZE = 5


@dataclass
class AgentSettings:
    move_force: float = 2.0
    pitch_speed: float = 100.0
    yaw_speed: float = 100.0
    training_mode: bool = True
    max_step: int = 5000
    beak_tip_radius: float = BEAK_TIP_RADIUS
    area_diameter: float = AREA_DIAMETER
    # Raise on programming errors instead of logging and carrying on
    strict: bool = False
