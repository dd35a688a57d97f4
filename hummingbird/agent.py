"""Hummingbird agent: actions, observations, nearest flower, spawn and rewards."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import numpy as np

from . import config
from . import geometry as geo
from .config import AgentSettings
from .exceptions import FlowerNotFoundError, SafePlacementError, TrainingModeError
from .flower import Flower
from .flower_area import FlowerArea
from .scene import Collider, PhysicsWorld, RigidBody

logger = logging.getLogger(__name__)


class Agent:
    """
    Decision-making protocol driven by an external harness.

    The harness calls ``begin_episode`` once per episode and, per decision
    step, ``collect_observations`` / ``on_action_received``. Rewards added
    between two ``drain_reward`` calls are handed back as the step reward.
    A ``max_step`` of 0 means episodes are never truncated.
    """

    def __init__(self, max_step: int = 0) -> None:
        self.max_step = max_step
        self.step_count = 0
        self.completed_episodes = 0
        self.episode_done = False
        self._pending_reward = 0.0
        self._cumulative_reward = 0.0

    def initialize(self) -> None:
        pass

    def on_episode_begin(self) -> None:
        pass

    def on_action_received(self, action) -> None:
        raise NotImplementedError

    def collect_observations(self) -> np.ndarray:
        raise NotImplementedError

    def heuristic(self, controls) -> np.ndarray:
        raise NotImplementedError

    def begin_episode(self) -> None:
        self.step_count = 0
        self.episode_done = False
        self._pending_reward = 0.0
        self._cumulative_reward = 0.0
        self.on_episode_begin()

    def end_episode(self) -> None:
        if not self.episode_done:
            self.episode_done = True
            self.completed_episodes += 1

    def increment_step(self) -> bool:
        """Count a decision step; True once the step budget is used up."""
        self.step_count += 1
        return self.max_step > 0 and self.step_count >= self.max_step

    def add_reward(self, reward: float) -> None:
        self._pending_reward += reward
        self._cumulative_reward += reward

    def drain_reward(self) -> float:
        reward, self._pending_reward = self._pending_reward, 0.0
        return reward

    def get_cumulative_reward(self) -> float:
        return self._cumulative_reward


@dataclass
class ManualInput:
    """Discrete manual controls, each axis -1, 0 or +1."""

    forward: int = 0
    right: int = 0
    up: int = 0
    pitch: int = 0
    yaw: int = 0

    @classmethod
    def from_keys(cls, pressed: Mapping[str, bool]) -> "ManualInput":
        """W/S forward, A/D strafe, E/Q climb, arrows pitch and yaw; first key of a pair wins."""

        def axis(positive: str, negative: str) -> int:
            if pressed.get(positive, False):
                return 1
            if pressed.get(negative, False):
                return -1
            return 0

        return cls(
            forward=axis("w", "s"),
            right=axis("d", "a"),
            up=axis("e", "q"),
            pitch=axis("up", "down"),
            yaw=axis("right", "left"),
        )


@dataclass
class Placement:
    position: np.ndarray
    rotation: np.ndarray
    attempts: int
    safe: bool


class HummingbirdAgent(Agent):
    """
    A hummingbird that learns to drink nectar.

    Action vector (5 floats in [-1, 1]):
        [0] +1 right / -1 left
        [1] +1 up / -1 down
        [2] +1 forward / -1 back
        [3] +1 nose down / -1 nose up
        [4] +1 turn right / -1 turn left

    Observation vector (10 floats): local rotation quaternion (4), direction
    from beak tip to the nearest flower (3), beak-in-front-of-flower dot (1),
    beak-pointing-at-flower dot (1), distance to the flower over the arena
    diameter (1). All zeros while there is no nearest flower.
    """

    def __init__(
        self,
        body: RigidBody,
        flower_area: FlowerArea,
        world: PhysicsWorld,
        settings: Optional[AgentSettings] = None,
        rng: Optional[np.random.Generator] = None,
        beak_length: float = config.BEAK_LENGTH,
    ) -> None:
        settings = settings if settings is not None else AgentSettings()
        super().__init__(max_step=settings.max_step)
        self.settings = settings
        self.body = body
        self.flower_area = flower_area
        self.world = world
        self.rng = rng if rng is not None else np.random.default_rng()
        self.beak_length = beak_length
        self.fixed_delta_time = config.FIXED_DELTA_TIME

        self.smooth_pitch_change = 0.0
        self.smooth_yaw_change = 0.0
        self.nectar_obtained = 0.0
        self.frozen = False
        self._nearest_index: Optional[int] = None

    @property
    def training_mode(self) -> bool:
        return self.settings.training_mode

    @property
    def beak_forward(self) -> np.ndarray:
        return self.body.forward

    @property
    def beak_tip_position(self) -> np.ndarray:
        return self.body.position + self.body.forward * self.beak_length

    @property
    def nearest_flower(self) -> Optional[Flower]:
        if self._nearest_index is None:
            return None
        return self.flower_area.flowers[self._nearest_index]

    @property
    def nearest_flower_index(self) -> Optional[int]:
        return self._nearest_index

    # ------------------------------------------------------------------ #
    # Harness protocol
    # ------------------------------------------------------------------ #
    def initialize(self) -> None:
        if not self.training_mode:
            # Manual play: unbounded episodes
            self.max_step = 0
        logger.debug(
            "hummingbird initialized: training=%s max_step=%d flowers=%d",
            self.training_mode,
            self.max_step,
            len(self.flower_area.flowers),
        )

    def on_episode_begin(self) -> None:
        if self.training_mode:
            self.flower_area.reset_flowers()

        self.nectar_obtained = 0.0
        self.body.velocity = geo.vec3()
        self.body.angular_velocity = geo.vec3()
        self.smooth_pitch_change = 0.0
        self.smooth_yaw_change = 0.0

        in_front_of_flower = True
        if self.training_mode:
            in_front_of_flower = self.rng.random() > config.FRONT_OF_FLOWER_PROB

        self.move_to_safe_random_position(in_front_of_flower)
        self.update_nearest_flower()

    def on_action_received(self, action) -> None:
        if self.frozen:
            return

        action = np.asarray(action, dtype=np.float64).reshape(-1)
        if action.shape[0] != config.ACTION_SIZE:
            raise ValueError(f"expected {config.ACTION_SIZE} action values, got {action.shape[0]}")

        self.body.add_force(action[:3] * self.settings.move_force)

        dt = self.fixed_delta_time
        pitch, yaw, _ = geo.quat_to_euler(self.body.rotation)

        self.smooth_pitch_change = geo.move_towards(
            self.smooth_pitch_change, float(action[3]), config.SMOOTHING_RATE * dt
        )
        self.smooth_yaw_change = geo.move_towards(
            self.smooth_yaw_change, float(action[4]), config.SMOOTHING_RATE * dt
        )

        pitch += self.smooth_pitch_change * dt * self.settings.pitch_speed
        if pitch > 180.0:
            pitch -= 360.0
        pitch = geo.clamp(pitch, -config.MAX_PITCH_ANGLE, config.MAX_PITCH_ANGLE)
        yaw += self.smooth_yaw_change * dt * self.settings.yaw_speed

        self.body.rotation = geo.quat_from_euler(pitch, yaw, 0.0)

    def collect_observations(self) -> np.ndarray:
        flower = self.nearest_flower
        if flower is None:
            return np.zeros(config.OBSERVATION_SIZE, dtype=np.float32)

        area_rotation = self.flower_area.node.world_rotation
        local_rotation = geo.quat_normalize(geo.quat_multiply(geo.quat_conjugate(area_rotation), self.body.rotation))

        beak_to_flower = flower.center_position - self.beak_tip_position
        direction = geo.normalized(beak_to_flower)
        into_flower = -geo.normalized(flower.up_vector)

        return np.concatenate(
            [
                local_rotation,
                direction,
                [
                    float(np.dot(direction, into_flower)),
                    float(np.dot(geo.normalized(self.beak_forward), into_flower)),
                    float(np.linalg.norm(beak_to_flower)) / self.settings.area_diameter,
                ],
            ]
        ).astype(np.float32)

    def heuristic(self, controls: ManualInput) -> np.ndarray:
        """Map discrete manual controls onto the action vector."""
        move = (
            self.body.forward * controls.forward
            + self.body.up * controls.up
            + self.body.right * controls.right
        )
        direction = geo.normalized(move)
        return np.array(
            [direction[0], direction[1], direction[2], float(controls.pitch), float(controls.yaw)],
            dtype=np.float32,
        )

    # ------------------------------------------------------------------ #
    # Freeze (manual play only)
    # ------------------------------------------------------------------ #
    def freeze_agent(self) -> None:
        if self.training_mode:
            raise TrainingModeError("freeze/unfreeze is not supported in training")
        self.frozen = True
        self.body.sleep()

    def unfreeze_agent(self) -> None:
        if self.training_mode:
            raise TrainingModeError("freeze/unfreeze is not supported in training")
        self.frozen = False
        self.body.wake_up()

    # ------------------------------------------------------------------ #
    # Spawn and nearest flower
    # ------------------------------------------------------------------ #
    def move_to_safe_random_position(self, in_front_of_flower: bool) -> Placement:
        """
        Rejection-sample a spawn pose whose clearance sphere touches nothing.

        In front of a flower: 10-20cm along the flower's up axis, looking at
        its center. Otherwise: random height, radius and heading around the
        area center with a random pitch and yaw. After the attempt budget the
        last candidate is used anyway (or ``SafePlacementError`` is raised
        in strict mode).
        """
        flowers = self.flower_area.flowers
        position = self.body.position
        rotation = self.body.rotation
        safe = False
        attempts = 0

        while not safe and attempts < config.PLACEMENT_ATTEMPTS:
            attempts += 1
            if in_front_of_flower and flowers:
                flower = flowers[int(self.rng.integers(len(flowers)))]
                distance = self.rng.uniform(config.FRONT_DISTANCE_MIN, config.FRONT_DISTANCE_MAX)
                position = flower.position + flower.up_vector * distance
                rotation = geo.look_rotation(flower.center_position - position, geo.UP)
            else:
                height = self.rng.uniform(config.SPAWN_HEIGHT_MIN, config.SPAWN_HEIGHT_MAX)
                radius = self.rng.uniform(config.SPAWN_RADIUS_MIN, config.SPAWN_RADIUS_MAX)
                heading = geo.quat_from_euler(0.0, self.rng.uniform(-180.0, 180.0), 0.0)
                position = self.flower_area.position + geo.UP * height + geo.rotate(heading, geo.FORWARD) * radius

                pitch = self.rng.uniform(-config.SPAWN_PITCH_RANGE, config.SPAWN_PITCH_RANGE)
                yaw = self.rng.uniform(-config.SPAWN_YAW_RANGE, config.SPAWN_YAW_RANGE)
                rotation = geo.quat_from_euler(pitch, yaw, 0.0)

            safe = not self.world.overlap_sphere(position, config.PLACEMENT_CLEARANCE)

        if not safe:
            logger.error("no collision-free spawn point after %d attempts, using last candidate", attempts)
            if self.settings.strict:
                raise SafePlacementError(attempts)

        self.body.position = np.asarray(position, dtype=np.float64)
        self.body.rotation = rotation
        return Placement(position=self.body.position.copy(), rotation=rotation, attempts=attempts, safe=safe)

    def update_nearest_flower(self) -> Optional[Flower]:
        flowers = self.flower_area.flowers
        beak = self.beak_tip_position
        best: Optional[int] = None
        best_distance = 0.0

        for index, flower in enumerate(flowers):
            if not flower.has_nectar:
                continue
            dist = geo.distance(flower.position, beak)
            if best is None or not flowers[best].has_nectar or dist < best_distance:
                best, best_distance = index, dist

        self._nearest_index = best
        return self.nearest_flower

    # ------------------------------------------------------------------ #
    # Physics callbacks
    # ------------------------------------------------------------------ #
    def on_trigger_enter(self, collider: Collider) -> float:
        return self._trigger_enter_or_stay(collider)

    def on_trigger_stay(self, collider: Collider) -> float:
        return self._trigger_enter_or_stay(collider)

    def _trigger_enter_or_stay(self, collider: Collider) -> float:
        """Drink from the flower behind ``collider`` if the beak tip touches it."""
        if self.frozen:
            return 0.0
        if not collider.compare_tag(config.NECTAR_TAG):
            return 0.0

        beak = self.beak_tip_position
        closest = collider.closest_point(beak)
        if geo.distance(beak, closest) >= self.settings.beak_tip_radius:
            return 0.0

        try:
            flower = self.flower_area.get_flower_from_nectar(collider)
        except FlowerNotFoundError:
            if self.settings.strict:
                raise
            logger.error("nectar collider %r belongs to no flower in this area, skipping", collider)
            return 0.0

        # Called every physics step while overlapping, so each bite is small
        received = flower.feed(config.FEED_AMOUNT)
        self.nectar_obtained += received

        if self.training_mode:
            alignment = float(np.dot(geo.normalized(self.body.forward), -geo.normalized(flower.up_vector)))
            self.add_reward(config.FEED_REWARD + config.FEED_ALIGNMENT_BONUS * geo.clamp01(alignment))

        if not flower.has_nectar:
            self.update_nearest_flower()
        return received

    def on_collision_enter(self, collider: Collider) -> None:
        if self.frozen:
            return
        if self.training_mode and collider.compare_tag(config.BOUNDARY_TAG):
            self.add_reward(config.BOUNDARY_PENALTY)

    def fixed_update(self) -> None:
        # Another bird may have emptied the flower we were heading for
        flower = self.nearest_flower
        if flower is not None and not flower.has_nectar:
            self.update_nearest_flower()
