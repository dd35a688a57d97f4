from __future__ import annotations

import logging
import math

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from . import config
from .agent import HummingbirdAgent
from .config import AgentSettings
from .flower_area import build_flower_area
from .scene import RigidBody

logger = logging.getLogger(__name__)

ENV_ID = "Hummingbird-v0"


def make_env(render_mode=None, **kwargs) -> gym.Env:
    return HummingbirdEnv(render_mode=render_mode, **kwargs)


class HummingbirdEnv(gym.Env):
    """
    Hummingbird foraging on a flower island.

    - one bird flies with thrust + smoothed pitch/yaw
    - drinking nectar pays a trickle reward, more when facing into the flower
    - touching the island boundary costs -0.5

    Observation: 10 floats (see HummingbirdAgent).
    Action: Box(-1, 1, (5,)): move x, move y, move z, pitch, yaw.

    Each step repeats the action for ``decision_period`` physics sub-steps.
    Episodes never terminate on their own; they are truncated after
    ``max_steps`` decisions in training mode and run forever otherwise.
    """

    metadata = {"render_modes": ["human", "rgb_array"], "render_fps": 30}

    def __init__(
        self,
        render_mode=None,
        training_mode=True,
        max_steps=5000,
        decision_period=config.DECISION_PERIOD,
        cluster_count=config.CLUSTER_COUNT,
        flowers_per_cluster=config.FLOWERS_PER_CLUSTER,
        area_diameter=config.AREA_DIAMETER,
        move_force=2.0,
        pitch_speed=100.0,
        yaw_speed=100.0,
        strict=False,
        layout_seed=None,
    ):
        super().__init__()
        self.render_mode = render_mode
        self.decision_period = int(decision_period)

        self.settings = AgentSettings(
            move_force=float(move_force),
            pitch_speed=float(pitch_speed),
            yaw_speed=float(yaw_speed),
            training_mode=bool(training_mode),
            max_step=int(max_steps),
            area_diameter=float(area_diameter),
            strict=bool(strict),
        )

        # World
        self.area, self.world = build_flower_area(
            np.random.default_rng(layout_seed),
            cluster_count=cluster_count,
            flowers_per_cluster=flowers_per_cluster,
            area_diameter=area_diameter,
        )
        self.body = RigidBody(
            mass=config.BODY_MASS,
            drag=config.BODY_DRAG,
            radius=config.BODY_RADIUS,
        )
        self.agent = HummingbirdAgent(self.body, self.area, self.world, settings=self.settings)
        self.agent.initialize()

        self.action_space = spaces.Box(low=-1.0, high=1.0, shape=(config.ACTION_SIZE,), dtype=np.float32)
        self.observation_space = spaces.Box(
            low=-np.inf, high=np.inf, shape=(config.OBSERVATION_SIZE,), dtype=np.float32
        )

        # Colliders touched during the previous physics sub-step
        self._contacts = []
        self._triggers = []

        # Pygame
        self._screen = None
        self._clock = None
        self._pygame = None

    def _info(self):
        index = self.agent.nearest_flower_index
        return {
            "nectar_obtained": self.agent.nectar_obtained,
            "nearest_flower": -1 if index is None else index,
            "cumulative_reward": self.agent.get_cumulative_reward(),
            "step": self.agent.step_count,
        }

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)

        # Share the seeded generator so resets and spawns are reproducible
        self.area.rng = self.np_random
        self.agent.rng = self.np_random

        self._contacts = []
        self._triggers = []
        self.agent.begin_episode()
        logger.debug(
            "episode reset: seed=%s nearest=%s nectar_flowers=%d",
            seed,
            self.agent.nearest_flower_index,
            sum(f.has_nectar for f in self.area.flowers),
        )

        obs = self.agent.collect_observations()
        return obs, self._info()

    def step(self, action):
        action = np.clip(np.asarray(action, dtype=np.float32), -1.0, 1.0)

        for _ in range(self.decision_period):
            self.agent.on_action_received(action)
            self._physics_step()

        truncated = self.agent.increment_step()
        if truncated:
            self.agent.end_episode()

        reward = self.agent.drain_reward()
        obs = self.agent.collect_observations()
        info = self._info()

        if self.render_mode == "human":
            self.render()

        return obs, float(reward), False, truncated, info

    def _overlapping_triggers(self):
        tip = self.agent.beak_tip_position
        return [
            c
            for c in self.world.colliders
            if c.enabled
            and c.is_trigger
            and (
                c.overlaps_sphere(self.body.position, self.body.radius)
                or c.overlaps_sphere(tip, self.settings.beak_tip_radius)
            )
        ]

    def _physics_step(self):
        self.body.integrate(config.FIXED_DELTA_TIME)

        contacts = self.world.resolve_contacts(self.body)
        for collider in contacts:
            if not any(collider is c for c in self._contacts):
                self.agent.on_collision_enter(collider)
        self._contacts = contacts

        triggers = self._overlapping_triggers()
        for collider in triggers:
            if any(collider is c for c in self._triggers):
                self.agent.on_trigger_stay(collider)
            else:
                self.agent.on_trigger_enter(collider)
        self._triggers = triggers

        self.agent.fixed_update()

    # ---------- Rendering (top-down) ----------
    @property
    def window_open(self):
        return self._screen is not None

    def _to_screen(self, x, z, size):
        scale = size / (self.settings.area_diameter * 1.1)
        return int(size / 2 + x * scale), int(size / 2 - z * scale)

    def render(self):
        size = 600
        if self._screen is None:
            import pygame
            self._pygame = pygame
            pygame.init()
            if self.render_mode == "human":
                self._screen = pygame.display.set_mode((size, size))
                pygame.display.set_caption("Hummingbird RL")
            else:
                self._screen = pygame.Surface((size, size))
            self._clock = pygame.time.Clock()

        pygame = self._pygame

        if self.render_mode == "human":
            # Handle window close (prevents "not responding"); key events stay queued for callers
            if pygame.event.get(pygame.QUIT):
                logger.info("render window closed")
                self.close()
                return None

        self._screen.fill((20, 30, 24))

        # Island boundary
        center = self._to_screen(0.0, 0.0, size)
        radius = int(size / 2 / 1.1)
        pygame.draw.circle(self._screen, (60, 90, 60), center, radius, 2)

        # Flowers, colored by nectar state
        for flower in self.area.flowers:
            fx, _, fz = flower.position
            color = tuple(int(255 * c) for c in flower.color)
            pygame.draw.circle(self._screen, color, self._to_screen(fx, fz, size), 5)

        # Bird and its line to the nearest flower
        bx, _, bz = self.body.position
        bird = self._to_screen(bx, bz, size)
        nearest = self.agent.nearest_flower
        if nearest is not None:
            cx, _, cz = nearest.center_position
            pygame.draw.line(self._screen, (80, 220, 80), bird, self._to_screen(cx, cz, size), 1)

        heading = math.atan2(self.body.forward[0], self.body.forward[2])
        tip = (bird[0] + int(12 * math.sin(heading)), bird[1] - int(12 * math.cos(heading)))
        pygame.draw.circle(self._screen, (120, 200, 255), bird, 6)
        pygame.draw.line(self._screen, (230, 230, 240), bird, tip, 2)

        # HUD
        font = pygame.font.SysFont(None, 24)
        txt1 = font.render(f"Nectar: {self.agent.nectar_obtained:.2f}", True, (230, 230, 240))
        txt2 = font.render(f"Reward: {self.agent.get_cumulative_reward():.2f}", True, (230, 230, 240))
        txt3 = font.render(f"Altitude: {self.body.position[1]:.2f}", True, (230, 230, 240))
        self._screen.blit(txt1, (12, 12))
        self._screen.blit(txt2, (12, 36))
        self._screen.blit(txt3, (12, 60))

        if self.render_mode == "human":
            pygame.display.flip()
            self._clock.tick(self.metadata["render_fps"])
            return None

        if self.render_mode == "rgb_array":
            frame = pygame.surfarray.array3d(self._screen)
            # pygame returns (W, H, C); convert to (H, W, C)
            return np.transpose(frame, (1, 0, 2))

        return None

    def close(self):
        if self._screen is not None:
            self._pygame.quit()
            self._screen = None
            self._clock = None
            self._pygame = None
