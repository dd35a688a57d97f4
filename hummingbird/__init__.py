"""Hummingbird foraging environment for reinforcement learning."""

from __future__ import annotations

import gymnasium as gym

from .agent import Agent, HummingbirdAgent, ManualInput, Placement
from .config import AgentSettings
from .env import ENV_ID, HummingbirdEnv, make_env
from .exceptions import FlowerNotFoundError, HummingbirdError, SafePlacementError, TrainingModeError
from .flower import Flower, FlowerState
from .flower_area import FlowerArea, build_flower_area

__all__ = [
    "Agent",
    "AgentSettings",
    "ENV_ID",
    "Flower",
    "FlowerArea",
    "FlowerNotFoundError",
    "FlowerState",
    "HummingbirdAgent",
    "HummingbirdEnv",
    "HummingbirdError",
    "ManualInput",
    "Placement",
    "SafePlacementError",
    "TrainingModeError",
    "build_flower_area",
    "make_env",
]

if ENV_ID not in gym.registry:
    gym.register(id=ENV_ID, entry_point="hummingbird.env:HummingbirdEnv")
