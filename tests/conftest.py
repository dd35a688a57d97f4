import os
import sys
from pathlib import Path

# Ensure pygame can run headlessly during tests
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pytest

# Ensure the repository root is importable when tests are invoked from arbitrary
# working directories (e.g., running a single file from within ``tests/``).
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import numpy as np

from hummingbird.agent import HummingbirdAgent
from hummingbird.config import AgentSettings
from hummingbird.flower import Flower
from hummingbird.flower_area import FlowerArea
from hummingbird.scene import PhysicsWorld, RigidBody, SceneNode


@pytest.fixture()
def make_area():
    """Build a flat area with one flower per position, all facing up."""

    def _make(positions, rotations=None, seed=0):
        root = SceneNode("area")
        for i, position in enumerate(positions):
            rotation = rotations[i] if rotations is not None else None
            Flower.create(f"flower_{i}", parent=root, position=position, rotation=rotation)
        return FlowerArea(root, rng=np.random.default_rng(seed))

    return _make


@pytest.fixture()
def make_agent():
    """Agent at the origin facing +z in an obstacle-free world."""

    def _make(area, world=None, seed=0, **settings):
        settings.setdefault("training_mode", True)
        body = RigidBody(radius=0.05)
        agent = HummingbirdAgent(
            body,
            area,
            world if world is not None else PhysicsWorld(),
            settings=AgentSettings(**settings),
            rng=np.random.default_rng(seed),
        )
        agent.initialize()
        return agent

    return _make
