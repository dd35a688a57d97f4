"""A single flower with nectar."""

from __future__ import annotations

import enum
import threading
from typing import Optional

import numpy as np

from . import config
from .scene import SceneNode, SphereCollider


class FlowerState(enum.Enum):
    FULL = "full"
    PARTIAL = "partial"
    EMPTY = "empty"


class Flower:
    """
    Nectar state machine for one feeding site.

    The flower lives on ``node``; its nectar collider (the feeding probe) sits
    on a child node and defines the flower's center and up axis. Feeding a
    flower dry disables both colliders and flips the color flag, resetting it
    restores everything.
    """

    def __init__(
        self,
        node: SceneNode,
        nectar_collider: SphereCollider,
        flower_collider: Optional[SphereCollider] = None,
        full_color=config.FULL_FLOWER_COLOR,
        empty_color=config.EMPTY_FLOWER_COLOR,
    ) -> None:
        self.node = node
        self.nectar_collider = nectar_collider
        self.flower_collider = flower_collider
        self.full_color = full_color
        self.empty_color = empty_color
        self.color = full_color
        self.nectar_amount = 1.0
        self._lock = threading.Lock()
        node.flower = self

    @classmethod
    def create(cls, name: str, parent: Optional[SceneNode] = None, position=None, rotation=None) -> "Flower":
        """Build a flower node with petal and nectar colliders."""
        node = SceneNode(name, position=position, rotation=rotation, tag="flower", parent=parent)
        probe = SceneNode(f"{name}/nectar", position=(0.0, config.NECTAR_PROBE_OFFSET, 0.0), parent=node)
        nectar = SphereCollider(probe, config.NECTAR_PROBE_RADIUS, tag=config.NECTAR_TAG, is_trigger=True)
        petals = SphereCollider(node, config.PETAL_RADIUS, tag="flower")
        return cls(node, nectar, petals)

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def position(self) -> np.ndarray:
        return self.node.world_position

    @property
    def up_vector(self) -> np.ndarray:
        return self.nectar_collider.node.up

    @property
    def center_position(self) -> np.ndarray:
        return self.nectar_collider.node.world_position

    @property
    def has_nectar(self) -> bool:
        return self.nectar_amount > 0.0

    @property
    def is_depleted(self) -> bool:
        return not self.has_nectar

    @property
    def state(self) -> FlowerState:
        if self.nectar_amount <= 0.0:
            return FlowerState.EMPTY
        if self.nectar_amount >= 1.0:
            return FlowerState.FULL
        return FlowerState.PARTIAL

    def feed(self, amount: float) -> float:
        """Remove up to ``amount`` nectar and return how much was taken."""
        with self._lock:
            taken = min(max(float(amount), 0.0), self.nectar_amount)
            self.nectar_amount -= taken
            if self.nectar_amount <= 0.0:
                self.nectar_amount = 0.0
                self._set_colliders_enabled(False)
                self.color = self.empty_color
            return taken

    def reset(self) -> None:
        with self._lock:
            self.nectar_amount = 1.0
            self._set_colliders_enabled(True)
            self.color = self.full_color

    def _set_colliders_enabled(self, enabled: bool) -> None:
        self.nectar_collider.enabled = enabled
        if self.flower_collider is not None:
            self.flower_collider.enabled = enabled

    def __repr__(self) -> str:
        return f"Flower({self.name!r}, nectar={self.nectar_amount:.3f})"
