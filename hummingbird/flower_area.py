"""Flower registry for one arena, plus the default island builder."""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from . import config
from . import geometry as geo
from .exceptions import FlowerNotFoundError
from .flower import Flower
from .scene import (
    Collider,
    CylinderWallCollider,
    PhysicsWorld,
    PlaneCollider,
    SceneNode,
    SphereCollider,
)

logger = logging.getLogger(__name__)


class FlowerArea:
    """
    Owns every flower under ``node``.

    Children tagged ``flower_plant`` are clusters: they are recorded (so
    ``reset_flowers`` can spin them around their stems) and searched for
    flowers. Any other child hosting a flower is registered; children with
    neither are skipped and not descended into.
    """

    def __init__(self, node: SceneNode, rng: Optional[np.random.Generator] = None) -> None:
        self.node = node
        self.rng = rng if rng is not None else np.random.default_rng()
        self.area_diameter = config.AREA_DIAMETER
        self.flowers: List[Flower] = []
        self.flower_plants: List[SceneNode] = []
        self._nectar_flowers: Dict[Collider, Flower] = {}
        self._find_child_flowers(node)
        logger.debug(
            "flower area %r: %d clusters, %d flowers",
            node.name,
            len(self.flower_plants),
            len(self.flowers),
        )

    @property
    def position(self) -> np.ndarray:
        return self.node.world_position

    def _find_child_flowers(self, parent: SceneNode) -> None:
        for child in parent.children:
            if child.compare_tag(config.FLOWER_PLANT_TAG):
                self.flower_plants.append(child)
                self._find_child_flowers(child)
            elif child.flower is not None:
                self._register(child.flower)

    def _register(self, flower: Flower) -> None:
        if flower.nectar_collider in self._nectar_flowers:
            raise ValueError(f"nectar collider of {flower!r} is already registered")
        self.flowers.append(flower)
        self._nectar_flowers[flower.nectar_collider] = flower

    def reset_flowers(self, rng: Optional[np.random.Generator] = None) -> None:
        """Spin every cluster to a random heading and refill every flower."""
        rng = rng if rng is not None else self.rng
        for plant in self.flower_plants:
            x_rot = rng.uniform(-config.CLUSTER_TILT_RANGE, config.CLUSTER_TILT_RANGE)
            y_rot = rng.uniform(-config.CLUSTER_YAW_RANGE, config.CLUSTER_YAW_RANGE)
            z_rot = rng.uniform(-config.CLUSTER_TILT_RANGE, config.CLUSTER_TILT_RANGE)
            plant.local_rotation = geo.quat_from_euler(x_rot, y_rot, z_rot)

        for flower in self.flowers:
            flower.reset()

    def get_flower_from_nectar(self, collider: Collider) -> Flower:
        try:
            return self._nectar_flowers[collider]
        except KeyError:
            raise FlowerNotFoundError(collider) from None

    def colliders(self) -> List[Collider]:
        """Nectar and petal colliders of every registered flower."""
        found: List[Collider] = []
        for flower in self.flowers:
            found.append(flower.nectar_collider)
            if flower.flower_collider is not None:
                found.append(flower.flower_collider)
        return found


def build_flower_area(
    rng: Optional[np.random.Generator] = None,
    cluster_count: int = config.CLUSTER_COUNT,
    flowers_per_cluster: int = config.FLOWERS_PER_CLUSTER,
    area_diameter: float = config.AREA_DIAMETER,
) -> Tuple[FlowerArea, PhysicsWorld]:
    """
    Build the default island: ground, ceiling and a circular wall tagged
    ``boundary``, with flower clusters scattered on a ring around the center.
    Each cluster holds a stem (plain solid geometry) and a few flowers facing
    outwards and tilted up.
    """
    rng = rng if rng is not None else np.random.default_rng()
    root = SceneNode("island")
    world = PhysicsWorld()

    ground = SceneNode("ground", position=(0.0, config.GROUND_HEIGHT, 0.0), tag=config.BOUNDARY_TAG, parent=root)
    ceiling = SceneNode(
        "ceiling",
        position=(0.0, config.WALL_HEIGHT, 0.0),
        rotation=geo.quat_from_euler(180.0, 0.0, 0.0),
        tag=config.BOUNDARY_TAG,
        parent=root,
    )
    wall = SceneNode("wall", tag=config.BOUNDARY_TAG, parent=root)
    world.extend(
        [
            PlaneCollider(ground),
            PlaneCollider(ceiling),
            CylinderWallCollider(wall, area_diameter * 0.5),
        ]
    )

    for i in range(cluster_count):
        angle = 2.0 * math.pi * i / max(1, cluster_count) + rng.uniform(-0.3, 0.3)
        ring = rng.uniform(config.CLUSTER_RING_MIN, config.CLUSTER_RING_MAX)
        plant = SceneNode(
            f"plant_{i}",
            position=(ring * math.sin(angle), config.GROUND_HEIGHT, ring * math.cos(angle)),
            tag=config.FLOWER_PLANT_TAG,
            parent=root,
        )
        stem = SceneNode(f"plant_{i}/stem", position=(0.0, 0.3, 0.0), parent=plant)
        world.add(SphereCollider(stem, 0.08))

        for j in range(flowers_per_cluster):
            heading = 360.0 * j / max(1, flowers_per_cluster) + rng.uniform(-20.0, 20.0)
            spread = rng.uniform(0.2, 0.4)
            height = rng.uniform(0.8, 2.0)
            offset = (
                spread * math.sin(math.radians(heading)),
                height,
                spread * math.cos(math.radians(heading)),
            )
            tilt = rng.uniform(40.0, 70.0)
            Flower.create(
                f"plant_{i}/flower_{j}",
                parent=plant,
                position=offset,
                rotation=geo.quat_from_euler(tilt, heading, 0.0),
            )

    area = FlowerArea(root, rng=rng)
    area.area_diameter = area_diameter
    world.extend(area.colliders())
    return area, world
