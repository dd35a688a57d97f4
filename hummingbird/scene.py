"""Transform hierarchy, colliders and a small kinematic rigid body.

This is just enough of a physics layer for the agent and the environment
driver: world-space poses, tag-carrying colliders, sphere overlap queries and
contact resolution against solid geometry. No rigid-body dynamics beyond
force accumulation, linear drag and explicit Euler integration.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import numpy as np

from . import geometry as geo


class SceneNode:
    """A named node with a local pose relative to its parent."""

    def __init__(
        self,
        name: str,
        position=None,
        rotation=None,
        tag: str = "untagged",
        parent: Optional["SceneNode"] = None,
    ) -> None:
        self.name = name
        self.tag = tag
        self.local_position = geo.vec3() if position is None else np.asarray(position, dtype=np.float64)
        self.local_rotation = geo.quat_identity() if rotation is None else geo.quat_normalize(rotation)
        self.parent: Optional[SceneNode] = None
        self.children: List[SceneNode] = []
        # Flower component, when this node hosts one
        self.flower = None
        if parent is not None:
            parent.add_child(self)

    def add_child(self, child: "SceneNode") -> "SceneNode":
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def compare_tag(self, tag: str) -> bool:
        return self.tag == tag

    @property
    def world_rotation(self) -> np.ndarray:
        if self.parent is None:
            return self.local_rotation
        return geo.quat_multiply(self.parent.world_rotation, self.local_rotation)

    @property
    def world_position(self) -> np.ndarray:
        if self.parent is None:
            return self.local_position.copy()
        return self.parent.world_position + geo.rotate(self.parent.world_rotation, self.local_position)

    @property
    def up(self) -> np.ndarray:
        return geo.up_of(self.world_rotation)

    @property
    def forward(self) -> np.ndarray:
        return geo.forward_of(self.world_rotation)

    def __repr__(self) -> str:
        return f"SceneNode({self.name!r}, tag={self.tag!r})"


# ------------------------------------------------------------------ #
# Colliders
# ------------------------------------------------------------------ #
class Collider:
    """Base collider. ``is_trigger`` colliders report overlaps but never block."""

    def __init__(self, node: Optional[SceneNode], tag: Optional[str] = None, is_trigger: bool = False) -> None:
        self.node = node
        self.tag = tag if tag is not None else (node.tag if node is not None else "untagged")
        self.is_trigger = is_trigger
        self.enabled = True

    def compare_tag(self, tag: str) -> bool:
        return self.tag == tag

    def closest_point(self, point: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def signed_distance(self, point: np.ndarray) -> float:
        """Distance from ``point`` to the surface, negative inside."""
        raise NotImplementedError

    def outward_normal(self, point: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def overlaps_sphere(self, center: np.ndarray, radius: float) -> bool:
        return self.signed_distance(center) < radius

    def __repr__(self) -> str:
        name = self.node.name if self.node is not None else "-"
        return f"{type(self).__name__}({name!r}, tag={self.tag!r})"


class SphereCollider(Collider):
    def __init__(self, node: SceneNode, radius: float, tag: Optional[str] = None, is_trigger: bool = False) -> None:
        super().__init__(node, tag=tag, is_trigger=is_trigger)
        self.radius = float(radius)

    @property
    def center(self) -> np.ndarray:
        return self.node.world_position

    def closest_point(self, point: np.ndarray) -> np.ndarray:
        offset = np.asarray(point) - self.center
        dist = float(np.linalg.norm(offset))
        if dist <= self.radius:
            return np.asarray(point, dtype=np.float64).copy()
        return self.center + offset / dist * self.radius

    def signed_distance(self, point: np.ndarray) -> float:
        return geo.distance(point, self.center) - self.radius

    def outward_normal(self, point: np.ndarray) -> np.ndarray:
        n = geo.normalized(np.asarray(point) - self.center)
        return n if n.any() else geo.UP.copy()


class PlaneCollider(Collider):
    """Solid half-space below a plane through ``node`` with normal ``node.up``."""

    def closest_point(self, point: np.ndarray) -> np.ndarray:
        d = self.signed_distance(point)
        if d <= 0.0:
            return np.asarray(point, dtype=np.float64).copy()
        return np.asarray(point) - self.node.up * d

    def signed_distance(self, point: np.ndarray) -> float:
        return float(np.dot(np.asarray(point) - self.node.world_position, self.node.up))

    def outward_normal(self, point: np.ndarray) -> np.ndarray:
        return self.node.up


class CylinderWallCollider(Collider):
    """Vertical wall enclosing the free space inside ``radius`` around the node."""

    def __init__(self, node: SceneNode, radius: float, tag: Optional[str] = None) -> None:
        super().__init__(node, tag=tag, is_trigger=False)
        self.radius = float(radius)

    def _radial(self, point: np.ndarray) -> Tuple[np.ndarray, float]:
        offset = np.asarray(point) - self.node.world_position
        radial = np.array([offset[0], 0.0, offset[2]])
        return radial, float(np.linalg.norm(radial))

    def signed_distance(self, point: np.ndarray) -> float:
        _, r = self._radial(point)
        return self.radius - r

    def closest_point(self, point: np.ndarray) -> np.ndarray:
        radial, r = self._radial(point)
        if r >= self.radius:
            return np.asarray(point, dtype=np.float64).copy()
        direction = radial / r if r > 0.0 else geo.FORWARD
        return np.asarray(point) + direction * (self.radius - r)

    def outward_normal(self, point: np.ndarray) -> np.ndarray:
        radial, r = self._radial(point)
        if r <= 0.0:
            return -geo.FORWARD
        return -radial / r


class PhysicsWorld:
    """Flat collection of colliders answering overlap queries."""

    def __init__(self) -> None:
        self.colliders: List[Collider] = []

    def add(self, collider: Collider) -> Collider:
        self.colliders.append(collider)
        return collider

    def extend(self, colliders: Iterable[Collider]) -> None:
        for collider in colliders:
            self.add(collider)

    def overlap_sphere(self, center: np.ndarray, radius: float, include_triggers: bool = True) -> List[Collider]:
        return [
            c
            for c in self.colliders
            if c.enabled and (include_triggers or not c.is_trigger) and c.overlaps_sphere(center, radius)
        ]

    def resolve_contacts(self, body: "RigidBody") -> List[Collider]:
        """Push ``body`` out of solid colliders; return the ones it touched."""
        touched = []
        for collider in self.overlap_sphere(body.position, body.radius, include_triggers=False):
            depth = body.radius - collider.signed_distance(body.position)
            normal = collider.outward_normal(body.position)
            body.position = body.position + normal * depth
            inward = float(np.dot(body.velocity, normal))
            if inward < 0.0:
                body.velocity = body.velocity - normal * inward
            touched.append(collider)
        return touched


class RigidBody:
    """Point-mass body with a sphere hull, linear drag and a sleep flag."""

    def __init__(
        self,
        position=None,
        rotation=None,
        mass: float = 1.0,
        drag: float = 0.0,
        radius: float = 0.05,
    ) -> None:
        self.position = geo.vec3() if position is None else np.asarray(position, dtype=np.float64)
        self.rotation = geo.quat_identity() if rotation is None else geo.quat_normalize(rotation)
        self.velocity = geo.vec3()
        self.angular_velocity = geo.vec3()
        self.mass = float(mass)
        self.drag = float(drag)
        self.radius = float(radius)
        self.sleeping = False
        self._force = geo.vec3()

    @property
    def forward(self) -> np.ndarray:
        return geo.forward_of(self.rotation)

    @property
    def up(self) -> np.ndarray:
        return geo.up_of(self.rotation)

    @property
    def right(self) -> np.ndarray:
        return geo.right_of(self.rotation)

    def add_force(self, force: np.ndarray) -> None:
        self._force = self._force + np.asarray(force, dtype=np.float64)

    def sleep(self) -> None:
        self.sleeping = True
        self.velocity = geo.vec3()
        self.angular_velocity = geo.vec3()

    def wake_up(self) -> None:
        self.sleeping = False

    def integrate(self, dt: float) -> None:
        force, self._force = self._force, geo.vec3()
        if self.sleeping:
            return
        self.velocity = (self.velocity + force / self.mass * dt) / (1.0 + self.drag * dt)
        self.position = self.position + self.velocity * dt
        speed = float(np.linalg.norm(self.angular_velocity))
        if speed > 0.0:
            spin = geo.quat_axis_angle(self.angular_velocity, np.degrees(speed * dt))
            self.rotation = geo.quat_normalize(geo.quat_multiply(spin, self.rotation))
