"""Vector and quaternion helpers.

World axes: x right, y up, z forward. Quaternions are numpy arrays in
``(x, y, z, w)`` order. Euler angles are in degrees and applied in z, x, y
order (roll, then pitch, then yaw), so ``euler(pitch, yaw, 0)`` points the
forward axis at the given heading.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

RIGHT = np.array([1.0, 0.0, 0.0])
UP = np.array([0.0, 1.0, 0.0])
FORWARD = np.array([0.0, 0.0, 1.0])

_EPS = 1e-8


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    return np.array([x, y, z], dtype=np.float64)


def normalized(v: np.ndarray) -> np.ndarray:
    """Unit vector along ``v``; the zero vector stays zero."""
    norm = float(np.linalg.norm(v))
    if norm < _EPS:
        return np.zeros(3, dtype=np.float64)
    return np.asarray(v, dtype=np.float64) / norm


def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def clamp(value: float, lo: float, hi: float) -> float:
    return lo if value < lo else hi if value > hi else value


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def move_towards(current: float, target: float, max_delta: float) -> float:
    """Step ``current`` towards ``target`` by at most ``max_delta``."""
    if abs(target - current) <= max_delta:
        return target
    return current + math.copysign(max_delta, target - current)


# ------------------------------------------------------------------ #
# Quaternions
# ------------------------------------------------------------------ #
def quat_identity() -> np.ndarray:
    return np.array([0.0, 0.0, 0.0, 1.0])


def quat_normalize(q: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(q))
    if norm < _EPS:
        return quat_identity()
    return np.asarray(q, dtype=np.float64) / norm


def quat_multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array(
        [
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
            aw * bw - ax * bx - ay * by - az * bz,
        ]
    )


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    return np.array([-q[0], -q[1], -q[2], q[3]])


def quat_axis_angle(axis: np.ndarray, degrees: float) -> np.ndarray:
    half = math.radians(degrees) * 0.5
    s = math.sin(half)
    ax = normalized(axis)
    return np.array([ax[0] * s, ax[1] * s, ax[2] * s, math.cos(half)])


def quat_from_euler(x: float, y: float, z: float) -> np.ndarray:
    qx = quat_axis_angle(RIGHT, x)
    qy = quat_axis_angle(UP, y)
    qz = quat_axis_angle(FORWARD, z)
    return quat_multiply(quat_multiply(qy, qx), qz)


def quat_to_matrix(q: np.ndarray) -> np.ndarray:
    x, y, z, w = quat_normalize(q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quat(m: np.ndarray) -> np.ndarray:
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        q = [
            (m[2, 1] - m[1, 2]) / s,
            (m[0, 2] - m[2, 0]) / s,
            (m[1, 0] - m[0, 1]) / s,
            0.25 * s,
        ]
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
        q = [
            0.25 * s,
            (m[0, 1] + m[1, 0]) / s,
            (m[0, 2] + m[2, 0]) / s,
            (m[2, 1] - m[1, 2]) / s,
        ]
    elif m[1, 1] > m[2, 2]:
        s = math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
        q = [
            (m[0, 1] + m[1, 0]) / s,
            0.25 * s,
            (m[1, 2] + m[2, 1]) / s,
            (m[0, 2] - m[2, 0]) / s,
        ]
    else:
        s = math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
        q = [
            (m[0, 2] + m[2, 0]) / s,
            (m[1, 2] + m[2, 1]) / s,
            0.25 * s,
            (m[1, 0] - m[0, 1]) / s,
        ]
    return quat_normalize(np.array(q))


def _wrap_degrees(radians: float) -> float:
    degrees = math.degrees(radians) % 360.0
    # A tiny negative angle rounds up to exactly 360
    return 0.0 if degrees >= 360.0 else degrees


def quat_to_euler(q: np.ndarray) -> Tuple[float, float, float]:
    """Euler angles ``(x, y, z)`` in degrees, each wrapped to [0, 360)."""
    m = quat_to_matrix(q)
    sx = clamp(-m[1, 2], -1.0, 1.0)
    x = math.asin(sx)
    if abs(sx) < 0.9999:
        y = math.atan2(m[0, 2], m[2, 2])
        z = math.atan2(m[1, 0], m[1, 1])
    else:
        # Gimbal lock: fold roll into yaw
        y = math.atan2(-m[2, 0], m[0, 0])
        z = 0.0
    return tuple(_wrap_degrees(a) for a in (x, y, z))


def rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    return quat_to_matrix(q) @ np.asarray(v, dtype=np.float64)


def forward_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, FORWARD)


def up_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, UP)


def right_of(q: np.ndarray) -> np.ndarray:
    return rotate(q, RIGHT)


def look_rotation(forward: np.ndarray, up: np.ndarray = UP) -> np.ndarray:
    """Rotation whose forward axis points along ``forward``, rolled towards ``up``."""
    z = normalized(forward)
    if not z.any():
        return quat_identity()
    x = np.cross(up, z)
    if np.linalg.norm(x) < _EPS:
        # forward is parallel to up; pick any perpendicular right axis
        x = np.cross(FORWARD if abs(z[2]) < 0.9 else RIGHT, z)
    x = normalized(x)
    y = np.cross(z, x)
    return matrix_to_quat(np.column_stack([x, y, z]))
