from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional, Sequence, Tuple

import numpy as np

# =============================================================================
# ENUMERATIONS AND LIMITS
# =============================================================================


class Stage(IntEnum):
    """Lifecycle stage of a fabric."""

    BUSY = 0
    GROWING = 1
    SHAPING = 2
    SLACK = 3
    REALIZING = 4
    REALIZED = 5


class IntervalRole(Enum):
    """Push intervals are struts (compression), pull intervals are cables (tension)."""

    PUSH = "push"
    PULL = "pull"


# Number of alternate rest lengths each interval stores
SHAPE_COUNT = 8

# Shape slot holding the rest state
REST_SHAPE = 0


def check_shape(shape: int) -> int:
    if not 0 <= shape < SHAPE_COUNT:
        raise ValueError(f"Invalid shape {shape}. Shape must be in [0, {SHAPE_COUNT}).")
    return shape


# =============================================================================
# JOINT
# =============================================================================


@dataclass
class Joint:
    """A point mass with a force accumulator."""

    location: np.ndarray
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    interval_mass: float = 0.0  # Gathered from incident intervals each substep

    def __post_init__(self):
        self.location = np.asarray(self.location, dtype=np.float64).reshape(3).copy()
        self.velocity = np.asarray(self.velocity, dtype=np.float64).reshape(3).copy()
        self.force = np.asarray(self.force, dtype=np.float64).reshape(3).copy()

    @classmethod
    def at(cls, x: float, y: float, z: float) -> "Joint":
        return cls(location=np.array([x, y, z], dtype=np.float64))

    def physics(self, world) -> None:
        """Integrate one substep with semi-implicit Euler and clear the accumulator."""
        dt = world.time_step
        self.velocity[1] -= world.gravity * dt
        if self.interval_mass > 0.0:
            self.velocity += self.force / self.interval_mass * dt
        self.velocity *= 1.0 - world.drag
        self.location += self.velocity * dt
        self.force.fill(0.0)
        self.interval_mass = 0.0


# =============================================================================
# FACE
# =============================================================================


@dataclass
class Face:
    """Triangle of three joint indices."""

    joints: Tuple[int, int, int]

    def __post_init__(self):
        self.joints = tuple(int(index) for index in self.joints)
        if len(self.joints) != 3:
            raise ValueError(f"A face needs exactly three joints, got {len(self.joints)}")

    def locations(self, joints: Sequence[Joint]) -> List[np.ndarray]:
        return [joints[index].location for index in self.joints]

    def midpoint(self, joints: Sequence[Joint]) -> np.ndarray:
        """Centroid of the three joints, the anchor for face-bound intervals."""
        a, b, c = self.locations(joints)
        return (a + b + c) / 3.0

    def normal(self, joints: Sequence[Joint]) -> np.ndarray:
        """Unit normal following the joint winding; zero for a degenerate triangle."""
        a, b, c = self.locations(joints)
        n = np.cross(b - a, c - a)
        norm = np.linalg.norm(n)
        if norm == 0:
            return np.zeros(3)
        return n / norm


# =============================================================================
# INTERVAL
# =============================================================================


@dataclass
class Interval:
    """A push or pull member between two joints, or between a joint and a face midpoint."""

    alpha_index: int
    omega_index: Optional[int]
    role: IntervalRole
    rest_length: float
    stiffness: float
    linear_density: float
    face_index: Optional[int] = None
    # Rest length ramp
    countdown: int = 0
    max_countdown: int = 0
    length_from: float = 0.0
    length_to: float = 0.0
    # Output of the latest substep
    strain: float = 0.0
    length_for_shape: List[Optional[float]] = field(default_factory=lambda: [None] * SHAPE_COUNT)

    def __post_init__(self):
        """Validate construction parameters."""
        if not isinstance(self.role, IntervalRole):
            raise ValueError("role must be an IntervalRole")
        if (self.omega_index is None) == (self.face_index is None):
            raise ValueError("An interval needs exactly one of omega_index or face_index")
        if not self.rest_length > 0:
            raise ValueError(f"Invalid rest length: {self.rest_length}. Rest length must be positive.")
        if not self.stiffness > 0:
            raise ValueError(f"Invalid stiffness: {self.stiffness}. Stiffness must be positive.")
        if not self.linear_density > 0:
            raise ValueError(f"Invalid linear density: {self.linear_density}. Mass contribution must be positive.")
        if self.countdown < 0:
            raise ValueError(f"Invalid countdown: {self.countdown}. Countdown cannot be negative.")
        self.length_from = self.rest_length
        self.length_to = self.rest_length
        self.max_countdown = self.countdown

    @property
    def is_push(self) -> bool:
        return self.role is IntervalRole.PUSH

    @property
    def is_face_bound(self) -> bool:
        return self.face_index is not None

    @property
    def mass(self) -> float:
        return self.rest_length * self.linear_density

    def alpha_location(self, joints: Sequence[Joint]) -> np.ndarray:
        return joints[self.alpha_index].location

    def omega_location(self, joints: Sequence[Joint], faces: Sequence[Face]) -> np.ndarray:
        if self.face_index is not None:
            return faces[self.face_index].midpoint(joints)
        return joints[self.omega_index].location

    def current_length(self, joints: Sequence[Joint], faces: Sequence[Face]) -> float:
        return float(np.linalg.norm(self.omega_location(joints, faces) - self.alpha_location(joints)))

    # -------------------------------------------------------------------------
    # Rest length scheduling
    # -------------------------------------------------------------------------

    def change_rest_length(self, rest_length: float, countdown: int, shape: int = REST_SHAPE) -> None:
        """Ramp linearly to ``rest_length`` over ``countdown`` substeps, instantly when zero."""
        if not rest_length > 0:
            raise ValueError(f"Invalid rest length: {rest_length}. Rest length must be positive.")
        if countdown < 0:
            raise ValueError(f"Invalid countdown: {countdown}. Countdown cannot be negative.")
        self.length_for_shape[check_shape(shape)] = rest_length
        self.length_from = self.rest_length
        self.length_to = rest_length
        self.countdown = countdown
        self.max_countdown = countdown
        if countdown == 0:
            self.rest_length = rest_length

    def multiply_rest_length(self, factor: float, countdown: int, shape: int = REST_SHAPE) -> None:
        self.change_rest_length(self.rest_length * factor, countdown, shape)

    def set_role(self, role: IntervalRole) -> None:
        if not isinstance(role, IntervalRole):
            raise ValueError("role must be an IntervalRole")
        self.role = role

    def adopt_length(self, joints: Sequence[Joint], faces: Sequence[Face], shape: int) -> float:
        """Freeze the measured length as the new rest length."""
        length = self.current_length(joints, faces)
        if not length > 0:
            raise ValueError(f"Invalid measured length: {length}. Cannot adopt a zero rest length.")
        self.rest_length = length
        self.length_from = length
        self.length_to = length
        self.countdown = 0
        self.max_countdown = 0
        self.length_for_shape[check_shape(shape)] = length
        return length

    def _advance_countdown(self) -> None:
        if self.countdown <= 0:
            return
        self.countdown -= 1
        if self.countdown == 0:
            self.rest_length = self.length_to
        else:
            self.rest_length += (self.length_to - self.length_from) / self.max_countdown

    # -------------------------------------------------------------------------
    # Physics
    # -------------------------------------------------------------------------

    def force_magnitude(self, world, stage: Stage, realizing_nuance: float) -> float:
        """Signed force along the alpha to omega axis; positive draws the ends together."""
        strain = self.strain
        if self.is_push:
            if strain > 0:
                strain *= world.push_extension_factor
        elif strain < 0:
            # Slack cable
            strain = 0.0
        magnitude = strain * self.stiffness * self.mass
        if stage == Stage.REALIZING:
            magnitude *= realizing_nuance
        return magnitude

    def physics(self, world, joints: Sequence[Joint], faces: Sequence[Face], stage: Stage, realizing_nuance: float) -> None:
        """Accumulate this interval's force into its joints for one substep."""
        self._advance_countdown()
        alpha = joints[self.alpha_index]
        delta = self.omega_location(joints, faces) - alpha.location
        length = float(np.linalg.norm(delta))
        self.strain = (length - self.rest_length) / self.rest_length
        half_mass = self.mass / 2.0
        alpha.interval_mass += half_mass
        if self.face_index is not None:
            omega_joints = [joints[index] for index in faces[self.face_index].joints]
        else:
            omega_joints = [joints[self.omega_index]]
        share = 1.0 / len(omega_joints)
        for joint in omega_joints:
            joint.interval_mass += half_mass * share
        if length == 0:
            return
        force = delta / length * self.force_magnitude(world, stage, realizing_nuance)
        alpha.force += force
        for joint in omega_joints:
            joint.force -= force * share
