from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from .engine import REST_SHAPE, Face, Interval, IntervalRole, Joint, Stage, check_shape
from .view import FabricSnapshot

logger = logging.getLogger(__name__)


def _checked(index: int, count: int, kind: str) -> int:
    if not 0 <= index < count:
        raise IndexError(f"{kind} index {index} out of range for {count} {kind}s")
    return index


class Fabric:
    """Joints, intervals and faces stepped through the construction lifecycle.

    Everything is addressed by integer index into the three collections.
    Removing an interval or face shifts the indices of every later entry and
    nothing checks references held elsewhere, so callers must drop stale
    indices themselves. Joints cannot be removed.

    A fabric is not thread safe; serialize every mutating call.
    """

    def __init__(self, joint_count: int = 0):
        # joint_count is a capacity hint only; python lists grow on demand
        self.age = 0
        self.stage = Stage.BUSY
        self.current_shape = REST_SHAPE
        self.busy_countdown = 0
        self.joints: List[Joint] = []
        self.intervals: List[Interval] = []
        self.faces: List[Face] = []

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    @property
    def joint_count(self) -> int:
        return len(self.joints)

    @property
    def interval_count(self) -> int:
        return len(self.intervals)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    def create_joint(self, x: float, y: float, z: float) -> int:
        index = len(self.joints)
        self.joints.append(Joint.at(x, y, z))
        return index

    def create_interval(
        self,
        alpha_index: int,
        omega_index: Optional[int],
        role: IntervalRole,
        rest_length: float,
        stiffness: float,
        linear_density: float,
        countdown: int = 0,
        face_index: Optional[int] = None,
    ) -> int:
        """Add an interval and return its index.

        With ``countdown > 0`` the interval starts at its measured length and
        ramps to ``rest_length`` over that many substeps.
        """
        _checked(alpha_index, self.joint_count, "joint")
        if omega_index is not None:
            _checked(omega_index, self.joint_count, "joint")
        if face_index is not None:
            _checked(face_index, self.face_count, "face")
        interval = Interval(
            alpha_index=alpha_index,
            omega_index=omega_index,
            role=role,
            rest_length=rest_length,
            stiffness=stiffness,
            linear_density=linear_density,
            face_index=face_index,
        )
        if countdown > 0:
            measured = interval.current_length(self.joints, self.faces)
            if measured > 0:
                interval.rest_length = measured
            interval.change_rest_length(rest_length, countdown, self.current_shape)
        index = len(self.intervals)
        self.intervals.append(interval)
        logger.debug("Created %s interval %d from joint %d", role.value, index, alpha_index)
        return index

    def remove_interval(self, index: int) -> None:
        del self.intervals[_checked(index, self.interval_count, "interval")]
        logger.debug("Removed interval %d", index)

    def create_face(self, joint0: int, joint1: int, joint2: int) -> int:
        for joint in (joint0, joint1, joint2):
            _checked(joint, self.joint_count, "joint")
        index = len(self.faces)
        self.faces.append(Face((joint0, joint1, joint2)))
        return index

    def remove_face(self, index: int) -> None:
        del self.faces[_checked(index, self.face_count, "face")]
        logger.debug("Removed face %d", index)

    def _interval(self, index: int) -> Interval:
        return self.intervals[_checked(index, self.interval_count, "interval")]

    # =========================================================================
    # INTERVAL MUTATORS
    # =========================================================================

    def multiply_rest_length(self, index: int, factor: float, countdown: int) -> None:
        self._interval(index).multiply_rest_length(factor, countdown, self.current_shape)

    def change_rest_length(self, index: int, rest_length: float, countdown: int) -> None:
        self._interval(index).change_rest_length(rest_length, countdown, self.current_shape)

    def set_interval_role(self, index: int, role: IntervalRole) -> None:
        self._interval(index).set_role(role)

    def get_shape_length(self, index: int, shape: int) -> Optional[float]:
        return self._interval(index).length_for_shape[check_shape(shape)]

    def set_shape_length(self, index: int, shape: int, length: float) -> None:
        if not length > 0:
            raise ValueError(f"Invalid shape length: {length}. Length must be positive.")
        self._interval(index).length_for_shape[check_shape(shape)] = length

    def change_shape(self, shape: int, countdown: int) -> None:
        """Make ``shape`` current and ramp every interval toward its stored length for it."""
        self.current_shape = check_shape(shape)
        for interval in self.intervals:
            length = interval.length_for_shape[shape]
            if length is not None:
                interval.change_rest_length(length, countdown, shape)
        logger.debug("Changed to shape %d over %d substeps", shape, countdown)

    # =========================================================================
    # GEOMETRY
    # =========================================================================

    def centralize(self) -> None:
        if not self.joints:
            return
        midpoint = np.mean([joint.location for joint in self.joints], axis=0)
        for joint in self.joints:
            joint.location -= midpoint

    def set_altitude(self, altitude: float) -> float:
        """Shift the fabric so its lowest joint sits at ``altitude`` and stop all motion."""
        if not self.joints:
            return 0.0
        low_y = min(joint.location[1] for joint in self.joints)
        shift = altitude - low_y
        for joint in self.joints:
            joint.location[1] += shift
            joint.velocity.fill(0.0)
        return float(shift)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def max_interval_countdown(self) -> int:
        return max((interval.countdown for interval in self.intervals), default=0)

    @property
    def busy(self) -> bool:
        """True while an interval ramp or the fabric busy countdown is still running."""
        return self.max_interval_countdown > 0 or self.busy_countdown > 0

    def realizing_nuance(self, world) -> float:
        """Progress through realizing, used to scale forces while REALIZING.

        The busy gate already runs on the frame that starts realizing, so the
        first REALIZING substeps see ``iterations_per_frame / realizing_countdown``
        rather than 0. Without a countdown there is nothing to ramp and the
        nuance is 1.
        """
        countdown = world.realizing_countdown
        if countdown <= 0:
            return 1.0
        nuance = (countdown - self.busy_countdown) / countdown
        return min(max(nuance, 0.0), 1.0)

    def iterate(self, requested_stage: Stage, world) -> Stage:
        """Run one frame of substeps, then evaluate the stage machine.

        Returns the stage to report for this frame, which is ``Stage.BUSY``
        whenever something is still settling.
        """
        realizing_nuance = self.realizing_nuance(world)
        iterations = int(world.iterations_per_frame)
        for _ in range(iterations):
            self._tick(world, realizing_nuance)
        self.age += iterations

        # A stage entered here is handled within the same frame
        if self.stage == Stage.BUSY and requested_stage == Stage.GROWING:
            self._set_stage(Stage.GROWING)
        if self.stage == Stage.GROWING:
            self.set_altitude(0.0)
        if self.stage == Stage.SHAPING:
            self.set_altitude(0.0)
            if requested_stage == Stage.REALIZING:
                self._start_realizing(world)
            elif requested_stage == Stage.SLACK:
                self._set_stage(Stage.SLACK)
        if self.stage == Stage.SLACK:
            if requested_stage == Stage.REALIZING:
                self._start_realizing(world)
            elif requested_stage == Stage.SHAPING:
                self._slack_to_shaping(world)

        if self.max_interval_countdown > 0:
            return Stage.BUSY
        if self.busy_countdown > 0:
            self.busy_countdown = max(self.busy_countdown - iterations, 0)
            if self.busy_countdown > 0:
                return Stage.BUSY
            if self.stage == Stage.REALIZING:
                self._set_stage(Stage.REALIZED)
        return self.stage

    def finish_growing(self) -> Stage:
        return self._set_stage(Stage.SHAPING)

    def adopt_lengths(self) -> Stage:
        """Freeze the current geometry as the rest state and go slack."""
        collapsed = [index for index, interval in enumerate(self.intervals) if interval.current_length(self.joints, self.faces) == 0]
        if collapsed:
            raise ValueError(f"Cannot adopt zero lengths for intervals {collapsed}")
        for interval in self.intervals:
            interval.adopt_length(self.joints, self.faces, self.current_shape)
        for joint in self.joints:
            joint.force.fill(0.0)
            joint.velocity.fill(0.0)
            joint.interval_mass = 0.0
        self.set_altitude(0.0)
        return self._set_stage(Stage.SLACK)

    def _tick(self, world, realizing_nuance: float) -> None:
        # Every interval reads joint state before any joint moves
        for interval in self.intervals:
            interval.physics(world, self.joints, self.faces, self.stage, realizing_nuance)
        for joint in self.joints:
            joint.physics(world)

    def _set_stage(self, stage: Stage) -> Stage:
        if stage != self.stage:
            logger.info("Fabric stage %s -> %s at age %d", self.stage.name, stage.name, self.age)
        self.stage = stage
        return stage

    def _start_realizing(self, world) -> Stage:
        self.busy_countdown = int(world.realizing_countdown)
        if self.busy_countdown == 0:
            # Nothing to ramp through
            return self._set_stage(Stage.REALIZED)
        return self._set_stage(Stage.REALIZING)

    def _slack_to_shaping(self, world) -> Stage:
        countdown = int(world.interval_countdown)
        for interval in self.intervals:
            if interval.is_push:
                interval.multiply_rest_length(world.shaping_pretenst_factor, countdown, REST_SHAPE)
        return self._set_stage(Stage.SHAPING)

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def snapshot(self) -> FabricSnapshot:
        """Copy the current state for a renderer."""
        joints = self.joints
        faces = self.faces
        return FabricSnapshot(
            age=self.age,
            stage=self.stage,
            joint_locations=np.array([joint.location for joint in joints]).reshape(-1, 3),
            joint_velocities=np.array([joint.velocity for joint in joints]).reshape(-1, 3),
            alpha_locations=np.array([i.alpha_location(joints) for i in self.intervals]).reshape(-1, 3),
            omega_locations=np.array([i.omega_location(joints, faces) for i in self.intervals]).reshape(-1, 3),
            roles=[interval.role for interval in self.intervals],
            strains=np.array([interval.strain for interval in self.intervals], dtype=np.float64),
            faces=[face.joints for face in faces],
            face_normals=np.array([face.normal(joints) for face in faces]).reshape(-1, 3),
        )

    def strain_limits(self) -> Dict[IntervalRole, Tuple[float, float]]:
        """Minimum and maximum strain per role from the latest substep."""
        limits: Dict[IntervalRole, Tuple[float, float]] = {}
        for interval in self.intervals:
            low, high = limits.get(interval.role, (interval.strain, interval.strain))
            limits[interval.role] = (min(low, interval.strain), max(high, interval.strain))
        return limits


