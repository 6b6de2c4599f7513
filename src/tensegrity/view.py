from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from .engine import IntervalRole, Stage


@dataclass
class FabricSnapshot:
    """Read-only copy of a fabric's geometry after a frame step."""

    age: int
    stage: Stage
    joint_locations: np.ndarray  # (joint_count, 3)
    joint_velocities: np.ndarray  # (joint_count, 3)
    alpha_locations: np.ndarray  # (interval_count, 3)
    omega_locations: np.ndarray  # (interval_count, 3), face midpoint for face-bound intervals
    roles: List[IntervalRole] = field(default_factory=list)
    strains: np.ndarray = field(default_factory=lambda: np.zeros(0))
    faces: List[Tuple[int, int, int]] = field(default_factory=list)
    face_normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))  # (face_count, 3), unit normals

    @property
    def midpoint(self) -> np.ndarray:
        """Centroid of all joints, or the origin for an empty fabric."""
        if len(self.joint_locations) == 0:
            return np.zeros(3)
        return self.joint_locations.mean(axis=0)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form of the snapshot."""
        return {
            "age": self.age,
            "stage": self.stage.name.lower(),
            "joints": [{"index": i, "location": loc.tolist(), "velocity": vel.tolist()} for i, (loc, vel) in enumerate(zip(self.joint_locations, self.joint_velocities))],
            "intervals": [
                {"index": i, "role": role.value, "alpha": alpha.tolist(), "omega": omega.tolist(), "strain": float(strain)}
                for i, (role, alpha, omega, strain) in enumerate(zip(self.roles, self.alpha_locations, self.omega_locations, self.strains))
            ],
            "faces": [list(face) for face in self.faces],
            "face_normals": self.face_normals.tolist(),
        }
