"""
Physical constants consumed by the fabric.

The fabric never owns its constants: every frame step receives a ``World``
(or any object carrying the same attributes). Defaults are dimensionless and
tuned for one substep per unit of simulated time.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping


class WorldDefaults:
    """Default values for the constants collaborator."""

    # Substeps run per call to Fabric.iterate
    ITERATIONS_PER_FRAME = 100

    # Substeps a fabric stays busy after realizing starts
    REALIZING_COUNTDOWN = 30000

    # Substeps for the slack to shaping push extension ramp
    INTERVAL_COUNTDOWN = 500

    # Push rest length multiplier applied when slack returns to shaping
    SHAPING_PRETENST_FACTOR = 1.1

    # Gravity and drag per substep
    GRAVITY = 5e-7
    DRAG = 1e-4
    TIME_STEP = 1.0

    # Share of full stiffness a push interval applies when stretched
    PUSH_EXTENSION_FACTOR = 0.1


@dataclass
class World:
    """Constants supplier for one fabric simulation."""

    iterations_per_frame: int = WorldDefaults.ITERATIONS_PER_FRAME
    realizing_countdown: int = WorldDefaults.REALIZING_COUNTDOWN
    interval_countdown: int = WorldDefaults.INTERVAL_COUNTDOWN
    shaping_pretenst_factor: float = WorldDefaults.SHAPING_PRETENST_FACTOR
    gravity: float = WorldDefaults.GRAVITY
    drag: float = WorldDefaults.DRAG
    time_step: float = WorldDefaults.TIME_STEP
    push_extension_factor: float = WorldDefaults.PUSH_EXTENSION_FACTOR

    def __post_init__(self):
        if self.iterations_per_frame < 1:
            raise ValueError(f"Invalid iterations per frame: {self.iterations_per_frame}. At least one substep is required.")
        if self.realizing_countdown < 0:
            raise ValueError(f"Invalid realizing countdown: {self.realizing_countdown}. Countdown cannot be negative.")
        if self.interval_countdown < 0:
            raise ValueError(f"Invalid interval countdown: {self.interval_countdown}. Countdown cannot be negative.")
        if not 0.0 <= self.drag < 1.0:
            raise ValueError(f"Invalid drag: {self.drag}. Drag must be in [0, 1).")
        if not self.time_step > 0:
            raise ValueError(f"Invalid time step: {self.time_step}. Time step must be positive.")
        if self.push_extension_factor < 0:
            raise ValueError(f"Invalid push extension factor: {self.push_extension_factor}. Factor cannot be negative.")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "World":
        """Build a world from a plain mapping, e.g. parsed JSON settings."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown world constants: {', '.join(unknown)}")
        return cls(**dict(values))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
