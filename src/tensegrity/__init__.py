"""Tensegrity fabric simulation: joints, intervals and the construction lifecycle."""

from .engine import REST_SHAPE, SHAPE_COUNT, Face, Interval, IntervalRole, Joint, Stage
from .fabric import Fabric
from .logging_config import setup_logging
from .view import FabricSnapshot
from .world import World

__all__ = [
    "Joint",
    "Face",
    "Interval",
    "IntervalRole",
    "Stage",
    "Fabric",
    "FabricSnapshot",
    "World",
    "REST_SHAPE",
    "SHAPE_COUNT",
    "setup_logging",
]
