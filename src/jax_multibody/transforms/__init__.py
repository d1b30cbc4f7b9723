"""
JAX-based rigid transforms for spatial algebra.

This module provides pure implementations of:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms and their adjoints (se3 module)
- the immutable RigidBodyTransform pytree used by reference frames
"""

from . import so3
from . import se3
from .transform import RigidBodyTransform

__all__ = [
    "so3",
    "se3",
    "RigidBodyTransform",
]
