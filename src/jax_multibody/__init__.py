"""
JAX Multibody: frame-safe spatial algebra and centroidal momentum for robots.

This library provides frame-tagged twists, wrenches, momenta and inertias,
a kinematic tree of rigid bodies and joints with breadth-first subtree
iteration, and the centroidal momentum matrix of a multi-body system.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import frames
from . import spatial
from . import core
from . import io
from .centroidal_momentum import CentroidalMomentumCalculator
from .exceptions import MultiBodyStructureError, ReferenceFrameMismatchError

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "frames",
    "spatial",
    "core",
    "io",
    "CentroidalMomentumCalculator",
    "MultiBodyStructureError",
    "ReferenceFrameMismatchError",
]
