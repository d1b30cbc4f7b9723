"""Frame-tagged spatial quantities: twists, wrenches, impulses, momenta and inertias."""

from .momentum import Momentum
from .spatial_inertia import SpatialInertia
from .spatial_vector import SpatialForceVector, SpatialMotionVector, SpatialVector
from .twist import Twist
from .wrench import SpatialImpulse, Wrench

__all__ = [
    "SpatialVector",
    "SpatialMotionVector",
    "SpatialForceVector",
    "Twist",
    "Wrench",
    "SpatialImpulse",
    "Momentum",
    "SpatialInertia",
]
