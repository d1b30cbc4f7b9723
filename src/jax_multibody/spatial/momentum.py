"""Momentum: angular and linear momentum of a body or a set of bodies."""

from __future__ import annotations

from typing import Optional

import jax

from jax_multibody.exceptions import ReferenceFrameMismatchError
from jax_multibody.frames import ReferenceFrame

from .spatial_inertia import SpatialInertia
from .spatial_vector import SpatialForceVector
from .twist import Twist

Array = jax.Array


class Momentum(SpatialForceVector):
    """Spatial momentum expressed in ``reference_frame``.

    Momentum is not tied to a single body: the momenta of several bodies
    expressed in the same frame add up to the momentum of the set.
    """

    def __init__(
        self,
        reference_frame: Optional[ReferenceFrame] = None,
        angular_part: Optional[Array] = None,
        linear_part: Optional[Array] = None,
    ):
        super().__init__(reference_frame, angular_part, linear_part)

    def set_to_zero(self, reference_frame: Optional[ReferenceFrame] = None):
        if reference_frame is not None:
            self._reference_frame = reference_frame
        super().set_to_zero()

    def compute(self, inertia: SpatialInertia, twist: Twist):
        """Sets this momentum to ``inertia · twist`` expressed in the inertia frame.

        Raises:
            ReferenceFrameMismatchError: if the twist is not expressed in the
                frame of the inertia.
        """
        if twist.reference_frame is not inertia.reference_frame:
            raise ReferenceFrameMismatchError(inertia.reference_frame, twist.reference_frame)
        self._reference_frame = inertia.reference_frame
        self.set_from_array(inertia.to_matrix() @ twist.to_array())

    @classmethod
    def from_inertia_and_twist(cls, inertia: SpatialInertia, twist: Twist) -> "Momentum":
        momentum = cls()
        momentum.compute(inertia, twist)
        return momentum
