"""Wrench and spatial impulse: spatial forces acting on one body."""

from __future__ import annotations

from typing import Dict, Optional

import jax

from jax_multibody.frames import ReferenceFrame

from .spatial_vector import BodyFrameHolder, SpatialForceVector

Array = jax.Array


class _BodySpatialForce(BodyFrameHolder, SpatialForceVector):

    def __init__(
        self,
        body_frame: Optional[ReferenceFrame] = None,
        reference_frame: Optional[ReferenceFrame] = None,
        angular_part: Optional[Array] = None,
        linear_part: Optional[Array] = None,
        point_of_application: Optional[Array] = None,
    ):
        super().__init__(reference_frame, angular_part, linear_part, point_of_application)
        self._body_frame = body_frame

    def frame_tags(self) -> Dict[str, Optional[ReferenceFrame]]:
        return {"body_frame": self._body_frame, "reference_frame": self._reference_frame}

    def set_to_zero(self, body_frame: Optional[ReferenceFrame] = None, reference_frame: Optional[ReferenceFrame] = None):
        if body_frame is not None:
            self._body_frame = body_frame
        if reference_frame is not None:
            self._reference_frame = reference_frame
        super().set_to_zero()


class Wrench(_BodySpatialForce):
    """Torque and force exerted on the body attached to ``body_frame``.

    Changing the expressed-in frame between two frames with parallel axes
    but different origins keeps the force and changes the moment.
    """


class SpatialImpulse(_BodySpatialForce):
    """Time integral of a wrench over a short interval; changes the body's momentum."""
