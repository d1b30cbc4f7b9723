"""Twist: spatial velocity of a body relative to a base."""

from __future__ import annotations

from typing import Dict, Optional

import jax

from jax_multibody.frames import ReferenceFrame

from .spatial_vector import BodyFrameHolder, SpatialMotionVector

Array = jax.Array


class Twist(BodyFrameHolder, SpatialMotionVector):
    """Velocity of ``body_frame`` with respect to ``base_frame``, expressed in ``reference_frame``.

    The linear part is the velocity of the point of the body that coincides
    with the origin of ``reference_frame``.
    """

    def __init__(
        self,
        body_frame: Optional[ReferenceFrame] = None,
        base_frame: Optional[ReferenceFrame] = None,
        reference_frame: Optional[ReferenceFrame] = None,
        angular_part: Optional[Array] = None,
        linear_part: Optional[Array] = None,
    ):
        super().__init__(reference_frame, angular_part, linear_part)
        self._body_frame = body_frame
        self._base_frame = base_frame

    @property
    def base_frame(self) -> Optional[ReferenceFrame]:
        return self._base_frame

    def set_base_frame(self, base_frame: ReferenceFrame):
        """Unchecked, same precondition as :meth:`set_body_frame` for the base body."""
        self._base_frame = base_frame

    def frame_tags(self) -> Dict[str, Optional[ReferenceFrame]]:
        return {
            "body_frame": self._body_frame,
            "base_frame": self._base_frame,
            "reference_frame": self._reference_frame,
        }

    def set_to_zero(
        self,
        body_frame: Optional[ReferenceFrame] = None,
        base_frame: Optional[ReferenceFrame] = None,
        reference_frame: Optional[ReferenceFrame] = None,
    ):
        if body_frame is not None:
            self._body_frame = body_frame
        if base_frame is not None:
            self._base_frame = base_frame
        if reference_frame is not None:
            self._reference_frame = reference_frame
        super().set_to_zero()
