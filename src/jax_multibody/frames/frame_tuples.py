"""Frame-tagged 3D vectors and points."""

from __future__ import annotations

import jax
import jax.numpy as jnp
from flax import struct

from jax_multibody.exceptions import ReferenceFrameMismatchError

from .reference_frame import ReferenceFrame

Array = jax.Array


@struct.dataclass
class FrameVector3D:
    """Free 3D vector expressed in ``reference_frame``; frame changes only rotate it."""
    reference_frame: ReferenceFrame = struct.field(pytree_node=False)
    vector: Array

    @classmethod
    def zero(cls, reference_frame: ReferenceFrame) -> "FrameVector3D":
        return cls(reference_frame, jnp.zeros(3))

    def check_reference_frame_match(self, frame: ReferenceFrame):
        if frame is not self.reference_frame:
            raise ReferenceFrameMismatchError(self.reference_frame, frame)

    def change_frame(self, desired_frame: ReferenceFrame) -> "FrameVector3D":
        transform = self.reference_frame.get_transform_to_desired_frame(desired_frame)
        return FrameVector3D(desired_frame, transform.transform_vector(self.vector))

    def norm(self) -> Array:
        return jnp.linalg.norm(self.vector)


@struct.dataclass
class FramePoint3D:
    """3D point expressed in ``reference_frame``; frame changes rotate and translate it."""
    reference_frame: ReferenceFrame = struct.field(pytree_node=False)
    point: Array

    @classmethod
    def origin(cls, reference_frame: ReferenceFrame) -> "FramePoint3D":
        return cls(reference_frame, jnp.zeros(3))

    def check_reference_frame_match(self, frame: ReferenceFrame):
        if frame is not self.reference_frame:
            raise ReferenceFrameMismatchError(self.reference_frame, frame)

    def change_frame(self, desired_frame: ReferenceFrame) -> "FramePoint3D":
        transform = self.reference_frame.get_transform_to_desired_frame(desired_frame)
        return FramePoint3D(desired_frame, transform.transform_point(self.point))
