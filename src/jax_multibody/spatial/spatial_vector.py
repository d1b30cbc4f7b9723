"""Frame-tagged spatial vectors.

A spatial vector has 6 components ordered ``[angular, linear]`` and is
expressed in a reference frame. The origin of that frame is where the
vector is measured, which is why changing frames is not a pure rotation:

* motion vectors (twists) keep their angular part and move the linear part,
  ``v' = R v + p × (R ω)``;
* force vectors (wrenches, impulses, momenta) keep their linear part and move
  the angular part, ``τ' = R τ + p × (R f)``;

where ``(R, p)`` maps coordinates of the current frame into the new one and
``p`` is the current frame's origin expressed in the new frame.

Vectors are mutable: operations rebind the ``angular_part`` and
``linear_part`` arrays in place so a calculator can keep reusing the same
objects. Every operation combining two vectors checks that all their frame
tags are identical and raises :class:`ReferenceFrameMismatchError` otherwise.
"""

from __future__ import annotations

import copy
from typing import Dict, Optional

import jax
import jax.numpy as jnp

from jax_multibody.exceptions import ReferenceFrameMismatchError
from jax_multibody.frames import ReferenceFrame
from jax_multibody.transforms import RigidBodyTransform, se3

Array = jax.Array


def as_vector3(value: Optional[Array]) -> Array:
    if value is None:
        return jnp.zeros(3)
    value = jnp.asarray(value, dtype=jnp.float64)
    if value.shape != (3,):
        raise ValueError(f"expected a vector of shape (3,), got {value.shape}")
    return value


class SpatialVector:
    """Base class of all 6-vectors; only carries the expressed-in frame."""

    def __init__(
        self,
        reference_frame: Optional[ReferenceFrame] = None,
        angular_part: Optional[Array] = None,
        linear_part: Optional[Array] = None,
    ):
        self._reference_frame = reference_frame
        self.angular_part = as_vector3(angular_part)
        self.linear_part = as_vector3(linear_part)

    @property
    def reference_frame(self) -> Optional[ReferenceFrame]:
        """Frame in which the components are expressed."""
        return self._reference_frame

    def frame_tags(self) -> Dict[str, Optional[ReferenceFrame]]:
        return {"reference_frame": self._reference_frame}

    # Frame checks
    def check_reference_frame_match(self, other: "SpatialVector"):
        if type(other) is not type(self):
            raise TypeError(f"cannot combine {type(self).__name__} with {type(other).__name__}")
        other_tags = other.frame_tags()
        for tag, frame in self.frame_tags().items():
            if other_tags[tag] is not frame:
                raise ReferenceFrameMismatchError(frame, other_tags[tag], what=tag.replace("_", " "))

    def check_expressed_in_frame_match(self, frame: ReferenceFrame):
        if frame is not self._reference_frame:
            raise ReferenceFrameMismatchError(self._reference_frame, frame)

    def set_reference_frame(self, reference_frame: ReferenceFrame):
        """Rebinds the expressed-in frame without touching the components.

        Use after :meth:`apply_transform` to record the frame the components
        were transformed into.
        """
        self._reference_frame = reference_frame

    # Setters
    def set_to_zero(self):
        self.angular_part = jnp.zeros(3)
        self.linear_part = jnp.zeros(3)

    def set_to_nan(self):
        self.angular_part = jnp.full(3, jnp.nan)
        self.linear_part = jnp.full(3, jnp.nan)

    def set(self, other: "SpatialVector"):
        """Copies the components of ``other`` after checking every frame tag."""
        self.check_reference_frame_match(other)
        self.angular_part = other.angular_part
        self.linear_part = other.linear_part

    def set_including_frame(self, other: "SpatialVector"):
        """Copies the frame tags and the components of ``other``."""
        if type(other) is not type(self):
            raise TypeError(f"cannot copy {type(other).__name__} into {type(self).__name__}")
        self.__dict__.update(other.__dict__)

    def set_matching_frame(self, other: "SpatialVector"):
        """Copies ``other`` transformed into this vector's expressed-in frame.

        Every frame tag other than the expressed-in frame must match.
        """
        if type(other) is not type(self):
            raise TypeError(f"cannot copy {type(other).__name__} into {type(self).__name__}")
        other_tags = other.frame_tags()
        for tag, frame in self.frame_tags().items():
            if tag != "reference_frame" and other_tags[tag] is not frame:
                raise ReferenceFrameMismatchError(frame, other_tags[tag], what=tag.replace("_", " "))
        transformed = other.copy()
        transformed.change_frame(self._reference_frame)
        self.angular_part = transformed.angular_part
        self.linear_part = transformed.linear_part

    def set_from_array(self, array: Array, start_index: int = 0):
        """Reads ``[angular, linear]`` from ``array[start_index:start_index + 6]``."""
        values = jnp.ravel(jnp.asarray(array, dtype=jnp.float64))
        if values.shape[0] < start_index + 6:
            raise ValueError(f"array of size {values.shape[0]} too small to read 6 values from {start_index}")
        self.angular_part = values[start_index:start_index + 3]
        self.linear_part = values[start_index + 3:start_index + 6]

    # Arithmetic
    def add(self, other: "SpatialVector"):
        self.check_reference_frame_match(other)
        self.angular_part = self.angular_part + other.angular_part
        self.linear_part = self.linear_part + other.linear_part

    def sub(self, other: "SpatialVector"):
        self.check_reference_frame_match(other)
        self.angular_part = self.angular_part - other.angular_part
        self.linear_part = self.linear_part - other.linear_part

    def scale(self, scalar: float):
        self.angular_part = scalar * self.angular_part
        self.linear_part = scalar * self.linear_part

    # Frame changes
    def transform_matrix(self, transform: RigidBodyTransform) -> Array:
        """(6, 6) matrix re-expressing this kind of vector through ``transform``."""
        raise NotImplementedError

    def apply_transform(self, transform: RigidBodyTransform):
        """Transforms the components; the frame tags are left untouched."""
        transformed = self.transform_matrix(transform) @ self.to_array()
        self.angular_part = transformed[:3]
        self.linear_part = transformed[3:]

    def apply_inverse_transform(self, transform: RigidBodyTransform):
        self.apply_transform(transform.inverse())

    def change_frame(self, desired_frame: ReferenceFrame):
        """Re-expresses this vector in ``desired_frame``."""
        if desired_frame is self._reference_frame:
            return
        transform = self._reference_frame.get_transform_to_desired_frame(desired_frame)
        self.apply_transform(transform)
        self._reference_frame = desired_frame

    # Accessors
    def to_array(self) -> Array:
        return jnp.concatenate([self.angular_part, self.linear_part])

    def norm(self) -> Array:
        return jnp.linalg.norm(self.to_array())

    def copy(self) -> "SpatialVector":
        return copy.copy(self)

    def __repr__(self):
        tags = ", ".join(f"{tag}={frame.name if frame is not None else None}" for tag, frame in self.frame_tags().items())
        return (f"{type(self).__name__}({tags}, angular={list(map(float, self.angular_part))}, "
                f"linear={list(map(float, self.linear_part))})")


class SpatialMotionVector(SpatialVector):
    """Angular velocity and linear velocity of the point at the frame origin."""

    def transform_matrix(self, transform: RigidBodyTransform) -> Array:
        return se3.adjoint(transform.matrix)


class SpatialForceVector(SpatialVector):
    """Moment about the frame origin and force.

    When ``point_of_application`` is given, ``angular_part`` is the pure
    moment and the moment of ``linear_part`` applied at that point (expressed
    in the same frame) is added to it.
    """

    def __init__(
        self,
        reference_frame: Optional[ReferenceFrame] = None,
        angular_part: Optional[Array] = None,
        linear_part: Optional[Array] = None,
        point_of_application: Optional[Array] = None,
    ):
        super().__init__(reference_frame, angular_part, linear_part)
        if point_of_application is not None:
            self.angular_part = self.angular_part + jnp.cross(as_vector3(point_of_application), self.linear_part)

    def transform_matrix(self, transform: RigidBodyTransform) -> Array:
        return se3.coadjoint(transform.matrix)


class BodyFrameHolder:
    """Mixin for spatial vectors attached to one physical body."""

    _body_frame: Optional[ReferenceFrame]

    @property
    def body_frame(self) -> Optional[ReferenceFrame]:
        return self._body_frame

    def set_body_frame(self, body_frame: ReferenceFrame):
        """Attaches this vector to ``body_frame`` without any check.

        Precondition: ``body_frame`` is rigidly fixed to the same physical
        body as the current body frame. Nothing here can verify it, and
        violating it silently changes what the vector means.
        """
        self._body_frame = body_frame

    def check_body_frame_match(self, body_frame: ReferenceFrame):
        if body_frame is not self._body_frame:
            raise ReferenceFrameMismatchError(self._body_frame, body_frame, what="body frame")
