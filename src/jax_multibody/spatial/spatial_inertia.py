"""Spatial inertia of a rigid body.

The inertia is stored as mass, centre of mass offset and rotational inertia
about the centre of mass, all expressed in ``reference_frame``. The 6x6
matrix in the angular-first convention, about the origin of the frame, is

    G = [[J + m([c]×[c]×ᵀ),  m[c]× ],
         [m[c]×ᵀ,            m·I₃  ]]

with ``c`` the centre of mass offset and ``J`` the rotational inertia about
the centre of mass. ``G @ [ω, v]`` is the momentum about the frame origin.
"""

from __future__ import annotations

import copy
from typing import Optional

import jax
import jax.numpy as jnp

from jax_multibody.exceptions import ReferenceFrameMismatchError
from jax_multibody.frames import ReferenceFrame
from jax_multibody.transforms import RigidBodyTransform, so3

from .spatial_vector import BodyFrameHolder, as_vector3

Array = jax.Array


def _as_inertia_tensor(value: Optional[Array]) -> Array:
    if value is None:
        return jnp.zeros((3, 3))
    value = jnp.asarray(value, dtype=jnp.float64)
    if value.shape == (3,):
        return jnp.diag(value)
    if value.shape != (3, 3):
        raise ValueError(f"moment of inertia must have shape (3,3) or (3,), got {value.shape}")
    return value


def _parallel_axis(mass, offset: Array) -> Array:
    """Inertia of a point mass at ``offset`` about the origin: m(|d|²I - ddᵀ)."""
    return mass * (jnp.dot(offset, offset) * jnp.eye(3) - jnp.outer(offset, offset))


class SpatialInertia(BodyFrameHolder):
    """Mass distribution of the body attached to ``body_frame``, expressed in ``reference_frame``."""

    def __init__(
        self,
        body_frame: Optional[ReferenceFrame] = None,
        reference_frame: Optional[ReferenceFrame] = None,
        mass: float = 0.0,
        moment_of_inertia: Optional[Array] = None,
        center_of_mass_offset: Optional[Array] = None,
    ):
        if mass < 0.0:
            raise ValueError(f"mass must be non-negative, got {mass}")
        self._body_frame = body_frame
        self._reference_frame = reference_frame
        self.mass = float(mass)
        self.moment_of_inertia = _as_inertia_tensor(moment_of_inertia)
        self.center_of_mass_offset = as_vector3(center_of_mass_offset)

    @property
    def reference_frame(self) -> Optional[ReferenceFrame]:
        return self._reference_frame

    def set_reference_frame(self, reference_frame: ReferenceFrame):
        """Unchecked rebinding of the expressed-in frame."""
        self._reference_frame = reference_frame

    def check_reference_frame_match(self, other: "SpatialInertia"):
        if other.body_frame is not self._body_frame:
            raise ReferenceFrameMismatchError(self._body_frame, other.body_frame, what="body frame")
        if other.reference_frame is not self._reference_frame:
            raise ReferenceFrameMismatchError(self._reference_frame, other.reference_frame)

    def set_to_zero(self):
        self.mass = 0.0
        self.moment_of_inertia = jnp.zeros((3, 3))
        self.center_of_mass_offset = jnp.zeros(3)

    def set_center_of_mass_offset(self, offset: Array):
        """Moves the centre of mass, keeping the rotational inertia about it."""
        self.center_of_mass_offset = as_vector3(offset)

    def to_matrix(self) -> Array:
        c = self.center_of_mass_offset
        c_skew = so3.skew_symmetric(c)
        top = jnp.concatenate([self.moment_of_inertia + _parallel_axis(self.mass, c), self.mass * c_skew], axis=-1)
        bottom = jnp.concatenate([-self.mass * c_skew, self.mass * jnp.eye(3)], axis=-1)
        return jnp.concatenate([top, bottom], axis=-2)

    def add(self, other: "SpatialInertia"):
        """Merges ``other`` into this inertia; both must share body and expressed-in frames."""
        self.check_reference_frame_match(other)
        total_mass = self.mass + other.mass
        if total_mass > 0.0:
            com = (self.mass * self.center_of_mass_offset + other.mass * other.center_of_mass_offset) / total_mass
        else:
            com = jnp.zeros(3)
        self.moment_of_inertia = (
            self.moment_of_inertia + _parallel_axis(self.mass, self.center_of_mass_offset - com)
            + other.moment_of_inertia + _parallel_axis(other.mass, other.center_of_mass_offset - com)
        )
        self.center_of_mass_offset = com
        self.mass = total_mass

    def apply_transform(self, transform: RigidBodyTransform):
        """Rank-2 transform law: the offset moves as a point, the tensor as R J Rᵀ."""
        R = transform.rotation
        self.center_of_mass_offset = transform.transform_point(self.center_of_mass_offset)
        self.moment_of_inertia = R @ self.moment_of_inertia @ R.T

    def change_frame(self, desired_frame: ReferenceFrame):
        if desired_frame is self._reference_frame:
            return
        self.apply_transform(self._reference_frame.get_transform_to_desired_frame(desired_frame))
        self._reference_frame = desired_frame

    def copy(self) -> "SpatialInertia":
        return copy.copy(self)

    def __repr__(self):
        return (f"SpatialInertia(body_frame={getattr(self._body_frame, 'name', None)}, "
                f"reference_frame={getattr(self._reference_frame, 'name', None)}, mass={self.mass})")
