"""Immutable rigid-body transform used by the reference-frame tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from . import se3, so3

Array = jax.Array


@register_pytree_node_class  # let RigidBodyTransform work with jit / grad / vmap
@dataclass(frozen=True)
class RigidBodyTransform:
    """Homogeneous transform mapping coordinates of one frame into another.

    ``x_to = R @ x_from + p`` where ``R`` is :attr:`rotation` and ``p`` is
    :attr:`translation`, the origin of the source frame expressed in the
    target frame.
    """
    matrix: Array  # shape (4, 4)

    # Constructors
    @classmethod
    def from_matrix(cls, matrix: Array) -> "RigidBodyTransform":
        matrix = jnp.asarray(matrix, dtype=jnp.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4,4), got {matrix.shape}")
        return cls(matrix)

    @classmethod
    def from_rotation_and_translation(
        cls, rotation: Optional[Array] = None, translation: Optional[Array] = None
    ) -> "RigidBodyTransform":
        R = jnp.eye(3) if rotation is None else jnp.asarray(rotation, dtype=jnp.float64)
        p = jnp.zeros(3) if translation is None else jnp.asarray(translation, dtype=jnp.float64)
        if R.shape != (3, 3) or p.shape != (3,):
            raise ValueError(f"expected (3,3) rotation and (3,) translation, got {R.shape} and {p.shape}")
        return cls(se3.from_position_and_rotation(p, R))

    @classmethod
    def from_translation(cls, translation: Array) -> "RigidBodyTransform":
        return cls.from_rotation_and_translation(translation=translation)

    @classmethod
    def from_axis_angle(cls, axis: Array, angle: float, translation: Optional[Array] = None) -> "RigidBodyTransform":
        axis = jnp.asarray(axis, dtype=jnp.float64)
        rotation = so3.exp(axis / jnp.linalg.norm(axis) * angle)
        return cls.from_rotation_and_translation(rotation, translation)

    @classmethod
    def identity(cls) -> "RigidBodyTransform":
        return cls(jnp.eye(4, dtype=jnp.float64))

    # PyTree boiler-plate
    def tree_flatten(self):
        return (self.matrix,), None

    @classmethod
    def tree_unflatten(cls, aux, children):
        (matrix,) = children
        return cls(matrix)

    # Basic operations
    def compose(self, other: "RigidBodyTransform") -> "RigidBodyTransform":
        """Self ∘ other (apply *other* first, then self)."""
        return RigidBodyTransform(se3.multiply(self.matrix, other.matrix))

    def inverse(self) -> "RigidBodyTransform":
        return RigidBodyTransform(se3.inverse(self.matrix))

    def transform_point(self, point: Array) -> Array:
        return se3.apply(self.matrix, jnp.asarray(point, dtype=jnp.float64))

    def transform_vector(self, vector: Array) -> Array:
        return so3.apply(self.rotation, jnp.asarray(vector, dtype=jnp.float64))

    # Convenience helpers
    @property
    def rotation(self) -> Array:
        return se3.get_rotation(self.matrix)

    @property
    def translation(self) -> Array:
        return se3.get_position(self.matrix)
