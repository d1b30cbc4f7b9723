"""Homogeneous rigid-body transforms and their action on spatial 6-vectors.

A transform is a (4, 4) matrix ``[[R, p], [0, 1]]`` mapping coordinates
expressed in a source frame into a target frame, ``p`` being the source
origin seen from the target. Spatial vectors are ordered
``[angular, linear]`` throughout the package, and :func:`adjoint` and
:func:`coadjoint` are laid out for that order.
"""

import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """Stack a (3,) translation and a (3, 3) rotation into a (4, 4) transform."""
    top = jnp.concatenate([R, p[:, None]], axis=1)
    bottom = jnp.array([[0.0, 0.0, 0.0, 1.0]], dtype=top.dtype)
    return jnp.concatenate([top, bottom], axis=0)


def get_position(T: Array) -> Array:
    return T[:3, 3]


def get_rotation(T: Array) -> Array:
    return T[:3, :3]


def multiply(T1: Array, T2: Array) -> Array:
    """Apply ``T2`` first, then ``T1``."""
    return T1 @ T2


def inverse(T: Array) -> Array:
    """Closed-form inverse, ``[[Rᵀ, -Rᵀ p], [0, 1]]``."""
    R_t = get_rotation(T).T
    return from_position_and_rotation(-R_t @ get_position(T), R_t)


def apply(T: Array, point: Array) -> Array:
    """Map a (3,) point, rotating then translating it."""
    return get_rotation(T) @ point + get_position(T)


def _blocks(top_left, top_right, bottom_left, bottom_right) -> Array:
    return jnp.block([[top_left, top_right], [bottom_left, bottom_right]])


def adjoint(T: Array) -> Array:
    """
    Re-expresses motion vectors (twists) through ``T``.

    The angular velocity only rotates; the linear part becomes the velocity
    of the point at the new origin:

        ω' = R ω
        v' = R v + p × ω'

    Args:
        T: (4, 4) transform from the current frame to the new one

    Returns:
        (6, 6) matrix [[R, 0], [[p]× R, R]]
    """
    R = get_rotation(T)
    p_cross_R = so3.skew_symmetric(get_position(T)) @ R
    return _blocks(R, jnp.zeros_like(R), p_cross_R, R)


def coadjoint(T: Array) -> Array:
    """
    Re-expresses force vectors (wrenches, impulses, momenta) through ``T``.

    The force only rotates; the moment is transferred to the new origin:

        f' = R f
        τ' = R τ + p × f'

    A force of (0, 0, -10) applied at a frame sitting at (1, 0, 0) in the
    new frame therefore has a moment of (0, 10, 0) about the new origin.
    The result equals ``adjoint(inverse(T)).T``, which keeps the power of a
    wrench on a twist independent of the frame.

    Args:
        T: (4, 4) transform from the current frame to the new one

    Returns:
        (6, 6) matrix [[R, [p]× R], [0, R]]
    """
    R = get_rotation(T)
    p_cross_R = so3.skew_symmetric(get_position(T)) @ R
    return _blocks(R, p_cross_R, jnp.zeros_like(R), R)
