"""Rotation helpers in JAX.

Rotation matrices built from joint axes and angles, quaternions and URDF
roll-pitch-yaw angles, plus the cross-product matrix that shows up in every
spatial frame-change law. Functions are pure and work on single (3,) or
(3, 3) arrays.
"""

import jax
import jax.numpy as jnp

Array = jax.Array

# Below this angle exp() switches to Taylor expansions of sin and cos.
_SMALL_ANGLE = 1e-8


def skew_symmetric(v: Array) -> Array:
    """
    Cross-product matrix of a 3D vector.

    skew_symmetric(a) @ b == cross(a, b)
    """
    x, y, z = v[0], v[1], v[2]
    return jnp.array([
        [0.0, -z, y],
        [z, 0.0, -x],
        [-y, x, 0.0],
    ], dtype=v.dtype)


def exp(rotation_vector: Array) -> Array:
    """
    Rotation matrix of a rotation vector (axis times angle).

    Rodrigues' formula, R = I + sin(θ) K + (1 - cos(θ)) K² with K the
    cross-product matrix of the unit axis. A revolute joint uses it with
    ``axis * q``.

    Args:
        rotation_vector: (3,) axis-angle vector

    Returns:
        (3, 3) rotation matrix
    """
    rotation_vector = jnp.asarray(rotation_vector)
    theta = jnp.linalg.norm(rotation_vector)
    is_small = theta < _SMALL_ANGLE
    safe_theta = jnp.where(is_small, 1.0, theta)

    # sin(θ)/θ and (1 - cos(θ))/θ², so K can be built from the unnormalized vector
    sinc = jnp.where(is_small, 1.0 - theta**2 / 6.0, jnp.sin(safe_theta) / safe_theta)
    cosc = jnp.where(is_small, 0.5 - theta**2 / 24.0, (1.0 - jnp.cos(safe_theta)) / safe_theta**2)

    K = skew_symmetric(rotation_vector)
    return jnp.eye(3, dtype=rotation_vector.dtype) + sinc * K + cosc * (K @ K)


def apply(R: Array, v: Array) -> Array:
    """Rotate the (3,) vector ``v``."""
    return R @ v


def from_quaternion(quaternion: Array) -> Array:
    """
    Rotation matrix of a (w, x, y, z) quaternion, normalized first.

    Uses R = (w² - |u|²) I + 2 u uᵀ + 2 w [u]× with u = (x, y, z).
    """
    quaternion = quaternion / jnp.linalg.norm(quaternion)
    w, u = quaternion[0], quaternion[1:]
    return (
        (w * w - jnp.dot(u, u)) * jnp.eye(3, dtype=quaternion.dtype)
        + 2.0 * jnp.outer(u, u)
        + 2.0 * w * skew_symmetric(u)
    )


def from_rpy(rpy: Array) -> Array:
    """Convert roll-pitch-yaw angles to a rotation matrix, R = Rz(yaw) Ry(pitch) Rx(roll).

    Args:
        rpy: (3,) array of [roll, pitch, yaw] angles in radians.

    Returns:
        (3, 3) rotation matrix.
    """
    roll, pitch, yaw = jnp.asarray(rpy, dtype=jnp.float64)
    basis = jnp.eye(3)
    return exp(basis[2] * yaw) @ exp(basis[1] * pitch) @ exp(basis[0] * roll)
