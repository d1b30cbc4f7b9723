"""Joints connecting a predecessor body to a successor body.

Each joint owns two frames: ``frame_before_joint``, fixed in the
predecessor's body-fixed frame, and ``frame_after_joint``, placed relative
to it by the current joint configuration. The unit-twists of a joint give
the velocity of ``frame_after_joint`` with respect to ``frame_before_joint``
when one generalized velocity is 1 and the others 0, expressed in
``frame_after_joint``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

import jax
import jax.numpy as jnp

from jax_multibody.exceptions import MultiBodyStructureError
from jax_multibody.frames import ReferenceFrame
from jax_multibody.spatial import Twist
from jax_multibody.transforms import RigidBodyTransform, so3

if TYPE_CHECKING:
    from .rigid_body import RigidBody

Array = jax.Array


class _FrameAfterJoint(ReferenceFrame):

    def __init__(self, joint: "Joint"):
        self._joint = joint
        super().__init__(f"{joint.name}FrameAfterJoint", joint.frame_before_joint)

    def update_transform_to_parent(self) -> RigidBodyTransform:
        return self._joint.get_joint_configuration()


class Joint:
    """Base class of all joints.

    Subclasses set up their own state before calling ``Joint.__init__``, which
    creates the frames and registers the joint with its predecessor.
    """

    def __init__(self, name: str, predecessor: "RigidBody", transform_to_parent: Optional[RigidBodyTransform] = None):
        self.name = name
        self.predecessor = predecessor
        self._successor = None
        self._is_loop_closure = False
        self.frame_before_joint = ReferenceFrame(
            f"{name}FrameBeforeJoint", predecessor.body_fixed_frame, transform_to_parent
        )
        self.frame_after_joint = _FrameAfterJoint(self)
        self.frame_after_joint.update()
        self._unit_twists = tuple(
            Twist(self.frame_after_joint, self.frame_before_joint, self.frame_after_joint, column[:3], column[3:])
            for column in self.unit_twist_matrix().T
        )
        predecessor.add_child_joint(self)

    @property
    def degrees_of_freedom(self) -> int:
        raise NotImplementedError

    @property
    def successor(self) -> Optional["RigidBody"]:
        return self._successor

    @property
    def is_loop_closure(self) -> bool:
        """Whether this joint closes a kinematic loop rather than extending the tree."""
        return self._is_loop_closure

    @property
    def unit_twists(self) -> Tuple[Twist, ...]:
        """One twist per degree of freedom. Shared instances: do not modify."""
        return self._unit_twists

    def set_successor(self, successor: "RigidBody"):
        if self._successor is not None:
            raise MultiBodyStructureError(f"Joint '{self.name}' already has successor '{self._successor.name}'")
        self._successor = successor

    def setup_loop_closure(self, successor: "RigidBody"):
        """Connects this joint to a body that already has a tree parent joint.

        The joint keeps its columns in the system's matrices, but tree
        recursions stop at it.
        """
        if successor is None:
            raise MultiBodyStructureError(f"Loop-closure joint '{self.name}' needs a successor")
        self.set_successor(successor)
        self._is_loop_closure = True

    def unit_twist_matrix(self) -> Array:
        """(6, dof) matrix whose columns are the unit-twists as ``[angular, linear]``."""
        raise NotImplementedError

    def get_joint_configuration(self) -> RigidBodyTransform:
        """Transform from ``frame_after_joint`` to ``frame_before_joint``."""
        raise NotImplementedError

    def get_joint_velocity(self) -> Array:
        raise NotImplementedError

    def set_joint_velocity(self, velocity: Array):
        raise NotImplementedError

    def get_joint_twist(self) -> Twist:
        """Current velocity of ``frame_after_joint`` relative to ``frame_before_joint``."""
        values = self.unit_twist_matrix() @ self.get_joint_velocity()
        return Twist(self.frame_after_joint, self.frame_before_joint, self.frame_after_joint, values[:3], values[3:])

    def update_frames_recursively(self):
        self.frame_before_joint.update()
        self.frame_after_joint.update()
        if not self._is_loop_closure and self._successor is not None:
            self._successor.update_frames_recursively()

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class OneDoFJoint(Joint):
    """Joint with a single generalized coordinate ``q`` along or about ``joint_axis``."""

    def __init__(
        self,
        name: str,
        predecessor: "RigidBody",
        joint_axis: Array,
        transform_to_parent: Optional[RigidBodyTransform] = None,
    ):
        joint_axis = jnp.asarray(joint_axis, dtype=jnp.float64)
        norm = jnp.linalg.norm(joint_axis)
        if joint_axis.shape != (3,) or norm == 0.0:
            raise ValueError(f"Joint '{name}' needs a non-zero 3D axis, got {joint_axis}")
        self.joint_axis = joint_axis / norm
        self.q = 0.0
        self.qd = 0.0
        super().__init__(name, predecessor, transform_to_parent)

    @property
    def degrees_of_freedom(self) -> int:
        return 1

    def set_q(self, q: float):
        """Sets the configuration. Frames are refreshed by ``update_frames_recursively``."""
        self.q = float(q)

    def get_joint_velocity(self) -> Array:
        return jnp.array([self.qd])

    def set_joint_velocity(self, velocity):
        values = jnp.ravel(jnp.asarray(velocity, dtype=jnp.float64))
        if values.shape != (1,):
            raise ValueError(f"Joint '{self.name}' has 1 degree of freedom, got velocity of shape {values.shape}")
        self.qd = float(values[0])


class RevoluteJoint(OneDoFJoint):
    """Rotation of angle ``q`` about ``joint_axis``."""

    def unit_twist_matrix(self) -> Array:
        return jnp.concatenate([self.joint_axis, jnp.zeros(3)])[:, None]

    def get_joint_configuration(self) -> RigidBodyTransform:
        return RigidBodyTransform.from_rotation_and_translation(rotation=so3.exp(self.joint_axis * self.q))


class PrismaticJoint(OneDoFJoint):
    """Translation of ``q`` along ``joint_axis``."""

    def unit_twist_matrix(self) -> Array:
        return jnp.concatenate([jnp.zeros(3), self.joint_axis])[:, None]

    def get_joint_configuration(self) -> RigidBodyTransform:
        return RigidBodyTransform.from_translation(self.joint_axis * self.q)


class FixedJoint(Joint):
    """Rigid connection without any degree of freedom."""

    @property
    def degrees_of_freedom(self) -> int:
        return 0

    def unit_twist_matrix(self) -> Array:
        return jnp.zeros((6, 0))

    def get_joint_configuration(self) -> RigidBodyTransform:
        return RigidBodyTransform.identity()

    def get_joint_velocity(self) -> Array:
        return jnp.zeros(0)

    def set_joint_velocity(self, velocity):
        if jnp.size(jnp.asarray(velocity)) != 0:
            raise ValueError(f"Joint '{self.name}' has no degree of freedom")


class SixDoFJoint(Joint):
    """Floating joint: free pose and twist of the successor.

    The velocity is ``[ω, v]`` of ``frame_after_joint`` relative to
    ``frame_before_joint``, expressed in ``frame_after_joint``.
    """

    def __init__(self, name: str, predecessor: "RigidBody", transform_to_parent: Optional[RigidBodyTransform] = None):
        self.joint_pose = RigidBodyTransform.identity()
        self.joint_twist = jnp.zeros(6)
        super().__init__(name, predecessor, transform_to_parent)

    @property
    def degrees_of_freedom(self) -> int:
        return 6

    def set_joint_configuration(self, pose: RigidBodyTransform):
        self.joint_pose = pose

    def set_joint_orientation(self, quaternion: Array):
        """Sets the orientation from a (w, x, y, z) quaternion, keeping the position."""
        rotation = so3.from_quaternion(jnp.asarray(quaternion, dtype=jnp.float64))
        self.joint_pose = RigidBodyTransform.from_rotation_and_translation(rotation, self.joint_pose.translation)

    def unit_twist_matrix(self) -> Array:
        return jnp.eye(6)

    def get_joint_configuration(self) -> RigidBodyTransform:
        return self.joint_pose

    def get_joint_velocity(self) -> Array:
        return self.joint_twist

    def set_joint_velocity(self, velocity):
        values = jnp.ravel(jnp.asarray(velocity, dtype=jnp.float64))
        if values.shape != (6,):
            raise ValueError(f"Joint '{self.name}' has 6 degrees of freedom, got velocity of shape {values.shape}")
        self.joint_twist = values
