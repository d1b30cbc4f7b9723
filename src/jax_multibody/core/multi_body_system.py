"""Read-only description of the part of a kinematic tree a calculator works on."""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
from flax import struct

from jax_multibody.exceptions import MultiBodyStructureError

from .iterators import JointIterator
from .joints import Joint
from .rigid_body import RigidBody

Array = jax.Array

logger = logging.getLogger(__name__)


@struct.dataclass
class JointMatrixIndexProvider:
    """Assigns each joint's degrees of freedom a block of global column indices.

    Attributes:
        indexed_joints_in_order: Joints in the order their columns appear.
        joint_dof_indices: For each joint, the column index of each of its
                           degrees of freedom.
    """
    indexed_joints_in_order: Tuple[Joint, ...] = struct.field(pytree_node=False)
    joint_dof_indices: Tuple[Tuple[int, ...], ...] = struct.field(pytree_node=False)

    @classmethod
    def from_joints(cls, joints: Sequence[Joint]) -> "JointMatrixIndexProvider":
        """Contiguous blocks following the order of ``joints``."""
        indices = []
        start = 0
        for joint in joints:
            indices.append(tuple(range(start, start + joint.degrees_of_freedom)))
            start += joint.degrees_of_freedom
        return cls(tuple(joints), tuple(indices))

    @property
    def number_of_degrees_of_freedom(self) -> int:
        return sum(len(indices) for indices in self.joint_dof_indices)

    def get_joint_dof_indices(self, joint: Joint) -> Tuple[int, ...]:
        for indexed_joint, indices in zip(self.indexed_joints_in_order, self.joint_dof_indices):
            if indexed_joint is joint:
                return indices
        raise MultiBodyStructureError(f"Joint '{joint.name}' is not indexed")

    def check_consistency(self):
        if len(self.indexed_joints_in_order) != len(self.joint_dof_indices):
            raise MultiBodyStructureError("Every indexed joint needs exactly one block of indices")
        all_indices = []
        for joint, indices in zip(self.indexed_joints_in_order, self.joint_dof_indices):
            if len(indices) != joint.degrees_of_freedom:
                raise MultiBodyStructureError(
                    f"Joint '{joint.name}' has {joint.degrees_of_freedom} degrees of freedom but {len(indices)} indices"
                )
            all_indices.extend(indices)
        if sorted(all_indices) != list(range(len(all_indices))):
            raise MultiBodyStructureError(f"Joint indices must cover 0..N-1 exactly once, got {sorted(all_indices)}")


@struct.dataclass
class MultiBodySystem:
    """Snapshot of which joints of the tree below ``root_body`` are considered or ignored.

    Considered joints contribute columns to the system's matrices, in the
    layout given by ``joint_matrix_index_provider``. Ignored joints, and
    everything below them, are excluded from the columns. Loop-closure joints
    are never ignored: they are considered and own columns, but tree
    recursions stop at them.
    """
    root_body: RigidBody = struct.field(pytree_node=False)
    joints_to_consider: Tuple[Joint, ...] = struct.field(pytree_node=False)
    joints_to_ignore: FrozenSet[Joint] = struct.field(pytree_node=False)
    joint_matrix_index_provider: JointMatrixIndexProvider = struct.field(pytree_node=False)

    @classmethod
    def from_root(
        cls,
        root_body: RigidBody,
        joints_to_ignore: Iterable[Joint] = (),
        joint_matrix_index_provider: Optional[JointMatrixIndexProvider] = None,
    ) -> "MultiBodySystem":
        """Considers every joint below ``root_body`` except the ignored subtrees.

        Args:
            root_body: Start of the subtree to describe.
            joints_to_ignore: Joints to exclude; every joint below them is
                              excluded as well.
            joint_matrix_index_provider: Column layout, defaults to contiguous
                                         blocks in breadth-first order.
        """
        all_joints = list(JointIterator(Joint, None, root_body.children_joints))

        ignored = set()
        for joint in joints_to_ignore:
            if not any(joint is other for other in all_joints):
                raise MultiBodyStructureError(f"Joint '{joint.name}' is not part of the subtree of '{root_body.name}'")
            if joint.is_loop_closure:
                continue
            ignored.add(joint)
            if joint.successor is not None:
                ignored.update(JointIterator(Joint, lambda j: not j.is_loop_closure, joint.successor.children_joints))

        considered = tuple(joint for joint in all_joints if joint not in ignored)
        if joint_matrix_index_provider is None:
            joint_matrix_index_provider = JointMatrixIndexProvider.from_joints(considered)

        system = cls(root_body, considered, frozenset(ignored), joint_matrix_index_provider)
        system.check_consistency()
        logger.debug(
            "Multi-body system from '%s': %d considered joints, %d ignored joints, %d degrees of freedom",
            root_body.name, len(considered), len(ignored), system.number_of_degrees_of_freedom,
        )
        return system

    @property
    def number_of_degrees_of_freedom(self) -> int:
        return sum(joint.degrees_of_freedom for joint in self.joints_to_consider)

    def check_consistency(self):
        """Raises MultiBodyStructureError when the view does not describe its tree consistently."""
        provider = self.joint_matrix_index_provider
        provider.check_consistency()

        indexed = provider.indexed_joints_in_order
        if len(indexed) != len(self.joints_to_consider) or any(
            not any(joint is other for other in indexed) for joint in self.joints_to_consider
        ):
            raise MultiBodyStructureError("Joint matrix index provider does not match the joints to consider")

        for joint in self.joints_to_consider:
            if joint in self.joints_to_ignore:
                raise MultiBodyStructureError(f"Joint '{joint.name}' is both considered and ignored")
            if joint.is_loop_closure:
                self._check_loop_closure(joint)

    def _check_loop_closure(self, joint: Joint):
        body = joint.successor
        if body is None:
            raise MultiBodyStructureError(f"Loop-closure joint '{joint.name}' has no successor")
        while body is not self.root_body:
            if body.parent_joint is None:
                raise MultiBodyStructureError(
                    f"Successor '{joint.successor.name}' of loop-closure joint '{joint.name}' has no tree path to the root"
                )
            body = body.parent_joint.predecessor


def extract_joint_velocities(index_provider: JointMatrixIndexProvider) -> Array:
    """Stacks the current joint velocities at the columns assigned by ``index_provider``."""
    velocities = jnp.zeros(index_provider.number_of_degrees_of_freedom)
    for joint, indices in zip(index_provider.indexed_joints_in_order, index_provider.joint_dof_indices):
        if indices:
            velocities = velocities.at[jnp.array(indices)].set(joint.get_joint_velocity())
    return velocities
