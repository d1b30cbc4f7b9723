"""Rigid bodies: the links of a kinematic tree."""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import jax

from jax_multibody.exceptions import MultiBodyStructureError
from jax_multibody.frames import FramePoint3D, ReferenceFrame
from jax_multibody.spatial import SpatialInertia

from .iterators import JointIterator, RigidBodyIterator, SubtreeIterable
from .joints import Joint

Array = jax.Array


class RigidBody:
    """A link of the multi-body system with its physical properties and its place in the tree.

    A root body is fixed to ``parent_frame``; any other body is the successor
    of ``parent_joint`` and its body-fixed frame is rigidly attached to the
    joint's ``frame_after_joint``. A body created without a mass carries no
    inertia, which is how a massless world body is modelled.

    Args:
        name: Name of the body.
        parent_joint: The joint connecting this body to its parent, None for a root.
        parent_frame: The stationary frame a root body is attached to.
        mass: Mass of the body [kg].
        moment_of_inertia: (3, 3) or diagonal (3,) rotational inertia about the
            centre of mass, in the body-fixed frame [kg*m^2].
        center_of_mass_offset: (3,) centre of mass in the body-fixed frame [m].
    """

    def __init__(
        self,
        name: str,
        parent_joint: Optional[Joint] = None,
        *,
        parent_frame: Optional[ReferenceFrame] = None,
        mass: Optional[float] = None,
        moment_of_inertia: Optional[Array] = None,
        center_of_mass_offset: Optional[Array] = None,
    ):
        if (parent_joint is None) == (parent_frame is None):
            raise ValueError(f"Body '{name}' needs exactly one of parent_joint or parent_frame")
        self.name = name
        self.parent_joint = parent_joint
        self._children_joints: List[Joint] = []

        if parent_joint is None:
            self.body_fixed_frame = ReferenceFrame(f"{name}Frame", parent_frame)
        else:
            parent_joint.set_successor(self)
            self.body_fixed_frame = ReferenceFrame(f"{name}Frame", parent_joint.frame_after_joint)

        self.inertia = None
        if mass is not None:
            self.inertia = SpatialInertia(
                self.body_fixed_frame, self.body_fixed_frame, mass, moment_of_inertia, center_of_mass_offset
            )

    def is_root_body(self) -> bool:
        return self.parent_joint is None

    @property
    def children_joints(self) -> Tuple[Joint, ...]:
        return tuple(self._children_joints)

    def add_child_joint(self, joint: Joint):
        """Registers a new child joint. Only meant to be called while building the robot."""
        if any(child is joint for child in self._children_joints):
            raise MultiBodyStructureError(f"Joint '{joint.name}' is already a child of '{self.name}'")
        self._children_joints.append(joint)

    def set_center_of_mass(self, center_of_mass: FramePoint3D):
        """Moves the centre of mass, given in any frame of the same tree.

        Modules built on this body may not anticipate such a change at runtime.
        """
        if self.inertia is None:
            raise ValueError(f"Body '{self.name}' has no inertia")
        point = center_of_mass.change_frame(self.inertia.reference_frame)
        self.inertia.set_center_of_mass_offset(point.point)

    def update_frames_recursively(self):
        """Refreshes this body's frame then the frames of every joint and body below it.

        Call it on the root body after changing joint configurations.
        """
        self.body_fixed_frame.update()
        for joint in self._children_joints:
            joint.update_frames_recursively()

    def subtree_iterable(self) -> SubtreeIterable:
        """Bodies of the subtree starting at this body, breadth-first, this body first."""
        return SubtreeIterable(RigidBodyIterator, RigidBody, None, self)

    def children_subtree_iterable(self) -> SubtreeIterable:
        """Joints of the subtree below this body, breadth-first."""
        return SubtreeIterable(JointIterator, Joint, None, self.children_joints)

    def iter_subtree(self) -> Iterator["RigidBody"]:
        return iter(self.subtree_iterable())

    def subtree_list(self) -> List["RigidBody"]:
        return list(self.subtree_iterable())

    def __repr__(self):
        return f"RigidBody({self.name!r})"
