"""Kinematic tree model: rigid bodies, joints, tree iteration and system views."""

from .iterators import JointIterator, RigidBodyIterator, SubtreeIterable
from .joints import FixedJoint, Joint, OneDoFJoint, PrismaticJoint, RevoluteJoint, SixDoFJoint
from .multi_body_system import JointMatrixIndexProvider, MultiBodySystem, extract_joint_velocities
from .rigid_body import RigidBody

__all__ = [
    "RigidBody",
    "Joint",
    "OneDoFJoint",
    "RevoluteJoint",
    "PrismaticJoint",
    "FixedJoint",
    "SixDoFJoint",
    "JointIterator",
    "RigidBodyIterator",
    "SubtreeIterable",
    "JointMatrixIndexProvider",
    "MultiBodySystem",
    "extract_joint_velocities",
]
