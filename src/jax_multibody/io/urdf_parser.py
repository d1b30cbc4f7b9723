"""URDF parser building a kinematic tree of rigid bodies and joints.

Links become :class:`RigidBody` instances whose body-fixed frame is the link
frame; joints become revolute, prismatic, fixed or six-DOF joints placed at
their URDF origin relative to the parent link frame.
"""

import logging
from collections import defaultdict, deque
from typing import Dict, List, NamedTuple, Optional

import jax.numpy as jnp
import numpy as np
from lxml import etree

from jax_multibody.core import FixedJoint, Joint, PrismaticJoint, RevoluteJoint, RigidBody, SixDoFJoint
from jax_multibody.frames import ReferenceFrame
from jax_multibody.transforms import RigidBodyTransform, so3

logger = logging.getLogger(__name__)


class _JointElement(NamedTuple):
    name: str
    type: str
    parent: str
    child: str
    element: etree._Element


def load_urdf(urdf_path: str, parent_frame: Optional[ReferenceFrame] = None) -> RigidBody:
    """Load a URDF file and build the corresponding kinematic tree.

    Args:
        urdf_path: Path to the URDF file to load.
        parent_frame: Stationary frame the root link is attached to; a new
                      root frame named ``world`` is created when omitted.

    Returns:
        RigidBody: The root body; every other body is reachable from it.
    """
    robot = etree.parse(urdf_path).getroot()
    links = {link.get('name'): link for link in robot.iter('link')}

    joints_by_parent: Dict[str, List[_JointElement]] = defaultdict(list)
    child_names = set()
    n_joints = 0
    for element in robot.iter('joint'):
        parent, child = element.find('parent'), element.find('child')
        if parent is None or child is None:
            continue
        joint = _JointElement(element.get('name'), element.get('type'), parent.get('link'), child.get('link'), element)
        joints_by_parent[joint.parent].append(joint)
        child_names.add(joint.child)
        n_joints += 1

    # The root link is the only one that is nobody's child
    root_names = set(links) - child_names
    if len(root_names) != 1:
        raise ValueError(f"Expected exactly one root link, found: {sorted(root_names)}")
    root_name = root_names.pop()

    if parent_frame is None:
        parent_frame = ReferenceFrame.create_root("world")

    # Bodies are created breadth-first so that every joint finds its predecessor.
    bodies: Dict[str, RigidBody] = {root_name: _create_body(links[root_name], parent_frame=parent_frame)}
    pending = deque([root_name])
    while pending:
        link_name = pending.popleft()
        for joint in joints_by_parent[link_name]:
            if joint.child in bodies:
                raise ValueError(f"Link '{joint.child}' has more than one parent joint")
            if joint.child not in links:
                raise ValueError(f"Joint '{joint.name}' refers to unknown link '{joint.child}'")
            bodies[joint.child] = _create_body(links[joint.child], parent_joint=_create_joint(joint, bodies[link_name]))
            pending.append(joint.child)

    logger.debug("Loaded '%s': %d bodies, %d joints", urdf_path, len(bodies), n_joints)
    return bodies[root_name]


def _create_joint(joint: _JointElement, predecessor: RigidBody) -> Joint:
    origin = _parse_origin(joint.element.find('origin'))

    if joint.type == 'fixed':
        return FixedJoint(joint.name, predecessor, origin)
    if joint.type == 'floating':
        return SixDoFJoint(joint.name, predecessor, origin)

    axis_element = joint.element.find('axis')
    # URDF default axis is x
    axis = _parse_floats(axis_element.get('xyz', '1 0 0')) if axis_element is not None else np.array([1.0, 0.0, 0.0])

    if joint.type in ('revolute', 'continuous'):
        return RevoluteJoint(joint.name, predecessor, jnp.array(axis), origin)
    if joint.type == 'prismatic':
        return PrismaticJoint(joint.name, predecessor, jnp.array(axis), origin)
    raise ValueError(f"Unsupported joint type '{joint.type}' for joint '{joint.name}'")


def _create_body(link_elem, parent_joint: Optional[Joint] = None, parent_frame: Optional[ReferenceFrame] = None) -> RigidBody:
    name = link_elem.get('name')
    inertial = link_elem.find('inertial')
    if inertial is None:
        return RigidBody(name, parent_joint, parent_frame=parent_frame)

    mass_elem = inertial.find('mass')
    mass = float(mass_elem.get('value')) if mass_elem is not None else 0.0

    inertia_elem = inertial.find('inertia')
    moment_of_inertia = np.zeros((3, 3))
    if inertia_elem is not None:
        ixx, ixy, ixz, iyy, iyz, izz = (
            float(inertia_elem.get(key, '0')) for key in ('ixx', 'ixy', 'ixz', 'iyy', 'iyz', 'izz')
        )
        moment_of_inertia = np.array([
            [ixx, ixy, ixz],
            [ixy, iyy, iyz],
            [ixz, iyz, izz]
        ])

    # The inertia tensor is given in the inertial frame; express it in the link frame.
    origin = _parse_origin(inertial.find('origin'))
    R = origin.rotation
    moment_of_inertia = R @ jnp.array(moment_of_inertia) @ R.T

    return RigidBody(
        name,
        parent_joint,
        parent_frame=parent_frame,
        mass=mass,
        moment_of_inertia=moment_of_inertia,
        center_of_mass_offset=origin.translation,
    )


def _parse_origin(origin_elem) -> RigidBodyTransform:
    if origin_elem is None:
        return RigidBodyTransform.identity()
    xyz = _parse_floats(origin_elem.get('xyz', '0 0 0'))
    rpy = _parse_floats(origin_elem.get('rpy', '0 0 0'))
    return RigidBodyTransform.from_rotation_and_translation(so3.from_rpy(jnp.array(rpy)), jnp.array(xyz))


def _parse_floats(text: str) -> np.ndarray:
    return np.array([float(x) for x in text.split()])
