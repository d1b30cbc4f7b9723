"""Tests for the centroidal momentum matrix calculator."""

import jax.numpy as jnp
import numpy as np
import pytest

from jax_multibody import CentroidalMomentumCalculator
from jax_multibody.centroidal_momentum import _CacheGraph
from jax_multibody.core import JointMatrixIndexProvider, MultiBodySystem, PrismaticJoint, RevoluteJoint, RigidBody, SixDoFJoint
from jax_multibody.exceptions import MultiBodyStructureError
from jax_multibody.frames import FramePoint3D, ReferenceFrame
from jax_multibody.transforms import RigidBodyTransform, se3

CONFIGURATION = {"shoulder": 0.4, "elbow": -0.9, "slider": 0.15}
VELOCITY = {"shoulder": 1.2, "elbow": 0.8, "slider": -0.3}
FLOATING_POSE = RigidBodyTransform.from_axis_angle(jnp.array([0.2, 1.0, 0.4]), 0.8, jnp.array([0.5, -0.3, 1.0]))
FLOATING_VELOCITY = jnp.array([0.1, -0.2, 0.3, 0.5, 0.4, -0.6])


def _build_arm(floating_base=True, loop_closure=False):
    """Arm with a shoulder-elbow chain and a sliding payload on a torso.

    With ``floating_base`` the torso sits on a six-DOF joint, otherwise it is
    the fixed root of the tree.
    """
    world = ReferenceFrame.create_root("world")
    joints = {}
    if floating_base:
        elevator = RigidBody("elevator", parent_frame=world)
        joints["floating"] = SixDoFJoint("floating", elevator)
        torso = RigidBody(
            "torso", joints["floating"], mass=5.0,
            moment_of_inertia=jnp.array([0.1, 0.2, 0.3]), center_of_mass_offset=jnp.array([0.0, 0.0, 0.1]),
        )
    else:
        elevator = torso = RigidBody("torso", parent_frame=world)

    joints["shoulder"] = RevoluteJoint(
        "shoulder", torso, jnp.array([0.0, 1.0, 0.0]),
        RigidBodyTransform.from_axis_angle(jnp.array([1.0, 0.0, 0.0]), 0.3, jnp.array([0.1, 0.2, 0.3])),
    )
    upper_arm = RigidBody(
        "upper_arm", joints["shoulder"], mass=2.0,
        moment_of_inertia=jnp.array([0.02, 0.02, 0.01]), center_of_mass_offset=jnp.array([0.0, 0.0, -0.2]),
    )
    joints["slider"] = PrismaticJoint(
        "slider", torso, jnp.array([0.0, 0.0, 1.0]), RigidBodyTransform.from_translation(jnp.array([0.0, 0.3, 0.0]))
    )
    payload = RigidBody(
        "payload", joints["slider"], mass=0.7,
        moment_of_inertia=jnp.full(3, 0.001), center_of_mass_offset=jnp.array([0.05, 0.0, 0.0]),
    )
    joints["elbow"] = RevoluteJoint(
        "elbow", upper_arm, jnp.array([1.0, 0.0, 1.0]), RigidBodyTransform.from_translation(jnp.array([0.0, 0.0, -0.4]))
    )
    forearm = RigidBody(
        "forearm", joints["elbow"], mass=1.0,
        moment_of_inertia=jnp.array([0.01, 0.01, 0.005]), center_of_mass_offset=jnp.array([0.1, 0.0, -0.15]),
    )
    if loop_closure:
        joints["loop"] = RevoluteJoint("loop", forearm, jnp.array([0.0, 0.0, 1.0]))
        joints["loop"].setup_loop_closure(payload)

    for name, q in CONFIGURATION.items():
        joints[name].set_q(q)
        joints[name].set_joint_velocity(VELOCITY[name])
    if floating_base:
        joints["floating"].set_joint_configuration(FLOATING_POSE)
        joints["floating"].set_joint_velocity(FLOATING_VELOCITY)
    elevator.update_frames_recursively()
    return world, elevator, joints


def _direct_momentum(root_body, frame):
    """Σ Iᵢ Tᵢ over every body, each twist summed from the joint twists of its ancestors."""
    total = jnp.zeros(6)
    for body in root_body.iter_subtree():
        if body.inertia is None:
            continue
        twist = jnp.zeros(6)
        joint = body.parent_joint
        while joint is not None:
            joint_twist = joint.get_joint_twist()
            joint_twist.change_frame(frame)
            twist = twist + joint_twist.to_array()
            joint = joint.predecessor.parent_joint
        inertia = body.inertia.copy()
        inertia.change_frame(frame)
        total = total + inertia.to_matrix() @ twist
    return total


def _center_of_mass(root_body, frame):
    weighted = jnp.zeros(3)
    total_mass = 0.0
    for body in root_body.iter_subtree():
        if body.inertia is None:
            continue
        com = FramePoint3D(body.inertia.reference_frame, body.inertia.center_of_mass_offset).change_frame(frame)
        weighted = weighted + body.inertia.mass * com.point
        total_mass += body.inertia.mass
    return weighted / total_mass


# Basic properties
def test_single_body():
    """A lone body has no columns, its own mass and no momentum."""
    world = ReferenceFrame.create_root("world")
    block = RigidBody("block", parent_frame=world, mass=2.0, moment_of_inertia=jnp.ones(3))

    calculator = CentroidalMomentumCalculator(block, world)

    assert calculator.get_centroidal_momentum_matrix().shape == (6, 0)
    assert calculator.get_total_mass() == pytest.approx(2.0)
    np.testing.assert_array_equal(calculator.get_momentum().to_array(), jnp.zeros(6))
    np.testing.assert_array_equal(calculator.get_center_of_mass_velocity().vector, jnp.zeros(3))


def test_column_is_inertia_times_unit_twist():
    """With one joint, the column is the body inertia applied to the joint unit-twist."""
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    joint = RevoluteJoint("joint", elevator, jnp.array([0.0, 0.0, 1.0]))
    body = RigidBody(
        "body", joint, mass=2.0,
        moment_of_inertia=jnp.array([0.1, 0.2, 0.3]), center_of_mass_offset=jnp.array([0.5, 0.0, 0.0]),
    )

    calculator = CentroidalMomentumCalculator(elevator, body.inertia.reference_frame)
    matrix = calculator.get_centroidal_momentum_matrix()

    expected = body.inertia.to_matrix() @ jnp.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0])
    assert matrix.shape == (6, 1)
    np.testing.assert_allclose(matrix[:, 0], expected, atol=1e-12)
    assert calculator.get_total_mass() == pytest.approx(2.0)


@pytest.mark.parametrize("floating_base", [True, False])
def test_momentum_matches_direct_sum(floating_base):
    world, elevator, _ = _build_arm(floating_base)

    calculator = CentroidalMomentumCalculator(elevator, world)
    momentum = calculator.get_momentum()

    assert momentum.reference_frame is world
    np.testing.assert_allclose(momentum.to_array(), _direct_momentum(elevator, world), atol=1e-9)


def test_momentum_in_moving_frame():
    """The matrix can be expressed in a frame attached to a body of the system."""
    _, elevator, joints = _build_arm()
    frame = joints["elbow"].successor.body_fixed_frame

    calculator = CentroidalMomentumCalculator(elevator, frame)

    np.testing.assert_allclose(calculator.get_momentum().to_array(), _direct_momentum(elevator, frame), atol=1e-9)


def test_six_dof_joint_column_block():
    """For a floating body the matrix is its inertia mapped from body to world coordinates."""
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    floating = SixDoFJoint("floating", elevator)
    body = RigidBody(
        "body", floating, mass=3.0,
        moment_of_inertia=jnp.array([0.3, 0.2, 0.1]), center_of_mass_offset=jnp.array([0.1, 0.2, 0.3]),
    )
    floating.set_joint_configuration(FLOATING_POSE)
    elevator.update_frames_recursively()

    calculator = CentroidalMomentumCalculator(elevator, world)

    T = body.body_fixed_frame.transform_to_root.matrix
    np.testing.assert_allclose(
        calculator.get_centroidal_momentum_matrix(), se3.coadjoint(T) @ body.inertia.to_matrix(), atol=1e-9
    )


def test_center_of_mass_velocity_of_translating_body():
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    floating = SixDoFJoint("floating", elevator)
    RigidBody("body", floating, mass=3.0, center_of_mass_offset=jnp.array([0.1, 0.2, 0.3]))
    floating.set_joint_velocity(jnp.array([0.0, 0.0, 0.0, 1.0, 2.0, 3.0]))

    calculator = CentroidalMomentumCalculator(elevator, world)
    velocity = calculator.get_center_of_mass_velocity()

    assert velocity.reference_frame is world
    np.testing.assert_allclose(velocity.vector, jnp.array([1.0, 2.0, 3.0]), atol=1e-12)


def test_center_of_mass_velocity_matches_finite_difference():
    world, torso, joints = _build_arm(floating_base=False)
    calculator = CentroidalMomentumCalculator(torso, world)
    velocity = calculator.get_center_of_mass_velocity().vector

    def com_at(step):
        for name, q in CONFIGURATION.items():
            joints[name].set_q(q + step * VELOCITY[name])
        torso.update_frames_recursively()
        return _center_of_mass(torso, world)

    eps = 1e-6
    finite_difference = (com_at(eps) - com_at(-eps)) / (2 * eps)

    np.testing.assert_allclose(velocity, finite_difference, atol=1e-7)


@pytest.mark.parametrize(
    "axis, angle",
    [([0.0, 0.0, 1.0], 0.5), ([1.0, 1.0, 0.0], -1.2), ([0.3, -0.5, 0.8], 2.5)],
)
def test_momentum_norm_is_invariant_under_rotation(axis, angle):
    world, elevator, _ = _build_arm()
    rotated = ReferenceFrame.fixed_in_parent(
        "rotated", world, RigidBodyTransform.from_axis_angle(jnp.array(axis), angle)
    )

    in_world = CentroidalMomentumCalculator(elevator, world).get_momentum()
    in_rotated = CentroidalMomentumCalculator(elevator, rotated).get_momentum()

    np.testing.assert_allclose(in_rotated.norm(), in_world.norm(), rtol=1e-10)


# Caching
def test_queries_are_idempotent():
    world, elevator, _ = _build_arm()
    calculator = CentroidalMomentumCalculator(elevator, world)

    np.testing.assert_array_equal(calculator.get_centroidal_momentum_matrix(), calculator.get_centroidal_momentum_matrix())
    np.testing.assert_array_equal(calculator.get_momentum().to_array(), calculator.get_momentum().to_array())
    np.testing.assert_array_equal(
        calculator.get_center_of_mass_velocity().vector, calculator.get_center_of_mass_velocity().vector
    )
    assert calculator.get_total_mass() == calculator.get_total_mass()


def test_returned_momentum_does_not_alias_cache():
    world, elevator, _ = _build_arm()
    calculator = CentroidalMomentumCalculator(elevator, world)
    expected = calculator.get_momentum().to_array()

    calculator.get_momentum().scale(10.0)

    np.testing.assert_array_equal(calculator.get_momentum().to_array(), expected)


def test_reset_after_configuration_change():
    """Cached results survive state changes until reset."""
    world, elevator, joints = _build_arm()
    calculator = CentroidalMomentumCalculator(elevator, world)
    matrix = calculator.get_centroidal_momentum_matrix()
    momentum = calculator.get_momentum().to_array()

    joints["shoulder"].set_q(1.0)
    joints["elbow"].set_joint_velocity(-2.0)
    elevator.update_frames_recursively()

    np.testing.assert_array_equal(calculator.get_centroidal_momentum_matrix(), matrix)
    np.testing.assert_array_equal(calculator.get_momentum().to_array(), momentum)

    calculator.reset()

    assert not np.allclose(calculator.get_centroidal_momentum_matrix(), matrix)
    np.testing.assert_allclose(calculator.get_momentum().to_array(), _direct_momentum(elevator, world), atol=1e-9)


def test_explicit_velocities_leave_cache_untouched():
    world, elevator, _ = _build_arm()
    calculator = CentroidalMomentumCalculator(elevator, world)
    cached = calculator.get_momentum().to_array()
    cached_com_velocity = calculator.get_center_of_mass_velocity().vector
    velocities = jnp.linspace(-1.0, 1.0, calculator.system.number_of_degrees_of_freedom)

    explicit = calculator.get_momentum(velocities)
    column = calculator.get_momentum(velocities[:, None])
    com_velocity = calculator.get_center_of_mass_velocity(velocities)

    matrix = calculator.get_centroidal_momentum_matrix()
    np.testing.assert_allclose(explicit.to_array(), matrix @ velocities, atol=1e-12)
    np.testing.assert_array_equal(column.to_array(), explicit.to_array())
    np.testing.assert_allclose(com_velocity.vector, explicit.linear_part / calculator.get_total_mass(), atol=1e-12)
    np.testing.assert_array_equal(calculator.get_momentum().to_array(), cached)
    np.testing.assert_array_equal(calculator.get_center_of_mass_velocity().vector, cached_com_velocity)


def test_wrong_velocity_shape():
    world, elevator, _ = _build_arm()
    calculator = CentroidalMomentumCalculator(elevator, world)

    with pytest.raises(ValueError):
        calculator.get_momentum(jnp.zeros(3))
    with pytest.raises(ValueError):
        calculator.get_center_of_mass_velocity(jnp.zeros((2, 9)))


def test_massless_system_has_no_center_of_mass_velocity():
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    RigidBody("ghost", RevoluteJoint("joint", elevator, jnp.array([0.0, 0.0, 1.0])))

    calculator = CentroidalMomentumCalculator(elevator, world)

    assert calculator.get_total_mass() == 0.0
    with pytest.raises(ValueError, match="no mass"):
        calculator.get_center_of_mass_velocity()


def test_cache_graph_invalidates_dependents():
    calls = []
    graph = _CacheGraph()
    graph.register("a", lambda: calls.append("a") or 1)
    graph.register("b", lambda: calls.append("b") or graph.get("a") + 1, depends_on=("a",))
    graph.register("c", lambda: calls.append("c") or 3)

    assert graph.get("b") == 2
    assert graph.get("c") == 3
    assert graph.get("b") == 2
    assert calls == ["b", "a", "c"]

    graph.invalidate("a")
    assert not graph.is_up_to_date("b")
    assert graph.is_up_to_date("c")

    with pytest.raises(ValueError):
        graph.register("d", lambda: 0, depends_on=("unknown",))


def test_reset_after_center_of_mass_change():
    """Moving a centre of mass is picked up after reset, like any other state change."""
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    joint = RevoluteJoint("joint", elevator, jnp.array([0.0, 0.0, 1.0]))
    body = RigidBody("body", joint, mass=2.0, center_of_mass_offset=jnp.array([0.5, 0.0, 0.0]))
    joint.set_joint_velocity(1.0)
    calculator = CentroidalMomentumCalculator(elevator, world)
    before = calculator.get_momentum().to_array()

    body.set_center_of_mass(FramePoint3D(world, jnp.array([1.0, 0.0, 0.0])))
    calculator.reset()

    expected = CentroidalMomentumCalculator(elevator, world).get_momentum().to_array()
    np.testing.assert_allclose(expected, jnp.array([0.0, 0.0, 2.0, 0.0, 2.0, 0.0]), atol=1e-12)
    np.testing.assert_allclose(calculator.get_momentum().to_array(), expected, atol=1e-12)
    assert not np.allclose(before, expected)


# Loop closures and ignored joints
def test_loop_closure_column_is_zero():
    world, elevator, _ = _build_arm(loop_closure=True)
    plain_world, plain_elevator, _ = _build_arm()

    with_loop = CentroidalMomentumCalculator(elevator, world)
    without_loop = CentroidalMomentumCalculator(plain_elevator, plain_world)
    matrix = with_loop.get_centroidal_momentum_matrix()

    assert matrix.shape == (6, 10)
    np.testing.assert_array_equal(matrix[:, 9], jnp.zeros(6))
    np.testing.assert_allclose(matrix[:, :9], without_loop.get_centroidal_momentum_matrix(), atol=1e-12)
    assert with_loop.get_total_mass() == pytest.approx(without_loop.get_total_mass())


def test_folding_ignored_subtree_at_root():
    """Ignoring a joint of the root leaves the other columns alone; folding only changes the mass."""
    world = ReferenceFrame.create_root("world")
    elevator = RigidBody("elevator", parent_frame=world)
    kept = RevoluteJoint("kept", elevator, jnp.array([0.0, 0.0, 1.0]))
    RigidBody("kept_body", kept, mass=1.0, center_of_mass_offset=jnp.array([0.5, 0.0, 0.0]))
    ignored = RevoluteJoint("ignored", elevator, jnp.array([0.0, 1.0, 0.0]))
    ignored_body = RigidBody("ignored_body", ignored, mass=2.0)
    RigidBody("ignored_tip", PrismaticJoint("tip", ignored_body, jnp.array([1.0, 0.0, 0.0])), mass=0.5)
    system = MultiBodySystem.from_root(elevator, joints_to_ignore=[ignored])

    folded = CentroidalMomentumCalculator(system, world, include_ignored_subtree_inertia=True)
    not_folded = CentroidalMomentumCalculator(system, world, include_ignored_subtree_inertia=False)

    assert folded.get_total_mass() == pytest.approx(3.5)
    assert not_folded.get_total_mass() == pytest.approx(1.0)
    np.testing.assert_array_equal(
        folded.get_centroidal_momentum_matrix(), not_folded.get_centroidal_momentum_matrix()
    )
    # The tree inertia is left untouched
    assert elevator.inertia is None


def test_folding_ignored_subtree_below_moving_body():
    """A folded subtree moves with its parent like a locked joint."""
    world, elevator, joints = _build_arm()
    full = CentroidalMomentumCalculator(elevator, world)
    system = MultiBodySystem.from_root(elevator, joints_to_ignore=[joints["slider"]])

    folded = CentroidalMomentumCalculator(system, world, include_ignored_subtree_inertia=True)
    not_folded = CentroidalMomentumCalculator(system, world, include_ignored_subtree_inertia=False)

    # Full layout: floating 0-5, shoulder 6, slider 7, elbow 8
    locked_columns = full.get_centroidal_momentum_matrix()[:, jnp.array([0, 1, 2, 3, 4, 5, 6, 8])]
    np.testing.assert_allclose(folded.get_centroidal_momentum_matrix(), locked_columns, atol=1e-10)
    assert folded.get_total_mass() == pytest.approx(full.get_total_mass())
    assert not_folded.get_total_mass() == pytest.approx(full.get_total_mass() - 0.7)
    assert not np.allclose(not_folded.get_centroidal_momentum_matrix()[:, :6], locked_columns[:, :6])
    # Folding works on a copy: the torso keeps its own inertia
    assert joints["floating"].successor.inertia.mass == pytest.approx(5.0)


def test_system_rooted_inside_tree():
    """A system may start at any body; the root body's own inertia counts in the mass."""
    world, _, joints = _build_arm()
    torso = joints["floating"].successor

    calculator = CentroidalMomentumCalculator(MultiBodySystem.from_root(torso), world)

    assert calculator.get_centroidal_momentum_matrix().shape == (6, 3)
    assert calculator.get_total_mass() == pytest.approx(5.0 + 2.0 + 0.7 + 1.0)


# Structure errors
def test_provider_mismatch_is_rejected():
    world, elevator, joints = _build_arm()
    considered = tuple(MultiBodySystem.from_root(elevator).joints_to_consider)
    system = MultiBodySystem(
        elevator, considered, frozenset(), JointMatrixIndexProvider.from_joints(considered[:2])
    )

    with pytest.raises(MultiBodyStructureError):
        CentroidalMomentumCalculator(system, world)


def test_considered_joint_outside_subtree_is_rejected():
    world, _, joints = _build_arm()
    torso = joints["floating"].successor
    considered = tuple(joints[name] for name in ("floating", "shoulder", "slider", "elbow"))
    system = MultiBodySystem(torso, considered, frozenset(), JointMatrixIndexProvider.from_joints(considered))

    with pytest.raises(MultiBodyStructureError, match="floating"):
        CentroidalMomentumCalculator(system, world)


def test_joint_without_successor_has_zero_column():
    world, elevator, joints = _build_arm()
    torso = joints["floating"].successor
    dangling = RevoluteJoint("dangling", torso, jnp.array([1.0, 0.0, 0.0]))
    dangling.set_joint_velocity(3.0)

    calculator = CentroidalMomentumCalculator(elevator, world)
    matrix = calculator.get_centroidal_momentum_matrix()

    (column,) = calculator.system.joint_matrix_index_provider.get_joint_dof_indices(dangling)
    assert matrix.shape == (6, 10)
    np.testing.assert_array_equal(matrix[:, column], jnp.zeros(6))
    np.testing.assert_allclose(calculator.get_momentum().to_array(), _direct_momentum(elevator, world), atol=1e-9)
