"""Centroidal momentum matrix computation.

The centroidal momentum matrix ``A`` maps the joint velocities ``v`` of a
multi-body system to its momentum, ``h = A v``, all expressed in one fixed
"matrix frame". Column ``i`` of ``A`` is the momentum the system would have
if the i-th generalized velocity were 1 and all others 0: the momentum of
every body below the corresponding joint moving with that joint's
unit-twist.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

import jax
import jax.numpy as jnp

from .core import Joint, MultiBodySystem, RigidBody, extract_joint_velocities
from .exceptions import MultiBodyStructureError
from .frames import FrameVector3D, ReferenceFrame
from .spatial import Momentum, SpatialInertia, Twist
from .transforms import RigidBodyTransform

Array = jax.Array

logger = logging.getLogger(__name__)


class _CacheGraph:
    """Lazily computed values with explicit dependencies between them.

    Invalidating a value invalidates every value depending on it, so a new
    derived quantity only needs to declare what it reads.
    """

    def __init__(self):
        self._providers: Dict[str, Callable] = {}
        self._dependents: Dict[str, Set[str]] = defaultdict(set)
        self._values: Dict[str, object] = {}

    def register(self, name: str, provider: Callable, depends_on: Sequence[str] = ()):
        for dependency in depends_on:
            if dependency not in self._providers:
                raise ValueError(f"'{name}' depends on unknown value '{dependency}'")
            self._dependents[dependency].add(name)
        self._providers[name] = provider

    def get(self, name: str):
        if name not in self._values:
            self._values[name] = self._providers[name]()
        return self._values[name]

    def is_up_to_date(self, name: str) -> bool:
        return name in self._values

    def invalidate(self, name: str):
        self._values.pop(name, None)
        for dependent in self._dependents[name]:
            self.invalidate(dependent)

    def invalidate_all(self):
        self._values.clear()


class _Scratch:
    """Buffers reused by every evaluation of the matrix.

    * ``joint_unit_twist``: unit-twist of the joint whose column is being
      computed, expressed in the matrix frame. Overwritten once per column.
    * ``unit_momentum``: accumulator for that column, in the matrix frame.
      Zeroed once per column, added to by every node of the subtree.
    * ``intermediate_twist`` / ``intermediate_momentum``: the unit-twist and
      momentum of one node, overwritten at every node visited.
    """

    def __init__(self, matrix_frame: ReferenceFrame):
        self.joint_unit_twist = Twist()
        self.unit_momentum = Momentum(matrix_frame)
        self.intermediate_twist = Twist()
        self.intermediate_momentum = Momentum()


class _RecursionStep:
    """One rigid body of the system with the intermediate results attached to it."""

    def __init__(self, rigid_body: RigidBody, joint_indices: Optional[Tuple[int, ...]]):
        self.rigid_body = rigid_body
        # None for the root of the system.
        self.joint_indices = joint_indices
        # Private copy of the body inertia augmented with ignored subtrees, None until something is folded.
        self._folded_inertia: Optional[SpatialInertia] = None
        self._massless_inertia: Optional[SpatialInertia] = None
        if rigid_body.inertia is None:
            self._massless_inertia = SpatialInertia(rigid_body.body_fixed_frame, rigid_body.body_fixed_frame, 0.0)
        self.children: List["_RecursionStep"] = []
        self.matrix_frame_to_inertia_frame: Optional[RigidBodyTransform] = None

    def is_root(self) -> bool:
        return self.joint_indices is None

    @property
    def joint(self) -> Joint:
        return self.rigid_body.parent_joint

    @property
    def inertia(self) -> SpatialInertia:
        """Inertia read at every evaluation, so changes to the body show up after a reset."""
        if self._folded_inertia is not None:
            return self._folded_inertia
        if self._massless_inertia is not None:
            return self._massless_inertia
        return self.rigid_body.inertia

    def fold_inertia(self, inertia: SpatialInertia):
        """Adds ``inertia``, expressed in this body's inertia frame, to a private copy of the body inertia."""
        if self._folded_inertia is None:
            self._folded_inertia = self.inertia.copy()
        self._folded_inertia.add(inertia)

    def pass_one(self, matrix_frame: ReferenceFrame):
        """Caches the transform from the matrix frame to this body's inertia frame.

        Independent of the other steps.
        """
        if self.is_root():
            return
        self.matrix_frame_to_inertia_frame = matrix_frame.get_transform_to_desired_frame(self.inertia.reference_frame)

    def pass_two(self, matrix: Array, scratch: _Scratch) -> Array:
        """Writes the columns of this step's parent joint into ``matrix``.

        Reads the transforms of this step and its descendants, so every
        ``pass_one`` must have run before.
        """
        if self.is_root():
            return matrix

        matrix_frame = scratch.unit_momentum.reference_frame
        unit_twists = self.joint.unit_twists
        for dof_index, column in enumerate(self.joint_indices):
            scratch.unit_momentum.set_to_zero()
            scratch.joint_unit_twist.set_including_frame(unit_twists[dof_index])
            scratch.joint_unit_twist.change_frame(matrix_frame)
            self.add_to_unit_momentum_recursively(scratch.joint_unit_twist, scratch.unit_momentum, scratch)
            matrix = matrix.at[:, column].set(scratch.unit_momentum.to_array())
        return matrix

    def add_to_unit_momentum_recursively(self, ancestor_unit_twist: Twist, unit_momentum_to_add_to: Momentum, scratch: _Scratch):
        """Adds the momentum of this subtree moving with ``ancestor_unit_twist``.

        The momentum of the subtree should come from the inertia of the whole
        subtree, but summing per-body momenta is equivalent and much cheaper:

            h = (Σ I_i) T ≡ Σ (I_i T)

        The left-hand side requires changing the frame of every inertia, the
        right-hand side only the frame of the twist.

        Args:
            ancestor_unit_twist: unit-twist of the ancestor joint, in the matrix frame. Not modified.
            unit_momentum_to_add_to: momentum in the matrix frame to build up. Modified.
            scratch: ``intermediate_twist`` and ``intermediate_momentum`` are overwritten.
        """
        inertia_frame = self.inertia.reference_frame

        twist = scratch.intermediate_twist
        twist.set_including_frame(ancestor_unit_twist)
        twist.apply_transform(self.matrix_frame_to_inertia_frame)
        twist.set_reference_frame(inertia_frame)

        momentum = scratch.intermediate_momentum
        momentum.compute(self.inertia, twist)
        momentum.apply_inverse_transform(self.matrix_frame_to_inertia_frame)
        momentum.set_reference_frame(unit_momentum_to_add_to.reference_frame)

        unit_momentum_to_add_to.add(momentum)

        for child in self.children:
            child.add_to_unit_momentum_recursively(ancestor_unit_twist, unit_momentum_to_add_to, scratch)


class CentroidalMomentumCalculator:
    """Computes the centroidal momentum matrix and the quantities derived from it.

    Results are cached until :meth:`reset` is called, which must happen
    after any change of joint velocities, joint configurations (once the
    frames are updated), body inertias or of the system.

    An instance reuses internal buffers across calls and must not be queried
    from several threads at once.

    Args:
        system: The system to evaluate, or the root body of the subtree to
                evaluate with nothing ignored.
        matrix_frame: Frame in which the matrix and the momentum are expressed.
        include_ignored_subtree_inertia: Whether the inertia of the subtrees
                below ignored joints is added, once and for all, to the inertia
                of the body they hang from. The configuration of those subtrees,
                and the inertia of the bodies receiving them, must not change
                during the life of the calculator.

    Raises:
        MultiBodyStructureError: if the system is inconsistent.
    """

    def __init__(
        self,
        system: Union[MultiBodySystem, RigidBody],
        matrix_frame: ReferenceFrame,
        include_ignored_subtree_inertia: bool = True,
    ):
        if isinstance(system, RigidBody):
            system = MultiBodySystem.from_root(system)
        system.check_consistency()

        self._system = system
        self._matrix_frame = matrix_frame
        self._include_ignored_subtree_inertia = include_ignored_subtree_inertia
        self._number_of_dofs = system.joint_matrix_index_provider.number_of_degrees_of_freedom

        root_body = system.root_body
        root_step = _RecursionStep(root_body, None)
        self._steps: List[_RecursionStep] = [root_step]
        self._joints_without_successor: List[Joint] = []
        self._build_multi_body_tree(root_step)
        self._check_all_joints_reached()

        self._scratch = _Scratch(matrix_frame)

        self._cache = _CacheGraph()
        self._cache.register("joint_velocity_matrix", self._compute_joint_velocity_matrix)
        self._cache.register("centroidal_momentum_matrix", self._compute_centroidal_momentum_matrix)
        self._cache.register("total_mass", self._compute_total_mass)
        self._cache.register(
            "momentum", self._compute_momentum, depends_on=("centroidal_momentum_matrix", "joint_velocity_matrix")
        )
        self._cache.register(
            "center_of_mass_velocity", self._compute_center_of_mass_velocity, depends_on=("momentum", "total_mass")
        )

        logger.debug(
            "Centroidal momentum calculator for '%s': %d bodies, %d degrees of freedom, matrix frame '%s'",
            root_body.name, len(self._steps), self._number_of_dofs, matrix_frame.name,
        )

    def _build_multi_body_tree(self, parent: _RecursionStep):
        provider = self._system.joint_matrix_index_provider
        for child_joint in parent.rigid_body.children_joints:
            # Loop-closure constraints are enforced by the caller; their columns stay zero.
            if child_joint.is_loop_closure:
                continue
            child_body = child_joint.successor
            # Nothing moves with such a joint: its columns stay zero.
            if child_body is None:
                self._joints_without_successor.append(child_joint)
                continue
            if child_joint in self._system.joints_to_ignore:
                if self._include_ignored_subtree_inertia:
                    self._fold_subtree_inertia(parent, child_body)
                continue

            child = _RecursionStep(child_body, provider.get_joint_dof_indices(child_joint))
            parent.children.append(child)
            self._steps.append(child)
            self._build_multi_body_tree(child)

    def _fold_subtree_inertia(self, step: _RecursionStep, subtree_root: RigidBody):
        for body in subtree_root.iter_subtree():
            if body.inertia is None:
                continue
            inertia = body.inertia.copy()
            inertia.change_frame(step.inertia.reference_frame)
            # Rigidly attached as long as the joints in between stay ignored.
            inertia.set_body_frame(step.inertia.body_frame)
            step.fold_inertia(inertia)
            logger.debug("Folded inertia of '%s' (%.6g kg) into '%s'", body.name, inertia.mass, step.rigid_body.name)

    def _check_all_joints_reached(self):
        reached = {step.joint for step in self._steps[1:]}
        reached.update(self._joints_without_successor)
        for joint in self._system.joints_to_consider:
            if not joint.is_loop_closure and joint not in reached:
                raise MultiBodyStructureError(
                    f"Joint '{joint.name}' is considered but not in the subtree of '{self._system.root_body.name}'"
                )

    @property
    def system(self) -> MultiBodySystem:
        """The definition of the system this calculator evaluates."""
        return self._system

    @property
    def matrix_frame(self) -> ReferenceFrame:
        """The frame in which the centroidal momentum matrix is expressed."""
        return self._matrix_frame

    def reset(self):
        """Invalidates every cached quantity."""
        self._cache.invalidate_all()

    # Computations
    def _compute_centroidal_momentum_matrix(self) -> Array:
        for step in self._steps:
            step.pass_one(self._matrix_frame)
        matrix = jnp.zeros((6, self._number_of_dofs))
        for step in self._steps:
            matrix = step.pass_two(matrix, self._scratch)
        return matrix

    def _compute_joint_velocity_matrix(self) -> Array:
        return extract_joint_velocities(self._system.joint_matrix_index_provider)

    def _compute_total_mass(self) -> float:
        total_mass = 0.0
        for step in self._steps:
            total_mass += step.inertia.mass
        return total_mass

    def _compute_momentum(self) -> Momentum:
        return self._momentum_from_velocities(self.get_joint_velocity_matrix())

    def _compute_center_of_mass_velocity(self) -> FrameVector3D:
        return self._center_of_mass_velocity_from_momentum(self._cache.get("momentum"))

    def _momentum_from_velocities(self, joint_velocities: Array) -> Momentum:
        values = self.get_centroidal_momentum_matrix() @ joint_velocities
        return Momentum(self._matrix_frame, values[:3], values[3:])

    def _center_of_mass_velocity_from_momentum(self, momentum: Momentum) -> FrameVector3D:
        total_mass = self.get_total_mass()
        if total_mass <= 0.0:
            raise ValueError(f"System starting at '{self._system.root_body.name}' has no mass")
        return FrameVector3D(self._matrix_frame, momentum.linear_part / total_mass)

    def _check_joint_velocities(self, joint_velocities: Array) -> Array:
        joint_velocities = jnp.asarray(joint_velocities, dtype=jnp.float64)
        if joint_velocities.shape not in ((self._number_of_dofs,), (self._number_of_dofs, 1)):
            raise ValueError(
                f"Expected joint velocities of shape ({self._number_of_dofs},), got {joint_velocities.shape}"
            )
        return jnp.ravel(joint_velocities)

    # Queries
    def get_centroidal_momentum_matrix(self) -> Array:
        """The 6-by-N centroidal momentum matrix, N the number of degrees of freedom.

        Multiplied by the joint velocities laid out by the system's index
        provider, it gives the momentum expressed in :attr:`matrix_frame`.
        """
        return self._cache.get("centroidal_momentum_matrix")

    def get_joint_velocity_matrix(self) -> Array:
        """Current velocities of the considered joints, in the matrix column layout."""
        return self._cache.get("joint_velocity_matrix")

    def get_total_mass(self) -> float:
        return self._cache.get("total_mass")

    def get_momentum(self, joint_velocities: Optional[Array] = None) -> Momentum:
        """Momentum of the system, expressed in :attr:`matrix_frame`.

        Args:
            joint_velocities: Velocities to use instead of the current joint
                              state, in the layout of the system's index provider.
                              The cached momentum is left untouched.
        """
        if joint_velocities is None:
            return self._cache.get("momentum").copy()
        return self._momentum_from_velocities(self._check_joint_velocities(joint_velocities))

    def get_center_of_mass_velocity(self, joint_velocities: Optional[Array] = None) -> FrameVector3D:
        """Velocity of the system's centre of mass, expressed in :attr:`matrix_frame`."""
        if joint_velocities is None:
            return self._cache.get("center_of_mass_velocity")
        return self._center_of_mass_velocity_from_momentum(self.get_momentum(joint_velocities))
