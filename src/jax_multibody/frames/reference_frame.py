"""Reference frame tree.

Every frame but a root has a parent and a transform to that parent. The
transform to the root is cached by :meth:`ReferenceFrame.update`, which reads
the parent's cached value: a subtree of frames must be updated parent first.
"""

from __future__ import annotations

from typing import Optional

from jax_multibody.exceptions import ReferenceFrameMismatchError
from jax_multibody.transforms import RigidBodyTransform


class ReferenceFrame:
    """Node of a tree of coordinate systems.

    Frames compare by identity. A frame whose pose relative to its parent
    changes over time overrides :meth:`update_transform_to_parent`; fixed
    frames are given their transform at construction and may be moved
    explicitly with :meth:`set_transform_to_parent`.
    """

    def __init__(
        self,
        name: str,
        parent: Optional["ReferenceFrame"] = None,
        transform_to_parent: Optional[RigidBodyTransform] = None,
    ):
        if parent is None and transform_to_parent is not None:
            raise ValueError(f"Root frame '{name}' cannot have a transform to parent")
        self.name = name
        self.parent = parent
        self.root = self if parent is None else parent.root
        self._transform_to_parent = (
            RigidBodyTransform.identity() if transform_to_parent is None else transform_to_parent
        )
        self._transform_to_root = RigidBodyTransform.identity()
        self._update_transform_to_root()

    @classmethod
    def create_root(cls, name: str = "world") -> "ReferenceFrame":
        return cls(name)

    @classmethod
    def fixed_in_parent(
        cls, name: str, parent: "ReferenceFrame", transform_to_parent: Optional[RigidBodyTransform] = None
    ) -> "ReferenceFrame":
        return cls(name, parent, transform_to_parent)

    def is_root_frame(self) -> bool:
        return self.parent is None

    @property
    def transform_to_parent(self) -> RigidBodyTransform:
        return self._transform_to_parent

    @property
    def transform_to_root(self) -> RigidBodyTransform:
        return self._transform_to_root

    def set_transform_to_parent(self, transform: RigidBodyTransform):
        """Moves this frame relative to its parent and refreshes its cached pose.

        Frames below this one keep their stale cached pose until updated.
        """
        if self.parent is None:
            raise ValueError(f"Root frame '{self.name}' cannot be moved")
        self._transform_to_parent = transform
        self._update_transform_to_root()

    def update(self):
        """Recomputes the transform to the parent then the cached transform to the root."""
        if self.parent is None:
            return
        transform = self.update_transform_to_parent()
        if transform is not None:
            self._transform_to_parent = transform
        self._update_transform_to_root()

    def update_transform_to_parent(self) -> Optional[RigidBodyTransform]:
        """Hook for moving frames: returns the new transform to the parent, or None if fixed."""
        return None

    def _update_transform_to_root(self):
        if self.parent is None:
            self._transform_to_root = RigidBodyTransform.identity()
        else:
            self._transform_to_root = self.parent.transform_to_root.compose(self._transform_to_parent)

    def get_transform_to_desired_frame(self, desired_frame: "ReferenceFrame") -> RigidBodyTransform:
        """Transform mapping coordinates expressed in this frame into ``desired_frame``."""
        if desired_frame is self:
            return RigidBodyTransform.identity()
        self.check_same_tree(desired_frame)
        return desired_frame.transform_to_root.inverse().compose(self.transform_to_root)

    def check_same_tree(self, other: "ReferenceFrame"):
        if other.root is not self.root:
            raise ReferenceFrameMismatchError(self.root, other.root, what="root frame")

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"
