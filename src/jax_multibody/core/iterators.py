"""Breadth-first iterators over the subtrees of a kinematic tree.

Elements are pulled from the head of a queue and their children are
appended to its tail, so siblings are exhausted before going one level
deeper. Two filters apply:

* ``filtering_type``: elements that are not instances of it are never
  queued, so the subtree hanging below them is not visited either;
* ``selection_rule``: elements for which it returns False are skipped in the
  output, but their children are still queued.

Loop-closure joints are visited but never expanded: their successor is
already reachable through its tree parent joint.
"""

from collections import deque
from collections.abc import Iterable
from typing import Callable, Optional


class _SubtreeIterator:

    def __init__(self, filtering_type: type, selection_rule: Optional[Callable], roots):
        self._filtering_type = filtering_type
        self._selection_rule = selection_rule
        self._queue = deque()
        self._next = None
        self._has_next_been_called = False

        if roots is None:
            roots = ()
        elif not isinstance(roots, Iterable):
            roots = (roots,)
        for root in roots:
            if isinstance(root, filtering_type):
                self._queue.append(root)

    def __iter__(self):
        return self

    def has_next(self) -> bool:
        """Whether another element passes the filters. Calling it repeatedly does not advance."""
        if not self._has_next_been_called:
            self._next = self._search_next_passing_rule()
            self._has_next_been_called = True
        return self._next is not None

    def __next__(self):
        if not self.has_next():
            raise StopIteration
        self._has_next_been_called = False
        element, self._next = self._next, None
        return element

    def _search_next_passing_rule(self):
        while self._queue:
            element = self._queue.popleft()
            for child in self._children_of(element):
                if isinstance(child, self._filtering_type):
                    self._queue.append(child)
            if self._selection_rule is None or self._selection_rule(element):
                return element
        return None

    def _children_of(self, element):
        raise NotImplementedError


class JointIterator(_SubtreeIterator):
    """Iterates joints, starting from one or several root joints."""

    def _children_of(self, joint):
        successor = joint.successor
        if joint.is_loop_closure or successor is None:
            return ()
        return successor.children_joints


class RigidBodyIterator(_SubtreeIterator):
    """Iterates rigid bodies, starting from one or several root bodies."""

    def _children_of(self, body):
        return [
            joint.successor
            for joint in body.children_joints
            if not joint.is_loop_closure and joint.successor is not None
        ]


class SubtreeIterable:
    """Re-iterable view: each ``iter()`` builds a fresh iterator over the same roots."""

    def __init__(self, iterator_type, filtering_type: type, selection_rule: Optional[Callable], roots):
        self._iterator_type = iterator_type
        self._filtering_type = filtering_type
        self._selection_rule = selection_rule
        self._roots = roots

    def __iter__(self):
        return self._iterator_type(self._filtering_type, self._selection_rule, self._roots)
