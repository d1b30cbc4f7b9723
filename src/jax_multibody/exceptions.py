"""Errors raised by jax_multibody.

Running out of elements while iterating a subtree is not an error: the
iterators raise the built-in ``StopIteration``.
"""


class ReferenceFrameMismatchError(RuntimeError):
    """Two frame-tagged quantities were combined while their frames differ."""

    def __init__(self, expected, actual, what: str = "reference frame"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} mismatch: expected {_frame_name(expected)}, got {_frame_name(actual)}")


class MultiBodyStructureError(ValueError):
    """The kinematic tree or the system definition built on it is inconsistent."""


def _frame_name(frame) -> str:
    return "None" if frame is None else getattr(frame, "name", repr(frame))
