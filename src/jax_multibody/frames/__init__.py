"""Reference frames and frame-tagged geometry."""

from .frame_tuples import FramePoint3D, FrameVector3D
from .reference_frame import ReferenceFrame

__all__ = ["ReferenceFrame", "FrameVector3D", "FramePoint3D"]
