"""I/O utilities for loading kinematic trees from robot description files."""

from .urdf_parser import load_urdf

__all__ = ["load_urdf"]
