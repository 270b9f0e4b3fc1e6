"""Decode NatNet motion-capture streams and publish rigid-body poses, odometry and transforms."""

__version__ = "0.1.0"

__all__ = ["__version__"]