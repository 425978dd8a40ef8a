"""File generators for container and VM root filesystems, and Windows media helpers."""

__version__ = "0.1.0"