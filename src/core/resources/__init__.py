"""Resource governance utilities."""

from .manager import ResourceLease, ResourceLimitError, ResourceManager

__all__ = ["ResourceLease", "ResourceLimitError", "ResourceManager"]
