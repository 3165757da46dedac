"""Asset sync client package.

Keeps an asset/maintenance record set usable while the backend is
unreachable, and reconciles the local copy once it answers again.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
