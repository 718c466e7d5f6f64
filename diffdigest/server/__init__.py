"""HTTP server for Diff Digest.

Requires the 'server' optional dependency group.
"""

from diffdigest.server.app import create_app

__all__ = ["create_app"]
