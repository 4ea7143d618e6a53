"""Local read-only status API."""

from .controller import StatusController
from .server import StatusServer

__all__ = ["StatusController", "StatusServer"]
