"""GEO MIST - Real-time sensor telemetry hub with live WebSocket fan-out."""

from .__version__ import __version__
from .core.config import Config
from .core.exceptions import GeoMistError

__all__ = ["__version__", "Config", "GeoMistError"]
