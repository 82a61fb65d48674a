"""Flight search backend adapters."""

from benetrip.adapters.base import BaseBackend
from benetrip.adapters.travelpayouts import TravelpayoutsBackend

__all__ = ["BaseBackend", "TravelpayoutsBackend"]
