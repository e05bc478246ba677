"""camfetch orchestration services."""

from camfetch.services.admission import AdmissionController
from camfetch.services.connection import ConnectionManager, DeviceSession, backoff_delay
from camfetch.services.ledger import Ledger

__all__ = [
    "AdmissionController",
    "ConnectionManager",
    "DeviceSession",
    "Ledger",
    "backoff_delay",
]
