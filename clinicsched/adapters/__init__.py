"""
Adapters for storage and event delivery.
"""

from .event_publisher import LoggingEventPublisher
from .memory import InMemoryAppointmentRepository, InMemoryEventPublisher, InMemoryPatientDirectory

__all__ = [
    "LoggingEventPublisher",
    "InMemoryAppointmentRepository",
    "InMemoryEventPublisher",
    "InMemoryPatientDirectory",
]
