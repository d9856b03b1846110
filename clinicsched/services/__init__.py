"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling import AppointmentRepository, EventPublisher, PatientDirectory, SchedulingService

__all__ = ["AppointmentRepository", "EventPublisher", "PatientDirectory", "SchedulingService"]
