"""Minerva course registerer.

Polls Visual Schedule Builder for an open seat and registers through Minerva,
retrying through logouts, timeouts and network loss.
"""

from registerer.errors import ClassifiedError, ErrorCategory, ErrorKind, classify_error
from registerer.models import AttemptCounters, Credentials, RegistrationTarget, TimingPolicy
from registerer.orchestrator import RegistrationOrchestrator, State

__all__ = [
    "RegistrationOrchestrator",
    "State",
    "ClassifiedError",
    "ErrorCategory",
    "ErrorKind",
    "classify_error",
    "AttemptCounters",
    "Credentials",
    "RegistrationTarget",
    "TimingPolicy",
]
