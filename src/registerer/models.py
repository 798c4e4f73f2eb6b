"""Pydantic models for registration inputs, counters and the artifact log.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Inputs (credentials, target, timing) are frozen for the whole run.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr

ArtifactKind = Literal["success", "error"]


class Credentials(BaseModel):
    """Minerva username/password pair. The password never appears in repr or logs."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr


class RegistrationTarget(BaseModel):
    """Course to register for."""

    model_config = ConfigDict(frozen=True)

    term: str  # <option> value of the term select, e.g. "202409"
    term_label: str = ""  # display only, e.g. "Fall 2024"
    crn: str  # course reference number


class TimingPolicy(BaseModel):
    """Waits used by the orchestrator and the page adapters.

    seconds_between_attempts should exceed the portal's rate-limit window.
    """

    model_config = ConfigDict(frozen=True)

    navigation_timeout_ms: int = Field(default=3000, gt=0)
    load_timeout_ms: int = Field(default=30000, gt=0)
    seconds_between_attempts: float = Field(default=30, ge=0)
    minutes_between_errors: float = Field(default=2, ge=0)
    seconds_between_checks: float = Field(default=30, ge=0)
    errors_tolerated: int = Field(default=100, ge=0)
    max_attempts_per_login: int | None = Field(default=None, ge=1)


class AttemptCounters(BaseModel):
    """Process-lifetime tallies, only ever incremented by the orchestrator."""

    checks: int = 0
    logins: int = 0
    attempts: int = 0
    errors: int = 0
    successes: int = 0


class ErrorRecord(BaseModel):
    filename: str
    timestamp: str
    stack: str
    htmlfile: str | None = None


class RegistrationRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    timestamp: str
    course_id: str = Field(alias="courseId")


class ArtifactLog(BaseModel):
    """Contents of log.json in the artifact directory. Append-only."""

    errors: list[ErrorRecord] = Field(default_factory=list)
    registrations: list[RegistrationRecord] = Field(default_factory=list)
