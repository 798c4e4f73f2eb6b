"""Registerer configuration loaded from environment variables.

Settings map onto the frozen run inputs (Credentials, RegistrationTarget,
TimingPolicy) through the accessor methods below.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

from registerer.models import Credentials, RegistrationTarget, TimingPolicy

MINERVA_URL = "https://horizon.mcgill.ca/pban1/twbkwbis.P_WWWLogin"
VSB_URL = "https://vsb.mcgill.ca/vsb/welcome.jsp"


class RegistererConfig(BaseSettings):
    """Registerer configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local use, create a .env file in the project root.
    """

    # Minerva credentials
    minerva_user: str = Field(
        default="",
        description="Minerva username (McGill email)",
    )
    minerva_pass: SecretStr = Field(
        default=SecretStr(""),
        description="Minerva password",
    )

    # Registration target
    term: str = Field(
        default="",
        validation_alias="REGISTRATION_TERM",
        description="Value of the term <option> on the Minerva 'Select Term' page",
    )
    term_label: str = Field(
        default="",
        validation_alias="REGISTRATION_TERM_LABEL",
        description="Human-readable term, only used for display",
    )
    crn: str = Field(
        default="",
        description="CRN of the course section to register for",
    )

    # Service URLs
    minerva_url: str = Field(default=MINERVA_URL, description="Minerva login URL")
    vsb_url: str = Field(default=VSB_URL, description="Visual Schedule Builder URL")

    # Paths
    artifact_dir: str = Field(
        default="data/artifacts",
        description="Directory for page captures and log.json (cleared on start)",
    )

    # Timing
    navigation_timeout_ms: int = Field(
        default=3000,
        gt=0,
        description="Bounded wait for located elements and the login redirect",
    )
    load_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Bounded wait for full page loads, reloads and post-submit navigations",
    )
    seconds_between_attempts: float = Field(
        default=30,
        ge=0,
        description="Pause between registration attempts; keep above the rate-limit window",
    )
    minutes_between_errors: float = Field(
        default=2,
        ge=0,
        description="Pause after a handled error or a lost connection",
    )
    seconds_between_checks: float = Field(
        default=30,
        ge=0,
        description="Pause between seat availability checks",
    )
    errors_tolerated: int = Field(
        default=100,
        ge=0,
        description="Unclassified errors tolerated before giving up",
    )
    max_attempts_per_login: int | None = Field(
        default=None,
        ge=1,
        description="Rejected attempts per login before the window counts as exhausted",
    )

    # Browser
    headless: bool = Field(default=True, description="Run Chromium headless")
    submit_probe_count: int = Field(
        default=100,
        gt=0,
        description="Number of candidate submit-button positions probed on the add/drop form",
    )
    probe_host: str = Field(
        default="google.com",
        description="Host resolved to decide whether the network is reachable",
    )

    # Notifications
    sendgrid_enabled: bool = Field(default=False, description="Send emails via SendGrid")
    sendgrid_api_key: SecretStr = Field(default=SecretStr(""), description="SendGrid API key")
    notify_to_email: str = Field(default="", description="Recipient of notifications")
    notify_from_email: str = Field(
        default="registerer@minerva.com",
        description="Sender address of notifications",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def missing_fields(self) -> list[str]:
        """Names of required settings that are still empty."""
        missing = []
        if not self.minerva_user:
            missing.append("MINERVA_USER")
        if not self.minerva_pass.get_secret_value():
            missing.append("MINERVA_PASS")
        if not self.term:
            missing.append("REGISTRATION_TERM")
        if not self.crn:
            missing.append("CRN")
        if self.sendgrid_enabled and not self.sendgrid_api_key.get_secret_value():
            missing.append("SENDGRID_API_KEY")
        if self.sendgrid_enabled and not self.notify_to_email:
            missing.append("NOTIFY_TO_EMAIL")
        return missing

    def credentials(self) -> Credentials:
        return Credentials(username=self.minerva_user, password=self.minerva_pass)

    def target(self) -> RegistrationTarget:
        return RegistrationTarget(term=self.term, term_label=self.term_label, crn=self.crn)

    def timing(self) -> TimingPolicy:
        return TimingPolicy(
            navigation_timeout_ms=self.navigation_timeout_ms,
            load_timeout_ms=self.load_timeout_ms,
            seconds_between_attempts=self.seconds_between_attempts,
            minutes_between_errors=self.minutes_between_errors,
            seconds_between_checks=self.seconds_between_checks,
            errors_tolerated=self.errors_tolerated,
            max_attempts_per_login=self.max_attempts_per_login,
        )


# Singleton pattern
_config: RegistererConfig | None = None


def get_config() -> RegistererConfig:
    """Get the registerer configuration singleton.

    Returns:
        RegistererConfig: Registerer configuration instance
    """
    global _config
    if _config is None:
        _config = RegistererConfig()
    return _config
