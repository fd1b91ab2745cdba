"""Environment variable loading and validation."""

import os
from typing import Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587
DEFAULT_SENDER_NAME = "Blood Connect System"

# Service names the Blood Connect deployment sets in EMAIL_SERVICE
WELL_KNOWN_SERVICES = {
    "gmail": ("smtp.gmail.com", 587),
    "outlook": ("smtp-mail.outlook.com", 587),
    "hotmail": ("smtp-mail.outlook.com", 587),
    "yahoo": ("smtp.mail.yahoo.com", 465),
}

_VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: str,
        smtp_user: str,
        smtp_pass: str,
        smtp_host: str = DEFAULT_SMTP_HOST,
        smtp_port: int = DEFAULT_SMTP_PORT,
        smtp_sender_name: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.database_url = database_url
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_sender_name = smtp_sender_name or DEFAULT_SENDER_NAME
        self.log_level = log_level
        self.environment = environment or "local"

    @property
    def is_postgres(self) -> bool:
        """Whether DATABASE_URL points at PostgreSQL (required for LISTEN)."""
        return self.database_url.split(":", 1)[0].split("+", 1)[0] in ("postgresql", "postgres")


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - DATABASE_URL: SQLAlchemy URL of the Blood Connect database
    - SMTP_USER: SMTP login, also used as the From address (EMAIL_USER is
      accepted when SMTP_USER is unset)
    - SMTP_PASS: SMTP password, an app password for Gmail (EMAIL_PASS is
      accepted when SMTP_PASS is unset)

    Optional environment variables:
    - SMTP_HOST: SMTP server hostname (default: smtp.gmail.com)
    - EMAIL_SERVICE: Used when SMTP_HOST is unset; a well-known service name
      (gmail, outlook, hotmail, yahoo) or an SMTP hostname
    - SMTP_PORT: SMTP server port, 1-65535 (default: 587, or the service's port)
    - SMTP_SENDER_NAME: Display name for the sender (default: Blood Connect System)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment label attached to log records (default: local)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    database_url = os.getenv("DATABASE_URL")
    smtp_user = os.getenv("SMTP_USER") or os.getenv("EMAIL_USER")
    smtp_pass = os.getenv("SMTP_PASS") or os.getenv("EMAIL_PASS")

    smtp_host, default_port = _resolve_smtp_host(
        os.getenv("SMTP_HOST"), os.getenv("EMAIL_SERVICE")
    )
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_sender_name = os.getenv("SMTP_SENDER_NAME")
    log_level = os.getenv("LOG_LEVEL")
    environment = os.getenv("ENVIRONMENT")

    if not database_url:
        errors.append("Missing required environment variable: DATABASE_URL")
    elif database_url.startswith("postgres://"):
        # Hosted providers hand out the legacy scheme, SQLAlchemy only knows postgresql
        database_url = "postgresql://" + database_url[len("postgres://"):]

    if not smtp_user:
        errors.append("Missing required environment variable: SMTP_USER (or EMAIL_USER)")

    if not smtp_pass:
        errors.append("Missing required environment variable: SMTP_PASS (or EMAIL_PASS)")

    smtp_port = default_port
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(
                    f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535."
                )
        except ValueError:
            errors.append(
                f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer."
            )

    # SMTP_USER doubles as the From address
    if smtp_user:
        try:
            smtp_user = validate_email(smtp_user, check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors.append(f"Invalid email address in SMTP_USER: '{smtp_user}' - {e}")

    if log_level:
        if log_level.upper() not in _VALID_LOG_LEVELS:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LOG_LEVELS)}"
            )
        else:
            log_level = log_level.upper()

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "For Gmail, SMTP_PASS must be an app password, not the login password",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        database_url=database_url,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_sender_name=smtp_sender_name,
        log_level=log_level,
        environment=environment,
    )


def _resolve_smtp_host(smtp_host: Optional[str], email_service: Optional[str]) -> Tuple[str, int]:
    """Pick the SMTP host and its default port.

    SMTP_HOST wins. Otherwise EMAIL_SERVICE is looked up in
    WELL_KNOWN_SERVICES, and an unknown value is taken as a hostname.
    """
    if smtp_host:
        return smtp_host, DEFAULT_SMTP_PORT

    service = (email_service or "").strip()
    if not service:
        return DEFAULT_SMTP_HOST, DEFAULT_SMTP_PORT

    return WELL_KNOWN_SERVICES.get(service.lower(), (service, DEFAULT_SMTP_PORT))
