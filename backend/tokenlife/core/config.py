"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

REFRESH_BACKENDS: Final[frozenset[str]] = frozenset({"sql", "redis", "memory"})

TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "y", "on"})

# HS256 keys shorter than the digest size are rejected by PyJWT >= 2.10.
MIN_SIGNING_KEY_BYTES: Final[int] = 32


# Load .env in development (no-op when the file is missing)
load_dotenv()


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret ``value`` as a boolean flag.

    Strings count as ``True`` only when they resemble
    ``{"1", "true", "yes", "y", "on"}`` ignoring case, so ``"false"`` from an
    instance config file stays ``False``.
    """
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return bool(value)


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        See :func:`parse_bool`.
    """
    return parse_bool(os.getenv(name), default)


def env_int(name: str) -> int | str | None:
    """Return an integer environment variable or ``None`` when unset/blank.

    Malformed values are returned as the raw string so the token settings
    validator reports "must be an integer" rather than "is required".
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return raw.strip()


class ConfigurationError(RuntimeError):
    """Raised when mandatory settings are missing or out of range.

    The application factory lets this propagate: a process with a broken
    token configuration must not serve traffic.

    :param problems: One human-readable message per invalid setting.
    :type problems: list[str]
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("Invalid token configuration: " + "; ".join(self.problems))


@dataclass(frozen=True, slots=True)
class JwtSettings:
    """
    Access-token signing settings.

    :param secret_key: Symmetric HS256 signing key.
    :param issuer: ``iss`` claim written and required on verification.
    :param audience: ``aud`` claim written and required on verification.
    :param expiry_minutes: Access-token lifetime.
    :param algorithm: JWS algorithm; only HS256 is issued.
    """

    secret_key: str
    issuer: str
    audience: str
    expiry_minutes: int
    algorithm: str = "HS256"

    @property
    def access_expires(self) -> timedelta:
        return timedelta(minutes=self.expiry_minutes)


@dataclass(frozen=True, slots=True)
class RefreshTokenSettings:
    """
    Refresh-token lifecycle settings.

    :param expiry_days: Refresh-token lifetime (1-365 days).
    :param token_size_bytes: Random bytes drawn per secret (32-128).
    :param max_active_tokens_per_user: FIFO bound per principal (1-10).
    :param revoke_on_rotate: Revoke the presented token after a refresh.
    :param enforce_ip_binding: Reject refresh/logout from a different IP.
    """

    expiry_days: int
    token_size_bytes: int
    max_active_tokens_per_user: int
    revoke_on_rotate: bool = False
    enforce_ip_binding: bool = False

    @property
    def refresh_expires(self) -> timedelta:
        return timedelta(days=self.expiry_days)


@dataclass(frozen=True, slots=True)
class TokenSettings:
    """Validated bundle of every token-related setting."""

    jwt: JwtSettings
    refresh: RefreshTokenSettings
    backend: str = "sql"


def _check_range(
    problems: list[str], cfg: Mapping[str, Any], key: str, low: int, high: int | None
) -> int:
    value = cfg.get(key)
    if value is None or isinstance(value, bool):
        problems.append(f"{key} is required")
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError):
        problems.append(f"{key} must be an integer, got {value!r}")
        return 0
    if number < low or (high is not None and number > high):
        bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
        problems.append(f"{key} must be in {bounds}, got {number}")
    return number


def load_token_settings(cfg: Mapping[str, Any]) -> TokenSettings:
    """Validate token settings from a Flask-style config mapping.

    Every problem is collected before raising so operators can fix the
    environment in one pass.

    :param cfg: Mapping such as ``app.config``.
    :returns: Immutable, validated settings.
    :raises ConfigurationError: When anything is missing or out of range.
    """
    problems: list[str] = []

    secret = cfg.get("JWT_SECRET_KEY")
    if not isinstance(secret, str) or not secret.strip():
        problems.append("JWT_SECRET_KEY is required")
        secret = ""
    elif len(secret.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
        problems.append(f"JWT_SECRET_KEY must be at least {MIN_SIGNING_KEY_BYTES} bytes")

    issuer = cfg.get("JWT_ISSUER")
    if not isinstance(issuer, str) or not issuer.strip():
        problems.append("JWT_ISSUER is required")
        issuer = ""
    audience = cfg.get("JWT_AUDIENCE")
    if not isinstance(audience, str) or not audience.strip():
        problems.append("JWT_AUDIENCE is required")
        audience = ""

    expiry_minutes = _check_range(problems, cfg, "JWT_EXPIRY_MINUTES", 1, None)
    expiry_days = _check_range(problems, cfg, "REFRESH_TOKEN_EXPIRY_DAYS", 1, 365)
    size_bytes = _check_range(problems, cfg, "REFRESH_TOKEN_SIZE_BYTES", 32, 128)
    max_active = _check_range(problems, cfg, "MAX_ACTIVE_TOKENS_PER_USER", 1, 10)

    backend = str(cfg.get("REFRESH_TOKEN_BACKEND") or "sql").strip().lower()
    if backend not in REFRESH_BACKENDS:
        problems.append(
            f"REFRESH_TOKEN_BACKEND must be one of {sorted(REFRESH_BACKENDS)}, got {backend!r}"
        )
    if backend == "redis" and not cfg.get("REDIS_URL"):
        problems.append("REDIS_URL is required when REFRESH_TOKEN_BACKEND is 'redis'")

    # Process-local locks (and SQLite, which ignores FOR UPDATE) only bound
    # tokens within a single worker process.
    workers = cfg.get("WORKER_PROCESSES")
    if workers is not None:
        workers = _check_range(problems, cfg, "WORKER_PROCESSES", 1, None)
        database_uri = str(cfg.get("SQLALCHEMY_DATABASE_URI") or "")
        if workers > 1 and backend == "memory":
            problems.append(
                "REFRESH_TOKEN_BACKEND 'memory' keeps tokens per process; "
                "run a single worker (GUNICORN_WORKERS=1)"
            )
        elif workers > 1 and backend == "sql" and database_uri.startswith("sqlite"):
            problems.append(
                "SQLite cannot serialise refresh token writes across worker processes; "
                "use PostgreSQL or a single worker (GUNICORN_WORKERS=1)"
            )

    if problems:
        raise ConfigurationError(problems)

    return TokenSettings(
        jwt=JwtSettings(
            secret_key=secret,
            issuer=issuer.strip(),
            audience=audience.strip(),
            expiry_minutes=expiry_minutes,
        ),
        refresh=RefreshTokenSettings(
            expiry_days=expiry_days,
            token_size_bytes=size_bytes,
            max_active_tokens_per_user=max_active,
            revoke_on_rotate=parse_bool(cfg.get("REVOKE_ON_ROTATE"), False),
            enforce_ip_binding=parse_bool(cfg.get("ENFORCE_IP_BINDING"), False),
        ),
        backend=backend,
    )


def jwt_extended_config(settings: JwtSettings) -> dict[str, Any]:
    """Derive the Flask-JWT-Extended decode options from validated settings.

    Route guards then accept exactly the tokens :class:`TokenMinter` issues.
    """
    return {
        "JWT_SECRET_KEY": settings.secret_key,
        "JWT_ALGORITHM": settings.algorithm,
        "JWT_DECODE_ALGORITHMS": [settings.algorithm],
        "JWT_ENCODE_ISSUER": settings.issuer,
        "JWT_DECODE_ISSUER": settings.issuer,
        "JWT_ENCODE_AUDIENCE": settings.audience,
        "JWT_DECODE_AUDIENCE": settings.audience,
        "JWT_DECODE_LEEWAY": 0,
        "JWT_ACCESS_TOKEN_EXPIRES": settings.access_expires,
        "JWT_TOKEN_LOCATION": ["headers"],
    }


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    JWT_SECRET_KEY: str | None
        HS256 signing key for access tokens. Required; there is no default.
    JWT_ISSUER / JWT_AUDIENCE: str | None
        Registered claims written into and required from every access token.
    JWT_EXPIRY_MINUTES: int | None
        Access-token lifetime. Required; no default is silently assumed.
    REFRESH_TOKEN_EXPIRY_DAYS / REFRESH_TOKEN_SIZE_BYTES /
    MAX_ACTIVE_TOKENS_PER_USER: int | None
        Refresh-token lifecycle bounds, validated at startup.
    REFRESH_TOKEN_BACKEND: str
        ``"sql"`` (default), ``"redis"`` or ``"memory"``.
    REVOKE_ON_ROTATE: bool
        Revoke the presented refresh token on successful refresh.
    ENFORCE_IP_BINDING: bool
        Reject refresh/logout when the caller IP differs from the issuing IP.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    WORKER_PROCESSES: int
        gunicorn worker count. More than one requires the redis backend or
        the sql backend on PostgreSQL.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # Access tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ISSUER = os.getenv("JWT_ISSUER")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE")
    JWT_EXPIRY_MINUTES = env_int("JWT_EXPIRY_MINUTES")

    # Refresh tokens
    REFRESH_TOKEN_EXPIRY_DAYS = env_int("REFRESH_TOKEN_EXPIRY_DAYS")
    REFRESH_TOKEN_SIZE_BYTES = env_int("REFRESH_TOKEN_SIZE_BYTES")
    MAX_ACTIVE_TOKENS_PER_USER = env_int("MAX_ACTIVE_TOKENS_PER_USER")
    REFRESH_TOKEN_BACKEND = os.getenv("REFRESH_TOKEN_BACKEND", "sql")
    REVOKE_ON_ROTATE = env_bool("REVOKE_ON_ROTATE", False)
    ENFORCE_IP_BINDING = env_bool("ENFORCE_IP_BINDING", False)
    REDIS_URL = os.getenv("REDIS_URL")

    # gunicorn worker processes sharing this configuration
    WORKER_PROCESSES = env_int("GUNICORN_WORKERS") or 1

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Ships fixed token settings so the suite does not depend on the shell.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    PROPAGATE_EXCEPTIONS = True

    JWT_SECRET_KEY = "testing-signing-key-0123456789abcdef0123456789"
    JWT_ISSUER = "tokenlife-tests"
    JWT_AUDIENCE = "tokenlife-clients"
    JWT_EXPIRY_MINUTES = 15
    REFRESH_TOKEN_EXPIRY_DAYS = 7
    REFRESH_TOKEN_SIZE_BYTES = 64
    MAX_ACTIVE_TOKENS_PER_USER = 5
    REFRESH_TOKEN_BACKEND = "sql"
    REDIS_URL = None
    WORKER_PROCESSES = 1
    USE_PROXYFIX = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
