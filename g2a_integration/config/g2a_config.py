# g2a_integration/config/g2a_config.py
import os
import dataclasses
from types import MappingProxyType
from typing import Dict, Any, Optional, List, Mapping, Union
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit, urlunsplit

from g2a_integration.exceptions import ConfigurationError
from g2a_integration.utils.enhanced_logging import get_logger

logger = get_logger(__name__)


class Environment(Enum):
    """Partner environments"""
    SANDBOX = "sandbox"
    LIVE = "live"


DEFAULT_BASE_URLS = {
    Environment.SANDBOX: "https://sandboxapi.g2a.com/v1",
    Environment.LIVE: "https://api.g2a.com/integration-api/v1",
}

DEFAULT_EMAIL = "Welcome@nalytoo.com"

SANDBOX_SUFFIX = "/v1"
LIVE_SUFFIX = "/integration-api/v1"


@dataclass(frozen=True)
class RetrySettings:
    """Retry policy for transient partner failures"""
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    jitter: bool = True


@dataclass(frozen=True)
class CircuitBreakerSettings:
    """Circuit breaker tunables, applied per logical endpoint"""
    enabled: bool = True
    failure_threshold: int = 5
    failure_window_ms: int = 60000
    reset_timeout_ms: int = 30000
    half_open_success_threshold: int = 2


@dataclass(frozen=True)
class EndpointRateLimit:
    """Token bucket override for a single endpoint"""
    requests_per_second: float
    burst_size: int


def _default_per_endpoint() -> Dict[str, EndpointRateLimit]:
    return {
        "/products": EndpointRateLimit(requests_per_second=5, burst_size=10),
        "/orders": EndpointRateLimit(requests_per_second=3, burst_size=5),
        "/reservations": EndpointRateLimit(requests_per_second=2, burst_size=3),
    }


@dataclass(frozen=True)
class RateLimitSettings:
    """Global and per-endpoint token bucket configuration"""
    enabled: bool = True
    requests_per_second: float = 10
    burst_size: int = 20
    per_endpoint: Mapping[str, EndpointRateLimit] = field(default_factory=_default_per_endpoint)

    def __post_init__(self):
        object.__setattr__(self, "per_endpoint", MappingProxyType(dict(self.per_endpoint)))


@dataclass(frozen=True)
class BatchSettings:
    """Batch fan-out configuration"""
    max_batch_size: int = 100
    max_concurrent_requests: int = 3
    product_fetch_chunk_size: int = 10


@dataclass(frozen=True)
class HttpPoolSettings:
    """Connection pooling for the underlying httpx clients"""
    max_connections: int = 50
    max_keepalive_connections: int = 10
    keep_alive: bool = True
    keep_alive_ms: int = 30000


@dataclass(frozen=True)
class LoggingConfig:
    """Client logging configuration"""
    enabled: bool = True
    level: str = "info"
    mask_secrets: bool = True


@dataclass(frozen=True)
class MetricsSettings:
    """Client metrics configuration"""
    enabled: bool = True


SECTION_TYPES = {
    "retry": RetrySettings,
    "circuit_breaker": CircuitBreakerSettings,
    "rate_limiting": RateLimitSettings,
    "batch": BatchSettings,
    "http_pool": HttpPoolSettings,
    "logging": LoggingConfig,
    "metrics": MetricsSettings,
}

VALID_LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


@dataclass(frozen=True)
class G2AConfig:
    """
    Fully resolved, immutable configuration for one integration client.

    Build it with ``build_config`` (partial overrides merged over defaults) or
    ``load_config_from_env``. Reconfiguration replaces the object wholesale
    through ``with_overrides``.
    """
    api_key: str
    api_hash: str
    env: Environment = Environment.SANDBOX
    base_url: str = DEFAULT_BASE_URLS[Environment.SANDBOX]
    email: str = DEFAULT_EMAIL
    timeout_ms: int = 8000
    redis_url: Optional[str] = None

    retry: RetrySettings = field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = field(default_factory=CircuitBreakerSettings)
    rate_limiting: RateLimitSettings = field(default_factory=RateLimitSettings)
    batch: BatchSettings = field(default_factory=BatchSettings)
    http_pool: HttpPoolSettings = field(default_factory=HttpPoolSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)

    def __post_init__(self):
        self._validate_config()

    def _validate_config(self):
        errors = []

        if not isinstance(self.env, Environment):
            errors.append("Invalid environment value")
        if not self.api_key:
            errors.append("API key is required")
        if not self.api_hash:
            errors.append("API hash is required")
        if not self.base_url:
            errors.append("Base URL is required")
        if self.timeout_ms <= 0:
            errors.append("Timeout must be positive")

        if self.retry.max_retries < 0:
            errors.append("Retry max_retries must not be negative")
        if self.retry.initial_delay_ms < 0 or self.retry.max_delay_ms < 0:
            errors.append("Retry delays must not be negative")
        if self.retry.backoff_multiplier < 1:
            errors.append("Retry backoff_multiplier must be at least 1")

        if self.circuit_breaker.failure_threshold <= 0:
            errors.append("Circuit breaker failure_threshold must be positive")
        if self.circuit_breaker.half_open_success_threshold <= 0:
            errors.append("Circuit breaker half_open_success_threshold must be positive")
        if self.circuit_breaker.failure_window_ms <= 0 or self.circuit_breaker.reset_timeout_ms < 0:
            errors.append("Circuit breaker windows must be positive")

        if self.rate_limiting.requests_per_second <= 0 or self.rate_limiting.burst_size <= 0:
            errors.append("Rate limit requests_per_second and burst_size must be positive")
        for endpoint, limit in self.rate_limiting.per_endpoint.items():
            if limit.requests_per_second <= 0 or limit.burst_size <= 0:
                errors.append(f"Rate limit for {endpoint} must be positive")

        if self.batch.max_batch_size <= 0 or self.batch.max_concurrent_requests <= 0:
            errors.append("Batch sizes must be positive")
        if self.batch.product_fetch_chunk_size <= 0:
            errors.append("Batch product_fetch_chunk_size must be positive")

        if self.logging.level.lower() not in VALID_LOG_LEVELS:
            errors.append(f"Invalid log level: {self.logging.level}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                errors=errors
            )

    @property
    def is_sandbox(self) -> bool:
        return self.env == Environment.SANDBOX

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None, **kwargs) -> "G2AConfig":
        """Return a new configuration with ``overrides`` merged over this one"""
        return _merge_config(self, {**(overrides or {}), **kwargs})

    def to_dict(self) -> Dict[str, Any]:
        def convert_value(value):
            if dataclasses.is_dataclass(value):
                return {f.name: convert_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
            elif isinstance(value, Enum):
                return value.value
            elif isinstance(value, Mapping):
                return {k: convert_value(v) for k, v in value.items()}
            elif isinstance(value, (list, tuple)):
                return [convert_value(item) for item in value]
            return value

        return convert_value(self)

    def get_sensitive_config(self) -> Dict[str, Any]:
        """Get configuration with sensitive values masked"""
        config_dict = self.to_dict()
        config_dict["api_key"] = "***MASKED***"
        config_dict["api_hash"] = "***MASKED***"
        if config_dict.get("redis_url"):
            config_dict["redis_url"] = "***MASKED***"
        return config_dict


def normalize_base_url(url: str, env: Union[Environment, str] = Environment.SANDBOX) -> str:
    """
    Normalize a partner base URL for the given environment.

    Sandbox URLs end in ``/v1``; live URLs end in ``/integration-api/v1``.
    Bare hostnames, missing schemes, trailing slashes and legacy path forms
    are accepted.
    """
    env = _coerce_environment(env)
    text = (url or "").strip()
    if not text:
        return DEFAULT_BASE_URLS[env]
    if "://" not in text:
        text = f"https://{text}"

    parts = urlsplit(text)
    path = parts.path.rstrip("/")

    if env == Environment.SANDBOX:
        if not path.endswith(SANDBOX_SUFFIX):
            path = f"{path}{SANDBOX_SUFFIX}"
    else:
        if path.endswith(LIVE_SUFFIX):
            pass
        elif path.endswith("/integration-api"):
            path = f"{path}/v1"
        elif path.endswith("/v1"):
            path = f"{path[:-len('/v1')]}{LIVE_SUFFIX}"
        else:
            path = f"{path}{LIVE_SUFFIX}"

    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def _coerce_environment(env: Union[Environment, str]) -> Environment:
    if isinstance(env, Environment):
        return env
    try:
        return Environment(str(env).lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid G2A environment: {env}. Must be 'sandbox' or 'live'",
            errors=[f"Invalid environment: {env}"]
        )


def _merge_section(current: Any, override: Any, section_name: str) -> Any:
    if override is None:
        return current
    section_type = SECTION_TYPES[section_name]
    if isinstance(override, section_type):
        return override
    if not isinstance(override, Mapping):
        raise ConfigurationError(
            f"Configuration section '{section_name}' must be a mapping",
            errors=[f"Invalid section: {section_name}"]
        )

    valid_fields = {f.name for f in dataclasses.fields(section_type)}
    unknown = sorted(set(override) - valid_fields)
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in '{section_name}' configuration: {', '.join(unknown)}",
            errors=[f"Unknown key: {section_name}.{key}" for key in unknown]
        )

    changes = dict(override)
    if section_name == "rate_limiting" and "per_endpoint" in changes:
        merged = dict(current.per_endpoint)
        for endpoint, limit in changes["per_endpoint"].items():
            if isinstance(limit, EndpointRateLimit):
                merged[endpoint] = limit
            else:
                base = merged.get(endpoint)
                merged[endpoint] = EndpointRateLimit(
                    requests_per_second=limit.get(
                        "requests_per_second", base.requests_per_second if base else current.requests_per_second
                    ),
                    burst_size=limit.get("burst_size", base.burst_size if base else current.burst_size),
                )
        changes["per_endpoint"] = merged

    return dataclasses.replace(current, **changes)


def _merge_config(base: G2AConfig, overrides: Dict[str, Any]) -> G2AConfig:
    valid_fields = {f.name for f in dataclasses.fields(G2AConfig)}
    unknown = sorted(set(overrides) - valid_fields)
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(unknown)}",
            errors=[f"Unknown key: {key}" for key in unknown]
        )

    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key in SECTION_TYPES:
            changes[key] = _merge_section(getattr(base, key), value, key)
        elif key == "env":
            changes[key] = _coerce_environment(value)
        else:
            changes[key] = value

    env = changes.get("env", base.env)
    if "base_url" in changes:
        changes["base_url"] = normalize_base_url(changes["base_url"], env)
    elif env != base.env:
        changes["base_url"] = DEFAULT_BASE_URLS[env]

    return dataclasses.replace(base, **changes)


def build_config(overrides: Optional[Dict[str, Any]] = None, **kwargs) -> G2AConfig:
    """
    Build a configuration by deep-merging partial settings over the defaults.

    Nested sections are merged key by key, ``rate_limiting.per_endpoint``
    included, so callers only supply what they change.
    """
    data = {**(overrides or {}), **kwargs}
    env = _coerce_environment(data.get("env", Environment.SANDBOX))
    base_url = normalize_base_url(data.get("base_url") or DEFAULT_BASE_URLS[env], env)

    base = G2AConfig(
        api_key=data.get("api_key", ""),
        api_hash=data.get("api_hash", ""),
        env=env,
        base_url=base_url,
    )
    rest = {k: v for k, v in data.items() if k not in ("api_key", "api_hash", "env", "base_url")}
    return _merge_config(base, rest) if rest else base


def load_config_from_env(environ: Optional[Mapping[str, str]] = None,
                         overrides: Optional[Dict[str, Any]] = None) -> G2AConfig:
    """Load configuration from environment variables, accepting legacy names"""
    environ = os.environ if environ is None else environ

    api_key = environ.get("G2A_API_KEY") or environ.get("G2A_CLIENT_ID")
    if not api_key:
        raise ConfigurationError(
            "G2A_API_KEY or G2A_CLIENT_ID environment variable is required",
            errors=["Missing G2A_API_KEY"]
        )
    if not environ.get("G2A_API_KEY"):
        logger.warning("Using legacy variable name G2A_CLIENT_ID. Please migrate to G2A_API_KEY.")

    api_hash = (
        environ.get("G2A_API_HASH")
        or environ.get("G2A_API_SECRET")
        or environ.get("G2A_CLIENT_SECRET")
    )
    if not api_hash:
        raise ConfigurationError(
            "G2A_API_HASH or G2A_CLIENT_SECRET environment variable is required",
            errors=["Missing G2A_API_HASH"]
        )
    if not environ.get("G2A_API_HASH"):
        logger.warning("Using legacy variable name for API hash. Please migrate to G2A_API_HASH.")

    env = _coerce_environment(environ.get("G2A_ENV", "sandbox"))

    base_url = environ.get("G2A_API_URL") or environ.get("G2A_API_BASE")
    if not base_url:
        base_url = DEFAULT_BASE_URLS[env]
        logger.warning("G2A_API_URL is not set, using default", base_url=base_url)
    elif not environ.get("G2A_API_URL"):
        logger.warning("Using legacy variable name G2A_API_BASE. Please migrate to G2A_API_URL.")

    email = environ.get("G2A_EMAIL")
    if not email:
        logger.warning("G2A_EMAIL is not set, using default for Export API key generation")
        email = DEFAULT_EMAIL

    data: Dict[str, Any] = {
        "api_key": api_key,
        "api_hash": api_hash,
        "env": env,
        "base_url": base_url,
        "email": email,
    }

    env_mappings = {
        "G2A_TIMEOUT_MS": (None, "timeout_ms"),
        "G2A_RETRY_MAX": ("retry", "max_retries"),
        "G2A_LOG_LEVEL": ("logging", "level"),
        "REDIS_URL": (None, "redis_url"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = environ.get(env_var)
        if value is None or value == "":
            continue
        try:
            if key in ("timeout_ms", "max_retries"):
                value = int(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid environment variable {env_var}={value}: {e}",
                errors=[f"Invalid {env_var}"]
            )
        if section:
            data.setdefault(section, {})[key] = value
        else:
            data[key] = value

    for key, value in (overrides or {}).items():
        if key in SECTION_TYPES and isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value

    return build_config(data)
