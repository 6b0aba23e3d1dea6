import os
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


DEFAULT_OUTPUT_PATH = "./data/products.json"
DEFAULT_OUTPUT_DB = "./data/sync_runs.sqlite"
DEFAULT_USER_AGENT = "CatalogSync/1.0 (+contact: you@example.com)"

# Environment variable -> Config field
ENV_FIELDS: Dict[str, str] = {
    "SCRAPE_URL": "scrape_url",
    "OUTPUT_PATH": "output_path",
    "OUTPUT_DB": "output_db",
    "WC_STORE_URL": "wc_store_url",
    "WC_CONSUMER_KEY": "wc_consumer_key",
    "WC_CONSUMER_SECRET": "wc_consumer_secret",
    "USER_AGENT": "user_agent",
    "PROXY_URL": "proxy_url",
    "MAX_LOAD_MORE_ROUNDS": "max_load_more_rounds",
}
FIELD_ENV = {field: env for env, field in ENV_FIELDS.items()}


class ConfigError(Exception):
    """Raised when the environment does not describe a usable run."""

    def __init__(self, violations: List[str]) -> None:
        self.violations = violations
        lines = "\n".join(f"  {v}" for v in violations)
        super().__init__(f"Invalid configuration:\n{lines}")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Config(BaseModel):
    """Runtime settings, loaded once at startup and read-only afterwards."""

    model_config = ConfigDict(frozen=True)

    scrape_url: str
    output_path: str = Field(default=DEFAULT_OUTPUT_PATH, min_length=1)
    output_db: str = Field(default=DEFAULT_OUTPUT_DB, min_length=1)
    wc_store_url: str
    wc_consumer_key: str = Field(min_length=1)
    wc_consumer_secret: str = Field(min_length=1)
    user_agent: str = DEFAULT_USER_AGENT
    proxy_url: str = ""
    max_load_more_rounds: int = Field(default=200, gt=0)

    @field_validator("scrape_url", "wc_store_url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        value = value.strip()
        if not _is_http_url(value):
            raise ValueError("must be an absolute http(s) URL")
        return value

    @field_validator("wc_consumer_key", "wc_consumer_secret")
    @classmethod
    def _strip_secret(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


def format_violations(exc: ValidationError) -> List[str]:
    """Flatten pydantic errors into ``"ENV_NAME: message"`` lines."""
    violations = []
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else ""
        name = FIELD_ENV.get(field, field)
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        violations.append(f"{name}: {message}")
    return violations


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build a validated Config from the environment (after reading .env).

    Unset and blank optional variables fall back to their defaults. Every
    violation is collected before raising, so a single run reports them all.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw: Dict[str, str] = {}
    for env_name, field in ENV_FIELDS.items():
        value = environ.get(env_name)
        if value is None:
            continue
        if value.strip() == "" and field in Config.model_fields and not Config.model_fields[field].is_required():
            continue
        raw[field] = value

    try:
        return Config(**raw)
    except ValidationError as e:
        raise ConfigError(format_violations(e)) from e
