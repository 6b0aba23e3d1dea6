from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel


#
# Data model
# - Product: a validated product page, immutable once built
# - ScrapeResult: the JSON artifact written after scraping
# - RemoteMatch: what a SKU lookup against the store found
# - SyncOutcome / SyncTally: per-product result and its aggregate


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Product(BaseModel):
    """A product page that passed validation.

    - `catalog_number` doubles as the remote SKU
    - `price` is the raw display string ("₪120.00"); sanitizing happens at sync time
    - `image_url` is either empty or absolute
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    catalog_number: str
    name: str
    description: str
    price: str
    image_url: str
    product_url: str
    scraped_at: str

    @field_validator("catalog_number", "name", "price")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("image_url")
    @classmethod
    def _empty_or_absolute(cls, value: str) -> str:
        if value and not _is_absolute_url(value):
            raise ValueError("must be empty or an absolute http(s) URL")
        return value

    @field_validator("product_url")
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not _is_absolute_url(value):
            raise ValueError("must be an absolute http(s) URL")
        return value

    @field_validator("scraped_at")
    @classmethod
    def _iso_timestamp(cls, value: str) -> str:
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError("must be an ISO-8601 timestamp") from None
        return value


class ScrapeResult(BaseModel):
    """Canonical JSON artifact for a scrape run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    scraped_at: str
    total_found: int
    total_scraped: int
    products: List[Product]


@dataclass(frozen=True)
class ProductValidation:
    product: Optional[Product]
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.product is not None


def validate_product(candidate: Dict[str, Any]) -> ProductValidation:
    """Validate a raw candidate dict (snake_case keys) as a whole.

    Returns a ProductValidation holding either the Product or a list of
    ``"field: message"`` violations; expected failures never raise.
    """
    try:
        return ProductValidation(product=Product.model_validate(candidate))
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"])
            message = err["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append(f"{loc}: {message}")
        return ProductValidation(product=None, errors=errors)


class RemoteStatus(str, Enum):
    NOT_FOUND = "not_found"
    ACTIVE = "active"
    TRASHED = "trashed"


@dataclass(frozen=True)
class RemoteMatch:
    status: RemoteStatus
    product_id: Optional[int] = None


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    action: SyncAction
    sku: str
    message: str = ""


@dataclass
class SyncTally:
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.failed

    def record(self, outcome: SyncOutcome) -> None:
        if outcome.action is SyncAction.CREATED:
            self.created += 1
        elif outcome.action is SyncAction.UPDATED:
            self.updated += 1
        elif outcome.action is SyncAction.FAILED:
            self.failed += 1
            self.errors.append((outcome.sku, outcome.message))
        else:
            raise ValueError(f"unknown sync action: {outcome.action!r}")

    def merge(self, other: "SyncTally") -> None:
        self.created += other.created
        self.updated += other.updated
        self.failed += other.failed
        self.errors.extend(other.errors)
