"""
WooCommerce catalog sync.

Reconciles scraped products against a store's REST v3 product catalog,
keyed by SKU (the product's catalog number):

- not on the store       -> create
- active on the store    -> update in place
- only in the trash      -> force-delete the trashed entry, then create

Updating a trashed product does not reliably bring it back to "publish",
so trashed entries are always replaced.

Products are synced one at a time in fixed-size batches; a failure is
recorded against its SKU and the run moves on.
"""

import re
from typing import Any, Dict, List, Optional, Sequence, TypeVar

import requests
from rich.console import Console

from models import Product, RemoteMatch, RemoteStatus, SyncAction, SyncOutcome, SyncTally


WC_API_PATH = "/wp-json/wc/v3/products"
WC_BATCH_SIZE = 10
REQUEST_TIMEOUT = 30
MAX_IMAGE_RETRIES = 1
PLACEHOLDER_STOCK_QUANTITY = 10
IMAGE_ERROR_MARKER = "image_upload_error"

T = TypeVar("T")


class SyncError(Exception):
    """A non-success response from the store."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:300]}")

    @property
    def is_image_error(self) -> bool:
        return IMAGE_ERROR_MARKER in self.body


def parse_price(price: str) -> str:
    """Keep only digits and decimal points: "₪1,234.50" -> "1234.50"."""
    return re.sub(r"[^\d.]", "", price)


def to_wc_product(product: Product) -> Dict[str, Any]:
    return {
        "name": product.name,
        "type": "simple",
        "status": "publish",
        "regular_price": parse_price(product.price),
        "sku": product.catalog_number,
        "description": product.description,
        "manage_stock": True,
        "stock_quantity": PLACEHOLDER_STOCK_QUANTITY,
        "images": [{"src": product.image_url}] if product.image_url else [],
    }


class WooCommerceClient:
    """
    Thin client for the WooCommerce products endpoint.

    Every request carries HTTP Basic auth built from the consumer key and
    secret. Non-2xx responses raise SyncError; network errors surface as
    requests.RequestException.
    """

    def __init__(self, store_url: str, consumer_key: str, consumer_secret: str, session: Optional[requests.Session] = None):
        self.api_url = store_url.rstrip("/") + WC_API_PATH
        self.session = session or requests.Session()
        self.session.auth = (consumer_key, consumer_secret)
        self.session.headers.update({"Accept": "application/json"})

    def _check(self, response: requests.Response) -> requests.Response:
        if not response.ok:
            raise SyncError(response.status_code, response.text)
        return response

    def find_by_sku(self, sku: str, status: str) -> List[Dict[str, Any]]:
        response = self.session.get(
            self.api_url,
            params={"sku": sku, "status": status},
            timeout=REQUEST_TIMEOUT,
        )
        return self._check(response).json()

    def locate(self, sku: str, console: Optional[Console] = None) -> RemoteMatch:
        """Look the SKU up among live products first, then in the trash.

        SKUs are expected to be unique on the store; if several entries
        match, the first one returned is used.
        """
        for status, found in (("any", RemoteStatus.ACTIVE), ("trash", RemoteStatus.TRASHED)):
            entries = self.find_by_sku(sku, status)
            if not entries:
                continue
            if len(entries) > 1 and console is not None:
                ids = [e.get("id") for e in entries]
                console.log(f"SKU {sku} matches {len(entries)} {status} products {ids}, using the first")
            return RemoteMatch(status=found, product_id=int(entries[0]["id"]))
        return RemoteMatch(status=RemoteStatus.NOT_FOUND)

    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(self.api_url, json=payload, timeout=REQUEST_TIMEOUT)
        return self._check(response).json()

    def update(self, product_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.put(f"{self.api_url}/{product_id}", json=payload, timeout=REQUEST_TIMEOUT)
        return self._check(response).json()

    def force_delete(self, product_id: int) -> None:
        response = self.session.delete(
            f"{self.api_url}/{product_id}",
            params={"force": "true"},
            timeout=REQUEST_TIMEOUT,
        )
        self._check(response)


def submit(client: WooCommerceClient, payload: Dict[str, Any], product_id: Optional[int], console: Console) -> None:
    """Create (product_id None) or update the product; on an image upload
    error, resend once without images before giving up."""
    retries_left = MAX_IMAGE_RETRIES
    body = payload
    while True:
        try:
            if product_id is None:
                client.create(body)
            else:
                client.update(product_id, body)
            return
        except SyncError as e:
            if not (e.is_image_error and body["images"] and retries_left > 0):
                raise
            retries_left -= 1
            console.log(f"Image upload failed for SKU {payload['sku']}, retrying without images")
            body = {**body, "images": []}


def upsert_product(client: WooCommerceClient, payload: Dict[str, Any], console: Console) -> SyncOutcome:
    sku = payload["sku"]
    try:
        match = client.locate(sku, console)

        if match.status is RemoteStatus.ACTIVE:
            target_id = match.product_id
            action = SyncAction.UPDATED
        elif match.status is RemoteStatus.TRASHED:
            console.log(f"SKU {sku} is in the trash as #{match.product_id}, deleting it permanently")
            client.force_delete(match.product_id)
            target_id = None
            action = SyncAction.CREATED
        elif match.status is RemoteStatus.NOT_FOUND:
            target_id = None
            action = SyncAction.CREATED
        else:
            raise ValueError(f"unknown remote status: {match.status!r}")

        submit(client, payload, target_id, console)
    except SyncError as e:
        console.log(f"WooCommerce API error for SKU {sku}: {e}")
        return SyncOutcome(SyncAction.FAILED, sku, str(e))
    except requests.RequestException as e:
        console.log(f"Failed to sync SKU {sku}: {e}")
        return SyncOutcome(SyncAction.FAILED, sku, str(e))
    except Exception as e:
        console.log(f"Unexpected error syncing SKU {sku}: {e!r}")
        return SyncOutcome(SyncAction.FAILED, sku, repr(e))

    console.log(f"Product {action.value} in WooCommerce: {sku} ({payload['name']})")
    return SyncOutcome(action, sku)


def sync_products(products: Sequence[Product], client: WooCommerceClient, console: Console) -> SyncTally:
    """Sync one batch, strictly in order."""
    tally = SyncTally()
    for product in products:
        tally.record(upsert_product(client, to_wc_product(product), console))
    return tally


def split_into_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


def sync_all_in_batches(
    products: Sequence[Product],
    client: WooCommerceClient,
    console: Console,
    batch_size: int = WC_BATCH_SIZE,
) -> SyncTally:
    batches = split_into_batches(products, batch_size)
    console.log(f"Starting WooCommerce sync: {len(products)} products in {len(batches)} batches of {batch_size}")

    total = SyncTally()
    for number, batch in enumerate(batches, start=1):
        console.log(f"Syncing batch {number}/{len(batches)} ({len(batch)} products)")
        result = sync_products(batch, client, console)
        total.merge(result)
        console.log(
            f"Batch {number} synced: created={result.created} updated={result.updated} failed={result.failed} "
            f"(so far created={total.created} updated={total.updated} failed={total.failed})"
        )

    console.log(f"WooCommerce sync complete: created={total.created} updated={total.updated} failed={total.failed}")
    return total
