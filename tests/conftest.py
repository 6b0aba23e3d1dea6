"""
Pytest fixtures and fakes shared by the scraper and sync tests.
"""
import io
import json
import os
import sys

import pytest
import requests
from rich.console import Console

# Add repository root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Product  # noqa: E402


@pytest.fixture
def console():
    """Console that records output instead of printing it."""
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def make_product():
    """Factory for valid Products; override any field by keyword."""
    def _make(**overrides):
        fields = {
            "catalog_number": "7290001",
            "name": "Test Product",
            "description": "First line\nSecond line",
            "price": "₪120.00",
            "image_url": "https://www.mi-il.co.il/images/7290001.jpg",
            "product_url": "https://www.mi-il.co.il/product/7290001",
            "scraped_at": "2026-10-19T10:00:00+00:00",
        }
        fields.update(overrides)
        return Product(**fields)
    return _make


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = json.dumps(self._payload)

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._payload


class FakeWooStore:
    """
    In-memory stand-in for a requests.Session talking to the WooCommerce
    products endpoint.

    Knobs:
        reject_images: number of upcoming image-bearing submits to reject
            with an image upload error (-1 = reject all)
        fail_skus: {sku: status_code} for submits that should error
        network_error_skus: SKUs whose lookups raise ConnectionError
        lookup_payloads: {sku: body} returned as-is, with a 200, for lookups
    """

    def __init__(self):
        self.headers = {}
        self.auth = None
        self.products = {}
        self.next_id = 100
        self.calls = []
        self.reject_images = 0
        self.fail_skus = {}
        self.network_error_skus = set()
        self.lookup_status_code = 200
        self.lookup_payloads = {}

    def add(self, sku, status="publish", **fields):
        product_id = self.next_id
        self.next_id += 1
        self.products[product_id] = {"id": product_id, "sku": sku, "status": status, **fields}
        return product_id

    def methods(self):
        return [c[0] for c in self.calls]

    def count(self, method):
        return self.methods().count(method)

    def by_sku(self, sku):
        return [p for p in self.products.values() if p["sku"] == sku]

    def _id_from(self, url):
        return int(url.rstrip("/").rsplit("/", 1)[1])

    def _submit_error(self, payload):
        if payload["images"] and self.reject_images != 0:
            if self.reject_images > 0:
                self.reject_images -= 1
            return FakeResponse(400, {
                "code": "woocommerce_product_image_upload_error",
                "message": "Error getting remote image",
            })
        if payload["sku"] in self.fail_skus:
            return FakeResponse(self.fail_skus[payload["sku"]], {"code": "rest_error", "message": "boom"})
        return None

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, dict(params or {})))
        sku, status = params["sku"], params["status"]
        if sku in self.network_error_skus:
            raise requests.ConnectionError("connection refused")
        if sku in self.lookup_payloads:
            return FakeResponse(200, self.lookup_payloads[sku])
        if self.lookup_status_code != 200:
            return FakeResponse(self.lookup_status_code, {"code": "rest_error", "message": "lookup failed"})
        if status == "trash":
            found = [p for p in self.by_sku(sku) if p["status"] == "trash"]
        else:
            found = [p for p in self.by_sku(sku) if p["status"] != "trash"]
        return FakeResponse(200, [{"id": p["id"], "status": p["status"]} for p in found])

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, json))
        error = self._submit_error(json)
        if error:
            return error
        product_id = self.add(**json)
        return FakeResponse(201, self.products[product_id])

    def put(self, url, json=None, timeout=None):
        self.calls.append(("PUT", url, json))
        error = self._submit_error(json)
        if error:
            return error
        product_id = self._id_from(url)
        self.products[product_id].update(json)
        return FakeResponse(200, self.products[product_id])

    def delete(self, url, params=None, timeout=None):
        self.calls.append(("DELETE", url, dict(params or {})))
        product = self.products.pop(self._id_from(url))
        return FakeResponse(200, product)


@pytest.fixture
def store():
    return FakeWooStore()


@pytest.fixture
def client(store):
    from woocommerce import WooCommerceClient
    return WooCommerceClient("https://shop.example.com/", "ck_test", "cs_test", session=store)
