"""
Tests for listing pagination and link discovery.
A FakeListingPage stands in for a Playwright page.
"""
import asyncio

import pytest
from playwright.async_api import TimeoutError as PWTimeoutError

from link_collector import collect_product_links, dedupe_links


LISTING_URL = "https://www.mi-il.co.il/category/toys"


class FakeLoadMore:
    def __init__(self, page):
        self.page = page

    async def is_visible(self):
        return self.page.button_visible()

    async def click(self):
        self.page.clicks += 1
        if self.page.loaded < len(self.page.chunks):
            self.page.loaded += 1


class FakeListingPage:
    """
    Listing that reveals one more chunk of hrefs per "load more" click.

    stuck=True keeps the button visible after the last chunk, so the next
    click produces nothing new.
    """

    def __init__(self, chunks, stuck=False):
        self.chunks = chunks
        self.loaded = 1
        self.stuck = stuck
        self.clicks = 0
        self.idle_waits = 0

    def hrefs(self):
        return [h for chunk in self.chunks[:self.loaded] for h in chunk]

    def button_visible(self):
        return self.stuck or self.loaded < len(self.chunks)

    async def goto(self, url, wait_until=None, timeout=None):
        self.url = url

    async def wait_for_selector(self, selector, timeout=None):
        if not self.hrefs():
            raise PWTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def locator(self, selector):
        return FakeLoadMore(self)

    async def eval_on_selector_all(self, selector, script):
        if "map" in script:
            return list(self.hrefs())
        return len(self.hrefs())

    async def wait_for_function(self, script, arg=None, timeout=None):
        if len(self.hrefs()) > arg[1]:
            return True
        raise PWTimeoutError(f"Timeout {timeout}ms exceeded")

    async def wait_for_load_state(self, state, timeout=None):
        self.idle_waits += 1


def product(n):
    return f"https://www.mi-il.co.il/product/{n}"


def collect(page, console, **kwargs):
    return asyncio.run(collect_product_links(page, LISTING_URL, console, **kwargs))


class TestCollectProductLinks:

    def test_no_load_more_returns_first_page(self, console):
        page = FakeListingPage([[product(1), product(2), product(3)]])

        links = collect(page, console)

        assert links == [product(1), product(2), product(3)]
        assert page.clicks == 0

    def test_clicks_until_button_disappears(self, console):
        page = FakeListingPage([
            [product(1), product(2)],
            [product(3), product(4)],
            [product(5)],
        ])

        links = collect(page, console)

        assert links == [product(n) for n in range(1, 6)]
        assert page.clicks == 2
        assert page.idle_waits == 2

    def test_duplicates_removed_in_first_seen_order(self, console):
        page = FakeListingPage([
            [product(1), product(2), product(1)],
            [product(3), product(2), product(4)],
        ])

        links = collect(page, console)

        assert links == [product(1), product(2), product(3), product(4)]
        assert len(links) == len(set(page.hrefs()))

    def test_stuck_button_stops_after_one_failed_wait(self, console):
        page = FakeListingPage([[product(1)], [product(2)]], stuck=True)

        links = collect(page, console)

        assert links == [product(1), product(2)]
        assert page.clicks == 2
        assert "No new products after click" in console.file.getvalue()

    def test_round_cap(self, console):
        page = FakeListingPage([[product(n)] for n in range(10)])

        links = collect(page, console, max_rounds=3)

        assert page.clicks == 3
        assert links == [product(n) for n in range(4)]

    def test_listing_without_products_raises(self, console):
        page = FakeListingPage([[]])

        with pytest.raises(PWTimeoutError):
            collect(page, console)


class TestDedupeLinks:

    def test_relative_links_resolved(self):
        links = dedupe_links(["/product/1", "https://www.mi-il.co.il/product/1", None, ""], LISTING_URL)

        assert links == ["https://www.mi-il.co.il/product/1"]

    def test_exact_string_key(self):
        links = dedupe_links([product(1), product(1) + "?color=red"], LISTING_URL)

        assert len(links) == 2
