from typing import List
from urllib.parse import urljoin

from playwright.async_api import Error as PWError, Page, TimeoutError as PWTimeoutError
from rich.console import Console


CATEGORY_SELECTORS = {
    "product_link": "a.product.tpurl",
    "load_more_button": 'button:has-text("טעינת מוצרים נוספים")',
}

LISTING_TIMEOUT_MS = 45_000
SELECTOR_TIMEOUT_MS = 15_000
LOAD_MORE_TIMEOUT_MS = 10_000

_COUNT_GREW_JS = "([sel, prev]) => document.querySelectorAll(sel).length > prev"


async def count_product_links(page: Page) -> int:
    return await page.eval_on_selector_all(CATEGORY_SELECTORS["product_link"], "els => els.length")


async def click_load_more_until_done(page: Page, console: Console, max_rounds: int = 200) -> int:
    """Press the "load more" control until it disappears, stops producing
    new product links, or `max_rounds` is reached. Returns rounds completed.
    """
    rounds = 0
    while rounds < max_rounds:
        button = page.locator(CATEGORY_SELECTORS["load_more_button"])
        try:
            visible = await button.is_visible()
        except PWError:
            visible = False
        if not visible:
            console.log(f"No more products to load after {rounds} rounds")
            return rounds

        prev_count = await count_product_links(page)
        await button.click()
        rounds += 1

        try:
            await page.wait_for_function(
                _COUNT_GREW_JS,
                arg=[CATEGORY_SELECTORS["product_link"], prev_count],
                timeout=LOAD_MORE_TIMEOUT_MS,
            )
        except PWTimeoutError:
            console.log(f"No new products after click (round {rounds})")
            return rounds

        # Best-effort: the next visibility check copes with a busy network
        try:
            await page.wait_for_load_state("networkidle", timeout=LOAD_MORE_TIMEOUT_MS)
        except PWError:
            pass

        console.log(f"Round {rounds}: {await count_product_links(page)} products loaded")

    console.log(f"Stopped loading more products at the {max_rounds} round cap")
    return rounds


def dedupe_links(hrefs: List[str], base_url: str) -> List[str]:
    """Resolve hrefs against the listing URL and drop repeats, keeping
    first-seen order.

    The dedup key is the exact resolved URL string, so "/product/1" and
    "https://site/product/1" collapse while "?color=red" variants stay apart.
    """
    seen = set()
    links: List[str] = []
    for href in hrefs:
        if not isinstance(href, str) or not href.strip():
            continue
        url = urljoin(base_url, href.strip())
        if url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links


async def collect_product_links(page: Page, url: str, console: Console, max_rounds: int = 200) -> List[str]:
    """Open a category listing, exhaust its pagination and return the unique
    product URLs in discovery order.

    A listing that never shows product links raises (PWError); there is no
    partial catalog to work from in that case.
    """
    console.log(f"Navigating to category: {url}")
    await page.goto(url, wait_until="networkidle", timeout=LISTING_TIMEOUT_MS)
    await page.wait_for_selector(CATEGORY_SELECTORS["product_link"], timeout=SELECTOR_TIMEOUT_MS)

    await click_load_more_until_done(page, console, max_rounds=max_rounds)

    hrefs = await page.eval_on_selector_all(
        CATEGORY_SELECTORS["product_link"],
        "els => els.map(e => e.getAttribute('href'))",
    )
    links = dedupe_links(hrefs, url)
    console.log(f"Discovered {len(links)} product links")
    return links
