from typing import List, Optional, Tuple

from playwright.async_api import Error as PWError, Page
from rich.console import Console

from models import Product, now_iso, validate_product


BASE_URL = "https://www.mi-il.co.il"

PRODUCT_SELECTORS = {
    "name": "h1.product-title-h2",
    "price": ".single-price .price",
    "description": ".desc-abv p",
    "image": ".single-gallery li.lslide img",
    "catalog_number": "#product-barcode",
}

PAGE_TIMEOUT_MS = 45_000
SELECTOR_TIMEOUT_MS = 15_000


def resolve_image_url(src: str, base_url: str = BASE_URL) -> str:
    """Make an <img src> absolute against the site base URL."""
    src = src.strip()
    if not src:
        return ""
    if src.startswith("http"):
        return src
    if src.startswith("//"):
        return f"https:{src}"
    return f"{base_url.rstrip('/')}{'' if src.startswith('/') else '/'}{src}"


async def read_text(page: Page, selector: str) -> str:
    try:
        text = await page.eval_on_selector(selector, "el => el.textContent || ''")
    except PWError:
        return ""
    return (text or "").strip()


async def read_description(page: Page) -> str:
    """Join the non-empty description paragraphs with newlines."""
    try:
        parts = await page.eval_on_selector_all(
            PRODUCT_SELECTORS["description"],
            "els => els.map(e => (e.textContent || '').trim())",
        )
    except PWError:
        return ""
    return "\n".join(p.strip() for p in parts if p and p.strip())


async def read_image_src(page: Page) -> str:
    try:
        src = await page.eval_on_selector(PRODUCT_SELECTORS["image"], "el => el.getAttribute('src') || ''")
    except PWError:
        return ""
    return src or ""


async def scrape_product(page: Page, product_url: str, console: Console, base_url: str = BASE_URL) -> Optional[Product]:
    """Visit a product page and return a validated Product, or None to skip it.

    Each field is read independently; a missing field becomes "" and the
    record as a whole is left to validation.
    """
    console.log(f"Scraping product page: {product_url}")
    try:
        await page.goto(product_url, wait_until="networkidle", timeout=PAGE_TIMEOUT_MS)
        await page.wait_for_selector(PRODUCT_SELECTORS["name"], timeout=SELECTOR_TIMEOUT_MS)

        candidate = {
            "catalog_number": await read_text(page, PRODUCT_SELECTORS["catalog_number"]),
            "name": await read_text(page, PRODUCT_SELECTORS["name"]),
            "description": await read_description(page),
            "price": await read_text(page, PRODUCT_SELECTORS["price"]),
            "image_url": resolve_image_url(await read_image_src(page), base_url),
            "product_url": product_url,
            "scraped_at": now_iso(),
        }
    except Exception as e:
        console.log(f"Failed to scrape {product_url}: {e}")
        return None

    result = validate_product(candidate)
    if not result.ok:
        console.log(f"Validation failed for {product_url}: {', '.join(result.errors)}")
        return None

    console.log(f"Scraped: {result.product.name}")
    return result.product


async def scrape_all_products(
    page: Page,
    links: List[str],
    console: Console,
    base_url: str = BASE_URL,
) -> Tuple[List[Product], int]:
    """Scrape every link in order. Returns (products, skipped)."""
    products: List[Product] = []
    skipped = 0
    for i, link in enumerate(links):
        console.log(f"Visiting product {i+1}/{len(links)}")
        product = await scrape_product(page, link, console, base_url)
        if product is None:
            skipped += 1
            continue
        products.append(product)

    console.log(f"Scraping complete: {len(links)} found, {len(products)} scraped, {skipped} skipped")
    return products, skipped
