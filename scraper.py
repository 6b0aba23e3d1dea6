import asyncio
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from playwright.async_api import Browser, Playwright, async_playwright
from rich.console import Console
from rich.table import Table

from config import Config, load_config
from db import RunDB
from link_collector import collect_product_links
from models import SyncTally, now_iso
from product_scraper import scrape_all_products
from woocommerce import WooCommerceClient, sync_all_in_batches
from writer import write_products


console = Console()

#
# High-level overview
# - Configuration: validated environment settings (`config.Config`)
# - Listing: press "load more" until exhausted, collect unique product URLs
# - Product pages: extract and validate one `Product` per URL, skip the rest
# - JSON sink: write the scraped set for inspection
# - WooCommerce: create/update/replace each product by SKU, in batches of 10
# - Ledger: record each run and its failed SKUs in SQLite
# - Entrypoint: `main` wires config, argv overrides, and runs the pipeline


@dataclass
class RunSummary:
    run_id: str
    total_found: int
    scraped: int
    skipped: int
    sync: SyncTally


def _build_playwright_proxy(proxy_url: str) -> Optional[Dict[str, Any]]:
    if not proxy_url:
        return None
    parsed = urlparse(proxy_url)
    if not parsed.scheme or not parsed.hostname or not parsed.port:
        return None
    proxy: Dict[str, Any] = {
        "server": f"{parsed.scheme}://{parsed.hostname}:{parsed.port}",
    }
    if parsed.username:
        proxy["username"] = parsed.username
    if parsed.password:
        proxy["password"] = parsed.password
    return proxy


async def launch_browser(p: Playwright, cfg: Config, console: Console) -> Browser:
    console.log("Launching headless browser")
    launch_kwargs: Dict[str, Any] = {
        "headless": True,
        "args": ["--disable-blink-features=AutomationControlled"],
    }
    proxy_conf = _build_playwright_proxy(cfg.proxy_url)
    if proxy_conf:
        launch_kwargs["proxy"] = proxy_conf
    browser = await p.chromium.launch(**launch_kwargs)
    console.log("Browser launched")
    return browser


async def close_browser(browser: Browser, console: Console) -> None:
    console.log("Closing browser")
    await browser.close()
    console.log("Browser closed")


def render_summary(summary: RunSummary) -> Table:
    table = Table(title="Scrape and sync complete", min_width=40)
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    table.add_row("Links found", str(summary.total_found))
    table.add_row("Scraped", str(summary.scraped))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Created", str(summary.sync.created))
    table.add_row("Updated", str(summary.sync.updated))
    table.add_row("Failed", str(summary.sync.failed))
    return table


async def run_pipeline(
    cfg: Config,
    console: Console,
    scrape_url: Optional[str] = None,
    limit: Optional[int] = None,
) -> RunSummary:
    """Collect links, scrape products, write JSON, then sync to WooCommerce.

    The browser is released and the ledger run closed however the run ends.
    """
    start_url = scrape_url or cfg.scrape_url
    db = RunDB(cfg.output_db)
    db.ensure_schema()
    run_id = db.begin_run(now_iso(), start_url)
    console.log(f"Starting run {run_id} for {start_url}")

    try:
        async with async_playwright() as p:
            browser = await launch_browser(p, cfg, console)
            try:
                context = await browser.new_context(user_agent=cfg.user_agent)
                page = await context.new_page()

                links = await collect_product_links(page, start_url, console, max_rounds=cfg.max_load_more_rounds)
                total_found = len(links)
                if limit is not None:
                    links = links[:limit]
                    console.log(f"Visiting the first {len(links)} of {total_found} product links")
                products, skipped = await scrape_all_products(page, links, console)
            finally:
                await close_browser(browser, console)

        db.record_scrape(run_id, total_found=total_found, scraped=len(products), skipped=skipped)
        write_products(products, total_found, cfg.output_path, console)

        client = WooCommerceClient(cfg.wc_store_url, cfg.wc_consumer_key, cfg.wc_consumer_secret)
        tally = sync_all_in_batches(products, client, console)
        db.record_sync(run_id, tally)
    finally:
        db.finish_run(run_id, now_iso())

    for sku, message in tally.errors:
        console.log(f"Sync failure {sku}: {message}")
    summary = RunSummary(
        run_id=run_id,
        total_found=total_found,
        scraped=len(products),
        skipped=skipped,
        sync=tally,
    )
    console.print(render_summary(summary))
    return summary


def parse_args(argv: List[str]) -> Tuple[Optional[str], Optional[int]]:
    """`scraper.py [SCRAPE_URL] [LIMIT]`"""
    scrape_url = argv[1] if len(argv) > 1 and argv[1] else None
    limit = int(argv[2]) if len(argv) > 2 and argv[2].isdigit() else None
    return scrape_url, limit


async def main(argv: Optional[List[str]] = None) -> RunSummary:
    """Entrypoint: load configuration, apply argv overrides, run the pipeline."""
    scrape_url, limit = parse_args(sys.argv if argv is None else argv)
    cfg = load_config()
    return await run_pipeline(cfg, console, scrape_url=scrape_url, limit=limit)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.log("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        console.log(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
