from pathlib import Path
from typing import List

from rich.console import Console

from models import Product, ScrapeResult, now_iso


def write_products(products: List[Product], total_found: int, output_path: str, console: Console) -> Path:
    """Write the scraped set as a ScrapeResult JSON document."""
    result = ScrapeResult(
        scraped_at=now_iso(),
        total_found=total_found,
        total_scraped=len(products),
        products=products,
    )
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(result.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
    console.log(f"Wrote {len(products)} products to {path}")
    return path
