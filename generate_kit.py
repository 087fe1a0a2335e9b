"""Generate a kit from the command line against a running backend.

Usage:
    python generate_kit.py osha-essentials-kit "Acme Co" Retail CA \
        --employees "12" --risks "forklifts" --paid --out ./downloads
"""
import argparse
import asyncio
import sys
from pathlib import Path

import httpx

from app.client.form_controller import FormBindings, KitFormController
from app.services.catalog import ProductCatalog


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate a Comply-Desk kit")
    parser.add_argument("product", help="kit slug, e.g. osha-essentials-kit")
    parser.add_argument("business_name")
    parser.add_argument("industry")
    parser.add_argument("state")
    parser.add_argument("--employees", default="")
    parser.add_argument("--risks", default="")
    parser.add_argument("--paid", action="store_true", help="request the full kit")
    parser.add_argument("--server", default="http://localhost:8000")
    parser.add_argument("--out", default=".", help="directory for the .docx")
    return parser.parse_args(argv)


async def run(args) -> int:
    bindings = FormBindings(download_dir=Path(args.out), render_outline=False)

    async with httpx.AsyncClient(base_url=args.server, timeout=120.0) as client:
        catalog_resp = await client.get("/products.json")
        catalog_resp.raise_for_status()
        catalog = ProductCatalog.from_entries(catalog_resp.json())

        controller = KitFormController(catalog, client, bindings)
        page = controller.load_page({"product": args.product, "paid": "1" if args.paid else ""})
        if page.should_redirect:
            print(f"Unknown kit '{args.product}'. Available: {', '.join(p.slug for p in catalog)}")
            return 2

        print(page.title)
        result = await controller.submit({
            "businessName": args.business_name,
            "industry": args.industry,
            "state": args.state,
            "employees": args.employees,
            "risks": args.risks,
        })

    for message in result.messages:
        print(message)
    if result.error:
        print(f"  ({result.error})")
    if result.plan and result.plan.summary:
        print(f"\nSummary: {result.plan.summary}")
    if result.download and result.download.path:
        print(f"Saved: {result.download.path}")
    return 0 if result.ok and result.download else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(run(parse_args())))
