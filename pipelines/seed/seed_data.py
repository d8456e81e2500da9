"""
Seed data generator -- uploads demo datasets through the copilot service.

Generates:
  - sales.csv     ~1 000 order lines (date, region, country, category, product, units, sales)
  - sessions.json ~500 web sessions  (date, device, country, pages, duration_s, converted)

Both files go through `upload_dataset`, so they land in the object store and
the dataset catalog exactly like user uploads.
Run:  python -m pipelines.seed.seed_data
"""
from __future__ import annotations

import json
import random
from datetime import date, timedelta

from faker import Faker

from datachat.copilot.service import upload_dataset

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
NUM_SALES = 1_000
NUM_SESSIONS = 500

REGIONS = {
    "North": ["Canada", "US"],
    "South": ["Brazil", "Argentina"],
    "East": ["India", "Japan"],
    "West": ["UK", "Germany", "France"],
}
CATEGORIES = ["Electronics", "Clothing", "Home", "Books", "Sports", "Toys"]
DEVICES = ["mobile", "desktop", "tablet"]

DATE_START = date(2024, 1, 1)
DATE_RANGE_DAYS = 730


def _rand_day() -> str:
    return (DATE_START + timedelta(days=random.randint(0, DATE_RANGE_DAYS))).isoformat()


# ── Generators ───────────────────────────────────────────

def gen_sales_csv() -> str:
    lines = ["date,region,country,category,product,units,sales"]
    products = {c: [fake.unique.word().title() for _ in range(5)] for c in CATEGORIES}
    for _ in range(NUM_SALES):
        region = random.choice(list(REGIONS))
        category = random.choice(CATEGORIES)
        units = random.randint(1, 20)
        price = round(random.uniform(5.0, 250.0), 2)
        lines.append(",".join([
            _rand_day(),
            region,
            random.choice(REGIONS[region]),
            category,
            random.choice(products[category]),
            str(units),
            f"{units * price:.2f}",
        ]))
    return "\n".join(lines) + "\n"


def gen_sessions_json() -> str:
    rows = []
    for _ in range(NUM_SESSIONS):
        rows.append({
            "date": _rand_day(),
            "device": random.choice(DEVICES),
            "country": fake.country(),
            "pages": random.randint(1, 30),
            "duration_s": random.randint(5, 1800),
            "converted": random.random() < 0.12,
        })
    return json.dumps(rows)


# ── Main ─────────────────────────────────────────────────

def main():
    print("═══ Seed Data Generator ═══")
    sales = upload_dataset("sales.csv", gen_sales_csv().encode(), name="Demo Sales")
    print(f"  ✓ {sales.name}: {sales.row_count:,} rows  id={sales.id}")
    sessions = upload_dataset("sessions.json", gen_sessions_json().encode(), name="Demo Sessions")
    print(f"  ✓ {sessions.name}: {sessions.row_count:,} rows  id={sessions.id}")
    print("\nDone.")


if __name__ == "__main__":
    main()
