"""Synthetic ``name,age,email,address,phone`` CSV files for demos and benchmarks."""
from __future__ import annotations

import random
from pathlib import Path
from typing import Iterator, List, Optional

SAMPLE_HEADER = ("name", "age", "email", "address", "phone")

FIRST_NAMES = [
    "James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Susan", "Richard", "Jessica", "Joseph", "Sarah",
    "Thomas", "Karen", "Charles", "Nancy", "Daniel", "Margaret", "Matthew", "Betty",
]
LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Miller", "Davis", "Garcia",
    "Rodriguez", "Wilson", "Martinez", "Anderson", "Taylor", "Thomas", "Hernandez",
    "Moore", "Martin", "Jackson", "Thompson", "White", "Lopez", "Lee", "Gonzalez",
]
STREETS = ["Main St", "Oak Ave", "Maple Dr", "Cedar Ln", "Pine St", "Elm St", "Washington Blvd"]
CITIES = [
    ("New York", "NY"), ("Los Angeles", "CA"), ("Chicago", "IL"), ("Houston", "TX"),
    ("Phoenix", "AZ"), ("Philadelphia", "PA"), ("San Antonio", "TX"), ("Seattle", "WA"),
]
EMAIL_DOMAINS = ["example.com", "mail.test", "inbox.test"]
PHONE_FORMATS = ["({a}) {b}-{c}", "{a}-{b}-{c}", "{a}.{b}.{c}", "+1 {a} {b} {c}", "{a}{b}{c}"]


def iter_sample_rows(rows: int, *, seed: Optional[int] = None) -> Iterator[List[str]]:
    rng = random.Random(seed)
    for _ in range(rows):
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
        age = str(rng.randint(18, 90))
        email = f"{name.lower().replace(' ', '.')}{rng.randint(1, 999)}@{rng.choice(EMAIL_DOMAINS)}"
        city, state = rng.choice(CITIES)
        address = f"{rng.randint(1, 9999)} {rng.choice(STREETS)}, {city}, {state} {rng.randint(10000, 99999)}"
        phone = rng.choice(PHONE_FORMATS).format(
            a=rng.randint(200, 999),
            b=rng.randint(200, 999),
            c=f"{rng.randint(0, 9999):04}",
        )
        yield [name, age, email, address, phone]


def format_sample_row(row: List[str]) -> str:
    name, age, email, address, phone = row
    return f'{name},{age},{email},"{address}","{phone}"\n'


def write_sample_csv(
    path: Path,
    rows: int,
    *,
    seed: Optional[int] = None,
    batch_size: int = 10_000,
) -> Path:
    """Write ``rows`` synthetic rows to ``path`` in batches and return the path."""

    path.parent.mkdir(parents=True, exist_ok=True)
    batch_size = max(1, batch_size)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(",".join(SAMPLE_HEADER) + "\n")
        batch: List[str] = []
        for row in iter_sample_rows(rows, seed=seed):
            batch.append(format_sample_row(row))
            if len(batch) >= batch_size:
                handle.write("".join(batch))
                batch.clear()
        if batch:
            handle.write("".join(batch))
    return path
