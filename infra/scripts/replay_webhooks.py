"""Replay captured provider webhooks against a running API.

The input file holds a JSON list of deliveries:

    [{"path": "/session/update", "body": {...}}, {"path": "/session/cdr", "body": {...}}]

``--shuffle`` and ``--duplicates`` reproduce the out-of-order, at-least-once
delivery the gateway produces in practice.
"""

import argparse
import asyncio
import json
import random
from pathlib import Path

import httpx

PROVIDER_USER_AGENT = "Cloudonix-Webhook-Replay/1.0"
MAX_RETRIES = 3


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay webhook deliveries over HTTP.")
    parser.add_argument("--file", required=True, help="Path to deliveries JSON file")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--shuffle", action="store_true", help="Deliver in random order")
    parser.add_argument(
        "--duplicates",
        type=int,
        default=0,
        help="Deliver each webhook this many extra times",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Number of deliveries in flight at once",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for --shuffle")
    return parser.parse_args()


def build_schedule(
    deliveries: list[dict], shuffle: bool, duplicates: int, seed: int | None
) -> list[dict]:
    schedule = [delivery for delivery in deliveries for _ in range(duplicates + 1)]
    if shuffle:
        random.Random(seed).shuffle(schedule)
    return schedule


async def deliver(client: httpx.AsyncClient, index: int, delivery: dict) -> int:
    for attempt in range(MAX_RETRIES + 1):
        try:
            response = await client.post(
                delivery["path"],
                json=delivery["body"],
                headers={"User-Agent": PROVIDER_USER_AGENT},
            )
        except httpx.TransportError as exc:
            if attempt >= MAX_RETRIES:
                raise RuntimeError(f"Delivery {index} failed after retries") from exc
            wait_seconds = min(2 ** attempt, 8)
            print(f"Delivery {index} transport error ({exc}); retrying in {wait_seconds}s")
            await asyncio.sleep(wait_seconds)
            continue
        print(f"#{index} {delivery['path']} -> {response.status_code} {response.text[:60]!r}")
        # 4xx responses are final.
        if response.status_code < 500 or attempt >= MAX_RETRIES:
            return response.status_code
        await asyncio.sleep(min(2 ** attempt, 8))
    raise RuntimeError("Unreachable retry state")


async def replay(base_url: str, schedule: list[dict], concurrency: int) -> None:
    if concurrency < 1:
        raise ValueError("--concurrency must be >= 1")

    semaphore = asyncio.Semaphore(concurrency)

    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:

        async def bounded(index: int, delivery: dict) -> int:
            async with semaphore:
                return await deliver(client, index, delivery)

        statuses = await asyncio.gather(
            *(bounded(index, delivery) for index, delivery in enumerate(schedule, start=1))
        )

    summary: dict[int, int] = {}
    for status in statuses:
        summary[status] = summary.get(status, 0) + 1
    print(f"Replayed {len(schedule)} deliveries: {summary}")


def main() -> None:
    args = parse_args()
    deliveries_file = Path(args.file)
    if not deliveries_file.exists():
        raise FileNotFoundError(f"Deliveries file not found: {deliveries_file}")
    deliveries = json.loads(deliveries_file.read_text(encoding="utf-8"))
    schedule = build_schedule(deliveries, args.shuffle, args.duplicates, args.seed)
    asyncio.run(replay(args.base_url, schedule, args.concurrency))


if __name__ == "__main__":
    main()
