"""
Dinner Rush Simulation Script

Fires many concurrent table checkouts at a running API, then plays the
kitchen: moves every order through "in progress" to "completed" and marks
payments. Run from project root: python scripts/simulate.py
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tableorder.cart import Cart
from tableorder.core.config import get_settings
from tableorder.models import PaymentMethod
from tableorder.schemas import MenuItemResponse

# Configuration
API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:5000")
TOTAL_ORDERS = 50
TABLES = 20

FIRST_NAMES = ["Aarav", "Diya", "Kabir", "Meera", "Rohan", "Sara", "Vikram", "Anaya", "Ishaan", "Zoya"]
INSTRUCTIONS = [None, "Less spicy", "No onions", "Extra napkins", "Serve starters first"]


def pick_customizations(item: MenuItemResponse) -> dict[str, list[str]]:
    """Random valid selections for each option group."""
    chosen = {}
    for option in item.customizations:
        count = random.randint(1, option.max_choices)
        chosen[option.name] = random.sample(option.choices, min(count, len(option.choices)))
    return chosen


def build_cart(menu: list[MenuItemResponse], table_number: int) -> Cart:
    cart = Cart(notifier=lambda message: None)
    cart.set_table_number(table_number)
    for item in random.sample(menu, random.randint(1, min(3, len(menu)))):
        cart.add_item(item, quantity=random.randint(1, 3), customizations=pick_customizations(item))
    cart.set_cooking_instructions(random.choice(INSTRUCTIONS) or "")
    return cart


async def fetch_menu(client: httpx.AsyncClient) -> list[MenuItemResponse]:
    response = await client.get(f"{API_BASE_URL}/api/menu", params={"available": True})
    response.raise_for_status()
    return [MenuItemResponse.model_validate(item) for item in response.json()]


async def send_checkout(
    client: httpx.AsyncClient,
    menu: list[MenuItemResponse],
    order_num: int,
) -> dict[str, Any]:
    """Build one cart and submit it as an order."""
    name = random.choice(FIRST_NAMES)
    cart = build_cart(menu, random.randint(1, TABLES))
    draft = cart.to_order_draft(
        user_email=f"{name.lower()}{order_num}@example.com",
        customer_name=name,
        payment_method=random.choice(list(PaymentMethod)),
    )
    start_time = time.time()

    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=draft.model_dump(mode="json", by_alias=True, exclude_none=True),
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["id"],
                "total": data["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def work_kitchen(client: httpx.AsyncClient, order_ids: list[int]) -> int:
    """Advance each order to completed and settle payment; returns failures."""
    settings = get_settings()
    login = await client.post(
        f"{API_BASE_URL}/api/admin/login",
        json={"email": settings.admin_email, "password": settings.admin_password},
    )
    if login.status_code != 200:
        print(f"   Admin login failed ({login.status_code}); payments stay pending")

    failures = 0
    for order_id in order_ids:
        for status in ("in progress", "completed"):
            response = await client.post(
                f"{API_BASE_URL}/api/orders/{order_id}/status", json={"status": status}
            )
            failures += response.status_code != 200
        response = await client.post(
            f"{API_BASE_URL}/api/orders/{order_id}/payment-status", json={"status": "paid"}
        )
        failures += response.status_code != 200
    return failures


async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("DINNER RUSH SIMULATION")
    print("=" * 70)
    print(f"Total Orders: {num_orders}")
    print(f"Target: {API_BASE_URL}")
    print(f"Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        menu = await fetch_menu(client)
        if not menu:
            print("\nNo available menu items; seed the menu first.")
            return {"total": num_orders, "successful": 0, "failed": num_orders}

        tasks = [send_checkout(client, menu, i + 1) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print(f"\nKitchen working through {len(successful)} orders...")
        kitchen_failures = await work_kitchen(client, [r["order_id"] for r in successful])

    total_time = round(time.time() - start_time, 2)

    print("\n" + "=" * 70)
    print("SIMULATION RESULTS")
    print("=" * 70)
    print(f"\nSuccessful Orders: {len(successful)}/{num_orders}")
    print(f"Failed Orders: {len(failed)}/{num_orders}")
    print(f"Kitchen update failures: {kitchen_failures}")
    print(f"Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r["total"] for r in successful)
        print("\nPerformance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   Total Revenue: {total_revenue:.2f}")

    if failed:
        print("\nFailed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("Next: check the Celery worker, then run python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results,
    }


async def preflight() -> bool:
    """Health check before the rush."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"API unreachable: {e}")
            return False

    if response.status_code != 200:
        print(f"Health check failed: {response.text}")
        return False

    data = response.json()
    print(f"Status: {data.get('status')}")
    print(f"Database: {data.get('database')}")
    print(f"Redis: {data.get('redis')}")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Dinner rush simulation")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--skip-checks", action="store_true", help="Skip the health pre-flight")
    args = parser.parse_args()

    if not args.skip_checks and not asyncio.run(preflight()):
        print("\nPre-flight failed. Fix issues before running the simulation.")
        sys.exit(1)

    asyncio.run(run_simulation(num_orders=args.orders))
