#!/usr/bin/env python3
"""
Route table smoke test: load the router inventory and print the show views.

Usage: python3 scripts/show_routes.py [inventory.yml] [lookup-address]
"""

import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from inventory import RouterInventory
from rib import Afi

INVENTORY_PATH = Path(__file__).parent.parent / "inventories" / "example-router.yml"
DEFAULT_ADDRESS = "10.1.2.3"


def section(title: str):
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def main():
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else INVENTORY_PATH
    address = sys.argv[2] if len(sys.argv) > 2 else DEFAULT_ADDRESS

    print(f"Loading inventory from {path}")
    t0 = time.monotonic()
    inv = RouterInventory.from_yaml(path)
    ctx = inv.build_context()
    print(f"Loaded {inv.hostname}: {len(inv.vrfs)} vrfs, {ctx.statics.count()} statics "
          f"({time.monotonic() - t0:.2f}s)")

    errors = []

    section("show ip route vrf all")
    out = ctx.show_route(Afi.IP, vrf="all")
    print(out.text)
    if not out.text:
        errors.append("empty IPv4 route table")

    section("show ipv6 route")
    print(ctx.show_route(Afi.IP6).text)

    section(f"show ip route {address}")
    out = ctx.show_route_at(address)
    print(out.text)
    if not out.ok:
        errors.append(f"{address}: {out.text.strip()}")

    section("show ip route summary")
    print(ctx.show_route_summary(Afi.IP).text)
    print(ctx.show_route_summary(Afi.IP, prefix_mode=True).text)

    section("show ip nht")
    print(ctx.show_nexthop_tracking(Afi.IP).text)

    section("running config")
    print(ctx.write_config().text)

    print(f"\n{'='*60}")
    if errors:
        print("⚠ VALIDATION ISSUES:")
        for e in errors:
            print(f"  - {e}")
        return 1
    print("✓ All views rendered")
    return 0


if __name__ == "__main__":
    sys.exit(main())
