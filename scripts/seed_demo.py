"""
Seed a demo transaction into the data directory.

    python scripts/seed_demo.py --data-dir data/realtime --reset
"""
import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conveyance import config
from conveyance.core.roles import Role
from conveyance.core.searches import SearchStatus
from conveyance.core.stages import Stage
from conveyance.realtime.hub import RealTimeHub
from conveyance.storage.kv_store import FileKeyValueStore


async def seed(hub: RealTimeHub) -> None:
    hub.propose_completion_date(
        Role.BUYER_CONVEYANCER,
        "2024-05-28",
        "14:00",
        "Initial proposal based on mortgage offer timeline",
        enforce_rules=False,
    )
    print("📅 Default completion date proposal added")

    hub.add_document(
        "Draft Contract",
        Stage.DRAFT_CONTRACT,
        Role.SELLER_CONVEYANCER,
        Role.BUYER_CONVEYANCER,
        size="2.4 MB",
        cover_message="Please review the draft contract and raise any enquiries.",
    )
    print("📄 Draft contract delivered to the buyer conveyancer")

    await hub.complete_stage(Stage.PROOF_OF_FUNDS, Role.BUYER)
    await hub.update_search_status("local-authority-search", SearchStatus.ORDERED, Role.BUYER_CONVEYANCER)
    await hub.update_search_status("environmental-search", SearchStatus.ORDERED, Role.BUYER_CONVEYANCER)
    await hub.update_search_status("environmental-search", SearchStatus.COMPLETED, Role.BUYER_CONVEYANCER)
    print("🔎 Search updates recorded")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the demo conveyancing transaction")
    parser.add_argument("--data-dir", default=config.DATA_DIR, help="directory for the persisted JSON keys")
    parser.add_argument("--reset", action="store_true", help="clear existing data before seeding")
    args = parser.parse_args(argv)

    config.configure_logging()

    print(f"🚀 Seeding demo transaction into {args.data_dir}...")
    hub = RealTimeHub(FileKeyValueStore(args.data_dir))
    try:
        if args.reset:
            hub.reset_to_default(announce=False)
            print("🔄 Existing data cleared")
        asyncio.run(seed(hub))
    finally:
        hub.close()

    for warning in hub.drain_warnings():
        print(f"⚠️ {warning}")

    print(f"✅ Seeding complete ({len(hub.updates)} updates)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
