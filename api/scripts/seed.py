import argparse
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from matchlink.database import SessionLocal, init_db
from matchlink.services.seeding import seed_demo_members


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo members for local development")
    parser.add_argument("--count", type=int, default=50)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--approved-ratio", type=float, default=0.9)
    args = parser.parse_args()

    init_db()
    with SessionLocal() as db:
        summary = seed_demo_members(db, count=args.count, seed=args.seed, approved_ratio=args.approved_ratio)
        db.commit()

    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
