"""CLI script to copy the user table between storage backends.

Usage: python scripts/migrate_storage.py --from-json db.json --to-sqlite app.db
       python scripts/migrate_storage.py --from-sqlite app.db --to-json db.json

Every user is validated through `UserRecord` on the way, so legacy
documents (`_id` keys, missing collections) are written back normalized.
"""
import sys
import argparse
import logging
import pathlib
# Ensure `backend/` is on sys.path so `notenexus` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from notenexus.database import JsonFileBackend, SQLModelBackend
from notenexus.repositories import UserRepository


def migrate(source, target) -> int:
    """Copy every user from `source` to `target`; return the number copied."""
    src = UserRepository(source).open()
    dst = UserRepository(target).open()
    try:
        count = 0
        for user in src.list_users():
            if dst.get(user.id) is None:
                dst.create(user)
            else:
                dst.save(user)
            count += 1
        return count
    finally:
        src.close()
        dst.close()


def main(argv=None):
    parser = argparse.ArgumentParser()
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--from-json', type=pathlib.Path)
    source.add_argument('--from-sqlite', type=pathlib.Path)
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--to-json', type=pathlib.Path)
    target.add_argument('--to-sqlite', type=pathlib.Path)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    src = JsonFileBackend(args.from_json) if args.from_json else SQLModelBackend(args.from_sqlite)
    dst = JsonFileBackend(args.to_json) if args.to_json else SQLModelBackend(args.to_sqlite)
    count = migrate(src, dst)
    print(f'Copied {count} users')


if __name__ == '__main__':
    main()
