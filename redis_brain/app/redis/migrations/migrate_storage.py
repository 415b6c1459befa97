"""migrate_storage.py

One-time migration from the whole-blob brain layout to the granular one.

This script:
1. Reads the JSON document stored under <prefix>:storage
2. Writes each _private key into the <prefix>:private hash
3. Writes each user record into the <prefix>:users hash
4. Validates that every field landed
5. Optionally deletes the old <prefix>:storage key

Usage:
    python -m redis_brain.app.redis.migrations.migrate_storage [--dry-run] [--delete]

Options:
    --dry-run    Show what would be migrated without making changes
    --delete     Remove <prefix>:storage after successful migration (use with caution)
"""
import asyncio
import argparse
import logging
from typing import Any, Dict, List

from dotenv import load_dotenv

from redis_brain.app.redis.client import BatchOp, StoreClient
from redis_brain.app.redis.exceptions import SerializationError, StoreError
from redis_brain.app.redis.serialization import (
    KeyCategory,
    deserialize_from_redis,
    namespaced_key,
    serialize_to_redis,
)
from redis_brain.config import resolve

logger = logging.getLogger("StorageMigration")


async def migrate_storage(
    client: StoreClient, prefix: str, dry_run: bool = False, delete_blob: bool = False
) -> Dict[str, int]:
    """Copy a whole-blob brain into the granular hashes.

    Args:
        client: Connected store client
        prefix: Brain namespace prefix
        dry_run: If True, only report what would be migrated
        delete_blob: If True, delete <prefix>:storage once the copy is verified

    Returns:
        Counts of migrated private keys and users, and validation failures
    """
    storage_key = namespaced_key(prefix, KeyCategory.STORAGE)
    private_key = namespaced_key(prefix, KeyCategory.PRIVATE)
    users_key = namespaced_key(prefix, KeyCategory.USERS)
    result = {"private": 0, "users": 0, "failures": 0}

    logger.info("Starting storage migration for prefix %s (dry_run=%s)", prefix, dry_run)

    try:
        data = deserialize_from_redis(await client.get(storage_key))
    except SerializationError as e:
        logger.error("%s is not valid JSON, nothing migrated: %s", storage_key, e)
        result["failures"] += 1
        return result

    if not isinstance(data, dict):
        logger.info("No %s document found - nothing to migrate", storage_key)
        return result

    private = data.get("_private") or {}
    users = data.get("users") or {}
    ops: List[BatchOp] = []
    for key, value in private.items():
        ops.append(("hset", private_key, key, serialize_to_redis(value)))
    for user_id, user in users.items():
        record = dict(user) if isinstance(user, dict) else {}
        record.setdefault("id", str(user_id))
        ops.append(("hset", users_key, str(user_id), serialize_to_redis(record)))

    result["private"] = len(private)
    result["users"] = len(users)

    if dry_run:
        logger.info("[DRY RUN] Would migrate %d private keys and %d users", len(private), len(users))
        return result

    await client.batch(ops)

    stored_private = await client.hash_get_all(private_key)
    stored_users = await client.hash_get_all(users_key)
    missing = [key for key in private if key not in stored_private]
    missing += [str(user_id) for user_id in users if str(user_id) not in stored_users]
    result["failures"] = len(missing)

    if missing:
        logger.error("✗ Validation failed, missing fields: %s", missing)
        return result

    logger.info("✓ Migrated %d private keys and %d users", len(private), len(users))

    if delete_blob:
        await client.batch([("delete", storage_key)])
        logger.warning("✓ Deleted %s", storage_key)
    else:
        logger.info("Keeping %s as backup (use --delete to remove)", storage_key)

    return result


async def run_migration(dry_run: bool = False, delete_blob: bool = False) -> Dict[str, Any]:
    load_dotenv()
    descriptor = resolve()
    client = StoreClient(descriptor)
    try:
        await client.connect()
        return await migrate_storage(client, descriptor.prefix, dry_run=dry_run, delete_blob=delete_blob)
    except StoreError as e:
        logger.error("Migration aborted: %s", e)
        return {"private": 0, "users": 0, "failures": 1}
    finally:
        await client.disconnect()


def main():
    """CLI entry point."""
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(
        description="Migrate a whole-blob brain (<prefix>:storage) to granular hashes"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be migrated without making changes"
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete <prefix>:storage after successful migration (default: keep as backup)"
    )

    args = parser.parse_args()

    asyncio.run(run_migration(
        dry_run=args.dry_run,
        delete_blob=args.delete
    ))


if __name__ == "__main__":
    main()
