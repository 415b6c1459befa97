#!/usr/bin/env python3
"""Check the brain's Redis connection and basic operations.

Resolves the connection the same way the bot does (REDISTOGO_URL,
REDISCLOUD_URL, BOXEN_REDIS_URL, REDIS_URL) and round-trips a value through
each primitive the brain relies on.

Usage:
    python scripts/check_brain_connection.py
"""
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from redis_brain.app.redis.client import StoreClient
from redis_brain.app.redis.exceptions import StoreError
from redis_brain.config import resolve


async def check_brain_connection():
    """Connect and exercise get/set, hashes and a pipelined batch."""
    load_dotenv()
    descriptor = resolve()
    print(f"🔍 Testing Redis connection to {descriptor.sanitized_url} (prefix '{descriptor.prefix}')...")

    client = StoreClient(descriptor)
    probe_key = f"{descriptor.prefix}:connection-check"

    try:
        await client.connect()
        print("✓ Redis client connected")

        await client.set(probe_key, "success")
        print(f"✓ SET/GET: {await client.get(probe_key)}")

        await client.hash_set(f"{probe_key}:hash", "field", "value")
        print(f"✓ HSET/HGET: {await client.hash_get(f'{probe_key}:hash', 'field')}")

        results = await client.batch([
            ("delete", probe_key),
            ("delete", f"{probe_key}:hash"),
        ])
        print(f"✓ MULTI: {sum(results)} key(s) deleted")

        print("\n✅ All checks passed!")

    except StoreError as e:
        print(f"\n❌ Check failed: {e}")
        sys.exit(1)
    finally:
        await client.disconnect()


if __name__ == "__main__":
    asyncio.run(check_brain_connection())
