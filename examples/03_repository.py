"""
Example 03: Repository Pattern

This example demonstrates using the Repository and its lifecycle hooks for
DDD-style code organization.

Requires a running MongoDB server (set MONGODB_URL to override the default).
"""

import asyncio
import os

from doc_query import QUERY_EVENT, Repository, StoreSettings, entity

MONGODB_URL = os.environ.get("MONGODB_URL", "mongodb://localhost:27017/doc_query_example")


user = (
    entity("user", "users")
    .key()
    .attribute("name")
    .attribute("email")
    .attribute("active", default=True)
    .build()
)


class UserRepository(Repository):
    """Repository for user resources"""

    async def find_all_active(self):
        """Find all active users"""
        return await self.find({"where": {"active": True}, "sort": {"name": "asc"}})

    async def deactivate(self, user_id):
        return await self.update(user_id, {"active": False})


async def main():
    settings = StoreSettings(url=MONGODB_URL, driver="pymongo")
    users = UserRepository(user, settings)
    users.hooks.on(QUERY_EVENT, lambda q: print(f"   [query] {q.to_dict()}"))

    print("=== Repository Pattern ===\n")

    print("1. Create users:")
    alice = await users.create({"name": "Alice", "email": "alice@example.com"})
    bob = await users.create({"name": "Bob", "email": "bob@example.com"})
    print(f"   Created {alice.name} ({alice.id}) and {bob.name} ({bob.id})\n")

    print("2. Find by ID:")
    found = await users.get(alice.id)
    print(f"   Found: {found.name} ({found.email})\n")

    print("3. Save changes:")
    found.email = "alice.updated@example.com"
    await users.save(found)
    print(f"   Saved user #{found.id}\n")

    print("4. Deactivate Bob:")
    await users.deactivate(bob.id)
    active = await users.find_all_active()
    print(f"   Active users: {[u.name for u in active]} (page size {active.size})\n")

    # Clean up
    removed = await users.delete_many({})
    print(f"5. Removed {removed} users")
    await users.engine.gateway.pool.close()


if __name__ == "__main__":
    asyncio.run(main())
