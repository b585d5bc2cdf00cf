"""
Example 01: Basic Queries

This example demonstrates declaring an entity type, binding it to a MongoDB
collection and running reads and writes through a DocumentEngine.

Requires a running MongoDB server (set MONGODB_URL to override the default).
"""

import asyncio
import os

from doc_query import DocumentEngine, StoreSettings, entity, query

MONGODB_URL = os.environ.get("MONGODB_URL", "mongodb://localhost:27017/doc_query_example")


book = (
    entity("book", "books")
    .key()
    .attribute("title")
    .attribute("year")
    .attribute("in_print", alias="inPrint", default=True)
    .build()
)


async def main():
    settings = StoreSettings(url=MONGODB_URL, driver="pymongo")
    books = DocumentEngine.from_settings(book, settings)

    print("=== Basic Queries ===\n")

    # Insert a few documents in one batch
    print("1. Create books:")
    created = await books.create_many(
        [
            {"title": "Dune", "year": 1965},
            {"title": "Neuromancer", "year": 1984},
            {"title": "Hyperion", "year": 1989, "in_print": False},
        ]
    )
    for b in created:
        print(f"   - {b['title']} ({b['id']})")
    print()

    # Look one up by primary key
    print("2. Find by id:")
    found = await books.find_one(created[0]["id"])
    print(f"   Found: {found['title']}, in print: {found['in_print']}\n")

    # Filter, sort and paginate
    print("3. Books after 1970, newest first:")
    q = query().where("year", {"$gt": 1970}).sort("year", "desc").size(10).with_count()
    results = await books.find(q)
    print(f"   {results.count} match")
    for b in results:
        print(f"   - {b['year']}: {b['title']}")
    print()

    # Patch and replace
    print("4. Update:")
    updated = await books.update(created[2]["id"], {"in_print": True})
    print(f"   {updated['title']} in print: {updated['in_print']}\n")

    # Clean up
    removed = await books.destroy_many({})
    print(f"5. Removed {removed} books")

    await books.gateway.pool.close()


if __name__ == "__main__":
    asyncio.run(main())
