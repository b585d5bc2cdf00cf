"""
Example 02: Relations

This example demonstrates declared relations: filtering through a relation,
including related entities, through relations and nested includes.

Requires a running MongoDB server (set MONGODB_URL to override the default).
"""

import asyncio
import os

from doc_query import DocumentEngine, StoreSettings, entity, query

MONGODB_URL = os.environ.get("MONGODB_URL", "mongodb://localhost:27017/doc_query_example")


author = (
    entity("author", "authors")
    .key()
    .attribute("name")
    .has_many("books", lambda: book, "author_id")
    .build()
)

genre = entity("genre", "genres").key().attribute("label").build()

book_genre = (
    entity("book_genre", "book_genres")
    .key()
    .attribute("book_id", alias="bookId", identifier=True)
    .attribute("genre_id", alias="genreId", identifier=True)
    .build()
)

book = (
    entity("book", "books")
    .key()
    .attribute("title")
    .attribute("author_id", alias="authorId", identifier=True)
    .belongs_to("author", author, "author_id")
    .has_many("genres", genre, "book_id", through=book_genre, through_key="genre_id")
    .build()
)


async def main():
    # One settings object for every entity type: they share one connection
    settings = StoreSettings(url=MONGODB_URL, driver="pymongo")
    authors = DocumentEngine.from_settings(author, settings)
    books = DocumentEngine.from_settings(book, settings)
    genres = DocumentEngine.from_settings(genre, settings)
    links = DocumentEngine.from_settings(book_genre, settings)

    herbert = await authors.create({"name": "Frank Herbert"})
    gibson = await authors.create({"name": "William Gibson"})
    dune = await books.create({"title": "Dune", "author_id": herbert["id"]})
    messiah = await books.create({"title": "Dune Messiah", "author_id": herbert["id"]})
    neuro = await books.create({"title": "Neuromancer", "author_id": gibson["id"]})
    scifi = await genres.create({"label": "science fiction"})
    cyber = await genres.create({"label": "cyberpunk"})
    await links.create_many(
        [
            {"book_id": dune["id"], "genre_id": scifi["id"]},
            {"book_id": messiah["id"], "genre_id": scifi["id"]},
            {"book_id": neuro["id"], "genre_id": scifi["id"]},
            {"book_id": neuro["id"], "genre_id": cyber["id"]},
        ]
    )

    print("=== Relations ===\n")

    print("1. Books by Frank Herbert (filter through belongs_to):")
    for b in await books.find({"where": {"author.name": "Frank Herbert"}}):
        print(f"   - {b['title']}")
    print()

    print("2. Books with their author (include_related):")
    for b in await books.find(query().include_related("author")):
        print(f"   - {b['title']} by {b['author']['name']}")
    print()

    print("3. Cyberpunk books (filter through a through relation):")
    for b in await books.find({"where": {"genres.label": "cyberpunk"}}):
        print(f"   - {b['title']}")
    print()

    print("4. Authors with their first book and its genres (nested include):")
    q = query().include_related("books", nested=True, size=1)
    for a in await authors.find(q):
        for b in a["books"]:
            labels = ", ".join(g["label"] for g in b["genres"])
            print(f"   - {a['name']}: {b['title']} [{labels}]")
    print()

    # Clean up
    for engine in (links, genres, books, authors):
        await engine.destroy_many({})
    await books.gateway.pool.close()


if __name__ == "__main__":
    asyncio.run(main())
