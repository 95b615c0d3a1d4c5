"""Database seeder: categories plus sample articles, then one outbox drain."""
import argparse
import asyncio
import random
import time

from bloglite.content import build_content_factory
from bloglite.content.render import LocalRenderer
from bloglite.database import Base, async_session, engine
from bloglite.exceptions import SlugAlreadyExists
from bloglite.logging_config import configure_logging
from bloglite.models import Category
from bloglite.outbox.dispatcher import OutboxDispatcher
from bloglite.outbox.registry import build_registry
from bloglite.projections.aggregate_delete import AggregateDeletePolicy
from bloglite.projections.readmodel import ReadModelProjector
from bloglite.services import article_commands

CATEGORIES = {
    "tech": "Technology",
    "life": "Life",
    "notes": "Notes",
    "private": "Private",
}

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "testing", "outbox", "markdown"]

SAMPLE = """---
title: {title}
summary: A short note about {topic}.
tags: {tags}
---
# {title}

This is sample article {i} about **{topic}**.

> [!NOTE]
> Seeded by scripts/seed.py.
"""


async def seed(count: int = 5, reset: bool = False):
    print(f"Seeding: {len(CATEGORIES)} categories, {count} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        for category_id, name in CATEGORIES.items():
            await session.merge(Category(id=category_id, display_name=name))
        await session.commit()
    print(f"  Upserted {len(CATEGORIES)} categories")

    renderer = LocalRenderer()
    factory = build_content_factory(renderer)
    created = 0
    for i in range(count):
        topic = random.choice(TAGS)
        markdown = SAMPLE.format(
            i=i,
            title=f"Notes on {topic}, part {i}",
            topic=topic,
            tags=",".join(random.sample(TAGS, k=random.randint(1, 3))),
        )
        async with async_session() as session:
            try:
                article_id = await article_commands.create_article(
                    session,
                    factory,
                    slug=f"sample-{i}",
                    category=random.choice(list(CATEGORIES)),
                    author="seed",
                    markdown=markdown,
                )
            except SlugAlreadyExists:
                print(f"  sample-{i} already exists, skipped")
                continue
            if random.random() > 0.2:
                await article_commands.set_article_state(session, article_id, 1)
        created += 1
    print(f"  Created {created} articles")

    dispatcher = OutboxDispatcher(
        async_session,
        build_registry(ReadModelProjector(renderer), AggregateDeletePolicy()),
    )
    processed = await dispatcher.drain()
    print(f"  Projected {processed} outbox event(s)")

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the bloglite database")
    parser.add_argument("--count", type=int, default=5, help="Number of sample articles")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(seed(count=args.count, reset=args.reset))


if __name__ == "__main__":
    main()
