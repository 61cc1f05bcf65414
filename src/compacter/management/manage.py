import os
import sys

from compacter.api import Client
from compacter.conf import settings
from compacter.db import create_db, drop_db
from compacter.log import setup_logging
from compacter.management import db

KEYS = settings.CACHE_KEYS


def compare(client):
    """Cache the same listing plainly pickled and compacted, print both sizes"""
    client.expire_posts()
    client.cached_posts()
    client.cached_compact_posts()

    plain = client.cache.size(KEYS["posts"])
    compact = client.cache.size(KEYS["posts_compact"])
    print(f"{client.count_posts()} posts")
    print(f"plain:   {plain} bytes")
    print(f"compact: {compact} bytes ({compact / plain:.0%})" if plain else f"compact: {compact} bytes")
    return plain, compact


def get_command(command: str = None, url=settings.DATABASES["default"]["engine"]):
    """Macros to manage the db"""
    command = command or (sys.argv[1] if len(sys.argv) > 1 else "help")
    setup_logging()

    if command == "migrate":
        create_db(url)

    elif command == "drop":
        drop_db(url)

    elif command == "seed":
        db.setup_database(url)

    elif command == "compare":
        # in-memory databases are empty on every run
        client = db.setup_database(url) if url == "sqlite://" else Client(engine=create_db(url))
        compare(client)
        client.close()

    elif command == "test":
        os.system(f"python -m pytest {settings.BASE_DIR / 'test'}")

    else:
        print(f"Bad command {command}. Try migrate, drop, seed, compare or test")


if __name__ == "__main__":
    get_command()
