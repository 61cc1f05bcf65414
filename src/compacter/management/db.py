"""Sample data for the posts/comments schema"""
import logging
from functools import wraps
import random
import time

import yaml

from compacter.api import Client
from compacter.conf import settings
from compacter.db import create_db

ENGINE = settings.DATABASES["default"]["engine"]

logger = logging.getLogger("user_info." + __name__)


def yml_data(yfile):
    def inner(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with open(settings.DATA_DIR / yfile, encoding="utf8") as file:
                data = yaml.safe_load(file)
            return func(data, *args, **kwargs)

        return wrapper

    return inner


class Lorem:
    """Random text from the word pool in data/lorem.yaml"""

    def __init__(self, data, seed=None):
        self.words = data["words"]
        self.sentence_size = (
            data["sentence"]["min_words"],
            data["sentence"]["max_words"],
        )
        self.paragraph_size = (
            data["paragraph"]["min_sentences"],
            data["paragraph"]["max_sentences"],
        )
        self.random = random.Random(seed)

    def sentence(self):
        words = self.random.choices(self.words, k=self.random.randint(*self.sentence_size))
        return " ".join(words).capitalize() + "."

    def paragraph(self, sentences=None):
        sentences = sentences or self.random.randint(*self.paragraph_size)
        return " ".join(self.sentence() for _ in range(sentences))


@yml_data("lorem.yaml")
def make_lorem(data, seed=None):
    return Lorem(data, seed=seed)


def create_comments(c, post, lorem, count=10):
    return [c.create_comment(post, body=lorem.paragraph()) for _ in range(count)]


def create_posts(c, lorem, count=10, comments=10):
    posts = []
    for _ in range(count):
        post = c.create_post(title=lorem.sentence(), body=lorem.paragraph(3))
        create_comments(c, post, lorem, count=comments)
        posts.append(post)
    return posts


def regenerate_posts(c, lorem, **kwargs):
    """Wipe every post (comments go with them) and make new ones"""
    for post in c.get_post().all():
        c.delete(post)
    c.commit()

    posts = create_posts(c, lorem, **kwargs)
    c.commit()
    c.expire_posts()
    return posts


def setup_database(url=ENGINE, posts=10, comments=10, seed=None, client=None):
    """
    Create the schema and fill it with sample posts.
    Returns the client used, ready for more queries.
    """
    # timer
    start = time.time()

    c = client or Client(engine=create_db(url))
    regenerate_posts(c, make_lorem(seed=seed), count=posts, comments=comments)

    logger.info(
        "DB populated with %d posts in %f seconds", c.count_posts(), time.time() - start
    )
    return c
