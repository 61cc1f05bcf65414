"""API"""
from functools import wraps
import inspect
import logging
import time

from sqlalchemy import create_engine, func
from sqlalchemy.orm import selectinload, sessionmaker

from compacter.cache import MemoryCache
from compacter.codec import Compacter
from compacter.conf import settings
from compacter.db import Comment, Post
from compacter.log import logged

log = logging.getLogger("user_info.global")

DB = settings.DATABASES["default"]
URL = DB["engine"]
KEYS = settings.CACHE_KEYS


def benchmark(method):
    @wraps(method)
    def wrapper(*args, **kwargs):
        start = time.time()

        result = method(*args, **kwargs)

        end = time.time() - start
        log.info("benchmarked method %s %s", method.__name__, end)
        return result

    return wrapper


def loggedmethod(method):
    """
    Log a CRUD method and confirm its successful execution
    """

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        method_data = inspect.getfullargspec(method)
        mname = method.__name__.lstrip("_")  # ignore encapsulation
        method_type = mname.split("_")[0].upper()
        # + 1 because of self
        try:
            self.logger.info(
                "_%s_ %s %s",
                method_type,
                [
                    f"{method_data.args[index + 1]}={value}"
                    for index, value in enumerate(args)
                ],
                kwargs,
            )
        except IndexError:
            raise IndexError(
                f"Too many arguments for {mname}. Maybe you used positional arguments intead of key-value arguments?"
            ) from None

        res = method(self, *args, **kwargs)

        self.logger.debug("_%s_ --success--", method_type)
        return res

    return wrapper


@logged
class Client:
    """
    Session wrapper. Cached listings go through `cache`
    (anything with fetch/read/delete).
    """

    def __init__(self, url=URL, engine=None, cache=None, config=None):
        config = config or {}
        engine = engine or create_engine(url)
        self.logger.info("Started %s. Engine: %s", self.__class__.__name__, engine.url)

        Session = sessionmaker(bind=engine, **config)  # pylint: --disable=C0103
        self.session = Session()
        self.cache = cache if cache is not None else MemoryCache()

    def close(self):
        self.session.close()

    # low level
    @loggedmethod
    def _get(self, Obj, /, **kwargs):
        """Low level GET implementation"""
        query = self.session.query(Obj)
        for k, v in kwargs.items():
            query = query.filter(getattr(Obj, k) == v)

        return query

    @loggedmethod
    def _create(self, Obj, /, **kwargs):
        """Low level insert implementation"""
        obj = Obj(**kwargs)
        self.session.add(obj)

        return obj

    @loggedmethod
    def delete(self, obj, /):
        self.session.delete(obj)

    def commit(self):
        self.session.commit()

    # post
    def create_post(self, /, **kwargs):
        return self._create(Post, **kwargs)

    def get_post(self, /, **kwargs):
        return self._get(Post, **kwargs)

    # comment
    def create_comment(self, post, /, **kwargs):
        return self._create(Comment, post=post, **kwargs)

    def get_comment(self, /, **kwargs):
        return self._get(Comment, **kwargs)

    def count_posts(self):
        return self.session.query(func.count(Post.id)).scalar()

    def posts_with_comments(self):
        return (
            self.session.query(Post)
            .options(selectinload(Post.comments))
            .order_by(Post.id)
            .all()
        )

    # cached listings
    @benchmark
    def cached_posts(self):
        """Plain pickled records. Only here to compare against"""
        return self.cache.fetch(KEYS["posts"], self.posts_with_comments)

    @benchmark
    def cached_compact_posts(self):
        compacter = self.cache.fetch(
            KEYS["posts_compact"],
            lambda: Compacter(self.posts_with_comments()),
        )

        return compacter.data if compacter is not None else None

    @benchmark
    def comments_stats(self):
        def stats():
            return Compacter(
                [
                    {"post": post, "comments_count": len(post.comments)}
                    for post in self.posts_with_comments()
                ]
            )

        compacter = self.cache.fetch(KEYS["comments_stats"], stats)

        return compacter.data if compacter is not None else None

    def expire_posts(self):
        """Drop every cached listing of posts"""
        for key in KEYS.values():
            self.cache.delete(key)
