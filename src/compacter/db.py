"""
ORM layer for the DB
"""
import logging
import re

from sqlalchemy import Column, create_engine, inspect
from sqlalchemy import (
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    func,
)
from sqlalchemy.orm import as_declarative, declared_attr, relationship

from compacter.conf import settings
from compacter.schema import models

logger = logging.getLogger("user_info." + __name__)


@as_declarative()
class Base:
    """Automated table name, surrogate pk, and serializing"""

    @declared_attr
    def __tablename__(cls):  # pylint: --disable=no-self-argument
        cls_name = cls.__name__
        table_name = list(cls_name)
        for index, match in enumerate(re.finditer("[A-Z]", cls_name[1:])):
            table_name.insert(match.end() + index, "_")
        table_name = "".join(table_name).lower()
        return table_name

    def as_dict(self):
        # only what is loaded. Records coming from the cache are detached
        # and touching an unloaded column would raise
        loaded = inspect(self).dict
        return {
            prop.key: loaded[prop.key]
            for prop in inspect(type(self)).column_attrs
            if prop.key in loaded
        }

    def __str__(self):
        return f"[ {self.__class__.__name__} ] ({self.as_dict()})"

    def __repr__(self):
        return self.__str__()

    def __eq__(self, other):
        """
        Same class and same id. Records without an id (or with an expired
        one) are only equal to themselves.
        """
        if self is other:
            return True
        if type(other) is not type(self):
            return NotImplemented
        pk = inspect(self).dict.get("id")
        return pk is not None and pk == inspect(other).dict.get("id")

    def __hash__(self):
        pk = inspect(self).dict.get("id")
        if pk is None:
            return object.__hash__(self)
        return hash((type(self), pk))

    id = Column(Integer, primary_key=True, nullable=False)


models.add_base(Base)


class Post(Base):

    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    # drafts never go to the cache
    draft = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )

    def do_not_cache(self):
        state = inspect(self)
        if "draft" in state.dict:
            return bool(state.dict["draft"])
        # expired or deferred on a stored post, it may well be a draft
        return state.has_identity

    def __str__(self):
        return f"[{self.__class__.__name__}] ({self.as_dict().get('title')})"


class Comment(Base):

    body = Column(Text, nullable=False)
    post_id = Column(None, ForeignKey("post.id", ondelete="CASCADE"), nullable=False, index=True)
    post = relationship("Post", back_populates="comments")


def create_db(name=settings.DATABASES["default"]["engine"], **config):
    """
    Create the schema (if missing) and return the engine
    """
    engine = create_engine(name, **config)
    Base.metadata.create_all(engine)
    logger.info("Created schema at %s", engine.url)

    return engine


def drop_db(engine=settings.DATABASES["default"]["engine"]):
    if isinstance(engine, str):
        engine = create_engine(engine)
    Base.metadata.drop_all(engine)
    logger.info("Dropped schema at %s", engine.url)
