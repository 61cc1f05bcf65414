"""
Relationship graph helpers.

Only relationships that are already loaded on an instance are walked; a
lazy loader is never fired. Which side of a bidirectional relationship is
skipped comes from the mapping itself (back_populates/backref): when the
walk reaches a record through a relationship, the inverse of that
relationship is not followed again.
"""
from collections.abc import Mapping

from sqlalchemy import inspect
from sqlalchemy.orm.attributes import set_committed_value

from compacter.exceptions import MalformedDumpError

COLLECTIONS = (list, tuple, set, frozenset)


def inverses(prop):
    """Relationships declared as the other side of `prop`"""
    # both sides are paired here once the mappers are configured
    return prop._reverse_property


def members(target):
    """Records held by a relationship value"""
    if target is None:
        return []
    if isinstance(target, Mapping):
        return list(target.values())
    if isinstance(target, COLLECTIONS):
        return list(target)
    return [target]


def loaded_relationships(record, via=None):
    """
    Map relationship key -> loaded value for `record`.

    :param via: the RelationshipProperty the walk came through, if any.
        Its inverse is left out.
    """
    state = inspect(record)
    skip = inverses(via) if via is not None else ()
    return {
        prop.key: state.dict[prop.key]
        for prop in state.mapper.relationships
        if prop.key in state.dict and prop not in skip
    }


def get_relationship(record, key):
    mapper = inspect(record).mapper
    try:
        return mapper.relationships[key]
    except KeyError:
        raise MalformedDumpError(
            f"{mapper.class_.__name__} has no relationship {key!r}"
        ) from None


def _check_shape(prop, target):
    is_collection = isinstance(target, COLLECTIONS) or isinstance(target, Mapping)
    if prop.uselist and not is_collection:
        raise MalformedDumpError(
            f"{prop} holds a collection but the dump has {type(target).__name__}"
        )
    if not prop.uselist and is_collection:
        raise MalformedDumpError(
            f"{prop} holds a single record but the dump has {type(target).__name__}"
        )
    for member in members(target):
        if not isinstance(member, prop.mapper.class_):
            raise MalformedDumpError(f"{prop} can't hold {member!r}")


def attach(record, key, target):
    """
    Set an already loaded value for `record.<key>` and point scalar
    inverses of the attached records back at `record`.

    No events fire and nothing is fetched. Collection inverses are left
    unloaded: only part of that collection is known here.
    """
    prop = get_relationship(record, key)
    _check_shape(prop, target)

    records = members(target)
    set_committed_value(record, key, records if prop.uselist else target)

    for reverse in inverses(prop):
        if reverse.uselist:
            continue
        for member in records:
            if reverse.key not in inspect(member).dict:
                set_committed_value(member, reverse.key, record)
    return record
