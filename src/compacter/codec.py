"""
Serializes collections of ORM records more compactly than pickling them.

Useful when the records end up in a cache that pickles its values
(memcached clients, compacter.cache.MemoryCache, ...). Attribute names are
written once per model instead of once per record, and only the
relationships that were already loaded come along; nothing is fetched
while dumping or loading.

Usage:

    compacter = Compacter(session.query(Post).first())
    cache.write("posts:last", compacter)
    last_post = cache.read("posts:last").data

Any nested structure works too (dicts, lists, tuples, sets):

    def comments_stats(client):
        compacter = client.cache.fetch("posts:comments_stats", lambda: Compacter([
            {"post": post, "comments_count": len(post.comments)}
            for post in client.posts_with_comments()
        ]))
        return compacter.data

Records whose do_not_cache() returns True are dropped from the structure
holding them: the dict pair disappears, the list shrinks. That's on
purpose.

Rebuilt records are detached from any session. Columns that were not
loaded when dumping (or that the model doesn't have anymore) stay
unloaded; so do relationships that weren't loaded.
"""
import enum
from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlalchemy import inspect
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.state import InstanceState

from compacter import schema
from compacter.exceptions import CyclicGraphError, MalformedDumpError
from compacter.graph import COLLECTIONS, attach, loaded_relationships
from compacter.log import logged


class Marker(enum.Enum):
    # dropped from the container holding it
    SKIP = "skip"
    # column wasn't loaded on that record
    UNSET = "unset"


@dataclass
class RecordDump:
    model: str
    values: list
    relations: dict = field(default_factory=dict)

    # by identity, so dumps can be dict keys and set members like records
    __hash__ = object.__hash__


def record_state(value):
    """InstanceState of a mapped instance, None for anything else"""
    state = inspect(value, raiseerr=False)
    return state if isinstance(state, InstanceState) else None


def materialize(model, fields):
    """
    Build a `model` instance from already loaded column values.

    Skips __init__, events and the session. If the primary key is complete
    the instance becomes detached (as if its session was closed), so it can
    be merged back with load=False.
    """
    mapper = inspect(model)
    record = mapper.class_manager.new_instance()
    for key, value in fields.items():
        set_committed_value(record, key, value)

    pk_keys = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
    if all(fields.get(key) is not None for key in pk_keys):
        make_transient_to_detached(record)
    return record


class Serializer:
    """One dump pass. Fills `schema` with the models it meets."""

    def __init__(self, schema):
        self.schema = schema
        self.records = 0
        self._path = []

    def serialize(self, value, via=None):
        if isinstance(value, Mapping):
            return self.serialize_mapping(value, via)
        if isinstance(value, COLLECTIONS):
            return self.serialize_collection(value, via)
        state = record_state(value)
        if state is not None:
            return self.serialize_record(value, state, via)
        return value

    def serialize_mapping(self, mapping, via=None):
        result = {}
        for key, value in mapping.items():
            key = self.serialize(key, via)
            value = self.serialize(value, via)
            if key is not Marker.SKIP and value is not Marker.SKIP:
                result[key] = value
        return result

    def serialize_collection(self, collection, via=None):
        items = [self.serialize(item, via) for item in collection]
        items = [item for item in items if item is not Marker.SKIP]
        if isinstance(collection, list):
            return items
        if isinstance(collection, tuple):
            return tuple(items)
        if isinstance(collection, frozenset):
            return frozenset(items)
        return set(items)

    def serialize_record(self, record, state, via=None):
        do_not_cache = getattr(record, "do_not_cache", None)
        if do_not_cache is not None and do_not_cache():
            return Marker.SKIP

        if any(record is seen for seen in self._path):
            raise CyclicGraphError(
                record, [type(seen).__name__ for seen in self._path + [record]]
            )

        model = type(record).__name__
        # every mapped column, whatever this record has loaded; the rest are UNSET
        names = self.schema.register_or_get(model, schema.column_keys(type(record)))
        values = [state.dict.get(name, Marker.UNSET) for name in names]

        relations = {}
        self._path.append(record)
        try:
            for key, target in loaded_relationships(record, via).items():
                dumped = self.serialize(target, via=state.mapper.relationships[key])
                if dumped is not Marker.SKIP:
                    relations[key] = dumped
        finally:
            self._path.pop()

        self.records += 1
        return RecordDump(model, values, relations)


class Deserializer:
    """One load pass against the attribute lists of an envelope"""

    def __init__(self, schema):
        self.schema = schema
        self.records = 0

    def deserialize(self, value):
        if isinstance(value, RecordDump):
            return self.deserialize_record(value)
        if isinstance(value, Mapping):
            return {
                self.deserialize(key): self.deserialize(item)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [self.deserialize(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.deserialize(item) for item in value)
        if isinstance(value, frozenset):
            return frozenset(self.deserialize(item) for item in value)
        if isinstance(value, set):
            return {self.deserialize(item) for item in value}
        if isinstance(value, Marker):
            raise MalformedDumpError(f"Unexpected {value} outside of a record")
        return value

    def deserialize_record(self, dump):
        model = self.schema.models.resolve(dump.model)
        names = self.schema.dumped_fields(dump.model)
        if len(names) != len(dump.values):
            raise MalformedDumpError(
                f"{dump.model} record has {len(dump.values)} values "
                f"for {len(names)} attributes"
            )
        if not isinstance(dump.relations, Mapping):
            raise MalformedDumpError(f"{dump.model} relations must be a mapping")

        live = self.schema.live_fields(dump.model)
        fields = {
            name: value
            for name, value in zip(names, dump.values)
            if name in live and value is not Marker.UNSET
        }
        record = materialize(model, fields)

        for key, dumped in dump.relations.items():
            attach(record, key, self.deserialize(dumped))

        self.records += 1
        return record


@logged
class Compacter:
    """
    Cache envelope for `data`.

    Pickling it dumps `data`; unpickling rebuilds it. Models are looked up
    by class name in `models` (compacter.schema.models unless overridden on
    the class or passed to load()).

    :attr dumped_attributes: attribute lists written by the last dump/load
    :attr actual_attributes: live columns of those models at load time
    """

    models = schema.models

    def __init__(self, data=None, models=None):
        self.data = data
        if models is not None:
            self.models = models
        self.dumped_attributes = {}
        self.actual_attributes = {}

    def dump(self):
        attributes = schema.AttributeSchema(models=self.models)
        serializer = Serializer(attributes)
        payload = serializer.serialize(self.data)
        if payload is Marker.SKIP:
            payload = None

        self.dumped_attributes = attributes.dumped
        self.logger.debug(
            "Dumped %d records of %d models", serializer.records, len(attributes)
        )
        return {"attributes": attributes.dumped, "data": payload}

    @classmethod
    def load(cls, envelope, models=None):
        compacter = cls(models=models)
        compacter.restore(envelope)
        return compacter

    def restore(self, envelope):
        try:
            dumped, payload = envelope["attributes"], envelope["data"]
        except (KeyError, TypeError):
            raise MalformedDumpError(
                "Envelope must have 'attributes' and 'data'"
            ) from None
        if not isinstance(dumped, Mapping):
            raise MalformedDumpError("Envelope attributes must be a mapping")

        attributes = schema.AttributeSchema(dumped, models=self.models)
        self.dumped_attributes = dumped
        self.actual_attributes = {
            model: schema.column_keys(self.models.resolve(model)) for model in dumped
        }

        deserializer = Deserializer(attributes)
        self.data = deserializer.deserialize(payload)
        self.logger.debug(
            "Loaded %d records of %d models", deserializer.records, len(attributes)
        )
        return self.data

    def __getstate__(self):
        return self.dump()

    def __setstate__(self, state):
        self.__init__()
        self.restore(state)

    def __eq__(self, other):
        return other.__class__ == self.__class__ and other.data == self.data

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.data!r}>"
