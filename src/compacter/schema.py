"""
Attribute names per model.

A dump only stores column values positionally; the names are written once
per model in the envelope. On load they are matched against the columns the
live model has *now*, so a cached envelope survives added or dropped
columns.
"""
from sqlalchemy import inspect

from compacter.exceptions import CompactError, MalformedDumpError, UnknownModelError


class ModelRegistry:
    """
    Resolve mapped class names back to classes.

    Declarative bases are scanned lazily so models declared after
    `add_base` is called are still found.
    """

    def __init__(self, *bases):
        self._bases = list(bases)
        self._models = {}

    def add_base(self, base):
        if base not in self._bases:
            self._bases.append(base)
        return base

    def register(self, model):
        """Register a single mapped class. Works as a class decorator."""
        name = model.__name__
        known = self._models.get(name)
        if known is not None and known is not model:
            raise CompactError(f"Model name {name!r} is already taken by {known!r}")
        self._models[name] = model
        return model

    def resolve(self, name):
        try:
            return self._models[name]
        except KeyError:
            pass

        found = [
            mapper.class_
            for base in self._bases
            for mapper in base.registry.mappers
            if mapper.class_.__name__ == name
        ]
        if not found:
            raise UnknownModelError(name)
        if len(found) > 1:
            raise CompactError(f"Model name {name!r} is ambiguous: {found}")
        return self.register(found[0])

    def __contains__(self, name):
        try:
            self.resolve(name)
        except UnknownModelError:
            return False
        return True


# process-wide default; compacter.db adds its Base here
models = ModelRegistry()


def column_keys(model):
    """Column attribute keys of a mapped class, in mapper order"""
    return [prop.key for prop in inspect(model).column_attrs]


class AttributeSchema:
    """
    Field names per model for a single dump or load.

    Never shared between calls: every Compacter.dump/load builds its own.
    """

    def __init__(self, dumped=None, models=models):
        self.dumped = {} if dumped is None else dumped
        self.models = models
        self._live = {}

    def register_or_get(self, model, fields):
        """
        First caller wins. Later records of the same model are written
        against the list registered first, whatever `fields` they bring.
        """
        try:
            return self.dumped[model]
        except KeyError:
            self.dumped[model] = list(fields)
            return self.dumped[model]

    def dumped_fields(self, model):
        try:
            return self.dumped[model]
        except KeyError:
            raise MalformedDumpError(
                f"Envelope has a {model} record but no attribute list for it"
            ) from None

    def live_fields(self, model):
        if model not in self._live:
            self._live[model] = frozenset(column_keys(self.models.resolve(model)))
        return self._live[model]

    def __len__(self):
        return len(self.dumped)

    def __repr__(self):
        return f"<AttributeSchema {self.dumped}>"
