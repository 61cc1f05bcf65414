"""Errors raised while compacting or restoring a graph of records"""


class CompactError(Exception):
    """Base class for everything the codec raises"""


class UnknownModelError(CompactError, LookupError):
    """A dumped model name doesn't map to any live mapped class"""

    def __init__(self, model):
        super().__init__(f"Unknown model {model!r}. Did you register its declarative base?")
        self.model = model


class MalformedDumpError(CompactError, ValueError):
    """The envelope doesn't match the shape the codec writes"""


class CyclicGraphError(CompactError, RecursionError):
    """A record shows up twice on the path being serialized"""

    def __init__(self, record, path):
        super().__init__(
            f"{record!r} was reached again through {' -> '.join(path)}. "
            "Declare the inverse (back_populates) or unload one side."
        )
        self.record = record
        self.path = path
