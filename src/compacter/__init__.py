"""Compact cache serialization for SQLAlchemy records"""
from compacter.codec import Compacter, Marker, RecordDump
from compacter.exceptions import (
    CompactError,
    CyclicGraphError,
    MalformedDumpError,
    UnknownModelError,
)
from compacter.schema import AttributeSchema, ModelRegistry, models

__version__ = "0.1.0"
