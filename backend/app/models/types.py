import json

from sqlalchemy import Enum as SAEnum, Text
from sqlalchemy.types import TypeDecorator


class CaseInsensitiveEnum(SAEnum):
    """Enum column type that stores ``.value`` and accepts any casing on the way in.

    Values arriving from forms or from Google's extension properties are plain
    strings, sometimes upper-cased; they are normalised before binding.
    """

    def __init__(self, enum_cls, **kwargs):
        self._enum_cls = enum_cls
        self._enum_kwargs = kwargs.copy()
        kwargs.setdefault("values_callable", lambda enum: [e.value for e in enum])
        super().__init__(enum_cls, **kwargs)

    def adapt(self, impltype, **kw):
        params = {**self._enum_kwargs, **kw}
        return CaseInsensitiveEnum(self._enum_cls, **params)

    def bind_processor(self, dialect):
        parent = super().bind_processor(dialect)

        def process(value):
            if value is None:
                return None
            value = value.lower() if isinstance(value, str) else value.value
            return parent(value) if parent else value

        return process

    def result_processor(self, dialect, coltype):
        parent = super().result_processor(dialect, coltype)

        def process(value):
            if value is None:
                return None
            if isinstance(value, str):
                value = value.lower()
            return parent(value) if parent else value

        return process


class StringList(TypeDecorator):
    """List of strings persisted as a JSON array in a TEXT column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps([str(item) for item in value])

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return list(json.loads(value))
