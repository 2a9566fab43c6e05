"""
Auditable mixin for SQLAlchemy models.

A model becomes a tracked record by mixing in Auditable next to the
declarative Base:

    class Article(Base, Auditable):
        __tablename__ = "articles"
        audit_exclude = ("content",)

Original values come from SQLAlchemy attribute history, so a record must be
loaded (or refreshed after a commit) before it is modified; an expired
attribute that is overwritten without being loaded has no known original.
"""
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import inspect as sa_inspect

from auditing.services.transition import transition

# Logical type name (and aliases) -> record class
_auditable_types: Dict[str, type] = {}


def audit_strategy(name: Any = None):
    """
    Register a record method as the attribute strategy for a custom event.

    The method returns ``(old_values, new_values)``. Used bare it registers
    under the method name; ``@audit_strategy("get_multi_event_attributes")``
    registers under an explicit name.
    """
    def decorate(func: Callable, strategy_name: Optional[str] = None) -> Callable:
        func.__audit_strategy__ = strategy_name or func.__name__
        return func

    if callable(name):
        return decorate(name)
    return lambda func: decorate(func, name)


def resolve_auditable_type(name: str) -> Optional[type]:
    """Class registered under a logical type name or one of its aliases."""
    return _auditable_types.get(name)


class Auditable:
    """Capability surface the audit builder and transition engine rely on."""

    # None means "use the global setting"
    audit_include = ()
    audit_exclude = ()
    audit_strict = None
    audit_timestamps = None
    audit_threshold = None
    audit_events = None
    audit_driver = None

    # Attribute name -> redactor/encoder class, instance or dotted path
    attribute_modifiers = MappingProxyType({})

    # Attributes kept out of to_dict(); strict mode keeps them out of audits too
    hidden = ()
    visible = ()

    timestamp_columns = ("created_at", "updated_at", "deleted_at")

    # Historical names stored audits may still carry for this type
    audit_type_aliases = ()
    __audit_type__ = None

    __audit_strategies__ = MappingProxyType({})

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        strategies: Dict[str, Callable] = {}
        for klass in reversed(cls.__mro__):
            for attribute in vars(klass).values():
                strategy_name = getattr(attribute, "__audit_strategy__", None)
                if strategy_name:
                    strategies[strategy_name] = attribute
        cls.__audit_strategies__ = MappingProxyType(strategies)

        _auditable_types[cls.get_morph_class()] = cls
        for alias in cls.audit_type_aliases:
            _auditable_types[alias] = cls

    # Identity

    @classmethod
    def get_class_path(cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}"

    @classmethod
    def get_morph_class(cls) -> str:
        """Logical type name stored on audits."""
        return cls.__audit_type__ or cls.get_class_path()

    @classmethod
    def get_type_names(cls) -> Tuple[str, ...]:
        return (cls.get_morph_class(), cls.get_class_path()) + tuple(cls.audit_type_aliases)

    def get_key_names(self) -> List[str]:
        mapper = sa_inspect(type(self))
        return [mapper.get_property_by_column(column).key for column in mapper.primary_key]

    def get_key_name(self) -> str:
        return self.get_key_names()[0]

    def get_key(self) -> Any:
        values = tuple(getattr(self, name) for name in self.get_key_names())
        return values[0] if len(values) == 1 else values

    # Attribute state

    def get_column_names(self) -> List[str]:
        return [attribute.key for attribute in sa_inspect(type(self)).column_attrs]

    def get_attributes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.get_column_names()}

    def get_original(self) -> Dict[str, Any]:
        """Values as last loaded from or written to the database."""
        state = sa_inspect(self)
        original = {}
        for name in self.get_column_names():
            history = state.attrs[name].history
            if history.deleted:
                original[name] = history.deleted[0]
            elif history.unchanged:
                original[name] = history.unchanged[0]
            else:
                original[name] = None
        return original

    def get_dirty(self) -> Dict[str, Any]:
        """Pending changes: attribute -> new value."""
        state = sa_inspect(self)
        dirty = {}
        for name in self.get_column_names():
            history = state.attrs[name].history
            if history.added:
                dirty[name] = history.added[0]
        return dirty

    def to_dict(self) -> Dict[str, Any]:
        """Attributes for default presentation, honouring hidden and visible."""
        data = self.get_attributes()
        if self.visible:
            data = {key: value for key, value in data.items() if key in self.visible}
        return {key: value for key, value in data.items() if key not in self.hidden}

    # Audit hooks

    def set_audit_event(self, event: Optional[str]) -> "Auditable":
        self._audit_event = event
        return self

    def get_audit_event(self) -> Optional[str]:
        return getattr(self, "_audit_event", None)

    def generate_tags(self) -> List[str]:
        return []

    def transform_audit(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def transition_to(self, audit: Any, old: bool = False) -> "Auditable":
        """Apply one side of a stored audit to this record as pending changes."""
        return transition(self, audit, use_old_values=old)
