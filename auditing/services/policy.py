"""
Event policy resolution.

Decides whether an event on a record should be audited, and produces the raw
(old_values, new_values) pair for it. Default events use the built-in diff
strategies; custom events map, by exact name or by a '*' pattern, to a
strategy registered on the record type with @audit_strategy.
"""
import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Pattern, Set, Tuple

from auditing.context import ExecutionContext
from auditing.exceptions import MissingStrategyError
from auditing.models.enums import DEFAULT_EVENTS, AuditEventName
from auditing.settings import Settings, get_settings
from auditing.utils import snake_case

AttributePair = Tuple[Dict[str, Any], Dict[str, Any]]


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Pattern:
    """
    Compile an event pattern. '*' matches any run of characters and the
    pattern must cover the whole event name: 'arch*', '*ted', 'archived'.
    """
    parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile("^" + ".*".join(parts) + "$")


def strategy_name_for(event: str) -> str:
    """Conventional strategy name: 'archived' -> 'get_archived_event_attributes'."""
    return f"get_{snake_case(event)}_event_attributes"


def normalize_events(events: Any) -> List[Tuple[str, Optional[str]]]:
    """
    Flatten an event configuration into (pattern, strategy_name) entries.

    Accepts a mapping {pattern: strategy or None} or a list mixing plain
    patterns and single-entry mappings.
    """
    if not events:
        return []
    if isinstance(events, dict):
        return [(pattern, strategy) for pattern, strategy in events.items()]

    entries = []
    for item in events:
        if isinstance(item, dict):
            entries.extend(item.items())
        else:
            entries.append((item, None))
    return entries


class EventPolicy:
    """Event and attribute policy of one record, read once per audit attempt."""

    def __init__(self, record: Any, settings: Optional[Settings] = None):
        self.record = record
        self.settings = settings or get_settings()

        configured = getattr(record, "audit_events", None)
        if configured is None:
            configured = self.settings.events
        self.entries = normalize_events(configured)

    # Gates

    def resolve_strategy(self, event: Optional[str]) -> Optional[str]:
        """Strategy name for an event, or None if the event is not audited."""
        if not event:
            return None
        if event in DEFAULT_EVENTS:
            return strategy_name_for(event)

        for pattern, strategy in self.entries:
            if pattern == event:
                return strategy or strategy_name_for(event)

        for pattern, strategy in self.entries:
            if "*" in pattern and compile_pattern(pattern).match(event):
                return strategy or strategy_name_for(event)

        return None

    def is_auditing_enabled(self, context: ExecutionContext) -> bool:
        if not self.settings.enabled:
            return False
        if context.running_in_console:
            return self.settings.console
        return True

    def is_auditable(self, event: Optional[str], context: Optional[ExecutionContext] = None) -> bool:
        context = context or ExecutionContext()
        if not self.is_auditing_enabled(context):
            return False
        # A restore also fires an update; only the restore is audited
        if event == AuditEventName.UPDATED.value and context.restoring:
            return False
        return self.resolve_strategy(event) is not None

    # Attribute filtering

    @property
    def strict(self) -> bool:
        value = getattr(self.record, "audit_strict", None)
        return self.settings.strict if value is None else bool(value)

    @property
    def audit_timestamps(self) -> bool:
        value = getattr(self.record, "audit_timestamps", None)
        return self.settings.timestamps if value is None else bool(value)

    @property
    def threshold(self) -> int:
        value = getattr(self.record, "audit_threshold", None)
        return self.settings.threshold if value is None else int(value)

    def excluded_attributes(self) -> Set[str]:
        record = self.record
        columns = record.get_column_names()
        excluded = set(record.audit_exclude)

        if self.strict:
            excluded.update(record.hidden)
            if record.visible:
                excluded.update(name for name in columns if name not in record.visible)

        if not self.audit_timestamps:
            excluded.update(record.timestamp_columns)

        excluded.update(record.get_key_names())
        return excluded

    def audited_attributes(self) -> List[str]:
        """Column names eligible for this record's audits, in column order."""
        include = self.record.audit_include
        excluded = self.excluded_attributes()
        return [
            name for name in self.record.get_column_names()
            if name not in excluded and (not include or name in include)
        ]

    def _audited_values(self) -> Dict[str, Any]:
        audited = set(self.audited_attributes())
        return {key: value for key, value in self.record.get_attributes().items() if key in audited}

    # Built-in strategies

    def get_created_event_attributes(self) -> AttributePair:
        return {}, self._audited_values()

    def get_updated_event_attributes(self) -> AttributePair:
        audited = set(self.audited_attributes())
        original = self.record.get_original()
        old, new = {}, {}
        for key, value in self.record.get_dirty().items():
            if key in audited:
                old[key] = original.get(key)
                new[key] = value
        return old, new

    def get_deleted_event_attributes(self) -> AttributePair:
        return self._audited_values(), {}

    def get_restored_event_attributes(self) -> AttributePair:
        # Reverse of a delete
        old, new = self.get_deleted_event_attributes()
        return new, old

    def get_retrieved_event_attributes(self) -> AttributePair:
        return {}, {}

    def builtin_strategies(self) -> Dict[str, Callable[[], AttributePair]]:
        return {
            strategy_name_for(AuditEventName.CREATED.value): self.get_created_event_attributes,
            strategy_name_for(AuditEventName.UPDATED.value): self.get_updated_event_attributes,
            strategy_name_for(AuditEventName.DELETED.value): self.get_deleted_event_attributes,
            strategy_name_for(AuditEventName.RESTORED.value): self.get_restored_event_attributes,
            strategy_name_for(AuditEventName.RETRIEVED.value): self.get_retrieved_event_attributes,
        }

    def attributes_for(self, event: str) -> AttributePair:
        """
        Raw (old_values, new_values) for an auditable event.

        Raises MissingStrategyError when a custom event resolves to a strategy
        the record type never registered.
        """
        strategy_name = self.resolve_strategy(event)
        if strategy_name is None:
            raise MissingStrategyError(event, strategy_name_for(event))

        registered = getattr(type(self.record), "__audit_strategies__", {})
        if strategy_name in registered:
            old, new = registered[strategy_name](self.record)
            return dict(old), dict(new)

        builtin = self.builtin_strategies().get(strategy_name)
        if builtin is None:
            raise MissingStrategyError(event, strategy_name)
        return builtin()
