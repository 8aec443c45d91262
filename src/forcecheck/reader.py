"""Event-driven reader for flat ``key: scalar`` YAML documents.

The reader knows nothing about the destination schema.  It walks the parse
events produced by PyYAML, pairs each key scalar with the following value
scalar, and hands the raw text to whichever handler was registered for the
key.  Unknown keys are logged and skipped; only a malformed event stream (for
example a nested sequence or a bare top-level scalar) fails the parse.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

FieldHandler = Callable[[str], None]


class EventKind(enum.Enum):
    STREAM_START = "stream-start"
    STREAM_END = "stream-end"
    DOCUMENT_START = "document-start"
    DOCUMENT_END = "document-end"
    MAPPING_START = "mapping-start"
    MAPPING_END = "mapping-end"
    SEQUENCE_START = "sequence-start"
    SEQUENCE_END = "sequence-end"
    SCALAR = "scalar"
    ALIAS = "alias"


_YAML_EVENT_KINDS: Tuple[Tuple[type, EventKind], ...] = (
    (yaml.StreamStartEvent, EventKind.STREAM_START),
    (yaml.StreamEndEvent, EventKind.STREAM_END),
    (yaml.DocumentStartEvent, EventKind.DOCUMENT_START),
    (yaml.DocumentEndEvent, EventKind.DOCUMENT_END),
    (yaml.MappingStartEvent, EventKind.MAPPING_START),
    (yaml.MappingEndEvent, EventKind.MAPPING_END),
    (yaml.SequenceStartEvent, EventKind.SEQUENCE_START),
    (yaml.SequenceEndEvent, EventKind.SEQUENCE_END),
    (yaml.ScalarEvent, EventKind.SCALAR),
    (yaml.AliasEvent, EventKind.ALIAS),
)


@dataclass(frozen=True)
class ParseEvent:
    """One tokenizer event; ``value`` carries the text of scalar events."""

    kind: EventKind
    value: Optional[str] = None

    @classmethod
    def scalar(cls, text: str) -> "ParseEvent":
        return cls(EventKind.SCALAR, text)

    @classmethod
    def from_yaml(cls, event: yaml.Event) -> "ParseEvent":
        for event_type, kind in _YAML_EVENT_KINDS:
            if isinstance(event, event_type):
                value = event.value if kind is EventKind.SCALAR else None
                return cls(kind, value)
        raise TypeError(f"unsupported YAML event {type(event).__name__}")


class ReaderState(enum.Enum):
    START = "start"
    ACCEPT_KEY = "accept-key"
    ACCEPT_VALUE = "accept-value"
    STOP = "stop"
    ERROR = "error"


_TERMINAL_STATES = (ReaderState.STOP, ReaderState.ERROR)
_IGNORED_AT_START = (EventKind.STREAM_START, EventKind.DOCUMENT_START, EventKind.DOCUMENT_END)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of one reader pass.

    When ``ok`` is false the destination may hold whatever fields preceded
    the failure and should not be trusted.
    """

    ok: bool
    state: ReaderState
    ignored: Tuple[str, ...] = ()
    message: Optional[str] = None


class EventDrivenConfigReader:
    """Finite state machine dispatching ``key: scalar`` pairs to handlers."""

    def __init__(self, handlers: Mapping[str, FieldHandler]) -> None:
        self._handlers: Dict[str, FieldHandler] = dict(handlers)
        self.state = ReaderState.START
        self._key: Optional[str] = None
        self._ignored: List[str] = []
        self._message: Optional[str] = None

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def reset(self) -> None:
        self.state = ReaderState.START
        self._key = None
        self._ignored = []
        self._message = None

    def consume(self, event: Union[ParseEvent, yaml.Event]) -> ReaderState:
        """Advance the state machine by one event and return the new state."""

        if not isinstance(event, ParseEvent):
            event = ParseEvent.from_yaml(event)
        kind = event.kind

        if self.state is ReaderState.START:
            if kind is EventKind.MAPPING_START:
                self.state = ReaderState.ACCEPT_KEY
            elif kind is EventKind.STREAM_END:
                self.state = ReaderState.STOP
            elif kind in _IGNORED_AT_START:
                pass
            else:
                self._fail(f"unexpected {kind.value} event at document start")
        elif self.state is ReaderState.ACCEPT_KEY:
            if kind is EventKind.SCALAR:
                self._key = event.value
                self.state = ReaderState.ACCEPT_VALUE
            elif kind is EventKind.MAPPING_END:
                self.state = ReaderState.STOP
            else:
                self._fail(f"unexpected {kind.value} event while expecting a key")
        elif self.state is ReaderState.ACCEPT_VALUE:
            if kind is EventKind.SCALAR:
                key = self._key or ""
                self._key = None
                self.state = ReaderState.ACCEPT_KEY
                self._dispatch(key, event.value or "")
            else:
                self._fail(f"unexpected {kind.value} event as value of '{self._key}'")
        return self.state

    def _fail(self, message: str) -> None:
        logger.error("%s", message)
        self._message = message
        self.state = ReaderState.ERROR

    def _dispatch(self, key: str, text: str) -> None:
        handler = self._handlers.get(key)
        if handler is None:
            logger.warning("ignoring unknown key/value pair: %s = %s", key, text)
            self._ignored.append(key)
            return
        logger.debug("loading %s", key)
        handler(text)

    def _result(self, ok: bool) -> ParseResult:
        return ParseResult(ok=ok, state=self.state, ignored=tuple(self._ignored), message=self._message)

    def parse_events(self, events: Iterable[Union[ParseEvent, yaml.Event]]) -> ParseResult:
        """Pull events until the reader stops, fails or the tokenizer errors."""

        self.reset()
        iterator = iter(events)
        while self.state not in _TERMINAL_STATES:
            try:
                event = next(iterator)
            except StopIteration:
                self._fail("event stream ended before the document was complete")
                break
            except yaml.YAMLError as exc:
                logger.error("tokenizer error: %s", exc)
                self._message = f"tokenizer error: {exc}"
                self.state = ReaderState.STOP
                return self._result(ok=False)
            self.consume(event)
        return self._result(ok=self.state is ReaderState.STOP)

    def parse_stream(self, stream: Union[str, TextIO]) -> ParseResult:
        return self.parse_events(yaml.parse(stream, Loader=yaml.SafeLoader))

    def parse_file(self, path: Union[str, Path]) -> ParseResult:
        path = Path(path)
        try:
            with path.open("r", encoding="utf8") as handle:
                return self.parse_stream(handle)
        except (OSError, UnicodeDecodeError) as exc:
            self.reset()
            self._message = f"cannot open yaml file '{path}': {exc}"
            logger.error("%s", self._message)
            return self._result(ok=False)


__all__ = [
    "EventDrivenConfigReader",
    "EventKind",
    "FieldHandler",
    "ParseEvent",
    "ParseResult",
    "ReaderState",
]
