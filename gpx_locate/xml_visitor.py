"""Streaming XML visitor.

`iter_xml_events()` turns a byte stream into a lazy sequence of XML events
using expat, fed one chunk at a time so memory stays bounded by the chunk
size regardless of document size. `XmlParser` drives those events into a
visitor while keeping a stack of the currently open element names and the
last two event kinds.

A visitor is any object; the parser looks up the handlers below once, at
construction, and only calls the ones the visitor defines:

    handle_start(tag, attrs, parser)
    handle_end(tag, parser)
    handle_value(tag, value, parser)
    handle_chardata(data, parser)
    handle_comment(comment, parser)
    handle_processing_instruction(target, instruction, parser)
    handle_directive(directive, parser)

`handle_value` is the leaf-value shortcut: `<tag>text</tag>` (text directly
between a start tag and its end tag) is reported once, right after
`handle_end`, with the collected text.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, BinaryIO, Callable, Iterator, Protocol
from xml.parsers import expat

DEFAULT_CHUNK_SIZE = 64 * 1024


class XmlSyntaxError(ValueError):
    """The underlying decoder rejected the document."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class XmlPart(IntEnum):
    INITIAL = 0
    START_TAG = 1
    END_TAG = 2
    CHAR_DATA = 3


_STATE_NAMES = {
    XmlPart.INITIAL: "",
    XmlPart.START_TAG: "StartTag",
    XmlPart.END_TAG: "EndTag",
    XmlPart.CHAR_DATA: "CharData",
}


@dataclass(frozen=True, slots=True)
class StartElement:
    name: str
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EndElement:
    name: str


@dataclass(frozen=True, slots=True)
class CharData:
    data: str


@dataclass(frozen=True, slots=True)
class Comment:
    text: str


@dataclass(frozen=True, slots=True)
class ProcInst:
    target: str
    body: str


@dataclass(frozen=True, slots=True)
class Directive:
    text: str


XmlEvent = StartElement | EndElement | CharData | Comment | ProcInst | Directive


def _local_name(name: str) -> str:
    return name.rpartition(":")[2]


def iter_xml_events(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[XmlEvent]:
    """Yield XML events from a readable stream.

    Element and attribute names are reduced to their local part, so
    `xsi:schemaLocation` becomes `schemaLocation` and `xmlns:xsi` becomes
    `xsi`. Adjacent character data (including CDATA sections) is merged into
    a single `CharData`. The XML declaration is reported as a `ProcInst`
    with target "xml" and a DOCTYPE as a `Directive`.

    A stream that produces no bytes at all yields nothing.

    Raises:
        XmlSyntaxError: On malformed input. Events decoded before the error
            are yielded first.
    """

    pending: deque[XmlEvent] = deque()
    text: list[str] = []

    def flush_text() -> None:
        if text:
            pending.append(CharData("".join(text)))
            text.clear()

    def on_start(name: str, attrs: dict[str, str]) -> None:
        flush_text()
        pending.append(StartElement(_local_name(name), {_local_name(k): v for k, v in attrs.items()}))

    def on_end(name: str) -> None:
        flush_text()
        pending.append(EndElement(_local_name(name)))

    def on_comment(data: str) -> None:
        flush_text()
        pending.append(Comment(data))

    def on_pi(target: str, data: str) -> None:
        flush_text()
        pending.append(ProcInst(target, data))

    def on_xml_decl(version: str | None, encoding: str | None, standalone: int) -> None:
        body = f'version="{version or "1.0"}"'
        if encoding:
            body += f' encoding="{encoding}"'
        if standalone != -1:
            body += f' standalone="{"yes" if standalone else "no"}"'
        pending.append(ProcInst("xml", body))

    def on_doctype(name: str, system_id: str | None, public_id: str | None, has_internal_subset: int) -> None:
        flush_text()
        directive = f"DOCTYPE {name}"
        if public_id:
            directive += f' PUBLIC "{public_id}" "{system_id or ""}"'
        elif system_id:
            directive += f' SYSTEM "{system_id}"'
        pending.append(Directive(directive))

    parser = expat.ParserCreate()
    parser.buffer_text = True
    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end
    parser.CharacterDataHandler = text.append
    parser.CommentHandler = on_comment
    parser.ProcessingInstructionHandler = on_pi
    parser.XmlDeclHandler = on_xml_decl
    parser.StartDoctypeDeclHandler = on_doctype

    started = False
    while True:
        chunk = stream.read(chunk_size)
        if not chunk and not started:
            return
        started = True

        error: expat.ExpatError | None = None
        try:
            parser.Parse(chunk, not chunk)
        except expat.ExpatError as exc:
            error = exc

        if not chunk:
            flush_text()
        while pending:
            yield pending.popleft()

        if error is not None:
            raise XmlSyntaxError(f"XML解析失败：{error}", error.lineno, error.offset) from error
        if not chunk:
            return


class NodeStack:
    """Names of the currently open elements; the top is the deepest one."""

    def __init__(self) -> None:
        self._names: list[str] = []

    def push(self, name: str) -> None:
        self._names.append(name)

    def pop(self) -> str | None:
        return self._names.pop() if self._names else None

    def peek_from_end(self, i: int) -> str | None:
        """Name `i` levels above the top (0 is the top), or None past the root."""

        if i < 0 or i >= len(self._names):
            return None
        return self._names[-1 - i]

    @property
    def depth(self) -> int:
        return len(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __repr__(self) -> str:
        return "/" + "/".join(self._names)


class SimpleXmlVisitor(Protocol):
    def handle_start(self, tag: str, attrs: dict[str, str], parser: XmlParser) -> None: ...

    def handle_end(self, tag: str, parser: XmlParser) -> None: ...

    def handle_value(self, tag: str, value: str, parser: XmlParser) -> None: ...


class ExtendedXmlVisitor(SimpleXmlVisitor, Protocol):
    def handle_chardata(self, data: str, parser: XmlParser) -> None: ...

    def handle_comment(self, comment: str, parser: XmlParser) -> None: ...

    def handle_processing_instruction(self, target: str, instruction: str, parser: XmlParser) -> None: ...

    def handle_directive(self, directive: str, parser: XmlParser) -> None: ...


_EXTENDED_HANDLERS = (
    "handle_chardata",
    "handle_comment",
    "handle_processing_instruction",
    "handle_directive",
)


def _bind(visitor: Any, name: str) -> Callable[..., Any] | None:
    handler = getattr(visitor, name, None)
    return handler if callable(handler) else None


class XmlParser:
    """Drive a visitor with the events of one XML stream.

    Args:
        stream: Readable binary stream (text streams work too).
        visitor: Object implementing any subset of the handlers listed in
            the module docstring.
        report_margin_chardata: Also deliver every run of character data
            through `handle_chardata`.
        auto_trim_chardata: Strip surrounding whitespace from character
            data before storing/delivering it.

    Any exception raised by a handler stops the parse and propagates out of
    `parse()` unchanged.
    """

    def __init__(
        self,
        stream: BinaryIO,
        visitor: SimpleXmlVisitor | ExtendedXmlVisitor | Any,
        *,
        report_margin_chardata: bool = False,
        auto_trim_chardata: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._stream = stream
        self._visitor = visitor
        self._chunk_size = chunk_size
        self.report_margin_chardata = report_margin_chardata
        self.auto_trim_chardata = auto_trim_chardata

        self._node_stack = NodeStack()
        self._last_state = XmlPart.INITIAL
        self._last_last_state = XmlPart.INITIAL
        self._last_chardata = ""

        self._on_start = _bind(visitor, "handle_start")
        self._on_end = _bind(visitor, "handle_end")
        self._on_value = _bind(visitor, "handle_value")
        self._on_chardata = _bind(visitor, "handle_chardata")
        self._on_comment = _bind(visitor, "handle_comment")
        self._on_pi = _bind(visitor, "handle_processing_instruction")
        self._on_directive = _bind(visitor, "handle_directive")

    @property
    def node_stack(self) -> NodeStack:
        return self._node_stack

    @property
    def last_state(self) -> XmlPart:
        return self._last_state

    @property
    def last_last_state(self) -> XmlPart:
        """The state preceding the last state."""

        return self._last_last_state

    @property
    def last_state_name(self) -> str:
        return _STATE_NAMES[self._last_state]

    @property
    def is_extended(self) -> bool:
        """Whether the visitor implements the whole extended handler set."""

        return all(_bind(self._visitor, name) is not None for name in _EXTENDED_HANDLERS)

    def _push_state(self, state: XmlPart) -> None:
        self._last_last_state = self._last_state
        self._last_state = state

    def parse(self) -> None:
        """Consume the stream, dispatching every event to the visitor."""

        for event in iter_xml_events(self._stream, self._chunk_size):
            if isinstance(event, StartElement):
                self._handle_start(event)
            elif isinstance(event, EndElement):
                self._handle_end(event)
            elif isinstance(event, CharData):
                self._handle_chardata(event)
            elif isinstance(event, Comment):
                if self._on_comment is not None:
                    self._on_comment(event.text, self)
            elif isinstance(event, ProcInst):
                if self._on_pi is not None:
                    self._on_pi(event.target, event.body, self)
            elif isinstance(event, Directive):
                if self._on_directive is not None:
                    self._on_directive(event.text, self)

    def _handle_start(self, event: StartElement) -> None:
        self._node_stack.push(event.name)
        if self._on_start is not None:
            self._on_start(event.name, dict(event.attrs), self)
        self._push_state(XmlPart.START_TAG)

    def _handle_end(self, event: EndElement) -> None:
        self._node_stack.pop()
        if self._on_end is not None:
            self._on_end(event.name, self)

        if (
            self._on_value is not None
            and self._last_state == XmlPart.CHAR_DATA
            and self._last_last_state == XmlPart.START_TAG
        ):
            self._on_value(event.name, self._last_chardata, self)

        self._push_state(XmlPart.END_TAG)

    def _handle_chardata(self, event: CharData) -> None:
        data = event.data.strip() if self.auto_trim_chardata else event.data

        # Leaf values are reported from the end tag; this only covers the
        # margins between adjacent tags (and the values too, when enabled).
        if self.report_margin_chardata and self._on_chardata is not None:
            self._on_chardata(data, self)

        self._last_chardata = data
        self._push_state(XmlPart.CHAR_DATA)
