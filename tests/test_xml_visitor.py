from __future__ import annotations

import io

import pytest

from gpx_locate.xml_visitor import (
    CharData,
    Comment,
    Directive,
    EndElement,
    NodeStack,
    ProcInst,
    StartElement,
    XmlParser,
    XmlPart,
    XmlSyntaxError,
    iter_xml_events,
)


def _stream(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


class RecordingVisitor:
    """Implements every handler and records the calls."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.parents: list[str | None] = []

    def handle_start(self, tag, attrs, parser):
        self.calls.append(("start", tag, attrs))

    def handle_end(self, tag, parser):
        self.calls.append(("end", tag))

    def handle_value(self, tag, value, parser):
        self.parents.append(parser.node_stack.peek_from_end(0))
        self.calls.append(("value", tag, value))

    def handle_chardata(self, data, parser):
        self.calls.append(("chardata", data))

    def handle_comment(self, comment, parser):
        self.calls.append(("comment", comment))

    def handle_processing_instruction(self, target, instruction, parser):
        self.calls.append(("pi", target, instruction))

    def handle_directive(self, directive, parser):
        self.calls.append(("directive", directive))


def test_node_stack():
    s = NodeStack()
    assert s.pop() is None
    assert s.peek_from_end(0) is None
    for name in ("gpx", "trk", "trkseg"):
        s.push(name)
    assert s.depth == 3
    assert s.peek_from_end(0) == "trkseg"
    assert s.peek_from_end(2) == "gpx"
    assert s.peek_from_end(3) is None
    assert repr(s) == "/gpx/trk/trkseg"
    assert s.pop() == "trkseg"
    assert list(s) == ["gpx", "trk"]


def test_events_strip_namespace_prefixes():
    doc = '<a:root xmlns:a="urn:a" a:x="1"><a:child>t</a:child></a:root>'
    events = list(iter_xml_events(_stream(doc)))
    assert events == [
        StartElement("root", {"a": "urn:a", "x": "1"}),
        StartElement("child", {}),
        CharData("t"),
        EndElement("child"),
        EndElement("root"),
    ]


def test_events_merge_chardata_across_chunks():
    doc = "<r>" + "x" * 100 + "<![CDATA[<y>]]></r>"
    events = list(iter_xml_events(_stream(doc), chunk_size=7))
    assert events == [StartElement("r", {}), CharData("x" * 100 + "<y>"), EndElement("r")]


def test_events_declaration_doctype_comment_pi():
    doc = '<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE r>\n<!--hi--><?tool run?><r/>'
    events = list(iter_xml_events(_stream(doc)))
    assert events[0] == ProcInst("xml", 'version="1.0" encoding="UTF-8"')
    assert Directive("DOCTYPE r") in events
    assert Comment("hi") in events
    assert ProcInst("tool", "run") in events
    assert events[-2:] == [StartElement("r", {}), EndElement("r")]


def test_events_empty_stream():
    assert list(iter_xml_events(_stream(""))) == []


def test_events_malformed_yields_prefix_then_raises():
    got = []
    with pytest.raises(XmlSyntaxError) as exc_info:
        for event in iter_xml_events(_stream("<a><b></a>")):
            got.append(event)
    assert got[:2] == [StartElement("a", {}), StartElement("b", {})]
    assert exc_info.value.line == 1


def test_parser_leaf_value_shortcut():
    doc = "<gpx>\n  <trkpt lat='1'>\n    <ele> 12.5 </ele>\n    <empty></empty>\n  </trkpt>\n</gpx>"
    v = RecordingVisitor()
    XmlParser(_stream(doc), v).parse()

    values = [c for c in v.calls if c[0] == "value"]
    assert values == [("value", "ele", "12.5")]
    # the closing tag has been popped when the value is reported
    assert v.parents == ["trkpt"]
    # margin chardata is not reported by default
    assert not [c for c in v.calls if c[0] == "chardata"]
    # value comes right after the end of its element
    i = v.calls.index(("end", "ele"))
    assert v.calls[i + 1] == ("value", "ele", "12.5")


def test_parser_reports_margin_chardata_when_enabled():
    doc = "<r>\n  <a>x</a>\n</r>"
    v = RecordingVisitor()
    XmlParser(_stream(doc), v, report_margin_chardata=True).parse()
    assert [c[1] for c in v.calls if c[0] == "chardata"] == ["", "x", ""]


def test_parser_without_trim():
    v = RecordingVisitor()
    XmlParser(_stream("<r><a> x </a></r>"), v, auto_trim_chardata=False).parse()
    assert ("value", "a", " x ") in v.calls


def test_parser_partial_visitor():
    class OnlyValues:
        def __init__(self) -> None:
            self.values: list[tuple[str, str]] = []

        def handle_value(self, tag, value, parser):
            self.values.append((tag, value))

    v = OnlyValues()
    p = XmlParser(_stream("<!--c--><r><a>1</a><b>2</b></r>"), v, report_margin_chardata=True)
    assert not p.is_extended
    p.parse()
    assert v.values == [("a", "1"), ("b", "2")]


def test_parser_state_tracking():
    seen: list[tuple[str, XmlPart, XmlPart]] = []

    class StateVisitor:
        def handle_start(self, tag, attrs, parser):
            seen.append((tag, parser.last_state, parser.last_last_state))

    p = XmlParser(_stream("<r><a>1</a></r>"), StateVisitor())
    assert p.last_state == XmlPart.INITIAL
    assert p.last_state_name == ""
    p.parse()
    assert seen == [("r", XmlPart.INITIAL, XmlPart.INITIAL), ("a", XmlPart.START_TAG, XmlPart.INITIAL)]
    assert p.last_state == XmlPart.END_TAG
    assert p.last_state_name == "EndTag"
    assert p.node_stack.depth == 0


def test_parser_extended_dispatch():
    v = RecordingVisitor()
    p = XmlParser(_stream('<?xml version="1.0"?><!DOCTYPE r><!--c--><r/>'), v)
    assert p.is_extended
    p.parse()
    assert ("comment", "c") in v.calls
    assert ("directive", "DOCTYPE r") in v.calls
    assert ("pi", "xml", 'version="1.0"') in v.calls


def test_parser_handler_exception_propagates():
    class Boom(Exception):
        pass

    class Failing:
        def handle_start(self, tag, attrs, parser):
            if tag == "b":
                raise Boom(tag)

    with pytest.raises(Boom):
        XmlParser(_stream("<a><b/></a>"), Failing()).parse()
