"""Unit tests for the DSX record scanner."""

import re

import pytest

from dsxmeta.contexts.extraction.record_scanner import (
    SpanKind,
    cdata_value,
    find_first,
    find_spans,
    quoted_value,
    quoted_values,
    record_header,
    record_spans,
    scan_spans,
    subrecord_spans,
    value_blocks,
    window,
)

DOCUMENT = """BEGIN DSJOB
   Identifier "JOB_A"
   BEGIN DSRECORD
      Identifier "V0S1"
      Name "Src"
      BEGIN DSSUBRECORD
         Name "XMLProperties"
         Value =+=+=+=
<Properties>END DSRECORD BEGIN DSSUBRECORD</Properties>
=+=+=+=
      END DSSUBRECORD
   END DSRECORD
   BEGIN DSRECORD
      Identifier "V0S2"
      Name "Tgt"
   END DSRECORD
END DSJOB
"""


@pytest.mark.unit
def test_record_spans_in_document_order():
    """Test that records are yielded in order with their text."""
    records = list(record_spans(DOCUMENT))

    assert len(records) == 2
    assert quoted_value("Identifier", records[0].text) == "V0S1"
    assert quoted_value("Identifier", records[1].text) == "V0S2"
    assert all(r.text.startswith("BEGIN DSRECORD") for r in records)
    assert all(r.text.endswith("END DSRECORD") for r in records)


@pytest.mark.unit
def test_sentinels_inside_values_are_ignored():
    """Test that BEGIN/END tokens inside a multi-line value are payload."""
    kinds = [span.kind for span in scan_spans(DOCUMENT)]

    assert kinds.count(SpanKind.RECORD) == 2
    assert kinds.count(SpanKind.SUBRECORD) == 1
    assert kinds.count(SpanKind.VALUE) == 1


@pytest.mark.unit
def test_subrecord_yielded_before_enclosing_record():
    """Test that block spans are yielded when their END sentinel is reached."""
    kinds = [span.kind for span in scan_spans(DOCUMENT) if span.kind is not SpanKind.VALUE]
    assert kinds[:2] == [SpanKind.SUBRECORD, SpanKind.RECORD]


@pytest.mark.unit
def test_value_block_name_and_body():
    """Test that value spans carry the field name and body text."""
    (block,) = list(value_blocks(DOCUMENT))

    assert block.name == "Value"
    assert "<Properties>" in block.text
    assert DOCUMENT[block.start : block.end] == block.text


@pytest.mark.unit
def test_scoped_queries_keep_document_offsets():
    """Test that scoped subrecord and value queries stay inside the scope."""
    first, second = list(record_spans(DOCUMENT))

    assert len(list(subrecord_spans(DOCUMENT, scope=first))) == 1
    assert list(subrecord_spans(DOCUMENT, scope=second)) == []
    assert list(value_blocks(DOCUMENT, scope=second)) == []


@pytest.mark.unit
def test_unterminated_blocks_are_dropped():
    """Test that a record without END is not yielded."""
    spans = list(scan_spans('BEGIN DSRECORD\n   Name "Orphan"\n'))
    assert spans == []


@pytest.mark.unit
def test_unmatched_end_is_ignored():
    """Test that a stray END sentinel does not produce a span."""
    spans = list(scan_spans("END DSRECORD\nBEGIN DSRECORD\nEND DSRECORD\n"))

    assert len(spans) == 1
    assert spans[0].start == len("END DSRECORD\n")


@pytest.mark.unit
def test_find_spans_bounded_by_scope():
    """Test that find_spans only matches inside the scope span."""
    pattern = re.compile(r'Name "([^"]+)"')
    _, second = list(record_spans(DOCUMENT))

    all_names = [m.group(1) for m in find_spans(pattern, DOCUMENT)]
    scoped_names = [m.group(1) for m in find_spans(pattern, DOCUMENT, second)]

    assert all_names == ["Src", "XMLProperties", "Tgt"]
    assert scoped_names == ["Tgt"]
    assert find_first(pattern, DOCUMENT, second).start() >= second.start


@pytest.mark.unit
def test_record_header_excludes_subrecords():
    """Test that record_header stops at the first subrecord."""
    first = next(record_spans(DOCUMENT))
    header = record_header(first.text)

    assert quoted_value("Name", header) == "Src"
    assert "XMLProperties" not in header


@pytest.mark.unit
def test_quoted_value_helpers():
    """Test field lookups, word boundaries and escapes."""
    text = 'StageName "Wrong"\nName "Right \\"quoted\\""\nName "Second"'

    assert quoted_value("Name", text) == 'Right "quoted"'
    assert quoted_values("Name", text) == ['Right "quoted"', "Second"]
    assert quoted_value("Missing", text) is None


@pytest.mark.unit
def test_cdata_value():
    """Test CDATA payload extraction from connector XML."""
    xml = "<Usage><TableName type='string'><![CDATA[DW.SALES]]></TableName></Usage>"

    assert cdata_value("TableName", xml) == "DW.SALES"
    assert cdata_value("SelectStatement", xml) is None


@pytest.mark.unit
def test_window_is_clamped():
    """Test that proximity windows are clamped to the document."""
    span = window("abcdef", -10, 3)

    assert span.kind is SpanKind.WINDOW
    assert (span.start, span.end, span.text) == (0, 3, "abc")
    assert window("abcdef", 4, 100).text == "ef"
