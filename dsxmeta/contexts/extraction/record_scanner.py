"""
Record scanning for DSX documents.

DSX has no published grammar and no reliable nesting-depth signal, so this
module does not build a parse tree. It tokenizes the block sentinels and
yields typed spans:

- RECORD:    BEGIN DSRECORD ... END DSRECORD
- SUBRECORD: BEGIN DSSUBRECORD ... END DSSUBRECORD
- VALUE:     the body of a multi-line field (`Value =+=+=+= ... =+=+=+=`)

Sentinels that appear inside a multi-line value are ignored. Extractors
re-scan inside a bounded span with find_spans() rather than trusting one
global structure.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional

from dsxmeta.contexts.extraction.dsx_patterns import (
    RECORD_BEGIN,
    RECORD_END,
    SUBRECORD_BEGIN,
    SUBRECORD_END,
    VALUE_DELIMITER,
    cdata_pattern,
    field_pattern,
)


class SpanKind(Enum):
    """Kind of a scanned span."""

    RECORD = "record"
    SUBRECORD = "subrecord"
    VALUE = "value"
    WINDOW = "window"


@dataclass(frozen=True)
class Span:
    """
    A region of a document.

    Attributes:
        kind: Span kind
        start: Offset of the first character (opening sentinel for blocks,
            first body character for values)
        end: Offset after the last character
        text: document[start:end]
        name: Field name for VALUE spans (e.g., "Value", "FullDescription")
    """

    kind: SpanKind
    start: int
    end: int
    text: str
    name: Optional[str] = None


_SENTINELS = re.compile(
    "|".join(
        re.escape(token)
        for token in (SUBRECORD_BEGIN, SUBRECORD_END, RECORD_BEGIN, RECORD_END, VALUE_DELIMITER)
    )
)

_BLOCK_KINDS = {
    RECORD_BEGIN: SpanKind.RECORD,
    RECORD_END: SpanKind.RECORD,
    SUBRECORD_BEGIN: SpanKind.SUBRECORD,
    SUBRECORD_END: SpanKind.SUBRECORD,
}

_FIELD_NAME_BEFORE_DELIMITER = re.compile(r"(\w+)[ \t]*$")


def scan_spans(document: str) -> Iterator[Span]:
    """
    Tokenize block sentinels and yield spans lazily.

    Block spans are yielded when their END sentinel is reached, so a
    subrecord is yielded before its enclosing record. Unterminated blocks
    and values are dropped. An END without a matching BEGIN is ignored.

    Args:
        document: Raw DSX text

    Yields:
        Span objects
    """
    open_blocks: List[tuple] = []
    value_start: Optional[int] = None
    value_name: Optional[str] = None

    for match in _SENTINELS.finditer(document):
        token = match.group(0)

        if token == VALUE_DELIMITER:
            if value_start is None:
                value_start = match.end()
                line_start = document.rfind("\n", 0, match.start()) + 1
                name_match = _FIELD_NAME_BEFORE_DELIMITER.search(
                    document, line_start, match.start()
                )
                value_name = name_match.group(1) if name_match else None
            else:
                yield Span(
                    SpanKind.VALUE,
                    value_start,
                    match.start(),
                    document[value_start : match.start()],
                    value_name,
                )
                value_start = None
                value_name = None
            continue

        # Sentinels inside a multi-line value are payload, not structure
        if value_start is not None:
            continue

        kind = _BLOCK_KINDS[token]
        if token.startswith("BEGIN"):
            open_blocks.append((kind, match.start()))
            continue

        # Close the innermost open block of the same kind
        for index in range(len(open_blocks) - 1, -1, -1):
            if open_blocks[index][0] is kind:
                _, start = open_blocks[index]
                del open_blocks[index:]
                yield Span(kind, start, match.end(), document[start : match.end()])
                break


def record_spans(document: str) -> Iterator[Span]:
    """Yield BEGIN DSRECORD ... END DSRECORD spans in document order."""
    return (span for span in scan_spans(document) if span.kind is SpanKind.RECORD)


def subrecord_spans(document: str, scope: Optional[Span] = None) -> Iterator[Span]:
    """
    Yield DSSUBRECORD spans, optionally restricted to a scope.

    Offsets are always relative to the full document.
    """
    for span in scan_spans(document):
        if span.kind is not SpanKind.SUBRECORD:
            continue
        if scope is not None and not (scope.start <= span.start and span.end <= scope.end):
            continue
        yield span


def value_blocks(document: str, scope: Optional[Span] = None) -> Iterator[Span]:
    """
    Yield multi-line value spans, optionally restricted to a scope.

    Offsets are always relative to the full document.
    """
    for span in scan_spans(document):
        if span.kind is not SpanKind.VALUE:
            continue
        if scope is not None and not (scope.start <= span.start and span.end <= scope.end):
            continue
        yield span


def find_spans(pattern: re.Pattern, document: str, scope: Optional[Span] = None) -> Iterator[re.Match]:
    """
    Find all matches of a compiled pattern, bounded by a scope.

    This is the single matching primitive extractors use. Bounding with
    pos/endpos keeps offsets relative to the full document.

    Args:
        pattern: Compiled regex
        document: Full document text
        scope: Optional span limiting the search window

    Yields:
        re.Match objects
    """
    if scope is None:
        return pattern.finditer(document)
    return pattern.finditer(document, scope.start, scope.end)


def find_first(pattern: re.Pattern, document: str, scope: Optional[Span] = None) -> Optional[re.Match]:
    """Return the first match of find_spans() or None."""
    return next(find_spans(pattern, document, scope), None)


def record_header(text: str) -> str:
    """
    Return the record-level fields of a record: the text before its first subrecord.

    Record-level fields (Identifier, Name, StageType, ...) precede subrecords,
    so this keeps a subrecord's Name from being mistaken for the record's.
    """
    cut = text.find(SUBRECORD_BEGIN)
    return text if cut == -1 else text[:cut]


def unescape(value: str) -> str:
    """Remove DSX backslash escapes from a quoted value."""
    return re.sub(r"\\(.)", r"\1", value)


def quoted_value(field_name: str, text: str) -> Optional[str]:
    """
    Return the first quoted value of a field, e.g. `Name "Sort_1"` -> "Sort_1".

    Args:
        field_name: DSX field name
        text: Text to search

    Returns:
        Unescaped value or None if the field is absent
    """
    match = field_pattern(field_name).search(text)
    return unescape(match.group(1)) if match else None


def quoted_values(field_name: str, text: str) -> List[str]:
    """Return all quoted values of a field in document order."""
    return [unescape(match.group(1)) for match in field_pattern(field_name).finditer(text)]


def cdata_value(tag: str, xml: str) -> Optional[str]:
    """
    Return the CDATA payload of the first matching XML element.

    Example:
        >>> cdata_value("TableName", "<TableName><![CDATA[SALES]]></TableName>")
        'SALES'
    """
    match = cdata_pattern(tag).search(xml)
    return match.group(1) if match else None


def window(document: str, start: int, end: int) -> Span:
    """
    Build a clamped proximity window over a document.

    Used where the dialect offers no structural anchor and a bounded text
    neighborhood is the best available heuristic.
    """
    start = max(0, start)
    end = min(len(document), end)
    return Span(SpanKind.WINDOW, start, end, document[start:end])
