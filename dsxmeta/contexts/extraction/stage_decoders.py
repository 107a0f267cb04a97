"""
Specialized-stage decoders.

A static registry maps internal stage types (PxSort, PxJoin, ...) to a
decoder that turns one stage's record text into a typed SpecializedStage.
Stage types without a registered decoder get no specialized entry at all.

Decoders are total: a missing field leaves its attribute at the default.
"""

from typing import Callable, Dict, List, Optional

from dsxmeta.contexts.extraction.dsx_patterns import (
    AGGREGATE_FUNCTIONS,
    JOIN_TYPES,
    SORT_DIRECTIONS,
    StagePatterns,
    decode_code,
)
from dsxmeta.contexts.extraction.job_data_structure import (
    AggregateStage,
    Aggregation,
    JoinKey,
    JoinStage,
    SortKey,
    SortOptions,
    SortStage,
    SpecializedStage,
    SurrogateKeyGeneratorStage,
)
from dsxmeta.contexts.extraction.logger import _log_debug
from dsxmeta.contexts.extraction.record_scanner import quoted_value, quoted_values, unescape
from dsxmeta.contexts.extraction.scalar_extractors import StageRecord, stage_records

StageDecoder = Callable[[str, str], SpecializedStage]


def _flag(field_name: str, text: str) -> Optional[bool]:
    value = quoted_value(field_name, text)
    return None if value is None else value == "1"


def _integer(field_name: str, text: str) -> Optional[int]:
    value = quoted_value(field_name, text)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


# =============================================================================
# DECODERS
# =============================================================================


def decode_sort_stage(stage_name: str, text: str) -> SortStage:
    """
    Decode a PxSort stage.

    Each `Key` is paired with the nearest following `SortDirection` that
    precedes the next `Key`.

    Example:
        Key "CUST_ID" ... SortDirection "0"  ->  SortKey("CUST_ID", "Ascending")
    """
    sort_keys = tuple(
        SortKey(column=unescape(column), direction=decode_code(direction, SORT_DIRECTIONS))
        for column, direction in (m.groups() for m in StagePatterns.SORT_KEY.finditer(text))
    )
    return SortStage(
        name=stage_name,
        type="Sort",
        sort_keys=sort_keys,
        options=SortOptions(stable=_flag("Stable", text), unique=_flag("Unique", text)),
    )


def decode_join_stage(stage_name: str, text: str) -> JoinStage:
    """Decode a PxJoin stage: join type and LeftKey/RightKey pairs."""
    join_type_match = StagePatterns.JOIN_TYPE.search(text)
    join_type = decode_code(join_type_match.group(1) if join_type_match else "", JOIN_TYPES)

    join_keys = tuple(
        JoinKey(left=unescape(left), right=unescape(right))
        for left, right in (m.groups() for m in StagePatterns.JOIN_KEY.finditer(text))
    )
    return JoinStage(name=stage_name, type="Join", join_type=join_type, join_keys=join_keys)


def decode_aggregate_stage(stage_name: str, text: str) -> AggregateStage:
    """
    Decode a PxAggregate stage.

    Group-by columns come from every `GroupByField`; aggregations from
    AggregateField / AggregateFunction / InputField triples.
    """
    aggregations = tuple(
        Aggregation(
            output=unescape(output),
            function=decode_code(function, AGGREGATE_FUNCTIONS),
            input=unescape(source),
        )
        for output, function, source in (m.groups() for m in StagePatterns.AGGREGATION.finditer(text))
    )
    return AggregateStage(
        name=stage_name,
        type="Aggregate",
        group_by=tuple(quoted_values("GroupByField", text)),
        aggregations=aggregations,
    )


def decode_surrogate_key_stage(stage_name: str, text: str) -> SurrogateKeyGeneratorStage:
    """Decode a PxSurrogateKeyGenerator stage; non-integer start/increment are left unset."""
    return SurrogateKeyGeneratorStage(
        name=stage_name,
        type="Surrogate Key Generator",
        key_column=quoted_value("KeyName", text) or "",
        start_value=_integer("StartValue", text),
        increment=_integer("Increment", text),
    )


def _stub_decoder(label: str) -> StageDecoder:
    """Build a decoder that records only the stage name and a type label."""

    def decode(stage_name: str, text: str) -> SpecializedStage:
        return SpecializedStage(name=stage_name, type=label)

    decode.__name__ = f"decode_{label.lower().replace(' ', '_')}_stage"
    return decode


STAGE_DECODERS: Dict[str, StageDecoder] = {
    "PxSort": decode_sort_stage,
    "PxJoin": decode_join_stage,
    "PxAggregate": decode_aggregate_stage,
    "PxSurrogateKeyGenerator": decode_surrogate_key_stage,
    "PxPeek": _stub_decoder("Peek"),
    "PxSCD": _stub_decoder("Slowly Changing Dimension"),
    "PxPivot": _stub_decoder("Pivot"),
    "PxUnpivot": _stub_decoder("Unpivot"),
    "PxChangeCapture": _stub_decoder("Change Capture"),
    "PxChecksum": _stub_decoder("Checksum"),
}


# =============================================================================
# DISPATCH
# =============================================================================


def _find_stage_record(records: List[StageRecord], stage_name: str, stage_type: str) -> Optional[StageRecord]:
    for record in records:
        if record.name == stage_name and record.stage_type == stage_type:
            return record
    return None


def decode_specialized_stages(
    document: str,
    stage_types: Dict[str, str],
    records: Optional[List[StageRecord]] = None,
) -> List[SpecializedStage]:
    """
    Decode every stage whose internal type has a registered decoder.

    Iterates the stage name -> type table in insertion order, re-locates
    each stage's own record by name and type, and hands that record's text
    to its decoder.

    Args:
        document: Raw DSX text
        stage_types: Stage name -> internal stage type table
        records: Pre-scanned records (scanned here when omitted)

    Returns:
        Specialized stages in table order
    """
    records = stage_records(document) if records is None else records
    stages = []

    for stage_name, stage_type in stage_types.items():
        decoder = STAGE_DECODERS.get(stage_type)
        if decoder is None:
            continue

        record = _find_stage_record(records, stage_name, stage_type)
        if record is None:
            _log_debug(f"No record found for {stage_type} stage {stage_name!r}")
            continue

        stages.append(decoder(stage_name, record.text))

    return stages
