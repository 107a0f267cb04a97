"""
Scalar extraction from DSX documents.

Each extractor is an independent pure function over the document text that
returns a mapping or a list of model entities. None of them raises on a
missing pattern: absent fields simply leave optional attributes unset.

Extraction runs in two passes. The first builds the stage lookup tables
(stage ID -> name, stage name -> internal stage type); the second resolves
entities that depend on stage identity against those tables.
"""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Iterator, List, Optional, Tuple

from dsxmeta.contexts.extraction.dsx_patterns import (
    DATASET_MODE_NAME,
    DATASET_NAME,
    JOB_TYPES,
    LINK_STAGE_TYPE,
    LOOKUP_STAGE_TYPE,
    LOOKUP_TYPES,
    PARAMETER_TYPES,
    QUOTED_VALUE,
    SOURCE_CONTEXT,
    TARGET_CONTEXT,
    TRANSFORM_CODE_NAME,
    WRITE_MODES,
    XML_PROPERTIES_NAME,
    ConnectorXmlPatterns,
    JobPatterns,
    SqlPatterns,
    StagePatterns,
    decode_code,
    format_sql_type,
)
from dsxmeta.contexts.extraction.job_data_structure import (
    Column,
    FlowEdge,
    Lookup,
    Parameter,
    Source,
    Target,
    Transform,
)
from dsxmeta.contexts.extraction.record_scanner import (
    Span,
    cdata_value,
    find_first,
    quoted_value,
    record_header,
    record_spans,
    subrecord_spans,
    unescape,
    value_blocks,
    window,
)
from dsxmeta.contexts.extraction.rule_filters import RuleFilter

DEFAULT_CONNECTION_PLACEHOLDER = "[PARAM]"
DEFAULT_STAGE_LOOKBEHIND = 500
DEFAULT_MODE_RADIUS = 200

_PIN_SUFFIX = re.compile(r"P\d+$")
_DATASET_MODE = re.compile(
    rf'\bName[ \t]+"{DATASET_MODE_NAME}"[\s\S]*?\bValue[ \t]+{QUOTED_VALUE}'
)


@dataclass(frozen=True)
class StageRecord:
    """
    One DSRECORD with its record-level fields resolved.

    Attributes:
        span: Record span (document offsets)
        identifier: Internal ID (e.g., "V0S1", "V0S1P1", "ROOT")
        name: Record name
        stage_type: Internal stage type (e.g., "PxSort"), None for non-stage records
        header: Record-level text before the first subrecord
    """

    span: Span
    identifier: Optional[str]
    name: Optional[str]
    stage_type: Optional[str]
    header: str

    @property
    def text(self) -> str:
        return self.span.text

    def subrecords(self) -> Iterator[Span]:
        """Yield this record's subrecords (offsets relative to the record text)."""
        return subrecord_spans(self.span.text)

    def pin_owner(self) -> Optional[str]:
        """Stage identifier owning this record if it is a pin (e.g., "V0S1P2" -> "V0S1")."""
        if not self.identifier or not _PIN_SUFFIX.search(self.identifier):
            return None
        return _PIN_SUFFIX.sub("", self.identifier)


def stage_records(document: str) -> List[StageRecord]:
    """
    Scan all records and resolve their record-level fields.

    Args:
        document: Raw DSX text

    Returns:
        StageRecord list in document order
    """
    records = []
    for span in record_spans(document):
        header = record_header(span.text)
        records.append(
            StageRecord(
                span=span,
                identifier=quoted_value("Identifier", header),
                name=quoted_value("Name", header),
                stage_type=quoted_value("StageType", header),
                header=header,
            )
        )
    return records


def subrecord_name(subrecord: Span) -> Optional[str]:
    """Return the Name field of a subrecord."""
    return quoted_value("Name", subrecord.text)


# =============================================================================
# JOB IDENTITY AND PARAMETERS
# =============================================================================


def extract_job_identity(document: str) -> Dict[str, str]:
    """
    Extract job name, description and decoded job type.

    The description is the first paragraph of FullDescription with line
    breaks folded into spaces, falling back to the single-line Description
    of the job's ROOT record.

    Args:
        document: Raw DSX text

    Returns:
        Dict with "name", "description" and "type" ("" when absent)
    """
    identity = {"name": "", "description": "", "type": ""}

    name_match = find_first(JobPatterns.IDENTIFIER, document)
    if name_match:
        identity["name"] = unescape(name_match.group(1))

    description_match = find_first(JobPatterns.FULL_DESCRIPTION, document)
    if description_match:
        full_description = description_match.group(1).strip()
        first_paragraph = JobPatterns.PARAGRAPH_BREAK.split(full_description)[0] or full_description
        identity["description"] = re.sub(r"\r?\n", " ", first_paragraph).strip()
    else:
        for record in stage_records(document):
            if record.identifier == "ROOT":
                identity["description"] = quoted_value("Description", record.header) or ""
                break

    type_match = find_first(JobPatterns.JOB_TYPE, document)
    if type_match:
        identity["type"] = decode_code(type_match.group(1), JOB_TYPES)

    return identity


def extract_parameters(document: str) -> List[Parameter]:
    """
    Extract job parameters from subrecords carrying a ParamType.

    Args:
        document: Raw DSX text

    Returns:
        Parameters in document order
    """
    parameters = []
    for subrecord in subrecord_spans(document):
        param_type = quoted_value("ParamType", subrecord.text)
        name = subrecord_name(subrecord)
        if param_type is None or not name:
            continue

        parameters.append(
            Parameter(
                name=name,
                prompt=quoted_value("Prompt", subrecord.text) or "",
                default=quoted_value("Default", subrecord.text) or "",
                help=quoted_value("HelpTxt", subrecord.text) or "",
                type=decode_code(param_type, PARAMETER_TYPES),
            )
        )
    return parameters


# =============================================================================
# STAGE TABLES (FIRST PASS)
# =============================================================================


def build_stage_id_table(document: str) -> Dict[str, str]:
    """
    Map internal stage IDs to stage names.

    Parses the two parallel pipe-delimited lists StageList and StageNames.
    Positions with a blank name are skipped.

    Example:
        StageList "V0S1|V0S2" + StageNames "Src|Tgt" -> {"V0S1": "Src", "V0S2": "Tgt"}
    """
    stage_list = find_first(JobPatterns.STAGE_LIST, document)
    stage_names = find_first(JobPatterns.STAGE_NAMES, document)
    if not stage_list or not stage_names:
        return {}

    stage_ids = unescape(stage_list.group(1)).split("|")
    names = [name.strip() for name in unescape(stage_names.group(1)).split("|")]

    table = {}
    for stage_id, name in zip(stage_ids, names):
        if name:
            table[stage_id] = name
    return table


def build_stage_type_table(document: str) -> Dict[str, str]:
    """
    Map stage names to internal stage types.

    Built from the record-level Name and StageType fields of every record.
    """
    table = {}
    for record in stage_records(document):
        if record.name and record.name.strip() and record.stage_type:
            table[record.name] = record.stage_type
    return table


# =============================================================================
# SOURCES AND TARGETS
# =============================================================================


def normalize_sql(sql: str) -> str:
    """
    Remove block comments and collapse whitespace to single spaces.

    Example:
        >>> normalize_sql("SELECT *\\n  FROM T /* all */")
        'SELECT * FROM T'
    """
    sql = SqlPatterns.BLOCK_COMMENT.sub(" ", sql)
    return SqlPatterns.WHITESPACE.sub(" ", sql).strip()


def extract_where_clauses(sql: str) -> List[str]:
    """
    Extract WHERE conditions from SQL.

    Each clause runs from WHERE to the next GROUP BY / ORDER BY / HAVING
    keyword or the end of the statement. Case-insensitive.

    Example:
        >>> extract_where_clauses("SELECT * FROM T WHERE X > 1 ORDER BY X")
        ['X > 1']
    """
    clauses = []
    for match in SqlPatterns.WHERE_CLAUSE.finditer(sql):
        clause = match.group(1).strip()
        if clause:
            clauses.append(clause)
    return clauses


def redact_connection(server: str, placeholder: str = DEFAULT_CONNECTION_PLACEHOLDER) -> str:
    """
    Replace job parameter tokens (#NAME#) in a connection string.

    Example:
        >>> redact_connection("#DB_SERVER#:1521")
        '[PARAM]:1521'
    """
    return ConnectorXmlPatterns.PARAMETER_TOKEN.sub(placeholder, server)


def extract_stage_columns(records: List[StageRecord], stage_id: Optional[str]) -> Tuple[Column, ...]:
    """
    Decode the columns a stage emits on its output pins.

    Output pins are the records listed in the stage's OutputPins field; when
    that field is absent every pin record of the stage is used. A column is
    a subrecord carrying a SqlType.

    Args:
        records: All records of the document
        stage_id: Internal stage ID (e.g., "V0S1")

    Returns:
        Columns in document order, de-duplicated by name
    """
    if not stage_id:
        return ()

    stage = next((r for r in records if r.identifier == stage_id), None)
    output_pins = None
    if stage is not None:
        pins_value = quoted_value("OutputPins", stage.header)
        if pins_value:
            output_pins = set(pins_value.split("|"))

    columns = []
    seen = set()
    for record in records:
        if record.pin_owner() != stage_id:
            continue
        if output_pins is not None and record.identifier not in output_pins:
            continue
        for subrecord in record.subrecords():
            sql_type = quoted_value("SqlType", subrecord.text)
            name = subrecord_name(subrecord)
            if sql_type is None or not name or name in seen:
                continue
            seen.add(name)
            columns.append(
                Column(
                    name=name,
                    type=format_sql_type(
                        sql_type,
                        quoted_value("Precision", subrecord.text),
                        quoted_value("Scale", subrecord.text),
                    ),
                    nullable=quoted_value("Nullable", subrecord.text) == "1",
                )
            )
    return tuple(columns)


def _connector_xml(record: StageRecord) -> Iterator[str]:
    """Yield the XMLProperties payloads of a stage record."""
    for subrecord in record.subrecords():
        if subrecord_name(subrecord) != XML_PROPERTIES_NAME:
            continue
        for block in value_blocks(record.text, scope=subrecord):
            if block.name == "Value":
                yield block.text
                break


def _build_source(
    record: StageRecord,
    xml: str,
    stage_type: str,
    records: List[StageRecord],
    placeholder: str,
) -> Optional[Source]:
    sql = None
    where_clauses = None
    table = None

    select_statement = cdata_value("SelectStatement", xml)
    if select_statement and select_statement.strip():
        sql = normalize_sql(select_statement)
        where_clauses = tuple(extract_where_clauses(sql)) or None
    else:
        table = cdata_value("TableName", xml)

    server = cdata_value("Server", xml)
    columns = extract_stage_columns(records, record.identifier)

    if not (sql or table or columns):
        return None

    return Source(
        name=record.name,
        type=stage_type or "source",
        sql=sql,
        table=table,
        connection=redact_connection(server, placeholder) if server is not None else None,
        database=cdata_value("Database", xml),
        where_clauses=where_clauses,
        columns=columns,
    )


def _build_target(record: StageRecord, xml: str, stage_type: str, placeholder: str) -> Optional[Target]:
    table = cdata_value("TableName", xml)
    if not table:
        return None

    write_mode = cdata_value("WriteMode", xml)
    server = cdata_value("Server", xml)

    return Target(
        name=record.name,
        type=stage_type or "target",
        table=table,
        mode=decode_code(write_mode, WRITE_MODES) if write_mode is not None else None,
        connection=redact_connection(server, placeholder) if server is not None else None,
        database=cdata_value("Database", xml),
    )


def extract_connector_stages(
    document: str,
    stage_types: Dict[str, str],
    records: Optional[List[StageRecord]] = None,
    connection_placeholder: str = DEFAULT_CONNECTION_PLACEHOLDER,
) -> Tuple[List[Source], List[Target]]:
    """
    Extract sources and targets from connector XML properties.

    Every XMLProperties block inside a named stage record is inspected for
    its <Context> discriminator (1 = source, 2 = target). Sources prefer the
    embedded SELECT statement and fall back to the table name. A source is
    kept only with SQL, a table or columns; a target only with a table.

    Args:
        document: Raw DSX text
        stage_types: Stage name -> internal stage type table
        records: Pre-scanned records (scanned here when omitted)
        connection_placeholder: Replacement for #Param# tokens

    Returns:
        (sources, targets) in document order
    """
    records = stage_records(document) if records is None else records
    sources: List[Source] = []
    targets: List[Target] = []

    for record in records:
        if not record.name:
            continue

        for xml in _connector_xml(record):
            context_match = ConnectorXmlPatterns.CONTEXT.search(xml)
            if not context_match:
                continue

            context = int(context_match.group(1))
            stage_type = stage_types.get(record.name)

            if context == SOURCE_CONTEXT:
                source = _build_source(record, xml, stage_type, records, connection_placeholder)
                if source:
                    sources.append(source)
            elif context == TARGET_CONTEXT:
                target = _build_target(record, xml, stage_type, connection_placeholder)
                if target:
                    targets.append(target)

    return sources, targets


# =============================================================================
# LOOKUPS
# =============================================================================


def extract_lookups(document: str, records: Optional[List[StageRecord]] = None) -> List[Lookup]:
    """
    Extract lookup stage configurations.

    The lookup's scope is its own stage record plus its pin records. Inputs
    are the pins listed in InputPins (any pin with a Partner when the list
    is absent); key columns are columns whose KeyPosition is non-zero.
    A lookup is kept only with inputs or key columns.

    Args:
        document: Raw DSX text
        records: Pre-scanned records (scanned here when omitted)

    Returns:
        Lookups in document order
    """
    records = stage_records(document) if records is None else records
    lookups = []

    for stage in records:
        if stage.stage_type != LOOKUP_STAGE_TYPE or not stage.name:
            continue

        pins = [r for r in records if stage.identifier and r.pin_owner() == stage.identifier]
        input_ids = (quoted_value("InputPins", stage.header) or "").split("|")
        output_ids = (quoted_value("OutputPins", stage.header) or "").split("|")

        inputs = []
        output = ""
        for pin in pins:
            if not pin.name:
                continue
            if pin.identifier in output_ids:
                output = output or pin.name
            elif pin.identifier in input_ids or (
                input_ids == [""] and quoted_value("Partner", pin.header) is not None
            ):
                inputs.append(pin.name)

        scope_texts = [stage.text] + [pin.text for pin in pins]
        key_columns = []
        fail_mode = ""
        lookup_type = None
        residual_handling = None
        for text in scope_texts:
            for subrecord in subrecord_spans(text):
                key_position = quoted_value("KeyPosition", subrecord.text)
                name = subrecord_name(subrecord)
                if key_position and key_position.strip("0") and name and name not in key_columns:
                    key_columns.append(name)

            fail_mode = fail_mode or quoted_value("LookupFail", text) or ""
            if lookup_type is None:
                code = quoted_value("LookupType", text)
                lookup_type = decode_code(code, LOOKUP_TYPES) if code is not None else None
            residual_handling = residual_handling or quoted_value("ResidualHandler", text)

        if not inputs and not key_columns:
            continue

        lookups.append(
            Lookup(
                name=stage.name,
                inputs=tuple(inputs),
                output=output,
                key_columns=tuple(key_columns),
                fail_mode=fail_mode,
                lookup_type=lookup_type,
                residual_handling=residual_handling,
            )
        )

    return lookups


# =============================================================================
# DATASET TARGETS
# =============================================================================


def extract_dataset_targets(
    document: str,
    stage_lookbehind: int = DEFAULT_STAGE_LOOKBEHIND,
    mode_radius: int = DEFAULT_MODE_RADIUS,
) -> List[Target]:
    """
    Sweep for file-dataset path assignments.

    A dataset path is a subrecord `Name "dataset"` with a quoted Value. Its
    owning stage is the first `Name "..."` in a fixed-size window before the
    assignment, and its write mode is a `datasetmode` value within a window
    around it. Both are proximity heuristics: in densely packed records a
    dataset can be attributed to the wrong stage. When no stage name is
    found the dataset file name is used.

    Args:
        document: Raw DSX text
        stage_lookbehind: Characters searched backwards for the stage name
        mode_radius: Characters searched on each side for the write mode

    Returns:
        Dataset targets in document order
    """
    targets = []
    for subrecord in subrecord_spans(document):
        name_match = find_first(StagePatterns.NAME, document, subrecord)
        if not name_match or unescape(name_match.group(1)) != DATASET_NAME:
            continue
        path = quoted_value("Value", subrecord.text)
        if not path:
            continue

        position = name_match.start()
        dataset = PurePosixPath(path).name or path

        behind = window(document, position - stage_lookbehind, position)
        stage_match = find_first(StagePatterns.NAME, document, behind)
        stage_name = unescape(stage_match.group(1)) if stage_match else dataset

        around = window(document, position - mode_radius, position + mode_radius)
        mode_match = find_first(_DATASET_MODE, document, around)

        targets.append(
            Target(
                name=stage_name,
                type="dataset",
                dataset=dataset,
                mode=unescape(mode_match.group(1)) if mode_match else None,
            )
        )
    return targets


# =============================================================================
# TRANSFORMS
# =============================================================================


def extract_transforms(
    document: str,
    rule_filter: RuleFilter,
    records: Optional[List[StageRecord]] = None,
) -> List[Transform]:
    """
    Extract transformer rules from generated-code blocks (TrxGenCode).

    Lines are denoised with the rule filter; a transform is kept only when
    at least one rule survives.

    Args:
        document: Raw DSX text
        rule_filter: Configured denylist filter
        records: Pre-scanned records (scanned here when omitted)

    Returns:
        Transforms in document order
    """
    records = stage_records(document) if records is None else records
    transforms = []

    for record in records:
        for subrecord in record.subrecords():
            if subrecord_name(subrecord) != TRANSFORM_CODE_NAME:
                continue
            block = next(
                (b for b in value_blocks(record.text, scope=subrecord) if b.name == "Value"), None
            )
            if block is None:
                continue

            rules = rule_filter.clean(block.text.strip().split("\n"))
            if rules:
                transforms.append(Transform(name=record.name or "unknown", rules=tuple(rules)))

    return transforms


# =============================================================================
# FLOW (SECOND PASS)
# =============================================================================


def extract_flow_edges(
    document: str,
    stage_ids: Dict[str, str],
    records: Optional[List[StageRecord]] = None,
) -> List[FlowEdge]:
    """
    Extract directed stage connections from link records.

    Link records carry FromStageID / ToStageID; both are resolved through
    the stage ID table, keeping the raw ID when it is not in the table.

    Args:
        document: Raw DSX text
        stage_ids: Stage ID -> name table
        records: Pre-scanned records (scanned here when omitted)

    Returns:
        Flow edges in document order
    """
    records = stage_records(document) if records is None else records
    edges = []

    for record in records:
        if record.stage_type != LINK_STAGE_TYPE:
            continue
        from_id = quoted_value("FromStageID", record.text)
        to_id = quoted_value("ToStageID", record.text)
        if from_id is None or to_id is None:
            continue
        edges.append(
            FlowEdge(
                from_stage=stage_ids.get(from_id, from_id),
                to_stage=stage_ids.get(to_id, to_id),
            )
        )

    return edges
