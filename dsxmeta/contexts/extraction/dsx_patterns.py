"""
Reusable patterns and code tables for DSX extraction.

This module provides regex patterns for the DSX dialect and the code tables
that turn enumerated integer codes into human-readable labels.

Pattern classes follow the usual convention:
- Dataclasses with frozen=True for immutability
- Class-level constants for patterns
- Helper functions that use these patterns
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

# =============================================================================
# SENTINELS
# =============================================================================

RECORD_BEGIN = "BEGIN DSRECORD"
RECORD_END = "END DSRECORD"
SUBRECORD_BEGIN = "BEGIN DSSUBRECORD"
SUBRECORD_END = "END DSSUBRECORD"
VALUE_DELIMITER = "=+=+=+="

UNKNOWN_LABEL = "Unknown({code})"

# =============================================================================
# CODE TABLES
# =============================================================================

JOB_TYPES = {
    "0": "Server Job",
    "1": "Parallel Job",
    "2": "Sequence Job",
    "3": "Server Routine",
}

PARAMETER_TYPES = {
    "1": "String",
    "2": "Integer",
    "3": "Float",
    "4": "Pathname",
    "5": "List",
    "6": "Date",
    "7": "Time",
    "8": "Timestamp",
    "13": "EnvironmentVar",
}

# Connector WriteMode is a zero-based index
WRITE_MODES = {
    "0": "Append",
    "1": "Create",
    "2": "Truncate",
    "3": "Replace",
}

LOOKUP_TYPES = {
    "0": "Normal",
    "1": "Sparse",
    "2": "Range",
}

JOIN_TYPES = {
    "0": "Inner",
    "1": "Left Outer",
    "2": "Right Outer",
    "3": "Full Outer",
}

AGGREGATE_FUNCTIONS = {
    "0": "SUM",
    "1": "AVG",
    "2": "MIN",
    "3": "MAX",
    "4": "COUNT",
    "5": "STDDEV",
    "6": "VARIANCE",
    "7": "FIRST",
    "8": "LAST",
}

SORT_DIRECTIONS = {
    "0": "Ascending",
    "1": "Descending",
}

SQL_TYPES = {
    "1": "CHAR",
    "2": "NUMERIC",
    "3": "DECIMAL",
    "4": "INTEGER",
    "5": "SMALLINT",
    "6": "FLOAT",
    "7": "REAL",
    "8": "DOUBLE",
    "9": "DATE",
    "10": "TIME",
    "11": "TIMESTAMP",
    "12": "VARCHAR",
    "-1": "LONGVARCHAR",
    "-2": "BINARY",
    "-3": "VARBINARY",
    "-4": "LONGVARBINARY",
    "-5": "BIGINT",
    "-6": "TINYINT",
    "-7": "BIT",
    "-8": "WCHAR",
    "-9": "WVARCHAR",
    "-10": "WLONGVARCHAR",
    "91": "TYPE_DATE",
    "92": "TYPE_TIME",
    "93": "TYPE_TIMESTAMP",
}

# SQL types that carry precision/scale in their rendered name
SIZED_SQL_TYPES = ("NUMERIC", "DECIMAL", "CHAR", "VARCHAR")


def decode_code(code: Optional[str], table: Mapping[str, str]) -> str:
    """
    Map an enumerated code to its label.

    Unrecognized codes are never dropped: they render as "Unknown(<code>)"
    with the original code string preserved inside the label.

    Args:
        code: Raw code string from the document (None or "" when absent)
        table: Code table (e.g., JOB_TYPES)

    Returns:
        Human-readable label

    Example:
        >>> decode_code("1", JOB_TYPES)
        'Parallel Job'
        >>> decode_code("9", JOB_TYPES)
        'Unknown(9)'
    """
    code = (code or "").strip()
    if code in table:
        return table[code]
    return UNKNOWN_LABEL.format(code=code)


def format_sql_type(sql_type: str, precision: Optional[str] = None, scale: Optional[str] = None) -> str:
    """
    Render a SQL type code with precision and scale where appropriate.

    Example:
        >>> format_sql_type("12", "50")
        'VARCHAR(50)'
        >>> format_sql_type("3", "10", "2")
        'DECIMAL(10,2)'
    """
    type_name = decode_code(sql_type, SQL_TYPES)

    if type_name in SIZED_SQL_TYPES and precision and precision != "0":
        if scale and scale != "0":
            return f"{type_name}({precision},{scale})"
        return f"{type_name}({precision})"

    return type_name


# =============================================================================
# FIELD PATTERNS
# =============================================================================

# Quoted DSX value; backslash escapes the next character
QUOTED_VALUE = r'"((?:\\.|[^"\\])*)"'


def field_pattern(field_name: str) -> re.Pattern:
    """
    Compile the pattern for a quoted field, e.g. `Name "Sort_1"`.

    The leading word boundary keeps `Name` from matching inside `StageName`.
    """
    return re.compile(rf"\b{re.escape(field_name)}[ \t]+{QUOTED_VALUE}")


def value_block_pattern(field_name: str) -> re.Pattern:
    """Compile the pattern for a multi-line field, e.g. `Value =+=+=+= ... =+=+=+=`."""
    delimiter = re.escape(VALUE_DELIMITER)
    return re.compile(rf"\b{re.escape(field_name)}[ \t]+{delimiter}(.*?){delimiter}", re.DOTALL)


def cdata_pattern(tag: str) -> re.Pattern:
    """Compile the pattern for a CDATA-wrapped XML element, e.g. `<TableName><![CDATA[T]]>`."""
    return re.compile(rf"<{re.escape(tag)}\b[^>]*>\s*<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


# =============================================================================
# JOB PATTERNS
# =============================================================================


@dataclass(frozen=True)
class JobPatterns:
    """
    Regex patterns for job-level fields.
    """

    IDENTIFIER: re.Pattern = field_pattern("Identifier")
    JOB_TYPE: re.Pattern = field_pattern("JobType")
    FULL_DESCRIPTION: re.Pattern = value_block_pattern("FullDescription")
    STAGE_LIST: re.Pattern = field_pattern("StageList")
    STAGE_NAMES: re.Pattern = field_pattern("StageNames")

    # Blank line between paragraphs (DSX exports use CRLF)
    PARAGRAPH_BREAK: re.Pattern = re.compile(r"\r?\n[ \t]*\r?\n")

    # Anything that marks a job export at all
    JOB_STRUCTURE: re.Pattern = re.compile(r"BEGIN DSJOB|BEGIN DSRECORD|\bIdentifier[ \t]+\"")


# =============================================================================
# CONNECTOR XML PATTERNS
# =============================================================================


@dataclass(frozen=True)
class ConnectorXmlPatterns:
    """
    Regex patterns for the XML fragments embedded in connector stages.

    Context 1 marks a source usage, context 2 a target usage.
    """

    CONTEXT: re.Pattern = re.compile(r"<Context\b[^>]*>\s*(\d+)\s*</Context>")

    # Job parameter references such as #DB_PASSWORD#
    PARAMETER_TOKEN: re.Pattern = re.compile(r"#[^#]+#")


SOURCE_CONTEXT = 1
TARGET_CONTEXT = 2


# =============================================================================
# SQL PATTERNS
# =============================================================================


@dataclass(frozen=True)
class SqlPatterns:
    """
    Regex patterns for light-weight SQL inspection (not a SQL parser).
    """

    BLOCK_COMMENT: re.Pattern = re.compile(r"/\*.*?\*/", re.DOTALL)
    WHITESPACE: re.Pattern = re.compile(r"\s+")

    # WHERE <condition> up to the next GROUP BY / ORDER BY / HAVING or end of string
    WHERE_CLAUSE: re.Pattern = re.compile(
        r"\bWHERE\b\s+(.*?)(?=\bGROUP\s+BY\b|\bORDER\s+BY\b|\bHAVING\b|$)",
        re.IGNORECASE | re.DOTALL,
    )


# =============================================================================
# STAGE PATTERNS
# =============================================================================


@dataclass(frozen=True)
class StagePatterns:
    """
    Regex patterns for stage records, pins and specialized-stage fields.

    Paired fields use a tempered token so a pair never spans into the next
    occurrence of its leading field.
    """

    NAME: re.Pattern = field_pattern("Name")

    # Sort
    SORT_KEY: re.Pattern = re.compile(
        rf'\bKey[ \t]+{QUOTED_VALUE}(?:(?!\bKey[ \t]+")[\s\S])*?\bSortDirection[ \t]+{QUOTED_VALUE}'
    )

    # Join
    JOIN_TYPE: re.Pattern = field_pattern("JoinType")
    JOIN_KEY: re.Pattern = re.compile(
        rf'\bLeftKey[ \t]+{QUOTED_VALUE}(?:(?!\bLeftKey[ \t]+")[\s\S])*?\bRightKey[ \t]+{QUOTED_VALUE}'
    )

    # Aggregate
    AGGREGATION: re.Pattern = re.compile(
        rf'\bAggregateField[ \t]+{QUOTED_VALUE}'
        rf'(?:(?!\bAggregateField[ \t]+")[\s\S])*?\bAggregateFunction[ \t]+{QUOTED_VALUE}'
        rf'(?:(?!\bAggregateField[ \t]+")[\s\S])*?\bInputField[ \t]+{QUOTED_VALUE}'
    )


# Internal stage type markers
LINK_STAGE_TYPE = "Link"
LOOKUP_STAGE_TYPE = "PxLookup"

# Subrecord names carrying payloads
XML_PROPERTIES_NAME = "XMLProperties"
TRANSFORM_CODE_NAME = "TrxGenCode"
DATASET_NAME = "dataset"
DATASET_MODE_NAME = "datasetmode"
