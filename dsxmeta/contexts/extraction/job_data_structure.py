"""
Job metadata data structures for the Extraction context.

Defines the normalized model recovered from a DSX document. One JobMetadata
is created per document by the assembler and is never mutated afterwards,
so every structure here is a frozen dataclass with tuple sequences.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, Optional, Tuple


def _to_plain(value: Any) -> Any:
    """Convert dataclasses/tuples to JSON-ready values, omitting absent optionals."""
    if is_dataclass(value):
        plain = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if item is None:
                continue
            plain[f.name] = _to_plain(item)
        return plain
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_plain(item) for key, item in value.items()}
    return value


@dataclass(frozen=True)
class Parameter:
    """
    Job parameter.

    Attributes:
        name: Parameter name
        prompt: Prompt shown at run time
        default: Default value
        help: Help text
        type: Decoded parameter type (e.g., "Date", "Unknown(42)")
    """

    name: str
    prompt: str = ""
    default: str = ""
    help: str = ""
    type: str = ""


@dataclass(frozen=True)
class Column:
    """Column definition carried by a stage's output link."""

    name: str
    type: str
    nullable: bool = True


@dataclass(frozen=True)
class Source:
    """
    Source stage.

    Attributes:
        name: Stage name
        type: Internal stage type, or "source" when the stage type is unknown
        sql: Normalized SELECT statement
        table: Table name (only when no SQL is present)
        connection: Server value with parameter tokens redacted
        database: Database name
        where_clauses: Conditions found after each WHERE keyword in sql
        columns: Output columns
    """

    name: str
    type: str
    sql: Optional[str] = None
    table: Optional[str] = None
    connection: Optional[str] = None
    database: Optional[str] = None
    where_clauses: Optional[Tuple[str, ...]] = None
    columns: Tuple[Column, ...] = ()


@dataclass(frozen=True)
class Target:
    """
    Target stage.

    Attributes:
        name: Stage name
        type: Internal stage type, "target", or "dataset" for dataset sweeps
        table: Table name
        dataset: Dataset file name
        mode: Write mode label
        connection: Server value with parameter tokens redacted
        database: Database name
        columns: Always empty; kept for model symmetry with Source
    """

    name: str
    type: str
    table: Optional[str] = None
    dataset: Optional[str] = None
    mode: Optional[str] = None
    connection: Optional[str] = None
    database: Optional[str] = None
    columns: Tuple[Column, ...] = ()


@dataclass(frozen=True)
class Transform:
    """Transformer stage with its assignment-like rules."""

    name: str
    rules: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Lookup:
    """
    Lookup stage configuration.

    Attributes:
        name: Stage name
        type: Always "Lookup"
        inputs: Input link names
        output: Output link name ("" when unknown)
        key_columns: Columns with a non-zero key position, in order
        fail_mode: Lookup failure action ("continue", "fail", ... or "")
        lookup_type: Decoded lookup method
        residual_handling: Residual handler value
    """

    name: str
    type: str = "Lookup"
    inputs: Tuple[str, ...] = ()
    output: str = ""
    key_columns: Tuple[str, ...] = ()
    fail_mode: str = ""
    lookup_type: Optional[str] = None
    residual_handling: Optional[str] = None


# =============================================================================
# SPECIALIZED STAGES
# =============================================================================


@dataclass(frozen=True)
class SpecializedStage:
    """
    Specialized stage with only a name and a type label.

    Used directly for stages whose decoder is a stub (Peek, SCD, Pivot,
    Unpivot, Change Capture, Checksum) and as the base of richer variants.
    """

    name: str
    type: str


@dataclass(frozen=True)
class SortKey:
    column: str
    direction: str


@dataclass(frozen=True)
class SortOptions:
    stable: Optional[bool] = None
    unique: Optional[bool] = None


@dataclass(frozen=True)
class SortStage(SpecializedStage):
    sort_keys: Tuple[SortKey, ...] = ()
    options: SortOptions = field(default_factory=SortOptions)


@dataclass(frozen=True)
class JoinKey:
    left: str
    right: str


@dataclass(frozen=True)
class JoinStage(SpecializedStage):
    join_type: str = "Unknown()"
    join_keys: Tuple[JoinKey, ...] = ()


@dataclass(frozen=True)
class Aggregation:
    output: str
    function: str
    input: str


@dataclass(frozen=True)
class AggregateStage(SpecializedStage):
    group_by: Tuple[str, ...] = ()
    aggregations: Tuple[Aggregation, ...] = ()


@dataclass(frozen=True)
class SurrogateKeyGeneratorStage(SpecializedStage):
    key_column: str = ""
    start_value: Optional[int] = None
    increment: Optional[int] = None


# =============================================================================
# FLOW AND ROOT AGGREGATE
# =============================================================================


@dataclass(frozen=True)
class FlowEdge:
    """Directed connection between two stages, by stage name."""

    from_stage: str
    to_stage: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_stage, "to": self.to_stage}


@dataclass(frozen=True)
class ExtractionMetadata:
    extracted_at: str
    schema_version: str


@dataclass(frozen=True)
class JobMetadata:
    """
    Normalized metadata of one DSX job.

    Best-effort: any attribute may be empty when its pattern did not match.
    Structural concerns are reported by the validator, not here.
    """

    name: str
    description: str
    type: str
    extraction_metadata: ExtractionMetadata
    parameters: Tuple[Parameter, ...] = ()
    sources: Tuple[Source, ...] = ()
    targets: Tuple[Target, ...] = ()
    transforms: Tuple[Transform, ...] = ()
    lookups: Tuple[Lookup, ...] = ()
    specialized_stages: Tuple[SpecializedStage, ...] = ()
    flow: Tuple[FlowEdge, ...] = ()

    def stage_names(self) -> Tuple[str, ...]:
        """
        Ordered, de-duplicated names of every extracted stage entity.

        Covers sources, targets, transforms, lookups and specialized stages.
        """
        names = []
        for group in (
            self.sources,
            self.targets,
            self.transforms,
            self.lookups,
            self.specialized_stages,
        ):
            for entity in group:
                if entity.name and entity.name not in names:
                    names.append(entity.name)
        return tuple(names)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-ready dict.

        Keys are snake_case; optional attributes that were not found are
        omitted. Flow edges use "from"/"to" keys.
        """
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "parameters": _to_plain(self.parameters),
            "sources": _to_plain(self.sources),
            "targets": _to_plain(self.targets),
            "transforms": _to_plain(self.transforms),
            "lookups": _to_plain(self.lookups),
            "specialized_stages": _to_plain(self.specialized_stages),
            "flow": [edge.to_dict() for edge in self.flow],
            "metadata": _to_plain(self.extraction_metadata),
        }
