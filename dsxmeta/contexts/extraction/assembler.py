"""
Semantic assembler.

Runs the extractors in dependency order and merges their output into one
JobMetadata:

1. Stage tables (ID -> name, name -> type)
2. Scalar extractors (identity, parameters, connectors, lookups, datasets, transforms)
3. Specialized-stage decoders
4. Flow edges, resolved through the ID table

Missing patterns never fail assembly. The only failure is a document with
no recognizable job structure at all.
"""

from typing import Optional

from dsxmeta.contexts.extraction.dsx_patterns import JobPatterns
from dsxmeta.contexts.extraction.exceptions import DSXParsingError
from dsxmeta.contexts.extraction.job_data_structure import ExtractionMetadata, JobMetadata
from dsxmeta.contexts.extraction.logger import log_assembly_summary, log_stage_tables
from dsxmeta.contexts.extraction.rule_filters import RuleFilter, load_extraction_config
from dsxmeta.contexts.extraction.scalar_extractors import (
    DEFAULT_CONNECTION_PLACEHOLDER,
    DEFAULT_MODE_RADIUS,
    DEFAULT_STAGE_LOOKBEHIND,
    build_stage_id_table,
    build_stage_type_table,
    extract_connector_stages,
    extract_dataset_targets,
    extract_flow_edges,
    extract_job_identity,
    extract_lookups,
    extract_parameters,
    extract_transforms,
    stage_records,
)
from dsxmeta.contexts.extraction.stage_decoders import decode_specialized_stages
from dsxmeta.utils.timestamp import now_exact

DEFAULT_SCHEMA_VERSION = "1.1.0"


def has_job_structure(document_text: str) -> bool:
    """Check whether a document looks like a job export at all."""
    return JobPatterns.JOB_STRUCTURE.search(document_text) is not None


def assemble_job_metadata(
    document_text: str,
    rule_filter: Optional[RuleFilter] = None,
    config: Optional[dict] = None,
    document_name: Optional[str] = None,
) -> JobMetadata:
    """
    Assemble the job-metadata model of one DSX document.

    Args:
        document_text: Decoded DSX text
        rule_filter: Transform rule filter (built from config when omitted)
        config: Extraction config dict (loaded from extraction_config.yaml when omitted)
        document_name: Name used in error messages

    Returns:
        JobMetadata (best-effort; validate separately)

    Raises:
        DSXParsingError: If the document carries no job structure
    """
    if not has_job_structure(document_text):
        raise DSXParsingError(
            "No job information found",
            document_name=document_name,
            snippet=document_text.strip()[:200] or None,
        )

    config = load_extraction_config() if config is None else config
    if rule_filter is None:
        rule_filter = RuleFilter.from_rules(config.get("transform_rules", {}))
    windows = config.get("dataset_windows", {})
    placeholder = config.get("connection_placeholder", DEFAULT_CONNECTION_PLACEHOLDER)

    # Pass 1: stage tables
    records = stage_records(document_text)
    stage_ids = build_stage_id_table(document_text)
    stage_types = build_stage_type_table(document_text)
    log_stage_tables(stage_ids, stage_types)

    # Pass 2: entities
    identity = extract_job_identity(document_text)
    sources, targets = extract_connector_stages(
        document_text, stage_types, records=records, connection_placeholder=placeholder
    )
    targets.extend(
        extract_dataset_targets(
            document_text,
            stage_lookbehind=windows.get("stage_lookbehind", DEFAULT_STAGE_LOOKBEHIND),
            mode_radius=windows.get("mode_radius", DEFAULT_MODE_RADIUS),
        )
    )

    job = JobMetadata(
        name=identity["name"],
        description=identity["description"],
        type=identity["type"],
        extraction_metadata=ExtractionMetadata(
            extracted_at=now_exact(),
            schema_version=str(config.get("schema_version", DEFAULT_SCHEMA_VERSION)),
        ),
        parameters=tuple(extract_parameters(document_text)),
        sources=tuple(sources),
        targets=tuple(targets),
        transforms=tuple(extract_transforms(document_text, rule_filter, records=records)),
        lookups=tuple(extract_lookups(document_text, records=records)),
        specialized_stages=tuple(decode_specialized_stages(document_text, stage_types, records=records)),
        flow=tuple(extract_flow_edges(document_text, stage_ids, records=records)),
    )

    log_assembly_summary(job)
    return job
