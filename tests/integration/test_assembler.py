"""
Integration tests for job metadata assembly.

Runs the full extraction pipeline over the sample job export and checks
every entity class of the resulting model.
"""

from pathlib import Path

import pytest

from dsxmeta.contexts.extraction.assembler import assemble_job_metadata, has_job_structure
from dsxmeta.contexts.extraction.exceptions import DSXParsingError
from dsxmeta.contexts.extraction.job_data_structure import Column, FlowEdge, SortKey, SortStage
from dsxmeta.contexts.extraction.validator import validate_job_metadata

FIXTURES_PATH = Path(__file__).parent.parent / "fixtures"


@pytest.fixture(scope="module")
def sample_text():
    return (FIXTURES_PATH / "sample_job.dsx").read_text(encoding="utf-8")


@pytest.fixture(scope="module")
def job(sample_text):
    return assemble_job_metadata(sample_text, document_name="sample_job.dsx")


@pytest.mark.integration
def test_identity(job):
    """Test job name, type, description and metadata."""
    assert job.name == "JOB_A"
    assert job.type == "Parallel Job"
    assert job.description == "Loads daily sales into the warehouse from the staging schema."
    assert job.extraction_metadata.schema_version == "1.1.0"
    assert job.extraction_metadata.extracted_at


@pytest.mark.integration
def test_parameters(job):
    """Test decoded parameter types, including an unknown code."""
    assert [(p.name, p.type) for p in job.parameters] == [
        ("StartDt", "Date"),
        ("DB_SERVER", "Unknown(42)"),
    ]
    assert job.parameters[0].help == "First business day to load"


@pytest.mark.integration
def test_source(job):
    """Test the connector source with SQL, WHERE clause, connection and columns."""
    (source,) = job.sources

    assert source.name == "Src_Orders"
    assert source.type == "OracleConnectorPX"
    assert source.sql == (
        "SELECT ORDER_ID, CUST_ID, AMOUNT FROM STG.ORDERS "
        "WHERE ORDER_DT >= '2024-01-01' ORDER BY ORDER_ID"
    )
    assert source.where_clauses == ("ORDER_DT >= '2024-01-01'",)
    assert source.connection == "[PARAM]/ORCL"
    assert source.database == "SALES_DB"
    assert source.columns == (
        Column("ORDER_ID", "INTEGER", False),
        Column("CUST_ID", "VARCHAR(20)", False),
        Column("AMOUNT", "DECIMAL(12,2)", True),
    )


@pytest.mark.integration
def test_targets(job):
    """Test the connector target and the dataset target."""
    connector, dataset = job.targets

    assert connector.name == "Tgt_Sales"
    assert connector.table == "DW.SALES"
    assert connector.mode == "Truncate"
    assert connector.connection == "[PARAM]"
    assert connector.database == "DW"

    assert dataset.name == "Ds_Archive"
    assert dataset.type == "dataset"
    assert dataset.dataset == "sales.ds"
    assert dataset.mode == "Overwrite"


@pytest.mark.integration
def test_transform_rules(job):
    """Test that transformer boilerplate is filtered out."""
    (transform,) = job.transforms

    assert transform.name == "Xfm_Orders"
    assert transform.rules == (
        "lnk_out.ORDER_ID = lnk_enriched.ORDER_ID;",
        "lnk_out.CUST_ID = lnk_enriched.CUST_ID;",
        "lnk_out.AMOUNT_USD = lnk_enriched.AMOUNT * 1.1;",
        "lnk_out.LOAD_DT = CurrentDate();",
        "lnk_archive.ORDER_ID = lnk_enriched.ORDER_ID;",
        "lnk_archive.ARCHIVED_AT = CurrentTimestamp();",
    )


@pytest.mark.integration
def test_lookup(job):
    """Test lookup inputs, output and key columns."""
    (lookup,) = job.lookups

    assert lookup.name == "Lkp_Customer"
    assert lookup.inputs == ("lnk_orders", "lnk_customers")
    assert lookup.output == "lnk_enriched"
    assert lookup.key_columns == ("CUST_ID",)
    assert lookup.fail_mode == "continue"
    assert lookup.lookup_type == "Normal"


@pytest.mark.integration
def test_specialized_stages(job):
    """Test that only the sort stage is decoded."""
    (stage,) = job.specialized_stages

    assert isinstance(stage, SortStage)
    assert stage.name == "Sort_Orders"
    assert stage.sort_keys == (SortKey("CUST_ID", "Ascending"), SortKey("AMOUNT", "Descending"))
    assert stage.options.stable is True
    assert stage.options.unique is False


@pytest.mark.integration
def test_flow_resolved_to_names(job):
    """Test that link endpoints resolve to stage names."""
    assert job.flow == (
        FlowEdge("Src_Orders", "Lkp_Customer"),
        FlowEdge("Lkp_Customer", "Xfm_Orders"),
        FlowEdge("Xfm_Orders", "Sort_Orders"),
        FlowEdge("Sort_Orders", "Tgt_Sales"),
        FlowEdge("Xfm_Orders", "Ds_Archive"),
    )


@pytest.mark.integration
def test_sample_job_is_valid(job):
    """Test that the fully connected sample job has no validator issues."""
    result = validate_job_metadata(job)
    assert result.valid, result.issues


@pytest.mark.integration
def test_to_dict_shape(job):
    """Test the JSON-ready dict: snake_case keys, omitted optionals, from/to edges."""
    data = job.to_dict()

    assert set(data) == {
        "name",
        "description",
        "type",
        "parameters",
        "sources",
        "targets",
        "transforms",
        "lookups",
        "specialized_stages",
        "flow",
        "metadata",
    }
    assert data["flow"][0] == {"from": "Src_Orders", "to": "Lkp_Customer"}
    assert "table" not in data["sources"][0]
    assert data["sources"][0]["where_clauses"] == ["ORDER_DT >= '2024-01-01'"]
    assert data["specialized_stages"][0]["sort_keys"][1] == {"column": "AMOUNT", "direction": "Descending"}
    assert "residual_handling" not in data["lookups"][0]
    assert data["metadata"]["schema_version"] == "1.1.0"


@pytest.mark.integration
def test_parsing_is_idempotent(sample_text):
    """Test that parsing the same text twice yields equal models apart from the timestamp."""
    first = assemble_job_metadata(sample_text).to_dict()
    second = assemble_job_metadata(sample_text).to_dict()

    first.pop("metadata")
    second.pop("metadata")
    assert first == second


@pytest.mark.integration
def test_no_job_information():
    """Test that a document without job structure fails with a clear message."""
    text = (FIXTURES_PATH / "no_job_info.dsx").read_text(encoding="utf-8")

    assert not has_job_structure(text)
    with pytest.raises(DSXParsingError) as exc_info:
        assemble_job_metadata(text, document_name="no_job_info.dsx")

    assert exc_info.value.message == "No job information found"
    assert exc_info.value.document_name == "no_job_info.dsx"


@pytest.mark.integration
def test_partial_document_returns_best_effort_model():
    """Test that a bare job header yields a model with validator issues, not an error."""
    job = assemble_job_metadata('BEGIN DSJOB\n   Identifier "ONLY_NAME"\nEND DSJOB\n')
    result = validate_job_metadata(job)

    assert job.name == "ONLY_NAME"
    assert job.sources == ()
    assert result.valid is False
    assert result.issues == (
        "Missing job type",
        "No sources or targets found - possible parsing issue",
    )
