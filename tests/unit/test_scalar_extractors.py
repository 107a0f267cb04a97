"""Unit tests for scalar extractors."""

import pytest

from dsxmeta.contexts.extraction.job_data_structure import Column, FlowEdge
from dsxmeta.contexts.extraction.rule_filters import RuleFilter
from dsxmeta.contexts.extraction.scalar_extractors import (
    build_stage_id_table,
    build_stage_type_table,
    extract_connector_stages,
    extract_dataset_targets,
    extract_flow_edges,
    extract_job_identity,
    extract_lookups,
    extract_parameters,
    extract_stage_columns,
    extract_transforms,
    extract_where_clauses,
    normalize_sql,
    redact_connection,
    stage_records,
)


def record(body: str) -> str:
    return f"BEGIN DSRECORD\n{body}\nEND DSRECORD\n"


def subrecord(body: str) -> str:
    return f"BEGIN DSSUBRECORD\n{body}\nEND DSSUBRECORD\n"


def xml_stage(name: str, stage_type: str, xml: str, extra: str = "") -> str:
    return record(
        f'Identifier "V0S1"\nName "{name}"\n{extra}StageType "{stage_type}"\n'
        + subrecord(f'Name "XMLProperties"\nValue =+=+=+=\n{xml}\n=+=+=+=')
    )


# =============================================================================
# JOB IDENTITY AND PARAMETERS
# =============================================================================


@pytest.mark.unit
def test_job_identity_scenario():
    """Test name, type and parameter extraction for a minimal job."""
    document = (
        'BEGIN DSJOB\nIdentifier "JOB_A"\n'
        + record(
            'Identifier "ROOT"\nName "JOB_A"\nJobType "1"\n'
            + subrecord('Name "StartDt"\nPrompt "Start"\nParamType "6"')
        )
        + "END DSJOB\n"
    )

    identity = extract_job_identity(document)
    parameters = extract_parameters(document)

    assert identity["name"] == "JOB_A"
    assert identity["type"] == "Parallel Job"
    assert len(parameters) == 1
    assert parameters[0].name == "StartDt"
    assert parameters[0].type == "Date"
    assert parameters[0].prompt == "Start"
    assert parameters[0].default == ""


@pytest.mark.unit
def test_description_first_paragraph_and_fallback():
    """Test FullDescription paragraph folding and the Description fallback."""
    full = record(
        'Identifier "ROOT"\nFullDescription =+=+=+=\nLine one\r\nline two\r\n\r\nSecond paragraph\n=+=+=+='
    )
    short = record('Identifier "ROOT"\nDescription "Short text"')

    assert extract_job_identity(full)["description"] == "Line one line two"
    assert extract_job_identity(short)["description"] == "Short text"
    assert extract_job_identity("")["description"] == ""


@pytest.mark.unit
def test_unknown_job_type():
    """Test that an unrecognized job type keeps its code."""
    assert extract_job_identity('JobType "7"')["type"] == "Unknown(7)"
    assert extract_job_identity('Identifier "X"')["type"] == ""


# =============================================================================
# STAGE TABLES
# =============================================================================


@pytest.mark.unit
def test_stage_id_table_skips_blank_names():
    """Test parsing parallel StageList/StageNames lists."""
    document = 'StageList "V0S1|V0S2|V0S3"\nStageNames "Src| |Tgt"'
    assert build_stage_id_table(document) == {"V0S1": "Src", "V0S3": "Tgt"}
    assert build_stage_id_table('StageList "V0S1"') == {}


@pytest.mark.unit
def test_stage_type_table_uses_record_level_fields():
    """Test that subrecord names are not mistaken for stage names."""
    document = record(
        'Identifier "V0S1"\nName "Sort_1"\nStageType "PxSort"\n'
        + subrecord('Name "keys"\nStageType "Nested"')
    ) + record('Identifier "V0S1P1"\nName "lnk"')

    assert build_stage_type_table(document) == {"Sort_1": "PxSort"}


# =============================================================================
# SOURCES AND TARGETS
# =============================================================================


@pytest.mark.unit
def test_normalize_sql_and_where_clauses():
    """Test SQL normalization and WHERE extraction."""
    sql = normalize_sql("SELECT *\n   FROM T /* comment */\n  WHERE X > 1\n ORDER BY X")

    assert sql == "SELECT * FROM T WHERE X > 1 ORDER BY X"
    assert extract_where_clauses(sql) == ["X > 1"]
    assert extract_where_clauses("SELECT * FROM T") == []


@pytest.mark.unit
def test_where_clauses_never_contain_trailing_keywords():
    """Test that clauses stop before GROUP BY, ORDER BY and HAVING."""
    sql = (
        "SELECT A FROM T WHERE A > 1 GROUP BY A HAVING COUNT(*) > 1 "
        "UNION SELECT B FROM U WHERE B = 2 ORDER BY 1"
    )
    clauses = extract_where_clauses(sql)

    assert clauses == ["A > 1", "B = 2"]
    for clause in clauses:
        assert "GROUP BY" not in clause
        assert "ORDER BY" not in clause
        assert "HAVING" not in clause


@pytest.mark.unit
def test_redact_connection():
    """Test replacing #Param# tokens in connection strings."""
    assert redact_connection("#DB_SERVER#:#PORT#/ORCL") == "[PARAM]:[PARAM]/ORCL"
    assert redact_connection("#HOST#", placeholder="***") == "***"
    assert redact_connection("plainhost") == "plainhost"


@pytest.mark.unit
def test_source_from_select_statement():
    """Test a Context 1 block with an embedded SELECT."""
    xml = (
        "<Properties><Common><Context type='int'>1</Context></Common>"
        "<Usage><SelectStatement><![CDATA[SELECT *\n  FROM T WHERE X > 1]]></SelectStatement>"
        "<TableName><![CDATA[IGNORED]]></TableName></Usage></Properties>"
    )
    document = xml_stage("Src", "DB2ConnectorPX", xml)

    sources, targets = extract_connector_stages(document, build_stage_type_table(document))

    assert targets == []
    assert len(sources) == 1
    source = sources[0]
    assert source.name == "Src"
    assert source.type == "DB2ConnectorPX"
    assert source.sql == "SELECT * FROM T WHERE X > 1"
    assert source.where_clauses == ("X > 1",)
    assert source.table is None


@pytest.mark.unit
def test_source_falls_back_to_table():
    """Test that sources without SQL use the table name and the literal source type."""
    xml = "<Context>1</Context><TableName><![CDATA[STG.ORDERS]]></TableName>"
    document = xml_stage("Src", "Unmapped", xml)

    sources, _ = extract_connector_stages(document, stage_types={})

    assert sources[0].table == "STG.ORDERS"
    assert sources[0].sql is None
    assert sources[0].where_clauses is None
    assert sources[0].type == "source"


@pytest.mark.unit
def test_target_with_write_mode_and_connection():
    """Test a Context 2 block with table, write mode and redacted server."""
    xml = (
        "<Context>2</Context><Server><![CDATA[#DB_SERVER#]]></Server>"
        "<Database><![CDATA[DW]]></Database>"
        "<WriteMode><![CDATA[1]]></WriteMode><TableName><![CDATA[DW.SALES]]></TableName>"
    )
    document = xml_stage("Tgt", "OracleConnectorPX", xml)

    _, targets = extract_connector_stages(document, build_stage_type_table(document))

    assert len(targets) == 1
    target = targets[0]
    assert target.table == "DW.SALES"
    assert target.mode == "Create"
    assert target.connection == "[PARAM]"
    assert target.database == "DW"
    assert target.columns == ()


@pytest.mark.unit
def test_unknown_write_mode_is_kept():
    """Test that an unrecognized write mode renders as Unknown(code)."""
    xml = "<Context>2</Context><WriteMode><![CDATA[9]]></WriteMode><TableName><![CDATA[T]]></TableName>"
    _, targets = extract_connector_stages(xml_stage("Tgt", "X", xml), {})
    assert targets[0].mode == "Unknown(9)"


@pytest.mark.unit
def test_stub_connectors_are_discarded():
    """Test that blocks without SQL, table or columns are dropped."""
    source_xml = "<Context>1</Context><Server><![CDATA[host]]></Server>"
    target_xml = "<Context>2</Context><WriteMode><![CDATA[0]]></WriteMode>"
    document = xml_stage("Src", "X", source_xml) + xml_stage("Tgt", "X", target_xml)

    assert extract_connector_stages(document, {}) == ([], [])


@pytest.mark.unit
def test_source_columns_from_output_pins():
    """Test decoding source columns from the stage's output pin records."""
    document = record(
        'Identifier "V0S1"\nName "Src"\nOutputPins "V0S1P2"\nStageType "X"\n'
    ) + record(
        'Identifier "V0S1P1"\nName "reject"\n'
        + subrecord('Name "IGNORED"\nSqlType "12"')
    ) + record(
        'Identifier "V0S1P2"\nName "out"\n'
        + subrecord('Name "ID"\nSqlType "4"\nNullable "0"')
        + subrecord('Name "CODE"\nSqlType "1"\nPrecision "3"\nNullable "1"')
    )

    columns = extract_stage_columns(stage_records(document), "V0S1")

    assert columns == (
        Column(name="ID", type="INTEGER", nullable=False),
        Column(name="CODE", type="CHAR(3)", nullable=True),
    )
    assert extract_stage_columns(stage_records(document), None) == ()


# =============================================================================
# LOOKUPS, DATASETS, TRANSFORMS
# =============================================================================


@pytest.mark.unit
def test_lookup_inputs_output_and_keys():
    """Test lookup inputs, output link, key columns and decoded options."""
    document = (
        record(
            'Identifier "V0S2"\nName "Lkp"\nInputPins "V0S2P1|V0S2P2"\nOutputPins "V0S2P3"\n'
            'StageType "PxLookup"\nLookupFail "fail"\nLookupType "1"\nResidualHandler "reject"'
        )
        + record('Identifier "V0S2P1"\nName "in_main"\nPartner "V0S1"')
        + record(
            'Identifier "V0S2P2"\nName "in_ref"\nPartner "V0S7"\n'
            + subrecord('Name "K1"\nKeyPosition "1"')
            + subrecord('Name "NOT_KEY"\nKeyPosition "0"')
            + subrecord('Name "K2"\nKeyPosition "2"')
        )
        + record('Identifier "V0S2P3"\nName "out"\nPartner "V0S3"')
    )

    (lookup,) = extract_lookups(document)

    assert lookup.name == "Lkp"
    assert lookup.inputs == ("in_main", "in_ref")
    assert lookup.output == "out"
    assert lookup.key_columns == ("K1", "K2")
    assert lookup.fail_mode == "fail"
    assert lookup.lookup_type == "Sparse"
    assert lookup.residual_handling == "reject"


@pytest.mark.unit
def test_lookup_without_inputs_or_keys_is_dropped():
    """Test that an isolated lookup record yields nothing."""
    document = record('Identifier "V0S2"\nName "Lkp"\nStageType "PxLookup"')
    assert extract_lookups(document) == []


@pytest.mark.unit
def test_dataset_target_sweep():
    """Test dataset path, owning stage and write mode resolution."""
    document = record(
        'Identifier "V0S6"\nName "Ds_Out"\nStageType "PxDataSet"\n'
        + subrecord('Name "dataset"\nValue "/data/out/orders.ds"')
        + subrecord('Name "datasetmode"\nValue "Append"')
    )

    (target,) = extract_dataset_targets(document)

    assert target.name == "Ds_Out"
    assert target.type == "dataset"
    assert target.dataset == "orders.ds"
    assert target.mode == "Append"


@pytest.mark.unit
def test_dataset_without_stage_name_uses_file_name():
    """Test the fallback when no stage name lies inside the lookbehind window."""
    document = "x" * 50 + "\n" + subrecord('Name "dataset"\nValue "/tmp/a.ds"')
    (target,) = extract_dataset_targets(document, stage_lookbehind=10)

    assert target.name == "a.ds"
    assert target.mode is None


@pytest.mark.unit
def test_transform_rules_are_filtered():
    """Test that generated-code boilerplate is removed from transform rules."""
    code = "\n".join(
        [
            "// out.A = in.A;",
            "int i = 0;",
            "initialize {",
            "  out.A   =  in.A;",
            "  if (x) out.B = NullSet;",
            "  out.C = in.C + 1;",
            "}",
        ]
    )
    document = record(
        'Identifier "V0S3"\nName "Xfm"\nStageType "CTransformerStage"\n'
        + subrecord(f'Name "TrxGenCode"\nValue =+=+=+=\n{code}\n=+=+=+=')
    )
    rule_filter = RuleFilter(
        exclude_prefixes=("//", "int"), exclude_substrings=("NullSet", "initialize")
    )

    (transform,) = extract_transforms(document, rule_filter)

    assert transform.name == "Xfm"
    assert transform.rules == ("out.A = in.A;", "out.C = in.C + 1;")


@pytest.mark.unit
def test_transform_without_rules_is_dropped():
    """Test that a code block with no surviving lines produces no transform."""
    document = record(
        'Identifier "V0S3"\nName "Xfm"\n'
        + subrecord('Name "TrxGenCode"\nValue =+=+=+=\nmainloop {\n}\n=+=+=+=')
    )
    assert extract_transforms(document, RuleFilter()) == []


# =============================================================================
# FLOW
# =============================================================================


@pytest.mark.unit
def test_flow_edges_resolve_stage_ids():
    """Test link resolution through the ID table, keeping unresolved raw IDs."""
    document = record(
        'Identifier "V0L1"\nName "l1"\nStageType "Link"\nFromStageID "V0S1"\nToStageID "V0S2"'
    ) + record(
        'Identifier "V0L2"\nName "l2"\nStageType "Link"\nFromStageID "V0S2"\nToStageID "V0S9"'
    ) + record('Identifier "V0S1"\nName "Src"\nFromStageID "V0S1"\nToStageID "V0S2"')

    edges = extract_flow_edges(document, {"V0S1": "Src", "V0S2": "Xfm"})

    assert edges == [FlowEdge("Src", "Xfm"), FlowEdge("Xfm", "V0S9")]
    assert edges[0].to_dict() == {"from": "Src", "to": "Xfm"}
