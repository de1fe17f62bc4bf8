"""Static catalogue of the warehouse data sources agents are built for."""
from __future__ import annotations

from typing import List, Optional

from beacon.core.models import (
    Column,
    DataSourceConfig,
    Dimension,
    Metric,
    SemanticModel,
    TableSchema,
)

_ANALYSIS_LIBRARIES = ["pandas", "numpy", "matplotlib", "seaborn", "plotly"]
_VARCHAR = "VARCHAR(16777216)"


def _varchar(name: str, description: str) -> Column:
    return Column(name=name, data_type=_VARCHAR, description=description)


NCC_FINANCIAL = DataSourceConfig(
    id="ncc-financial",
    name="NCC Financial Data",
    description="Net Cash Collected financial data by office, region, sector, and project",
    kind="snowflake",
    semantic_model=SemanticModel(
        id="ncc-model",
        name="NCC Financial Model",
        description=(
            "Net Cash Collected financial performance tracking by office, region, "
            "sector, and project"
        ),
        tables=[
            TableSchema(
                name="NCC_AGENT",
                schema="DATA",
                columns=[
                    _varchar("SECTOR", "Industry sector"),
                    _varchar("MONTH", "Month in YYYY-MM format"),
                    _varchar("CLIENT", "Client identifier"),
                    _varchar("PROJECT_ID", "Project identifier"),
                    Column("NCC", "NUMBER(38,0)", "Net Cash Collected amount"),
                    _varchar("REGION", "Geographic region"),
                    _varchar("SYSTEM", "System type (Oracle, Workday, etc.)"),
                    _varchar("REGION_STANDARD", "Standardized region name"),
                ],
            )
        ],
        metrics=[
            Metric("total_ncc", "Total NCC", "Sum of all Net Cash Collected", "SUM(NCC)", "currency", "sum"),
            Metric(
                "total_ncc_by_system",
                "Total NCC by System",
                "Sum of NCC grouped by system type",
                "SUM(NCC) GROUP BY SYSTEM",
                "currency",
                "sum",
            ),
            Metric("average_ncc", "Average NCC", "Average Net Cash Collected per project", "AVG(NCC)", "currency", "avg"),
        ],
        dimensions=[
            Dimension("system", "System", "System type (Oracle, Workday, etc.)", "NCC_AGENT", "SYSTEM"),
            Dimension("region", "Region", "Geographic region", "NCC_AGENT", "REGION"),
            Dimension("sector", "Sector", "Industry sector", "NCC_AGENT", "SECTOR"),
            Dimension(
                "month", "Month", "Month of financial data", "NCC_AGENT", "MONTH",
                hierarchies=["Year", "Quarter", "Month"],
            ),
        ],
    ),
    python_libraries=list(_ANALYSIS_LIBRARIES),
    custom_code='''
def ncc_performance_by_region(df):
    """NCC sum, mean and count per region"""

def ncc_performance_by_sector(df):
    """NCC sum, mean and count per sector"""

def monthly_ncc_trend(df):
    """Monthly NCC totals sorted by month"""
''',
)

ATTENDANCE_ANALYTICS = DataSourceConfig(
    id="attendance-analytics",
    name="Attendance Analytics",
    description="Office attendance tracking and analysis by cohort and organization",
    kind="snowflake",
    semantic_model=SemanticModel(
        id="attendance-model",
        name="Attendance Analytics Model",
        description="Office attendance tracking and analysis",
        tables=[
            TableSchema(
                name="ATTENDANCE_AGENT",
                schema="DATA",
                columns=[
                    _varchar("OFFICE", "Office location"),
                    Column("DATE", "DATE", "Date of attendance record"),
                    Column("HEADCOUNT", "NUMBER(38,0)", "Total headcount for the office"),
                    Column("PEOPLE_ATTENDED", "NUMBER(38,0)", "Number of people who attended"),
                    _varchar("COHORT", "Employee cohort/level"),
                    _varchar("ORG", "Organization identifier"),
                    _varchar("MONTH", "Month in YYYY-MM format"),
                    _varchar("REGION_STANDARD", "Standardized region name"),
                ],
            )
        ],
        metrics=[
            Metric(
                "attendance_rate",
                "Attendance Rate",
                "Percentage of people who attended",
                "AVG(PEOPLE_ATTENDED / HEADCOUNT)",
                "percentage",
                "avg",
            ),
            Metric("total_attendance", "Total Attendance", "Sum of all people attended", "SUM(PEOPLE_ATTENDED)", "number", "sum"),
            Metric("total_headcount", "Total Headcount", "Sum of all headcount", "SUM(HEADCOUNT)", "number", "sum"),
        ],
        dimensions=[
            Dimension("office", "Office", "Office location", "ATTENDANCE_AGENT", "OFFICE"),
            Dimension("cohort", "Cohort", "Employee cohort/level", "ATTENDANCE_AGENT", "COHORT"),
            Dimension("organization", "Organization", "Organization identifier", "ATTENDANCE_AGENT", "ORG"),
            Dimension(
                "date", "Date", "Date of attendance", "ATTENDANCE_AGENT", "DATE", "DATE",
                hierarchies=["Year", "Quarter", "Month", "Week", "Day"],
            ),
        ],
    ),
    python_libraries=list(_ANALYSIS_LIBRARIES),
    custom_code='''
def attendance_rate_by_office(df):
    """Mean and std of PEOPLE_ATTENDED / HEADCOUNT per office"""

def weekly_attendance_patterns(df):
    """Attendance rate per weekday"""

def office_capacity_analysis(df):
    """Attendance rate min/mean/max per office and cohort"""
''',
)

PIPELINE_ANALYTICS = DataSourceConfig(
    id="pipeline-analytics",
    name="Pipeline Analytics",
    description="Sales pipeline and opportunity tracking by region, sector, and stage",
    kind="snowflake",
    semantic_model=SemanticModel(
        id="pipeline-model",
        name="Pipeline Analytics Model",
        description="Sales pipeline and opportunity analysis",
        tables=[
            TableSchema(
                name="PIPELINE_AGENT",
                schema="DATA",
                columns=[
                    _varchar("OPPORTUNITY_ID", "Opportunity identifier"),
                    _varchar("STAGE", "Pipeline stage"),
                    _varchar("SECTOR", "Industry sector"),
                    Column("EXPECTED_CLOSE_DATE", "TIMESTAMP_NTZ(9)", "Expected close date"),
                    Column("POTENTIAL_VALUE_USD", "NUMBER(38,0)", "Potential value in USD"),
                    _varchar("REGION", "Geographic region"),
                    _varchar("REGION_STANDARD", "Standardized region name"),
                    _varchar("MONTH", "Month in YYYY-MM format"),
                ],
            )
        ],
        metrics=[
            Metric(
                "total_pipeline_value",
                "Total Pipeline Value",
                "Sum of all potential values",
                "SUM(POTENTIAL_VALUE_USD)",
                "currency",
                "sum",
            ),
            Metric(
                "average_deal_size",
                "Average Deal Size",
                "Average potential value per deal",
                "AVG(POTENTIAL_VALUE_USD)",
                "currency",
                "avg",
            ),
            Metric("deal_count", "Deal Count", "Total number of deals", "COUNT(*)", "number", "count"),
        ],
        dimensions=[
            Dimension("stage", "Stage", "Pipeline stage", "PIPELINE_AGENT", "STAGE"),
            Dimension("sector", "Sector", "Industry sector", "PIPELINE_AGENT", "SECTOR"),
            Dimension("region", "Region", "Geographic region", "PIPELINE_AGENT", "REGION"),
            Dimension(
                "expected_close_date",
                "Expected Close Date",
                "Expected close date",
                "PIPELINE_AGENT",
                "EXPECTED_CLOSE_DATE",
                "TIMESTAMP_NTZ",
                hierarchies=["Year", "Quarter", "Month", "Week"],
            ),
        ],
    ),
    python_libraries=list(_ANALYSIS_LIBRARIES),
    custom_code='''
def pipeline_value_by_stage(df):
    """POTENTIAL_VALUE_USD sum, mean and count per stage"""

def win_rate_analysis(df):
    """Won value over Won+Lost value, by sector and by region"""

def top_opportunities(df, n=10):
    """Top N opportunities by potential value"""
''',
)

DATA_SOURCES: List[DataSourceConfig] = [NCC_FINANCIAL, ATTENDANCE_ANALYTICS, PIPELINE_ANALYTICS]


def get_data_source(data_source_id: str, sources: Optional[List[DataSourceConfig]] = None) -> Optional[DataSourceConfig]:
    candidates = DATA_SOURCES if sources is None else sources
    return next((s for s in candidates if s.id == data_source_id), None)
