"""Insight payloads produced per patient: sidebar, charts, tabs, investigations, export summary."""
from typing import List, Optional

from pydantic import BaseModel, Field

from .comparison import Delta
from .enums import InsightPriority, InsightSource, SafetyStatus

PathologyDelta = Delta


class DynamicInsight(BaseModel):
    """Telegraphic sidebar fact."""
    label: str
    value: str
    priority: InsightPriority


class SafetyFlag(BaseModel):
    """Organ-safety badge with a short detail string."""
    status: SafetyStatus
    details: str


class SafetyFlags(BaseModel):
    renal: SafetyFlag
    liver: SafetyFlag
    hematology: SafetyFlag


class SidebarInsights(BaseModel):
    dynamic_insights: List[DynamicInsight]
    safety_flags: SafetyFlags


class TumorSizeChart(BaseModel):
    should_render: bool
    reason: str


class BiomarkerChart(BaseModel):
    should_render: bool
    selected_marker: str
    reason: str


class ChartDirectives(BaseModel):
    tumor_size: TumorSizeChart
    biomarkers: BiomarkerChart


class DiagnosisTab(BaseModel):
    mutation_highlight: str
    summary: str


class InvestigationTab(BaseModel):
    trend_analysis: str


class TreatmentTab(BaseModel):
    current_strategy: str


class TabNarratives(BaseModel):
    diagnosis: DiagnosisTab
    investigation: InvestigationTab
    treatment: TreatmentTab


class Investigations(BaseModel):
    """Pathology evolution and lab summary block."""
    pathology_summary: Optional[str] = None
    pathology_comparison_text: Optional[str] = None
    pathology_deltas: Optional[List[PathologyDelta]] = None
    labs_summary: Optional[str] = None


class MasterAIResponse(BaseModel):
    """
    Structured clinical intelligence object for one patient.

    ``sidebar``, ``charts``, ``tabs`` and ``stage_summary`` are required; a model
    response without them is rejected as a whole. ``investigations`` and the
    narrative extras are optional and backfilled from local analysis.
    """
    current_status_summary: Optional[str] = None
    sidebar: SidebarInsights
    charts: ChartDirectives
    tabs: TabNarratives
    stage_summary: str
    investigations: Optional[Investigations] = None
    insight_source: InsightSource = InsightSource.AI


class ClinicalSummary(BaseModel):
    """Data contract consumed by the PDF export."""
    clinical_narrative: str
    status_one_liner: Optional[str] = None
    key_risks: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    summary_source: InsightSource = InsightSource.AI
