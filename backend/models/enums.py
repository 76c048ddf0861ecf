"""Enumeration types for the OncoSight backend."""
from enum import Enum


class TaskCategory(str, Enum):
    """Categories of LLM tasks for model routing."""
    INSIGHT_GENERATION = "insight_generation"
    CLINICAL_SUMMARY = "clinical_summary"


class LLMProvider(str, Enum):
    """Available LLM providers."""
    GEMINI = "gemini"
    CLAUDE = "claude"
    AZURE_OPENAI = "azure_openai"


class FieldKind(str, Enum):
    """Scalar kinds understood by the field normalizer."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class TrendKind(str, Enum):
    """How a tracked field's change is classified."""
    ORDINAL = "ordinal"
    MAGNITUDE = "magnitude"
    PRESENCE = "presence"
    TEXT = "text"


class DeltaTrend(str, Enum):
    """Clinical direction of a latest-vs-previous change."""
    WORSENING = "worsening"
    IMPROVING = "improving"
    STABLE = "stable"
    NEW = "new"


class SafetyStatus(str, Enum):
    """Organ-safety badge status."""
    SAFE = "Safe"
    CAUTION = "Caution"
    DANGER = "Danger"
    NOT_DOCUMENTED = "Not documented"


class InsightPriority(str, Enum):
    """Priority of a sidebar insight."""
    HIGH = "High"
    MEDIUM = "Medium"


class InsightSource(str, Enum):
    """Where an insight or summary payload came from."""
    AI = "ai"
    DETERMINISTIC = "deterministic"


class PerformanceScale(str, Enum):
    """Performance status scale."""
    ECOG = "ECOG"
    KARNOFSKY = "KPS"


class BadgeTone(str, Enum):
    """Display tone for derived badges."""
    FAVORABLE = "favorable"
    INTERMEDIATE = "intermediate"
    POOR = "poor"
    NEUTRAL = "neutral"


class RecurrenceTier(str, Enum):
    """Risk tier selected from the recurrence status text."""
    UNKNOWN = "unknown"
    HIGH = "high"
    BASELINE = "baseline"
