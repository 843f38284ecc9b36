"""
Data Models Package
===================
Exports the typed ballot records and rubric layout.

Usage:
    from ballot.models import SpeechAnalysis, SubMetricId, Classification
    from ballot.models import AnalysisRequest, AnalysisResponse
"""

from .schemas import (
    # Enums
    Classification,
    PerformanceTier,
    Category,
    SubMetricId,
    ErrorType,

    # Rubric layout
    SEVERE_CLASSIFICATIONS,
    CATEGORY_WEIGHTS,
    CATEGORY_SUB_METRICS,
    CATEGORY_SCORED_SUB_METRICS,
    ALL_SUB_METRICS,

    # Base
    BaseModel,

    # Sub-metrics
    SubMetric,
    PacingMetric,
    FillerWordsMetric,
    RhetoricalDevicesMetric,
    EyeContactMetric,

    # Sections
    AnalysisSection,
    ContentAnalysis,
    DeliveryAnalysis,
    LanguageAnalysis,
    BodyLanguageAnalysis,
    CategoryScore,
    CategoryScores,
    SpeechStats,
    TimeRangeAssessment,
    StructureAnalysis,
    PriorityImprovement,
    NextSessionFocus,
    SpeechAnalysis,

    # Transcript and classification
    TranscriptIntegrity,
    HeuristicClassification,

    # Request / response
    ParseMetrics,
    ErrorDetails,
    AnalysisRequest,
    AnalysisResponse,

    # Utilities
    parse_number,
    generate_request_id,
)

__all__ = [
    'Classification',
    'PerformanceTier',
    'Category',
    'SubMetricId',
    'ErrorType',
    'SEVERE_CLASSIFICATIONS',
    'CATEGORY_WEIGHTS',
    'CATEGORY_SUB_METRICS',
    'CATEGORY_SCORED_SUB_METRICS',
    'ALL_SUB_METRICS',
    'BaseModel',
    'SubMetric',
    'PacingMetric',
    'FillerWordsMetric',
    'RhetoricalDevicesMetric',
    'EyeContactMetric',
    'AnalysisSection',
    'ContentAnalysis',
    'DeliveryAnalysis',
    'LanguageAnalysis',
    'BodyLanguageAnalysis',
    'CategoryScore',
    'CategoryScores',
    'SpeechStats',
    'TimeRangeAssessment',
    'StructureAnalysis',
    'PriorityImprovement',
    'NextSessionFocus',
    'SpeechAnalysis',
    'TranscriptIntegrity',
    'HeuristicClassification',
    'ParseMetrics',
    'ErrorDetails',
    'AnalysisRequest',
    'AnalysisResponse',
    'parse_number',
    'generate_request_id',
]
