"""
Data Models and Schemas Module
==============================
Typed records for every section of a speech ballot.

This module provides:
- Closed enums for classification, tier, category and sub-metric identity
- The fixed rubric layout (category weights, sub-metrics per category)
- Dataclass records for each analysis section with camelCase wire output
- Lenient parsing of untrusted judge-model JSON into those records
- Request/response envelopes for one analysis

The judge model's JSON is never walked by key name. Parsing maps known keys
onto typed fields and drops everything else, so score traversal is limited
to the fields declared here.

Usage:
    from ballot.models.schemas import SpeechAnalysis, SubMetricId

    analysis = SpeechAnalysis.from_dict(model_json)
    analysis.sub_metric(SubMetricId.PACING).score
    analysis.to_dict()   # camelCase keys for the client
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterator, Tuple
import hashlib
import json
import math


# =============================================================================
# WIRE HELPERS
# =============================================================================

def to_camel(name: str) -> str:
    """snake_case attribute name to the camelCase wire key."""
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def _to_wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    return value


def _lookup(data: Dict[str, Any], name: str, default: Any = None) -> Any:
    """Read a field by camelCase wire key, falling back to the snake_case name."""
    camel = to_camel(name)
    if camel in data:
        return data[camel]
    return data.get(name, default)


def parse_number(value: Any) -> Optional[float]:
    """Coerce a JSON value to a finite float, or None when it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _int(value: Any, default: int = 0) -> int:
    number = parse_number(value)
    return int(round(number)) if number is not None else default


# =============================================================================
# ENUMS
# =============================================================================

class Classification(str, Enum):
    """Speech classification shared by the heuristics and the judge model."""
    NORMAL = "normal"
    TOO_SHORT = "too_short"
    NONSENSE = "nonsense"
    OFF_TOPIC = "off_topic"
    MOSTLY_OFF_TOPIC = "mostly_off_topic"

    @property
    def is_severe(self) -> bool:
        return self in SEVERE_CLASSIFICATIONS

    @classmethod
    def parse(cls, value: Any) -> Optional["Classification"]:
        """Return the matching member, or None for anything outside the closed set."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


SEVERE_CLASSIFICATIONS = frozenset({
    Classification.TOO_SHORT,
    Classification.NONSENSE,
    Classification.OFF_TOPIC,
})


class PerformanceTier(str, Enum):
    """Coarse label derived from the overall score."""
    DEVELOPING = "Developing"
    COMPETITIVE = "Competitive"
    BREAKING = "Breaking"
    FINALS = "Finals"

    @classmethod
    def parse(cls, value: Any) -> "PerformanceTier":
        """Return the matching tier, or Developing for anything unrecognized."""
        try:
            return cls(_text(value))
        except ValueError:
            return cls.DEVELOPING


class Category(str, Enum):
    """The four weighted rubric categories."""
    CONTENT = "content"
    DELIVERY = "delivery"
    LANGUAGE = "language"
    BODY_LANGUAGE = "bodyLanguage"

    @property
    def weight(self) -> float:
        return CATEGORY_WEIGHTS[self]


CATEGORY_WEIGHTS: Dict[Category, float] = {
    Category.CONTENT: 0.40,
    Category.DELIVERY: 0.30,
    Category.LANGUAGE: 0.15,
    Category.BODY_LANGUAGE: 0.15,
}


class SubMetricId(str, Enum):
    """Identity of every rubric sub-metric, as ``<category>.<field>``."""
    TOPIC_ADHERENCE = "content.topicAdherence"
    ARGUMENT_STRUCTURE = "content.argumentStructure"
    DEPTH_OF_ANALYSIS = "content.depthOfAnalysis"
    EXAMPLES_EVIDENCE = "content.examplesEvidence"
    TIME_MANAGEMENT = "content.timeManagement"

    VOCAL_VARIETY = "delivery.vocalVariety"
    PACING = "delivery.pacing"
    ARTICULATION = "delivery.articulation"
    FILLER_WORDS = "delivery.fillerWords"

    VOCABULARY = "language.vocabulary"
    RHETORICAL_DEVICES = "language.rhetoricalDevices"
    EMOTIONAL_APPEAL = "language.emotionalAppeal"
    LOGICAL_APPEAL = "language.logicalAppeal"

    EYE_CONTACT = "bodyLanguage.eyeContact"
    GESTURES = "bodyLanguage.gestures"
    POSTURE = "bodyLanguage.posture"
    STAGE_PRESENCE = "bodyLanguage.stagePresence"

    @property
    def category(self) -> Category:
        return Category(self.value.split('.', 1)[0])

    @property
    def metric_name(self) -> str:
        """Wire name of the sub-metric, e.g. ``argumentStructure``."""
        return self.value.split('.', 1)[1]

    @property
    def attr_name(self) -> str:
        """Python attribute name on the analysis section."""
        return ''.join('_' + c.lower() if c.isupper() else c for c in self.metric_name)


# Every sub-metric shown in a ballot, per category
CATEGORY_SUB_METRICS: Dict[Category, Tuple[SubMetricId, ...]] = {
    Category.CONTENT: (
        SubMetricId.TOPIC_ADHERENCE,
        SubMetricId.ARGUMENT_STRUCTURE,
        SubMetricId.DEPTH_OF_ANALYSIS,
        SubMetricId.EXAMPLES_EVIDENCE,
        SubMetricId.TIME_MANAGEMENT,
    ),
    Category.DELIVERY: (
        SubMetricId.VOCAL_VARIETY,
        SubMetricId.PACING,
        SubMetricId.ARTICULATION,
        SubMetricId.FILLER_WORDS,
    ),
    Category.LANGUAGE: (
        SubMetricId.VOCABULARY,
        SubMetricId.RHETORICAL_DEVICES,
        SubMetricId.EMOTIONAL_APPEAL,
        SubMetricId.LOGICAL_APPEAL,
    ),
    Category.BODY_LANGUAGE: (
        SubMetricId.EYE_CONTACT,
        SubMetricId.GESTURES,
        SubMetricId.POSTURE,
        SubMetricId.STAGE_PRESENCE,
    ),
}

# Sub-metrics averaged into each category score. Deliberately a subset:
# these are the components the ballot view surfaces next to each category.
CATEGORY_SCORED_SUB_METRICS: Dict[Category, Tuple[SubMetricId, ...]] = {
    Category.CONTENT: (
        SubMetricId.TOPIC_ADHERENCE,
        SubMetricId.ARGUMENT_STRUCTURE,
        SubMetricId.DEPTH_OF_ANALYSIS,
    ),
    Category.DELIVERY: (
        SubMetricId.VOCAL_VARIETY,
        SubMetricId.PACING,
    ),
    Category.LANGUAGE: (
        SubMetricId.VOCABULARY,
        SubMetricId.RHETORICAL_DEVICES,
    ),
    Category.BODY_LANGUAGE: (
        SubMetricId.EYE_CONTACT,
        SubMetricId.GESTURES,
    ),
}

ALL_SUB_METRICS: Tuple[SubMetricId, ...] = tuple(
    metric for category in Category for metric in CATEGORY_SUB_METRICS[category]
)

_SECTION_ATTRS: Dict[Category, str] = {
    Category.CONTENT: "content_analysis",
    Category.DELIVERY: "delivery_analysis",
    Category.LANGUAGE: "language_analysis",
    Category.BODY_LANGUAGE: "body_language_analysis",
}


class ErrorType(str, Enum):
    """Failure classes surfaced in AnalysisResponse.error_details."""
    PARSE_FAILURE = "parse_failure"
    SCHEMA_VALIDATION = "schema_validation"
    MODEL_ERROR = "model_error"
    TRANSCRIPTION_ERROR = "transcription_error"


# =============================================================================
# BASE CLASSES
# =============================================================================

@dataclass
class BaseModel:
    """
    Base class for all records.

    ``to_dict`` emits camelCase keys and omits fields that are None.
    ``from_dict`` accepts camelCase or snake_case keys and ignores unknown ones.
    """

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[to_camel(f.name)] = _to_wire(value)
        return result

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseModel":
        data = _as_dict(data)
        kwargs = {}
        for f in fields(cls):
            value = _lookup(data, f.name, None)
            if value is not None:
                kwargs[f.name] = value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> "BaseModel":
        return cls.from_dict(json.loads(json_str))


# =============================================================================
# SUB-METRICS
# =============================================================================

@dataclass
class SubMetric(BaseModel):
    """A single rubric line: a score on the canonical 0-10 scale plus feedback."""
    score: Optional[float] = None
    feedback: str = ""

    @classmethod
    def _parse_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'score': parse_number(data.get('score')),
            'feedback': _text(data.get('feedback')),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubMetric":
        return cls(**cls._parse_fields(_as_dict(data)))


@dataclass
class PacingMetric(SubMetric):
    wpm: int = 0

    @classmethod
    def _parse_fields(cls, data):
        parsed = super()._parse_fields(data)
        parsed['wpm'] = _int(data.get('wpm'))
        return parsed


@dataclass
class FillerWordsMetric(SubMetric):
    total: int = 0
    per_minute: float = 0.0
    breakdown: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def _parse_fields(cls, data):
        parsed = super()._parse_fields(data)
        parsed['total'] = _int(data.get('total'))
        parsed['per_minute'] = parse_number(_lookup(data, 'per_minute')) or 0.0
        parsed['breakdown'] = {
            str(k): _int(v) for k, v in _as_dict(data.get('breakdown')).items()
        }
        return parsed


@dataclass
class RhetoricalDevicesMetric(SubMetric):
    examples: List[str] = field(default_factory=list)

    @classmethod
    def _parse_fields(cls, data):
        parsed = super()._parse_fields(data)
        raw = data.get('examples')
        parsed['examples'] = [x for x in raw if isinstance(x, str)] if isinstance(raw, list) else []
        return parsed


@dataclass
class EyeContactMetric(SubMetric):
    """Eye contact also carries the share of speaking time spent looking up (0-100)."""
    percentage: Optional[float] = None

    @classmethod
    def _parse_fields(cls, data):
        parsed = super()._parse_fields(data)
        parsed['percentage'] = parse_number(data.get('percentage'))
        return parsed


# =============================================================================
# ANALYSIS SECTIONS
# =============================================================================

@dataclass
class AnalysisSection(BaseModel):
    """A category section whose fields are all sub-metric records."""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisSection":
        data = _as_dict(data)
        return cls(**{f.name: f.type.from_dict(_lookup(data, f.name)) for f in fields(cls)})


@dataclass
class ContentAnalysis(AnalysisSection):
    topic_adherence: SubMetric = field(default_factory=SubMetric)
    argument_structure: SubMetric = field(default_factory=SubMetric)
    depth_of_analysis: SubMetric = field(default_factory=SubMetric)
    examples_evidence: SubMetric = field(default_factory=SubMetric)
    time_management: SubMetric = field(default_factory=SubMetric)


@dataclass
class DeliveryAnalysis(AnalysisSection):
    vocal_variety: SubMetric = field(default_factory=SubMetric)
    pacing: PacingMetric = field(default_factory=PacingMetric)
    articulation: SubMetric = field(default_factory=SubMetric)
    filler_words: FillerWordsMetric = field(default_factory=FillerWordsMetric)


@dataclass
class LanguageAnalysis(AnalysisSection):
    vocabulary: SubMetric = field(default_factory=SubMetric)
    rhetorical_devices: RhetoricalDevicesMetric = field(default_factory=RhetoricalDevicesMetric)
    emotional_appeal: SubMetric = field(default_factory=SubMetric)
    logical_appeal: SubMetric = field(default_factory=SubMetric)


@dataclass
class BodyLanguageAnalysis(AnalysisSection):
    eye_contact: EyeContactMetric = field(default_factory=EyeContactMetric)
    gestures: SubMetric = field(default_factory=SubMetric)
    posture: SubMetric = field(default_factory=SubMetric)
    stage_presence: SubMetric = field(default_factory=SubMetric)


@dataclass
class CategoryScore(BaseModel):
    """Category score with its fixed weight and weighted contribution."""
    score: Optional[float] = None
    weight: float = 0.0
    weighted: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryScore":
        data = _as_dict(data)
        return cls(
            score=parse_number(data.get('score')),
            weight=parse_number(data.get('weight')) or 0.0,
            weighted=parse_number(data.get('weighted')) or 0.0,
        )


@dataclass
class CategoryScores(AnalysisSection):
    content: CategoryScore = field(default_factory=CategoryScore)
    delivery: CategoryScore = field(default_factory=CategoryScore)
    language: CategoryScore = field(default_factory=CategoryScore)
    body_language: CategoryScore = field(default_factory=CategoryScore)

    def get(self, category: Category) -> CategoryScore:
        return getattr(self, 'body_language' if category is Category.BODY_LANGUAGE else category.value)

    def items(self) -> Iterator[Tuple[Category, CategoryScore]]:
        for category in Category:
            yield category, self.get(category)


@dataclass
class SpeechStats(BaseModel):
    """Measured statistics; always server-computed before display."""
    duration: str = "0:00"
    word_count: int = 0
    wpm: int = 0
    filler_word_count: int = 0
    filler_word_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeechStats":
        data = _as_dict(data)
        return cls(
            duration=_text(data.get('duration')) or "0:00",
            word_count=_int(_lookup(data, 'word_count')),
            wpm=_int(data.get('wpm')),
            filler_word_count=_int(_lookup(data, 'filler_word_count')),
            filler_word_rate=parse_number(_lookup(data, 'filler_word_rate')) or 0.0,
        )


@dataclass
class TimeRangeAssessment(BaseModel):
    time_range: str = ""
    assessment: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeRangeAssessment":
        data = _as_dict(data)
        return cls(
            time_range=_text(_lookup(data, 'time_range')),
            assessment=_text(data.get('assessment')),
        )


@dataclass
class StructureAnalysis(BaseModel):
    introduction: TimeRangeAssessment = field(default_factory=TimeRangeAssessment)
    body_points: List[TimeRangeAssessment] = field(default_factory=list)
    conclusion: TimeRangeAssessment = field(default_factory=TimeRangeAssessment)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureAnalysis":
        data = _as_dict(data)
        points = _lookup(data, 'body_points')
        return cls(
            introduction=TimeRangeAssessment.from_dict(data.get('introduction')),
            body_points=[TimeRangeAssessment.from_dict(p) for p in points if isinstance(p, dict)]
            if isinstance(points, list) else [],
            conclusion=TimeRangeAssessment.from_dict(data.get('conclusion')),
        )


@dataclass
class PriorityImprovement(BaseModel):
    """
    One ranked improvement item shown to the speaker.

    metric optionally tags the sub-metric id (or "length") the item targets.
    """
    priority: int = 0
    issue: str = ""
    action: str = ""
    impact: str = ""
    metric: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.issue and self.action and self.impact)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriorityImprovement":
        data = _as_dict(data)
        return cls(
            priority=_int(data.get('priority')),
            issue=_text(data.get('issue')).strip(),
            action=_text(data.get('action')).strip(),
            impact=_text(data.get('impact')).strip(),
            metric=_text(data.get('metric')).strip() or None,
        )


@dataclass
class NextSessionFocus(BaseModel):
    primary: str = ""
    metric: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NextSessionFocus":
        data = _as_dict(data)
        return cls(primary=_text(data.get('primary')), metric=_text(data.get('metric')))


# =============================================================================
# FULL ANALYSIS
# =============================================================================

REQUIRED_ANALYSIS_KEYS = ("contentAnalysis", "deliveryAnalysis", "languageAnalysis", "bodyLanguageAnalysis")


@dataclass
class SpeechAnalysis(BaseModel):
    """
    The complete rubric output for one speech.

    Attributes:
        classification: Speech class; None when the model claim was invalid
        caps_applied: Whether a classification or heuristic cap is in force
            (computed by the rubric enforcer; the judge's claim is ignored)
        overall_score: Weighted overall score on the 0-10 scale
        performance_tier: Tier label derived from overall_score
        tournament_ready: Readiness gate result
        category_scores: Four weighted category scores
        content_analysis / delivery_analysis / language_analysis /
        body_language_analysis: Sub-metric sections
        speech_stats: Server-measured statistics
        structure_analysis: Intro/body/conclusion time ranges
        priority_improvements: Up to three ranked improvement items
        strengths: Free-text strengths from the judge
        practice_drill: Single recommended drill
        next_session_focus: Focus area and numeric target
    """
    classification: Optional[Classification] = None
    caps_applied: bool = False
    overall_score: Optional[float] = None
    performance_tier: PerformanceTier = PerformanceTier.DEVELOPING
    tournament_ready: bool = False
    category_scores: CategoryScores = field(default_factory=CategoryScores)
    content_analysis: ContentAnalysis = field(default_factory=ContentAnalysis)
    delivery_analysis: DeliveryAnalysis = field(default_factory=DeliveryAnalysis)
    language_analysis: LanguageAnalysis = field(default_factory=LanguageAnalysis)
    body_language_analysis: BodyLanguageAnalysis = field(default_factory=BodyLanguageAnalysis)
    speech_stats: SpeechStats = field(default_factory=SpeechStats)
    structure_analysis: StructureAnalysis = field(default_factory=StructureAnalysis)
    priority_improvements: List[PriorityImprovement] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    practice_drill: str = ""
    next_session_focus: NextSessionFocus = field(default_factory=NextSessionFocus)

    def section(self, category: Category) -> AnalysisSection:
        return getattr(self, _SECTION_ATTRS[category])

    def sub_metric(self, metric_id: SubMetricId) -> SubMetric:
        return getattr(self.section(metric_id.category), metric_id.attr_name)

    def iter_sub_metrics(self) -> Iterator[Tuple[SubMetricId, SubMetric]]:
        for metric_id in ALL_SUB_METRICS:
            yield metric_id, self.sub_metric(metric_id)

    @property
    def eye_contact_percentage(self) -> Optional[float]:
        return self.body_language_analysis.eye_contact.percentage

    @staticmethod
    def missing_sections(data: Dict[str, Any]) -> List[str]:
        """Required rubric sections absent from raw judge JSON."""
        data = _as_dict(data)
        return [key for key in REQUIRED_ANALYSIS_KEYS if not isinstance(data.get(key), dict)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeechAnalysis":
        data = _as_dict(data)
        strengths = data.get('strengths')
        priorities = _lookup(data, 'priority_improvements')
        return cls(
            classification=Classification.parse(data.get('classification')),
            overall_score=parse_number(_lookup(data, 'overall_score')),
            performance_tier=PerformanceTier.parse(_lookup(data, 'performance_tier')),
            tournament_ready=_lookup(data, 'tournament_ready') is True,
            category_scores=CategoryScores.from_dict(_lookup(data, 'category_scores')),
            content_analysis=ContentAnalysis.from_dict(_lookup(data, 'content_analysis')),
            delivery_analysis=DeliveryAnalysis.from_dict(_lookup(data, 'delivery_analysis')),
            language_analysis=LanguageAnalysis.from_dict(_lookup(data, 'language_analysis')),
            body_language_analysis=BodyLanguageAnalysis.from_dict(_lookup(data, 'body_language_analysis')),
            speech_stats=SpeechStats.from_dict(_lookup(data, 'speech_stats')),
            structure_analysis=StructureAnalysis.from_dict(_lookup(data, 'structure_analysis')),
            priority_improvements=[PriorityImprovement.from_dict(p) for p in priorities if isinstance(p, dict)]
            if isinstance(priorities, list) else [],
            strengths=[s for s in strengths if isinstance(s, str)] if isinstance(strengths, list) else [],
            practice_drill=_text(_lookup(data, 'practice_drill')),
            next_session_focus=NextSessionFocus.from_dict(_lookup(data, 'next_session_focus')),
        )


# =============================================================================
# TRANSCRIPT AND CLASSIFICATION
# =============================================================================

@dataclass
class TranscriptIntegrity(BaseModel):
    """Integrity metadata computed once per analysis from the final transcript."""
    word_count: int
    char_length: int
    sha256: str
    is_suspicious: bool = False
    suspicious_reason: Optional[str] = None


@dataclass
class HeuristicClassification(BaseModel):
    """Outcome of the pre-judge transcript heuristics."""
    classification: Classification
    skip_llm: bool
    max_overall_score: float
    reason: str


# =============================================================================
# REQUEST / RESPONSE
# =============================================================================

@dataclass
class ParseMetrics(BaseModel):
    """Per-call JSON recovery outcome. raw_output is kept only on failure."""
    parse_fail_count: int = 0
    repair_used: bool = False
    raw_output: Optional[str] = None


@dataclass
class ErrorDetails(BaseModel):
    type: ErrorType
    message: str
    raw_model_output: Optional[str] = None


@dataclass
class AnalysisRequest(BaseModel):
    """One recorded speech to judge."""
    video_path: str
    theme: str = ""
    quote: str = ""
    duration_seconds_hint: Optional[float] = None

    @property
    def video_filename(self) -> str:
        return Path(self.video_path).name


@dataclass
class AnalysisResponse(BaseModel):
    """Result envelope returned for every analysis, successful or not."""
    success: bool
    transcript: str = ""
    analysis: Optional[SpeechAnalysis] = None
    error: Optional[str] = None
    error_details: Optional[ErrorDetails] = None
    transcript_integrity: Optional[TranscriptIntegrity] = None
    parse_metrics: Optional[ParseMetrics] = None
    analysis_warning: Optional[str] = None


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def generate_request_id(video_filename: str) -> str:
    """Generate a unique id for one analysis request."""
    content = f"{video_filename}_{datetime.now().isoformat()}"
    return hashlib.md5(content.encode()).hexdigest()[:16]
