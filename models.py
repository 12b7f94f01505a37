"""
Value records passed between the pipeline stages.

The generation backend answers in camelCase JSON (painPoints, estimatedWords...),
so every record accepts both the camelCase alias and the Python field name.
Records are frozen: each one is built once during a run and never changed.
"""
from enum import Enum
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------- Provider ----------

class GenerationRequest(Record):
    system_instruction: Optional[str] = None
    user_instruction: str
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)


# ---------- Client / brand ----------

class ClientProfile(Record):
    product_service_summary: str = ""
    target_audience: str = ""


class MarketingContext(Record):
    brand_name: str = ""
    brand_voice: List[str] = Field(default_factory=list)
    brand_tone: str = ""
    target_audience: str = ""
    value_proposition: str = ""
    key_messages: List[str] = Field(default_factory=list)
    brand_donts: List[str] = Field(default_factory=list)
    content_donts: List[str] = Field(default_factory=list)
    competitor_differentiators: List[str] = Field(default_factory=list)


def create_marketing_context(brand_name: str, **overrides) -> MarketingContext:
    """Builds a brand context, filling anything not given with generic defaults."""
    values = {
        "brand_name": brand_name,
        "brand_voice": ["Professional", "Clear", "Helpful"],
        "brand_tone": "Professional",
        "target_audience": "Business professionals",
        "value_proposition": f"{brand_name} helps businesses succeed",
        "key_messages": [],
        "content_donts": [],
        "competitor_differentiators": [],
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return MarketingContext(**values)


EXAMPLE_MARKETING_CONTEXT = MarketingContext(
    brand_name="Everreach",
    brand_voice=["Direct", "Confident", "Helpful"],
    brand_tone="Professional yet approachable",
    target_audience="Sales teams and revenue leaders at mid-market B2B companies",
    value_proposition="AI-powered CRM that helps sales teams close more deals faster",
    key_messages=[
        "AI that works for you, not against you",
        "Close deals faster with intelligent automation",
        "Data-driven insights that actually matter",
    ],
    content_donts=[
        'Don\'t use buzzwords like "revolutionary" or "game-changing"',
        "Don't make unsubstantiated claims",
        "Don't use passive voice excessively",
        "Don't be overly salesy or pushy",
    ],
    competitor_differentiators=[
        "Native AI integration vs bolt-on solutions",
        "Built for mid-market vs enterprise-only or SMB-focused",
        "Actionable insights vs raw data dumps",
    ],
)


# ---------- Stage outputs ----------

class ResearchResult(Record):
    pain_points: List[str] = Field(default_factory=list)
    key_facts: List[str] = Field(default_factory=list)
    differentiators: List[str] = Field(default_factory=list)
    related_subtopics: List[str] = Field(default_factory=list)
    suggested_angles: List[str] = Field(default_factory=list)


class SectionType(str, Enum):
    INTRO = "intro"
    BODY = "body"
    CONCLUSION = "conclusion"
    CTA = "cta"


class OutlineSection(Record):
    key: str
    title: str
    type: SectionType
    key_points: List[str] = Field(default_factory=list)
    estimated_words: int = Field(default=0, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        # models sometimes answer "CTA" or " Body "
        if isinstance(v, str):
            return v.strip().lower()
        return v


class OutlineResult(Record):
    sections: List[OutlineSection] = Field(default_factory=list)

    @computed_field
    @property
    def total_estimated_words(self) -> int:
        return sum(s.estimated_words for s in self.sections)


class DraftSectionResult(Record):
    section_key: str = ""
    content: str
    word_count: int = Field(default=0, ge=0)


class DraftedSection(Record):
    key: str
    content: str


class SEOMetadata(Record):
    title: str
    meta_description: str
    slug: str = ""
    suggestions: List[str] = Field(default_factory=list)
    keyword_density: float = Field(default=0.0, ge=0.0)
    readability_score: str = ""

    @field_validator("keyword_density", mode="before")
    @classmethod
    def _strip_percent(cls, v):
        # models often answer "1.8%"
        if isinstance(v, str):
            v = v.strip().rstrip("%").strip()
            return float(v) if v else 0.0
        return v

    @field_validator("readability_score", mode="before")
    @classmethod
    def _readability_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class VoiceToneIssue(Record):
    section_key: Optional[str] = None
    issue: str
    suggestion: str = ""
    severity: Severity = Severity.MEDIUM

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, v):
        if isinstance(v, Severity):
            return v
        if isinstance(v, str):
            v = v.strip().lower()
        # anything off the low/medium/high scale ("critical", "minor", null)
        return v if v in {s.value for s in Severity} else Severity.MEDIUM


class VoiceToneResult(Record):
    alignment_score: int = Field(ge=0, le=100)
    issues: List[VoiceToneIssue] = Field(default_factory=list)
    overall_feedback: str = ""
    passed: bool = False

    @field_validator("alignment_score", mode="before")
    @classmethod
    def _round_score(cls, v):
        if isinstance(v, str):
            v = v.strip().rstrip("%").strip()
            v = float(v) if v else v
        if isinstance(v, float):
            return round(v)
        return v


# ---------- Gates ----------

class OutlineValidation(Record):
    valid: bool
    issues: List[str] = Field(default_factory=list)


class SEOValidation(Record):
    passed: bool
    issues: List[str] = Field(default_factory=list)


class QualityGateVerdict(Record):
    passed: bool
    reason: Optional[str] = None
    score: Optional[float] = None


class QualityGates(Record):
    outline: QualityGateVerdict
    completeness: QualityGateVerdict
    seo: Optional[QualityGateVerdict] = None
    voice_tone: Optional[QualityGateVerdict] = None


# ---------- Agent / pipeline envelopes ----------

class AgentResult(Record, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    duration: Optional[float] = None


class PipelineInput(Record):
    topic: str
    target_keyword: str
    word_count_goal: int = Field(gt=0)
    client_profile: ClientProfile = Field(default_factory=ClientProfile)
    marketing_context: MarketingContext = Field(default_factory=MarketingContext)
    content_id: Optional[str] = None


class PipelineResult(Record):
    success: bool
    error: Optional[str] = None
    research: Optional[ResearchResult] = None
    outline: Optional[OutlineResult] = None
    sections: Optional[List[DraftedSection]] = None
    full_draft: Optional[str] = None
    seo_metadata: Optional[SEOMetadata] = None
    voice_tone_report: Optional[VoiceToneResult] = None
    quality_gates: Optional[QualityGates] = None
    retry_count: int = 0

    def section_map(self) -> Dict[str, str]:
        return {s.key: s.content for s in self.sections or []}
