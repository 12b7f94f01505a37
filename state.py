from typing import List, Optional, TypedDict

from config import PipelinePolicy
from models import (
    DraftedSection,
    OutlineResult,
    PipelineInput,
    QualityGates,
    ResearchResult,
    SEOMetadata,
    VoiceToneResult,
)
from providers import CancellationToken, GenerationProvider


class PipelineState(TypedDict, total=False):
    # Input
    pipeline_input: PipelineInput
    provider: GenerationProvider
    policy: PipelinePolicy
    token: CancellationToken

    # Research
    research: Optional[ResearchResult]

    # Outline
    outline: Optional[OutlineResult]
    outline_attempts: int
    outline_valid: bool
    outline_issues: List[str]
    retry_count: int

    # Draft
    sections: List[DraftedSection]
    full_draft: str

    # Review
    seo_metadata: Optional[SEOMetadata]
    voice_tone_report: Optional[VoiceToneResult]
    quality_gates: Optional[QualityGates]

    # Set by the node that ends the run early
    error: Optional[str]
