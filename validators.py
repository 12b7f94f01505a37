"""
Quality gates.

Pure functions over parsed stage output. A failing gate is data, not an error:
every rule that fails adds its own issue so one retry can fix as much as possible.
"""
from collections import Counter

from models import (
    OutlineResult,
    OutlineValidation,
    QualityGateVerdict,
    SectionType,
    SEOMetadata,
    SEOValidation,
    VoiceToneResult,
)

MIN_OUTLINE_SECTIONS = 4
MIN_BODY_SECTIONS = 2
MIN_WORD_RATIO = 0.8

TITLE_MIN, TITLE_MAX = 30, 70
META_DESCRIPTION_MIN, META_DESCRIPTION_MAX = 100, 170
KEYWORD_DENSITY_MIN, KEYWORD_DENSITY_MAX = 0.5, 4.0

VOICE_TONE_MIN_SCORE = 80
COMPLETENESS_THRESHOLD = 0.8


def validate_outline(outline: OutlineResult, word_count_goal: int) -> OutlineValidation:
    issues = []
    sections = outline.sections

    if len(sections) < MIN_OUTLINE_SECTIONS:
        issues.append(f"Too few sections: {len(sections)} (minimum {MIN_OUTLINE_SECTIONS} required)")

    counts = Counter(s.type for s in sections)
    intro_count = counts[SectionType.INTRO]
    conclusion_count = counts[SectionType.CONCLUSION]
    body_count = counts[SectionType.BODY]

    if intro_count == 0:
        issues.append("Missing introduction section")
    elif intro_count > 1:
        issues.append(f"Expected exactly one introduction section, found {intro_count}")
    if conclusion_count == 0:
        issues.append("Missing conclusion section")
    elif conclusion_count > 1:
        issues.append(f"Expected exactly one conclusion section, found {conclusion_count}")
    if counts[SectionType.CTA] == 0:
        issues.append("Missing CTA section")
    if body_count < MIN_BODY_SECTIONS:
        issues.append(f"Need at least {MIN_BODY_SECTIONS} body sections, found {body_count}")

    # the total is recomputed from the sections, a model-supplied total is ignored
    total_words = sum(s.estimated_words for s in sections)
    if word_count_goal > 0 and total_words / word_count_goal < MIN_WORD_RATIO:
        issues.append(f"Word count too low: {total_words} (goal: {word_count_goal})")

    duplicates = sorted(k for k, n in Counter(s.key for s in sections).items() if n > 1)
    if duplicates:
        issues.append(f"Duplicate section keys: {', '.join(duplicates)}")

    return OutlineValidation(valid=not issues, issues=issues)


def validate_seo_metadata(metadata: SEOMetadata) -> SEOValidation:
    issues = []

    if len(metadata.title) < TITLE_MIN:
        issues.append("Title too short (should be 50-60 chars)")
    if len(metadata.title) > TITLE_MAX:
        issues.append("Title too long (should be 50-60 chars)")

    if len(metadata.meta_description) < META_DESCRIPTION_MIN:
        issues.append("Meta description too short (should be 120-160 chars)")
    if len(metadata.meta_description) > META_DESCRIPTION_MAX:
        issues.append("Meta description too long (should be 120-160 chars)")

    if metadata.keyword_density < KEYWORD_DENSITY_MIN:
        issues.append("Keyword density too low (aim for 1-3%)")
    if metadata.keyword_density > KEYWORD_DENSITY_MAX:
        issues.append("Keyword density too high (may be seen as stuffing)")

    return SEOValidation(passed=not issues, issues=issues)


def check_voice_tone_passed(result: VoiceToneResult) -> bool:
    """Both the score and the model's own verdict have to agree."""
    return result.alignment_score >= VOICE_TONE_MIN_SCORE and result.passed


def check_completeness(drafted: int, planned: int,
                       threshold: float = COMPLETENESS_THRESHOLD) -> QualityGateVerdict:
    ratio = drafted / planned if planned else 0.0
    return QualityGateVerdict(
        passed=planned > 0 and ratio >= threshold,
        reason=f"{drafted}/{planned} sections completed",
        score=round(ratio, 4),
    )


def seo_gate(metadata: SEOMetadata) -> QualityGateVerdict:
    validation = validate_seo_metadata(metadata)
    return QualityGateVerdict(
        passed=validation.passed,
        reason="; ".join(validation.issues) or "SEO metadata meets requirements",
        score=metadata.keyword_density,
    )


def voice_tone_gate(report: VoiceToneResult) -> QualityGateVerdict:
    return QualityGateVerdict(
        passed=check_voice_tone_passed(report),
        reason=report.overall_feedback or None,
        score=report.alignment_score,
    )
