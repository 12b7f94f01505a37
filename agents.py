import json
import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from models import (
    AgentResult,
    ClientProfile,
    DraftedSection,
    DraftSectionResult,
    GenerationRequest,
    MarketingContext,
    OutlineResult,
    OutlineSection,
    ResearchResult,
    SEOMetadata,
    Severity,
    VoiceToneIssue,
    VoiceToneResult,
)
from providers import GenerationProvider, PipelineCancelled

SEO_CONTENT_LIMIT = 2000
VOICE_TONE_CONTENT_LIMIT = 3000
DEFAULT_CONTEXT_WINDOW = 2
ALWAYS_BANNED_BUZZWORDS = ["revolutionary", "game-changing"]


class ResponseParseError(ValueError):
    """The model answer did not contain a usable JSON document."""


# ---------- Utils ----------

def extract_json_from_string(text: str) -> str | None:
    """Finds the first JSON object or list in a model answer."""
    match = re.search(r'(\{.*\}|\[.*\])', text, re.DOTALL)
    if match:
        return match.group(0)
    return None


def parse_json_response(raw: str) -> Any:
    """
    Tolerant JSON parser for model output: strips markdown fences, then tries the
    whole answer and the first {...}/[...] block found in it.
    """
    s = (raw or "").strip()
    s = re.sub(r"^```(?:json)?\s*", "", s)
    s = re.sub(r"\s*```$", "", s).strip()
    candidates = [s]
    block = extract_json_from_string(s)
    if block and block != s:
        candidates.append(block)

    for c in candidates:
        try:
            return json.loads(c)
        except json.JSONDecodeError:
            continue
    print("❌ Model answer is not valid JSON.")
    print(f"--- RAW LLM RESPONSE ---\n{(raw or '')[:500]}\n------------------------")
    raise ResponseParseError("No JSON block found in model response")


def _as_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ResponseParseError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _joined(items: Optional[Sequence[str]], fallback: str = "") -> str:
    return ", ".join(items) if items else fallback


def _run_agent(label: str, provider: GenerationProvider, request: GenerationRequest,
               parse: Callable[[str], BaseModel]) -> AgentResult:
    """Calls the provider once and parses the answer; errors come back as data."""
    started = time.perf_counter()
    try:
        raw = provider.call(request)
        data = parse(raw)
        return AgentResult(success=True, data=data, duration=time.perf_counter() - started)
    except PipelineCancelled:
        raise
    except Exception as e:
        print(f"⚠️ {label} failed: {e}")
        return AgentResult(success=False, error=str(e), duration=time.perf_counter() - started)


# ---------- Research ----------

def build_research_request(topic: str, target_keyword: str, client_profile: ClientProfile,
                           marketing_context: Optional[MarketingContext] = None) -> GenerationRequest:
    brand_voice = _joined(marketing_context.brand_voice if marketing_context else None, "Professional, Helpful")
    brand_tone = (marketing_context.brand_tone if marketing_context else "") or "Professional, Helpful"
    prompt = f"""Research the following topic for a blog post:

TOPIC: {topic}
TARGET KEYWORD: {target_keyword}
PRODUCT/SERVICE: {client_profile.product_service_summary}
TARGET AUDIENCE: {client_profile.target_audience}

BRAND VOICE: {brand_voice}
BRAND TONE: {brand_tone}

Return a JSON object with:
- painPoints: array of audience pain points this content addresses
- keyFacts: array of key facts/statistics to include
- differentiators: array of unique angles vs competitors
- relatedSubtopics: array of related topics to consider
- suggestedAngles: array of content angle ideas"""
    return GenerationRequest(
        system_instruction="You are a Content Strategist and Researcher. Gather insights for content creation.",
        user_instruction=prompt,
        temperature=0.5,
    )


def run_research_agent(provider: GenerationProvider, topic: str, target_keyword: str,
                       client_profile: ClientProfile,
                       marketing_context: Optional[MarketingContext] = None) -> AgentResult:
    print("--- 🕵️ Agent: Research ---")
    request = build_research_request(topic, target_keyword, client_profile, marketing_context)
    result = _run_agent(
        "Research", provider, request,
        lambda raw: ResearchResult.model_validate(_as_object(parse_json_response(raw))),
    )
    if result.success:
        print(f"✅ Research done ({len(result.data.pain_points)} pain points, {len(result.data.key_facts)} facts)")
    return result


# ---------- Outline ----------

def build_outline_request(topic: str, target_keyword: str, word_count_goal: int,
                          client_profile: ClientProfile,
                          research: Optional[ResearchResult] = None) -> GenerationRequest:
    research = research or ResearchResult()
    prompt = f"""Create a detailed outline for a blog post:

TOPIC: {topic}
TARGET KEYWORD: {target_keyword}
WORD COUNT GOAL: {word_count_goal}
PRODUCT/SERVICE: {client_profile.product_service_summary}
TARGET AUDIENCE: {client_profile.target_audience}

INSTRUCTIONS:
Analyze the provided research and create a blog post outline.

RESEARCH INSIGHTS:
- Pain Points: {_joined(research.pain_points)}
- Key Facts: {_joined(research.key_facts)}
- Differentiators: {_joined(research.differentiators)}
- Related Subtopics: {_joined(research.related_subtopics)}
- Suggested Angles: {_joined(research.suggested_angles)}

Return a JSON object with:
- sections: array of {{key, title, type, keyPoints, estimatedWords}}
  - key: unique identifier (e.g., 'intro', 'body1', 'conclusion')
  - title: section heading
  - type: one of 'intro', 'body', 'conclusion', 'cta'
  - keyPoints: array of key points to cover
  - estimatedWords: word count for this section
- totalEstimatedWords: sum of all section word counts

Requirements:
- Must have at least 4 sections minimum
- Must include exactly one intro, at least 2 body sections, exactly one conclusion, and a CTA
- Total words should be close to word count goal"""
    return GenerationRequest(
        system_instruction="You are a Content Strategist creating blog post outlines.",
        user_instruction=prompt,
        temperature=0.5,
    )


def run_outline_agent(provider: GenerationProvider, topic: str, target_keyword: str,
                      word_count_goal: int, client_profile: ClientProfile,
                      research: Optional[ResearchResult] = None) -> AgentResult:
    request = build_outline_request(topic, target_keyword, word_count_goal, client_profile, research)
    result = _run_agent(
        "Outline", provider, request,
        lambda raw: OutlineResult.model_validate(_as_object(parse_json_response(raw))),
    )
    if result.success:
        print(f"✅ Outline: {[s.key for s in result.data.sections]} (~{result.data.total_estimated_words} words)")
    return result


# ---------- Draft ----------

def build_draft_request(section: OutlineSection, topic: str, target_keyword: Optional[str] = None,
                        marketing_context: Optional[MarketingContext] = None,
                        previous_sections: Optional[Sequence[str]] = None,
                        research_data: Optional[ResearchResult] = None,
                        client_profile: Optional[ClientProfile] = None,
                        context_window: int = DEFAULT_CONTEXT_WINDOW) -> GenerationRequest:
    key_points = "\n".join(f"- {p}" for p in section.key_points)
    brand_voice = _joined(marketing_context.brand_voice if marketing_context else None, "Professional, Clear")
    brand_tone = (marketing_context.brand_tone if marketing_context else "") or "Professional"
    brand_donts = _joined(marketing_context.content_donts if marketing_context else None, "Jargon, Passive Voice")

    instruction = f"""Write the following section of a blog post:

SECTION: {section.title} ({section.type.value})
KEY POINTS TO COVER:
{key_points}

TARGET WORD COUNT: {section.estimated_words} words
TARGET KEYWORD: {target_keyword or ''}
TOPIC: {topic}

BRAND VOICE: {brand_voice}
BRAND TONE: {brand_tone}
BRAND DON'TS: {brand_donts}
"""
    if client_profile:
        instruction += f"""
PRODUCT/SERVICE: {client_profile.product_service_summary}
TARGET AUDIENCE: {client_profile.target_audience}
"""
    if research_data:
        instruction += f"""
RESEARCH NOTES:
- Key Facts: {_joined(research_data.key_facts)}
- Differentiators: {_joined(research_data.differentiators)}
"""
    # only the most recent bodies go in, older ones are dropped to bound the prompt
    context = list(previous_sections or [])[-context_window:] if context_window > 0 else []
    if context:
        joined = "\n\n---\n\n".join(context)
        instruction += f"""
PREVIOUS SECTIONS FOR CONTEXT:
{joined}
"""
    instruction += """
Return a JSON object with:
- content: the written section content (markdown format)
- wordCount: actual word count"""
    return GenerationRequest(
        system_instruction="You are an expert Content Writer creating blog post sections.",
        user_instruction=instruction,
        temperature=0.7,
    )


def _parse_draft(raw: str, section: OutlineSection) -> DraftSectionResult:
    payload = dict(_as_object(parse_json_response(raw)))
    # the echoed key is never trusted
    payload.pop("section_key", None)
    payload["sectionKey"] = section.key
    if not payload.get("wordCount") and not payload.get("word_count"):
        payload["wordCount"] = len(str(payload.get("content", "")).split())
    return DraftSectionResult.model_validate(payload)


def run_draft_agent(provider: GenerationProvider, section: OutlineSection, topic: str,
                    target_keyword: Optional[str] = None,
                    marketing_context: Optional[MarketingContext] = None,
                    previous_sections: Optional[Sequence[str]] = None,
                    research_data: Optional[ResearchResult] = None,
                    client_profile: Optional[ClientProfile] = None,
                    context_window: int = DEFAULT_CONTEXT_WINDOW) -> AgentResult:
    request = build_draft_request(section, topic, target_keyword, marketing_context,
                                  previous_sections, research_data, client_profile, context_window)
    return _run_agent(f"Draft '{section.key}'", provider, request, lambda raw: _parse_draft(raw, section))


def combine_sections(sections: Sequence[DraftedSection]) -> str:
    return "\n\n".join(s.content for s in sections)


# ---------- SEO ----------

def build_seo_request(full_draft_content: str, topic: Optional[str] = None,
                      target_keyword: Optional[str] = None) -> GenerationRequest:
    prompt = f"""Optimize the following content for SEO:

TOPIC: {topic or ''}
TARGET KEYWORD: {target_keyword or ''}

CONTENT:
{full_draft_content[:SEO_CONTENT_LIMIT]}... [truncated]

Return a JSON object with:
- title: SEO-optimized title (50-60 chars, include keyword)
- metaDescription: compelling meta description (120-160 chars)
- slug: URL-friendly slug
- suggestions: array of improvement suggestions
- keywordDensity: keyword density as a percentage number (e.g. 1.8)
- readabilityScore: one of "Good", "Fair", "Needs Improvement"
"""
    return GenerationRequest(
        system_instruction="You are an SEO expert optimizing blog content for search engines.",
        user_instruction=prompt,
        temperature=0.3,
    )


def run_seo_agent(provider: GenerationProvider, full_draft_content: str,
                  topic: Optional[str] = None, target_keyword: Optional[str] = None) -> AgentResult:
    print("--- 🔧 Agent: SEO ---")
    request = build_seo_request(full_draft_content, topic, target_keyword)
    result = _run_agent(
        "SEO", provider, request,
        lambda raw: SEOMetadata.model_validate(_as_object(parse_json_response(raw))),
    )
    if result.success:
        print(f"✅ SEO done: '{result.data.title}'")
    return result


# ---------- Voice / Tone ----------

def build_voice_tone_request(full_draft_content: str, marketing_context: MarketingContext,
                             section_contents: Dict[str, str]) -> GenerationRequest:
    donts = [f"- {d}" for d in marketing_context.content_donts]
    banned = ", ".join(f'"{w}"' for w in ALWAYS_BANNED_BUZZWORDS)
    donts.append(f"- Avoid buzzwords like {banned}, etc.")
    donts_block = "\n".join(donts)
    section_keys = ", ".join(section_contents) or "(none)"

    prompt = f"""BRAND VOICE TRAITS: {_joined(marketing_context.brand_voice)}

BRAND TONE: {marketing_context.brand_tone}

CONTENT DON'TS (things to avoid):
{donts_block}

SECTION KEYS (use them in sectionKey): {section_keys}

DRAFT CONTENT TO REVIEW:
{full_draft_content[:VOICE_TONE_CONTENT_LIMIT]}

INSTRUCTIONS:
Analyze the content for brand voice alignment. Return a JSON object with:
- alignmentScore: 0-100 (how well content matches brand voice)
- issues: array of {{sectionKey, issue, suggestion, severity}}
- overallFeedback: summary of alignment
- passed: true if score >= 80"""
    return GenerationRequest(
        system_instruction="You are a Brand Voice Analyst. Analyze content for brand voice alignment.",
        user_instruction=prompt,
        temperature=0.3,
    )


def run_voice_tone_agent(provider: GenerationProvider, full_draft_content: str,
                         marketing_context: MarketingContext,
                         section_contents: Dict[str, str]) -> AgentResult:
    print("--- 🎨 Agent: Voice/Tone ---")
    request = build_voice_tone_request(full_draft_content, marketing_context, section_contents)
    result = _run_agent(
        "Voice/Tone", provider, request,
        lambda raw: VoiceToneResult.model_validate(_as_object(parse_json_response(raw))),
    )
    if result.success:
        print(f"✅ Voice/Tone: score {result.data.alignment_score}, {len(result.data.issues)} issues")
    return result


def get_high_severity_issues(issues: List[VoiceToneIssue]) -> List[VoiceToneIssue]:
    return [i for i in issues if i.severity == Severity.HIGH]
