"""Shared fixtures: a scripted provider standing in for the LLM and ready-made stage answers.

The project root is put on ``sys.path`` so the flat modules import the same way
however pytest is invoked.
"""
import json
import os
import re
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from models import ClientProfile, EXAMPLE_MARKETING_CONTEXT, PipelineInput  # noqa: E402


class ScriptedProvider:
    """Routes each request to a handler by the agent's system instruction."""

    name = "scripted"

    def __init__(self, handlers):
        self.handlers = handlers
        self.requests = []

    def call(self, request):
        self.requests.append(request)
        system = request.system_instruction or ""
        for marker, handler in self.handlers.items():
            if marker in system:
                answer = handler(request) if callable(handler) else handler
                if isinstance(answer, Exception):
                    raise answer
                return answer if isinstance(answer, str) else json.dumps(answer)
        raise AssertionError(f"Unexpected request: {system}")

    def requests_for(self, marker):
        return [r for r in self.requests if marker in (r.system_instruction or "")]


RESEARCH = "Content Strategist and Researcher"
OUTLINE = "creating blog post outlines"
DRAFT = "expert Content Writer"
SEO = "SEO expert"
VOICE = "Brand Voice Analyst"


def section_title(request):
    return re.search(r"SECTION: (.+?) \(", request.user_instruction).group(1)


RESEARCH_ANSWER = {
    "painPoints": ["Leads go cold", "Manual data entry"],
    "keyFacts": ["Reps spend a third of their week selling"],
    "differentiators": ["Native AI"],
    "relatedSubtopics": ["Pipeline hygiene"],
    "suggestedAngles": ["Time saved per rep"],
}

OUTLINE_ANSWER = {
    "sections": [
        {"key": "intro", "title": "Intro", "type": "intro", "keyPoints": ["p1"], "estimatedWords": 300},
        {"key": "body1", "title": "Main", "type": "body", "keyPoints": ["p2"], "estimatedWords": 400},
        {"key": "body2", "title": "Second", "type": "body", "keyPoints": ["p3"], "estimatedWords": 400},
        {"key": "conclusion", "title": "Conclusion", "type": "conclusion", "keyPoints": ["p4"], "estimatedWords": 200},
        {"key": "cta", "title": "CTA", "type": "cta", "keyPoints": ["p5"], "estimatedWords": 100},
    ],
    "totalEstimatedWords": 1400,
}

INVALID_OUTLINE_ANSWER = {
    "sections": [
        {"key": "intro", "title": "Intro", "type": "intro", "keyPoints": [], "estimatedWords": 200},
        {"key": "body1", "title": "Main", "type": "body", "keyPoints": [], "estimatedWords": 300},
        {"key": "conclusion", "title": "Conclusion", "type": "conclusion", "keyPoints": [], "estimatedWords": 150},
    ],
    "totalEstimatedWords": 650,
}

SEO_ANSWER = {
    "title": "How AI CRM Tools Help Sales Teams Close Deals Faster",
    "metaDescription": (
        "Learn how an AI CRM helps mid-market sales teams prioritise leads, "
        "automate follow-ups and close more deals without adding headcount."
    ),
    "slug": "ai-crm-close-deals-faster",
    "suggestions": ["Add a comparison table"],
    "keywordDensity": 1.8,
    "readabilityScore": "Good",
}

VOICE_ANSWER = {
    "alignmentScore": 88,
    "issues": [{"sectionKey": "body2", "issue": "Slightly salesy", "suggestion": "Tone it down", "severity": "low"}],
    "overallFeedback": "Well-aligned",
    "passed": True,
}


def draft_answer(request):
    title = section_title(request)
    return {"content": f"Body of {title}.", "wordCount": 3}


@pytest.fixture
def handlers():
    return {
        RESEARCH: RESEARCH_ANSWER,
        OUTLINE: OUTLINE_ANSWER,
        DRAFT: draft_answer,
        SEO: SEO_ANSWER,
        VOICE: VOICE_ANSWER,
    }


@pytest.fixture
def pipeline_input():
    return PipelineInput(
        topic="AI CRM Benefits",
        target_keyword="AI CRM",
        word_count_goal=1200,
        client_profile=ClientProfile(product_service_summary="AI CRM", target_audience="Sales teams"),
        marketing_context=EXAMPLE_MARKETING_CONTEXT,
        content_id="test-123",
    )
