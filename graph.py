"""
Pipeline orchestrator.

Research -> [Outline -> validate] (bounded retries) -> Draft (one call per section,
in order) -> SEO -> Voice/Tone -> quality gates. Built as a LangGraph workflow;
``run_pipeline`` is the outer boundary that turns any error into a failed result.
"""
from functools import reduce
from typing import NamedTuple, Optional, Tuple

from langgraph.graph import END, StateGraph

from agents import (
    combine_sections,
    run_draft_agent,
    run_outline_agent,
    run_research_agent,
    run_seo_agent,
    run_voice_tone_agent,
)
from config import PipelinePolicy
from models import (
    DraftedSection,
    OutlineResult,
    PipelineInput,
    PipelineResult,
    QualityGates,
    QualityGateVerdict,
    ResearchResult,
)
from providers import BoundedProvider, CancellationToken, GenerationProvider
from state import PipelineState
from validators import check_completeness, seo_gate, validate_outline, voice_tone_gate

OUTLINE_FAILED_ERROR = "Outline quality gate failed after max retries"


# ---------- Draft fold ----------

class DraftAccumulator(NamedTuple):
    sections: Tuple[DraftedSection, ...] = ()
    previous: Tuple[str, ...] = ()


def draft_sections(provider: GenerationProvider, outline: OutlineResult, pipeline_input: PipelineInput,
                   research: Optional[ResearchResult] = None, context_window: int = 2,
                   token: Optional[CancellationToken] = None) -> Tuple[DraftedSection, ...]:
    """
    Writes the outline sections one after another.

    Each call sees the bodies of the sections written so far, capped at the last
    ``context_window``. A section whose call fails is left out; the loop goes on.
    """
    total = len(outline.sections)

    def step(acc: DraftAccumulator, item) -> DraftAccumulator:
        index, section = item
        if token is not None:
            token.raise_if_cancelled()
        print(f"--- ✍️ Writing section {index}/{total}: {section.title} ({section.key}) ---")
        result = run_draft_agent(
            provider,
            section=section,
            topic=pipeline_input.topic,
            target_keyword=pipeline_input.target_keyword,
            marketing_context=pipeline_input.marketing_context,
            previous_sections=acc.previous,
            research_data=research,
            client_profile=pipeline_input.client_profile,
            context_window=context_window,
        )
        if not result.success:
            print(f"--- 👎 Section '{section.key}' dropped: {result.error} ---")
            return acc
        # key comes from the outline, not from the model answer
        drafted = DraftedSection(key=section.key, content=result.data.content)
        previous = acc.previous + (drafted.content,)
        return DraftAccumulator(
            sections=acc.sections + (drafted,),
            previous=previous[-context_window:] if context_window > 0 else (),
        )

    final = reduce(step, enumerate(outline.sections, 1), DraftAccumulator())
    return final.sections


# ---------- Nodes ----------

def research_node(state: PipelineState) -> dict:
    state["token"].raise_if_cancelled()
    data = state["pipeline_input"]
    result = run_research_agent(
        state["provider"],
        topic=data.topic,
        target_keyword=data.target_keyword,
        client_profile=data.client_profile,
        marketing_context=data.marketing_context,
    )
    if not result.success:
        print(f"❌ Research failed: {result.error}")
        return {"research": None, "error": f"Research failed: {result.error}"}
    return {"research": result.data}


def outline_node(state: PipelineState) -> dict:
    token = state["token"]
    policy = state["policy"]
    attempt = state.get("outline_attempts", 0) + 1
    retry_count = state.get("retry_count", 0)
    if attempt > 1:
        delay = policy.backoff_delay(attempt - 1)
        if delay:
            print(f"--- ⏳ Waiting {delay:.1f}s before the next outline ---")
            token.wait(delay)
    token.raise_if_cancelled()

    print(f"\n--- 📋 Agent: Outline (attempt #{attempt}/{policy.max_outline_attempts}) ---")
    data = state["pipeline_input"]
    result = run_outline_agent(
        state["provider"],
        topic=data.topic,
        target_keyword=data.target_keyword,
        word_count_goal=data.word_count_goal,
        client_profile=data.client_profile,
        research=state.get("research"),
    )
    if not result.success:
        return {
            "outline_attempts": attempt,
            "outline_valid": False,
            "outline_issues": [result.error or "Outline agent failed"],
            "retry_count": retry_count + 1,
        }

    validation = validate_outline(result.data, data.word_count_goal)
    if not validation.valid:
        print(f"--- 👎 Outline REJECTED: {'; '.join(validation.issues)} ---")
        return {
            "outline_attempts": attempt,
            "outline_valid": False,
            "outline_issues": validation.issues,
            "retry_count": retry_count + 1,
        }

    print("--- 👍 Outline APPROVED. ---")
    return {
        "outline": result.data,
        "outline_attempts": attempt,
        "outline_valid": True,
        "outline_issues": [],
    }


def outline_failed_node(state: PipelineState) -> dict:
    print(f"❌ {OUTLINE_FAILED_ERROR} ({state.get('retry_count', 0)} attempts)")
    return {"error": OUTLINE_FAILED_ERROR}


def draft_node(state: PipelineState) -> dict:
    print("\n--- ✍️ Agent: Section Writer ---")
    sections = draft_sections(
        state["provider"],
        state["outline"],
        state["pipeline_input"],
        research=state.get("research"),
        context_window=state["policy"].context_window,
        token=state["token"],
    )
    full_draft = combine_sections(sections)
    print(f"✅ {len(sections)}/{len(state['outline'].sections)} sections written")
    return {"sections": list(sections), "full_draft": full_draft}


def seo_node(state: PipelineState) -> dict:
    state["token"].raise_if_cancelled()
    data = state["pipeline_input"]
    result = run_seo_agent(
        state["provider"],
        full_draft_content=state.get("full_draft", ""),
        topic=data.topic,
        target_keyword=data.target_keyword,
    )
    return {"seo_metadata": result.data if result.success else None}


def voice_tone_node(state: PipelineState) -> dict:
    state["token"].raise_if_cancelled()
    section_contents = {s.key: s.content for s in state.get("sections", [])}
    result = run_voice_tone_agent(
        state["provider"],
        full_draft_content=state.get("full_draft", ""),
        marketing_context=state["pipeline_input"].marketing_context,
        section_contents=section_contents,
    )
    return {"voice_tone_report": result.data if result.success else None}


def assemble_gates_node(state: PipelineState) -> dict:
    print("--- ⚖️ Quality gates ---")
    seo_metadata = state.get("seo_metadata")
    report = state.get("voice_tone_report")
    gates = QualityGates(
        outline=QualityGateVerdict(passed=True, reason="Outline meets requirements"),
        completeness=check_completeness(
            len(state.get("sections", [])),
            len(state["outline"].sections),
            threshold=state["policy"].completeness_threshold,
        ),
        seo=seo_gate(seo_metadata) if seo_metadata else None,
        voice_tone=voice_tone_gate(report) if report else None,
    )
    for name in ("outline", "completeness", "seo", "voice_tone"):
        verdict = getattr(gates, name)
        if verdict is None:
            print(f"  - {name}: not run")
        else:
            print(f"  - {name}: {'✅' if verdict.passed else '❌'} {verdict.reason or ''}")
    return {"quality_gates": gates}


# ---------- Routing ----------

def after_research(state: PipelineState) -> str:
    return "fail" if state.get("error") else "write_outline"


def should_continue_outlining(state: PipelineState) -> str:
    if state.get("outline_valid"):
        return "start_writing"
    if state.get("outline_attempts", 0) >= state["policy"].max_outline_attempts:
        print("--- ⚠️ Outline retry limit reached. ---")
        return "give_up"
    print("--- 👎 Outline needs another attempt. ---")
    return "revise_outline"


def build_workflow(checkpointer=None):
    """
    Builds the LangGraph workflow.

    Args:
        checkpointer: optional checkpointer for persisting state between steps

    Returns:
        The compiled workflow
    """
    workflow = StateGraph(PipelineState)

    workflow.add_node("research", research_node)
    workflow.add_node("outline", outline_node)
    workflow.add_node("outline_failed", outline_failed_node)
    workflow.add_node("draft_sections", draft_node)
    workflow.add_node("seo", seo_node)
    workflow.add_node("voice_tone", voice_tone_node)
    workflow.add_node("assemble_gates", assemble_gates_node)

    workflow.set_entry_point("research")

    workflow.add_conditional_edges(
        "research",
        after_research,
        {"write_outline": "outline", "fail": END}
    )

    # Outline generation + validation loop
    workflow.add_conditional_edges(
        "outline",
        should_continue_outlining,
        {
            "revise_outline": "outline",
            "start_writing": "draft_sections",
            "give_up": "outline_failed",
        }
    )
    workflow.add_edge("outline_failed", END)

    workflow.add_edge("draft_sections", "seo")
    workflow.add_edge("seo", "voice_tone")
    workflow.add_edge("voice_tone", "assemble_gates")
    workflow.add_edge("assemble_gates", END)

    if checkpointer:
        return workflow.compile(checkpointer=checkpointer)
    return workflow.compile()


def _to_result(final_state: dict) -> PipelineResult:
    retry_count = final_state.get("retry_count", 0)
    if final_state.get("error"):
        return PipelineResult(success=False, error=final_state["error"], retry_count=retry_count)
    return PipelineResult(
        success=True,
        research=final_state.get("research"),
        outline=final_state.get("outline"),
        sections=final_state.get("sections", []),
        full_draft=final_state.get("full_draft", ""),
        seo_metadata=final_state.get("seo_metadata"),
        voice_tone_report=final_state.get("voice_tone_report"),
        quality_gates=final_state.get("quality_gates"),
        retry_count=retry_count,
    )


def run_pipeline(provider: GenerationProvider, pipeline_input: PipelineInput,
                 policy: Optional[PipelinePolicy] = None,
                 token: Optional[CancellationToken] = None,
                 workflow_app=None) -> PipelineResult:
    """
    Runs one content item through the whole pipeline.

    Never raises: any error, including cancellation, ends as ``success=False``
    with the retry count accumulated so far. Gates are advisory, so a run that
    reaches the end is ``success=True`` even when some gates failed.
    """
    policy = policy or PipelinePolicy()
    token = token or CancellationToken()
    workflow_app = workflow_app or build_workflow()

    initial_state = {
        "pipeline_input": pipeline_input,
        "provider": BoundedProvider(provider, timeout=policy.call_timeout, token=token),
        "policy": policy,
        "token": token,
        "outline_attempts": 0,
        "retry_count": 0,
    }
    label = pipeline_input.content_id or pipeline_input.topic
    print(f"🚀 Pipeline start: {label}")
    print(f"🧠 Model: {getattr(provider, 'name', type(provider).__name__)}")
    print("=" * 60)

    final_state = dict(initial_state)
    step_counter = 0
    # research + outline attempts + draft, seo, voice_tone, gates
    config = {"recursion_limit": policy.max_outline_attempts + 10}
    try:
        for update in workflow_app.stream(initial_state, config):
            for step_name, payload in (update or {}).items():
                step_counter += 1
                if payload:
                    final_state.update(payload)
                print(f"🔄 Step #{step_counter}: {step_name}")
    except Exception as e:
        print(f"❌ Pipeline error: {e}")
        return PipelineResult(success=False, error=str(e), retry_count=final_state.get("retry_count", 0))

    result = _to_result(final_state)
    print(f"🏁 Pipeline {'finished' if result.success else 'failed'}: {label}")
    return result


if __name__ == "__main__":
    app = build_workflow()
    print("Workflow compiled successfully.")
