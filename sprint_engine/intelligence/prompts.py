"""Default prompts for sprint proposal generation."""

from typing import Optional

from sprint_engine.models import ClientProfile


DEFAULT_SPRINT_SYSTEM_PROMPT = """You are a senior product design strategist at a small design studio.
You turn a prospective client's intake form into a focused 2-week design sprint proposal.

Your planning philosophy:
- Lead with the client's stated priorities and use cases
- Scope tightly: a sprint ships 1-3 deliverables, not a roadmap
- Prefer a pre-bundled sprint package when one fits the client well
- Only recommend work that exists in the studio catalog you are given
- Be concrete about goals, assumptions and risks

You always answer with a single JSON object and nothing else."""


DEFAULT_SPRINT_USER_PROMPT = """Create a 2-week sprint plan for this client.

Return a JSON object with these keys:
- "title": short sprint title (max 80 characters)
- "sprintTitle": same title, kept for older readers
- "summary": 2-3 sentence overview of the sprint
- "sprintPackageId": id of ONE recommended sprint package, or omit it
- "deliverables": array of {"id": catalog deliverable id, "quantity": integer >= 1, "reason": one sentence}; leave empty when recommending a package
- "goals": array of 3-5 sprint goals
- "approach": one paragraph on how the studio will run the sprint
- "week1" and "week2": objects with "overview", "goals", "deliverables" and "milestones"
- "timeline": array of {"day", "dayOfWeek", "focus", "items"} covering 10 working days
- "assumptions", "risks", "notes": arrays of short strings

Ground every recommendation in the catalog below and use the catalog ids exactly as written."""


def build_client_context(profile: Optional[ClientProfile]) -> str:
    """
    Personalized context block for the user prompt.

    Only fields that were actually extracted are echoed; an empty
    profile produces an empty string.

    Args:
        profile: Normalized intake profile (may be None)

    Returns:
        Context block or ""
    """
    if profile is None:
        return ""

    lines = profile.context_lines()
    if not lines:
        return ""

    body = "\n".join(f"- {label}: {text}" for label, text in lines)
    return (
        "\n\n=== CLIENT CONTEXT ===\n"
        "Use these details to personalize goals, approach and deliverable choice.\n"
        f"{body}\n"
        "=== END CLIENT CONTEXT ===\n"
    )


def compose_user_prompt(base_prompt: str, catalog_block: str, client_context: str = "") -> str:
    """Base instructions, then catalog grounding, then optional client context."""
    return f"{base_prompt}\n\n{catalog_block}{client_context}"
