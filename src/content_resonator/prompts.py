"""Prompt scaffolding for persona generation, interviews and synthesis."""

from __future__ import annotations

from dataclasses import dataclass
from string import Template
from typing import Mapping

from .config import ContentMode

SYSTEM_PROMPT = (
    "You simulate focus-group research for communications teams. "
    "Always answer with a single JSON object and nothing else."
)

RETRY_NOTE = (
    "Your previous response was not valid JSON matching the required "
    "schema. Respond with JSON only, no markdown or commentary."
)


@dataclass(slots=True)
class ModePromptPack:
    """Severity-specific wording injected into the shared templates."""

    audience: str
    interview_stance: str
    synthesis_stance: str


MODE_PROMPTS: Mapping[ContentMode, ModePromptPack] = {
    ContentMode.STANDARD: ModePromptPack(
        audience=(
            "Create a balanced mix of realistic target-audience members, "
            "including at least one skeptic."
        ),
        interview_stance=(
            "React honestly as this persona would on first read. Be fair "
            "and specific."
        ),
        synthesis_stance=(
            "Weigh the feedback evenly and judge whether the content is "
            "ready to publish."
        ),
    ),
    ContentMode.CRISIS: ModePromptPack(
        audience=(
            "This content is a crisis communication. Create hostile and "
            "adversarial stakeholders: affected customers, investigative "
            "journalists, regulators, activists and angry employees."
        ),
        interview_stance=(
            "Read this as a stressed, suspicious stakeholder during a crisis. "
            "Probe for evasion, blame-shifting, legal hedging and anything "
            "that sounds defensive or insincere."
        ),
        synthesis_stance=(
            "Assess the statement under crisis conditions. Penalize "
            "defensiveness and corporate jargon heavily; reward accountability "
            "and concrete remediation."
        ),
    ),
}

PERSONA_SLATE_TEMPLATE = Template(
    """
$audience

Generate $count distinct reviewer personas who would read the content below.
Respond ONLY with JSON using this schema:{
  "personas": [
    {
      "name": string,
      "role": string,
      "description": string,
      "painPoints": [string]
    }
  ]
}
Give each persona 2-4 pain points that shape how they read the content.

Content:
<<<
$content
>>>""".strip()
)

WILDCARD_TEMPLATE = Template(
    """
Invent ONE unexpected reviewer for the content below: someone outside the
obvious audience whose reaction could still matter (a competitor, a
journalist, a family member of a customer, a future employee...).
Respond ONLY with JSON using this schema:{
  "name": string,
  "role": string,
  "description": string,
  "painPoints": [string]
}

Content:
<<<
$content
>>>""".strip()
)

INTERVIEW_TEMPLATE = Template(
    """
You are $name, $role.
$description
Your pain points: $pain_points

$stance

Read the content below and answer in character. Respond ONLY with JSON using
this schema:{
  "strengths": [string],
  "confusionPoints": [string],
  "suggestions": [string]
}
List 2-4 entries per field, each under 200 characters.

Content:
<<<
$content
>>>""".strip()
)

SYNTHESIS_TEMPLATE = Template(
    """
$stance

Below are the interview results from $count simulated reviewers. Fold them
into one report. Respond ONLY with JSON using this schema:{
  "overallScore": number (0-100),
  "toneAnalysis": {
    "defensiveness": number (0-100),
    "corporatespeak": number (0-100),
    "empathy": number (0-100),
    "clarity": number (0-100)
  },
  "goNoGo": {
    "decision": "GO" | "NO-GO" | "HOLD",
    "confidenceScore": number (0-100),
    "reasoning": string
  },
  "executiveSummary": string
}

Interview results (JSON):
$results""".strip()
)


def build_slate_prompt(content: str, mode: ContentMode, *, count: int) -> str:
    return PERSONA_SLATE_TEMPLATE.substitute(
        audience=MODE_PROMPTS[mode].audience,
        count=count,
        content=content,
    )


def build_wildcard_prompt(content: str) -> str:
    return WILDCARD_TEMPLATE.substitute(content=content)


def build_interview_prompt(
    content: str,
    *,
    name: str,
    role: str,
    description: str,
    pain_points: str,
    mode: ContentMode,
) -> str:
    return INTERVIEW_TEMPLATE.substitute(
        name=name,
        role=role or "a reviewer",
        description=description,
        pain_points=pain_points or "none stated",
        stance=MODE_PROMPTS[mode].interview_stance,
        content=content,
    )


def build_synthesis_prompt(
    results_json: str,
    mode: ContentMode,
    *,
    count: int,
) -> str:
    return SYNTHESIS_TEMPLATE.substitute(
        stance=MODE_PROMPTS[mode].synthesis_stance,
        count=count,
        results=results_json,
    )
