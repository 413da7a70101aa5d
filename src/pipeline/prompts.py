# src/pipeline/prompts.py — v1
"""Prompt builders for the gate, the five stages and the fallback.

Every builder is a pure function of its inputs returning a PromptSpec
(user prompt + generation options), so prompts are testable without a
generation service.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

from vinenrich.core.models import ConfidenceAssessment, ConfidenceRejection, WorkItem
from vinenrich.llm.models import GenerationOptions
from vinenrich.pipeline.categories import accuracy_rules
from vinenrich.pipeline.state import PipelineContext


class PromptSpec(BaseModel):
    """A ready-to-send generation request."""

    user: str
    options: GenerationOptions


# === Output schemas ===


class InitialResearchOutput(BaseModel):
    wine_rating: str = ""
    producer_reputation: str = ""
    vintage_conditions: str = ""
    basic_profile: str = ""


class ClassificationOutput(BaseModel):
    appellation_classification: str = ""
    producer_standing: str = ""
    site_classification: str = ""
    production_scope: str = ""


class DeepMiningOutput(BaseModel):
    terroir_characteristics: str = ""
    winemaking_techniques: str = ""
    critical_acclaim: str = ""
    scarcity_factors: str = ""


class NarrativeOutput(BaseModel):
    what_makes_special: str = ""


class DetailedProfileOutput(BaseModel):
    general_guest_experience: str = ""
    aroma_notes: str = ""
    flavor_notes: str = ""
    body_description: str = ""


class ApplicationOutput(BaseModel):
    food_pairing: str = ""
    serving_temp: str = ""
    aging_potential: str = ""


class TheoreticalOutput(BaseModel):
    general_guest_experience: str = ""
    flavor_notes: str = ""
    aroma_notes: str = ""
    what_makes_special: str = ""
    body_description: str = ""
    food_pairing: str = ""
    serving_temp: str = ""
    aging_potential: str = ""


# === System prompts ===

SOMMELIER_SYSTEM = (
    "You are a Master Sommelier with 30+ years experience writing comprehensive "
    "wine analyses. Write detailed, professional analysis in full sentences. "
    "Do not use bullet points or numbered lists inside field values."
)
RESEARCH_SYSTEM = (
    "You are a wine research specialist conducting prestige assessment. "
    "Focus on verifiable classifications and established facts."
)
TERROIR_SYSTEM = (
    "You are a wine terroir and prestige specialist. Conduct deep research on "
    "geological, climatic, and historical factors that create wine distinction. "
    "Focus on concrete, verifiable facts."
)
COPYWRITER_SYSTEM = (
    "You are a sommelier copywriter creating compelling wine prestige descriptions "
    "for restaurant sales. Focus on verified distinctions that justify premium "
    "pricing. Omit uncertain information entirely."
)


def _descriptor_block(item: WorkItem) -> str:
    d = item.descriptor()
    return (
        f"Wine: {d['wine_name']}\n"
        f"Producer: {d['producer']}\n"
        f"Vintage: {d['vintage']}\n"
        f"Region: {d['region']}, {d['country']}\n"
        f"Grape Varieties: {d['varietals']}\n"
        f"Type: {d['wine_type']}"
    )


def _json_template(fields: dict[str, str]) -> str:
    return json.dumps(fields, ensure_ascii=False, indent=2)


def _prior(context: PipelineContext, stage: int) -> str:
    return context.serialize(up_to=stage)


# === Confidence gate ===

_CONFIDENCE_TEMPLATE = """Assess your knowledge confidence for this wine.

{descriptor}

Consider:
- Is this a real producer you know exists?
- Does the vintage year make sense for this producer?
- Is this wine name consistent with the producer's portfolio?
- Do you have specific knowledge about this wine/vintage combination?

Be extremely conservative. If there's ANY uncertainty, mark as low confidence.

Respond with JSON only:
{template}"""


def confidence_prompt(item: WorkItem) -> PromptSpec:
    template = _json_template({
        "knowledge_exists": "true/false",
        "confidence": "high|medium|low|none",
        "hallucination_risk": "true/false",
        "recommendation": "use_generated|seek_other_sources|insufficient_info",
        "concerns": "any specific concerns about authenticity or knowledge gaps",
    })
    return PromptSpec(
        user=_CONFIDENCE_TEMPLATE.format(
            descriptor=_descriptor_block(item), template=template
        ),
        options=GenerationOptions(
            temperature=0.1,
            max_tokens=500,
            response_format=ConfidenceAssessment,
            cache_prefix="confidence",
        ),
    )


# === Stage 1 ===

_INITIAL_RESEARCH_TEMPLATE = """As a Master Sommelier, conduct comprehensive initial research for this wine. Provide extensive detail in each section.

{descriptor}

Provide detailed Stage 1 research in JSON format:
{template}"""


def initial_research_prompt(context: PipelineContext) -> PromptSpec:
    template = _json_template({
        "wine_rating": "Professional rating out of 100 from established critics "
                       "(start with the number, e.g. '94 points - ...')",
        "producer_reputation": "8-10 sentences on the producer's history, philosophy, "
                               "vineyard practices and market position",
        "vintage_conditions": "6-8 sentences on weather, harvest conditions and how "
                              "they shaped this vintage",
        "basic_profile": "8-10 sentences on style, quality tier, structure and "
                         "positioning within the appellation",
    })
    return PromptSpec(
        user=_INITIAL_RESEARCH_TEMPLATE.format(
            descriptor=_descriptor_block(context.item), template=template
        ),
        options=GenerationOptions(
            system=SOMMELIER_SYSTEM,
            temperature=0.3,
            max_tokens=4000,
            response_format=InitialResearchOutput,
            cache_prefix="stage1",
        ),
    )


# === Stage 2: three phases ===

_CLASSIFICATION_TEMPLATE = """Conduct initial prestige research for this wine. Identify:
1. Appellation classification and prestige level
2. Producer reputation and establishment history
3. Vineyard site classification (Premier Cru, Grand Cru, etc.)
4. Basic production volume and distribution scope

{descriptor}

Prior research:
{prior}

Provide factual findings only. No speculation. Respond in JSON format:
{template}"""

_DEEP_MINING_TEMPLATE = """Conduct comprehensive prestige analysis with focus on terroir distinctiveness:

TERROIR ANALYSIS (Primary Focus):
- Unique geological features: soil composition, drainage, mineral content
- Microclimate advantages: elevation, aspect, temperature variations
- Historical vineyard significance: ancient plantings, classified sites

WINEMAKING:
- Harvest, fermentation, maceration and aging choices tied to this estate

CRITICAL ACCLAIM & RECOGNITION:
- Specific critic scores, professional awards, historical vintage assessments

SCARCITY & EXCLUSIVITY:
- Production limitations, allocation systems, vintage rarity, estate size

{descriptor}

Prior research:
{prior}

Classification findings:
{classification}

ONLY include verifiable facts with 90%+ confidence. Respond in JSON format:
{template}"""

_NARRATIVE_TEMPLATE = """Create a compelling prestige narrative for restaurant sales context.

REQUIREMENTS:
- Lead with the most compelling prestige factor
- Use concrete numbers and specific details
- Emphasize uniqueness and exclusivity
- Connect prestige to flavor experience
- Include terroir as primary distinction
- 300-800 characters for optimal readability

OMISSION RULE: If any factor lacks 90% confidence, omit entirely. No qualifying language.

{descriptor}

Research findings:
{findings}

Respond in JSON format:
{template}"""


def classification_prompt(context: PipelineContext) -> PromptSpec:
    template = _json_template({
        "appellation_classification": "appellation and its prestige level",
        "producer_standing": "producer reputation and establishment history",
        "site_classification": "vineyard site classification",
        "production_scope": "production volume and distribution scope",
    })
    return PromptSpec(
        user=_CLASSIFICATION_TEMPLATE.format(
            descriptor=_descriptor_block(context.item),
            prior=_prior(context, 2),
            template=template,
        ),
        options=GenerationOptions(
            system=RESEARCH_SYSTEM,
            temperature=0.2,
            max_tokens=800,
            response_format=ClassificationOutput,
            cache_prefix="stage2a",
        ),
    )


def deep_mining_prompt(
    context: PipelineContext, classification: dict[str, Any] | None
) -> PromptSpec:
    template = _json_template({
        "terroir_characteristics": "soil, microclimate, slope and their effect on the wine",
        "winemaking_techniques": "harvest, fermentation and aging decisions",
        "critical_acclaim": "critic scores and awards with sources",
        "scarcity_factors": "production limits and exclusivity",
    })
    return PromptSpec(
        user=_DEEP_MINING_TEMPLATE.format(
            descriptor=_descriptor_block(context.item),
            prior=_prior(context, 2),
            classification=_dump(classification),
            template=template,
        ),
        options=GenerationOptions(
            system=TERROIR_SYSTEM,
            temperature=0.2,
            max_tokens=1200,
            response_format=DeepMiningOutput,
            cache_prefix="stage2b",
        ),
    )


def narrative_prompt(context: PipelineContext, findings: dict[str, Any]) -> PromptSpec:
    template = _json_template({
        "what_makes_special": "final prestige description that drives wine sales",
    })
    return PromptSpec(
        user=_NARRATIVE_TEMPLATE.format(
            descriptor=_descriptor_block(context.item),
            findings=_dump(findings),
            template=template,
        ),
        options=GenerationOptions(
            system=COPYWRITER_SYSTEM,
            temperature=0.4,
            max_tokens=600,
            response_format=NarrativeOutput,
            cache_prefix="stage2c",
        ),
    )


# === Stage 3 ===

_DETAILED_PROFILE_TEMPLATE = """Develop comprehensive tasting analysis building on previous research. CRITICAL ACCURACY REQUIREMENT: Only describe characteristics authentic to this wine's actual grape varieties and region.

{descriptor}

Previous research:
{prior}

MANDATORY GRAPE ACCURACY CHECK:
{rules}

Create detailed Stage 3 tasting analysis in JSON format:
{template}"""


def detailed_profile_prompt(context: PipelineContext) -> PromptSpec:
    template = _json_template({
        "general_guest_experience": "8 sentences: appearance, nose, palate entry, "
                                    "mid-palate, tannin and alcohol balance, complexity, "
                                    "finish, overall assessment",
        "aroma_notes": "8 sentences on fruit, floral, spice, mineral, oak and "
                       "aging aromatics authentic to the actual grapes",
        "flavor_notes": "8 sentences on primary, secondary and aging flavors "
                        "authentic to the actual grapes",
        "body_description": "8 sentences on acidity, tannin structure, alcohol, "
                            "mouthfeel, weight and texture",
    })
    return PromptSpec(
        user=_DETAILED_PROFILE_TEMPLATE.format(
            descriptor=_descriptor_block(context.item),
            prior=_prior(context, 3),
            rules=accuracy_rules(),
            template=template,
        ),
        options=GenerationOptions(
            system=SOMMELIER_SYSTEM,
            temperature=0.3,
            max_tokens=4000,
            response_format=DetailedProfileOutput,
            cache_prefix="stage3",
        ),
    )


# === Stage 4 ===

_APPLICATION_TEMPLATE = """Create comprehensive service and pairing analysis for this wine.

{descriptor}

Previous research and tasting analysis:
{prior}

Provide detailed Stage 4 service analysis in JSON format:
{template}"""


def application_prompt(context: PipelineContext) -> PromptSpec:
    template = _json_template({
        "food_pairing": "8 sentences with specific dishes, proteins, sauces, "
                        "cheeses and signature pairings",
        "serving_temp": "serving temperature range, decanting and glassware",
        "aging_potential": "drinking window, cellaring conditions and evolution",
    })
    return PromptSpec(
        user=_APPLICATION_TEMPLATE.format(
            descriptor=_descriptor_block(context.item),
            prior=_prior(context, 4),
            template=template,
        ),
        options=GenerationOptions(
            temperature=0.1,
            max_tokens=2500,
            response_format=ApplicationOutput,
            cache_prefix="stage4",
        ),
    )


# === Fallback ===

_THEORETICAL_TEMPLATE = """Create a theoretical wine profile for this wine. Documentation about it is limited, so base the content on the producer's style, regional characteristics and established wine science.

{descriptor}
{concerns}{disclaimer}
Provide comprehensive theoretical content for each category (140-190 words each).

JSON format:
{template}"""


def theoretical_prompt(
    item: WorkItem,
    rejection: ConfidenceRejection | None = None,
    disclaimer_age: int | None = None,
) -> PromptSpec:
    """Fallback prompt; ``disclaimer_age`` set when the vintage is old."""
    aging_note = (
        ". Include a disclaimer about unpredictable aging effects for very old bottles"
        if disclaimer_age is not None else ""
    )
    template = _json_template({
        "general_guest_experience": "Theoretical tasting profile: appearance, nose, "
                                    "palate development and drinking experience" + aging_note,
        "flavor_notes": "Flavor descriptors by fruit, spice, earth and oak with intensity",
        "aroma_notes": "Primary, secondary and tertiary aromatic profile",
        "what_makes_special": "ONLY verifiable facts with 90%+ confidence; acknowledge "
                              "limitations honestly rather than speculate",
        "body_description": "Body weight, tannin, acidity and mouthfeel" + aging_note,
        "food_pairing": "Pairing recommendations with preparation methods",
        "serving_temp": "Serving temperature with decanting and glassware",
        "aging_potential": "Aging timeline with peak drinking window" + aging_note,
    })
    concerns = ""
    if rejection is not None and rejection.assessment.concerns:
        concerns = f"\nKnown uncertainties: {rejection.assessment.concerns}\n"
    disclaimer = ""
    if disclaimer_age is not None:
        disclaimer = (
            f"\nIMPORTANT: This wine is from {item.vintage} ({disclaimer_age} years old) "
            "with limited documentation. Include aging disclaimers in relevant sections.\n"
        )
    return PromptSpec(
        user=_THEORETICAL_TEMPLATE.format(
            descriptor=_descriptor_block(item),
            concerns=concerns,
            disclaimer=disclaimer,
            template=template,
        ),
        options=GenerationOptions(
            temperature=0.3,
            max_tokens=2500,
            response_format=TheoreticalOutput,
            cache_prefix="fallback",
        ),
    )


def _dump(data: dict[str, Any] | None) -> str:
    if not data:
        return "Not available"
    return json.dumps(data, ensure_ascii=False, indent=2)
