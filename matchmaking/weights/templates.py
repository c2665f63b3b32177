"""
Persona templates for weight profiles.

A template supplies baseline weights (keyed by metric key), thresholds and
context rules. A profile created for a persona inherits every field it does
not set from the persona's template; unknown personas fall back to general.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List

GENERAL_PERSONA = "general"

BASE_WEIGHTS = {
    "date:created.prox": 1.0,
    "date:released.prox": 1.0,
    "list:platforms.jaccard": 2.0,
    "list:markets.jaccard": 2.0,
    "list:categories.jaccard": 1.5,
    "list:tags.jaccard": 1.0,
    "num:rating.zexp": 1.0,
    "num:team.zexp": 0.5,
    "num:price.zexp": 0.5,
    "str:name.lev": 0.1,
    "text:content.tfidf": 1.5,
    "bipartite:capabilities.match": 3.0,
    "ctx:platform.overlap": 1.5,
    "ctx:market.overlap": 1.5,
    "ctx:stage.complement": 2.0,
    "ctx:role.intent": 2.0,
    "scan:recency.boost": 1.0,
    "avail:overlap": 1.0,
    "preference:location.fit": 0.5,
    "text:bio.similarity": 1.0,
    "interest:capability.match": 2.0,
}

BASE_THRESHOLDS = {
    "minimum_overall_score": 40,
    "minimum_confidence": 30,
    "maximum_results": 100,
}

BASE_CONTEXT_RULES = {
    "platform_boosts": {
        "mobile": 1.2,
        "pc": 1.1,
        "console": 1.3,
        "vr": 1.4,
        "web": 1.0,
    },
    "market_synergies": {
        "b2b": {"b2b": 1.0, "b2c": 0.7},
        "b2c": {"b2b": 0.7, "b2c": 1.0},
    },
    "stage_compatibility": {
        "idea": {"idea": 1.0, "prototype": 0.9, "alpha": 0.7},
        "prototype": {"idea": 0.9, "prototype": 1.0, "alpha": 0.9, "beta": 0.8},
        "alpha": {"prototype": 0.9, "alpha": 1.0, "beta": 0.9, "launched": 0.7},
        "beta": {"alpha": 0.9, "beta": 1.0, "launched": 0.9, "growth": 0.8},
        "launched": {"beta": 0.7, "launched": 1.0, "growth": 0.9, "mature": 0.8},
        "growth": {"launched": 0.9, "growth": 1.0, "mature": 0.9},
        "mature": {"growth": 0.9, "mature": 1.0},
    },
}


@dataclass
class PersonaTemplate:
    """Baseline settings for one persona."""
    persona: str
    name: str
    description: str
    weights: Dict[str, float] = field(default_factory=dict)
    thresholds: Dict[str, Any] = field(default_factory=dict)
    context_rules: Dict[str, Any] = field(default_factory=dict)


PERSONA_TEMPLATES: Dict[str, PersonaTemplate] = {
    "general": PersonaTemplate(
        persona="general",
        name="General Networking",
        description="Balanced weights for broad conference networking",
        weights=dict(BASE_WEIGHTS),
    ),
    "investor": PersonaTemplate(
        persona="investor",
        name="Investor Focus",
        description="Emphasizes stage fit, traction and unmet needs",
        weights={
            **BASE_WEIGHTS,
            "ctx:stage.complement": 4.0,
            "num:rating.zexp": 2.0,
            "num:team.zexp": 1.5,
            "list:markets.jaccard": 3.0,
            "bipartite:capabilities.match": 2.5,
            "str:name.lev": 0.0,
        },
        thresholds={"minimum_overall_score": 50},
    ),
    "publisher": PersonaTemplate(
        persona="publisher",
        name="Publisher Focus",
        description="Emphasizes platform and genre fit for publishing deals",
        weights={
            **BASE_WEIGHTS,
            "list:platforms.jaccard": 3.5,
            "list:categories.jaccard": 3.0,
            "date:released.prox": 2.0,
            "list:tags.jaccard": 2.0,
            "str:name.lev": 0.0,
        },
    ),
    "developer": PersonaTemplate(
        persona="developer",
        name="Developer Focus",
        description="Emphasizes shared technology, tooling and content",
        weights={
            **BASE_WEIGHTS,
            "list:platforms.jaccard": 3.0,
            "text:content.tfidf": 2.5,
            "list:tags.jaccard": 2.0,
            "interest:capability.match": 3.0,
            "num:price.zexp": 0.0,
        },
        thresholds={"minimum_overall_score": 35},
    ),
    "sponsor": PersonaTemplate(
        persona="sponsor",
        name="Sponsor Focus",
        description="Emphasizes audience reach across markets and roles",
        weights={
            **BASE_WEIGHTS,
            "list:markets.jaccard": 3.0,
            "ctx:market.overlap": 2.5,
            "ctx:role.intent": 3.0,
            "scan:recency.boost": 2.0,
            "preference:location.fit": 1.5,
        },
        thresholds={"maximum_results": 200},
    ),
}

PERSONAS: List[str] = list(PERSONA_TEMPLATES)


def get_template(persona: str) -> PersonaTemplate:
    """Template of a persona, falling back to the general template."""
    return PERSONA_TEMPLATES.get(persona, PERSONA_TEMPLATES[GENERAL_PERSONA])


def template_defaults(persona: str) -> Dict[str, Any]:
    """
    Complete baseline fields for a profile of the given persona.

    Returns:
        Dictionary with description, weights, thresholds and context_rules
    """
    template = get_template(persona)
    context_rules = copy.deepcopy(BASE_CONTEXT_RULES)
    for key, table in template.context_rules.items():
        context_rules[key] = {**context_rules.get(key, {}), **table}

    return {
        "description": template.description,
        "weights": dict(template.weights),
        "thresholds": {**BASE_THRESHOLDS, **template.thresholds},
        "context_rules": context_rules,
    }
