"""Weight profiles: persona templates and the profile manager."""

from .templates import PERSONA_TEMPLATES, PERSONAS, PersonaTemplate, get_template, template_defaults
from .manager import WeightProfileManager, default_profile_id

__all__ = [
    "PERSONA_TEMPLATES",
    "PERSONAS",
    "PersonaTemplate",
    "get_template",
    "template_defaults",
    "WeightProfileManager",
    "default_profile_id",
]
