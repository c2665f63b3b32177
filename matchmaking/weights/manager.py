"""
Weight profile manager: CRUD, validation and persona defaults.

Key Design Decisions:
- Validation is all-or-nothing: every problem is collected into a single
  ProfileValidationError and nothing is written
- Unspecified fields are inherited from the persona template
- Default profiles are seeded lazily on first use and cannot be deleted
- Nested maps (weights, thresholds, normalize, context_rules) are merged
  key-by-key on update
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import DefaultProfileError, ProfileNotFoundError, ProfileValidationError
from ..schema.actors import utc_now
from ..schema.profiles import ContextRules, NormalizeConfig, Thresholds, WeightProfile
from ..storage import WEIGHT_PROFILES, DocumentStore, Filter
from .templates import GENERAL_PERSONA, PERSONAS, get_template, template_defaults

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

NESTED_TYPES = {
    "thresholds": Thresholds,
    "normalize": NormalizeConfig,
    "context_rules": ContextRules,
}

# Fields an update may never change
PROTECTED_FIELDS = {"id", "created_at", "created_by", "is_default"}

# Profile sections that must be mappings
SECTION_FIELDS = ["weights", "normalize", "thresholds", "context_rules"]


def default_profile_id(persona: str) -> str:
    return f"default-{persona}"


class WeightProfileManager:
    """
    Manages weight profiles in the 'weight_profiles' collection.

    Usage:
        manager = WeightProfileManager(store)
        profile = manager.create_profile({"name": "VC Day", "persona": "investor"})
        variants = manager.generate_test_variants(profile.id, [
            {"name": "stage-heavy", "adjustments": {"ctx:stage.complement": 8}},
        ])
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    # =========================================================================
    # Queries
    # =========================================================================

    def list_profiles(self) -> List[WeightProfile]:
        """
        All profiles, defaults first, then newest first.

        Seeds one default profile per persona when the collection is empty.
        """
        docs = self.store.query(WEIGHT_PROFILES)
        if not docs:
            return self._seed_default_profiles()

        profiles = [WeightProfile.from_dict(doc) for doc in docs]
        profiles.sort(key=lambda p: p.created_at or "", reverse=True)
        profiles.sort(key=lambda p: not p.is_default)
        return profiles

    def get_profile(self, profile_id: str) -> Optional[WeightProfile]:
        doc = self.store.get(WEIGHT_PROFILES, profile_id)
        if doc is None:
            return None
        return WeightProfile.from_dict(doc)

    def get_default_profile(self, persona: str = GENERAL_PERSONA) -> WeightProfile:
        """Default profile of a persona, created and persisted on first request."""
        docs = self.store.query(
            WEIGHT_PROFILES,
            [Filter("persona", "==", persona), Filter("is_default", "==", True)],
            limit=1
        )
        if docs:
            return WeightProfile.from_dict(docs[0])

        profile = self._build_default(persona, default_profile_id(persona))
        self._write([profile])
        logger.info(f"Created default profile for persona: {persona}")
        return profile

    def ensure_profile(self, profile_id: str, persona: str = GENERAL_PERSONA) -> WeightProfile:
        """
        Return the profile, lazily creating a default one under this id.

        Args:
            profile_id: Requested profile id
            persona: Persona of the profile created on a miss

        Returns:
            Existing or newly created WeightProfile
        """
        profile = self.get_profile(profile_id)
        if profile is not None:
            return profile

        profile = self._build_default(persona, profile_id)
        self._write([profile])
        logger.info(f"Created default profile '{profile_id}' ({persona})")
        return profile

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_profile(
        self,
        data: Dict[str, Any],
        created_by: Optional[str] = None,
        profile_id: Optional[str] = None
    ) -> WeightProfile:
        """
        Create a profile, inheriting unspecified fields from its persona template.

        Args:
            data: Profile fields; 'name' and 'persona' are required
            created_by: Identity of the creator
            profile_id: Explicit id (generated when None)

        Returns:
            The persisted WeightProfile

        Raises:
            ProfileValidationError: With every problem found
        """
        profile = self._complete_profile(data, created_by, profile_id)
        self._write([profile])
        logger.info(f"Created weight profile '{profile.name}' ({profile.id})")
        return profile

    def update_profile(self, profile_id: str, updates: Dict[str, Any]) -> WeightProfile:
        """
        Apply updates to an existing profile.

        Raises:
            ProfileNotFoundError: If the profile does not exist
            ProfileValidationError: If the updated profile is invalid
        """
        current = self.get_profile(profile_id)
        if current is None:
            raise ProfileNotFoundError(profile_id)

        merged = current.to_dict()
        for key, value in updates.items():
            if key in PROTECTED_FIELDS:
                continue
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        merged["updated_at"] = self.clock().isoformat()

        profile, errors = self._build(merged)
        if errors:
            raise ProfileValidationError(errors)

        self._write([profile])
        logger.info(f"Updated weight profile {profile_id}")
        return profile

    def delete_profile(self, profile_id: str) -> None:
        """
        Delete a non-default profile.

        Raises:
            ProfileNotFoundError: If the profile does not exist
            DefaultProfileError: If the profile is flagged as default
        """
        profile = self.get_profile(profile_id)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        if profile.is_default:
            raise DefaultProfileError(f"Cannot delete default weight profile: {profile_id}")

        batch = self.store.batch()
        batch.delete(WEIGHT_PROFILES, profile_id)
        batch.commit()
        logger.info(f"Deleted weight profile {profile_id}")

    def duplicate_profile(
        self,
        profile_id: str,
        new_name: str,
        created_by: Optional[str] = None
    ) -> WeightProfile:
        """Copy a profile under a new name as a non-default profile."""
        original = self.get_profile(profile_id)
        if original is None:
            raise ProfileNotFoundError(profile_id)

        data = original.to_dict()
        data.update(name=new_name, description=f"Copy of {original.name}", is_default=False)
        return self.create_profile(data, created_by)

    def export_profile(self, profile_id: str) -> Dict[str, Any]:
        """Portable representation of a profile for backup or sharing."""
        profile = self.get_profile(profile_id)
        if profile is None:
            raise ProfileNotFoundError(profile_id)

        d = profile.to_dict()
        return {
            "version": EXPORT_VERSION,
            "exported_at": self.clock().isoformat(),
            "profile": {
                key: d[key]
                for key in ["name", "description", "persona", "weights", "thresholds", "context_rules"]
            },
        }

    def import_profile(self, import_data: Dict[str, Any], created_by: Optional[str] = None) -> WeightProfile:
        """
        Create a new, non-default profile from exported data.

        Raises:
            ProfileValidationError: If the data is malformed or invalid
        """
        profile_data = import_data.get("profile") if isinstance(import_data, dict) else None
        if not isinstance(profile_data, dict) or not profile_data.get("name"):
            raise ProfileValidationError(["Invalid import data format"])

        data = dict(profile_data)
        imported_on = self.clock().date().isoformat()
        data["description"] = f"{data.get('description') or ''} (Imported {imported_on})".strip()
        data["is_default"] = False
        return self.create_profile(data, created_by)

    def generate_test_variants(
        self,
        base_id: str,
        variations: List[Dict[str, Any]],
        created_by: Optional[str] = None
    ) -> List[WeightProfile]:
        """
        Create A/B test variants of a profile with adjusted weights.

        Every variant is validated before any is written.

        Args:
            base_id: Profile to derive from
            variations: List of {"name": str, "adjustments": {metric_key: weight}}

        Returns:
            The persisted variants, in input order
        """
        base = self.get_profile(base_id)
        if base is None:
            raise ProfileNotFoundError(base_id)

        variants = []
        errors = []
        for variation in variations:
            data = base.to_dict()
            data.update(
                name=f"{base.name} - {variation['name']}",
                description=f"A/B test variant: {variation['name']}",
                weights={**base.weights, **variation.get("adjustments", {})},
                is_default=False,
            )
            try:
                variants.append(self._complete_profile(data, created_by, None))
            except ProfileValidationError as e:
                errors.extend(f"{variation['name']}: {message}" for message in e.errors)

        if errors:
            raise ProfileValidationError(errors)

        self._write(variants)
        logger.info(f"Created {len(variants)} test variants of {base_id}")
        return variants

    # =========================================================================
    # Helpers
    # =========================================================================

    def _complete_profile(
        self,
        data: Dict[str, Any],
        created_by: Optional[str],
        profile_id: Optional[str]
    ) -> WeightProfile:
        """Merge data over the persona template and validate the result."""
        missing = []
        if not data.get("name"):
            missing.append("Name is required")
        if not data.get("persona"):
            missing.append("Persona is required")
        missing.extend(section_errors(data))
        if missing:
            raise ProfileValidationError(missing)

        defaults = template_defaults(data["persona"])
        context_rules = defaults["context_rules"]
        context_rules.update(_as_dict(data.get("context_rules")))
        now = self.clock().isoformat()

        fields = {
            "id": profile_id or uuid.uuid4().hex,
            "name": data["name"],
            "persona": data["persona"],
            "description": data.get("description") or "",
            "weights": {**defaults["weights"], **_as_dict(data.get("weights"))},
            "normalize": _as_dict(data.get("normalize")),
            "thresholds": {**defaults["thresholds"], **_as_dict(data.get("thresholds"))},
            "context_rules": context_rules,
            "is_default": bool(data.get("is_default", False)),
            "created_at": now,
            "updated_at": now,
            "created_by": created_by,
        }

        profile, errors = self._build(fields)
        if errors:
            raise ProfileValidationError(errors)
        return profile

    @staticmethod
    def _build(fields: Dict[str, Any]) -> Tuple[Optional[WeightProfile], List[str]]:
        errors = section_errors(fields)
        if errors:
            return None, errors
        for key, nested_type in NESTED_TYPES.items():
            value = fields.get(key)
            if not isinstance(value, dict):
                continue
            known = nested_type.__dataclass_fields__.keys()
            errors.extend(f"Unknown {key} field: {k}" for k in value if k not in known)
        if errors:
            return None, errors

        profile = WeightProfile.from_dict(fields)
        return profile, profile.validation_errors()

    def _build_default(self, persona: str, profile_id: str) -> WeightProfile:
        template = get_template(persona)
        return self._complete_profile(
            {
                "name": template.name,
                "persona": persona,
                "description": template.description,
                "is_default": True,
            },
            created_by=None,
            profile_id=profile_id,
        )

    def _seed_default_profiles(self) -> List[WeightProfile]:
        profiles = [self._build_default(p, default_profile_id(p)) for p in PERSONAS]
        self._write(profiles)
        logger.info(f"Seeded {len(profiles)} default weight profiles")
        return profiles

    def _write(self, profiles: List[WeightProfile]) -> None:
        batch = self.store.batch()
        for profile in profiles:
            batch.set(WEIGHT_PROFILES, profile.id, profile.to_dict())
        batch.commit()


def section_errors(data: Dict[str, Any]) -> List[str]:
    """One error per profile section that is present but not a mapping."""
    return [
        f"Section '{key}' must be a mapping"
        for key in SECTION_FIELDS
        if data.get(key) is not None
        and not isinstance(data[key], dict)
        and not hasattr(data[key], "__dataclass_fields__")
    ]


def _as_dict(value: Any) -> Dict[str, Any]:
    """Nested profile section as a plain dictionary."""
    if value is None:
        return {}
    if hasattr(value, "__dataclass_fields__"):
        return {k: getattr(value, k) for k in value.__dataclass_fields__}
    return dict(value)
