"""
SessionOrder Methodology Pack Schemas

Pydantic models for validating methodology pack YAML/JSON files.

These schemas define the structure of a methodology pack that can be
loaded at runtime. They map to the domain models in
sessionorder.models.methodology.

Schema versioning:
- schema_version field tracks breaking changes
- Loaders should check version compatibility
"""
from __future__ import annotations

from typing import Any, Literal, Optional, get_args

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# Schema Version
# =============================================================================

SCHEMA_VERSION = "1.0.0"

MIN_GRADE = 1
MAX_GRADE = 13


# =============================================================================
# Enums as Literals (for YAML validation)
# =============================================================================

BandValue = Literal["A", "B", "C", "D", "E"]

ToneValue = Literal["gentle", "neutral", "firm"]

CategoryValue = Literal[
    "FOCUS_OFF_TASK", "INTERRUPTING", "DISRESPECT_TONE", "NON_COMPLIANCE",
    "TECH_MISUSE", "ACADEMIC_INTEGRITY", "SAFETY_BOUNDARY", "OTHER",
]

ALL_CATEGORIES: tuple[str, ...] = get_args(CategoryValue)
ALL_TONES: tuple[str, ...] = get_args(ToneValue)


# =============================================================================
# Band and Severity Schemas
# =============================================================================

class GradeBandSchema(BaseModel):
    """Schema for a grade band."""
    id: BandValue = Field(..., description="Band letter")
    grades: list[int] = Field(..., min_length=1, description="Inclusive grade list")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="Pedagogical summary")
    max_ladder_step: int = Field(..., ge=1, le=5, description="Cap on escalation")
    parent_contact_threshold: int = Field(..., ge=1, description="Total incidents for parent notice")
    session_stop_threshold: int = Field(..., ge=1, description="Incident count for stop consideration")

    model_config = {"extra": "forbid"}


class SeverityLevelSchema(BaseModel):
    """Schema for one severity level."""
    level: int = Field(..., ge=1, le=5)
    name: str
    description: str = ""
    characteristics: list[str] = Field(default_factory=list)
    color: str = ""
    immediate_action: str = ""

    model_config = {"extra": "forbid"}


# =============================================================================
# Category Schemas
# =============================================================================

class LadderStepSchema(BaseModel):
    """Schema for a ladder step."""
    step: int = Field(..., ge=1, le=5)
    name: str
    action: str
    bands: list[BandValue] = Field(..., min_length=1)

    model_config = {"extra": "forbid"}


class RestorativeSchema(BaseModel):
    type: str
    prompt: str

    model_config = {"extra": "forbid"}


class ConsequencesSchema(BaseModel):
    allowed: list[str] = Field(default_factory=list)
    not_allowed: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class CategorySchema(BaseModel):
    """
    Schema for a behavior category.

    scripts must carry all three tones, and each tone must carry a band C
    line, which is the fallback for bands without their own line.
    """
    id: CategoryValue
    label: str
    short_label: str
    icon: str = ""
    keyboard_shortcut: str
    description: str = ""
    ladder: list[LadderStepSchema] = Field(..., min_length=1)
    scripts: dict[ToneValue, dict[BandValue, str]]
    restorative: RestorativeSchema
    consequences: ConsequencesSchema = Field(default_factory=ConsequencesSchema)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_ladder_and_scripts(self) -> "CategorySchema":
        missing = [tone for tone in ALL_TONES if tone not in self.scripts]
        if missing:
            raise ValueError(f"Category '{self.id}' is missing script tones: {missing}")
        for tone, lines in self.scripts.items():
            if "C" not in lines:
                raise ValueError(f"Category '{self.id}' tone '{tone}' has no band C line")

        # Restricted to any band, ladder order must not go backwards
        for band in ("A", "B", "C", "D", "E"):
            steps = [s.step for s in self.ladder if band in s.bands]
            if steps != sorted(steps):
                raise ValueError(
                    f"Category '{self.id}' ladder is not non-decreasing for band {band}"
                )
        return self


# =============================================================================
# Display Schemas
# =============================================================================

class UniversalRuleSchema(BaseModel):
    rule: str
    simplified_a: str
    simplified: str
    full: str
    icon: str = ""

    model_config = {"extra": "forbid"}


class DeescalationSchema(BaseModel):
    key: str
    label: str
    description: str = ""
    durations: list[int] = Field(default_factory=list)
    script: Optional[str] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Methodology Pack Schema
# =============================================================================

class MethodologyPackSchema(BaseModel):
    """
    Top-level schema for a methodology pack YAML/JSON file.

    A pack defines the complete rule set: grade bands, severity levels,
    and the eight behavior categories.
    """
    schema_version: str = Field(SCHEMA_VERSION, description="Schema version for compatibility")
    version: int = Field(1, ge=1, description="Methodology revision")
    last_updated: Optional[int] = Field(None, description="Epoch ms of last save")

    grade_bands: list[GradeBandSchema] = Field(..., min_length=1)
    severity_levels: list[SeverityLevelSchema] = Field(default_factory=list)
    categories: list[CategorySchema] = Field(..., min_length=1)
    universal_rules: list[UniversalRuleSchema] = Field(default_factory=list)
    deescalation: list[DeescalationSchema] = Field(default_factory=list)

    model_config = {
        "extra": "forbid",  # Reject unknown fields
    }

    @model_validator(mode="after")
    def validate_structure(self) -> "MethodologyPackSchema":
        """Check band partition and category completeness."""
        band_ids = [b.id for b in self.grade_bands]
        if sorted(band_ids) != ["A", "B", "C", "D", "E"]:
            raise ValueError(f"Grade bands must be exactly A-E, got {band_ids}")

        seen: dict[int, str] = {}
        for band in self.grade_bands:
            for grade in band.grades:
                if grade < MIN_GRADE or grade > MAX_GRADE:
                    raise ValueError(f"Band {band.id} has out-of-range grade {grade}")
                if grade in seen:
                    raise ValueError(
                        f"Grade {grade} is in both band {seen[grade]} and band {band.id}"
                    )
                seen[grade] = band.id
        gaps = [g for g in range(MIN_GRADE, MAX_GRADE + 1) if g not in seen]
        if gaps:
            raise ValueError(f"Grades not covered by any band: {gaps}")

        category_ids = [c.id for c in self.categories]
        if len(set(category_ids)) != len(category_ids):
            raise ValueError("Duplicate category ids")
        missing = [c for c in ALL_CATEGORIES if c not in category_ids]
        if missing:
            raise ValueError(f"Missing categories: {missing}")

        levels = [s.level for s in self.severity_levels]
        if levels and sorted(levels) != [1, 2, 3, 4, 5]:
            raise ValueError(f"Severity levels must be exactly 1-5, got {levels}")

        return self


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_methodology_pack(data: dict[str, Any]) -> MethodologyPackSchema:
    """
    Validate a methodology pack dictionary against the schema.

    Args:
        data: Dictionary loaded from YAML/JSON

    Returns:
        Validated MethodologyPackSchema

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return MethodologyPackSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """
    Check if a methodology pack's schema version is compatible.

    Only the major version has to match.
    """
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    pack_major = pack_version.split(".")[0]
    current_major = SCHEMA_VERSION.split(".")[0]
    return pack_major == current_major
