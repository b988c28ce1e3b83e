"""
SessionOrder Methodology Models

The discipline methodology: grade bands, severity levels, behavior
categories with their escalation ladders and tone scripts.

Loaded from a YAML methodology pack at runtime and converted to these
frozen dataclasses. A MethodologyConfig is immutable once built and is
passed by reference to every engine component.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import BandId, CategoryId, Tone


# =============================================================================
# Grade Band
# =============================================================================

@dataclass(frozen=True)
class GradeBand:
    """
    An age grouping that drives tone and escalation ceilings.

    Attributes:
        id: Band letter (A-E)
        grades: Inclusive list of grades in the band
        name: Display name (e.g., "Middle School")
        description: Pedagogical summary
        max_ladder_step: Cap on escalation within the band
        parent_contact_threshold: Total incidents triggering parent notice
        session_stop_threshold: Incident count triggering stop consideration
    """
    id: BandId
    grades: tuple[int, ...]
    name: str
    description: str
    max_ladder_step: int
    parent_contact_threshold: int
    session_stop_threshold: int

    @property
    def min_grade(self) -> int:
        return min(self.grades)

    @property
    def max_grade(self) -> int:
        return max(self.grades)

    def contains(self, grade: int) -> bool:
        return grade in self.grades

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "grades": list(self.grades),
            "name": self.name,
            "description": self.description,
            "maxLadderStep": self.max_ladder_step,
            "parentContactThreshold": self.parent_contact_threshold,
            "sessionStopThreshold": self.session_stop_threshold,
        }


# =============================================================================
# Severity Level
# =============================================================================

@dataclass(frozen=True)
class SeverityLevel:
    """
    One rung of the closed 1..5 severity scale.

    Level 4 is the session-stop floor. Level 5 (terminating) is an
    administrative decision and is never computed by the engine.
    """
    level: int
    name: str
    description: str
    color: str
    immediate_action: str
    characteristics: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "immediateAction": self.immediate_action,
            "characteristics": list(self.characteristics),
        }


# =============================================================================
# Category Components
# =============================================================================

@dataclass(frozen=True)
class LadderStep:
    """An ordered intervention, valid only for a subset of bands."""
    step: int
    name: str
    action: str
    bands: tuple[BandId, ...]

    def applies_to(self, band: BandId) -> bool:
        return band in self.bands

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "name": self.name,
            "action": self.action,
            "bands": [b.value for b in self.bands],
        }


@dataclass(frozen=True)
class RestorativePrompt:
    """Restorative practice attached to a category."""
    type: str
    prompt: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "prompt": self.prompt}


@dataclass(frozen=True)
class ConsequencePolicy:
    """Consequences a tutor may and may not use for a category."""
    allowed: tuple[str, ...] = ()
    not_allowed: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"allowed": list(self.allowed), "notAllowed": list(self.not_allowed)}


@dataclass(frozen=True)
class Category:
    """
    A behavior category with its ladder and scripts.

    scripts maps tone -> band -> line. Every tone is present; bands may
    be missing, in which case the band C line is used.
    """
    id: CategoryId
    label: str
    short_label: str
    keyboard_shortcut: str
    description: str
    ladder: tuple[LadderStep, ...]
    scripts: dict[Tone, dict[BandId, str]]
    restorative: RestorativePrompt
    consequences: ConsequencePolicy
    icon: str = ""

    def steps_for_band(self, band: BandId) -> list[LadderStep]:
        """Ladder entries valid for a band, in ladder order."""
        return [s for s in self.ladder if s.applies_to(band)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "label": self.label,
            "shortLabel": self.short_label,
            "keyboardShortcut": self.keyboard_shortcut,
            "description": self.description,
            "icon": self.icon,
            "ladder": [s.to_dict() for s in self.ladder],
            "scripts": {
                tone.value: {band.value: line for band, line in lines.items()}
                for tone, lines in self.scripts.items()
            },
            "restorative": self.restorative.to_dict(),
            "consequences": self.consequences.to_dict(),
        }


@dataclass(frozen=True)
class UniversalRule:
    """A session rule with band-simplified wording."""
    rule: str
    simplified_a: str
    simplified: str
    full: str
    icon: str = ""

    def wording_for(self, band: BandId) -> str:
        if band == BandId.A:
            return self.simplified_a
        if band == BandId.B:
            return self.simplified
        return self.full


@dataclass(frozen=True)
class DeescalationOption:
    """An entry in the de-escalation toolkit."""
    key: str
    label: str
    description: str = ""
    durations: tuple[int, ...] = ()
    script: Optional[str] = None


# =============================================================================
# Methodology Config
# =============================================================================

@dataclass(frozen=True)
class MethodologyConfig:
    """
    The complete, immutable rule set.

    Exactly one configuration is loaded at a time. Severity levels always
    come from the built-in pack, even when the rest is customized.

    Attributes:
        version: Config version number
        grade_bands: Bands in order A..E
        severity_levels: Severity scale keyed by level
        categories: Categories keyed by id
        universal_rules: Display rules
        deescalation: De-escalation toolkit options
        last_updated: Epoch ms of last custom save, None for built-in
        content_hash: SHA-256 of the canonical pack content
    """
    version: int
    grade_bands: tuple[GradeBand, ...]
    severity_levels: dict[int, SeverityLevel]
    categories: dict[CategoryId, Category]
    universal_rules: tuple[UniversalRule, ...] = ()
    deescalation: tuple[DeescalationOption, ...] = ()
    last_updated: Optional[int] = None
    content_hash: str = field(default="", compare=False)

    def band(self, band_id: BandId) -> Optional[GradeBand]:
        for band in self.grade_bands:
            if band.id == band_id:
                return band
        return None
