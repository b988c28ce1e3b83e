"""
SessionOrder Methodology

Read-only lookups over a loaded MethodologyConfig.

Key features:
- Grade to band resolution over the full 1..13 range
- Ladder step selection bounded by the band's escalation ceiling
- Tone scripts with band C fallback
- Band-simplified universal rules and category quick buttons

A Methodology is constructed explicitly and passed by reference to the
resolver, recommender and session manager. It never mutates.

Usage:
    methodology = Methodology(load_methodology_or_default(repo))
    band = methodology.band_for_grade(7)
    step = methodology.ladder_step(CategoryId.INTERRUPTING, 2, band.id)
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from ..exceptions import InvalidGradeError
from ..models import (
    BandId,
    Category,
    CategoryId,
    GradeBand,
    LadderStep,
    MethodologyConfig,
    SeverityLevel,
    Tone,
)
from ..packs.schema import MAX_GRADE, MIN_GRADE


# Band whose script line is used when a band has none of its own
SCRIPT_FALLBACK_BAND = BandId.C


class Methodology:
    """
    Lookup surface over one immutable methodology configuration.

    Usage:
        methodology = Methodology(config)
        methodology.script(CategoryId.TECH_MISUSE, BandId.B, Tone.FIRM)
    """

    def __init__(self, config: MethodologyConfig):
        self._config = config
        self._band_by_grade: dict[int, GradeBand] = {
            grade: band for band in config.grade_bands for grade in band.grades
        }

    @property
    def config(self) -> MethodologyConfig:
        return self._config

    @property
    def content_hash(self) -> str:
        return self._config.content_hash

    # =========================================================================
    # Bands
    # =========================================================================

    def band_for_grade(self, grade: int) -> GradeBand:
        """
        Resolve the grade band for a grade.

        Raises:
            InvalidGradeError: If grade is outside 1..13
        """
        band = self._band_by_grade.get(grade)
        if band is None or isinstance(grade, bool):
            raise InvalidGradeError(
                message=f"Grade must be between {MIN_GRADE} and {MAX_GRADE}",
                details={"grade": grade},
            )
        return band

    def band(self, band_id: BandId) -> GradeBand:
        band = self._config.band(band_id)
        if band is None:
            raise KeyError(f"Unknown band: {band_id}")
        return band

    @property
    def bands(self) -> tuple[GradeBand, ...]:
        return self._config.grade_bands

    # =========================================================================
    # Categories and Severity
    # =========================================================================

    def category(self, category_id: CategoryId | str) -> Optional[Category]:
        if isinstance(category_id, str) and not isinstance(category_id, CategoryId):
            parsed = CategoryId.parse(category_id)
            if parsed is None:
                return None
            category_id = parsed
        return self._config.categories.get(category_id)

    @property
    def categories(self) -> list[Category]:
        """Categories in their fixed order."""
        return [self._config.categories[c] for c in CategoryId if c in self._config.categories]

    def severity(self, level: int) -> SeverityLevel:
        """Severity definition for a level. Unknown levels resolve to level 1."""
        levels = self._config.severity_levels
        return levels.get(level) or levels[1]

    # =========================================================================
    # Ladder
    # =========================================================================

    def ladder_step(
        self,
        category_id: CategoryId,
        incident_count: int,
        band_id: BandId,
    ) -> Optional[LadderStep]:
        """
        Select the ladder step for the next intervention.

        The target is min(incident_count + 1, band.max_ladder_step). The
        entry with that step number that is valid for the band wins. If
        the band has no entry at the target, the highest band-valid step
        below it is used, and failing that the category's first entry.

        Returns None only for an unknown category.
        """
        category = self.category(category_id)
        if category is None or not category.ladder:
            return None

        band = self.band(band_id)
        target = min(max(incident_count, 0) + 1, band.max_ladder_step)

        best: Optional[LadderStep] = None
        for step in category.steps_for_band(band_id):
            if step.step == target:
                return step
            if step.step < target and (best is None or step.step > best.step):
                best = step
        return best or category.ladder[0]

    def ladder_summary(self, category_id: CategoryId, band_id: BandId) -> list[dict[str, Any]]:
        """Band-valid ladder steps as [{step, action}] for the advisory request."""
        category = self.category(category_id)
        if category is None:
            return []
        return [{"step": s.step, "action": s.action} for s in category.steps_for_band(band_id)]

    # =========================================================================
    # Scripts
    # =========================================================================

    def script(self, category_id: CategoryId, band_id: BandId, tone: Tone = Tone.NEUTRAL) -> str:
        category = self.category(category_id)
        if category is None:
            return ""
        lines = category.scripts.get(tone, {})
        return lines.get(band_id) or lines.get(SCRIPT_FALLBACK_BAND, "")

    def scripts(self, category_id: CategoryId, band_id: BandId) -> dict[Tone, str]:
        return {tone: self.script(category_id, band_id, tone) for tone in Tone}

    # =========================================================================
    # Display Helpers
    # =========================================================================

    def rules(self, band_id: BandId = BandId.C) -> list[dict[str, str]]:
        """Universal rules worded for a band."""
        return [
            {"icon": r.icon, "rule": r.rule, "description": r.wording_for(band_id)}
            for r in self._config.universal_rules
        ]

    def category_buttons(self, include_other: bool = True) -> list[dict[str, str]]:
        """Quick-log button descriptors in category order."""
        return [
            {
                "key": c.id.value,
                "label": c.short_label,
                "fullLabel": c.label,
                "icon": c.icon,
                "shortcut": c.keyboard_shortcut,
            }
            for c in self.categories
            if include_other or c.id != CategoryId.OTHER
        ]

    def category_for_shortcut(self, key: str) -> Optional[Category]:
        for category in self.categories:
            if category.keyboard_shortcut == key:
                return category
        return None

    # =========================================================================
    # Thresholds
    # =========================================================================

    def should_contact_parent(self, discipline_state: Mapping[str, int], band_id: BandId) -> bool:
        """True once total incidents reach the band's parent-contact threshold."""
        total = sum(discipline_state.values())
        return total >= self.band(band_id).parent_contact_threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self._config.version,
            "lastUpdated": self._config.last_updated,
            "contentHash": self._config.content_hash,
            "gradeBands": [b.to_dict() for b in self._config.grade_bands],
            "severityLevels": [
                self._config.severity_levels[k].to_dict()
                for k in sorted(self._config.severity_levels)
            ],
            "categories": [c.to_dict() for c in self.categories],
        }
