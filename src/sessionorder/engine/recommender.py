"""
SessionOrder Deterministic Recommender

Builds a complete, policy-compliant recommendation with no external
dependency.

Used both as the default when advisory integration is disabled or offline
and as the fallback whenever an advisory attempt fails for any reason.

Tone rule:
- firm    if severity >= 3 or same-category count >= 3
- neutral if severity >= 2 or same-category count >= 2
- gentle  otherwise
"""
from __future__ import annotations

from typing import Mapping

from ..exceptions import UnknownCategoryError
from ..models import (
    BandId,
    CategoryId,
    IntentHypothesis,
    Recommendation,
    RecommendationSource,
    RecommendedResponse,
    RestorativeAction,
    ScriptTrio,
    Tone,
)
from .methodology import Methodology


DETERMINISTIC_CONFIDENCE = 0.7
UNKNOWN_INTENT_LABEL = "Unable to determine - using standard response"
UNKNOWN_INTENT_CONFIDENCE = 0.5
DEFAULT_IMMEDIATE_STEP = "Observe and address"
DEFAULT_LADDER_ACTION = "Redirect attention"
DEFAULT_PREVENTION_TIP = "Consider environmental factors and check for underlying issues."
FALLBACK_FAIRNESS_NOTE = (
    "Using standard methodology - AI was unavailable for personalized analysis"
)


def select_tone(severity: int, incident_count: int) -> Tone:
    """Pick the script tone from severity and same-category count."""
    if severity >= 3 or incident_count >= 3:
        return Tone.FIRM
    if severity >= 2 or incident_count >= 2:
        return Tone.NEUTRAL
    return Tone.GENTLE


class DeterministicRecommender:
    """
    Local recommendation builder.

    Usage:
        recommender = DeterministicRecommender(methodology)
        rec = recommender.recommend(
            CategoryId.TECH_MISUSE,
            severity=2,
            discipline_state=session.discipline_state,
            band_id=BandId.C,
        )
        rec.recommended_tone   # Tone.NEUTRAL
    """

    def __init__(self, methodology: Methodology):
        self.methodology = methodology

    def recommend(
        self,
        category_id: CategoryId,
        severity: int,
        discipline_state: Mapping[str, int],
        band_id: BandId,
    ) -> Recommendation:
        """
        Build the deterministic recommendation.

        Args:
            category_id: Incident category
            severity: Resolved severity 1..4
            discipline_state: Counters as they were before this incident
            band_id: Student's grade band

        Raises:
            UnknownCategoryError: If the category is not in the methodology
        """
        category = self.methodology.category(category_id)
        if category is None:
            raise UnknownCategoryError(
                message=f"Unknown category: {category_id}",
                details={"category": str(category_id)},
            )

        count = discipline_state.get(category.id.value, 0)
        step = self.methodology.ladder_step(category.id, count, band_id)
        tone = select_tone(severity, count)
        scripts = self.methodology.scripts(category.id, band_id)

        return Recommendation(
            category=category.id,
            severity=severity,
            confidence=DETERMINISTIC_CONFIDENCE,
            intent_hypothesis=IntentHypothesis(
                label=UNKNOWN_INTENT_LABEL,
                confidence=UNKNOWN_INTENT_CONFIDENCE,
                alternatives=[],
            ),
            recommended_response=RecommendedResponse(
                immediate_step=step.action if step else DEFAULT_IMMEDIATE_STEP,
                ladder_action=step.action if step else DEFAULT_LADDER_ACTION,
                ladder_step_suggested=step.step if step else 1,
                restorative=RestorativeAction(
                    type=category.restorative.type,
                    prompt=category.restorative.prompt,
                ),
                consequence=None,
            ),
            script=ScriptTrio(
                gentle=scripts[Tone.GENTLE],
                neutral=scripts[Tone.NEUTRAL],
                firm=scripts[Tone.FIRM],
            ),
            prevention_tip=DEFAULT_PREVENTION_TIP,
            fairness_notes=[FALLBACK_FAIRNESS_NOTE],
            source=RecommendationSource.DETERMINISTIC,
            recommended_tone=tone,
            allowed_consequences=list(category.consequences.allowed),
            blocked_consequences=list(category.consequences.not_allowed),
        )

    def next_step(
        self,
        discipline_state: Mapping[str, int],
        band_id: BandId,
        category_id: CategoryId | None = None,
    ) -> dict:
        """
        What to do next if behavior recurs.

        With a category, looks up that category's next ladder step. Without
        one, uses the category with the most incidents so far.
        """
        if category_id is None:
            ranked = sorted(
                ((cat, n) for cat, n in discipline_state.items() if n > 0),
                key=lambda pair: pair[1],
                reverse=True,
            )
            if not ranked:
                return {
                    "category": None,
                    "message": "No incidents yet. Session proceeding well.",
                }
            category_id = CategoryId(ranked[0][0])

        count = discipline_state.get(category_id.value, 0)
        step = self.methodology.ladder_step(category_id, count, band_id)
        return {
            "category": category_id.value,
            "count": count,
            "step": step.to_dict() if step else None,
            "script": self.methodology.script(category_id, band_id, Tone.NEUTRAL),
            "shouldEscalate": count >= 3,
        }
