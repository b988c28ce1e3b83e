"""
SessionOrder Recommendation Models

The output of SessionOrder: recommendations, not decisions.

Key components:
- Recommendation: The advisory packet shape, from either the validated
  advisory service (source=ai) or the local recommender (source=deterministic)
- SessionStatusReport: The session decision surface (stop, warning, countdown)

Core Principle: "The tutor decides. SessionOrder recommends and documents."
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .enums import (
    CategoryId,
    GradeApproach,
    RecommendationSource,
    Tone,
    WarningLevel,
)


# =============================================================================
# Packet Components
# =============================================================================

@dataclass
class IntentHypothesis:
    """Best guess at why the behavior happened."""
    label: str
    confidence: float = 0.0
    alternatives: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "alternatives": list(self.alternatives),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IntentHypothesis":
        return cls(
            label=data.get("label", ""),
            confidence=float(data.get("confidence", 0.0)),
            alternatives=list(data.get("alternatives") or []),
        )


@dataclass
class RestorativeAction:
    type: str = ""
    prompt: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "prompt": self.prompt}


@dataclass
class ConsequenceAction:
    type: str = ""
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "detail": self.detail}


@dataclass
class RecommendedResponse:
    """
    What to do right now.

    Attributes:
        immediate_step: The action to take immediately
        ladder_action: Action text of the selected ladder step
        ladder_step_suggested: Ladder step number 1..5
        restorative: Optional restorative practice
        consequence: Optional consequence
    """
    immediate_step: str
    ladder_action: str = ""
    ladder_step_suggested: int = 1
    restorative: Optional[RestorativeAction] = None
    consequence: Optional[ConsequenceAction] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "immediateStep": self.immediate_step,
            "ladderAction": self.ladder_action,
            "ladderStepSuggested": self.ladder_step_suggested,
            "restorative": self.restorative.to_dict() if self.restorative else None,
            "consequence": self.consequence.to_dict() if self.consequence else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecommendedResponse":
        restorative = data.get("restorative")
        consequence = data.get("consequence")
        return cls(
            immediate_step=data.get("immediateStep", ""),
            ladder_action=data.get("ladderAction", ""),
            ladder_step_suggested=int(data.get("ladderStepSuggested", 1)),
            restorative=RestorativeAction(
                type=restorative.get("type", ""),
                prompt=restorative.get("prompt", ""),
            ) if restorative else None,
            consequence=ConsequenceAction(
                type=consequence.get("type", ""),
                detail=consequence.get("detail", ""),
            ) if consequence else None,
        )


@dataclass
class ScriptTrio:
    """One line per tone. All three are always present."""
    gentle: str
    neutral: str
    firm: str

    def for_tone(self, tone: Tone) -> str:
        return getattr(self, tone.value)

    def to_dict(self) -> dict[str, str]:
        return {"gentle": self.gentle, "neutral": self.neutral, "firm": self.firm}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScriptTrio":
        return cls(gentle=data["gentle"], neutral=data["neutral"], firm=data["firm"])


# =============================================================================
# Recommendation
# =============================================================================

@dataclass
class Recommendation:
    """
    A complete recommendation for one incident.

    Either the sanitized output of the advisory service (source=ai) or
    the local deterministic fallback (source=deterministic). When an
    advisory attempt failed, ai_error (transport) or ai_errors
    (validation) records why the fallback was used.
    """
    category: CategoryId
    severity: int
    confidence: float
    recommended_response: RecommendedResponse
    script: ScriptTrio
    source: RecommendationSource
    intent_hypothesis: Optional[IntentHypothesis] = None
    prevention_tip: str = ""
    fairness_notes: list[str] = field(default_factory=list)

    # Engine metadata
    recommended_tone: Optional[Tone] = None
    allowed_consequences: list[str] = field(default_factory=list)
    blocked_consequences: list[str] = field(default_factory=list)
    ai_error: Optional[str] = None
    ai_errors: list[str] = field(default_factory=list)

    @property
    def is_advisory(self) -> bool:
        return self.source == RecommendationSource.AI

    @property
    def recommended_script(self) -> str:
        """Script line for the recommended tone, neutral if none was set."""
        return self.script.for_tone(self.recommended_tone or Tone.NEUTRAL)

    @classmethod
    def from_advisory(cls, sanitized: dict[str, Any]) -> "Recommendation":
        """
        Build from a validated and sanitized advisory response.

        The caller is responsible for validation; required keys are
        assumed present.
        """
        intent = sanitized.get("intentHypothesis")
        return cls(
            category=CategoryId(sanitized["category"]),
            severity=int(sanitized["severity"]),
            confidence=float(sanitized["confidence"]),
            intent_hypothesis=IntentHypothesis.from_dict(intent) if intent else None,
            recommended_response=RecommendedResponse.from_dict(sanitized["recommendedResponse"]),
            script=ScriptTrio.from_dict(sanitized["script"]),
            prevention_tip=sanitized.get("preventionTip", ""),
            fairness_notes=list(sanitized.get("fairnessNotes") or []),
            source=RecommendationSource.AI,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "category": self.category.value,
            "severity": self.severity,
            "confidence": self.confidence,
            "intentHypothesis": (
                self.intent_hypothesis.to_dict() if self.intent_hypothesis else None
            ),
            "recommendedResponse": self.recommended_response.to_dict(),
            "script": self.script.to_dict(),
            "preventionTip": self.prevention_tip,
            "fairnessNotes": list(self.fairness_notes),
            "source": self.source.value,
            "allowedConsequences": list(self.allowed_consequences),
            "blockedConsequences": list(self.blocked_consequences),
        }
        if self.recommended_tone:
            result["recommendedTone"] = self.recommended_tone.value
        if self.ai_error:
            result["aiError"] = self.ai_error
        if self.ai_errors:
            result["aiErrors"] = list(self.ai_errors)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recommendation":
        intent = data.get("intentHypothesis")
        tone = data.get("recommendedTone")
        return cls(
            category=CategoryId(data["category"]),
            severity=int(data["severity"]),
            confidence=float(data["confidence"]),
            intent_hypothesis=IntentHypothesis.from_dict(intent) if intent else None,
            recommended_response=RecommendedResponse.from_dict(data["recommendedResponse"]),
            script=ScriptTrio.from_dict(data["script"]),
            prevention_tip=data.get("preventionTip") or "",
            fairness_notes=list(data.get("fairnessNotes") or []),
            source=RecommendationSource(data.get("source", RecommendationSource.DETERMINISTIC.value)),
            recommended_tone=Tone(tone) if tone else None,
            allowed_consequences=list(data.get("allowedConsequences") or []),
            blocked_consequences=list(data.get("blockedConsequences") or []),
            ai_error=data.get("aiError"),
            ai_errors=list(data.get("aiErrors") or []),
        )


# =============================================================================
# Session Status
# =============================================================================

@dataclass
class SessionStatusReport:
    """
    The session decision surface, computed independently of any
    recommendation.

    Attributes:
        should_stop: Whether the session should end now
        stop_reason: Why, when should_stop is set
        warning_level: green < yellow < orange < red
        warning_message: Status line for the tutor
        grade_approach: External structure (younger) or internal
            accountability (older) framing
        incidents_to_consequence: Remaining count for younger bands,
            None for older bands
        countdown_message: Age-appropriate countdown wording
        should_contact_parent: Parent-contact threshold reached
        consequence_progress: Cumulative severity progress 0..100
    """
    should_stop: bool
    warning_level: WarningLevel
    warning_message: str
    grade_approach: GradeApproach
    countdown_message: str
    should_contact_parent: bool
    consequence_progress: int
    stop_reason: Optional[str] = None
    incidents_to_consequence: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldStop": self.should_stop,
            "stopReason": self.stop_reason,
            "warningLevel": self.warning_level.value,
            "warningMessage": self.warning_message,
            "gradeApproach": self.grade_approach.value,
            "incidentsToConsequence": self.incidents_to_consequence,
            "countdownMessage": self.countdown_message,
            "shouldContactParent": self.should_contact_parent,
            "consequenceProgress": self.consequence_progress,
        }
