"""
SessionOrder Methodology Pack Loader

Loads and validates methodology packs from YAML or JSON files, or from a
custom configuration saved in the repository.

Converts Pydantic schema models to SessionOrder domain models.

Severity levels are never taken from a custom configuration: after any
custom pack is loaded its severity table is replaced by the built-in one.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import yaml
from pydantic import ValidationError

from ..canon import content_hash
from ..exceptions import (
    MethodologyLoadError,
    MethodologyValidationError,
    MethodologyVersionMismatch,
    SessionOrderError,
)
from ..models import (
    BandId,
    Category,
    CategoryId,
    ConsequencePolicy,
    DeescalationOption,
    GradeBand,
    LadderStep,
    MethodologyConfig,
    RecordKind,
    RestorativePrompt,
    SeverityLevel,
    Tone,
    UniversalRule,
    now_ms,
)
from .schema import (
    SCHEMA_VERSION,
    CategorySchema,
    GradeBandSchema,
    MethodologyPackSchema,
    SeverityLevelSchema,
    check_schema_version,
    validate_methodology_pack,
)

if TYPE_CHECKING:
    from ..storage import Repository

logger = logging.getLogger(__name__)

DEFAULT_PACK_PATH = Path(__file__).parent / "default_methodology.yaml"

# Config key holding a saved custom methodology pack
METHODOLOGY_CONFIG_KEY = "methodology"


# =============================================================================
# Schema to Model Converters
# =============================================================================

def _convert_band(schema: GradeBandSchema) -> GradeBand:
    return GradeBand(
        id=BandId(schema.id),
        grades=tuple(sorted(schema.grades)),
        name=schema.name,
        description=schema.description,
        max_ladder_step=schema.max_ladder_step,
        parent_contact_threshold=schema.parent_contact_threshold,
        session_stop_threshold=schema.session_stop_threshold,
    )


def _convert_severity(schema: SeverityLevelSchema) -> SeverityLevel:
    return SeverityLevel(
        level=schema.level,
        name=schema.name,
        description=schema.description,
        color=schema.color,
        immediate_action=schema.immediate_action,
        characteristics=tuple(schema.characteristics),
    )


def _convert_category(schema: CategorySchema) -> Category:
    return Category(
        id=CategoryId(schema.id),
        label=schema.label,
        short_label=schema.short_label,
        keyboard_shortcut=schema.keyboard_shortcut,
        description=schema.description,
        icon=schema.icon,
        ladder=tuple(
            LadderStep(
                step=s.step,
                name=s.name,
                action=s.action,
                bands=tuple(BandId(b) for b in s.bands),
            )
            for s in schema.ladder
        ),
        scripts={
            Tone(tone): {BandId(band): line for band, line in lines.items()}
            for tone, lines in schema.scripts.items()
        },
        restorative=RestorativePrompt(
            type=schema.restorative.type,
            prompt=schema.restorative.prompt,
        ),
        consequences=ConsequencePolicy(
            allowed=tuple(schema.consequences.allowed),
            not_allowed=tuple(schema.consequences.not_allowed),
        ),
    )


def _convert_pack(
    schema: MethodologyPackSchema,
    severity_levels: Optional[dict[int, SeverityLevel]] = None,
) -> MethodologyConfig:
    """
    Convert a validated pack to a MethodologyConfig.

    Args:
        schema: Validated pack
        severity_levels: Severity table to use instead of the pack's own
    """
    bands = sorted((_convert_band(b) for b in schema.grade_bands), key=lambda b: b.id.index)
    if severity_levels is None:
        severity_levels = {s.level: _convert_severity(s) for s in schema.severity_levels}

    hashed = schema.model_dump(mode="json", exclude={"last_updated"})
    return MethodologyConfig(
        version=schema.version,
        grade_bands=tuple(bands),
        severity_levels=dict(severity_levels),
        categories={CategoryId(c.id): _convert_category(c) for c in schema.categories},
        universal_rules=tuple(
            UniversalRule(
                rule=r.rule,
                simplified_a=r.simplified_a,
                simplified=r.simplified,
                full=r.full,
                icon=r.icon,
            )
            for r in schema.universal_rules
        ),
        deescalation=tuple(
            DeescalationOption(
                key=d.key,
                label=d.label,
                description=d.description,
                durations=tuple(d.durations),
                script=d.script,
            )
            for d in schema.deescalation
        ),
        last_updated=schema.last_updated,
        content_hash=content_hash(hashed),
    )


# =============================================================================
# Methodology Pack Loader
# =============================================================================

class MethodologyPackLoader:
    """
    Loads methodology packs from YAML or JSON files or plain dicts.

    Usage:
        loader = MethodologyPackLoader()
        config = loader.load("path/to/methodology.yaml")
    """

    def __init__(self, strict_version: bool = True):
        """
        Initialize the loader.

        Args:
            strict_version: If True, reject packs with incompatible schema versions
        """
        self.strict_version = strict_version

    def load(
        self,
        path: Union[str, Path],
        severity_levels: Optional[dict[int, SeverityLevel]] = None,
    ) -> MethodologyConfig:
        """
        Load a methodology pack from a file.

        Raises:
            MethodologyLoadError: If file cannot be read
            MethodologyValidationError: If validation fails
            MethodologyVersionMismatch: If schema version incompatible
        """
        path = Path(path)

        try:
            data = self._load_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise MethodologyLoadError(
                message=f"Failed to load methodology pack: {e}",
                details={"path": str(path), "error": str(e)},
            )

        return self.load_dict(data, source=str(path), severity_levels=severity_levels)

    def load_dict(
        self,
        data: Any,
        source: str = "<dict>",
        severity_levels: Optional[dict[int, SeverityLevel]] = None,
    ) -> MethodologyConfig:
        """
        Validate and convert an already-parsed pack.

        Args:
            data: Parsed pack content
            source: Where the data came from, for error details
            severity_levels: Severity table to use instead of the pack's own
        """
        if not isinstance(data, dict):
            raise MethodologyLoadError(
                message="Methodology pack must be a mapping",
                details={"source": source, "type": type(data).__name__},
            )

        if self.strict_version and not check_schema_version(data):
            pack_version = data.get("schema_version", "unknown")
            raise MethodologyVersionMismatch(
                message=f"Schema version mismatch: pack has {pack_version}, expected {SCHEMA_VERSION}",
                details={
                    "pack_version": pack_version,
                    "expected_version": SCHEMA_VERSION,
                    "source": source,
                },
            )

        try:
            schema = validate_methodology_pack(data)
        except ValidationError as e:
            raise MethodologyValidationError(
                message=f"Methodology pack validation failed: {e.error_count()} errors",
                details={
                    "errors": [
                        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    ],
                    "source": source,
                },
            )

        if severity_levels is None and not schema.severity_levels:
            raise MethodologyValidationError(
                message="Methodology pack has no severity levels",
                details={"source": source},
            )

        return _convert_pack(schema, severity_levels)

    def _load_file(self, path: Path) -> Any:
        """Load data from YAML or JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)


# =============================================================================
# Built-in and Custom Configuration
# =============================================================================

@lru_cache(maxsize=1)
def load_default_methodology() -> MethodologyConfig:
    """Load the built-in methodology pack. Cached: the result is immutable."""
    return MethodologyPackLoader().load(DEFAULT_PACK_PATH)


def load_custom_methodology(repository: "Repository") -> Optional[MethodologyConfig]:
    """
    Load the custom methodology saved in the repository, if any.

    The built-in severity table always replaces the custom one.

    Raises:
        MethodologyValidationError / MethodologyVersionMismatch /
        MethodologyLoadError if the stored pack is unusable
    """
    stored = repository.get(RecordKind.CONFIG, METHODOLOGY_CONFIG_KEY)
    if not stored:
        return None
    builtin = load_default_methodology()
    return MethodologyPackLoader().load_dict(
        stored.get("value"),
        source=f"config:{METHODOLOGY_CONFIG_KEY}",
        severity_levels=builtin.severity_levels,
    )


def load_methodology_or_default(
    repository: Optional["Repository"] = None,
    path: Optional[Union[str, Path]] = None,
) -> MethodologyConfig:
    """
    Load the active methodology, falling back to the built-in default.

    Precedence: saved custom configuration, then a pack file at path,
    then the built-in pack. Any unusable source is logged and skipped.
    """
    builtin = load_default_methodology()

    if repository is not None:
        try:
            custom = load_custom_methodology(repository)
        except SessionOrderError as e:
            logger.warning(
                "Custom methodology unusable, falling back: %s", e,
                extra={"code": e.code},
            )
        else:
            if custom is not None:
                return custom

    if path is not None:
        try:
            return MethodologyPackLoader().load(path, severity_levels=builtin.severity_levels)
        except SessionOrderError as e:
            logger.warning(
                "Methodology pack %s unusable, using built-in: %s", path, e,
                extra={"code": e.code},
            )

    return builtin


def save_custom_methodology(repository: "Repository", data: dict[str, Any]) -> MethodologyConfig:
    """
    Validate and persist a custom methodology pack.

    Stamps last_updated. Severity levels in the saved pack are ignored on
    every later load.

    Raises:
        MethodologyValidationError / MethodologyVersionMismatch if invalid
    """
    pack = dict(data)
    pack["last_updated"] = now_ms()
    builtin = load_default_methodology()
    config = MethodologyPackLoader().load_dict(
        pack, source="custom", severity_levels=builtin.severity_levels
    )
    repository.put(
        RecordKind.CONFIG,
        METHODOLOGY_CONFIG_KEY,
        {"key": METHODOLOGY_CONFIG_KEY, "value": pack},
    )
    logger.info("Custom methodology saved", extra={"content_hash": config.content_hash})
    return config


def reset_methodology(repository: "Repository") -> bool:
    """Delete any saved custom methodology. Returns True if one existed."""
    removed = repository.delete(RecordKind.CONFIG, METHODOLOGY_CONFIG_KEY)
    if removed:
        logger.info("Custom methodology reset to built-in")
    return removed


def read_pack_file(path: Union[str, Path]) -> dict[str, Any]:
    """Read a pack file into a dict without validating it."""
    data = MethodologyPackLoader()._load_file(Path(path))
    if not isinstance(data, dict):
        raise MethodologyLoadError(
            message="Methodology pack must be a mapping",
            details={"path": str(path)},
        )
    return data
