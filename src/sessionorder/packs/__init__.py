"""
SessionOrder Methodology Packs

YAML methodology packs, their pydantic schemas, and the loader that
converts them into immutable MethodologyConfig objects.
"""
from .loader import (
    DEFAULT_PACK_PATH,
    METHODOLOGY_CONFIG_KEY,
    MethodologyPackLoader,
    load_custom_methodology,
    load_default_methodology,
    load_methodology_or_default,
    read_pack_file,
    reset_methodology,
    save_custom_methodology,
)
from .schema import (
    SCHEMA_VERSION,
    MethodologyPackSchema,
    check_schema_version,
    validate_methodology_pack,
)

__all__ = [
    "DEFAULT_PACK_PATH",
    "METHODOLOGY_CONFIG_KEY",
    "MethodologyPackLoader",
    "load_custom_methodology",
    "load_default_methodology",
    "load_methodology_or_default",
    "read_pack_file",
    "reset_methodology",
    "save_custom_methodology",
    "SCHEMA_VERSION",
    "MethodologyPackSchema",
    "check_schema_version",
    "validate_methodology_pack",
]
