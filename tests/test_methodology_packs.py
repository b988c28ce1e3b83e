"""
Tests for methodology pack loading.

Validates:
- The built-in pack loads and is complete
- Malformed YAML fails
- Missing or extra keys fail
- Band partition and category completeness are enforced
- Custom save / reset / fallback precedence
- Severity levels always come from the built-in pack
- Determinism: same pack content -> same content hash
"""
import copy
import json

import pytest
import yaml

from sessionorder.exceptions import (
    MethodologyLoadError,
    MethodologyValidationError,
    MethodologyVersionMismatch,
)
from sessionorder.engine import Methodology
from sessionorder.models import BandId, CategoryId, RecordKind, Tone
from sessionorder.packs import (
    DEFAULT_PACK_PATH,
    METHODOLOGY_CONFIG_KEY,
    MethodologyPackLoader,
    check_schema_version,
    load_custom_methodology,
    load_default_methodology,
    load_methodology_or_default,
    read_pack_file,
    reset_methodology,
    save_custom_methodology,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def pack_data() -> dict:
    """The built-in pack as a plain dict, safe to mutate."""
    return copy.deepcopy(read_pack_file(DEFAULT_PACK_PATH))


# ============================================================================
# BUILT-IN PACK
# ============================================================================

class TestDefaultPack:
    """Tests for the built-in methodology."""

    def test_loads(self):
        config = load_default_methodology()
        assert config.version == 1
        assert len(config.grade_bands) == 5
        assert set(config.categories) == set(CategoryId)
        assert sorted(config.severity_levels) == [1, 2, 3, 4, 5]
        assert config.last_updated is None

    def test_bands_in_order(self):
        config = load_default_methodology()
        assert [b.id for b in config.grade_bands] == list(BandId)

    def test_cached(self):
        assert load_default_methodology() is load_default_methodology()

    def test_content_hash_is_sha256_hex(self):
        config = load_default_methodology()
        assert len(config.content_hash) == 64
        int(config.content_hash, 16)

    def test_same_content_same_hash(self, pack_data):
        loader = MethodologyPackLoader()
        first = loader.load_dict(copy.deepcopy(pack_data))
        second = loader.load_dict(copy.deepcopy(pack_data))
        assert first.content_hash == second.content_hash
        assert first.content_hash == load_default_methodology().content_hash

    def test_changed_content_changes_hash(self, pack_data):
        pack_data["categories"][0]["label"] = "Drifting"
        config = MethodologyPackLoader().load_dict(pack_data)
        assert config.content_hash != load_default_methodology().content_hash


# ============================================================================
# FILE LOADING
# ============================================================================

class TestPackFiles:
    """Tests for loading packs from disk."""

    def test_load_yaml_file(self, tmp_path, pack_data):
        path = tmp_path / "pack.yaml"
        path.write_text(yaml.safe_dump(pack_data), encoding="utf-8")
        config = MethodologyPackLoader().load(path)
        assert config.categories[CategoryId.OTHER].label == "Other"

    def test_load_json_file(self, tmp_path, pack_data):
        path = tmp_path / "pack.json"
        path.write_text(json.dumps(pack_data), encoding="utf-8")
        config = MethodologyPackLoader().load(path)
        assert len(config.grade_bands) == 5

    def test_malformed_yaml_fails(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("grade_bands: [unclosed\n  - nope: {", encoding="utf-8")
        with pytest.raises(MethodologyLoadError):
            MethodologyPackLoader().load(path)

    def test_missing_file_fails(self, tmp_path):
        with pytest.raises(MethodologyLoadError):
            MethodologyPackLoader().load(tmp_path / "missing.yaml")

    def test_non_mapping_fails(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(MethodologyLoadError):
            MethodologyPackLoader().load(path)


# ============================================================================
# VALIDATION
# ============================================================================

class TestPackValidation:
    """Tests for schema and invariant validation."""

    def test_missing_categories_key_fails(self, pack_data):
        del pack_data["categories"]
        with pytest.raises(MethodologyValidationError) as exc_info:
            MethodologyPackLoader().load_dict(pack_data)
        assert exc_info.value.details["errors"]

    def test_unknown_key_fails(self, pack_data):
        pack_data["surprise"] = True
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_grade_gap_fails(self, pack_data):
        pack_data["grade_bands"][4]["grades"] = [11, 12]
        with pytest.raises(MethodologyValidationError) as exc_info:
            MethodologyPackLoader().load_dict(pack_data)
        assert any("13" in e for e in exc_info.value.details["errors"])

    def test_grade_overlap_fails(self, pack_data):
        pack_data["grade_bands"][1]["grades"] = [2, 3, 4, 5]
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_missing_category_fails(self, pack_data):
        pack_data["categories"] = [
            c for c in pack_data["categories"] if c["id"] != "SAFETY_BOUNDARY"
        ]
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_missing_tone_fails(self, pack_data):
        del pack_data["categories"][0]["scripts"]["firm"]
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_missing_band_c_script_fails(self, pack_data):
        del pack_data["categories"][0]["scripts"]["gentle"]["C"]
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_missing_band_script_allowed(self, pack_data):
        """A band without its own line falls back to band C."""
        del pack_data["categories"][0]["scripts"]["gentle"]["A"]
        config = MethodologyPackLoader().load_dict(pack_data)
        custom = Methodology(config)
        assert custom.script(CategoryId.FOCUS_OFF_TASK, BandId.A, Tone.GENTLE) == \
            custom.script(CategoryId.FOCUS_OFF_TASK, BandId.C, Tone.GENTLE)

    def test_max_ladder_step_out_of_range_fails(self, pack_data):
        pack_data["grade_bands"][0]["max_ladder_step"] = 6
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)

    def test_major_version_mismatch_fails(self, pack_data):
        pack_data["schema_version"] = "2.0.0"
        with pytest.raises(MethodologyVersionMismatch):
            MethodologyPackLoader().load_dict(pack_data)

    def test_minor_version_difference_accepted(self, pack_data):
        pack_data["schema_version"] = "1.4.0"
        assert check_schema_version(pack_data)
        MethodologyPackLoader().load_dict(pack_data)

    def test_lenient_loader_ignores_version(self, pack_data):
        pack_data["schema_version"] = "9.0.0"
        MethodologyPackLoader(strict_version=False).load_dict(pack_data)

    def test_pack_without_severity_levels_needs_builtin(self, pack_data):
        del pack_data["severity_levels"]
        with pytest.raises(MethodologyValidationError):
            MethodologyPackLoader().load_dict(pack_data)


# ============================================================================
# CUSTOM CONFIGURATION
# ============================================================================

class TestCustomMethodology:
    """Tests for saving, loading and resetting a custom methodology."""

    def test_no_custom_returns_none(self, repo):
        assert load_custom_methodology(repo) is None

    def test_save_and_load(self, repo, pack_data):
        pack_data["version"] = 2
        saved = save_custom_methodology(repo, pack_data)
        assert saved.version == 2
        assert saved.last_updated is not None

        loaded = load_methodology_or_default(repo)
        assert loaded.version == 2
        assert loaded.content_hash == saved.content_hash

    def test_save_invalid_rejected_and_not_stored(self, repo, pack_data):
        del pack_data["grade_bands"]
        with pytest.raises(MethodologyValidationError):
            save_custom_methodology(repo, pack_data)
        assert repo.get(RecordKind.CONFIG, METHODOLOGY_CONFIG_KEY) is None

    def test_custom_severity_levels_ignored(self, repo, pack_data):
        """Severity levels always come from the built-in pack."""
        pack_data["severity_levels"][3]["name"] = "Apocalyptic"
        save_custom_methodology(repo, pack_data)
        loaded = load_methodology_or_default(repo)
        assert loaded.severity_levels[4].name == "Critical"

    def test_reset(self, repo, pack_data):
        pack_data["version"] = 3
        save_custom_methodology(repo, pack_data)
        assert reset_methodology(repo) is True
        assert load_methodology_or_default(repo).version == 1
        assert reset_methodology(repo) is False

    def test_corrupt_custom_falls_back(self, repo):
        repo.put(
            RecordKind.CONFIG,
            METHODOLOGY_CONFIG_KEY,
            {"key": METHODOLOGY_CONFIG_KEY, "value": {"grade_bands": "nonsense"}},
        )
        config = load_methodology_or_default(repo)
        assert config is load_default_methodology()

    def test_pack_file_used_when_no_custom(self, repo, tmp_path, pack_data):
        pack_data["version"] = 7
        path = tmp_path / "pack.yaml"
        path.write_text(yaml.safe_dump(pack_data), encoding="utf-8")
        assert load_methodology_or_default(repo, path).version == 7

    def test_custom_beats_pack_file(self, repo, tmp_path, pack_data):
        file_pack = copy.deepcopy(pack_data)
        file_pack["version"] = 7
        path = tmp_path / "pack.yaml"
        path.write_text(yaml.safe_dump(file_pack), encoding="utf-8")

        pack_data["version"] = 4
        save_custom_methodology(repo, pack_data)
        assert load_methodology_or_default(repo, path).version == 4

    def test_bad_pack_file_falls_back(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("version: 0\n", encoding="utf-8")
        assert load_methodology_or_default(None, path) is load_default_methodology()
