"""Tests for configuration models, file loading and schema validation."""

import json

import pytest
import yaml

from duplicates_index.config import (
    DuplicateCheckFieldSet,
    DuplicatesIndexSettings,
    FieldOptions,
    load_config_data,
    load_settings,
    save_settings,
    settings_from_dict,
    validate_config_schema,
)
from duplicates_index.config.io import CONFIG_ENV_VAR
from duplicates_index.core.field_combination import FieldCombination, FieldCombinationConfig
from duplicates_index.exceptions import ConfigurationError, ValidationError


class TestFieldOptions:
    def test_camel_case_aliases(self):
        opts = FieldOptions.model_validate(
            {"similarityAlgorithm": "similar_text", "similarityThreshold": 85, "useInSoundex": True}
        )
        assert opts.similarity == "similar_text"
        assert opts.similarity_threshold == 85
        assert opts.soundex is True
        assert opts.metaphone is False

    def test_blank_similarity_is_none(self):
        assert FieldOptions.model_validate({"similarity": "  "}).similarity is None

    def test_unknown_option_rejected(self):
        with pytest.raises(Exception):
            FieldOptions.model_validate({"fuzzy": True})

    def test_uses_algorithm(self):
        opts = FieldOptions(metaphone=True)
        assert opts.uses_algorithm("metaphone")
        assert not opts.uses_algorithm("soundex")


class TestFieldSets:
    def test_plain_mapping_keeps_field_order(self):
        field_set = DuplicateCheckFieldSet.model_validate({"zip": {}, "lastname": None})
        assert field_set.field_names == ("zip", "lastname")

    def test_empty_field_set_rejected(self):
        with pytest.raises(Exception):
            DuplicateCheckFieldSet.model_validate({"fields": {}})

    def test_blank_field_name_rejected(self):
        with pytest.raises(Exception):
            DuplicateCheckFieldSet.model_validate({" ": {}})

    def test_duplicate_combination_rejected(self):
        with pytest.raises(ValidationError):
            settings_from_dict({"duplicate_check_fields": [{"lastname": {}}, {"lastname": {}}]})


class TestSettings:
    def test_defaults(self):
        settings = DuplicatesIndexSettings()
        assert settings.enabled is False
        assert settings.page_size == 200
        assert settings.cluster_size == 2
        assert settings.strict_rebuild is True
        assert settings.duplicate_check_fields == []

    def test_cluster_size_below_two_rejected(self):
        with pytest.raises(ValidationError):
            settings_from_dict({"cluster_size": 1})

    def test_schema_rejects_wrong_type(self):
        ok, error = validate_config_schema({"page_size": "many"})
        assert ok is False
        assert error

    def test_schema_accepts_both_option_spellings(self):
        ok, error = validate_config_schema(
            {
                "duplicate_check_fields": [
                    {"lastname": {"similarityAlgorithm": "similar_text", "soundex": True}, "zip": None}
                ]
            }
        )
        assert ok, error

    def test_schema_failure_raises_validation_error(self):
        with pytest.raises(ValidationError):
            settings_from_dict({"duplicate_check_fields": [{"lastname": {"weird": 1}}]})


class TestConfigFiles:
    def test_no_path_gives_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config_data() == {}
        assert load_settings().enabled is False

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "duplicates.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "enabled": True,
                    "duplicate_check_fields": [
                        {"lastname": {"useInSoundex": True, "similarityAlgorithm": "similar_text"}, "zip": {}}
                    ],
                    "data_transformers": {"zip": "zip"},
                }
            ),
            encoding="utf-8",
        )
        settings = load_settings(str(path))
        assert settings.enabled is True
        assert settings.duplicate_check_fields[0].field_names == ("lastname", "zip")
        assert settings.data_transformers == {"zip": "zip"}

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "duplicates.json"
        path.write_text(json.dumps({"page_size": 50}), encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_settings().page_size == 50

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config_data(str(tmp_path / "nope.yaml"))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config_data(str(path))

    def test_save_and_reload(self, tmp_path):
        settings = settings_from_dict(
            {
                "enabled": True,
                "duplicate_check_fields": [
                    {"lastname": {"similarity": "similar_text", "similarity_threshold": 80, "soundex": True}}
                ],
            }
        )
        path = tmp_path / "saved.yaml"
        save_settings(settings, str(path))
        reloaded = load_settings(str(path))
        assert reloaded.enabled is True
        options = reloaded.duplicate_check_fields[0].fields["lastname"]
        assert options.similarity == "similar_text"
        assert options.similarity_threshold == 80
        assert options.soundex is True


class TestFieldCombination:
    def test_str_and_storage(self):
        combination = FieldCombination.of("lastname", "zip")
        assert str(combination) == "lastname,zip"
        assert FieldCombination.from_storage(combination.to_storage()) == combination

    def test_separator_inside_field_name_does_not_collide(self):
        joined = FieldCombination.of("a,b")
        split = FieldCombination.of("a", "b")
        assert str(joined) == str(split)
        assert joined != split
        assert joined.storage_hash != split.storage_hash

    def test_invalid_combinations(self):
        with pytest.raises(ValueError):
            FieldCombination(())
        with pytest.raises(ValueError):
            FieldCombination.of("zip", "zip")

    def test_config_lookup(self):
        settings = settings_from_dict(
            {"duplicate_check_fields": [{"lastname": {"soundex": True}, "zip": {}}, {"email": {}}]}
        )
        config = FieldCombinationConfig(settings.duplicate_check_fields)
        assert len(config) == 2
        assert config.combinations[0] == FieldCombination.of("lastname", "zip")
        assert config.options_for(FieldCombination.of("lastname", "zip"))["lastname"].soundex is True
        assert dict(config.options_for(FieldCombination.of("phone"))) == {}
        assert FieldCombination.of("email") in config
