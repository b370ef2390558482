"""Tests for validation rule parsing and value checks."""

import pytest

from chatform.core.errors import ConfigError, InvalidRuleError
from chatform.core.types import CollectionConfig, FieldSpec
from chatform.core.validator import parse_rules, validate, validate_all, validate_config, validation_hints


class TestParseRules:
    """Rule-string parsing."""

    def test_flags_and_arguments(self):
        rules = parse_rules("required|numeric|min:1|between:1,10|in:a,b")

        assert [r.name for r in rules] == ["required", "numeric", "min", "between", "in"]
        assert rules[3].args == ["1", "10"]
        assert str(rules[2]) == "min:1"

    def test_empty_string_has_no_rules(self):
        assert parse_rules("") == []
        assert parse_rules(None) == []

    @pytest.mark.parametrize(
        "validation",
        ["size:3", "min", "min:abc", "between:5", "between:10,1", "in:", "required:1"],
    )
    def test_malformed_rules_raise(self, validation):
        with pytest.raises(InvalidRuleError) as exc:
            parse_rules(validation, "field_x")
        assert exc.value.field == "field_x"

    def test_invalid_rule_is_a_config_error(self):
        with pytest.raises(ConfigError):
            parse_rules("unknown_rule")


class TestValidate:
    """Single-value checks."""

    def test_required_empty_value(self):
        spec = FieldSpec(name="name", description="Course name", validation="required")

        errors = validate(spec, "   ")

        assert [e.rule for e in errors] == ["required"]
        assert errors[0].message == "Course name is required."

    def test_optional_empty_value_passes(self):
        spec = FieldSpec(name="notes", required=False, validation="max:5")

        assert validate(spec, "") == []
        assert validate(spec, None) == []

    def test_nullable_overrides_required_flag(self):
        spec = FieldSpec(name="notes", validation="nullable|max:5")

        assert validate(spec, "") == []

    def test_rules_and_flag_agree_on_requiredness(self):
        strict = FieldSpec(name="code", required=False, validation="required")
        loose = FieldSpec(name="notes", validation="nullable")
        config = CollectionConfig(name="c", fields=[strict, loose])

        assert config.required_fields == [strict]
        assert config.optional_fields == [loose]
        assert [e.rule for e in validate(strict, "")] == ["required"]
        assert validate(loose, "") == []

    def test_numeric_bounds(self):
        spec = FieldSpec(name="duration", type="number", validation="numeric|min:1|max:100")

        assert validate(spec, "10") == []
        assert [e.rule for e in validate(spec, "0")] == ["min"]
        assert [e.rule for e in validate(spec, "101")] == ["max"]
        assert [e.rule for e in validate(spec, "zero")] == ["numeric"]

    def test_number_type_without_numeric_rule(self):
        spec = FieldSpec(name="seats", type="number")

        errors = validate(spec, "many")

        assert [e.rule for e in errors] == ["numeric"]
        assert "must be a number" in errors[0].message

    def test_text_bounds_count_characters(self):
        spec = FieldSpec(name="name", description="Course name", validation="min:3|max:5")

        errors = validate(spec, "ab")

        assert [e.rule for e in errors] == ["min"]
        assert errors[0].message == "Course name must be at least 3 characters."
        assert [e.rule for e in validate(spec, "abcdef")] == ["max"]

    def test_between(self):
        spec = FieldSpec(name="rating", type="number", validation="between:1,5")

        assert validate(spec, "3") == []
        assert validate(spec, "9")[0].message == "Rating must be between 1 and 5."

    def test_integer(self):
        spec = FieldSpec(name="count", validation="integer")

        assert validate(spec, "4") == []
        assert validate(spec, 4) == []
        assert [e.rule for e in validate(spec, "4.5")] == ["integer"]

    def test_email_and_url(self):
        email = FieldSpec(name="email", validation="email")
        url = FieldSpec(name="site", validation="url")

        assert validate(email, "sam@example.com") == []
        assert validate(email, "sam@")[0].rule == "email"
        assert validate(url, "https://example.com/x") == []
        assert validate(url, "example")[0].rule == "url"

    def test_in_rule_is_case_insensitive(self):
        spec = FieldSpec(name="color", validation="in:red,green")

        assert validate(spec, "RED") == []
        assert validate(spec, "blue")[0].rule == "in"

    def test_select_option_membership(self):
        spec = FieldSpec(name="level", type="select", options=["beginner", "advanced"])

        assert validate(spec, "Beginner") == []
        assert validate(spec, "expert")[0].rule == "option"

    def test_every_violation_is_reported(self):
        spec = FieldSpec(name="code", validation="min:5|email")

        rules = sorted(e.rule for e in validate(spec, "ab"))

        assert rules == ["email", "min"]

    def test_validate_all(self, course_config):
        errors = validate_all(course_config, {"name": "Laravel Basics", "duration": "abc"})

        assert set(errors) == {"duration", "level"}
        assert errors["level"][0].rule == "required"


class TestValidateConfig:
    """Schema-level checks at registration."""

    def test_valid_config(self, course_config):
        validate_config(course_config)

    def test_no_fields(self):
        with pytest.raises(ConfigError, match="no fields"):
            validate_config(CollectionConfig(name="empty"))

    def test_duplicate_fields(self):
        config = CollectionConfig(name="dup", fields=[FieldSpec(name="a"), FieldSpec(name="a")])

        with pytest.raises(ConfigError, match="Duplicate field"):
            validate_config(config)

    def test_select_without_options(self):
        config = CollectionConfig(name="sel", fields=[FieldSpec(name="level", type="select")])

        with pytest.raises(ConfigError, match="needs options"):
            validate_config(config)

    def test_unsupported_type(self):
        config = CollectionConfig(name="bad", fields=[FieldSpec(name="when", type="date")])

        with pytest.raises(ConfigError, match="unsupported type"):
            validate_config(config)


class TestHints:
    def test_hints_for_prompts(self):
        spec = FieldSpec(name="name", validation="required|min:3|max:255")

        assert validation_hints(spec) == ["minimum 3 characters", "maximum 255 characters"]

    def test_numeric_hints_have_no_unit(self):
        spec = FieldSpec(name="duration", type="number", validation="numeric|min:1")

        assert validation_hints(spec) == ["must be a number", "minimum 1"]
