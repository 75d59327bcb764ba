# tests/test_substitution.py
"""Tests for environment variable substitution in raw document text."""

import pytest

from otelconfig.substitution import substitute_env_vars


class TestSubstituteEnvVars:
    """Reference forms and their replacements."""

    def test_set_variable_is_replaced(self) -> None:
        """${NAME} becomes the variable's value."""
        assert substitute_env_vars("endpoint: ${ENDPOINT}", {"ENDPOINT": "localhost:4317"}) == "endpoint: localhost:4317"

    def test_unset_variable_becomes_empty(self) -> None:
        """An unset variable is replaced by the empty string."""
        assert substitute_env_vars("value: ${MISSING}", {}) == "value: "

    def test_env_prefix_is_accepted(self) -> None:
        """${env:NAME} reads the same variable as ${NAME}."""
        assert substitute_env_vars("${env:SERVICE}", {"SERVICE": "checkout"}) == "checkout"

    @pytest.mark.parametrize(
        ("environ", "expected"),
        [
            ({}, "fallback"),
            ({"NAME": ""}, "fallback"),
            ({"NAME": "real"}, "real"),
        ],
    )
    def test_default_used_when_unset_or_empty(self, environ: dict[str, str], expected: str) -> None:
        """${NAME:-default} falls back when the variable is unset or empty."""
        assert substitute_env_vars("${NAME:-fallback}", environ) == expected

    def test_empty_default(self) -> None:
        """An empty default is allowed."""
        assert substitute_env_vars("x${NAME:-}y", {}) == "xy"

    @pytest.mark.parametrize("text", ["a$$b", "price: $5", "$$", "$NAME", "$ {NAME}"])
    def test_other_dollar_signs_are_kept(self, text: str) -> None:
        """Only ${...} references are replaced; every other dollar sign stays."""
        assert substitute_env_vars(text, {"NAME": "value"}) == text

    def test_doubled_dollar_before_reference(self) -> None:
        """$$ is not an escape: the reference after it is still substituted."""
        assert substitute_env_vars("$${NAME}", {"NAME": "value"}) == "$value"

    def test_values_are_not_rescanned(self) -> None:
        """A value that itself looks like a reference is inserted verbatim."""
        assert substitute_env_vars("${OUTER}", {"OUTER": "${INNER}", "INNER": "nope"}) == "${INNER}"

    def test_invalid_names_are_left_alone(self) -> None:
        """References that are not valid names stay in the text."""
        assert substitute_env_vars("${1BAD} ${with-dash}", {}) == "${1BAD} ${with-dash}"

    def test_multiple_references_in_one_line(self) -> None:
        """Every reference on a line is substituted."""
        text = "headers_list: a=${A},b=${B}"
        assert substitute_env_vars(text, {"A": "1", "B": "2"}) == "headers_list: a=1,b=2"

    def test_defaults_to_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an explicit mapping, os.environ is used."""
        monkeypatch.setenv("OTELCONFIG_TEST_VALUE", "from-process")
        assert substitute_env_vars("${OTELCONFIG_TEST_VALUE}") == "from-process"
