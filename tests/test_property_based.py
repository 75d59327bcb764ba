# tests/test_property_based.py
"""Property-based tests using Hypothesis.

Test categories:
1. Substitution: text without references is untouched, values are not rescanned
2. Document round trip: dumped strings containing "${" load back unchanged
3. Key-value lists: percent-encoded pairs parse back in order
4. Attribute key filters: membership follows included/excluded
5. Propagator names: de-duplicated, ordered, never empty
6. Batch tuning: accepted values are positive and consistent
7. SDK lifecycle: shutdown runs once however often it is called
"""

from urllib.parse import quote

from hypothesis import given
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, rule

from otelconfig.errors import InvalidTuningParameterError
from otelconfig.keyvalue import parse_key_value_list
from otelconfig.loader import dump, parse_json, parse_yaml
from otelconfig.model import BatchTuningDeclaration, OpenTelemetryConfiguration
from otelconfig.propagation import DEFAULT_PROPAGATORS, resolve_propagator_names
from otelconfig.provider import batch_kwargs
from otelconfig.sdk import SDKState, create_sdk
from otelconfig.substitution import substitute_env_vars
from otelconfig.views import AttributeKeyFilter, InstrumentDescriptor, InstrumentKind, ViewMatcher

# =============================================================================
# Strategies
# =============================================================================

variable_names = st.from_regex(r"[a-zA-Z_][a-zA-Z0-9_]{0,15}", fullmatch=True)
keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz._-", min_size=1, max_size=10)
free_text = st.text(st.characters(blacklist_characters="$", blacklist_categories=("Cs",)), max_size=200)
document_strings = st.text(alphabet="ab$:{}#'\"\\ -\n", max_size=40)
tuning_values = st.one_of(st.none(), st.integers(min_value=-10, max_value=10_000))


# =============================================================================
# Substitution
# =============================================================================


class TestSubstitutionProperties:
    @given(text=free_text)
    def test_text_without_references_is_unchanged(self, text: str) -> None:
        assert substitute_env_vars(text, {}) == text

    @given(name=variable_names, value=st.text(min_size=1, max_size=50), prefix=free_text, suffix=free_text)
    def test_reference_replaced_by_value(self, name: str, value: str, prefix: str, suffix: str) -> None:
        assert substitute_env_vars(f"{prefix}${{{name}}}{suffix}", {name: value}) == f"{prefix}{value}{suffix}"

    @given(name=variable_names, other=variable_names)
    def test_values_are_not_rescanned(self, name: str, other: str) -> None:
        value = f"${{{other}}}"
        assert substitute_env_vars(f"${{{name}}}", {name: value, other: "nested"}) == value

    @given(name=variable_names, fallback=st.text(st.characters(blacklist_characters="}$"), max_size=30))
    def test_fallback_when_unset(self, name: str, fallback: str) -> None:
        assert substitute_env_vars(f"${{{name}:-{fallback}}}", {}) == fallback


# =============================================================================
# Document round trip
# =============================================================================


def _document_with(attribute_value: str, header_value: str) -> OpenTelemetryConfiguration:
    return OpenTelemetryConfiguration.model_validate(
        {
            "file_format": "0.3",
            "resource": {"attributes": [{"name": "deployment.note", "value": attribute_value}]},
            "tracer_provider": {
                "processors": [
                    {"simple": {"exporter": {"otlp": {"headers": [{"name": "x-token", "value": header_value}]}}}}
                ]
            },
        }
    )


class TestDumpRoundTripProperties:
    @given(value=document_strings, header=document_strings)
    def test_yaml_round_trip(self, value: str, header: str) -> None:
        config = _document_with(value, header)
        assert parse_yaml(dump(config), environ={}) == config

    @given(value=document_strings, header=document_strings)
    def test_json_round_trip(self, value: str, header: str) -> None:
        config = _document_with(value, header)
        assert parse_json(dump(config, "json"), environ={}) == config


# =============================================================================
# Key-value lists
# =============================================================================


class TestKeyValueListProperties:
    @given(pairs=st.lists(st.tuples(keys, st.text(max_size=20)), max_size=10))
    def test_encoded_pairs_parse_in_order(self, pairs: list[tuple[str, str]]) -> None:
        text = ",".join(f"{quote(key)}={quote(value, safe='')}" for key, value in pairs)
        assert parse_key_value_list(text) == pairs


# =============================================================================
# Attribute key filters
# =============================================================================


class TestAttributeKeyFilterProperties:
    @given(
        included=st.one_of(st.none(), st.frozensets(keys, max_size=5)),
        excluded=st.frozensets(keys, max_size=5),
        key=keys,
    )
    def test_membership(self, included: frozenset[str] | None, excluded: frozenset[str], key: str) -> None:
        keys_filter = AttributeKeyFilter(included=included, excluded=excluded)
        expected = key not in excluded and (included is None or key in included)
        assert (key in keys_filter) is expected
        assert (key in keys_filter.as_attribute_keys()) is expected

    @given(name=st.text(alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ._-", min_size=1, max_size=30))
    def test_literal_name_matches_itself_in_any_case(self, name: str) -> None:
        matcher = ViewMatcher(instrument_name=name)
        assert matcher.matches(InstrumentDescriptor(name=name.swapcase(), kind=InstrumentKind.COUNTER))


# =============================================================================
# Propagator names
# =============================================================================


class TestPropagatorNameProperties:
    @given(names=st.lists(st.one_of(st.none(), st.just(""), st.sampled_from(["tracecontext", "baggage", "b3", "jaeger", "x"]))))
    def test_resolved_names(self, names: list[str | None]) -> None:
        resolved = resolve_propagator_names(names)
        assert resolved
        assert len(resolved) == len(set(resolved))
        assert "" not in resolved
        given_names = [name for name in names if name]
        if given_names:
            assert resolved == list(dict.fromkeys(given_names))
        else:
            assert resolved == list(DEFAULT_PROPAGATORS)


# =============================================================================
# Batch tuning
# =============================================================================


class TestBatchTuningProperties:
    @given(
        schedule_delay=tuning_values,
        export_timeout=tuning_values,
        max_queue_size=tuning_values,
        max_export_batch_size=tuning_values,
    )
    def test_accepted_tuning_is_positive_and_consistent(
        self,
        schedule_delay: int | None,
        export_timeout: int | None,
        max_queue_size: int | None,
        max_export_batch_size: int | None,
    ) -> None:
        declaration = BatchTuningDeclaration(
            schedule_delay=schedule_delay,
            export_timeout=export_timeout,
            max_queue_size=max_queue_size,
            max_export_batch_size=max_export_batch_size,
        )
        values = [schedule_delay, export_timeout, max_queue_size, max_export_batch_size]
        try:
            kwargs = batch_kwargs(declaration)
        except InvalidTuningParameterError as e:
            assert any(v is not None and v < 0 for v in values) or (
                max_export_batch_size is not None and max_queue_size is not None and max_export_batch_size > max_queue_size
            )
            assert e.value < 0 or e.parameter == "batch size"
            return
        assert all(v > 0 for v in kwargs.values())
        if max_queue_size and max_export_batch_size:
            assert kwargs["max_export_batch_size"] <= kwargs["max_queue_size"]


# =============================================================================
# SDK lifecycle
# =============================================================================


class SDKLifecycleStateMachine(RuleBasedStateMachine):
    """Any sequence of shutdown calls leaves the SDK shut down exactly once."""

    def __init__(self) -> None:
        super().__init__()
        self.sdk = create_sdk(
            parse_yaml(
                'file_format: "0.3"\ntracer_provider:\n  processors:\n    - simple:\n        exporter:\n          console:\n'
            )
        )
        self.shutdowns = 0

    @rule()
    def shutdown(self) -> None:
        self.sdk.shutdown(timeout_millis=1000)
        self.shutdowns += 1

    @invariant()
    def state_follows_shutdown_calls(self) -> None:
        expected = SDKState.SHUTDOWN if self.shutdowns else SDKState.BUILT
        assert self.sdk.state is expected

    def teardown(self) -> None:
        if self.sdk.state is SDKState.BUILT:
            self.sdk.shutdown()


TestSDKLifecycle = SDKLifecycleStateMachine.TestCase
