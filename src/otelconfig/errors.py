# src/otelconfig/errors.py
"""Exception taxonomy for configuration loading and SDK construction.

Two families exist:

- DecodeError: the document could not be read at all. Raised immediately,
  nothing is built.
- Everything else derives from ConfigurationError and is *collected* by the
  provider builders. Each builder joins what it collected into a single
  ConfigurationErrors aggregate so a caller sees every mistake in one pass.

Shutdown failures use their own small hierarchy (ShutdownError,
ShutdownTimeoutError) because they happen after construction succeeded.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class ConfigurationError(Exception):
    """Base class for every configuration problem reported by otelconfig."""


class DecodeError(ConfigurationError):
    """Raised when a document is not valid YAML/JSON or violates the schema."""


class SchemaRegistryError(ConfigurationError):
    """Raised when schema version plugins cannot be registered or resolved."""


class SchemaConflictError(ConfigurationError):
    """Raised when resource schema URLs cannot be merged."""

    def __init__(self, default_schema_url: str, declared_schema_url: str) -> None:
        self.default_schema_url = default_schema_url
        self.declared_schema_url = declared_schema_url
        super().__init__(f"conflicting schema URL: {default_schema_url!r} and {declared_schema_url!r}")


class InvalidAttributeError(ConfigurationError):
    """Raised for a resource attribute whose name or value is unusable."""


class InvalidHeaderListError(ConfigurationError):
    """Raised when a delimited ``k=v,k2=v2`` header string is malformed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"invalid headers list: {reason}")


class TLSConfigurationError(ConfigurationError):
    """Base class for certificate problems."""


class CertificateAuthorityError(TLSConfigurationError):
    """Raised when the CA certificate cannot be read or parsed."""


class ClientCertificateError(TLSConfigurationError):
    """Raised when the client certificate/key pair cannot be read or parsed."""


class InvalidInstrumentTypeError(ConfigurationError):
    """Raised for an instrument_type outside the six canonical kinds."""

    def __init__(self, instrument_type: str) -> None:
        self.instrument_type = instrument_type
        super().__init__(f"invalid instrument type: {instrument_type}")


class InvalidViewError(ConfigurationError):
    """Raised for a view without a usable selector or with a broken stream."""


class NoValidExporterError(ConfigurationError):
    """Raised when an exporter declaration selects no supported variant."""

    def __init__(self, signal: str) -> None:
        self.signal = signal
        super().__init__(f"no valid {signal} exporter")


class MultipleExportersError(ConfigurationError):
    """Raised when an exporter declaration selects more than one variant."""

    def __init__(self) -> None:
        super().__init__("must not specify multiple exporters")


class UnsupportedProcessorTypeError(ConfigurationError):
    """Raised when a processor/reader declaration selects no variant."""

    def __init__(self, component: str, choices: str) -> None:
        self.component = component
        super().__init__(f"unsupported {component} type, must be one of {choices}")


class MultipleProcessorTypesError(ConfigurationError):
    """Raised when a processor/reader declaration selects several variants."""

    def __init__(self, component: str) -> None:
        self.component = component
        super().__init__(f"must not specify multiple {component} type")


class InvalidSamplerError(ConfigurationError):
    """Raised when a sampler declaration selects zero or several variants."""


class InvalidEndpointError(ConfigurationError):
    """Raised when an exporter endpoint cannot be parsed as a URI."""

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"endpoint parsing failed for {endpoint!r}: {reason}")


class UnsupportedProtocolError(ConfigurationError):
    """Raised for an OTLP protocol outside http/protobuf and grpc."""

    def __init__(self, protocol: str | None) -> None:
        self.protocol = protocol
        super().__init__(f'unsupported protocol "{protocol}"' if protocol is not None else "unsupported protocol: none given")


class UnsupportedCompressionError(ConfigurationError):
    """Raised for a compression other than gzip or none."""

    def __init__(self, compression: str) -> None:
        self.compression = compression
        super().__init__(f'unsupported compression "{compression}"')


class UnsupportedTemporalityError(ConfigurationError):
    """Raised for an unknown OTLP metric temporality preference."""

    def __init__(self, temporality: str) -> None:
        self.temporality = temporality
        super().__init__(f'unsupported temporality preference "{temporality}"')


class UnsupportedAggregationError(ConfigurationError):
    """Raised for an unknown default histogram aggregation."""

    def __init__(self, aggregation: str) -> None:
        self.aggregation = aggregation
        super().__init__(f'unsupported default histogram aggregation "{aggregation}"')


class MissingHostError(ConfigurationError):
    """Raised when a Prometheus exporter has no host."""

    def __init__(self) -> None:
        super().__init__("host must be specified")


class MissingPortError(ConfigurationError):
    """Raised when a Prometheus exporter has no port."""

    def __init__(self) -> None:
        super().__init__("port must be specified")


class InvalidPortError(ConfigurationError):
    """Raised when a Prometheus port is outside 0-65535."""

    def __init__(self, port: int) -> None:
        self.port = port
        super().__init__(f"invalid port {port}: must be between 0 and 65535")


class InvalidTuningParameterError(ConfigurationError):
    """Raised for a negative (or inconsistent) processor/reader tuning value.

    Attributes:
        parameter: Human name of the parameter ("batch size", "queue size", ...)
        value: The offending value
    """

    def __init__(self, parameter: str, value: int, detail: str | None = None) -> None:
        self.parameter = parameter
        self.value = value
        message = f"invalid {parameter} {value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedPropagatorError(ConfigurationError):
    """Raised for a propagator name outside the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown propagator: {name!r}")


class ComponentUnavailableError(ConfigurationError):
    """Raised when the package providing a selected component is not installed."""

    def __init__(self, component: str, package: str, cause: Exception) -> None:
        self.component = component
        self.package = package
        super().__init__(f"{component} is not available: {cause}. Install with: pip install {package}")


class ConfigurationErrors(ConfigurationError):
    """Aggregate of independent configuration errors.

    The string form lists every underlying message on its own line, so
    ``"unsupported compression" in str(err)`` works regardless of how many
    other problems were found alongside.

    Attributes:
        errors: Flat tuple of leaf errors, in the order they were found
    """

    def __init__(self, errors: Iterable[ConfigurationError]) -> None:
        self.errors: tuple[ConfigurationError, ...] = tuple(_flatten(errors))
        super().__init__("\n".join(str(e) for e in self.errors))

    def __iter__(self) -> Iterator[ConfigurationError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def _flatten(errors: Iterable[ConfigurationError]) -> Iterable[ConfigurationError]:
    for error in errors:
        if isinstance(error, ConfigurationErrors):
            yield from error.errors
        else:
            yield error


def join_errors(errors: Iterable[ConfigurationError | None]) -> ConfigurationErrors | None:
    """Join errors into one aggregate, dropping ``None`` entries.

    Nested aggregates are flattened so the result is always one level deep.

    Returns:
        ConfigurationErrors, or None when nothing was collected
    """
    collected = [e for e in errors if e is not None]
    if not collected:
        return None
    return ConfigurationErrors(collected)


class ShutdownError(Exception):
    """Aggregate of errors raised while shutting providers down.

    Attributes:
        errors: Exceptions raised by the individual signal shutdowns
    """

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors: tuple[BaseException, ...] = tuple(errors)
        super().__init__("\n".join(str(e) for e in self.errors))


class ShutdownTimeoutError(TimeoutError):
    """Raised when a provider did not finish shutting down before the deadline."""

    def __init__(self, signal: str, timeout_millis: float) -> None:
        self.signal = signal
        self.timeout_millis = timeout_millis
        super().__init__(f"{signal} provider shutdown exceeded deadline of {timeout_millis:g}ms")
