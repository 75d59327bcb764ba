# src/otelconfig/otlp.py
"""Resolve OTLP exporter declarations and construct the SDK exporters.

Resolution is transport-neutral and produces an OTLPExporterOptions. The
exporter class is then imported lazily from the matching
``opentelemetry-exporter-otlp-proto-{grpc,http}`` package, so only the
transport a document actually uses has to be installed.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal
from urllib.parse import SplitResult, urlsplit

import structlog

from otelconfig.errors import (
    ComponentUnavailableError,
    InvalidEndpointError,
    InvalidTuningParameterError,
    UnsupportedCompressionError,
    UnsupportedProtocolError,
)
from otelconfig.model import OTLPExporterDeclaration
from otelconfig.transport import TransportCredentials, resolve_headers, resolve_tls

logger = structlog.get_logger(__name__)

Transport = Literal["grpc", "http"]


class Signal(StrEnum):
    TRACES = "traces"
    METRICS = "metrics"
    LOGS = "logs"


_PROTOCOLS: dict[str, Transport] = {
    "http/protobuf": "http",
    "grpc": "grpc",
    "grpc/protobuf": "grpc",
}

_COMPRESSIONS = ("gzip", "none")

_DEFAULT_HTTP_PATHS: dict[Signal, str] = {
    Signal.TRACES: "/v1/traces",
    Signal.METRICS: "/v1/metrics",
    Signal.LOGS: "/v1/logs",
}

_PACKAGES: dict[Transport, str] = {
    "grpc": "opentelemetry-exporter-otlp-proto-grpc",
    "http": "opentelemetry-exporter-otlp-proto-http",
}

_EXPORTER_CLASSES: dict[tuple[Signal, Transport], tuple[str, str]] = {
    (Signal.TRACES, "grpc"): ("opentelemetry.exporter.otlp.proto.grpc.trace_exporter", "OTLPSpanExporter"),
    (Signal.METRICS, "grpc"): ("opentelemetry.exporter.otlp.proto.grpc.metric_exporter", "OTLPMetricExporter"),
    (Signal.LOGS, "grpc"): ("opentelemetry.exporter.otlp.proto.grpc._log_exporter", "OTLPLogExporter"),
    (Signal.TRACES, "http"): ("opentelemetry.exporter.otlp.proto.http.trace_exporter", "OTLPSpanExporter"),
    (Signal.METRICS, "http"): ("opentelemetry.exporter.otlp.proto.http.metric_exporter", "OTLPMetricExporter"),
    (Signal.LOGS, "http"): ("opentelemetry.exporter.otlp.proto.http._log_exporter", "OTLPLogExporter"),
}


def resolve_protocol(protocol: str | None) -> Transport:
    """Map a protocol name to its transport.

    Raises:
        UnsupportedProtocolError: Not http/protobuf, grpc or grpc/protobuf
    """
    try:
        return _PROTOCOLS[protocol]  # type: ignore[index]
    except KeyError:
        raise UnsupportedProtocolError(protocol) from None


def parse_endpoint(endpoint: str) -> SplitResult:
    """Parse an endpoint, assuming ``http://`` when no scheme is given.

    Raises:
        InvalidEndpointError: The endpoint is not a usable http(s) URI
    """
    if not endpoint or endpoint != endpoint.strip() or " " in endpoint:
        raise InvalidEndpointError(endpoint, "endpoint must be a non-empty URI without whitespace")
    normalized = endpoint if "://" in endpoint else f"http://{endpoint}"
    try:
        parts = urlsplit(normalized)
        parts.port  # noqa: B018 - raises ValueError for a malformed port
    except ValueError as e:
        raise InvalidEndpointError(endpoint, str(e)) from e
    if parts.scheme not in ("http", "https"):
        raise InvalidEndpointError(endpoint, f"unsupported scheme {parts.scheme!r}")
    if not parts.hostname:
        raise InvalidEndpointError(endpoint, "missing host")
    return parts


def resolve_compression(compression: str | None) -> str | None:
    """Validate a compression name.

    Raises:
        UnsupportedCompressionError: Not gzip or none
    """
    if compression is None:
        return None
    if compression not in _COMPRESSIONS:
        raise UnsupportedCompressionError(compression)
    return compression


@dataclass(frozen=True)
class OTLPExporterOptions:
    """Transport-neutral settings for one OTLP exporter.

    Attributes:
        signal: Which signal the exporter ships
        transport: grpc or http
        endpoint: Parsed endpoint, or None for the exporter's own default
        insecure: Plaintext gRPC requested (http:// scheme or ``insecure``)
        compression: gzip, none, or None for the exporter default
        timeout_seconds: Export timeout, or None for the exporter default
        headers: Resolved request headers
        credentials: Validated TLS material
    """

    signal: Signal
    transport: Transport
    endpoint: SplitResult | None = None
    insecure: bool | None = None
    compression: str | None = None
    timeout_seconds: float | None = None
    headers: dict[str, str] = field(default_factory=dict)
    credentials: TransportCredentials = field(default_factory=TransportCredentials)

    def exporter_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the exporter class of this transport."""
        if self.transport == "grpc":
            return self._grpc_kwargs()
        return self._http_kwargs()

    def _common_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.headers:
            kwargs["headers"] = dict(self.headers)
        if self.timeout_seconds is not None:
            kwargs["timeout"] = self.timeout_seconds
        return kwargs

    def _grpc_kwargs(self) -> dict[str, Any]:
        kwargs = self._common_kwargs()
        if self.headers:
            # grpc rejects metadata keys with uppercase letters
            kwargs["headers"] = {name.lower(): value for name, value in self.headers.items()}
        if self.endpoint is not None:
            kwargs["endpoint"] = self.endpoint.netloc
        if self.insecure is not None:
            kwargs["insecure"] = self.insecure
        credentials = self.credentials.grpc_credentials()
        if credentials is not None:
            kwargs["credentials"] = credentials
        if self.compression is not None:
            from grpc import Compression

            kwargs["compression"] = Compression.Gzip if self.compression == "gzip" else Compression.NoCompression
        return kwargs

    def _http_kwargs(self) -> dict[str, Any]:
        kwargs = self._common_kwargs()
        if self.endpoint is not None:
            path = self.endpoint.path or _DEFAULT_HTTP_PATHS[self.signal]
            kwargs["endpoint"] = f"{self.endpoint.scheme}://{self.endpoint.netloc}{path}"
        if self.credentials.ca_file is not None:
            kwargs["certificate_file"] = self.credentials.ca_file
        if self.credentials.client_certificate_file is not None:
            kwargs["client_certificate_file"] = self.credentials.client_certificate_file
            kwargs["client_key_file"] = self.credentials.client_key_file
        if self.compression is not None:
            from opentelemetry.exporter.otlp.proto.http import Compression

            kwargs["compression"] = Compression(self.compression)
        return kwargs


def resolve_otlp_options(declaration: OTLPExporterDeclaration, signal: Signal) -> OTLPExporterOptions:
    """Validate an OTLP declaration.

    Checks run in the order protocol, endpoint, compression, timeout,
    headers, TLS; the first failure is raised.

    Raises:
        ConfigurationError: Any of the subclasses named by the helpers
    """
    transport = resolve_protocol(declaration.protocol)

    endpoint = parse_endpoint(declaration.endpoint) if declaration.endpoint is not None else None
    compression = resolve_compression(declaration.compression)

    timeout_seconds = None
    if declaration.timeout is not None:
        if declaration.timeout < 0:
            raise InvalidTuningParameterError("timeout", declaration.timeout)
        if declaration.timeout > 0:
            timeout_seconds = declaration.timeout / 1000

    headers = resolve_headers(declaration.headers, declaration.headers_list)
    credentials = resolve_tls(declaration.certificate, declaration.client_certificate, declaration.client_key)

    insecure = declaration.insecure
    if endpoint is not None:
        insecure = endpoint.scheme == "http"
        if endpoint.scheme == "http" and not credentials.is_default:
            logger.warning(
                "otlp_tls_ignored_for_plain_http",
                signal=str(signal),
                endpoint=declaration.endpoint,
            )

    return OTLPExporterOptions(
        signal=signal,
        transport=transport,
        endpoint=endpoint,
        insecure=insecure,
        compression=compression,
        timeout_seconds=timeout_seconds,
        headers=headers,
        credentials=credentials,
    )


def exporter_class(signal: Signal, transport: Transport) -> type:
    """Import the OTLP exporter class for a signal and transport.

    Raises:
        ComponentUnavailableError: The exporter package is not installed
    """
    module_name, class_name = _EXPORTER_CLASSES[(signal, transport)]
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ComponentUnavailableError(f"OTLP {transport} {signal} exporter", _PACKAGES[transport], e) from e
    return getattr(module, class_name)  # type: ignore[no-any-return]


def build_otlp_exporter(declaration: OTLPExporterDeclaration, signal: Signal, **extra_kwargs: Any) -> Any:
    """Resolve a declaration and construct the matching exporter.

    Args:
        declaration: The ``otlp`` block
        signal: traces, metrics or logs
        **extra_kwargs: Signal-specific arguments (metric temporality and
            aggregation preferences)

    Returns:
        An exporter instance for the signal
    """
    options = resolve_otlp_options(declaration, signal)
    cls = exporter_class(signal, options.transport)
    kwargs = {**options.exporter_kwargs(), **extra_kwargs}
    logger.debug(
        "otlp_exporter_configured",
        signal=str(signal),
        transport=options.transport,
        endpoint=kwargs.get("endpoint"),
        compression=options.compression,
        header_names=sorted(options.headers),
    )
    return cls(**kwargs)
