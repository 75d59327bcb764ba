# src/otelconfig/transport.py
"""Header and TLS resolution shared by the network exporters."""

from __future__ import annotations

import ssl
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from otelconfig.errors import CertificateAuthorityError, ClientCertificateError, InvalidHeaderListError
from otelconfig.keyvalue import parse_key_value_list
from otelconfig.model import NameStringValuePair

if TYPE_CHECKING:
    import grpc

logger = structlog.get_logger(__name__)


def resolve_headers(headers: Sequence[NameStringValuePair] | None, headers_list: str | None) -> dict[str, str]:
    """Merge the delimited and structured header declarations.

    The structured list is applied last, so it wins for a key declared in
    both. Within one source a repeated key keeps its last value. Structured
    entries with a null value are skipped.

    Raises:
        InvalidHeaderListError: ``headers_list`` is malformed
    """
    resolved: dict[str, str] = {}
    if headers_list:
        try:
            resolved.update(parse_key_value_list(headers_list))
        except ValueError as e:
            raise InvalidHeaderListError(str(e)) from e
    for pair in headers or ():
        if pair.value is not None:
            resolved[pair.name] = pair.value
    return resolved


@dataclass(frozen=True)
class TransportCredentials:
    """Validated TLS material for one exporter.

    The default instance (every field None) means "leave the transport's
    own TLS defaults alone".

    Attributes:
        ca_file: Path of the CA certificate used to verify the server
        client_certificate_file: Path of the client certificate
        client_key_file: Path of the client private key
        root_certificates: PEM contents of ca_file
        certificate_chain: PEM contents of client_certificate_file
        private_key: PEM contents of client_key_file
        ssl_context: Context with the material loaded, for HTTP clients
    """

    ca_file: str | None = None
    client_certificate_file: str | None = None
    client_key_file: str | None = None
    root_certificates: bytes | None = None
    certificate_chain: bytes | None = None
    private_key: bytes | None = None
    ssl_context: ssl.SSLContext | None = None

    @property
    def is_default(self) -> bool:
        return self.ca_file is None and self.client_certificate_file is None and self.client_key_file is None

    def grpc_credentials(self) -> grpc.ChannelCredentials | None:
        """Channel credentials for a gRPC exporter, or None for the default."""
        if self.is_default:
            return None
        import grpc

        return grpc.ssl_channel_credentials(
            root_certificates=self.root_certificates,
            private_key=self.private_key,
            certificate_chain=self.certificate_chain,
        )


def _read(path: str, error_type: type[CertificateAuthorityError] | type[ClientCertificateError], what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise error_type(f"could not read {what} {path}: {e}") from e


def resolve_tls(
    certificate: str | None,
    client_certificate: str | None,
    client_key: str | None,
) -> TransportCredentials:
    """Load and validate the TLS files an exporter declares.

    Args:
        certificate: CA certificate path
        client_certificate: Client certificate path
        client_key: Client private key path

    Returns:
        TransportCredentials; the default instance when nothing is declared

    Raises:
        CertificateAuthorityError: The CA file is unreadable or holds no certificate
        ClientCertificateError: The client pair is incomplete, unreadable or mismatched
    """
    if not (certificate or client_certificate or client_key):
        return TransportCredentials()

    context = ssl.create_default_context()
    root_certificates = None
    if certificate:
        root_certificates = _read(certificate, CertificateAuthorityError, "certificate authority file")
        try:
            context.load_verify_locations(cadata=root_certificates.decode("ascii"))
        except (ssl.SSLError, ValueError) as e:
            raise CertificateAuthorityError(
                f"could not create certificate authority chain from certificate {certificate}: {e}"
            ) from e

    certificate_chain = private_key = None
    if client_certificate or client_key:
        if not (client_certificate and client_key):
            raise ClientCertificateError("client_certificate and client_key must be provided together")
        certificate_chain = _read(client_certificate, ClientCertificateError, "client certificate")
        private_key = _read(client_key, ClientCertificateError, "client key")
        try:
            context.load_cert_chain(client_certificate, client_key)
        except ssl.SSLError as e:
            raise ClientCertificateError(f"could not use client certificate: {e}") from e

    logger.debug(
        "tls_credentials_resolved",
        ca_file=certificate,
        client_certificate_file=client_certificate,
    )
    return TransportCredentials(
        ca_file=certificate or None,
        client_certificate_file=client_certificate or None,
        client_key_file=client_key or None,
        root_certificates=root_certificates,
        certificate_chain=certificate_chain,
        private_key=private_key,
        ssl_context=context,
    )
