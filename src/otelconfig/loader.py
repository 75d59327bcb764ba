# src/otelconfig/loader.py
"""Read configuration documents into OpenTelemetryConfiguration.

Pipeline for every entry point:

1. Environment variable substitution on the raw text
2. YAML or JSON parsing into plain Python data
3. Version dispatch on ``file_format`` through the schema adapters
4. Validation into the frozen pydantic model

Any failure along the way is a DecodeError; nothing is built from a document
that did not decode.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from functools import cache
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import ValidationError

from otelconfig.errors import DecodeError
from otelconfig.model import OpenTelemetryConfiguration
from otelconfig.schema import SchemaVersion, discover_schema_versions, resolve_schema_version
from otelconfig.substitution import substitute_env_vars

logger = structlog.get_logger(__name__)

DocumentFormat = Literal["yaml", "json"]

_JSON_SUFFIXES = frozenset({".json"})

# Written in place of "${" so a dumped string is not substituted on reload
_YAML_REFERENCE_ESCAPE = "$\\x7B"
_JSON_REFERENCE_ESCAPE = "$\\u007b"


class _DocumentDumper(yaml.SafeDumper):
    """SafeDumper that double-quotes every string containing ``${``."""


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    style = '"' if "${" in value else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_DocumentDumper.add_representer(str, _represent_str)


@cache
def _builtin_registry() -> dict[str, SchemaVersion]:
    return discover_schema_versions()


def _registry(schema_plugins: Iterable[Any]) -> dict[str, SchemaVersion]:
    plugins = list(schema_plugins)
    if not plugins:
        return _builtin_registry()
    return discover_schema_versions(plugins)


def _decode_text(data: str | bytes) -> str:
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"document is not valid UTF-8: {e}") from e
    return data


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        problems.append(f"{location}: {detail['msg']}")
    return "; ".join(problems)


def _build(raw: Any, schema_plugins: Iterable[Any]) -> OpenTelemetryConfiguration:
    """Dispatch parsed data to its schema version and validate it."""
    if raw is None:
        raise DecodeError("empty document")
    if not isinstance(raw, dict):
        raise DecodeError(f"document root must be a mapping, got {type(raw).__name__}")

    file_format = raw.get("file_format")
    if file_format is None or file_format == "":
        raise DecodeError("missing required field file_format")

    adapter = resolve_schema_version(str(file_format), _registry(schema_plugins))
    normalized = adapter.normalize(raw)

    try:
        config = OpenTelemetryConfiguration.model_validate(normalized)
    except ValidationError as e:
        raise DecodeError(f"invalid configuration: {_format_validation_error(e)}") from e

    logger.debug("configuration_decoded", file_format=config.file_format, schema_version=adapter.name)
    return config


def parse_yaml(
    data: str | bytes,
    *,
    environ: Mapping[str, str] | None = None,
    schema_plugins: Iterable[Any] = (),
) -> OpenTelemetryConfiguration:
    """Parse a YAML document.

    Args:
        data: Document text or UTF-8 bytes
        environ: Variables for ``${NAME}`` substitution; defaults to os.environ
        schema_plugins: Extra pluggy plugins providing schema versions

    Returns:
        The validated configuration

    Raises:
        DecodeError: Malformed YAML, unknown file_format or schema violation
    """
    text = substitute_env_vars(_decode_text(data), environ)
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DecodeError(f"invalid YAML: {e}") from e
    return _build(raw, schema_plugins)


def parse_json(
    data: str | bytes,
    *,
    environ: Mapping[str, str] | None = None,
    schema_plugins: Iterable[Any] = (),
) -> OpenTelemetryConfiguration:
    """Parse a JSON document. Same contract as parse_yaml."""
    text = substitute_env_vars(_decode_text(data), environ)
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    return _build(raw, schema_plugins)


def parse(
    data: str | bytes,
    document_format: DocumentFormat = "yaml",
    *,
    environ: Mapping[str, str] | None = None,
    schema_plugins: Iterable[Any] = (),
) -> OpenTelemetryConfiguration:
    """Parse a document in the given format."""
    if document_format == "json":
        return parse_json(data, environ=environ, schema_plugins=schema_plugins)
    if document_format == "yaml":
        return parse_yaml(data, environ=environ, schema_plugins=schema_plugins)
    raise DecodeError(f"unsupported document format {document_format!r}, must be one of yaml or json")


def detect_format(path: Path) -> DocumentFormat:
    """Pick the parser from the file extension; anything not JSON is YAML."""
    return "json" if path.suffix.lower() in _JSON_SUFFIXES else "yaml"


def load_file(
    path: str | Path,
    *,
    environ: Mapping[str, str] | None = None,
    schema_plugins: Iterable[Any] = (),
) -> OpenTelemetryConfiguration:
    """Read and parse a configuration file.

    Raises:
        DecodeError: The file cannot be read or does not decode
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"cannot read configuration file {path}: {e}") from e
    logger.info("configuration_file_loaded", path=str(path))
    return parse(data, detect_format(path), environ=environ, schema_plugins=schema_plugins)


def dump(config: OpenTelemetryConfiguration, document_format: DocumentFormat = "yaml") -> str:
    """Serialize a configuration back to text.

    Only keys present in the source document are written, so bare markers
    such as ``console:`` survive as ``console: null`` and the output parses
    back into an equal configuration.

    A string containing ``${`` is written with its brace escaped, so loading
    the output does not substitute it a second time.
    """
    data = config.model_dump(mode="json", exclude_unset=True)
    if document_format == "json":
        # "${" can only occur inside JSON strings
        return json.dumps(data, indent=2).replace("${", _JSON_REFERENCE_ESCAPE)
    # Such strings are double-quoted and never folded, so the escape stays valid
    text = yaml.dump(data, Dumper=_DocumentDumper, sort_keys=False, width=float("inf"))
    return text.replace("${", _YAML_REFERENCE_ESCAPE)
