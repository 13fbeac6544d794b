"""Contract and network-config JSON Schemas, and schema validation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from aumai_hpcontract.errors import EmptyParameterError, SchemaValidationError
from aumai_hpcontract.models import Platform

logger = logging.getLogger(__name__)

_OBJECT = {"type": "object"}
_STRING = {"type": "string"}

_LOGGING = {
    "type": "object",
    "properties": {
        "logRouter": {
            "type": "object",
            "properties": {"hostname": _STRING, "iamApiKey": _STRING, "port": {"type": "integer"}},
        },
        "syslog": {
            "type": "object",
            "properties": {
                "hostname": _STRING,
                "port": {"type": "integer"},
                "server": _STRING,
                "cert": _STRING,
                "key": _STRING,
            },
        },
    },
    "additionalProperties": False,
}

_ENV_SECTION = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "type": {"const": "env"},
        "logging": _LOGGING,
        "volumes": _OBJECT,
        "signingKey": _STRING,
        "env": {"type": "object", "additionalProperties": _STRING},
        "crypto-pt": _OBJECT,
    },
    "additionalProperties": False,
}

_HPVS_WORKLOAD = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "type": {"const": "workload"},
        "auths": _OBJECT,
        "compose": {
            "type": "object",
            "properties": {"archive": _STRING},
            "required": ["archive"],
        },
        "play": {
            "type": "object",
            "properties": {
                "archive": _STRING,
                "resources": {"type": "array"},
                "templates": {"type": "array"},
            },
        },
        "images": _OBJECT,
        "volumes": _OBJECT,
        "env": {"type": "object", "additionalProperties": _STRING},
        "confidential-containers": _OBJECT,
    },
    "additionalProperties": False,
}

_RHVS_WORKLOAD = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "type": {"const": "workload"},
        "auths": _OBJECT,
        "play": {
            "type": "object",
            "properties": {
                "archive": _STRING,
                "resources": {"type": "array"},
                "templates": {"type": "array"},
            },
        },
        "images": _OBJECT,
        "volumes": _OBJECT,
        "env": {"type": "object", "additionalProperties": _STRING},
    },
    "additionalProperties": False,
}


def _contract_schema(workload: dict[str, Any]) -> dict[str, Any]:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "required": ["workload", "env"],
        "properties": {
            "workload": workload,
            "env": _ENV_SECTION,
            "envWorkloadSignature": _STRING,
            "attestationPublicKey": _STRING,
        },
        "additionalProperties": False,
    }


_ADDRESS_LIST = {"type": "array", "items": _STRING}

_INTERFACE = {
    "type": "object",
    "properties": {
        "dhcp4": {"type": "boolean"},
        "dhcp6": {"type": "boolean"},
        "addresses": _ADDRESS_LIST,
        "gateway4": _STRING,
        "gateway6": _STRING,
        "mtu": {"type": "integer", "minimum": 1},
        "match": {
            "type": "object",
            "properties": {"macaddress": _STRING, "name": _STRING, "driver": _STRING},
            "additionalProperties": False,
        },
        "set-name": _STRING,
        "nameservers": {
            "type": "object",
            "properties": {"addresses": _ADDRESS_LIST, "search": _ADDRESS_LIST},
            "additionalProperties": False,
        },
        "routes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["to", "via"],
                "properties": {"to": _STRING, "via": _STRING, "metric": {"type": "integer"}},
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}

# cloud-init network configuration, version 2, as read by on-prem guests.
NETWORK_CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["network"],
    "properties": {
        "network": {
            "type": "object",
            "required": ["version"],
            "properties": {
                "version": {"const": 2},
                "ethernets": {"type": "object", "additionalProperties": _INTERFACE},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


CONTRACT_SCHEMAS: Mapping[Platform, dict[str, Any]] = {
    Platform.hpvs: _contract_schema(_HPVS_WORKLOAD),
    Platform.hpcc_peerpod: _contract_schema(_HPVS_WORKLOAD),
    Platform.hpcr_rhvs: _contract_schema(_RHVS_WORKLOAD),
}


def _violations(validator: Draft202012Validator, document: Any) -> str:
    errors = sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.path])
    return "; ".join(
        f"{'/'.join(str(p) for p in error.path) or '<root>'}: {error.message}"
        for error in errors
    )


class SchemaValidator:
    """Validate contract documents against the schema of their platform."""

    def __init__(self, schemas: Mapping[Platform, dict[str, Any]] | None = None) -> None:
        self._schemas = dict(schemas or CONTRACT_SCHEMAS)
        self._validators: dict[Platform, Draft202012Validator] = {}

    def schema_for(self, platform: Platform | str | None) -> dict[str, Any]:
        resolved = Platform.parse(platform)
        try:
            return self._schemas[resolved]
        except KeyError:
            raise SchemaValidationError(
                f"no contract schema registered for platform {resolved.value}"
            ) from None

    def validate(self, document: Mapping[str, Any], platform: Platform | str | None) -> None:
        """Raise :class:`SchemaValidationError` listing every violation."""
        resolved = Platform.parse(platform)
        validator = self._validators.get(resolved)
        if validator is None:
            validator = Draft202012Validator(self.schema_for(resolved))
            self._validators[resolved] = validator
        messages = _violations(validator, dict(document))
        if messages:
            logger.debug("contract rejected for %s: %s", resolved.value, messages)
            raise SchemaValidationError(
                f"contract validation failed for {resolved.value} - {messages}"
            )


_NETWORK_VALIDATOR = Draft202012Validator(NETWORK_CONFIG_SCHEMA)


def verify_network_config(config: str | Mapping[str, Any]) -> None:
    """Check an on-prem ``network-config`` document (YAML text or mapping).

    Raises:
        EmptyParameterError: if *config* is empty.
        SchemaValidationError: if the document is not YAML or violates
            the schema; every violation is listed.
    """
    if not config or (isinstance(config, str) and not config.strip()):
        raise EmptyParameterError("network config")
    document: Any = config
    if isinstance(config, str):
        try:
            document = yaml.safe_load(config)
        except yaml.YAMLError as exc:
            raise SchemaValidationError(f"network config is not valid YAML - {exc}") from exc
    messages = _violations(_NETWORK_VALIDATOR, document)
    if messages:
        raise SchemaValidationError(f"network config validation failed - {messages}")


__all__ = ["CONTRACT_SCHEMAS", "NETWORK_CONFIG_SCHEMA", "SchemaValidator", "verify_network_config"]
