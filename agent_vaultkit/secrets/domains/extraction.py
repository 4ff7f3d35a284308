"""Validate and shape loosely-typed Vault secret payloads.

Vault answers reads with schemaless JSON. Nothing about the shape of a payload
is assumed: the nested ``data`` entry is checked to be a mapping, and every
requested field is checked for presence and string type before it is returned.
Extraction never partially succeeds.
"""
import json
from collections.abc import Mapping
from dataclasses import fields
from typing import Any, Dict, Iterable, List

from .errors import DecodeError, FieldTypeError, MissingFieldError, StructureError
from .models import Credentials


def split_fields(field_spec: str) -> List[str]:
    """
    Parse a comma-separated field list.

    Surrounding whitespace is stripped and empty names are dropped, so
    ``"username, password"`` and ``"username,,password"`` both give two names.
    """
    if not field_spec:
        return []
    return [name.strip() for name in field_spec.split(",") if name.strip()]


def _data_mapping(payload: Any) -> Mapping:
    if not isinstance(payload, Mapping):
        raise StructureError(f"malformed secret returned: payload is {type(payload).__name__}, not a mapping")
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise StructureError(f"malformed secret returned: 'data' is {type(data).__name__}, not a mapping")
    return data


def extract_fields(payload: Any, field_names: Iterable[str]) -> Dict[str, str]:
    """
    Pull the requested string fields out of a payload's ``data`` mapping.

    Args:
        payload: Mapping with the secret values nested under ``"data"``
        field_names: Names to extract; must not be empty

    Returns:
        Mapping of each requested name to its string value

    Raises:
        StructureError: If ``payload["data"]`` is not a mapping
        MissingFieldError: If a requested field is absent
        FieldTypeError: If a requested field is not a string
    """
    data = _data_mapping(payload)
    names = list(field_names)
    if not names:
        raise MissingFieldError("no secret fields requested")

    values = {}
    for name in names:
        if name not in data:
            raise MissingFieldError(f"the secret retrieved from vault is missing {name!r} field", field=name)
        value = data[name]
        if not isinstance(value, str):
            raise FieldTypeError(
                f"unexpected secret value type {type(value).__name__} for {name!r} field", field=name
            )
        values[name] = value
    return values


def decode_credentials(payload: Any) -> Credentials:
    """
    Decode a payload's ``data`` mapping into Credentials.

    The mapping goes through a JSON round trip first so that only plain JSON
    values reach the record; field names must match exactly.

    Raises:
        StructureError: If ``payload["data"]`` is not a mapping
        DecodeError: If username/password are missing or not strings
    """
    data = _data_mapping(payload)
    try:
        decoded = json.loads(json.dumps(dict(data)))
    except (TypeError, ValueError) as e:
        raise DecodeError(f"malformed credentials returned: {e}") from e

    values = {}
    for record_field in fields(Credentials):
        value = decoded.get(record_field.name)
        if value is None:
            raise DecodeError(f"unable to decode credentials: missing {record_field.name!r}", field=record_field.name)
        if not isinstance(value, str):
            raise DecodeError(
                f"unable to decode credentials: {record_field.name!r} is {type(value).__name__}, not str",
                field=record_field.name,
            )
        values[record_field.name] = value
    return Credentials(**values)
