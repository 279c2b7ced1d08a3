"""Credential catalogue and the comparison predicates a request can carry.

Each credential has a value kind.  String credentials support equality and
membership checks only; number and date credentials additionally support the
ordering predicates (``gte``, ``gt``, ``lte``, ``lt``) and inclusive ranges.
"""

from __future__ import annotations

import base64
import json
import math
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .config import ConfigurationError


class CredentialTypeError(ConfigurationError, TypeError):
    """Raised when a predicate or value does not fit the credential's kind."""


class CredentialKind(Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"

    @property
    def is_ordered(self) -> bool:
        return self is not CredentialKind.STRING


CREDENTIAL_KINDS: Dict[str, CredentialKind] = {
    "firstname": CredentialKind.STRING,
    "lastname": CredentialKind.STRING,
    "fullname": CredentialKind.STRING,
    "nationality": CredentialKind.STRING,
    "document_type": CredentialKind.STRING,
    "document_number": CredentialKind.STRING,
    "issuing_country": CredentialKind.STRING,
    "gender": CredentialKind.STRING,
    "age": CredentialKind.NUMBER,
    "birthdate": CredentialKind.DATE,
    "expiry_date": CredentialKind.DATE,
}

ORDERED_PREDICATES = ("gte", "gt", "lte", "lt")
MEMBERSHIP_PREDICATES = ("in", "out")

CredentialValue = Union[str, int, float, date]


@dataclass(frozen=True)
class CredentialConfig:
    """Predicates requested for one credential; all present predicates must hold."""

    eq: Optional[CredentialValue] = None
    in_: Optional[Tuple[CredentialValue, ...]] = None
    out: Optional[Tuple[CredentialValue, ...]] = None
    gte: Optional[CredentialValue] = None
    gt: Optional[CredentialValue] = None
    lte: Optional[CredentialValue] = None
    lt: Optional[CredentialValue] = None
    range: Optional[Tuple[CredentialValue, CredentialValue]] = None

    def with_predicate(self, name: str, value: Any) -> "CredentialConfig":
        """Return a copy with predicate *name* set, replacing any previous value of that kind."""

        return replace(self, **{_field_name(name): value})

    def to_dict(self) -> Dict[str, Any]:
        serialized: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            serialized[item.name.rstrip("_")] = _to_json_value(value)
        return serialized


def _field_name(predicate: str) -> str:
    return "in_" if predicate == "in" else predicate


def _to_json_value(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_to_json_value(item) for item in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def credential_kind(key: str) -> CredentialKind:
    try:
        return CREDENTIAL_KINDS[key]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown credential: {key!r}") from exc


def check_value(key: str, kind: CredentialKind, value: Any) -> CredentialValue:
    """Ensure *value* matches the value kind of credential *key*."""

    if kind is CredentialKind.STRING:
        valid = isinstance(value, str)
    elif kind is CredentialKind.NUMBER:
        valid = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        valid = isinstance(value, date)
    if not valid:
        raise CredentialTypeError(
            f"Credential {key!r} expects a {kind.value} value, got {type(value).__name__}"
        )
    if kind is CredentialKind.NUMBER and not math.isfinite(value):
        raise ConfigurationError(f"Credential {key!r} expects a finite number, got {value!r}")
    return value


def check_values(key: str, kind: CredentialKind, values: Sequence[Any]) -> Tuple[CredentialValue, ...]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise CredentialTypeError(f"Credential {key!r} membership checks expect a list of values")
    return tuple(check_value(key, kind, value) for value in values)


def require_ordered(key: str, predicate: str) -> CredentialKind:
    kind = credential_kind(key)
    if not kind.is_ordered:
        raise CredentialTypeError(
            f"Predicate {predicate!r} needs a number or date credential; {key!r} is a {kind.value}"
        )
    return kind


def check_range(key: str, start: CredentialValue, end: CredentialValue) -> None:
    # datetime subclasses date but the two do not compare
    if isinstance(start, datetime) != isinstance(end, datetime):
        raise CredentialTypeError(f"Range bounds for {key!r} must both be dates or both be datetimes")
    if start > end:
        raise ConfigurationError(f"Range for {key!r} is inverted: {start!r} > {end!r}")


def serialize_config(config: Dict[str, CredentialConfig]) -> str:
    """JSON text for a credential map, matching what the wallet parses."""

    payload = {key: entry.to_dict() for key, entry in config.items()}
    return json.dumps(payload, separators=(",", ":"))


def encode_config(config: Dict[str, CredentialConfig]) -> str:
    return base64.b64encode(serialize_config(config).encode("utf-8")).decode("ascii")


def decode_config(encoded: str) -> Dict[str, Dict[str, Any]]:
    """Inverse of :func:`encode_config` for inspection; values stay in their JSON form."""

    return json.loads(base64.b64decode(encoded.encode("ascii")).decode("utf-8"))
