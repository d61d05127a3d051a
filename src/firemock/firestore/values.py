from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping
import base64
import binascii
import math
import re

from firemock.firestore.errors import MalformedWireValue, UnsupportedValueKind


INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MIN_TIMESTAMP_SECONDS = -62135596800  # 0001-01-01T00:00:00Z
_MAX_TIMESTAMP_SECONDS = 253402300799  # 9999-12-31T23:59:59Z
_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)
_INTEGER_PATTERN = re.compile(r"^-?\d+$", re.ASCII)
_SPECIAL_DOUBLES = {
    "NaN": math.nan,
    "Infinity": math.inf,
    "-Infinity": -math.inf,
}


class ValueKind(str, Enum):
    NULL = "nullValue"
    BOOLEAN = "booleanValue"
    INTEGER = "integerValue"
    DOUBLE = "doubleValue"
    TIMESTAMP = "timestampValue"
    STRING = "stringValue"
    BYTES = "bytesValue"
    REFERENCE = "referenceValue"
    GEO_POINT = "geoPointValue"
    ARRAY = "arrayValue"
    MAP = "mapValue"


_KINDS_BY_KEY = {kind.value: kind for kind in ValueKind}


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Absent map entries are left out of the encoded map instead of becoming null.
MISSING: Any = _Missing()


@dataclass(frozen=True, order=True)
class Timestamp:
    """UTC instant with nanosecond precision."""

    seconds: int
    nanos: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanos < NANOS_PER_SECOND:
            raise ValueError(f"nanos must be within [0, {NANOS_PER_SECOND}): {self.nanos}")
        if not _MIN_TIMESTAMP_SECONDS <= self.seconds <= _MAX_TIMESTAMP_SECONDS:
            raise ValueError(f"timestamp out of range: seconds={self.seconds}")

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - _EPOCH
        seconds = delta // timedelta(seconds=1)
        return cls(seconds=seconds, nanos=value.microsecond * 1000)

    @classmethod
    def from_epoch_nanos(cls, nanos: int) -> Timestamp:
        seconds, remainder = divmod(nanos, NANOS_PER_SECOND)
        return cls(seconds=seconds, nanos=remainder)

    @classmethod
    def parse(cls, text: str) -> Timestamp:
        """Parse an RFC 3339 timestamp such as ``2024-05-01T09:30:00.123456789Z``."""

        match = _TIMESTAMP_PATTERN.match(text.strip())
        if match is None:
            raise ValueError(f"Invalid timestamp format: {text}")
        offset = match.group("offset").upper()
        if offset == "Z":
            offset = "+00:00"
        whole = datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}{offset}")
        fraction = match.group("fraction") or ""
        nanos = int(fraction.ljust(9, "0")) if fraction else 0
        base = cls.from_datetime(whole)
        return cls(seconds=base.seconds, nanos=nanos)

    @property
    def has_microsecond_precision(self) -> bool:
        return self.nanos % 1000 == 0

    def to_datetime(self) -> datetime:
        """Convert to an aware UTC datetime, truncating sub-microsecond digits."""

        return _EPOCH + timedelta(seconds=self.seconds, microseconds=self.nanos // 1000)

    def isoformat(self) -> str:
        whole = (_EPOCH + timedelta(seconds=self.seconds)).replace(tzinfo=None).isoformat(timespec="seconds")
        if self.nanos == 0:
            return f"{whole}Z"
        if self.nanos % 1_000_000 == 0:
            return f"{whole}.{self.nanos // 1_000_000:03d}Z"
        if self.nanos % 1000 == 0:
            return f"{whole}.{self.nanos // 1000:06d}Z"
        return f"{whole}.{self.nanos:09d}Z"

    def __str__(self) -> str:
        return self.isoformat()


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90]: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180]: {self.longitude}")


@dataclass(frozen=True)
class Reference:
    """Native stand-in for a document reference, identified by its resource name."""

    name: str


@dataclass(frozen=True)
class WireValue:
    """Typed value envelope; ``kind`` names the single populated variant."""

    kind: ValueKind
    value: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ValueKind):
            raise MalformedWireValue(f"Unknown value kind: {self.kind!r}")
        if not _payload_matches(self.kind, self.value):
            raise MalformedWireValue(f"{self.kind.value} payload has wrong type: {type(self.value).__name__}")

    @classmethod
    def from_json(cls, data: Any) -> WireValue:
        return _from_json(data, path="")

    def to_json(self) -> dict[str, Any]:
        kind = self.kind
        if kind is ValueKind.NULL:
            payload: Any = None
        elif kind is ValueKind.INTEGER:
            payload = str(self.value)
        elif kind is ValueKind.DOUBLE:
            payload = _double_to_json(self.value)
        elif kind is ValueKind.TIMESTAMP:
            payload = self.value.isoformat()
        elif kind is ValueKind.BYTES:
            payload = base64.b64encode(self.value).decode("ascii")
        elif kind is ValueKind.GEO_POINT:
            payload = {"latitude": self.value.latitude, "longitude": self.value.longitude}
        elif kind is ValueKind.ARRAY:
            payload = {"values": [item.to_json() for item in self.value]} if self.value else {}
        elif kind is ValueKind.MAP:
            payload = {"fields": fields_to_json(self.value)} if self.value else {}
        else:
            payload = self.value
        return {kind.value: payload}


def _payload_matches(kind: ValueKind, value: Any) -> bool:
    if kind is ValueKind.NULL:
        return value is None
    if kind is ValueKind.BOOLEAN:
        return isinstance(value, bool)
    if kind is ValueKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool) and INT64_MIN <= value <= INT64_MAX
    if kind is ValueKind.DOUBLE:
        return isinstance(value, float)
    if kind is ValueKind.TIMESTAMP:
        return isinstance(value, Timestamp)
    if kind in (ValueKind.STRING, ValueKind.REFERENCE):
        return isinstance(value, str)
    if kind is ValueKind.BYTES:
        return isinstance(value, bytes)
    if kind is ValueKind.GEO_POINT:
        return isinstance(value, GeoPoint)
    if kind is ValueKind.ARRAY:
        return isinstance(value, tuple) and all(isinstance(item, WireValue) for item in value)
    if kind is ValueKind.MAP:
        return isinstance(value, dict) and all(
            isinstance(key, str) and isinstance(item, WireValue) for key, item in value.items()
        )
    return False


def encode(value: Any) -> WireValue:
    """Convert a native value into its wire envelope.

    ``int`` values inside the signed 64-bit range become integers, every
    ``float`` becomes a double, so ``1.0`` and ``1`` stay distinct.
    Some inputs are normalised and do not decode to an equal value: naive
    ``datetime`` objects are read as UTC and come back aware, ``tuple``
    comes back as ``list`` and ``bytearray`` as ``bytes``.
    """

    return _encode(value, path="", active=set())


def decode(wire: WireValue) -> Any:
    """Convert a wire envelope back into a native value.

    Timestamps decode to aware UTC ``datetime`` objects unless they carry
    sub-microsecond digits, in which case the ``Timestamp`` is returned as is.
    """

    return _decode(wire, path="")


def encode_fields(fields: Mapping[str, Any]) -> dict[str, WireValue]:
    if not isinstance(fields, Mapping):
        raise UnsupportedValueKind(f"Document fields must be a mapping: {type(fields).__name__}")
    return _encode_map(fields, path="", active=set())


def decode_fields(fields: Mapping[str, WireValue]) -> dict[str, Any]:
    return {name: _decode(value, path=name) for name, value in fields.items()}


def fields_to_json(fields: Mapping[str, WireValue]) -> dict[str, Any]:
    return {name: value.to_json() for name, value in fields.items()}


def fields_from_json(data: Any) -> dict[str, WireValue]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise MalformedWireValue(f"fields must be an object: {type(data).__name__}")
    return {str(name): _from_json(item, path=str(name)) for name, item in data.items()}


def _child_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _describe(path: str) -> str:
    return f"field '{path}'" if path else "value"


def _encode(value: Any, *, path: str, active: set[int]) -> WireValue:
    if value is None:
        return WireValue(ValueKind.NULL)
    if isinstance(value, bool):
        return WireValue(ValueKind.BOOLEAN, value)
    if isinstance(value, int):
        number = int(value)
        if INT64_MIN <= number <= INT64_MAX:
            return WireValue(ValueKind.INTEGER, number)
        try:
            return WireValue(ValueKind.DOUBLE, float(number))
        except OverflowError as exc:
            raise UnsupportedValueKind(f"{_describe(path)}: integer too large for a double") from exc
    if isinstance(value, float):
        return WireValue(ValueKind.DOUBLE, float(value))
    if isinstance(value, str):
        return WireValue(ValueKind.STRING, str.__str__(value))
    if isinstance(value, (bytes, bytearray)):
        return WireValue(ValueKind.BYTES, bytes(value))
    if isinstance(value, datetime):
        return WireValue(ValueKind.TIMESTAMP, _timestamp_from_datetime(value, path=path))
    if isinstance(value, Timestamp):
        return WireValue(ValueKind.TIMESTAMP, value)
    if isinstance(value, GeoPoint):
        return WireValue(ValueKind.GEO_POINT, value)
    if isinstance(value, Reference):
        return WireValue(ValueKind.REFERENCE, value.name)
    if isinstance(value, Mapping):
        return WireValue(ValueKind.MAP, _encode_map(value, path=path, active=active))
    if isinstance(value, (list, tuple)):
        marker = id(value)
        if marker in active:
            raise UnsupportedValueKind(f"{_describe(path)}: cyclic structure cannot be encoded")
        active.add(marker)
        try:
            items = []
            for index, item in enumerate(value):
                if item is MISSING:
                    raise UnsupportedValueKind(f"{_describe(f'{path}[{index}]')}: arrays cannot hold absent values")
                items.append(_encode(item, path=f"{path}[{index}]", active=active))
        finally:
            active.discard(marker)
        return WireValue(ValueKind.ARRAY, tuple(items))
    raise UnsupportedValueKind(f"{_describe(path)}: unsupported value type {type(value).__name__}")


def _encode_map(value: Mapping[Any, Any], *, path: str, active: set[int]) -> dict[str, WireValue]:
    marker = id(value)
    if marker in active:
        raise UnsupportedValueKind(f"{_describe(path)}: cyclic structure cannot be encoded")
    active.add(marker)
    try:
        encoded: dict[str, WireValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise UnsupportedValueKind(f"{_describe(path)}: map keys must be strings, got {type(key).__name__}")
            if not key:
                raise UnsupportedValueKind(f"{_describe(path)}: field names must not be empty")
            if item is MISSING:
                continue
            encoded[str.__str__(key)] = _encode(item, path=_child_path(path, key), active=active)
    finally:
        active.discard(marker)
    return encoded


def _timestamp_from_datetime(value: datetime, *, path: str) -> Timestamp:
    try:
        return Timestamp.from_datetime(value)
    except (ValueError, OverflowError) as exc:
        raise UnsupportedValueKind(f"{_describe(path)}: {exc}") from exc


def _decode(wire: Any, *, path: str) -> Any:
    if not isinstance(wire, WireValue):
        raise MalformedWireValue(f"{_describe(path)}: expected a wire value, got {type(wire).__name__}")
    kind = wire.kind
    if kind is ValueKind.TIMESTAMP:
        timestamp: Timestamp = wire.value
        return timestamp.to_datetime() if timestamp.has_microsecond_precision else timestamp
    if kind is ValueKind.REFERENCE:
        return Reference(wire.value)
    if kind is ValueKind.ARRAY:
        return [_decode(item, path=f"{path}[{index}]") for index, item in enumerate(wire.value)]
    if kind is ValueKind.MAP:
        return {key: _decode(item, path=_child_path(path, key)) for key, item in wire.value.items()}
    return wire.value


def _double_to_json(value: float) -> Any:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _from_json(data: Any, *, path: str) -> WireValue:
    if not isinstance(data, Mapping):
        raise MalformedWireValue(f"{_describe(path)}: value must be an object, got {type(data).__name__}")
    unknown = [key for key in data if key not in _KINDS_BY_KEY]
    if unknown:
        raise MalformedWireValue(f"{_describe(path)}: unknown value variant(s): {', '.join(map(str, unknown))}")
    if len(data) != 1:
        raise MalformedWireValue(f"{_describe(path)}: expected exactly one value variant, got {len(data)}")

    key, payload = next(iter(data.items()))
    kind = _KINDS_BY_KEY[key]
    try:
        return _parse_payload(kind, payload, path=path)
    except MalformedWireValue:
        raise
    except (TypeError, ValueError) as exc:
        raise MalformedWireValue(f"{_describe(path)}: invalid {kind.value}: {exc}") from exc


def _parse_payload(kind: ValueKind, payload: Any, *, path: str) -> WireValue:
    if kind is ValueKind.NULL:
        if payload not in (None, "NULL_VALUE", 0) or isinstance(payload, bool):
            raise ValueError(f"unexpected payload {payload!r}")
        return WireValue(ValueKind.NULL)
    if kind is ValueKind.BOOLEAN:
        if not isinstance(payload, bool):
            raise ValueError("expected a boolean")
        return WireValue(ValueKind.BOOLEAN, payload)
    if kind is ValueKind.INTEGER:
        return WireValue(ValueKind.INTEGER, _parse_integer(payload))
    if kind is ValueKind.DOUBLE:
        return WireValue(ValueKind.DOUBLE, _parse_double(payload))
    if kind is ValueKind.TIMESTAMP:
        return WireValue(ValueKind.TIMESTAMP, _parse_timestamp(payload))
    if kind in (ValueKind.STRING, ValueKind.REFERENCE):
        if not isinstance(payload, str):
            raise ValueError("expected a string")
        return WireValue(kind, payload)
    if kind is ValueKind.BYTES:
        if not isinstance(payload, str):
            raise ValueError("expected a base64 string")
        try:
            return WireValue(ValueKind.BYTES, base64.b64decode(payload, validate=True))
        except binascii.Error as exc:
            raise ValueError(f"bad base64 payload: {exc}") from exc
    if kind is ValueKind.GEO_POINT:
        if not isinstance(payload, Mapping):
            raise ValueError("expected an object with latitude/longitude")
        latitude = _parse_double(payload.get("latitude", 0.0))
        longitude = _parse_double(payload.get("longitude", 0.0))
        return WireValue(ValueKind.GEO_POINT, GeoPoint(latitude=latitude, longitude=longitude))
    if kind is ValueKind.ARRAY:
        if not isinstance(payload, Mapping):
            raise ValueError("expected an object with values")
        values = payload.get("values") or []
        if not isinstance(values, list):
            raise ValueError("values must be a list")
        items = tuple(_from_json(item, path=f"{path}[{index}]") for index, item in enumerate(values))
        return WireValue(ValueKind.ARRAY, items)
    if not isinstance(payload, Mapping):
        raise ValueError("expected an object with fields")
    fields = payload.get("fields") or {}
    if not isinstance(fields, Mapping):
        raise ValueError("fields must be an object")
    children = {str(name): _from_json(item, path=_child_path(path, str(name))) for name, item in fields.items()}
    return WireValue(ValueKind.MAP, children)


def _parse_integer(payload: Any) -> int:
    if isinstance(payload, bool):
        raise ValueError("expected an integer")
    if isinstance(payload, int):
        number = payload
    elif isinstance(payload, str) and _INTEGER_PATTERN.match(payload.strip()):
        number = int(payload.strip())
    else:
        raise ValueError(f"expected a decimal integer, got {payload!r}")
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValueError(f"integer out of 64-bit range: {number}")
    return number


def _parse_double(payload: Any) -> float:
    if isinstance(payload, bool):
        raise ValueError("expected a number")
    if isinstance(payload, (int, float)):
        return float(payload)
    if isinstance(payload, str) and payload in _SPECIAL_DOUBLES:
        return _SPECIAL_DOUBLES[payload]
    raise ValueError(f"expected a number, got {payload!r}")


def _parse_timestamp(payload: Any) -> Timestamp:
    if isinstance(payload, str):
        return Timestamp.parse(payload)
    if isinstance(payload, Mapping):
        seconds = int(payload.get("seconds", 0))
        nanos = int(payload.get("nanos", 0))
        return Timestamp(seconds=seconds, nanos=nanos)
    raise ValueError(f"expected an RFC 3339 string, got {payload!r}")
