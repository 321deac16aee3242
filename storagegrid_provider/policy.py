"""S3 group policy documents.

StorageGRID stores group S3 policies as IAM-style JSON. Upstream is not
consistent about whether ``Action``, ``Resource`` and condition values are
a bare string or an array, so decoding accepts both and encoding always
emits arrays.

Policies are compared semantically with ``policies_are_equivalent`` so that
reordering done by the API does not show up as configuration drift.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from storagegrid_provider.errors import DecodeError


class StringOrSlice(list):
    """A list of strings decoded from either a string or an array of strings."""

    @classmethod
    def decode(cls, value: Any) -> "StringOrSlice":
        """Decode a wire value.

        Args:
            value: A JSON string or a JSON array of strings.

        Returns:
            A single-element list for a string, the array items otherwise.

        Raises:
            DecodeError: If the value is neither form.
        """
        if isinstance(value, str):
            return cls([value])
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return cls(value)
        raise DecodeError("failed to unmarshal string or slice of strings")

    def encode(self) -> list[str]:
        return list(self)


ConditionBlock = dict[str, dict[str, StringOrSlice]]


def _decode_condition(value: Any) -> ConditionBlock:
    if not isinstance(value, dict):
        raise DecodeError("Condition must be an object")
    condition: ConditionBlock = {}
    for operator, entries in value.items():
        if not isinstance(entries, dict):
            raise DecodeError(f"Condition operator {operator} must map keys to values")
        condition[operator] = {
            key: StringOrSlice.decode(values) for key, values in entries.items()
        }
    return condition


@dataclass
class Statement:
    """A single statement of an S3 policy."""

    effect: str
    action: StringOrSlice = field(default_factory=StringOrSlice)
    resource: StringOrSlice = field(default_factory=StringOrSlice)
    sid: Optional[str] = None
    condition: Optional[ConditionBlock] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Statement":
        if not isinstance(data, dict):
            raise DecodeError("Statement must be an object")
        condition = data.get("Condition")
        return cls(
            sid=data.get("Sid") or None,
            effect=data.get("Effect", ""),
            action=StringOrSlice.decode(data.get("Action", [])),
            resource=StringOrSlice.decode(data.get("Resource", [])),
            condition=_decode_condition(condition) if condition else None,
        )

    def to_dict(self) -> dict:
        body: dict[str, Any] = {}
        if self.sid:
            body["Sid"] = self.sid
        body["Effect"] = self.effect
        body["Action"] = self.action.encode()
        body["Resource"] = self.resource.encode()
        if self.condition:
            body["Condition"] = {
                operator: {key: StringOrSlice(values).encode() for key, values in entries.items()}
                for operator, entries in self.condition.items()
            }
        return body


@dataclass
class S3Policy:
    """An S3 policy document attached to a group."""

    statements: list[Statement] = field(default_factory=list)
    id: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "S3Policy":
        if not isinstance(data, dict):
            raise DecodeError("S3 policy must be a JSON object")
        statements = data.get("Statement") or []
        if isinstance(statements, dict):
            statements = [statements]
        return cls(
            id=data.get("Id") or None,
            version=data.get("Version") or None,
            statements=[Statement.from_dict(s) for s in statements],
        )

    @classmethod
    def from_json(cls, text: str) -> "S3Policy":
        """Parse a policy document from a JSON string.

        Raises:
            DecodeError: If the text is not valid JSON or not a policy.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"invalid S3 policy JSON: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {}
        if self.id:
            body["Id"] = self.id
        if self.version:
            body["Version"] = self.version
        body["Statement"] = [s.to_dict() for s in self.statements]
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _canonical(value: Any) -> Any:
    """Reduce a JSON value to a hashable, order-independent form.

    Arrays become sets, and a one-element array collapses to its element
    so that ``"x"`` and ``["x"]`` compare equal.
    """
    if isinstance(value, dict):
        return tuple(sorted((key, _canonical(item)) for key, item in value.items()))
    if isinstance(value, list):
        members = frozenset(_canonical(item) for item in value)
        if len(members) == 1:
            return next(iter(members))
        return members
    return value


def _load(policy: Union[str, dict, S3Policy]) -> dict:
    if isinstance(policy, S3Policy):
        return policy.to_dict()
    if isinstance(policy, dict):
        return copy.deepcopy(policy)
    try:
        data = json.loads(policy)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid S3 policy JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError("S3 policy must be a JSON object")
    return data


def policies_are_equivalent(
    first: Union[str, dict, S3Policy],
    second: Union[str, dict, S3Policy],
) -> bool:
    """Compare two policies semantically.

    Statement order, action/resource order and condition value order are
    ignored. ``Version`` and ``Id`` are only compared when both documents
    carry them, since the API may add a default version.

    Raises:
        DecodeError: If either document is not a JSON object.
    """
    left = _load(first)
    right = _load(second)
    for key in ("Version", "Id"):
        if not left.get(key) or not right.get(key):
            left.pop(key, None)
            right.pop(key, None)
    for doc in (left, right):
        if isinstance(doc.get("Statement"), dict):
            doc["Statement"] = [doc["Statement"]]
        if doc.get("Statement") is None:
            doc["Statement"] = []
        for statement in doc["Statement"]:
            if isinstance(statement, dict) and not statement.get("Sid"):
                statement.pop("Sid", None)
    left_statements = frozenset(_canonical(s) for s in left.pop("Statement"))
    right_statements = frozenset(_canonical(s) for s in right.pop("Statement"))
    return left_statements == right_statements and _canonical(left) == _canonical(right)
