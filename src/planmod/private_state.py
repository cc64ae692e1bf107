"""Opaque private state threaded through modifier calls.

Private state is a key to bytes mapping persisted alongside the resource
but never shown to the operator. Keys are split into two namespaces:

- framework keys start with a period (``.``) and are reserved
- provider keys are everything else; modifiers only ever see these

Every value must be valid UTF-8 JSON. On the wire the whole mapping is one
JSON object whose values are base64 encoded, sorted by key.

This is a naming convention, not a security boundary.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping

from .exceptions import InvalidValueError, PrivateStateDecodeError, RestrictedKeyError

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "."

# Blobs written by the legacy plugin SDK carry this top-level key
_LEGACY_SDK_KEY = "schema_version"


def is_reserved_key(key: str) -> bool:
    return key.startswith(RESERVED_PREFIX)


def validate_value(key: str, value: bytes) -> None:
    """
    Validate a private state value.

    Raises:
        InvalidValueError: If the value is not UTF-8 or not JSON
    """
    try:
        text = value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidValueError(key, "UTF-8") from e
    try:
        json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidValueError(key, "JSON") from e


class ProviderData:
    """Provider namespace of private state, the part modifiers can touch."""

    def __init__(self, data: Mapping[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = {}
        for key, value in (data or {}).items():
            if is_reserved_key(key):
                raise RestrictedKeyError(key)
            if value:
                validate_value(key, value)
                self._data[key] = bytes(value)

    def get_key(self, key: str) -> bytes | None:
        """
        Read a provider key.

        Raises:
            RestrictedKeyError: If the key is in the reserved namespace
        """
        if is_reserved_key(key):
            raise RestrictedKeyError(key)
        return self._data.get(key)

    def set_key(self, key: str, value: bytes | None) -> None:
        """
        Write a provider key; an empty value removes it.

        Raises:
            RestrictedKeyError: If the key is in the reserved namespace
            InvalidValueError: If the value is not valid UTF-8 JSON
        """
        if is_reserved_key(key):
            raise RestrictedKeyError(key)
        if not value:
            self._data.pop(key, None)
            return
        validate_value(key, value)
        self._data[key] = bytes(value)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def as_dict(self) -> dict[str, bytes]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderData):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ProviderData(keys={self.keys()!r})"


class PrivateState:
    """
    Complete private state: framework keys plus provider data.

    Attributes:
        framework: Reserved-namespace entries (keys start with '.')
        provider: Provider namespace exposed to modifiers
    """

    def __init__(
        self,
        framework: Mapping[str, bytes] | None = None,
        provider: ProviderData | None = None,
    ) -> None:
        self.framework: dict[str, bytes] = {}
        for key, value in (framework or {}).items():
            if not is_reserved_key(key):
                raise PrivateStateDecodeError(
                    f'Framework private state key "{key}" must start with "{RESERVED_PREFIX}"'
                )
            if value:
                self.framework[key] = bytes(value)
        self.provider = provider if provider is not None else ProviderData()

    def to_bytes(self) -> bytes | None:
        """
        Encode for storage.

        Returns:
            JSON bytes, or None when nothing is stored

        Raises:
            InvalidValueError: If a stored value is not valid UTF-8 JSON
        """
        merged: dict[str, bytes] = {}
        for key, value in self.framework.items():
            validate_value(key, value)
            merged[key] = value
        merged.update(self.provider.as_dict())

        if not merged:
            return None

        encoded = {key: base64.b64encode(merged[key]).decode("ascii") for key in sorted(merged)}
        return json.dumps(encoded, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes | None) -> PrivateState:
        """
        Decode a stored blob.

        An empty blob, or one written by the legacy SDK, yields an empty state.

        Raises:
            PrivateStateDecodeError: If the blob is not a JSON object of base64 strings
            InvalidValueError: If a decoded value is not valid UTF-8 JSON
        """
        if not data:
            return cls()

        try:
            raw = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PrivateStateDecodeError(f"Error decoding private state: {e}") from e

        if not isinstance(raw, dict):
            raise PrivateStateDecodeError("Error decoding private state: expected a JSON object")

        if _LEGACY_SDK_KEY in raw:
            logger.debug("Ignoring private state written by the legacy SDK")
            return cls()

        framework: dict[str, bytes] = {}
        provider: dict[str, bytes] = {}
        for key, encoded in raw.items():
            if not isinstance(encoded, str):
                raise PrivateStateDecodeError(
                    f'Error decoding private state: value for key "{key}" is not a string'
                )
            try:
                value = base64.b64decode(encoded, validate=True)
            except binascii.Error as e:
                raise PrivateStateDecodeError(
                    f'Error decoding private state: value for key "{key}" is not base64'
                ) from e
            validate_value(key, value)
            if is_reserved_key(key):
                framework[key] = value
            else:
                provider[key] = value

        return cls(framework=framework, provider=ProviderData(provider))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrivateState):
            return NotImplemented
        return self.framework == other.framework and self.provider == other.provider

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PrivateState(framework={sorted(self.framework)!r}, provider={self.provider!r})"
