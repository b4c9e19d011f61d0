"""
Request codec for remote GraphQL operations.

Encodes domain intents into GraphQL documents built from fixed per-operation
templates and decodes responses into RemoteResponse objects. Argument values
are rendered by declared type, so caller-supplied strings can never change
the structure of the document.
"""

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chainsync.utils.exceptions import (
    DecodeError,
    EncodeError,
    RemoteApplicationError,
)


class RequestKind(str, Enum):
    """Kind of remote operation."""

    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


class ArgType(Enum):
    """How an argument value is rendered into the document."""

    ID = "id"  # Non-empty identifier, quoted
    STRING = "string"  # Free text, quoted
    NUMBER = "number"  # Unquoted numeric literal
    JSON = "json"  # Serialized to JSON, then quoted as a single string


@dataclass(frozen=True)
class OperationTemplate:
    """Fixed shape of one remote operation."""

    name: str
    kind: RequestKind
    arguments: tuple[tuple[str, ArgType], ...] = ()
    selection: tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoteRequest:
    """A single encoded request. Built fresh for every call."""

    kind: RequestKind
    body: str
    operation: str


@dataclass(frozen=True)
class RemoteResponse:
    """Decoded GraphQL response."""

    data: dict[str, Any] | None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """A response succeeds only when it carries no errors."""
        return not self.errors

    def field_value(self, name: str) -> Any:
        """
        Get a named data field.

        Raises:
            RemoteApplicationError: If the response carries any errors,
                even when data is also present
        """
        if self.errors:
            raise RemoteApplicationError(self.errors)
        if self.data is None:
            return None
        return self.data.get(name)


_PLAYER_STATE_FIELDS = (
    "health", "maxHealth", "strength", "wisdomness",
    "benchpress", "curl", "experience", "level",
)
_PLAYER_STATE_ARGS = tuple((name, ArgType.NUMBER) for name in _PLAYER_STATE_FIELDS)
_BATTLE_RECORD_FIELDS = (
    "battleId", "playerId", "opponent", "result",
    "damageDealt", "damageTaken", "experienceGained", "timestamp",
)


def _template(
    name: str,
    kind: RequestKind,
    arguments: tuple[tuple[str, ArgType], ...] = (),
    selection: tuple[str, ...] = (),
) -> tuple[str, OperationTemplate]:
    return name, OperationTemplate(name, kind, arguments, selection)


OPERATIONS: dict[str, OperationTemplate] = dict([
    # Game application
    _template(
        "savePlayerState", RequestKind.MUTATION,
        (("playerId", ArgType.ID),) + _PLAYER_STATE_ARGS,
    ),
    _template(
        "playerState", RequestKind.QUERY,
        (("playerId", ArgType.ID),), _PLAYER_STATE_FIELDS,
    ),
    _template(
        "saveInventory", RequestKind.MUTATION,
        (("playerId", ArgType.ID), ("inventory", ArgType.JSON)),
    ),
    _template("inventory", RequestKind.QUERY, (("playerId", ArgType.ID),)),
    _template(
        "saveQuests", RequestKind.MUTATION,
        (("playerId", ArgType.ID), ("quests", ArgType.JSON)),
    ),
    _template("quests", RequestKind.QUERY, (("playerId", ArgType.ID),)),
    _template(
        "transferPlayer", RequestKind.MUTATION,
        (("playerId", ArgType.ID), ("destinationChain", ArgType.ID))
        + _PLAYER_STATE_ARGS
        + (
            ("inventory", ArgType.JSON),
            ("quests", ArgType.JSON),
            ("authToken", ArgType.STRING),
        ),
    ),
    _template(
        "recordBattle", RequestKind.MUTATION,
        (
            ("battleId", ArgType.ID),
            ("playerId", ArgType.ID),
            ("opponent", ArgType.STRING),
            ("playerResult", ArgType.NUMBER),
            ("damageDealt", ArgType.NUMBER),
            ("damageTaken", ArgType.NUMBER),
            ("experienceGained", ArgType.NUMBER),
        ),
    ),
    _template(
        "battleRecord", RequestKind.QUERY,
        (("battleId", ArgType.ID),), _BATTLE_RECORD_FIELDS,
    ),
    _template(
        "playerBattles", RequestKind.QUERY,
        (("playerId", ArgType.ID),), _BATTLE_RECORD_FIELDS,
    ),
    _template(
        "joinGuild", RequestKind.MUTATION,
        (("playerId", ArgType.ID), ("guildId", ArgType.ID), ("chainId", ArgType.ID)),
    ),
    _template(
        "guild", RequestKind.QUERY,
        (("guildId", ArgType.ID),), ("id", "name", "members", "resources", "level"),
    ),
    _template("playerGuild", RequestKind.QUERY, (("playerId", ArgType.ID),)),
    _template("worldRegion", RequestKind.QUERY),
    _template(
        "submitAchievement", RequestKind.MUTATION,
        (
            ("playerId", ArgType.ID),
            ("achievementId", ArgType.ID),
            ("achievementName", ArgType.STRING),
            ("achievementDescription", ArgType.STRING),
            ("hubAppId", ArgType.ID),
            ("timestamp", ArgType.NUMBER),
            ("metadata", ArgType.STRING),
        ),
    ),
    # Hub application
    _template(
        "playerAchievements", RequestKind.QUERY,
        (("playerId", ArgType.ID),),
        ("achievementId", "chainId", "timestamp", "metadata"),
    ),
    _template(
        "registerWorldChain", RequestKind.MUTATION,
        (("chainIdStr", ArgType.ID), ("worldRegion", ArgType.STRING)),
    ),
    # Faucet
    _template("genesisConfig", RequestKind.QUERY),
    _template("claim", RequestKind.MUTATION, (("owner", ArgType.ID),)),
    # Node service
    _template("chains", RequestKind.QUERY, selection=("default",)),
    _template("__typename", RequestKind.QUERY),
    _template("notifications", RequestKind.SUBSCRIPTION, (("chainId", ArgType.ID),)),
])


def _quote(value: str) -> str:
    # JSON string escaping is a valid GraphQL string literal
    return json.dumps(value, ensure_ascii=False)


def _render_number(name: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EncodeError(f"Argument '{name}' must be a number, got {type(value).__name__}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodeError(f"Argument '{name}' must be finite, got {value}")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(int(value))


def _render_id(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise EncodeError(f"Argument '{name}' must be a non-empty string identifier")
    if value != value.strip() or any(ch < " " or ch == "\x7f" for ch in value):
        raise EncodeError(f"Argument '{name}' contains whitespace or control characters")
    return _quote(value)


def _render_string(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise EncodeError(f"Argument '{name}' must be a string, got {type(value).__name__}")
    return _quote(value)


def _render_json(name: str, value: Any) -> str:
    try:
        serialized = json.dumps(value, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Argument '{name}' is not JSON-serializable: {e}") from e
    return _quote(serialized)


_RENDERERS = {
    ArgType.ID: _render_id,
    ArgType.STRING: _render_string,
    ArgType.NUMBER: _render_number,
    ArgType.JSON: _render_json,
}


def _error_message(error: Any) -> str:
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message is not None else json.dumps(error, default=str)
    return str(error)


class RequestCodec:
    """
    Encodes operations into GraphQL documents and decodes responses.

    Decoding distinguishes three outcomes: a response carrying errors
    (RemoteApplicationError when a field is read), a response with data,
    and an unparsable payload (DecodeError). Transport failures never reach
    the codec.
    """

    def __init__(self, operations: Mapping[str, OperationTemplate] | None = None) -> None:
        self.operations = dict(operations or OPERATIONS)

    def template(self, operation_name: str) -> OperationTemplate:
        """Look up the template for an operation."""
        try:
            return self.operations[operation_name]
        except KeyError:
            raise EncodeError(f"Unknown operation '{operation_name}'") from None

    def encode(
        self,
        operation_name: str,
        kind: RequestKind,
        arguments: Mapping[str, Any] | None = None,
    ) -> RemoteRequest:
        """
        Build a request for an operation.

        Args:
            operation_name: Name of a registered operation
            kind: Expected kind, must match the template
            arguments: Argument values keyed by wire name

        Returns:
            Encoded request

        Raises:
            EncodeError: On unknown operation, kind mismatch, missing,
                unexpected or ill-typed arguments
        """
        template = self.template(operation_name)
        if template.kind != kind:
            raise EncodeError(
                f"Operation '{operation_name}' is a {template.kind.value}, not a {kind.value}"
            )

        arguments = dict(arguments or {})
        expected = {name for name, _ in template.arguments}
        unexpected = set(arguments) - expected
        if unexpected:
            raise EncodeError(
                f"Unexpected arguments for '{operation_name}': {sorted(unexpected)}"
            )

        rendered = []
        for name, arg_type in template.arguments:
            if name not in arguments:
                raise EncodeError(f"Missing argument '{name}' for '{operation_name}'")
            rendered.append(f"{name}: {_RENDERERS[arg_type](name, arguments[name])}")

        call = template.name
        if rendered:
            call += f"({', '.join(rendered)})"
        if template.selection:
            call += " { " + " ".join(template.selection) + " }"

        return RemoteRequest(
            kind=kind,
            body=f"{kind.value} {{ {call} }}",
            operation=operation_name,
        )

    def decode(self, raw: str | bytes | Mapping[str, Any]) -> RemoteResponse:
        """
        Parse a raw GraphQL response.

        Args:
            raw: Response text, bytes or an already-parsed mapping

        Returns:
            RemoteResponse with data and error messages

        Raises:
            DecodeError: If the payload is not a GraphQL response object
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Response is not valid UTF-8: {e}") from e

        if isinstance(raw, str):
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as e:
                raise DecodeError(f"Response is not valid JSON: {e}") from e
        else:
            payload = raw

        if not isinstance(payload, Mapping):
            raise DecodeError(f"Response must be an object, got {type(payload).__name__}")
        if "data" not in payload and "errors" not in payload:
            raise DecodeError("Response has neither 'data' nor 'errors'")

        data = payload.get("data")
        errors = payload.get("errors") or []
        if data is not None and not isinstance(data, Mapping):
            raise DecodeError(f"Response 'data' must be an object, got {type(data).__name__}")
        if not isinstance(errors, list):
            raise DecodeError(f"Response 'errors' must be a list, got {type(errors).__name__}")

        return RemoteResponse(
            data=dict(data) if data is not None else None,
            errors=[_error_message(error) for error in errors],
        )

    @staticmethod
    def decode_embedded_json(value: Any) -> Any:
        """
        Parse a composite field the remote side returns as a JSON string.

        Args:
            value: Field value (JSON string, already-decoded value or None)

        Returns:
            Decoded value, or None when the field is null

        Raises:
            DecodeError: If the string is not valid JSON
        """
        if value is None or not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Embedded JSON field is malformed: {e}") from e
