"""JSON-RPC 2.0 protocol for daemon IPC.

One request/response exchange per connection. The client writes the request
and half-closes; the daemon writes the response and half-closes.

Request format:
    {
        "jsonrpc": "2.0",
        "id": str,                  # Opaque, echoed back
        "method": "chitin.input",
        "params": {
            "prompt": str,          # Natural-language request
            "pwd": str,             # Client working directory
            "session_id": str,      # Conversation key
        }
    }

Success response:
    {"jsonrpc": "2.0", "id": ..., "result": {"type": "refill", "command": str}}

Error response:
    {"jsonrpc": "2.0", "id": ... | null, "error": {"code": int, "message": str}}
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

JSONRPC_VERSION = "2.0"
METHOD_INPUT = "chitin.input"
RESPONSE_TYPE_REFILL = "refill"
DEFAULT_SESSION_ID = "default"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class ProtocolError(ValueError):
    """Raised when bytes on the wire do not form a valid envelope."""


@dataclass(frozen=True)
class InputParams:
    prompt: str
    pwd: str = ""
    session_id: str = DEFAULT_SESSION_ID


@dataclass(frozen=True)
class Request:
    jsonrpc: str
    id: Any
    method: str
    params: InputParams


@dataclass(frozen=True)
class ResponseAction:
    command: str
    type: str = RESPONSE_TYPE_REFILL


@dataclass(frozen=True)
class RpcError:
    code: int
    message: str
    data: Any = None


@dataclass(frozen=True)
class Response:
    """
    Response envelope.

    Exactly one of ``result`` and ``error`` is set; use the constructors
    below rather than building this directly.
    """
    id: Any
    result: Optional[ResponseAction] = None
    error: Optional[RpcError] = None
    jsonrpc: str = JSONRPC_VERSION

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            error: Dict[str, Any] = {
                "code": self.error.code,
                "message": self.error.message,
            }
            if self.error.data is not None:
                error["data"] = self.error.data
            payload["error"] = error
        else:
            payload["result"] = {
                "type": self.result.type,
                "command": self.result.command,
            }
        return payload


def success(request_id: Any, command: str) -> Response:
    """Build a refill response carrying the generated command."""
    return Response(id=request_id, result=ResponseAction(command=command))


def error_response(request_id: Any, code: int, message: str, data: Any = None) -> Response:
    return Response(id=request_id, error=RpcError(code=code, message=message, data=data))


def invalid_request(request_id: Any, message: str) -> Response:
    return error_response(request_id, INVALID_REQUEST, message)


def method_not_found(request_id: Any, message: str) -> Response:
    return error_response(request_id, METHOD_NOT_FOUND, message)


def invalid_params(request_id: Any, message: str) -> Response:
    return error_response(request_id, INVALID_PARAMS, message)


def internal_error(request_id: Any, message: str) -> Response:
    return error_response(request_id, INTERNAL_ERROR, message)


def _require_str(obj: Dict[str, Any], key: str, default: Optional[str] = None) -> str:
    if key not in obj:
        if default is None:
            raise ProtocolError(f"missing field `{key}`")
        return default
    value = obj[key]
    if not isinstance(value, str):
        raise ProtocolError(f"field `{key}` must be a string")
    return value


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ProtocolError(f"invalid number `{name}`")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ProtocolError(f"number out of range `{text}`")
    return value


def deserialize_request(data: bytes) -> Request:
    """
    Deserialize a request envelope from bytes.

    Only the envelope shape is checked here. Version, method and prompt
    validation belong to the connection handler so that their errors can
    echo the request id.

    Raises:
        ProtocolError: If the bytes are not UTF-8 JSON of the expected shape
    """
    try:
        raw = json.loads(
            data.decode("utf-8"),
            parse_constant=_reject_constant,
            parse_float=_parse_finite_float,
        )
    except UnicodeDecodeError as e:
        raise ProtocolError(f"request is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ProtocolError(str(e)) from e
    except RecursionError as e:
        raise ProtocolError("recursion limit exceeded") from e

    if not isinstance(raw, dict):
        raise ProtocolError("request must be a JSON object")

    jsonrpc = _require_str(raw, "jsonrpc")
    method = _require_str(raw, "method")

    params = raw.get("params")
    if not isinstance(params, dict):
        raise ProtocolError("missing field `params`" if params is None else "field `params` must be an object")

    return Request(
        jsonrpc=jsonrpc,
        id=raw.get("id"),
        method=method,
        params=InputParams(
            prompt=_require_str(params, "prompt", ""),
            pwd=_require_str(params, "pwd", ""),
            session_id=_require_str(params, "session_id", DEFAULT_SESSION_ID),
        ),
    )


def serialize_response(response: Response) -> bytes:
    """Serialize a response envelope to compact UTF-8 JSON."""
    return json.dumps(response.to_dict(), separators=(",", ":"), allow_nan=False).encode("utf-8")


def serialize_request(
    prompt: str,
    pwd: str = "",
    session_id: str = DEFAULT_SESSION_ID,
    request_id: Any = None,
    method: str = METHOD_INPUT,
) -> bytes:
    """Serialize a client request to bytes for socket transmission."""
    request = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": {
            "prompt": prompt,
            "pwd": pwd,
            "session_id": session_id,
        },
    }
    return json.dumps(request, allow_nan=False).encode("utf-8")


def deserialize_response(data: bytes) -> Dict[str, Any]:
    """
    Deserialize a response from bytes (client side).

    Raises:
        json.JSONDecodeError: If data is not valid JSON
    """
    return json.loads(data.decode("utf-8"))
