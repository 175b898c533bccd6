"""JSON wire format between the client and the remote executor."""

import json

from nettools.errors import MalformedMessageError
from nettools.models import Command, Completion, ErrorEvent, Fragment, InboundMessage, Kind


def encode_command(command: Command) -> str:
    """Serialize a command as one outbound JSON object."""
    return json.dumps(
        {
            "tool": command.kind.value,
            "target": command.target,
            "parameters": dict(command.parameters),
        }
    )


def _string_parameters(raw) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise MalformedMessageError("parameters is not an object")
    return {str(key): str(value) for key, value in raw.items()}


def decode_inbound(frame: str) -> InboundMessage | None:
    """Decode one inbound frame.

    Presence of ``error`` marks failure, presence of ``endTime`` marks
    completion, presence of ``output`` marks a fragment. A frame with none
    of these is ignored (returns None).

    Raises:
        MalformedMessageError: frame is not a JSON object or names no known tool
    """
    try:
        data = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"invalid JSON: {e}", frame) from e

    if not isinstance(data, dict):
        raise MalformedMessageError("frame is not a JSON object", frame)

    try:
        kind = Kind(data.get("tool"))
    except ValueError:
        raise MalformedMessageError(f"unknown tool: {data.get('tool')!r}", frame) from None

    target = data.get("target") or ""
    if not isinstance(target, str):
        raise MalformedMessageError("target is not a string", frame)

    parameters = _string_parameters(data.get("parameters"))

    error = data.get("error")
    if error:
        message = str(error)
        detail = data.get("message")
        if detail:
            message = f"{message}: {detail}"
        return ErrorEvent(kind=kind, message=message)

    end_time = data.get("endTime")
    if end_time is not None:
        if isinstance(end_time, bool) or not isinstance(end_time, (int, float)):
            raise MalformedMessageError("endTime is not a number", frame)
        return Completion(kind=kind, target=target, parameters=parameters, ended_at=float(end_time))

    output = data.get("output")
    if output is not None:
        if not isinstance(output, str):
            raise MalformedMessageError("output is not a string", frame)
        return Fragment(kind=kind, target=target, parameters=parameters, text=output)

    return None
