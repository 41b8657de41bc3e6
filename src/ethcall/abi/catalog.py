"""Lookups of method and event types in a contract's interface document."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from ethcall.base.errors import EventNotFound, InvalidAbi, MalformedAbi, MethodNotFound


def parse_abi_json(abi_json: str | bytes | Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Parse an interface document.

    Arguments
    ---------
    abi_json: str | bytes | Sequence[dict[str, Any]]
        The JSON text of the document, or an already decoded document.

    Returns
    -------
    list[dict[str, Any]]
        The entries of the document.
    """
    if isinstance(abi_json, (str, bytes)):
        try:
            abi_json = json.loads(abi_json)
        except ValueError as exc:
            raise InvalidAbi(f"Failed to parse contract's json abi: {exc}") from exc
    _check_abi_shape(abi_json)
    return list(abi_json)  # type: ignore


def _check_abi_shape(abi: Any) -> None:
    if not isinstance(abi, (list, tuple)):
        raise MalformedAbi(f"Invalid JSON abi, array expected, got {type(abi).__name__}")


def _find_entry(name: str, abi: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    """Find the first entry matching the name."""
    _check_abi_shape(abi)
    for entry in abi:  # loop over each entry in the abi list
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry
    return None


def _canonical_type(param: dict[str, Any]) -> str | None:
    """Get the type of a parameter, collapsing tuples into `(type1,type2)` form."""
    param_type = param.get("type")
    if not isinstance(param_type, str):
        return None
    if param_type.startswith("tuple"):
        components = [_canonical_type(component) for component in param.get("components", [])]
        if any(component is None for component in components):
            return None
        return f"({','.join(components)})" + param_type[len("tuple") :]  # type: ignore
    return param_type


def _entry_types(entry: dict[str, Any], field: str) -> list[str]:
    params = entry.get(field)
    if not isinstance(params, (list, tuple)):
        return []
    types = []
    for param in params:
        param_type = _canonical_type(param) if isinstance(param, dict) else None
        if param_type is not None:
            types.append(param_type)
        else:
            logging.warning("Skipping %s entry without a type in %s", field, entry.get("name"))
    return types


def get_parameter_types(method_name: str, abi: Sequence[dict[str, Any]]) -> list[str]:
    """Get the declared input types of a method, in declaration order.

    Arguments
    ---------
    method_name: str
        The name of the method.
    abi: Sequence[dict[str, Any]]
        The interface document.

    Returns
    -------
    list[str]
        The `type` of each declared input.
    """
    entry = _find_entry(method_name, abi)
    if entry is None:
        raise MethodNotFound(f"Method {method_name!r} not found in contract")
    return _entry_types(entry, "inputs")


def get_return_types(method_name: str, abi: Sequence[dict[str, Any]]) -> list[str]:
    """Get the declared output types of a method, empty when the method declares none."""
    entry = _find_entry(method_name, abi)
    if entry is None:
        raise MethodNotFound(f"Method {method_name!r} not found in contract")
    return _entry_types(entry, "outputs")


def get_event_signature(event_name: str, abi: Sequence[dict[str, Any]]) -> str:
    """Build the canonical signature `name(type1,type2,...)` of an event.

    Arguments
    ---------
    event_name: str
        The name of the event.
    abi: Sequence[dict[str, Any]]
        The interface document.

    Returns
    -------
    str
        The canonical signature.
    """
    entry = _find_entry(event_name, abi)
    if entry is None:
        raise EventNotFound(f"Event {event_name!r} not found in contract")
    inputs = entry.get("inputs")
    types = []
    if isinstance(inputs, (list, tuple)):
        for param in inputs:
            param_type = _canonical_type(param) if isinstance(param, dict) else None
            if param_type is None:
                raise MalformedAbi(f"Failed to get the type of an input of event {event_name!r}")
            types.append(param_type)
    return f"{event_name}({','.join(types)})"
