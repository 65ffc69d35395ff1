"""Reading and overwriting fields of decoded JSON documents by dotted path."""

import re

_SEGMENT = re.compile(r"([^\[\]]*)((?:\[-?\d+\])*)")
_INDEX = re.compile(r"-?\d+")


class JsonFieldError(ValueError):
    """A field path is malformed or does not resolve in a document."""


def _lookup(data, segments, path):
    current = data
    for segment in segments:
        match = _SEGMENT.fullmatch(segment)
        if match is None or (not match.group(1) and not match.group(2)):
            raise JsonFieldError(f"invalid path segment {segment!r} [{path}]")
        key, indexes = match.groups()
        if key:
            if not isinstance(current, dict):
                raise JsonFieldError(f"object is not a map [{path}]")
            if key not in current:
                raise JsonFieldError(f"key error: {key} not found in object [{path}]")
            current = current[key]
        for index in _INDEX.findall(indexes):
            if not isinstance(current, list):
                raise JsonFieldError(f"object is not a list [{path}]")
            try:
                current = current[int(index)]
            except IndexError:
                raise JsonFieldError(f"index out of range: {index} [{path}]") from None
    return current


def _split_field(field_name):
    if field_name.endswith("."):
        raise JsonFieldError("field name cannot end with a dot")
    parent, dot, sub_field = field_name.rpartition(".")
    if not dot:
        return [], "$", field_name
    return parent.split("."), "$." + parent, sub_field


def _parent_map(json_data, field_name):
    segments, path, sub_field = _split_field(field_name)
    target = _lookup(json_data, segments, path)
    if not isinstance(target, dict):
        raise JsonFieldError(f"jsonData is not a map [{path}.{sub_field}]")
    return target, sub_field


def set_json_field_to_nil(json_data, field_name):
    """Set a field to ``None`` in place and return its previous value."""
    target, sub_field = _parent_map(json_data, field_name)
    previous = target.get(sub_field)
    target[sub_field] = None
    return previous


def set_json_field_value(json_data, field_name, value):
    """Set a field to ``value`` in place."""
    target, sub_field = _parent_map(json_data, field_name)
    target[sub_field] = value


def get_field_value(json_data, field_name):
    """Return the value found at a dotted field path."""
    if field_name.endswith("."):
        raise JsonFieldError("field name cannot end with a dot")
    path = "$." + field_name if field_name else "$"
    segments = field_name.split(".") if field_name else []
    try:
        return _lookup(json_data, segments, path)
    except JsonFieldError:
        raise JsonFieldError(f"field value not found in jsonData [{path}]") from None