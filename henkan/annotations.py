#
# Copyright (c) 2021 Incisive Technology Ltd
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
Keeps field values that a version can't represent in metadata annotations

Generated conversion code calls set_field_data() for a field that the
destination version doesn't have and pop_field_data() for a field that only
the destination has. Annotation keys are 'conversions.henkan.io/<field id>'
where the field id is '<section>.<FieldName>'; values are '<tag>=<payload>'.
Scalars use the tags 'string', 'bool', 'int' and 'float'; anything else
(structures, lists, maps, timestamps) is JSON under the 'json' tag.
"""
import dataclasses
from datetime import datetime
import json
from typing import Any, Tuple, Union, get_args, get_origin, get_type_hints

from henkan.errors import AnnotationError


annotation_prefix = "conversions.henkan.io/"


class _Missing(object):
    def __repr__(self):
        return "MISSING"


# returned by pop_field_data() when there's no annotation for a field
MISSING = _Missing()


def annotation_key(field_id: str) -> str:
    return f"{annotation_prefix}{field_id}"


def to_jsonable(value: Any) -> Any:
    """
    Turns a value built from generated classes into plain JSON-able data

    Dataclass instances become dicts (attributes set to None are left out),
    datetimes become ISO 8601 strings; lists and dicts are converted
    element by element.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for f in dataclasses.fields(value):
            v = getattr(value, f.name)
            if v is not None:
                result[f.name] = to_jsonable(v)
        return result
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def from_jsonable(value: Any, hint: Any) -> Any:
    """
    The inverse of to_jsonable(), guided by a type annotation

    :param value: data produced by to_jsonable()
    :param hint: the type the data should become, such as Optional[List[Tag]]
    :return: the rebuilt value
    :raises AnnotationError: if value doesn't fit hint
    """
    if value is None:
        return None
    origin = get_origin(hint)
    if origin is Union:
        args = [a for a in get_args(hint) if a is not type(None)]
        return from_jsonable(value, args[0]) if len(args) == 1 else value
    if origin is list:
        if not isinstance(value, list):
            raise AnnotationError(f"Expected a list, got {value!r}")
        (elem_hint,) = get_args(hint) or (Any,)
        return [from_jsonable(v, elem_hint) for v in value]
    if origin is dict:
        if not isinstance(value, dict):
            raise AnnotationError(f"Expected a mapping, got {value!r}")
        _, value_hint = get_args(hint) or (Any, Any)
        return {k: from_jsonable(v, value_hint) for k, v in value.items()}
    if isinstance(hint, type) and dataclasses.is_dataclass(hint):
        if not isinstance(value, dict):
            raise AnnotationError(f"Expected a mapping for {hint.__name__}, "
                                  f"got {value!r}")
        hints = get_type_hints(hint)
        kwargs = {f.name: from_jsonable(value[f.name], hints[f.name])
                  for f in dataclasses.fields(hint) if f.name in value}
        return hint(**kwargs)
    if hint is datetime:
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError) as e:
            raise AnnotationError(f"Bad timestamp {value!r}: {e}")
    return value


def annotate_field_data(field_id: str, value: Any) -> Tuple[str, str]:
    """
    Encodes a field's value as an annotation

    :param field_id: string; identifies the field, like 'spec.Tags'
    :param value: the field's value; must not be None
    :return: tuple of the annotation key and the annotation value
    """
    if isinstance(value, str):
        encoded = f"string={value}"
    elif isinstance(value, bool):
        encoded = f"bool={'true' if value else 'false'}"
    elif isinstance(value, int):
        encoded = f"int={value}"
    elif isinstance(value, float):
        encoded = f"float={value!r}"
    else:
        encoded = f"json={json.dumps(to_jsonable(value), sort_keys=True)}"
    return annotation_key(field_id), encoded


def decode_field_data_annotation(annotation_value: str, into: Any) -> Any:
    """
    Decodes an annotation value made by annotate_field_data()

    :param annotation_value: string; the '<tag>=<payload>' annotation value
    :param into: type annotation of the field being restored; used to
        rebuild generated classes from JSON payloads
    :return: the decoded value
    :raises AnnotationError: if the value is malformed or the tag is unknown
    """
    tag, sep, payload = annotation_value.partition("=")
    if not sep:
        raise AnnotationError(f"Annotation value {annotation_value!r} has no type tag")
    try:
        if tag == "string":
            return payload
        if tag == "bool":
            if payload not in ("true", "false"):
                raise AnnotationError(f"Bad bool annotation payload {payload!r}")
            return payload == "true"
        if tag == "int":
            return int(payload)
        if tag == "float":
            return float(payload)
        if tag == "json":
            return from_jsonable(json.loads(payload), into)
    except ValueError as e:
        raise AnnotationError(f"Bad {tag} annotation payload {payload!r}: {e}")
    raise AnnotationError(f"Unknown annotation type tag {tag!r}")


def set_field_data(meta, field_id: str, value: Any):
    """
    Stores value in the annotations of meta; None values aren't stored

    :param meta: an ObjectMeta
    :param field_id: string; identifies the field, like 'spec.Tags'
    :param value: the field's value
    """
    if value is None:
        return
    key, encoded = annotate_field_data(field_id, value)
    if meta.annotations is None:
        meta.annotations = {}
    meta.annotations[key] = encoded


def pop_field_data(meta, field_id: str, owner: type, attr: str) -> Any:
    """
    Removes a field's annotation from meta and returns the decoded value

    :param meta: an ObjectMeta
    :param field_id: string; identifies the field, like 'spec.Tags'
    :param owner: the generated class the field belongs to
    :param attr: name of the field's attribute in owner
    :return: the decoded value, or MISSING if meta has no annotation for the field
    :raises AnnotationError: if the annotation can't be decoded
    """
    if not meta.annotations:
        return MISSING
    encoded = meta.annotations.pop(annotation_key(field_id), None)
    if encoded is None:
        return MISSING
    return decode_field_data_annotation(encoded, get_type_hints(owner)[attr])
