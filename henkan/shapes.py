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
The shape model: the typed description of a service API

An API description is a set of named shapes (scalars, structures, lists and
maps) plus the operations whose inputs and outputs are rooted in those shapes.
Shapes refer to each other by name through ShapeRef objects; after loading,
every ShapeRef also holds the shared Shape it names, so the model is a graph
of shared, read-only nodes that may contain cycles.
"""
from dataclasses import dataclass, field
from enum import Enum
import json
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Iterable

from henkan.errors import SchemaError
from henkan.log import get_logger
from henkan.naming import singularize, is_plural


logger = get_logger(__name__)


class ShapeKind(Enum):
    SCALAR = 0
    STRUCTURE = 1
    LIST = 2
    MAP = 3


scalar_types = frozenset({"boolean", "string", "character", "byte", "short",
                          "integer", "long", "float", "double", "timestamp"})

_container_types = {"structure": ShapeKind.STRUCTURE,
                    "list": ShapeKind.LIST,
                    "map": ShapeKind.MAP}


@dataclass(eq=False)
class ShapeRef:
    shape_name: str
    shape: Optional['Shape'] = None
    documentation: str = ""

    def get_shape(self) -> 'Shape':
        """
        Returns the referenced Shape, failing if the reference never resolved

        :raises SchemaError: if the name of the shape was never found in the API
        """
        if self.shape is None:
            raise SchemaError(f"Shape {self.shape_name} is referenced but not defined")
        return self.shape


@dataclass(eq=False)
class Shape:
    """
    A single named type from an API description

    Equality is identity; use is_equal_shape() to compare structure.
    """
    name: str
    type: str
    members: Dict[str, ShapeRef] = field(default_factory=dict)
    member: Optional[ShapeRef] = None
    key: Optional[ShapeRef] = None
    value: Optional[ShapeRef] = None
    enum: List[str] = field(default_factory=list)
    is_exception: bool = False
    used_as_output: bool = False
    documentation: str = ""

    @property
    def kind(self) -> ShapeKind:
        return _container_types.get(self.type, ShapeKind.SCALAR)

    @property
    def is_enum(self) -> bool:
        return len(self.enum) > 0

    def refs(self) -> List[Tuple[str, ShapeRef]]:
        """
        Returns (label, ShapeRef) for every shape this one refers to, sorted

        Structure members are labelled with the member name; list elements
        with 'member'; map keys and values with 'key' and 'value'.
        """
        if self.kind is ShapeKind.STRUCTURE:
            return [(n, self.members[n]) for n in sorted(self.members)]
        if self.kind is ShapeKind.LIST:
            return [("member", self.member)]
        if self.kind is ShapeKind.MAP:
            return [("key", self.key), ("value", self.value)]
        return []


@dataclass(eq=False)
class Operation:
    name: str
    input_ref: Optional[ShapeRef] = None
    output_ref: Optional[ShapeRef] = None

    @property
    def input_shape(self) -> Optional[Shape]:
        return self.input_ref.shape if self.input_ref is not None else None

    @property
    def output_shape(self) -> Optional[Shape]:
        return self.output_ref.shape if self.output_ref is not None else None


class OpType(Enum):
    CREATE = 0
    READ_ONE = 1
    READ_MANY = 2
    UPDATE = 3
    DELETE = 4
    GET_ATTRIBUTES = 5
    SET_ATTRIBUTES = 6
    UNKNOWN = 7


_op_prefixes = (("Create", OpType.CREATE),
                ("Update", OpType.UPDATE),
                ("Modify", OpType.UPDATE),
                ("Put", OpType.UPDATE),
                ("Delete", OpType.DELETE),
                ("List", OpType.READ_MANY))


def get_op_type_and_resource(op_name: str) -> Tuple[OpType, str]:
    """
    Classifies an operation by its name

    :param op_name: string; name of an operation, like 'CreateBucket'
    :return: tuple of the OpType and the name of the resource the operation
        acts on. List and plural Describe/Get operations return the singular
        resource name.
    """
    if op_name.startswith("Get") and op_name.endswith("Attributes") and \
            len(op_name) > len("GetAttributes"):
        return OpType.GET_ATTRIBUTES, op_name[3:-len("Attributes")]
    if op_name.startswith("Set") and op_name.endswith("Attributes") and \
            len(op_name) > len("SetAttributes"):
        return OpType.SET_ATTRIBUTES, op_name[3:-len("Attributes")]
    for prefix in ("Describe", "Get"):
        if op_name.startswith(prefix) and len(op_name) > len(prefix):
            noun = op_name[len(prefix):]
            if is_plural(noun):
                return OpType.READ_MANY, singularize(noun)
            return OpType.READ_ONE, noun
    for prefix, op_type in _op_prefixes:
        if op_name.startswith(prefix) and len(op_name) > len(prefix):
            noun = op_name[len(prefix):]
            if op_type is OpType.READ_MANY:
                noun = singularize(noun)
            return op_type, noun
    return OpType.UNKNOWN, op_name


def _make_ref(d: Optional[dict], where: str) -> Optional[ShapeRef]:
    if d is None:
        return None
    if not isinstance(d, dict) or "shape" not in d:
        raise SchemaError(f"{where} does not name a shape")
    return ShapeRef(shape_name=d["shape"], documentation=d.get("documentation", ""))


def _make_shape(name: str, d: dict) -> Shape:
    stype = d.get("type")
    if stype not in scalar_types and stype not in _container_types:
        raise SchemaError(f"Shape {name} has unknown type {stype!r}")
    shape = Shape(name=name, type=stype,
                  enum=list(d.get("enum", [])),
                  is_exception=bool(d.get("exception", False)),
                  documentation=d.get("documentation", ""))
    if stype == "structure":
        for mname, mref in d.get("members", {}).items():
            shape.members[mname] = _make_ref(mref, f"Member {mname} of {name}")
    elif stype == "list":
        shape.member = _make_ref(d.get("member"), f"List shape {name}")
        if shape.member is None:
            raise SchemaError(f"List shape {name} has no member")
    elif stype == "map":
        shape.key = _make_ref(d.get("key"), f"Map shape {name} key")
        shape.value = _make_ref(d.get("value"), f"Map shape {name} value")
        if shape.key is None or shape.value is None:
            raise SchemaError(f"Map shape {name} needs both a key and a value")
    return shape


class API(object):
    """
    A loaded API description: named shapes plus operations
    """
    def __init__(self, service_id: str, api_version: str,
                 shapes: Dict[str, Shape], operations: Dict[str, Operation]):
        self.service_id = service_id
        self.api_version = api_version
        self.shapes = shapes
        self.operations = operations

    @classmethod
    def from_dict(cls, doc: dict, ignore_shapes: Iterable[str] = (),
                  ignore_field_paths: Iterable[str] = ()) -> 'API':
        """
        Builds an API from an AWS SDK style model document

        Ignore rules are applied here so that no later stage ever sees an
        ignored shape or member.

        :param doc: dict with 'metadata', 'operations' and 'shapes' keys
        :param ignore_shapes: iterable of shape names to drop. Any member,
            list or map that refers to a dropped shape is dropped with it.
        :param ignore_field_paths: iterable of 'Shape.Member' strings; each
            names a member to remove from a structure shape
        :return: a new API with every ShapeRef resolved where possible
        :raises SchemaError: if the document is malformed
        """
        if not isinstance(doc, dict) or not isinstance(doc.get("shapes"), dict):
            raise SchemaError("API description has no 'shapes' section")
        metadata = doc.get("metadata", {})
        shapes: Dict[str, Shape] = {name: _make_shape(name, sd)
                                    for name, sd in doc["shapes"].items()}
        operations: Dict[str, Operation] = {}
        for op_name, od in doc.get("operations", {}).items():
            operations[op_name] = Operation(
                name=op_name,
                input_ref=_make_ref(od.get("input"), f"Input of {op_name}"),
                output_ref=_make_ref(od.get("output"), f"Output of {op_name}"))

        api = cls(service_id=metadata.get("serviceId", ""),
                  api_version=metadata.get("apiVersion", ""),
                  shapes=shapes, operations=operations)
        api._apply_ignore_rules(set(ignore_shapes), list(ignore_field_paths))
        api._resolve_refs()
        return api

    @classmethod
    def from_file(cls, path, ignore_shapes: Iterable[str] = (),
                  ignore_field_paths: Iterable[str] = ()) -> 'API':
        path = Path(path)
        try:
            f = path.open("r")
        except OSError as e:
            raise SchemaError(f"Can't read API description {path}: {e}")
        with f:
            try:
                doc = json.load(f)
            except ValueError as e:
                raise SchemaError(f"API description {path} is not valid JSON: {e}")
        return cls.from_dict(doc, ignore_shapes=ignore_shapes,
                             ignore_field_paths=ignore_field_paths)

    def _apply_ignore_rules(self, ignored: Set[str], field_paths: List[str]):
        for fp in field_paths:
            shape_name, _, member_name = fp.partition(".")
            shape = self.shapes.get(shape_name)
            if shape is None or not member_name:
                logger.warning(f"Ignored field path {fp} does not name a shape member")
                continue
            shape.members.pop(member_name, None)
        if not ignored:
            return
        # collections of ignored shapes are ignored too
        changed = True
        while changed:
            changed = False
            for shape in self.shapes.values():
                if shape.name in ignored:
                    continue
                if shape.kind is ShapeKind.LIST and shape.member.shape_name in ignored:
                    ignored.add(shape.name)
                    changed = True
                elif shape.kind is ShapeKind.MAP and shape.value.shape_name in ignored:
                    ignored.add(shape.name)
                    changed = True
        for name in ignored:
            self.shapes.pop(name, None)
        for shape in self.shapes.values():
            for mname in [m for m, ref in shape.members.items()
                          if ref.shape_name in ignored]:
                del shape.members[mname]
        for op in self.operations.values():
            if op.input_ref is not None and op.input_ref.shape_name in ignored:
                op.input_ref = None
            if op.output_ref is not None and op.output_ref.shape_name in ignored:
                op.output_ref = None

    def _resolve_refs(self):
        for shape in self.shapes.values():
            for _, ref in shape.refs():
                ref.shape = self.shapes.get(ref.shape_name)
        for op in self.operations.values():
            if op.input_ref is not None:
                op.input_ref.shape = self.shapes.get(op.input_ref.shape_name)
            if op.output_ref is not None:
                op.output_ref.shape = self.shapes.get(op.output_ref.shape_name)
                if op.output_ref.shape is not None:
                    op.output_ref.shape.used_as_output = True

    def get_payloads(self) -> Set[str]:
        """
        Returns the names of every shape used as an operation's input or output
        """
        payloads = set()
        for op in self.operations.values():
            for ref in (op.input_ref, op.output_ref):
                if ref is not None:
                    payloads.add(ref.shape_name)
        return payloads

    def get_operation_map(self, ignored_operations: Iterable[str] = ()
                          ) -> Dict[OpType, Dict[str, Operation]]:
        """
        Groups the operations by OpType and then by resource name

        :param ignored_operations: names of operations to leave out
        :return: dict mapping each OpType to a dict of resource name -> Operation
        """
        ignored = set(ignored_operations)
        op_map: Dict[OpType, Dict[str, Operation]] = {t: {} for t in OpType}
        for op_name in sorted(self.operations):
            if op_name in ignored:
                continue
            op_type, resource_name = get_op_type_and_resource(op_name)
            op_map[op_type][resource_name] = self.operations[op_name]
        return op_map

    @staticmethod
    def _shape_ref_at(root: Optional[ShapeRef], path: str) -> Optional[ShapeRef]:
        ref = root
        for part in path.split("."):
            if ref is None or ref.shape is None or ref.shape.kind is not ShapeKind.STRUCTURE:
                return None
            ref = ref.shape.members.get(part)
        return ref

    def get_input_shape_ref(self, op_name: str, path: str) -> Optional[ShapeRef]:
        """
        Finds the ShapeRef at a dotted member path under an operation's input

        :param op_name: string; name of the operation
        :param path: string; dotted path of member names, like 'Config.Name'
        :return: the ShapeRef found, or None if the operation or any part of the
            path doesn't exist
        """
        op = self.operations.get(op_name)
        if op is None:
            return None
        return self._shape_ref_at(op.input_ref, path)

    def get_output_shape_ref(self, op_name: str, path: str) -> Optional[ShapeRef]:
        """
        Same as get_input_shape_ref(), but searches the operation's output
        """
        op = self.operations.get(op_name)
        if op is None:
            return None
        return self._shape_ref_at(op.output_ref, path)


def is_equal_shape(a: Optional[Shape], b: Optional[Shape], _seen=None) -> bool:
    """
    Deep structural comparison of two shapes

    Compares kind, scalar type, member names and (recursively) the shapes of
    members, list elements and map keys and values. Shape names, enum values
    and documentation are not compared, and member order doesn't matter.
    Self-referential shapes are handled.

    :param a: a Shape or None
    :param b: a Shape or None
    :return: True if both are None or both describe the same structure
    """
    if a is None or b is None:
        return a is b
    if _seen is None:
        _seen = set()
    pair = (id(a), id(b))
    if pair in _seen:
        return True
    _seen.add(pair)
    if a.type != b.type:
        return False
    if a.kind is ShapeKind.STRUCTURE:
        if set(a.members) != set(b.members):
            return False
        return all(is_equal_shape(a.members[n].shape, b.members[n].shape, _seen)
                   for n in sorted(a.members))
    if a.kind is ShapeKind.LIST:
        return is_equal_shape(a.member.shape, b.member.shape, _seen)
    if a.kind is ShapeKind.MAP:
        return (is_equal_shape(a.key.shape, b.key.shape, _seen) and
                is_equal_shape(a.value.shape, b.value.shape, _seen))
    return True


def is_made_of_builtin_types(shape: Optional[Shape]) -> bool:
    """
    True if shape is a scalar or a list/map that only contains scalars at any depth

    Values of such shapes can be copied wholesale rather than element by element.
    """
    seen = set()
    while shape is not None:
        if id(shape) in seen:
            return False
        seen.add(id(shape))
        if shape.kind is ShapeKind.SCALAR:
            return True
        if shape.kind is ShapeKind.LIST:
            shape = shape.member.shape
        elif shape.kind is ShapeKind.MAP:
            shape = shape.value.shape
        else:
            return False
    return False


def innermost_element(shape: Shape) -> Tuple[Shape, bool]:
    """
    Steps through nested lists and maps to the first shape that is neither

    :param shape: a Shape
    :return: tuple of the element shape and True if at least one list or map
        was stepped through
    :raises SchemaError: if a list or map contains itself without a structure
        in between; no Python type can describe such a value
    """
    seen = set()
    stepped = False
    while shape.kind in (ShapeKind.LIST, ShapeKind.MAP):
        if id(shape) in seen:
            raise SchemaError(f"{shape.name} contains itself with no structure "
                              f"in between")
        seen.add(id(shape))
        ref = shape.member if shape.kind is ShapeKind.LIST else shape.value
        shape = ref.get_shape()
        stepped = True
    return shape, stepped
