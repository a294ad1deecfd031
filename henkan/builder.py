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
Builds the per-version resource model from an API description

get_resources() turns every non-ignored create operation into a Resource,
splitting its fields between Spec and Status and materializing every nested
field. get_type_defs() and get_enum_defs() derive the reusable classes the
fields refer to, and build_module_def() bundles everything for one version.
"""
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from henkan.config import GeneratorConfig
from henkan.errors import SchemaError
from henkan.log import get_logger
from henkan.model import (Attr, EnumDef, EnumValue, Ops, Resource, TypeDef,
                          parent_field_path)
from henkan.naming import (Names, conflicting_name_suffix, new_names,
                           sanitize_enum_value)
from henkan.shapes import API, OpType, Shape, ShapeKind, ShapeRef, innermost_element


logger = get_logger(__name__)


# name of the map member that holds a resource's attributes
attributes_member_name = "Attributes"

# names the generated types module already uses
python_reserved = {"Any", "Dict", "List", "Optional", "ObjectMeta", "ResourceBase",
                   "ResourceMetadata", "SecretKeyReference", "dataclass",
                   "datetime", "field"}

_scalar_python_types = {"boolean": "bool",
                        "string": "str",
                        "character": "str",
                        "byte": "int",
                        "short": "int",
                        "integer": "int",
                        "long": "int",
                        "float": "float",
                        "double": "float",
                        "timestamp": "datetime"}


def _create_output_shape(res: Resource) -> Optional[Shape]:
    # a create output that only wraps one structure stands for that structure
    create = res.ops.create
    if create.output_ref is None:
        return None
    shape = create.output_ref.get_shape()
    if shape.used_as_output and len(shape.members) == 1:
        only = next(iter(shape.members.values())).get_shape()
        if only.kind is ShapeKind.STRUCTURE:
            shape = only
    return shape


def _is_create_output_member(res: Resource, path: str) -> bool:
    shape = _create_output_shape(res)
    if shape is None:
        return False
    camel = new_names(path).camel
    return any(new_names(m).camel == camel for m in shape.members)


def _add_spec_fields(api: API, res: Resource):
    create = res.ops.create
    if create.input_ref is not None:
        shape = create.input_ref.get_shape()
        unpacking = res.unpacks_attributes()
        for member_name in sorted(shape.members):
            if unpacking and member_name == attributes_member_name:
                continue
            ref = shape.members[member_name]
            ref.get_shape()
            renamed = res.input_field_rename(create.name, member_name)
            res.add_spec_field(new_names(renamed), ref)
        if unpacking:
            res.unpack_attributes()

    fields = res.cfg.resource_fields(res.names.original)
    for path in sorted(fields):
        fc = fields[path]
        if "." in path or fc.is_read_only or path in res.spec_fields:
            continue
        if fc.is_attribute:
            if not res.unpacks_attributes():
                logger.warning(f"{res.names.camel}: attribute field {path} skipped; "
                               f"the resource doesn't unpack its attributes")
            continue
        if fc.from_ is None:
            if not _is_create_output_member(res, path):
                logger.warning(f"{res.names.camel}: field {path} has no shape and "
                               f"isn't an attribute; skipped")
            continue
        ref = api.get_input_shape_ref(fc.from_.operation, fc.from_.path)
        if ref is None:
            raise SchemaError(f"{res.names.camel}: can't find {fc.from_.path} in the "
                              f"input of {fc.from_.operation} for field {path}")
        ref.get_shape()
        res.add_spec_field(new_names(path), ref)


def _add_status_fields(api: API, res: Resource):
    create = res.ops.create
    shape = _create_output_shape(res)
    if shape is not None:
        unpacking = res.unpacks_attributes()
        for member_name in sorted(shape.members):
            if unpacking and member_name == attributes_member_name:
                continue
            if res.is_primary_identifier_field(member_name):
                res.identifier_member = member_name
                continue
            names = new_names(res.input_field_rename(create.name, member_name))
            if names.camel in res.spec_fields or member_name in res.spec_fields or \
                    names.camel in res.status_fields:
                continue
            ref = shape.members[member_name]
            ref.get_shape()
            res.add_status_field(names, ref)

    fields = res.cfg.resource_fields(res.names.original)
    for path in sorted(fields):
        fc = fields[path]
        if "." in path or not fc.is_read_only or fc.is_attribute or \
                path in res.status_fields:
            continue
        if fc.from_ is None:
            logger.warning(f"{res.names.camel}: field {path} has no shape and "
                           f"isn't an attribute; skipped")
            continue
        ref = api.get_output_shape_ref(fc.from_.operation, fc.from_.path)
        if ref is None:
            raise SchemaError(f"{res.names.camel}: can't find {fc.from_.path} in the "
                              f"output of {fc.from_.operation} for field {path}")
        ref.get_shape()
        res.add_status_field(new_names(path), ref)


def _element_shape(shape: Shape) -> Tuple[Shape, str]:
    # the shape whose members get materialized, and the path separator to use
    shape, stepped = innermost_element(shape)
    return shape, ".." if stepped else "."


def _materialize_nested(res: Resource, path: str, ref: Optional[ShapeRef],
                        active: Set[str]):
    if ref is None:
        return
    shape, sep = _element_shape(ref.get_shape())
    if shape.kind is not ShapeKind.STRUCTURE or shape.name in active:
        return
    active = active | {shape.name}
    for member_name in sorted(shape.members):
        mref = shape.members[member_name]
        mref.get_shape()
        mpath = f"{path}{sep}{member_name}"
        res.add_nested_field(mpath, new_names(member_name), mref)
        _materialize_nested(res, mpath, mref, active)


def process_nested_fields(res: Resource):
    """
    Adds a Field to res.fields for every member nested under a Spec or Status field
    """
    for section in (res.spec_fields, res.status_fields):
        for name in sorted(section):
            f = section[name]
            _materialize_nested(res, f.path, f.shape_ref, set())
    for path in sorted(res.cfg.resource_fields(res.names.original)):
        if "." in path and path not in res.fields:
            logger.warning(f"{res.names.camel}: configured field {path} doesn't "
                           f"match any field")


def get_resources(api: API, cfg: GeneratorConfig,
                  failures: Optional[List[Tuple[str, Exception]]] = None) -> List[Resource]:
    """
    Builds a Resource for every create operation that isn't ignored

    :param api: the API description
    :param cfg: the generator configuration
    :param failures: optional list; if supplied, a resource that can't be built
        is left out and (resource name, exception) is appended here instead
        of the exception being raised
    :return: list of Resources sorted by camel-cased name, with no duplicates
    :raises SchemaError: if a shape reference doesn't resolve or a configured
        'from' path can't be found
    """
    op_map = api.get_operation_map(cfg.ignore.operations)
    resources: Dict[str, Resource] = {}
    for resource_name in sorted(op_map[OpType.CREATE]):
        if cfg.is_ignored_resource(resource_name):
            continue
        names = new_names(resource_name)
        if names.camel in resources:
            continue
        ops = Ops(create=op_map[OpType.CREATE][resource_name],
                  read_one=op_map[OpType.READ_ONE].get(resource_name),
                  read_many=op_map[OpType.READ_MANY].get(resource_name),
                  update=op_map[OpType.UPDATE].get(resource_name),
                  delete=op_map[OpType.DELETE].get(resource_name),
                  get_attributes=op_map[OpType.GET_ATTRIBUTES].get(resource_name),
                  set_attributes=op_map[OpType.SET_ATTRIBUTES].get(resource_name))
        res = Resource(names, ops, cfg)
        try:
            _add_spec_fields(api, res)
            _add_status_fields(api, res)
            process_nested_fields(res)
        except SchemaError as e:
            if failures is None:
                raise
            logger.error(f"{names.camel}: {e}")
            failures.append((names.camel, e))
            continue
        resources[names.camel] = res
    return [resources[k] for k in sorted(resources)]


def _secret_attrs_of(res: Resource) -> List[Tuple[str, str]]:
    found = []
    fields = res.cfg.resource_fields(res.names.original)
    for path in sorted(fields):
        if not fields[path].is_secret:
            continue
        parent_path = parent_field_path(path)
        if not parent_path:
            continue
        where = f"{res.names.camel}: secret field {path}"
        parent = res.fields.get(parent_path)
        if parent is None:
            raise SchemaError(f"{where} has no parent field {parent_path}")
        if parent.shape_ref is None:
            raise SchemaError(f"{where}: parent field {parent_path} has no shape")
        shape = parent.shape
        if shape.kind is ShapeKind.LIST:
            shape = shape.member.get_shape()
        elif shape.kind is ShapeKind.MAP:
            shape = shape.value.get_shape()
        if shape.kind is not ShapeKind.STRUCTURE:
            raise SchemaError(f"{where}: parent field {parent_path} doesn't hold "
                              f"a structure")
        member = path[len(parent_path):].lstrip(".")
        if member not in shape.members:
            raise SchemaError(f"{where}: {shape.name} has no member {member}")
        found.append((shape.name, member))
    return found


def resolve_secret_attrs(resources: List[Resource],
                         failures: Optional[List[Tuple[str, Exception]]] = None
                         ) -> Dict[str, Set[str]]:
    """
    Finds the structure members that must be typed as secret references

    A nested field configured as secret changes the type of an attribute of
    its parent's structure, so the owning structure is found through the
    parent field, stepping through a list element or map value if needed.

    :param resources: the Resources of one version
    :param failures: optional list; as for get_resources()
    :return: dict of structure shape name -> set of member names
    :raises SchemaError: if the parent field or the member can't be found
    """
    secrets: Dict[str, Set[str]] = defaultdict(set)
    for res in resources:
        try:
            found = _secret_attrs_of(res)
        except SchemaError as e:
            if failures is None:
                raise
            logger.error(str(e))
            failures.append((res.names.camel, e))
            continue
        for shape_name, member in found:
            secrets[shape_name].add(member)
    return dict(secrets)


def _reachable_structures(resources: List[Resource]) -> Dict[str, Shape]:
    found: Dict[str, Shape] = {}
    pending = []
    for res in resources:
        for section in (res.spec_fields, res.status_fields):
            pending.extend(section[n].shape_ref for n in sorted(section))
    while pending:
        ref = pending.pop()
        if ref is None:
            continue
        shape = ref.get_shape()
        if shape.kind is ShapeKind.STRUCTURE:
            if shape.name in found:
                continue
            found[shape.name] = shape
        pending.extend(r for _, r in shape.refs())
    return found


def _class_names(name: str, taken: Set[str], renames: Dict[str, str]) -> Names:
    names = new_names(name)
    if names.camel in taken:
        camel = f"{names.camel}{conflicting_name_suffix}"
        renames[name] = camel
        names = Names(original=name, camel=camel, camel_lower=names.camel_lower,
                      snake=names.snake)
    return names


def _reserved_names(resources: List[Resource]) -> Set[str]:
    reserved = set(python_reserved)
    for res in resources:
        reserved.update((res.names.camel, f"{res.names.camel}Spec",
                         f"{res.names.camel}Status"))
    return reserved


def get_type_defs(api: API, resources: List[Resource],
                  secret_attrs: Optional[Dict[str, Set[str]]] = None
                  ) -> Tuple[List[TypeDef], Dict[str, str]]:
    """
    Creates a TypeDef for every structure shape the resources refer to

    Operation payloads and exception shapes don't get a TypeDef. Secret
    attributes are known before any TypeDef is created, so TypeDefs are
    complete when returned.

    :param api: the API description
    :param resources: the Resources of this version
    :param secret_attrs: optional output of resolve_secret_attrs(); computed
        if not supplied
    :return: tuple of the TypeDefs sorted by class name, and a dict of shape
        name -> class name for every shape whose class name got the conflict
        suffix
    :raises SchemaError: if two shapes end up with the same class name
    """
    if secret_attrs is None:
        secret_attrs = resolve_secret_attrs(resources)
    payloads = api.get_payloads()
    reserved = _reserved_names(resources)
    renames: Dict[str, str] = {}
    by_class_name: Dict[str, str] = {}
    type_defs = []
    structures = _reachable_structures(resources)
    for shape_name in sorted(structures):
        shape = structures[shape_name]
        if shape_name in payloads or shape.is_exception:
            continue
        names = _class_names(shape_name, reserved, renames)
        if names.camel in by_class_name:
            raise SchemaError(f"Shapes {by_class_name[names.camel]} and {shape_name} "
                              f"both produce the class name {names.camel}")
        by_class_name[names.camel] = shape_name
        secrets = secret_attrs.get(shape_name, set())
        attrs = {m: Attr(new_names(m), shape.members[m], m in secrets)
                 for m in sorted(shape.members)}
        type_defs.append(TypeDef(names=names, shape=shape, attrs=attrs))
    type_defs.sort(key=lambda td: td.names.camel)
    return type_defs, renames


def get_enum_defs(api: API, resources: List[Resource]) -> Tuple[List[EnumDef],
                                                                Dict[str, str]]:
    """
    Creates an EnumDef for every enum shape in the API

    :return: tuple of the EnumDefs sorted by class name and the conflict renames
    :raises SchemaError: if two values of one enum sanitize to the same identifier
    """
    reserved = _reserved_names(resources)
    renames: Dict[str, str] = {}
    enum_defs = []
    for shape_name in sorted(api.shapes):
        shape = api.shapes[shape_name]
        if not shape.is_enum:
            continue
        names = _class_names(shape_name, reserved, renames)
        values = []
        seen = {}
        for v in shape.enum:
            clean = sanitize_enum_value(v)
            if clean in seen:
                raise SchemaError(f"Enum {shape_name} values {seen[clean]!r} and {v!r} "
                                  f"both become {clean}")
            seen[clean] = v
            values.append(EnumValue(original=v, clean=clean))
        enum_defs.append(EnumDef(names=names, values=values))
    enum_defs.sort(key=lambda ed: ed.names.camel)
    return enum_defs, renames


class ModuleDef(object):
    """
    Everything generated for one API version
    """
    def __init__(self, version: str, api: API, config: GeneratorConfig,
                 group: Optional[str] = None):
        self.version = version
        self.api = api
        self.config = config
        self.group = group
        self.resources: List[Resource] = []
        self.type_defs: List[TypeDef] = []
        self.enum_defs: List[EnumDef] = []
        self.type_renames: Dict[str, str] = {}
        self.secret_attrs: Dict[str, Set[str]] = {}
        self.failures: List[Tuple[str, Exception]] = []
        self._type_defs_by_shape: Dict[str, TypeDef] = {}

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def get_resource(self, name: str) -> Optional[Resource]:
        for res in self.resources:
            if res.names.camel == name:
                return res
        return None

    def set_type_defs(self, type_defs: List[TypeDef]):
        self.type_defs = type_defs
        self._type_defs_by_shape = {td.shape.name: td for td in type_defs}

    def get_type_def(self, shape_name: str) -> Optional[TypeDef]:
        return self._type_defs_by_shape.get(shape_name)

    def is_secret_attr(self, shape_name: str, member_name: str) -> bool:
        return member_name in self.secret_attrs.get(shape_name, ())

    def type_name(self, shape: Shape) -> str:
        """
        Returns the class name generated for a structure shape

        :raises SchemaError: if the shape has no TypeDef in this version
        """
        td = self.get_type_def(shape.name)
        if td is None:
            raise SchemaError(f"Structure {shape.name} has no generated class in "
                              f"{self.version}; operation payloads can't be used as "
                              f"field types")
        return td.names.camel

    def python_type(self, shape_ref: Optional[ShapeRef], is_secret: bool = False,
                    _seen: frozenset = frozenset()) -> str:
        """
        Returns the type annotation text for a value of the referenced shape

        :param shape_ref: a ShapeRef, or None for attribute fields (strings)
        :param is_secret: if True the value is a secret reference whatever the shape
        :raises SchemaError: if a list or map contains itself without a structure
            in between
        """
        if is_secret:
            return "SecretKeyReference"
        if shape_ref is None:
            return "str"
        shape = shape_ref.get_shape()
        if shape.kind is ShapeKind.STRUCTURE:
            return self.type_name(shape)
        if shape.kind in (ShapeKind.LIST, ShapeKind.MAP):
            if id(shape) in _seen:
                raise SchemaError(f"{shape.name} contains itself with no structure "
                                  f"in between")
            _seen = _seen | {id(shape)}
        if shape.kind is ShapeKind.LIST:
            return f"List[{self.python_type(shape.member, _seen=_seen)}]"
        if shape.kind is ShapeKind.MAP:
            return (f"Dict[{self.python_type(shape.key, _seen=_seen)}, "
                    f"{self.python_type(shape.value, _seen=_seen)}]")
        return _scalar_python_types[shape.type]


def build_module_def(version: str, api: API, cfg: GeneratorConfig,
                     group: Optional[str] = None,
                     collect_failures: bool = False) -> ModuleDef:
    """
    Builds the resources, type defs and enum defs of one version

    :param version: string; the API version, like 'v1alpha1'
    :param api: the version's API description, with ignore rules applied
    :param cfg: the version's generator configuration
    :param group: optional API group used for generated apiVersion values
    :param collect_failures: if True, resources that can't be built are left
        out and recorded in the failures attribute of the result instead of
        raising
    :return: a populated ModuleDef
    :raises SchemaError: if the model can't be built
    """
    md = ModuleDef(version, api, cfg, group=group)
    failures = [] if collect_failures else None
    resources = get_resources(api, cfg, failures)
    md.secret_attrs = resolve_secret_attrs(resources, failures)
    if failures:
        failed = {name for name, _ in failures}
        resources = [r for r in resources if r.names.camel not in failed]
        md.failures = failures
    md.resources = resources
    type_defs, type_renames = get_type_defs(api, md.resources, md.secret_attrs)
    md.set_type_defs(type_defs)
    md.enum_defs, enum_renames = get_enum_defs(api, md.resources)
    class_names = {td.names.camel: td.shape.name for td in md.type_defs}
    for ed in md.enum_defs:
        if ed.names.camel in class_names:
            raise SchemaError(f"Shapes {class_names[ed.names.camel]} and "
                              f"{ed.names.original} both produce the class name "
                              f"{ed.names.camel}")
    md.type_renames = dict(type_renames)
    md.type_renames.update(enum_renames)
    logger.info(f"{version}: {len(md.resources)} resource(s), "
                f"{len(md.type_defs)} type def(s), {len(md.enum_defs)} enum(s)")
    return md
