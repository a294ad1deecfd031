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
The resource model built from an API description

A Resource is what the generator turns into a top-level class: a Spec holding
desired state and a Status holding observed state. Fields are addressed by
path; '.' separates structure members and '..' separates a list or map from
the members of its element.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from henkan.config import FieldConfig, GeneratorConfig, ResourceConfig
from henkan.errors import RenameInconsistencyError
from henkan.naming import Names, new_names
from henkan.shapes import Operation, Shape, ShapeRef


@dataclass
class Ops:
    create: Optional[Operation] = None
    read_one: Optional[Operation] = None
    read_many: Optional[Operation] = None
    update: Optional[Operation] = None
    delete: Optional[Operation] = None
    get_attributes: Optional[Operation] = None
    set_attributes: Optional[Operation] = None

    def iter_ops(self) -> List[Operation]:
        return [op for op in (self.create, self.read_one, self.read_many,
                              self.update, self.delete, self.get_attributes,
                              self.set_attributes)
                if op is not None]


def parent_field_path(path: str) -> str:
    """
    Returns the path of the field that contains the field at path

    'Config.Rules..Id' -> 'Config.Rules'; 'Config.Name' -> 'Config'; a
    top-level path returns ''.
    """
    idx = path.rfind(".")
    if idx < 0:
        return ""
    if idx > 0 and path[idx - 1] == ".":
        idx -= 1
    return path[:idx]


class Field(object):
    def __init__(self, resource: 'Resource', path: str, names: Names,
                 shape_ref: Optional[ShapeRef], config: Optional[FieldConfig] = None):
        self.resource = resource
        self.path = path
        self.names = names
        self.shape_ref = shape_ref
        self.config = config

    def __repr__(self):
        return f"Field({self.resource.names.camel}:{self.path})"

    @property
    def shape(self) -> Optional[Shape]:
        return self.shape_ref.get_shape() if self.shape_ref is not None else None

    @property
    def attr_name(self) -> str:
        return self.names.camel_lower

    @property
    def is_secret(self) -> bool:
        return self.config is not None and self.config.is_secret

    @property
    def is_read_only(self) -> bool:
        return self.config is not None and self.config.is_read_only

    @property
    def is_attribute(self) -> bool:
        return self.config is not None and self.config.is_attribute


class Resource(object):
    """
    One top-level resource, anchored on its create operation

    spec_fields and status_fields are keyed by the camel-cased field name;
    fields holds every top-level and nested field keyed by path.
    """
    def __init__(self, names: Names, ops: Ops, cfg: Optional[GeneratorConfig] = None):
        self.names = names
        self.ops = ops
        self.cfg = cfg if cfg is not None else GeneratorConfig()
        self.spec_fields: Dict[str, Field] = {}
        self.status_fields: Dict[str, Field] = {}
        self.fields: Dict[str, Field] = {}
        self.identifier_member: Optional[str] = None

    def __repr__(self):
        return f"Resource({self.names.camel})"

    @property
    def config(self) -> Optional[ResourceConfig]:
        return self.cfg.resource_config(self.names.original)

    def field_config(self, path: str) -> Optional[FieldConfig]:
        return self.cfg.resource_fields(self.names.original).get(path)

    def input_field_rename(self, op_name: str, member_name: str) -> str:
        """
        Returns the name to use for member_name of op_name's input

        :param op_name: string; name of the operation whose input has the member
        :param member_name: string; original member name
        :return: the renamed member name, or member_name if no rename is configured
        """
        renames = self.cfg.get_resource_renames(self.names.original, op_name)
        return renames.get(member_name, member_name)

    def _new_field(self, names: Names, shape_ref: Optional[ShapeRef]) -> Field:
        f = Field(self, names.camel, names, shape_ref, self.field_config(names.camel))
        self.fields[f.path] = f
        return f

    def add_spec_field(self, names: Names, shape_ref: Optional[ShapeRef]) -> Field:
        f = self._new_field(names, shape_ref)
        self.spec_fields[names.camel] = f
        return f

    def add_status_field(self, names: Names, shape_ref: Optional[ShapeRef]) -> Field:
        f = self._new_field(names, shape_ref)
        self.status_fields[names.camel] = f
        return f

    def add_nested_field(self, path: str, names: Names,
                         shape_ref: Optional[ShapeRef]) -> Field:
        f = Field(self, path, names, shape_ref, self.field_config(path))
        self.fields[path] = f
        return f

    def unpacks_attributes(self) -> bool:
        return self.cfg.unpacks_attributes_map(self.names.original)

    def unpack_attributes(self):
        """
        Replaces the attributes map with one field per configured attribute

        Attribute fields have no shape; their values are strings. Read-only
        attributes go into the Status, the rest into the Spec.
        """
        fields = self.cfg.resource_fields(self.names.original)
        for path in sorted(fields):
            fc = fields[path]
            if not fc.is_attribute:
                continue
            names = new_names(path)
            if fc.is_read_only:
                self.add_status_field(names, None)
            else:
                self.add_spec_field(names, None)

    def is_primary_identifier_field(self, member_name: str) -> bool:
        """
        True if member_name is the member that identifies the resource

        The configured primary identifier wins; otherwise 'Arn',
        '<Resource>Arn' or '<Resource>ARN'.
        """
        rc = self.config
        if rc is not None and rc.primary_identifier:
            return member_name == rc.primary_identifier
        camel = self.names.camel
        return member_name in ("Arn", "ARN", f"{camel}Arn", f"{camel}ARN")

    def get_all_renames(self) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Collects the input renames of every operation of this resource

        Both sides are camel-cased so they line up with the keys of spec_fields
        and status_fields whatever the case of the API's member names.

        :return: tuple of two dicts: old name -> new name and new name -> old name
        :raises RenameInconsistencyError: if two old names map to the same new
            name, or one old name maps to two new names
        """
        old_to_new: Dict[str, str] = {}
        new_to_old: Dict[str, str] = {}
        for op in self.ops.iter_ops():
            renames = self.cfg.get_resource_renames(self.names.original, op.name)
            for original in sorted(renames):
                old = new_names(original).camel
                new = new_names(renames[original]).camel
                if old_to_new.get(old, new) != new:
                    raise RenameInconsistencyError(
                        f"{self.names.camel}: {old} is renamed to both "
                        f"{old_to_new[old]} and {new}")
                if new_to_old.get(new, old) != old:
                    raise RenameInconsistencyError(
                        f"{self.names.camel}: both {new_to_old[new]} and {old} "
                        f"are renamed to {new}")
                old_to_new[old] = new
                new_to_old[new] = old
        return old_to_new, new_to_old

    def has_shape_as_member(self, shape_name: str) -> bool:
        """
        True if any field of the resource, at any depth, has the named shape
        """
        return any(f.shape_ref is not None and f.shape_ref.shape_name == shape_name
                   for f in self.fields.values())

    def secret_paths_under(self, path: str) -> Set[str]:
        """
        Returns the paths of secret fields nested anywhere below path
        """
        prefix = f"{path}."
        return {p for p, f in self.fields.items()
                if p.startswith(prefix) and f.is_secret}


@dataclass
class Attr:
    names: Names
    shape_ref: Optional[ShapeRef]
    is_secret: bool = False


@dataclass
class TypeDef:
    """
    A generated class for a structure shape that isn't an operation payload

    names.camel is the class name, which may carry the conflict suffix;
    attrs is keyed by the original member name.
    """
    names: Names
    shape: Shape
    attrs: Dict[str, Attr] = field(default_factory=dict)


@dataclass
class EnumValue:
    original: str
    clean: str


@dataclass
class EnumDef:
    names: Names
    values: List[EnumValue] = field(default_factory=list)
