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
Turns field deltas plus the shape trees of two versions into conversion IR

For every resource a spoke version gets two functions: one converting the
spoke to the hub and one converting the hub back to the spoke. Fields that
only exist on the source side of a conversion are stored in an annotation on
the destination's metadata, and fields that only exist on the destination side
are restored from such an annotation when there is one, so a value can go
through a version that can't represent it and come back unchanged.
"""
from typing import Callable, Dict, List, Optional, Set

from henkan.builder import ModuleDef
from henkan.delta import FieldChangeType, FieldDelta, ResourceDelta
from henkan.errors import UnsupportedChangeError
from henkan.ir import (AllocKind, Allocate, Append, Assign, Attr, Const,
                       DecodeAnnotation, EncodeAnnotation, Expr, FunctionDef,
                       Guard, Loop, Name, Recurse, Return, SetItem, Stmt, TypeRef,
                       ValueCopy)
from henkan.model import Field, Resource
from henkan.naming import new_names
from henkan.shapes import (Shape, ShapeKind, innermost_element, is_equal_shape,
                           is_made_of_builtin_types)


Store = Callable[[Expr], Stmt]

# name of the local holding the copy of the source object's metadata
meta_var = "object_meta_copy"


class _Direction(object):
    # the state of one conversion direction while walking shapes
    def __init__(self, src_md: ModuleDef, dst_md: ModuleDef,
                 src_alias: Optional[str], dst_alias: Optional[str], suffix: str):
        self.src_md = src_md
        self.dst_md = dst_md
        self.src_alias = src_alias
        self.dst_alias = dst_alias
        self.suffix = suffix
        self.active: List[str] = []

    def fresh(self) -> '_Direction':
        return _Direction(self.src_md, self.dst_md, self.src_alias, self.dst_alias,
                          self.suffix)


class Converter(object):
    """
    Emits the conversion functions between one spoke version and the hub

    Use one Converter per spoke version; copy helpers for self-referential
    structures are shared by all the resources converted with it.
    """
    def __init__(self, spoke: ModuleDef, hub: ModuleDef, hub_alias: str = "hub"):
        self.spoke = spoke
        self.hub = hub
        self.hub_alias = hub_alias
        self._helpers: Dict[str, FunctionDef] = {}
        self._pending: Set[str] = set()

    def helpers(self) -> List[FunctionDef]:
        """
        Returns the copy helpers generated so far, sorted by name
        """
        return [self._helpers[n] for n in sorted(self._helpers)]

    @staticmethod
    def function_name(resource: Resource, to_hub: bool) -> str:
        return f"convert_{resource.names.snake}_{'to' if to_hub else 'from'}_hub"

    def conversion_functions(self, spoke_res: Resource, hub_res: Resource,
                             delta: ResourceDelta) -> List[FunctionDef]:
        """
        Returns the spoke-to-hub and hub-to-spoke functions for one resource

        :param spoke_res: the resource in the spoke version
        :param hub_res: the same resource in the hub version
        :param delta: the ResourceDelta from spoke_res to hub_res
        :return: list of two FunctionDefs, to-hub first
        :raises UnsupportedChangeError: if any field changed shape, became a
            secret, or can't be compared
        :raises SchemaError: if a list or map contains itself without a structure
            in between
        """
        unsupported = delta.unsupported()
        if unsupported:
            raise UnsupportedChangeError(f"{hub_res.names.camel}: can't convert "
                                         f"{', '.join(str(d) for d in unsupported)}")
        to_hub = _Direction(self.spoke, self.hub, None, self.hub_alias, "to_hub")
        from_hub = _Direction(self.hub, self.spoke, self.hub_alias, None, "from_hub")
        return [self._convert_function(to_hub, spoke_res, hub_res, delta, True),
                self._convert_function(from_hub, hub_res, spoke_res, delta, False)]

    def _convert_function(self, d: _Direction, src_res: Resource, dst_res: Resource,
                          delta: ResourceDelta, to_hub: bool) -> FunctionDef:
        spoke_res = src_res if to_hub else dst_res
        if to_hub:
            doc = (f"Converts a {self.spoke.version} {spoke_res.names.camel} to the "
                   f"hub version {self.hub.version}")
        else:
            doc = (f"Converts a hub version {self.hub.version} "
                   f"{spoke_res.names.camel} to {self.spoke.version}")
        body: List[Stmt] = [Assign(Name(meta_var), ValueCopy(Attr(Name("src"), "metadata")))]
        body.extend(self._section(d, dst_res, "spec", delta.spec_deltas, to_hub))
        body.extend(self._section(d, dst_res, "status", delta.status_deltas, to_hub))
        body.append(Assign(Attr(Name("dst"), "metadata"), Name(meta_var)))
        return FunctionDef(name=self.function_name(spoke_res, to_hub),
                           params=[("src", TypeRef(src_res.names.camel, d.src_alias)),
                                   ("dst", TypeRef(dst_res.names.camel, d.dst_alias))],
                           body=body, docstring=doc)

    def _section(self, d: _Direction, dst_res: Resource, section: str,
                 deltas: List[FieldDelta], to_hub: bool) -> List[Stmt]:
        src_section = Attr(Name("src"), section)
        var = Name(f"{section}_copy")
        dst_type = TypeRef(f"{dst_res.names.camel}{section.capitalize()}", d.dst_alias)
        stmts: List[Stmt] = [Allocate(var.ident, AllocKind.STRUCTURE, dst_type)]
        if section == "status":
            stmts.append(Assign(Attr(var, "resourceMetadata"),
                                ValueCopy(Attr(src_section, "resourceMetadata"))))
        for delta in deltas:
            src_field, dst_field = ((delta.spoke, delta.hub) if to_hub
                                    else (delta.hub, delta.spoke))
            if delta.change_type in (FieldChangeType.INTACT, FieldChangeType.RENAMED):
                stmts.extend(self._copy_field(d, src_section, var, src_field, dst_field))
            elif dst_field is None:
                stmts.append(EncodeAnnotation(Name(meta_var),
                                              f"{section}.{src_field.names.camel}",
                                              Attr(src_section, src_field.attr_name)))
            else:
                stmts.append(DecodeAnnotation(Name(meta_var),
                                              f"{section}.{dst_field.names.camel}",
                                              Attr(var, dst_field.attr_name), dst_type))
        stmts.append(Assign(Attr(Name("dst"), section), var))
        return [Guard(src_section, stmts)]

    def _copy_field(self, d: _Direction, src_section: Expr, dst_section: Expr,
                    src_field: Field, dst_field: Field) -> List[Stmt]:
        where = f"{dst_field.resource.names.camel}.{dst_field.path}"
        src_expr = Attr(src_section, src_field.attr_name)
        target = Attr(dst_section, dst_field.attr_name)
        if src_field.is_secret != dst_field.is_secret:
            raise UnsupportedChangeError(f"{where}: only one version keeps the value "
                                         f"as a secret")
        if src_field.is_secret or (src_field.shape_ref is None and
                                   dst_field.shape_ref is None):
            return [Assign(target, src_expr)]
        if src_field.shape_ref is None or dst_field.shape_ref is None or \
                not is_equal_shape(src_field.shape, dst_field.shape):
            raise UnsupportedChangeError(f"{where}: the value's shape differs between "
                                         f"versions")
        return self._copy_value(d, src_expr, src_field.shape, dst_field.shape, 1,
                                lambda v: Assign(target, v))

    def _copy_value(self, d: _Direction, src: Expr, src_shape: Shape, dst_shape: Shape,
                    depth: int, store: Store, keep_none: bool = False) -> List[Stmt]:
        if src_shape.kind is ShapeKind.SCALAR:
            return [store(src)]
        if is_made_of_builtin_types(src_shape):
            return [store(ValueCopy(src))]
        if src_shape.kind is ShapeKind.STRUCTURE:
            return self._copy_struct(d, src, src_shape, dst_shape, depth, store, keep_none)
        if src_shape.kind is ShapeKind.LIST:
            return self._copy_list(d, src, src_shape, dst_shape, depth, store, keep_none)
        return self._copy_map(d, src, src_shape, dst_shape, depth, store, keep_none)

    @staticmethod
    def _guard(src: Expr, body: List[Stmt], store: Store, keep_none: bool) -> List[Stmt]:
        return [Guard(src, body, [store(Const(None))] if keep_none else [])]

    def _copy_struct(self, d: _Direction, src: Expr, src_shape: Shape, dst_shape: Shape,
                     depth: int, store: Store, keep_none: bool) -> List[Stmt]:
        if src_shape.name in d.active:
            return [store(Recurse(self._helper(d, src_shape, dst_shape), src))]
        var = Name(f"{new_names(src_shape.name).snake}_copy_{depth}")
        body: List[Stmt] = [Allocate(var.ident, AllocKind.STRUCTURE,
                                     TypeRef(d.dst_md.type_name(dst_shape), d.dst_alias))]
        d.active.append(src_shape.name)
        try:
            for member in sorted(src_shape.members):
                dst_ref = dst_shape.members.get(member)
                if dst_ref is None:
                    raise UnsupportedChangeError(f"{dst_shape.name} has no member "
                                                 f"{member}")
                src_secret = d.src_md.is_secret_attr(src_shape.name, member)
                if src_secret != d.dst_md.is_secret_attr(dst_shape.name, member):
                    raise UnsupportedChangeError(f"{src_shape.name}.{member} is a secret "
                                                 f"in only one version")
                attr = new_names(member).camel_lower
                member_src = Attr(src, attr)
                target = Attr(var, attr)
                if src_secret:
                    body.append(Assign(target, member_src))
                    continue
                body.extend(self._copy_value(d, member_src,
                                             src_shape.members[member].get_shape(),
                                             dst_ref.get_shape(), depth + 1,
                                             lambda v, t=target: Assign(t, v)))
        finally:
            d.active.pop()
        body.append(store(var))
        return self._guard(src, body, store, keep_none)

    def _copy_list(self, d: _Direction, src: Expr, src_shape: Shape, dst_shape: Shape,
                   depth: int, store: Store, keep_none: bool) -> List[Stmt]:
        innermost_element(src_shape)
        innermost_element(dst_shape)
        var = Name(f"{new_names(src_shape.name).snake}_copy_{depth}")
        elem_shape = src_shape.member.get_shape()
        elem_var = f"{new_names(elem_shape.name).snake}_elem_{depth}"
        inner = self._copy_value(d, Name(elem_var), elem_shape,
                                 dst_shape.member.get_shape(), depth + 1,
                                 lambda v: Append(var, v), keep_none=True)
        body = [Allocate(var.ident, AllocKind.LIST),
                Loop(elem_var, src, inner),
                store(var)]
        return self._guard(src, body, store, keep_none)

    def _copy_map(self, d: _Direction, src: Expr, src_shape: Shape, dst_shape: Shape,
                  depth: int, store: Store, keep_none: bool) -> List[Stmt]:
        innermost_element(src_shape)
        innermost_element(dst_shape)
        snake = new_names(src_shape.name).snake
        var = Name(f"{snake}_copy_{depth}")
        key_var = f"{snake}_key_{depth}"
        value_shape = src_shape.value.get_shape()
        value_var = f"{new_names(value_shape.name).snake}_value_{depth}"
        inner = self._copy_value(d, Name(value_var), value_shape,
                                 dst_shape.value.get_shape(), depth + 1,
                                 lambda v: SetItem(var, Name(key_var), v), keep_none=True)
        body = [Allocate(var.ident, AllocKind.MAP),
                Loop(value_var, src, inner, key_var=key_var),
                store(var)]
        return self._guard(src, body, store, keep_none)

    def _helper(self, d: _Direction, src_shape: Shape, dst_shape: Shape) -> str:
        name = f"_copy_{new_names(src_shape.name).snake}_{d.suffix}"
        if name in self._helpers or name in self._pending:
            return name
        self._pending.add(name)
        body = self._copy_struct(d.fresh(), Name("src"), src_shape, dst_shape, 1,
                                 Return, keep_none=True)
        self._helpers[name] = FunctionDef(name=name, params=[("src", None)], body=body)
        self._pending.discard(name)
        return name
