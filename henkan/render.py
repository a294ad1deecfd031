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
Python backend: renders conversion IR and version models as Python source

The output of everything here is unformatted; generate.get_python_source()
runs it through a formatter.
"""
import re
from typing import List, Optional

from henkan.builder import ModuleDef
from henkan.ir import (AllocKind, Allocate, Append, Assign, Attr, Comment, Const,
                       DecodeAnnotation, EncodeAnnotation, Expr, FunctionDef, Guard,
                       Loop, Name, Recurse, Return, SetItem, Stmt, TypeRef, ValueCopy)
from henkan.model import EnumDef, Resource, TypeDef


_module_docstring = '''"""
DO NOT EDIT THIS FILE!

This module is automatically generated by the henkan build program from the
{service} API description for version {version}.
"""'''


class PythonRenderer(object):
    """
    Turns IR statements into lines of Python

    Another backend only needs the same render_function() method.
    """
    indent = "    "

    # name of the local used when restoring a field from an annotation
    decoded_var = "field_data"

    def render_function(self, fn: FunctionDef) -> List[str]:
        params = []
        for pname, ptype in fn.params:
            params.append(f"{pname}: {self.render_expr(ptype)}" if ptype is not None
                          else pname)
        lines = [f"def {fn.name}({', '.join(params)}):"]
        if fn.docstring:
            lines.append(f'{self.indent}"""{fn.docstring}"""')
        body = self.render_block(fn.body, 1)
        if not body and not fn.docstring:
            body = [f"{self.indent}pass"]
        lines.extend(body)
        return lines

    def render_block(self, stmts: List[Stmt], level: int) -> List[str]:
        lines = []
        for stmt in stmts:
            lines.extend(self.render_stmt(stmt, level))
        return lines

    def render_stmt(self, stmt: Stmt, level: int) -> List[str]:
        pad = self.indent * level
        if isinstance(stmt, Comment):
            return [f"{pad}# {stmt.text}"]
        if isinstance(stmt, Assign):
            return [f"{pad}{self.render_expr(stmt.target)} = {self.render_expr(stmt.value)}"]
        if isinstance(stmt, Allocate):
            if stmt.kind == AllocKind.STRUCTURE:
                return [f"{pad}{stmt.var} = {self.render_expr(stmt.type_ref)}()"]
            if stmt.kind == AllocKind.LIST:
                return [f"{pad}{stmt.var} = []"]
            return [f"{pad}{stmt.var} = {{}}"]
        if isinstance(stmt, Guard):
            lines = [f"{pad}if {self.render_expr(stmt.subject)} is not None:"]
            lines.extend(self._render_body(stmt.body, level + 1))
            if stmt.orelse:
                lines.append(f"{pad}else:")
                lines.extend(self._render_body(stmt.orelse, level + 1))
            return lines
        if isinstance(stmt, Loop):
            subject = self.render_expr(stmt.subject)
            if stmt.key_var is not None:
                head = f"{pad}for {stmt.key_var}, {stmt.var} in {subject}.items():"
            else:
                head = f"{pad}for {stmt.var} in {subject}:"
            return [head] + self._render_body(stmt.body, level + 1)
        if isinstance(stmt, Append):
            return [f"{pad}{self.render_expr(stmt.container)}.append("
                    f"{self.render_expr(stmt.value)})"]
        if isinstance(stmt, SetItem):
            return [f"{pad}{self.render_expr(stmt.container)}"
                    f"[{self.render_expr(stmt.key)}] = {self.render_expr(stmt.value)}"]
        if isinstance(stmt, EncodeAnnotation):
            return [f"{pad}set_field_data({self.render_expr(stmt.meta)}, "
                    f"{stmt.field_id!r}, {self.render_expr(stmt.value)})"]
        if isinstance(stmt, DecodeAnnotation):
            target = stmt.target
            return [f"{pad}{self.decoded_var} = pop_field_data("
                    f"{self.render_expr(stmt.meta)}, {stmt.field_id!r}, "
                    f"{self.render_expr(stmt.owner)}, {target.attr!r})",
                    f"{pad}if {self.decoded_var} is not MISSING:",
                    f"{pad}{self.indent}{self.render_expr(target)} = {self.decoded_var}"]
        if isinstance(stmt, Return):
            return [f"{pad}return {self.render_expr(stmt.value)}"]
        if isinstance(stmt, FunctionDef):
            return [f"{pad}{line}" if line else line
                    for line in self.render_function(stmt)]
        raise TypeError(f"Can't render statement {stmt!r}")

    def _render_body(self, stmts: List[Stmt], level: int) -> List[str]:
        lines = self.render_block(stmts, level)
        return lines if lines else [f"{self.indent * level}pass"]

    def render_expr(self, expr: Expr) -> str:
        if isinstance(expr, Name):
            return expr.ident
        if isinstance(expr, Attr):
            return f"{self.render_expr(expr.base)}.{expr.attr}"
        if isinstance(expr, TypeRef):
            return f"{expr.alias}.{expr.name}" if expr.alias else expr.name
        if isinstance(expr, Const):
            return repr(expr.value)
        if isinstance(expr, ValueCopy):
            return f"copy.deepcopy({self.render_expr(expr.value)})"
        if isinstance(expr, Recurse):
            return f"{expr.helper}({self.render_expr(expr.value)})"
        raise TypeError(f"Can't render expression {expr!r}")


def split_line(line: Optional[str], prefix: str = "    ", linelen: int = 84) -> List[str]:
    # word-wraps documentation text for a docstring
    parts = []
    if line:
        current = []
        for w in line.split():
            if current and len(prefix) + len(" ".join(current)) + len(w) + 1 > linelen:
                parts.append(prefix + " ".join(current))
                current = []
            current.append(w)
        if current:
            parts.append(prefix + " ".join(current))
    return parts


def _clean_doc(doc: str) -> str:
    doc = re.sub(r"<[^>]+>", " ", doc or "")
    return doc.replace("\\", "\\\\").replace('"""', "'''")


def _docstring(summary: str, doc: str = "") -> List[str]:
    lines = ['    """', f"    {summary}"]
    wrapped = split_line(_clean_doc(doc))
    if wrapped:
        lines.append("")
        lines.extend(wrapped)
    lines.append('    """')
    return lines


def enum_class_lines(ed: EnumDef) -> List[str]:
    lines = [f"class {ed.names.camel}(object):"]
    lines.extend(_docstring(f"Values of {ed.names.original}"))
    lines.append("")
    for v in ed.values:
        lines.append(f"    {v.clean} = {v.original!r}")
    return lines


def type_def_class_lines(td: TypeDef, md: ModuleDef) -> List[str]:
    lines = ["@dataclass", f"class {td.names.camel}:"]
    lines.extend(_docstring(td.names.original, td.shape.documentation))
    if td.attrs:
        lines.append("")
    for member in sorted(td.attrs):
        attr = td.attrs[member]
        ptype = md.python_type(attr.shape_ref, attr.is_secret)
        lines.append(f"    {attr.names.camel_lower}: Optional[{ptype}] = None")
    return lines


def resource_class_lines(res: Resource, md: ModuleDef) -> List[str]:
    camel = res.names.camel
    lines = ["@dataclass", f"class {camel}Spec:"]
    lines.extend(_docstring(f"Desired state of a {camel}"))
    if res.spec_fields:
        lines.append("")
    for name in sorted(res.spec_fields):
        f = res.spec_fields[name]
        ptype = md.python_type(f.shape_ref, f.is_secret)
        lines.append(f"    {f.attr_name}: Optional[{ptype}] = None")
    lines.extend(["", "", "@dataclass", f"class {camel}Status:"])
    lines.extend(_docstring(f"Observed state of a {camel}"))
    lines.append("")
    lines.append("    resourceMetadata: Optional[ResourceMetadata] = None")
    for name in sorted(res.status_fields):
        f = res.status_fields[name]
        ptype = md.python_type(f.shape_ref, f.is_secret)
        lines.append(f"    {f.attr_name}: Optional[{ptype}] = None")
    lines.extend(["", "", "@dataclass", f"class {camel}(ResourceBase):"])
    lines.extend(_docstring(camel))
    lines.extend(["",
                  f"    apiVersion: str = {md.api_version!r}",
                  f"    kind: str = {camel!r}",
                  f"    spec: {camel}Spec = field(default_factory={camel}Spec)",
                  f"    status: {camel}Status = field(default_factory={camel}Status)"])
    return lines


def _all_lines(names: List[str]) -> List[str]:
    lines = ["__all__ = ["]
    lines.extend(f"    {n!r}," for n in names)
    lines.append("]")
    return lines


def render_types_module(md: ModuleDef) -> str:
    """
    Returns the source of the module holding a version's generated classes
    """
    lines = [_module_docstring.format(service=md.api.service_id or "service",
                                      version=md.version),
             "from __future__ import annotations",
             "",
             "from dataclasses import dataclass, field",
             "from datetime import datetime",
             "from typing import Dict, List, Optional",
             "",
             "from henkan.runtime import (ObjectMeta, ResourceBase, ResourceMetadata,",
             "                            SecretKeyReference)",
             ""]
    class_names = []
    blocks = []
    for ed in md.enum_defs:
        class_names.append(ed.names.camel)
        blocks.append(enum_class_lines(ed))
    for td in md.type_defs:
        class_names.append(td.names.camel)
        blocks.append(type_def_class_lines(td, md))
    for res in md.resources:
        class_names.extend((f"{res.names.camel}Spec", f"{res.names.camel}Status",
                            res.names.camel))
        blocks.append(resource_class_lines(res, md))
    for block in blocks:
        lines.extend(["", ""])
        lines.extend(block)
    lines.extend(["", ""])
    lines.extend(_all_lines(sorted(class_names)))
    return "\n".join(lines) + "\n"


def render_conversion_module(spoke: ModuleDef, hub: ModuleDef,
                             functions: List[FunctionDef], helpers: List[FunctionDef],
                             hub_alias: str = "hub",
                             renderer: Optional[PythonRenderer] = None) -> str:
    """
    Returns the source of a spoke version's conversion module

    :param spoke: the spoke version's ModuleDef
    :param hub: the hub version's ModuleDef
    :param functions: the public conversion functions, in output order
    :param helpers: copy helpers for self-referential structures
    :param hub_alias: name the hub's types module is imported as
    :param renderer: optional PythonRenderer to use
    """
    renderer = renderer if renderer is not None else PythonRenderer()
    lines = [_module_docstring.format(service=spoke.api.service_id or "service",
                                      version=spoke.version),
             "from __future__ import annotations",
             "",
             "import copy",
             "",
             "from henkan.annotations import MISSING, pop_field_data, set_field_data",
             "",
             "from .types import *",
             f"from ..{hub.version} import types as {hub_alias}",
             ""]
    for fn in list(functions) + list(helpers):
        lines.extend(["", ""])
        lines.extend(renderer.render_function(fn))
    lines.extend(["", ""])
    lines.extend(_all_lines([fn.name for fn in functions]))
    return "\n".join(lines) + "\n"
