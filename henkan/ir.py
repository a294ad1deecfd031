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
A small statement tree for generated conversion code

The converter describes what a conversion function does with these nodes and
a backend turns them into source text, so the shape-walking logic never deals
with the syntax of the target language.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple


class Expr(object):
    pass


class Stmt(object):
    pass


@dataclass
class Name(Expr):
    ident: str


@dataclass
class Attr(Expr):
    base: Expr
    attr: str


@dataclass
class TypeRef(Expr):
    """
    A generated class; alias names the module it comes from, if not the local one
    """
    name: str
    alias: Optional[str] = None


@dataclass
class Const(Expr):
    value: Any


@dataclass
class ValueCopy(Expr):
    """
    An independent copy of a value made only of builtin types
    """
    value: Expr


@dataclass
class Recurse(Expr):
    """
    Calls the copy helper generated for a self-referential structure
    """
    helper: str
    value: Expr


@dataclass
class Comment(Stmt):
    text: str


@dataclass
class Assign(Stmt):
    target: Expr
    value: Expr


class AllocKind(object):
    STRUCTURE = "structure"
    LIST = "list"
    MAP = "map"


@dataclass
class Allocate(Stmt):
    var: str
    kind: str
    type_ref: Optional[TypeRef] = None


@dataclass
class Guard(Stmt):
    """
    Runs body only when subject is set; orelse otherwise
    """
    subject: Expr
    body: List[Stmt] = field(default_factory=list)
    orelse: List[Stmt] = field(default_factory=list)


@dataclass
class Loop(Stmt):
    """
    Iterates a list, or a map when key_var is set
    """
    var: str
    subject: Expr
    body: List[Stmt] = field(default_factory=list)
    key_var: Optional[str] = None


@dataclass
class Append(Stmt):
    container: Expr
    value: Expr


@dataclass
class SetItem(Stmt):
    container: Expr
    key: Expr
    value: Expr


@dataclass
class EncodeAnnotation(Stmt):
    """
    Stores value in the annotations of meta under field_id
    """
    meta: Expr
    field_id: str
    value: Expr


@dataclass
class DecodeAnnotation(Stmt):
    """
    Restores target from the annotation field_id of meta, if there is one

    owner is the class target's attribute belongs to; the attribute's type
    annotation drives decoding.
    """
    meta: Expr
    field_id: str
    target: Attr
    owner: TypeRef


@dataclass
class Return(Stmt):
    value: Expr


@dataclass
class FunctionDef(Stmt):
    name: str
    params: List[Tuple[str, Optional[TypeRef]]]
    body: List[Stmt] = field(default_factory=list)
    docstring: Optional[str] = None
