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
Classifies how each field of a resource differs between a spoke version and the hub
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from henkan.errors import RenameInconsistencyError
from henkan.log import get_logger
from henkan.model import Field, Resource
from henkan.shapes import is_equal_shape


logger = get_logger(__name__)


class FieldChangeType(Enum):
    """
    How a field changed between a spoke version and the hub

    The possible values are:

    ========================  ==========================================================
    Value:                    ...means:
    ========================  ==========================================================
    INTACT                    same name and the same shape in both versions
    RENAMED                   the hub renamed the spoke's field; see the hub's renames
    ADDED                     the field only exists in the hub
    REMOVED                   the field only exists in the spoke
    SHAPE_CHANGED             same name but the structure of the value differs
    SHAPE_CHANGED_TO_SECRET   same name, but the hub keeps the value (or part of it)
                              as a secret reference
    UNKNOWN                   the two fields can't be compared; one comes from an
                              attributes map and has no shape
    ========================  ==========================================================
    """

    INTACT = "Intact"
    RENAMED = "Renamed"
    ADDED = "Added"
    REMOVED = "Removed"
    SHAPE_CHANGED = "ShapeChanged"
    SHAPE_CHANGED_TO_SECRET = "ShapeChangedToSecret"
    UNKNOWN = "Unknown"


unsupported_changes = frozenset({FieldChangeType.SHAPE_CHANGED,
                                 FieldChangeType.SHAPE_CHANGED_TO_SECRET,
                                 FieldChangeType.UNKNOWN})


@dataclass
class FieldDelta:
    """
    The classified difference of one field

    spoke is None only for ADDED, and hub is None only for REMOVED.
    """
    change_type: FieldChangeType
    spoke: Optional[Field]
    hub: Optional[Field]

    def __post_init__(self):
        if self.change_type is FieldChangeType.ADDED:
            ok = self.spoke is None and self.hub is not None
        elif self.change_type is FieldChangeType.REMOVED:
            ok = self.spoke is not None and self.hub is None
        else:
            ok = self.spoke is not None and self.hub is not None
        if not ok:
            raise ValueError(f"A {self.change_type.value} delta can't have spoke="
                             f"{self.spoke} and hub={self.hub}")

    @property
    def name(self) -> str:
        return self.spoke.names.camel if self.spoke is not None else self.hub.names.camel

    def __str__(self):
        if self.change_type is FieldChangeType.RENAMED:
            return f"{self.change_type.value}({self.spoke.names.camel}->" \
                   f"{self.hub.names.camel})"
        return f"{self.change_type.value}({self.name})"


@dataclass
class ResourceDelta:
    spec_deltas: List[FieldDelta] = field(default_factory=list)
    status_deltas: List[FieldDelta] = field(default_factory=list)

    def all_deltas(self) -> List[FieldDelta]:
        return self.spec_deltas + self.status_deltas

    def unsupported(self) -> List[FieldDelta]:
        return [d for d in self.all_deltas() if d.change_type in unsupported_changes]


def check_renames(renames: Dict[str, str]):
    """
    Fails unless renames maps distinct old names to distinct new names

    :raises RenameInconsistencyError: naming the new name and its old names
    """
    seen: Dict[str, str] = {}
    for old in sorted(renames):
        new = renames[old]
        if new in seen:
            raise RenameInconsistencyError(f"Both {seen[new]} and {old} are renamed "
                                           f"to {new}")
        seen[new] = old


def _relative_secret_paths(f: Field) -> set:
    return {p[len(f.path):] for p in f.resource.secret_paths_under(f.path)}


def _classify_same_name(spoke: Field, hub: Field) -> FieldChangeType:
    if hub.is_secret and not spoke.is_secret:
        return FieldChangeType.SHAPE_CHANGED_TO_SECRET
    if spoke.is_secret and not hub.is_secret:
        return FieldChangeType.SHAPE_CHANGED
    spoke_secrets = _relative_secret_paths(spoke)
    hub_secrets = _relative_secret_paths(hub)
    if hub_secrets - spoke_secrets:
        return FieldChangeType.SHAPE_CHANGED_TO_SECRET
    if spoke_secrets - hub_secrets:
        return FieldChangeType.SHAPE_CHANGED
    if spoke.shape_ref is None or hub.shape_ref is None:
        if spoke.shape_ref is hub.shape_ref:
            return FieldChangeType.INTACT
        return FieldChangeType.UNKNOWN
    if is_equal_shape(spoke.shape, hub.shape):
        return FieldChangeType.INTACT
    return FieldChangeType.SHAPE_CHANGED


def compute_fields_diff(spoke_fields: Dict[str, Field], hub_fields: Dict[str, Field],
                        renames: Dict[str, str]) -> List[FieldDelta]:
    """
    Classifies every field of one section (Spec or Status) of a resource

    Every name in either mapping ends up in exactly one delta. Spoke fields
    are visited in sorted order, then hub fields no spoke field claimed are
    reported as ADDED in sorted order, so the result doesn't depend on the
    order of the mappings.

    :param spoke_fields: dict of field name -> Field for the spoke version
    :param hub_fields: dict of field name -> Field for the hub version
    :param renames: dict of old name -> new name from the hub's configuration
    :return: list of FieldDelta
    :raises RenameInconsistencyError: if renames isn't one-to-one, if a rename
        targets a field the hub doesn't have, or if the spoke already has a
        field with the name a rename targets
    """
    check_renames(renames)
    deltas: List[FieldDelta] = []
    hub_visited = set()
    for name in sorted(spoke_fields):
        spoke = spoke_fields[name]
        if name in hub_fields:
            hub_visited.add(name)
            deltas.append(FieldDelta(_classify_same_name(spoke, hub_fields[name]),
                                     spoke, hub_fields[name]))
        elif name in renames:
            new_name = renames[name]
            if new_name not in hub_fields:
                raise RenameInconsistencyError(f"{name} is renamed to {new_name}, "
                                               f"which isn't a field of the hub")
            if new_name in spoke_fields:
                raise RenameInconsistencyError(f"{name} is renamed to {new_name}, "
                                               f"but the spoke already has "
                                               f"{new_name}")
            hub_visited.add(new_name)
            deltas.append(FieldDelta(FieldChangeType.RENAMED, spoke,
                                     hub_fields[new_name]))
        else:
            deltas.append(FieldDelta(FieldChangeType.REMOVED, spoke, None))
    for name in sorted(hub_fields):
        if name not in hub_visited:
            deltas.append(FieldDelta(FieldChangeType.ADDED, None, hub_fields[name]))
    return deltas


def compute_resource_deltas(spoke: Resource, hub: Resource) -> ResourceDelta:
    """
    Compares a spoke version of a resource with the hub version

    Renames come from every operation of the hub resource; Spec and Status
    are compared separately.

    :raises RenameInconsistencyError: see compute_fields_diff()
    """
    renames, _ = hub.get_all_renames()
    rd = ResourceDelta(spec_deltas=compute_fields_diff(spoke.spec_fields,
                                                       hub.spec_fields, renames),
                       status_deltas=compute_fields_diff(spoke.status_fields,
                                                         hub.status_fields, renames))
    for section, deltas in (("spec", rd.spec_deltas), ("status", rd.status_deltas)):
        for d in deltas:
            logger.debug(f"{hub.names.camel} {section}: {d}")
    return rd
