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
Generator configuration and version manifests

Both documents are YAML. A generator configuration says what to leave out
of the model and how to adjust individual resources:

.. code:: yaml

    ignore:
      resource_names: [Snapshot]
      operations: [DeleteBucketPolicy]
      shape_names: [InternalDetails]
      field_paths: [Bucket.Owner]
    resources:
      Bucket:
        renames:
          operations:
            CreateBucket:
              input_fields:
                BucketName: Name
        fields:
          Password:
            is_secret: true
          Location:
            is_read_only: true
            from:
              operation: GetBucketLocation
              path: LocationConstraint
        unpack_attributes_map: false
        primary_identifier: BucketArn

A version manifest names the hub version and, for every version, where its
API description and generator configuration live (relative to the manifest):

.. code:: yaml

    service: storage
    group: storage.henkan.io
    hub_version: v1
    versions:
      v1alpha1:
        status: deprecated
        api: v1alpha1/api.json
        config: v1alpha1/generator.yaml
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from henkan.errors import ConfigError


@dataclass
class FromConfig:
    """
    Where to find the shape of a field that isn't part of the create operation
    """
    operation: str
    path: str


@dataclass
class FieldConfig:
    is_secret: bool = False
    is_read_only: bool = False
    is_attribute: bool = False
    from_: Optional[FromConfig] = None


@dataclass
class IgnoreSpec:
    resource_names: List[str] = field(default_factory=list)
    operations: List[str] = field(default_factory=list)
    shape_names: List[str] = field(default_factory=list)
    field_paths: List[str] = field(default_factory=list)


@dataclass
class ResourceConfig:
    """
    Per-resource settings

    fields maps a field path ('Name', 'Config.Secret', 'Users..Password') to
    its FieldConfig; renames maps an operation name to the old -> new names
    of its input members.
    """
    fields: Dict[str, FieldConfig] = field(default_factory=dict)
    renames: Dict[str, Dict[str, str]] = field(default_factory=dict)
    unpack_attributes_map: bool = False
    primary_identifier: Optional[str] = None


@dataclass
class GeneratorConfig:
    ignore: IgnoreSpec = field(default_factory=IgnoreSpec)
    resources: Dict[str, ResourceConfig] = field(default_factory=dict)

    def is_ignored_resource(self, name: str) -> bool:
        return name in self.ignore.resource_names

    def is_ignored_operation(self, name: str) -> bool:
        return name in self.ignore.operations

    def resource_config(self, name: str) -> Optional[ResourceConfig]:
        return self.resources.get(name)

    def resource_fields(self, name: str) -> Dict[str, FieldConfig]:
        rc = self.resources.get(name)
        return rc.fields if rc is not None else {}

    def unpacks_attributes_map(self, name: str) -> bool:
        rc = self.resources.get(name)
        return rc is not None and rc.unpack_attributes_map

    def get_resource_renames(self, name: str, op_name: str) -> Dict[str, str]:
        """
        Returns old -> new input member renames for one operation of a resource
        """
        rc = self.resources.get(name)
        if rc is None:
            return {}
        return rc.renames.get(op_name, {})


class APIStatus(object):
    AVAILABLE = "available"
    DEPRECATED = "deprecated"


@dataclass
class APIInfo:
    """
    Manifest entry for one API version
    """
    status: str = APIStatus.AVAILABLE
    api_path: Optional[str] = None
    config_path: Optional[str] = None

    @property
    def deprecated(self) -> bool:
        return self.status == APIStatus.DEPRECATED


@dataclass
class VersionManifest:
    service: str
    hub_version: str
    versions: Dict[str, APIInfo]
    group: Optional[str] = None
    base_dir: Path = field(default_factory=Path)

    def resolve(self, relpath: str) -> Path:
        return self.base_dir / relpath


def _check_keys(d, allowed, where: str) -> dict:
    if d is None:
        return {}
    if not isinstance(d, dict):
        raise ConfigError(f"{where} must be a mapping, not {type(d).__name__}")
    unknown = sorted(set(d) - set(allowed))
    if unknown:
        raise ConfigError(f"Unknown key(s) in {where}: {', '.join(unknown)}")
    return d


def _mapping(d, where: str) -> dict:
    if d is None:
        return {}
    if not isinstance(d, dict):
        raise ConfigError(f"{where} must be a mapping, not {type(d).__name__}")
    return d


def _str_list(d: dict, key: str, where: str) -> List[str]:
    value = d.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}.{key} must be a list of strings")
    return list(value)


def _bool(d: dict, key: str, where: str) -> bool:
    value = d.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{where}.{key} must be true or false")
    return value


def _field_config_from_dict(d, where: str) -> FieldConfig:
    d = _check_keys(d, ("is_secret", "is_read_only", "is_attribute", "from"), where)
    fc = FieldConfig(is_secret=_bool(d, "is_secret", where),
                     is_read_only=_bool(d, "is_read_only", where),
                     is_attribute=_bool(d, "is_attribute", where))
    if d.get("from") is not None:
        fd = _check_keys(d["from"], ("operation", "path"), f"{where}.from")
        if not isinstance(fd.get("operation"), str) or not isinstance(fd.get("path"), str):
            raise ConfigError(f"{where}.from needs both an operation and a path")
        fc.from_ = FromConfig(operation=fd["operation"], path=fd["path"])
    return fc


def _resource_config_from_dict(d, where: str) -> ResourceConfig:
    d = _check_keys(d, ("fields", "renames", "unpack_attributes_map",
                        "primary_identifier"), where)
    rc = ResourceConfig(unpack_attributes_map=_bool(d, "unpack_attributes_map", where))
    primary = d.get("primary_identifier")
    if primary is not None and not isinstance(primary, str):
        raise ConfigError(f"{where}.primary_identifier must be a string")
    rc.primary_identifier = primary
    fields_where = f"{where}.fields"
    for path, fd in _mapping(d.get("fields"), fields_where).items():
        rc.fields[str(path)] = _field_config_from_dict(fd, f"{fields_where}.{path}")
    renames = _check_keys(d.get("renames"), ("operations",), f"{where}.renames")
    ops_where = f"{where}.renames.operations"
    ops = renames.get("operations") or {}
    for op_name, op_d in _mapping(ops, ops_where).items():
        op_d = _check_keys(op_d, ("input_fields",), f"{ops_where}.{op_name}")
        input_fields = op_d.get("input_fields") or {}
        if not isinstance(input_fields, dict) or \
                not all(isinstance(k, str) and isinstance(v, str)
                        for k, v in input_fields.items()):
            raise ConfigError(f"{ops_where}.{op_name}.input_fields must map "
                              f"old names to new names")
        rc.renames[op_name] = dict(input_fields)
    return rc


def config_from_dict(d: Optional[dict]) -> GeneratorConfig:
    """
    Builds a GeneratorConfig from the parsed YAML document

    :param d: dict from YAML, or None for an empty configuration
    :return: a GeneratorConfig
    :raises ConfigError: on unknown keys or values of the wrong type
    """
    d = _check_keys(d, ("ignore", "resources"), "generator config")
    ig = _check_keys(d.get("ignore"), ("resource_names", "operations",
                                        "shape_names", "field_paths"), "ignore")
    ignore = IgnoreSpec(resource_names=_str_list(ig, "resource_names", "ignore"),
                        operations=_str_list(ig, "operations", "ignore"),
                        shape_names=_str_list(ig, "shape_names", "ignore"),
                        field_paths=_str_list(ig, "field_paths", "ignore"))
    resources = {}
    rd = d.get("resources") or {}
    for name, rcd in _mapping(rd, "resources").items():
        resources[str(name)] = _resource_config_from_dict(rcd, f"resources.{name}")
    return GeneratorConfig(ignore=ignore, resources=resources)


def manifest_from_dict(d: dict, base_dir=None) -> VersionManifest:
    """
    Builds a VersionManifest from the parsed YAML document

    :param d: dict from YAML
    :param base_dir: optional directory that relative paths in the manifest
        are relative to; defaults to the current directory
    :return: a VersionManifest
    :raises ConfigError: if required keys are missing or values are malformed
    """
    if d is None:
        raise ConfigError("Version manifest is empty")
    d = _check_keys(d, ("service", "group", "hub_version", "versions"), "manifest")
    for key in ("service", "hub_version"):
        if not isinstance(d.get(key), str):
            raise ConfigError(f"Version manifest needs a string '{key}'")
    versions_d = d.get("versions")
    if not versions_d or not isinstance(versions_d, dict):
        raise ConfigError("Version manifest needs at least one entry in 'versions'")
    versions = {}
    for version, vd in versions_d.items():
        where = f"versions.{version}"
        vd = _check_keys(vd, ("status", "api", "config"), where)
        status = vd.get("status", APIStatus.AVAILABLE)
        if status not in (APIStatus.AVAILABLE, APIStatus.DEPRECATED):
            raise ConfigError(f"{where}.status must be '{APIStatus.AVAILABLE}' or "
                              f"'{APIStatus.DEPRECATED}', not {status!r}")
        versions[str(version)] = APIInfo(status=status, api_path=vd.get("api"),
                                         config_path=vd.get("config"))
    return VersionManifest(service=d["service"], hub_version=d["hub_version"],
                           versions=versions, group=d.get("group"),
                           base_dir=Path(base_dir) if base_dir is not None else Path("."))


def _load_yaml(path: str = None, stream: TextIO = None, yaml: str = None):
    if yaml is None and stream is None and path is None:
        raise ConfigError("One of path, stream, or yaml must be specified")
    parser = YAML(typ="safe")
    try:
        if yaml is not None:
            return parser.load(yaml)
        if stream is not None:
            return parser.load(stream)
        with open(path, "r") as f:
            return parser.load(f)
    except OSError as e:
        raise ConfigError(f"Can't read {path}: {e}")
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}")


def load_generator_config(path: str = None, stream: TextIO = None,
                          yaml: str = None) -> GeneratorConfig:
    """
    Loads a generator configuration from one of a path, a stream, or a YAML string

    Only one of path, stream or yaml should be supplied; yaml takes precedence
    over stream, which takes precedence over path.

    :raises ConfigError: if the YAML can't be read or doesn't describe a
        generator configuration
    """
    return config_from_dict(_load_yaml(path=path, stream=stream, yaml=yaml))


def load_manifest(path: str = None, stream: TextIO = None,
                  yaml: str = None) -> VersionManifest:
    """
    Loads a version manifest

    Paths inside the manifest are taken relative to the manifest's directory
    when loading from path, otherwise relative to the current directory.

    :raises ConfigError: if the YAML can't be read or doesn't describe a manifest
    """
    d = _load_yaml(path=path, stream=stream, yaml=yaml)
    base_dir = Path(path).parent if (path is not None and yaml is None and
                                     stream is None) else None
    return manifest_from_dict(d, base_dir=base_dir)
