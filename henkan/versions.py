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
The registry of API versions for one resource family

A VersionRegistry knows which version is the hub, which are spokes and which
are deprecated, and holds the ModuleDef built for every usable version. It is
passed explicitly to everything that needs cross-version lookups.
"""
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from henkan.builder import ModuleDef, build_module_def
from henkan.config import (APIInfo, GeneratorConfig, VersionManifest,
                           load_generator_config)
from henkan.delta import ResourceDelta, compute_resource_deltas
from henkan.errors import (ConfigError, DeprecationPolicyViolation, SchemaError,
                           VersionDeprecatedError, VersionNotFoundError)
from henkan.log import get_logger
from henkan.model import Resource
from henkan.naming import kube_version_key, parse_kube_version
from henkan.shapes import API


logger = get_logger(__name__)


class VersionRegistry(object):
    """
    Holds the model of every API version and the relationships between them

    The deprecation policy is checked as soon as the registry is created and
    again whenever a version is added, so a registry that exists always
    satisfies it.
    """
    def __init__(self, hub_version: str, api_infos: Dict[str, APIInfo],
                 group: Optional[str] = None):
        """
        :param hub_version: string; the version every other version converts through
        :param api_infos: dict of version -> APIInfo; must include the hub
        :param group: optional API group for generated apiVersion values
        :raises ConfigError: if the hub isn't in api_infos or a version isn't a
            valid Kubernetes-style API version
        :raises DeprecationPolicyViolation: if the deprecation policy is violated
        """
        if hub_version not in api_infos:
            raise ConfigError(f"Hub version {hub_version} has no entry in the "
                              f"version manifest")
        for version in api_infos:
            parse_kube_version(version)
        self.hub_version = hub_version
        self.group = group
        self.api_infos: Dict[str, APIInfo] = dict(api_infos)
        self._module_defs: Dict[str, ModuleDef] = {}
        self.audit_deprecations()

    @property
    def versions(self) -> List[str]:
        return sorted(self.api_infos, key=kube_version_key)

    @property
    def spoke_versions(self) -> List[str]:
        return [v for v in self.versions if v != self.hub_version]

    @property
    def deprecated_versions(self) -> List[str]:
        return [v for v in self.versions if self.api_infos[v].deprecated]

    def audit_deprecations(self):
        """
        Checks the deprecation policy

        The hub can't be deprecated. Spoke versions are grouped by major version
        and track (alpha, beta, GA); within a group, ordered by minor version,
        the deprecated versions must be the oldest ones.

        :raises DeprecationPolicyViolation: describing the first violation found
        """
        if self.api_infos[self.hub_version].deprecated:
            raise DeprecationPolicyViolation(f"The hub version {self.hub_version} "
                                             f"can't be deprecated")
        tracks = defaultdict(list)
        for version in self.spoke_versions:
            kv = parse_kube_version(version)
            tracks[(kv.major, kv.track)].append((kv.minor, version))
        for key in sorted(tracks):
            available = None
            for _, version in sorted(tracks[key]):
                if not self.api_infos[version].deprecated:
                    if available is None:
                        available = version
                elif available is not None:
                    raise DeprecationPolicyViolation(
                        f"{version} is deprecated but the older {available} "
                        f"is not")

    def register(self, version: str, api: API, config: GeneratorConfig,
                 api_info: Optional[APIInfo] = None) -> ModuleDef:
        """
        Builds and stores the model for a version

        :param version: string; the version to register
        :param api: the version's API description
        :param config: the version's generator configuration
        :param api_info: optional manifest entry; needed if version isn't already
            known to the registry, and replaces the existing entry if it is
        :return: the ModuleDef built for the version. Resources that failed
            to build are in its failures attribute.
        :raises ConfigError: if the version is unknown and no api_info was given
        :raises DeprecationPolicyViolation: if api_info breaks the policy; the
            registry is left unchanged
        """
        if api_info is not None:
            parse_kube_version(version)
            previous = self.api_infos.get(version)
            self.api_infos[version] = api_info
            try:
                self.audit_deprecations()
            except DeprecationPolicyViolation:
                if previous is None:
                    del self.api_infos[version]
                else:
                    self.api_infos[version] = previous
                raise
        elif version not in self.api_infos:
            raise ConfigError(f"Version {version} isn't in the version manifest")
        md = build_module_def(version, api, config, group=self.group,
                              collect_failures=True)
        self._module_defs[version] = md
        return md

    def verify_versions(self, *versions: str):
        """
        Fails unless every version is registered and not deprecated

        :raises VersionNotFoundError: for an unknown or unregistered version
        :raises VersionDeprecatedError: for a deprecated version
        """
        for version in versions:
            if version not in self.api_infos:
                raise VersionNotFoundError(f"Unknown API version {version}")
            if self.api_infos[version].deprecated:
                raise VersionDeprecatedError(f"API version {version} is deprecated")
            if version not in self._module_defs:
                raise VersionNotFoundError(f"API version {version} hasn't been "
                                           f"registered")

    def is_registered(self, version: str) -> bool:
        return version in self._module_defs

    def module_def(self, version: str) -> ModuleDef:
        self.verify_versions(version)
        return self._module_defs[version]

    def resources(self, version: str) -> List[Resource]:
        """
        Returns the Resources of a version

        :raises VersionNotFoundError: if version isn't registered
        :raises VersionDeprecatedError: if version is deprecated
        """
        return self.module_def(version).resources

    def pair_resources(self, src: str, dst: str) -> List[Tuple[str, Resource, Resource]]:
        """
        Matches up the resources of two versions by name

        Resources that failed to build in either version are left out.

        :return: list of (name, src Resource, dst Resource) sorted by name
        :raises ConfigError: if src and dst are the same version
        :raises SchemaError: if the two versions don't have the same resources
        """
        if src == dst:
            raise ConfigError(f"Can't compare version {src} with itself")
        src_md = self.module_def(src)
        dst_md = self.module_def(dst)
        failed = {name for name, _ in src_md.failures + dst_md.failures}
        src_res = {r.names.camel: r for r in src_md.resources if r.names.camel not in failed}
        dst_res = {r.names.camel: r for r in dst_md.resources if r.names.camel not in failed}
        if set(src_res) != set(dst_res):
            only_src = sorted(set(src_res) - set(dst_res))
            only_dst = sorted(set(dst_res) - set(src_res))
            raise SchemaError(f"Versions {src} and {dst} have different resources; "
                              f"only in {src}: {only_src}, only in {dst}: {only_dst}")
        return [(name, src_res[name], dst_res[name]) for name in sorted(src_res)]

    def compare_api_versions(self, src: str, dst: str) -> Dict[str, ResourceDelta]:
        """
        Computes the field deltas of every resource from src to dst

        src plays the part of the spoke and dst the hub; renames come from dst.

        :return: dict of resource name -> ResourceDelta
        """
        return {name: compute_resource_deltas(s, d)
                for name, s, d in self.pair_resources(src, dst)}

    def compare_hub_with(self, version: str) -> Dict[str, ResourceDelta]:
        return self.compare_api_versions(version, self.hub_version)

    @classmethod
    def from_manifest(cls, manifest: VersionManifest,
                      load_api: Callable[..., API] = API.from_file,
                      load_config: Callable[..., GeneratorConfig] = load_generator_config
                      ) -> 'VersionRegistry':
        """
        Creates a registry and registers every version that isn't deprecated

        :param manifest: a VersionManifest
        :param load_api: callable taking a path and the ignore_shapes and
            ignore_field_paths keyword arguments, returning an API
        :param load_config: callable taking a path keyword argument and
            returning a GeneratorConfig
        :return: a populated VersionRegistry
        :raises ConfigError: if a version has no API description
        """
        registry = cls(manifest.hub_version, manifest.versions, group=manifest.group)
        for version in registry.versions:
            info = manifest.versions[version]
            if info.deprecated:
                logger.info(f"{version} is deprecated; not building it")
                continue
            if not info.api_path:
                raise ConfigError(f"Version {version} has no API description")
            if info.config_path:
                cfg = load_config(path=str(manifest.resolve(info.config_path)))
            else:
                cfg = GeneratorConfig()
            api = load_api(manifest.resolve(info.api_path),
                           ignore_shapes=cfg.ignore.shape_names,
                           ignore_field_paths=cfg.ignore.field_paths)
            registry.register(version, api, cfg)
        return registry
