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
Produces the generated packages for every version in a registry

The generated package looks like::

    <package>/__init__.py
    <package>/<version>/__init__.py
    <package>/<version>/types.py          classes for the version
    <package>/<version>/conversion.py     spoke versions only

Generation is all or nothing: output is only returned once every resource of
every version generated cleanly.
"""
from pathlib import Path
import sys
from typing import Dict, List, Optional, Tuple

from henkan.config import load_manifest
from henkan.converter import Converter
from henkan.delta import compute_resource_deltas
from henkan.errors import (ConfigError, GenerationError, RenameInconsistencyError,
                           SchemaError, UnsupportedChangeError)
from henkan.ir import FunctionDef
from henkan.log import get_logger
from henkan.render import (PythonRenderer, render_conversion_module,
                           render_types_module)
from henkan.versions import VersionRegistry


logger = get_logger(__name__)


# errors that only abort the resource they're raised for
resource_errors = (SchemaError, RenameInconsistencyError, UnsupportedChangeError)


def get_python_source(code: str, style: Optional[str] = "black") -> str:
    """
    Formats generated Python source

    :param code: string; syntactically correct Python source
    :param style: one of None, 'black' or 'autopep8'. None leaves the code as
        it is; 'black' and 'autopep8' run the respective formatter with a line
        length of 88.
    :return: the formatted source
    :raises ConfigError: if an unrecognized style is supplied
    """
    from autopep8 import fix_code
    from black import format_str, Mode, NothingChanged

    if style not in ('black', 'autopep8', None):
        raise ConfigError(f'Unrecognized style: {style}')
    if style is None:
        result = code
    elif style == "autopep8":
        result = fix_code(code, options={"max_line_length": 88,
                                         "experimental": 1})
    else:  # then it's black
        try:
            result = format_str(code, mode=Mode())
        except NothingChanged:
            result = code
    return result


_root_init_template = '''"""
DO NOT EDIT THIS FILE!

This package is automatically generated by the henkan build program.
"""
hub_version = {hub!r}

versions = {versions!r}
'''

_version_init_template = '''"""
DO NOT EDIT THIS FILE!

This package is automatically generated by the henkan build program.
"""
from .types import *
'''


def _conversion_functions(registry: VersionRegistry, version: str,
                          converter: Converter,
                          failures: List[Tuple[str, Exception]]) -> List[FunctionDef]:
    functions = []
    try:
        pairs = registry.pair_resources(version, registry.hub_version)
    except SchemaError as e:
        failures.append((version, e))
        return functions
    for name, spoke_res, hub_res in pairs:
        try:
            delta = compute_resource_deltas(spoke_res, hub_res)
            functions.extend(converter.conversion_functions(spoke_res, hub_res, delta))
        except resource_errors as e:
            logger.error(f"{version}/{name}: {e}")
            failures.append((f"{version}/{name}", e))
    return functions


def generate_all(registry: VersionRegistry, package: str = "apis",
                 style: Optional[str] = "black") -> Dict[str, str]:
    """
    Generates the source of every module for every usable version

    Deprecated versions are skipped. Resources that failed while their version
    was registered count as failures here.

    :param registry: a VersionRegistry with every non-deprecated version registered
    :param package: string; name of the top-level generated package
    :param style: formatter to apply; see get_python_source()
    :return: dict of relative file path -> source, sorted by path
    :raises GenerationError: if any resource failed; nothing is returned then
    :raises ConfigError: on configuration problems, including an unknown style
    :raises VersionNotFoundError: if a non-deprecated version isn't registered
    """
    if style not in ('black', 'autopep8', None):
        raise ConfigError(f'Unrecognized style: {style}')
    usable = [v for v in registry.versions if v not in registry.deprecated_versions]
    registry.verify_versions(*usable)
    hub_md = registry.module_def(registry.hub_version)
    renderer = PythonRenderer()
    failures: List[Tuple[str, Exception]] = []
    outputs: Dict[str, str] = {}
    for version in usable:
        md = registry.module_def(version)
        failures.extend((f"{version}/{name}", e) for name, e in md.failures)
        version_dir = f"{package}/{version}"
        init_code = _version_init_template
        outputs[f"{version_dir}/types.py"] = render_types_module(md)
        if version != registry.hub_version:
            converter = Converter(md, hub_md)
            functions = _conversion_functions(registry, version, converter, failures)
            outputs[f"{version_dir}/conversion.py"] = render_conversion_module(
                md, hub_md, functions, converter.helpers(), renderer=renderer)
            init_code += "from .conversion import *\n"
        outputs[f"{version_dir}/__init__.py"] = init_code
    if failures:
        raise GenerationError(failures)
    outputs[f"{package}/__init__.py"] = _root_init_template.format(
        hub=registry.hub_version, versions=usable)
    return {path: get_python_source(outputs[path], style=style)
            for path in sorted(outputs)}


def write_files(outputs: Dict[str, str], output_dir: str = ".", dry_run: bool = False,
                stream=sys.stdout) -> List[Path]:
    """
    Writes generated files below output_dir, or prints them

    :param outputs: dict of relative path -> source from generate_all()
    :param output_dir: string; directory the relative paths are relative to
    :param dry_run: if True, nothing is written; each file is printed to
        stream under a banner line naming its path
    :param stream: where dry-run output goes; sys.stdout by default
    :return: list of the Paths written (or that would have been written)
    """
    root = Path(output_dir)
    written = []
    for relpath in sorted(outputs):
        path = root / relpath
        written.append(path)
        if dry_run:
            print(f"============ {path} ============", file=stream)
            print(outputs[relpath], file=stream)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(outputs[relpath])
        logger.info(f"Wrote {path}")
    return written


def build_from_manifest(manifest_path: str, output_dir: str = ".",
                        package: str = "apis", dry_run: bool = False,
                        style: Optional[str] = "black", stream=sys.stdout) -> List[Path]:
    """
    Runs a whole generation: load, build, generate, write

    :param manifest_path: string; path to the version manifest YAML
    :param output_dir: string; directory to write the generated package into
    :param package: string; name of the generated package
    :param dry_run: if True, print instead of writing
    :param style: formatter to apply; see get_python_source()
    :param stream: where dry-run output goes
    :return: list of the Paths written
    """
    manifest = load_manifest(path=manifest_path)
    registry = VersionRegistry.from_manifest(manifest)
    outputs = generate_all(registry, package=package, style=style)
    return write_files(outputs, output_dir, dry_run=dry_run, stream=stream)
