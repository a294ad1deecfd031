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
from datetime import datetime, timezone
import importlib
from io import StringIO
import sys

import pytest

from henkan.config import APIInfo, GeneratorConfig, config_from_dict
from henkan.errors import (ConfigError, GenerationError, SchemaError,
                           UnsupportedChangeError)
from henkan.generate import (build_from_manifest, generate_all, get_python_source,
                             write_files)
from henkan.runtime import ObjectMeta, ResourceMetadata, SecretKeyReference
from henkan.shapes import API
from henkan.versions import VersionRegistry
from samples import (api_doc, operation, scalar, storage_hub_doc, storage_registry,
                     storage_spoke_doc, structure, write_storage_manifest)


package = "storage_apis"
outputs = None
generated = None


def beginning(out_dir):
    global outputs, generated
    outputs = generate_all(storage_registry(), package=package, style=None)
    write_files(outputs, str(out_dir))
    sys.path.insert(0, str(out_dir))
    generated = importlib.import_module(package)


def ending(out_dir):
    sys.path.remove(str(out_dir))
    for name in [m for m in sys.modules if m == package or m.startswith(f"{package}.")]:
        del sys.modules[name]


@pytest.fixture(scope='module', autouse=True)
def setup(tmp_path_factory):
    out_dir = tmp_path_factory.mktemp("generated")
    beginning(out_dir)
    yield generated
    ending(out_dir)


class GenerateTestExp(Exception):
    pass


def hub_types():
    return importlib.import_module(f"{package}.v1.types")


def spoke_module():
    return importlib.import_module(f"{package}.v1alpha1")


def make_hub_bucket():
    hub = hub_types()
    rules = [hub.Rule(id="r1", days=30, filter=hub.Filter(prefix="logs/"),
                      subRules=[hub.Rule(id="r2", subRules=[])]),
             None]
    return hub.Bucket(
        metadata=ObjectMeta(name="b1", namespace="prod", annotations={"keep": "me"}),
        spec=hub.BucketSpec(name="b1", size=3, tags={"env": "prod"},
                            password=SecretKeyReference(name="creds", key="pw"),
                            config=hub.BucketConfig(versioning=True, rules=rules)),
        status=hub.BucketStatus(
            resourceMetadata=ResourceMetadata(identifier="arn:b1", region="eu-west-1"),
            location="eu-west-1",
            createdAt=datetime(2021, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
            state=hub.BucketState.in_use))


def widget_doc(size_type: str, service: str = "Widgets") -> dict:
    shapes = {"String": scalar("string"), "Integer": scalar("integer"),
              "CreateWidgetRequest": structure(Name="String", Size=size_type),
              "CreateGadgetRequest": structure(Name="String")}
    return api_doc(shapes, [operation("CreateWidget", "CreateWidgetRequest"),
                            operation("CreateGadget", "CreateGadgetRequest")],
                   service=service)


def test01():
    """
    the generated files
    """
    assert list(outputs) == ["storage_apis/__init__.py",
                             "storage_apis/v1/__init__.py",
                             "storage_apis/v1/types.py",
                             "storage_apis/v1alpha1/__init__.py",
                             "storage_apis/v1alpha1/conversion.py",
                             "storage_apis/v1alpha1/types.py"]


def test02():
    """
    the package knows its hub and versions
    """
    assert generated.hub_version == "v1"
    assert generated.versions == ["v1alpha1", "v1"]


def test03():
    """
    generated classes have the right defaults
    """
    hub = hub_types()
    b = hub.Bucket()
    assert b.apiVersion == "storage.henkan.io/v1"
    assert b.kind == "Bucket"
    assert isinstance(b.spec, hub.BucketSpec)
    assert isinstance(b.status, hub.BucketStatus)
    assert b.status.resourceMetadata is None
    assert b.spec.password is None
    assert hub.BucketState.in_use == "in-use"
    spoke = spoke_module()
    assert spoke.Bucket().apiVersion == "storage.henkan.io/v1alpha1"
    assert spoke.BucketSpec(legacy="x").legacy == "x"


def test04():
    """
    the types module lists its classes
    """
    hub = hub_types()
    assert sorted(hub.__all__) == ["Bucket", "BucketConfig", "BucketSpec",
                                   "BucketState", "BucketStatus", "Filter", "Rule"]
    assert "from __future__ import annotations" in outputs["storage_apis/v1/types.py"]
    assert "password: Optional[SecretKeyReference] = None" in \
        outputs["storage_apis/v1/types.py"]


def test05():
    """
    the conversion module only exports the conversion functions
    """
    spoke = spoke_module()
    conversion = importlib.import_module(f"{package}.v1alpha1.conversion")
    assert conversion.__all__ == ["convert_bucket_to_hub", "convert_bucket_from_hub"]
    assert spoke.convert_bucket_to_hub is conversion.convert_bucket_to_hub
    assert "def _copy_rule_to_hub(src):" in outputs["storage_apis/v1alpha1/conversion.py"]
    assert "conversion" not in outputs["storage_apis/v1/__init__.py"]


def test06():
    """
    hub to spoke and back gives the original object
    """
    spoke = spoke_module()
    original = make_hub_bucket()
    as_spoke = spoke.Bucket()
    spoke.convert_bucket_from_hub(original, as_spoke)
    assert as_spoke.spec.bucketName == "b1"
    assert as_spoke.spec.legacy is None
    assert as_spoke.spec.config.rules[0].subRules[0].id == "r2"
    assert as_spoke.spec.config.rules[1] is None
    assert as_spoke.status.location == "eu-west-1"
    back = hub_types().Bucket()
    spoke.convert_bucket_to_hub(as_spoke, back)
    assert back == original
    assert back.metadata.annotations == {"keep": "me"}


def test07():
    """
    hub-only values ride along in annotations while in the spoke version
    """
    spoke = spoke_module()
    as_spoke = spoke.Bucket()
    spoke.convert_bucket_from_hub(make_hub_bucket(), as_spoke)
    annotations = as_spoke.metadata.annotations
    assert annotations["conversions.henkan.io/status.State"] == "string=in-use"
    assert annotations["conversions.henkan.io/spec.Tags"] == 'json={"env": "prod"}'
    assert "conversions.henkan.io/spec.Password" in annotations
    assert "conversions.henkan.io/status.CreatedAt" in annotations
    assert "conversions.henkan.io/spec.Name" not in annotations
    assert annotations["keep"] == "me"


def test08():
    """
    spoke to hub and back gives the original object
    """
    spoke = spoke_module()
    original = spoke.Bucket(metadata=ObjectMeta(name="b2"),
                            spec=spoke.BucketSpec(bucketName="b2", legacy="old-style",
                                                  config=spoke.BucketConfig(
                                                      versioning=False)),
                            status=spoke.BucketStatus(location="us-east-1"))
    as_hub = hub_types().Bucket()
    spoke.convert_bucket_to_hub(original, as_hub)
    assert as_hub.spec.name == "b2"
    assert as_hub.spec.password is None
    assert as_hub.metadata.annotations == {
        "conversions.henkan.io/spec.Legacy": "string=old-style"}
    back = spoke.Bucket()
    spoke.convert_bucket_from_hub(as_hub, back)
    assert back == original
    assert back.metadata.annotations == {}


def test09():
    """
    conversion doesn't share mutable values between the two objects
    """
    spoke = spoke_module()
    original = make_hub_bucket()
    as_spoke = spoke.Bucket()
    spoke.convert_bucket_from_hub(original, as_spoke)
    as_spoke.spec.config.rules[0].filter.prefix = "changed/"
    as_spoke.metadata.annotations["extra"] = "x"
    assert original.spec.config.rules[0].filter.prefix == "logs/"
    assert "extra" not in original.metadata.annotations


def test10():
    """
    an unset Spec stays unset
    """
    spoke = spoke_module()
    src = hub_types().Bucket(spec=None)
    dst = spoke.Bucket()
    spoke.convert_bucket_from_hub(src, dst)
    assert dst.spec == spoke.BucketSpec()


def test11():
    """
    generation is deterministic
    """
    again = generate_all(storage_registry(), package=package, style=None)
    assert again == outputs


def test12():
    """
    formatting with black gives code that compiles
    """
    formatted = generate_all(storage_registry(), package="formatted", style="black")
    for path, code in formatted.items():
        compile(code, path, "exec")
    assert formatted["formatted/v1alpha1/conversion.py"] != \
        outputs["storage_apis/v1alpha1/conversion.py"]


def test13():
    """
    the formatters
    """
    assert get_python_source("x=1\n", style=None) == "x=1\n"
    assert get_python_source("x=1\n", style="black") == "x = 1\n"
    assert get_python_source("x = 1\n", style="black") == "x = 1\n"
    assert get_python_source("x=1\n", style="autopep8") == "x = 1\n"
    try:
        get_python_source("x=1\n", style="yapf")
        raise GenerateTestExp("should have raised")
    except ConfigError as e:
        assert "yapf" in str(e)


def test14():
    """
    unknown styles are rejected before anything is generated
    """
    try:
        generate_all(storage_registry(), style="yapf")
        raise GenerateTestExp("should have raised")
    except ConfigError as e:
        assert "yapf" in str(e)


def test15():
    """
    failures are collected across resources and nothing is returned
    """
    registry = VersionRegistry("v1", {"v1": APIInfo(), "v1alpha1": APIInfo()})
    registry.register("v1", API.from_dict(widget_doc("String")), GeneratorConfig())
    registry.register("v1alpha1", API.from_dict(widget_doc("Integer")), GeneratorConfig())
    try:
        generate_all(registry, style=None)
        raise GenerateTestExp("should have raised")
    except GenerationError as e:
        assert [name for name, _ in e.failures] == ["v1alpha1/Widget"]
        assert isinstance(e.failures[0][1], UnsupportedChangeError)
        assert "1 resource(s) failed" in str(e)


def test16():
    """
    resources that couldn't be built are failures too
    """
    registry = VersionRegistry("v1", {"v1": APIInfo(), "v1alpha1": APIInfo()})
    registry.register("v1", API.from_dict(storage_hub_doc()), GeneratorConfig())
    bad = config_from_dict({"resources": {"Bucket": {"fields": {
        "Owner": {"from": {"operation": "CreateBucket", "path": "Owner"}}}}}})
    registry.register("v1alpha1", API.from_dict(storage_spoke_doc()), bad)
    try:
        generate_all(registry, style=None)
        raise GenerateTestExp("should have raised")
    except GenerationError as e:
        assert [name for name, _ in e.failures] == ["v1alpha1/Bucket"]
        assert isinstance(e.failures[0][1], SchemaError)


def test17():
    """
    versions with different resources fail as a whole
    """
    doc = storage_spoke_doc()
    doc["shapes"]["CreateGadgetRequest"] = structure(Name="String")
    doc["operations"]["CreateGadget"] = operation("CreateGadget", "CreateGadgetRequest")
    registry = VersionRegistry("v1", {"v1": APIInfo(), "v1alpha1": APIInfo()})
    registry.register("v1", API.from_dict(storage_hub_doc()), GeneratorConfig())
    registry.register("v1alpha1", API.from_dict(doc), GeneratorConfig())
    try:
        generate_all(registry, style=None)
        raise GenerateTestExp("should have raised")
    except GenerationError as e:
        assert e.failures[0][0] == "v1alpha1"
        assert "Gadget" in str(e)


def test18():
    """
    a registry with only the hub
    """
    registry = VersionRegistry("v1", {"v1": APIInfo()})
    registry.register("v1", API.from_dict(storage_hub_doc()), GeneratorConfig())
    result = generate_all(registry, package="solo", style=None)
    assert list(result) == ["solo/__init__.py", "solo/v1/__init__.py",
                            "solo/v1/types.py"]


def test19(tmp_path):
    """
    dry runs print instead of writing
    """
    out = StringIO()
    paths = write_files({"pkg/a.py": "A = 1\n"}, str(tmp_path), dry_run=True, stream=out)
    assert paths == [tmp_path / "pkg" / "a.py"]
    assert not (tmp_path / "pkg").exists()
    text = out.getvalue()
    assert f"============ {tmp_path / 'pkg' / 'a.py'} ============" in text
    assert "A = 1" in text


def test20(tmp_path):
    """
    generate everything from a manifest on disk
    """
    manifest = write_storage_manifest(tmp_path / "src")
    out_dir = tmp_path / "out"
    written = build_from_manifest(str(manifest), str(out_dir), package="from_manifest",
                                  style=None)
    assert (out_dir / "from_manifest" / "v1alpha1" / "conversion.py") in written
    assert (out_dir / "from_manifest" / "v1" / "types.py").read_text() == \
        outputs["storage_apis/v1/types.py"]


def test21(tmp_path):
    """
    deprecated versions aren't generated
    """
    manifest = write_storage_manifest(tmp_path, deprecated=["v1alpha1"])
    out = StringIO()
    written = build_from_manifest(str(manifest), str(tmp_path / "out"), dry_run=True,
                                  style=None, stream=out)
    assert [p.relative_to(tmp_path / "out").as_posix() for p in written] == \
        ["apis/__init__.py", "apis/v1/__init__.py", "apis/v1/types.py"]
    assert "versions = ['v1']" in out.getvalue()
    assert not (tmp_path / "out").exists()


if __name__ == "__main__":
    import tempfile
    from pathlib import Path
    with tempfile.TemporaryDirectory() as d:
        beginning(Path(d))
        the_tests = {k: v for k, v in globals().items()
                     if k.startswith('test') and callable(v)}
        try:
            for k, v in the_tests.items():
                if v.__code__.co_argcount:
                    continue
                try:
                    v()
                except Exception as e:
                    print(f'{k} failed with {str(e)}, {e.__class__}')
                    raise
        finally:
            ending(Path(d))
