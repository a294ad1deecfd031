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
import logging

import pytest

from henkan.builder import (build_module_def, get_enum_defs, get_resources,
                            get_type_defs, resolve_secret_attrs)
from henkan.config import config_from_dict
from henkan.errors import SchemaError
from henkan.model import parent_field_path
from henkan.shapes import API
from samples import (api_doc, list_of, map_of, operation, queue_config_dict, queue_doc,
                     scalar, storage_hub_config_dict, storage_hub_doc,
                     storage_spoke_doc, structure, users_doc)


hub_md = None
spoke_md = None


def beginning():
    global hub_md, spoke_md
    hub_md = build_module_def("v1", API.from_dict(storage_hub_doc()),
                              config_from_dict(storage_hub_config_dict()),
                              group="storage.henkan.io")
    spoke_md = build_module_def("v1alpha1", API.from_dict(storage_spoke_doc()),
                                config_from_dict({}))


@pytest.fixture(scope='module', autouse=True)
def setup():
    beginning()
    yield


class BuilderTestExp(Exception):
    pass


users_secrets = {"resources": {"Cluster": {"fields": {
    "Users..Credentials.Password": {"is_secret": True},
    "MasterCredentials.Password": {"is_secret": True}}}}}


def test01():
    """
    one resource per create operation
    """
    assert [r.names.camel for r in hub_md.resources] == ["Bucket"]
    assert hub_md.get_resource("Bucket") is hub_md.resources[0]
    assert hub_md.get_resource("Queue") is None


def test02():
    """
    create input members become the Spec, renamed where configured
    """
    bucket = hub_md.get_resource("Bucket")
    assert sorted(bucket.spec_fields) == ["Config", "Name", "Password", "Size", "Tags"]
    assert bucket.spec_fields["Name"].shape_ref.shape_name == "String"
    assert bucket.spec_fields["Name"].attr_name == "name"


def test03():
    """
    create output members become the Status, without the identifier or Spec fields
    """
    bucket = hub_md.get_resource("Bucket")
    assert sorted(bucket.status_fields) == ["CreatedAt", "Location", "State"]
    assert bucket.identifier_member == "BucketArn"


def test04():
    """
    the spoke's fields
    """
    bucket = spoke_md.get_resource("Bucket")
    assert sorted(bucket.spec_fields) == ["BucketName", "Config", "Legacy", "Size"]
    assert sorted(bucket.status_fields) == ["Location"]


def test05():
    """
    field configuration is attached to fields
    """
    bucket = hub_md.get_resource("Bucket")
    assert bucket.spec_fields["Password"].is_secret
    assert not bucket.spec_fields["Name"].is_secret
    assert not bucket.spec_fields["Password"].is_read_only


def test06():
    """
    nested fields are materialized with their paths
    """
    bucket = hub_md.get_resource("Bucket")
    nested = sorted(p for p in bucket.fields if "." in p)
    assert nested == ["Config.Rules", "Config.Rules..Days", "Config.Rules..Filter",
                      "Config.Rules..Filter.Prefix", "Config.Rules..Id",
                      "Config.Rules..SubRules", "Config.Versioning"], nested


def test07():
    """
    parent paths step over list and map elements
    """
    assert parent_field_path("Config.Rules..Id") == "Config.Rules"
    assert parent_field_path("Config.Rules") == "Config"
    assert parent_field_path("Config.Rules..Filter.Prefix") == "Config.Rules..Filter"
    assert parent_field_path("Config") == ""


def test08():
    """
    type defs for the reachable structures that aren't payloads
    """
    assert [td.names.camel for td in hub_md.type_defs] == ["BucketConfig", "Filter",
                                                           "Rule"]
    rule = hub_md.get_type_def("Rule")
    assert sorted(rule.attrs) == ["Days", "Filter", "Id", "SubRules"]
    assert hub_md.get_type_def("CreateBucketRequest") is None
    assert hub_md.get_type_def("BucketDescription") is None


def test09():
    """
    enum defs with sanitized values
    """
    assert [ed.names.camel for ed in hub_md.enum_defs] == ["BucketState"]
    values = [(v.original, v.clean) for v in hub_md.enum_defs[0].values]
    assert values == [("creating", "creating"), ("available", "available"),
                      ("in-use", "in_use")]
    assert spoke_md.enum_defs == []


def test10():
    """
    python types of fields
    """
    bucket = hub_md.get_resource("Bucket")
    expected = {"Config": "BucketConfig",
                "Name": "str",
                "Password": "SecretKeyReference",
                "Size": "int",
                "Tags": "Dict[str, str]"}
    for name, ptype in expected.items():
        f = bucket.spec_fields[name]
        assert hub_md.python_type(f.shape_ref, f.is_secret) == ptype, name
    created = bucket.status_fields["CreatedAt"]
    assert hub_md.python_type(created.shape_ref) == "datetime"
    rules = hub_md.get_type_def("BucketConfig").attrs["Rules"]
    assert hub_md.python_type(rules.shape_ref) == "List[Rule]"
    assert hub_md.python_type(None) == "str"


def test11():
    """
    apiVersion with and without a group
    """
    assert hub_md.api_version == "storage.henkan.io/v1"
    assert spoke_md.api_version == "v1alpha1"


def test12():
    """
    payload shapes can't be used as field types
    """
    try:
        hub_md.type_name(hub_md.api.shapes["CreateBucketRequest"])
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "CreateBucketRequest" in str(e)


def test13():
    """
    ignored resources and operations
    """
    api = API.from_dict(storage_hub_doc())
    cfg = config_from_dict({"ignore": {"resource_names": ["Bucket"]}})
    assert get_resources(api, cfg) == []
    cfg = config_from_dict({"ignore": {"operations": ["CreateBucket"]}})
    assert get_resources(api, cfg) == []


def test14():
    """
    the configured primary identifier
    """
    cfg = config_from_dict({"resources": {"Bucket": {"primary_identifier": "Location"}}})
    md = build_module_def("v1", API.from_dict(storage_hub_doc()), cfg)
    bucket = md.get_resource("Bucket")
    assert bucket.identifier_member == "Location"
    assert "BucketArn" in bucket.status_fields
    assert "Location" not in bucket.status_fields


def test15():
    """
    a read-only field whose shape comes from another operation
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "LocationConstraint": {"is_read_only": True,
                               "from": {"operation": "GetBucketLocation",
                                        "path": "LocationConstraint"}}}}}})
    md = build_module_def("v1", API.from_dict(storage_hub_doc()), cfg)
    f = md.get_resource("Bucket").status_fields["LocationConstraint"]
    assert f.shape_ref.shape_name == "String"
    assert f.is_read_only


def test16():
    """
    a Spec field whose shape comes from another operation's input
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "DescribeName": {"from": {"operation": "DescribeBucket",
                                  "path": "BucketName"}}}}}})
    md = build_module_def("v1", API.from_dict(storage_hub_doc()), cfg)
    assert "DescribeName" in md.get_resource("Bucket").spec_fields


def test17():
    """
    a 'from' path that can't be found fails the resource
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "Owner": {"is_read_only": True,
                  "from": {"operation": "GetBucketLocation", "path": "Owner"}}}}}})
    api = API.from_dict(storage_hub_doc())
    try:
        get_resources(api, cfg)
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "Owner" in str(e) and "GetBucketLocation" in str(e)


def test18():
    """
    failures can be collected instead of raised
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "Owner": {"from": {"operation": "CreateBucket", "path": "Owner"}}}}}})
    md = build_module_def("v1", API.from_dict(storage_hub_doc()), cfg,
                          collect_failures=True)
    assert md.resources == []
    assert len(md.failures) == 1
    name, e = md.failures[0]
    assert name == "Bucket"
    assert isinstance(e, SchemaError)


def test19(caplog):
    """
    fields with no shape that aren't attributes are skipped with a warning
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {"Color": None}}}})
    with caplog.at_level(logging.WARNING, logger="henkan"):
        resources = get_resources(API.from_dict(storage_hub_doc()), cfg)
    assert "Color" not in resources[0].spec_fields
    assert "Color" in caplog.text


def test20(caplog):
    """
    nested field configuration that matches nothing is warned about
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "Config.Nope": {"is_secret": True}}}}})
    with caplog.at_level(logging.WARNING, logger="henkan"):
        get_resources(API.from_dict(storage_hub_doc()), cfg)
    assert "Config.Nope" in caplog.text


def test21():
    """
    unpacking an attributes map
    """
    md = build_module_def("v1", API.from_dict(queue_doc()),
                          config_from_dict(queue_config_dict()))
    queue = md.get_resource("Queue")
    assert sorted(queue.spec_fields) == ["DelaySeconds", "Policy", "QueueName"]
    assert sorted(queue.status_fields) == ["QueueArn", "QueueUrl"]
    assert queue.spec_fields["DelaySeconds"].shape_ref is None
    assert queue.spec_fields["DelaySeconds"].is_attribute
    assert queue.status_fields["QueueArn"].shape_ref is None
    assert md.python_type(queue.spec_fields["Policy"].shape_ref) == "str"
    assert queue.ops.get_attributes.name == "GetQueueAttributes"
    assert queue.ops.set_attributes.name == "SetQueueAttributes"


def test22(caplog):
    """
    attribute fields are skipped when the resource doesn't unpack its attributes
    """
    cfg = queue_config_dict()
    cfg["resources"]["Queue"]["unpack_attributes_map"] = False
    with caplog.at_level(logging.WARNING, logger="henkan"):
        md = build_module_def("v1", API.from_dict(queue_doc()), config_from_dict(cfg))
    queue = md.get_resource("Queue")
    assert sorted(queue.spec_fields) == ["Attributes", "QueueName"]
    assert "DelaySeconds" in caplog.text


def test23():
    """
    nested secret fields change the type of the owning structure's attribute
    """
    api = API.from_dict(users_doc())
    cfg = config_from_dict(users_secrets)
    resources = get_resources(api, cfg)
    secrets = resolve_secret_attrs(resources)
    assert secrets == {"Credentials": {"Password"}}
    type_defs, renames = get_type_defs(api, resources, secrets)
    assert renames == {}
    creds = [td for td in type_defs if td.names.camel == "Credentials"][0]
    assert creds.attrs["Password"].is_secret
    assert not creds.attrs["User"].is_secret


def test24():
    """
    a secret directly under a list element
    """
    api = API.from_dict(users_doc())
    cfg = config_from_dict({"resources": {"Cluster": {"fields": {
        "Users..Name": {"is_secret": True}}}}})
    md = build_module_def("v1", api, cfg)
    assert md.secret_attrs == {"User": {"Name"}}
    assert md.is_secret_attr("User", "Name")
    assert not md.is_secret_attr("Credentials", "Password")
    user = md.get_type_def("User")
    assert md.python_type(user.attrs["Name"].shape_ref,
                          user.attrs["Name"].is_secret) == "SecretKeyReference"


def test25():
    """
    a secret whose parent doesn't hold a structure
    """
    api = API.from_dict(users_doc())
    cfg = config_from_dict({"resources": {"Cluster": {"fields": {
        "ClusterName.Part": {"is_secret": True}}}}})
    resources = get_resources(api, cfg)
    try:
        resolve_secret_attrs(resources)
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "ClusterName" in str(e)
    failures = []
    assert resolve_secret_attrs(resources, failures) == {}
    assert failures[0][0] == "Cluster"


def test26():
    """
    structure names that clash with generated names get a suffix
    """
    shapes = {"String": scalar("string"),
              "WidgetSpec": structure(Color="String"),
              "Optional": structure(Value="String"),
              "CreateWidgetRequest": structure(Details="WidgetSpec", Extra="Optional")}
    api = API.from_dict(api_doc(shapes, [operation("CreateWidget", "CreateWidgetRequest")]))
    md = build_module_def("v1", api, config_from_dict({}))
    assert [td.names.camel for td in md.type_defs] == ["Optional_SDK", "WidgetSpec_SDK"]
    assert md.type_renames == {"WidgetSpec": "WidgetSpec_SDK",
                               "Optional": "Optional_SDK"}
    widget = md.get_resource("Widget")
    assert md.python_type(widget.spec_fields["Details"].shape_ref) == "WidgetSpec_SDK"


def test27():
    """
    two shapes that produce the same class name
    """
    shapes = {"String": scalar("string"),
              "Widget_Part": structure(Color="String"),
              "WidgetPart": structure(Color="String"),
              "CreateWidgetRequest": structure(A="Widget_Part", B="WidgetPart")}
    api = API.from_dict(api_doc(shapes, [operation("CreateWidget", "CreateWidgetRequest")]))
    resources = get_resources(api, config_from_dict({}))
    try:
        get_type_defs(api, resources)
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "WidgetPart" in str(e)


def test28():
    """
    enum values that sanitize to the same identifier
    """
    shapes = {"Mode": scalar("string", enum=["in-use", "in_use"]),
              "CreateWidgetRequest": structure(Mode="Mode")}
    api = API.from_dict(api_doc(shapes, [operation("CreateWidget", "CreateWidgetRequest")]))
    try:
        get_enum_defs(api, get_resources(api, config_from_dict({})))
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "in_use" in str(e)


def test29():
    """
    self-referential structures don't loop forever
    """
    shapes = {"String": scalar("string"),
              "Node": structure(Name="String", Children="NodeList"),
              "NodeList": list_of("Node"),
              "CreateTreeRequest": structure(Root="Node")}
    api = API.from_dict(api_doc(shapes, [operation("CreateTree", "CreateTreeRequest")]))
    md = build_module_def("v1", api, config_from_dict({}))
    tree = md.get_resource("Tree")
    assert sorted(tree.fields) == ["Root", "Root.Children", "Root.Name"]
    assert [td.names.camel for td in md.type_defs] == ["Node"]
    assert md.python_type(md.get_type_def("Node").attrs["Children"].shape_ref) == \
        "List[Node]"


def test30():
    """
    a create operation whose input refers to an undefined shape
    """
    shapes = {"CreateWidgetRequest": structure(Name="Nowhere")}
    api = API.from_dict(api_doc(shapes, [operation("CreateWidget", "CreateWidgetRequest")]))
    try:
        get_resources(api, config_from_dict({}))
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "Nowhere" in str(e)


def test31():
    """
    renames of every operation of a resource
    """
    bucket = hub_md.get_resource("Bucket")
    old_to_new, new_to_old = bucket.get_all_renames()
    assert old_to_new == {"BucketName": "Name"}
    assert new_to_old == {"Name": "BucketName"}
    assert bucket.has_shape_as_member("Filter")
    assert bucket.has_shape_as_member("RuleList")
    assert not bucket.has_shape_as_member("BucketDescription")


def test32(caplog):
    """
    configuring a create output member doesn't warn about a missing shape
    """
    cfg = config_from_dict({"resources": {"Bucket": {"fields": {
        "Location": {"is_secret": True}}}}})
    with caplog.at_level(logging.WARNING, logger="henkan"):
        resources = get_resources(API.from_dict(storage_hub_doc()), cfg)
    bucket = resources[0]
    assert "Location" not in bucket.spec_fields
    assert bucket.status_fields["Location"].is_secret
    assert "Location" not in caplog.text


def nested_widget_api(nested: dict) -> API:
    shapes = {"String": scalar("string"),
              "Nested": nested,
              "Holder": structure(Tree="Nested"),
              "CreateWidgetRequest": structure(Name="String", Tree="Nested")}
    return API.from_dict(api_doc(shapes, [operation("CreateWidget",
                                                    "CreateWidgetRequest")]))


def test33():
    """
    a list whose element is the list itself can't be built
    """
    try:
        build_module_def("v1", nested_widget_api(list_of("Nested")), config_from_dict({}))
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "Nested contains itself" in str(e)


def test34():
    """
    a map whose value is the map itself is recorded as a failure when collecting
    """
    md = build_module_def("v1", nested_widget_api(map_of("String", "Nested")),
                          config_from_dict({}), collect_failures=True)
    assert md.get_resource("Widget") is None
    assert [name for name, _ in md.failures] == ["Widget"]
    assert isinstance(md.failures[0][1], SchemaError)


def test35():
    """
    python_type refuses a list that contains itself
    """
    api = nested_widget_api(list_of("Nested"))
    try:
        hub_md.python_type(api.shapes["Holder"].members["Tree"])
        raise BuilderTestExp("should have raised")
    except SchemaError as e:
        assert "Nested contains itself" in str(e)


if __name__ == "__main__":
    beginning()
    the_tests = {k: v for k, v in globals().items()
                 if k.startswith('test') and callable(v)}
    for k, v in the_tests.items():
        if v.__code__.co_argcount:
            continue
        try:
            v()
        except Exception as e:
            print(f'{k} failed with {str(e)}, {e.__class__}')
            raise
