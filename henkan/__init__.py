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
henkan builds multi-version resource models from cloud API descriptions and
generates code that converts resources between the versions
"""
from henkan.annotations import (MISSING, annotate_field_data,
                                decode_field_data_annotation, pop_field_data,
                                set_field_data)
from henkan.builder import ModuleDef, build_module_def, get_resources
from henkan.config import (GeneratorConfig, VersionManifest, load_generator_config,
                           load_manifest)
from henkan.delta import (FieldChangeType, FieldDelta, ResourceDelta,
                          compute_fields_diff, compute_resource_deltas)
from henkan.errors import (AnnotationError, ConfigError, DeprecationPolicyViolation,
                           GenerationError, HenkanError, RenameInconsistencyError,
                           SchemaError, UnsupportedChangeError,
                           VersionDeprecatedError, VersionNotFoundError)
from henkan.generate import (build_from_manifest, generate_all, get_python_source,
                             write_files)
from henkan.runtime import (ObjectMeta, ResourceBase, ResourceMetadata,
                            SecretKeyReference)
from henkan.shapes import API
from henkan.versions import VersionRegistry

__version__ = "0.1.0"

__all__ = ["MISSING", "annotate_field_data", "decode_field_data_annotation",
           "pop_field_data", "set_field_data", "ModuleDef", "build_module_def",
           "get_resources", "GeneratorConfig", "VersionManifest",
           "load_generator_config", "load_manifest", "FieldChangeType", "FieldDelta",
           "ResourceDelta", "compute_fields_diff", "compute_resource_deltas",
           "AnnotationError", "ConfigError", "DeprecationPolicyViolation",
           "GenerationError", "HenkanError", "RenameInconsistencyError", "SchemaError",
           "UnsupportedChangeError", "VersionDeprecatedError", "VersionNotFoundError",
           "build_from_manifest", "generate_all", "get_python_source", "write_files",
           "ObjectMeta", "ResourceBase", "ResourceMetadata", "SecretKeyReference",
           "API", "VersionRegistry", "__version__"]
