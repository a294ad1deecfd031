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
Exceptions raised while building resource models and generating conversion code

Errors split into two families. Configuration-level errors (ConfigError and
DeprecationPolicyViolation) stop a generation run before anything is produced.
Resource-level errors (SchemaError, RenameInconsistencyError and
UnsupportedChangeError) only abort the resource they were raised for; the
generator collects them and raises a single GenerationError once the batch
has been processed.
"""
from typing import List, Tuple


class HenkanError(Exception):
    pass


class ConfigError(HenkanError):
    """
    The generator configuration or version manifest is malformed or missing
    """


class SchemaError(HenkanError):
    """
    The API description can't be turned into a resource model

    Raised for unresolved shape references, configured field paths that don't
    resolve and derived type names that conflict with one another.
    """


class RenameInconsistencyError(HenkanError):
    """
    A rename points at a field that doesn't exist, or two old names map to
    the same new name
    """


class DeprecationPolicyViolation(HenkanError):
    """
    The hub version is deprecated or deprecation isn't oldest-first within a
    stability track
    """


class UnsupportedChangeError(HenkanError):
    """
    A field change reached code generation that can't be converted mechanically
    """


class VersionNotFoundError(HenkanError):
    pass


class VersionDeprecatedError(HenkanError):
    pass


class AnnotationError(HenkanError):
    """
    A conversion annotation value can't be decoded
    """


class GenerationError(HenkanError):
    """
    One or more resources failed to generate

    The failures attribute is a list of (resource name, exception) pairs in
    the order they were encountered.
    """
    def __init__(self, failures: List[Tuple[str, Exception]]):
        self.failures = failures
        details = "; ".join(f"{name}: {e}" for name, e in failures)
        super(GenerationError, self).__init__(f"{len(failures)} resource(s) failed "
                                              f"to generate: {details}")
