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
Base classes used by generated resource modules
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from henkan.annotations import to_jsonable


@dataclass
class ObjectMeta:
    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResourceMetadata:
    """
    Identifies the cloud resource behind a generated resource object

    identifier holds the value of the resource's primary identifier (usually
    its ARN), which is kept here rather than in the Status.
    """
    identifier: Optional[str] = None
    ownerAccountID: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class SecretKeyReference:
    """
    Points at the key of a secret that holds a sensitive field's value
    """
    name: str
    key: str
    namespace: Optional[str] = None


@dataclass
class ResourceBase:
    apiVersion: str = ""
    kind: str = ""
    metadata: ObjectMeta = field(default_factory=ObjectMeta)

    def get_clean_dict(self) -> dict:
        """
        Returns a dict of the object with all unset attributes left out
        """
        return to_jsonable(self)
