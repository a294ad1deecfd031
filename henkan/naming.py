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
import keyword
import re
from dataclasses import dataclass
from typing import List, NamedTuple

from henkan.errors import ConfigError


# appended to generated identifiers that would otherwise clash with something
# already in the generated module
conflicting_name_suffix = "_SDK"


_word_re = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")


def split_words(name: str) -> List[str]:
    """
    Breaks an identifier into its component words

    Handles camel case, pascal case, snake case and runs of capitals that
    form an acronym, so 'KMSKeyId', 'kms_key_id' and 'KmsKeyId' all split
    into three words.

    :param name: string; any identifier-ish name from an API description
    :return: list of the words in name, case preserved
    """
    words = []
    for part in re.split(r"[^A-Za-z0-9]+", name):
        words.extend(_word_re.findall(part))
    return words


def safe_identifier(name: str) -> str:
    """
    Returns name, with a trailing '_' if name is a Python keyword
    """
    return f"{name}_" if keyword.iskeyword(name) else name


@dataclass(frozen=True)
class Names:
    """
    The forms of a single name that the generator needs

    original is the name as it appears in the API description; camel is the
    pascal-cased form used for class names and field keys; camel_lower is the
    attribute name used in generated classes; snake is used to build variable
    and function names in generated code.
    """
    original: str
    camel: str
    camel_lower: str
    snake: str


def new_names(original: str) -> Names:
    words = split_words(original)
    if not words:
        raise ConfigError(f"Can't derive an identifier from {original!r}")
    camel = "".join(w[0].upper() + w[1:] for w in words)
    camel_lower = words[0].lower() + "".join(w[0].upper() + w[1:] for w in words[1:])
    snake = "_".join(w.lower() for w in words)
    return Names(original=original, camel=camel,
                 camel_lower=safe_identifier(camel_lower),
                 snake=safe_identifier(snake))


def camel_to_pep8(name: str) -> str:
    """
    Converts a camelcase identifier name a PEP8 name using underscores

    :param name: string; a possibly camel-cased name
    :return: a PEP8 equivalent; acronyms stay together, so 'FQDNName' becomes
        'fqdn_name'
    """
    return new_names(name).snake


def singularize(noun: str) -> str:
    """
    Naive English singular for the plural nouns used in List/Describe operations
    """
    if noun.endswith("ies"):
        return noun[:-3] + "y"
    if noun.endswith(("sses", "shes", "ches", "xes", "uses")):
        return noun[:-2]
    # Status, Address and Analysis are already singular
    if noun.endswith("s") and not noun.endswith(("ss", "us", "is")):
        return noun[:-1]
    return noun


def is_plural(noun: str) -> bool:
    return singularize(noun) != noun


def sanitize_enum_value(value: str) -> str:
    """
    Turns an enum value into something usable as a class attribute name

    Every character that isn't a letter or digit becomes '_', so 'm5.xlarge'
    becomes 'm5_xlarge'.
    """
    clean = re.sub(r"[^A-Za-z0-9]", "_", value)
    if not clean or clean[0].isdigit():
        clean = f"_{clean}"
    return safe_identifier(clean)


_kube_version_re = re.compile(r"^v(\d+)(?:(alpha|beta)(\d+))?$")

_track_order = {"alpha": 0, "beta": 1, "ga": 2}


class KubeVersion(NamedTuple):
    major: int
    track: str
    minor: int


def parse_kube_version(version: str) -> KubeVersion:
    """
    Splits a Kubernetes-style API version into major version, track and minor version

    :param version: string; something like 'v1', 'v2beta1' or 'v1alpha3'
    :return: a KubeVersion; GA versions have the track 'ga' and minor 0
    :raises ConfigError: if version doesn't look like a Kubernetes API version
    """
    m = _kube_version_re.match(version)
    if m is None:
        raise ConfigError(f"Version {version!r} is not a valid API version")
    major, track, minor = m.groups()
    if track is None:
        return KubeVersion(int(major), "ga", 0)
    return KubeVersion(int(major), track, int(minor))


def kube_version_key(version: str) -> tuple:
    """
    Sort key that puts API versions in Kubernetes order, oldest first
    """
    kv = parse_kube_version(version)
    return kv.major, _track_order[kv.track], kv.minor
