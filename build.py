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
This program generates the versioned resource packages for a service

It works off a version manifest that names the hub version and, for every
version, the API description and generator configuration to use. For each
version that isn't deprecated it writes a sub-package holding the version's
classes, and for every spoke version a module with the functions that
convert its resources to and from the hub.

Usage is:

    python build.py <manifest.yaml> [<output dir>] [--dry-run] [-v|-q]

The generated package is named 'apis' and is created in the output directory,
which defaults to the cwd. With --dry-run nothing is written; each file is
printed to stdout instead. -v adds per-field detail to the log, -q limits it
to warnings and errors.
"""
import sys

from henkan.errors import HenkanError
from henkan.generate import build_from_manifest
from henkan.log import configure_logging, get_logger


def build_it(manifest_path: str, output_dir: str = ".", dry_run: bool = False):
    """
    Initiate the manifest-driven generation

    :param manifest_path: string; path to the version manifest
    :param output_dir: string; directory to create the 'apis' package in
    :param dry_run: if True, print the generated files instead of writing them
    """
    written = build_from_manifest(manifest_path, output_dir, dry_run=dry_run)
    if not dry_run:
        get_logger().info(f"{len(written)} file(s) written to {output_dir}")


if __name__ == "__main__":
    flags = {a for a in sys.argv[1:] if a.startswith("-")}
    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    unknown = flags - {"--dry-run", "-v", "-q"}
    if not args or len(args) > 2 or unknown:
        print(f"usage: {sys.argv[0]} <manifest.yaml> [<output dir>] [--dry-run] [-v|-q]")
        sys.exit(1)
    configure_logging(verbose="-v" in flags, quiet="-q" in flags)
    try:
        build_it(args[0], args[1] if len(args) == 2 else ".",
                 dry_run="--dry-run" in flags)
    except HenkanError as e:
        print(f">>>Generation failed: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)
