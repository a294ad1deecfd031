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
Logging for the generator

Modules get their logger with get_logger(__name__); everything hangs off the
'henkan' logger so a single call to configure_logging() controls all output.
"""
import logging
import sys

_root_logger_name = "henkan"


def get_logger(name: str = None) -> logging.Logger:
    """
    Returns a child of the 'henkan' logger

    :param name: a module __name__, or None for the 'henkan' logger itself
    :return: logging.Logger
    """
    if name is None or name == _root_logger_name:
        return logging.getLogger(_root_logger_name)
    short = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"{_root_logger_name}.{short}")


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Sets up the 'henkan' logger hierarchy to write to stderr

    :param verbose: if True, log at DEBUG (includes per-field delta detail)
    :param quiet: if True, only log warnings and errors; verbose wins if both
        are set
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(level)
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
