"""按路径读写 .gxt 文件。"""

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from gxt_builder import build_gxt
from gxt_parser import load

log = logging.getLogger(__name__)

GXT_SUFFIX = '.gxt'


def read_gxt(path):
    data = Path(path).read_bytes()
    entries = load(data)
    log.info("loaded %s: %d entries", path, len(entries))
    return entries


def write_gxt(path, entries):
    """Build the buffer, then replace ``path`` in one step.

    The bytes go to a temporary file in the target directory first, so a
    failed build or write leaves the existing file untouched.
    """
    path = Path(path)
    data = build_gxt(entries)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + '.', suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    log.info("saved %s: %d bytes", path, len(data))
    return path


def startup_path(argv=None) -> Optional[str]:
    """双击 .gxt 启动时，路径通常在 argv[1]。"""
    if argv is None:
        argv = sys.argv
    if len(argv) < 2:
        return None
    p = argv[1]
    if p.lower().endswith(GXT_SUFFIX):
        return p
    return None
