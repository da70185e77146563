import contextlib
import hashlib
import os
import pathlib
import tempfile

import signing_settings


def paths_from_lines(string):
    return [pathlib.Path(line.strip(' "')) for line in string.splitlines() if line.strip(' "')]


def remove_ends(text, suffixes):
    for suffix in suffixes:
        if text.endswith(suffix):
            return text[:-len(suffix)]
    return text


def signer_hash(certificate):
    return hashlib.sha1(certificate).hexdigest().upper()


def is_true(value):
    return value is not None and value.strip().lower() == 'true'


@contextlib.contextmanager
def scratch_file(data, directory=None, suffix='.plist'):
    """Stage ``data`` in a uniquely named file and remove it on every exit path."""
    if directory is None:
        directory = signing_settings.load().resolved_scratch_dir()
    fd, name = tempfile.mkstemp(prefix='_signtmp-', suffix=suffix, dir=os.fspath(directory))
    path = pathlib.Path(name)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        yield path
    finally:
        path.unlink(missing_ok=True)
