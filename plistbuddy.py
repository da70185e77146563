import logging
import os

import processes
import signing_settings
from misc import scratch_file
from signing_errors import ProcessExecutionError, ProcessTimeoutError

logger = logging.getLogger(__name__)


def print_from_plist(key_path, plist):
    """Return the text PlistBuddy prints for ``key_path``, or None if it cannot print it.

    ``plist`` is a path to a property list, or the document itself as bytes.
    A key that does not exist and a document PlistBuddy cannot parse both
    come back as None. A PlistBuddy that cannot be started still raises.
    """
    if isinstance(plist, (bytes, bytearray)):
        with scratch_file(bytes(plist)) as plist_path:
            return print_from_plist(key_path, plist_path)

    plistbuddy = signing_settings.load().plistbuddy
    try:
        result = processes.run(plistbuddy, ['-c', 'Print ' + key_path, os.fspath(plist)])
    except ProcessExecutionError as e:
        if not e.started or isinstance(e, ProcessTimeoutError):
            raise
        logger.debug('Exception when looking for %s in plist %s: %s', key_path, plist, e)
        return None

    return result.output.strip()


def bundle_id_from_plist(plist_path):
    bundle_id = print_from_plist('CFBundleIdentifier', plist_path)
    logger.debug('bundle id from %s = %s', plist_path, bundle_id)
    return bundle_id
