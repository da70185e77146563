import logging
import os
import pathlib
import re

import certificates
import processes
import signing_settings
from misc import paths_from_lines, remove_ends
from signing_errors import KeychainSetupVerificationError, SigningIdentityNotFoundError

logger = logging.getLogger(__name__)

AUTO_LOCK_TIMEOUT = 7200
TEMP_KEYCHAIN_NAME = 'ios_signing_temp.keychain'

_IDENTITY_RE = re.compile(r'^\s*(?P<number>\d+)\) (?P<hash>[0-9A-F]+) "(?P<name>.+)"$')
_QUOTED_RE = re.compile(r'"(.+)"')
_CERTIFICATE_HASH_RE = re.compile(r'^SHA-1 hash: (?P<hash>[0-9A-F]+)$', re.MULTILINE)


def security(args, secrets=()):
    return processes.run(signing_settings.load().security, args, secrets=secrets)


def normalized_keychain_path(path):
    # security reports x.keychain as x.keychain-db and /tmp as /private/tmp
    resolved = pathlib.Path(path).expanduser().resolve()
    if resolved.name.endswith('.keychain-db'):
        return resolved.with_name(remove_ends(resolved.name, ['-db']))
    return resolved


def same_keychain(path, other):
    return normalized_keychain_path(path) == normalized_keychain_path(other)


class Keychains:
    @staticmethod
    def list_keychain_paths(domain='user'):
        output = security(['list-keychains', '-d', domain]).output
        logger.debug('listAllOutput = %s', output)
        return paths_from_lines(output)

    @staticmethod
    def rewrite_keychain_search(keychain_paths, domain='user'):
        list_keychains_cmd = ['list-keychains', '-d', domain, '-s']
        list_keychains_cmd.extend(pathlib.Path(path).as_posix() for path in keychain_paths)
        security(list_keychains_cmd)

    @staticmethod
    def is_in_keychain_search(keychain_path, domain='user'):
        return any(same_keychain(keychain_path, path) for path in Keychains.list_keychain_paths(domain))

    @staticmethod
    def default_keychain_path():
        output = security(['default-keychain']).output.strip(' "')
        if not output:
            return None
        return pathlib.Path(output)

    @staticmethod
    def temp_keychain_path():
        return signing_settings.load().resolved_temp_dir().joinpath(TEMP_KEYCHAIN_NAME)

    @staticmethod
    def clean_keychain_name(name):
        return remove_ends(name, ['.keychain', '.keychain-db'])


class Keychain:
    def __init__(self, keychain, password=None):
        is_user_keychain = isinstance(keychain, str) and keychain == os.path.basename(keychain)
        keychain_path = pathlib.Path(keychain)

        self.name = Keychains.clean_keychain_name(keychain_path.name)
        if is_user_keychain:
            user_keychain_dir = pathlib.Path.home().joinpath('Library', 'Keychains')
            self.path = user_keychain_dir.joinpath(self.name + '.keychain-db')
        else:
            self.path = keychain_path.expanduser()

        self.password = password if password is not None else ''

    def __str__(self):
        return self.path.as_posix()

    @property
    def db_path(self):
        if self.path.name.endswith('-db'):
            return self.path
        return self.path.with_name(self.path.name + '-db')

    def exists(self):
        return self.path.is_file() or self.db_path.is_file()

    def searchable(self):
        return Keychains.is_in_keychain_search(self.path)

    def create(self):
        logger.info('Creating keychain %s', self.path)
        security(['create-keychain', '-p', self.password, self.path.as_posix()], secrets=[self.password])

    def set_auto_lock(self, timeout=AUTO_LOCK_TIMEOUT):
        security(['set-keychain-settings', '-lut', str(timeout), self.path.as_posix()])

    def unlock(self):
        security(['unlock-keychain', '-p', self.password, self.path.as_posix()], secrets=[self.password])

    def delete(self):
        if self.exists():
            logger.info('Deleting keychain %s', self.path)
            security(['delete-keychain', self.path.as_posix()])

    def import_certificate(self, p12_path, p12_pass=None):
        p12_pass = p12_pass or ''
        import_cmd = ['import', os.fspath(p12_path),
                      '-P', p12_pass,
                      '-A',
                      '-t', 'cert',
                      '-f', 'pkcs12',
                      '-k', self.path.as_posix()]
        logger.info('Importing %s into keychain %s', p12_path, self.path)
        security(import_cmd, secrets=[p12_pass])

    def certificate_hashes(self):
        output = security(['find-certificate', '-a', '-Z', self.path.as_posix()]).output
        return [match.group('hash') for match in _CERTIFICATE_HASH_RE.finditer(output)]

    def has_certificate(self, p12_path, p12_pass=None):
        p12_hash = certificates.p12_sha1_hash(p12_path, p12_pass)
        return p12_hash is not None and p12_hash in self.certificate_hashes()

    def add_to_keychain_search(self):
        keychain_paths = Keychains.list_keychain_paths()
        if any(same_keychain(self.path, path) for path in keychain_paths):
            return False

        # Another process may rewrite the list between the read and the write; verify_searchable catches that.
        Keychains.rewrite_keychain_search(keychain_paths + [self.path])
        return True

    def verify_searchable(self):
        if not self.searchable():
            raise KeychainSetupVerificationError(self.path)

    def ensure(self, p12_path, p12_pass=None, reuse_if_exists=False):
        """Leave this keychain unlocked, holding the certificate, and in the user search list."""
        reused = reuse_if_exists and self.exists()
        if reused:
            logger.info('Reusing existing keychain %s', self.path)
        else:
            self.delete()
            self.create()
            self.set_auto_lock()

        self.unlock()

        if reused and self.has_certificate(p12_path, p12_pass):
            logger.info('Keychain %s already contains %s', self.path, p12_path)
        else:
            self.import_certificate(p12_path, p12_pass)

        self.add_to_keychain_search()
        self.verify_searchable()

    def get_codesign_identities(self):
        find_identity_cmd = ['find-identity', '-v', '-p', 'codesigning', self.path.as_posix()]
        identities = security(find_identity_cmd).output.splitlines()
        valid_identities = []
        for identity in identities:
            matches = _IDENTITY_RE.match(identity)
            if matches:
                valid_identities.append((matches['number'], matches['hash'], matches['name']))

        return valid_identities

    def find_signing_identity(self):
        output = security(['find-identity', '-v', '-p', 'codesigning', self.path.as_posix()]).output
        matches = _QUOTED_RE.search(output)
        if not matches:
            raise SigningIdentityNotFoundError(self.path)

        signing_identity = matches.group(1)
        logger.debug('findSigningIdentity = %s', signing_identity)
        return signing_identity

    def delete_certificate(self, sha1_hash):
        security(['delete-certificate', '-Z', sha1_hash, self.path.as_posix()])
