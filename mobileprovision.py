import contextlib
import logging
import pathlib
import plistlib
import shutil

import plistbuddy
import processes
import signing_settings
from misc import is_true, scratch_file, signer_hash
from signing_errors import ProcessExecutionError, ProcessTimeoutError, ProfileFieldMissingError, ProfileUnreadableError

logger = logging.getLogger(__name__)

PRODUCTION_EXPORT_METHODS = ('app-store', 'enterprise', 'developer-id')

UUID_KEY = 'UUID'
NAME_KEY = 'Name'
PROVISIONS_ALL_DEVICES_KEY = 'ProvisionsAllDevices'
PROVISIONED_DEVICES_KEY = 'ProvisionedDevices'
GET_TASK_ALLOW_KEY = 'Entitlements:get-task-allow'
CLOUD_CONTAINER_ENVIRONMENT_KEY = 'Entitlements:com.apple.developer.icloud-container-environment'


class Mobileprovision:
    def __init__(self, mobileprovision):
        self.mobileprovision = pathlib.Path(mobileprovision).expanduser().resolve()

    def __str__(self):
        return self.mobileprovision.as_posix()

    def decode(self):
        """Strip the CMS envelope and return the plist document as bytes."""
        security = signing_settings.load().security
        cms_cmd = ['cms', '-D', '-i', self.mobileprovision.as_posix()]
        try:
            plist_string = processes.run(security, cms_cmd).output
        except ProcessExecutionError as e:
            if not e.started or isinstance(e, ProcessTimeoutError):
                raise
            raise ProfileUnreadableError(self.mobileprovision, reason=str(e)) from e

        if not plist_string:
            raise ProfileUnreadableError(self.mobileprovision, reason='decoded document is empty')
        return plist_string.encode('utf-8')

    @contextlib.contextmanager
    def decoded(self):
        with scratch_file(self.decode()) as plist_path:
            yield plist_path

    def print_value(self, key_path):
        with self.decoded() as plist_path:
            return plistbuddy.print_from_plist(key_path, plist_path)

    def uuid(self):
        uuid = self.print_value(UUID_KEY)
        if not uuid:
            raise ProfileFieldMissingError(UUID_KEY, self.mobileprovision)
        return uuid

    def name(self):
        name = self.print_value(NAME_KEY)
        logger.debug('Provisioning profile %s name = %s', self.mobileprovision.name, name)
        return name or None

    def cloud_entitlement(self, export_method):
        """Return 'Production' or 'Development' for the iCloud container environment, None without one."""
        environment = self.print_value(CLOUD_CONTAINER_ENVIRONMENT_KEY)
        if not environment:
            return None

        logger.debug('Provisioning profile contains cloud entitlement')
        if export_method in PRODUCTION_EXPORT_METHODS:
            return 'Production'
        return 'Development'

    def is_enterprise_class(self):
        return is_true(self.print_value(PROVISIONS_ALL_DEVICES_KEY))

    def allows_get_task(self):
        return is_true(self.print_value(GET_TASK_ALLOW_KEY))

    def has_restricted_device_list(self):
        return bool(self.print_value(PROVISIONED_DEVICES_KEY))

    def plist(self):
        try:
            return plistlib.loads(self.decode())
        except plistlib.InvalidFileException as e:
            raise ProfileUnreadableError(self.mobileprovision, reason=str(e)) from e

    def entitlements(self):
        return self.plist().get('Entitlements', {})

    def developer_certificates(self):
        return self.plist().get('DeveloperCertificates', [])

    def signer_hashes(self):
        hashes = []
        for certificate in self.developer_certificates():
            if not isinstance(certificate, bytes):
                continue
            certificate_hash = signer_hash(certificate)
            if certificate_hash not in hashes:
                hashes.append(certificate_hash)
        return hashes

    def matches_certificate(self, sha1_hash):
        return sha1_hash.replace(':', '').strip().upper() in self.signer_hashes()

    def install(self, profiles_dir=None):
        uuid = self.uuid()
        installed_path = installed_profile_path(uuid, profiles_dir)
        # Missing until Xcode has run once on this host.
        installed_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.mobileprovision, installed_path)
        logger.info('Installed provisioning profile %s to %s', uuid, installed_path)
        return uuid


def installed_profile_path(uuid, profiles_dir=None):
    if profiles_dir is None:
        profiles_dir = signing_settings.load().resolved_profiles_dir()
    else:
        profiles_dir = pathlib.Path(profiles_dir).expanduser()
    return profiles_dir.joinpath(uuid.strip() + '.mobileprovision')


def delete_installed_profile(uuid, profiles_dir=None):
    installed_path = installed_profile_path(uuid, profiles_dir)
    logger.warning('Deleting provisioning profile: %s', installed_path)
    installed_path.unlink(missing_ok=True)
