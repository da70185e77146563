import enum
import logging

from collections import namedtuple

import plistbuddy
from misc import is_true
from mobileprovision import (GET_TASK_ALLOW_KEY, PROVISIONED_DEVICES_KEY, PROVISIONS_ALL_DEVICES_KEY,
                             Mobileprovision)
from signing_errors import SigningError

logger = logging.getLogger(__name__)


class ProfileType(str, enum.Enum):
    ENTERPRISE = 'enterprise'
    DEVELOPMENT = 'development'
    APP_STORE = 'app-store'
    AD_HOC = 'ad-hoc'
    DEVELOPER_ID = 'developer-id'

    def __str__(self):
        return self.value


# Raw PlistBuddy output per key, None where the key is absent.
ProfileSignals = namedtuple('ProfileSignals', ['provisions_all_devices', 'get_task_allow', 'provisioned_devices'])


def classify_ios(signals):
    if is_true(signals.provisions_all_devices):
        return ProfileType.ENTERPRISE
    if is_true(signals.get_task_allow):
        return ProfileType.DEVELOPMENT
    if not signals.provisioned_devices:
        return ProfileType.APP_STORE
    return ProfileType.AD_HOC


def classify_macos(signals):
    if is_true(signals.provisions_all_devices):
        return ProfileType.DEVELOPER_ID
    if not signals.provisioned_devices:
        return ProfileType.APP_STORE
    # mac-application exports are unsigned and never reach here.
    return ProfileType.DEVELOPMENT


def read_signals(mobileprovision):
    """Decode the profile once and query every key the classifiers look at."""
    with mobileprovision.decoded() as plist_path:
        signals = ProfileSignals(
            provisions_all_devices=plistbuddy.print_from_plist(PROVISIONS_ALL_DEVICES_KEY, plist_path),
            get_task_allow=plistbuddy.print_from_plist(GET_TASK_ALLOW_KEY, plist_path),
            provisioned_devices=plistbuddy.print_from_plist(PROVISIONED_DEVICES_KEY, plist_path),
        )
    logger.debug('provisionsAllDevices = %s, getTaskAllow = %s, provisionedDevices present = %s',
                  signals.provisions_all_devices, signals.get_task_allow, bool(signals.provisioned_devices))
    return signals


def _profile_type(mobileprovision, classify):
    if not isinstance(mobileprovision, Mobileprovision):
        mobileprovision = Mobileprovision(mobileprovision)
    try:
        return classify(read_signals(mobileprovision))
    except (SigningError, OSError) as e:
        logger.debug('Could not determine the type of provisioning profile %s: %s', mobileprovision, e)
        return None


def ios_profile_type(mobileprovision):
    return _profile_type(mobileprovision, classify_ios)


def macos_profile_type(mobileprovision):
    return _profile_type(mobileprovision, classify_macos)


def profile_type(mobileprovision, platform='ios'):
    if platform == 'macos':
        return macos_profile_type(mobileprovision)
    return ios_profile_type(mobileprovision)
