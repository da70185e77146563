#!/usr/bin/env python3

import argparse
import logging
import sys

import profile_types
from mobileprovision import Mobileprovision, delete_installed_profile
from signing_errors import SigningError


def main(argv=None):
    parser = argparse.ArgumentParser(description='Install a provisioning profile and report what kind it is')
    parser.add_argument('profile', nargs='?',
            help='.mobileprovision or .provisionprofile to install')
    parser.add_argument('--platform', choices=['ios', 'macos'], default='ios',
            help='platform family used to classify the profile')
    parser.add_argument('--export-method', dest='export_method',
            help='export method, used to pick the iCloud container environment')
    parser.add_argument('--profiles-dir', dest='profiles_dir',
            help='install directory (default: ~/Library/MobileDevice/Provisioning Profiles)')
    parser.add_argument('--remove', dest='remove_uuid', metavar='UUID',
            help='remove the installed profile with this UUID and exit')
    parser.add_argument('-v', '--verbose', dest='verbose', action='store_true',
            help='log every external command')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')

    if args.remove_uuid:
        delete_installed_profile(args.remove_uuid, args.profiles_dir)
        return 0

    if not args.profile:
        parser.error('a provisioning profile is required unless --remove is given')

    mobileprovision = Mobileprovision(args.profile)
    try:
        uuid = mobileprovision.install(args.profiles_dir)
        name = mobileprovision.name()
        profile_type = profile_types.profile_type(mobileprovision, args.platform)
        export_method = args.export_method or (str(profile_type) if profile_type else None)
        cloud_entitlement = mobileprovision.cloud_entitlement(export_method)
    except SigningError as e:
        print(e, file=sys.stderr)
        return 1

    print('UUID: {}'.format(uuid))
    print('Name: {}'.format(name or ''))
    print('Type: {}'.format(profile_type or 'unknown'))
    if cloud_entitlement:
        print('iCloud container environment: {}'.format(cloud_entitlement))
    return 0


if __name__ == "__main__":
    sys.exit(main())
