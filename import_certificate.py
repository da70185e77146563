#!/usr/bin/env python3

import argparse
import logging
import pathlib
import sys

from keychains import Keychain, Keychains
from signing_errors import SigningError


def main(argv=None):
    parser = argparse.ArgumentParser(description='Create, unlock and import signing certificates for keychains')
    parser.add_argument('-k', '--keychain', dest='keychain_name',
            help='create and use the named keychain (default: a temporary keychain)')
    parser.add_argument('--keychain-pass', dest='keychain_pass', default='',
            help='keychain password')
    parser.add_argument('--cert', dest='dist_cert',
            help='p12 certificate to import')
    parser.add_argument('--cert-pass', dest='dist_cert_pass',
            help='password for p12 certificate')
    parser.add_argument('--reuse-keychain', dest='reuse_keychain', action='store_true',
            help='keep an existing keychain instead of recreating it')
    parser.add_argument('--delete', dest='delete', action='store_true',
            help='delete the keychain and exit')
    parser.add_argument('-v', '--verbose', dest='verbose', action='store_true',
            help='log every external command')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')

    keychain_name = args.keychain_name or Keychains.temp_keychain_path()
    keychain = Keychain(keychain_name, args.keychain_pass)

    try:
        if args.delete:
            keychain.delete()
            return 0

        if not args.dist_cert:
            parser.error('--cert is required unless --delete is given')

        dist_cert_path = pathlib.Path(args.dist_cert).resolve()
        keychain.ensure(dist_cert_path, args.dist_cert_pass, reuse_if_exists=args.reuse_keychain)
        print(keychain.find_signing_identity())
    except SigningError as e:
        print(e, file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
