import logging
import os
import re

import processes
import signing_settings

logger = logging.getLogger(__name__)

_FINGERPRINT_RE = re.compile(r'SHA1 Fingerprint=(?P<fingerprint>[0-9A-Fa-f:]+)')
_SUBJECT_RE = re.compile(r'^subject\s*=\s*(?P<subject>.+)$', re.MULTILINE)
_ESCAPE_RE = re.compile(r'\\(.)')


def _warn_if_unprotected(p12_path, p12_pass):
    if not p12_pass:
        logger.warning('No password was supplied for certificate bundle %s. '
                       'Exporting a P12 without a password is not recommended.', p12_path)


def _print_certificate(p12_path, p12_pass, print_options):
    # openssl pkcs12 -in <p12> -nokeys -passin pass:<pass> | openssl x509 -noout <print_options>
    openssl = signing_settings.load().openssl
    passin = 'pass:' + (p12_pass or '')
    unpack_args = ['pkcs12', '-in', os.fspath(p12_path), '-nokeys', '-passin', passin]
    print_args = ['x509', '-noout'] + print_options
    return processes.run_piped(openssl, unpack_args, openssl, print_args, secrets=[passin]).output


def p12_sha1_hash(p12_path, p12_pass=None):
    _warn_if_unprotected(p12_path, p12_pass)
    output = _print_certificate(p12_path, p12_pass, ['-fingerprint', '-sha1'])

    match = _FINGERPRINT_RE.search(output)
    if not match:
        logger.debug('No SHA1 fingerprint in openssl output for %s', p12_path)
        return None

    sha1_hash = match.group('fingerprint').replace(':', '').upper()
    logger.debug('P12 SHA1 hash = %s', sha1_hash)
    return sha1_hash


def p12_common_name(p12_path, p12_pass=None):
    _warn_if_unprotected(p12_path, p12_pass)
    output = _print_certificate(p12_path, p12_pass, ['-subject'])

    match = _SUBJECT_RE.search(output)
    if not match:
        logger.debug('No subject in openssl output for %s', p12_path)
        return None

    common_name = parse_common_name(match.group('subject'))
    logger.debug('P12 common name (CN) = %s', common_name)
    return common_name


def parse_common_name(subject):
    """Pull the CN out of an openssl subject, in either the legacy /C=../CN=.. or the C = .., CN = .. form."""
    separator = '/' if subject.lstrip().startswith('/') else ','
    for rdn in _split_rdns(subject, separator):
        attribute, equals, value = rdn.partition('=')
        if equals and attribute.strip() == 'CN':
            return _unquote(value.strip()) or None
    return None


def _split_rdns(subject, separator):
    rdns = []
    current = []
    quoted = False
    escaped = False
    for char in subject:
        if escaped:
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == separator and not quoted:
            rdns.append(''.join(current).strip())
            current = []
            continue
        current.append(char)
    rdns.append(''.join(current).strip())
    return [rdn for rdn in rdns if rdn]


def _unquote(value):
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return _ESCAPE_RE.sub(r'\1', value)
