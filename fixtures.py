import datetime
import pathlib
import plistlib

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from processes import ProcessResult
from signing_errors import ProcessExecutionError

COMMON_NAME = 'iPhone Distribution: Example Corp (ABCDE12345)'
PROFILE_UUID = '6A1F3C2E-8D4B-4F0A-9C3E-1B2D3E4F5A6B'


def make_certificate(common_name=COMMON_NAME):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, 'US'),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'Example Corp'),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (x509.CertificateBuilder()
                   .subject_name(name)
                   .issuer_name(name)
                   .public_key(key.public_key())
                   .serial_number(x509.random_serial_number())
                   .not_valid_before(now - datetime.timedelta(days=1))
                   .not_valid_after(now + datetime.timedelta(days=30))
                   .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
                   .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CODE_SIGNING]), critical=False)
                   .sign(key, hashes.SHA256()))
    return key, certificate


def write_p12(directory, password, common_name=COMMON_NAME):
    key, certificate = make_certificate(common_name)
    if password:
        # 3DES/SHA1 so both `security import` and OpenSSL 3 without the legacy provider can read it
        encryption = (serialization.PrivateFormat.PKCS12.encryption_builder()
                      .kdf_rounds(2048)
                      .key_cert_algorithm(pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC)
                      .hmac_hash(hashes.SHA1())
                      .build(password.encode()))
    else:
        encryption = serialization.NoEncryption()

    p12 = pkcs12.serialize_key_and_certificates(b'signing', key, certificate, None, encryption)
    p12_path = pathlib.Path(directory, 'TestCertificate.p12')
    p12_path.write_bytes(p12)
    return p12_path, certificate


def certificate_pem(certificate):
    return certificate.public_bytes(serialization.Encoding.PEM)


def profile_document(**fields):
    document = {
        'UUID': PROFILE_UUID,
        'Name': 'Example Distribution',
        'TeamIdentifier': ['ABCDE12345'],
        'Entitlements': {
            'application-identifier': 'ABCDE12345.com.example.app',
            'get-task-allow': False,
        },
    }
    for key, value in fields.items():
        if value is None:
            document.pop(key, None)
        else:
            document[key] = value
    return document


class FakeProfileTools:
    """Stands in for `security cms -D` and PlistBuddy over an in-memory profile document."""

    def __init__(self, document=None, cms_exit_status=0):
        self.document = document
        self.cms_exit_status = cms_exit_status
        self.cms_calls = 0
        self.printed = []

    def run(self, executable, args=(), secrets=(), **kwargs):
        assert list(args[:3]) == ['cms', '-D', '-i']
        self.cms_calls += 1
        if self.cms_exit_status != 0:
            raise ProcessExecutionError(executable, self.cms_exit_status, stderr='security: failed to decode message')
        if self.document is None:
            return ProcessResult('', 0)
        xml = plistlib.dumps(self.document).decode('utf-8')
        return ProcessResult('\n'.join(line.strip() for line in xml.splitlines() if line.strip()), 0)

    def print_from_plist(self, key_path, plist):
        plist_path = pathlib.Path(plist)
        assert plist_path.is_file()
        self.printed.append(key_path)
        with open(plist_path, 'rb') as f:
            value = plistlib.load(f)

        for key in key_path.split(':'):
            if not isinstance(value, dict) or key not in value:
                return None
            value = value[key]

        if isinstance(value, bool):
            return 'true' if value else 'false'
        if isinstance(value, list):
            return 'Array {\n' + '\n'.join(str(item) for item in value) + '\n}'
        if isinstance(value, dict):
            return 'Dict {\n' + '\n'.join('{} = {}'.format(k, v) for k, v in value.items()) + '\n}'
        return str(value)


class FakeSecurity:
    """Keeps just enough keychain state to answer the `security` subcommands the keychain code uses."""

    def __init__(self, search_list=(), honour_search_list_writes=True):
        self.search_list = [str(path) for path in search_list]
        self.honour_search_list_writes = honour_search_list_writes
        self.certificates = {}
        self.calls = []
        self.secrets = []
        self.import_hash = 'D14B0D8B333BE0451C9CF1E88F14D99087435623'
        self.identity_name = COMMON_NAME
        self.default_keychain = '/Users/ci/Library/Keychains/login.keychain-db'

    def commands(self):
        return [call[0] for call in self.calls]

    def calls_to(self, command):
        return [call for call in self.calls if call[0] == command]

    def run(self, executable, args=(), secrets=(), **kwargs):
        args = [str(arg) for arg in args]
        self.calls.append(args)
        self.secrets.extend(secrets)
        command = args[0]

        if command == 'list-keychains':
            if '-s' in args:
                if self.honour_search_list_writes:
                    self.search_list = args[args.index('-s') + 1:]
                return ProcessResult('', 0)
            return ProcessResult('\n'.join('"{}"'.format(path) for path in self.search_list), 0)

        if command == 'create-keychain':
            pathlib.Path(args[-1]).write_bytes(b'keychain')
        elif command == 'delete-keychain':
            pathlib.Path(args[-1]).unlink(missing_ok=True)
            pathlib.Path(args[-1] + '-db').unlink(missing_ok=True)
            self.search_list = [path for path in self.search_list if path != args[-1]]
            self.certificates.pop(args[-1], None)
        elif command == 'import':
            keychain = args[args.index('-k') + 1]
            self.certificates.setdefault(keychain, []).append(self.import_hash)
        elif command == 'find-certificate':
            lines = []
            for certificate_hash in self.certificates.get(args[-1], []):
                lines.extend(['keychain: "{}"'.format(args[-1]), 'SHA-1 hash: {}'.format(certificate_hash)])
            return ProcessResult('\n'.join(lines), 0)
        elif command == 'find-identity':
            hashes = self.certificates.get(args[-1], [])
            lines = ['{}) {} "{}"'.format(number, certificate_hash, self.identity_name)
                     for number, certificate_hash in enumerate(hashes, start=1)]
            lines.append('{} valid identities found'.format(len(hashes)))
            return ProcessResult('\n'.join(lines), 0)
        elif command == 'default-keychain':
            return ProcessResult('"{}"'.format(self.default_keychain), 0)
        elif command not in ('set-keychain-settings', 'unlock-keychain', 'delete-certificate'):
            raise AssertionError('unexpected security command: {}'.format(args))

        return ProcessResult('', 0)
