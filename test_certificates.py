import shutil
import tempfile
import unittest

from unittest import mock

from OpenSSL import crypto

import certificates
import processes
from fixtures import COMMON_NAME, certificate_pem, write_p12
from signing_errors import ProcessExecutionError


def pyopenssl_certificate(certificate):
    return crypto.load_certificate(crypto.FILETYPE_PEM, certificate_pem(certificate))


@unittest.skipUnless(shutil.which('openssl'), 'requires openssl')
class TestCertificatesWithOpenSSL (unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.p12_path, certificate = write_p12(tmpdir.name, 'p')
        self.certificate = pyopenssl_certificate(certificate)

    def test_sha1_hash_matches_certificate_digest(self):
        expected = self.certificate.digest('sha1').decode('ascii').replace(':', '')
        self.assertEqual(certificates.p12_sha1_hash(self.p12_path, 'p'), expected)

    def test_common_name_matches_certificate_subject(self):
        self.assertEqual(certificates.p12_common_name(self.p12_path, 'p'), self.certificate.get_subject().CN)
        self.assertEqual(self.certificate.get_subject().CN, COMMON_NAME)

    def test_wrong_password_fails(self):
        with self.assertRaises(ProcessExecutionError):
            certificates.p12_sha1_hash(self.p12_path, 'not-the-password')


class TestCertificates (unittest.TestCase):
    def test_sha1_hash_strips_colons(self):
        output = 'SHA1 Fingerprint=D1:4B:0D:8B:33:3B:E0:45:1C:9C:F1:E8:8F:14:D9:90:87:43:56:23'
        with mock.patch.object(processes, 'run_piped', return_value=processes.ProcessResult(output, 0)) as run_piped:
            sha1_hash = certificates.p12_sha1_hash('/tmp/cert.p12', 'p')

        self.assertEqual(sha1_hash, 'D14B0D8B333BE0451C9CF1E88F14D99087435623')
        args, kwargs = run_piped.call_args
        self.assertEqual(args[1], ['pkcs12', '-in', '/tmp/cert.p12', '-nokeys', '-passin', 'pass:p'])
        self.assertEqual(args[3], ['x509', '-noout', '-fingerprint', '-sha1'])
        self.assertEqual(kwargs['secrets'], ['pass:p'])

    def test_empty_password_warns_but_still_runs(self):
        output = 'SHA1 Fingerprint=AA:BB'
        with mock.patch.object(processes, 'run_piped', return_value=processes.ProcessResult(output, 0)) as run_piped:
            with self.assertLogs('certificates', level='WARNING'):
                self.assertEqual(certificates.p12_sha1_hash('/tmp/cert.p12', ''), 'AABB')
            with self.assertLogs('certificates', level='WARNING'):
                certificates.p12_common_name('/tmp/cert.p12', None)

        self.assertEqual(run_piped.call_count, 2)
        self.assertIn('pass:', run_piped.call_args[0][1])

    def test_empty_password_failure_warns_then_propagates(self):
        error = ProcessExecutionError('openssl', 1, stderr='Mac verify error: invalid password?')
        with mock.patch.object(processes, 'run_piped', side_effect=error):
            with self.assertLogs('certificates', level='WARNING'):
                with self.assertRaises(ProcessExecutionError):
                    certificates.p12_sha1_hash('/tmp/cert.p12', None)

    def test_common_name_absent_without_subject(self):
        with mock.patch.object(processes, 'run_piped', return_value=processes.ProcessResult('', 0)):
            self.assertIsNone(certificates.p12_common_name('/tmp/cert.p12', 'p'))

    def test_parse_common_name_legacy_subject(self):
        subject = '/UID=ABCDE12345/CN=iPhone Distribution: Example, Inc. (ABCDE12345)/OU=ABCDE12345/C=US'
        self.assertEqual(certificates.parse_common_name(subject), 'iPhone Distribution: Example, Inc. (ABCDE12345)')

    def test_parse_common_name_oneline_subject(self):
        subject = 'UID = ABCDE12345, CN = "iPhone Distribution: Example, Inc. (ABCDE12345)", O = "Example, Inc.", C = US'
        self.assertEqual(certificates.parse_common_name(subject), 'iPhone Distribution: Example, Inc. (ABCDE12345)')

    def test_parse_common_name_rfc2253_subject(self):
        subject = 'C=US,O=Example\\, Inc.,CN=Apple Development: Jane Doe (ABCDE12345)'
        self.assertEqual(certificates.parse_common_name(subject), 'Apple Development: Jane Doe (ABCDE12345)')

    def test_parse_common_name_without_cn(self):
        self.assertIsNone(certificates.parse_common_name('C = US, O = Example'))


if __name__ == '__main__':
    unittest.main()
