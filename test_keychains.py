import os
import pathlib
import tempfile
import unittest

from collections import Counter
from unittest import mock

import processes
from fixtures import FakeSecurity
from keychains import Keychain, Keychains, same_keychain

LOGIN_KEYCHAIN = '/Users/ci/Library/Keychains/login.keychain-db'
SYSTEM_KEYCHAIN = '/Library/Keychains/System.keychain'


class TestKeychains (unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.tmpdir = pathlib.Path(tmpdir.name)

        self.security = FakeSecurity(search_list=[LOGIN_KEYCHAIN, SYSTEM_KEYCHAIN])
        patcher = mock.patch.object(processes, 'run', side_effect=self.security.run)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_list_keychain_paths_reads_user_domain(self):
        self.assertEqual(Keychains.list_keychain_paths(), [pathlib.Path(LOGIN_KEYCHAIN), pathlib.Path(SYSTEM_KEYCHAIN)])
        self.assertEqual(self.security.calls, [['list-keychains', '-d', 'user']])

    def test_adding_keychain_to_search_list_adds_it_exactly_once(self):
        deadend = Keychain(self.tmpdir.joinpath('DeadEnd.keychain'))
        self.assertTrue(deadend.add_to_keychain_search())
        self.assertFalse(deadend.add_to_keychain_search())
        self.assertFalse(deadend.add_to_keychain_search())

        count = Counter(Keychains.list_keychain_paths())
        self.assertEqual(count[deadend.path], 1)
        self.assertEqual(len([call for call in self.security.calls if '-s' in call]), 1)

    def test_adding_keychain_appends_and_keeps_existing_order(self):
        deadend = Keychain(self.tmpdir.joinpath('DeadEnd.keychain'))
        deadend.add_to_keychain_search()
        self.assertEqual(self.security.search_list, [LOGIN_KEYCHAIN, SYSTEM_KEYCHAIN, deadend.path.as_posix()])
        self.assertEqual(self.security.calls[-1][:4], ['list-keychains', '-d', 'user', '-s'])

    def test_keychain_db_entry_counts_as_member(self):
        deadend = Keychain(self.tmpdir.joinpath('DeadEnd.keychain'))
        self.security.search_list.append(deadend.db_path.as_posix())

        self.assertTrue(deadend.searchable())
        self.assertFalse(deadend.add_to_keychain_search())
        deadend.verify_searchable()

    def test_same_keychain(self):
        self.assertTrue(same_keychain('/tmp/../tmp/x.keychain', '/tmp/x.keychain-db'))
        self.assertFalse(same_keychain('/tmp/x.keychain', '/tmp/y.keychain'))

    def test_only_keychain_db_suffix_is_normalized(self):
        self.assertFalse(same_keychain('/tmp/build-db', '/tmp/build'))
        self.assertFalse(same_keychain('/tmp/build.keychain-db', '/tmp/build'))
        self.assertTrue(same_keychain('/tmp/build.keychain-db', '/tmp/build.keychain'))

    def test_default_keychain_path(self):
        self.assertEqual(Keychains.default_keychain_path(), pathlib.Path(self.security.default_keychain))

    def test_temp_keychain_path_follows_temp_dir_setting(self):
        with mock.patch.dict(os.environ, {'SIGNPREP_TEMP_DIR': self.tmpdir.as_posix()}):
            self.assertEqual(Keychains.temp_keychain_path(), self.tmpdir.joinpath('ios_signing_temp.keychain'))

    def test_clean_keychain_name(self):
        self.assertEqual(Keychains.clean_keychain_name('build.keychain'), 'build')
        self.assertEqual(Keychains.clean_keychain_name('build.keychain-db'), 'build')
        self.assertEqual(Keychains.clean_keychain_name('build'), 'build')


if __name__ == '__main__':
    unittest.main()
