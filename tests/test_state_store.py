"""로컬 상태 저장소 테스트"""

import unittest
import tempfile
import os
import shutil
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.exceptions import StorageError
from utils.state_store import JsonStateStore


class TestJsonStateStore(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_values_survive_reopen(self):
        store = JsonStateStore(self.temp_dir, "kiosk-1")
        store.save('countdownSeconds', 120)
        store.save_many({'pauseState': {'kind': 'manual'}, 'bonusReason': None})

        reopened = JsonStateStore(self.temp_dir, "kiosk-1")
        self.assertEqual(reopened.load('countdownSeconds'), 120)
        self.assertEqual(reopened.load('pauseState'), {'kind': 'manual'})
        self.assertTrue(reopened.has('bonusReason'))
        self.assertIsNone(reopened.load('bonusReason', 'missing'))
        self.assertEqual(reopened.load('other', 'missing'), 'missing')

    def test_kiosks_use_separate_files(self):
        JsonStateStore(self.temp_dir, "kiosk-1").save('a', 1)
        self.assertFalse(JsonStateStore(self.temp_dir, "kiosk-2").has('a'))

    def test_remove(self):
        store = JsonStateStore(self.temp_dir)
        store.save('a', None)
        store.remove('a')
        store.remove('never')
        self.assertFalse(JsonStateStore(self.temp_dir).has('a'))

    def test_corrupt_file_raises(self):
        store = JsonStateStore(self.temp_dir, "kiosk-1")
        with open(store.file_path, 'w', encoding='utf-8') as f:
            f.write("[1, 2")
        with self.assertRaises(StorageError):
            JsonStateStore(self.temp_dir, "kiosk-1")

    def test_non_object_file_raises(self):
        store = JsonStateStore(self.temp_dir, "kiosk-1")
        with open(store.file_path, 'w', encoding='utf-8') as f:
            f.write("[1, 2]")
        with self.assertRaises(StorageError):
            JsonStateStore(self.temp_dir, "kiosk-1")

    def test_unserializable_value_raises(self):
        store = JsonStateStore(self.temp_dir)
        with self.assertRaises(StorageError):
            store.save('bad', object())


if __name__ == '__main__':
    unittest.main()
