"""설정 관리자 테스트"""

import unittest
import datetime
import tempfile
import os
import json
import shutil
import sys

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from Worktime_tracker import ConfigManager
from utils.exceptions import ConfigurationError


class TestConfigManager(unittest.TestCase):
    """ConfigManager 클래스 테스트"""

    def setUp(self):
        """테스트 시작 전 설정"""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = "test_config.json"
        self.config_path = os.path.join(self.temp_dir, self.config_file)

    def tearDown(self):
        """테스트 종료 후 정리"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_create_default_config(self):
        """기본 설정 생성 테스트"""
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)

        self.assertEqual(config_manager.get('app.name'), 'Worktime Tracker')
        self.assertEqual(config_manager.get('credentials.pause_password'), '340340')
        self.assertEqual(config_manager.get('remote.push_interval_sec'), 5.0)
        self.assertTrue(os.path.exists(self.config_path))

    def test_get_nonexistent_key(self):
        """존재하지 않는 키 조회 테스트"""
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)

        self.assertIsNone(config_manager.get('nonexistent.key'))
        self.assertEqual(config_manager.get('nonexistent.key', 'default'), 'default')
        self.assertEqual(config_manager.get('app.name.deeper', 'x'), 'x')

    def test_set_and_save(self):
        """값 설정 및 저장 테스트"""
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)
        config_manager.set('kiosk.id', 'line-7')
        config_manager.set('new.section.key', 1)
        config_manager.save_config()

        reloaded = ConfigManager(self.config_file, base_dir=self.temp_dir)
        self.assertEqual(reloaded.get('kiosk.id'), 'line-7')
        self.assertEqual(reloaded.get('new.section.key'), 1)

    def test_load_existing_config_keeps_defaults(self):
        """기존 설정 파일 로드 시 빠진 항목은 기본값으로 채움"""
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump({'kiosk': {'id': 'line-3'}, 'credentials': {'qc_code': '9999'}}, f)

        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)
        self.assertEqual(config_manager.get('kiosk.id'), 'line-3')
        self.assertEqual(config_manager.credentials().qc_code, '9999')
        self.assertEqual(config_manager.credentials().technician_code, '2222')
        self.assertEqual(config_manager.get('logging.level'), 'INFO')

    def test_broken_config_falls_back_to_defaults(self):
        with open(self.config_path, 'w', encoding='utf-8') as f:
            f.write("{not json")
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)
        self.assertEqual(config_manager.get('app.name'), 'Worktime Tracker')

    def test_schedule(self):
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)
        schedule = config_manager.schedule()
        self.assertEqual(len(schedule.lunch_windows), 3)
        self.assertTrue(schedule.in_lunch_window(datetime.datetime(2024, 5, 6, 3, 15)))
        self.assertTrue(schedule.at_shift_start(datetime.datetime(2024, 5, 6, 22, 0, 30)))
        self.assertEqual(schedule.manual_lunch_seconds, 1800)

    def test_invalid_schedule(self):
        config_manager = ConfigManager(self.config_file, base_dir=self.temp_dir)
        config_manager.set('schedule.lunch_windows', [["11:30"]])
        with self.assertRaises(ConfigurationError):
            config_manager.schedule()
        config_manager.set('schedule.lunch_windows', [])
        config_manager.set('schedule.manual_lunch_seconds', 0)
        with self.assertRaises(ConfigurationError):
            config_manager.schedule()


if __name__ == '__main__':
    unittest.main()
