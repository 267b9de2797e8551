"""테스트 실행 스크립트"""

import unittest
import sys
import os

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# 테스트 그룹 이름 -> 테스트 모듈
TEST_GROUPS = {
    "models": ["test_models", "test_event_log"],
    "ledger": ["test_ledger"],
    "pause": ["test_pause"],
    "countdown": ["test_countdown"],
    "arbiter": ["test_arbiter"],
    "session": ["test_session"],
    "executor": ["test_executor"],
    "config": ["test_config"],
    "storage": ["test_state_store", "test_file_handler", "test_logger"],
    "adapters": ["test_adapters"],
}


def _load_suite(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for name in module_names:
        suite.addTests(loader.loadTestsFromName(name))
    return suite


def run_all_tests():
    """모든 테스트를 실행합니다."""
    modules = [name for names in TEST_GROUPS.values() for name in names]
    runner = unittest.TextTestRunner(verbosity=2)
    return runner.run(_load_suite(modules))


def run_specific_test(test_name):
    """특정 테스트 그룹만 실행합니다."""
    if test_name not in TEST_GROUPS:
        print(f"알 수 없는 테스트: {test_name}")
        print(f"사용 가능한 테스트: {', '.join(TEST_GROUPS)}")
        return None

    runner = unittest.TextTestRunner(verbosity=2)
    return runner.run(_load_suite(TEST_GROUPS[test_name]))


if __name__ == '__main__':
    print("=" * 50)
    print("Worktime Tracker 테스트 실행")
    print("=" * 50)

    if len(sys.argv) > 1:
        test_name = sys.argv[1]
        print(f"테스트 실행: {test_name}")
        result = run_specific_test(test_name)
    else:
        print("모든 테스트 실행")
        result = run_all_tests()

    if result:
        print("\n" + "=" * 50)
        print(f"테스트 결과: {result.testsRun}개 실행")
        print(f"성공: {result.testsRun - len(result.failures) - len(result.errors)}개")
        print(f"실패: {len(result.failures)}개")
        print(f"오류: {len(result.errors)}개")

        if result.failures:
            print("\n실패한 테스트:")
            for test, traceback in result.failures:
                print(f"- {test}")

        if result.errors:
            print("\n오류가 발생한 테스트:")
            for test, traceback in result.errors:
                print(f"- {test}")

        print("=" * 50)

        sys.exit(0 if result.wasSuccessful() else 1)
