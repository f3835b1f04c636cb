"""
core/constants.py 테스트

모든 경로가 pathlib.Path 타입이고, 상수가 정상적으로 접근 가능한지 확인
"""

from pathlib import Path

from core.constants import PROJECT_ROOT, Collections, Defaults, Mongo, Paths


class TestProjectRoot:
    """PROJECT_ROOT 테스트"""

    def test_project_root_is_path(self) -> None:
        """PROJECT_ROOT가 Path 타입인지 확인"""
        assert isinstance(PROJECT_ROOT, Path)

    def test_project_root_is_absolute(self) -> None:
        """PROJECT_ROOT가 절대 경로인지 확인"""
        assert PROJECT_ROOT.is_absolute()

    def test_project_root_contains_core_directory(self) -> None:
        """PROJECT_ROOT에 core 디렉토리가 있는지 확인"""
        assert (PROJECT_ROOT / "core").exists()


class TestPaths:
    """Paths 테스트"""

    def test_all_paths_are_path_type(self) -> None:
        for value in (Paths.CONFIG_DIR, Paths.LOGS_DIR, Paths.CONFIG_FILE):
            assert isinstance(value, Path)

    def test_config_file_location(self) -> None:
        assert Paths.CONFIG_FILE.parent == Paths.CONFIG_DIR
        assert Paths.CONFIG_FILE.name == "ledger.yaml"


class TestDefaults:
    """Defaults 테스트"""

    def test_book_defaults(self) -> None:
        assert Defaults.PRECISION == 8
        assert Defaults.MAX_ACCOUNT_PATH == 3
        assert Defaults.BALANCE_SNAPSHOT_SEC == 86400
        assert Defaults.EXPIRE_SNAPSHOT_MULTIPLIER == 2


class TestCollections:
    """Collections 테스트"""

    def test_names_unique(self) -> None:
        names = {
            Collections.TRANSACTIONS,
            Collections.JOURNALS,
            Collections.BALANCES,
            Collections.LOCKS,
        }
        assert len(names) == 4

    def test_mongo_defaults(self) -> None:
        assert Mongo.URL.startswith("mongodb://")
        assert Mongo.SERVER_SELECTION_TIMEOUT_MS > 0
