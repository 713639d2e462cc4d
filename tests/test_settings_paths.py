from pathlib import Path

from core import settings
from core.logging_setup import get_logger


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_linux_data_dir_default_home():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={},
        home=Path("/home/test"),
    )
    assert result == Path("/home/test/.local/share") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    expected = Path("/Users/test/Library/Application Support") / settings.APP_NAME
    assert result == expected


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    expected = Path(env["APPDATA"]) / settings.APP_NAME
    assert result == expected


def test_data_dir_override_wins():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env={"PLANNER_DATA_DIR": "/srv/planner", "XDG_DATA_HOME": "/tmp/xdg"},
        home=Path("/home/test"),
    )
    assert result == Path("/srv/planner")


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.LOG_PATH.parent == settings.LOG_DIR
    assert settings.LOG_DIR.parent == settings.DATA_DIR
    assert settings.LOGGING.log_path == settings.LOG_PATH


def test_storage_keys():
    assert settings.KEYS.active_task_id == "pomodoro:activeTaskId"
    assert settings.KEYS.active_task_ids == "pomodoro:activeTaskIds"


def test_loggers_share_the_planner_root():
    logger = get_logger("tasks")
    assert logger.name == "planner.tasks"
    assert get_logger("pomodoro").parent.name == "planner"
