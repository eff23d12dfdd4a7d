import logging

from pose_publisher import logging_utils


class DummyLogger:
    def __init__(self):
        self.add_calls: list[dict[str, object]] = []
        self.errors: list[str] = []
        self.infos: list[str] = []
        self.logged: list[dict[str, object]] = []
        self.completed = 0

    def remove(self):
        return None

    def add(self, *args, **kwargs):
        self.add_calls.append({"args": args, "kwargs": kwargs})
        return len(self.add_calls)

    def level(self, name):
        return type("Level", (), {"name": name})()

    def opt(self, depth, exception):
        self.logged.append({"depth": depth, "exception": exception})
        return self

    def log(self, level, message):
        self.logged[-1]["level"] = level
        self.logged[-1]["message"] = message

    def error(self, message):
        self.errors.append(str(message))

    def info(self, message):
        self.infos.append(str(message))

    def complete(self):
        self.completed += 1


def _patch(monkeypatch) -> DummyLogger:
    dummy_logger = DummyLogger()
    monkeypatch.setattr(logging_utils, "logger", dummy_logger)
    monkeypatch.setattr(logging, "basicConfig", lambda **_: None)
    monkeypatch.setattr(logging, "captureWarnings", lambda *_, **__: None)
    return dummy_logger


def test_intercept_handler_redirects_stdlib(monkeypatch):
    dummy_logger = DummyLogger()
    monkeypatch.setattr(logging_utils, "logger", dummy_logger)

    handler = logging_utils.InterceptHandler()
    record = logging.LogRecord(
        name="pose_publisher.replica",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Object %s removed",
        args=("obj_a",),
        exc_info=None,
    )

    handler.emit(record)

    assert dummy_logger.logged[-1]["message"] == "Object obj_a removed"
    assert dummy_logger.logged[-1]["level"] == "WARNING"


def test_configure_logging_console_only(monkeypatch):
    dummy_logger = _patch(monkeypatch)

    logging_utils.configure_logging(log_dir=None, console_level="debug")

    assert len(dummy_logger.add_calls) == 1
    console_kwargs = dummy_logger.add_calls[0]["kwargs"]
    assert console_kwargs["level"] == "DEBUG"
    assert console_kwargs["serialize"] is False
    assert "format" in console_kwargs


def test_configure_logging_console_json(monkeypatch):
    dummy_logger = _patch(monkeypatch)

    logging_utils.configure_logging(
        log_dir=None, console_level="warning", console_json=True
    )

    console_kwargs = dummy_logger.add_calls[0]["kwargs"]
    assert console_kwargs["serialize"] is True
    assert "format" not in console_kwargs
    assert console_kwargs["level"] == "WARNING"


def test_configure_logging_file_sink_defaults(monkeypatch, tmp_path):
    dummy_logger = _patch(monkeypatch)

    logging_utils.configure_logging(log_dir=tmp_path / "logs")

    assert (tmp_path / "logs").is_dir()
    assert len(dummy_logger.add_calls) == 2
    file_call = dummy_logger.add_calls[1]
    assert file_call["args"][0] == tmp_path / "logs" / logging_utils.DEFAULT_LOG_FILENAME
    assert file_call["kwargs"]["serialize"] is True
    assert file_call["kwargs"]["rotation"] == logging_utils.DEFAULT_ROTATION
    assert file_call["kwargs"]["retention"] == logging_utils.DEFAULT_RETENTION
    assert any("File logging enabled" in message for message in dummy_logger.infos)


def test_configure_logging_uses_custom_rotation_and_retention(monkeypatch, tmp_path):
    dummy_logger = _patch(monkeypatch)

    def custom_rotation(*_, **__):
        return False

    def custom_retention(logs):
        logs.clear()

    logging_utils.configure_logging(
        log_dir=tmp_path,
        rotation=custom_rotation,
        retention=custom_retention,
    )

    assert len(dummy_logger.add_calls) == 2
    file_kwargs = dummy_logger.add_calls[1]["kwargs"]
    assert file_kwargs["rotation"] is custom_rotation
    assert file_kwargs["retention"] is custom_retention


def test_configure_logging_handles_directory_errors(monkeypatch, tmp_path):
    dummy_logger = _patch(monkeypatch)

    def fail_mkdir(*_, **__):  # pragma: no cover - error path
        raise OSError("fail")

    monkeypatch.setattr(logging_utils.Path, "mkdir", fail_mkdir)

    logging_utils.configure_logging(log_dir=tmp_path / "logs")

    assert dummy_logger.errors, "Expected log directory failure to be reported"
    assert len(dummy_logger.add_calls) == 1, "File sink should not be registered"


def test_shutdown_logging_flushes(monkeypatch):
    dummy_logger = DummyLogger()
    monkeypatch.setattr(logging_utils, "logger", dummy_logger)

    logging_utils.shutdown_logging()

    assert dummy_logger.completed == 1
