"""
Модульные тесты для textblock/__init__.py
Тестирует метаданные пакета, конфигурацию, логирование и публичный API.
"""

import json
import logging
import re
import sys
from pathlib import Path
from unittest import mock

import pytest

import textblock


class TestVersionMetadata:
    """Тестирование метаданных версии и констант."""

    def test_version_format(self) -> None:
        """Проверить, что __version__ следует семантическому версионированию."""
        assert re.match(r"^\d+\.\d+\.\d+$", textblock.__version__)

    def test_version_components(self) -> None:
        """Проверить, что компоненты версии соответствуют __version__."""
        expected = f"{textblock.VERSION_MAJOR}.{textblock.VERSION_MINOR}.{textblock.VERSION_PATCH}"
        assert textblock.__version__ == expected

    @pytest.mark.parametrize(
        "attribute", ["__author__", "__description__", "__license__", "__python_requires__"]
    )
    def test_metadata_attributes(self, attribute: str) -> None:
        """Проверить, что атрибуты метаданных являются непустыми строками."""
        value = getattr(textblock, attribute)
        assert isinstance(value, str) and value

    def test_python_version_requirement(self) -> None:
        assert sys.version_info >= (3, 11)


class TestPublicAPI:
    """Тестирование экспортов публичного API."""

    def test_all_exports_exist(self) -> None:
        for name in textblock.__all__:
            assert hasattr(textblock, name), f"Имя '{name}' из __all__ не существует в модуле"

    def test_no_duplicate_exports(self) -> None:
        assert len(textblock.__all__) == len(set(textblock.__all__))

    def test_core_names_exported(self) -> None:
        for name in ("build_schema", "ModelConverter", "MarkRangeResolver", "CommandDispatcher", "load_config"):
            assert name in textblock.__all__

    def test_docstring_example(self) -> None:
        """Сценарий из документации пакета."""
        schema = textblock.build_schema()
        doc = textblock.blocks_to_document(
            schema, [{"typeName": "paragraph", "nodes": [{"typeName": "text", "text": "Hello"}]}]
        )
        editor = textblock.CommandDispatcher(schema, textblock.StaticStyleResolver(), doc, textblock.Range(1, 6))
        assert editor.toggle_mark("bold") is True
        assert editor.get_state()[0]["nodes"][0]["marks"] == [{"typeName": "bold"}]


class TestLogging:
    """Тестирование конфигурации логирования."""

    @pytest.mark.parametrize(
        "module_name, expected",
        [
            ("host_module", "textblock.host_module"),
            ("textblock.editor.commands", "textblock.editor.commands"),
            ("__main__", "textblock.main"),
            ("", "textblock"),
            ("host.toolbar.buttons", "textblock.host.toolbar.buttons"),
        ],
    )
    def test_get_logger_names(self, module_name: str, expected: str) -> None:
        logger = textblock.get_logger(module_name)
        assert isinstance(logger, logging.Logger)
        assert logger.name == expected

    def test_package_logger_has_handler(self) -> None:
        """Проверить, что логгер пакета имеет как минимум консольный обработчик."""
        assert len(logging.getLogger("textblock").handlers) >= 1

    def test_log_level_from_environment(self) -> None:
        """Уровень берётся из TEXTBLOCK_LOG_LEVEL при первой настройке."""
        package_logger = logging.getLogger("textblock")
        saved_handlers = package_logger.handlers[:]
        saved_level = package_logger.level
        try:
            for handler in saved_handlers:
                package_logger.removeHandler(handler)
            with mock.patch.dict("os.environ", {"TEXTBLOCK_LOG_LEVEL": "debug"}):
                textblock._setup_logging()
            assert package_logger.level == logging.DEBUG
        finally:
            for handler in package_logger.handlers[:]:
                package_logger.removeHandler(handler)
            for handler in saved_handlers:
                package_logger.addHandler(handler)
            package_logger.setLevel(saved_level)

    def test_setup_is_idempotent(self) -> None:
        package_logger = logging.getLogger("textblock")
        before = list(package_logger.handlers)
        textblock._setup_logging()
        assert package_logger.handlers == before

    def test_file_handler(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """TEXTBLOCK_LOG_FILE добавляет ротируемый файловый обработчик."""
        package_logger = logging.getLogger("textblock")
        saved_handlers = package_logger.handlers[:]
        monkeypatch.setenv("TEXTBLOCK_LOG_FILE", str(tmp_path / "logs" / "textblock.log"))
        try:
            for handler in saved_handlers:
                package_logger.removeHandler(handler)
            textblock._setup_logging()
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in package_logger.handlers)
            assert (tmp_path / "logs").is_dir()
        finally:
            for handler in package_logger.handlers[:]:
                package_logger.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                package_logger.addHandler(handler)


class TestConfiguration:
    """Тестирование управления конфигурацией."""

    def test_defaults_when_file_missing(self, tmp_path: Path) -> None:
        config = textblock.load_config(tmp_path / "missing.json")
        assert config == textblock.DEFAULT_CONFIG
        assert config is not textblock.DEFAULT_CONFIG

    def test_load_from_file(self, tmp_path: Path) -> None:
        config_path = tmp_path / "textblock.json"
        config_path.write_text(json.dumps({"default_viewport": "md", "custom_key": 1}), encoding="utf-8")
        config = textblock.load_config(config_path)
        assert config["default_viewport"] == "md"
        assert config["custom_key"] == 1
        assert config["heading_id_strategy"] == "slug"

    def test_invalid_json(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        config_path = tmp_path / "broken.json"
        config_path.write_text("{invalid json", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="textblock"):
            config = textblock.load_config(config_path)
        assert config == textblock.DEFAULT_CONFIG
        assert "invalid JSON" in caplog.text

    def test_non_dict_json(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        config_path = tmp_path / "list.json"
        config_path.write_text(json.dumps(["not", "a", "dict"]), encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="textblock"):
            config = textblock.load_config(config_path)
        assert config == textblock.DEFAULT_CONFIG
        assert "Invalid config format" in caplog.text

    def test_unreadable_path(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Каталог вместо файла: OSError при чтении, возвращаются значения по умолчанию."""
        config_path = tmp_path / "as_directory.json"
        config_path.mkdir()
        with caplog.at_level(logging.WARNING, logger="textblock"):
            config = textblock.load_config(config_path)
        assert config == textblock.DEFAULT_CONFIG
        assert "Cannot read" in caplog.text

    def test_config_drives_schema_and_converter(self) -> None:
        config = dict(textblock.DEFAULT_CONFIG, heading_id_strategy="random", max_nesting_depth=8)
        schema = textblock.build_schema(config)
        heading = schema.instantiate("heading1", children=[schema.text("Title")])
        assert heading.attrs["id"].startswith("heading-")
        assert textblock.ModelConverter.from_config(config).max_nesting_depth == 8
