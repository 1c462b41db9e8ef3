"""Tests for configuration models, logging setup and the CLI."""

import asyncio
import io
import logging
from pathlib import Path

import pytest
from mdgrab.cli import StatusIndicator, build_config, create_parser, main
from mdgrab.concurrency import parse_cookie_header
from mdgrab.logging_config import setup_logging
from mdgrab.models.config import (
    AuthConfig,
    BlockPolicy,
    HarvestConfig,
    MdgrabConfig,
    TableHeaderPolicy,
)
from mdgrab.models.events import EventType, ProgressEvent
from pydantic import ValidationError
from rich.console import Console


class TestMdgrabConfig:
    """Tests for MdgrabConfig."""

    def test_defaults(self):
        config = MdgrabConfig()

        assert config.network.block_policy == BlockPolicy.LOG
        assert config.network.max_retries == 0
        assert config.conversion.table_header_policy == TableHeaderPolicy.ALWAYS
        assert config.conversion.inline_images
        assert config.harvest.max_rounds == 80
        assert config.harvest.max_idle_rounds == 4
        assert config.output.directory == Path(".")
        assert not config.browser.javascript

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            MdgrabConfig.model_validate({"network": {"retries": 3}})

    def test_invalid_harvest_values(self):
        with pytest.raises(ValidationError):
            HarvestConfig(max_rounds=0)

    def test_yaml_roundtrip(self):
        config = MdgrabConfig.from_yaml(
            """
network:
  block_policy: fallback
conversion:
  table_header_policy: detect
output:
  directory: ./notes
"""
        )

        assert config.network.block_policy == BlockPolicy.FALLBACK
        assert config.conversion.table_header_policy == TableHeaderPolicy.DETECT
        assert MdgrabConfig.from_yaml(config.to_yaml()) == config

    def test_empty_yaml(self):
        assert MdgrabConfig.from_yaml("") == MdgrabConfig()

    def test_cookie_env_expansion(self, monkeypatch):
        monkeypatch.setenv("ZHIHU_COOKIE", "z_c0=abc")

        assert AuthConfig(cookie="$ZHIHU_COOKIE").cookie == "z_c0=abc"
        assert AuthConfig(cookie="a=${ZHIHU_COOKIE}; b=1").cookie == "a=z_c0=abc; b=1"

    def test_unset_env_var_kept(self, monkeypatch):
        monkeypatch.delenv("MDGRAB_MISSING", raising=False)

        assert AuthConfig(cookie="$MDGRAB_MISSING").cookie == "$MDGRAB_MISSING"


class TestBuildConfig:
    """Tests for merging CLI flags into the configuration."""

    def test_flags_override(self, tmp_path):
        args = create_parser().parse_args(
            [
                "https://zhuanlan.zhihu.com/p/1",
                "-o",
                str(tmp_path),
                "--cookie",
                "a=b",
                "--block-policy",
                "fallback",
                "--table-header",
                "detect",
                "--max-rounds",
                "5",
                "--dry-run",
                "-v",
            ]
        )

        config = build_config(args)

        assert config.output.directory == tmp_path
        assert config.auth.cookie == "a=b"
        assert config.network.block_policy == BlockPolicy.FALLBACK
        assert config.conversion.table_header_policy == TableHeaderPolicy.DETECT
        assert config.harvest.max_rounds == 5
        assert config.dry_run
        assert config.log_level == "DEBUG"

    def test_config_file_with_override(self, tmp_path):
        config_file = tmp_path / "mdgrab.yaml"
        config_file.write_text("harvest:\n  max_rounds: 10\n  scroll_delay: 0.5\n", encoding="utf-8")
        args = create_parser().parse_args(["https://zhuanlan.zhihu.com/p/1", "-c", str(config_file), "-q"])

        config = build_config(args)

        assert config.harvest.max_rounds == 10
        assert config.harvest.scroll_delay == 0.5
        assert config.log_level == "ERROR"

    def test_cookie_expanded_once(self, monkeypatch):
        """Test that an expanded cookie is not expanded a second time."""
        monkeypatch.setenv("ZHIHU_COOKIE", "token=$INNER")
        monkeypatch.setenv("INNER", "other")
        args = create_parser().parse_args(["https://zhuanlan.zhihu.com/p/1", "--cookie", "$ZHIHU_COOKIE"])

        assert build_config(args).auth.cookie == "token=$INNER"

    def test_cookie_from_file_expanded_once(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZHIHU_COOKIE", "token=$INNER")
        monkeypatch.setenv("INNER", "other")
        config_file = tmp_path / "mdgrab.yaml"
        config_file.write_text("auth:\n  cookie: $ZHIHU_COOKIE\noutput:\n", encoding="utf-8")
        args = create_parser().parse_args(["https://zhuanlan.zhihu.com/p/1", "-c", str(config_file), "-o", str(tmp_path)])

        config = build_config(args)

        assert config.auth.cookie == "token=$INNER"
        assert config.output.directory == tmp_path


class TestMain:
    """Tests for the CLI entry point."""

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        yield
        logger = logging.getLogger("mdgrab")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_missing_url(self):
        assert main([]) == 1

    def test_unsupported_url(self):
        assert main(["https://example.com/page", "-q"]) == 1

    def test_bad_config_file(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("unknown_section: {}\n", encoding="utf-8")

        assert main(["https://zhuanlan.zhihu.com/p/1", "-c", str(config_file), "-q"]) == 1


class TestStatusIndicator:
    """Tests for StatusIndicator."""

    @staticmethod
    def _console() -> Console:
        return Console(file=io.StringIO(), force_terminal=False)

    def test_disabled_shows_nothing(self):
        indicator = StatusIndicator(self._console(), enabled=False)

        indicator.show("hello")

        assert not indicator.visible

    @pytest.mark.asyncio
    async def test_timeout_hides_message(self):
        with StatusIndicator(self._console()) as indicator:
            indicator.show("Downloaded", timeout=0.01)
            assert indicator.visible
            await asyncio.sleep(0.05)
            assert not indicator.visible

    @pytest.mark.asyncio
    async def test_newer_message_cancels_expiry(self):
        with StatusIndicator(self._console()) as indicator:
            indicator.show("first", timeout=0.01)
            indicator.show("second")
            await asyncio.sleep(0.05)
            assert indicator.visible

    def test_persistent_events_printed(self):
        console = self._console()
        with StatusIndicator(console) as indicator:
            indicator.on_event(ProgressEvent(type=EventType.ITEM_SKIPPED, message="(2/3) Skipped: boom"))
            indicator.on_event(ProgressEvent(type=EventType.STATUS, message="Converting to Markdown..."))

        output = console.file.getvalue()
        assert "(2/3) Skipped: boom" in output
        assert "Converting to Markdown" not in output


class TestSupportHelpers:
    """Tests for cookie parsing and logging setup."""

    def test_parse_cookie_header(self):
        cookies = parse_cookie_header("z_c0=abc; d_c0=def=1; broken", "zhihu.com")

        assert cookies == [
            {"name": "z_c0", "value": "abc", "domain": ".zhihu.com", "path": "/"},
            {"name": "d_c0", "value": "def=1", "domain": ".zhihu.com", "path": "/"},
        ]
        assert parse_cookie_header(None, "zhihu.com") == []

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / "mdgrab.log"
        logger = setup_logging("DEBUG", log_file, force=True)
        try:
            assert logger.name == "mdgrab"
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logging.getLogger("mdgrab.test").debug("written to file")
            for handler in logger.handlers:
                handler.flush()
            assert "written to file" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)
            logger.propagate = True
