"""Unit tests for module-based logging."""

import logging
import tempfile
from pathlib import Path

from core.logging import (
    MODULE_TO_LOG,
    ModuleDispatchHandler,
    ThirdPartyHandler,
    end_run,
    get_current_run_id,
    is_first_party,
    module_to_log_name,
    start_run,
)
from core.logging.run_manager import _compute_log_name, should_rotate


def _record(name: str, message: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=message,
        args=(),
        exc_info=None,
    )


class TestModuleToLogName:
    """Tests for module_to_log_name()."""

    def test_exact_match(self):
        assert module_to_log_name("core.openalex") == "openalex"
        assert module_to_log_name("citegraph.deduplication") == "citegraph-dedup"

    def test_submodule_match(self):
        """Submodules match their parent prefix."""
        assert module_to_log_name("core.openalex.client") == "openalex"
        assert module_to_log_name("citegraph.relationships.detector") == "citegraph-detection"
        assert module_to_log_name("citegraph.materializer.service") == "citegraph-materializer"

    def test_longest_prefix_wins(self):
        """citegraph.expansion beats the citegraph catch-all."""
        assert module_to_log_name("citegraph.expansion.query_builder") == "citegraph-expansion"
        assert module_to_log_name("citegraph.store") == "citegraph"

    def test_prefix_requires_dot_boundary(self):
        """A shared leading string is not a parent module."""
        assert module_to_log_name("citegraphical") == "misc"
        assert module_to_log_name("core.openalexish") == "misc"

    def test_fallback_to_misc(self):
        assert module_to_log_name("unknown.module") == "misc"
        assert module_to_log_name("httpx") == "misc"
        assert module_to_log_name("__main__") == "misc"

    def test_caching(self):
        """Repeated lookups are served from the cache."""
        module_to_log_name.cache_clear()

        result1 = module_to_log_name("core.openalex.test_module")
        result2 = module_to_log_name("core.openalex.test_module")

        assert result1 == result2
        assert module_to_log_name.cache_info().hits == 1


class TestComputeLogName:
    def test_all_mappings_valid(self):
        """Every MODULE_TO_LOG prefix maps to its own log name."""
        for prefix, log_name in MODULE_TO_LOG.items():
            result = _compute_log_name(prefix)
            assert result == log_name, f"Expected {prefix} -> {log_name}, got {result}"


class TestIsFirstParty:
    def test_project_modules(self):
        assert is_first_party("citegraph.deduplication")
        assert is_first_party("core.utils.http_errors")
        assert is_first_party("testing.utils.fake_provider")

    def test_libraries(self):
        assert not is_first_party("httpx")
        assert not is_first_party("httpcore.connection")
        assert not is_first_party("asyncio")


class TestRunLifecycle:
    """Tests for start_run/end_run."""

    def test_start_run_sets_id(self):
        end_run()
        assert get_current_run_id() is None

        start_run("test-run-123")
        assert get_current_run_id() == "test-run-123"

        end_run()
        assert get_current_run_id() is None

    def test_multiple_start_runs(self):
        """Starting a new run replaces the previous one."""
        start_run("run-1")
        assert get_current_run_id() == "run-1"

        start_run("run-2")
        assert get_current_run_id() == "run-2"

        end_run()


class TestShouldRotate:
    def test_no_rotation_without_run(self):
        end_run()
        assert should_rotate("openalex") is False

    def test_rotation_once_per_log_per_run(self):
        start_run("test-run")
        assert should_rotate("openalex") is True
        assert should_rotate("openalex") is False
        assert should_rotate("citegraph-dedup") is True
        end_run()

    def test_new_run_resets_rotation(self):
        start_run("run-1")
        assert should_rotate("openalex") is True
        end_run()

        start_run("run-2")
        assert should_rotate("openalex") is True
        end_run()


class TestModuleDispatchHandler:
    def test_routes_to_correct_file(self):
        """Records land in the file of their module's log name."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir)
            handler = ModuleDispatchHandler(log_dir)
            handler.setFormatter(logging.Formatter("%(message)s"))

            handler.emit(_record("core.openalex.client", "Fetched W1"))
            handler.emit(_record("citegraph.deduplication", "Joined in-flight fetch"))
            handler.close()

            assert "Fetched W1" in (log_dir / "openalex.log").read_text()
            assert "Joined in-flight fetch" in (log_dir / "citegraph-dedup.log").read_text()

    def test_rotation_on_new_run(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir)
            handler = ModuleDispatchHandler(log_dir)
            handler.setFormatter(logging.Formatter("%(message)s"))

            start_run("run-1")
            handler.emit(_record("citegraph.materializer", "Run 1 message"))
            end_run()

            start_run("run-2")
            handler.emit(_record("citegraph.materializer", "Run 2 message"))
            end_run()

            handler.close()

            current = log_dir / "citegraph-materializer.log"
            previous = log_dir / "citegraph-materializer.previous.log"
            assert "Run 2 message" in current.read_text()
            assert "Run 1 message" in previous.read_text()
            assert "Run 1 message" not in current.read_text()

    def test_close_releases_all_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            handler = ModuleDispatchHandler(Path(tmpdir))
            handler.setFormatter(logging.Formatter("%(message)s"))

            for module in ["core.openalex", "citegraph.expansion", "core.utils"]:
                handler.emit(_record(module, f"Message from {module}"))

            assert len(handler._file_cache) == 3
            handler.close()
            assert len(handler._file_cache) == 0


class TestThirdPartyHandler:
    def test_writes_to_single_file(self):
        """All library logs go to run-3p.log."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir)
            handler = ThirdPartyHandler(log_dir)
            handler.setFormatter(logging.Formatter("%(message)s"))

            for lib in ["httpx", "httpcore", "asyncio"]:
                handler.emit(_record(lib, f"Message from {lib}"))
            handler.close()

            content = (log_dir / "run-3p.log").read_text()
            assert "httpx" in content
            assert "httpcore" in content
            assert "asyncio" in content

    def test_rotation_on_new_run(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir)
            handler = ThirdPartyHandler(log_dir)
            handler.setFormatter(logging.Formatter("%(message)s"))

            start_run("run-1")
            handler.emit(_record("httpx", "Run 1 httpx message"))
            end_run()

            start_run("run-2")
            handler.emit(_record("httpx", "Run 2 httpx message"))
            end_run()

            handler.close()

            assert "Run 2" in (log_dir / "run-3p.log").read_text()
            assert "Run 1" in (log_dir / "run-3p.previous.log").read_text()


class TestConfigureLogging:
    """configure_logging() installs both handlers on the root logger, once."""

    def test_installs_handlers_once(self, tmp_path, monkeypatch):
        import core.config as config

        monkeypatch.setenv("CITEGRAPH_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setattr(config, "_logging_configured", False)
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", list(root.handlers))
        previous_level = root.level

        config.configure_logging("warning")
        config.configure_logging("debug")

        installed = [
            h for h in root.handlers if isinstance(h, (ModuleDispatchHandler, ThirdPartyHandler))
        ]
        try:
            assert sorted(type(h).__name__ for h in installed) == [
                "ModuleDispatchHandler",
                "ThirdPartyHandler",
            ]
            assert root.level == logging.WARNING
            assert (tmp_path / "logs").is_dir()

            logging.getLogger("citegraph.store").warning("store message")
            logging.getLogger("httpx").warning("library message")
            assert "store message" in (tmp_path / "logs" / "citegraph.log").read_text()
            assert "library message" in (tmp_path / "logs" / "run-3p.log").read_text()
        finally:
            for handler in installed:
                handler.close()
            root.setLevel(previous_level)
