import logging

import numpy as np
import pytest

from sparsegrid import config
from sparsegrid.extent import Extent
from sparsegrid.grid import Grid
from sparsegrid.math import compute_nmad, round_to_multiple
from sparsegrid.utils import DotDict, Timer, check_path, make_parent_dir
from sparsegrid.utils.logger import setup_logger


class TestDotDict:
    def test_attribute_access(self):
        d = DotDict({"a": 1, "b": {"c": 2}})
        assert d.a == 1
        assert d.b.c == 2
        assert d.missing is None

    def test_recursive_update(self):
        d = DotDict({"a": 1, "b": {"c": 2, "d": 3}})
        d.update({"b": {"c": 5}, "e": [{"f": 6}]})
        assert d.a == 1
        assert d.b.c == 5
        assert d.b.d == 3
        assert d.e[0].f == 6

    def test_to_dict(self):
        d = DotDict({"a": {"b": 1}})
        plain = d.to_dict()
        assert plain == {"a": {"b": 1}}
        assert type(plain["a"]) is dict


class TestSettings:
    def test_defaults(self):
        assert config.settings.grid.nodata == -9999.0
        assert config.settings.io.compress == "LZW"

    def test_update_and_reset(self):
        config.update_settings({"grid": {"nodata": -1.0}})
        assert config.settings.grid.nodata == -1.0
        assert config.settings.grid.dtype == "float32"
        grid = Grid.create(Extent(0, 0, 2, 2), 1.0)
        assert grid.nodata == -1.0

        config.reset_settings()
        assert config.settings.grid.nodata == -9999.0
        assert config.settings.to_dict() == config.DEFAULTS.to_dict()


class TestTimer:
    def test_context_manager(self):
        with Timer(message="Sleeping") as timer:
            pass
        assert timer.elapsed >= 0

    def test_decorator(self):
        timer = Timer()

        @timer
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert add.__name__ == "add"

    def test_configured_copy(self):
        timer = Timer(level=logging.INFO)
        with timer("Loading") as configured:
            pass
        assert configured is not timer
        assert configured.message == "Loading"
        assert configured.level == logging.INFO
        assert configured.elapsed is not None


class TestSetupLogger:
    def test_console_handler(self):
        logger = setup_logger(level="debug", name="sparsegrid.test_console")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_force_replaces_handlers(self):
        setup_logger(name="sparsegrid.test_force")
        logger = setup_logger(name="sparsegrid.test_force", force=True)
        assert len(logger.handlers) == 1

    def test_log_to_file(self, tmp_path):
        logger = setup_logger(
            name="sparsegrid.test_file", log_to_file=True, log_folder=tmp_path
        )
        logger.info("Hello")
        for handler in logger.handlers:
            handler.flush()
        log_files = list(tmp_path.glob("sparsegrid.test_file_*.log"))
        assert len(log_files) == 1
        assert "Hello" in log_files[0].read_text()
        setup_logger(name="sparsegrid.test_file", force=True)

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            setup_logger(level="loud", name="sparsegrid.test_invalid")


class TestPaths:
    def test_check_path(self, tmp_path):
        assert check_path(tmp_path) == tmp_path
        with pytest.raises(FileNotFoundError, match="Grid file"):
            check_path(tmp_path / "missing.tif", "Grid file")

    def test_make_parent_dir(self, tmp_path):
        path = make_parent_dir(tmp_path / "a" / "b" / "grid.tif")
        assert path.parent.is_dir()
        assert not path.exists()


def test_compute_nmad():
    assert compute_nmad(np.array([1.0, 1.0, 1.0])) == 0.0
    assert compute_nmad(np.array([1.0, 2.0, 3.0])) == pytest.approx(1.4826)


def test_round_to_multiple():
    assert round_to_multiple(123.456, 1) == 123.0
    assert round_to_multiple(123.456, 10) == 120.0
    assert round_to_multiple(123.456, 100) == 100.0
    assert round_to_multiple(123.6, 1, func=np.floor) == 123.0
    assert round_to_multiple(123.4, 1, func=np.ceil) == 124.0
    assert round_to_multiple(0.7, 0.5, origin=0.25, func=np.floor) == 0.25
