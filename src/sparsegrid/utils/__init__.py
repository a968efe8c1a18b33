from . import dotdict, logger, paths
from .dotdict import DotDict
from .paths import check_path, make_parent_dir
from .timer import Timer

__all__ = [
    "DotDict",
    "Timer",
    "check_path",
    "dotdict",
    "logger",
    "make_parent_dir",
    "paths",
]
