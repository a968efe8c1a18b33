from pathlib import Path


def check_path(path: str | Path, error_prefix: str = "Path") -> Path:
    """Check if a file exists and return a Path object.

    Args:
        path (str | Path): The file to check.
        error_prefix (str, optional): The error message prefix. Defaults to "Path".

    Returns:
        Path: The Path object.

    Raises:
        FileNotFoundError: If the file does not exist.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{error_prefix} {path} does not exist")
    return path


def make_parent_dir(path: str | Path) -> Path:
    """Create the parent directory of a file path if it does not exist.

    Args:
        path (str | Path): The file whose parent directory is created.

    Returns:
        Path: The file path as a Path object.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
