import gzip
import json
from os import PathLike
from pathlib import Path
from typing import Any, Union

from pyboss._private.exceptions import SchemaViolation


def load_json(path: Union[str, PathLike]) -> Any:
    """Reads a JSON document from a file.
    Args:
        path: The path to load from. Can be gzip-compressed or plain text.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        try:
            with gzip.open(path, 'rt', encoding='utf-8') as f:
                return json.load(f)
        except gzip.BadGzipFile:
            with open(path, 'rt', encoding='utf-8') as f:
                return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaViolation("json", f"{path}: {e}") from e


def save_json(doc: Any, path: Union[str, PathLike], indent=None):
    """Writes a JSON document to a file, gzip-compressed if the name ends in .gz"""
    path = Path(path)
    opener = gzip.open if path.suffix == '.gz' else open
    with opener(path, 'wt', encoding='utf-8') as f:
        json.dump(doc, f, indent=indent)
        f.write("\n")
