import json
from collections.abc import Mapping
from os import PathLike
from typing import Any, Dict, Iterator, Optional, Union

from pyboss import jsonio, schema


class Params(Mapping):
    """A parameter assignment: parameter name -> numeric value.

    Read-only once built; the values are copied in, so the caller's
    dictionary can change afterwards without affecting this object."""

    def __init__(self, defs: Optional[Dict[str, float]] = None):
        self.defs: Dict[str, float] = {k: float(v) for k, v in (defs or {}).items()}

    def __getitem__(self, name: str) -> float:
        return self.defs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.defs)

    def __len__(self) -> int:
        return len(self.defs)

    def __repr__(self):
        return f"Params({self.defs!r})"

    def combine(self, other: Mapping) -> 'Params':
        """New assignment with the values in other overriding those in self."""
        return Params({**self.defs, **other})

    # ==================
    # Saving and Loading
    # ==================

    @classmethod
    def from_json(cls, doc: Any) -> 'Params':
        """Build from a flat {name: number} document, validating it first."""
        validated = schema.validate("params", doc)
        return cls(validated.root)

    def to_json(self) -> Dict[str, float]:
        return dict(self.defs)

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    @classmethod
    def load(cls, path: Union[str, PathLike]) -> 'Params':
        """Loads a parameter assignment from a JSON file."""
        return cls.from_json(jsonio.load_json(path))

    def save(self, path: Union[str, PathLike]):
        jsonio.save_json(self.to_json(), path)
