import copy
from typing import Any


class DotDict(dict):
    """Dictionary with attribute access to its keys, used for nested settings.

    Missing attributes return None instead of raising. Nested dictionaries (also
    inside lists) are converted to DotDict on construction and update.
    """

    __getattr__ = dict.get
    __setattr__ = dict.__setitem__
    __delattr__ = dict.__delitem__

    def __init__(self, mapping: dict[Any, Any] | None = None, **kwargs):
        items = dict(mapping or {}, **kwargs)
        super().__init__({k: recursive_to_dotdict(v) for k, v in items.items()})

    def __deepcopy__(self, memo):
        return DotDict(copy.deepcopy(dict(self), memo))

    def update(self, other: dict[Any, Any]) -> None:
        """Merge other into this DotDict; nested dictionaries are merged key by key."""
        merged = recursive_merge(self, other)
        self.clear()
        super().update(recursive_to_dotdict(merged))

    def to_dict(self) -> dict[Any, Any]:
        """Return a plain (nested) dictionary copy."""
        return {
            k: v.to_dict() if isinstance(v, DotDict) else copy.deepcopy(v)
            for k, v in self.items()
        }


def recursive_to_dotdict(x: Any) -> Any:
    """Convert nested dictionaries, also inside lists, to DotDict instances."""
    if isinstance(x, DotDict):
        return x
    if isinstance(x, dict):
        return DotDict(x)
    if isinstance(x, list):
        return [recursive_to_dotdict(item) for item in x]
    return x


def recursive_merge(default: dict[Any, Any], user: dict[Any, Any]) -> dict[Any, Any]:
    """Return a copy of default with the values of user merged in.

    Where both hold a dictionary under the same key, the two are merged;
    otherwise the value from user wins.
    """
    merged = {k: copy.deepcopy(v) for k, v in default.items()}
    for key, value in user.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = recursive_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
