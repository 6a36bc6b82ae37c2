"""Key filtering shared by create, show and run."""

from typing import Iterable, Optional


def apply(
    values: dict,
    only: Optional[Iterable[str]] = None,
    exclude: Optional[Iterable[str]] = None,
) -> dict:
    """
    Restrict a mapping to ``only`` keys, then drop ``exclude`` keys.

    Keys named in ``only`` but absent from the mapping are ignored. ``None``
    means "no filter"; an empty ``only`` keeps nothing. The input is never
    modified and key order is preserved.
    """
    filtered = dict(values)
    if only is not None:
        only = set(only)
        filtered = {key: value for key, value in filtered.items() if key in only}
    if exclude is not None:
        exclude = set(exclude)
        filtered = {key: value for key, value in filtered.items() if key not in exclude}
    return filtered


def is_filtered(only: Optional[Iterable[str]] = None, exclude: Optional[Iterable[str]] = None) -> bool:
    """True when a read may not expose every key of an environment."""
    return only is not None or exclude is not None
