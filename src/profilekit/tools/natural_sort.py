"""
Numeric-aware ordering of file and folder names.

Two orderings are provided. The renumbering order looks only at a leading
number: names with a numeric prefix come first, ordered by that number, and
everything else follows. The natural order compares every run of digits
numerically and is used for page ordering.
"""

import re
import sys
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar, Union


T = TypeVar('T')

# Sort position of names without a numeric prefix
SENTINEL = sys.maxsize

_PREFIX_RE = re.compile(r'^\s*(\d+)')
_DIGITS_RE = re.compile(r'(\d+)')


def numeric_prefix(name: str) -> Optional[int]:
    """
    Get the leading integer of a name.

    Args:
        name: File or folder name

    Returns:
        The integer value of the leading digit run, or None
    """
    match = _PREFIX_RE.match(name)
    if not match:
        return None
    return int(match.group(1))


def renumber_sort_key(name: str) -> Tuple[int, str]:
    """
    Sort key used by the sequential renamer.

    Args:
        name: File or folder name

    Returns:
        (numeric prefix or SENTINEL, case-folded name)
    """
    prefix = numeric_prefix(name)
    return (SENTINEL if prefix is None else prefix, name.casefold())


def natural_key(name: str) -> List[Union[Tuple[int, int], Tuple[int, str]]]:
    """
    General natural sort key: digit runs compare as numbers.

    'page2' sorts before 'page10'. Numbers sort before text at the same
    position so that keys of mixed names stay comparable.
    """
    key = []
    for part in _DIGITS_RE.split(name):
        if not part:
            continue
        if part.isdecimal():
            key.append((0, int(part)))
        else:
            key.append((1, part.casefold()))
    return key


def natural_sorted(items: Iterable[T], key: Optional[Callable[[T], str]] = None) -> List[T]:
    """
    Stable natural sort.

    Args:
        items: Items to sort
        key: Function returning the name of an item (identity when omitted)

    Returns:
        New list in natural order
    """
    name_of: Callable[[Any], str] = key or (lambda item: item)
    return sorted(items, key=lambda item: natural_key(name_of(item)))
