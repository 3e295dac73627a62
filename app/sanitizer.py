"""
app/sanitizer.py
-----------------------------------------------------------------------------
Block-input repair for Scratch 3 ``project.json`` documents.

Why this exists
---------------
Projects fetched from the payload endpoint frequently contain input slots
that Scratch-compatible runtimes refuse to load: bare values where a list is
expected, lists with a single element, or an empty list standing in for a
missing shadow.  A loader that indexes ``input[1]`` then crashes.

Input encoding
--------------
A well-formed input is a list::

    [shadow_kind, block_ref_or_literal, (optional) obscured_shadow]

i.e. a tagged union of

- ``PlainValue``     – anything that is not a list (malformed on its own), and
- ``ShadowedValue``  – a list whose element 1 is a block id, a literal
                       primitive such as ``[4, "10"]``, or ``None``.

The repair rule lives in a single pure function, :func:`normalise_input`:

1. not a list               → ``[1, None]``
2. list shorter than two    → padded with ``None`` to length two
3. element 1 is ``[]``      → element 1 becomes ``None``

The rule is idempotent: every output already satisfies all three checks.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Shadow kind used when the original value carries no usable structure.
# ``1`` is INPUT_SAME_BLOCK_SHADOW in the Scratch 3 serialiser.
_PLAIN_SHADOW_KIND: int = 1


def normalise_input(value: Any) -> list:
    """
    Return the consumer-safe form of a single block input.

    Lists are repaired in place and returned (the same object), so callers
    holding a reference to the original list observe the fix.  Non-list
    values are replaced by a fresh ``[1, None]``.

    Parameters
    ----------
    value : The raw input value taken from ``block["inputs"][name]``.

    Returns
    -------
    list : A list of length >= 2 whose element 1 is never an empty list.
    """
    if not isinstance(value, list):
        return [_PLAIN_SHADOW_KIND, None]

    while len(value) < 2:
        value.append(None)

    if isinstance(value[1], list) and len(value[1]) == 0:
        value[1] = None

    return value


def sanitize_project(document: dict) -> int:
    """
    Repair every block input of every target in ``document`` in place.

    Targets without ``blocks``, blocks that are not objects (top-level
    variable/list reporters are stored as bare lists), and blocks without an
    ``inputs`` mapping are left alone.  Targets and blocks are never removed
    or reordered.

    Parameters
    ----------
    document : Parsed ``project.json``.  A missing ``targets`` key means
               "no targets" and is not an error.

    Returns
    -------
    int : Number of inputs whose value changed.
    """
    repaired = 0

    for target in document.get("targets") or []:
        if not isinstance(target, dict):
            continue
        blocks = target.get("blocks")
        if not isinstance(blocks, dict):
            continue

        for block in blocks.values():
            if not isinstance(block, dict):
                continue
            inputs = block.get("inputs")
            if not isinstance(inputs, dict):
                continue

            for name, value in inputs.items():
                before = _snapshot(value)
                fixed = normalise_input(value)
                inputs[name] = fixed
                if before != _snapshot(fixed):
                    repaired += 1

    if repaired:
        logger.info("Sanitizer repaired %d block input(s).", repaired)

    return repaired


def _snapshot(value: Any) -> Any:
    # Shallow copy so in-place list repairs can be detected.
    return list(value) if isinstance(value, list) else value
