"""Extraction of a single option value from a raw argument list."""

from __future__ import annotations

from collections.abc import Sequence


def pick_option(args: Sequence[str], opts: Sequence[str]) -> tuple[str, list[str]]:
    """Pull the value of any of ``opts`` out of ``args``.

    Both ``--opt value`` and ``--opt=value`` forms are understood; the last
    occurrence wins. Returns the value (empty when absent) and the remaining
    arguments in their original order.
    """
    value = ""
    remains: list[str] = []
    skip_next = False

    for position, arg in enumerate(args):
        opt = next((o for o in opts if arg == o or arg.startswith(f"{o}=")), None)
        if opt is not None:
            if arg == opt:
                if position + 1 >= len(args):
                    raise ValueError(f"option {opt} requires a value")
                value = args[position + 1]
                skip_next = True
            else:
                value = arg.split("=")[1]
            continue
        if skip_next:
            skip_next = False
            continue
        remains.append(arg)

    return value, remains