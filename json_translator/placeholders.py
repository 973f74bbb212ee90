import json

from json_translator.tree_utils import LocalizationTree

DEFAULT_TEMPLATED_STRING_PREFIX = "{{"
DEFAULT_TEMPLATED_STRING_SUFFIX = "}}"
NEWLINE_SENTINEL_NAME = "NEWLINE"


def newline_sentinel(prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
                     suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX) -> str:
    """Return the marker that stands in for a newline, e.g. ``{{NEWLINE}}``."""
    return f"{prefix}{NEWLINE_SENTINEL_NAME}{suffix}"


def guard_newlines(tree: LocalizationTree,
                   prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
                   suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX) -> LocalizationTree:
    """
    Return a copy of ``tree`` with every newline in its leaves replaced by the sentinel.

    The backend sees one quoted line per string, so a newline inside a leaf would
    split it in two. The sentinel also tells the model which token to leave alone.
    The input tree is not modified.
    """
    sentinel = newline_sentinel(prefix, suffix)
    guarded: LocalizationTree = {}
    for key, value in tree.items():
        if isinstance(value, dict):
            guarded[key] = guard_newlines(value, prefix, suffix)
        else:
            guarded[key] = value.replace("\n", sentinel)
    return guarded


def restore_newlines(serialized_text: str,
                     prefix: str = DEFAULT_TEMPLATED_STRING_PREFIX,
                     suffix: str = DEFAULT_TEMPLATED_STRING_SUFFIX) -> str:
    """
    Replace the sentinel in serialized JSON text with the ``\\n`` escape.

    The sentinel is looked up in its JSON-encoded form so that prefixes
    containing characters JSON escapes (quotes, backslashes) are still found.
    """
    encoded_sentinel = json.dumps(newline_sentinel(prefix, suffix), ensure_ascii=False)[1:-1]
    return serialized_text.replace(encoded_sentinel, "\\n")
