from typing import Dict, Union

import jsonschema

KEY_SEPARATOR = "."

# A localization tree is an object whose values are strings or trees of the same shape.
LOCALIZATION_TREE_SCHEMA = {
    "type": "object",
    "additionalProperties": {
        "anyOf": [
            {"type": "string"},
            {"$ref": "#"}
        ]
    }
}

LocalizationTree = Dict[str, Union[str, "LocalizationTree"]]


def validate_localization_tree(tree: object) -> None:
    """
    Validate a parsed JSON document against the localization tree schema.

    Raises:
        jsonschema.ValidationError: If the document is not a nested mapping of strings.
    """
    jsonschema.validate(instance=tree, schema=LOCALIZATION_TREE_SCHEMA)


def flatten(tree: LocalizationTree, separator: str = KEY_SEPARATOR) -> Dict[str, str]:
    """
    Flatten a nested localization tree into a mapping of dot-joined paths to leaves.

    Args:
        tree: The nested mapping to flatten.
        separator: The string used to join ancestor keys.

    Returns:
        Dict[str, str]: One entry per leaf, in depth-first document order.
    """
    flat_map: Dict[str, str] = {}

    def _walk(node: LocalizationTree, prefix: str) -> None:
        for key, value in node.items():
            path = f"{prefix}{separator}{key}" if prefix else key
            if isinstance(value, dict):
                _walk(value, path)
            else:
                flat_map[path] = value

    _walk(tree, "")
    return flat_map


def unflatten(flat_map: Dict[str, str], separator: str = KEY_SEPARATOR) -> LocalizationTree:
    """
    Rebuild a nested tree from a flat mapping produced by ``flatten``.

    Keys are inserted in the iteration order of ``flat_map``, so callers control
    the key order of the resulting tree. A path that is both a leaf and the
    parent of another path is a precondition violation and raises ``ValueError``.
    """
    tree: LocalizationTree = {}
    for path, value in flat_map.items():
        parts = path.split(separator)
        node = tree
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"Path '{path}' collides with the leaf at '{part}'.")
            node = child
        if isinstance(node.get(parts[-1]), dict):
            raise ValueError(f"Path '{path}' collides with an existing object.")
        node[parts[-1]] = value
    return tree
