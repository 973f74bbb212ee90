from typing import List, Optional
import re
from collections import Counter


def split_generated_lines(generated_text: Optional[str]) -> List[str]:
    """
    Split a backend reply into its lines, dropping Markdown code fences and blank lines.

    Only "\n" ends a line; "\r", form feeds and Unicode line separators inside a
    quoted value stay part of it.

    Args:
        generated_text: The raw reply, or None.

    Returns:
        The non-empty lines of the reply with surrounding whitespace removed.
    """
    if not generated_text:
        return []
    lines = []
    for line in generated_text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("```"):
            continue
        lines.append(stripped)
    return lines


def unquote_line(line: str) -> str:
    """Remove one pair of surrounding double quotes, if present."""
    if len(line) >= 2 and line.startswith('"') and line.endswith('"'):
        return line[1:-1]
    return line


def check_line_count(source_lines: List[str], translated_lines: List[str]) -> bool:
    """
    Checks that the backend returned exactly one line per source line.
    """
    return len(source_lines) == len(translated_lines)


def check_quoted_lines(translated_lines: List[str]) -> List[int]:
    """
    Returns the indices of lines that are not wrapped in double quotes.
    """
    return [
        index for index, line in enumerate(translated_lines)
        if not (len(line) >= 2 and line.startswith('"') and line.endswith('"'))
    ]


def check_templated_string_parity(base_string: str, target_string: str, prefix: str, suffix: str) -> bool:
    """
    Checks if the templated strings (e.g. ``{{NEWLINE}}``, ``{{count}}``) of a source
    line and its translation are identical. Reordering is allowed.

    Args:
        base_string: The source line.
        target_string: The translated line.
        prefix: The templated string prefix, e.g. ``{{``.
        suffix: The templated string suffix, e.g. ``}}``.

    Returns:
        True if both lines contain the same multiset of templated strings, False otherwise.
    """
    placeholder_regex = re.compile(re.escape(prefix) + r'(.+?)' + re.escape(suffix))

    base_placeholders = Counter(placeholder_regex.findall(base_string))
    target_placeholders = Counter(placeholder_regex.findall(target_string))

    return base_placeholders == target_placeholders


def find_batch_problems(
    source_lines: List[str],
    translated_lines: List[str],
    keys: List[str],
    prefix: str,
    suffix: str
) -> List[str]:
    """
    Runs every structural check on one translated batch.

    Args:
        source_lines: The quoted source lines sent to the backend.
        translated_lines: The lines returned by the backend.
        keys: The flat keys of the batch, in the same order as ``source_lines``.
        prefix: The templated string prefix.
        suffix: The templated string suffix.

    Returns:
        A list of human-readable problems. An empty list means the batch is usable.
    """
    if not check_line_count(source_lines, translated_lines):
        # Nothing else can be compared once lines no longer line up
        return [f"Expected {len(source_lines)} lines but received {len(translated_lines)}."]

    problems = []
    for index in check_quoted_lines(translated_lines):
        problems.append(f"Line {index + 1} (key '{keys[index]}') is not wrapped in double quotes.")

    for key, source_line, translated_line in zip(keys, source_lines, translated_lines):
        if not check_templated_string_parity(source_line, translated_line, prefix, suffix):
            problems.append(f"Templated string mismatch for key '{key}'.")

    return problems
