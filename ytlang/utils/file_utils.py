from typing import Optional


def get_line_and_column_from_index(file: str, index: int) -> tuple[int, int]:
    """Map a 1-based character offset to a (line, column) pair, both 1-based."""
    prefix = file[: max(index - 1, 0)]
    line = prefix.count("\n") + 1
    column = len(prefix) - (prefix.rfind("\n") + 1) + 1
    return line, column


def get_line(file: str, line: int) -> str:
    lines = file.splitlines()
    if 0 < line <= len(lines):
        return lines[line - 1]
    return ""


def format_source_context(
    file: Optional[str], index: Optional[int], filename: str = "<input>"
) -> str:
    """Render the offending source line with a caret under the given offset."""
    if file is None or index is None:
        return ""

    line_num, column_num = get_line_and_column_from_index(file, index)
    line_text = get_line(file, line_num)
    stripped = line_text.lstrip()
    caret_column = column_num - (len(line_text) - len(stripped))
    return (
        f"\n> {stripped.rstrip()}\n"
        + " " * (caret_column + 1)
        + "^"
        + f"\n({filename}:{line_num}:{column_num})"
    )
