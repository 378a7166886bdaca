from __future__ import annotations

from club_statements.models.contracts import PositionedFragment

Row = list[PositionedFragment]


def sort_fragments(fragments: list[PositionedFragment], same_line_epsilon: float = 5.0) -> list[PositionedFragment]:
    """Top of page first, then left to right for fragments on one visual line."""
    ordered: list[PositionedFragment] = []
    line: list[PositionedFragment] = []
    for fragment in sorted(fragments, key=lambda f: (-f.y, f.x)):
        if line and abs(line[0].y - fragment.y) >= same_line_epsilon:
            ordered.extend(sorted(line, key=lambda f: f.x))
            line = []
        line.append(fragment)
    ordered.extend(sorted(line, key=lambda f: f.x))
    return ordered


def group_rows(
    fragments: list[PositionedFragment],
    row_threshold: float = 10.0,
    same_line_epsilon: float = 5.0,
) -> list[Row]:
    rows: list[Row] = []
    current: Row = []
    current_y: float | None = None

    for fragment in sort_fragments(fragments, same_line_epsilon):
        if current_y is None or abs(fragment.y - current_y) > row_threshold:
            if current:
                rows.append(current)
            current = [fragment]
            current_y = fragment.y
        else:
            current.append(fragment)

    if current:
        rows.append(current)
    return [sorted(row, key=lambda f: f.x) for row in rows]


def row_text(row: Row, separator: str = " ") -> str:
    return separator.join(fragment.text.strip() for fragment in row if fragment.text.strip())
