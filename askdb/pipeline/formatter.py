"""Markdown rendering of query results."""

import json
from decimal import Decimal
from typing import Any

MAX_DISPLAY_ROWS = 10
MAX_CELL_LENGTH = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if len(text) > MAX_CELL_LENGTH:
        text = text[: MAX_CELL_LENGTH - 3] + "..."
    # escaped after truncation so a cut never splits "\|"
    return text.replace("|", "\\|").replace("\n", " ")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _column_statistics(column: str, rows: list[dict[str, Any]]) -> str | None:
    values = [row.get(column) for row in rows if row.get(column) is not None]
    if not values:
        return None

    # first non-null value decides the column kind
    if _is_number(values[0]):
        numbers = [float(v) if isinstance(v, Decimal) else v for v in values if _is_number(v)]
        total = sum(numbers)
        mean = total / len(numbers)
        return f"- {column}: sum = {total:,}, mean = {mean:.2f}"

    distinct = len({str(v) for v in values})
    return f"- {column}: {_plural(distinct, 'distinct value')}"


def _render_rows(rows: list[dict[str, Any]]) -> str:
    columns = list(rows[0].keys())
    parts = [f"**Results** ({_plural(len(rows), 'row')}):\n\n"]

    parts.append(f"| {' | '.join(columns)} |\n")
    parts.append(f"| {' | '.join('---' for _ in columns)} |\n")
    for row in rows[:MAX_DISPLAY_ROWS]:
        parts.append(f"| {' | '.join(_cell(row.get(col)) for col in columns)} |\n")

    if len(rows) > MAX_DISPLAY_ROWS:
        parts.append(f"\n*... and {len(rows) - MAX_DISPLAY_ROWS} more rows*\n")

    parts.append("\n**Statistics:**\n")
    parts.append(f"- Total results: {len(rows)}\n")
    for column in columns:
        line = _column_statistics(column, rows)
        if line:
            parts.append(f"{line}\n")

    return "".join(parts)


def format_response(question: str, sql_query: str, data: Any, dialect: str) -> str:
    """
    Render a question, the executed SQL and its result as markdown.

    Args:
        question: The user's question
        sql_query: SQL that was executed
        data: Result rows (list of dicts), a scalar/dict result, or None
        dialect: Dialect label shown with the SQL block and in the footer

    Returns:
        Markdown text
    """
    label = dialect.upper()
    response = "## Answer to your question\n\n"
    response += f"**Question:** {question}\n\n"
    response += f"**Executed SQL** ({label}):\n"
    response += f"```sql\n{sql_query}\n```\n\n"

    if isinstance(data, list) and data:
        response += _render_rows(data)
    elif isinstance(data, list):
        response += "**Results:** No results found\n\n"
        response += (
            "**Suggestion:** Try rephrasing your question or check the available data.\n"
        )
    elif data is not None:
        response += f"**Result:** {json.dumps(data, indent=2, default=str)}\n"
    else:
        response += "**Results:** Unable to display the results\n"

    response += "\n---\n"
    response += f"*Database: {label}*\n"
    return response
