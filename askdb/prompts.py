"""Dialect-aware prompts for the generation service."""

from pydantic import BaseModel, Field

BASE_PROMPT = (
    "You are an expert SQL assistant. Generate a SQL query to answer the user's question."
)


class DialectPrompts(BaseModel):
    """Prompt fragments for one dialect."""

    base_prompt: str
    specific_rules: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)


_DIALECT_RULES: dict[str, tuple[list[str], list[str]]] = {
    "sqlite": (
        [
            "Use LIKE for text search (case-sensitive for non-ASCII)",
            "Use strftime() for date and time handling",
            "Only use functions available in SQLite",
        ],
        [
            "Dates: strftime('%Y-%m-%d', date_column)",
            "Search: column LIKE 'pattern'",
        ],
    ),
    "postgresql": (
        [
            "Use ILIKE for case-insensitive search",
            "PostgreSQL functions are available (EXTRACT, DATE_TRUNC, ...)",
            "Arrays and JSON operators are supported",
        ],
        [
            "Case-insensitive search: column ILIKE '%pattern%'",
            "Dates: EXTRACT(YEAR FROM date_column)",
            "JSON: column->>'key' = 'value'",
        ],
    ),
    "mysql": (
        [
            "Use LIKE (case-insensitive by default)",
            "MySQL functions are available (DATE_FORMAT, CONCAT, ...)",
            "Use standard MySQL syntax",
        ],
        [
            "Dates: DATE_FORMAT(date_column, '%Y-%m-%d')",
            "Concatenation: CONCAT(first_name, ' ', last_name)",
        ],
    ),
}
_DIALECT_RULES["mariadb"] = _DIALECT_RULES["mysql"]


class PromptBuilder:
    """Builds the SQL generation prompt for a dialect."""

    def __init__(self, dialect: str):
        self.dialect = dialect

    def dialect_prompts(self) -> DialectPrompts:
        rules, examples = _DIALECT_RULES.get(
            self.dialect,
            (["Use standard SQL syntax"], ["Sort: ORDER BY column ASC/DESC"]),
        )
        return DialectPrompts(base_prompt=BASE_PROMPT, specific_rules=rules, examples=examples)

    def build_sql_prompt(self, question: str, schema_text: str, max_results: int) -> str:
        """
        Build the generation prompt.

        Args:
            question: Natural-language question
            schema_text: Serialized schema description
            max_results: Row limit the query must respect

        Returns:
            Prompt text sent to the generation service
        """
        prompts = self.dialect_prompts()
        dialect_label = self.dialect.upper()

        sections = [
            prompts.base_prompt,
            f"Database type: {dialect_label}\nSchema information:\n{schema_text}",
            "Rules:\n"
            "1. Use only the tables and columns that exist in the schema\n"
            f"2. Limit results to {max_results} rows maximum\n"
            "3. Make the query efficient and readable\n"
            "4. Only generate the SQL query, no explanation needed\n"
            f"5. Use appropriate syntax for {self.dialect}",
        ]
        if prompts.specific_rules:
            sections.append(
                "Database-specific rules:\n"
                + "\n".join(f"- {rule}" for rule in prompts.specific_rules)
            )
        if prompts.examples:
            sections.append("Examples:\n" + "\n".join(f"- {ex}" for ex in prompts.examples))
        sections.append(f'Question: "{question}"\n\nQuery:')

        return "\n\n".join(sections)

