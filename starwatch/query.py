"""
Field allow-list for dynamically built search queries.

Result fields and ORDER BY clauses are spliced into the SQL text rather
than bound as parameters, so every name must be checked here first.
Unknown names are rejected, never dropped.
"""

from .errors import FieldValidationError
from .types import SortSpec


# Every key must match a column of the items table, or the computed
# "score" alias.
ALLOWED_FIELDS = frozenset({
    "owner",
    "name",
    "full_name",
    "description",
    "url",
    "homepage_url",
    "stars",
    "language",
    "topics",
    "readme_excerpt",
    "ai_summary",
    "ai_categories",
    "fetched_at",
    "enriched_at",
    "score",
})

# Stored as JSON text; decoded back into lists in result rows
LIST_FIELDS = frozenset({"topics", "ai_categories"})

DEFAULT_FIELDS = ("full_name", "description", "ai_summary", "ai_categories", "stars", "url", "score")
DEFAULT_SORT = (SortSpec("score", desc=True),)


def is_allowed_field(name: str) -> bool:
    """Report whether ``name`` may appear in a search query."""
    return name in ALLOWED_FIELDS


def validate_fields(fields: list[str]) -> list[str]:
    """Check result field names, returning them with duplicates removed.

    Raises:
        FieldValidationError: On the first unknown field
    """
    seen: list[str] = []
    for f in fields:
        if not is_allowed_field(f):
            raise FieldValidationError(f"unknown field {f!r}")
        if f not in seen:
            seen.append(f)
    return seen


def validate_sort(specs: list[SortSpec]) -> list[SortSpec]:
    """Check sort clause field names.

    Raises:
        FieldValidationError: On the first unknown field
    """
    for spec in specs:
        if not is_allowed_field(spec.field):
            raise FieldValidationError(f"unknown sort field {spec.field!r}")
    return list(specs)


def parse_fields(raw: str) -> list[str]:
    """Parse and validate a comma-separated field list like ``"full_name,stars"``."""
    fields = [f.strip() for f in raw.split(",") if f.strip()]
    if not fields:
        raise FieldValidationError("no fields specified")
    return validate_fields(fields)


def parse_sort(raw: str) -> list[SortSpec]:
    """Parse ``"field [asc|desc], ..."`` into validated SortSpecs."""
    specs = []
    for part in raw.split(","):
        tokens = part.split()
        if not tokens:
            continue
        if len(tokens) > 2:
            raise FieldValidationError(f"invalid sort clause {part.strip()!r}")
        field = tokens[0]
        if not is_allowed_field(field):
            raise FieldValidationError(f"unknown sort field {field!r}")
        desc = False
        if len(tokens) == 2:
            direction = tokens[1].lower()
            if direction == "desc":
                desc = True
            elif direction != "asc":
                raise FieldValidationError(
                    f"invalid sort direction {tokens[1]!r} (use asc or desc)"
                )
        specs.append(SortSpec(field, desc=desc))
    return specs
