from ytlang.enums import TypeKind

INTEGER_WIDTHS = {8, 16, 32, 64}

# Named sized integers; plain "int" carries no width.
SIZED_INTEGER_NAMES = {f"i{width}": width for width in sorted(INTEGER_WIDTHS)}

NUMERIC_KINDS = {TypeKind.INT, TypeKind.FLOAT}

COMPARISON_OPERATORS = {"==", "!=", "<", ">", "<=", ">="}
LOGICAL_OPERATORS = {"&&", "||"}
ARITHMETIC_OPERATORS = {"+", "-", "*", "/"}


def is_boolean_result(operator: str) -> bool:
    """Operators whose result is always bool, whatever their operands."""
    return operator in COMPARISON_OPERATORS or operator in LOGICAL_OPERATORS
