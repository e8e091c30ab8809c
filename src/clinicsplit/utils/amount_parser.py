"""Amount parsing utilities."""

import re


def parse_amount(amount_str: str) -> int:
    """Parse an amount string into an integer of minor currency units.

    Handles various formats:
    - "1500"
    - "$1500"
    - "1,500" / "1_500" / "1 500"
    - "-1500" and "(1500)" (negative; callers decide whether that is allowed)

    Args:
        amount_str: Amount string

    Returns:
        Integer amount

    Raises:
        ValueError: If amount string is empty or not a whole number
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    amount_str = amount_str.strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols and digit group separators
    amount_str = re.sub(r"[$€£¥\s,_]", "", amount_str)

    if amount_str.startswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[1:]

    if not amount_str.isdigit():
        raise ValueError(f"Could not parse amount '{amount_str}': expected a whole number")

    amount = int(amount_str)
    return -amount if is_negative else amount
