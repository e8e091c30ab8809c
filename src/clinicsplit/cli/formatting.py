"""Output helpers shared by CLI commands."""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import click

RULE_WIDTH = 80


def format_amount(value: int) -> str:
    """Format minor units as $1,234 (negative as -$1,234)."""
    if value < 0:
        return f"-${-value:,}"
    return f"${value:,}"


def format_percent(value: Optional[float]) -> str:
    """Format a percentage, or '-' when unset."""
    if value is None:
        return "-"
    return f"{value:.5f}".rstrip("0").rstrip(".") + "%"


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a timestamp to the minute, or '-' when unset."""
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")


def echo_row(label: str, value: str, indent: int = 0) -> None:
    """Echo a label/value line right-aligned to the rule width."""
    label_width = 50 - indent
    click.echo(f"{' ' * indent}{label:<{label_width}} {value:>29}")


def echo_heading(title: str) -> None:
    click.echo(f"\n{title}")
    click.echo("-" * RULE_WIDTH)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_jsonable(value: Any) -> Any:
    """Convert report dataclasses into plain JSON-ready structures."""
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return json.loads(json.dumps(value, default=_json_default))


def echo_json(value: Any) -> None:
    """Echo a dataclass (or plain structure) as indented JSON."""
    click.echo(json.dumps(to_jsonable(value), indent=2, sort_keys=True))
