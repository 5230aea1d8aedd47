from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional

import pandas as pd
from rich.console import Console
from rich.markup import escape
from rich.table import Table

_CONSOLE = Console()


def console() -> Console:
    return _CONSOLE


def to_ms(delta: Optional[pd.Timedelta]) -> Optional[float]:
    if delta is None:
        return None
    return delta.value / 1_000_000


def print_json(payload: Dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, indent=2, sort_keys=True, default=str)
    sys.stdout.write("\n")


def render_fields(title: str, fields: Dict[str, Any]) -> None:
    table = Table(title=title)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for key, value in fields.items():
        table.add_row(str(key), "-" if value is None else escape(str(value)))
    console().print(table)
