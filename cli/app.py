from __future__ import annotations

import typer
from dotenv import load_dotenv

from ntpquery import settings

from .subapps.ntp import ntp_app

app = typer.Typer(help="ntpquery command line interface")
app.add_typer(ntp_app, name="ntp")


@app.callback()
def main() -> None:
    load_dotenv()
    settings.setup_logging()


if __name__ == "__main__":
    app()
