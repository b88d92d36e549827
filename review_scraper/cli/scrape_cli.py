"""Typer-based command line interface."""

import os

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent.parent
from dotenv import load_dotenv

load_dotenv(_project_root / ".env")
load_dotenv(_project_root / ".env.local")

import asyncio
from typing import List, Optional

import typer

from review_scraper.config import export_provider_credentials, get_settings
from review_scraper.constants import DEFAULT_REVIEW_COUNT
from review_scraper.models.review_models import ReviewRecord
from review_scraper.services.scrape_session import ScrapeError, ScrapeSession

app = typer.Typer(help="Scrape product reviews with LLM-discovered selectors.")

BACKEND_CHOICES = ("playwright", "chromedriver")


def format_reviews(reviews: List[ReviewRecord]) -> str:
    """Render reviews as the plain-text report printed by `scrape`."""
    lines = ["", "=== Review Details ===", ""]
    for index, review in enumerate(reviews, start=1):
        lines.extend(
            [
                f"Review #{index}",
                f"Reviewer: {review.reviewer}",
                f"Rating: {'⭐' * review.rating}",
                f"Date: {review.date}",
                f"Review: {review.body}",
                "-------------------",
                "",
            ]
        )
    lines.append(f"Total Reviews: {len(reviews)}")
    return "\n".join(lines)


@app.command()
def scrape(
    url: str = typer.Argument(..., help="Product page URL"),
    num_reviews: int = typer.Option(
        DEFAULT_REVIEW_COUNT, "--num-reviews", "-n", help="Number of reviews wanted"
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b", help="Browser backend: playwright or chromedriver"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the JSON payload"),
):
    """Scrape reviews from URL and print them."""
    settings = get_settings()
    if backend is not None:
        if backend not in BACKEND_CHOICES:
            typer.secho(
                f"Unknown backend '{backend}'. Choose one of: {', '.join(BACKEND_CHOICES)}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=2)
        settings = settings.model_copy(update={"browser_backend": backend})
    export_provider_credentials(settings)

    session = ScrapeSession(settings=settings)
    try:
        result = asyncio.run(session.run(url, num_reviews))
    except ScrapeError as e:
        typer.secho(f"Error ({e.status_code}): {e.message}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(result.model_dump_json(by_alias=True, indent=2))
    else:
        typer.echo(format_reviews(result.reviews))


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("review_scraper.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
