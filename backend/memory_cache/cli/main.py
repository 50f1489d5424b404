"""CLI entrypoint for the memory cache."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="memc", help="Memory cache command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5175"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("MEMC_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=60, **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Cannot reach {base}: {exc}", err=True)
        raise typer.Exit(code=1)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(resp: requests.Response) -> None:
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def lookup(
    question: str = typer.Argument(..., help="Question text"),
    owner: str = typer.Option(..., "--owner", help="Owner identifier"),
    scope: str = typer.Option("default", "--scope", help="Cache scope"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Look up a cached answer."""
    payload = {"question": question, "owner_id": owner, "scope": scope}
    _echo(_request("POST", "/cache/lookup", host=host, json=payload))


@app.command()
def store(
    question: str = typer.Argument(..., help="Question text"),
    response: str = typer.Argument(..., help="Answer to cache"),
    owner: str = typer.Option(..., "--owner", help="Owner identifier"),
    scope: str = typer.Option("default", "--scope", help="Cache scope"),
    model: Optional[str] = typer.Option(None, "--model", help="Model that produced the answer"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Provider that produced the answer"),
    tokens: int = typer.Option(0, "--tokens", help="Tokens spent producing the answer"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Cache an answer for a question."""
    payload = {
        "question": question,
        "response": response,
        "owner_id": owner,
        "scope": scope,
        "model": model,
        "provider": provider,
        "tokens_used": tokens,
    }
    _echo(_request("POST", "/cache/store", host=host, json=payload))


@app.command()
def index(
    source_ref: str = typer.Argument(..., help="Conversation or document reference"),
    owner: str = typer.Option(..., "--owner", help="Owner identifier"),
    text: Optional[str] = typer.Option(None, "--text", help="Turn text"),
    role: str = typer.Option("user", "--role", help="Turn role: user or assistant"),
    file: Optional[Path] = typer.Option(None, "--file", help="JSON file holding a list of {role, text} turns"),
    label: Optional[str] = typer.Option(None, "--label", help="Human-readable source label"),
    background: bool = typer.Option(False, "--background", help="Queue instead of indexing now"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Index a turn or a whole conversation."""
    payload: dict[str, object] = {"owner_id": owner, "source_ref": source_ref, "source_label": label}
    if file:
        payload["turns"] = json.loads(file.expanduser().read_text(encoding="utf-8"))
    elif text is not None:
        payload["text"] = text
        payload["role"] = role
    else:
        typer.echo("Provide --text or --file", err=True)
        raise typer.Exit(code=2)
    path = "/knowledge/index/async" if background else "/knowledge/index"
    _echo(_request("POST", path, host=host, json=payload))


@app.command()
def retrieve(
    query: str = typer.Argument(..., help="Query text"),
    owner: str = typer.Option(..., "--owner", help="Owner identifier"),
    top_k: Optional[int] = typer.Option(None, "--top-k", help="Maximum number of results"),
    min_score: Optional[float] = typer.Option(None, "--min-score", help="Minimum relevance score"),
    context_only: bool = typer.Option(False, "--context", help="Print only the formatted context block"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Retrieve indexed context relevant to a query."""
    payload: dict[str, object] = {"query": query, "owner_id": owner}
    if top_k is not None:
        payload["top_k"] = top_k
    if min_score is not None:
        payload["min_score"] = min_score
    resp = _request("POST", "/knowledge/retrieve", host=host, json=payload)
    if context_only:
        typer.echo(resp.json()["context_text"])
        return
    _echo(resp)


@app.command()
def prune(
    owner: Optional[str] = typer.Option(None, "--owner", help="Prune this owner's knowledge"),
    days: Optional[float] = typer.Option(None, "--days", help="Age in days (defaults to the retention setting)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete expired cache entries, or an owner's old knowledge with --owner."""
    if owner:
        payload = {"owner_id": owner, "days": days}
        _echo(_request("POST", "/maintenance/prune-older-than", host=host, json=payload))
    else:
        _echo(_request("POST", "/maintenance/prune-expired", host=host))


@app.command()
def stats(
    owner: Optional[str] = typer.Option(None, "--owner", help="Limit to one owner"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show cache statistics, plus indexing statistics when --owner is set."""
    params = {"owner_id": owner} if owner else None
    payload = {"cache": _request("GET", "/cache/stats", host=host, params=params).json()}
    if owner:
        payload["knowledge"] = _request("GET", f"/knowledge/stats/{owner}", host=host).json()
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def invalidate(
    entry_id: str = typer.Argument(..., help="Cache entry identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Remove one cache entry."""
    _echo(_request("DELETE", f"/cache/{entry_id}", host=host))


if __name__ == "__main__":
    app()
