"""Typer CLI for key management and local masking runs."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from observability.logging_config import configure_logging
from scribeguard.common.exceptions import PHIError
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.crypto.secret_box import SecretBox
from scribeguard.phi.dependencies import get_masker
from scribeguard.phi.unmasker import PHIUnmasker

app = typer.Typer(help="De-identify clinical text and manage envelope-encryption keys.")
console = Console()


@app.callback()
def _cli_entry(
    log_level: str = typer.Option("WARNING", "--log-level", help="Root log level."),
    plain_logs: bool = typer.Option(False, "--plain-logs", help="Plain text logs instead of JSON."),
) -> None:
    load_dotenv(override=False)
    configure_logging(level=log_level, structured=not plain_logs)


def _read_input(text: Optional[str], path: Optional[Path]) -> str:
    if path is not None:
        return path.read_text(encoding="utf-8")
    if text:
        return text
    raise typer.BadParameter("Provide TEXT or --file.")


@app.command()
def keygen(
    out_dir: Path = typer.Option(Path("."), "--out-dir", help="Directory for the PEM files."),
    key_size: int = typer.Option(2048, "--key-size", min=2048, help="RSA modulus size in bits."),
    key_id: str = typer.Option("default", "--key-id", help="Identifier published with the public key."),
    force: bool = typer.Option(False, "--force", help="Overwrite existing files."),
) -> None:
    """Generate an RSA keypair for wrapping per-record AES keys."""

    public_path = out_dir / "public.pem"
    private_path = out_dir / "private.pem"
    existing = [p for p in (public_path, private_path) if p.exists()]
    if existing and not force:
        typer.secho(f"Refusing to overwrite {', '.join(map(str, existing))} (use --force)", err=True)
        raise typer.Exit(code=1)

    keys = KeyMaterial.generate(key_size=key_size, key_id=key_id)
    out_dir.mkdir(parents=True, exist_ok=True)
    public_path.write_text(keys.public_pem(), encoding="utf-8")
    private_path.write_text(keys.private_pem(), encoding="utf-8")
    private_path.chmod(0o600)

    console.print(f"[green]Wrote[/green] {public_path} and {private_path}")
    console.print(f"Set PUBLIC_KEY_PATH={public_path} PRIVATE_KEY_PATH={private_path} PUBLIC_KEY_ID={key_id}")


@app.command()
def mask(
    text: Optional[str] = typer.Argument(None, help="Text to mask (or use --file)."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, readable=True),
    threshold: Optional[float] = typer.Option(None, "--threshold", min=0.0, max=1.0),
    show_entities: bool = typer.Option(False, "--show-entities", help="Print a table of masked spans."),
) -> None:
    """Mask PHI with the configured detector and print the result as JSON."""

    source = _read_input(text, file)
    try:
        result = asyncio.run(get_masker().mask(source, threshold))
    except PHIError as exc:
        typer.secho(f"Masking failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if show_entities:
        table = Table(title="Masked spans")
        table.add_column("Token")
        table.add_column("Offsets")
        table.add_column("Score", justify="right")
        for entity in result.phi_entities:
            table.add_row(
                f"{{{{{entity.ledger_key}}}}}",
                f"{entity.begin_offset}-{entity.end_offset}",
                f"{entity.score:.2f}",
            )
        console.print(table)

    typer.echo(json.dumps(result.to_dict(), indent=2))


@app.command()
def unmask(
    masked: Path = typer.Argument(..., exists=True, readable=True, help="Masked text file."),
    ledger: Path = typer.Argument(..., exists=True, readable=True, help="JSON ledger (phi_entities)."),
) -> None:
    """Restore masked text from a ledger produced by `mask`."""

    try:
        payload = json.loads(ledger.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.secho(f"Ledger is not valid JSON: {exc}", err=True)
        raise typer.Exit(code=1)
    entities = payload.get("phi_entities", []) if isinstance(payload, dict) else payload

    try:
        result = PHIUnmasker().unmask(masked.read_text(encoding="utf-8"), entities)
    except PHIError as exc:
        typer.secho(f"Unmasking failed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(result.unmasked_text)
    for label, tokens in (
        ("invalid", result.warnings.invalid_tokens),
        ("unmatched", result.warnings.no_match_tokens),
    ):
        if tokens:
            typer.secho(f"{len(tokens)} {label} token(s): {', '.join(tokens)}", err=True)


@app.command("secret-key")
def secret_key() -> None:
    """Print a fresh hex key for REFRESH_TOKEN_AES_KEY_HEX."""

    typer.echo(SecretBox.generate_key_hex())


if __name__ == "__main__":  # pragma: no cover
    app()
