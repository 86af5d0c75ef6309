"""
Command-line interface for openbadge-vc.

Usage:
    openbadge keygen --issuer-id https://example.com/issuers/1
    openbadge sign credential.json --private-key z3u2... > signed.json
    openbadge verify signed.json --public-key z6Mk...
    openbadge status create --issuer https://example.com/issuers/1 --id https://example.com/status/1
    openbadge status set list.json 42 --revoke
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from openbadge_vc import __version__
from openbadge_vc.bitstring import IndexOutOfRange
from openbadge_vc.config import Settings
from openbadge_vc.did_resolver import DIDResolver
from openbadge_vc.keys import SigningKey, SigningKeyError, generate_signing_key
from openbadge_vc.logging_setup import configure_logging
from openbadge_vc.signer import sign_credential
from openbadge_vc.statuslist import (
    STATUS_PURPOSES,
    CredentialStatus,
    MalformedInput,
    StatusListChecker,
    create_status_list_credential,
    index_for_identity,
    is_credential_revoked,
    set_credential_status,
)
from openbadge_vc.verifier import VCVerifier, VerificationResult


console = Console()


def format_result(result: VerificationResult) -> None:
    """Format and print verification result."""
    if result.verified:
        status_icon = "[bold green]VERIFIED[/]"
        panel_style = "green"
    else:
        status_icon = "[bold red]NOT VERIFIED[/]"
        panel_style = "red"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Status", status_icon)

    if result.credential_id:
        table.add_row("Credential ID", result.credential_id)

    if result.issuer:
        table.add_row("Issuer", result.issuer)

    if result.signature_verification is not None:
        signature = "[green]Valid[/]" if result.signature_verification else "[red]Invalid[/]"
        table.add_row("Signature", signature)

    for status_result in result.status_results:
        if status_result.status == CredentialStatus.VALID:
            status_str = "[green]Valid[/]"
        elif status_result.status == CredentialStatus.REVOKED:
            status_str = "[red]Revoked[/]"
        elif status_result.status == CredentialStatus.SUSPENDED:
            status_str = "[yellow]Suspended[/]"
        else:
            status_str = "[dim]Unknown[/]"
        table.add_row(
            f"Status ({status_result.purpose})",
            f"{status_str} index {status_result.index}",
        )

    if result.error:
        table.add_row("Error", f"[red]{result.error}[/]")

    console.print(Panel(table, title="Verification Result", border_style=panel_style))


def load_credential(source: str, timeout: float = 30.0) -> dict[str, Any]:
    """Load a JSON document from a file, URL, or stdin ("-")."""
    if source == "-":
        return json.loads(sys.stdin.read())

    if source.startswith("http://") or source.startswith("https://"):
        with httpx.Client(timeout=timeout) as client:
            response = client.get(
                source,
                headers={"Accept": "application/vc+ld+json, application/json"},
            )
            response.raise_for_status()
            return response.json()

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")

    with path.open(encoding="utf-8") as f:
        return json.load(f)


def write_json(data: dict[str, Any], output: Path | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")


@click.group()
@click.option("--log-level", default=None, help="Log level (default: OPENBADGE_LOG_LEVEL or INFO)")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Issue, sign and verify Open Badges credentials."""
    settings = Settings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command()
@click.option("--issuer-id", required=True, help="Issuer the key belongs to")
def keygen(issuer_id: str) -> None:
    """Generate an Ed25519 signing key in Multikey form."""
    key = generate_signing_key(issuer_id)
    write_json({
        "issuerId": key.issuer_id,
        "created": key.created,
        "publicKeyMultibase": key.public_key_multibase,
        "privateKeyMultibase": key.private_key_multibase,
        "controller": key.controller,
        "id": key.key_id,
    }, None)


@main.command()
@click.argument("source", required=True)
@click.option(
    "--private-key",
    required=True,
    envvar="OPENBADGE_PRIVATE_KEY",
    help="Multibase Ed25519 private key",
)
@click.option(
    "--verification-method",
    default=None,
    help="Verification method id (default: did:key id of the private key)",
)
@click.option("--proof-purpose", default="assertionMethod", show_default=True)
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None)
@click.pass_obj
def sign(
    settings: Settings,
    source: str,
    private_key: str,
    verification_method: str | None,
    proof_purpose: str,
    output: Path | None,
) -> None:
    """Attach a DataIntegrityProof to the credential in SOURCE."""
    credential = load_credential(source, timeout=settings.http_timeout)
    try:
        if verification_method is None:
            verification_method = SigningKey.from_multibase("", private_key).key_id
        signed = sign_credential(
            credential,
            private_key,
            verification_method=verification_method,
            proof_purpose=proof_purpose,
        )
    except SigningKeyError as e:
        raise click.ClickException(f"Invalid signing key: {e}") from e
    write_json(signed, output)


@main.command()
@click.argument("source", required=True)
@click.option("--public-key", default=None, help="Multibase Ed25519 public key")
@click.option(
    "--resolve",
    is_flag=True,
    help="Resolve the key from the proof's verificationMethod (did:key, did:web)",
)
@click.option(
    "--no-status",
    is_flag=True,
    help="Skip credential status (revocation) check",
)
@click.option(
    "--no-ssl-verify",
    is_flag=True,
    help="Disable SSL certificate verification",
)
@click.option(
    "--json-output",
    is_flag=True,
    help="Output result as JSON",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="HTTP request timeout in seconds",
)
@click.pass_obj
def verify(
    settings: Settings,
    source: str,
    public_key: str | None,
    resolve: bool,
    no_status: bool,
    no_ssl_verify: bool,
    json_output: bool,
    timeout: float | None,
) -> None:
    """Verify a signed credential.

    SOURCE can be a file path, a URL, or "-" to read from stdin.
    Exit status is 0 when verified, 1 when not, 2 on errors.
    """
    if public_key is None and not resolve:
        raise click.UsageError("Pass --public-key or --resolve")

    timeout = timeout if timeout is not None else settings.http_timeout
    verify_ssl = settings.verify_ssl and not no_ssl_verify

    try:
        credential = load_credential(source, timeout=timeout)

        verifier = VCVerifier(
            did_resolver=DIDResolver(timeout=timeout, verify_ssl=verify_ssl) if resolve else None,
            statuslist_checker=StatusListChecker(timeout=timeout, verify_ssl=verify_ssl),
            verify_status=not no_status,
        )
        result = verifier.verify(credential, public_key)

        if json_output:
            output = result.to_dict()
            output["credentialStatus"] = [
                {
                    "status": status_result.status.value,
                    "purpose": status_result.purpose,
                    "index": status_result.index,
                }
                for status_result in result.status_results
            ]
            console.print_json(data=output)
        else:
            format_result(result)

        sys.exit(0 if result.verified else 1)

    except json.JSONDecodeError as e:
        _report_error(f"Invalid JSON: {e}", json_output)
    except httpx.HTTPError as e:
        _report_error(f"HTTP error: {e}", json_output)
    except SigningKeyError as e:
        _report_error(f"Invalid public key: {e}", json_output)


def _report_error(message: str, json_output: bool) -> None:
    if json_output:
        console.print_json(data={"error": message})
    else:
        console.print(f"[red]Error:[/] {message}")
    sys.exit(2)


@main.group()
def status() -> None:
    """Maintain StatusList2021 credentials."""


@status.command("create")
@click.option("--issuer", required=True, help="Issuer id of the status list")
@click.option("--id", "list_id", required=True, help="Status list credential id")
@click.option("--purpose", type=click.Choice(STATUS_PURPOSES), default="revocation", show_default=True)
@click.option("--size", type=int, default=None, help="Number of entries")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None)
@click.pass_obj
def status_create(
    settings: Settings,
    issuer: str,
    list_id: str,
    purpose: str,
    size: int | None,
    output: Path | None,
) -> None:
    """Create an empty status list credential."""
    try:
        credential = create_status_list_credential(
            issuer, list_id, purpose=purpose, size=size or settings.status_list_size
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--size") from e
    write_json(credential, output)


@status.command("set")
@click.argument("list_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("index", type=int)
@click.option("--revoke/--reinstate", default=True, help="Set or clear the entry")
def status_set(list_file: Path, index: int, revoke: bool) -> None:
    """Set or clear INDEX in the status list stored in LIST_FILE."""
    credential = json.loads(list_file.read_text(encoding="utf-8"))
    try:
        set_credential_status(credential, index, revoke)
    except IndexOutOfRange as e:
        raise click.BadParameter(str(e), param_hint="INDEX") from e
    except (KeyError, TypeError) as e:
        raise click.ClickException(f"Not a status list credential: {list_file}") from e
    write_json(credential, list_file)
    action = "revoked" if revoke else "reinstated"
    console.print(f"Index {index} {action} in {list_file}")


@status.command("check")
@click.argument("list_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("index", type=int)
def status_check(list_file: Path, index: int) -> None:
    """Report whether INDEX is set in the status list in LIST_FILE."""
    credential = json.loads(list_file.read_text(encoding="utf-8"))
    try:
        encoded_list = credential["credentialSubject"]["encodedList"]
    except (KeyError, TypeError) as e:
        raise click.ClickException(f"Not a status list credential: {list_file}") from e
    try:
        revoked = is_credential_revoked(encoded_list, index)
    except IndexOutOfRange as e:
        raise click.BadParameter(str(e), param_hint="INDEX") from e
    click.echo("revoked" if revoked else "valid")


@status.command("index")
@click.argument("identity")
@click.option("--size", type=int, default=None, help="Status list size")
@click.pass_obj
def status_index(settings: Settings, identity: str, size: int | None) -> None:
    """Print the status list index derived from a UUID."""
    size = settings.status_list_size if size is None else size
    try:
        click.echo(index_for_identity(identity, size))
    except MalformedInput as e:
        raise click.BadParameter(str(e), param_hint="IDENTITY") from e
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--size") from e


if __name__ == "__main__":
    main()
