"""Command-line interface for the BAP.

Example:
    >>> # From terminal:
    >>> # beckn-bap --version
    >>> # beckn-bap keys generate >> .env
    >>> # beckn-bap sign request.json --private-key "$BAP_SIGNING_PRIVATE_KEY"
    >>> # beckn-bap verify request.json --header 'Signature keyId=...' --public-key <b64>
    >>> # beckn-bap challenge decrypt <b64> --counterparty-public-key <b64> --private-key <b64>
    >>> # beckn-bap subscribe-payload --environment preprod
    >>> # beckn-bap serve --port 3000
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from beckn_bap import __version__
from beckn_bap.config import BAPConfig
from beckn_bap.crypto.authorization import (
    StaticKeyResolver,
    create_authorization_header,
    verify_authorization_header,
)
from beckn_bap.crypto.challenge import decrypt_challenge, encrypt_challenge
from beckn_bap.crypto.keys import generate_encryption_keypair, generate_signing_keypair
from beckn_bap.errors import ConfigurationError
from beckn_bap.models.constants import DEFAULT_SIGNATURE_TTL_SECONDS
from beckn_bap.protocol.registry import REGISTRY_URLS, build_subscribe_payload

app = typer.Typer(help="Beckn BAP CLI.")

keys_app = typer.Typer(help="Signing (Ed25519) and encryption (X25519) key generation.")
app.add_typer(keys_app, name="keys")

challenge_app = typer.Typer(help="Registry subscription challenge encryption.")
app.add_typer(challenge_app, name="challenge")

# Restrict files holding private keys to owner read/write only
PRIVATE_KEY_FILE_MODE = 0o600


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show beckn-bap version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(version: bool = VERSION_OPTION) -> None:
    """Beckn BAP CLI entrypoint."""


def _read_body(path: Path) -> bytes:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    if not path.is_file():
        raise typer.BadParameter(f"Not a file: {path}")
    return path.read_bytes()


def _load_config() -> BAPConfig:
    try:
        return BAPConfig.from_env()
    except ConfigurationError as exc:
        raise typer.BadParameter(exc.message) from exc


@keys_app.command("generate")
def keys_generate(
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the env lines to this file (mode 0600)."),
    ] = None,
) -> None:
    """Print a new signing pair and encryption pair as BAP_* env lines."""
    signing = generate_signing_keypair()
    encryption = generate_encryption_keypair()
    lines = [
        "# Signing keys (Ed25519)",
        f"BAP_SIGNING_PUBLIC_KEY={signing.public_key}",
        f"BAP_SIGNING_PRIVATE_KEY={signing.private_key}",
        "# Encryption keys (X25519, DER)",
        f"BAP_ENCRYPTION_PUBLIC_KEY={encryption.public_key}",
        f"BAP_ENCRYPTION_PRIVATE_KEY={encryption.private_key}",
    ]
    output = "\n".join(lines) + "\n"
    if out is None:
        typer.echo(output, nl=False)
        return
    if out.exists() and out.is_dir():
        raise typer.BadParameter(f"Output path is a directory: {out}")
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(output, encoding="utf-8")
    try:
        out.chmod(PRIVATE_KEY_FILE_MODE)
    except OSError as exc:
        typer.echo(
            f"Warning: could not set file permissions to 0600: {exc}. "
            "Ensure the key file is not readable by others.",
            err=True,
        )
    typer.echo(f"Keys written to {out}")


@app.command("sign")
def sign_command(
    body_file: Annotated[Path, typer.Argument(help="File holding the exact request body.")],
    private_key: Annotated[
        str,
        typer.Option(
            "--private-key",
            "-k",
            envvar="BAP_SIGNING_PRIVATE_KEY",
            help="Base64 Ed25519 private key (32-byte seed or 64-byte secret key).",
        ),
    ],
    subscriber_id: Annotated[
        str,
        typer.Option("--subscriber-id", envvar="BAP_SUBSCRIBER_ID", help="Signer subscriber id."),
    ],
    unique_key_id: Annotated[
        str,
        typer.Option("--unique-key-id", envvar="BAP_UNIQUE_KEY_ID", help="Signer key id."),
    ],
    ttl: Annotated[
        int, typer.Option("--ttl", min=1, help="Seconds until the header expires.")
    ] = DEFAULT_SIGNATURE_TTL_SECONDS,
) -> None:
    """Print an Authorization header for the bytes of BODY_FILE."""
    body = _read_body(body_file)
    try:
        header = create_authorization_header(
            body, private_key, subscriber_id, unique_key_id, ttl_seconds=ttl
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(header)


@app.command("verify")
def verify_command(
    body_file: Annotated[Path, typer.Argument(help="File holding the exact request body.")],
    header: Annotated[str, typer.Option("--header", "-H", help="Authorization header value.")],
    public_key: Annotated[
        str, typer.Option("--public-key", "-p", help="Base64 Ed25519 public key of the signer.")
    ],
    now: Annotated[
        Optional[int],
        typer.Option("--now", help="Unix time to check expiry against (default: current)."),
    ] = None,
) -> None:
    """Verify an Authorization header over BODY_FILE; exit 1 unless valid."""
    body = _read_body(body_file)
    result = verify_authorization_header(
        header, body, StaticKeyResolver(default_key=public_key), now=now
    )
    if not result.valid:
        typer.echo(f"Verification failed ({result.verdict.value}): {result.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Signature valid: {result.key_id}")


@challenge_app.command("decrypt")
def challenge_decrypt(
    challenge: Annotated[str, typer.Argument(help="Base64 encrypted challenge.")],
    counterparty_public_key: Annotated[
        str,
        typer.Option(
            "--counterparty-public-key",
            envvar="BAP_REGISTRY_PUBLIC_KEY",
            help="Registry X25519 public key (base64 raw or DER).",
        ),
    ],
    private_key: Annotated[
        str,
        typer.Option(
            "--private-key",
            envvar="BAP_ENCRYPTION_PRIVATE_KEY",
            help="Own X25519 private key (base64 raw or DER).",
        ),
    ],
) -> None:
    """Decrypt a challenge as /on_subscribe would; exit 1 on failure."""
    answer = decrypt_challenge(challenge, counterparty_public_key, private_key)
    if answer is None:
        typer.echo("Decryption failed", err=True)
        raise typer.Exit(1)
    typer.echo(answer)


@challenge_app.command("encrypt")
def challenge_encrypt(
    plaintext: Annotated[str, typer.Argument(help="Challenge text to encrypt.")],
    counterparty_public_key: Annotated[
        str,
        typer.Option(
            "--counterparty-public-key",
            help="Participant X25519 public key (base64 raw or DER).",
        ),
    ],
    private_key: Annotated[
        str,
        typer.Option("--private-key", help="Registry-side X25519 private key (base64 raw or DER)."),
    ],
) -> None:
    """Encrypt a challenge as the registry does (for testing a deployment)."""
    try:
        typer.echo(encrypt_challenge(plaintext, counterparty_public_key, private_key))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command("subscribe-payload")
def subscribe_payload(
    environment: Annotated[
        str,
        typer.Option(
            "--environment",
            "-e",
            help=f"Registry environment: {', '.join(REGISTRY_URLS)}.",
        ),
    ] = "staging",
    with_header: Annotated[
        bool,
        typer.Option("--with-header", help="Also print a signed Authorization header."),
    ] = False,
) -> None:
    """Print the registry /subscribe body for the BAP configured in BAP_* variables."""
    if environment not in REGISTRY_URLS:
        raise typer.BadParameter(
            f"Unknown environment {environment!r}; use one of {', '.join(REGISTRY_URLS)}"
        )
    config = _load_config()
    try:
        payload = build_subscribe_payload(config)
    except ConfigurationError as exc:
        raise typer.BadParameter(exc.message) from exc
    body = json.dumps(payload, separators=(",", ":"))
    typer.echo(f"POST {REGISTRY_URLS[environment]}", err=True)
    if with_header:
        header = create_authorization_header(
            body.encode("utf-8"),
            config.signing_private_key,
            config.subscriber_id,
            config.unique_key_id,
            ttl_seconds=config.signature_ttl,
        )
        typer.echo(f"Authorization: {header}", err=True)
    typer.echo(body)


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address.")] = "0.0.0.0",  # nosec B104
    port: Annotated[int, typer.Option("--port", "-p", help="Bind port.")] = 3000,
    log_format: Annotated[
        Optional[str],
        typer.Option("--log-format", help="console or json (default: BAP_LOG_FORMAT)."),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Log level (default: BAP_LOG_LEVEL)."),
    ] = None,
) -> None:
    """Run the BAP server with uvicorn, configured from BAP_* variables."""
    import uvicorn

    from beckn_bap.observability import configure_logging
    from beckn_bap.transport.server import create_app

    configure_logging(log_format=log_format, log_level=log_level, force=True)
    uvicorn.run(create_app(_load_config()), host=host, port=port)


def main() -> None:
    """Run the Beckn BAP CLI."""
    app()


if __name__ == "__main__":
    main()
