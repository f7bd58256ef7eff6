"""CLI for SecureChat end-to-end encryption keys and envelopes."""
import asyncio
import click
import json
import sys
from typing import Optional

from securechat.core.config import settings
from securechat.dependencies import get_key_manager, get_message_cipher, get_messaging_service
from securechat.errors import SecureChatError
from securechat.logging_hardening import configure_logging, setup_logging_redaction


def _run(coro):
    try:
        return asyncio.run(coro)
    except SecureChatError as e:
        raise click.ClickException(f"{e.code}: {e.message}")


@click.group()
def cli():
    """SecureChat E2EE CLI."""
    configure_logging(settings.LOG_LEVEL)
    setup_logging_redaction()


@cli.group()
def keys():
    """Manage the local key pair."""
    pass


@keys.command("generate")
@click.option("--force", is_flag=True, help="Replace an existing key pair (orphans old messages)")
def generate_keys(force: bool):
    """Generate and store a new key pair."""
    async def _generate():
        key_manager = get_key_manager()
        if not force and await key_manager.get_public_key() is not None:
            raise click.ClickException("A key pair already exists; use --force to replace it")
        key_pair = await key_manager.generate()
        await key_manager.store(key_pair)
        return get_message_cipher().export_public_key(key_pair.public_key)

    jwk = _run(_generate())
    click.echo("✓ Key pair generated")
    click.echo(json.dumps(jwk, indent=2))


@keys.command("show")
@click.option("--output", "-o", type=click.Path(), help="Write the public JWK to a file")
def show_public_key(output: Optional[str]):
    """Print the exported public key (JWK)."""
    public_key = _run(get_key_manager().get_public_key())
    if public_key is None:
        raise click.ClickException("No key pair found; run 'keys generate' first")

    json_output = json.dumps(get_message_cipher().export_public_key(public_key), indent=2)
    if output:
        with open(output, 'w') as f:
            f.write(json_output)
        click.echo(f"✓ Public key exported to {output}")
    else:
        click.echo(json_output)


@keys.command("reset")
@click.option("--yes", is_flag=True, help="Confirm deleting the key pair")
def reset_keys(yes: bool):
    """Delete the local key pair."""
    if not yes:
        click.confirm("Delete the local key pair? Messages encrypted to it become unreadable", abort=True)
    _run(get_key_manager().clear())
    click.echo("✓ Key pair cleared")


@cli.group()
def message():
    """Encrypt and decrypt message bodies."""
    pass


@message.command("encrypt")
@click.option("--to", "recipient", required=True, type=click.Path(exists=True), help="Recipient public JWK file")
@click.option("--text", default=None, help="Message text (read from stdin if omitted)")
@click.option("--encoding", type=click.Choice(["base64", "array"]), default="base64")
def encrypt_message(recipient: str, text: Optional[str], encoding: str):
    """Encrypt a message to a recipient's public key."""
    with open(recipient, 'r') as f:
        jwk = f.read()
    if text is None:
        text = sys.stdin.read()

    envelope = _run(get_messaging_service().encrypt_for(jwk, text, encoding))
    click.echo(json.dumps(envelope))


@message.command("decrypt")
@click.argument("envelope_file", type=click.Path(exists=True))
def decrypt_message(envelope_file: str):
    """Decrypt an envelope with the local private key."""
    with open(envelope_file, 'r') as f:
        envelope = f.read()

    plaintext = _run(get_messaging_service().decrypt_incoming(envelope))
    click.echo(plaintext)


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address; keep it local, the agent holds the private key")
@click.option("--port", default=8787, type=int)
def serve(host: str, port: int):
    """Run the local key agent HTTP API."""
    import uvicorn
    uvicorn.run("securechat.main:app", host=host, port=port, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    cli()
