import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import click
from click.core import ParameterSource
from rich.console import Console

from seed_hunter.keystream import encode_seed, words_from_bytes
from seed_hunter.oracle import FIRMWARE_EXPONENT, KeyLoadError, ModExpOracle, OracleFn, RsaPublicKey
from seed_hunter.search import OracleOutputError, SearchEngine, SearchExhausted, SearchResult, format_words
from seed_hunter.solver import search_seed
from seed_hunter.state_queue import SingleSlotQueue
from seed_hunter.state_snapshot import SearchSnapshot
from seed_hunter.ui import render_result, ui_loop
from seed_hunter.utils import (
    HexParseError,
    PluginLoadError,
    PluginSignatureError,
    load_oracle_fn,
    parse_fingerprint,
    parse_hex,
    parse_seed,
    setup_logging,
)

EXIT_CANCELLED = 130


def _hex_callback(parse):
    def callback(ctx, param, value):
        if value is None:
            return None
        try:
            return parse(value)
        except HexParseError as e:
            raise click.BadParameter(str(e)) from e
    return callback


def oracle_options(fn):
    """Options selecting the RSA key or a plugin oracle."""
    @click.option("--key", "-k", "key_path", type=click.Path(exists=True, dir_okay=False),
                  help="PEM RSA public key to use instead of the bootloader key")
    @click.option("--modulus", "-n", help="Hex RSA modulus to use instead of the bootloader key")
    @click.option("--exponent", "-e", type=click.IntRange(min=3), default=FIRMWARE_EXPONENT,
                  show_default=True, help="Public exponent; not allowed with --key or --oracle")
    @click.option("--oracle", "oracle_path", type=click.Path(exists=True, dir_okay=False),
                  help="Python file defining modexp(plaintext: bytes) -> bytes")
    @functools.wraps(fn)
    def wrapper(*args, key_path, modulus, exponent, oracle_path, **kwargs):
        source = click.get_current_context().get_parameter_source("exponent")
        exponent_given = source is not None and source is not ParameterSource.DEFAULT
        oracle = build_oracle(key_path, modulus, exponent, oracle_path, exponent_given=exponent_given)
        return fn(*args, oracle=oracle, **kwargs)
    return wrapper


def build_oracle(
    key_path: Optional[str],
    modulus: Optional[str],
    exponent: int,
    oracle_path: Optional[str],
    *,
    exponent_given: bool = False,
) -> OracleFn:
    """Resolve the oracle from the CLI options. A plugin excludes every key option."""
    if oracle_path:
        if key_path or modulus or exponent_given:
            raise click.UsageError("--oracle cannot be combined with --key, --modulus or --exponent")
        try:
            return load_oracle_fn(oracle_path)
        except (PluginLoadError, PluginSignatureError) as e:
            raise click.ClickException(str(e)) from e

    if key_path and modulus:
        raise click.UsageError("--key and --modulus are mutually exclusive")
    if key_path and exponent_given:
        raise click.UsageError("--exponent comes from the key file; drop it when using --key")

    try:
        if key_path:
            key = RsaPublicKey.from_pem(key_path)
        elif modulus:
            key = RsaPublicKey(n=parse_hex(modulus, 2048), e=exponent)
            if key.n < 2:
                raise click.BadParameter(f"modulus must be at least 2, got {modulus!r}", param_hint="--modulus")
        else:
            key = RsaPublicKey(n=RsaPublicKey.firmware().n, e=exponent)
        return ModExpOracle(key)
    except HexParseError as e:
        raise click.BadParameter(str(e), param_hint="--modulus") from e
    except KeyLoadError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    setup_logging(verbose)


def solver(
    engine: SearchEngine,
    *,
    max_iterations: Optional[int] = None,
    show_ui: bool = True,
    console: Optional[Console] = None,
) -> Optional[SearchResult]:
    """Run the search on a worker thread while the main thread draws progress."""
    state_queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
    cancel = threading.Event()

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(
            search_seed, engine, state_queue, max_iterations=max_iterations, cancel=cancel
        )

        try:
            if show_ui:
                ui_loop(state_queue, console=console)
            else:
                while state_queue.get() is not None:
                    pass
        except KeyboardInterrupt:
            cancel.set()

        return future.result()


@cli.command()
@click.argument("start_seed", callback=_hex_callback(parse_seed))
@click.argument("fingerprint", callback=_hex_callback(parse_fingerprint))
@click.option("--max-iterations", type=click.IntRange(min=1),
              help="Give up after this many candidates (default: search forever)")
@click.option("--no-ui", is_flag=True, help="Print a plain-text report without the live panel")
@oracle_options
def search(start_seed: int, fingerprint: int, max_iterations: Optional[int], no_ui: bool, oracle: OracleFn):
    """Search seeds from START_SEED until the first ciphertext word equals FINGERPRINT."""
    engine = SearchEngine(start_seed, fingerprint, oracle)
    console = Console()

    try:
        result = solver(engine, max_iterations=max_iterations, show_ui=not no_ui, console=console)
    except (SearchExhausted, OracleOutputError) as e:
        raise click.ClickException(str(e)) from e

    if result is None:
        click.echo(f"Cancelled at seed {engine.seed:08X} after {engine.iterations} candidates", err=True)
        raise click.exceptions.Exit(EXIT_CANCELLED)

    if no_ui:
        click.echo(result.report())
    else:
        console.print(render_result(result))


@cli.command()
@click.argument("seed", callback=_hex_callback(parse_seed))
def encode(seed: int):
    """Print the 64 plaintext words SEED produces."""
    click.echo(format_words(words_from_bytes(encode_seed(seed))))


@cli.command()
@click.argument("seed", callback=_hex_callback(parse_seed))
@click.option("--full", is_flag=True, help="Print all 64 ciphertext words")
@oracle_options
def fingerprint(seed: int, full: bool, oracle: OracleFn):
    """Encrypt the plaintext for SEED and print its fingerprint word."""
    ciphertext = oracle(encode_seed(seed))
    try:
        words = words_from_bytes(ciphertext)
    except ValueError as e:
        raise click.ClickException(f"Oracle output rejected: {e}") from e
    if full:
        click.echo(format_words(words))
    else:
        click.echo(f"{words[0]:08X}")


if __name__ == "__main__":
    cli()
