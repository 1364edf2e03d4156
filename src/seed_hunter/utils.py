import importlib.util
import inspect
import logging
import types

from rich.console import Console
from rich.logging import RichHandler

from seed_hunter.oracle import OracleFn

PLUGIN_FUNC_NAME = "modexp"


class HexParseError(ValueError):
    pass


class PluginLoadError(RuntimeError):
    pass


class PluginSignatureError(TypeError):
    pass


def parse_hex(text: str, bits: int) -> int:
    """Parse a hex string (with or without 0x) that must fit in `bits` bits."""
    cleaned = text.strip().replace("_", "")
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    if not cleaned:
        raise HexParseError(f"Empty hex value: {text!r}")
    try:
        value = int(cleaned, 16)
    except ValueError:
        raise HexParseError(f"Not a hex value: {text!r}") from None
    if value >> bits:
        raise HexParseError(f"{text!r} does not fit in {bits} bits")
    return value


def parse_seed(text: str) -> int:
    """
    Parse a starting seed. Wider values are truncated to 32 bits, the way
    strtol() into a uint32_t behaved in the original tool.
    """
    return parse_hex(text, 64) & 0xFFFFFFFF


def parse_fingerprint(text: str) -> int:
    return parse_hex(text, 64)


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Set up Rich logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), show_path=False)],
        force=True,
    )


def load_module_from_file(module_file_path: str) -> types.ModuleType:
    """Load a Python module file."""
    spec = importlib.util.spec_from_file_location("oracle_plugin", module_file_path)
    if spec is None or spec.loader is None:
        raise PluginLoadError(f"Could not load spec for: {module_file_path}")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)  # executes user code
    return mod


def load_oracle_fn(module_file_path: str) -> OracleFn:
    """Load a user supplied modexp(plaintext: bytes) -> bytes from a Python module file."""
    mod = load_module_from_file(module_file_path)
    fn = getattr(mod, PLUGIN_FUNC_NAME, None)
    if fn is None or not callable(fn):
        raise PluginLoadError(
            f"Plugin must define `{PLUGIN_FUNC_NAME}(plaintext: bytes) -> bytes`"
        )

    params = list(inspect.signature(fn).parameters.values())
    if len(params) != 1 or params[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise PluginSignatureError(
            f"{PLUGIN_FUNC_NAME} must accept exactly one positional arg: (plaintext: bytes)"
        )
    return fn
