"""Command-line front end for lockbox.

Commands:
  encrypt-text [TEXT]            -> print a JSON envelope (TEXT read from stdin if omitted)
  decrypt-text [FILE]            -> print the plaintext of a JSON envelope (stdin if omitted)
  encrypt-file IN [-o OUT]       -> write IN encrypted to OUT (default IN.enc)
  decrypt-file IN [-o OUT]       -> write IN decrypted to OUT (default strips .enc)
  genpass [options]              -> print random passwords or a passphrase

Passwords are taken from LOCKBOX_PASSWORD or prompted for; never from argv.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from lockbox.config import Settings, load_settings
from lockbox.core.exceptions import DecryptionFailed, LockboxError, SourceReadFailure
from lockbox.frontend.cli.clipboard import copy_to_clipboard
from lockbox.frontend.cli.logging_config import configure_logging
from lockbox.security import (
    decrypt_file,
    decrypt_text,
    encrypt_file,
    encrypt_text,
    generate_passphrase,
    generate_passwords,
    password_strength,
    strength_label,
)
from lockbox.security.crypto import ENCRYPTED_SUFFIX
from lockbox.security.framing import TAG_LENGTH

logger = logging.getLogger(__name__)

PASSWORD_ENV = "LOCKBOX_PASSWORD"

EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_FILE_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_INTERRUPT = 130


def read_password(confirm: bool = False) -> str:
    """Return the password from the environment or an interactive prompt."""
    password = os.environ.get(PASSWORD_ENV)
    if password:
        return password
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise ValueError("Passwords do not match")
    if not password:
        raise ValueError("Password must not be empty")
    return password


def default_decrypt_target(in_path: Path) -> Path:
    if in_path.suffix == ENCRYPTED_SUFFIX:
        return in_path.with_suffix("")
    return in_path.with_name(in_path.name + ".dec")


class _ProgressPrinter:
    # prints whole-percent steps to stderr
    def __init__(self, label: str):
        self.label = label
        self.last = -1

    def __call__(self, percent: float) -> None:
        step = int(percent)
        if step != self.last:
            self.last = step
            print(f"\r{self.label}: {step:3d}%", end="", file=sys.stderr, flush=True)
            if step >= 100:
                print(file=sys.stderr)


def _cmd_encrypt_text(args: argparse.Namespace, settings: Settings) -> int:
    text = args.text if args.text is not None else sys.stdin.read()
    envelope = encrypt_text(
        text, read_password(confirm=True), iterations=settings.pbkdf2_iterations
    )
    print(envelope.to_json())
    return EXIT_SUCCESS


def _cmd_decrypt_text(args: argparse.Namespace, settings: Settings) -> int:
    if args.file:
        raw = Path(args.file).expanduser().read_text(encoding="utf-8")
    else:
        raw = sys.stdin.read()
    print(decrypt_text(raw, read_password()))
    return EXIT_SUCCESS


def _cmd_encrypt_file(args: argparse.Namespace, settings: Settings) -> int:
    in_path = Path(args.input).expanduser()
    out_path = Path(args.output) if args.output else in_path.with_name(in_path.name + ENCRYPTED_SUFFIX)
    size = encrypt_file(
        in_path,
        out_path,
        read_password(confirm=True),
        chunk_size=args.chunk_size or settings.chunk_size,
        on_progress=None if args.quiet else _ProgressPrinter("Encrypting"),
        iterations=settings.pbkdf2_iterations,
    )
    print(f"Encrypted {size} bytes to {out_path}")
    return EXIT_SUCCESS


def _cmd_decrypt_file(args: argparse.Namespace, settings: Settings) -> int:
    in_path = Path(args.input).expanduser()
    out_path = Path(args.output) if args.output else default_decrypt_target(in_path)
    size = decrypt_file(
        in_path,
        out_path,
        read_password(),
        on_progress=None if args.quiet else _ProgressPrinter("Decrypting"),
        iterations=settings.pbkdf2_iterations,
        read_size=settings.read_size,
        max_frame_size=args.max_chunk_size + TAG_LENGTH if args.max_chunk_size else None,
    )
    print(f"Decrypted {size} bytes to {out_path}")
    return EXIT_SUCCESS


def _cmd_genpass(args: argparse.Namespace, settings: Settings) -> int:
    if args.passphrase:
        results = [generate_passphrase(args.passphrase, separator=args.separator)]
    else:
        results = generate_passwords(
            args.count,
            args.length,
            uppercase=not args.no_upper,
            lowercase=not args.no_lower,
            digits=not args.no_digits,
            symbols=not args.no_symbols,
            exclude_ambiguous=args.exclude_ambiguous,
        )

    for pwd in results:
        if args.strength:
            print(f"{pwd}\t{strength_label(password_strength(pwd))}")
        else:
            print(pwd)

    if args.copy and not copy_to_clipboard(results[0]):
        print("Clipboard is not available on this system", file=sys.stderr)
    return EXIT_SUCCESS


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockbox",
        description="Password-based AES-256-GCM encryption for text and files.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("encrypt-text", help="Encrypt text into a JSON envelope")
    p.add_argument("text", nargs="?", default=None, help="Text to encrypt (default: stdin)")
    p.set_defaults(func=_cmd_encrypt_text)

    p = sub.add_parser("decrypt-text", help="Decrypt a JSON envelope")
    p.add_argument("file", nargs="?", default=None, help="Envelope JSON file (default: stdin)")
    p.set_defaults(func=_cmd_decrypt_text)

    p = sub.add_parser("encrypt-file", help="Encrypt a file")
    p.add_argument("input")
    p.add_argument("-o", "--output", default=None, help=f"Output path (default: INPUT{ENCRYPTED_SUFFIX})")
    p.add_argument("--chunk-size", type=int, default=None, help="Plaintext bytes per frame")
    p.add_argument("-q", "--quiet", action="store_true", help="No progress output")
    p.set_defaults(func=_cmd_encrypt_file)

    p = sub.add_parser("decrypt-file", help="Decrypt a file")
    p.add_argument("input")
    p.add_argument("-o", "--output", default=None, help="Output path (default: INPUT without .enc)")
    p.add_argument(
        "--max-chunk-size",
        type=int,
        default=None,
        help="Refuse frames holding more than this many plaintext bytes (default: no limit)",
    )
    p.add_argument("-q", "--quiet", action="store_true", help="No progress output")
    p.set_defaults(func=_cmd_decrypt_file)

    p = sub.add_parser("genpass", help="Generate random passwords")
    p.add_argument("-n", "--length", type=int, default=16)
    p.add_argument("-c", "--count", type=int, default=1)
    p.add_argument("--no-upper", action="store_true")
    p.add_argument("--no-lower", action="store_true")
    p.add_argument("--no-digits", action="store_true")
    p.add_argument("--no-symbols", action="store_true")
    p.add_argument("--exclude-ambiguous", action="store_true", help="Drop 0 O 1 I l")
    p.add_argument("--passphrase", type=int, metavar="WORDS", default=None, help="Generate a passphrase instead")
    p.add_argument("--separator", default="-", help="Passphrase word separator")
    p.add_argument("--strength", action="store_true", help="Show a strength rating")
    p.add_argument("--copy", action="store_true", help="Copy the first result to the clipboard")
    p.set_defaults(func=_cmd_genpass)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as e:
        parser.error(str(e))

    level = settings.log_level
    if args.verbose:
        level = logging.DEBUG if args.verbose > 1 else logging.INFO
    configure_logging(level)

    try:
        return args.func(args, settings)
    except DecryptionFailed as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_AUTH_ERROR
    except (OSError, SourceReadFailure) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FILE_ERROR
    except (LockboxError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_GENERIC_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPT


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
