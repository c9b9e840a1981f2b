"""
Command line for key files, payload encryption and self-tests.

Key material never leaves the process: keygen writes it to a file,
inspect shows only its metadata.
"""

from __future__ import annotations

import argparse
import getpass
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from nspcrypt import __version__
from nspcrypt.core.config import NspCryptConfig
from nspcrypt.core.crypto.aes_engine import AesCipher
from nspcrypt.core.crypto.errors import NspCryptError
from nspcrypt.core.crypto.keyfile import KeyFileFormat, read_key_file
from nspcrypt.core.crypto.options import AesOptions, Algorithm
from nspcrypt.core.crypto.passwords import DEFAULT_CHARSET, generate_password
from nspcrypt.core.logging import configure_logging
from nspcrypt.security.hardening import StartupSecurityValidator


def _hex_bytes(text: str) -> bytes:
    """argparse type: decode a hex string to bytes."""
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid hex: {e}")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(prog="nspcrypt", description="Password-based AES key files and payload encryption")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Output JSON to stdout")
    commands = parser.add_subparsers(dest="command", required=True)

    genpass = commands.add_parser("genpass", help="Generate a random password")
    genpass.add_argument("--length", type=int, default=24)
    genpass.add_argument("--charset", default=DEFAULT_CHARSET)

    keygen = commands.add_parser("keygen", help="Derive key material from a password and write a key file")
    keygen.add_argument("--out", type=Path, required=True, help="Key file path (must not exist)")
    password_source = keygen.add_mutually_exclusive_group()
    password_source.add_argument(
        "--password",
        help="Password (INSECURE: visible in the process list and shell history; prompted when omitted)",
    )
    password_source.add_argument(
        "--password-stdin", action="store_true", help="Read the password from the first line of stdin",
    )
    keygen.add_argument("--salt", help="Salt (defaults to the password)")
    keygen.add_argument("--key-size", type=int, choices=[128, 192, 256])
    keygen.add_argument("--hash-size", type=int, choices=[256, 384, 512])
    keygen.add_argument("--iterations", type=int)
    keygen.add_argument("--format", choices=[f.value for f in KeyFileFormat], default=KeyFileFormat.LEGACY.value)

    inspect = commands.add_parser("inspect", help="Show key file metadata (never the key)")
    inspect.add_argument("path", type=Path)

    for name, help_text in (("encrypt", "Encrypt input with a key file"), ("decrypt", "Decrypt input with a key file")):
        crypt = commands.add_parser(name, help=help_text)
        crypt.add_argument("--key-file", type=Path, required=True)
        crypt.add_argument(
            "--algorithm", type=str.upper, choices=[a.value for a in Algorithm], default=Algorithm.GCM.value,
        )
        source = crypt.add_mutually_exclusive_group(required=True)
        source.add_argument("--in", dest="in_text", type=str, help="Input text (UTF-8)")
        source.add_argument("--in-hex", dest="in_hex", type=_hex_bytes, help="Input as hex bytes")

    commands.add_parser("selftest", help="Run cryptographic self-tests")
    return parser


def _emit(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    """Print a result as one JSON line or as key=value lines."""
    if args.json:
        print(json.dumps(payload))
    else:
        for key, value in payload.items():
            print(f"{key}={value}")


def _input_bytes(args: argparse.Namespace) -> bytes:
    if args.in_hex is not None:
        return args.in_hex
    return args.in_text.encode("utf-8")


def _read_password(args: argparse.Namespace) -> str:
    """Password from --password, stdin, or an interactive prompt."""
    if args.password is not None:
        return args.password
    if args.password_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    return getpass.getpass("Password: ")


def _keygen(args: argparse.Namespace, config: NspCryptConfig) -> dict[str, Any]:
    """Derive key material and write it to args.out."""
    password = _read_password(args)
    overrides: dict[str, Any] = {}
    if args.key_size:
        overrides["key_size"] = args.key_size
    if args.hash_size:
        overrides["hash_size"] = args.hash_size
    if args.iterations:
        overrides["iteration_count"] = args.iterations

    options = AesOptions.from_config(config, **overrides).with_password(password, args.salt)
    cipher = AesCipher(options)
    cipher.write_key_file(args.out, fmt=KeyFileFormat(args.format))
    return {
        "command": "keygen",
        "path": str(args.out),
        "key_size": int(options.key_size),
        "kdf_algorithm": cipher.kdf_algorithm,
        "format": args.format,
    }


def _inspect(args: argparse.Namespace) -> dict[str, Any]:
    """Key file metadata; the key bytes are never returned."""
    material = read_key_file(args.path)
    return {
        "command": "inspect",
        "path": str(args.path),
        "key_size": int(material.key_size),
        "kdf_algorithm": material.kdf_algorithm,
        "iv_length": len(material.iv),
    }


def _crypt(args: argparse.Namespace) -> dict[str, Any]:
    """Encrypt or decrypt the input with an engine rebuilt from the key file."""
    cipher = AesCipher.from_key_file(args.key_file, algorithm=args.algorithm)
    data = _input_bytes(args)
    if args.command == "encrypt":
        return {"command": "encrypt", "ciphertext": cipher.encrypt_bytes(data).hex()}

    plaintext = cipher.decrypt_bytes(data)
    try:
        return {"command": "decrypt", "plaintext": plaintext.decode("utf-8")}
    except UnicodeDecodeError:
        return {"command": "decrypt", "plaintext_hex": plaintext.hex()}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one subcommand.

    Returns:
        Exit code: 0 on success, 1 on a crypto, input or file error
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    config = NspCryptConfig.get_instance()
    log = configure_logging(config.logging, config.paths)

    try:
        if args.command == "genpass":
            _emit(args, {"command": "genpass", "password": generate_password(args.length, args.charset)})
        elif args.command == "keygen":
            _emit(args, _keygen(args, config))
        elif args.command == "inspect":
            _emit(args, _inspect(args))
        elif args.command in ("encrypt", "decrypt"):
            _emit(args, _crypt(args))
        elif args.command == "selftest":
            validator = StartupSecurityValidator()
            ok = validator.run_all_checks()
            _emit(args, {
                "command": "selftest",
                "passed": ok,
                "summary": validator.get_summary(),
            })
            return 0 if ok else 1
    except (NspCryptError, ValueError, OSError) as e:
        log.error("%s failed: %s", args.command, e)
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
