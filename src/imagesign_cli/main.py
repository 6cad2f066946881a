"""
CLI Main Entry Point

Parses command-line arguments and dispatches to subcommands.

Usage:
    imagesign sign --key imagesign.key [--no-upload] [--payload FILE] [-a key=value ...] [--format compat|index] IMAGE
    imagesign generate-key-pair [--output-prefix imagesign]
    imagesign triangulate IMAGE

Environment Variables:
    IMAGESIGN_PASSWORD              Private key passphrase (name set by password_env)
    IMAGESIGN_FORMAT                Default signature format
    IMAGESIGN_INTERACTIVE           Prompt for the passphrase when it is not set (default: true)
    IMAGESIGN_DOCKER_CONFIG         Docker config.json used for registry credentials
    IMAGESIGN_INSECURE_REGISTRIES   Comma-separated registries reached over plain HTTP
    IMAGESIGN_REQUEST_TIMEOUT       Registry request timeout in seconds
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

import yaml

from oci_registry.client import DockerConfigKeychain, RegistryClient
from oci_registry.reference import ImageReference
from publication.address import AddressDeriver
from publication.gate import PublicationGate, sign_image
from publication.uploaders import SignatureFormat, default_uploader_registry
from signing.errors import ImageSignError, UnsupportedFormat
from signing.key_manager import KeyManager
from signing.passphrase import PassphraseProvider

from .config import SignConfig, load_config

# Exit codes
EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_USAGE = 2


def annotation_pair(value: str) -> Tuple[str, str]:
    """argparse type for -a key=value flags."""
    key, sep, val = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"invalid flag: {value}, expected key=value")
    return key, val


def collect_annotations(pairs: Optional[Iterable[Tuple[str, str]]]) -> Dict[str, str]:
    """Fold repeated annotation flags into a mapping; the last value for a key wins."""
    annotations: Dict[str, str] = {}
    for key, value in pairs or []:
        annotations[key] = value
    return annotations


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="imagesign",
        description="Sign container images and publish signatures next to them in the registry.",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to a YAML configuration file (default: ~/.config/imagesign/config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- sign command ---
    sign_parser = subparsers.add_parser(
        "sign",
        help="Sign the supplied container image",
        description="Sign an image digest and upload the signature, or print it with --no-upload.",
    )
    sign_parser.add_argument(
        "image",
        type=str,
        help="Image reference to sign",
    )
    sign_parser.add_argument(
        "--key",
        type=str,
        required=True,
        help="Path to the private key",
    )
    sign_parser.add_argument(
        "--upload",
        dest="upload",
        action="store_true",
        default=True,
        help="Upload the signature (default)",
    )
    sign_parser.add_argument(
        "--no-upload",
        dest="upload",
        action="store_false",
        help="Print the base64 signature instead of uploading it",
    )
    sign_parser.add_argument(
        "--payload",
        type=str,
        default=None,
        help="Path to a payload file to sign verbatim instead of generating one. "
             "The file is not checked to reference the image digest.",
    )
    sign_parser.add_argument(
        "-a", "--annotation",
        dest="annotations",
        type=annotation_pair,
        action="append",
        default=[],
        help="Extra key=value pair to sign (repeatable)",
    )
    sign_parser.add_argument(
        "--format",
        type=str,
        default=None,
        help=f"Signature format: {'|'.join(f.value for f in SignatureFormat)} (default: from config or compat)",
    )
    sign_parser.set_defaults(func=sign_cmd, parser=sign_parser)

    # --- generate-key-pair command ---
    keygen_parser = subparsers.add_parser(
        "generate-key-pair",
        help="Generate an encrypted Ed25519 key pair",
    )
    keygen_parser.add_argument(
        "--output-prefix", "-o",
        type=str,
        default="imagesign",
        help="Write PREFIX.key and PREFIX.pub (default: imagesign)",
    )
    keygen_parser.set_defaults(func=generate_key_pair_cmd, parser=keygen_parser)

    # --- triangulate command ---
    triangulate_parser = subparsers.add_parser(
        "triangulate",
        help="Print the location where signatures for an image are published",
    )
    triangulate_parser.add_argument(
        "image",
        type=str,
        help="Image reference",
    )
    triangulate_parser.set_defaults(func=triangulate_cmd, parser=triangulate_parser)

    return parser


def create_client(config: SignConfig) -> RegistryClient:
    keychain = DockerConfigKeychain(
        config_path=config.docker_config,
        username=config.username,
        password=config.password,
    )
    return RegistryClient(
        keychain=keychain,
        insecure_registries=config.insecure_registries,
        timeout=config.request_timeout,
    )


def sign_cmd(args: argparse.Namespace, config: SignConfig) -> int:
    """Handle sign command."""
    client = create_client(config)
    uploaders = default_uploader_registry(client)
    gate = PublicationGate(
        key_loader=KeyManager(),
        passphrase_provider=PassphraseProvider(password_env=config.password_env),
        interactive=config.interactive,
    )

    sign_image(
        args.image,
        args.key,
        resolver=client,
        uploaders=uploaders,
        gate=gate,
        upload=args.upload,
        payload_path=args.payload,
        annotations=collect_annotations(args.annotations),
        format_name=args.format or config.default_format,
    )
    return EXIT_SUCCESS


def generate_key_pair_cmd(args: argparse.Namespace, config: SignConfig) -> int:
    """Handle generate-key-pair command."""
    provider = PassphraseProvider(password_env=config.password_env)
    password = provider.obtain_passphrase(config.interactive, confirm=True)

    private_path, public_path = KeyManager().create_key_pair_files(
        private_key_path=f"{args.output_prefix}.key",
        public_key_path=f"{args.output_prefix}.pub",
        password=password,
    )

    if not password:
        print("Warning: private key is stored without a passphrase", file=sys.stderr)
    print(f"Private key written to {private_path}")
    print(f"Public key written to {public_path}")
    return EXIT_SUCCESS


def triangulate_cmd(args: argparse.Namespace, config: SignConfig) -> int:
    """Handle triangulate command."""
    client = create_client(config)
    reference = ImageReference.parse(args.image)
    descriptor = client.resolve(reference)

    address = AddressDeriver().address_for(reference.context(), descriptor.digest)
    print(address)
    return EXIT_SUCCESS


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0=success, 1=error, 2=usage error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        return args.func(args, config)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except UnsupportedFormat as e:
        args.parser.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except (ImageSignError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
