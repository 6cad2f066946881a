#!/usr/bin/env python3
"""
Basic Usage Example for the Image Signing Framework

This example demonstrates the core workflow offline:
1. Generating an encrypted signing key pair
2. Building the canonical payload for an image digest
3. Signing it and displaying the signature
4. Deriving where the signature would be published
"""

import os
import sys
import tempfile
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from oci_registry import ContentDescriptor, ImageReference, OCI_MANIFEST
from publication import AddressDeriver, PublicationGate
from signing import KeyManager, PassphraseProvider, PayloadBuilder

EXAMPLE_REFERENCE = "ghcr.io/example/app:v1"
EXAMPLE_DIGEST = "sha256:" + "3f" * 32


def demonstrate_key_generation(temp_dir):
    """Generate an encrypted key pair in a temporary directory."""
    print("🔑 Generating key pair...")

    key_manager = KeyManager()
    private_path, public_path = key_manager.create_key_pair_files(
        private_key_path=os.path.join(temp_dir, "demo.key"),
        public_key_path=os.path.join(temp_dir, "demo.pub"),
        password=b"demo-passphrase"
    )

    print(f"✅ Private key: {private_path}")
    print(f"✅ Public key: {public_path}")
    return private_path, public_path


def demonstrate_payload():
    """Show the payload that binds a signature to the digest."""
    print("\n📄 Building signing payload...")

    payload = PayloadBuilder().build(EXAMPLE_DIGEST, {"build": "1234", "team": "platform"})

    print(f"   {payload.decode('utf-8')}")
    return payload


def demonstrate_signing(private_path):
    """Sign the example digest without uploading."""
    print("\n🔐 Signing (display only)...")

    gate = PublicationGate(
        key_loader=KeyManager(),
        passphrase_provider=PassphraseProvider(environ={"IMAGESIGN_PASSWORD": "demo-passphrase"}),
    )
    reference = ImageReference.parse(EXAMPLE_REFERENCE)
    descriptor = ContentDescriptor(digest=EXAMPLE_DIGEST, media_type=OCI_MANIFEST, size=0)

    result = gate.execute(
        descriptor,
        reference.context(),
        private_path,
        annotations={"build": "1234", "team": "platform"},
        upload=False
    )

    print(f"✅ Final state: {result.state.value}")
    return result


def demonstrate_address():
    """Show where signatures for the example image are published."""
    print("\n📍 Deriving publication address...")

    reference = ImageReference.parse(EXAMPLE_REFERENCE)
    address = AddressDeriver().address_for(reference.context(), EXAMPLE_DIGEST)

    print(f"   {address}")
    print(f"   digest recovered from tag: {address.digest()}")
    return address


def main():
    """Run the complete basic usage demonstration."""
    print("🚀 Image Signing Framework - Basic Usage Demo")
    print("="*60)

    try:
        with tempfile.TemporaryDirectory() as temp_dir:
            private_path, _ = demonstrate_key_generation(temp_dir)
            demonstrate_payload()
            demonstrate_signing(private_path)
        demonstrate_address()

        print("\n✨ Demo completed successfully!")
        return 0

    except ImportError as e:
        print(f"❌ Import Error: {e}")
        print("💡 Make sure to install dependencies: pip install -e .")
        return 1


if __name__ == "__main__":
    sys.exit(main())
