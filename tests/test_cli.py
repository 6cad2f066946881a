"""
Test suite for the imagesign CLI and its configuration.
"""

import argparse
import base64
import getpass
import os
import shutil
import tempfile

import pytest

import imagesign_cli.main as cli_main
from imagesign_cli.config import SignConfig, apply_env_overrides, load_config
from imagesign_cli.main import (
    EXIT_SUCCESS,
    EXIT_USAGE,
    annotation_pair,
    collect_annotations,
    main,
)
from oci_registry import OCI_MANIFEST, ContentDescriptor, RegistryClient
from signing import KeyManager, PayloadBuilder, ReferenceResolutionError

DIGEST = 'sha256:' + 'e' * 64


class TestAnnotationParsing:
    """Test cases for annotation flag parsing."""

    def test_pair(self):
        """Test key=value splitting keeps '=' in values."""
        assert annotation_pair('env=prod') == ('env', 'prod')
        assert annotation_pair('expr=a=b') == ('expr', 'a=b')
        assert annotation_pair('empty=') == ('empty', '')

    def test_missing_separator(self):
        """Test flags without '=' are usage errors."""
        with pytest.raises(argparse.ArgumentTypeError):
            annotation_pair('novalue')

    def test_last_write_wins(self):
        """Test duplicate keys keep the last value."""
        annotations = collect_annotations([('a', '1'), ('b', '2'), ('a', '3')])

        assert annotations == {'a': '3', 'b': '2'}


class TestSignCommand:
    """Test cases for the sign command."""

    @pytest.fixture(autouse=True)
    def isolated_environment(self, monkeypatch):
        for name in list(os.environ):
            if name.startswith('IMAGESIGN_'):
                monkeypatch.delenv(name)
        self.monkeypatch = monkeypatch

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')
        with open(self.config_path, 'w') as f:
            f.write('interactive: false\n')
        self.key_path = os.path.join(self.temp_dir, 'test.key')
        self.public_path = os.path.join(self.temp_dir, 'test.pub')
        KeyManager().create_key_pair_files(self.key_path, self.public_path, password=b'secret')

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _fake_resolve(self, calls):
        def resolve(client, reference):
            calls.append(str(reference))
            return ContentDescriptor(digest=DIGEST, media_type=OCI_MANIFEST, size=100)
        return resolve

    def test_missing_key_is_usage_error(self):
        """Test the key flag is required."""
        with pytest.raises(SystemExit) as excinfo:
            main(['--config', self.config_path, 'sign', 'alpine'])

        assert excinfo.value.code == EXIT_USAGE

    def test_missing_reference_is_usage_error(self):
        """Test the image argument is required."""
        with pytest.raises(SystemExit) as excinfo:
            main(['--config', self.config_path, 'sign', '--key', self.key_path])

        assert excinfo.value.code == EXIT_USAGE

    def test_invalid_annotation_is_usage_error(self):
        """Test malformed annotation flags are rejected by the parser."""
        with pytest.raises(SystemExit) as excinfo:
            main(['--config', self.config_path, 'sign', '--key', self.key_path, '-a', 'novalue', 'alpine'])

        assert excinfo.value.code == EXIT_USAGE

    def test_unsupported_format(self, capsys):
        """Test an unregistered format exits with a usage error before resolving."""
        calls = []
        self.monkeypatch.setattr(RegistryClient, 'resolve', self._fake_resolve(calls))

        code = main(['--config', self.config_path, 'sign', '--key', self.key_path,
                     '--format', 'nonexistent', 'alpine'])

        assert code == EXIT_USAGE
        assert calls == []
        assert 'unsupported format flag: nonexistent' in capsys.readouterr().err

    def test_sign_without_upload(self, capsys):
        """Test --no-upload prints only the base64 signature to stdout."""
        calls = []
        self.monkeypatch.setattr(RegistryClient, 'resolve', self._fake_resolve(calls))
        self.monkeypatch.setenv('IMAGESIGN_PASSWORD', 'secret')

        code = main(['--config', self.config_path, 'sign', '--key', self.key_path, '--no-upload',
                     '-a', 'env=dev', '-a', 'env=prod', 'ghcr.io/org/app:v1'])

        assert code == EXIT_SUCCESS
        assert calls == ['ghcr.io/org/app:v1']
        out = capsys.readouterr().out
        lines = out.splitlines()
        assert len(lines) == 1
        public_key = KeyManager().load_public_key(self.public_path)
        public_key.verify(base64.b64decode(lines[0]), PayloadBuilder().build(DIGEST, {'env': 'prod'}))

    def test_wrong_passphrase(self, capsys):
        """Test key loading failures exit with a runtime error."""
        self.monkeypatch.setattr(RegistryClient, 'resolve', self._fake_resolve([]))
        self.monkeypatch.setenv('IMAGESIGN_PASSWORD', 'wrong')

        code = main(['--config', self.config_path, 'sign', '--key', self.key_path, '--no-upload', 'alpine'])

        assert code == 1
        captured = capsys.readouterr()
        assert captured.out == ''
        assert 'Failed to load private key' in captured.err


class TestGenerateKeyPairCommand:
    """Test cases for the generate-key-pair command."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')
        with open(self.config_path, 'w') as f:
            f.write('interactive: false\npassword_env: TEST_IMAGESIGN_KEYGEN_PASSWORD\n')

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_generates_loadable_key_pair(self, monkeypatch):
        """Test the generated private key opens with the passphrase."""
        monkeypatch.setenv('TEST_IMAGESIGN_KEYGEN_PASSWORD', 'hunter2')
        prefix = os.path.join(self.temp_dir, 'release')

        code = main(['--config', self.config_path, 'generate-key-pair', '--output-prefix', prefix])

        assert code == EXIT_SUCCESS
        key = KeyManager().load_private_key(prefix + '.key', b'hunter2')
        assert len(key) == 32
        assert os.path.exists(prefix + '.pub')

    def test_refuses_to_overwrite(self, monkeypatch):
        """Test existing key files cause a runtime error."""
        monkeypatch.setenv('TEST_IMAGESIGN_KEYGEN_PASSWORD', 'hunter2')
        prefix = os.path.join(self.temp_dir, 'release')
        main(['--config', self.config_path, 'generate-key-pair', '--output-prefix', prefix])

        code = main(['--config', self.config_path, 'generate-key-pair', '--output-prefix', prefix])

        assert code == 1

    def test_interactive_passphrase_confirmed(self, monkeypatch):
        """Test an interactively typed passphrase must be entered twice."""
        answers = iter(['hunter2', 'hunter2'])
        monkeypatch.delenv('TEST_IMAGESIGN_KEYGEN_PASSWORD', raising=False)
        monkeypatch.setattr(getpass, 'getpass', lambda prompt: next(answers))
        with open(self.config_path, 'w') as f:
            f.write('interactive: true\npassword_env: TEST_IMAGESIGN_KEYGEN_PASSWORD\n')
        prefix = os.path.join(self.temp_dir, 'release')

        code = main(['--config', self.config_path, 'generate-key-pair', '--output-prefix', prefix])

        assert code == EXIT_SUCCESS
        assert len(KeyManager().load_private_key(prefix + '.key', b'hunter2')) == 32

    def test_interactive_passphrase_mismatch(self, monkeypatch, capsys):
        """Test a mistyped confirmation writes no key files."""
        answers = iter(['hunter2', 'hunter3'])
        monkeypatch.delenv('TEST_IMAGESIGN_KEYGEN_PASSWORD', raising=False)
        monkeypatch.setattr(getpass, 'getpass', lambda prompt: next(answers))
        with open(self.config_path, 'w') as f:
            f.write('interactive: true\npassword_env: TEST_IMAGESIGN_KEYGEN_PASSWORD\n')
        prefix = os.path.join(self.temp_dir, 'release')

        code = main(['--config', self.config_path, 'generate-key-pair', '--output-prefix', prefix])

        assert code == 1
        assert 'passphrases do not match' in capsys.readouterr().err
        assert not os.path.exists(prefix + '.key')
        assert not os.path.exists(prefix + '.pub')


class TestTriangulateCommand:
    """Test cases for the triangulate command."""

    class FakeResolver:
        def __init__(self, error=None):
            self.error = error
            self.calls = []

        def resolve(self, reference):
            self.calls.append(str(reference))
            if self.error:
                raise self.error
            return ContentDescriptor(digest=DIGEST, media_type=OCI_MANIFEST, size=100)

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')
        with open(self.config_path, 'w') as f:
            f.write('interactive: false\n')

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_prints_signature_location(self, monkeypatch, capsys):
        """Test the signature tag for the resolved digest is printed."""
        resolver = self.FakeResolver()
        monkeypatch.setattr(cli_main, 'create_client', lambda config: resolver)

        code = main(['--config', self.config_path, 'triangulate', 'ghcr.io/org/app:v1'])

        assert code == EXIT_SUCCESS
        assert resolver.calls == ['ghcr.io/org/app:v1']
        assert capsys.readouterr().out == 'ghcr.io/org/app:sha256-' + 'e' * 64 + '\n'

    def test_docker_hub_short_name(self, monkeypatch, capsys):
        """Test short names are located in the Docker Hub library namespace."""
        monkeypatch.setattr(cli_main, 'create_client', lambda config: self.FakeResolver())

        code = main(['--config', self.config_path, 'triangulate', 'alpine'])

        assert code == EXIT_SUCCESS
        assert capsys.readouterr().out == 'index.docker.io/library/alpine:sha256-' + 'e' * 64 + '\n'

    def test_resolution_failure(self, monkeypatch, capsys):
        """Test an unresolvable reference exits with a runtime error."""
        resolver = self.FakeResolver(error=ReferenceResolutionError('ghcr.io/org/app:v1', 'not found'))
        monkeypatch.setattr(cli_main, 'create_client', lambda config: resolver)

        code = main(['--config', self.config_path, 'triangulate', 'ghcr.io/org/app:v1'])

        assert code == 1
        captured = capsys.readouterr()
        assert captured.out == ''
        assert 'not found' in captured.err


class TestConfig:
    """Test cases for configuration loading."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.temp_dir, 'config.yaml')

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_file_values(self):
        """Test YAML values populate the config."""
        with open(self.config_path, 'w') as f:
            f.write('default_format: index\ninsecure_registries:\n  - registry.internal\nrequest_timeout: 5\n')

        config = load_config(self.config_path, environ={})

        assert config.default_format == 'index'
        assert config.insecure_registries == ['registry.internal']
        assert config.request_timeout == 5

    def test_environment_overrides_file(self):
        """Test IMAGESIGN_* variables win over the file."""
        with open(self.config_path, 'w') as f:
            f.write('default_format: index\ninteractive: true\n')

        config = load_config(self.config_path, environ={
            'IMAGESIGN_FORMAT': 'compat',
            'IMAGESIGN_INTERACTIVE': 'false',
            'IMAGESIGN_INSECURE_REGISTRIES': 'a.local, b.local',
        })

        assert config.default_format == 'compat'
        assert config.interactive is False
        assert config.insecure_registries == ['a.local', 'b.local']

    def test_unknown_key(self):
        """Test unknown configuration keys are rejected."""
        with open(self.config_path, 'w') as f:
            f.write('colour: blue\n')

        with pytest.raises(ValueError):
            load_config(self.config_path, environ={})

    def test_missing_explicit_file(self):
        """Test an explicit config path must exist."""
        with pytest.raises(FileNotFoundError):
            load_config(os.path.join(self.temp_dir, 'absent.yaml'), environ={})

    def test_defaults(self):
        """Test defaults when nothing overrides them."""
        config = apply_env_overrides(SignConfig(), environ={})

        assert config.default_format == 'compat'
        assert config.password_env == 'IMAGESIGN_PASSWORD'
        assert config.interactive is True
