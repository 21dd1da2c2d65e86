"""Tests for gateway token generation."""

import logging
import re
import sys
from pathlib import Path

import pytest

# Add scripts directory to path for imports
SCRIPTS_DIR = Path(__file__).parent.parent / 'scripts'
sys.path.insert(0, str(SCRIPTS_DIR))

from openclaw_setup import gateway_token
from openclaw_setup.gateway_token import (
    generate_token,
    token_from_clock,
    token_from_secrets,
    token_from_urandom,
)

HEX_48 = re.compile(r'^[0-9a-f]{48}$')


class TestTokenSources:
    """Each source yields 48 lowercase hex characters."""

    @pytest.mark.parametrize('source', [token_from_secrets, token_from_urandom, token_from_clock])
    def test_source_format(self, source):
        assert HEX_48.match(source())

    def test_urandom_reads_given_device(self, tmp_path):
        device = tmp_path / 'random'
        device.write_bytes(bytes(range(24)) + b'extra')

        assert token_from_urandom(device) == bytes(range(24)).hex()

    def test_urandom_short_read_fails(self, tmp_path):
        device = tmp_path / 'random'
        device.write_bytes(b'\x01\x02')

        with pytest.raises(OSError, match='Short read'):
            token_from_urandom(device)

    def test_urandom_missing_device_fails(self, tmp_path):
        with pytest.raises(OSError):
            token_from_urandom(tmp_path / 'missing')


class TestGenerateToken:
    """Strategy fall-through in generate_token."""

    def test_default_token_format(self):
        assert HEX_48.match(generate_token())

    def test_tokens_differ_between_calls(self):
        assert generate_token() != generate_token()

    def test_falls_back_to_urandom(self, monkeypatch, caplog):
        def no_rng(nbytes):
            raise NotImplementedError('no OS RNG')

        monkeypatch.setattr(gateway_token.secrets, 'token_hex', no_rng)
        with caplog.at_level(logging.DEBUG, logger='openclaw_setup.gateway_token'):
            token = generate_token()

        assert HEX_48.match(token)
        assert "generated from 'urandom'" in caplog.text

    def test_falls_back_to_clock(self, monkeypatch, tmp_path, caplog):
        def no_rng(nbytes):
            raise NotImplementedError('no OS RNG')

        monkeypatch.setattr(gateway_token.secrets, 'token_hex', no_rng)
        monkeypatch.setattr(gateway_token, 'URANDOM_PATH', tmp_path / 'missing')
        with caplog.at_level(logging.DEBUG, logger='openclaw_setup.gateway_token'):
            token = generate_token()

        assert HEX_48.match(token)
        assert "generated from 'clock'" in caplog.text

    def test_skips_malformed_output(self):
        def failing():
            raise OSError('unreadable')

        strategies = [
            ('broken', failing),
            ('short', lambda: 'abc123'),
            ('upper', lambda: 'AB' * 24 + '\n'),
        ]

        assert generate_token(strategies) == 'ab' * 24

    def test_raises_when_all_sources_fail(self):
        def failing():
            raise OSError('unreadable')

        with pytest.raises(RuntimeError, match='No token source available'):
            generate_token([('broken', failing)])

    def test_tier_not_reported_above_debug(self, caplog):
        with caplog.at_level(logging.INFO, logger='openclaw_setup.gateway_token'):
            generate_token()

        assert caplog.text == ''
