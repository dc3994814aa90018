"""
Tests for key generation strategies and the ranked KeyGenerator.
"""
import base64
import subprocess
from unittest.mock import patch

import pytest
from nacl.public import PrivateKey

from core.exceptions import KeyGenerationUnavailable
from core.keygen import (
    KeyGenerator,
    KeyGenStrategy,
    KeyPair,
    NaClStrategy,
    WgToolStrategy,
    derive_public_key,
)
from core.validation import is_valid_wireguard_key


class BrokenStrategy(KeyGenStrategy):
    name = "broken"

    def __init__(self, available=True):
        self.available = available
        self.calls = 0

    def is_available(self):
        return self.available

    def generate(self, include_preshared_key):
        self.calls += 1
        raise OSError("wg exploded")

    def generate_preshared_key(self):
        self.calls += 1
        raise OSError("wg exploded")


class TestNaClStrategy:

    def test_public_key_is_derived_from_private_key(self):
        for _ in range(5):
            keys = NaClStrategy().generate(include_preshared_key=False)
            assert derive_public_key(keys.private_key) == keys.public_key

            private = PrivateKey(base64.b64decode(keys.private_key))
            assert base64.b64encode(bytes(private.public_key)).decode() == keys.public_key

    def test_keys_are_well_formed(self):
        keys = NaClStrategy().generate(include_preshared_key=True)
        assert is_valid_wireguard_key(keys.private_key)
        assert is_valid_wireguard_key(keys.public_key)
        assert is_valid_wireguard_key(keys.preshared_key)
        assert len(base64.b64decode(keys.preshared_key)) == 32

    def test_preshared_key_optional(self):
        assert NaClStrategy().generate(include_preshared_key=False).preshared_key is None

    def test_keys_differ_between_calls(self):
        first = NaClStrategy().generate(True)
        second = NaClStrategy().generate(True)
        assert first.private_key != second.private_key
        assert first.preshared_key != second.preshared_key


class TestWgToolStrategy:

    def test_candidate_paths_include_path_entries(self, monkeypatch):
        monkeypatch.setenv("PATH", "/opt/wg/bin")
        candidates = WgToolStrategy.candidate_paths()
        assert candidates[0] == "wg"
        assert "/opt/wg/bin/wg" in candidates
        assert len(candidates) == len(set(candidates))

    def test_not_available_when_no_candidate_answers(self):
        strategy = WgToolStrategy()
        with patch("core.keygen.subprocess.run", side_effect=FileNotFoundError) as run:
            assert not strategy.is_available()
            calls = run.call_count
            # Search result is cached
            assert not strategy.is_available()
            assert run.call_count == calls

    def test_probe_timeout_skips_candidate(self):
        strategy = WgToolStrategy(probe_timeout=0.1)

        def fake_run(cmd, **kwargs):
            if cmd[0] == "wg":
                raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
            return subprocess.CompletedProcess(cmd, 0, stdout=b"wireguard-tools v1.0")

        with patch("core.keygen.subprocess.run", side_effect=fake_run):
            assert strategy.find_wg() == "wg.exe"

    def test_generate_pipes_private_key_into_pubkey(self):
        strategy = WgToolStrategy()
        strategy._wg_path = "wg"
        strategy._searched = True

        private = "cHJpdmF0ZS1rZXktcHJpdmF0ZS1rZXktcHJpdmF0ZTA="
        public = "cHVibGljLWtleS1wdWJsaWMta2V5LXB1YmxpYy1rZTA="
        psk = "cHNrLXBzay1wc2stcHNrLXBzay1wc2stcHNrLXBzazA="
        outputs = {"genkey": private + "\n", "pubkey": public + "\n", "genpsk": psk + "\n"}
        seen = []

        def fake_run(cmd, **kwargs):
            seen.append((cmd[1], kwargs.get("input")))
            return subprocess.CompletedProcess(cmd, 0, stdout=outputs[cmd[1]])

        with patch("core.keygen.subprocess.run", side_effect=fake_run):
            keys = strategy.generate(include_preshared_key=True)

        assert keys == KeyPair(private, public, psk)
        assert ("pubkey", private) in seen


class TestKeyGenerator:

    def test_falls_back_when_first_strategy_fails(self):
        broken = BrokenStrategy()
        generator = KeyGenerator([broken, NaClStrategy()])

        keys = generator.generate(include_preshared_key=True)

        assert broken.calls == 1
        assert derive_public_key(keys.private_key) == keys.public_key
        assert keys.preshared_key is not None

    def test_skips_unavailable_strategy(self):
        broken = BrokenStrategy(available=False)
        KeyGenerator([broken, NaClStrategy()]).generate()
        assert broken.calls == 0

    def test_raises_when_every_strategy_fails(self):
        generator = KeyGenerator([BrokenStrategy(), BrokenStrategy(available=False)])
        with pytest.raises(KeyGenerationUnavailable):
            generator.generate()
        with pytest.raises(KeyGenerationUnavailable):
            generator.generate_preshared_key()

    def test_preshared_key_only(self):
        psk = KeyGenerator([BrokenStrategy(), NaClStrategy()]).generate_preshared_key()
        assert is_valid_wireguard_key(psk)

    def test_from_settings_ranks_wg_tool_first(self, settings):
        assert [s.name for s in KeyGenerator.from_settings(settings).strategies] == ["pynacl"]

        with_tool = settings.model_copy(update={"KEYGEN_PREFER_WG_TOOL": True})
        assert [s.name for s in KeyGenerator.from_settings(with_tool).strategies] == ["wg-tool", "pynacl"]

    def test_requires_a_strategy(self):
        with pytest.raises(ValueError):
            KeyGenerator([])
