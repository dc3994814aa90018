# backend/core/keygen.py
"""
WireGuard Key Generation
Produces Curve25519 key pairs and preshared keys for new peers
"""

import base64
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from .exceptions import KeyGenerationUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPair:
    """Generated peer credentials, all base64 encoded (44 chars)"""
    private_key: str
    public_key: str
    preshared_key: Optional[str] = None

    def __repr__(self):
        return f"<KeyPair(public_key={self.public_key[:8]}..., psk={self.preshared_key is not None})>"


def derive_public_key(private_key: str) -> str:
    """
    Derive a WireGuard public key from a private key

    Uses PyNaCl (same Curve25519 as WireGuard)
    """
    from nacl.public import PrivateKey

    private_bytes = base64.b64decode(private_key.strip())
    return base64.b64encode(bytes(PrivateKey(private_bytes).public_key)).decode("ascii")


class KeyGenStrategy:
    """One way of producing WireGuard keys"""

    name = "base"

    def is_available(self) -> bool:
        raise NotImplementedError

    def generate(self, include_preshared_key: bool) -> KeyPair:
        raise NotImplementedError

    def generate_preshared_key(self) -> str:
        raise NotImplementedError


class WgToolStrategy(KeyGenStrategy):
    """
    Shells out to the wireguard-tools `wg` binary

    The binary is discovered once by probing known install locations and
    every PATH entry with `wg --version`.
    """

    name = "wg-tool"

    def __init__(self, probe_timeout: float = 5.0, command_timeout: float = 10.0):
        self.probe_timeout = probe_timeout
        self.command_timeout = command_timeout
        self._wg_path: Optional[str] = None
        self._searched = False

    @staticmethod
    def candidate_paths() -> List[str]:
        """Known install locations followed by every PATH entry"""
        program_files = os.environ.get("PROGRAMFILES") or "C:\\Program Files"
        program_files_x86 = os.environ.get("PROGRAMFILES(X86)") or "C:\\Program Files (x86)"

        candidates = [
            "wg",
            "wg.exe",
            "C:\\Program Files\\WireGuard\\wg.exe",
            "C:\\Program Files (x86)\\WireGuard\\wg.exe",
            os.path.join(program_files, "WireGuard", "wg.exe"),
            os.path.join(program_files_x86, "WireGuard", "wg.exe"),
        ]

        for directory in os.environ.get("PATH", "").split(os.pathsep):
            if directory.strip():
                candidates.append(os.path.join(directory, "wg.exe"))
                candidates.append(os.path.join(directory, "wg"))

        # Keep first occurrence only
        seen = set()
        return [c for c in candidates if not (c in seen or seen.add(c))]

    def _probe(self, candidate: str) -> bool:
        try:
            subprocess.run(
                [candidate, "--version"],
                capture_output=True,
                check=True,
                timeout=self.probe_timeout,
            )
            return True
        except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired):
            return False

    def find_wg(self) -> Optional[str]:
        """Locate a working wg binary (cached after the first search)"""
        if self._searched:
            return self._wg_path

        logger.debug("Searching for WireGuard tools")
        for candidate in self.candidate_paths():
            if self._probe(candidate):
                logger.info(f"Found WireGuard tools at: {candidate}")
                self._wg_path = candidate
                break
        else:
            logger.info("WireGuard tools not found")

        self._searched = True
        return self._wg_path

    def is_available(self) -> bool:
        return self.find_wg() is not None

    def _run(self, args: list, stdin: Optional[str] = None) -> str:
        result = subprocess.run(
            [self.find_wg(), *args],
            input=stdin,
            capture_output=True,
            text=True,
            check=True,
            timeout=self.command_timeout,
        )
        return result.stdout.strip()

    def generate(self, include_preshared_key: bool) -> KeyPair:
        private_key = self._run(["genkey"])
        # The public key must be derived from the private key
        public_key = self._run(["pubkey"], stdin=private_key)
        preshared_key = self._run(["genpsk"]) if include_preshared_key else None
        return KeyPair(private_key, public_key, preshared_key)

    def generate_preshared_key(self) -> str:
        return self._run(["genpsk"])


class NaClStrategy(KeyGenStrategy):
    """In-process Curve25519 via PyNaCl"""

    name = "pynacl"

    def is_available(self) -> bool:
        try:
            import nacl.public  # noqa: F401
        except ImportError:
            return False
        return True

    def generate(self, include_preshared_key: bool) -> KeyPair:
        from nacl.public import PrivateKey

        private = PrivateKey.generate()
        private_key = base64.b64encode(bytes(private)).decode("ascii")
        public_key = base64.b64encode(bytes(private.public_key)).decode("ascii")
        preshared_key = self.generate_preshared_key() if include_preshared_key else None
        return KeyPair(private_key, public_key, preshared_key)

    def generate_preshared_key(self) -> str:
        from nacl.utils import random

        return base64.b64encode(random(32)).decode("ascii")


class KeyGenerator:
    """
    Generates WireGuard credentials from a ranked list of strategies

    The first available strategy that succeeds wins. When all of them fail
    KeyGenerationUnavailable is raised.
    """

    def __init__(self, strategies: List[KeyGenStrategy]):
        if not strategies:
            raise ValueError("KeyGenerator needs at least one strategy")
        self.strategies = strategies

    @classmethod
    def from_settings(cls, settings) -> "KeyGenerator":
        strategies: List[KeyGenStrategy] = []
        if settings.KEYGEN_PREFER_WG_TOOL:
            strategies.append(WgToolStrategy(
                probe_timeout=settings.WG_PROBE_TIMEOUT,
                command_timeout=settings.WG_COMMAND_TIMEOUT,
            ))
        strategies.append(NaClStrategy())
        return cls(strategies)

    def generate(self, include_preshared_key: bool = False) -> KeyPair:
        """
        Generate a private/public key pair and optionally a preshared key

        Raises:
            KeyGenerationUnavailable: If no strategy could produce keys
        """
        errors = []
        for strategy in self.strategies:
            if not strategy.is_available():
                logger.debug(f"Key strategy {strategy.name} unavailable")
                continue
            try:
                keys = strategy.generate(include_preshared_key)
            except (OSError, subprocess.SubprocessError, ValueError) as e:
                logger.warning(f"Key strategy {strategy.name} failed: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue

            logger.info(f"Generated key pair with {strategy.name} (public key {keys.public_key[:8]}...)")
            return keys

        raise KeyGenerationUnavailable(
            "Both WireGuard tools and crypto fallback unavailable",
            details={"errors": errors},
        )

    def generate_preshared_key(self) -> str:
        """Generate only a preshared key"""
        errors = []
        for strategy in self.strategies:
            if not strategy.is_available():
                continue
            try:
                return strategy.generate_preshared_key()
            except (OSError, subprocess.SubprocessError, ValueError) as e:
                logger.warning(f"Key strategy {strategy.name} failed: {e}")
                errors.append(f"{strategy.name}: {e}")

        raise KeyGenerationUnavailable(
            "No key generation backend available for preshared key",
            details={"errors": errors},
        )
