"""
resigner/signer.py — External code-signing tool wrapper.

The orchestrator talks to the signer through SignRequest / SignResult so a
fake can be substituted in tests. ZsignSigner runs the real `zsign` binary
as one blocking subprocess with a fixed argument order.
"""
import logging
import subprocess
from typing import List, NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_LEVEL = 9


class SignRequest(NamedTuple):
    """Inputs for one signing run."""
    certificate_path: str
    profile_path: str
    password: str
    bundle_id: str
    app_name: str
    output_path: str
    source_path: str
    compression_level: int = DEFAULT_COMPRESSION_LEVEL


class SignResult(NamedTuple):
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def decode_clean(b: bytes) -> str:
    return "" if not b else b.decode("utf-8", errors="replace").strip()


def build_command(binary: str, request: SignRequest) -> List[str]:
    return [
        binary,
        "-k", request.certificate_path,
        "-m", request.profile_path,
        "-p", request.password,
        "-b", request.bundle_id,
        "-n", request.app_name,
        "-o", request.output_path,
        "-z", str(request.compression_level),
        request.source_path,
    ]


def redact(cmd: List[str]) -> List[str]:
    """Copy of cmd with the value following -p masked."""
    masked = list(cmd)
    for i, arg in enumerate(masked[:-1]):
        if arg == "-p":
            masked[i + 1] = "***"
    return masked


class ZsignSigner:
    """Runs zsign synchronously and captures combined stdout/stderr."""

    def __init__(self, binary: str = "zsign"):
        self.binary = binary

    def init_app(self, app):
        self.binary = app.config.get("SIGNER_BINARY", self.binary)

    def sign(self, request: SignRequest) -> SignResult:
        cmd = build_command(self.binary, request)
        logger.info("Running signer: %s", " ".join(redact(cmd)))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as exc:
            logger.error("Could not launch signer %s: %s", self.binary, exc)
            return SignResult(returncode=127, output=f"failed to launch {self.binary}: {exc.strerror}")
        return SignResult(returncode=proc.returncode, output=decode_clean(proc.stdout))
