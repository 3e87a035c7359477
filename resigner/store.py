"""
resigner/store.py — Artifact Store

One directory per identifier under OUTPUT_FOLDER:

    <root>/<uuid>/source.ipa
                 /cert.p12
                 /profile.mobileprovision
                 /resigned.ipa
                 /manifest.plist

The store keeps no in-memory state; a directory's existence is what makes
an identifier usable.
"""
import os
import uuid
import shutil
import logging
from typing import Optional

from resigner.errors import InvalidArtifactName, StorageError

logger = logging.getLogger(__name__)

SOURCE_IPA = "source.ipa"
SIGNED_IPA = "resigned.ipa"
MANIFEST = "manifest.plist"
CERTIFICATE = "cert.p12"
PROFILE = "profile.mobileprovision"

ARTIFACT_NAMES = frozenset({SOURCE_IPA, SIGNED_IPA, MANIFEST, CERTIFICATE, PROFILE})
# credentials stay on disk; only these are served over HTTP
DOWNLOADABLE = frozenset({SOURCE_IPA, SIGNED_IPA, MANIFEST})

_DIR_MODE = 0o755


def validate_artifact_name(filename: str) -> str:
    if filename not in ARTIFACT_NAMES:
        raise InvalidArtifactName(f"Unknown artifact name: {filename!r}")
    return filename


def validate_download_name(filename: str) -> str:
    if filename not in DOWNLOADABLE:
        raise InvalidArtifactName(f"Artifact not downloadable: {filename!r}")
    return filename


def _is_valid_identifier(identifier: str) -> bool:
    try:
        return str(uuid.UUID(identifier)) == identifier
    except (TypeError, ValueError, AttributeError):
        return False


class ArtifactStore:
    """Directory-per-identifier layout on local disk."""

    def __init__(self, root: Optional[str] = None):
        self.root = root

    def init_app(self, app):
        self.root = app.config["OUTPUT_FOLDER"]
        try:
            os.makedirs(self.root, mode=_DIR_MODE, exist_ok=True)
        except OSError as exc:
            raise StorageError("Failed to create output directory") from exc

    def allocate(self) -> str:
        """Create a working directory for a fresh identifier and return it."""
        identifier = str(uuid.uuid4())
        path = self.resolve(identifier)
        try:
            os.makedirs(path, mode=_DIR_MODE)
        except OSError as exc:
            logger.error("Failed to create working directory for %s: %s", identifier, exc)
            raise StorageError("Failed to create directory") from exc
        logger.info("Allocated identifier %s", identifier)
        return identifier

    def resolve(self, identifier: str) -> str:
        return os.path.join(self.root, identifier)

    def path_for(self, identifier: str, filename: str) -> str:
        validate_artifact_name(filename)
        return os.path.join(self.resolve(identifier), filename)

    def exists(self, identifier: str, filename: Optional[str] = None) -> bool:
        """True if the identifier's directory (or one of its artifacts) is on disk."""
        if not _is_valid_identifier(identifier):
            return False
        if filename is None:
            return os.path.isdir(self.resolve(identifier))
        return os.path.isfile(self.path_for(identifier, filename))

    def write(self, identifier: str, filename: str, data: bytes) -> str:
        path = self.path_for(identifier, filename)
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            logger.error("Failed to write %s for %s: %s", filename, identifier, exc)
            raise StorageError(f"Failed to save {filename}") from exc
        return path

    def save_upload(self, identifier: str, filename: str, file_storage) -> str:
        """Persist an uploaded werkzeug FileStorage under an artifact name."""
        path = self.path_for(identifier, filename)
        try:
            file_storage.save(path)
        except OSError as exc:
            logger.error("Failed to save upload %s for %s: %s", filename, identifier, exc)
            raise StorageError(f"Failed to save {filename}") from exc
        return path

    def remove(self, identifier: str) -> None:
        """Best-effort recursive delete of an identifier's directory."""
        if not _is_valid_identifier(identifier):
            return
        shutil.rmtree(self.resolve(identifier), ignore_errors=True)
        logger.info("Removed working directory for %s", identifier)
