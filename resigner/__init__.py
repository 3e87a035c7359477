"""
resigner/__init__.py — SigningOrchestrator.

Ties together the Artifact Store, the Analysis Index, the metadata reader
and the external signer:

    analyze(url)   fetch once per origin URL, read Info.plist, index it
    resign(...)    resolve/fetch the source IPA, run the signer, write the
                   OTA manifest and hand back download locators

Slow work (HTTP, zip parsing, subprocess) never runs while the index lock
is held; the index is only touched for single lookups and inserts.
"""
import os
import logging
import zipfile
from typing import Any, Dict, Optional

import requests

from models.analysis import AnalysisRecord
from resigner import manifest
from resigner.errors import (
    ResignerError, AnalysisError, FetchError, StorageError, UnknownIdentifier,
    MissingMetadata, MissingCredentialPassword, SigningFailed, SigningOutputMissing,
)
from resigner.index import AnalysisIndex
from resigner.metadata import extract_metadata
from resigner.signer import SignRequest, DEFAULT_COMPRESSION_LEVEL
from resigner.store import (
    ArtifactStore, SOURCE_IPA, SIGNED_IPA, MANIFEST, CERTIFICATE, PROFILE,
)

logger = logging.getLogger(__name__)


class SigningOrchestrator:
    """Runs the analyze and resign flows against shared store + index."""

    def __init__(
        self,
        store: ArtifactStore,
        index: AnalysisIndex,
        signer,
        base_url: str,
        session: Optional[requests.Session] = None,
        download_timeout: float = 60,
        chunk_size: int = 65536,
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    ):
        self.store = store
        self.index = index
        self.signer = signer
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.download_timeout = download_timeout
        self.chunk_size = chunk_size
        self.compression_level = compression_level

    @classmethod
    def from_config(cls, app_config: dict, store, index, signer, session=None):
        return cls(
            store,
            index,
            signer,
            base_url=app_config["BASE_URL"],
            session=session,
            download_timeout=app_config.get("DOWNLOAD_TIMEOUT", 60),
            chunk_size=app_config.get("DOWNLOAD_CHUNK_SIZE", 65536),
            compression_level=app_config.get("SIGNER_COMPRESSION_LEVEL", DEFAULT_COMPRESSION_LEVEL),
        )

    def locator(self, identifier: str, filename: str) -> str:
        return f"{self.base_url}/download/{identifier}/{filename}"

    # ── Analyze ───────────────────────────────────────────────────────────────

    def analyze(self, origin_url: str) -> Dict[str, Any]:
        """Fetch and inspect origin_url once; later calls reuse the record."""
        existing = self.index.find_by_origin(origin_url)
        while existing and not self.store.exists(existing.identifier, SOURCE_IPA):
            # the working directory is the ground truth; drop entries that lost it
            logger.warning("Dropping stale index entry %s for %s", existing.identifier, origin_url)
            self.index.discard(existing.identifier)
            existing = self.index.find_by_origin(origin_url)
        if existing:
            logger.info("Cache hit for %s -> %s", origin_url, existing.identifier)
            return self._analyze_result(existing, cached=True)

        logger.info("Cache miss for %s, fetching", origin_url)
        identifier = self._acquire_source(origin_url)
        try:
            bundle_id, app_name = extract_metadata(self.store.path_for(identifier, SOURCE_IPA))
        except AnalysisError as exc:
            logger.warning("Metadata extraction failed for %s: %s", identifier, exc)
            self._rollback(identifier)
            raise

        record = AnalysisRecord(
            identifier=identifier,
            origin=origin_url,
            bundle_id=bundle_id,
            app_name=app_name,
        )
        self.index.insert(record)
        return self._analyze_result(record, cached=False)

    def _analyze_result(self, record: AnalysisRecord, cached: bool) -> Dict[str, Any]:
        return {
            "uuid": record.identifier,
            "bundle_id": record.bundle_id,
            "app_name": record.app_name,
            "source_url": self.locator(record.identifier, SOURCE_IPA),
            "analyzed": True,
            "cached": cached,
        }

    # ── Resign ────────────────────────────────────────────────────────────────

    def resign(
        self,
        certificate,
        profile,
        password: str,
        identifier: Optional[str] = None,
        origin_url: Optional[str] = None,
        bundle_id: Optional[str] = None,
        app_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Sign the source IPA of an existing identifier, or of a freshly
        fetched origin_url, with the uploaded certificate and profile.

        certificate / profile are raw bytes or werkzeug FileStorage objects.
        Failures after the source IPA is on disk leave the working directory
        in place so the caller can retry with the same identifier.
        """
        record = self._resolve(identifier, origin_url)
        identifier = record.identifier

        bundle_id = bundle_id or record.bundle_id
        app_name = app_name or record.app_name
        if not bundle_id or not app_name:
            raise MissingMetadata()

        cert_path = self._persist(identifier, CERTIFICATE, certificate)
        profile_path = self._persist(identifier, PROFILE, profile)

        if not password:
            raise MissingCredentialPassword()

        output_path = self.store.path_for(identifier, SIGNED_IPA)
        self._discard_stale_output(output_path)

        result = self.signer.sign(SignRequest(
            certificate_path=cert_path,
            profile_path=profile_path,
            password=password,
            bundle_id=bundle_id,
            app_name=app_name,
            output_path=output_path,
            source_path=self.store.path_for(identifier, SOURCE_IPA),
            compression_level=self.compression_level,
        ))
        if not result.ok:
            logger.error("Signer exited %s for %s: %s", result.returncode, identifier, result.output)
            raise SigningFailed(output=result.output)

        if not os.path.isfile(output_path):
            logger.error("Signer reported success but %s has no %s", identifier, SIGNED_IPA)
            raise SigningOutputMissing()

        ipa_url = self.locator(identifier, SIGNED_IPA)
        self.store.write(identifier, MANIFEST, manifest.render(ipa_url, bundle_id, app_name).encode("utf-8"))
        logger.info("Manifest written for %s (%s)", identifier, bundle_id)

        plist_url = self.locator(identifier, MANIFEST)
        return {
            "uuid": identifier,
            "plist_url": plist_url,
            "source_url": self.locator(identifier, SOURCE_IPA),
            "ipa_url": ipa_url,
            "install_url": manifest.install_link(plist_url),
            "bundle_id": bundle_id,
            "app_name": app_name,
        }

    def _resolve(self, identifier: Optional[str], origin_url: Optional[str]) -> AnalysisRecord:
        if identifier:
            record = self.index.find_by_identifier(identifier)
            if record is None or not self.store.exists(identifier, SOURCE_IPA):
                raise UnknownIdentifier()
            return record

        if not origin_url:
            raise UnknownIdentifier("Either ipa_url or ipa_uuid must be provided")

        identifier = self._acquire_source(origin_url)
        try:
            extracted_bundle_id, extracted_name = extract_metadata(self.store.path_for(identifier, SOURCE_IPA))
        except AnalysisError as exc:
            logger.warning("Best-effort metadata extraction failed for %s: %s", identifier, exc)
            extracted_bundle_id, extracted_name = "", ""

        record = AnalysisRecord(
            identifier=identifier,
            origin=origin_url,
            bundle_id=extracted_bundle_id,
            app_name=extracted_name,
        )
        self.index.insert(record)
        return record

    def _persist(self, identifier: str, filename: str, payload) -> str:
        if isinstance(payload, (bytes, bytearray)):
            return self.store.write(identifier, filename, bytes(payload))
        return self.store.save_upload(identifier, filename, payload)

    @staticmethod
    def _discard_stale_output(output_path: str) -> None:
        try:
            os.remove(output_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError("Failed to clear previous signing output") from exc

    # ── Source acquisition & rollback ─────────────────────────────────────────

    def _acquire_source(self, origin_url: str) -> str:
        """Allocate an identifier and download origin_url as its source IPA."""
        identifier = self.store.allocate()
        try:
            self._download(origin_url, self.store.path_for(identifier, SOURCE_IPA))
        except ResignerError:
            self._rollback(identifier)
            raise
        return identifier

    def _download(self, url: str, path: str) -> None:
        logger.info("Downloading %s", url)
        try:
            resp = self.session.get(url, timeout=self.download_timeout, stream=True)
            try:
                resp.raise_for_status()
                with open(path, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=self.chunk_size):
                        f.write(chunk)
            finally:
                resp.close()
        except requests.RequestException as exc:
            logger.warning("Download of %s failed: %s", url, exc)
            raise FetchError() from exc
        except OSError as exc:
            logger.error("Could not store download of %s: %s", url, exc)
            raise StorageError("Failed to save IPA file") from exc

        if not zipfile.is_zipfile(path):
            logger.warning("Download of %s is not a zip archive", url)
            raise FetchError("Downloaded file is not a valid IPA")
        logger.info("Downloaded %s (%d bytes)", url, os.path.getsize(path))

    def _rollback(self, identifier: str) -> None:
        """Undo an allocation: index entry first, then the directory."""
        try:
            self.index.discard(identifier)
        except Exception as exc:
            logger.error("Rollback: failed to drop index entry %s: %s", identifier, exc)
        try:
            self.store.remove(identifier)
        except Exception as exc:
            logger.error("Rollback: failed to remove directory %s: %s", identifier, exc)
