"""
resigner/metadata.py — Archive Metadata Reader

Locates the main application's Info.plist inside an IPA (a zip archive with
a Payload/<Name>.app/ directory) and pulls out the bundle identifier and a
human-readable application name.
"""
import re
import logging
import plistlib
import zipfile
import zlib
from typing import Any, Dict, Tuple
from xml.parsers.expat import ExpatError

from resigner.errors import AnalysisError, MetadataNotFound, MetadataFieldMissing

logger = logging.getLogger(__name__)

# Payload/Foo.app/Info.plist, but not Payload/Foo.app/PlugIns/Bar.appex/Info.plist
_INFO_PLIST_PATTERN = re.compile(r"^(?:[^/]+/)*?[^/]+\.app/Info\.plist$")

BUNDLE_ID_KEY = "CFBundleIdentifier"
DISPLAY_NAME_KEY = "CFBundleDisplayName"
BUNDLE_NAME_KEY = "CFBundleName"
UNKNOWN_APP_NAME = "Unknown App"


def find_info_plist(archive: zipfile.ZipFile) -> zipfile.ZipInfo:
    """Return the entry of the outermost .app bundle's Info.plist."""
    candidates = [
        info for info in archive.infolist()
        if not info.is_dir() and _INFO_PLIST_PATTERN.match(info.filename)
    ]
    if not candidates:
        raise MetadataNotFound()
    # Nested bundles (watch apps, extensions) sit deeper in the tree
    return min(candidates, key=lambda info: info.filename.count("/"))


def _string_field(info: Dict[str, Any], key: str) -> str:
    value = info.get(key)
    return value if isinstance(value, str) and value else ""


def read_info_plist(archive_path: str) -> Dict[str, Any]:
    """Decode the main Info.plist of the IPA at archive_path (XML or binary)."""
    try:
        with zipfile.ZipFile(archive_path) as archive:
            entry = find_info_plist(archive)
            data = archive.read(entry)
    except (zipfile.BadZipFile, OSError, zlib.error, NotImplementedError, RuntimeError) as exc:
        # RuntimeError: encrypted entry; NotImplementedError: unsupported compression
        logger.warning("Failed to open IPA %s: %s", archive_path, exc)
        raise AnalysisError("Failed to open IPA file") from exc

    try:
        info = plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError, ExpatError) as exc:
        raise AnalysisError("Failed to parse Info.plist") from exc

    if not isinstance(info, dict):
        raise AnalysisError("Info.plist is not a dictionary")
    return info


def extract_metadata(archive_path: str) -> Tuple[str, str]:
    """
    Return (bundle_id, app_name) for the IPA at archive_path.

    bundle_id is mandatory. app_name prefers CFBundleDisplayName, then
    CFBundleName, then UNKNOWN_APP_NAME; it never fails on its own.
    """
    info = read_info_plist(archive_path)

    bundle_id = _string_field(info, BUNDLE_ID_KEY)
    if not bundle_id:
        raise MetadataFieldMissing()

    app_name = (
        _string_field(info, DISPLAY_NAME_KEY)
        or _string_field(info, BUNDLE_NAME_KEY)
        or UNKNOWN_APP_NAME
    )
    return bundle_id, app_name
