"""
tests/conftest.py — pytest fixtures for the IPA re-signing service
"""
import io
import plistlib
import zipfile

import pytest
import requests

from app import create_app
from resigner import SigningOrchestrator
from resigner.index import AnalysisIndex
from resigner.signer import SignResult
from resigner.store import ArtifactStore

BASE_URL = "http://testserver"


# ── Synthetic IPA builders ─────────────────────────────────────────────────────

def make_ipa(info: dict = None, fmt=plistlib.FMT_XML, app_dir: str = "Payload/Example.app",
             extra_entries: dict = None) -> bytes:
    """Zip up a minimal Payload/<App>.app tree; info=None omits Info.plist."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"{app_dir}/Example", b"\xcf\xfa\xed\xfe")
        if info is not None:
            zf.writestr(f"{app_dir}/Info.plist", plistlib.dumps(info, fmt=fmt))
        for name, data in (extra_entries or {}).items():
            zf.writestr(name, data)
    return buf.getvalue()


EXAMPLE_INFO = {
    "CFBundleIdentifier": "com.example.app",
    "CFBundleName": "ExampleApp",
    "CFBundleShortVersionString": "1.2.3",
    "UIDeviceFamily": [1, 2],
}


@pytest.fixture()
def example_ipa_bytes():
    return make_ipa(EXAMPLE_INFO)


# ── Fakes for the network and the signing tool ─────────────────────────────────

class FakeResponse:
    def __init__(self, url, status_code, body):
        self.url = url
        self.status_code = status_code
        self.body = body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def close(self):
        pass


class FakeSession:
    """Serves registered URLs; anything else is a connection error."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, url, body, status_code=200):
        self.routes[url] = (status_code, body)

    def get(self, url, timeout=None, stream=False):
        self.calls.append(url)
        if url not in self.routes:
            raise requests.ConnectionError(f"no route to {url}")
        status_code, body = self.routes[url]
        return FakeResponse(url, status_code, body)


class FakeSigner:
    """Records every SignRequest and optionally writes the output file."""

    def __init__(self, returncode=0, output="signed ok", write_output=True):
        self.returncode = returncode
        self.output = output
        self.write_output = write_output
        self.requests = []

    def sign(self, request):
        self.requests.append(request)
        if self.returncode == 0 and self.write_output:
            with open(request.output_path, "wb") as f:
                f.write(b"PK signed")
        return SignResult(self.returncode, self.output)


@pytest.fixture()
def fake_session():
    return FakeSession()


@pytest.fixture()
def fake_signer():
    return FakeSigner()


@pytest.fixture()
def store(tmp_path):
    return ArtifactStore(str(tmp_path / "output"))


@pytest.fixture()
def index():
    return AnalysisIndex()


@pytest.fixture()
def orchestrator(store, index, fake_signer, fake_session):
    return SigningOrchestrator(store, index, fake_signer, BASE_URL, session=fake_session)


# ── Flask app ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def app(tmp_path, orchestrator):
    """Test app whose orchestrator talks to the fakes above."""
    application = create_app("testing", OUTPUT_FOLDER=str(tmp_path / "output"))
    application.extensions["orchestrator"] = orchestrator
    yield application


@pytest.fixture()
def client(app):
    return app.test_client()

TRUNCATED_INFO_PLIST = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b"<plist><dict><key>CFBundleIdentifier</key>"
)


@pytest.fixture()
def truncated_plist_ipa_bytes():
    return make_ipa(None, extra_entries={"Payload/Example.app/Info.plist": TRUNCATED_INFO_PLIST})
