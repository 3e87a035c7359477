"""tests/test_api.py — API integration tests"""
import io

from conftest import make_ipa

URL = "https://x/app.ipa"


def _resign_form(**fields):
    data = {
        "p12": (io.BytesIO(b"P12"), "cert.p12"),
        "mobileprovision": (io.BytesIO(b"PROFILE"), "embedded.mobileprovision"),
        "p12_password": "secret",
    }
    data.update(fields)
    return data


# ── Health ────────────────────────────────────────────────────────────────────

def test_health_endpoint(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "ok"
    assert "version" in data


# ── Analyze ───────────────────────────────────────────────────────────────────

def test_analyze(client, fake_session, example_ipa_bytes):
    fake_session.add(URL, example_ipa_bytes)
    resp = client.post("/analyze", data={"ipa_url": URL})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["bundle_id"] == "com.example.app"
    assert body["app_name"] == "ExampleApp"
    assert body["analyzed"] is True
    assert body["source_url"].endswith(f"/download/{body['uuid']}/source.ipa")


def test_analyze_missing_url(client):
    resp = client.post("/analyze", data={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing ipa_url parameter"


def test_analyze_deduplication(client, fake_session, example_ipa_bytes):
    fake_session.add(URL, example_ipa_bytes)
    first = client.post("/analyze", data={"ipa_url": URL}).get_json()
    second = client.post("/analyze", data={"ipa_url": URL}).get_json()
    assert first["uuid"] == second["uuid"]
    assert fake_session.calls == [URL]


def test_analyze_fetch_error(client):
    resp = client.post("/analyze", data={"ipa_url": "https://unreachable/app.ipa"})
    assert resp.status_code == 502
    assert "error" in resp.get_json()


def test_analyze_bad_archive(client, fake_session):
    fake_session.add(URL, make_ipa(None))
    resp = client.post("/analyze", data={"ipa_url": URL})
    assert resp.status_code == 422


# ── Resign ────────────────────────────────────────────────────────────────────

def test_resign_round_trip(client, fake_session, fake_signer, example_ipa_bytes):
    """Analyze → resign by uuid → download manifest and signed IPA."""
    fake_session.add(URL, example_ipa_bytes)
    ipa_uuid = client.post("/analyze", data={"ipa_url": URL}).get_json()["uuid"]

    resp = client.post("/resign", data=_resign_form(ipa_uuid=ipa_uuid),
                       content_type="multipart/form-data")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["uuid"] == ipa_uuid
    assert body["plist_url"].endswith(f"/download/{ipa_uuid}/manifest.plist")
    assert body["ipa_url"].endswith(f"/download/{ipa_uuid}/resigned.ipa")
    assert body["source_url"].endswith(f"/download/{ipa_uuid}/source.ipa")
    assert len(fake_signer.requests) == 1

    plist = client.get(f"/download/{ipa_uuid}/manifest.plist")
    assert plist.status_code == 200
    assert plist.mimetype == "application/xml"
    assert b"software-package" in plist.data

    ipa = client.get(f"/download/{ipa_uuid}/resigned.ipa")
    assert ipa.status_code == 200
    assert ipa.mimetype == "application/octet-stream"
    assert "attachment" in ipa.headers["Content-Disposition"]
    assert "resigned.ipa" in ipa.headers["Content-Disposition"]


def test_resign_requires_source(client):
    resp = client.post("/resign", data=_resign_form(), content_type="multipart/form-data")
    assert resp.status_code == 400


def test_resign_missing_p12(client):
    data = _resign_form(ipa_url=URL)
    del data["p12"]
    resp = client.post("/resign", data=data, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing p12 file"


def test_resign_unknown_uuid(client):
    resp = client.post("/resign",
                       data=_resign_form(ipa_uuid="11111111-2222-3333-4444-555555555555"),
                       content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid ipa_uuid, IPA not found"


def test_resign_missing_password(client, fake_session, fake_signer, example_ipa_bytes):
    fake_session.add(URL, example_ipa_bytes)
    resp = client.post("/resign", data=_resign_form(ipa_url=URL, p12_password=""),
                       content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing p12_password parameter"
    assert fake_signer.requests == []


def test_resign_signing_failure_reports_output(client, app, fake_session, example_ipa_bytes):
    from conftest import FakeSigner
    app.extensions["orchestrator"].signer = FakeSigner(returncode=1, output="invalid p12 password")
    fake_session.add(URL, example_ipa_bytes)
    resp = client.post("/resign", data=_resign_form(ipa_url=URL), content_type="multipart/form-data")
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Signing failed"
    assert body["output"] == "invalid p12 password"


# ── Download ──────────────────────────────────────────────────────────────────

def test_download_rejects_unknown_filename(client, app, monkeypatch):
    touched = []
    store = app.extensions["orchestrator"].store
    monkeypatch.setattr(store, "exists", lambda *a, **k: touched.append(a) or True)

    resp = client.get("/download/11111111-2222-3333-4444-555555555555/secrets.txt")
    assert resp.status_code == 400
    assert touched == []


def test_download_missing_file(client):
    resp = client.get("/download/11111111-2222-3333-4444-555555555555/source.ipa")
    assert resp.status_code == 404


def test_download_source(client, fake_session, example_ipa_bytes):
    fake_session.add(URL, example_ipa_bytes)
    ipa_uuid = client.post("/analyze", data={"ipa_url": URL}).get_json()["uuid"]
    resp = client.get(f"/download/{ipa_uuid}/source.ipa")
    assert resp.status_code == 200
    assert resp.data == example_ipa_bytes


def test_download_never_serves_credentials(client, fake_session, example_ipa_bytes):
    fake_session.add(URL, example_ipa_bytes)
    ipa_uuid = client.post("/analyze", data={"ipa_url": URL}).get_json()["uuid"]
    resp = client.post("/resign", data=_resign_form(ipa_uuid=ipa_uuid),
                       content_type="multipart/form-data")
    assert resp.status_code == 200

    for name in ("cert.p12", "profile.mobileprovision"):
        resp = client.get(f"/download/{ipa_uuid}/{name}")
        assert resp.status_code == 400
        assert b"P12" not in resp.data
        assert b"PROFILE" not in resp.data


# ── Logging ───────────────────────────────────────────────────────────────────

def test_logging_uses_json_formatter():
    import app as app_module
    from pythonjsonlogger.json import JsonFormatter
    assert isinstance(app_module.handler.formatter, JsonFormatter)
