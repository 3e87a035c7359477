"""resigner/manifest.py — OTA installation manifest (itms-services) rendering."""
from urllib.parse import quote
from xml.sax.saxutils import escape

BUNDLE_VERSION = "1"

MANIFEST_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>items</key>
    <array>
        <dict>
            <key>assets</key>
            <array>
                <dict>
                    <key>kind</key>
                    <string>software-package</string>
                    <key>url</key>
                    <string>{ipa_url}</string>
                </dict>
            </array>
            <key>metadata</key>
            <dict>
                <key>bundle-identifier</key>
                <string>{bundle_id}</string>
                <key>bundle-version</key>
                <string>{bundle_version}</string>
                <key>kind</key>
                <string>software</string>
                <key>title</key>
                <string>{app_name}</string>
            </dict>
        </dict>
    </array>
</dict>
</plist>"""


def render(ipa_url: str, bundle_id: str, app_name: str) -> str:
    return MANIFEST_TEMPLATE.format(
        ipa_url=escape(ipa_url),
        bundle_id=escape(bundle_id),
        bundle_version=BUNDLE_VERSION,
        app_name=escape(app_name),
    )


def install_link(manifest_url: str) -> str:
    return "itms-services://?action=download-manifest&url=" + quote(manifest_url, safe="")
