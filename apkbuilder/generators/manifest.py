"""AndroidManifest.xml generation and web-API permission inference.

The emitted manifest depends only on the BuildOptions and the extra
permission list, so repeated generation is byte-identical.
"""

import logging
from pathlib import Path
from typing import Iterable
from xml.sax.saxutils import quoteattr

from apkbuilder.core.types import INTERNET_PERMISSION, BuildOptions
from apkbuilder.detector.fs import read_text, walk_files

logger = logging.getLogger(__name__)

NETWORK_STATE_PERMISSION = "android.permission.ACCESS_NETWORK_STATE"

# Web API usage and the Android permissions it implies. Checked in order.
WEB_API_PERMISSIONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("navigator.geolocation", (
        "android.permission.ACCESS_FINE_LOCATION",
        "android.permission.ACCESS_COARSE_LOCATION",
    )),
    ("navigator.mediaDevices.getUserMedia", (
        "android.permission.CAMERA",
        "android.permission.RECORD_AUDIO",
    )),
    ("navigator.mediaDevices.getDisplayMedia", ("android.permission.RECORD_AUDIO",)),
    ("Notification", ("android.permission.POST_NOTIFICATIONS",)),
    ("navigator.vibrate", ("android.permission.VIBRATE",)),
    ("navigator.bluetooth", (
        "android.permission.BLUETOOTH",
        "android.permission.BLUETOOTH_ADMIN",
    )),
    ("navigator.usb", ("android.permission.USB_PERMISSION",)),
    ("navigator.nfc", ("android.permission.NFC",)),
    ("navigator.contacts", ("android.permission.READ_CONTACTS",)),
    ("fetch", (INTERNET_PERMISSION,)),
    ("XMLHttpRequest", (INTERNET_PERMISSION,)),
    ("WebSocket", (INTERNET_PERMISSION,)),
)

CODE_SUFFIXES = (".js", ".ts", ".html", ".jsx", ".tsx")
MAX_SCANNED_FILES = 50


def merge_permissions(*groups: Iterable[str]) -> list[str]:
    """Concatenate permission groups, keeping the first occurrence of each.

    INTERNET is always present.
    """
    merged: list[str] = []
    for group in (*groups, (INTERNET_PERMISSION,)):
        for permission in group:
            if permission and permission not in merged:
                merged.append(permission)
    return merged


def detect_permissions(project_path: Path) -> list[str]:
    """Infer Android permissions from web API usage in script and HTML files.

    Scans at most MAX_SCANNED_FILES files in sorted walk order. INTERNET and
    ACCESS_NETWORK_STATE are always included.
    """
    permissions = [INTERNET_PERMISSION, NETWORK_STATE_PERMISSION]
    scanned = 0
    for path in walk_files(Path(project_path)):
        if not path.name.lower().endswith(CODE_SUFFIXES):
            continue
        if scanned >= MAX_SCANNED_FILES:
            break
        scanned += 1
        content = read_text(path)
        if content is None:
            continue
        for api, implied in WEB_API_PERMISSIONS:
            if api in content:
                permissions.extend(p for p in implied if p not in permissions)

    logger.debug("Detected %d permission(s) from %d file(s)", len(permissions), scanned)
    return permissions


def render_manifest(options: BuildOptions, extra_permissions: Iterable[str] = ()) -> str:
    permissions = merge_permissions(options.permissions, extra_permissions)
    permissions_xml = "\n".join(
        f"    <uses-permission android:name={quoteattr(p)} />" for p in permissions
    )
    return f"""<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package={quoteattr(options.package_name)}
    android:versionCode="{options.version_code}"
    android:versionName={quoteattr(options.version)}>

{permissions_xml}

    <uses-feature android:glEsVersion="0x00020000" android:required="true" />

    <application
        android:allowBackup="true"
        android:icon="@mipmap/ic_launcher"
        android:label={quoteattr(options.app_name)}
        android:roundIcon="@mipmap/ic_launcher_round"
        android:supportsRtl="true"
        android:theme="@style/Theme.App"
        android:usesCleartextTraffic="true"
        android:hardwareAccelerated="true">

        <activity
            android:name=".MainActivity"
            android:exported="true"
            android:configChanges="orientation|keyboardHidden|keyboard|screenSize|locale|layoutDirection|fontScale|screenLayout|density|uiMode"
            android:launchMode="singleTask"
            android:windowSoftInputMode="adjustResize">
            <intent-filter>
                <action android:name="android.intent.action.MAIN" />
                <category android:name="android.intent.category.LAUNCHER" />
            </intent-filter>
        </activity>

    </application>

</manifest>
"""


def generate_manifest(
    options: BuildOptions,
    output_path: Path,
    extra_permissions: Iterable[str] = (),
) -> Path:
    """Write AndroidManifest.xml for `options` to `output_path`."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_manifest(options, extra_permissions), encoding="utf-8", newline="\n")
    logger.info("Manifest written: %s", output_path)
    return output_path


def update_manifest_permissions(manifest_path: Path, permissions: Iterable[str]) -> list[str]:
    """Insert missing <uses-permission> entries into an existing manifest.

    Returns the permissions that were added. Raises FileNotFoundError when
    the manifest does not exist.
    """
    manifest_path = Path(manifest_path)
    if not manifest_path.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")

    content = manifest_path.read_text(encoding="utf-8")
    added: list[str] = []
    for permission in permissions:
        if permission in content or permission in added:
            continue
        tag = f"    <uses-permission android:name={quoteattr(permission)} />\n"
        content = content.replace("</manifest>", f"{tag}</manifest>", 1)
        added.append(permission)

    if added:
        manifest_path.write_text(content, encoding="utf-8", newline="\n")
        logger.info("Added %d permission(s) to %s", len(added), manifest_path)
    return added
