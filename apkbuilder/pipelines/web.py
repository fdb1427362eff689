"""Web pipeline: wraps an HTML/CSS/JS project in an Android WebView app."""

import asyncio
import logging
import shutil
from pathlib import Path

from apkbuilder.core.types import BuildOptions, ProjectType
from apkbuilder.generators import manifest
from apkbuilder.pipelines.android import GradleProjectPipeline, write_file
from apkbuilder.pipelines.base import relocate_package

logger = logging.getLogger(__name__)

# Copied into assets/www when present at the project root.
WEB_ITEMS = ("index.html", "index.htm", "src", "dist", "public", "assets", "css", "js", "img", "images")
LOOSE_ASSET_SUFFIXES = (".html", ".css", ".js")
ASSET_IGNORE = (".git", "node_modules")

MAIN_ACTIVITY_KT = """package com.webview.app

import android.os.Bundle
import android.webkit.PermissionRequest
import android.webkit.WebChromeClient
import android.webkit.WebSettings
import android.webkit.WebView
import android.webkit.WebViewClient
import androidx.appcompat.app.AppCompatActivity

class MainActivity : AppCompatActivity() {
    private lateinit var webView: WebView
    private lateinit var bridge: WebViewBridge

    override fun onCreate(savedInstanceState: Bundle?) {
        super.onCreate(savedInstanceState)
        setContentView(R.layout.activity_main)

        webView = findViewById(R.id.webView)
        bridge = WebViewBridge(this)

        setupWebView()
        webView.loadUrl("file:///android_asset/www/index.html")
    }

    private fun setupWebView() {
        webView.settings.apply {
            javaScriptEnabled = true
            domStorageEnabled = true
            databaseEnabled = true
            allowFileAccess = true
            allowContentAccess = true
            mediaPlaybackRequiresUserGesture = false
            mixedContentMode = WebSettings.MIXED_CONTENT_ALWAYS_ALLOW
            cacheMode = WebSettings.LOAD_DEFAULT
        }

        webView.webViewClient = WebViewClient()
        webView.webChromeClient = object : WebChromeClient() {
            override fun onPermissionRequest(request: PermissionRequest) {
                runOnUiThread { request.grant(request.resources) }
            }
        }
        webView.addJavascriptInterface(bridge, "AndroidBridge")
    }

    @Deprecated("Deprecated in Java")
    override fun onBackPressed() {
        if (webView.canGoBack()) {
            webView.goBack()
        } else {
            super.onBackPressed()
        }
    }

    override fun onResume() {
        super.onResume()
        webView.onResume()
    }

    override fun onPause() {
        super.onPause()
        webView.onPause()
    }
}
"""

WEBVIEW_BRIDGE_KT = """package com.webview.app

import android.content.Context
import android.os.Build
import android.os.VibrationEffect
import android.os.Vibrator
import android.webkit.JavascriptInterface
import android.widget.Toast
import org.json.JSONObject

class WebViewBridge(private val context: Context) {

    @JavascriptInterface
    fun showToast(message: String) {
        Toast.makeText(context, message, Toast.LENGTH_SHORT).show()
    }

    @JavascriptInterface
    fun vibrate(duration: Long) {
        val vibrator = context.getSystemService(Context.VIBRATOR_SERVICE) as Vibrator
        if (Build.VERSION.SDK_INT >= Build.VERSION_CODES.O) {
            vibrator.vibrate(VibrationEffect.createOneShot(duration, VibrationEffect.DEFAULT_AMPLITUDE))
        } else {
            @Suppress("DEPRECATION")
            vibrator.vibrate(duration)
        }
    }

    @JavascriptInterface
    fun getDeviceInfo(): String {
        return JSONObject()
            .put("manufacturer", Build.MANUFACTURER)
            .put("model", Build.MODEL)
            .put("version", Build.VERSION.RELEASE)
            .put("sdk", Build.VERSION.SDK_INT)
            .toString()
    }

    @JavascriptInterface
    fun log(message: String) {
        android.util.Log.d("WebViewBridge", message)
    }
}
"""

ACTIVITY_LAYOUT_XML = """<?xml version="1.0" encoding="utf-8"?>
<FrameLayout xmlns:android="http://schemas.android.com/apk/res/android"
    android:layout_width="match_parent"
    android:layout_height="match_parent">

    <WebView
        android:id="@+id/webView"
        android:layout_width="match_parent"
        android:layout_height="match_parent" />

</FrameLayout>
"""

THEMES_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <style name="Theme.App" parent="Theme.MaterialComponents.DayNight.NoActionBar">
        <item name="android:statusBarColor">@android:color/transparent</item>
        <item name="android:navigationBarColor">@android:color/transparent</item>
    </style>
</resources>
"""

PLACEHOLDER_STRINGS_XML = """<?xml version="1.0" encoding="utf-8"?>
<resources>
    <string name="app_name">WebView App</string>
</resources>
"""


def copy_web_assets(source: Path, www_dir: Path) -> None:
    """Copy the web entry points of `source` into `www_dir`.

    Falls back to the contents of dist/ or public/ when no root index.html
    was copied, and finally to loose root-level html/css/js files.
    """
    www_dir.mkdir(parents=True, exist_ok=True)
    ignore = shutil.ignore_patterns(*ASSET_IGNORE)
    for item in WEB_ITEMS:
        src = source / item
        if src.is_dir():
            shutil.copytree(src, www_dir / item, ignore=ignore, dirs_exist_ok=True)
        elif src.is_file():
            shutil.copy2(src, www_dir / item)

    if (www_dir / "index.html").exists():
        return

    for bundle in ("dist", "public"):
        if (source / bundle / "index.html").exists():
            logger.info("Using %s/ as the web root", bundle)
            shutil.copytree(source / bundle, www_dir, ignore=ignore, dirs_exist_ok=True)
            return

    for path in sorted(source.iterdir()):
        if path.is_file() and path.suffix.lower() in LOOSE_ASSET_SUFFIXES:
            shutil.copy2(path, www_dir / path.name)


class WebPipeline(GradleProjectPipeline):
    project_type = ProjectType.WEB
    placeholder_package = "com.webview.app"

    async def prepare(self, source_path: Path) -> None:
        self.source_path = Path(source_path)
        self.create_build_dir()
        logger.info("Preparing web project: %s", self.source_path)

        java_dir = self.placeholder_dir()
        java_dir.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(copy_web_assets, self.source_path, self.main_dir / "assets" / "www")

        write_file(java_dir / "MainActivity.kt", MAIN_ACTIVITY_KT)
        write_file(java_dir / "WebViewBridge.kt", WEBVIEW_BRIDGE_KT)
        write_file(self.res_dir / "layout" / "activity_main.xml", ACTIVITY_LAYOUT_XML)
        write_file(self.res_dir / "values" / "themes.xml", THEMES_XML)
        write_file(self.res_dir / "values" / "strings.xml", PLACEHOLDER_STRINGS_XML)
        logger.info("Web project prepared in %s", self.build_dir)

    async def configure(self, options: BuildOptions) -> None:
        self.require_build_dir()
        self.options = options

        relocate_package(self.java_dir, self.placeholder_package, options.package_name)

        detected = await asyncio.to_thread(manifest.detect_permissions, self.source_path)
        await self.write_android_project(options.with_permissions(*detected))
        logger.info("Web project configured for %s", options.package_name)
