"""Managed (.NET MAUI / Xamarin) project heuristic.

A project file (.csproj) is mandatory; without one the heuristic does not
apply. Each project file contributes its own markers.
"""

import logging
from pathlib import Path
from typing import Optional

from apkbuilder.core.types import ProjectType
from apkbuilder.detector.fs import first_existing, read_text, walk_files
from apkbuilder.detector.types import MAX_LISTING_EVIDENCE, DetectionResult, ScoreCard

logger = logging.getLogger(__name__)

MAUI_MARKERS = ("Microsoft.Maui", "UseMaui")
XAMARIN_MARKER = "Xamarin.Forms"
ANDROID_TARGETS = ("net8.0-android", "net7.0-android", "monoandroid")

WEIGHT_MAUI = 50
WEIGHT_XAMARIN = 40
WEIGHT_ANDROID_TARGET = 20
WEIGHT_PROGRAM = 30
WEIGHT_PLATFORMS_ANDROID = 15
MAX_SOURCE_WEIGHT = 10


def is_maui_project_file(content: str) -> bool:
    return any(marker in content for marker in MAUI_MARKERS)


def detect(root: Path) -> Optional[DetectionResult]:
    root = Path(root)
    card = ScoreCard(ProjectType.MANAGED)

    project_files: list[Path] = []
    source_count = 0
    for path in walk_files(root):
        name = path.name.lower()
        if name.endswith(".csproj"):
            project_files.append(path)
        elif name.endswith(".cs"):
            source_count += 1

    if not project_files:
        return None

    for index, csproj in enumerate(project_files):
        evidence = (csproj,) if index < MAX_LISTING_EVIDENCE else ()
        card.add(0, *evidence)
        content = read_text(csproj)
        if content is None:
            continue
        if is_maui_project_file(content):
            card.add(WEIGHT_MAUI)
        if XAMARIN_MARKER in content:
            card.add(WEIGHT_XAMARIN)
        if any(target in content for target in ANDROID_TARGETS):
            card.add(WEIGHT_ANDROID_TARGET)

    program = first_existing(root, ("MauiProgram.cs", "MAUIProgram.cs"))
    if program is not None:
        card.add(WEIGHT_PROGRAM, program)

    if (root / "Platforms" / "Android").is_dir():
        card.add(WEIGHT_PLATFORMS_ANDROID)

    if source_count:
        card.add(min(source_count, MAX_SOURCE_WEIGHT))

    if card.score == 0:
        logger.debug("Found %d project file(s) under %s but no .NET markers", len(project_files), root)
    return card.result()
