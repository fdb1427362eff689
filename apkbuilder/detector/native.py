"""Native C/C++ (NDK) project heuristic."""

from pathlib import Path
from typing import Optional

from apkbuilder.core.types import ProjectType
from apkbuilder.detector.fs import first_existing, walk_files
from apkbuilder.detector.types import MAX_LISTING_EVIDENCE, DetectionResult, ScoreCard

SOURCE_SUFFIXES = (".c", ".cpp", ".cc", ".cxx")
HEADER_SUFFIXES = (".h", ".hpp", ".hxx")

WEIGHT_CMAKE = 35
WEIGHT_ANDROID_MK = 30
WEIGHT_APPLICATION_MK = 15
WEIGHT_JNI_DIR = 15
WEIGHT_PER_SOURCE = 5
MAX_SOURCE_WEIGHT = 25
WEIGHT_PER_HEADER = 2
MAX_HEADER_WEIGHT = 10


def detect(root: Path) -> Optional[DetectionResult]:
    root = Path(root)
    card = ScoreCard(ProjectType.NATIVE)

    cmake = root / "CMakeLists.txt"
    if cmake.exists():
        card.add(WEIGHT_CMAKE, cmake)

    android_mk = first_existing(root, ("Android.mk", "jni/Android.mk"))
    if android_mk is not None:
        card.add(WEIGHT_ANDROID_MK, android_mk)

    application_mk = first_existing(root, ("Application.mk", "jni/Application.mk"))
    if application_mk is not None:
        card.add(WEIGHT_APPLICATION_MK, application_mk)

    if (root / "jni").is_dir():
        card.add(WEIGHT_JNI_DIR)

    sources: list[Path] = []
    header_count = 0
    for path in walk_files(root):
        name = path.name.lower()
        if name.endswith(SOURCE_SUFFIXES):
            sources.append(path)
        elif name.endswith(HEADER_SUFFIXES):
            header_count += 1

    if sources:
        card.add(
            min(len(sources) * WEIGHT_PER_SOURCE, MAX_SOURCE_WEIGHT),
            *sources[:MAX_LISTING_EVIDENCE],
        )
    if header_count:
        card.add(min(header_count * WEIGHT_PER_HEADER, MAX_HEADER_WEIGHT))

    return card.result()
