"""Game filename parser.

Parses game filenames into structured components (title, version, release
year, early access flag). Filenames follow the convention

    "Title (v1.2.3) (EA) (2021).zip"

where every parenthesised tag is optional and may appear in any order.
"""

import re
from pathlib import Path

# Compound archive extensions that Path.suffix would split
COMPOUND_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz", ".tar.zst")

TAG_PATTERN = re.compile(r"\(([^()]*)\)|\[([^\[\]]*)\]")

VERSION_PATTERN = re.compile(r"^v\d+(?:[._-]\w+)*$", re.IGNORECASE)

YEAR_PATTERN = re.compile(r"^(19[5-9]\d|2\d{3})$")

EARLY_ACCESS_TAGS = {"ea", "early access"}


def split_extension(filename: str) -> tuple[str, str]:
    """Return (stem, extension) with the extension lowercased."""
    basename = Path(filename).name
    lower = basename.lower()
    for compound in COMPOUND_EXTENSIONS:
        if lower.endswith(compound):
            return basename[: -len(compound)], compound
    return Path(basename).stem, Path(basename).suffix.lower()


def parse_game_filename(filename: str) -> dict:
    """
    Parse a game filename into components.

    Args:
        filename: The filename or path (e.g., "Hollow Knight (v1.5) (2017).zip")

    Returns:
        dict with keys:
            - title: Game title with tags and separators stripped (str)
            - version: Version tag such as "v1.5" (str, may be empty)
            - release_year: Four digit year (int or None)
            - early_access: True if an (EA) tag is present (bool)
            - tags: Other tags in order of appearance (list of str)
            - extension: File extension, lowercased (str)
    """
    stem, extension = split_extension(filename)

    version = ""
    release_year = None
    early_access = False
    tags = []

    for match in TAG_PATTERN.finditer(stem):
        tag = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        if not tag:
            continue
        if not version and VERSION_PATTERN.match(tag):
            version = tag
        elif release_year is None and YEAR_PATTERN.match(tag):
            release_year = int(tag)
        elif tag.lower() in EARLY_ACCESS_TAGS:
            early_access = True
        else:
            tags.append(tag)

    title = TAG_PATTERN.sub("", stem)
    title = title.replace("_", " ")
    title = re.sub(r"\s+", " ", title).strip(" -.")
    if not title:
        title = stem.strip() or Path(filename).name

    return {
        "title": title,
        "version": version,
        "release_year": release_year,
        "early_access": early_access,
        "tags": tags,
        "extension": extension,
    }
