# src/drive_inventory/core/constants.py
"""
Application constants for Drive Inventory.

These are values that don't change and aren't configurable.
"""

from typing import Final, Dict, Tuple


# Application info
APP_NAME: Final[str] = "Drive Inventory"
DEFAULT_INVENTORY_NAME: Final[str] = "drive"

# Native container documents
NATIVE_MIME_PREFIX: Final[str] = "application/vnd.google-apps."
NATIVE_FOLDER_SUBTYPE: Final[str] = "folder"

NATIVE_TYPE_LABELS: Final[Dict[str, str]] = {
    "document": "Google Docs",
    "spreadsheet": "Google Sheets",
    "presentation": "Google Slides",
    "form": "Google Forms",
    "drawing": "Google Drawings",
}

# Extension -> semantic type label
DOCUMENT_TYPES: Final[Dict[str, str]] = {
    "doc": "Word Document", "docx": "Word Document",
    "pdf": "PDF", "txt": "Text File", "rtf": "Rich Text",
    "odt": "OpenDocument Text",
}

SPREADSHEET_TYPES: Final[Dict[str, str]] = {
    "xls": "Excel", "xlsx": "Excel", "csv": "CSV", "ods": "OpenDocument Spreadsheet",
}

PRESENTATION_TYPES: Final[Dict[str, str]] = {
    "ppt": "PowerPoint", "pptx": "PowerPoint", "odp": "OpenDocument Presentation",
}

MEDIA_TYPES: Final[Dict[str, str]] = {
    "jpg": "Image", "jpeg": "Image", "png": "Image", "gif": "Image",
    "svg": "Image", "bmp": "Image", "webp": "Image", "tiff": "Image", "heic": "Image",
    "mp4": "Video", "avi": "Video", "mov": "Video", "wmv": "Video",
    "flv": "Video", "mkv": "Video", "webm": "Video",
    "mp3": "Audio", "wav": "Audio", "flac": "Audio", "aac": "Audio", "ogg": "Audio",
}

ARCHIVE_TYPES: Final[Dict[str, str]] = {
    "zip": "Archive", "rar": "Archive", "7z": "Archive",
    "tar": "Archive", "gz": "Archive", "tgz": "Archive", "bz2": "Archive",
}

PROGRAMMING_LANGUAGES: Final[Dict[str, str]] = {
    # Web
    "js": "JavaScript", "jsx": "React/JSX", "ts": "TypeScript", "tsx": "TypeScript React",
    "html": "HTML", "htm": "HTML", "css": "CSS", "scss": "SASS/SCSS", "sass": "SASS/SCSS",
    "less": "LESS", "vue": "Vue.js", "svelte": "Svelte",
    # Backend
    "py": "Python", "java": "Java", "c": "C", "cpp": "C++", "cc": "C++", "cxx": "C++",
    "cs": "C#", "php": "PHP", "rb": "Ruby", "go": "Go", "rs": "Rust",
    "kt": "Kotlin", "scala": "Scala", "clj": "Clojure", "hs": "Haskell",
    "swift": "Swift", "dart": "Dart", "lua": "Lua", "r": "R",
    "m": "Objective-C", "mm": "Objective-C++",
    # Data and config
    "sql": "SQL", "json": "JSON", "xml": "XML", "yaml": "YAML", "yml": "YAML",
    "toml": "TOML", "ini": "INI", "cfg": "Config", "conf": "Config",
    # Scripting
    "sh": "Shell Script", "bash": "Bash Script", "ps1": "PowerShell",
    "bat": "Batch File", "cmd": "Command File",
    # Markup
    "md": "Markdown", "rst": "reStructuredText", "tex": "LaTeX",
    "cmake": "CMake",
}

# Extension-less filenames recognised as tooling
SPECIAL_FILENAMES: Final[Dict[str, str]] = {
    "dockerfile": "Docker",
    "makefile": "Makefile",
}

EXTENSION_TYPES: Final[Dict[str, str]] = {
    **DOCUMENT_TYPES,
    **SPREADSHEET_TYPES,
    **PRESENTATION_TYPES,
    **MEDIA_TYPES,
    **ARCHIVE_TYPES,
    **PROGRAMMING_LANGUAGES,
}

UNKNOWN_TYPE: Final[str] = "Unknown"

# Category detection
CONFIG_FILES: Final[Tuple[str, ...]] = (
    "package.json", "composer.json", "requirements.txt", "gemfile", "cargo.toml",
    "pom.xml", "build.gradle", "tsconfig.json", "webpack.config.js", "gulpfile.js",
    "dockerfile", "docker-compose.yml", ".gitignore", ".env", ".env.example",
    "makefile", "cmake", ".editorconfig", ".prettierrc", ".eslintrc",
    "pyproject.toml", "setup.cfg",
)
SCRIPT_EXTENSIONS: Final[Tuple[str, ...]] = ("sh", "bash", "ps1", "bat", "cmd")
SCRIPT_PATTERNS: Final[Tuple[str, ...]] = (
    "script", "bin", "tool", "util", "helper", "run", "build", "deploy",
)
TEST_PATTERNS: Final[Tuple[str, ...]] = ("test", "spec")
DOCUMENTATION_PATTERNS: Final[Tuple[str, ...]] = ("readme", "doc")
BUILD_PATTERNS: Final[Tuple[str, ...]] = ("build", "make")
MARKDOWN_EXTENSIONS: Final[Tuple[str, ...]] = ("md", "markdown", "mdown", "mkd", "mkdn", "mdx")
MARKDOWN_MIME_TYPES: Final[Tuple[str, ...]] = ("text/markdown", "text/x-markdown")
README_MARKER: Final[str] = "readme"

# Scoring
HIGH_RISK_KEYWORDS: Final[Tuple[str, ...]] = (
    "confidential", "secret", "private", "internal", "restricted",
    "salary", "budget", "financial", "contract", "agreement",
    "password", "credential", "api", "key", "token",
    "personal", "ssn", "social security", "bank", "account",
)
SENSITIVE_EXTENSIONS: Final[Tuple[str, ...]] = ("pdf", "doc", "docx", "xls", "xlsx", "csv")
SENSITIVE_NATIVE_SUBTYPES: Final[Tuple[str, ...]] = ("document", "spreadsheet")
DISPOSABLE_TYPE_MARKERS: Final[Tuple[str, ...]] = ("zip", "rar", "tar", "backup", "tmp", "log", "archive")
MEDIA_TYPE_MARKERS: Final[Tuple[str, ...]] = ("video", "audio")

# (threshold, points) tables, checked top-down; first match wins
CLEANUP_AGE_POINTS: Final[Tuple[Tuple[int, int], ...]] = ((730, 40), (365, 30), (180, 20), (90, 10))
CLEANUP_SIZE_POINTS: Final[Tuple[Tuple[int, int], ...]] = ((1000, 30), (500, 25), (100, 20), (50, 15), (10, 10))
CLEANUP_DISPOSABLE_POINTS: Final[int] = 20
CLEANUP_MEDIA_POINTS: Final[int] = 10
CLEANUP_PRIVATE_POINTS: Final[int] = 10

RISK_EXPOSURE_POINTS: Final[Dict[str, int]] = {
    "public": 40,
    "domain": 25,
    "external": 20,
    "private": 0,
}
RISK_PUBLIC_EDIT_POINTS: Final[int] = 20
RISK_EDIT_POINTS: Final[int] = 10
RISK_KEYWORD_POINTS: Final[int] = 5
RISK_KEYWORD_CAP: Final[int] = 25
RISK_SENSITIVE_TYPE_POINTS: Final[int] = 10
RISK_EXTERNAL_DOMAIN_POINTS: Final[Tuple[Tuple[int, int], ...]] = ((5, 15), (2, 10), (0, 5))
RISK_STALE_SHARE_POINTS: Final[Tuple[Tuple[int, int], ...]] = ((730, 10), (365, 5))

MAX_SCORE: Final[int] = 100

# Reporting
OTHER_GROUP_KEY: Final[str] = "(other)"
UNKNOWN_OWNER: Final[str] = "Unknown"
ROOT_FOLDER: Final[str] = "Root"
UNKNOWN_FOLDER: Final[str] = "Unknown"
UNGROUPED_PROJECT: Final[str] = "Uncategorized"
PATH_SEPARATOR: Final[str] = "/"

SIZE_BUCKETS: Final[Tuple[Tuple[int, str], ...]] = (
    (1024 ** 3, "Over 1 GB"),
    (100 * 1024 ** 2, "100 MB - 1 GB"),
    (10 * 1024 ** 2, "10 MB - 100 MB"),
    (1024 ** 2, "1 MB - 10 MB"),
    (0, "Under 1 MB"),
)

# Bounded run history kept per inventory
RUN_HISTORY_LIMIT: Final[int] = 200
