"""
File signature tables.

Three static tables drive classification:

  SIGNATURES        Ordered (offset, bytes) rules per type label. Order is
                    priority: specific containers first (office formats
                    inside ZIP, HEIC inside ISO-BMFF), generic containers
                    and short patterns last.
  EXTENSION_TYPES   Lower-case extension to type label, used only when no
                    signature matches.
  LABEL_CATEGORIES  Type label to category.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..core.errors import ConfigurationError
from ..core.types import Category, TypeLabel

ZIP_MAGIC = b"PK\x03\x04"
OOXML_CONTENT_TYPES = "[Content_Types].xml"


@dataclass(frozen=True)
class FileSignature:
    """Byte rules identifying one file format."""

    label: TypeLabel
    rules: Tuple[Tuple[int, bytes], ...]
    mime_type: str
    # ZIP member names that must all be present
    zip_markers: Tuple[str, ...] = ()

    @property
    def required_length(self) -> int:
        return max(offset + len(pattern) for offset, pattern in self.rules)

    def matches_prefix(self, prefix: bytes) -> bool:
        """Check the byte rules; a prefix shorter than a rule never matches."""
        if len(prefix) < self.required_length:
            return False
        return all(
            prefix[offset : offset + len(pattern)] == pattern
            for offset, pattern in self.rules
        )

    def matches_members(self, members: Optional[Sequence[str]], prefix: bytes) -> bool:
        """Check ZIP markers against member names, or raw bytes if unlistable."""
        if not self.zip_markers:
            return True
        if members is None:
            return all(marker.encode() in prefix for marker in self.zip_markers)
        names = set(members)
        return all(marker in names for marker in self.zip_markers)


def _sig(
    label: TypeLabel,
    mime_type: str,
    *rules: Tuple[int, bytes],
    zip_markers: Iterable[str] = (),
) -> FileSignature:
    return FileSignature(label, tuple(rules), mime_type, tuple(zip_markers))


def _ftyp(label: TypeLabel, mime_type: str, brand: bytes) -> FileSignature:
    return _sig(label, mime_type, (4, b"ftyp"), (8, brand))


SIGNATURES: Tuple[FileSignature, ...] = (
    # ZIP-based documents (must precede plain ZIP)
    _sig(
        TypeLabel.EPUB,
        "application/epub+zip",
        (0, ZIP_MAGIC),
        (30, b"mimetype"),
        (38, b"application/epub+zip"),
    ),
    _sig(
        TypeLabel.ODT,
        "application/vnd.oasis.opendocument.text",
        (0, ZIP_MAGIC),
        (30, b"mimetype"),
        (38, b"application/vnd.oasis.opendocument.text"),
    ),
    _sig(
        TypeLabel.ODS,
        "application/vnd.oasis.opendocument.spreadsheet",
        (0, ZIP_MAGIC),
        (30, b"mimetype"),
        (38, b"application/vnd.oasis.opendocument.spreadsheet"),
    ),
    _sig(
        TypeLabel.ODP,
        "application/vnd.oasis.opendocument.presentation",
        (0, ZIP_MAGIC),
        (30, b"mimetype"),
        (38, b"application/vnd.oasis.opendocument.presentation"),
    ),
    _sig(
        TypeLabel.DOCX,
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        (0, ZIP_MAGIC),
        zip_markers=(OOXML_CONTENT_TYPES, "word/document.xml"),
    ),
    _sig(
        TypeLabel.XLSX,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        (0, ZIP_MAGIC),
        zip_markers=(OOXML_CONTENT_TYPES, "xl/workbook.xml"),
    ),
    _sig(
        TypeLabel.PPTX,
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        (0, ZIP_MAGIC),
        zip_markers=(OOXML_CONTENT_TYPES, "ppt/presentation.xml"),
    ),
    # Archives
    _sig(TypeLabel.ZIP, "application/zip", (0, ZIP_MAGIC)),
    _sig(TypeLabel.ZIP, "application/zip", (0, b"PK\x05\x06")),  # Empty archive
    _sig(TypeLabel.RAR, "application/vnd.rar", (0, b"Rar!\x1a\x07")),
    _sig(TypeLabel.SEVEN_ZIP, "application/x-7z-compressed", (0, b"7z\xbc\xaf\x27\x1c")),
    _sig(TypeLabel.XZ, "application/x-xz", (0, b"\xfd7zXZ\x00")),
    _sig(TypeLabel.TAR, "application/x-tar", (257, b"ustar")),
    # Documents
    _sig(TypeLabel.PDF, "application/pdf", (0, b"%PDF-")),
    _sig(
        TypeLabel.MS_OFFICE,
        "application/x-ole-storage",
        (0, b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"),
    ),
    _sig(TypeLabel.RTF, "application/rtf", (0, b"{\\rtf")),
    _sig(TypeLabel.FONT, "font/woff", (0, b"wOFF")),
    _sig(TypeLabel.FONT, "font/woff2", (0, b"wOF2")),
    _sig(TypeLabel.FONT, "font/otf", (0, b"OTTO")),
    # Images
    _sig(TypeLabel.PNG, "image/png", (0, b"\x89PNG\r\n\x1a\n")),
    _sig(TypeLabel.GIF, "image/gif", (0, b"GIF87a")),
    _sig(TypeLabel.GIF, "image/gif", (0, b"GIF89a")),
    _sig(TypeLabel.WEBP, "image/webp", (0, b"RIFF"), (8, b"WEBP")),
    _sig(TypeLabel.TIFF, "image/tiff", (0, b"II*\x00")),
    _sig(TypeLabel.TIFF, "image/tiff", (0, b"MM\x00*")),
    _sig(TypeLabel.PSD, "image/vnd.adobe.photoshop", (0, b"8BPS")),
    _sig(TypeLabel.JPEG, "image/jpeg", (0, b"\xff\xd8\xff")),
    # ISO base media (brand decides image, audio, or video)
    _ftyp(TypeLabel.HEIC, "image/heic", b"heic"),
    _ftyp(TypeLabel.HEIC, "image/heic", b"heix"),
    _ftyp(TypeLabel.HEIC, "image/heic-sequence", b"hevc"),
    _ftyp(TypeLabel.HEIC, "image/heic-sequence", b"hevx"),
    _ftyp(TypeLabel.HEIC, "image/heif", b"mif1"),
    _ftyp(TypeLabel.HEIC, "image/heif-sequence", b"msf1"),
    _ftyp(TypeLabel.AVIF, "image/avif", b"avif"),
    _ftyp(TypeLabel.M4A, "audio/mp4", b"M4A "),
    _ftyp(TypeLabel.MOV, "video/quicktime", b"qt  "),
    _sig(TypeLabel.MP4, "video/mp4", (4, b"ftyp")),
    # Other containers
    _sig(TypeLabel.WAV, "audio/wav", (0, b"RIFF"), (8, b"WAVE")),
    _sig(TypeLabel.AVI, "video/x-msvideo", (0, b"RIFF"), (8, b"AVI ")),
    _sig(TypeLabel.MKV, "video/x-matroska", (0, b"\x1a\x45\xdf\xa3")),
    _sig(TypeLabel.FLV, "video/x-flv", (0, b"FLV\x01")),
    _sig(TypeLabel.MPEG, "video/mpeg", (0, b"\x00\x00\x01\xba")),
    _sig(TypeLabel.FLAC, "audio/flac", (0, b"fLaC")),
    _sig(TypeLabel.OGG, "audio/ogg", (0, b"OggS")),
    _sig(TypeLabel.MP3, "audio/mpeg", (0, b"ID3")),
    # Short, generic patterns last
    _sig(TypeLabel.GZIP, "application/gzip", (0, b"\x1f\x8b")),
    _sig(TypeLabel.BZIP2, "application/x-bzip2", (0, b"BZh")),
    _sig(TypeLabel.ICO, "image/x-icon", (0, b"\x00\x00\x01\x00")),
    _sig(TypeLabel.BMP, "image/bmp", (0, b"BM")),
    _sig(TypeLabel.MP3, "audio/mpeg", (0, b"\xff\xfb")),
    _sig(TypeLabel.MP3, "audio/mpeg", (0, b"\xff\xf3")),
    _sig(TypeLabel.MP3, "audio/mpeg", (0, b"\xff\xf2")),
    _sig(TypeLabel.SCRIPT, "text/x-script", (0, b"#!")),
)

# Enough bytes for every rule in the table
PREFIX_LENGTH: int = max(512, max(sig.required_length for sig in SIGNATURES))


def _extensions(label: TypeLabel, *extensions: str) -> Dict[str, TypeLabel]:
    return {ext: label for ext in extensions}


EXTENSION_TYPES: Dict[str, TypeLabel] = {
    # Documents
    **_extensions(TypeLabel.PDF, "pdf"),
    **_extensions(TypeLabel.DOCX, "docx"),
    **_extensions(TypeLabel.XLSX, "xlsx"),
    **_extensions(TypeLabel.PPTX, "pptx"),
    **_extensions(TypeLabel.ODT, "odt"),
    **_extensions(TypeLabel.ODS, "ods"),
    **_extensions(TypeLabel.ODP, "odp"),
    **_extensions(TypeLabel.EPUB, "epub"),
    **_extensions(TypeLabel.MS_OFFICE, "doc", "xls", "ppt"),
    **_extensions(TypeLabel.RTF, "rtf"),
    **_extensions(TypeLabel.TEXT, "txt", "csv", "tsv", "log"),
    **_extensions(TypeLabel.FONT, "ttf", "otf", "woff", "woff2"),
    # Images
    **_extensions(TypeLabel.JPEG, "jpg", "jpeg", "jfif"),
    **_extensions(TypeLabel.PNG, "png"),
    **_extensions(TypeLabel.GIF, "gif"),
    **_extensions(TypeLabel.BMP, "bmp"),
    **_extensions(TypeLabel.SVG, "svg"),
    **_extensions(TypeLabel.WEBP, "webp"),
    **_extensions(TypeLabel.ICO, "ico"),
    **_extensions(TypeLabel.TIFF, "tiff", "tif"),
    **_extensions(TypeLabel.HEIC, "heic", "heif"),
    **_extensions(TypeLabel.AVIF, "avif"),
    **_extensions(TypeLabel.PSD, "psd"),
    # Videos
    **_extensions(TypeLabel.MP4, "mp4", "m4v", "3gp"),
    **_extensions(TypeLabel.MOV, "mov"),
    **_extensions(TypeLabel.MKV, "mkv"),
    **_extensions(TypeLabel.WEBM, "webm"),
    **_extensions(TypeLabel.AVI, "avi"),
    **_extensions(TypeLabel.WMV, "wmv"),
    **_extensions(TypeLabel.FLV, "flv"),
    **_extensions(TypeLabel.MPEG, "mpg", "mpeg"),
    # Audio
    **_extensions(TypeLabel.MP3, "mp3"),
    **_extensions(TypeLabel.WAV, "wav"),
    **_extensions(TypeLabel.FLAC, "flac"),
    **_extensions(TypeLabel.AAC, "aac"),
    **_extensions(TypeLabel.OGG, "ogg", "oga"),
    **_extensions(TypeLabel.M4A, "m4a"),
    **_extensions(TypeLabel.WMA, "wma"),
    **_extensions(TypeLabel.OPUS, "opus"),
    # Archives
    **_extensions(TypeLabel.ZIP, "zip"),
    **_extensions(TypeLabel.RAR, "rar"),
    **_extensions(TypeLabel.SEVEN_ZIP, "7z"),
    **_extensions(TypeLabel.TAR, "tar"),
    **_extensions(TypeLabel.GZIP, "gz", "tgz"),
    **_extensions(TypeLabel.BZIP2, "bz2"),
    **_extensions(TypeLabel.XZ, "xz"),
    # Code
    **_extensions(
        TypeLabel.SOURCE_CODE,
        "rs", "py", "js", "ts", "go", "java", "c", "cpp", "h", "hpp", "cs",
        "rb", "php", "swift", "kt", "scala", "r", "m", "html", "css", "scss",
        "sass", "json", "xml", "yaml", "yml", "toml", "sql", "md", "rst", "tex",
    ),
    **_extensions(TypeLabel.SCRIPT, "sh", "bash", "zsh", "fish"),
}  # fmt: skip


def _labels(category: Category, *labels: TypeLabel) -> Dict[TypeLabel, Category]:
    return {label: category for label in labels}


LABEL_CATEGORIES: Dict[TypeLabel, Category] = {
    **_labels(
        Category.DOCUMENTS,
        TypeLabel.PDF,
        TypeLabel.DOCX,
        TypeLabel.XLSX,
        TypeLabel.PPTX,
        TypeLabel.ODT,
        TypeLabel.ODS,
        TypeLabel.ODP,
        TypeLabel.EPUB,
        TypeLabel.MS_OFFICE,
        TypeLabel.RTF,
        TypeLabel.TEXT,
        TypeLabel.FONT,
    ),
    **_labels(
        Category.IMAGES,
        TypeLabel.PNG,
        TypeLabel.JPEG,
        TypeLabel.GIF,
        TypeLabel.BMP,
        TypeLabel.TIFF,
        TypeLabel.WEBP,
        TypeLabel.HEIC,
        TypeLabel.AVIF,
        TypeLabel.ICO,
        TypeLabel.PSD,
        TypeLabel.SVG,
    ),
    **_labels(
        Category.VIDEOS,
        TypeLabel.MP4,
        TypeLabel.MOV,
        TypeLabel.MKV,
        TypeLabel.WEBM,
        TypeLabel.AVI,
        TypeLabel.FLV,
        TypeLabel.WMV,
        TypeLabel.MPEG,
    ),
    **_labels(
        Category.AUDIO,
        TypeLabel.MP3,
        TypeLabel.WAV,
        TypeLabel.FLAC,
        TypeLabel.OGG,
        TypeLabel.M4A,
        TypeLabel.AAC,
        TypeLabel.WMA,
        TypeLabel.OPUS,
    ),
    **_labels(
        Category.ARCHIVES,
        TypeLabel.ZIP,
        TypeLabel.RAR,
        TypeLabel.SEVEN_ZIP,
        TypeLabel.GZIP,
        TypeLabel.BZIP2,
        TypeLabel.XZ,
        TypeLabel.TAR,
    ),
    **_labels(Category.CODE, TypeLabel.SOURCE_CODE, TypeLabel.SCRIPT),
    TypeLabel.UNKNOWN: Category.OTHER,
}


def validate_tables(
    label_categories: Optional[Dict[TypeLabel, Category]] = None,
) -> None:
    """
    Check that every declared type label maps to a category.

    Raises:
        ConfigurationError: If a label is missing from the category table
    """
    table = LABEL_CATEGORIES if label_categories is None else label_categories

    missing = [label.value for label in TypeLabel if label not in table]
    if missing:
        raise ConfigurationError(
            f"Type labels without a category: {', '.join(sorted(missing))}"
        )
