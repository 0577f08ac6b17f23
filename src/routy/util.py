import contextlib
import dataclasses
import mimetypes
import os
import re
import tempfile
import typing as t

from python_multipart.multipart import MultipartParser
from python_multipart.multipart import parse_options_header as _mp_options


# Header parsing ------------------------------------------------------------

_KVP_RE = re.compile(
    r"""\s*;\s*(?:                        # prefix by delim
        ([^"=\s;]+) =                     # key (group 1)
        ([^"=\s;]+ | "(?:\\\\|\\"|.)*?" ) # val (group 2)
    )?""", re.VERBOSE)

def _unquote(val:str, unescape=False):
    if len(val)>=2 and '"' == val[0] == val[-1]:
        if unescape:
            return val[1:-1].replace("\\\\", "\\").replace('\\"', '"').replace("%22", '"')
    return val

def _header_kvp(val:str):
    for k,v in _KVP_RE.findall(f";{val}"):
        k, v = k.strip(), _unquote(v.strip(), True)
        if k:
            yield k,v

def parse_header_dict(val:str):
    return dict(_header_kvp(val))

def parse_header_options(val:str):
    """Split a Content-Type style header into (value, {option: val})."""
    first, _, rest = val.partition(';')
    return first.strip(), parse_header_dict(rest)


# MIME types ----------------------------------------------------------------

# Extensions browsers care about most; anything else goes through mimetypes.
MIME_TYPES: dict[str, str] = {
    'json': 'application/json',
    'doc': 'application/msword', 'docx': 'application/msword',
    'pdf': 'application/pdf', 'ai': 'application/pdf',
    'xml': 'application/xml', 'xsl': 'application/xml',
    'xlsx': 'application/xml',
    'zip': 'application/zip',
    'm4a': 'audio/mp4', 'mp4a': 'audio/mp4',
    'mp3': 'audio/mpeg',
    'oga': 'audio/ogg', 'ogg': 'audio/ogg', 'opus': 'audio/ogg',
    'weba': 'audio/webm',
    'otf': 'font/otf',
    'ttf': 'font/ttf',
    'woff': 'font/woff',
    'woff2': 'font/woff2',
    'bmp': 'image/bmp',
    'gif': 'image/gif',
    'ico': 'image/x-icon',
    'jpeg': 'image/jpeg', 'jpg': 'image/jpeg',
    'png': 'image/png',
    'svg': 'image/svg+xml', 'svgz': 'image/svg+xml',
    'tiff': 'image/tiff', 'tif': 'image/tiff',
    'webp': 'image/webp',
    'ics': 'text/calendar', 'ifb': 'text/calendar',
    'css': 'text/css',
    'csv': 'text/csv',
    'html': 'text/html', 'htm': 'text/html',
    'js': 'text/javascript', 'mjs': 'text/javascript',
    'txt': 'text/plain', 'text': 'text/plain', 'conf': 'text/plain',
    'log': 'text/plain', 'ini': 'text/plain',
    'rtf': 'text/richtext',
    'mp4': 'video/mpeg', 'mp4v': 'video/mpeg', 'mpg4': 'video/mpeg',
    'mpeg': 'video/mpeg', 'ts': 'video/mpeg',
    'webm': 'video/webm',
}

DEFAULT_MIME_TYPE = 'application/octet-stream'


def file_extension(path: str | os.PathLike) -> str:
    return os.path.splitext(os.fspath(path))[1].lstrip('.').lower()


def guess_mime_type(path: str | os.PathLike,
                    overrides: t.Mapping[str, str] | None = None) -> str:
    """Resolve a MIME type from the file extension.

    Caller overrides win over the builtin table, which wins over the
    platform's mimetypes database.
    """
    ext = file_extension(path)
    if overrides and ext in overrides:
        return overrides[ext]
    if ext in MIME_TYPES:
        return MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(os.fspath(path), strict=False)
    return guessed or DEFAULT_MIME_TYPE


# Multipart bodies ----------------------------------------------------------

UPLOAD_ERR_SIZE = "UPLOAD_ERR_INI_SIZE"
UPLOAD_ERR_NO_FILE = "UPLOAD_ERR_NO_FILE"


@dataclasses.dataclass(slots=True)
class UploadedFile:
    """Metadata for one uploaded file part.

    `tmp_name` is None when the part was rejected (see `error`).
    """
    name: str
    tmp_name: str | None
    type: str
    size: int
    error: str | None = None


@dataclasses.dataclass
class _Part:
    headers: dict[str, str] = dataclasses.field(default_factory=dict)
    field: str | None = None
    filename: str | None = None
    data: bytearray = dataclasses.field(default_factory=bytearray)


def parse_multipart(body: bytes, content_type: str, *,
                    max_file_size: int | None = None,
                    tmp_dir: str | None = None,
                    ) -> tuple[dict[str, t.Any], dict[str, list[UploadedFile]]]:
    """Parse a multipart/form-data body into (fields, files).

    Repeated field names collect into lists. File parts are spooled into
    temporary files; the caller owns deleting them.
    """
    _, options = _mp_options(content_type.encode('latin-1'))
    boundary = options.get(b'boundary')
    if not boundary:
        raise ValueError("multipart body has no boundary parameter")

    fields: dict[str, t.Any] = {}
    files: dict[str, list[UploadedFile]] = {}
    part = _Part()
    header_field = bytearray()
    header_value = bytearray()

    def on_part_begin():
        nonlocal part
        part = _Part()

    def on_part_data(data: bytes, start: int, end: int):
        part.data.extend(data[start:end])

    def on_header_field(data: bytes, start: int, end: int):
        header_field.extend(data[start:end])

    def on_header_value(data: bytes, start: int, end: int):
        header_value.extend(data[start:end])

    def on_header_end():
        key = header_field.decode('latin-1').strip().lower()
        val = header_value.decode('latin-1').strip()
        header_field.clear()
        header_value.clear()
        part.headers[key] = val
        if key == 'content-disposition':
            _, params = parse_header_options(val)
            part.field = params.get('name')
            part.filename = params.get('filename')

    def on_part_end():
        if part.field is None:
            return
        if part.filename is None:
            value = part.data.decode('utf-8', errors='replace')
            if part.field in fields:
                prior = fields[part.field]
                fields[part.field] = (prior if isinstance(prior, list) else [prior]) + [value]
            else:
                fields[part.field] = value
            return
        files.setdefault(part.field, []).append(
            _spool(part, max_file_size, tmp_dir))

    parser = MultipartParser(boundary, {
        'on_part_begin': on_part_begin,
        'on_part_data': on_part_data,
        'on_part_end': on_part_end,
        'on_header_field': on_header_field,
        'on_header_value': on_header_value,
        'on_header_end': on_header_end,
    })
    try:
        parser.write(body)
        parser.finalize()
    except BaseException:
        remove_spooled(files)
        raise
    return fields, files


def remove_spooled(files: t.Mapping[str, t.Iterable[UploadedFile]]) -> None:
    """Delete the temp files behind parsed uploads."""
    for uploads in files.values():
        for upload in uploads:
            if upload.tmp_name:
                with contextlib.suppress(FileNotFoundError):
                    os.remove(upload.tmp_name)


def _spool(part: _Part, max_file_size: int | None, tmp_dir: str | None) -> UploadedFile:
    ctype = part.headers.get('content-type', DEFAULT_MIME_TYPE)
    size = len(part.data)
    filename = t.cast(str, part.filename)
    if not filename:  # browsers send an empty part for an unused file input
        return UploadedFile(filename, None, ctype, 0, UPLOAD_ERR_NO_FILE)
    if max_file_size is not None and size > max_file_size:
        return UploadedFile(filename, None, ctype, size, UPLOAD_ERR_SIZE)
    fd, tmp_name = tempfile.mkstemp(prefix='routy-', dir=tmp_dir)
    with os.fdopen(fd, 'wb') as fp:
        fp.write(part.data)
    return UploadedFile(filename, tmp_name, ctype, size)
