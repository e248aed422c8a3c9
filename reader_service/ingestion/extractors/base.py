from __future__ import annotations

import io
from collections.abc import Callable
from typing import Any

from pypdf import PdfReader
from pypdf.generic import DictionaryObject

# Opens raw bytes into an object exposing a ``pages`` sequence (pypdf-like).
PdfOpener = Callable[[bytes], Any]


def open_pdf(data: bytes) -> PdfReader:
    reader = PdfReader(io.BytesIO(data))
    if reader.is_encrypted:
        # Try the empty user password; most "protected" PDFs only restrict editing.
        reader.decrypt("")
    return reader


def page_has_image(page: Any) -> bool:
    """True if the page's resources reference at least one image XObject."""
    resources = _resolve(page.get("/Resources"))
    if not isinstance(resources, DictionaryObject):
        return False
    xobjects = _resolve(resources.get("/XObject"))
    if not isinstance(xobjects, DictionaryObject):
        return False
    for ref in xobjects.values():
        obj = _resolve(ref)
        if isinstance(obj, DictionaryObject) and obj.get("/Subtype") == "/Image":
            return True
    return False


def _resolve(obj: Any) -> Any:
    if obj is None:
        return None
    get_object = getattr(obj, "get_object", None)
    return get_object() if callable(get_object) else obj
