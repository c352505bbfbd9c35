"""File replacement for records that reference a stored blob (thesis PDFs, digital copies)"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, TypeVar

from biblioteca_gateway.domain.exceptions import BlobStoreError
from biblioteca_gateway.domain.models import DigitalBook, NewFile, Thesis
from biblioteca_gateway.domain.ports import BlobStore
from biblioteca_gateway.infrastructure.observability.metrics import blob_delete_failure_counter

R = TypeVar("R")

THESIS_PREFIX = "tesis"
DIGITAL_BOOK_PREFIX = "libros-digitales"


@dataclass
class AttachmentUpdate:
    """Outcome of an edit flow: the saved record plus non-fatal warnings"""

    record: Any
    warnings: List[str] = field(default_factory=list)


def blob_path(prefix: str, record_id: str, filename: str) -> str:
    return f"{prefix}/{record_id}/{filename}"


def replace_attachment(
    record: R,
    path_field: str,
    prefix: str,
    new_file: Optional[NewFile],
    blob_store: BlobStore,
    save: Callable[[R], R],
) -> AttachmentUpdate:
    """
    Save `record`, swapping its stored file when a new one is supplied.

    Flow:
    1. Delete the old blob if there is one; a failure is logged, counted
       and returned as a warning, and the edit continues
    2. Upload the new file under <prefix>/<record id>/<filename>
    3. Save the record pointing at the new path

    Raises:
        BlobStoreError: Upload failed; nothing is saved
    """
    warnings: List[str] = []
    if new_file is None:
        return AttachmentUpdate(record=save(record), warnings=warnings)

    old_path = getattr(record, path_field)
    if old_path:
        try:
            blob_store.delete(old_path)
        except BlobStoreError as e:
            message = f"Could not delete previous file {old_path}: {e}"
            logging.warning(message, extra={"step": "attachment_delete", "path": old_path})
            blob_delete_failure_counter.inc()
            warnings.append(message)

    new_path = blob_store.upload(
        blob_path(prefix, record.id, new_file.filename),
        new_file.content,
        new_file.content_type,
    )
    saved = save(replace(record, **{path_field: new_path}))
    return AttachmentUpdate(record=saved, warnings=warnings)


def update_thesis(
    thesis: Thesis,
    new_file: Optional[NewFile],
    blob_store: BlobStore,
    save: Callable[[Thesis], Thesis],
) -> AttachmentUpdate:
    return replace_attachment(thesis, "archivo_pdf", THESIS_PREFIX, new_file, blob_store, save)


def update_digital_book(
    digital_book: DigitalBook,
    new_file: Optional[NewFile],
    blob_store: BlobStore,
    save: Callable[[DigitalBook], DigitalBook],
) -> AttachmentUpdate:
    return replace_attachment(digital_book, "storage_path", DIGITAL_BOOK_PREFIX, new_file, blob_store, save)
