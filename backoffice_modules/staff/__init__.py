"""
Staff Document Module (``backoffice_modules.staff``).

Responsibility
--------------
Staff directory, document uploads and metadata, expiry tracking and
compliance reporting.  Compliance rules live in
``backoffice_kernel.domain.compliance``.
"""

from backoffice_modules.staff.service import StaffDocumentService
from backoffice_modules.staff.storage import (
    DocumentStorage,
    LocalDocumentStorage,
    generate_secure_file_path,
    sanitize_filename,
    validate_file_path_ownership,
)

__all__ = [
    "DocumentStorage",
    "LocalDocumentStorage",
    "StaffDocumentService",
    "generate_secure_file_path",
    "sanitize_filename",
    "validate_file_path_ownership",
]
