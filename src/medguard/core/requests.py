"""Scan request models.

Callers may send the camelCase field names used by the web frontend
(``fileName``, ``rootPath``...) or the snake_case attribute names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from medguard.core.exceptions import ScanInputError


class SourceType(str, Enum):
    LOCAL_FOLDER = "local_folder"
    GOOGLE_DRIVE = "google_drive"
    ONEDRIVE = "onedrive"
    S3 = "s3"
    SHAREPOINT = "sharepoint"
    DROPBOX = "dropbox"


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class FileDescriptor(_RequestModel):
    file_name: str = Field(alias="fileName", min_length=1)
    logical_path: Optional[str] = Field(default=None, alias="filePath")
    size_bytes: Optional[int] = Field(default=None, alias="sizeBytes", ge=0)
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    content: Optional[str] = None
    file_id: Optional[str] = Field(default=None, alias="fileId")

    @property
    def path(self) -> str:
        """Logical path used for folder grouping; the file name when absent."""
        return self.logical_path or self.file_name


class FileScanRequest(_RequestModel):
    org_id: str = Field(alias="orgId", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")
    source_label: Optional[str] = Field(default=None, alias="sourceLabel")
    file: FileDescriptor


class FolderScanRequest(_RequestModel):
    org_id: str = Field(alias="orgId", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")
    source_label: Optional[str] = Field(default=None, alias="sourceLabel")
    source_type: Optional[SourceType] = Field(default=None, alias="sourceType")
    root_path: str = Field(alias="rootPath")
    files: List[FileDescriptor] = Field(min_length=1)


RequestT = TypeVar("RequestT", bound=_RequestModel)


def parse_request(model: Type[RequestT], payload: Union[RequestT, Any]) -> RequestT:
    """
    Validate *payload* into *model*.

    Args:
        model: FileScanRequest or FolderScanRequest
        payload: An instance of *model* or a mapping

    Returns:
        The validated request

    Raises:
        ScanInputError: If required identifying fields are missing or malformed
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ScanInputError(f"Invalid {model.__name__}", errors=errors) from e
