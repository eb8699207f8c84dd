"""Image storage backends: listing photos go in, a retrievable URL comes out."""

from __future__ import annotations

import io
import logging
import mimetypes
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ValidationError

if TYPE_CHECKING:
    from .config import MarketConfig

logger = logging.getLogger(__name__)


class ImageStore(ABC):
    """Abstract base for storing listing photos."""

    @abstractmethod
    def upload(self, data: bytes, filename: str, owner_id: str = "") -> str:
        """Store image bytes and return a reference URL for them."""
        ...


def image_filename(owner_id: str, suffix: str = ".jpg") -> str:
    """Build a per-user, timestamped object name like ``u123/1712345678901.jpg``."""
    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{owner_id or 'anonymous'}/{stamp}{suffix}"


class LocalImageStore(ImageStore):
    """Write images under a directory and return ``file://`` URIs."""

    def __init__(self, save_dir: str | Path = "~/.local/share/lastbite/images") -> None:
        self._save_dir = Path(save_dir).expanduser()

    def upload(self, data: bytes, filename: str, owner_id: str = "") -> str:
        if not data:
            raise ValidationError("image data is empty")
        target = self._save_dir / (owner_id or "anonymous") / Path(filename).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored image %s (%d bytes)", target, len(data))
        return target.resolve().as_uri()


class GoogleDriveImageStore(ImageStore):
    """Upload images to Google Drive using OAuth 2.0.

    On first use, opens a browser for Google account authorization.
    The token is saved for subsequent use.
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.file"]
    DOWNLOAD_URL = "https://drive.google.com/uc?export=view&id={file_id}"

    def __init__(
        self,
        credentials_path: str | Path = "~/.config/lastbite/gdrive_credentials.json",
        token_path: str | Path = "~/.config/lastbite/gdrive_token.json",
        folder_id: str = "",
        public: bool = True,
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._token_path = Path(token_path).expanduser()
        self._folder_id = folder_id
        self._public = public
        self._service = None

    def _get_service(self):
        """Build and return the Drive API service, authenticating if needed."""
        if self._service is not None:
            return self._service

        try:
            from google.auth.transport.requests import Request
            from google.oauth2.credentials import Credentials
            from google_auth_oauthlib.flow import InstalledAppFlow
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "Google Drive image storage needs extra packages:\n"
                "  pip install 'lastbite[gdrive]'"
            )

        creds = None

        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), self.SCOPES
            )

        if creds is None or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                if not self._credentials_path.exists():
                    raise FileNotFoundError(
                        f"OAuth credentials file not found: {self._credentials_path}\n"
                        f"Download it from the Google Cloud Console."
                    )
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self._credentials_path), self.SCOPES
                )
                creds = flow.run_local_server(port=0)

            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(creds.to_json())

        self._service = build("drive", "v3", credentials=creds)
        return self._service

    def upload(self, data: bytes, filename: str, owner_id: str = "") -> str:
        """Upload image bytes to Drive.

        Returns:
            A URL from which the image can be fetched.

        Raises:
            ValidationError: If ``data`` is empty.
            ImportError: If required packages are not installed.
        """
        if not data:
            raise ValidationError("image data is empty")

        from googleapiclient.http import MediaIoBaseUpload

        service = self._get_service()
        mimetype = mimetypes.guess_type(filename)[0] or "image/jpeg"

        file_metadata: dict = {"name": filename.replace("/", "_")}
        if self._folder_id:
            file_metadata["parents"] = [self._folder_id]

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mimetype, resumable=True)
        result = (
            service.files()
            .create(body=file_metadata, media_body=media, fields="id")
            .execute()
        )
        file_id = result["id"]

        if self._public:
            service.permissions().create(
                fileId=file_id, body={"type": "anyone", "role": "reader"}
            ).execute()

        logger.info("Uploaded image %s to Drive as %s", filename, file_id)
        return self.DOWNLOAD_URL.format(file_id=file_id)


def create_image_store(config: MarketConfig) -> ImageStore:
    """Create an image store based on configuration."""
    backend_name = config.images.backend

    match backend_name:
        case "local":
            return LocalImageStore(save_dir=config.images.local.save_dir)
        case "gdrive":
            return GoogleDriveImageStore(
                credentials_path=config.images.gdrive.credentials_path,
                token_path=config.images.gdrive.token_path,
                folder_id=config.images.gdrive.folder_id,
                public=config.images.gdrive.public,
            )
        case _:
            raise ValueError(
                f"Unknown image backend: {backend_name!r} (choose local or gdrive)"
            )
