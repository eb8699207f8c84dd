"""Tests for listing photo storage backends."""

from unittest.mock import MagicMock, patch

import pytest

from lastbite.config import load_config
from lastbite.errors import ValidationError
from lastbite.images import (
    GoogleDriveImageStore,
    LocalImageStore,
    create_image_store,
    image_filename,
)


def _mock_googleapiclient():
    """Context manager that mocks googleapiclient.http.MediaIoBaseUpload."""
    mock_http = MagicMock()
    mock_api = MagicMock()
    mock_api.http = mock_http
    return patch.dict("sys.modules", {
        "googleapiclient": mock_api,
        "googleapiclient.http": mock_http,
    })


def _mock_service(file_id="file_abc123"):
    mock_service = MagicMock()
    mock_files = MagicMock()
    mock_create = MagicMock()
    mock_create.execute.return_value = {"id": file_id}
    mock_files.create.return_value = mock_create
    mock_service.files.return_value = mock_files
    return mock_service, mock_files


def test_image_filename_is_per_user():
    name = image_filename("u42", ".png")
    owner, stamp = name.split("/")
    assert owner == "u42"
    assert stamp.endswith(".png")
    assert stamp[:-4].isdigit()
    assert image_filename("").startswith("anonymous/")


class TestLocalImageStore:
    def test_upload_writes_file(self, tmp_path):
        store = LocalImageStore(tmp_path)
        uri = store.upload(b"png-bytes", "u1/123.png", owner_id="u1")

        target = tmp_path / "u1" / "123.png"
        assert target.read_bytes() == b"png-bytes"
        assert uri == target.resolve().as_uri()

    def test_empty_data_rejected(self, tmp_path):
        with pytest.raises(ValidationError, match="empty"):
            LocalImageStore(tmp_path).upload(b"", "x.jpg")


class TestGoogleDriveImageStore:
    def test_init_defaults(self):
        """Initializes with default paths."""
        store = GoogleDriveImageStore()
        assert "gdrive_credentials.json" in str(store._credentials_path)
        assert "gdrive_token.json" in str(store._token_path)
        assert store._folder_id == ""

    def test_upload_success(self):
        """Uploads bytes, shares them and returns a view URL."""
        store = GoogleDriveImageStore(folder_id="folder123")
        mock_service, mock_files = _mock_service()
        store._service = mock_service

        with _mock_googleapiclient():
            url = store.upload(b"jpeg", "u1/1700000000000.jpg", owner_id="u1")

        assert url == "https://drive.google.com/uc?export=view&id=file_abc123"
        call_kwargs = mock_files.create.call_args
        body = call_kwargs.kwargs["body"]
        assert body["name"] == "u1_1700000000000.jpg"
        assert body["parents"] == ["folder123"]

        perm_kwargs = mock_service.permissions.return_value.create.call_args.kwargs
        assert perm_kwargs["fileId"] == "file_abc123"
        assert perm_kwargs["body"] == {"type": "anyone", "role": "reader"}

    def test_upload_private_no_folder(self):
        store = GoogleDriveImageStore(public=False)
        mock_service, mock_files = _mock_service("file_xyz")
        store._service = mock_service

        with _mock_googleapiclient():
            store.upload(b"jpeg", "photo.jpg")

        body = mock_files.create.call_args.kwargs["body"]
        assert "parents" not in body
        mock_service.permissions.assert_not_called()

    def test_upload_empty_rejected(self):
        store = GoogleDriveImageStore()
        store._service = MagicMock()
        with pytest.raises(ValidationError, match="empty"):
            store.upload(b"", "photo.jpg")

    def test_get_service_no_credentials_file(self, tmp_path):
        """Raises FileNotFoundError when credentials file missing."""
        store = GoogleDriveImageStore(
            credentials_path=str(tmp_path / "nonexistent.json"),
            token_path=str(tmp_path / "token.json"),
        )

        with patch.dict("sys.modules", {
            "google": MagicMock(),
            "google.auth": MagicMock(),
            "google.auth.transport": MagicMock(),
            "google.auth.transport.requests": MagicMock(),
            "google.oauth2": MagicMock(),
            "google.oauth2.credentials": MagicMock(),
            "google_auth_oauthlib": MagicMock(),
            "google_auth_oauthlib.flow": MagicMock(),
            "googleapiclient": MagicMock(),
            "googleapiclient.discovery": MagicMock(),
        }):
            with pytest.raises(FileNotFoundError, match="credentials"):
                store._get_service()


class TestCreateImageStore:
    def test_local_default(self):
        assert isinstance(create_image_store(load_config()), LocalImageStore)

    def test_gdrive(self):
        config = load_config()
        config.images.backend = "gdrive"
        config.images.gdrive.folder_id = "f1"
        store = create_image_store(config)
        assert isinstance(store, GoogleDriveImageStore)
        assert store._folder_id == "f1"

    def test_unknown_backend(self):
        config = load_config()
        config.images.backend = "s3"
        with pytest.raises(ValueError, match="s3"):
            create_image_store(config)
