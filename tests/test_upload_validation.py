import pytest

from wedding_photos.config import get_settings
from wedding_photos.errors import UploadValidationError
from wedding_photos.schemas.upload import FileDescriptor
from wedding_photos.services.upload_validation import check_file, validate_upload_batch

MB = 1024 * 1024


def _file(filename, mime_type, size_bytes):
    return FileDescriptor(filename=filename, mime_type=mime_type, size_bytes=size_bytes)


def test_accepts_mixed_photo_and_video_batch():
    validate_upload_batch(
        [_file("a.jpg", "image/jpeg", 2 * MB), _file("b.mov", "video/quicktime", 5 * MB)],
        get_settings(),
    )


def test_oversized_image_names_file_and_limit():
    with pytest.raises(UploadValidationError) as exc_info:
        validate_upload_batch([_file("big.png", "image/png", 11 * MB)], get_settings())

    problems = exc_info.value.problems
    assert problems == [
        {"filename": "big.png", "reason": "file size exceeds the 10MB limit for images"}
    ]
    assert "big.png" in str(exc_info.value)
    assert "10MB" in str(exc_info.value)


def test_video_ceiling_is_100mb():
    settings = get_settings()
    assert check_file(_file("clip.mp4", "video/mp4", 99 * MB), settings) == []
    assert check_file(_file("clip.mp4", "video/mp4", 101 * MB), settings) == [
        "file size exceeds the 100MB limit for videos"
    ]


def test_extension_is_case_insensitive():
    assert check_file(_file("IMG_0001.JPG", "image/jpeg", MB), get_settings()) == []


def test_extension_must_match_mime_category():
    reasons = check_file(_file("holiday.mp4", "image/jpeg", MB), get_settings())
    assert reasons == ["extension .mp4 does not match file type image/jpeg"]


def test_unsupported_type_and_empty_file():
    reasons = check_file(_file("notes.txt", "text/plain", 0), get_settings())
    assert "unsupported file type 'text/plain'" in reasons
    assert "unsupported file extension .txt" in reasons
    assert "file is empty" in reasons


def test_every_offending_file_is_reported():
    with pytest.raises(UploadValidationError) as exc_info:
        validate_upload_batch(
            [
                _file("ok.jpg", "image/jpeg", MB),
                _file("huge.jpg", "image/jpeg", 20 * MB),
                _file("doc.pdf", "application/pdf", MB),
            ],
            get_settings(),
        )

    named = {p["filename"] for p in exc_info.value.problems}
    assert named == {"huge.jpg", "doc.pdf"}


def test_empty_batch_rejected():
    with pytest.raises(UploadValidationError, match="no files provided"):
        validate_upload_batch([], get_settings())


def test_batch_over_50_rejected():
    files = [_file(f"p{i}.jpg", "image/jpeg", MB) for i in range(51)]
    with pytest.raises(UploadValidationError, match="maximum 50 per batch"):
        validate_upload_batch(files, get_settings())


def test_duplicate_filenames_rejected():
    with pytest.raises(UploadValidationError) as exc_info:
        validate_upload_batch(
            [_file("a.jpg", "image/jpeg", MB), _file("a.jpg", "image/jpeg", MB)],
            get_settings(),
        )
    assert exc_info.value.problems == [{"filename": "a.jpg", "reason": "duplicate filename in batch"}]
