import pytest

from services.media_worker.domain.errors import InvalidPrivateReferenceError
from services.media_worker.domain.job import Job, JobStatus
from services.media_worker.domain.media import (
    MediaFile,
    PrivateReference,
    is_private_reference,
    redact_url,
)


@pytest.mark.parametrize(
    "reference, file_id, path",
    [
        ("private:4_zabc:/videos/a.mp4", "4_zabc", "/videos/a.mp4"),
        ("private:4_zabc:videos/a.mp4", "4_zabc", "/videos/a.mp4"),
    ],
)
def test_private_reference_parse(reference, file_id, path):
    parsed = PrivateReference.parse(reference)

    assert parsed == PrivateReference(file_id, path)
    assert str(parsed) == f"private:{file_id}:{path}"
    assert PrivateReference.parse(str(parsed)) == parsed


@pytest.mark.parametrize(
    "reference",
    ["https://cdn.example.com/a.mp4", "private:only-id", "public:id:/a.mp4"],
)
def test_private_reference_rejects_malformed(reference):
    with pytest.raises(InvalidPrivateReferenceError):
        PrivateReference.parse(reference)


def test_is_private_reference():
    assert is_private_reference("private:id:/a.mp4")
    assert not is_private_reference("https://cdn.example.com/a.mp4")


def test_redact_url_drops_query():
    assert (
        redact_url("https://cdn.example.com/a.mp4?token=1.sig")
        == "https://cdn.example.com/a.mp4"
    )


def test_media_file_prefers_cdn_url():
    media = MediaFile(
        id="v", name="a.mp4", cdn_url="private:c:/a.mp4", backblaze_url="https://b"
    )
    assert media.storage_url == "private:c:/a.mp4"
    assert MediaFile(id="v", name="a", backblaze_url="https://b").storage_url == (
        "https://b"
    )
    assert MediaFile(id="v", name="a", duration_seconds=0).has_duration is False


def test_job_from_payload_accepts_job_type_alias():
    job = Job.from_payload(
        {"id": 12, "jobType": "thumbnail", "videoId": "v-1", "updatedAt": 5}
    )

    assert job.id == "12"
    assert job.job_type == "thumbnail"
    assert job.status is JobStatus.QUEUED
    assert job.timestamp == 5


def test_job_from_payload_rejects_unknown_status():
    with pytest.raises(ValueError, match="Unknown job status"):
        Job.from_payload({"id": "j", "status": "exploded"})


def test_job_from_payload_keeps_iso_timestamps():
    job = Job.from_payload({"id": "j", "createdAt": "2024-05-01T12:00:00Z"})

    assert job.timestamp == "2024-05-01T12:00:00Z"
