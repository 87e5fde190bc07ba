import httpx
import pytest

from app.errors import ArtifactStoreFailure
from app.storage.artifacts import LocalArtifactStore, download_bytes, guess_extension
from conftest import PNG_BYTES


def test_guess_extension():
    assert guess_extension(PNG_BYTES) == ".png"
    assert guess_extension(b"\xff\xd8\xff\xe0rest") == ".jpg"
    assert guess_extension(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == ".webp"
    assert guess_extension(b"plain") == ".bin"


def test_save_writes_under_base_url(tmp_path):
    store = LocalArtifactStore(str(tmp_path / "nested"), "http://files.local/img/")

    ref = store.save(PNG_BYTES)

    assert ref.startswith("http://files.local/img/") and ref.endswith(".png")
    assert (tmp_path / "nested" / ref.rsplit("/", 1)[1]).read_bytes() == PNG_BYTES


def test_save_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(ArtifactStoreFailure):
        LocalArtifactStore(str(blocker), "http://files.local").save(PNG_BYTES)


def test_download_bytes():
    ok = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=PNG_BYTES)))
    assert download_bytes("https://cdn/x.png", client=ok) == PNG_BYTES

    missing = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    with pytest.raises(ArtifactStoreFailure):
        download_bytes("https://cdn/x.png", client=missing)


def test_download_malformed_url():
    with pytest.raises(ArtifactStoreFailure):
        download_bytes("http://[::1/x.png")
