# Integration tests
from urllib.parse import urlsplit

import pytest

from securevault.client.client import VaultClient
from securevault.client.domain.entities import (
    LinkContext,
    PublishState,
    RetrieveState,
    SelectedFile,
)
from securevault.common.exceptions import ErrorKind, Gone, SaveFailed
from securevault.common.models import TransferPolicy

BASE_URL = "http://vault.test"


@pytest.fixture
def vault(app_session) -> VaultClient:
    """VaultClient wired to the in-process reference backend."""
    return VaultClient(BASE_URL, session=app_session)


def assert_token_never_sent(app_session, token: str) -> None:
    assert app_session.requests
    for request in app_session.requests:
        assert token not in request["url"]
        assert "#" not in request["url"]
        for name, value in request["headers"].items():
            assert token not in name
            assert token not in value
        assert token.encode() not in request["body"]


def test_publish_then_retrieve(vault: VaultClient, app_session, tmp_path) -> None:
    """Test a full cycle delivers the original bytes."""
    plaintext = bytes(range(256)) * 64
    publish = vault.publish_flow()
    publish.select_file(SelectedFile(name="data.bin", data=plaintext))
    link = publish.publish(TransferPolicy(max_downloads=1, expiry_hours=1))

    assert publish.state is PublishState.PUBLISHED
    assert urlsplit(link.url).fragment == link.key_token

    retrieve = vault.retrieve_flow(link.url, output_dir=tmp_path)
    metadata = retrieve.load()
    assert metadata.display_name == "data.bin"
    assert metadata.remaining_downloads == 1

    result = retrieve.download()
    assert retrieve.state is RetrieveState.SUCCESS
    assert result.data == plaintext
    assert (tmp_path / "data.bin").read_bytes() == plaintext

    assert_token_never_sent(app_session, link.key_token)


def test_single_use_link_expires(vault: VaultClient) -> None:
    """Test a second retrieval of a one-download link lands in Expired."""
    plaintext = b"0123456789"
    publish = vault.publish_flow()
    publish.select_file(SelectedFile(name="once.txt", data=plaintext))
    link = publish.publish(TransferPolicy(max_downloads=1, expiry_hours=1))

    first = vault.retrieve_flow(link)
    first.load()
    assert first.download().data == plaintext
    with pytest.raises(Gone):
        vault.transfer.download(link.resource_id)

    second = vault.retrieve_flow(link.url)
    assert second.load() is None
    assert second.state is RetrieveState.EXPIRED
    assert second.error.kind is ErrorKind.GONE


def test_wrong_fragment_fails_authentication(vault: VaultClient) -> None:
    """Test a link with another file's key cannot decrypt."""
    publish = vault.publish_flow()
    publish.select_file(SelectedFile(name="a.txt", data=b"a"))
    first = publish.publish(TransferPolicy(max_downloads=3))
    publish.select_file(SelectedFile(name="b.txt", data=b"b"))
    second = publish.publish(TransferPolicy(max_downloads=3))

    mixed = LinkContext(
        base_url=BASE_URL,
        resource_id=first.resource_id,
        fragment=second.key_token,
    )
    flow = vault.retrieve_flow(mixed)
    flow.load()
    assert flow.download() is None
    assert flow.state is RetrieveState.FAILED
    assert flow.error.kind is ErrorKind.AUTHENTICATION_FAILED


def test_missing_fragment_makes_no_requests(vault: VaultClient, app_session) -> None:
    """Test a key-less link fails before any network traffic."""
    flow = vault.retrieve_flow(f"{BASE_URL}/download/anything")
    flow.load()
    assert flow.state is RetrieveState.FAILED
    assert flow.error.kind is ErrorKind.MISSING_KEY
    assert app_session.requests == []


def test_convenience_methods(vault: VaultClient, tmp_path) -> None:
    """Test publish_file, info and retrieve wrap the flows."""
    source = tmp_path / "report.txt"
    source.write_bytes(b"numbers")
    link = vault.publish_file(source, TransferPolicy(max_downloads=1))

    assert vault.info(link.url).original_filename == "report.txt.enc"

    out_dir = tmp_path / "out"
    result = vault.retrieve(link, output_dir=out_dir)
    assert result.data == b"numbers"
    assert (out_dir / "report.txt").read_bytes() == b"numbers"

    errors = []
    vault.on_error_callback = errors.append
    with pytest.raises(Gone):
        vault.retrieve(link.url)
    assert isinstance(errors[0], Gone)


def test_retrieve_save_failure_raises(
    vault: VaultClient, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a full disk surfaces as SaveFailed from the convenience call."""
    publish = vault.publish_flow()
    publish.select_file(SelectedFile(name="big.bin", data=b"0123456789"))
    share = publish.publish(TransferPolicy(max_downloads=1, expiry_hours=1))

    def disk_full(self, filename, data):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(
        "securevault.client.infrastructure.file_saver.DirectorySaver.__call__",
        disk_full,
    )
    with pytest.raises(SaveFailed, match="No space left on device"):
        vault.retrieve(share, output_dir=tmp_path)
