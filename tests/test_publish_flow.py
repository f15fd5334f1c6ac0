import pytest

from securevault.client.application.publish_flow import PublishFlow
from securevault.client.domain.entities import PublishState, SelectedFile
from securevault.common.crypto import CipherEngine, KeyCodec
from securevault.common.exceptions import ErrorKind, TransportError
from securevault.common.models import TransferPolicy

BASE_URL = "https://share.example"


@pytest.fixture
def flow(transfer) -> PublishFlow:
    """PublishFlow over the fake request layer."""
    return PublishFlow(transfer, BASE_URL)


def test_initial_state(flow: PublishFlow) -> None:
    """Test a new flow is idle."""
    assert flow.state is PublishState.IDLE
    assert flow.progress == 0
    assert flow.share_link is None
    assert flow.error is None


def test_publish_success(flow: PublishFlow, transfer) -> None:
    """Test the full publish sequence produces a working link."""
    flow.select_file(SelectedFile(name="notes.txt", data=b"top secret"))
    link = flow.publish(TransferPolicy(max_downloads=3, expiry_hours=6))

    assert link is not None
    assert flow.state is PublishState.PUBLISHED
    assert flow.progress == 100
    assert flow.share_link == link
    assert link.url == f"{BASE_URL}/download/{link.resource_id}#{link.key_token}"

    filename, policy = transfer.uploads[0]
    assert filename == "notes.txt.enc"
    assert policy.max_downloads == 3

    key = KeyCodec.decode(link.key_token)
    assert CipherEngine.decrypt(transfer.blobs[link.resource_id], key) == b"top secret"
    assert b"top secret" not in transfer.blobs[link.resource_id]


def test_publish_uses_default_policy(flow: PublishFlow, transfer) -> None:
    """Test the default policy is one download for 24 hours."""
    flow.select_file(SelectedFile(name="a.txt", data=b"a"))
    flow.publish()
    _, policy = transfer.uploads[0]
    assert policy.max_downloads == 1
    assert policy.expiry_hours == 24


def test_progress_is_monotonic_and_split(transfer) -> None:
    """Test encryption fills the first share of the bar, upload the rest."""
    snapshots = []
    flow = PublishFlow(
        transfer, BASE_URL, encrypt_fraction=0.6, on_change=snapshots.append
    )
    flow.select_file(SelectedFile(name="a.bin", data=b"x" * 1000))
    flow.publish()

    progress = [s.progress for s in snapshots]
    assert progress == sorted(progress)
    assert progress[-1] == 100
    encrypting = [s.progress for s in snapshots if s.state is PublishState.ENCRYPTING]
    uploading = [s.progress for s in snapshots if s.state is PublishState.UPLOADING]
    assert encrypting
    assert max(encrypting) < 60
    assert min(uploading) >= 60
    states = [s.state for s in snapshots]
    assert states.index(PublishState.ENCRYPTING) < states.index(PublishState.UPLOADING)
    assert states[-1] is PublishState.PUBLISHED


def test_invalid_encrypt_fraction(transfer) -> None:
    """Test the encryption share must be strictly between 0 and 1."""
    with pytest.raises(ValueError, match="encrypt_fraction"):
        PublishFlow(transfer, BASE_URL, encrypt_fraction=1.0)


def test_publish_without_file(flow: PublishFlow, transfer) -> None:
    """Test publishing with nothing selected fails with NO_FILE."""
    assert flow.publish() is None
    assert flow.state is PublishState.FAILED
    assert flow.error.kind is ErrorKind.NO_FILE
    assert transfer.uploads == []


def test_publish_in_unsupported_environment(transfer) -> None:
    """Test nothing is encrypted or uploaded when the probe fails."""
    flow = PublishFlow(transfer, BASE_URL, capability_probe=lambda: False)
    flow.select_file(SelectedFile(name="a.txt", data=b"a"))
    assert flow.publish() is None
    assert flow.state is PublishState.FAILED
    assert flow.error.kind is ErrorKind.UNSUPPORTED_ENVIRONMENT
    assert flow.progress == 0
    assert transfer.uploads == []


def test_upload_failure_then_restart(flow: PublishFlow, transfer) -> None:
    """Test a failed upload can be restarted from the beginning."""
    transfer.upload_errors.append(TransportError("Upload interrupted"))
    flow.select_file(SelectedFile(name="a.txt", data=b"payload"))

    assert flow.publish() is None
    assert flow.state is PublishState.FAILED
    assert flow.error.kind is ErrorKind.TRANSPORT
    assert flow.error.retryable
    assert flow.share_link is None

    link = flow.publish()
    assert link is not None
    assert flow.state is PublishState.PUBLISHED
    assert flow.error is None


def test_each_publish_uses_a_fresh_key(flow: PublishFlow) -> None:
    """Test the same file published twice gets different keys."""
    flow.select_file(SelectedFile(name="a.txt", data=b"same"))
    first = flow.publish()
    flow.select_file(SelectedFile(name="a.txt", data=b"same"))
    second = flow.publish()
    assert first.key_token != second.key_token
    assert first.resource_id != second.resource_id


def test_reset_during_upload_discards_result(flow: PublishFlow, transfer) -> None:
    """Test a run superseded by reset() cannot publish a link."""
    snapshots = []
    flow.select_file(SelectedFile(name="a.txt", data=b"payload"))
    flow.subscribe(snapshots.append)
    transfer.on_upload = flow.reset

    assert flow.publish() is None
    assert flow.state is PublishState.IDLE
    assert flow.share_link is None
    assert flow.error is None
    assert snapshots[-1].state is PublishState.IDLE


def test_select_file_clears_previous_result(flow: PublishFlow) -> None:
    """Test selecting a new file starts over."""
    flow.select_file(SelectedFile(name="a.txt", data=b"a"))
    flow.publish()
    flow.select_file(SelectedFile(name="b.txt", data=b"b"))
    assert flow.state is PublishState.IDLE
    assert flow.share_link is None
    assert flow.snapshot().file_name == "b.txt"


def test_unsubscribe(flow: PublishFlow) -> None:
    """Test listeners can be removed."""
    seen = []
    unsubscribe = flow.subscribe(seen.append)
    flow.reset()
    unsubscribe()
    flow.reset()
    assert len(seen) == 1


def test_share_link_repr_hides_key(flow: PublishFlow) -> None:
    """Test the key token is not in the link's repr or redacted form."""
    flow.select_file(SelectedFile(name="a.txt", data=b"a"))
    link = flow.publish()
    assert link.key_token not in repr(link)
    assert link.key_token not in link.redacted


def test_second_publish_refused_while_running(transfer) -> None:
    """Test a publish cannot be started twice concurrently."""
    refused = []
    flow = None

    def reenter() -> bool:
        try:
            flow.publish()
        except RuntimeError as err:
            refused.append(err)
        return True

    flow = PublishFlow(transfer, BASE_URL, capability_probe=reenter)
    flow.select_file(SelectedFile(name="a.txt", data=b"a"))
    assert flow.publish() is not None
    assert len(refused) == 1
    assert len(transfer.uploads) == 1
