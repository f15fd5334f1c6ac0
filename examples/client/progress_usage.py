"""
Example of driving the flows directly and following their progress.

Listeners receive an immutable snapshot on every state or progress change,
which is how a UI would render the Encrypting/Uploading and Downloading
stages.
"""

import logging
import sys
from pathlib import Path

# Add the project root to the path to import securevault
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from securevault.client.client import VaultClient
from securevault.client.domain.entities import (
    PublishSnapshot,
    RetrieveSnapshot,
    RetrieveState,
    SelectedFile,
)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    def on_publish(snapshot: PublishSnapshot) -> None:
        logger.info("publish: %s %d%%", snapshot.state.value, snapshot.progress)

    def on_retrieve(snapshot: RetrieveSnapshot) -> None:
        logger.info("retrieve: %s %d%%", snapshot.state.value, snapshot.progress)

    client = VaultClient()
    publish = client.publish_flow(on_change=on_publish)
    publish.select_file(SelectedFile(name="hello.txt", data=b"Hello, world!"))
    link = publish.publish()
    if link is None:
        logger.error("Publish failed: %s", publish.error)
        sys.exit(1)

    retrieve = client.retrieve_flow(link.url, on_change=on_retrieve)
    retrieve.load()
    if retrieve.state is not RetrieveState.READY:
        logger.error("Cannot download: %s", retrieve.error)
        sys.exit(1)

    # The download only starts on explicit request
    result = retrieve.download()
    if result is None and retrieve.error and retrieve.error.retryable:
        retrieve.retry()
        result = retrieve.download()
    if result is not None:
        logger.info("Got %r", result.data)


if __name__ == "__main__":
    main()
