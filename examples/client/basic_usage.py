"""
Basic usage example of VaultClient.

This example publishes a file to a running backend, prints the share link,
then retrieves and decrypts it again. Start a backend first with
``securevault serve``.
"""

import logging
import sys
from pathlib import Path

# Add the project root to the path to import securevault
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from securevault.client.client import VaultClient
from securevault.common.exceptions import VaultError
from securevault.common.models import TransferPolicy


def main() -> None:
    # Configure logging
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    try:
        client = VaultClient()
        if not client.is_supported():
            logger.error("AES-256-GCM is not available here")
            sys.exit(1)

        # Publish this file for up to three downloads within six hours
        link = client.publish_file(
            Path(__file__), TransferPolicy(max_downloads=3, expiry_hours=6)
        )
        logger.info("Share link: %s", link.url)

        metadata = client.info(link)
        logger.info(
            "%s: %d bytes, %d downloads left",
            metadata.display_name,
            metadata.file_size,
            metadata.remaining_downloads,
        )

        result = client.retrieve(link, output_dir=Path("downloads"))
        logger.info("Retrieved %s (%d bytes)", result.filename, len(result.data))
    except VaultError as e:
        logger.error("Transfer failed (%s): %s", e.kind.value, e.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
