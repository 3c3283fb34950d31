#!/usr/bin/env python3
"""Upload a file through a presigned URL and print progress.

Usage:
    export VLIBE_APP_ID=your_app_id
    export VLIBE_APP_SECRET=your_secret
    export VLIBE_USER_TOKEN=user_bearer_token
    python examples/upload_with_progress.py path/to/file.png
"""

import asyncio
import logging
import os
import sys

from vlibestorage import UploadError, VlibeStorage


def print_progress(percent: int) -> None:
    print(f"\rUploading... {percent:3d}%", end="", flush=True)


async def main(path: str) -> None:
    async with VlibeStorage.from_settings() as storage:
        storage.set_auth_token(os.environ["VLIBE_USER_TOKEN"])

        size = os.path.getsize(path)
        verdict = await storage.can_upload(size)
        if not verdict.allowed:
            print(f"Upload refused: {verdict.reason}")
            return

        try:
            result = await storage.upload_with_progress(
                path, folder="examples", on_progress=print_progress
            )
        except UploadError as e:
            print(f"\nUpload failed: {e}")
            if e.key:
                print(f"Bytes were stored under {e.key} without a file record")
            return

        print(f"\nStored {result.filename} ({result.size} bytes) as {result.id}")
        print(f"Public URL: {await storage.get_public_url_async(result.key)}")

        usage = await storage.get_usage()
        print(f"Usage: {usage.bytes_used_formatted} of {usage.storage_limit_formatted}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1]))
