#!/usr/bin/env python3
"""Delete every file in a folder using batched deletes.

Usage:
    export VLIBE_APP_ID=your_app_id
    export VLIBE_APP_SECRET=your_secret
    export VLIBE_USER_TOKEN=user_bearer_token
    python examples/cleanup_folder.py avatars
"""

import asyncio
import os
import sys

from vlibestorage import ListOptions, VlibeStorage


async def main(folder: str) -> None:
    async with VlibeStorage.from_settings() as storage:
        storage.set_auth_token(os.environ["VLIBE_USER_TOKEN"])

        file_ids: list[str] = []
        offset = 0
        while True:
            page = await storage.list(
                ListOptions(folder=folder, limit=100, offset=offset)
            )
            file_ids.extend(f.id for f in page.files)
            offset += len(page.files)
            if not page.has_more or not page.files:
                break

        result = await storage.delete_many(file_ids)
        print(f"Deleted {len(result.deleted)} files, {len(result.failed)} failed")
        for file_id in result.failed:
            print(f"  failed: {file_id}")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1]))
