"""
Uploaded file storage: bytes in, a reference (the stored file name) out
"""

import logging
import os

from fastapi import Depends

from config import Settings, get_settings
from errors import UpstreamError

logger = logging.getLogger(__name__)


class FileStore:
    def __init__(self, root: str):
        self.root = root

    def save(self, name: str, data: bytes) -> str:
        path = os.path.join(self.root, os.path.basename(name))
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Writing upload %s failed: %s", path, e)
            raise UpstreamError("Problem with file upload") from e
        return os.path.basename(path)


def get_file_store(settings: Settings = Depends(get_settings)) -> FileStore:
    return FileStore(settings.file_upload_path)
