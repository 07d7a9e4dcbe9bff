"""
Random Image Service Errors
随机图片服务异常

None of these ever stop the process. Each one is caught at the layer
that knows how to degrade:
- ConfigReadError    -> defaults are used
- DirectoryReadError -> empty image listing
- NoImagesAvailable  -> 404 to the client
- FileStreamError    -> 500 to the client
"""


class ImageServiceError(Exception):
    """Base class for all service errors"""


class ConfigReadError(ImageServiceError):
    """Config file exists but cannot be read, parsed or validated"""


class DirectoryReadError(ImageServiceError):
    """Images folder is missing or unreadable"""


class NoImagesAvailable(ImageServiceError):
    """Images folder holds no file with a supported extension"""

    def __init__(self, folder: str):
        super().__init__(f"No supported image files in {folder}")
        self.folder = folder


class FileStreamError(ImageServiceError):
    """The selected image could not be opened for sending"""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"Failed to send {filename}: {reason}")
        self.filename = filename
        self.reason = reason
