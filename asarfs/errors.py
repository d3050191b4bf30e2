class AsarError(Exception):
    """Base class for asarfs errors."""


# Header structure
class HeaderError(AsarError):
    pass


class HeaderFormatError(HeaderError):
    pass


# Entry insertion
class OversizeFileError(AsarError):
    def __init__(self, path: str, size: int):
        super().__init__(f"{path}: file size can not be larger than 4.2GB")
        self.path = path
        self.size = size


class SymlinkEscapeError(AsarError):
    def __init__(self, path: str, link: str):
        super().__init__(f'{path}: file "{link}" links out of the package')
        self.path = path
        self.link = link


# Lookup
class NotFoundError(AsarError):
    def __init__(self, path: str):
        super().__init__(f'"{path}" was not found in this archive')
        self.path = path


class CyclicLinkError(AsarError):
    def __init__(self, path: str):
        super().__init__(f'"{path}" is part of a symlink cycle')
        self.path = path
