class RegistryCleanerError(Exception):
    pass


class ValidationError(RegistryCleanerError):
    """Invalid strategy or configuration, raised before any request is sent."""


class RegistryError(RegistryCleanerError):
    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class NetworkError(RegistryError):
    pass


class UnexpectedStatus(RegistryError):
    def __init__(self, message: str, url: str = "", status_code: int = 0, text: str = "") -> None:
        super().__init__(message, url)
        self.status_code = status_code
        self.text = text

    def __str__(self) -> str:
        return f"{self.args[0]}. code: {self.status_code}, text: {self.text}"


class ManifestNotFound(UnexpectedStatus):
    pass


class DeleteRejected(UnexpectedStatus):
    pass
