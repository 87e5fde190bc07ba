class ImageServiceError(Exception):
    """Base for errors that are surfaced to the caller of a user action."""

    status_code = 400


class UnsupportedProvider(ImageServiceError):
    def __init__(self, provider):
        super().__init__(f"Unsupported image provider: {provider}")
        self.provider = provider


class ProviderRejected(ImageServiceError):
    """The provider refused the request, or the option combination is invalid for it."""


class ProviderUnavailable(ImageServiceError):
    """Transport, authentication or timeout failure talking to a provider."""

    status_code = 502


class ArtifactStoreFailure(ImageServiceError):
    status_code = 502


class TaskNotFound(ImageServiceError):
    status_code = 404

    def __init__(self, image_id: str):
        super().__init__(f"Image {image_id} does not exist")
        self.image_id = image_id


class ActionNotAvailable(ImageServiceError):
    def __init__(self, image_id: str, custom_id: str):
        super().__init__(f"Action {custom_id} is not offered for image {image_id}")
        self.image_id = image_id
        self.custom_id = custom_id


class SubmitFailed(ImageServiceError):
    """The Midjourney proxy answered a submission with a non-success code."""

    def __init__(self, description: str):
        super().__init__(f"Midjourney submission failed: {description}")
        self.description = description


class QuotaExhausted(SubmitFailed):
    status_code = 402

    def __init__(self, description: str = "insufficient account quota"):
        super().__init__(description)
