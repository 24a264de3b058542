"""Client for OpenAI-compatible local model servers (LM Studio and friends)."""

import base64
import logging
from typing import List, Optional

import requests
from pydantic import ValidationError

from .config import DEFAULT_BASE_URL, DEFAULT_PROBE_TIMEOUT
from .models import ChatCompletionResponse, ModelDescriptor, ModelsResponse

logger = logging.getLogger(__name__)

MODELS_PATH = "/v1/models"
COMPLETIONS_PATH = "/v1/chat/completions"

MAX_TOKENS = 100
TEMPERATURE = 0.3

# Naming prompt sent alongside every image
NAMING_PROMPT = (
    "Look at this image and suggest a short, descriptive filename for it. "
    "Respond with ONLY the filename (no extension, no explanation, no quotes). "
    "Use lowercase words separated by underscores. Keep it under 50 characters. "
    "Example responses: sunset_over_mountains, black_cat_sleeping, coffee_cup_on_desk"
)


def _reason(response: requests.Response) -> str:
    return response.reason or f"HTTP {response.status_code}"


class VisionClient:
    """Client for listing models and asking a vision model to name an image."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        request_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Server root, e.g. http://localhost:1234 (empty means the default)
            probe_timeout: Seconds allowed for the reachability probe
            request_timeout: Seconds allowed for listing and completion calls (None waits forever)
            session: Optional preconfigured requests session
        """
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.probe_timeout = probe_timeout
        self.request_timeout = request_timeout
        self.session = session or requests.Session()

    def __enter__(self) -> "VisionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def check_connection(self) -> bool:
        """
        Probe the models endpoint.

        Returns:
            True if the server answered with a 2xx status in time, False otherwise
        """
        try:
            response = self.session.get(self._url(MODELS_PATH), timeout=self.probe_timeout)
        except requests.RequestException as e:
            logger.debug("Reachability probe to %s failed: %s", self.base_url, e)
            return False
        return response.ok

    def list_models(self) -> List[ModelDescriptor]:
        """
        Fetch the models the server currently offers, in server order.

        Raises:
            ConnectivityError: If the server cannot be reached
            NetworkError: If the server answers with a non-2xx status
            ApiError: If the response body is not a models envelope
        """
        try:
            response = self.session.get(self._url(MODELS_PATH), timeout=self.request_timeout)
        except requests.RequestException as e:
            raise ConnectivityError(f"Failed to fetch models: {e}") from e

        if not response.ok:
            raise NetworkError(f"Failed to fetch models: {_reason(response)}")

        try:
            envelope = ModelsResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiError(f"Unexpected models response: {e}") from e

        return list(envelope.data)

    def build_payload(self, image_bytes: bytes, mime_type: str, model_id: str) -> dict:
        """Build the chat completion body for one image."""
        image_b64 = base64.b64encode(image_bytes).decode('utf-8')
        return {
            "model": model_id,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": NAMING_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{image_b64}"},
                        },
                    ],
                }
            ],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }

    async def describe_image(self, image_bytes: bytes, mime_type: str, model_id: str) -> str:
        """
        Ask the model for a filename suggestion.

        Args:
            image_bytes: Encoded image payload
            mime_type: MIME type of the payload, used in the data URI
            model_id: Model identifier, passed through unchecked

        Returns:
            The trimmed, unsanitized suggestion

        Raises:
            NetworkError: If the request fails or returns a non-2xx status
            ApiError: If the server reports an error in the body
            EmptyResponseError: If no suggestion text came back
        """
        payload = self.build_payload(image_bytes, mime_type, model_id)

        try:
            response = self.session.post(
                self._url(COMPLETIONS_PATH),
                json=payload,
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise ConnectivityError(f"API request failed: {e}") from e

        if not response.ok:
            raise NetworkError(f"API request failed: {_reason(response)}")

        try:
            result = ChatCompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiError(f"Unexpected completion response: {e}") from e

        if result.error:
            raise ApiError(f"Model server error: {result.error.message}")

        suggestion = result.suggestion
        if not suggestion:
            raise EmptyResponseError("No name suggestion returned")

        logger.debug("Model %s suggested %r", model_id, suggestion)
        return suggestion


class VisionClientError(Exception):
    """Base exception for vision client errors."""
    pass


class NetworkError(VisionClientError):
    """Raised when an HTTP call fails or returns a non-2xx status."""
    pass


class ConnectivityError(NetworkError):
    """Raised when the server cannot be reached at all."""
    pass


class ApiError(VisionClientError):
    """Raised when the server answers but reports an error."""
    pass


class EmptyResponseError(VisionClientError):
    """Raised when the model returns no usable suggestion."""
    pass
