"""HTTP clients for the text, image and edge-function services."""

from previz.llm.api_clients import ChatCompletionsClient, ChatResponse, ImageGenerationClient, ImageResponse
from previz.llm.edge_functions import EdgeFunctionClient

__all__ = [
    "ChatCompletionsClient",
    "ChatResponse",
    "EdgeFunctionClient",
    "ImageGenerationClient",
    "ImageResponse",
]
