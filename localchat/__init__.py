"""localchat: streaming chat sessions against a local Ollama server."""

__version__ = "0.1.0"
