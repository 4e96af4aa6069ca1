from .ollama import OllamaClient, ModelInfo
from .launcher import ServerLauncher

__all__ = ["OllamaClient", "ModelInfo", "ServerLauncher"]
