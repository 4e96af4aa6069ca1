"""
Native Llama: chat-session engine for a local Ollama inference server.
"""

__version__ = "0.3.0"
