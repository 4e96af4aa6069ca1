import asyncio
import shutil
import subprocess
from typing import List, Optional

from ..core.logging import logger


class ServerLauncher:
    """
    Starts the local inference server process.

    Fire-and-forget: the spawned process is detached from the engine and the
    caller only gets a human-readable result string back.
    """

    def __init__(self, command: Optional[List[str]] = None):
        self.command = list(command or ["ollama", "serve"])
        self.process: Optional[asyncio.subprocess.Process] = None
        self.watcher: Optional[asyncio.Task] = None

    async def start(self) -> str:
        if not self.command:
            return "Failed to start Ollama: no server command configured"

        executable = shutil.which(self.command[0])
        if executable is None:
            logger.warning("Inference server executable not found", command=self.command)
            return f"Failed to start Ollama: '{self.command[0]}' was not found on PATH"

        try:
            self.process = await asyncio.create_subprocess_exec(
                executable, *self.command[1:],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to start inference server: {e}", command=self.command)
            return f"Failed to start Ollama: {e}"

        self.watcher = asyncio.create_task(self._reap(self.process))
        logger.info("Inference server started", command=self.command, pid=self.process.pid)
        return f"Ollama server started (pid {self.process.pid})"

    async def _reap(self, process: asyncio.subprocess.Process):
        """Wait for the server to exit so the process does not linger as a zombie."""
        returncode = await process.wait()
        logger.info("Inference server exited", command=self.command, pid=process.pid, returncode=returncode)

    def stop(self) -> str:
        return "Please stop the Ollama server manually."
