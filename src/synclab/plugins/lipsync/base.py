from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class LipSyncRequest:
    input_video: Path
    dubbed_audio: Path
    output_video: Path
    quality: str = "balanced"  # fast|balanced|high|ultra
    timeout_s: float | None = None


class LipSyncUnavailable(RuntimeError):
    """The plugin cannot run here (model, repo or interpreter missing)."""


class LipSyncPlugin(ABC):
    """
    Lip-sync video generation backend.
    """

    name: str

    @abstractmethod
    def is_available(self) -> bool:
        """
        Returns True if the plugin can run on this machine with current configuration.
        """

    @abstractmethod
    def run(self, req: LipSyncRequest) -> Path:
        """
        Runs lip-sync and returns the output video path.
        Implementations must:
        - raise LipSyncUnavailable when they cannot start at all
        - let synclab.utils.proc.ToolError propagate for launch/exit/timeout failures
        """
