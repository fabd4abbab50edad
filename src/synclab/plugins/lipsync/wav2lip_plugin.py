from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from synclab.config import get_settings
from synclab.plugins.lipsync.base import LipSyncPlugin, LipSyncRequest, LipSyncUnavailable
from synclab.utils.log import logger
from synclab.utils.proc import run_tool


@dataclass(frozen=True, slots=True)
class Wav2LipPaths:
    repo_dir: Path
    infer_py: Path
    checkpoint: Path


def resize_factor_for(quality: str) -> str:
    # full resolution only for the top tier; everything else halves the frame for speed
    return "1" if str(quality or "").strip().lower() == "ultra" else "2"


class Wav2LipPlugin(LipSyncPlugin):
    name = "wav2lip"

    def __init__(
        self,
        *,
        wav2lip_dir: Path | None = None,
        checkpoint_path: Path | None = None,
        python_bin: str | None = None,
    ) -> None:
        self._wav2lip_dir = Path(wav2lip_dir) if wav2lip_dir else None
        self._checkpoint_path = Path(checkpoint_path) if checkpoint_path else None
        self._python_bin = python_bin

    def resolve_paths(self) -> Wav2LipPaths:
        s = get_settings()
        repo_dir = self._wav2lip_dir or s.wav2lip_dir or (Path(s.app_root) / "Wav2Lip")
        ckpt = self._checkpoint_path or s.wav2lip_model or (Path(s.models_dir) / "wav2lip_gan.pth")
        repo_dir = Path(repo_dir)
        return Wav2LipPaths(
            repo_dir=repo_dir,
            infer_py=repo_dir / "inference.py",
            checkpoint=Path(ckpt),
        )

    def is_available(self) -> bool:
        # Only the model file gates the attempt; a missing repo surfaces as a launch failure.
        return self.resolve_paths().checkpoint.is_file()

    def argv(self, req: LipSyncRequest, paths: Wav2LipPaths) -> list[str]:
        return [
            self._python_bin or sys.executable,
            "inference.py",
            "--checkpoint_path",
            str(paths.checkpoint),
            "--face",
            str(Path(req.input_video).resolve()),
            "--audio",
            str(Path(req.dubbed_audio).resolve()),
            "--outfile",
            str(Path(req.output_video).resolve()),
            "--resize_factor",
            resize_factor_for(req.quality),
        ]

    def run(self, req: LipSyncRequest) -> Path:
        paths = self.resolve_paths()
        if not paths.checkpoint.is_file():
            raise LipSyncUnavailable(f"Wav2Lip checkpoint not found: {paths.checkpoint}")
        Path(req.output_video).parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            "wav2lip_start",
            repo=str(paths.repo_dir),
            checkpoint=str(paths.checkpoint),
            quality=req.quality,
        )
        run_tool(
            self.argv(req, paths),
            name="wav2lip",
            cwd=paths.repo_dir,
            timeout_s=req.timeout_s,
        )
        return Path(req.output_video)
