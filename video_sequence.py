"""Stage-machine orchestration of the 20-second video sequence.

One initial clip is generated and then extended three times, each step
waiting on the previous operation. Progress values are fixed checkpoints,
the provider exposes no real percentage.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from artifacts import ArtifactStore
from config import StudioSettings
from errors import (
    ERROR_MESSAGES,
    INVALID_INPUT,
    QUOTA_EXCEEDED,
    REMEDIATIONS,
    UNKNOWN,
    GenerationError,
    classify_error,
    classify_message,
)
from interfaces import GenerationClient, VideoFetcher
from models import (
    GenerationSequenceState,
    ReferenceImage,
    RemoteOperation,
    SequenceStage,
    VideoProConfig,
)
from poller import OperationPoller
from prompts import EXTENSION_INSTRUCTION, build_automation_prompt
from retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)

StateCallback = Callable[[SequenceStage, SequenceStage], None]
ProgressCallback = Callable[[GenerationSequenceState], None]

MAX_REFERENCE_IMAGES = 3

_EXTENSION_STEPS = (
    (SequenceStage.EXTENDING_1, "Step 2: Extending the mid-section motion (5-10s)...", 35),
    (SequenceStage.EXTENDING_2, "Step 3: Developing the climax sequence (10-15s)...", 65),
    (SequenceStage.EXTENDING_3, "Step 4: Finishing the ending & upscaling (15-20s)...", 90),
)


class VideoSequenceOrchestrator:
    def __init__(
        self,
        client: GenerationClient,
        fetcher: VideoFetcher,
        artifacts: ArtifactStore,
        settings: Optional[StudioSettings] = None,
        pro_config: Optional[VideoProConfig] = None,
        sleep: Sleep = asyncio.sleep,
        on_state_change: Optional[StateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._artifacts = artifacts
        self._settings = settings or StudioSettings()
        self._pro_config = pro_config or VideoProConfig()
        self._sleep = sleep
        self._on_state_change = on_state_change
        self._on_progress = on_progress

        retry = RetryPolicy(
            retries=self._settings.retries,
            initial_delay=self._settings.initial_retry_delay,
            sleep=sleep,
        )
        self._poller = OperationPoller(
            client,
            retry,
            interval_s=self._settings.poll_interval,
            max_polls=self._settings.max_polls,
            sleep=sleep,
        )
        self._state = GenerationSequenceState()

    @property
    def state(self) -> GenerationSequenceState:
        return self._state

    async def run(
        self,
        prompt: str,
        images: Sequence[ReferenceImage] = (),
        voice_script: str = "",
        fast: bool = False,
    ) -> GenerationSequenceState:
        """Run the whole sequence; always ends in DONE or FAILED."""
        self._state = GenerationSequenceState()
        images = list(images)[:MAX_REFERENCE_IMAGES]

        if not prompt.strip() and not images:
            message = "Provide a text prompt or at least one reference image."
            self._fail(INVALID_INPUT, message, issues=[message])
            return self._state

        self._state.is_generating = True
        self._update(SequenceStage.INITIAL, "Step 1: Initializing the base simulation (0-5s)...", 5)

        try:
            if voice_script.strip():
                self._update(SequenceStage.INITIAL, "Synthesizing the AI voiceover...", 12)
                audio_path = await self._narrate(voice_script)
                self._state.audio_path = str(audio_path) if audio_path else None

            final_prompt = build_automation_prompt(prompt, self._pro_config)
            op, aspect_ratio = await self._client.generate_initial_video(final_prompt, images, fast)
            self._state.aspect_ratio = aspect_ratio
            op = await self._finish(op)

            for stage, status, progress in _EXTENSION_STEPS:
                self._update(stage, status, progress)
                await self._sleep(self._settings.extension_pacing)
                op = await self._client.extend_video(op, EXTENSION_INSTRUCTION, aspect_ratio)
                op = await self._finish(op)

            self._update(SequenceStage.FINALIZING, "Rendering the final video...", self._state.progress)
            if not op.video_uri:
                raise GenerationError(UNKNOWN, "The final operation did not return a video URI.")
            data = await self._fetcher.fetch(op.video_uri)
            self._state.video_path = str(self._artifacts.save("omnigen-video", data, "video/mp4"))
        except Exception as exc:
            logger.exception(f"Video sequence failed during {self._state.stage.value}")
            self._fail(classify_error(exc), str(exc))
            return self._state

        self._state.is_generating = False
        self._update(SequenceStage.DONE, "20-second production complete!", 100)
        return self._state

    async def _finish(self, op: RemoteOperation) -> RemoteOperation:
        op = await self._poller.wait(op)
        if op.error:
            raise GenerationError(classify_message(op.error), op.error)
        if not op.done:
            raise GenerationError(UNKNOWN, f"Operation {op.name} did not finish in time.")
        return op

    async def _narrate(self, script: str) -> Optional[Path]:
        # Narration is optional; the video must not fail because of it.
        try:
            pcm = await self._client.generate_voiceover(script)
            if not pcm:
                logger.warning("Voiceover returned no audio, continuing without it")
                return None
            return self._artifacts.save_pcm_as_wav("omnigen-voiceover", pcm)
        except Exception as exc:
            logger.warning(f"Voiceover failed, continuing without audio: {exc}")
            return None

    def _fail(self, kind: str, detail: str, issues: Optional[list] = None) -> None:
        if kind not in (QUOTA_EXCEEDED, INVALID_INPUT):
            kind = UNKNOWN
        self._state.is_generating = False
        self._state.failure = kind
        self._state.issues = list(issues if issues is not None else REMEDIATIONS[kind])
        logger.error(f"Sequence failed ({kind}): {detail}")
        self._update(SequenceStage.FAILED, ERROR_MESSAGES[kind], self._state.progress)

    def _update(self, stage: SequenceStage, status: str, progress: int) -> None:
        from_stage = self._state.stage
        self._state.stage = stage
        self._state.status = status
        self._state.progress = max(self._state.progress, progress)
        if from_stage != stage and self._on_state_change:
            self._on_state_change(from_stage, stage)
        if self._on_progress:
            self._on_progress(self._state)
