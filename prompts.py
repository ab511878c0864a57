"""Prompt text sent to the provider."""

from __future__ import annotations

from models import VideoProConfig

EXTENSION_INSTRUCTION = (
    "Maintain smooth motion, keep the object anchoring unchanged and keep stability very high."
)

VOICEOVER_INSTRUCTION = "Read the following text with a professional, expressive male voice: "

LIVE_SYSTEM_INSTRUCTION = (
    "You are OmniGen, a helpful and high-performance AI voice assistant. "
    "Speak naturally, concisely, and keep the user engaged."
)

DEFAULT_ANALYSIS_PROMPT = (
    "Explain what is happening in this media in detail. "
    "Identify key objects, actions, and the overall mood."
)

_TRANSITIONS = {
    "orbit": "Camera: Slow 180-degree orbit movement around the main subject. ",
    "zoom-in": "Camera: Macro close-up slowly pulling back to reveal the environment. ",
}


def build_automation_prompt(user_prompt: str, pro: VideoProConfig | None = None) -> str:
    pro = pro or VideoProConfig()
    text = (
        "Auto-animate mode: Generate a high-fidelity 4K vertical video for TikTok. "
        f"{user_prompt}. "
    )

    if pro.lock_object != "none":
        text += (
            "The object from the reference image is PERMANENTLY ANCHORED and tracked to "
            f"the subject's {pro.lock_object}. "
        )
        if pro.hard_adherence:
            text += "Use HARD ADHERENCE to preserve 100% design details. "

    if pro.object_tracking:
        text += "Subject and accessories move with fluid, realistic human motion. No jitter or pixel swimming. "

    text += _TRANSITIONS.get(pro.transition, "")

    text += (
        f"Temporal consistency: {pro.temporal_consistency.capitalize()}. "
        f"Motion bucket: {pro.motion_bucket}. Cinematic studio lighting. "
        "High frame rate feel. Keep subject in center Safe Zone."
    )
    return text
