"""Recording: raw page events in, ordered Steps out."""

from webflow.recorder.capture import attach_recorder
from webflow.recorder.recorder import InteractionRecorder
from webflow.recorder.selectors import ElementSnapshot, SelectorSynthesizer

__all__ = ["ElementSnapshot", "InteractionRecorder", "SelectorSynthesizer", "attach_recorder"]
