"""
Providers module: AI and speech service adapters behind one gateway.
"""

from spoken_interview.providers.base import (
    AllProvidersExhausted,
    CallOutcome,
    Capability,
    EvaluationResult,
    ProviderCall,
    ProviderError,
    ProviderFailure,
    ProviderTimeout,
    QuestionsResult,
    ResultKind,
    SpeechProvider,
    SpeechResult,
    TextProvider,
    TextResult,
)
from spoken_interview.providers.gateway import ProviderGateway
from spoken_interview.providers.llm_providers import GeminiProvider, OpenRouterProvider
from spoken_interview.providers.speech import (
    AudioSink,
    FileAudioSink,
    GatewaySpeaker,
    SarvamProvider,
    Speaker,
    TextSpeaker,
)

__all__ = [
    "AllProvidersExhausted",
    "AudioSink",
    "CallOutcome",
    "Capability",
    "EvaluationResult",
    "FileAudioSink",
    "GatewaySpeaker",
    "GeminiProvider",
    "OpenRouterProvider",
    "ProviderCall",
    "ProviderError",
    "ProviderFailure",
    "ProviderGateway",
    "ProviderTimeout",
    "QuestionsResult",
    "ResultKind",
    "SarvamProvider",
    "Speaker",
    "SpeechProvider",
    "SpeechResult",
    "TextProvider",
    "TextResult",
]
