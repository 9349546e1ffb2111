"""
Audio Recognition Module for SongSleuth

Identifies a song from a live microphone feed by fusing acoustic fingerprint
matching (AudD) with transcription (AssemblyAI) and lyrics search (Genius).
"""

from .capture import MicrophoneCapture, AudioChunk
from .models import RecognitionResult, RecognitionSource, Candidate, HistoryEntry, EngineState
from .aggregator import CandidateAggregator
from .pipeline import ChunkPipeline, ChunkReport
from .engine import RecognitionEngine

__all__ = [
    'MicrophoneCapture',
    'AudioChunk',
    'RecognitionResult',
    'RecognitionSource',
    'Candidate',
    'HistoryEntry',
    'EngineState',
    'CandidateAggregator',
    'ChunkPipeline',
    'ChunkReport',
    'RecognitionEngine',
]
