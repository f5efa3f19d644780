import logging
import os
import wave
from dataclasses import dataclass


logger = logging.getLogger(__name__)


@dataclass
class WaveFileAudioInput:
    """PCM audio read from a WAV file, handed to the recognizer as one block."""
    path: str
    frames: bytes
    sample_rate: int
    channels: int
    sample_width: int
    closed: bool = False

    @property
    def duration_s(self) -> float:
        bytes_per_second = self.sample_rate * self.channels * self.sample_width
        if bytes_per_second == 0:
            return 0.0
        return len(self.frames) / bytes_per_second

    def read(self) -> bytes:
        if self.closed:
            raise ValueError(f"Audio input {self.path} is closed")
        return self.frames

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.frames = b""
        logger.debug(f"Audio input {self.path} closed")


class AudioConfig:
    """Factory for audio inputs."""

    @staticmethod
    def from_wav_file_input(path: str) -> WaveFileAudioInput:
        """
        Load a PCM WAV file.

        Raises:
            FileNotFoundError: when the file does not exist
            ValueError: when the file is not 16-bit PCM
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Audio bestand niet gevonden: {path}")

        try:
            with wave.open(path, "rb") as wav_file:
                sample_width = wav_file.getsampwidth()
                channels = wav_file.getnchannels()
                sample_rate = wav_file.getframerate()
                frames = wav_file.readframes(wav_file.getnframes())
        except wave.Error as e:
            raise ValueError(f"Not a PCM WAV file: {path} ({e})") from e

        if sample_width != 2:
            raise ValueError(f"Expected 16-bit PCM audio, got {sample_width * 8}-bit: {path}")

        logger.info(f"Loaded {path}: {len(frames)} bytes, {sample_rate}Hz, {channels} channel(s)")
        return WaveFileAudioInput(
            path=path,
            frames=frames,
            sample_rate=sample_rate,
            channels=channels,
            sample_width=sample_width,
        )
