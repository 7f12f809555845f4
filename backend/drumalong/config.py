from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Audio files are downmixed and resampled to this rate before detection
    target_sample_rate: int = 22050
    default_detector: Literal["rms", "flux"] = "rms"

    # RMS-energy detector
    rms_frame_size: int = 512
    rms_hop_size: int = 256
    rms_history_size: int = 50
    rms_threshold_ratio: float = 1.5
    rms_threshold_offset: float = 0.01
    rms_rise_ratio: float = 1.2

    # Spectral-flux detector
    flux_frame_size: int = 1024
    flux_hop_size: int = 512
    flux_history_size: int = 20
    flux_median_weight: float = 1.5
    flux_mean_weight: float = 0.5

    min_onset_gap: float = 0.05  # seconds

    # Tempo estimation
    default_bpm: int = 120
    min_bpm: float = 60.0
    max_bpm: float = 180.0
    min_ioi: float = 0.05  # seconds
    max_ioi: float = 2.0

    default_midi_tempo: int = 500000  # microseconds per quarter note (120 BPM)

    log_level: str = "INFO"

    model_config = {"env_prefix": "DRUMALONG_", "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
