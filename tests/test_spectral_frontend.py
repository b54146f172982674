"""Tests for the spectral frontend: tables, framing, frame features and extraction."""

import logging
import tracemalloc

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from voiceprint import (
    FrameBatchProcessor,
    FrameSplitter,
    FrontendConfig,
    VoiceFeatureExtractor,
    VoiceProfile,
    build_spectral_tables,
    similarity,
)

SAMPLE_RATE = 16000
TABLES = build_spectral_tables()
EXTRACTOR = VoiceFeatureExtractor(TABLES)


def generate_sine(frequency, num_samples=SAMPLE_RATE, sr=SAMPLE_RATE, amplitude=0.5):
    """Generate a pure test tone."""
    t = np.arange(num_samples) / sr
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


class TestFrontendConfig:
    """Test FrontendConfig defaults and validation."""

    def test_defaults(self):
        """Test default frontend constants."""
        config = FrontendConfig()

        assert config.sample_rate == 16000
        assert config.frame_size == 512
        assert config.hop_size == 256
        assert config.num_mel_bands == 26
        assert config.num_mfccs == 13
        assert config.num_fft_bins == 257

    def test_frame_size_must_be_power_of_two(self):
        """Test that a non power-of-two frame size raises ValueError."""
        with pytest.raises(ValueError, match="frame_size must be a power of two"):
            FrontendConfig(frame_size=500)

    def test_hop_larger_than_frame(self):
        """Test that hop_size > frame_size raises ValueError."""
        with pytest.raises(ValueError, match="hop_size.*must not exceed frame_size"):
            FrontendConfig(frame_size=256, hop_size=512)

    def test_too_many_mfccs(self):
        """Test that more MFCCs than mel bands raises ValueError."""
        with pytest.raises(ValueError, match="num_mfccs.*must not exceed"):
            FrontendConfig(num_mfccs=30)

    def test_invalid_type(self):
        """Test that a float sample rate raises TypeError."""
        with pytest.raises(TypeError, match="sample_rate must be int"):
            FrontendConfig(sample_rate=16000.0)

    def test_non_positive_value(self):
        """Test that a non-positive hop size raises ValueError."""
        with pytest.raises(ValueError, match="hop_size must be positive"):
            FrontendConfig(hop_size=0)

    def test_invalid_pitch_range(self):
        """Test that an inverted pitch range raises ValueError."""
        with pytest.raises(ValueError, match="pitch range"):
            FrontendConfig(min_pitch_hz=500.0, max_pitch_hz=50.0)


class TestSpectralTables:
    """Test the precomputed window, mel filter bank and DCT basis."""

    def test_shapes(self):
        """Test table shapes for the default config."""
        assert TABLES.window.shape == (512,)
        assert TABLES.mel_filter_bank.shape == (26, 256)
        assert TABLES.dct_matrix.shape == (13, 26)
        assert TABLES.bin_frequencies.shape == (257,)

    def test_tables_are_read_only(self):
        """Test that the tables cannot be modified in place."""
        with pytest.raises(ValueError):
            TABLES.mel_filter_bank[0, 0] = 1.0

    def test_filters_have_unit_peak(self):
        """Test that every triangle peaks at exactly 1."""
        np.testing.assert_allclose(TABLES.mel_filter_bank.max(axis=1), 1.0)
        assert TABLES.mel_filter_bank.min() >= 0.0

    def test_filter_centers_increase(self):
        """Test that filter centers move up the spectrum."""
        centers = TABLES.mel_filter_bank.argmax(axis=1)
        assert np.all(np.diff(centers) > 0)

    def test_dct_basis(self):
        """Test DCT entries cos(pi * i * (j + 0.5) / 26)."""
        np.testing.assert_allclose(TABLES.dct_matrix[0], 1.0)
        expected = np.cos(np.pi * 3 * (5 + 0.5) / 26)
        assert TABLES.dct_matrix[3, 5] == pytest.approx(expected)

    def test_hamming_window(self):
        """Test the periodic Hamming window endpoints and center."""
        assert TABLES.window[0] == pytest.approx(0.08)
        assert TABLES.window[256] == pytest.approx(1.0)

    def test_alternate_config(self):
        """Test tables built for a non-default configuration."""
        tables = build_spectral_tables(
            FrontendConfig(frame_size=256, hop_size=128, num_mel_bands=20, num_mfccs=10)
        )

        assert tables.mel_filter_bank.shape == (20, 128)
        assert tables.dct_matrix.shape == (10, 20)


class TestFrameSplitter:
    """Test splitting sample buffers into frames."""

    def test_num_frames(self):
        """Test the number of complete frames."""
        splitter = FrameSplitter()

        assert splitter.num_frames(511) == 0
        assert splitter.num_frames(512) == 1
        assert splitter.num_frames(767) == 1
        assert splitter.num_frames(768) == 2
        assert splitter.num_frames(16000) == 61

    def test_frame_matrix_overlap(self):
        """Test that consecutive frames overlap by half a frame."""
        splitter = FrameSplitter()
        audio = np.arange(1024, dtype=np.float64)

        frames = splitter.frame_matrix(audio)

        assert frames.shape == (3, 512)
        np.testing.assert_array_equal(frames[1, :256], frames[0, 256:])
        assert frames[2, 0] == 512

    def test_frame_matrix_is_view(self):
        """Test that frames share memory with the audio and are read-only."""
        splitter = FrameSplitter()
        audio = np.arange(2048, dtype=np.float32)

        frames = splitter.frame_matrix(audio)

        assert np.shares_memory(frames, audio)
        assert frames.dtype == np.float32
        with pytest.raises(ValueError):
            frames[0, 0] = 1.0

    def test_frame_matrix_memory_on_long_audio(self):
        """Test that framing ten minutes of audio allocates almost nothing."""
        splitter = FrameSplitter()
        audio = np.zeros(SAMPLE_RATE * 600, dtype=np.float32)

        tracemalloc.start()
        try:
            frames = splitter.frame_matrix(audio)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert frames.shape == (37499, 512)
        assert peak < 1_000_000

    def test_split_copies_samples(self):
        """Test that Frame samples are independent float64 copies."""
        splitter = FrameSplitter()
        audio = np.zeros(1024, dtype=np.float32)

        frames = splitter.split(audio)
        frames[0].samples[0] = 1.0

        assert frames[0].samples.dtype == np.float64
        assert audio[0] == 0.0

    def test_short_audio(self):
        """Test that audio shorter than a frame yields no frames."""
        splitter = FrameSplitter()

        assert splitter.frame_matrix(np.zeros(100)).shape == (0, 512)
        assert splitter.split(np.zeros(100)) == []

    def test_split_metadata(self):
        """Test frame timing metadata."""
        splitter = FrameSplitter()
        frames = splitter.split(np.zeros(1024))

        assert [f.frame_index for f in frames] == [0, 1, 2]
        assert frames[1].start_sample == 256
        assert frames[2].start_time == pytest.approx(512 / 16000)

    def test_invalid_shape(self):
        """Test that 2-D audio raises ValueError."""
        splitter = FrameSplitter()

        with pytest.raises(ValueError, match="audio must be 1-dimensional"):
            splitter.frame_matrix(np.zeros((2, 1024)))

    def test_invalid_params(self):
        """Test splitter parameter validation."""
        with pytest.raises(ValueError, match="frame_size must be positive"):
            FrameSplitter(frame_size=0)
        with pytest.raises(ValueError, match="hop_size must be positive"):
            FrameSplitter(hop_size=0)
        with pytest.raises(ValueError, match="hop_size.*must not exceed"):
            FrameSplitter(frame_size=256, hop_size=300)


class TestFrameBatchProcessor:
    """Test per-frame feature computation."""

    def test_invalid_batch_size(self):
        """Test batch size validation."""
        with pytest.raises(TypeError, match="batch_size must be int"):
            FrameBatchProcessor(TABLES, batch_size=2.5)
        with pytest.raises(ValueError, match="batch_size must be positive"):
            FrameBatchProcessor(TABLES, batch_size=0)

    def test_invalid_frame_shape(self):
        """Test that frames of the wrong length raise ValueError."""
        processor = FrameBatchProcessor(TABLES)

        with pytest.raises(ValueError, match="frames must have shape"):
            processor.process_frames(np.zeros((2, 400)))

    def test_silent_frame(self):
        """Test features of an all-zero frame."""
        processor = FrameBatchProcessor(TABLES)

        features = processor.process_frames(np.zeros((1, 512)))

        assert features.energy[0] == 0.0
        assert features.pitch_hz[0] == 0.0
        assert features.spectral_centroid_hz[0] == 0.0
        assert features.zero_crossing_rate[0] == 0.0
        # log energies sit at the floor of -10 in every band
        assert features.mfcc[0, 0] == pytest.approx(-260.0)
        np.testing.assert_allclose(features.mfcc[0, 1:], 0.0, atol=1e-9)

    def test_zero_crossing_rate_alternating(self):
        """Test that an alternating signal crosses zero at every sample."""
        processor = FrameBatchProcessor(TABLES)
        frame = np.where(np.arange(512) % 2 == 0, 0.5, -0.5)

        features = processor.process_frames(frame[None, :])

        assert features.zero_crossing_rate[0] == pytest.approx(1.0)

    def test_energy_is_windowed_rms(self):
        """Test that energy is the RMS of the windowed frame."""
        processor = FrameBatchProcessor(TABLES)
        frame = np.full(512, 0.5)

        features = processor.process_frames(frame[None, :])

        expected = np.sqrt(np.mean((frame * TABLES.window) ** 2))
        assert features.energy[0] == pytest.approx(expected)

    def test_spectral_centroid_of_tone(self):
        """Test that the centroid of a pure tone sits near its frequency."""
        processor = FrameBatchProcessor(TABLES)
        frame = generate_sine(1000.0, num_samples=512)

        features = processor.process_frames(frame[None, :])

        assert abs(features.spectral_centroid_hz[0] - 1000.0) < 50.0

    @pytest.mark.parametrize("frequency", [200.0, 250.0, 320.0, 400.0])
    def test_pitch_of_tone(self, frequency):
        """Test autocorrelation pitch of a pure tone within 5%."""
        processor = FrameBatchProcessor(TABLES)
        frame = generate_sine(frequency, num_samples=512)

        features = processor.process_frames(frame[None, :])

        assert features.pitch_hz[0] == pytest.approx(frequency, rel=0.05)

    def test_batch_size_does_not_change_results(self):
        """Test that batching only changes grouping, not values."""
        frames = EXTRACTOR.splitter.frame_matrix(
            generate_sine(180.0) + 0.1 * generate_sine(2300.0)
        )

        single = FrameBatchProcessor(TABLES, batch_size=1).process_frames(frames)
        batched = FrameBatchProcessor(TABLES, batch_size=16).process_frames(frames)

        np.testing.assert_allclose(single.mfcc, batched.mfcc, atol=1e-9)
        np.testing.assert_allclose(single.pitch_hz, batched.pitch_hz)
        np.testing.assert_allclose(single.energy, batched.energy, atol=1e-12)

    def test_accepts_strided_float32_frames(self):
        """Test that a float32 frame view gives the same results as a float64 copy."""
        audio = generate_sine(180.0, num_samples=4096)
        view = EXTRACTOR.splitter.frame_matrix(audio)
        copied = np.array(view, dtype=np.float64)
        processor = FrameBatchProcessor(TABLES, batch_size=4)

        from_view = processor.process_frames(view)
        from_copy = processor.process_frames(copied)

        np.testing.assert_array_equal(from_view.mfcc, from_copy.mfcc)
        np.testing.assert_array_equal(from_view.pitch_hz, from_copy.pitch_hz)

    def test_to_features(self):
        """Test conversion into one SpectralFeatures per frame."""
        processor = FrameBatchProcessor(TABLES)
        frames = EXTRACTOR.splitter.frame_matrix(generate_sine(200.0, num_samples=1600))

        batch = processor.process_frames(frames)
        features = batch.to_features()

        assert len(features) == len(batch) == frames.shape[0]
        assert features[0].mfcc.shape == (13,)
        assert features[2].pitch_hz == batch.pitch_hz[2]


class TestVoiceFeatureExtractor:
    """Test profile extraction from sample buffers."""

    @settings(max_examples=25, deadline=None)
    @given(st.integers(min_value=0, max_value=511))
    def test_short_audio_returns_empty_profile(self, length):
        """Test that fewer samples than one frame yield the empty profile."""
        samples = np.random.default_rng(length).uniform(-1, 1, length)

        profile = EXTRACTOR.extract_features(samples)

        assert profile.is_empty
        np.testing.assert_array_equal(profile.to_vector(), np.zeros(32))

    def test_pitch_of_sine(self):
        """Test pitch mean of a sine wave within 5%."""
        profile = EXTRACTOR.extract_features(generate_sine(200.0))

        assert profile.pitch_mean == pytest.approx(200.0, rel=0.05)
        assert profile.pitch_variance < 10.0

    @pytest.mark.parametrize("frequency", [100.0, 120.0, 150.0, 180.0, 450.0, 490.0])
    def test_pitch_across_range(self, frequency):
        """Test pitch mean within 5% from 100 Hz to the top of the range."""
        profile = EXTRACTOR.extract_features(generate_sine(frequency))

        assert profile.pitch_mean == pytest.approx(frequency, rel=0.05)

    @pytest.mark.parametrize("frequency", [60.0, 80.0])
    def test_low_tone_resolves_to_shortest_lag(self, frequency):
        """Test that tones below ~90 Hz pick the shortest searched lag (500 Hz).

        The windowed autocorrelation still falls from lag 0 at the shortest
        searched lag and is larger there than at the tone's period.
        """
        profile = EXTRACTOR.extract_features(generate_sine(frequency))

        assert profile.pitch_mean == pytest.approx(500.0)

    def test_single_frame_has_zero_variance(self):
        """Test that one frame gives zero variances."""
        profile = EXTRACTOR.extract_features(generate_sine(200.0, num_samples=512))

        np.testing.assert_array_equal(profile.mfcc_variance, 0.0)
        assert profile.energy_variance == 0.0
        assert profile.pitch_variance == 0.0

    def test_silence_has_no_pitch(self):
        """Test that silence keeps pitch and energy at zero."""
        profile = EXTRACTOR.extract_features(np.zeros(SAMPLE_RATE, dtype=np.float32))

        assert profile.pitch_mean == 0.0
        assert profile.pitch_variance == 0.0
        assert profile.energy_mean == 0.0
        assert not profile.is_empty

    def test_self_similarity(self):
        """Test that a profile is fully similar to itself."""
        profile = EXTRACTOR.extract_features(generate_sine(150.0) + 0.2 * generate_sine(900.0))

        assert similarity(profile, profile) == pytest.approx(1.0)

    def test_profile_is_immutable(self):
        """Test that extracted profiles cannot be modified."""
        profile = EXTRACTOR.extract_features(generate_sine(200.0))

        with pytest.raises(ValueError):
            profile.mfcc_mean[0] = 0.0
        with pytest.raises(AttributeError):
            profile.pitch_mean = 1.0

    def test_extract_with_info(self):
        """Test extraction metadata."""
        profile, info = EXTRACTOR.extract_with_info(generate_sine(200.0))

        assert isinstance(profile, VoiceProfile)
        assert info.duration == pytest.approx(1.0)
        assert info.num_frames == 61
        assert info.voiced_frames == 61
        assert info.batch_size == 64
        assert info.processing_time >= 0.0

    def test_memory_bounded_by_batch(self):
        """Test that extracting two minutes of audio never copies all frames."""
        audio = generate_sine(200.0, num_samples=SAMPLE_RATE * 120)

        tracemalloc.start()
        try:
            profile, info = EXTRACTOR.extract_with_info(audio)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()

        assert info.num_frames == 7499
        # a float64 copy of every frame would take about 30 MB
        assert peak < 15_000_000
        assert profile.pitch_mean == pytest.approx(200.0, rel=0.05)

    def test_warns_on_short_audio(self, caplog):
        """Test that too-short audio is logged as a warning."""
        with caplog.at_level(logging.WARNING):
            EXTRACTOR.extract_features(np.zeros(100, dtype=np.float32))

        assert "Not enough samples for feature extraction" in caplog.text

    def test_warns_on_silence(self, caplog):
        """Test that near-silent audio is logged as a warning."""
        with caplog.at_level(logging.WARNING):
            EXTRACTOR.extract_features(np.zeros(SAMPLE_RATE, dtype=np.float32))

        assert "Audio appears to be silence" in caplog.text

    def test_sample_rate_mismatch(self):
        """Test that a different sample rate raises ValueError."""
        with pytest.raises(ValueError, match="sample_rate must be 16000 Hz"):
            EXTRACTOR.extract_features(generate_sine(200.0), sample_rate=44100)

    def test_invalid_shape(self):
        """Test that 2-D samples raise ValueError."""
        with pytest.raises(ValueError, match="samples must be 1-dimensional"):
            EXTRACTOR.extract_features(np.zeros((2, 1000)))

    def test_accepts_lists(self):
        """Test that plain sequences are converted."""
        profile = EXTRACTOR.extract_features(list(generate_sine(200.0, num_samples=1600)))

        assert profile.pitch_mean == pytest.approx(200.0, rel=0.05)
