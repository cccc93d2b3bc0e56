"""Tests for chunk window generation."""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lingosub.chunker import (
    AudioChunker,
    FixedChunkCursor,
    SubWindowChunker,
    VADChunkCursor,
    apply_vocal_filter,
    calculate_rms,
    scan_for_split_points,
)
from lingosub.config import VADSettings
from lingosub.data_models import SegmentationMethod

SR = 16000


def generate_tone(duration, sr=SR, freq=440.0, amplitude=0.5):
    """Generate a sine tone."""
    t = np.arange(int(sr * duration)) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def generate_silence(duration, sr=SR):
    """Generate digital silence."""
    return np.zeros(int(sr * duration), dtype=np.float32)


def generate_noise(duration, sr=SR, seed=0):
    """Generate loud noise with no silent stretches."""
    rng = np.random.default_rng(seed)
    return rng.uniform(-0.8, 0.8, int(sr * duration)).astype(np.float32)


def assert_contiguous(windows, num_samples):
    """Windows must tile [0, num_samples) without gaps or overlaps."""
    assert windows[0].start_sample == 0
    assert windows[-1].end_sample == num_samples
    for prev, cur in zip(windows, windows[1:]):
        assert cur.start_sample == prev.end_sample
    assert [w.index for w in windows] == list(range(len(windows)))


class TestFixedSchedule:
    """Test the progressive fixed chunk schedule."""

    def test_200_second_file(self):
        """Test chunk ends at 20, 60, 180 and 200 seconds."""
        windows = list(FixedChunkCursor(200 * SR, SR))

        assert [w.end_time(SR) for w in windows] == [20.0, 60.0, 180.0, 200.0]
        assert [w.start_time(SR) for w in windows] == [0.0, 20.0, 60.0, 180.0]

    def test_long_file_uses_180_second_stride(self):
        """Test chunks after the schedule are 180 seconds long."""
        windows = list(FixedChunkCursor(600 * SR, SR))

        ends = [w.end_time(SR) for w in windows]
        assert ends == [20.0, 60.0, 180.0, 360.0, 540.0, 600.0]

    def test_short_file_single_chunk(self):
        """Test audio shorter than the first chunk yields one window."""
        windows = list(FixedChunkCursor(5 * SR, SR))

        assert len(windows) == 1
        assert windows[0].start_sample == 0
        assert windows[0].end_sample == 5 * SR

    def test_empty_signal(self):
        """Test empty audio yields no windows."""
        assert list(FixedChunkCursor(0, SR)) == []

    def test_limit_seconds(self):
        """Test no window starts at or after the limit."""
        windows = list(FixedChunkCursor(200 * SR, SR, limit_seconds=30))

        assert [w.end_time(SR) for w in windows] == [20.0, 60.0]

    @given(num_samples=st.integers(min_value=1, max_value=2000 * SR))
    @settings(max_examples=50, deadline=None)
    def test_windows_cover_signal(self, num_samples):
        """Property: fixed windows tile the whole signal."""
        windows = list(FixedChunkCursor(num_samples, SR))

        assert_contiguous(windows, num_samples)


class TestVocalFilter:
    """Test the RC band-pass filter used before silence scanning."""

    def test_blockwise_matches_single_pass(self):
        """Test carrying filter state across blocks gives the one-pass result."""
        audio = generate_noise(2.0)

        whole, _ = apply_vocal_filter(audio, SR)
        first, state = apply_vocal_filter(audio[:12345], SR)
        second, _ = apply_vocal_filter(audio[12345:], SR, state)

        np.testing.assert_allclose(
            np.concatenate([first, second]), whole, atol=1e-5
        )

    def test_removes_dc_offset(self):
        """Test a constant offset decays to near zero."""
        audio = np.full(SR * 2, 0.5, dtype=np.float32)

        filtered, _ = apply_vocal_filter(audio, SR)

        assert calculate_rms(filtered[-SR // 2:]) < 0.01

    def test_output_dtype(self):
        """Test filter output is float32."""
        filtered, _ = apply_vocal_filter(generate_tone(0.5), SR)

        assert filtered.dtype == np.float32


class TestSplitPointScan:
    """Test silence detection on a buffer."""

    def test_rms(self):
        """Test RMS of a constant block and of an empty block."""
        assert calculate_rms(np.full(100, 0.5)) == pytest.approx(0.5)
        assert calculate_rms(np.zeros(0)) == 0.0

    def test_split_in_middle_of_silence(self):
        """Test split point lands at the midpoint of the silent run."""
        audio = np.concatenate(
            [generate_tone(2.0), generate_silence(1.0), generate_tone(2.0)]
        )

        points = scan_for_split_points(audio, SR, min_silence=0.4, threshold=0.02)

        assert points == [int(2.5 * SR)]

    def test_short_silence_ignored(self):
        """Test silence shorter than min_silence produces no split."""
        audio = np.concatenate(
            [generate_tone(1.0), generate_silence(0.2), generate_tone(1.0)]
        )

        assert scan_for_split_points(audio, SR, 0.4, 0.02) == []

    def test_trailing_silence_counts(self):
        """Test a silent run reaching the end of the buffer still splits."""
        audio = np.concatenate([generate_tone(1.0), generate_silence(1.0)])

        assert scan_for_split_points(audio, SR, 0.4, 0.02) == [int(1.5 * SR)]

    def test_empty_buffer(self):
        """Test empty input yields no split points."""
        assert scan_for_split_points(np.zeros(0, dtype=np.float32), SR, 0.4, 0.02) == []


class TestVADCursor:
    """Test silence-based chunk windows."""

    def test_splits_on_silence(self):
        """Test one silence gives two chunks meeting in the silence."""
        audio = np.concatenate(
            [generate_tone(2.0), generate_silence(1.0), generate_tone(2.0)]
        )
        settings_ = VADSettings(filtering_enabled=False)

        windows = list(VADChunkCursor(audio, settings_, SR))

        assert len(windows) == 2
        assert windows[0].end_sample == int(2.5 * SR)
        assert_contiguous(windows, len(audio))

    def test_splits_on_silence_with_filter(self):
        """Test the filtered signal still splits inside the silence."""
        audio = np.concatenate(
            [generate_tone(2.0), generate_silence(1.0), generate_tone(2.0)]
        )

        windows = list(VADChunkCursor(audio, VADSettings(), SR))

        assert len(windows) == 2
        assert 2.0 * SR < windows[0].end_sample < 3.0 * SR
        assert_contiguous(windows, len(audio))

    def test_short_piece_joins_next_chunk(self):
        """Test a piece of 0.2s or less is not emitted on its own."""
        audio = np.concatenate([generate_silence(0.3), generate_tone(2.0)])
        settings_ = VADSettings(min_silence=0.2, filtering_enabled=False)

        windows = list(VADChunkCursor(audio, settings_, SR))

        assert len(windows) == 1
        assert_contiguous(windows, len(audio))

    def test_no_silence_flushes_after_three_batches(self):
        """Test leftover longer than three batches becomes its own chunk."""
        audio = generate_noise(10.0)
        settings_ = VADSettings(batch_size=1, filtering_enabled=False)

        windows = list(VADChunkCursor(audio, settings_, SR))

        assert [w.end_time(SR) for w in windows] == [4.0, 8.0, 10.0]

    def test_limit_seconds(self):
        """Test analysis stops once the limit is reached."""
        audio = generate_noise(10.0)
        settings_ = VADSettings(batch_size=1, filtering_enabled=False)

        windows = list(VADChunkCursor(audio, settings_, SR, limit_seconds=3))

        assert len(windows) == 1
        assert windows[0].end_time(SR) == 3.0

    def test_empty_signal(self):
        """Test empty audio yields no windows."""
        audio = np.zeros(0, dtype=np.float32)

        assert list(VADChunkCursor(audio, VADSettings(), SR)) == []

    def test_batch_shorter_than_one_sample(self):
        """Test a batch size below one sample is rejected."""
        with pytest.raises(ValueError, match="shorter than one sample"):
            VADChunkCursor(generate_tone(1.0), VADSettings(batch_size=1e-6), SR)

    @given(
        duration=st.floats(min_value=0.5, max_value=30.0),
        batch_size=st.floats(min_value=0.5, max_value=5.0),
        seed=st.integers(min_value=0, max_value=1000),
    )
    @settings(max_examples=30, deadline=None)
    def test_bounded_leftover_and_coverage(self, duration, batch_size, seed):
        """Property: retained leftover never exceeds three batches and windows tile the signal."""
        sr = 1000
        rng = np.random.default_rng(seed)
        audio = rng.uniform(-0.8, 0.8, int(duration * sr)).astype(np.float32)
        # Sprinkle a few silences so both split and flush paths run
        for start in rng.integers(0, len(audio), size=3):
            audio[start:start + sr // 2] = 0.0
        settings_ = VADSettings(batch_size=batch_size, filtering_enabled=False)

        cursor = VADChunkCursor(audio, settings_, sr)
        windows = []
        for window in cursor:
            assert cursor.buffered_samples <= cursor.max_leftover_samples
            windows.append(window)

        assert_contiguous(windows, len(audio))


class TestAudioChunker:
    """Test the chunker facade."""

    def test_invalid_method(self):
        """Test unknown segmentation method raises ValueError."""
        with pytest.raises(ValueError, match="method must be 'fixed' or 'vad'"):
            AudioChunker(method="energy")

    def test_method_from_string(self):
        """Test string method names are accepted."""
        assert AudioChunker(method="vad").method is SegmentationMethod.VAD

    def test_fresh_cursor_per_call(self):
        """Test every call restarts the chunk sequence."""
        chunker = AudioChunker()
        audio = generate_silence(30.0)

        first = list(chunker.windows(audio))
        second = list(chunker.windows(audio))

        assert first == second
        assert first[0].index == 0

    def test_rejects_multichannel(self):
        """Test 2D audio raises ValueError."""
        with pytest.raises(ValueError, match="must be 1-dimensional"):
            AudioChunker().windows(np.zeros((2, 100), dtype=np.float32))

    def test_last_batch_window(self):
        """Test test-mode window covers the final batch_size seconds."""
        chunker = AudioChunker(vad_settings=VADSettings(batch_size=120))

        window = chunker.last_batch_window(200 * SR)

        assert window.start_time(SR) == 80.0
        assert window.end_time(SR) == 200.0

    def test_last_batch_window_short_audio(self):
        """Test audio shorter than one batch is processed whole."""
        chunker = AudioChunker()

        window = chunker.last_batch_window(10 * SR)

        assert window.start_sample == 0
        assert chunker.last_batch_window(0) is None


class TestSubWindowChunker:
    """Test model-sized sub-windows."""

    def test_split_relative_times(self):
        """Test 60s audio gives 25s, 25s and 10s windows."""
        chunker = SubWindowChunker(window_length=25.0)
        audio = generate_tone(60.0)

        pieces = chunker.split(audio)

        assert [(p.start_time, p.end_time) for p in pieces] == [
            (0.0, 25.0), (25.0, 50.0), (50.0, 60.0)
        ]
        assert [p.chunk_index for p in pieces] == [0, 1, 2]

    def test_split_with_overlap(self):
        """Test overlapping windows advance by window_length - overlap."""
        chunker = SubWindowChunker(window_length=10.0, overlap=2.0)

        pieces = chunker.split(generate_tone(20.0))

        assert [p.start_time for p in pieces] == [0.0, 8.0, 16.0]

    def test_split_empty(self):
        """Test empty audio gives no windows."""
        assert SubWindowChunker().split(np.zeros(0, dtype=np.float32)) == []

    def test_invalid_overlap(self):
        """Test overlap must be shorter than the window."""
        with pytest.raises(ValueError, match="must be less than window_length"):
            SubWindowChunker(window_length=5.0, overlap=5.0)

    def test_pieces_are_views(self):
        """Test sub-windows share memory with the input."""
        audio = generate_tone(30.0)

        pieces = SubWindowChunker(window_length=25.0).split(audio)

        assert np.shares_memory(pieces[0].audio, audio)
