"""Tests for audio decoding, WAV encoding and the debug archive."""

import io
import zipfile
from unittest import mock

import ffmpeg
import numpy as np
import pytest
import soundfile as sf

from lingosub.audio import encode_wav, load_audio
from lingosub.data_models import AudioChunk
from lingosub.debug_archive import DebugArchive, chunk_filename
from lingosub.exceptions import DecodeError

SR = 16000


def make_chunk(index, start, duration=0.5):
    audio = np.full(int(SR * duration), 0.25, dtype=np.float32)
    return AudioChunk(audio, start, start + duration, index)


class TestLoadAudio:
    """Test ffmpeg decoding with the ffmpeg call mocked out."""

    def test_missing_file(self, tmp_path):
        """Test a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="not found"):
            load_audio(str(tmp_path / "missing.mp4"))

    def test_decodes_pcm(self, tmp_path):
        """Test raw float32 output becomes the sample array."""
        media = tmp_path / "movie.mp4"
        media.write_bytes(b"\x00")
        pcm = np.linspace(-1, 1, 1600, dtype=np.float32)

        with mock.patch("lingosub.audio.ffmpeg.input") as ffmpeg_input:
            ffmpeg_input.return_value.output.return_value.run.return_value = (
                pcm.tobytes(), b""
            )
            samples = load_audio(str(media))

        np.testing.assert_array_equal(samples, pcm)
        output_kwargs = ffmpeg_input.return_value.output.call_args[1]
        assert output_kwargs["ac"] == 1
        assert output_kwargs["ar"] == SR
        assert output_kwargs["format"] == "f32le"

    def test_ffmpeg_error(self, tmp_path):
        """Test ffmpeg failures surface as DecodeError."""
        media = tmp_path / "broken.mp4"
        media.write_bytes(b"\x00")

        with mock.patch("lingosub.audio.ffmpeg.input") as ffmpeg_input:
            ffmpeg_input.return_value.output.return_value.run.side_effect = ffmpeg.Error(
                "ffmpeg", b"", b"Invalid data found when processing input"
            )
            with pytest.raises(DecodeError, match="Invalid data found"):
                load_audio(str(media))

    def test_no_audio_stream(self, tmp_path):
        """Test empty decoder output raises DecodeError."""
        media = tmp_path / "silent.mp4"
        media.write_bytes(b"\x00")

        with mock.patch("lingosub.audio.ffmpeg.input") as ffmpeg_input:
            ffmpeg_input.return_value.output.return_value.run.return_value = (b"", b"")
            with pytest.raises(DecodeError, match="No audio samples"):
                load_audio(str(media))


class TestEncodeWav:
    """Test WAV encoding of chunks."""

    def test_roundtrip(self):
        """Test encoded bytes decode to the same 16 kHz mono signal."""
        samples = np.linspace(-0.5, 0.5, SR, dtype=np.float32)

        data, sr = sf.read(io.BytesIO(encode_wav(samples, SR)), dtype="float32")

        assert sr == SR
        assert data.shape == (SR,)
        np.testing.assert_allclose(data, samples, atol=1e-4)

    def test_clips_out_of_range(self):
        """Test samples outside [-1, 1] are clipped, not wrapped."""
        samples = np.array([2.0, -2.0], dtype=np.float32)

        data, _ = sf.read(io.BytesIO(encode_wav(samples, SR)), dtype="float32")

        assert data[0] > 0.99
        assert data[1] < -0.99

    def test_chunk_to_wav(self):
        """Test AudioChunk.to_wav produces a RIFF file."""
        assert make_chunk(0, 0.0).to_wav()[:4] == b"RIFF"


class TestDebugArchive:
    """Test the test-mode chunk archive."""

    def test_filename(self):
        """Test chunk file naming."""
        assert chunk_filename(make_chunk(7, 12.5)) == "chunk_007_12.50s-13.00s.wav"

    def test_keeps_last_two(self, tmp_path):
        """Test only the two most recent chunks are archived."""
        archive = DebugArchive()
        for i in range(3):
            archive.add(make_chunk(i, float(i)))

        path = archive.save(str(tmp_path))

        assert len(archive) == 2
        with zipfile.ZipFile(path) as z:
            assert z.namelist() == [
                "chunk_001_1.00s-1.50s.wav",
                "chunk_002_2.00s-2.50s.wav",
            ]

    def test_invalid_size(self):
        """Test max_chunks must be positive."""
        with pytest.raises(ValueError, match="max_chunks must be positive"):
            DebugArchive(max_chunks=0)
