"""Basic usage example for lingosub.

This example demonstrates:
1. Generating subtitles with a local OpenAI-compatible ASR server
2. Watching results arrive while the job runs
3. VAD segmentation and test mode
4. Saving the result as SRT / VTT
"""

import logging
import sys

from lingosub import (
    JobState,
    RemoteASRBackend,
    RemoteASRConfig,
    SegmentationMethod,
    SubtitleGenerator,
    VADSettings,
    find_sidecar_subtitles,
    load_subtitle_file,
    save_subtitle_file,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s: %(message)s")

media_path = sys.argv[1] if len(sys.argv) > 1 else "movie.mp4"  # Your media file here

# =============================================================================
# Example 1: Reuse existing subtitles if the video already has them
# =============================================================================
print("=" * 70)
print("Example 1: Sidecar subtitles")
print("=" * 70)

sidecar = find_sidecar_subtitles(media_path)
if sidecar:
    segments = load_subtitle_file(sidecar)
    print(f"Found {sidecar} with {len(segments)} segment(s)")
else:
    print("No sidecar subtitles found")

# =============================================================================
# Example 2: Progressive generation with a remote ASR server
# =============================================================================
print("\n" + "=" * 70)
print("Example 2: Progressive generation")
print("=" * 70)

# Any server implementing POST /v1/audio/transcriptions works, e.g.
# whisper.cpp's server started with --port 8080
backend = RemoteASRBackend(RemoteASRConfig(timeout=300))
if not backend.check_connection():
    print(f"ASR server at {backend.config.endpoint} is not reachable")


def on_progress(segments):
    last = segments[-1] if segments else None
    if last is not None:
        print(f"  {len(segments):4d} segment(s), latest [{last.start:7.2f}s] {last.text}")


generator = SubtitleGenerator()

try:
    job = generator.start(
        media_path,
        backend,
        segmentation=SegmentationMethod.FIXED,
        on_progress=on_progress,
        on_status=lambda message: print(f"  status: {message}"),
    )
    segments = job.result()

    print(f"\nAudio duration: {job.info.duration:.2f}s")
    print(f"Processing time: {job.info.processing_time:.2f}s")
    print(f"Processed in {job.info.num_chunks} chunk(s)")
    print(f"Final state: {job.info.state.value}")

    if job.state is JobState.DONE and segments:
        save_subtitle_file(segments, "output.srt")
        save_subtitle_file(segments, "output.vtt")
        print("Saved output.srt and output.vtt")

except FileNotFoundError:
    print(f"Media file '{media_path}' not found. Please provide a valid file.")
except Exception as e:
    print(f"Error during generation: {e}")

# =============================================================================
# Example 3: Tuning VAD on the last two minutes only
# =============================================================================
print("\n" + "=" * 70)
print("Example 3: VAD test mode")
print("=" * 70)

debug_generator = SubtitleGenerator(debug_dir="vad_debug")
vad_settings = VADSettings(batch_size=120, min_silence=0.5, silence_threshold=0.015)

try:
    job = debug_generator.start(
        media_path,
        backend,
        segmentation=SegmentationMethod.VAD,
        vad_settings=vad_settings,
        test_mode=True,
    )
    for segment in job.result():
        print(f"[{segment.start:7.2f}s - {segment.end:7.2f}s] {segment.text}")
    if job.info.debug_archive:
        print(f"Chunk audio saved to {job.info.debug_archive}")
except FileNotFoundError:
    print(f"Media file '{media_path}' not found.")
except Exception as e:
    print(f"Error during generation: {e}")

backend.close()
