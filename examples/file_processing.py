"""
File processing example - replay a recording through a session
"""
import argparse

from vad_segmenter.audio_sources import FileSource
from vad_segmenter.config import Settings, setup_logging
from vad_segmenter.core import SessionController
from vad_segmenter.handlers import ClipHandler


def process_audio_file(file_path: str, output_dir: str = None):
    """
    Segment an audio file into clips

    Ticks are driven by hand on a simulated clock, so the file is processed
    as fast as it can be read rather than in real time.
    """
    settings = Settings()
    interval = settings.segmenter.frame_interval_ms

    source = FileSource(
        file_path,
        frame_interval_ms=interval,
        target_sample_rate=settings.audio.sample_rate,
        fft_size=settings.audio.fft_size,
        smoothing=settings.audio.analyser_smoothing
    )

    now_ms = 0.0
    controller = SessionController.from_settings(
        source, settings, clock=lambda: now_ms, auto_tick=False
    )
    handler = ClipHandler(output_dir=output_dir).attach(controller)
    results = []
    handler.add_processor(results.append)

    if not controller.start():
        raise SystemExit(f"Cannot open {file_path}")

    print(f"Processing: {file_path} ({source.duration_seconds:.2f}s)")
    print("=" * 50)

    while not source.exhausted:
        now_ms += interval
        controller.tick(now_ms)

    controller.stop()

    for handled in results:
        clip = handled.clip
        print(f"  Clip {clip.sequence}: {clip.duration_ms:.0f}ms, {clip.size_kb:.1f}KB"
              + (f" -> {handled.saved_path}" if handled.saved_path else ""))

    print("=" * 50)
    print(f"Total clips: {handler.clip_count}")
    return results


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Segment an audio file into WAV clips")
    parser.add_argument("file", help="Path to audio file")
    parser.add_argument("-o", "--output", help="Output directory for clips")
    parser.add_argument("--log-level", default="WARNING")

    args = parser.parse_args()
    setup_logging(level=args.log_level, json_format=False)

    process_audio_file(args.file, args.output)
