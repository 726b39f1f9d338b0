"""
Real-time microphone segmentation example
"""
import argparse
import signal
import threading

from vad_segmenter.audio_sources.microphone_source import MicrophoneSource
from vad_segmenter.config import Settings, setup_logging
from vad_segmenter.core import Clip, SessionController
from vad_segmenter.handlers import ClipHandler


def main():
    parser = argparse.ArgumentParser(description="Segment live microphone audio into WAV clips")
    parser.add_argument("-o", "--output", help="Directory to save clips in")
    parser.add_argument("-d", "--device", type=int, default=None, help="Input device index")
    parser.add_argument("--list-devices", action="store_true", help="List audio devices and exit")
    args = parser.parse_args()

    if args.list_devices:
        print(MicrophoneSource.list_devices())
        return

    settings = Settings()
    setup_logging(level=settings.log_level, json_format=settings.log_json, log_dir=settings.log_dir)

    source = MicrophoneSource.from_settings(settings.audio, device=args.device)
    controller = SessionController.from_settings(source, settings)
    ClipHandler(output_dir=args.output or settings.clip_output_dir).attach(controller)

    def on_clip(clip: Clip):
        print(f"✓ clip #{clip.sequence}: {clip.duration_ms:.0f}ms, {clip.size_kb:.1f}KB")

    controller.on_speech_start(lambda: print("🎤 speech started"))
    controller.on_speech_end(lambda duration_ms: print(f"🔇 speech ended after {duration_ms:.0f}ms"))
    controller.on_clip_ready(on_clip)
    controller.on_error(lambda kind: print(f"✗ {kind} error"))

    if not controller.start():
        raise SystemExit(1)

    done = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: done.set())

    print("Speak into your microphone... press Ctrl+C to stop\n")
    done.wait()

    controller.stop()

    metrics = controller.get_metrics()
    print("\n" + "=" * 50)
    print(f"Clips emitted:        {metrics['clips_emitted']}")
    print(f"Utterances discarded: {metrics['utterances_discarded']}")
    print(f"Total speech:         {metrics['speech_duration_ms']:.0f}ms")


if __name__ == "__main__":
    main()
