"""Basic usage example for voiceprint.

This example demonstrates:
1. Extracting a voice profile from samples
2. Enrolling a speaker and identifying a new recording
3. Gating a live stream with voice activity detection
4. Matching diarization speakers against known speakers
"""

import numpy as np

from voiceprint import (
    DiarizationSegment,
    KnownSpeaker,
    VoiceActivityDetector,
    VoiceAnalyzer,
)

sample_rate = 16000
rng = np.random.default_rng(42)


def synthetic_voice(pitch_hz, seconds=2.0):
    """Harmonic tone standing in for a recorded voice."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    voice = sum(0.3 / k * np.sin(2 * np.pi * pitch_hz * k * t) for k in range(1, 6))
    return (voice + 0.005 * rng.standard_normal(t.shape[0])).astype(np.float32)


analyzer = VoiceAnalyzer(sample_rate=sample_rate, batch_size=64)

# =============================================================================
# Example 1: Voice Profile Extraction
# =============================================================================
print("=" * 70)
print("Example 1: Voice Profile Extraction")
print("=" * 70)

profile, info = analyzer.extract_profile(synthetic_voice(130.0), sample_rate=sample_rate)

print(f"\nAudio duration: {info.duration:.2f}s")
print(f"Frames: {info.num_frames} ({info.voiced_frames} voiced)")
print(f"Processing time: {info.processing_time:.3f}s")
print(f"Pitch: {profile.pitch_mean:.1f} Hz (variance {profile.pitch_variance:.1f})")
print(f"Energy: {profile.energy_mean:.4f}")
print(f"Spectral centroid: {profile.spectral_centroid:.0f} Hz")
print(f"Zero-crossing rate: {profile.zero_crossing_rate:.3f}")
print(f"MFCC mean: {np.round(profile.mfcc_mean[:4], 2)} ...")
print(analyzer.profiler.last_stats)

# Audio shorter than one frame is not an error
short_profile, _ = analyzer.extract_profile(np.zeros(200, dtype=np.float32))
print(f"\nShort audio gives the empty profile: {short_profile.is_empty}")

# =============================================================================
# Example 2: Enrollment and Identification
# =============================================================================
print("\n" + "=" * 70)
print("Example 2: Enrollment and Identification")
print("=" * 70)

alice = analyzer.build_enrollment_profile([synthetic_voice(210.0), synthetic_voice(215.0)])
bob = analyzer.build_enrollment_profile([synthetic_voice(110.0), synthetic_voice(115.0)])
library = [
    KnownSpeaker("alice-id", "Alice", voice_profile=alice),
    KnownSpeaker("bob-id", "Bob", voice_profile=bob),
]

matches = analyzer.identify(synthetic_voice(212.0), library)
print("\nCandidates for an unknown recording:")
for match in matches:
    print(f"  {match.speaker_name}: {match.confidence:.3f}")

# =============================================================================
# Example 3: Voice Activity Detection
# =============================================================================
print("\n" + "=" * 70)
print("Example 3: Voice Activity Detection")
print("=" * 70)

vad = VoiceActivityDetector()
session = vad.new_session()

stream = np.concatenate([
    np.zeros(sample_rate, dtype=np.float32),
    synthetic_voice(180.0, seconds=1.0),
    np.zeros(2 * sample_rate, dtype=np.float32),
])
frame_length = 320  # 20 ms
forwarded = 0
for start in range(0, len(stream) - frame_length + 1, frame_length):
    if vad.contains_speech(session, stream[start:start + frame_length]):
        forwarded += 1

print(f"\nForwarded {forwarded} frames")
print(session.statistics)

# =============================================================================
# Example 4: Diarization Speaker Matching
# =============================================================================
print("\n" + "=" * 70)
print("Example 4: Diarization Speaker Matching")
print("=" * 70)

alice_embedding = rng.standard_normal(256)
bob_embedding = rng.standard_normal(256)


def noisy(embedding):
    return embedding + 0.2 * rng.standard_normal(256)


segments = [
    DiarizationSegment("spk_0", 0.0, 4.2, 0.9, noisy(alice_embedding)),
    DiarizationSegment("spk_1", 4.8, 9.0, 0.8, noisy(bob_embedding)),
    DiarizationSegment("spk_0", 9.5, 12.0, 0.9, noisy(alice_embedding)),
]
known = [
    KnownSpeaker("alice-id", "Alice", embedding=alice_embedding),
    KnownSpeaker("bob-id", "Bob", embedding=bob_embedding),
]

result, mapping = analyzer.analyze_diarization(segments, known_speakers=known)

print(f"\nSpeakers found: {result.speaker_count}")
for tag, speaker_profile in sorted(result.speaker_profiles.items()):
    print(f"  {tag}: {speaker_profile.total_duration:.1f}s -> {mapping.get(tag, 'unknown')}")

# Attribute transcription segments by their start times
transcript = [("t0", 0.5), ("t1", 4.5), ("t2", 6.0), ("t3", 11.0)]
print("\nTranscript speakers:")
for segment_id, speaker in analyzer.assign_speakers(result, transcript).items():
    print(f"  {segment_id}: {speaker}")
