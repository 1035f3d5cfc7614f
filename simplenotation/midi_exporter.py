"""MidiExporter: renders a parsed score into a 3-track MIDI file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from midiutil import MIDIFile

from simplenotation.clock import VirtualClock
from simplenotation.models import NoteDescriptor, ParsedScore
from simplenotation.pitch import chord_to_midi, key_from_text, note_to_midi
from simplenotation.player import MAX_OFFLINE_STEPS, PlaybackScheduler, parse_tempo, play_offline

# In midiutil Format 1 MIDI, track 0 is the conductor/tempo track.
TRACK_CONDUCTOR = 0  # Tempo and time signature only
TRACK_MELODY = 1     # Jianpu melody line
TRACK_CHORDS = 2     # Chord-row symbols

CHANNEL_MELODY = 0
CHANNEL_CHORDS = 1

# MIDI clocks per metronome click for the time-signature meta event
CLOCKS_PER_TICK = 24
MAX_MIDI_NOTE = 127

_METER_DENOMINATOR_RE = re.compile(r"/\s*(\d+)")


@dataclass
class NoteEvent:
    """
    One sounding event on a track, in beats from the start of the piece.

    Attributes:
        start:    Onset in beats.
        duration: Length in beats.
        pitches:  MIDI note numbers sounding together.
    """

    start: float
    duration: float
    pitches: list[int] = field(default_factory=list)


def meter_denominator(beat: str) -> int:
    """Denominator of an ``N/M`` meter; 4 when absent or not a power of two."""
    match = _METER_DENOMINATOR_RE.search(beat or "")
    if match is None:
        return 4
    denominator = int(match.group(1))
    if denominator <= 0 or denominator & (denominator - 1):
        return 4
    return denominator


class MidiExporter:
    """
    Writes a parsed score as a Standard MIDI File.

    Track layout (Format 1, 3 internal tracks)
    ------------------------------------------
    Track 0 is the conductor track (tempo and time signature, no notes).
    Track 1 is "Melody": one note per note-play event, rests skipped.
    Track 2 is "Chords": the chord-row symbols of each note.

    Timing
    ------
    The score is played through a PlaybackScheduler on a VirtualClock, so
    ties, ``-`` holds, repeats and numbered endings come out exactly as
    in live playback. Millisecond times are converted back to beats at
    the score's tempo.
    """

    DEFAULT_VELOCITY = 80  # MIDI velocity for melody notes (0-127)
    CHORD_VELOCITY = 64    # Softer accompaniment

    def __init__(
        self,
        velocity: int = DEFAULT_VELOCITY,
        chord_velocity: int = CHORD_VELOCITY,
        max_steps: int = MAX_OFFLINE_STEPS,
    ) -> None:
        """
        Args:
            velocity:       MIDI note-on velocity for the melody.
            chord_velocity: MIDI note-on velocity for chord tones.
            max_steps:      Playback steps allowed before the score counts as
                            an endless repeat.
        """
        self.velocity = velocity
        self.chord_velocity = chord_velocity
        self.max_steps = max_steps

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def collect(self, score: ParsedScore) -> tuple[list[NoteEvent], list[NoteEvent]]:
        """
        Play the score offline and gather its events.

        Returns:
            (melody events, chord events), each in playback order.

        Raises:
            PlaybackError: If the repeats never let playback end.
        """
        clock = VirtualClock()
        scheduler = PlaybackScheduler(score, clock=clock)
        key = key_from_text(score.info.key)
        beat_ms = scheduler.beat_ms
        melody: list[NoteEvent] = []
        chords: list[NoteEvent] = []

        def on_note(note: NoteDescriptor, duration_ms: float) -> None:
            pitch = note_to_midi(note, key)
            if pitch is not None and 0 <= pitch <= MAX_MIDI_NOTE:
                melody.append(NoteEvent(clock.now / beat_ms, duration_ms / beat_ms, [pitch]))

        def on_chord(note: NoteDescriptor, duration_ms: float) -> None:
            for symbol in note.chord:
                pitches = chord_to_midi(symbol, key)
                if pitches:
                    chords.append(NoteEvent(clock.now / beat_ms, duration_ms / beat_ms, pitches))

        scheduler.on_note_play(on_note)
        scheduler.on_chord_play(on_chord)
        play_offline(scheduler, clock, self.max_steps)
        return melody, chords

    def render(self, score: ParsedScore) -> MIDIFile:
        """Build the in-memory MIDIFile for ``score``."""
        melody, chords = self.collect(score)
        tempo = parse_tempo(score.info.tempo)

        midi = MIDIFile(numTracks=3, removeDuplicates=False, deinterleave=False)

        # --- Track 0: conductor ---
        midi.addTempo(TRACK_CONDUCTOR, 0, tempo)
        denominator = meter_denominator(score.info.beat)
        midi.addTimeSignature(
            TRACK_CONDUCTOR,
            0,
            max(1, int(score.expected_beats)),
            denominator.bit_length() - 1,
            CLOCKS_PER_TICK,
        )

        # --- Track 1: melody ---
        midi.addTrackName(TRACK_MELODY, 0, score.info.title or "Melody")
        for event in melody:
            for pitch in event.pitches:
                midi.addNote(
                    track=TRACK_MELODY,
                    channel=CHANNEL_MELODY,
                    pitch=pitch,
                    time=event.start,
                    duration=event.duration,
                    volume=self.velocity,
                )

        # --- Track 2: chords ---
        midi.addTrackName(TRACK_CHORDS, 0, "Chords")
        for event in chords:
            for pitch in event.pitches:
                midi.addNote(
                    track=TRACK_CHORDS,
                    channel=CHANNEL_CHORDS,
                    pitch=pitch,
                    time=event.start,
                    duration=event.duration,
                    volume=self.chord_velocity,
                )

        return midi

    def export(self, score: ParsedScore, output_path: str) -> None:
        """
        Render ``score`` to a Standard MIDI File (SMF format 1).

        Args:
            score:       Parsed score to write.
            output_path: Destination file path (e.g. "output.mid").

        Raises:
            OSError: If the output file cannot be opened for writing.
            PlaybackError: If the repeats never let playback end.
        """
        midi = self.render(score)
        with open(output_path, "wb") as f:
            midi.writeFile(f)
