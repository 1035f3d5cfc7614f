"""PlaybackScheduler: walks a parsed score in time and emits playback callbacks."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from enum import Enum

from simplenotation.clock import Clock, TimerHandle, VirtualClock
from simplenotation.errors import PlaybackError
from simplenotation.models import FlattenedNote, NoteDescriptor, ParsedScore

logger = logging.getLogger(__name__)

DEFAULT_TEMPO = 60
MS_PER_MINUTE = 60_000.0
HOLD = "-"

# Clock callbacks allowed for one offline run before it counts as endless
MAX_OFFLINE_STEPS = 100_000

_SECTION_MARKER_RE = re.compile(r"^\d+\.$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

PointerCallback = Callable[[NoteDescriptor, float], None]
NoteCallback = Callable[[NoteDescriptor, float], None]
EndCallback = Callable[[], None]


class PlayState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


def parse_tempo(value: str | int | None) -> int:
    """Leading integer of ``value`` as BPM; 60 when missing or not positive."""
    match = _LEADING_INT_RE.match(str(value or ""))
    if not match:
        return DEFAULT_TEMPO
    tempo = int(match.group(1))
    return tempo if tempo > 0 else DEFAULT_TEMPO


def section_number(note: NoteDescriptor) -> int | None:
    """Number of the first ``N.`` section-repeat marker in the note's chord row."""
    for symbol in note.chord:
        if _SECTION_MARKER_RE.match(symbol):
            return int(symbol[:-1])
    return None


def play_offline(
    scheduler: PlaybackScheduler,
    clock: VirtualClock,
    max_steps: int = MAX_OFFLINE_STEPS,
) -> None:
    """
    Play ``scheduler`` to the end on a virtual clock.

    Raises:
        PlaybackError: If playback takes more than ``max_steps`` clock
                       callbacks, which happens when repeats never end
                       (e.g. two ``:|`` marks with no ``|:`` between them).
    """
    scheduler.play()
    try:
        clock.run(max_callbacks=max_steps)
    except RuntimeError as exc:
        scheduler.stop()
        raise PlaybackError(f"Playback did not end after {max_steps} steps; check the repeat marks.") from exc


def _subscribe(registry: list, callback: Callable) -> Callable[[], None]:
    registry.append(callback)

    def unsubscribe() -> None:
        if callback in registry:
            registry.remove(callback)

    return unsubscribe


class PlaybackScheduler:
    """
    Time-driven player for one flattened note stream.

    Every note fires the pointer-move callbacks with the elapsed time. Notes
    that start a sound fire the note-play callbacks once, with the length of
    any continuation (``-``) and tied notes added in. Notes with chord symbols
    fire the chord-play callbacks. After a note's own length has elapsed the
    player moves on, honouring ``:|`` repeats and numbered section endings
    (``1.``, ``2.``).

    The scheduler never sleeps itself: each step asks the injected Clock for
    a deferred continuation, so a VirtualClock gives fully deterministic
    playback.

    Usage:

        scheduler = PlaybackScheduler(parsed, clock=VirtualClock())
        scheduler.on_note_play(lambda note, ms: print(note.note, ms))
        scheduler.play()
    """

    def __init__(self, score: ParsedScore, *, clock: Clock) -> None:
        self._notes: list[FlattenedNote] = score.flatten()
        self._tempo = parse_tempo(score.info.tempo)
        self._clock = clock
        self._timer: TimerHandle | None = None

        self._state = PlayState.IDLE
        self._index = 0
        self._current_time = 0.0
        self._note_start_time = 0.0
        self._repeat_pass = 1
        self._repeat_next_index = 0
        self._stepping = False
        self._generation = 0

        self._tie_interior = self._find_tie_interior()

        self._pointer_callbacks: list[PointerCallback] = []
        self._note_callbacks: list[NoteCallback] = []
        self._chord_callbacks: list[NoteCallback] = []
        self._end_callbacks: list[EndCallback] = []

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def tempo(self) -> int:
        return self._tempo

    @property
    def beat_ms(self) -> float:
        return MS_PER_MINUTE / self._tempo

    @property
    def state(self) -> PlayState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def current_repeat_pass(self) -> int:
        return self._repeat_pass

    @property
    def repeat_next_index(self) -> int:
        return self._repeat_next_index

    def get_notes(self) -> list[FlattenedNote]:
        return list(self._notes)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_pointer_move(self, callback: PointerCallback) -> Callable[[], None]:
        """Called for every note, continuations included: ``(note, elapsed_ms)``."""
        return _subscribe(self._pointer_callbacks, callback)

    def on_note_play(self, callback: NoteCallback) -> Callable[[], None]:
        """Called once per sounding note: ``(note, merged_duration_ms)``."""
        return _subscribe(self._note_callbacks, callback)

    def on_chord_play(self, callback: NoteCallback) -> Callable[[], None]:
        """Called for notes carrying chord symbols: ``(note, own_duration_ms)``."""
        return _subscribe(self._chord_callbacks, callback)

    def on_end(self, callback: EndCallback) -> Callable[[], None]:
        return _subscribe(self._end_callbacks, callback)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def play(self) -> None:
        if self._state is PlayState.PLAYING:
            return
        if self._state is PlayState.PAUSED:
            self.resume()
            return
        self._state = PlayState.PLAYING
        if not self._stepping:
            self._run_step()

    def pause(self) -> None:
        """Cancel the pending continuation; resume() replays the interrupted note."""
        if self._state is not PlayState.PLAYING:
            return
        self._state = PlayState.PAUSED
        self._cancel_timer()
        self._current_time = self._note_start_time

    def resume(self) -> None:
        if self._state is not PlayState.PAUSED:
            return
        self._state = PlayState.PLAYING
        if not self._stepping:
            self._run_step()

    def stop(self) -> None:
        """Return to idle at the top of the piece. The repeat pass is kept."""
        self._state = PlayState.IDLE
        self._cancel_timer()
        self._generation += 1
        self._index = 0
        self._current_time = 0.0
        self._note_start_time = 0.0

    def set_current_index(self, index: int) -> None:
        """
        Move the cursor to ``index``.

        Raises:
            PlaybackError: If ``index`` is outside ``0..len(notes)``.
        """
        if not 0 <= index <= len(self._notes):
            raise PlaybackError(f"Note index {index} out of range 0..{len(self._notes)}.")
        self._index = index

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _note_duration(self, note: NoteDescriptor) -> float:
        # Unparsed tokens carry node_time 0 and still hold the cursor for a beat.
        return (note.node_time or 1) * self.beat_ms

    def _tie_span_end(self, start: int) -> int:
        """Index one past the last note merged into the note at ``start``."""
        head = self._notes[start]
        open_tie = head.is_tie_start
        idx = start + 1
        while idx < len(self._notes):
            nxt = self._notes[idx]
            if nxt.note == HOLD:
                idx += 1
                continue
            if not head.same_pitch(nxt):
                break
            if nxt.is_tie_end:
                open_tie = False
                idx += 1
                continue
            if open_tie and not nxt.is_tie_start:
                idx += 1
                continue
            break
        return idx

    def _find_tie_interior(self) -> set[int]:
        interior: set[int] = set()
        for start, note in enumerate(self._notes):
            if not note.is_tie_start or note.note == HOLD:
                continue
            for idx in range(start + 1, self._tie_span_end(start)):
                candidate = self._notes[idx]
                if candidate.note != HOLD and not candidate.is_tie_end:
                    interior.add(idx)
        return interior

    def _merged_duration(self, start: int) -> float:
        end = self._tie_span_end(start)
        return sum(self._note_duration(self._notes[idx]) for idx in range(start, end))

    def _sounds(self, index: int, note: NoteDescriptor) -> bool:
        return note.note != HOLD and not note.is_tie_end and index not in self._tie_interior

    def _section_skip_target(self, note: NoteDescriptor) -> int | None:
        """Where to jump when ``note`` opens a section for another pass, else None."""
        number = section_number(note)
        if number is None or number == self._repeat_pass:
            return None

        if self._repeat_next_index > self._index:
            logger.debug(
                "Pass %d meets section %d. at %d, skipping to %d",
                self._repeat_pass, number, self._index, self._repeat_next_index,
            )
            return self._repeat_next_index

        for idx in range(self._index + 1, len(self._notes)):
            if section_number(self._notes[idx]) == self._repeat_pass:
                logger.debug(
                    "Pass %d meets section %d. at %d with no recorded target, jumping ahead to %d",
                    self._repeat_pass, number, self._index, idx,
                )
                return idx

        logger.warning(
            "Section %d. at note %d has no section for pass %d; playing it",
            number, self._index, self._repeat_pass,
        )
        return None

    def _find_repeat_start(self, index: int) -> int:
        """First note of the nearest measure at or before ``index`` flagged repeat-start."""
        for idx in range(min(index, len(self._notes) - 1), -1, -1):
            if self._notes[idx].repeat_start:
                measure_index = self._notes[idx].measure_index
                while idx > 0 and self._notes[idx - 1].measure_index == measure_index:
                    idx -= 1
                return idx
        return 0

    def _run_step(self) -> None:
        self._stepping = True
        try:
            self._step()
        finally:
            self._stepping = False

    def _step(self) -> None:
        while True:
            if self._state is not PlayState.PLAYING:
                return
            if self._index >= len(self._notes):
                self._finish()
                return
            note = self._notes[self._index]
            target = self._section_skip_target(note)
            if target is None:
                break
            self._index = target

        index = self._index
        generation = self._generation
        self._note_start_time = self._current_time

        for pointer_cb in list(self._pointer_callbacks):
            pointer_cb(note, self._current_time)

        duration = self._note_duration(note)
        self._current_time = self._note_start_time + duration

        if self._sounds(index, note):
            total = self._merged_duration(index)
            for note_cb in list(self._note_callbacks):
                note_cb(note, total)

        if note.chord:
            for chord_cb in list(self._chord_callbacks):
                chord_cb(note, duration)

        if generation != self._generation:
            # stop() ran inside a callback; start over if play() followed it.
            self._current_time = 0.0
            if self._state is PlayState.PLAYING:
                self._timer = self._clock.call_later(0, self._run_step)
            return
        if self._state is PlayState.PAUSED:
            self._current_time = self._note_start_time
            return

        # pause() then resume() inside a callback rewound the time.
        self._current_time = self._note_start_time + duration
        self._timer = self._clock.call_later(duration, lambda: self._on_note_elapsed(note))

    def _on_note_elapsed(self, note: FlattenedNote) -> None:
        self._timer = None
        if self._state is not PlayState.PLAYING:
            return

        index = self._index
        last_index = len(self._notes) - 1
        is_last_in_measure = (
            index >= last_index or self._notes[index + 1].measure_index != note.measure_index
        )

        if note.repeat_end and is_last_in_measure:
            self._repeat_pass += 1
            if self._repeat_next_index == index + 1:
                self._index = index + 1
            else:
                self._repeat_next_index = index + 1
                self._index = self._find_repeat_start(index)
                logger.debug(
                    "Repeat end at %d, pass %d resumes at %d",
                    index, self._repeat_pass, self._index,
                )
        else:
            self._index = index + 1

        self._run_step()

    def _finish(self) -> None:
        self._state = PlayState.IDLE
        self._cancel_timer()
        self._index = 0
        self._current_time = 0.0
        self._note_start_time = 0.0
        self._repeat_pass = 1
        self._repeat_next_index = 0
        for end_cb in list(self._end_callbacks):
            end_cb()
        # play() from an end callback starts the next run.
        if self._state is PlayState.PLAYING and self._timer is None:
            self._timer = self._clock.call_later(0, self._run_step)
