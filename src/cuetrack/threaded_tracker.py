# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Threaded wrapper for AlignmentEngine that enables non-blocking operation.

Tracking runs on a single worker thread fed by a queue, so recognizer and
network threads are never blocked by matching. The engine itself stays
single-threaded: only the worker ever touches it.

Manual jumps and resets bump an epoch. Anything queued or computed under an
older epoch is thrown away, so a stale candidate can never overwrite a jump.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any

from .matching import DEFAULT_PROFILE, MatchingProfile
from .tracker import AlignmentEngine, ScriptPosition, TranscriptEvent

logger = logging.getLogger(__name__)


@dataclass
class TrackingRequest:
    """A request to update tracking position."""
    event: TranscriptEvent
    request_id: int
    epoch: int


@dataclass
class TrackingResult:
    """Result from a tracking update."""
    position: ScriptPosition
    request_id: int
    epoch: int
    processing_time: float


@dataclass
class ControlCommand:
    """Control command for the worker thread."""
    command: str  # 'reset', 'jump_to', 'set_script', 'set_profile', 'shutdown'
    param: Any = None
    epoch: int = 0


class ThreadedTracker:
    """
    Thread-safe wrapper around AlignmentEngine for non-blocking operation.

    Features:
    - Non-blocking submit() that queues transcript events
    - Automatic throttling of interim updates (max 1 per 50ms)
    - Backpressure handling (drops old interims when queue is full)
    - Stale results discarded after reset/jump_to
    - Cached results for immediate access

    Usage:
        tracker = ThreadedTracker(script_text)

        # Non-blocking update
        tracker.submit(TranscriptEvent("the quick", is_final=False))

        # Poll for results
        result = tracker.get_latest_result()
        if result:
            send_to_ui(result.position)
    """

    def __init__(
        self,
        script_text: str,
        profile: MatchingProfile = DEFAULT_PROFILE,
        pause_threshold_ms: int = 1000,
        partial_throttle_ms: int = 50,
        max_queue_size: int = 10
    ):
        """
        Initialize the threaded tracker.

        Args:
            script_text: The script text to track
            profile: Matching profile for the engine
            pause_threshold_ms: Gap between events treated as a pause
            partial_throttle_ms: Minimum time between interim updates (default: 50ms)
            max_queue_size: Maximum queue size before backpressure kicks in (default: 10)
        """
        self.script_text = script_text
        self.profile = profile
        self.pause_threshold_ms = pause_threshold_ms
        self.partial_throttle_ms = partial_throttle_ms
        self.max_queue_size = max_queue_size

        # Queues for communication
        self.request_queue: queue.Queue[TrackingRequest | ControlCommand] = queue.Queue(
            maxsize=max_queue_size
        )
        self.result_queue: queue.Queue[TrackingResult] = queue.Queue(maxsize=max_queue_size)

        # Thread control
        self.worker_thread: threading.Thread | None = None
        self.shutdown_flag = threading.Event()
        self.started = threading.Event()

        # Cached state (thread-safe with lock)
        self.state_lock = threading.Lock()
        self.latest_result: TrackingResult | None = None
        self.request_counter = 0
        self.epoch = 0
        self.last_partial_time = 0.0
        self.total_words = 0

        # Start worker thread
        self._start_worker()

        # Wait for worker to be ready
        self.started.wait(timeout=5.0)
        if not self.started.is_set():
            raise RuntimeError("Worker thread failed to start")

    def _start_worker(self) -> None:
        """Start the worker thread."""
        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            name="TrackerWorker",
            daemon=True
        )
        self.worker_thread.start()

    def _worker_loop(self) -> None:
        """Main loop for the worker thread."""
        try:
            # Create the actual engine in the worker thread
            engine = AlignmentEngine(
                self.script_text,
                profile=self.profile,
                pause_threshold_ms=self.pause_threshold_ms
            )
            with self.state_lock:
                self.total_words = engine.total_words

            logger.info("ThreadedTracker worker started")
            self.started.set()

            while not self.shutdown_flag.is_set():
                try:
                    # Get next request with timeout to allow checking shutdown flag
                    item = self.request_queue.get(timeout=0.1)

                    if isinstance(item, ControlCommand):
                        self._handle_control_command(engine, item)
                    elif isinstance(item, TrackingRequest):
                        self._handle_tracking_request(engine, item)

                except queue.Empty:
                    continue
                except Exception as e:  # pylint: disable=broad-except
                    logger.error("Error in worker loop: %s", e, exc_info=True)

        finally:
            logger.info("ThreadedTracker worker stopped")

    def _handle_control_command(self, engine: AlignmentEngine, cmd: ControlCommand) -> None:
        """Handle control commands."""
        if cmd.command == 'reset':
            engine.reset()
            self._publish_control_result(engine, cmd.epoch)
            logger.debug("Tracker reset")

        elif cmd.command == 'jump_to':
            engine.jump_to(cmd.param)
            self._publish_control_result(engine, cmd.epoch)
            logger.debug("Tracker jumped to %d", cmd.param)

        elif cmd.command == 'set_script':
            engine.set_script(cmd.param)
            with self.state_lock:
                self.total_words = engine.total_words
            self._publish_control_result(engine, cmd.epoch)
            logger.debug("Tracker script replaced (%d words)", engine.total_words)

        elif cmd.command == 'set_profile':
            engine.set_profile(cmd.param)
            logger.debug("Tracker profile set to %s", cmd.param.name)

        elif cmd.command == 'shutdown':
            self.shutdown_flag.set()

    def _is_current(self, epoch: int) -> bool:
        with self.state_lock:
            return epoch == self.epoch

    def _handle_tracking_request(self, engine: AlignmentEngine, req: TrackingRequest) -> None:
        """Handle a tracking update request."""
        if not self._is_current(req.epoch):
            logger.debug("Dropping stale request %d (epoch %d)", req.request_id, req.epoch)
            return

        start_time = time.time()
        position = engine.handle_event(req.event)
        processing_time = time.time() - start_time

        self._publish(TrackingResult(
            position=position,
            request_id=req.request_id,
            epoch=req.epoch,
            processing_time=processing_time
        ))

    def _publish_control_result(self, engine: AlignmentEngine, epoch: int) -> None:
        """Publish the position after a reset/jump so readers see it immediately."""
        self._publish(TrackingResult(
            position=engine.current_position,
            request_id=0,
            epoch=epoch,
            processing_time=0.0
        ))

    def _publish(self, result: TrackingResult) -> None:
        # Held for the whole publish so a jump_to() racing with this result wins
        with self.state_lock:
            if result.epoch != self.epoch:
                logger.debug("Discarding stale result %d", result.request_id)
                return
            self.latest_result = result

            # Put result in queue (non-blocking to avoid deadlock)
            try:
                self.result_queue.put_nowait(result)
            except queue.Full:
                # Drop oldest result and try again
                try:
                    self.result_queue.get_nowait()
                    self.result_queue.put_nowait(result)
                except (queue.Empty, queue.Full):
                    pass

    def submit(self, event: TranscriptEvent) -> bool:
        """
        Submit a transcript event for tracking (non-blocking).

        Args:
            event: The transcript event

        Returns:
            True if the event was queued, False if it was dropped
        """
        current_time = time.time()

        # Throttle interim updates
        if not event.is_final:
            time_since_last = (current_time - self.last_partial_time) * 1000
            if time_since_last < self.partial_throttle_ms:
                # Too soon, drop this interim
                return False
            self.last_partial_time = current_time

        with self.state_lock:
            self.request_counter += 1
            request = TrackingRequest(
                event=event,
                request_id=self.request_counter,
                epoch=self.epoch
            )

        # Try to queue (with backpressure handling)
        try:
            self.request_queue.put_nowait(request)
            return True
        except queue.Full:
            if event.is_final:
                # Final transcription - log warning but drop it
                logger.warning("Backpressure: dropping final transcript (queue full)")
                return False
            return self._queue_with_backpressure(request)

    def _queue_with_backpressure(self, request: TrackingRequest) -> bool:
        """Make room by dropping old interims, keeping everything else in order."""
        kept: list[TrackingRequest | ControlCommand] = []
        dropped = 0
        while True:
            try:
                old_item = self.request_queue.get_nowait()
            except queue.Empty:
                break
            if (dropped < 3 and isinstance(old_item, TrackingRequest)
                    and not old_item.event.is_final):
                dropped += 1
            else:
                kept.append(old_item)

        for item in kept:
            try:
                self.request_queue.put_nowait(item)
            except queue.Full:
                logger.warning("Backpressure: lost queued item while reordering")

        try:
            self.request_queue.put_nowait(request)
            logger.warning("Backpressure: dropped %d old interims", dropped)
            return True
        except queue.Full:
            logger.warning("Backpressure: dropping current interim")
            return False

    def submit_transcription(
        self,
        transcription: str,
        is_final: bool = False,
        timestamp: float | None = None
    ) -> bool:
        """Convenience wrapper around submit()."""
        if timestamp is None:
            timestamp = time.monotonic()
        return self.submit(TranscriptEvent(transcription, is_final, timestamp))

    def get_latest_result(self, timeout: float = 0) -> TrackingResult | None:
        """
        Get the next tracking result.

        Args:
            timeout: How long to wait for a result (0 = don't wait)

        Returns:
            Next result or None if no result available
        """
        try:
            if timeout > 0:
                return self.result_queue.get(timeout=timeout)
            return self.result_queue.get_nowait()
        except queue.Empty:
            return None

    def get_cached_result(self) -> TrackingResult | None:
        """
        Get the cached latest result without consuming from queue.

        Returns:
            Latest cached result or None
        """
        with self.state_lock:
            return self.latest_result

    def _make_room_for_control(self, drop_finals: bool) -> int:
        """Evict queued requests so a control command fits. Returns how many were dropped.

        Interims always go. Finals go too when the command invalidates them anyway.
        """
        kept: list[TrackingRequest | ControlCommand] = []
        dropped = 0
        while True:
            try:
                old_item = self.request_queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(old_item, TrackingRequest) and (
                    drop_finals or not old_item.event.is_final):
                dropped += 1
            else:
                kept.append(old_item)

        for item in kept:
            try:
                self.request_queue.put_nowait(item)
            except queue.Full:
                logger.warning("Backpressure: lost queued item while reordering")
        return dropped

    def _send_command(self, command: str, param: Any = None, invalidate: bool = False) -> bool:
        """
        Queue a control command for the worker.

        With invalidate, the epoch only moves on once the command is queued.
        Requests queued ahead of it are evicted if that is what it takes.

        Returns:
            True if the command was queued
        """
        with self.state_lock:
            epoch = self.epoch + 1 if invalidate else self.epoch
            cmd = ControlCommand(command=command, param=param, epoch=epoch)
            try:
                self.request_queue.put_nowait(cmd)
            except queue.Full:
                dropped = self._make_room_for_control(drop_finals=invalidate)
                logger.warning("Backpressure: dropped %d requests for %s command",
                               dropped, command)
                try:
                    self.request_queue.put_nowait(cmd)
                except queue.Full:
                    logger.warning("Failed to queue %s command (queue full)", command)
                    return False

            if invalidate:
                self.epoch = epoch
                self.latest_result = None
                # Results already queued belong to the old epoch
                while True:
                    try:
                        self.result_queue.get_nowait()
                    except queue.Empty:
                        break
        return True

    def reset(self) -> bool:
        """Reset tracker to the beginning."""
        return self._send_command('reset', invalidate=True)

    def jump_to(self, word_index: int) -> bool:
        """
        Jump to a specific word index.

        Anything submitted before the jump is discarded, including results
        the worker is computing right now.

        Args:
            word_index: The script word index to jump to

        Returns:
            True if the jump was queued
        """
        return self._send_command('jump_to', param=word_index, invalidate=True)

    def set_script(self, script_text: str) -> bool:
        """Replace the script (resets tracking)."""
        queued = self._send_command('set_script', param=script_text, invalidate=True)
        if queued:
            self.script_text = script_text
        return queued

    def set_profile(self, profile: MatchingProfile) -> bool:
        """Switch matching profile."""
        queued = self._send_command('set_profile', param=profile)
        if queued:
            self.profile = profile
        return queued
    def shutdown(self) -> None:
        """Shutdown the worker thread."""
        cmd = ControlCommand(command='shutdown')
        try:
            self.request_queue.put(cmd, timeout=1.0)
        except queue.Full:
            pass

        self.shutdown_flag.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=2.0)

    def __del__(self) -> None:
        """Cleanup on deletion."""
        self.shutdown()
