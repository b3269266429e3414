"""
MPV media backend using JSON IPC.

The IPC helpers are blocking socket calls; MpvBackend runs them in a worker
thread so the controller's event loop never blocks on mpv.
"""

import asyncio
import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, NamedTuple, Optional

from loguru import logger

from music_shelf.core.config import PlayerConfig
from music_shelf.domain.library.models import Song

from .backend import EmitFn
from .exceptions import BackendUnavailableError, PlaybackLoadFailure
from .messages import DurationKnown, LoadFailed, PositionChanged, TrackEnded

# mpv reports idle-active briefly while a new file opens
LOAD_GRACE_PERIOD = 1.0


class MpvProcess(NamedTuple):
    socket_path: str
    process: subprocess.Popen


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def start_mpv(player_config: PlayerConfig) -> Optional[MpvProcess]:
    """Start MPV in idle mode with JSON IPC."""
    if player_config.mpv_socket_path:
        socket_path = player_config.mpv_socket_path
    else:
        socket_path = str(Path(tempfile.gettempdir()) / f"music-shelf-mpv-{os.getpid()}")

    logger.info(f"Starting MPV player with socket: {socket_path}")

    try:
        if os.path.exists(socket_path):
            logger.debug(f"Removing existing socket: {socket_path}")
            os.unlink(socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={socket_path}",
            f"--volume={player_config.volume}",
            "--keep-open=yes",
            "--pause=yes",
            "--load-scripts=no",
        ]

        process = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
        )

        timeout = 5.0
        start_time = time.time()
        while not os.path.exists(socket_path):
            if time.time() - start_time > timeout:
                logger.error(f"MPV socket creation timeout after {timeout}s")
                process.kill()
                return None
            time.sleep(0.1)

        if send_mpv_command(socket_path, {"command": ["get_property", "idle-active"]}):
            logger.info("MPV started successfully")
            return MpvProcess(socket_path=socket_path, process=process)

        logger.error("MPV socket connection test failed")
        process.kill()
        return None

    except (subprocess.SubprocessError, OSError) as e:
        logger.error(f"Failed to start MPV: {e}")
        return None


def stop_mpv(mpv: MpvProcess) -> None:
    """Stop MPV process and cleanup."""
    try:
        mpv.process.kill()
        mpv.process.wait(timeout=2.0)
    except (OSError, subprocess.TimeoutExpired):
        pass  # already gone

    if os.path.exists(mpv.socket_path):
        try:
            os.unlink(mpv.socket_path)
        except OSError:
            pass


def is_mpv_running(mpv: Optional[MpvProcess]) -> bool:
    if mpv is None or mpv.process.poll() is not None:
        return False
    return os.path.exists(mpv.socket_path)


def _request(socket_path: Optional[str], command: dict[str, Any]) -> Optional[dict]:
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(2.0)
            sock.connect(socket_path)
            sock.sendall((json.dumps(command) + "\n").encode("utf-8"))
            response = sock.recv(4096).decode("utf-8").strip()
    except OSError:
        return None

    # mpv may interleave async events; the reply is the line carrying "error"
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "error" in data:
            return data
    return None


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send JSON IPC command to MPV."""
    response = _request(socket_path, command)
    return response is not None and response.get("error") == "success"


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from MPV."""
    response = _request(socket_path, {"command": ["get_property", property_name]})
    if response and response.get("error") == "success":
        return response.get("data")
    return None


class MpvBackend:
    """MediaBackend driving an mpv subprocess."""

    def __init__(self, player_config: PlayerConfig):
        self._config = player_config
        self._mpv: Optional[MpvProcess] = None
        self._song_id: Optional[str] = None
        self._loaded_at = 0.0
        self._ended = False

    @property
    def socket_path(self) -> Optional[str]:
        return self._mpv.socket_path if self._mpv else None

    async def start(self) -> None:
        self._mpv = await asyncio.to_thread(start_mpv, self._config)
        if self._mpv is None:
            raise BackendUnavailableError("Could not start mpv")

    async def close(self) -> None:
        if self._mpv is not None:
            await asyncio.to_thread(stop_mpv, self._mpv)
            self._mpv = None

    async def _command(self, *args: Any) -> bool:
        return await asyncio.to_thread(
            send_mpv_command, self.socket_path, {"command": list(args)}
        )

    async def load(self, song: Song) -> None:
        if not song.file_path:
            raise PlaybackLoadFailure(f"No file path for {song.id}")

        # Load paused; the controller decides whether to play
        await self._command("set_property", "pause", True)
        if not await self._command("loadfile", song.file_path, "replace"):
            raise PlaybackLoadFailure(f"mpv rejected {song.file_path}")

        self._song_id = song.id
        self._loaded_at = time.monotonic()
        self._ended = False
        logger.debug(f"Loaded {song.file_path}")

    async def play(self) -> None:
        if not await self._command("set_property", "pause", False):
            raise PlaybackLoadFailure("mpv refused to play")

    async def pause(self) -> None:
        await self._command("set_property", "pause", True)

    async def seek(self, position: float) -> None:
        self._ended = False
        await self._command("seek", position, "absolute")

    async def stop(self) -> None:
        self._song_id = None
        await self._command("stop")

    async def watch(self, emit: EmitFn, interval: float = 0.25) -> None:
        """Poll mpv and emit backend events until the process exits."""
        last_position: Optional[float] = None
        last_duration: Optional[float] = None
        watched_id: Optional[str] = None

        while is_mpv_running(self._mpv):
            song_id = self._song_id
            if song_id != watched_id:
                watched_id, last_position, last_duration = song_id, None, None
            if song_id is not None:
                position = await asyncio.to_thread(get_mpv_property, self.socket_path, "time-pos")
                duration = await asyncio.to_thread(get_mpv_property, self.socket_path, "duration")
                eof = await asyncio.to_thread(get_mpv_property, self.socket_path, "eof-reached")
                idle = await asyncio.to_thread(get_mpv_property, self.socket_path, "idle-active")

                if duration and duration != last_duration:
                    last_duration = duration
                    emit(DurationKnown(duration=duration, song_id=song_id))
                if position is not None and position != last_position:
                    last_position = position
                    emit(PositionChanged(position=position, song_id=song_id))

                if eof and not self._ended:
                    self._ended = True
                    emit(TrackEnded(song_id=song_id))
                elif idle and time.monotonic() - self._loaded_at > LOAD_GRACE_PERIOD:
                    # keep-open=yes: idle with a loaded song means decoding failed
                    self._song_id = None
                    emit(LoadFailed(reason="mpv could not decode the file", song_id=song_id))

            await asyncio.sleep(interval)

        logger.warning("MPV process exited; stopped watching")
