import os
import sys
import time
from datetime import datetime

from recall.encoder import ChunkEncoder
from recall.models import Frame
from recall.storage import RecallStorage

# Stand-ins for ffmpeg: read every frame from stdin and write them to the output
COPY_SCRIPT = "import sys; data = sys.stdin.buffer.read(); open(sys.argv[1], 'wb').write(data)"
FAIL_SCRIPT = "import sys; sys.stdin.buffer.read(); sys.stderr.write('bad input'); sys.exit(3)"
HANG_SCRIPT = "import time; time.sleep(30)"


def frames(*payloads):
    ts = datetime(2024, 5, 1, 10, 0, 0)
    return [Frame(p, ts, "Code", i) for i, p in enumerate(payloads, start=1)]


def encoder_for(script, tmp_path, **kwargs):
    return ChunkEncoder(tmp_path / "videos", command=[sys.executable, "-c", script, "{output}"], **kwargs)


def test_encodes_frames_in_order_and_registers_chunk(tmp_path):
    storage = RecallStorage(tmp_path / "recall.db")
    ids = [storage.insert_frame("Code", 1000.0), storage.insert_frame("Code", 1002.0)]
    encoder = encoder_for(COPY_SCRIPT, tmp_path, storage=storage)

    batch = [Frame(b"one", datetime(2024, 5, 1), "Code", ids[0]),
             Frame(b"two", datetime(2024, 5, 1), "Code", ids[1])]
    path = encoder.encode(batch)

    assert path is not None
    assert path.name.startswith("output-") and path.suffix == ".mp4"
    assert path.read_bytes() == b"onetwo"
    chunk = storage.get_chunk_for_frame(ids[1])
    assert chunk["filepath"] == str(path)
    assert chunk["chunk_offset"] == 1


def test_nonzero_exit_discards_output(tmp_path):
    encoder = encoder_for(FAIL_SCRIPT, tmp_path)
    assert encoder.encode(frames(b"one")) is None
    assert list((tmp_path / "videos").glob("*.mp4")) == []


def test_watchdog_kills_a_hung_encoder(tmp_path):
    encoder = encoder_for(HANG_SCRIPT, tmp_path, timeout=0.5)
    started = time.monotonic()
    assert encoder.encode(frames(b"one")) is None
    assert time.monotonic() - started < 10
    assert list((tmp_path / "videos").glob("*.mp4")) == []


def test_missing_binary_is_not_raised(tmp_path):
    encoder = ChunkEncoder(tmp_path / "videos", command=[str(tmp_path / "no-such-ffmpeg"), "{output}"])
    assert encoder.encode(frames(b"one")) is None


def test_empty_batch(tmp_path):
    assert encoder_for(COPY_SCRIPT, tmp_path).encode([]) is None


def test_default_command_pipes_png_to_ffmpeg(tmp_path):
    encoder = ChunkEncoder(tmp_path, ffmpeg_path="/usr/bin/ffmpeg", crf=30)
    cmd = encoder.build_command(tmp_path / "out.mp4")
    assert cmd[0] == "/usr/bin/ffmpeg"
    assert cmd[cmd.index("-f") + 1] == "image2pipe"
    assert cmd[cmd.index("-crf") + 1] == "30"
    assert cmd[-1] == str(tmp_path / "out.mp4")


def test_chunk_paths_are_unique(tmp_path):
    encoder = ChunkEncoder(tmp_path)
    assert encoder.chunk_path() != encoder.chunk_path()


def test_cleanup_removes_old_chunks_and_their_records(tmp_path):
    storage = RecallStorage(tmp_path / "recall.db")
    video_dir = tmp_path / "videos"
    video_dir.mkdir()
    old = video_dir / "output-1.mp4"
    fresh = video_dir / "output-2.mp4"
    old.write_bytes(b"old")
    fresh.write_bytes(b"fresh")
    now = time.time()
    os.utime(old, (now - 3 * 3600, now - 3 * 3600))
    storage.register_video_chunk(str(old), [storage.insert_frame("Code", now)])
    storage.register_video_chunk(str(fresh), [storage.insert_frame("Code", now)])

    encoder = ChunkEncoder(video_dir, storage=storage)
    assert encoder.cleanup_old_chunks(retention_hours=1, now=now) == 1
    assert not old.exists()
    assert fresh.exists()
    assert [c.filepath for c in storage.get_video_chunks()] == [str(fresh)]

    assert encoder.cleanup_old_chunks(retention_hours=0, now=now) == 0
