"""Tests for last-frame extraction."""
import base64
import io
import subprocess
from pathlib import Path

import httpx
import pytest
from PIL import Image

from conftest import make_jpeg
from petflix.core.config import ContinuityConfig
from petflix.core.exceptions import ImageLoadError
from petflix.workflow import ContinuityExtractor


class FakeRunner:
    """Stands in for ffprobe/ffmpeg; ffmpeg writes a real JPEG to its output path."""

    def __init__(self, duration="4.04\n", ffmpeg_code=0, frame_size=(1920, 1080)):
        self.duration = duration
        self.ffmpeg_code = ffmpeg_code
        self.frame_size = frame_size
        self.commands = []

    async def __call__(self, cmd, timeout):
        self.commands.append(cmd)
        if cmd[0] == "ffprobe":
            return subprocess.CompletedProcess(cmd, 0, stdout=self.duration, stderr="")
        if self.ffmpeg_code == 0:
            make_jpeg(cmd[-1], size=self.frame_size)
        return subprocess.CompletedProcess(cmd, self.ffmpeg_code, stdout="", stderr="decode error")


@pytest.fixture
def clip_file(tmp_path):
    path = tmp_path / "clip1.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return path


@pytest.fixture
def work_dir(tmp_path):
    return tmp_path / "work"


def decode_data_uri(uri):
    header, payload = uri.split(",", 1)
    assert header == "data:image/jpeg;base64"
    return Image.open(io.BytesIO(base64.b64decode(payload)))


class TestExtractLastFrame:
    async def test_local_clip(self, clip_file, work_dir):
        runner = FakeRunner()
        extractor = ContinuityExtractor(runner=runner, work_dir=work_dir)

        frame = await extractor.extract_last_frame(str(clip_file))

        assert frame.duration_seconds == pytest.approx(4.04)
        image = decode_data_uri(frame.image_data_ref)
        assert max(image.size) == 1280
        ffmpeg = runner.commands[1]
        assert ffmpeg[ffmpeg.index("-ss") + 1] == "3.940"
        assert ffmpeg[ffmpeg.index("-i") + 1] == str(clip_file)

    async def test_file_uri(self, clip_file, work_dir):
        extractor = ContinuityExtractor(runner=FakeRunner(), work_dir=work_dir)
        frame = await extractor.extract_last_frame(clip_file.as_uri())
        assert frame.duration_seconds == pytest.approx(4.04)

    async def test_remote_clip_downloaded(self, router, work_dir):
        router.add("GET", "/clip1.mp4", httpx.Response(200, content=b"video-bytes"))
        runner = FakeRunner()
        extractor = ContinuityExtractor(runner=runner, work_dir=work_dir, transport=router.transport())

        await extractor.extract_last_frame("https://cdn.test/clip1.mp4")

        probed = Path(runner.commands[0][-1])
        assert probed.name == "clip.mp4"
        assert probed.parent.parent == work_dir

    async def test_temp_dir_removed(self, clip_file, work_dir):
        extractor = ContinuityExtractor(runner=FakeRunner(), work_dir=work_dir)
        await extractor.extract_last_frame(str(clip_file))
        assert list(work_dir.iterdir()) == []

    async def test_temp_dir_removed_on_failure(self, clip_file, work_dir):
        extractor = ContinuityExtractor(runner=FakeRunner(ffmpeg_code=1), work_dir=work_dir)
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(clip_file))
        assert list(work_dir.iterdir()) == []

    async def test_unusable_work_dir(self, clip_file, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        runner = FakeRunner()
        extractor = ContinuityExtractor(runner=runner, work_dir=blocker / "frames")

        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(clip_file))
        with pytest.raises(ImageLoadError):
            await extractor.measure_duration(str(clip_file))
        assert runner.commands == []

    async def test_missing_file(self, tmp_path, work_dir):
        extractor = ContinuityExtractor(runner=FakeRunner(), work_dir=work_dir)
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(tmp_path / "nope.mp4"))

    async def test_download_failure(self, router, work_dir):
        router.add("GET", "/clip1.mp4", httpx.Response(404))
        extractor = ContinuityExtractor(runner=FakeRunner(), work_dir=work_dir, transport=router.transport())
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame("https://cdn.test/clip1.mp4")

    @pytest.mark.parametrize("output", ["", "N/A", "0"])
    async def test_unusable_duration(self, clip_file, work_dir, output):
        extractor = ContinuityExtractor(runner=FakeRunner(duration=output), work_dir=work_dir)
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(clip_file))

    async def test_ffmpeg_missing(self, clip_file, work_dir):
        async def missing(cmd, timeout):
            raise FileNotFoundError(cmd[0])

        extractor = ContinuityExtractor(runner=missing, work_dir=work_dir)
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(clip_file))

    async def test_subprocess_timeout(self, clip_file, work_dir):
        async def hangs(cmd, timeout):
            raise subprocess.TimeoutExpired(cmd, timeout)

        extractor = ContinuityExtractor(runner=hangs, work_dir=work_dir)
        with pytest.raises(ImageLoadError):
            await extractor.extract_last_frame(str(clip_file))


class TestMeasureDuration:
    async def test_measure(self, clip_file, work_dir):
        runner = FakeRunner(duration="5.5\n")
        extractor = ContinuityExtractor(runner=runner, work_dir=work_dir)
        assert await extractor.measure_duration(str(clip_file)) == 5.5
        assert [c[0] for c in runner.commands] == ["ffprobe"]


class TestFromConfig:
    def test_settings_applied(self, tmp_path):
        config = ContinuityConfig(frame_offset_seconds=0.2, jpeg_quality=90, work_dir=str(tmp_path))
        extractor = ContinuityExtractor.from_config(config)
        assert extractor.frame_offset_seconds == 0.2
        assert extractor.jpeg_quality == 90
        assert extractor.work_dir == tmp_path
