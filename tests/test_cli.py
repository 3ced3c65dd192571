import cv2
import pytest
import typer
from typer.testing import CliRunner

from framelabel import Box, import_frames
from framelabel.cli import app, default_output, parse_box
from framelabel.media import AnnotationWriter, list_image_files, load_frame_sources

runner = CliRunner()


@pytest.fixture
def frame_dir(tmp_path, moving_square):
    folder = tmp_path / "clip"
    folder.mkdir()
    for i, img in enumerate(moving_square()):
        cv2.imwrite(str(folder / f"image{i + 1}.png"), img)
    (folder / "notes.txt").write_text("not a frame", encoding="utf-8")
    return folder


def _read_rows(path):
    return [line.rstrip("\n").split("\t") for line in path.read_text(encoding="utf-8").splitlines()]


def test_list_image_files_natural_order(tmp_path, make_frame):
    for name in ("image10.png", "image2.png", "image1.png"):
        cv2.imwrite(str(tmp_path / name), make_frame(width=8, height=8))
    assert [p.name for p in list_image_files(tmp_path)] == ["image1.png", "image2.png", "image10.png"]


def test_load_frame_sources_step_and_limit(frame_dir):
    assert [p.name for p in load_frame_sources(frame_dir, step=2)] == ["image1.png", "image3.png", "image5.png"]
    assert len(load_frame_sources(frame_dir, max_frames=2)) == 2
    with pytest.raises(ValueError):
        load_frame_sources(frame_dir, step=0)


def test_annotation_writer_format(tmp_path, make_frame):
    store = import_frames([make_frame(), make_frame()])
    store.add_box(1, Box(position=(0.25, 0.5, 0.125, 0.25), color=(0, 255, 0, 255), label="car", identity="A"))
    out = tmp_path / "nested" / "out.annotations"
    writer = AnnotationWriter(out)
    writer.write_store(store)
    writer.close()
    assert writer.count == 1
    assert _read_rows(out) == [
        ["1", "A", "car", "0.250000", "0.500000", "0.125000", "0.250000", "0", "255", "0", "255"]
    ]


def test_parse_box():
    assert parse_box("100,100,50,50") == (100, 100, 50, 50)
    assert parse_box("1 2 3.6 4") == (1, 2, 4, 4)
    for bad in ("1,2,3", "a,b,c,d", "0,0,0,5"):
        with pytest.raises(typer.BadParameter):
            parse_box(bad)


def test_default_output(tmp_path, frame_dir):
    assert default_output(frame_dir) == tmp_path / "clip.annotations"
    assert default_output(tmp_path / "video.mp4") == tmp_path / "video.annotations"


def test_cli_tracks_directory(frame_dir, tmp_path):
    out = tmp_path / "out.annotations"
    result = runner.invoke(app, [str(frame_dir), "--box", "100,100,50,50", "--label", "car", "--out", str(out)])
    assert result.exit_code == 0, result.output
    rows = _read_rows(out)
    assert [r[0] for r in rows] == ["0", "1", "2", "3", "4"]
    assert len({r[1] for r in rows}) == 1
    assert {r[2] for r in rows} == {"car"}
    assert float(rows[-1][3]) * 640 == pytest.approx(120, abs=3)


def test_cli_two_boxes_cycle_presets(frame_dir, tmp_path):
    out = tmp_path / "out.annotations"
    result = runner.invoke(
        app,
        [str(frame_dir), "--box", "100,100,50,50", "--box", "400,300,20,20", "--out", str(out)],
    )
    assert result.exit_code == 0, result.output
    labels = {r[2] for r in _read_rows(out) if r[0] == "0"}
    assert labels == {"label1", "label2"}


def test_cli_rejects_bad_input(frame_dir, tmp_path):
    assert runner.invoke(app, [str(frame_dir), "--box", "1,2,3"]).exit_code != 0
    assert runner.invoke(app, [str(tmp_path / "missing.mp4"), "--box", "1,2,3,4"]).exit_code == 1
    assert runner.invoke(app, [str(frame_dir), "--box", "1,2,3,4", "--frame", "9"]).exit_code == 1
