import threading

import pytest
from PIL import Image

from raytrace_cpu import (
    ImageSink, canvas_to_viewport, main, render, render_frame, to_byte,
)
from scene import (
    AmbientLight, Camera, Scene, Sphere, Viewport,
    build_camera, build_scene, build_viewport, default_scene_data,
)

IDENTITY = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
RED = (255.0, 0.0, 0.0)


class RecordingSink:
    def __init__(self):
        self.pixels = []

    def __call__(self, x, y, color):
        self.pixels.append((x, y, color))

    def colors(self):
        return {(x, y): color for x, y, color in self.pixels}


def red_sphere_scene(center):
    sphere = Sphere(center=center, radius=1.0, color=RED)
    return Scene(spheres=(sphere,), lights=(AmbientLight(1.0),))


def test_canvas_to_viewport():
    assert canvas_to_viewport(4, -2, Viewport(1.0, 1.0, 1.0), 8, 8) == (0.5, -0.25, 1.0)
    assert canvas_to_viewport(4, 4, Viewport(2.0, 1.0, 3.0), 8, 16) == (1.0, 0.25, 3.0)


def test_every_pixel_emitted_in_column_order():
    sink = RecordingSink()
    scene = Scene(spheres=(), lights=())
    count = render_frame(scene, Camera((0.0, 0.0, 0.0), IDENTITY), Viewport(), 4, 6, sink)
    assert count == 24
    assert [(x, y) for x, y, _ in sink.pixels] == [(x, y) for x in range(-2, 2) for y in range(-3, 3)]
    assert all(color == scene.background_color for _, _, color in sink.pixels)


def test_centre_pixel_looks_down_camera_axis():
    sink = RecordingSink()
    scene = red_sphere_scene((0.0, 0.0, 5.0))
    render_frame(scene, Camera((0.0, 0.0, 0.0), IDENTITY), Viewport(), 4, 4, sink)
    colors = sink.colors()
    assert colors[(0, 0)] == RED
    assert colors[(-2, -2)] == (0.0, 0.0, 0.0)


def test_camera_rotation_turns_rays():
    turn_around = ((-1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, -1.0))
    sink = RecordingSink()
    scene = red_sphere_scene((0.0, 0.0, -5.0))
    render_frame(scene, Camera((0.0, 0.0, 0.0), turn_around), Viewport(), 4, 4, sink)
    assert sink.colors()[(0, 0)] == RED


def test_parallel_render_matches_single_worker():
    data = default_scene_data()
    scene, camera, viewport = build_scene(data), build_camera(data), build_viewport(data)
    single, parallel = RecordingSink(), RecordingSink()
    render_frame(scene, camera, viewport, 12, 10, single, workers=1)
    render_frame(scene, camera, viewport, 12, 10, parallel, workers=4)
    assert single.pixels == parallel.pixels
    # Lower half of the frame sees the lit ground sphere
    assert any(color != (0.0, 0.0, 0.0) for _, _, color in single.pixels)


def test_cancel_before_start_emits_nothing():
    cancel = threading.Event()
    cancel.set()
    sink = RecordingSink()
    scene = red_sphere_scene((0.0, 0.0, 5.0))
    count = render_frame(scene, Camera((0.0, 0.0, 0.0), IDENTITY), Viewport(), 8, 8, sink, cancel=cancel)
    assert count == 0
    assert sink.pixels == []


def test_cancel_stops_between_columns():
    cancel = threading.Event()
    sink = RecordingSink()

    def cancelling_sink(x, y, color):
        sink(x, y, color)
        cancel.set()

    scene = red_sphere_scene((0.0, 0.0, 5.0))
    count = render_frame(scene, Camera((0.0, 0.0, 0.0), IDENTITY), Viewport(), 8, 6,
                         cancelling_sink, workers=2, cancel=cancel)
    assert count == 6
    assert {x for x, _, _ in sink.pixels} == {-4}


@pytest.mark.parametrize("value,expected", [
    (0.0, 0), (10.4, 10), (10.6, 11), (255.0, 255), (300.0, 255), (-5.0, 0),
    (float("inf"), 255), (float("-inf"), 0), (float("nan"), 0),
])
def test_to_byte(value, expected):
    assert to_byte(value) == expected


def test_image_sink_maps_centered_coordinates():
    sink = ImageSink(4, 4, background=(0.0, 0.0, 9.0))
    sink(0, 0, (300.0, -5.0, float("nan")))
    sink(-2, 1, (10.4, 10.6, 0.0))
    sink(1, -2, (1.0, 2.0, 3.0))
    assert sink.image.getpixel((2, 1)) == (255, 0, 0)
    assert sink.image.getpixel((0, 0)) == (10, 11, 0)
    assert sink.image.getpixel((3, 3)) == (1, 2, 3)
    assert sink.image.getpixel((1, 1)) == (0, 0, 9)


def test_render_writes_png(tmp_path):
    data = default_scene_data()
    data["render"] = {"width": 8, "height": 6, "recursion_depth": 1}
    output = tmp_path / "frame.png"
    render(data, str(output), workers=2)
    with Image.open(output) as img:
        assert img.size == (8, 6)
        assert img.mode == "RGB"


def test_main_with_overrides(tmp_path, capsys):
    output = tmp_path / "cli.png"
    scene_path = tmp_path / "scene.json"
    scene_path.write_text('{"camera": {"position": [0, 0, 0], "rotation": [[1, 0, 0], [0, 1, 0], [0, 0, 1]]},'
                          ' "spheres": [{"center": [0, 0, 5], "radius": 1, "color": [255, 0, 0]}],'
                          ' "lights": [{"type": "ambient", "intensity": 1}]}')
    result = main(["--scene", str(scene_path), "--output", str(output),
                   "--width", "4", "--height", "4", "--depth", "0"])
    assert result == str(output)
    with Image.open(output) as img:
        assert img.size == (4, 4)
        assert img.getpixel((2, 1)) == (255, 0, 0)
    assert f"Saved {output}" in capsys.readouterr().out
