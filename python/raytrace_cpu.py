"""
CPU Whitted-style ray tracer for spheres lit by ambient, point and directional lights.
Supports shadows, Phong highlights and recursive mirror reflections.
"""
import argparse
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from PIL import Image
from typing import Callable, Tuple, Optional, NamedTuple, Sequence, List, Dict, Any
from scene import (
    Sphere, Scene, Camera, Viewport, AmbientLight, PointLight, DirectionalLight, NO_SPECULAR,
    load_scene, validate_scene, default_scene_data, build_scene, build_camera, build_viewport,
)

Vector = Tuple[float, float, float]
Matrix = Tuple[Vector, Vector, Vector]

INF = math.inf
DEFAULT_RECURSION_DEPTH = 3
# Lower t bound for shadow and reflection rays so a surface doesn't hit itself
EPSILON = 0.001


# IEEE float helpers: degenerate input yields NaN/Infinity instead of raising
def _div(a: float, b: float) -> float:
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(INF, a) * math.copysign(1.0, b)

def _pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return INF


# Vector math utilities
def add(a: Vector, b: Vector) -> Vector:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])

def sub(a: Vector, b: Vector) -> Vector:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])

def mul(a: Vector, s: float) -> Vector:
    return (a[0] * s, a[1] * s, a[2] * s)

def dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]

def length(v: Vector) -> float:
    return math.sqrt(dot(v, v))

def norm(v: Vector) -> Vector:
    # No zero-length guard: a zero vector normalizes to NaNs
    return mul(v, _div(1.0, length(v)))

def mat_mul(m: Matrix, v: Vector) -> Vector:
    """Row-major 3x3 matrix times column vector."""
    return (dot(m[0], v), dot(m[1], v), dot(m[2], v))

def reflect(r: Vector, n: Vector) -> Vector:
    """Reflect r about the unit normal n: 2<N,R>N - R."""
    return sub(mul(n, 2.0 * dot(n, r)), r)


# Ray intersection
class Hit(NamedTuple):
    sphere: Sphere
    t: float


def intersect_ray_sphere(origin: Vector, direction: Vector, sphere: Sphere) -> Tuple[float, float]:
    """Both roots of |O + tD - C|^2 = r^2, or (inf, inf) when the ray misses.

    The first root takes +sqrt(disc). Roots are not ordered by distance.
    """
    oc = sub(origin, sphere.center)
    k1 = dot(direction, direction)
    k2 = 2.0 * dot(oc, direction)
    k3 = dot(oc, oc) - sphere.radius * sphere.radius
    disc = k2 * k2 - 4 * k1 * k3

    if disc < 0:
        return INF, INF

    sdisc = math.sqrt(disc)
    denom = 2 * k1
    return _div(-k2 + sdisc, denom), _div(-k2 - sdisc, denom)

def closest_intersection(origin: Vector, direction: Vector, t_min: float, t_max: float,
                         spheres: Sequence[Sphere]) -> Optional[Hit]:
    """Nearest sphere hit with t strictly inside (t_min, t_max), or None."""
    closest_t = INF
    closest_sphere = None
    for sphere in spheres:
        for t in intersect_ray_sphere(origin, direction, sphere):
            if t_min < t < t_max and t < closest_t:
                closest_t = t
                closest_sphere = sphere

    if closest_sphere is None:
        return None
    return Hit(closest_sphere, closest_t)


# Lighting
def compute_lighting(scene: Scene, point: Vector, normal: Vector, view: Vector,
                     specular: float) -> float:
    """
    Total light intensity reaching point: ambient plus diffuse and specular
    terms of every unshadowed point/directional light. The sum is not clamped.

    Args:
        scene: Scene providing lights and occluding spheres
        point: Surface point
        normal: Unit surface normal at point
        view: Vector from point back towards the viewer
        specular: Phong exponent, or NO_SPECULAR to skip highlights
    """
    intensity = 0.0
    for light in scene.lights:
        match light:
            case AmbientLight():
                intensity += light.intensity
                continue
            case PointLight():
                l = sub(light.position, point)
                # Occluders beyond the light itself (t >= 1) don't cast shadows
                t_max = 1.0
            case DirectionalLight():
                l = light.direction
                t_max = INF
            case _:
                raise TypeError(f"Unsupported light: {light!r}")

        # Shadow check
        if closest_intersection(point, l, EPSILON, t_max, scene.spheres) is not None:
            continue

        # Diffuse
        n_dot_l = dot(normal, l)
        if n_dot_l > 0:
            intensity += light.intensity * _div(n_dot_l, length(normal) * length(l))

        # Specular
        if specular != NO_SPECULAR:
            r = reflect(l, normal)
            r_dot_v = dot(r, view)
            if r_dot_v > 0:
                intensity += light.intensity * _pow(_div(r_dot_v, length(r) * length(view)), specular)

    return intensity


def trace_ray(scene: Scene, origin: Vector, direction: Vector, t_min: float, t_max: float,
              depth: int = DEFAULT_RECURSION_DEPTH) -> Vector:
    """
    Color seen along a ray, blending in mirror reflections up to depth bounces.

    Args:
        scene: Scene to trace through
        origin: Ray origin
        direction: Ray direction (need not be normalized)
        t_min, t_max: Open interval of accepted hit distances
        depth: Remaining reflection bounces
    """
    hit = closest_intersection(origin, direction, t_min, t_max, scene.spheres)
    if hit is None:
        return scene.background_color

    sphere, t = hit
    point = add(origin, mul(direction, t))
    normal = norm(sub(point, sphere.center))
    view = mul(direction, -1.0)
    local_color = mul(sphere.color, compute_lighting(scene, point, normal, view, sphere.specular))

    r = sphere.reflective
    if depth <= 0 or r <= 0:
        return local_color

    reflected_dir = reflect(view, normal)
    reflected_color = trace_ray(scene, point, reflected_dir, EPSILON, INF, depth - 1)
    return add(mul(local_color, 1 - r), mul(reflected_color, r))


# Frame rendering
PixelSink = Callable[[int, int, Vector], None]


def canvas_to_viewport(x: int, y: int, viewport: Viewport, width: int, height: int) -> Vector:
    """Map a centered canvas coordinate onto the projection plane."""
    return (x * viewport.width / width, y * viewport.height / height, viewport.depth)

def render_frame(scene: Scene, camera: Camera, viewport: Viewport, width: int, height: int,
                 emit_pixel: PixelSink, depth: int = DEFAULT_RECURSION_DEPTH,
                 workers: Optional[int] = None,
                 cancel: Optional[threading.Event] = None) -> int:
    """
    Trace one primary ray per pixel and hand each color to emit_pixel(x, y, color).

    Coordinates are centered: x in [-width//2, width//2), y in [-height//2, height//2),
    y pointing up. Columns are traced on a thread pool; pixels are emitted on the
    calling thread, column by column in x order. Setting cancel stops the render
    between columns.

    Returns:
        Number of pixels emitted
    """
    hw = width // 2
    hh = height // 2

    def cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    def trace_column(x: int) -> Optional[List[Vector]]:
        if cancelled():
            return None
        column = []
        for y in range(-hh, hh):
            direction = mat_mul(camera.rotation, canvas_to_viewport(x, y, viewport, width, height))
            column.append(trace_ray(scene, camera.position, direction, 1.0, INF, depth))
        return column

    print(f"Rendering {width}x{height} image with recursion depth {depth}...")

    emitted = 0
    with ThreadPoolExecutor(max_workers=workers) as executor:
        columns = [(x, executor.submit(trace_column, x)) for x in range(-hw, hw)]
        for i, (x, future) in enumerate(columns):
            if i % 50 == 0:
                print(f"Progress: {i}/{width} ({100*i//width}%)")
            if cancelled():
                break
            column = future.result()
            if column is None:
                break
            for y, color in zip(range(-hh, hh), column):
                emit_pixel(x, y, color)
                emitted += 1

    if cancelled():
        print(f"Render cancelled after {emitted} pixels")
    return emitted


def to_byte(c: float) -> int:
    """Clamp and round one color channel to 0..255 (NaN becomes 0)."""
    if math.isnan(c):
        return 0
    return int(round(max(0.0, min(255.0, c))))


class ImageSink:
    """Pillow RGB image addressed with centered canvas coordinates."""

    def __init__(self, width: int, height: int, background: Vector = (0.0, 0.0, 0.0)):
        self.width = width
        self.height = height
        self.image = Image.new("RGB", (width, height), tuple(to_byte(c) for c in background))
        self._pix = self.image.load()

    def __call__(self, x: int, y: int, color: Vector) -> None:
        # Canvas origin is top left, y down
        px = self.width // 2 + x
        py = self.height // 2 - y - 1
        self._pix[px, py] = (to_byte(color[0]), to_byte(color[1]), to_byte(color[2]))

    def save(self, output_path: str) -> None:
        self.image.save(output_path)


def render(scene_data: Dict[str, Any], output_path: str = "render.png",
           workers: Optional[int] = None) -> ImageSink:
    """Main rendering function."""
    scene = build_scene(scene_data)
    camera = build_camera(scene_data)
    viewport = build_viewport(scene_data)

    render_settings = scene_data.get("render", {})
    W = render_settings.get("width", 600)
    H = render_settings.get("height", 600)
    depth = render_settings.get("recursion_depth", DEFAULT_RECURSION_DEPTH)
    if workers is None:
        workers = render_settings.get("workers")

    sink = ImageSink(W, H, scene.background_color)
    render_frame(scene, camera, viewport, W, H, sink, depth=depth, workers=workers)

    sink.save(output_path)
    print(f"Saved {output_path}")
    return sink


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a sphere scene with recursive reflections")
    parser.add_argument("--scene", help="Scene JSON file (default: scene.json, else the built-in scene)")
    parser.add_argument("--output", help="Output PNG path (default: timestamped file under renders/)")
    parser.add_argument("--width", type=int, help="Image width in pixels")
    parser.add_argument("--height", type=int, help="Image height in pixels")
    parser.add_argument("--depth", type=int, help="Reflection recursion depth")
    parser.add_argument("--workers", type=int, help="Worker threads (default: executor default)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> str:
    import os
    from datetime import datetime

    args = parse_arguments(argv)

    scene_path = args.scene
    if scene_path is None:
        # Try to find scene.json in parent directory or current directory
        scene_path = "../scene.json" if os.path.exists("../scene.json") else "scene.json"
        if not os.path.exists(scene_path):
            scene_path = None
    scene_data = load_scene(scene_path) if scene_path else default_scene_data()
    validate_scene(scene_data)

    render_settings = scene_data.setdefault("render", {})
    for key, value in (("width", args.width), ("height", args.height), ("recursion_depth", args.depth)):
        if value is not None:
            render_settings[key] = value

    output_path = args.output
    if output_path is None:
        renders_dir = "renders"
        os.makedirs(renders_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = (f"render_{timestamp}_d{render_settings.get('recursion_depth', DEFAULT_RECURSION_DEPTH)}"
                    f"_s{len(scene_data['spheres'])}_l{len(scene_data['lights'])}"
                    f"_{render_settings.get('width', 600)}x{render_settings.get('height', 600)}.png")
        output_path = os.path.join(renders_dir, filename)

    render(scene_data, output_path, workers=args.workers)
    return output_path


if __name__ == "__main__":
    main()
