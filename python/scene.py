"""Scene model plus loading and validation from scene.json"""
import json
from dataclasses import dataclass
from typing import Dict, List, Tuple, Any, Union

Vector = Tuple[float, float, float]
Matrix = Tuple[Vector, Vector, Vector]

# Specular exponent sentinel: the surface has no highlight
NO_SPECULAR = -1

LIGHT_TYPES = ("ambient", "point", "directional")


@dataclass(frozen=True)
class Sphere:
    center: Vector
    radius: float
    color: Vector
    specular: float = NO_SPECULAR
    reflective: float = 0.0


@dataclass(frozen=True)
class AmbientLight:
    intensity: float


@dataclass(frozen=True)
class PointLight:
    intensity: float
    position: Vector


@dataclass(frozen=True)
class DirectionalLight:
    intensity: float
    direction: Vector


Light = Union[AmbientLight, PointLight, DirectionalLight]


@dataclass(frozen=True)
class Scene:
    """Immutable spheres and lights shared by every tracing call of a render."""
    spheres: Tuple[Sphere, ...]
    lights: Tuple[Light, ...]
    background_color: Vector = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Camera:
    position: Vector
    rotation: Matrix


@dataclass(frozen=True)
class Viewport:
    width: float = 1.0
    height: float = 1.0
    depth: float = 1.0


def load_scene(json_path: str = "scene.json") -> Dict[str, Any]:
    """Load scene configuration from JSON file."""
    with open(json_path, 'r') as f:
        return json.load(f)


def default_scene_data() -> Dict[str, Any]:
    """Reference scene: four coloured spheres on a huge yellow one, three lights."""
    return {
        "viewport": {"width": 1, "height": 1, "depth": 1},
        "camera": {
            "position": [3, 0, 1],
            "rotation": [
                [0.7071, 0, -0.7071],
                [0, 1, 0],
                [0.7071, 0, 0.7071],
            ],
        },
        "background_color": [0, 0, 0],
        "lights": [
            {"type": "ambient", "intensity": 0.2},
            {"type": "point", "intensity": 0.6, "position": [2, 1, 0]},
            {"type": "directional", "intensity": 0.2, "direction": [1, 4, 4]},
        ],
        "spheres": [
            {"center": [0, -1, 3], "radius": 1, "color": [255, 0, 0], "specular": 500, "reflective": 0.2},
            {"center": [2, 0, 4], "radius": 1, "color": [0, 0, 255], "specular": 500, "reflective": 0.3},
            {"center": [-2, 0, 4], "radius": 1, "color": [0, 255, 0], "specular": 10, "reflective": 0.4},
            {"center": [0, -5001, 0], "radius": 5000, "color": [255, 255, 0], "specular": 1000, "reflective": 0.5},
            {"center": [0, 2, 6], "radius": 1, "color": [255, 0, 255], "specular": NO_SPECULAR, "reflective": 0.5},
        ],
        "render": {"width": 600, "height": 600, "recursion_depth": 3},
    }


def _is_vec3(v: Any) -> bool:
    return isinstance(v, (list, tuple)) and len(v) == 3


def validate_scene(scene: Dict[str, Any]) -> None:
    """Basic validation of scene structure.

    Only the shape of the document is checked. Values such as a negative
    radius or a zero-length direction are accepted and show up as NaN or
    Infinity in the rendered colors.
    """
    assert "camera" in scene, "Scene must have camera"
    assert "spheres" in scene, "Scene must have spheres"
    assert "lights" in scene, "Scene must have lights"

    # Validate camera
    cam = scene["camera"]
    assert "position" in cam and _is_vec3(cam["position"]), "Camera position must be a 3-vector"
    assert "rotation" in cam and len(cam["rotation"]) == 3, "Camera rotation must be a 3x3 matrix"
    assert all(_is_vec3(row) for row in cam["rotation"]), "Camera rotation must be a 3x3 matrix"

    if "viewport" in scene:
        vp = scene["viewport"]
        assert all(k in vp for k in ("width", "height", "depth")), "Viewport needs width, height and depth"

    if "background_color" in scene:
        assert _is_vec3(scene["background_color"]), "Background color must have 3 channels"

    # Validate spheres
    for i, sphere in enumerate(scene["spheres"]):
        assert "center" in sphere and _is_vec3(sphere["center"]), f"Sphere {i} center must be a 3-vector"
        assert "radius" in sphere, f"Sphere {i} must have radius"
        assert "color" in sphere and _is_vec3(sphere["color"]), f"Sphere {i} color must have 3 channels"

    # Validate lights
    for i, light in enumerate(scene["lights"]):
        assert light.get("type") in LIGHT_TYPES, f"Light {i} has unknown type {light.get('type')!r}"
        assert "intensity" in light, f"Light {i} must have intensity"
        if light["type"] == "point":
            assert "position" in light and _is_vec3(light["position"]), f"Point light {i} needs a position"
        elif light["type"] == "directional":
            assert "direction" in light and _is_vec3(light["direction"]), f"Directional light {i} needs a direction"

    print("Scene validation passed!")


def _vec(v: List[float]) -> Vector:
    return (float(v[0]), float(v[1]), float(v[2]))


def build_light(light: Dict[str, Any]) -> Light:
    kind = light["type"]
    intensity = float(light["intensity"])
    if kind == "ambient":
        return AmbientLight(intensity)
    if kind == "point":
        return PointLight(intensity, _vec(light["position"]))
    if kind == "directional":
        return DirectionalLight(intensity, _vec(light["direction"]))
    raise ValueError(f"Unknown light type: {kind!r}")


def build_scene(scene_data: Dict[str, Any]) -> Scene:
    """Convert a validated scene dict into the immutable model."""
    spheres = tuple(
        Sphere(
            center=_vec(s["center"]),
            radius=float(s["radius"]),
            color=_vec(s["color"]),
            specular=float(s.get("specular", NO_SPECULAR)),
            reflective=float(s.get("reflective", 0.0)),
        )
        for s in scene_data["spheres"]
    )
    lights = tuple(build_light(light) for light in scene_data["lights"])
    background = _vec(scene_data.get("background_color", [0, 0, 0]))
    return Scene(spheres, lights, background)


def build_camera(scene_data: Dict[str, Any]) -> Camera:
    cam = scene_data["camera"]
    rotation = tuple(_vec(row) for row in cam["rotation"])
    return Camera(_vec(cam["position"]), rotation)


def build_viewport(scene_data: Dict[str, Any]) -> Viewport:
    vp = scene_data.get("viewport", {})
    return Viewport(
        float(vp.get("width", 1.0)),
        float(vp.get("height", 1.0)),
        float(vp.get("depth", 1.0)),
    )
