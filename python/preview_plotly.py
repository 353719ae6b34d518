"""
Interactive 3D preview of the scene using Plotly.
Helps verify sphere placement, lights and camera orientation before rendering.
"""
import math
import plotly.graph_objects as go
from scene import (
    AmbientLight, PointLight, DirectionalLight,
    load_scene, validate_scene, build_scene, build_camera, build_viewport,
)
from raytrace_cpu import add, mul, norm, mat_mul

def _rgb(color) -> str:
    r, g, b = (max(0, min(255, int(c))) for c in color)
    return f'rgb({r}, {g}, {b})'

def sphere_mesh(center, radius, steps: int = 16):
    """Parametric latitude/longitude grid over a sphere surface."""
    xs, ys, zs = [], [], []
    for i in range(steps + 1):
        theta = math.pi * i / steps
        row_x, row_y, row_z = [], [], []
        for j in range(steps + 1):
            phi = 2 * math.pi * j / steps
            row_x.append(center[0] + radius * math.sin(theta) * math.cos(phi))
            row_y.append(center[1] + radius * math.cos(theta))
            row_z.append(center[2] + radius * math.sin(theta) * math.sin(phi))
        xs.append(row_x)
        ys.append(row_y)
        zs.append(row_z)
    return xs, ys, zs

def create_scene_preview(scene_data: dict, look_distance: float = 3.0):
    """Create interactive 3D plot of scene."""
    fig = go.Figure()

    scene = build_scene(scene_data)
    camera = build_camera(scene_data)
    viewport = build_viewport(scene_data)

    # Spheres
    for i, sphere in enumerate(scene.spheres):
        x, y, z = sphere_mesh(sphere.center, sphere.radius)
        color = _rgb(sphere.color)
        fig.add_trace(go.Surface(
            x=x, y=y, z=z,
            colorscale=[[0, color], [1, color]],
            showscale=False,
            opacity=0.6 if sphere.reflective > 0 else 1.0,
            name=f'Sphere {i+1}'
        ))

    # Lights (ambient light has no position to draw)
    for i, light in enumerate(scene.lights):
        if isinstance(light, PointLight):
            pos = light.position
            fig.add_trace(go.Scatter3d(
                x=[pos[0]], y=[pos[1]], z=[pos[2]],
                mode='markers',
                marker=dict(size=10, color='yellow', symbol='circle'),
                name=f'Point light {i+1} ({light.intensity})'
            ))
        elif isinstance(light, DirectionalLight):
            tip = norm(light.direction)
            fig.add_trace(go.Scatter3d(
                x=[0, tip[0]], y=[0, tip[1]], z=[0, tip[2]],
                mode='lines',
                line=dict(color='orange', width=4),
                name=f'Directional light {i+1} ({light.intensity})'
            ))
        elif not isinstance(light, AmbientLight):
            raise TypeError(f"Unsupported light: {light!r}")

    # Camera
    cam_pos = camera.position
    fig.add_trace(go.Scatter3d(
        x=[cam_pos[0]],
        y=[cam_pos[1]],
        z=[cam_pos[2]],
        mode='markers',
        marker=dict(size=10, color='red', symbol='diamond'),
        name='Camera'
    ))

    # Camera look direction: the rotated ray through the viewport centre
    forward = norm(mat_mul(camera.rotation, (0.0, 0.0, viewport.depth)))
    look_at = add(cam_pos, mul(forward, look_distance))
    fig.add_trace(go.Scatter3d(
        x=[cam_pos[0], look_at[0]],
        y=[cam_pos[1], look_at[1]],
        z=[cam_pos[2], look_at[2]],
        mode='lines',
        line=dict(color='red', width=3, dash='dash'),
        name='Camera Look'
    ))

    fig.update_layout(
        title="Scene Preview (Interactive 3D)",
        scene=dict(
            xaxis_title="X",
            yaxis_title="Y",
            zaxis_title="Z",
            aspectmode='data'
        ),
        width=1000,
        height=800
    )

    return fig

if __name__ == "__main__":
    scene_data = load_scene("../scene.json")
    validate_scene(scene_data)
    fig = create_scene_preview(scene_data)
    fig.show()
