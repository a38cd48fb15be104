"""Click CLI commands for cityscene."""

import asyncio
import logging
import pathlib

import click
import numpy as np

from .builder import SceneSession
from .errors import CitySceneError
from .geojson import load_features
from .models import BoundingBox, GeoPoint, PathManager
from .obj import geometry_info
from .selection import clamp_region
from .viewer import MeshViewer, ViewPreset

logger = logging.getLogger(__name__)


def _fmt(vec) -> str:
    return "(" + ", ".join(f"{v:.3f}" for v in np.asarray(vec, dtype=float)) + ")"


@click.group()
def cli():
    """cityscene CLI: 3D scenes from map features and OBJ meshes."""
    pass


@cli.command()
@click.argument('geojson', type=click.Path(exists=True, dir_okay=False))
@click.argument('west', type=float)
@click.argument('south', type=float)
@click.argument('east', type=float)
@click.argument('north', type=float)
@click.option('--output', '-o', default='scene.glb', help='Output GLB or OBJ file path')
def scene(geojson: str, west: float, south: float, east: float, north: float, output: str):
    """Build a centered 3D scene from a GeoJSON file and a bounding box."""
    try:
        region = BoundingBox(west=west, south=south, east=east, north=north)
        asyncio.run(async_scene(geojson, region, output))
    except (CitySceneError, ValueError, TypeError, OSError) as e:
        logger.error(f"Error building scene: {e}")
        raise click.ClickException(str(e))


async def async_scene(geojson: str, region: BoundingBox, output: str):
    """Async helper: runs the decoded file through the session like a fetch."""
    # decode up front so a bad file is reported, not treated as an empty fetch
    features = load_features(geojson)

    async def _fetch(_region):
        return features

    session = SceneSession(_fetch)
    frame = await session.process_region(region)
    if frame is None:
        click.echo("No buildings in region; nothing to export.")
        return

    path = session.scene.export(PathManager.get_output_path(output))
    click.echo(f"Scene generation {frame.generation}:")
    for layer, count in frame.counts.items():
        click.echo(f"  {layer}: {count}")
    click.echo(f"Camera distance: {frame.camera_distance:.2f}")
    click.echo(f"Written: {path}")


@cli.command()
@click.argument('mesh', type=click.Path(exists=True, dir_okay=False))
@click.option('--rotate', nargs=3, type=float, default=(0.0, 0.0, 0.0),
              help='Rotation in degrees about X, Y, Z')
@click.option('--ground', is_flag=True, help='Center horizontally and drop onto y=0')
@click.option('--preset', type=click.Choice([p.value for p in ViewPreset]),
              default=ViewPreset.DEFAULT.value, help='Camera view preset')
@click.option('--output', '-o', default=None, help='Optional GLB output path')
def view(mesh: str, rotate, ground: bool, preset: str, output):
    """Load an OBJ mesh, pose it, and report geometry and camera."""
    viewer = MeshViewer()
    try:
        viewer.set_rotation(*rotate)
        viewer.load_mesh(pathlib.Path(mesh).read_text())
        if ground:
            viewer.center_and_ground()
        camera = viewer.apply_view_preset(preset)

        info = geometry_info(viewer.mesh)
        click.echo(f"Vertices: {info['vertices']}  Triangles: {info['faces']}")
        click.echo(f"Local bounds: {_fmt(info['bounds']['min'])} .. {_fmt(info['bounds']['max'])}")
        lo, hi = viewer.world_bounds()
        click.echo(f"World bounds: {_fmt(lo)} .. {_fmt(hi)}")
        click.echo(f"Camera: position={_fmt(camera.position)} target={_fmt(camera.target)} "
                   f"near={camera.near:.3f} far={camera.far:.1f}")

        if output:
            path = PathManager.get_output_path(output)
            viewer.to_trimesh_scene().export(str(path), file_type='glb')
            click.echo(f"Written: {path}")
    except (CitySceneError, OSError) as e:
        logger.error(f"Error viewing mesh: {e}")
        raise click.ClickException(str(e))
    finally:
        viewer.dispose()


@cli.command()
@click.argument('anchor_lon', type=float)
@click.argument('anchor_lat', type=float)
@click.argument('live_lon', type=float)
@click.argument('live_lat', type=float)
@click.option('--max-side', default=None, type=float, help='Maximum side length in meters')
def clamp(anchor_lon: float, anchor_lat: float, live_lon: float, live_lat: float, max_side):
    """Print the region a drag from ANCHOR to LIVE would select."""
    kwargs = {} if max_side is None else {'max_side': max_side}
    try:
        region = clamp_region(GeoPoint(anchor_lon, anchor_lat),
                              GeoPoint(live_lon, live_lat), **kwargs)
    except CitySceneError as e:
        raise click.ClickException(str(e))
    click.echo(" ".join(f"{v:.7f}" for v in region.as_list()))


if __name__ == '__main__':
    cli()
