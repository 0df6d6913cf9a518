"""
Shared test fixtures for the component toolpath engine.
"""
import sys
import warnings
from pathlib import Path

# Suppress trimesh internal RuntimeWarning for degenerate cross-sections
# (divide-by-zero when a slice grazes an apex or pole).
warnings.filterwarnings(
    "ignore",
    message="invalid value encountered in divide",
    category=RuntimeWarning,
    module=r"trimesh\..*",
)

import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from component_cam.contracts import (
    Component,
    CrossSection,
    Element,
    EngineConfig,
    Loop,
    ToolpathSettings,
    Transform,
)
from component_cam.polygons import circle_ring, rect_ring


def make_element(element_id, element_type, x=0.0, y=0.0, z=0.0, rotation=(0.0, 0.0, 0.0), **params):
    return Element(
        id=element_id,
        type=element_type,
        params=params,
        transform=Transform(position=(x, y, z), rotation_deg=rotation),
    )


@pytest.fixture
def engine_config():
    return EngineConfig()


@pytest.fixture
def fallback_config():
    """Config whose boolean engine does not exist, forcing the fallback path."""
    return EngineConfig(boolean_engine="no_such_engine")


@pytest.fixture
def settings():
    """10 mm deep, 1 mm stepdown, 6 mm tool, Fanuc metric absolute."""
    return ToolpathSettings(
        tool_diameter=6.0,
        depth=10.0,
        stepdown=1.0,
        feedrate=800.0,
        plungerate=300.0,
        offset="outside",
        direction="climb",
        controller="fanuc",
        safe_height=30.0,
    )


@pytest.fixture
def cone_sphere_component():
    """Cone (r15 h30) at x=-20 and sphere (r15) at x=+20; top face at z=15."""
    return Component(
        id="assembly",
        name="cone_and_sphere",
        elements=[
            make_element("cone", "cone", x=-20.0, radius=15.0, height=30.0),
            make_element("ball", "sphere", x=20.0, radius=15.0),
        ],
    )


@pytest.fixture
def two_spheres_component():
    """Two separated spheres (r10) at x=-25 and x=+40."""
    return Component(
        id="spheres",
        name="two_spheres",
        elements=[
            make_element("left", "sphere", x=-25.0, radius=10.0),
            make_element("right", "sphere", x=40.0, radius=10.0),
        ],
    )


@pytest.fixture
def box_component():
    """A single 40x20x10 cube centred at the origin."""
    return Component(
        id="box",
        elements=[make_element("block", "cube", width=40.0, depth=20.0, height=10.0)],
    )


@pytest.fixture
def square_section():
    """One level with a 10x10 square loop centred at (15, 15)."""
    return CrossSection(
        level_index=0,
        z=-1.0,
        z_world=9.0,
        loops=[Loop(points=rect_ring((15.0, 15.0), 10.0, 10.0))],
    )


@pytest.fixture
def circle_loop():
    """Outer circular loop, radius 20, centred at the origin."""
    return Loop(points=circle_ring((0.0, 0.0), 20.0, 64))


@pytest.fixture
def ring_mesh():
    """A 10 mm tall tube (outer r10, inner r5) spanning z 0..10."""
    from shapely.geometry import Point

    annulus = Point(0, 0).buffer(10.0, 64).difference(Point(0, 0).buffer(5.0, 64))
    return trimesh.creation.extrude_polygon(annulus, 10.0)
