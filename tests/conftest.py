import pytest

CUBE_OBJ = """# unit cube, quad faces
o cube
v -1 -1 -1
v  1 -1 -1
v  1  1 -1
v -1  1 -1
v -1 -1  1
v  1 -1  1
v  1  1  1
v -1  1  1
vn 0 0 1
f 1 2 3 4
f 5 8 7 6
f 1 5 6 2
f 2 6 7 3
f 3 7 8 4
f 5 1 4 8
"""


def box_obj(x, y, z):
    """OBJ text for an axis-aligned box spanning [0, x] × [0, y] × [0, z]."""
    verts = [(0, 0, 0), (x, 0, 0), (x, y, 0), (0, y, 0),
             (0, 0, z), (x, 0, z), (x, y, z), (0, y, z)]
    lines = [f"v {a} {b} {c}" for a, b, c in verts]
    lines += ["f 1 2 3 4", "f 5 8 7 6", "f 1 5 6 2",
              "f 2 6 7 3", "f 3 7 8 4", "f 5 1 4 8"]
    return "\n".join(lines) + "\n"


@pytest.fixture
def cube_obj():
    return CUBE_OBJ


@pytest.fixture
def make_box_obj():
    return box_obj
