import numpy as np
import pytest
from PIL import Image

from satobs.imaging import (
    aperture_photometry,
    image_levels,
    lfit2d,
    match_catalogs,
    maximum_image,
    read_jpg,
    read_jpg_gray,
    read_pixel_catalog,
    rebin,
    select_nearest,
    stack_images,
    write_jpg,
)


def _save_gray(path, array):
    Image.fromarray(array.astype(np.uint8), mode="L").save(path, format="JPEG", quality=100)


def test_read_jpg_gray_has_one_component(tmp_path):
    path = tmp_path / "g.jpg"
    _save_gray(path, np.full((8, 16), 120))
    data = read_jpg(path)
    assert data.shape == (8, 16, 1)
    assert np.allclose(data, 120, atol=2)


def test_read_jpg_gray_flips_and_divides_by_three(tmp_path):
    path = tmp_path / "g.jpg"
    arr = np.zeros((16, 16))
    arr[:8] = 240  # top half bright
    _save_gray(path, arr)
    gray = read_jpg_gray(path)
    assert gray.shape == (16, 16)
    # bottom row of the picture comes first
    assert gray[0].mean() < gray[-1].mean()
    assert gray[-1].mean() == pytest.approx(240 / 3.0, abs=3)


def test_write_jpg_round_trip(tmp_path):
    path = tmp_path / "c.jpg"
    data = np.zeros((16, 16, 3))
    data[:, :] = (100, 150, 200)
    write_jpg(path, data)
    back = read_jpg(path)
    assert back.shape == (16, 16, 3)
    assert np.allclose(back, data, atol=4)


def test_write_jpg_rejects_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        write_jpg(tmp_path / "x.jpg", np.zeros((4, 4, 2)))


def test_rebin_preserves_total_and_shape():
    data = np.arange(24, dtype=float).reshape(4, 6)
    out = rebin(data, 2)
    assert out.shape == (2, 3)
    assert out.sum() == pytest.approx(data.sum())
    assert out[0, 0] == data[:2, :2].sum()


def test_rebin_drops_edges_and_rejects_zero():
    data = np.ones((5, 7))
    assert rebin(data, 2).shape == (2, 3)
    assert np.array_equal(rebin(data, 1), data)
    with pytest.raises(ValueError):
        rebin(data, 0)


def test_stack_images_average_and_maximum():
    a = np.array([[1.0, 5.0], [3.0, -2.0]])
    b = np.array([[3.0, 1.0], [3.0, -4.0]])
    avg, mx = stack_images([a, b])
    assert np.allclose(avg, (a + b) / 2)
    assert np.array_equal(mx, np.maximum(np.maximum(a, b), 0.0))


def test_stack_images_errors():
    with pytest.raises(ValueError):
        stack_images([])
    with pytest.raises(ValueError):
        stack_images([np.zeros((2, 2)), np.zeros((3, 2))])


def test_maximum_image_never_negative():
    out = maximum_image([np.full((2, 2), -3.0)])
    assert np.array_equal(out, np.zeros((2, 2)))


def test_image_levels_invariants():
    rng = np.random.default_rng(1)
    data = rng.normal(10.0, 2.0, size=(20, 30))
    avg, std, zmin, zmax = image_levels(data, 4.0, 12.0)
    assert avg == pytest.approx(data.mean())
    assert std == pytest.approx(data.std(ddof=1))
    assert zmin == pytest.approx(avg - 4.0 * std)
    assert zmax == pytest.approx(avg + 12.0 * std)


def test_image_levels_needs_two_pixels():
    with pytest.raises(ValueError):
        image_levels(np.ones((1, 1)))


def test_aperture_photometry_constant_image():
    data = np.full((40, 50), 7.0)
    s1, n1, s2, n2, net = aperture_photometry(data, 25.0, 20.0, 5.0, 10.0)
    assert s1 == pytest.approx(7.0 * n1)
    assert s2 == pytest.approx(7.0 * n2)
    assert net == pytest.approx(0.0)
    assert 0 < n1 < n2


def test_aperture_photometry_detects_source():
    data = np.zeros((40, 40))
    data[10, 30] = 100.0  # row is y, column is x
    s1, n1, s2, n2, net = aperture_photometry(data, 30.0, 10.0, 3.0, 6.0)
    assert s1 == pytest.approx(100.0)
    assert s2 == pytest.approx(0.0)
    assert net == pytest.approx(100.0 / n1)


def test_aperture_photometry_empty_annulus():
    with pytest.raises(ValueError):
        aperture_photometry(np.ones((10, 10)), 5.0, 5.0, 3.0, 3.0)


def test_select_nearest():
    xs = [0.0, 10.0, 20.0]
    ys = [0.0, 10.0, 20.0]
    assert select_nearest(xs, ys, 11.0, 9.0) == 1
    assert select_nearest(xs, ys, 100.0, 100.0) == 2
    with pytest.raises(ValueError):
        select_nearest([], [], 0.0, 0.0)


def test_read_pixel_catalog(tmp_path):
    path = tmp_path / "img.cat"
    path.write_text("# x y mag\n1.5 2.5 9.1\n\n3.0 4.0 8.0\n")
    x, y, mag = read_pixel_catalog(path)
    assert list(x) == [1.5, 3.0]
    assert list(y) == [2.5, 4.0]
    assert list(mag) == [9.1, 8.0]


def test_lfit2d_recovers_plane():
    rng = np.random.default_rng(2)
    x = rng.uniform(-100, 100, 20)
    y = rng.uniform(-100, 100, 20)
    z = 1.5 - 0.25 * x + 3.0 * y
    coeffs = lfit2d(x, y, z)
    assert np.allclose(coeffs, [1.5, -0.25, 3.0])


def test_lfit2d_needs_three_points():
    with pytest.raises(ValueError):
        lfit2d([0.0, 1.0], [0.0, 1.0], [0.0, 1.0])


def test_match_catalogs_pairs_shifted_stars():
    cat_x = [10.0, 50.0, 90.0]
    cat_y = [10.0, 50.0, 90.0]
    ast_x = [90.5, 10.5, 200.0, 50.5]
    ast_y = [90.5, 10.5, 200.0, 50.5]
    pairs = match_catalogs(cat_x, cat_y, ast_x, ast_y, 2.0)
    assert pairs == [(0, 1), (1, 3), (2, 0)]


def test_match_catalogs_respects_rmax_and_exclusivity():
    pairs = match_catalogs([0.0, 0.1], [0.0, 0.0], [0.0], [0.0], 1.0)
    assert pairs == [(0, 0)]
    assert match_catalogs([0.0], [0.0], [5.0], [5.0], 1.0) == []