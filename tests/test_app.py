import io

import cv2
import numpy as np
import pytest
from PIL import Image

from app import app


def normal_png(h, w, rgb=(128, 128, 255)):
    image = np.zeros((h, w, 3), dtype=np.uint8)
    image[...] = rgb
    # a gentle ramp in red so the reconstruction is not flat
    image[..., 0] = np.linspace(100, 160, w, dtype=np.uint8)
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(image, cv2.COLOR_RGB2BGR))
    assert ok
    return encoded.tobytes()


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def upload(client, route, png, **fields):
    data = {"file": (io.BytesIO(png), "normal.png")}
    data.update(fields)
    return client.post(route, data=data, content_type="multipart/form-data")


class TestReconstructRoute:

    def test_returns_height_png(self, client):
        response = upload(client, "/reconstruct", normal_png(6, 9))
        assert response.status_code == 200
        assert response.mimetype == "image/png"
        with Image.open(io.BytesIO(response.data)) as img:
            assert img.size == (9, 6)
            assert img.mode == "L"

    def test_fit_method(self, client):
        response = upload(client, "/reconstruct", normal_png(4, 4), method="fit", c00="0.5")
        assert response.status_code == 200

    def test_anchor_fields(self, client):
        response = upload(client, "/reconstruct", normal_png(5, 5), anchor_x="2", anchor_y="2")
        assert response.status_code == 200

    def test_missing_file(self, client):
        response = client.post("/reconstruct", data={}, content_type="multipart/form-data")
        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_unknown_method(self, client):
        response = upload(client, "/reconstruct", normal_png(4, 4), method="poisson")
        assert response.status_code == 400

    def test_anchor_outside_map(self, client):
        response = upload(client, "/reconstruct", normal_png(4, 4), anchor_x="9")
        assert response.status_code == 400

    def test_not_an_image(self, client):
        response = upload(client, "/reconstruct", b"plain text")
        assert response.status_code == 400


class TestReliefRoute:

    def test_returns_obj(self, client):
        response = upload(client, "/relief", normal_png(3, 4), exaggeration="10")
        assert response.status_code == 200
        lines = response.get_data(as_text=True).splitlines()
        vertices = [line for line in lines if line.startswith("v ")]
        assert len(vertices) == 12
        assert max(float(v.split()[2]) for v in vertices) == pytest.approx(10.0)

    def test_exaggerate_flag(self, client):
        response = upload(client, "/relief", normal_png(3, 3), exaggerate="on")
        lines = response.get_data(as_text=True).splitlines()
        assert max(float(line.split()[2]) for line in lines if line.startswith("v ")) == pytest.approx(200.0)

    def test_bad_exaggeration(self, client):
        response = upload(client, "/relief", normal_png(3, 3), exaggeration="lots")
        assert response.status_code == 400


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}
