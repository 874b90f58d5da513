import io
import logging
import os
from dataclasses import replace

from flask import Flask, request, jsonify, send_file

from heightgen.config import ReconstructionConfig, load_config
from heightgen.errors import InvalidInput, NumericalFailure
from heightgen.mesh import height_to_mesh, export_obj
from heightgen.preprocess import read_normal_map, encode_height_png
from heightgen.reconstruct import reconstruct_height

logger = logging.getLogger(__name__)

app = Flask(__name__)

CONFIG_PATH = os.environ.get('HEIGHTGEN_CONFIG', 'config.yaml')
BASE_CONFIG = load_config(CONFIG_PATH) if os.path.exists(CONFIG_PATH) else ReconstructionConfig()

# Relief scale when vertical exaggeration is requested vs. the base scale
EXAGGERATED_SCALE = 200.0
BASE_SCALE = 50.0


def _flag(name):
    return request.form.get(name, '').lower() in ('1', 'true', 'on', 'yes')


def _config_from_form(form):
    overrides = {}
    if 'method' in form:
        overrides['method'] = form['method']
    if 'solver' in form:
        overrides['solver'] = form['solver']
    if 'c00' in form:
        overrides['c00'] = form['c00']
    if 'anchor_x' in form or 'anchor_y' in form:
        overrides['anchor'] = (
            form.get('anchor_x', BASE_CONFIG.anchor[0]),
            form.get('anchor_y', BASE_CONFIG.anchor[1]),
        )
    return replace(BASE_CONFIG, **overrides)


def _heights_from_request():
    if 'file' not in request.files or request.files['file'].filename == '':
        raise InvalidInput("No normal map uploaded (expected multipart field 'file')")

    config = _config_from_form(request.form)
    normals = read_normal_map(
        request.files['file'].read(),
        use_blue=_flag('use_blue'),
        denoise=_flag('denoise'),
    )
    logger.info(f"Reconstructing {normals.width}x{normals.height} normal map with {config.method}")
    return reconstruct_height(normals, config)


@app.errorhandler(InvalidInput)
def invalid_input(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(NumericalFailure)
def numerical_failure(e):
    return jsonify({"error": str(e)}), 422


@app.route('/health')
def health():
    return jsonify({"status": "ok"})


@app.route('/reconstruct', methods=['POST'])
def reconstruct():
    heights = _heights_from_request()
    return send_file(io.BytesIO(encode_height_png(heights)), mimetype='image/png',
                     download_name='height.png')


@app.route('/relief', methods=['POST'])
def relief():
    heights = _heights_from_request()

    if 'exaggeration' in request.form:
        try:
            scale = float(request.form['exaggeration'])
        except ValueError:
            raise InvalidInput(f"Invalid exaggeration '{request.form['exaggeration']}'") from None
    else:
        scale = EXAGGERATED_SCALE if _flag('exaggerate') else BASE_SCALE

    mesh = height_to_mesh(heights, scale=scale)
    logger.info(f"Relief mesh: {len(mesh.vertices)} vertices, scale {scale}")
    return app.response_class(export_obj(mesh), mimetype='text/plain')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(message)s')
    app.run(debug=True)
