import os
from flask import Flask, request, jsonify, send_file, url_for
from flask_cors import CORS
from werkzeug.utils import secure_filename

from File_Compression import HUFF_EXTENSION, compress_file, decompress_file
from huffman_core import HuffmanError


# -----------------------------------------------------------
# PATH CONFIGURATION
# -----------------------------------------------------------
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")

# -----------------------------------------------------------
# FLASK APP SETUP
# -----------------------------------------------------------
app = Flask(__name__)
app.config.update(
    DATA_DIR=DATA_DIR,
    MAX_CONTENT_LENGTH=16 * 1024 * 1024,
    STRICT_FORMAT=False,
    ALLOWED_DECOMPRESS_SUFFIX=HUFF_EXTENSION,
)
# e.g. FILEZIPPER_DATA_DIR=/srv/huff, FILEZIPPER_STRICT_FORMAT=true
app.config.from_prefixed_env("FILEZIPPER")
CORS(app)

# -----------------------------------------------------------
# HELPER FUNCTIONS
# -----------------------------------------------------------
def storage_dir():
    path = app.config["DATA_DIR"]
    os.makedirs(path, exist_ok=True)
    return path


def error_response(message, status):
    return jsonify({"success": False, "error": message}), status


def uploaded_file():
    """Returns (file, safe_filename) or (None, None) when nothing usable was sent."""
    file = request.files.get("file")
    if not file or not file.filename:
        return None, None
    filename = secure_filename(file.filename)
    if not filename:
        return None, None
    return file, filename

# -----------------------------------------------------------
# ROUTES
# -----------------------------------------------------------
@app.route("/")
def home():
    return jsonify({
        "service": "filezipper",
        "endpoints": {
            "compress": url_for("compress_file_route"),
            "decompress": url_for("decompress_file_route"),
        },
    })


@app.route("/compress_file", methods=["POST"])
def compress_file_route():
    file, filename = uploaded_file()
    if not file:
        return error_response("No file uploaded", 400)

    try:
        user_dir = storage_dir()
        input_path = os.path.join(user_dir, filename)
        file.save(input_path)

        compressed_filename = f"{filename}{HUFF_EXTENSION}"
        compressed_path = os.path.join(user_dir, compressed_filename)
        stats = compress_file(input_path, compressed_path).stats
    except Exception:
        app.logger.exception("Error in /compress_file")
        return error_response("Internal server error", 500)

    return jsonify({
        "success": True,
        "filename": filename,
        "compressed_filename": compressed_filename,
        "original_size": stats.original_size,
        "compressed_size": stats.compressed_size,
        "distinct_bytes": stats.distinct_bytes,
        "encoded_bits": stats.encoded_bits,
        "saved": stats.saved,
        "saved_percent": stats.saved_percent,
        "download_url": url_for("download", filename=compressed_filename),
    })


@app.route("/decompress_file", methods=["POST"])
def decompress_file_route():
    file, filename = uploaded_file()
    if not file:
        return error_response("No file uploaded", 400)

    suffix = app.config["ALLOWED_DECOMPRESS_SUFFIX"]
    if not filename.endswith(suffix) or len(filename) == len(suffix):
        return error_response("Invalid file type", 400)

    try:
        user_dir = storage_dir()
        input_path = os.path.join(user_dir, filename)
        file.save(input_path)

        output_filename = filename[:-len(suffix)]  # keep original filename
        output_path = os.path.join(user_dir, output_filename)
        decompress_file(input_path, output_path, strict=app.config["STRICT_FORMAT"])
    except HuffmanError as e:
        app.logger.warning("Rejected %s: %s", filename, e)
        return error_response(str(e), 400)
    except Exception:
        app.logger.exception("Error in /decompress_file")
        return error_response("Internal server error", 500)

    return jsonify({
        "success": True,
        "original_huff": filename,
        "decompressed_file": output_filename,
        "download_url": url_for("download", filename=output_filename),
    })


@app.route("/download/<filename>")
def download(filename):
    file_path = os.path.join(storage_dir(), secure_filename(filename))
    if not os.path.isfile(file_path):
        return "File not found", 404
    return send_file(file_path, as_attachment=True, download_name=os.path.basename(file_path),
                     mimetype="application/octet-stream")

# -----------------------------------------------------------
if __name__ == "__main__":
    app.run(debug=True)
