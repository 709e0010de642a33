#!/usr/bin/env python3
"""
Catalog Composer Web GUI

Browser interface for building catalog cards: upload a template, the
products CSV and the photos, compose everything, then tweak single cards
(photo position/height, text position, font size, line height) and
download the ZIP with the report and the Rappi flatfile.
"""

import io
import logging
import os
import threading

from flask import Flask, jsonify, render_template_string, request, send_file

import config
from bundle import build_zip
from errors import DecodeFailure, RecordBusy, TemplateMissing
from processor import RecordProcessor
from rappi_flatfile import rappi_xlsx_bytes
from records import Status, parse_records_csv

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)

HTML_TEMPLATE = '''
<!DOCTYPE html>
<html lang="es">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Catalog Composer</title>
    <style>
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
            background: #f5f5f5;
            color: #333;
        }
        body.dark { background: #111827; color: #e5e7eb; }
        body.dark .section, body.dark .card { background: #1f2937; border-color: #374151; }
        .container { max-width: 1400px; margin: 0 auto; padding: 20px; }
        header {
            display: flex;
            justify-content: space-between;
            align-items: center;
            margin-bottom: 20px;
        }
        header h1 { font-size: 24px; }
        .section {
            background: white;
            border: 1px solid #e0e0e0;
            border-radius: 8px;
            padding: 20px;
            margin-bottom: 20px;
        }
        .section label { display: block; font-weight: 500; margin: 10px 0 4px; }
        .actions { display: flex; gap: 8px; margin-top: 16px; }
        button {
            padding: 8px 16px;
            border: none;
            border-radius: 6px;
            background: #1F478D;
            color: white;
            cursor: pointer;
        }
        button.secondary { background: #6b7280; }
        button:disabled { opacity: 0.5; cursor: default; }
        .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr)); gap: 16px; }
        .card { background: white; border: 1px solid #e0e0e0; border-radius: 8px; padding: 12px; }
        .card h3 { font-size: 15px; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; }
        .card img { width: 100%; border-radius: 6px; margin: 8px 0; background: #eee; min-height: 100px; }
        .card .status { font-size: 12px; opacity: 0.8; }
        .card .status.error { color: #c0392b; }
        .settings { display: grid; grid-template-columns: 1fr 1fr; gap: 6px; font-size: 12px; }
        .settings input { width: 100%; padding: 2px 4px; }
        .row { display: flex; gap: 8px; align-items: center; font-size: 12px; margin-top: 6px; }
    </style>
</head>
<body>
<div class="container">
    <header>
        <h1>Catalog Composer</h1>
        <label class="row"><input type="checkbox" id="dark" onchange="document.body.classList.toggle('dark', this.checked)"> Dark</label>
    </header>

    <div class="section">
        <label>1) Plantilla (PNG/JPG)</label>
        <input type="file" id="template" accept="image/*" onchange="upload('/api/template', this, 'file')">
        <label>2) CSV (sku,action,title,price,filename)</label>
        <input type="file" id="csv" accept=".csv" onchange="upload('/api/csv', this, 'file')">
        <label>3) Fotos (múltiples)</label>
        <input type="file" id="photos" accept="image/*" multiple onchange="upload('/api/photos', this, 'files')">
        <div class="actions">
            <button id="compose" onclick="composeAll()">Componer imágenes</button>
            <button class="secondary" onclick="location.href='/api/download/zip'">Descargar ZIP + CSV</button>
            <button class="secondary" onclick="location.href='/api/download/zip?rappi=1'">Descargar ZIP + Excel Rappi</button>
        </div>
        <p id="message" class="status"></p>
    </div>

    <div class="grid" id="records"></div>
</div>

<script>
const FIELDS = [
    ["photo_y", "Foto Y"], ["photo_h", "Foto alto"],
    ["text_x", "Texto X"], ["text_y", "Texto Y"],
    ["font_size", "Fuente"], ["line_height", "Interlineado"],
    ["max_text_adjustment", "Ajuste máx."],
];

function say(text) { document.getElementById('message').textContent = text; }

async function upload(url, input, field) {
    const form = new FormData();
    for (const f of input.files) form.append(field, f);
    const res = await fetch(url, {method: 'POST', body: form});
    const data = await res.json();
    say(data.error || data.message || '');
    loadRecords();
}

async function composeAll() {
    const btn = document.getElementById('compose');
    btn.disabled = true;
    btn.textContent = 'Procesando...';
    const res = await fetch('/api/compose', {method: 'POST'});
    const data = await res.json();
    say(data.error || `${data.ok} ok, ${data.failed} con error`);
    btn.disabled = false;
    btn.textContent = 'Componer imágenes';
    loadRecords();
}

async function post(url, body) {
    const res = await fetch(url, {
        method: 'POST',
        headers: {'Content-Type': 'application/json'},
        body: JSON.stringify(body),
    });
    const data = await res.json();
    if (data.error) say(data.error);
    return data;
}

async function saveSettings(i, auto) {
    const settings = {};
    for (const [key] of FIELDS) settings[key] = document.getElementById(`s-${i}-${key}`).value;
    await post(`/api/records/${i}/settings`, {settings, auto_update: auto});
    if (auto) setTimeout(loadRecords, 600);
}

async function recompose(i) {
    await post(`/api/records/${i}/compose`, {});
    setTimeout(loadRecords, 600);
}

async function swapPhoto(i, input) {
    const form = new FormData();
    form.append('file', input.files[0]);
    await fetch(`/api/records/${i}/photo`, {method: 'POST', body: form});
    loadRecords();
}

async function loadRecords() {
    const res = await fetch('/api/records');
    const data = await res.json();
    const root = document.getElementById('records');
    root.innerHTML = '';
    data.records.forEach((r, i) => {
        const card = document.createElement('div');
        card.className = 'card';
        const inputs = FIELDS.map(([key, label]) =>
            `<label>${label}<input id="s-${i}-${key}" type="number" value="${r.settings[key]}"
              onchange="saveSettings(${i}, document.getElementById('auto-${i}').checked)"></label>`).join('');
        card.innerHTML = `
            <h3>${r.sku || 'Sin SKU'}</h3>
            <div class="status ${r.status}">${r.status_label || 'sin componer'}</div>
            ${r.has_output ? `<img src="/api/records/${i}/image?t=${Date.now()}">` : '<img alt="">'}
            <div>${r.title}</div>
            <div class="settings">${inputs}</div>
            <div class="row">
                <label><input type="checkbox" id="auto-${i}"> Auto</label>
                <label><input type="checkbox" ${r.approved ? 'checked' : ''}
                    onchange="post('/api/records/${i}/approved', {approved: this.checked})"> Aprobada</label>
                <button onclick="recompose(${i})">Actualizar</button>
            </div>
            <div class="row"><input type="file" accept="image/*" onchange="swapPhoto(${i}, this)"></div>`;
        root.appendChild(card);
    });
}

loadRecords();
</script>
</body>
</html>
'''


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def register_catalog_routes(app: Flask, processor: RecordProcessor) -> None:
    """Register the composer UI and JSON API on a Flask app."""

    def _record_or_404(index: int):
        try:
            return processor.record(index), None
        except IndexError:
            return None, _error(f"No record at index {index}", 404)

    @app.route("/")
    def index():
        return render_template_string(HTML_TEMPLATE)

    @app.route("/api/records")
    def get_records():
        records = processor.records
        return jsonify({
            "records": [r.to_dict() for r in records],
            "count": len(records),
            "has_template": processor.has_template,
            "photos": processor.assets.names(),
        })

    @app.route("/api/template", methods=["POST"])
    def upload_template():
        upload = request.files.get("file")
        if upload is None:
            return _error("Missing template file")
        try:
            processor.set_template(upload.read(), validate=True)
        except DecodeFailure as e:
            return _error(str(e))
        return jsonify({"success": True, "message": f"Plantilla cargada: {upload.filename}"})

    @app.route("/api/csv", methods=["POST"])
    def upload_csv():
        upload = request.files.get("file")
        if upload is None:
            return _error("Missing CSV file")
        try:
            records = parse_records_csv(upload.read().decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError) as e:
            return _error(f"Invalid CSV: {e}")
        processor.load_records(records)
        return jsonify({"success": True, "count": len(records), "message": f"{len(records)} productos cargados"})

    @app.route("/api/photos", methods=["POST"])
    def upload_photos():
        uploads = request.files.getlist("files")
        if not uploads:
            return _error("No photos uploaded")
        if any(not upload.filename for upload in uploads):
            return _error("Every photo needs a filename")
        for upload in uploads:
            processor.assets.put(upload.filename, upload.read())
        return jsonify({"success": True, "count": len(uploads), "message": f"{len(uploads)} fotos cargadas"})

    @app.route("/api/compose", methods=["POST"])
    def compose_all():
        if not processor.records:
            return _error("No products loaded")
        try:
            records = processor.compose_all()
        except TemplateMissing as e:
            return _error(str(e))
        ok = sum(1 for r in records if r.status == Status.OK)
        return jsonify({"success": True, "ok": ok, "failed": len(records) - ok})

    @app.route("/api/records/<int:index>/compose", methods=["POST"])
    def compose_one(index):
        _, error = _record_or_404(index)
        if error:
            return error
        try:
            future = processor.submit_compose(index)
        except TemplateMissing as e:
            return _error(str(e))
        if future is None:
            return _error("Record is already processing", 409)
        return jsonify({"success": True, "status": "processing"}), 202

    @app.route("/api/records/<int:index>/settings", methods=["POST"])
    def update_settings(index):
        _, error = _record_or_404(index)
        if error:
            return error
        data = request.get_json(silent=True) or {}
        settings = data.get("settings", {})
        if not isinstance(settings, dict):
            return _error("settings must be an object")
        auto_update = bool(data.get("auto_update", False)) and processor.has_template
        try:
            merged = processor.update_settings(index, settings, auto_recompose=auto_update)
        except ValueError as e:
            return _error(str(e))
        return jsonify({"success": True, "settings": merged.to_dict(), "auto_update": auto_update})

    @app.route("/api/records/<int:index>/photo", methods=["POST"])
    def swap_photo(index):
        _, error = _record_or_404(index)
        if error:
            return error
        try:
            upload = request.files.get("file")
            if upload is not None:
                if not upload.filename:
                    return _error("Photo file needs a filename")
                processor.upload_photo(index, upload.filename, upload.read())
                filename = upload.filename
            else:
                filename = ((request.get_json(silent=True) or {}).get("filename") or "").strip()
                if not filename:
                    return _error("Missing photo file or filename")
                processor.swap_photo(index, filename)
        except RecordBusy as e:
            return _error(str(e), 409)
        return jsonify({"success": True, "filename": filename, "status": "pending"})

    @app.route("/api/records/<int:index>/approved", methods=["POST"])
    def set_approved(index):
        _, error = _record_or_404(index)
        if error:
            return error
        approved = bool((request.get_json(silent=True) or {}).get("approved", True))
        processor.set_approved(index, approved)
        return jsonify({"success": True, "approved": approved})

    @app.route("/api/records/<int:index>/image")
    def get_image(index):
        record, error = _record_or_404(index)
        if error:
            return error
        if record.output is None:
            return _error("Image not composed", 404)
        return send_file(io.BytesIO(record.output), mimetype="image/jpeg", download_name=record.output_name)

    @app.route("/api/download/zip")
    def download_zip():
        include_flatfile = request.args.get("rappi", "").lower() in ("1", "true", "yes")
        data = build_zip(processor.records, include_flatfile=include_flatfile)
        name = config.RAPPI_ZIP_NAME if include_flatfile else config.CATALOG_ZIP_NAME
        return send_file(io.BytesIO(data), mimetype="application/zip", as_attachment=True, download_name=name)

    @app.route("/api/download/rappi")
    def download_rappi():
        data = rappi_xlsx_bytes(processor.approved_records())
        return send_file(
            io.BytesIO(data),
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            as_attachment=True,
            download_name=config.RAPPI_XLSX_NAME,
        )


def create_app(processor: RecordProcessor = None) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 256 * 1024 * 1024
    register_catalog_routes(app, processor or RecordProcessor())
    return app


if __name__ == "__main__":
    import webbrowser

    config.load_config_bat()
    app = create_app()

    port = int(os.environ.get("PORT", 5000))
    # Use 0.0.0.0 for Render, 127.0.0.1 for local
    host = "0.0.0.0" if os.environ.get("RENDER") else "127.0.0.1"
    url = f"http://localhost:{port}"

    if not os.environ.get("RENDER"):
        threading.Timer(1.5, lambda: webbrowser.open(url)).start()

    logging.info("Starting Catalog Composer at %s", url)
    app.run(host=host, port=port, debug=False, threaded=True)
