"""Web UI routes: upload a video, run stages, and review their output."""

import json
import logging
import queue
import subprocess
import threading
import uuid
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    render_template,
    request,
    send_file,
)

from themeforge import engine
from themeforge.analyzers.themes import load_themes, save_themes
from themeforge.errors import StageError
from themeforge.models import ThemeSpan
from themeforge.project import (
    OverlayConfig,
    SilenceCutConfig,
    ThemeConfig,
    TranscribeConfig,
    init_project,
    load_project,
)

LOGGER = logging.getLogger("themeforge.web")

bp = Blueprint("web", __name__, template_folder="templates")

STAGES = ("silent-cut", "extract-subtitles", "extract-themes", "create-video")

# In-memory job store: project_id -> job dict
_jobs: dict[str, dict] = {}


def _describe(exc: BaseException) -> str:
    cause = exc.cause if isinstance(exc, StageError) else exc
    if isinstance(cause, subprocess.CalledProcessError):
        stderr = cause.stderr if isinstance(cause.stderr, str) else (cause.stderr or b"").decode(errors="replace")
        if stderr:
            return f"ffmpeg failed: {stderr[-500:]}"
    return str(exc)


def _run_stage(stage: str, project_dir: Path, options: dict, credentials, on_progress) -> dict:
    project = load_project(project_dir)

    if stage == "silent-cut":
        config = SilenceCutConfig(
            threshold_db=float(options.get("threshold_db", -30.0)),
            min_duration=float(options.get("min_duration", 0.5)),
            padding=float(options.get("padding", 0.05)),
            min_segment_duration=float(options.get("min_segment_duration", 0.3)),
            mode=options.get("mode", "silent"),
        )
        result = engine.cut_project(project, config, on_progress)
        return {
            "output_path": str(result.output_path),
            "duration_original": result.duration_original,
            "duration_final": result.duration_final,
            "segments_kept": len(result.keep),
        }

    if stage == "extract-subtitles":
        config = TranscribeConfig(
            backend=options.get("backend", "openai"),
            language=options.get("language", project.language),
        )
        path = engine.extract_subtitles(project, credentials, config, on_progress)
        return {"srt_file": str(path)}

    if stage == "extract-themes":
        config = ThemeConfig(
            provider=options.get("provider", project.model_provider),
            model=options.get("model", project.model),
        )
        path = engine.extract_themes(project, credentials, config, on_progress)
        return {"themes_file": str(path)}

    config = OverlayConfig(
        font_size=int(options.get("font_size", project.font_size)),
        bg_opacity=float(options.get("bg_opacity", project.bg_opacity)),
        fade=float(options.get("fade", 0.5)),
    )
    path = engine.create_video(project, config, on_progress)
    return {"output_path": str(path)}


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    project_id = uuid.uuid4().hex[:12]
    project_dir = Path(current_app.config["WORK_DIR"]) / project_id
    project_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = project_dir / f"input{ext}"
    f.save(input_path)

    language = request.form.get("language", "ja")
    init_project(input_path, project_dir, language)

    _jobs[project_id] = {
        "dir": project_dir,
        "filename": f.filename,
        "status": "uploaded",
        "stage": None,
    }

    return jsonify({"project_id": project_id, "filename": f.filename})


@bp.route("/api/projects/<project_id>/stages/<stage>", methods=["POST"])
def start_stage(project_id: str, stage: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404
    if stage not in STAGES:
        return jsonify({"error": f"Unknown stage {stage}"}), 400

    job = _jobs[project_id]
    if job["status"] == "processing":
        return jsonify({"error": f"Project is already running {job['stage']}"}), 409

    options = request.get_json(silent=True) or {}
    credentials = current_app.config["CREDENTIALS"]

    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = "processing"
    job["stage"] = stage
    job["error"] = None

    def run():
        try:
            def on_progress(label: str, frac: float):
                progress_queue.put({"stage": label, "progress": round(frac, 3)})

            job["result"] = _run_stage(stage, job["dir"], options, credentials, on_progress)
            job["status"] = "done"
        except Exception as e:
            LOGGER.exception("Stage %s failed for project %s", stage, project_id)
            job["status"] = "error"
            job["error"] = _describe(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started", "stage": stage})


@bp.route("/api/projects/<project_id>/progress")
def progress_stream(project_id: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404

    job = _jobs[project_id]
    q = job.get("progress_queue")

    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/projects/<project_id>/subtitles", methods=["GET", "PUT"])
def subtitles(project_id: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404

    project = load_project(_jobs[project_id]["dir"])
    if request.method == "PUT":
        project.srt_file.write_text(request.get_data(as_text=True), encoding="utf-8")
        return jsonify({"status": "saved"})

    if not project.srt_file.exists():
        return jsonify({"error": "Subtitles not extracted yet"}), 409
    return Response(project.srt_file.read_text(encoding="utf-8"), mimetype="text/plain")


@bp.route("/api/projects/<project_id>/themes", methods=["GET", "PUT"])
def themes(project_id: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404

    project = load_project(_jobs[project_id]["dir"])
    if request.method == "PUT":
        data = request.get_json(silent=True)
        if not isinstance(data, list):
            return jsonify({"error": "Expected a JSON array of themes"}), 400
        try:
            spans = [ThemeSpan.from_dict(entry) for entry in data]
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid theme: {e}"}), 400
        save_themes(spans, project.themes_file)
        return jsonify({"status": "saved", "count": len(spans)})

    if not project.themes_file.exists():
        return jsonify({"error": "Themes not extracted yet"}), 409
    return jsonify([s.to_dict() for s in load_themes(project.themes_file)])


@bp.route("/api/projects/<project_id>/result")
def download_result(project_id: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404

    project = load_project(_jobs[project_id]["dir"])
    if not project.output_file.exists():
        return jsonify({"error": "Video not rendered yet"}), 409
    return send_file(project.output_file, as_attachment=False)


@bp.route("/api/projects/<project_id>/status")
def project_status(project_id: str):
    if project_id not in _jobs:
        return jsonify({"error": "Project not found"}), 404

    job = _jobs[project_id]
    resp = {"status": job["status"], "stage": job["stage"], "filename": job.get("filename")}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
