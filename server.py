# server.py
import html
import logging
from dataclasses import asdict

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from engine import JobEngine
from models import BuildParameters, RunAcceptance

logger = logging.getLogger(__name__)

# ---------- Shared UI ----------
BASE_STYLE = """
  body { font-family: Arial, sans-serif; margin: 0; background: #f9f9f9; color: #333; }
  h1 { background: #2196F3; color: white; padding: 15px; margin: 0; }
  h2 { margin-top: 30px; color: #2196F3; }
  .container { padding: 20px; }
  table { border-collapse: collapse; width: 100%; margin-top: 10px; background: white; }
  th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  th { background-color: #2196F3; color: white; width: 200px; }
  pre { background: white; border: 1px solid #ddd; padding: 12px; overflow-x: auto; }
  .muted { color: #555; }
"""


def page(title: str, body_html: str) -> str:
    return f"""
    <html>
    <head>
      <title>{title}</title>
      <meta http-equiv="refresh" content="5">
      <style>{BASE_STYLE}</style>
    </head>
    <body>
      <h1>{title}</h1>
      <div class="container">
        {body_html}
      </div>
    </body>
    </html>
    """


def get_engine(request: Request) -> JobEngine:
    return request.app.state.engine


def create_app(engine: JobEngine) -> FastAPI:
    app = FastAPI(title="MkArchQemu Server")
    app.state.engine = engine

    # ---------- Parameters ----------
    @app.post("/set_params")
    def set_params(params: BuildParameters, engine: JobEngine = Depends(get_engine)):
        logger.info("Received request to set parameters: %s", params)
        engine.set_parameters(params)
        return {"status": "parameters set successfully"}

    @app.get("/get_params")
    def get_params(engine: JobEngine = Depends(get_engine)):
        logger.info("Received request to get parameters.")
        params = engine.get_parameters()
        logger.info("Returned parameters: %s", params)
        return {"params": asdict(params) if params is not None else None}

    # ---------- Status / output ----------
    @app.get("/get_status")
    def get_status(engine: JobEngine = Depends(get_engine)):
        logger.info("Received request to get job status.")
        status = engine.get_status()
        logger.info("Returned job status: %s", status)
        return {"status": status.to_wire()}

    @app.get("/get_last_output")
    def get_last_output(engine: JobEngine = Depends(get_engine)):
        logger.info("Received request to get last output.")
        output = engine.get_last_output()
        logger.info("Returned last output: %r", output)
        return {"last_output": output}

    # ---------- Run ----------
    @app.post("/run_command")
    def run_command(engine: JobEngine = Depends(get_engine)):
        logger.info("Received request to run command.")
        accepted = engine.trigger_run()
        if accepted is RunAcceptance.NO_PARAMETERS:
            return {"status": "parameters not set"}
        if accepted is RunAcceptance.ALREADY_RUNNING:
            return JSONResponse({"status": "command is already running"}, status_code=409)
        # spawn failures surface through /get_status
        logger.info("Command is being executed.")
        return {"status": "command is being executed"}

    # ---------- Status page ----------
    @app.get("/", response_class=HTMLResponse)
    def home(engine: JobEngine = Depends(get_engine)):
        params = engine.get_parameters()
        status = engine.get_status()
        output = engine.get_last_output()

        body = f"""
          <h2>Status</h2>
          <table>
            <tr><th>State</th><td>{html.escape(str(status))}</td></tr>
            <tr><th>Executable</th><td>{html.escape(engine.executable)}</td></tr>
          </table>
        """

        body += "<h2>Parameters</h2>"
        if params is None:
            body += "<p class='muted'>No parameters set. POST them to /set_params.</p>"
        else:
            body += "<table>"
            for key, value in asdict(params).items():
                body += f"<tr><th>{key}</th><td>{html.escape(value) if value is not None else '-'}</td></tr>"
            body += "</table>"

        body += f"""
          <h2>Last output</h2>
          <pre>{html.escape(output) if output is not None else "(no output)"}</pre>
        """
        return page("MkArchQemu Build Server", body)

    return app
