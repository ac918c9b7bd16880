"""CLI client for the bip job queue."""

import json
from typing import Optional

import httpx
import typer

from bip.config import get_settings
from bip.constants import API_V1_PREFIX, JobStatus

app = typer.Typer(
    name="bip",
    help="Client for the bip job queue. Payloads are read from stdin and written to stdout.",
    no_args_is_help=True,
)

# Exit codes
EXIT_TRANSPORT = 1
EXIT_ERROR = 2
EXIT_NO_JOB = 3


def _base_url(server: str) -> str:
    return server if "://" in server else f"http://{server}"


@app.callback()
def main(
    ctx: typer.Context,
    server: Optional[str] = typer.Option(
        None,
        "--server",
        "-s",
        help="The server to correspond with, e.g. localhost:6798",
    ),
):
    """Talk to a bip server."""
    if ctx.obj is not None:
        # Client injected by the caller
        return
    settings = get_settings()
    client = httpx.Client(
        base_url=_base_url(server or settings.server_url),
        timeout=settings.request_timeout_seconds,
    )
    ctx.obj = client
    ctx.call_on_close(client.close)


def _request(ctx: typer.Context, method: str, path: str = "", **kwargs) -> httpx.Response:
    client: httpx.Client = ctx.obj
    try:
        return client.request(method, f"{API_V1_PREFIX}/jobs{path}", **kwargs)
    except httpx.TransportError as exc:
        typer.echo(f"Unable to reach the server: {exc}", err=True)
        raise typer.Exit(EXIT_TRANSPORT)


def _fail(response: httpx.Response, exit_code: int = EXIT_ERROR) -> None:
    message = response.text
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("detail") or body.get("error") or message
    typer.echo(f"Error '{response.status_code}': {message}", err=True)
    raise typer.Exit(exit_code)


def _expect(response: httpx.Response, status_code: int = 200) -> httpx.Response:
    if response.status_code != status_code:
        _fail(response)
    return response


def _read_stdin() -> bytes:
    return typer.get_binary_stream("stdin").read()


def _write_stdout(content: bytes) -> None:
    stream = typer.get_binary_stream("stdout")
    stream.write(content)
    stream.flush()


def _set_status(ctx: typer.Context, job_id: str, status: JobStatus) -> None:
    _expect(_request(ctx, "PUT", f"/{job_id}/status", content=status.value))


@app.command("list")
def list_jobs(
    ctx: typer.Context,
    to_json: bool = typer.Option(False, "--to-json", help="Print the raw JSON listing"),
    with_status: bool = typer.Option(False, "--with-status", help="Print the job status too"),
):
    """List the jobs."""
    response = _expect(_request(ctx, "GET"))
    if to_json:
        typer.echo(response.text)
        return
    for job in response.json():
        if with_status:
            typer.echo(f"{job['id']}\t{job['status']}")
        else:
            typer.echo(job["id"])


@app.command()
def put(ctx: typer.Context, job_id: str = typer.Argument(..., help="The job identifier")):
    """Declare a job. The job data are read from stdin."""
    response = _request(ctx, "POST", f"/{job_id}", content=_read_stdin())
    if response.status_code == 409:
        typer.echo(f"Job '{job_id}' already exists", err=True)
        raise typer.Exit(EXIT_ERROR)
    _expect(response, 201)


@app.command()
def process(
    ctx: typer.Context,
    job_id: Optional[str] = typer.Argument(
        None, help="The job to process. If omitted, the oldest ready job is claimed"
    ),
):
    """Process a job and print its identifier."""
    if job_id is not None:
        _set_status(ctx, job_id, JobStatus.PROCESSING)
        typer.echo(job_id)
        return

    response = _request(ctx, "PUT")
    if response.status_code == 204:
        typer.echo("No jobs are waiting for being processed", err=True)
        raise typer.Exit(EXIT_NO_JOB)
    typer.echo(_expect(response).json()["id"])


@app.command()
def done(ctx: typer.Context, job_id: str = typer.Argument(..., help="The job identifier")):
    """Declare a job processing is done. Results can be sent afterwards."""
    _set_status(ctx, job_id, JobStatus.TERMINATING)


@app.command()
def rput(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="The job identifier"),
    name: str = typer.Argument(..., help="The result name"),
):
    """Send a result. The result content is read from stdin."""
    _expect(_request(ctx, "PUT", f"/{job_id}/results/{name}", content=_read_stdin()), 201)


@app.command()
def commit(ctx: typer.Context, job_id: str = typer.Argument(..., help="The job identifier")):
    """Declare a job has been processed and all the results sent."""
    _set_status(ctx, job_id, JobStatus.TERMINATED)


@app.command()
def get(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="The job identifier"),
    to_json: bool = typer.Option(False, "--to-json", help="Print the raw JSON summary"),
    with_status: bool = typer.Option(False, "--with-status", help="Print the job status too"),
):
    """Get a job summary."""
    response = _expect(_request(ctx, "GET", f"/{job_id}"))
    if to_json:
        typer.echo(response.text)
        return
    job = response.json()
    if with_status:
        typer.echo(f"{job['id']}\t{job['status']}")
    else:
        typer.echo(job["id"])


@app.command()
def status(ctx: typer.Context, job_id: str = typer.Argument(..., help="The job identifier")):
    """Get a job status."""
    typer.echo(_expect(_request(ctx, "GET", f"/{job_id}/status")).json()["status"])


@app.command()
def data(ctx: typer.Context, job_id: str = typer.Argument(..., help="The job identifier")):
    """Get a job data."""
    _write_stdout(_expect(_request(ctx, "GET", f"/{job_id}/data")).content)


@app.command()
def rlist(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="The job identifier"),
    to_json: bool = typer.Option(False, "--to-json", help="Print the raw JSON mapping"),
):
    """Get the result names of a job."""
    response = _expect(_request(ctx, "GET", f"/{job_id}/results"))
    if to_json:
        typer.echo(json.dumps(response.json()))
        return
    for name in response.json():
        typer.echo(name)


@app.command()
def rget(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="The job identifier"),
    name: str = typer.Argument(..., help="The result name"),
):
    """Get a specific result of a job."""
    _write_stdout(_expect(_request(ctx, "GET", f"/{job_id}/results/{name}")).content)


if __name__ == "__main__":
    app()
