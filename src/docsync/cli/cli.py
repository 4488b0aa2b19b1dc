"""CLI entrypoint: Typer app definition and command registration"""

import typer

from docsync.cli.commands import (
    export_cmd, history_cmd, init_cmd, plan_export_cmd, plan_import_cmd, preview_cmd,
)


app = typer.Typer(name="docsync", no_args_is_help=True, help="Synchronize documents and task plans with a remote artifact server")

app.command(name="export")(export_cmd)
app.command(name="plan-export")(plan_export_cmd)
app.command(name="plan-import")(plan_import_cmd)
app.command(name="preview")(preview_cmd)
app.command(name="history")(history_cmd)
app.command(name="init")(init_cmd)
