import logging
import sys

import typer

from provctl.commands import apply, plan, status, validate
from provctl.logging import setup_logging

app = typer.Typer(help="Provision and upgrade Kubernetes clusters from a plan file.")

debug_mode = False

# Register commands
app.command("apply")(apply.apply)
app.command("validate")(validate.validate)
app.command("plan")(plan.plan)
app.command("status")(status.status)


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """provctl - Kubernetes cluster provisioning CLI."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug mode enabled")


def run():
    """Console script entry point."""
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
