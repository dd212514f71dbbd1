from flask import render_template

from .results import FORBIDDEN, OUT_OF_STOCK, UNAVAILABLE, Failure

FAILURE_TITLES = {
    OUT_OF_STOCK: "Sorry",
    FORBIDDEN: "Access Denied",
    UNAVAILABLE: "Something went wrong",
}


def render_failure(failure: Failure, template: str = "message.html", **context):
    """Render ``failure`` with the status code its kind maps to.

    Form views pass their own template so the message shows inline next to
    the form that produced it.
    """
    return (
        render_template(
            template,
            failure=failure,
            title=FAILURE_TITLES.get(failure.kind, "Please check your input"),
            message=failure.message,
            **context,
        ),
        failure.status_code,
    )


def render_server_error(message: str = "The server could not complete your request."):
    return render_template("error.html", error_message=message), 500
