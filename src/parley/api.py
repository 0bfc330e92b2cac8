"""HTTP surface of the completion gateway, mounted on the app's Flask server."""

from flask import Flask, jsonify, request

from .errors import ParleyError
from .gateway import Gateway

CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def register_api_routes(server: Flask, gateway: Gateway, url_prefix: str = "/api") -> None:
    """Registers ``POST {url_prefix}/chat`` on ``server``.

    The body is ``{message, history?, apiProvider?, apiKey?, model?}``. Replies
    are ``200 {"reply"}``, ``400 {"error"}`` for invalid input or a missing
    key, ``500 {"error"}`` for backend failures and ``405`` for any method
    other than POST or the OPTIONS preflight.
    """

    @server.after_request
    def _add_headers(response):
        if request.path.startswith(url_prefix + "/"):
            response.headers.update(CORS_HEADERS)
            response.headers.update(SECURITY_HEADERS)
        return response

    @server.route(
        url_prefix + "/chat",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        provide_automatic_options=False,
    )
    def chat():
        if request.method == "OPTIONS":
            return "", 200
        if request.method != "POST":
            return jsonify({"error": "Method not allowed"}), 405

        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        try:
            result = gateway.complete(
                message=body.get("message"),
                history=body.get("history"),
                provider=body.get("apiProvider"),
                api_key=body.get("apiKey"),
                model=body.get("model"),
            )
        except ParleyError as e:
            return jsonify({"error": e.message}), e.http_status
        return jsonify({"reply": result.reply}), 200
