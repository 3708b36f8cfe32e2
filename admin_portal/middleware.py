import logging, time

from django.http.request import RawPostDataException
from django.utils.deprecation import MiddlewareMixin

from admin_portal.audit_local import set_current_request, get_actor
from admin_portal.models import ActivityLog

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("http.audit")

SKIP_PREFIXES = ("/static/", "/media/")
SKIP_PATHS = {"/health", "/readiness", "/liveness"}
# request bodies on these routes carry credentials
NO_BODY_PREFIXES = ("/api/auth/",)


class RequestActivityMiddleware:
    """
    - Stores the request on a threadlocal so services can resolve the actor.
    - Logs every API hit as ActivityLog(action=API_HIT).
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        set_current_request(request)
        response = self.get_response(request)

        if not request.path.startswith("/api/"):
            return response

        try:
            meta = {
                "path": request.path,
                "method": request.method,
                "status": getattr(response, "status_code", None),
                "query": request.META.get("QUERY_STRING", ""),
            }
            if not request.path.startswith(NO_BODY_PREFIXES) and request.content_type == "application/json":
                try:
                    meta["body"] = request.body.decode("utf-8", errors="replace")[:2048]
                except RawPostDataException:
                    # stream already consumed by the parser
                    meta["body"] = None

            ActivityLog.objects.create(
                actor=get_actor(),
                action=ActivityLog.Action.API_HIT,
                app_label="http",
                model="Request",
                meta=meta,
                help_text=f"API {request.method} {request.path} ({meta['status']})",
            )
        except Exception:
            # the response is already built; a failed audit row must not replace it
            logger.exception("Failed to record API hit for %s %s", request.method, request.path)

        return response


class RequestResponseLoggingMiddleware(MiddlewareMixin):
    def process_request(self, request):
        request._start_time = time.monotonic()

    def process_response(self, request, response):
        path = request.path or ""
        if any(path.startswith(p) for p in SKIP_PREFIXES) or path in SKIP_PATHS:
            return response

        dur_ms = None
        if hasattr(request, "_start_time"):
            dur_ms = int((time.monotonic() - request._start_time) * 1000)

        user = getattr(request, "user", None)
        uid = getattr(user, "id", None)
        uemail = getattr(user, "email", None)

        method = request.method
        status = getattr(response, "status_code", None)
        clen = response.get("Content-Length") or "-"
        ip = request.META.get("HTTP_X_FORWARDED_FOR", "").split(",")[0].strip() or request.META.get("REMOTE_ADDR", "")
        ua = request.META.get("HTTP_USER_AGENT", "")

        audit_logger.info(
            f'{method} {path} {status} dur_ms={dur_ms} bytes={clen} ip={ip} user_id={uid} user_email="{uemail}" ua="{ua}"'
        )
        return response
