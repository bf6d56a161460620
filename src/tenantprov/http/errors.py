class HttpError(Exception):
    def __init__(self, status: int, url: str, message: str = "", body_snippet: str = "", method: str = ""):
        super().__init__(message or f"HTTP {status} for {url}")
        self.status = status
        self.url = url
        self.method = method
        self.body_snippet = body_snippet

    def __str__(self) -> str:
        base = super().__str__()
        where = f"{self.method} {self.url}".strip()
        detail = f" - {self.body_snippet}" if self.body_snippet else ""
        return f"{base} ({self.status} {where}){detail}"

class BadRequestError(HttpError): pass             # 400
class UnauthorizedError(HttpError): pass           # 401
class ForbiddenError(HttpError): pass              # 403
class NotFoundError(HttpError): pass               # 404
class ThrottleError(HttpError): pass               # 429
class ServerError(HttpError): pass                 # 5xx
class NetworkError(HttpError): pass                # request/timeout
